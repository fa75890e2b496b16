"""Unit tests for key validation and the public URL codec."""

from __future__ import annotations

import pytest

from r2_transfer.infra.storage import PublicUrlCodec, StorageValidationError, validate_image_filename, validate_key


@pytest.fixture
def codec() -> PublicUrlCodec:
    return PublicUrlCodec("https://pub-abc.r2.dev/")


@pytest.mark.unit
class TestValidateKey:
    """Test suite for validate_key and validate_image_filename."""

    @pytest.mark.parametrize(
        "name",
        ["photo.png", "images/2024/photo.png", "report.pdf", "a b c.txt", "CONSOLE.txt", "images/icon.svg"],
    )
    def test_accepts_valid_keys(self, name):
        assert validate_key(name) is True

    @pytest.mark.parametrize(
        "name",
        [
            "",
            "a" * 256,
            "bad<name.png",
            'quote".png',
            "pipe|.png",
            "what?.png",
            "star*.png",
            "colon:.png",
            "tab\t.png",
            "CON.png",
            "con",
            "images/LPT1.jpg",
            "Com9.txt",
        ],
    )
    def test_rejects_invalid_keys(self, name):
        assert validate_key(name) is False

    def test_max_length_is_inclusive(self):
        assert validate_key("a" * 255) is True

    def test_image_check_requires_image_extension(self):
        assert validate_image_filename("photo.JPG") is True
        assert validate_image_filename("diagram.tiff") is True
        assert validate_image_filename("notes.txt") is False
        assert validate_image_filename("CON.png") is False

    def test_generic_keys_do_not_need_an_extension(self):
        assert validate_key("portfolio-config.json") is True
        assert validate_key("README") is True


@pytest.mark.unit
class TestPublicUrlCodec:
    """Test suite for PublicUrlCodec."""

    def test_to_url_strips_slashes(self, codec):
        assert codec.to_url("/photo.png") == "https://pub-abc.r2.dev/photo.png"

    def test_to_url_percent_encodes_key(self, codec):
        assert codec.to_url("my photo (1).png") == "https://pub-abc.r2.dev/my%20photo%20(1).png"
        assert codec.to_url("images/a.png") == "https://pub-abc.r2.dev/images%2Fa.png"

    @pytest.mark.parametrize(
        "key",
        ["photo.png", "images/2024/photo.png", "naïve café.jpg", "100% done!.txt", "a+b=c&d.json", "it's (ok).png"],
    )
    def test_round_trip(self, codec, key):
        assert codec.from_url(codec.to_url(key)) == key

    def test_to_url_raises_for_invalid_key(self, codec):
        with pytest.raises(StorageValidationError):
            codec.to_url("CON.png")

    def test_safe_to_url_returns_none_for_invalid_key(self, codec):
        assert codec.safe_to_url("") is None
        assert codec.safe_to_url("bad<name.png") is None
        assert codec.safe_to_url("ok.png") == "https://pub-abc.r2.dev/ok.png"

    def test_from_url_rejects_other_hosts(self, codec):
        assert codec.from_url("https://evil.example.com/photo.png") is None

    def test_from_url_rejects_garbage(self, codec):
        assert codec.from_url("not a url") is None
        assert codec.from_url("https://pub-abc.r2.dev/") is None

    def test_from_url_image_only(self, codec):
        url = codec.to_url("notes.txt")
        assert codec.from_url(url) == "notes.txt"
        assert codec.from_url(url, image_only=True) is None

    def test_image_url_rejects_non_images(self, codec):
        with pytest.raises(StorageValidationError):
            codec.image_url("notes.txt")
        assert codec.safe_image_url("notes.txt") is None
        assert codec.safe_image_url("a.webp") == "https://pub-abc.r2.dev/a.webp"

    def test_image_urls_filters_invalid_names(self, codec):
        urls = codec.image_urls(["a.png", "b.txt", "CON.jpg", "c.gif"])
        assert urls == ["https://pub-abc.r2.dev/a.png", "https://pub-abc.r2.dev/c.gif"]

    def test_is_image_url(self, codec):
        assert codec.is_image_url("https://pub-abc.r2.dev/a.png") is True
        assert codec.is_image_url("https://other.dev/a.png") is False
        assert codec.is_image_url("https://pub-abc.r2.dev/a.txt") is False

    def test_invalid_base_url(self):
        with pytest.raises(StorageValidationError):
            PublicUrlCodec("not-a-url")
