"""Object key validation and public URL mapping.

Public URLs have the form ``{base_url}/{percent-encoded key}``. The whole key,
including any ``/`` separators, is encoded as a single path segment, so
``from_url(to_url(key)) == key`` for every valid key.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
import logging
import re
from urllib.parse import quote, unquote, urlsplit

from .exceptions import StorageValidationError

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 255

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tiff", ".svg")

_INVALID_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')
_RESERVED_NAMES = re.compile(r"^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])(\.|$)", re.IGNORECASE)

# Same set JavaScript's encodeURIComponent leaves alone.
_URL_SAFE = "!*'()"


def validate_key(name: str) -> bool:
    """Return True when ``name`` is usable as an object key.

    Rejects empty names, names longer than 255 characters, control
    characters, any of ``<>:"|?*``, and Windows device names (``CON``,
    ``LPT1.txt``, ...) in the final path segment.
    """
    if not isinstance(name, str) or not name or len(name) > MAX_KEY_LENGTH:
        return False
    if _INVALID_CHARS.search(name):
        return False
    basename = name.rsplit("/", 1)[-1]
    return not _RESERVED_NAMES.match(basename)


def validate_image_filename(name: str) -> bool:
    """``validate_key`` plus a recognised image extension (case-insensitive)."""
    return validate_key(name) and name.lower().endswith(IMAGE_EXTENSIONS)


def encode_key(key: str) -> str:
    return quote(key.lstrip("/"), safe=_URL_SAFE)


def _hostname(url: str) -> str | None:
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


class PublicUrlCodec:
    """Map object keys to public URLs under one base URL and back."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")
        self.host = _hostname(self.base_url)
        if not self.host:
            msg = f"Invalid public base URL: {base_url!r}"
            raise StorageValidationError(msg, metadata={"base_url": base_url})

    def __repr__(self) -> str:
        return f"PublicUrlCodec(base_url={self.base_url!r})"

    # ──────────────────────────────────────────────────────────────
    # Generic keys
    # ──────────────────────────────────────────────────────────────

    def to_url(self, key: str) -> str:
        """Build the public URL for ``key``.

        Raises:
            StorageValidationError: ``key`` fails ``validate_key``.
        """
        return self._build(key, validate_key)

    def safe_to_url(self, key: str) -> str | None:
        """Like ``to_url`` but returns None for invalid keys."""
        try:
            return self.to_url(key)
        except StorageValidationError:
            return None

    def from_url(self, url: str, *, image_only: bool = False) -> str | None:
        """Recover the key from a public URL.

        Returns None when the URL does not parse, points at another host, or
        the decoded key fails validation.
        """
        try:
            parts = urlsplit(url)
        except ValueError:
            return None
        if not parts.hostname or parts.hostname != self.host:
            return None

        key = unquote(parts.path.rsplit("/", 1)[-1])
        check = validate_image_filename if image_only else validate_key
        return key if check(key) else None

    # ──────────────────────────────────────────────────────────────
    # Image helpers
    # ──────────────────────────────────────────────────────────────

    def image_url(self, filename: str) -> str:
        """``to_url`` restricted to image filenames."""
        return self._build(filename, validate_image_filename)

    def safe_image_url(self, filename: str) -> str | None:
        try:
            return self.image_url(filename)
        except StorageValidationError:
            return None

    def image_urls(self, filenames: Iterable[str]) -> list[str]:
        """Build URLs for the valid image filenames, silently skipping the rest."""
        return [self.image_url(name) for name in filenames if validate_image_filename(name)]

    def is_image_url(self, url: str) -> bool:
        return self.from_url(url, image_only=True) is not None

    def _build(self, key: str, check: Callable[[str], bool]) -> str:
        if not check(key):
            logger.debug("Rejected object key", extra={"key": key})
            msg = f"Invalid object key: {key!r}"
            raise StorageValidationError(msg, metadata={"key": key})
        return f"{self.base_url}/{encode_key(key)}"
