"""Resilient client-side transfer layer for Cloudflare R2 buckets."""

from __future__ import annotations

__version__ = "0.1.0"
