"""Collision-resistant object keys for uploaded assets."""

from __future__ import annotations

import mimetypes
import re
from uuid import uuid4

_FALLBACK_EXTENSIONS: dict[str, str] = {
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/mp4": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/flac": ".flac",
    "image/jpeg": ".jpg",
    "image/png": ".png",
}


def sanitize_filename(filename: str) -> str:
    """Strip path components and unsafe characters from a user-provided filename.

    Returns an empty string when nothing usable is left.
    """
    basename = filename.rsplit("/", 1)[-1].rsplit("\\", 1)[-1]
    basename = re.sub(r"[^\w.\-]", "_", basename)
    return basename.strip("._ ")


def derive_extension(content_type: str) -> str:
    base_type = content_type.split(";", 1)[0].strip().lower()
    if base_type in _FALLBACK_EXTENSIONS:
        return _FALLBACK_EXTENSIONS[base_type]
    return mimetypes.guess_extension(base_type) or ".bin"


def new_token() -> str:
    """128 bits from the OS CSPRNG, hex encoded."""
    return uuid4().hex


def generate_key(folder: str, filename: str | None, content_type: str) -> str:
    """Build ``<folder>/<token>-<name>`` for one upload.

    ``name`` is the sanitized original filename; without one the key becomes
    ``<folder>/<token><ext>`` with the extension derived from the content type.
    """
    token = new_token()
    name = sanitize_filename(filename or "")
    if not name:
        return f"{folder}/{token}{derive_extension(content_type)}"
    return f"{folder}/{token}-{name}"


def original_filename(key: str) -> str:
    """Recover the client filename from a key built by :func:`generate_key`."""
    basename = key.rsplit("/", 1)[-1]
    _token, sep, name = basename.partition("-")
    return name if sep else basename
