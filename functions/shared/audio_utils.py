"""Audio format detection for submitted track files."""

from __future__ import annotations

import io
import logging

import mutagen
from shared.constants import ALLOWED_FORMATS, FORMAT_CONTENT_TYPES, MAX_FILE_SIZE_BYTES
from shared.error_handling import PolicyViolation
from shared.models import UploadedFile

logger = logging.getLogger(__name__)


def detect_format(data: bytes) -> str | None:
    """Return the canonical format name, or None if mutagen can't parse the data."""
    try:
        audio = mutagen.File(io.BytesIO(data))
    except (mutagen.MutagenError, OSError):
        logger.warning("Mutagen failed to parse audio data", exc_info=True)
        return None
    if audio is None:
        return None
    return _extract_format(audio)


def _extract_format(audio: mutagen.FileType) -> str:  # type: ignore[name-defined]
    """Map mutagen type to our canonical format name."""
    type_name = type(audio).__name__.lower()
    if "mp3" in type_name:
        return "mp3"
    if "flac" in type_name:
        return "flac"
    if "mp4" in type_name or "m4a" in type_name or "aac" in type_name:
        return "m4a"
    if "wave" in type_name or "wav" in type_name:
        return "wav"
    if hasattr(audio, "mime") and audio.mime:
        return audio.mime[0].split("/")[-1]
    return "unknown"


def check_audio(index: int, upload: UploadedFile, max_bytes: int = MAX_FILE_SIZE_BYTES) -> str:
    """Validate one track file and return the content type to store it with."""
    if upload.size == 0:
        raise PolicyViolation(f"Audio file for track {index} is empty")
    if upload.size > max_bytes:
        raise PolicyViolation(
            f"Audio file for track {index} is {upload.size} bytes; maximum is {max_bytes} bytes"
        )

    audio_format = detect_format(upload.data)
    if audio_format not in ALLOWED_FORMATS:
        raise PolicyViolation(
            f"Audio file for track {index} is not a supported format. "
            f"Allowed: {', '.join(sorted(ALLOWED_FORMATS))}"
        )
    return FORMAT_CONTENT_TYPES[audio_format]
