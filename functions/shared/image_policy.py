"""Cover image size and dimension policy."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError
from shared.constants import COVER_HEIGHT, COVER_WIDTH, MAX_FILE_SIZE_BYTES
from shared.error_handling import ImagePolicyViolation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageInfo:
    width: int
    height: int
    format: str
    content_type: str


@dataclass(frozen=True)
class ImagePolicy:
    max_bytes: int = MAX_FILE_SIZE_BYTES
    width: int = COVER_WIDTH
    height: int = COVER_HEIGHT

    def validate(self, data: bytes) -> ImageInfo:
        """Check byte size and exact pixel dimensions.

        Only the image header is read; pixel data is never decoded.

        Raises:
            ImagePolicyViolation: If the image is too large, unreadable, or
                not exactly ``width`` x ``height``.
        """
        if len(data) > self.max_bytes:
            raise ImagePolicyViolation(
                f"Cover image is {len(data)} bytes; maximum is {self.max_bytes} bytes"
            )

        try:
            with Image.open(io.BytesIO(data)) as image:
                width, height = image.size
                image_format = image.format or "UNKNOWN"
                content_type = image.get_format_mimetype() or "application/octet-stream"
        except Image.DecompressionBombError as exc:
            raise ImagePolicyViolation(
                f"Cover image must be {self.width}x{self.height} pixels; "
                "the header declares an image too large to open"
            ) from exc
        except (UnidentifiedImageError, OSError) as exc:
            raise ImagePolicyViolation("Cover image could not be read") from exc

        if (width, height) != (self.width, self.height):
            raise ImagePolicyViolation(
                f"Cover image must be {self.width}x{self.height} pixels, got {width}x{height}"
            )

        logger.info("Cover image accepted: %dx%d %s", width, height, image_format)
        return ImageInfo(width, height, image_format, content_type)
