"""Image validation and resizing for uploaded card and loss GIF images."""

import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import ImageConfig
from ..exceptions import FileSizeError, ImageProcessingError, InvalidImageTypeError
from .multipart_parser import UploadedFile

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/png", "image/webp", "image/gif"]
MAX_IMAGE_SIZE_BYTES = 10 * 1024 * 1024


@dataclass
class ProcessedImage:
    """Resized variants of one uploaded image."""

    thumbnail: bytes
    large: bytes
    large_content_type: str = "image/webp"


def validate_image_file(
    file: UploadedFile,
    allowed_types: list[str] | None = None,
    max_size_bytes: int = MAX_IMAGE_SIZE_BYTES,
) -> bool:
    """Validate an uploaded image against the type allow-list and size ceiling.

    Args:
        file: Decoded file part
        allowed_types: Accepted MIME types
        max_size_bytes: Maximum accepted size in bytes

    Returns:
        True when the file is acceptable

    Raises:
        InvalidImageTypeError: If the MIME type is not allowed
        FileSizeError: If the file is larger than the ceiling
    """
    allowed = allowed_types or ALLOWED_IMAGE_TYPES

    if file.mimetype not in allowed:
        raise InvalidImageTypeError(
            "Invalid file type. Only JPEG, PNG, WebP, and GIF allowed"
        )

    if file.size > max_size_bytes:
        max_mb = max_size_bytes // (1024 * 1024)
        raise FileSizeError(f"File too large. Maximum size is {max_mb}MB")

    return True


def _resize(image: Image.Image, size: tuple[int, int], crop_mode: str) -> Image.Image:
    if crop_mode == "scale":
        return ImageOps.contain(image, size, method=Image.Resampling.LANCZOS)
    # "crop" and any unknown mode cover the box and trim around the center
    return ImageOps.fit(
        image, size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5)
    )


def _to_webp(image: Image.Image, quality: int) -> bytes:
    output = io.BytesIO()
    image.save(output, format="WEBP", quality=quality)
    return output.getvalue()


def process_image(
    buffer: bytes,
    crop_mode: str | None = "scale",
    mimetype: str | None = None,
    config: ImageConfig | None = None,
) -> ProcessedImage:
    """Create thumbnail and large WebP versions of an uploaded image.

    GIF uploads keep their original bytes as the large version so that
    animation survives; only the thumbnail is rendered from the first frame.

    Args:
        buffer: Raw image bytes
        crop_mode: "crop" to fill the box, "scale" to fit inside it
        mimetype: MIME type reported for the upload
        config: Image configuration with target sizes and qualities

    Returns:
        ProcessedImage with thumbnail and large bytes

    Raises:
        ImageProcessingError: If the buffer is empty or cannot be decoded
    """
    if not buffer:
        raise ImageProcessingError("Image processing failed: Invalid image buffer")

    config = config or ImageConfig()
    if crop_mode is None:
        crop_mode = config.default_crop_mode
    mode = crop_mode.strip()
    thumbnail_size = (config.thumbnail.width, config.thumbnail.height)
    large_size = (config.large.width, config.large.height)

    try:
        with Image.open(io.BytesIO(buffer)) as source:
            source.seek(0)
            frame = source.convert("RGBA" if source.mode in ("RGBA", "LA", "P") else "RGB")

        thumbnail = _to_webp(
            _resize(frame, thumbnail_size, mode), config.thumbnail.quality
        )

        if mimetype == "image/gif":
            processed = ProcessedImage(
                thumbnail=thumbnail, large=buffer, large_content_type="image/gif"
            )
        else:
            large = _to_webp(_resize(frame, large_size, mode), config.large.quality)
            processed = ProcessedImage(thumbnail=thumbnail, large=large)

    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageProcessingError(f"Image processing failed: {e}") from e

    logger.debug(
        f"Processed image ({mode}): thumbnail={len(processed.thumbnail)} bytes, "
        f"large={len(processed.large)} bytes ({processed.large_content_type})"
    )
    return processed
