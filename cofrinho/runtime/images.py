"""Shrink photos before they are sent to the extraction model."""

from __future__ import annotations

import io

from cofrinho.runtime.logging import get_logger

logger = get_logger(__name__)

MAX_IMAGE_DIMENSION = 2048
JPEG_QUALITY = 90


def resize_image_bytes(image_bytes: bytes, max_dimension: int = MAX_IMAGE_DIMENSION) -> bytes:
    """Return ``image_bytes`` re-encoded as JPEG, no side longer than ``max_dimension``.

    EXIF rotation is applied first, so phone photos arrive upright. Smaller
    images keep their size. Transparent areas become white.
    """
    from PIL import Image, ImageOps

    with Image.open(io.BytesIO(image_bytes)) as original:
        photo = ImageOps.exif_transpose(original)
        photo.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

        if photo.mode in ("RGBA", "LA", "P"):
            photo = photo.convert("RGBA")
            flattened = Image.new("RGB", photo.size, (255, 255, 255))
            flattened.paste(photo, mask=photo.getchannel("A"))
            photo = flattened
        elif photo.mode != "RGB":
            photo = photo.convert("RGB")

        out = io.BytesIO()
        photo.save(out, format="JPEG", quality=JPEG_QUALITY)
    return out.getvalue()


def prepare_upload(data: bytes, mime_type: str) -> tuple[bytes, str]:
    """Downscale images to JPEG; PDFs and other documents pass through."""
    if not mime_type.startswith("image/"):
        return data, mime_type

    from PIL import Image

    # OSError covers unknown formats and truncated files that only fail on load
    try:
        return resize_image_bytes(data), "image/jpeg"
    except (OSError, Image.DecompressionBombError) as e:
        logger.warning("Could not decode %s upload (%s); sending it unchanged", mime_type, e)
        return data, mime_type
