"""
Image decode/encode helpers for uploads and the cloud OCR request body.
"""

import base64
import io
import logging
from typing import Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from snaplingo.exceptions import InvalidRequest

logger = logging.getLogger(__name__)

# Register AVIF/HEIF support for screenshots saved by newer OS versions
try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
    logger.debug("AVIF/HEIF support enabled")
except ImportError:
    logger.warning("pillow-heif is not installed, AVIF/HEIF uploads are unavailable")


def decode_image_bytes(image_bytes: bytes) -> np.ndarray:
    """
    Decode encoded image bytes (PNG, JPEG, GIF, BMP, WEBP, AVIF, HEIF) into a
    BGR uint8 array. Transparent pixels are flattened onto white.
    """
    if not image_bytes:
        raise InvalidRequest("Empty image payload")
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidRequest(f"Unreadable image: {e}") from e

    logger.debug(f"Decoded image format={img.format}, size={img.size}, mode={img.mode}")

    if img.mode in ("RGBA", "LA", "P"):
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1] if img.mode in ("RGBA", "LA") else None)
        img = background
    elif img.mode != "RGB":
        img = img.convert("RGB")

    rgb = np.asarray(img, dtype=np.uint8)
    return np.ascontiguousarray(rgb[:, :, ::-1])


def encode_image(bgr: np.ndarray) -> Tuple[bytes, str]:
    """
    Encode a BGR array for upload. PNG first (lossless keeps thin strokes),
    JPEG at quality 90 if PNG encoding fails.

    Returns:
        Tuple[bytes, str]: (encoded bytes, format name)
    """
    if bgr is None or bgr.size == 0:
        raise InvalidRequest("Cannot encode an empty image")

    rgb = bgr[:, :, ::-1] if bgr.ndim == 3 else bgr
    img = Image.fromarray(np.ascontiguousarray(rgb))

    output = io.BytesIO()
    try:
        img.save(output, format="PNG")
        return output.getvalue(), "PNG"
    except (OSError, ValueError) as e:
        logger.warning(f"PNG encoding failed, retrying as JPEG: {e}")

    output = io.BytesIO()
    try:
        img.convert("RGB").save(output, format="JPEG", quality=90)
    except (OSError, ValueError) as e:
        raise InvalidRequest(f"Failed to encode image: {e}") from e
    return output.getvalue(), "JPEG"


def encode_image_base64(bgr: np.ndarray) -> str:
    encoded, _ = encode_image(bgr)
    return base64.b64encode(encoded).decode("utf-8")
