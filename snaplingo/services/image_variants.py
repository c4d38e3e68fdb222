"""
Pre-processed copies of a captured bitmap that improve recognition odds.

Every derivation returns None when it cannot produce a complete image; the
caller drops that variant. Only the identity variant is guaranteed.
"""

import logging
from typing import List, Optional

import cv2
import numpy as np

from snaplingo.models.recognition import ImageVariant, VariantOrigin

logger = logging.getLogger(__name__)

# -----------------------------
# Filter parameters
# -----------------------------
DEFAULT_SCALE = 2.0
ENHANCE_CONTRAST = 1.9
ENHANCE_BRIGHTNESS = 0.05   # on the 0..1 intensity scale
SHARPEN_STRENGTH = 0.7
SHARPEN_SIGMA = 1.69


def as_bgr(image: Optional[np.ndarray]) -> Optional[np.ndarray]:
    """Normalize gray/BGR/BGRA arrays to 3-channel uint8 BGR. None if invalid."""
    if image is None or not isinstance(image, np.ndarray) or image.size == 0:
        return None
    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.ndim != 3:
        return None
    channels = image.shape[2]
    if channels == 3:
        return image
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if channels == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2BGR)
    return None


def make_scaled(image: np.ndarray, scale: float = DEFAULT_SCALE) -> Optional[np.ndarray]:
    bgr = as_bgr(image)
    if bgr is None:
        return None
    if scale <= 1:
        return bgr

    h, w = bgr.shape[:2]
    width = max(1, int(w * scale))
    height = max(1, int(h * scale))
    try:
        return cv2.resize(bgr, (width, height), interpolation=cv2.INTER_LANCZOS4)
    except cv2.error as e:
        logger.debug(f"Scaling to {width}x{height} failed: {e}")
        return None


def make_enhanced(
    image: np.ndarray,
    contrast: float = ENHANCE_CONTRAST,
    brightness: float = ENHANCE_BRIGHTNESS,
    sharpness: float = SHARPEN_STRENGTH,
) -> Optional[np.ndarray]:
    """
    Desaturate, stretch contrast around mid-grey, lift brightness, then sharpen
    luminance with an unsharp mask. Returns None if any stage fails.
    """
    bgr = as_bgr(image)
    if bgr is None:
        return None
    try:
        gray = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY).astype(np.float32) / 255.0
        adjusted = np.clip((gray - 0.5) * contrast + 0.5 + brightness, 0.0, 1.0)

        blurred = cv2.GaussianBlur(adjusted, (0, 0), sigmaX=SHARPEN_SIGMA)
        sharpened = adjusted + sharpness * (adjusted - blurred)

        out = np.clip(sharpened * 255.0 + 0.5, 0, 255).astype(np.uint8)
        return cv2.cvtColor(out, cv2.COLOR_GRAY2BGR)
    except cv2.error as e:
        logger.debug(f"Enhancement filter chain failed: {e}")
        return None


def make_inverted(image: np.ndarray) -> Optional[np.ndarray]:
    bgr = as_bgr(image)
    if bgr is None:
        return None
    return cv2.bitwise_not(bgr)


class ImageVariantGenerator:
    """Builds the ordered variant list tried by the local OCR fallback."""

    def __init__(self, scale: float = DEFAULT_SCALE) -> None:
        self.scale = scale

    def cloud_retry(self, image: np.ndarray) -> Optional[ImageVariant]:
        """Scaled then enhanced; only scaled (and labelled so) if enhancement fails."""
        scaled = make_scaled(image, self.scale)
        if scaled is None:
            return None
        enhanced = make_enhanced(scaled)
        if enhanced is None:
            return ImageVariant(pixels=scaled, origin=VariantOrigin.SCALED)
        return ImageVariant(pixels=enhanced, origin=VariantOrigin.SCALED_ENHANCED)

    def local_variants(self, image: np.ndarray) -> List[ImageVariant]:
        """
        [identity, scaled, scaled+enhanced, inverted(scaled+enhanced),
         enhanced, inverted(enhanced)] minus any derivation that failed.
        """
        identity = as_bgr(image)
        if identity is None:
            raise ValueError("Cannot build variants from an empty or invalid image")

        variants = [ImageVariant(pixels=identity, origin=VariantOrigin.IDENTITY)]

        def add(pixels: Optional[np.ndarray], origin: VariantOrigin) -> None:
            if pixels is None:
                logger.debug(f"Dropped variant {origin.value}")
                return
            variants.append(ImageVariant(pixels=pixels, origin=origin))

        scaled = make_scaled(identity, self.scale)
        add(scaled, VariantOrigin.SCALED)

        scaled_enhanced = make_enhanced(scaled) if scaled is not None else None
        add(scaled_enhanced, VariantOrigin.SCALED_ENHANCED)
        if scaled_enhanced is not None:
            add(make_inverted(scaled_enhanced), VariantOrigin.INVERTED_SCALED_ENHANCED)

        enhanced = make_enhanced(identity)
        add(enhanced, VariantOrigin.ENHANCED)
        if enhanced is not None:
            add(make_inverted(enhanced), VariantOrigin.INVERTED_ENHANCED)

        return variants
