"""
Image utilities for the DocScan pipeline.

Provides:
- Color space conversion (grayscale, BGR, PIL)
- Pixel buffer validation
- Resizing for OCR
"""

import logging
from typing import Optional, Tuple
import numpy as np

logger = logging.getLogger(__name__)


# ============================================================================
# Validation
# ============================================================================

def is_valid_image(image) -> bool:
    """
    Check that an object is a usable pixel buffer.

    Accepts 2-D grayscale or 3-D arrays with 1, 3 or 4 channels and a
    non-zero area.
    """
    if not isinstance(image, np.ndarray):
        return False
    if image.size == 0 or image.ndim not in (2, 3):
        return False
    if image.ndim == 3 and image.shape[2] not in (1, 3, 4):
        return False
    return image.dtype == np.uint8


def image_size(image: np.ndarray) -> Tuple[int, int]:
    """Return (width, height) in pixels."""
    h, w = image.shape[:2]
    return w, h


# ============================================================================
# Color Conversion
# ============================================================================

def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert image to grayscale if it's color.

    Args:
        image: Input image (BGR or grayscale)

    Returns:
        Grayscale image
    """
    import cv2

    if len(image.shape) == 2:
        return image
    elif len(image.shape) == 3:
        if image.shape[2] == 3:
            return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        elif image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif image.shape[2] == 1:
            return image.squeeze()

    raise ValueError(f"Unexpected image shape: {image.shape}")


def to_bgr(image: np.ndarray) -> np.ndarray:
    """
    Convert grayscale or BGRA images to 3-channel BGR.

    JPEG has no alpha channel, so page images are always stored as BGR.
    """
    import cv2

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 1:
        return cv2.cvtColor(image.squeeze(axis=2), cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def from_pil(pil_image) -> np.ndarray:
    """Convert a PIL image to an OpenCV BGR array."""
    img_array = np.array(pil_image.convert("RGB"))
    # RGB -> BGR for OpenCV compatibility
    return img_array[:, :, ::-1].copy()


# ============================================================================
# Resizing
# ============================================================================

def resize_for_ocr(
    image: np.ndarray,
    target_dpi: int = 300,
    current_dpi: Optional[int] = None
) -> np.ndarray:
    """
    Resize image to optimal resolution for OCR.

    Args:
        image: Input image
        target_dpi: Target DPI (300 is standard for OCR)
        current_dpi: Current DPI if known

    Returns:
        Resized image
    """
    import cv2

    if current_dpi is None:
        # Estimate current DPI based on image size
        # Assume A4 page (8.27 x 11.69 inches)
        h, w = image.shape[:2]
        estimated_dpi = max(w / 8.27, h / 11.69)
        current_dpi = max(int(estimated_dpi), 1)

    if current_dpi >= target_dpi:
        return image

    scale = target_dpi / current_dpi

    # Don't upscale too much (diminishing returns and adds noise)
    if scale > 2.0:
        scale = 2.0
        logger.debug(f"Limiting upscale factor to 2.0 (requested would be {target_dpi/current_dpi:.1f}x)")

    new_width = int(image.shape[1] * scale)
    new_height = int(image.shape[0] * scale)

    resized = cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_CUBIC)

    logger.debug(f"Resized image: {image.shape[:2]} -> {resized.shape[:2]} (scale={scale:.2f})")
    return resized
