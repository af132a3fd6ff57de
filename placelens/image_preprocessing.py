"""
Image Preprocessing Module

Deterministic filter programs that make storefront signage easier to read.
Each PreprocessingMode is a fixed, ordered pipeline of stages with fixed
parameters:

    AGGRESSIVE   color controls → sharpen luminance → noise reduction
                 (neon / nighttime / low-contrast signs)
    GENTLE       color controls → unsharp mask
                 (script and cursive fonts, where hard sharpening breaks letters)
    COLOR_BOOST  color controls → vibrance → sharpen luminance
                 (colored lettering on neutral backgrounds)

Images are BGR uint8 arrays (OpenCV convention). A stage that cannot produce
output fails the whole branch: preprocess() then returns None and the caller
simply skips that recognition pass.
"""

from enum import Enum
from functools import partial
from typing import Callable, Dict, Optional, Tuple

import cv2
import numpy as np

from placelens.app_logger import get_logger
from placelens.errors import PreprocessingFailed

log = get_logger(__name__)

# Rec. 601 luma weights (B, G, R order)
_LUMA_BGR = np.array([0.114, 0.587, 0.299], dtype=np.float32)


class PreprocessingMode(Enum):
    AGGRESSIVE = "aggressive"
    GENTLE = "gentle"
    COLOR_BOOST = "color-boost"


def _to_float(image: np.ndarray) -> np.ndarray:
    """Validate a BGR/grayscale uint8 image and return float32 BGR in [0, 1]."""
    if image is None or not isinstance(image, np.ndarray) or image.size == 0:
        raise PreprocessingFailed("empty image")
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    elif image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    elif image.ndim != 3 or image.shape[2] != 3:
        raise PreprocessingFailed(f"unsupported image shape {image.shape}")
    return image.astype(np.float32) / 255.0


def _to_uint8(image: np.ndarray) -> np.ndarray:
    return np.clip(image * 255.0 + 0.5, 0, 255).astype(np.uint8)


def color_controls(image: np.ndarray, contrast: float, brightness: float,
                   saturation: float) -> np.ndarray:
    """
    Saturation, contrast and brightness adjustment on a float BGR image.

    Saturation interpolates each pixel against its luma, contrast scales
    around mid-grey, brightness scales the result.
    """
    luma = (image @ _LUMA_BGR)[..., np.newaxis]
    out = luma + saturation * (image - luma)
    out = (out - 0.5) * contrast + 0.5
    out = out * brightness
    return np.clip(out, 0.0, 1.0)


def sharpen_luminance(image: np.ndarray, amount: float, sigma: float = 1.69) -> np.ndarray:
    """Sharpen only the luma channel so colors don't fringe."""
    ycrcb = cv2.cvtColor(image, cv2.COLOR_BGR2YCrCb)
    y = np.ascontiguousarray(ycrcb[..., 0])
    blurred = cv2.GaussianBlur(y, (0, 0), sigma)
    ycrcb[..., 0] = np.clip(y + amount * (y - blurred), 0.0, 1.0)
    return cv2.cvtColor(ycrcb, cv2.COLOR_YCrCb2BGR)


def noise_reduction(image: np.ndarray, level: float) -> np.ndarray:
    """Non-local means denoise; level is in [0, 1] intensity units."""
    strength = max(1.0, level * 255.0)
    denoised = cv2.fastNlMeansDenoisingColored(_to_uint8(image), None, strength, strength, 7, 21)
    return denoised.astype(np.float32) / 255.0


def unsharp_mask(image: np.ndarray, intensity: float, radius: float) -> np.ndarray:
    blurred = cv2.GaussianBlur(image, (0, 0), radius)
    return np.clip(image + intensity * (image - blurred), 0.0, 1.0)


def vibrance(image: np.ndarray, amount: float) -> np.ndarray:
    """Boost saturation, weighted towards pixels that are not yet saturated."""
    hsv = cv2.cvtColor(image, cv2.COLOR_BGR2HSV)
    s = hsv[..., 1]
    hsv[..., 1] = np.clip(s * (1.0 + amount * (1.0 - s)), 0.0, 1.0)
    return cv2.cvtColor(hsv, cv2.COLOR_HSV2BGR)


Stage = Callable[[np.ndarray], np.ndarray]

PIPELINES: Dict[PreprocessingMode, Tuple[Stage, ...]] = {
    PreprocessingMode.AGGRESSIVE: (
        partial(color_controls, contrast=1.5, brightness=1.2, saturation=1.0),
        partial(sharpen_luminance, amount=0.7),
        partial(noise_reduction, level=0.02),
    ),
    PreprocessingMode.GENTLE: (
        partial(color_controls, contrast=1.15, brightness=1.05, saturation=0.8),
        partial(unsharp_mask, intensity=0.3, radius=2.5),
    ),
    PreprocessingMode.COLOR_BOOST: (
        partial(color_controls, contrast=1.3, brightness=1.1, saturation=1.4),
        partial(vibrance, amount=0.5),
        partial(sharpen_luminance, amount=0.4),
    ),
}


def run_pipeline(image: np.ndarray, mode: PreprocessingMode) -> np.ndarray:
    """
    Apply the fixed filter program for mode.

    Raises:
        PreprocessingFailed: if the input is unusable or any stage fails
    """
    current = _to_float(image)
    for stage in PIPELINES[mode]:
        try:
            current = stage(current)
        except cv2.error as e:
            raise PreprocessingFailed(f"{mode.value}: {stage.func.__name__} failed: {e}") from e
        if current is None or current.size == 0:
            raise PreprocessingFailed(f"{mode.value}: {stage.func.__name__} produced no output")
    return _to_uint8(current)


def preprocess(image: np.ndarray, mode: PreprocessingMode) -> Optional[np.ndarray]:
    """
    Preprocess a captured image for one enhanced recognition pass.

    Args:
        image: BGR image (H, W, 3)
        mode: Which filter program to run

    Returns:
        Preprocessed BGR image, or None if the branch could not be produced
    """
    try:
        return run_pipeline(image, mode)
    except PreprocessingFailed as e:
        log.warning("Preprocessing skipped: %s", e)
        return None
