"""
Brightness Analysis for Illuminated Signage

Builds a coarse luminance grid of the capture so the scorer can favor text
sitting on bright (neon, back-lit) regions.
"""

from typing import Union

import cv2
import numpy as np

from placelens.models import BrightnessGrid, Rect

SAMPLE_STRIDE = 20

# Neutral score used when there is no grid to sample
NEUTRAL_BRIGHTNESS = 0.5


def decode_image(data: Union[bytes, bytearray, np.ndarray]) -> np.ndarray:
    """Decode encoded image bytes (JPEG/PNG) into a BGR array; arrays pass through."""
    if isinstance(data, np.ndarray):
        return data
    buf = np.frombuffer(bytes(data), dtype=np.uint8)
    image = cv2.imdecode(buf, cv2.IMREAD_COLOR) if buf.size else None
    if image is None:
        raise ValueError("could not decode image bytes")
    return image


def analyze(image: Union[bytes, np.ndarray], stride: int = SAMPLE_STRIDE) -> BrightnessGrid:
    """
    Downsample an image into a luminance grid.

    Every `stride`-th pixel along each axis is sampled and converted to
    perceived luminance Y = (0.299 R + 0.587 G + 0.114 B) / 255.

    Args:
        image: BGR image (H, W, 3), grayscale (H, W), or encoded image bytes
        stride: Sampling step in pixels (default 20)

    Returns:
        Row-major grid of floats in [0, 1]; empty for an empty image
    """
    image = decode_image(image)
    if image.size == 0:
        return []

    if image.ndim == 2:
        rgb = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    elif image.shape[2] == 4:
        rgb = cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)
    else:
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

    sampled = rgb[::stride, ::stride].astype(np.float32)
    luminance = (0.299 * sampled[..., 0] + 0.587 * sampled[..., 1] + 0.114 * sampled[..., 2]) / 255.0
    return luminance.tolist()


def sample_at(box: Rect, grid: BrightnessGrid) -> float:
    """
    Average brightness of the 3x3 neighborhood around a detection's center.

    Detection boxes are bottom-left-origin, the grid is top-left-origin, so
    the vertical axis is flipped. Neighbors outside the grid are clamped to
    the nearest edge cell.
    """
    if not grid or not grid[0]:
        return NEUTRAL_BRIGHTNESS

    map_height = len(grid)
    map_width = len(grid[0])

    center_x = int(box.mid_x * map_width)
    center_y = int((1.0 - box.mid_y) * map_height)

    values = []
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            y = max(0, min(map_height - 1, center_y + dy))
            x = max(0, min(map_width - 1, center_x + dx))
            values.append(grid[y][x])

    return sum(values) / len(values)


def average(grid: BrightnessGrid) -> float:
    """Mean luminance over the whole grid (0.0 when empty)."""
    flat = [v for row in grid for v in row]
    return sum(flat) / len(flat) if flat else 0.0
