"""
Square neighborhood windows around a pixel.

Windows are n pixels wide on both axes. For a center coordinate ``c`` the
window covers ``[c - n // 2, c - n // 2 + n)``, so even sizes lean one pixel
towards the top/left. Coordinates falling outside the image are clamped to the
nearest edge pixel, which keeps every window at exactly n * n samples.
"""
from __future__ import annotations

from typing import Tuple

import numpy as np

from utils import ensure_positive_int


def window_span(n: int) -> Tuple[int, int]:
    """Return how many pixels a window of size ``n`` reaches (before, after) its center."""
    n = ensure_positive_int(n, "window size")
    before = n // 2
    return before, n - 1 - before


def sample(image: np.ndarray, x: int, y: int, n: int) -> np.ndarray:
    """
    Extract the n x n neighborhood centered at (x, y).

    Args:
        image: Grayscale image (2D)
        x: Column of the center pixel
        y: Row of the center pixel
        n: Window size

    Returns:
        Flat array of n * n intensities, edge-clamped at the borders

    Raises:
        ValueError: If image is not grayscale, n < 1 or (x, y) lies outside the image
    """
    if image.ndim != 2:
        raise ValueError("sample expects a grayscale image")

    height, width = image.shape
    if not (0 <= x < width and 0 <= y < height):
        raise ValueError(f"Center ({x}, {y}) outside image of size {width}x{height}")

    before, after = window_span(n)
    rows = np.clip(np.arange(y - before, y + after + 1), 0, height - 1)
    cols = np.clip(np.arange(x - before, x + after + 1), 0, width - 1)
    return image[np.ix_(rows, cols)].ravel()


def pad_for_window(image: np.ndarray, n: int) -> np.ndarray:
    """
    Edge-pad an image so that the window of pixel (x, y) is ``padded[y:y+n, x:x+n]``.

    The padding replicates border pixels, the same clamping rule ``sample`` uses.
    """
    if image.ndim != 2:
        raise ValueError("pad_for_window expects a grayscale image")

    before, after = window_span(n)
    return np.pad(image, ((before, after), (before, after)), mode="edge")
