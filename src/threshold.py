"""
Thresholding classifiers for binary image segmentation.

Every classifier takes a pixel intensity (scalar or array) plus the statistics
it needs and returns BLACK or WHITE with the same shape. A pixel is WHITE when
it is greater than or equal to the computed threshold.
"""
from __future__ import annotations

from typing import Union

import numpy as np

from local_stats import LocalStats, LocalStatsField

BLACK = 0
WHITE = 255

Intensity = Union[int, float, np.ndarray]
Stats = Union[LocalStats, LocalStatsField]


def _decide(pixel: Intensity, threshold: Intensity) -> np.ndarray:
    return np.where(np.asarray(pixel) >= threshold, WHITE, BLACK).astype(np.uint8)


def global_threshold(pixel: Intensity, global_average: Intensity) -> np.ndarray:
    """Compare every pixel against a single image-wide threshold."""
    return _decide(pixel, global_average)


def bernsen(
    pixel: Intensity,
    stats: Stats,
    contrast_limit: float = 0.0,
    fallback: float = 128.0,
) -> np.ndarray:
    """
    Bernsen's local contrast method.

    The threshold is the mid-range ``(max + min) / 2`` of the neighborhood.
    Windows whose contrast ``max - min`` falls below ``contrast_limit`` are
    treated as a single class: the pixel is WHITE when the mid-range itself
    reaches ``fallback``.

    Args:
        pixel: Intensity of the center pixel(s)
        stats: Neighborhood statistics
        contrast_limit: Minimum contrast for the local decision (0 disables the rule)
        fallback: Level the mid-range of a low-contrast window is compared against

    Returns:
        BLACK/WHITE decision(s) as uint8
    """
    low = np.asarray(stats.min, dtype=np.float64)
    high = np.asarray(stats.max, dtype=np.float64)
    mid_range = (high + low) / 2.0

    decision = _decide(pixel, mid_range)
    flat = (high - low) < contrast_limit
    if np.any(flat):
        flat_decision = _decide(mid_range, fallback)
        decision = np.where(flat, flat_decision, decision).astype(np.uint8)
    return decision


def niblack(pixel: Intensity, stats: Stats, k: float = 0.5) -> np.ndarray:
    """Niblack: threshold = mean + k * standard deviation."""
    deviation = np.sqrt(np.asarray(stats.variance, dtype=np.float64))
    return _decide(pixel, stats.mean + k * deviation)


def sauvola_pietikainen(
    pixel: Intensity,
    stats: Stats,
    k: float = 0.5,
    r: float = 128.0,
) -> np.ndarray:
    """
    Sauvola-Pietikäinen: threshold = mean + 1 + k * (sqrt(variance / r) - 1).

    ``r`` is the dynamic range of the deviation and must be positive.
    """
    if r <= 0:
        raise ValueError(f"r must be positive, got {r!r}")

    normalized = np.sqrt(np.asarray(stats.variance, dtype=np.float64) / r)
    return _decide(pixel, stats.mean + 1.0 + k * (normalized - 1.0))
