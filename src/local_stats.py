"""
Intensity statistics over neighborhoods.

Scalar helpers (``mean``, ``variance``, ``minimum``, ``maximum``, ``describe``)
work on a single sample. ``window_stats`` computes the same four statistics for
every window of a band of rows at once, using integral images for the sums and
grayscale erosion/dilation for the extrema.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

import cv2
import numpy as np

Samples = Union[np.ndarray, Iterable[int]]

_MAX_LEVEL = 255
_INT64_MAX = int(np.iinfo(np.int64).max)


class EmptyNeighborhoodError(ValueError):
    """Raised when statistics are requested over zero samples."""


EmptyInputError = EmptyNeighborhoodError


@dataclass(frozen=True)
class LocalStats:
    mean: float
    min: float
    max: float
    variance: float


@dataclass(frozen=True)
class LocalStatsField:
    """Per-pixel window statistics for a band of rows (one array per statistic)."""

    mean: np.ndarray
    min: np.ndarray
    max: np.ndarray
    variance: np.ndarray


def _as_samples(samples: Samples) -> np.ndarray:
    if not isinstance(samples, np.ndarray):
        samples = list(samples)
    values = np.asarray(samples, dtype=np.float64).ravel()
    if values.size == 0:
        raise EmptyNeighborhoodError("Cannot compute statistics of an empty neighborhood")
    return values


def mean(samples: Samples) -> float:
    return float(np.mean(_as_samples(samples)))


def variance(samples: Samples) -> float:
    """Population variance: sum of squared deviations divided by N."""
    values = _as_samples(samples)
    deviations = values - values.mean()
    return float(np.mean(deviations * deviations))


def minimum(samples: Samples) -> float:
    return float(np.min(_as_samples(samples)))


def maximum(samples: Samples) -> float:
    return float(np.max(_as_samples(samples)))


def describe(samples: Samples) -> LocalStats:
    values = _as_samples(samples)
    return LocalStats(
        mean=mean(values),
        min=minimum(values),
        max=maximum(values),
        variance=variance(values),
    )


def global_average(image: np.ndarray) -> int:
    """Image-wide mean intensity, rounded down."""
    if image.ndim != 2:
        raise ValueError("global_average expects a grayscale image")
    if image.size == 0:
        raise EmptyNeighborhoodError("Cannot average an empty image")
    return int(np.sum(image, dtype=np.int64) // image.size)


def _integral(values: np.ndarray) -> np.ndarray:
    integral = np.zeros((values.shape[0] + 1, values.shape[1] + 1), dtype=np.int64)
    integral[1:, 1:] = np.cumsum(np.cumsum(values, axis=0), axis=1)
    return integral


def window_variance(total: np.ndarray, total_sq: np.ndarray, count: int) -> np.ndarray:
    """
    Population variance from window sums and sums of squares.

    The numerator ``count * total_sq - total ** 2`` is exact in int64 while
    ``count ** 2 * 255 ** 2`` fits; larger windows use float64, clamped at zero.
    """
    if count * count * _MAX_LEVEL * _MAX_LEVEL < _INT64_MAX:
        spread = count * total_sq - total * total
        return spread / float(count * count)

    mean_field = total / count
    return np.maximum(total_sq / count - mean_field * mean_field, 0.0)


def window_stats(padded: np.ndarray, n: int, start: int, stop: int) -> LocalStatsField:
    """
    Statistics of every n x n window centered on rows ``[start, stop)``.

    Args:
        padded: Image padded with ``neighborhood.pad_for_window(image, n)``
        n: Window size
        start: First center row (inclusive)
        stop: Last center row (exclusive)

    Returns:
        LocalStatsField with arrays of shape (stop - start, width)
    """
    if padded.ndim != 2:
        raise ValueError("window_stats expects a grayscale image")

    rows = stop - start
    width = padded.shape[1] - n + 1
    if rows <= 0 or width <= 0:
        raise EmptyNeighborhoodError(f"No windows of size {n} in rows [{start}, {stop})")

    slab = padded[start : stop + n - 1].copy()
    values = slab.astype(np.int64)
    sums = _integral(values)
    squares = _integral(values * values)

    def box(integral: np.ndarray) -> np.ndarray:
        return (
            integral[n : n + rows, n : n + width]
            - integral[0:rows, n : n + width]
            - integral[n : n + rows, 0:width]
            + integral[0:rows, 0:width]
        )

    count = n * n
    total = box(sums)
    total_sq = box(squares)

    extrema_src = slab if slab.dtype == np.uint8 else slab.astype(np.float32)
    kernel = np.ones((n, n), dtype=np.uint8)
    low = cv2.erode(extrema_src, kernel, anchor=(0, 0), borderType=cv2.BORDER_REPLICATE)
    high = cv2.dilate(extrema_src, kernel, anchor=(0, 0), borderType=cv2.BORDER_REPLICATE)

    return LocalStatsField(
        mean=total / count,
        min=low[:rows, :width].astype(np.float64),
        max=high[:rows, :width].astype(np.float64),
        variance=window_variance(total, total_sq, count),
    )
