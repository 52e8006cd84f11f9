"""
Luminosity histogram, condensed buckets and bar chart rendering.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import numpy as np
from matplotlib.figure import Figure

from image_io import EncodeError

logger = logging.getLogger(__name__)

LEVELS = 256


def compute_histogram(image: np.ndarray) -> np.ndarray:
    """Count pixels per intensity level (256 bins)."""
    if image.ndim != 2:
        raise ValueError("compute_histogram expects a grayscale image")

    hist, _ = np.histogram(image.ravel(), bins=LEVELS, range=(0, LEVELS))
    return hist.astype(np.int64)


def condense_histogram(hist: np.ndarray, buckets: int = 50) -> np.ndarray:
    """
    Sum adjacent bins into ``buckets`` coarser buckets.

    Bins are split as evenly as possible (for 256 bins into 50 buckets the
    first 6 buckets hold 6 levels and the rest hold 5), so the bucket total
    always equals the bin total.
    """
    hist = np.asarray(hist, dtype=np.int64).ravel()
    if not 1 <= buckets <= hist.size:
        raise ValueError(f"buckets must be between 1 and {hist.size}, got {buckets}")

    return np.array([chunk.sum() for chunk in np.array_split(hist, buckets)], dtype=np.int64)


def render_histogram(
    condensed: np.ndarray,
    path: Union[str, Path],
    width: float = 16.0,
    height: float = 9.0,
    dpi: int = 100,
) -> Path:
    """
    Draw the condensed histogram as a bar chart and save it as PNG.

    Raises:
        EncodeError: If the chart cannot be written to ``path``
    """
    path = Path(path)
    values = np.asarray(condensed)

    fig = Figure(figsize=(width, height))
    ax = fig.add_subplot(1, 1, 1)
    ax.bar(np.arange(values.size), values, width=0.8, color="steelblue")
    ax.set_title("Histogram")
    ax.set_xlabel("Bucket")
    ax.set_ylabel("Pixels")
    ax.set_xlim(-0.5, values.size - 0.5)

    try:
        fig.savefig(path, dpi=dpi, format="png")
    except (OSError, ValueError) as exc:
        raise EncodeError(path, exc) from exc

    logger.debug("Histogram chart written to %s", path)
    return path
