"""
Binarization pipeline.

A run moves through fixed stages:

1. LOAD          - decode the source image
2. GRAYSCALE     - convert to a read-only grayscale image
3. HISTOGRAM     - 256-bin histogram, condensed buckets, global average
4. GLOBAL_SWEEP  - global mean threshold
5. BERNSEN_SWEEP - Bernsen local contrast
6. NIBLACK_SWEEP - Niblack local mean + deviation
7. SAUVOLA_SWEEP - Sauvola-Pietikäinen normalized deviation
8. DONE

Every sweep writes into its own output array. Rows are split into bands that
are classified on a thread pool; a sweep returns only after all bands finished.
"""
from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

import numpy as np

from histogram import compute_histogram, condense_histogram
from image_io import PathLike, load_image, to_grayscale
from local_stats import global_average, window_stats
from neighborhood import pad_for_window
from threshold import bernsen, global_threshold, niblack, sauvola_pietikainen
from utils import ensure_finite, ensure_positive_int

logger = logging.getLogger(__name__)

METHODS = ("global", "bernsen", "niblack", "sauvola")


class Stage(Enum):
    LOAD = "load"
    GRAYSCALE = "grayscale"
    HISTOGRAM = "histogram"
    GLOBAL_SWEEP = "global_sweep"
    BERNSEN_SWEEP = "bernsen_sweep"
    NIBLACK_SWEEP = "niblack_sweep"
    SAUVOLA_SWEEP = "sauvola_sweep"
    DONE = "done"


STAGE_ORDER = tuple(Stage)


# ============================================================================
# Parameters & Results
# ============================================================================

@dataclass(frozen=True)
class BinarizationParams:
    """Immutable parameters of one pipeline."""

    neighborhood: int = 10
    k: float = 0.5
    r: float = 128.0
    bernsen_contrast: float = 0.0
    buckets: int = 50
    workers: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "neighborhood", ensure_positive_int(self.neighborhood, "neighborhood"))
        object.__setattr__(self, "k", ensure_finite(self.k, "k"))
        object.__setattr__(self, "r", ensure_finite(self.r, "r"))
        object.__setattr__(
            self, "bernsen_contrast", ensure_finite(self.bernsen_contrast, "bernsen_contrast")
        )
        object.__setattr__(self, "buckets", ensure_positive_int(self.buckets, "buckets"))
        if self.r <= 0:
            raise ValueError(f"r must be positive, got {self.r!r}")
        if self.buckets > 256:
            raise ValueError(f"buckets must be at most 256, got {self.buckets}")
        if self.workers is not None:
            object.__setattr__(self, "workers", ensure_positive_int(self.workers, "workers"))

    @classmethod
    def from_settings(cls, config: Mapping[str, Any]) -> "BinarizationParams":
        """Build parameters from a settings dictionary (see settings.yaml)."""
        bin_cfg = config.get("binarization", {}) or {}
        hist_cfg = config.get("histogram", {}) or {}
        defaults = cls()

        neighborhood = bin_cfg.get("neighborhood")
        return cls(
            neighborhood=defaults.neighborhood if neighborhood is None else neighborhood,
            k=bin_cfg.get("k", defaults.k),
            r=bin_cfg.get("r", defaults.r),
            bernsen_contrast=bin_cfg.get("bernsen_contrast", defaults.bernsen_contrast),
            buckets=hist_cfg.get("buckets", defaults.buckets),
            workers=config.get("workers"),
        )

    def resolved_workers(self) -> int:
        return self.workers or os.cpu_count() or 1


@dataclass(frozen=True)
class BinarizationResult:
    grayscale: np.ndarray
    histogram: np.ndarray
    condensed_histogram: np.ndarray
    global_average: int
    binaries: Dict[str, np.ndarray]

    @property
    def shape(self) -> tuple:
        return self.grayscale.shape


# ============================================================================
# Sweep Helpers
# ============================================================================

BandClassifier = Callable[[slice], np.ndarray]


def row_bands(height: int, count: int) -> List[slice]:
    """Split ``height`` rows into at most ``count`` contiguous, non-empty bands."""
    count = max(1, min(int(count), height))
    edges = np.linspace(0, height, count + 1).astype(int)
    return [slice(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]


def plan_bands(height: int, n: int, workers: int) -> List[slice]:
    """
    Row bands for a sweep with window size ``n``.

    Up to four bands per worker, but never shorter than ``n`` rows when the
    image is that tall: each band re-reads an (n - 1)-row halo.
    """
    count = min(workers * 4, max(1, height // n))
    return row_bands(height, count)


def sweep(
    executor: ThreadPoolExecutor,
    shape: tuple,
    bands: List[slice],
    classify_band: BandClassifier,
) -> np.ndarray:
    """
    Classify every band into a fresh output array.

    Bands write disjoint row slices, so no locking is needed. Iterating the
    map result re-raises the first worker exception.
    """
    output = np.empty(shape, dtype=np.uint8)

    def work(rows: slice) -> None:
        output[rows] = classify_band(rows)

    for _ in executor.map(work, bands):
        pass

    return output


# ============================================================================
# Pipeline
# ============================================================================

class BinarizationPipeline:
    """Grayscale, histogram and four-way binarization of a single image."""

    def __init__(self, params: Optional[BinarizationParams] = None) -> None:
        self.params = params or BinarizationParams()
        self.stage = Stage.LOAD
        self._run_lock = threading.Lock()

    def _enter(self, stage: Stage) -> None:
        current = STAGE_ORDER.index(self.stage)
        target = STAGE_ORDER.index(stage)
        if target != current + 1:
            raise RuntimeError(f"Invalid stage transition {self.stage.value} -> {stage.value}")
        logger.debug("Stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def run(self, path: PathLike) -> BinarizationResult:
        """Decode ``path`` and process it. DecodeError aborts before any stage runs."""
        image = load_image(path)
        logger.info("Loaded %s (%dx%d)", path, image.shape[1], image.shape[0])
        return self.process(image)

    def process(self, image: np.ndarray) -> BinarizationResult:
        """Run all stages on an already decoded RGB, RGBA or grayscale array."""
        if not self._run_lock.acquire(blocking=False):
            raise RuntimeError("Pipeline run already in progress")
        try:
            self.stage = Stage.LOAD
            return self._process(image)
        finally:
            self._run_lock.release()

    def _process(self, image: np.ndarray) -> BinarizationResult:
        params = self.params
        n = params.neighborhood
        if image.size == 0:
            raise ValueError("Cannot binarize an empty image")

        self._enter(Stage.GRAYSCALE)
        started = time.perf_counter()
        gray = to_grayscale(image)
        gray.setflags(write=False)
        height, width = gray.shape
        logger.info("Grayscale %dx%d in %.3fs", width, height, time.perf_counter() - started)

        self._enter(Stage.HISTOGRAM)
        hist = compute_histogram(gray)
        condensed = condense_histogram(hist, params.buckets)
        average = global_average(gray)
        logger.info("Global average luminosity: %d", average)

        padded = pad_for_window(gray, n)
        padded.setflags(write=False)

        def global_band(rows: slice) -> np.ndarray:
            return global_threshold(gray[rows], average)

        def bernsen_band(rows: slice) -> np.ndarray:
            stats = window_stats(padded, n, rows.start, rows.stop)
            return bernsen(gray[rows], stats, params.bernsen_contrast, average)

        def niblack_band(rows: slice) -> np.ndarray:
            stats = window_stats(padded, n, rows.start, rows.stop)
            return niblack(gray[rows], stats, params.k)

        def sauvola_band(rows: slice) -> np.ndarray:
            stats = window_stats(padded, n, rows.start, rows.stop)
            return sauvola_pietikainen(gray[rows], stats, params.k, params.r)

        sweeps = (
            (Stage.GLOBAL_SWEEP, "global", global_band),
            (Stage.BERNSEN_SWEEP, "bernsen", bernsen_band),
            (Stage.NIBLACK_SWEEP, "niblack", niblack_band),
            (Stage.SAUVOLA_SWEEP, "sauvola", sauvola_band),
        )

        workers = params.resolved_workers()
        bands = plan_bands(height, n, workers)
        binaries: Dict[str, np.ndarray] = {}

        with ThreadPoolExecutor(max_workers=workers) as executor:
            for stage, name, classify_band in sweeps:
                self._enter(stage)
                started = time.perf_counter()
                binaries[name] = sweep(executor, gray.shape, bands, classify_band)
                logger.info(
                    "%s sweep (n=%d) in %.3fs", name.capitalize(), n, time.perf_counter() - started
                )

        self._enter(Stage.DONE)
        return BinarizationResult(
            grayscale=gray,
            histogram=hist,
            condensed_histogram=condensed,
            global_average=average,
            binaries=binaries,
        )
