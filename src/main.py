"""
Command line entry point: grayscale, histogram and binarized versions of an image.

Artifacts written to the output directory:
1. grayScale.png     - grayscale conversion
2. hist.png          - condensed histogram bar chart
3. limiarGlobal.png  - global mean threshold
4. Bernsen / Niblack / Sauvola binary images, named after the variant
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from histogram import render_histogram
from image_io import DecodeError, EncodeError, save_png
from pipeline import METHODS, BinarizationParams, BinarizationPipeline, BinarizationResult
from utils import DEFAULT_SETTINGS, load_settings, merge_settings

logger = logging.getLogger("binarize")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_PARTIAL = 2

GRAYSCALE_NAME = "grayScale.png"
HISTOGRAM_NAME = "hist.png"
GLOBAL_NAME = "limiarGlobal.png"

VARIANTS: Dict[str, Dict[str, Any]] = {
    "binar": {
        "neighborhood": 10,
        "names": {
            "bernsen": "binarBernsen.png",
            "niblack": "binarNiblack.png",
            "sauvola": "binarSauvola.png",
        },
    },
    "limiar": {
        "neighborhood": 100,
        "names": {
            "bernsen": "limiarBernsen.png",
            "niblack": "limiarNiblack.png",
            "sauvola": "limiarSauPie.png",
        },
    },
}


# ============================================================================
# Configuration Helpers
# ============================================================================

def artifact_names(variant: str) -> Dict[str, str]:
    """Output file names keyed by artifact."""
    if variant not in VARIANTS:
        raise ValueError(f"Unknown variant: {variant}")
    names = {"grayscale": GRAYSCALE_NAME, "histogram": HISTOGRAM_NAME, "global": GLOBAL_NAME}
    names.update(VARIANTS[variant]["names"])
    return names


def build_config(args: argparse.Namespace) -> Dict[str, Any]:
    """Merge built-in defaults, the settings file and command line overrides."""
    try:
        file_config = load_settings(args.config)
    except FileNotFoundError:
        logger.warning("Config not found: %s, using defaults", args.config)
        file_config = {}

    config = merge_settings(DEFAULT_SETTINGS, file_config)
    for section in ("binarization", "histogram"):
        if not isinstance(config.get(section), dict):
            config[section] = dict(DEFAULT_SETTINGS[section])

    if args.infile is not None:
        config["infile"] = args.infile
    if args.outdir is not None:
        config["output_dir"] = args.outdir
    if args.variant is not None:
        config["variant"] = args.variant
    if args.workers is not None:
        config["workers"] = args.workers
    if args.neighborhood is not None:
        config["binarization"]["neighborhood"] = args.neighborhood

    variant = config.get("variant", "binar")
    if variant not in VARIANTS:
        raise ValueError(f"Unknown variant: {variant}")
    if config["binarization"].get("neighborhood") is None:
        config["binarization"]["neighborhood"] = VARIANTS[variant]["neighborhood"]

    return config


# ============================================================================
# Output
# ============================================================================

def print_histogram(result: BinarizationResult) -> None:
    for index, count in enumerate(result.condensed_histogram):
        print(f"{index}: {int(count):6d}")
    print(f"Global average: {result.global_average}")


def save_artifacts(
    result: BinarizationResult,
    output_dir: Path,
    names: Dict[str, str],
    hist_cfg: Optional[Dict[str, Any]] = None,
) -> List[EncodeError]:
    """
    Write every artifact, continuing past individual failures.

    Returns:
        The encode errors that occurred (empty on full success)
    """
    hist_cfg = hist_cfg or {}
    failures: List[EncodeError] = []

    jobs = [
        (names["grayscale"], lambda path: save_png(path, result.grayscale)),
        (
            names["histogram"],
            lambda path: render_histogram(
                result.condensed_histogram,
                path,
                width=float(hist_cfg.get("width", 16.0)),
                height=float(hist_cfg.get("height", 9.0)),
                dpi=int(hist_cfg.get("dpi", 100)),
            ),
        ),
    ]
    for method in METHODS:
        image = result.binaries[method]
        jobs.append((names[method], lambda path, image=image: save_png(path, image)))

    for filename, write in jobs:
        path = output_dir / filename
        try:
            write(path)
        except EncodeError as exc:
            logger.error("%s", exc)
            failures.append(exc)
            continue
        print(f"[INFO] Saved: {path}")

    return failures


# ============================================================================
# Entry Point
# ============================================================================

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Grayscale, histogram and adaptive binarization (global, Bernsen, Niblack, Sauvola)"
    )
    parser.add_argument("--infile", default=None, help="path to image (gif, jpeg, png); default img.png")
    parser.add_argument(
        "-n", "--neighborhood", type=int, default=None,
        help="n-neighborhood window size (default 10, or 100 for the limiar variant)",
    )
    parser.add_argument("--config", "-c", default="settings.yaml", help="Path to YAML configuration file")
    parser.add_argument("--outdir", "-o", default=None, help="Directory for output images")
    parser.add_argument("--variant", choices=sorted(VARIANTS), default=None, help="Artifact naming scheme")
    parser.add_argument("--workers", type=int, default=None, help="Worker threads (default: CPU count)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every pipeline stage")
    args = parser.parse_args(argv)

    if args.neighborhood is not None and args.neighborhood < 1:
        parser.error("-n must be a positive integer")
    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be a positive integer")
    return args


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    try:
        config = build_config(args)
        params = BinarizationParams.from_settings(config)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_FAILURE

    pipeline = BinarizationPipeline(params)
    try:
        result = pipeline.run(config["infile"])
    except DecodeError as exc:
        logger.error("%s", exc)
        return EXIT_FAILURE

    print_histogram(result)

    output_dir = Path(config.get("output_dir") or ".")
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Cannot create output directory %s: %s", output_dir, exc)
    names = artifact_names(config["variant"])
    failures = save_artifacts(result, output_dir, names, config.get("histogram"))
    if failures:
        logger.error("%d of %d artifacts could not be written", len(failures), len(names))
        return EXIT_PARTIAL

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
