"""
Utility functions for the binarization pipeline.
"""
from __future__ import annotations

import math
import os
from typing import Any, Dict, Mapping

import yaml


# ============================================================================
# Settings
# ============================================================================

DEFAULT_SETTINGS: Dict[str, Any] = {
    "infile": "img.png",
    "output_dir": ".",
    "variant": "binar",
    "workers": None,
    "binarization": {
        "neighborhood": None,
        "k": 0.5,
        "r": 128.0,
        "bernsen_contrast": 0.0,
    },
    "histogram": {"buckets": 50, "width": 16.0, "height": 9.0, "dpi": 100},
}


def load_settings(path: str) -> Dict[str, Any]:
    """Load a YAML configuration file."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Settings file not found: {path}")

    with open(path, "r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid settings file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Settings file must define a dictionary at the top level")

    return data


def merge_settings(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge two settings dictionaries.

    Nested dictionaries are merged key by key; any other value in ``override``
    replaces the one in ``base``. Neither input is modified.
    """
    merged: Dict[str, Any] = {}
    for key, value in base.items():
        merged[key] = merge_settings(value, {}) if isinstance(value, Mapping) else value

    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_settings(current, value)
        else:
            merged[key] = value

    return merged


# ============================================================================
# Validation Helpers
# ============================================================================

def ensure_positive_int(value: Any, name: str) -> int:
    """Coerce ``value`` to an int and reject anything below one."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a positive integer, got {value!r}") from None
    if number != value and not isinstance(value, str):
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    if number < 1:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return number


def ensure_finite(value: Any, name: str) -> float:
    """Coerce ``value`` to a finite float."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return number
