import os
import sys

import numpy as np
import pytest
from PIL import Image

# Make the flat modules under src/ importable without installing the project.
SRC = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if SRC not in sys.path:
    sys.path.insert(0, SRC)


@pytest.fixture
def split_image() -> np.ndarray:
    """4x4 image: two black columns on the left, two white on the right."""
    return np.array([[0, 0, 255, 255]] * 4, dtype=np.uint8)


@pytest.fixture
def random_gray() -> np.ndarray:
    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, size=(13, 17), dtype=np.uint8)


@pytest.fixture
def color_png(tmp_path):
    """Small RGB PNG with a gradient and a dark square."""
    rng = np.random.default_rng(7)
    rgb = rng.integers(0, 256, size=(24, 32, 3), dtype=np.uint8)
    rgb[4:12, 6:14] = 10
    path = tmp_path / "input.png"
    Image.fromarray(rgb).save(path)
    return path
