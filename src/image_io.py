"""
Image decoding, grayscale conversion and PNG encoding.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class DecodeError(RuntimeError):
    """Source image could not be read or is in an unsupported format."""

    def __init__(self, path: PathLike, cause: BaseException) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Cannot decode image {self.path}: {cause}")


class EncodeError(RuntimeError):
    """Output image could not be written."""

    def __init__(self, path: PathLike, cause: Union[BaseException, str]) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Cannot write image {self.path}: {cause}")


def _premultiply(rgba: np.ndarray) -> np.ndarray:
    """Composite RGBA pixels onto black."""
    color = rgba[..., :3].astype(np.uint32)
    alpha = rgba[..., 3:4].astype(np.uint32)
    return ((color * alpha + 127) // 255).astype(np.uint8)


def load_image(path: PathLike) -> np.ndarray:
    """
    Decode an image file (PNG, JPEG, GIF, ...) into an RGB array.

    Only the first frame of animated formats is used. Transparent pixels are
    composited onto black.

    Args:
        path: Image file to read

    Returns:
        uint8 array of shape (height, width, 3)

    Raises:
        DecodeError: If the file is missing, unreadable or not an image
    """
    path = Path(path)
    try:
        with Image.open(path) as img:
            has_alpha = img.mode in ("RGBA", "LA", "PA") or (
                img.mode == "P" and "transparency" in img.info
            )
            if has_alpha:
                rgb = _premultiply(np.asarray(img.convert("RGBA")))
            else:
                rgb = np.asarray(img.convert("RGB"), dtype=np.uint8)
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(path, exc) from exc

    if rgb.size == 0:
        raise DecodeError(path, "image has no pixels")

    logger.debug("Decoded %s (%dx%d)", path, rgb.shape[1], rgb.shape[0])
    return np.ascontiguousarray(rgb)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert an RGB(A) or grayscale array to a uint8 grayscale image."""
    if image.ndim == 2:
        return np.clip(image, 0, 255).astype(np.uint8)
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise ValueError("to_grayscale expects an RGB, RGBA or grayscale image")

    rgb = np.array(image, dtype=np.uint8, order="C")
    code = cv2.COLOR_RGBA2GRAY if rgb.shape[2] == 4 else cv2.COLOR_RGB2GRAY
    return cv2.cvtColor(rgb, code)


def save_png(path: PathLike, image: np.ndarray) -> Path:
    """
    Write a grayscale or binary image as PNG.

    Raises:
        EncodeError: If the destination is not writable
    """
    path = Path(path)
    if path.suffix.lower() != ".png":
        raise EncodeError(path, "destination must have a .png extension")

    try:
        ok = cv2.imwrite(str(path), np.array(image, dtype=np.uint8, order="C"))
    except cv2.error as exc:
        raise EncodeError(path, exc) from exc
    if not ok:
        raise EncodeError(path, "encoder refused to write the file")

    return path
