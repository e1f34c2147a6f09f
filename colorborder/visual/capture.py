"""Image acquisition: load screenshots/photos as RGB arrays using OpenCV.

OpenCV works in BGR; everything else in this package works in RGB
(channel 0 = red = symbol bit 0), so conversion happens here and only here.
"""

from __future__ import annotations

import logging
from pathlib import Path

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def _to_rgb(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def load_image(path: Path | str) -> np.ndarray:
    """Read an image file into an (H, W, 3) uint8 RGB array."""
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise FileNotFoundError(f"Cannot read image {path}")
    if image.dtype != np.uint8:
        image = cv2.convertScaleAbs(image, alpha=255.0 / np.iinfo(image.dtype).max)
    rgb = _to_rgb(image)
    logger.debug("Loaded %s: %dx%d", path, rgb.shape[1], rgb.shape[0])
    return rgb


def decode_image_bytes(data: bytes) -> np.ndarray:
    """Decode an in-memory PNG/JPEG buffer into an RGB array."""
    buf = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("Buffer is not a decodable image")
    return _to_rgb(image)


def save_image(path: Path | str, rgb: np.ndarray) -> None:
    """Write an RGB array to disk (format chosen by extension)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(path), cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)):
        raise OSError(f"Failed to write image {path}")
    logger.debug("Saved %s", path)
