"""Screenshot/photo simulator: deterministic degradation pipeline for testing.

Simulates what happens between rendering a border and decoding a capture
of it:
  1. Surround (unrelated pixels around the rendered image)
  2. Rescale (browser zoom / display scaling)
  3. Defocus / Gaussian blur
  4. Brightness and contrast drift per channel
  5. Sensor/compression noise (Gaussian or uniform integer)
  6. JPEG re-encoding

Each effect can be enabled/disabled independently via CameraSimConfig.
Images are RGB uint8 arrays.
"""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np


@dataclass
class CameraSimConfig:
    """Configuration for capture simulation effects."""

    # Surround: embed the image in a larger canvas
    canvas_pad: int = 40
    canvas_color: tuple = (250, 250, 250)

    # Rescale (nearest neighbour keeps patches flat, like a screenshot zoom)
    scale_enabled: bool = False
    scale_factor: float = 1.0
    scale_interpolation: int = cv2.INTER_NEAREST

    # Blur / defocus
    blur_enabled: bool = False
    blur_sigma: float = 0.6

    # Brightness / contrast drift
    color_shift_enabled: bool = True
    color_scale: tuple = (1.03, 0.98, 1.02)   # RGB multipliers
    color_offset: tuple = (2, -3, 1)           # RGB additive offset

    # Noise
    noise_enabled: bool = True
    noise_uniform: int = 1          # +/- integer amplitude; 0 = Gaussian
    noise_sigma: float = 1.0        # Gaussian std dev when noise_uniform == 0

    # JPEG re-encode (lossy; chroma subsampling smears narrow patches)
    jpeg_enabled: bool = False
    jpeg_quality: int = 95

    # Random seed for reproducibility
    seed: int = 42


class CameraSimulator:
    """Applies capture degradations to a rendered image."""

    def __init__(self, config: CameraSimConfig | None = None):
        self.config = config or CameraSimConfig()
        self._rng = np.random.RandomState(self.config.seed)

    @property
    def offset(self) -> tuple[int, int]:
        """(x, y) position of the original image's origin in the output."""
        cfg = self.config
        scale = cfg.scale_factor if cfg.scale_enabled else 1.0
        pad = int(round(cfg.canvas_pad * scale))
        return pad, pad

    def simulate(self, image: np.ndarray) -> np.ndarray:
        """Apply the enabled degradation steps in order."""
        cfg = self.config
        img = self._add_canvas(image.copy())

        if cfg.scale_enabled:
            img = self._apply_scale(img)

        if cfg.blur_enabled:
            img = self._apply_blur(img)

        if cfg.color_shift_enabled:
            img = self._apply_color_shift(img)

        if cfg.noise_enabled:
            img = self._apply_noise(img)

        if cfg.jpeg_enabled:
            img = self._apply_jpeg(img)

        return img

    def _add_canvas(self, image: np.ndarray) -> np.ndarray:
        pad = self.config.canvas_pad
        if pad <= 0:
            return image
        h, w = image.shape[:2]
        canvas = np.full((h + 2 * pad, w + 2 * pad, 3),
                         self.config.canvas_color, dtype=np.uint8)
        canvas[pad:pad + h, pad:pad + w] = image
        return canvas

    def _apply_scale(self, img: np.ndarray) -> np.ndarray:
        factor = self.config.scale_factor
        h, w = img.shape[:2]
        size = (max(1, int(round(w * factor))), max(1, int(round(h * factor))))
        return cv2.resize(img, size, interpolation=self.config.scale_interpolation)

    def _apply_blur(self, img: np.ndarray) -> np.ndarray:
        """Gaussian blur along the strip direction only."""
        sigma = self.config.blur_sigma
        ksize = max(int(sigma * 4) | 1, 3)
        return cv2.GaussianBlur(img, (ksize, 1), sigma)

    def _apply_color_shift(self, img: np.ndarray) -> np.ndarray:
        result = img.astype(np.float64)
        scale = self.config.color_scale
        offset = self.config.color_offset
        for c in range(3):
            result[:, :, c] = result[:, :, c] * scale[c] + offset[c]
        return np.clip(np.rint(result), 0, 255).astype(np.uint8)

    def _apply_noise(self, img: np.ndarray) -> np.ndarray:
        cfg = self.config
        if cfg.noise_uniform > 0:
            noise = self._rng.randint(-cfg.noise_uniform, cfg.noise_uniform + 1,
                                      size=img.shape)
        else:
            noise = self._rng.normal(0, cfg.noise_sigma, img.shape)
        result = img.astype(np.float64) + noise
        return np.clip(np.rint(result), 0, 255).astype(np.uint8)

    def _apply_jpeg(self, img: np.ndarray) -> np.ndarray:
        bgr = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)
        ok, buf = cv2.imencode(".jpg", bgr,
                               [cv2.IMWRITE_JPEG_QUALITY, self.config.jpeg_quality])
        if not ok:
            raise RuntimeError("JPEG encoding failed")
        return cv2.cvtColor(cv2.imdecode(buf, cv2.IMREAD_COLOR), cv2.COLOR_BGR2RGB)
