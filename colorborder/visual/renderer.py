"""Border renderer: paint an encoded identifier into an RGB image.

The top edge of the border carries the CodeWord, one flat color patch per
symbol, ``floor(width / n_symbols)`` pixels each; leftover pixels repeat
the last symbol color.  The other three edges are neutral gray.  With a
corner radius the CodeWord only spans the straight part of the top edge.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import cv2
import numpy as np

from .alphabet import ALPHABET, NEUTRAL_BASE
from .codec import CodecConfig, FrameEncoder

log = logging.getLogger(__name__)

Color = tuple[int, int, int]


@dataclass
class RendererConfig:
    border_px: int = 3
    border_radius: int = 0
    background: Color = (255, 255, 255)
    neutral: Color = (NEUTRAL_BASE, NEUTRAL_BASE, NEUTRAL_BASE)


def paint_symbols(row: np.ndarray, symbols: Sequence[int],
                  alphabet: np.ndarray = ALPHABET) -> None:
    """Paint *symbols* across *row* (shape (H, W, 3)) in place."""
    width = row.shape[1]
    pps = width // len(symbols)
    if pps < 1:
        raise ValueError(
            f"{width} px is too narrow for {len(symbols)} symbols")
    colors = np.clip(alphabet, 0, 255).astype(np.uint8)
    x = 0
    for sym in symbols:
        row[:, x:x + pps] = colors[sym]
        x += pps
    if x < width:
        row[:, x:] = colors[symbols[-1]]


def render_strip(symbols: Sequence[int], width: int,
                 height: int = 1) -> np.ndarray:
    """A bare strip image of the given symbols."""
    strip = np.zeros((height, width, 3), dtype=np.uint8)
    paint_symbols(strip, symbols)
    return strip


def _fill_rounded_rect(img: np.ndarray, x0: int, y0: int, x1: int, y1: int,
                       radius: int, color: Color) -> None:
    """Filled rectangle [x0, x1) x [y0, y1) with rounded corners."""
    radius = max(0, min(radius, (x1 - x0) // 2, (y1 - y0) // 2))
    if radius == 0:
        img[y0:y1, x0:x1] = color
        return
    img[y0:y1, x0 + radius:x1 - radius] = color
    img[y0 + radius:y1 - radius, x0:x1] = color
    for cx, cy in ((x0 + radius, y0 + radius), (x1 - 1 - radius, y0 + radius),
                   (x0 + radius, y1 - 1 - radius),
                   (x1 - 1 - radius, y1 - 1 - radius)):
        cv2.circle(img, (cx, cy), radius, color, -1, lineType=cv2.LINE_8)


class BorderRenderer:
    """Draws encoded borders onto RGB canvases."""

    def __init__(self, codec_cfg: Optional[CodecConfig] = None,
                 renderer_cfg: Optional[RendererConfig] = None):
        self.codec_cfg = codec_cfg or CodecConfig()
        self.cfg = renderer_cfg or RendererConfig()
        self.encoder = FrameEncoder(config=self.codec_cfg)

    def draw_border(self, canvas: np.ndarray,
                    identifier: str) -> tuple[int, int]:
        """Draw the border in place; returns the (x, y) content offset.

        The offset is the corner radius, i.e. how far content must be
        inset to clear the rounded corners.
        """
        cfg = self.cfg
        h, w = canvas.shape[:2]
        b = cfg.border_px
        r = cfg.border_radius
        symbols = self.encoder.encode_identifier(identifier)

        if r > 0:
            _fill_rounded_rect(canvas, 0, 0, w, h, r, cfg.neutral)
            _fill_rounded_rect(canvas, b, b, w - b, h - b, max(0, r - b),
                               cfg.background)
            if w - 2 * r > 0:
                paint_symbols(canvas[0:b, r:w - r], symbols)
            else:
                log.warning("Corner radius %d leaves no straight top edge", r)
            return r, r

        paint_symbols(canvas[0:b, :], symbols)
        canvas[b:h - b, w - b:w] = cfg.neutral   # right
        canvas[h - b:h, :] = cfg.neutral         # bottom
        canvas[b:h - b, 0:b] = cfg.neutral       # left
        return 0, 0

    def render(self, identifier: str, width: int, height: int) -> np.ndarray:
        """A new (height, width, 3) RGB image with the encoded border."""
        canvas = np.empty((height, width, 3), dtype=np.uint8)
        canvas[:] = self.cfg.background
        self.draw_border(canvas, identifier)
        log.debug("Rendered %s into %dx%d (%d px/segment)", identifier,
                  width, height,
                  (width - 2 * self.cfg.border_radius) // self.codec_cfg.total_segments)
        return canvas
