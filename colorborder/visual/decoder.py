"""Row decoder: recover an identifier from one scan line of pixels.

Steps:
1. Calibrate against the INDEX block (unit width, thresholds, offset)
2. Read the START marker and reject early if it does not match
3. Average each DATA segment and threshold it into a symbol
4. Reassemble bytes from nibble pairs and run the Reed-Solomon check
5. Report the END marker as an advisory flag
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .alphabet import NEUTRAL_BASE, N_CHANNELS, is_alphabet_color, threshold_index
from .calibrate import (
    MIN_INDEX_MATCHES,
    SCAN_TOLERANCE,
    Calibration,
    Sampler,
    calibrate,
)
from .codec import (
    MARKER_START,
    START_SEGMENTS,
    CodecConfig,
    Decoded,
    DecodeFailure,
    FailureReason,
    FrameDecoder,
    markers_match,
)

logger = logging.getLogger(__name__)


@dataclass
class DecoderConfig:
    scan_tolerance: float = SCAN_TOLERANCE  # loose: run scan during calibration
    segment_tolerance: float = 20.0         # strict: pixels averaged per segment
    row_tolerance: float = 20.0             # row scoring / strip extent
    min_index_matches: int = MIN_INDEX_MATCHES
    min_segment_samples: int = 1            # fewer qualifying pixels = unreadable
    marker_tolerance: int = 1
    midpoint: float = NEUTRAL_BASE          # provisional threshold for run scan
    multirow: bool = True
    multirow_radius: int = 2                # rows each side of the best row
    sample_fractions: tuple[float, ...] = (0.25, 0.5, 0.75)
    min_row_pixels: int = 0                 # 0 = total_segments


def decode_segment(sample: Sampler, x: float, unit_width: float,
                   thresholds: Sequence[float],
                   tolerance: float = 20.0,
                   min_samples: int = 1) -> Optional[int]:
    """Symbol for the segment starting at *x*, or None if unreadable.

    Averages every in-alphabet pixel of [x, x + unit_width) and compares
    each channel with its calibrated threshold.
    """
    x0 = math.floor(x)
    x1 = max(math.floor(x + unit_width), x0 + 1)
    acc = np.zeros(N_CHANNELS, dtype=np.float64)
    count = 0
    for px in range(x0, x1):
        p = sample(px)
        if is_alphabet_color(p, tolerance):
            acc += np.asarray(p[:N_CHANNELS], dtype=np.float64)
            count += 1
    if count < max(min_samples, 1):
        return None
    return threshold_index(acc / count, thresholds)


class RowDecoder:
    """Decodes a border strip from a single-row pixel accessor."""

    def __init__(self, codec_cfg: Optional[CodecConfig] = None,
                 decoder_cfg: Optional[DecoderConfig] = None):
        self.codec_cfg = codec_cfg or CodecConfig()
        self.cfg = decoder_cfg or DecoderConfig()
        self.frame_decoder = FrameDecoder(config=self.codec_cfg,
                                          marker_tolerance=self.cfg.marker_tolerance)

    def calibrate_row(self, sample: Sampler, start_x: int,
                      width: int) -> Optional[Calibration]:
        cfg = self.cfg
        return calibrate(sample, start_x, width,
                         tolerance=cfg.scan_tolerance,
                         min_matches=cfg.min_index_matches,
                         midpoint=cfg.midpoint)

    def read_segment(self, sample: Sampler, calibration: Calibration,
                     segment: int) -> Optional[int]:
        return decode_segment(sample, calibration.segment_x(segment),
                              calibration.unit_width, calibration.thresholds,
                              self.cfg.segment_tolerance,
                              self.cfg.min_segment_samples)

    def read_frame(self, sample: Sampler,
                   calibration: Calibration) -> list[Optional[int]]:
        """Every CodeWord symbol at its calibrated position (None = unreadable)."""
        return [self.read_segment(sample, calibration, seg)
                for seg in range(self.codec_cfg.total_segments)]

    def decode_row(self, sample: Sampler, start_x: int, width: int) -> Decoded:
        """Decode the strip believed to lie in [start_x, start_x + width)."""
        if width < self.codec_cfg.total_segments:
            logger.debug("Width %d below %d segments", width,
                         self.codec_cfg.total_segments)
            return DecodeFailure(FailureReason.STRIP_TOO_NARROW)

        calibration = self.calibrate_row(sample, start_x, width)
        if calibration is None:
            return DecodeFailure(FailureReason.NO_CODE_DETECTED)

        return self.decode_calibrated(
            lambda seg: self.read_segment(sample, calibration, seg))

    def decode_calibrated(self, read) -> Decoded:
        """Decode using *read(segment) -> symbol or None* for every segment.

        The START marker is read and checked before anything else.
        """
        start = [read(s) for s in range(START_SEGMENTS)]
        if not markers_match(start, MARKER_START, self.cfg.marker_tolerance):
            logger.debug("START marker mismatch: %s", start)
            return DecodeFailure(FailureReason.START_MARKER_MISMATCH)

        total = self.codec_cfg.total_segments
        symbols = start + [read(s) for s in range(START_SEGMENTS, total)]
        result = self.frame_decoder.decode_symbols(symbols)
        if result.ok:
            logger.debug("Decoded %s (end marker %s, %d bytes corrected)",
                         result.identifier,
                         "ok" if result.end_marker_matched else "mismatch",
                         result.corrected_bytes)
        else:
            logger.debug("Row decode failed: %s", result.reason.value)
        return result


def decode_from_pixel_row(sample: Sampler, start_x: int, width: int,
                          codec_cfg: Optional[CodecConfig] = None,
                          decoder_cfg: Optional[DecoderConfig] = None) -> Decoded:
    """One-shot convenience wrapper around RowDecoder.decode_row."""
    return RowDecoder(codec_cfg, decoder_cfg).decode_row(sample, start_x, width)
