"""Row selection and multi-row voting for decoding a border from an image.

The row decoder works on a single scan line.  This module chooses which
line(s) to scan:

- rows are scored by how many pixels sit near an alphabet color, a cheap
  proxy for "this row crosses the strip";
- the best row is calibrated once;
- each symbol is then resampled at a few fractional offsets inside its
  segment, across several adjacent rows, and the averaged color is
  thresholded.  This is noise averaging only; the byte reassembly and
  Reed-Solomon verification are unchanged.

If the multi-row read does not verify, single-row decoding is retried on
the next best rows.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

import numpy as np

from .alphabet import N_CHANNELS, is_alphabet_color, nearest_distance, threshold_index
from .calibrate import Calibration, Sampler
from .codec import CodecConfig, Decoded, DecodeFailure, FailureReason
from .decoder import DecoderConfig, RowDecoder

logger = logging.getLogger(__name__)


def row_sampler(image: np.ndarray, y: int) -> Sampler:
    """Accessor over row *y*; positions outside the image read as None."""
    w = image.shape[1]
    row = image[y]

    def sample(x: int):
        if x < 0 or x >= w:
            return None
        return row[x, :N_CHANNELS]

    return sample


def row_alphabet_mask(image: np.ndarray, y: int, tolerance: float) -> np.ndarray:
    return nearest_distance(image[y, :, :N_CHANNELS]) <= tolerance


def row_alphabet_counts(image: np.ndarray, tolerance: float = 20.0) -> np.ndarray:
    """Number of in-alphabet pixels in every row."""
    counts = np.zeros(image.shape[0], dtype=np.int64)
    for y in range(image.shape[0]):
        counts[y] = int(row_alphabet_mask(image, y, tolerance).sum())
    return counts


def select_best_row(image: np.ndarray, tolerance: float = 20.0) -> tuple[int, int]:
    """(row, count) of the row with the most in-alphabet pixels."""
    counts = row_alphabet_counts(image, tolerance)
    y = int(np.argmax(counts))
    return y, int(counts[y])


def strip_extent(image: np.ndarray, y: int,
                 tolerance: float = 20.0) -> Optional[tuple[int, int]]:
    """(first, last + 1) x of in-alphabet pixels on row *y*, or None."""
    xs = np.flatnonzero(row_alphabet_mask(image, y, tolerance))
    if xs.size == 0:
        return None
    return int(xs[0]), int(xs[-1]) + 1


def adjacent_rows(y: int, candidates: Sequence[int], radius: int) -> list[int]:
    """Candidate rows within *radius* of *y*; always includes *y*."""
    rows = sorted({r for r in candidates if abs(r - y) <= radius} | {y})
    return rows


def decode_segment_multirow(samplers: Sequence[Sampler], x: float,
                            unit_width: float, thresholds: Sequence[float],
                            fractions: Sequence[float] = (0.25, 0.5, 0.75),
                            tolerance: float = 20.0,
                            min_samples: int = 1) -> Optional[int]:
    """Average fractional in-segment samples over several rows, then threshold."""
    acc = np.zeros(N_CHANNELS, dtype=np.float64)
    count = 0
    for sample in samplers:
        for frac in fractions:
            p = sample(math.floor(x + frac * unit_width))
            if is_alphabet_color(p, tolerance):
                acc += np.asarray(p[:N_CHANNELS], dtype=np.float64)
                count += 1
    if count < max(min_samples, 1):
        return None
    return threshold_index(acc / count, thresholds)


def _failure_rank(failure: DecodeFailure) -> int:
    """How far a failed row got; the furthest one is reported."""
    if failure.raw_identifier is not None:
        return 2
    return 0 if failure.reason is FailureReason.NO_CODE_DETECTED else 1


class ImageStripDecoder:
    """Finds and decodes a border strip in a full RGB image."""

    def __init__(self, codec_cfg: Optional[CodecConfig] = None,
                 decoder_cfg: Optional[DecoderConfig] = None,
                 max_row_attempts: int = 5):
        self.codec_cfg = codec_cfg or CodecConfig()
        self.cfg = decoder_cfg or DecoderConfig()
        self.row_decoder = RowDecoder(self.codec_cfg, self.cfg)
        self.max_row_attempts = max_row_attempts

    @property
    def min_row_pixels(self) -> int:
        return self.cfg.min_row_pixels or self.codec_cfg.total_segments

    def rank_rows(self, image: np.ndarray) -> list[int]:
        """Rows crossing the strip, best first."""
        counts = row_alphabet_counts(image, self.cfg.row_tolerance)
        order = np.argsort(-counts, kind="stable")
        return [int(y) for y in order if counts[y] >= self.min_row_pixels]

    def decode_image(self, image: np.ndarray,
                     row: Optional[int] = None) -> Decoded:
        """Decode the strip from *image*, optionally forcing a scan row."""
        if row is not None:
            ranked = self.rank_rows(image)
            return self.decode_at_row(image, row, ranked or [row])

        ranked = self.rank_rows(image)
        if not ranked:
            logger.debug("No row with >= %d alphabet pixels", self.min_row_pixels)
            return DecodeFailure(FailureReason.NO_CODE_DETECTED)

        # Rows without an INDEX block (e.g. the gray edges) are rejected
        # cheaply and do not use up an attempt.
        failure: Optional[DecodeFailure] = None
        attempts = 0
        for y in ranked:
            result = self.decode_at_row(image, y, ranked)
            if result.ok:
                return result
            if failure is None or _failure_rank(result) > _failure_rank(failure):
                failure = result
            if result.reason is not FailureReason.NO_CODE_DETECTED:
                attempts += 1
                if attempts >= self.max_row_attempts:
                    break
        return failure

    def decode_at_row(self, image: np.ndarray, y: int,
                      candidates: Sequence[int]) -> Decoded:
        extent = strip_extent(image, y, self.cfg.row_tolerance)
        if extent is None:
            return DecodeFailure(FailureReason.NO_CODE_DETECTED)
        start_x, end_x = extent
        width = end_x - start_x
        if width < self.codec_cfg.total_segments:
            return DecodeFailure(FailureReason.STRIP_TOO_NARROW)

        sample = row_sampler(image, y)
        calibration = self.row_decoder.calibrate_row(sample, start_x, width)
        if calibration is None:
            return DecodeFailure(FailureReason.NO_CODE_DETECTED)
        logger.debug("Row %d: strip x=%d..%d, unit %.2f px", y, start_x, end_x,
                     calibration.unit_width)

        if self.cfg.multirow:
            rows = adjacent_rows(y, candidates, self.cfg.multirow_radius)
            if len(rows) > 1:
                result = self._decode_multirow(image, rows, calibration)
                if result.ok:
                    return result
                logger.debug("Multi-row read over %s failed (%s), "
                             "falling back to row %d", rows,
                             result.reason.value, y)

        return self.row_decoder.decode_calibrated(
            lambda seg: self.row_decoder.read_segment(sample, calibration, seg))

    def _decode_multirow(self, image: np.ndarray, rows: Sequence[int],
                         calibration: Calibration) -> Decoded:
        samplers = [row_sampler(image, r) for r in rows]
        cfg = self.cfg

        def read(seg: int) -> Optional[int]:
            return decode_segment_multirow(
                samplers, calibration.segment_x(seg), calibration.unit_width,
                calibration.thresholds, cfg.sample_fractions,
                cfg.segment_tolerance, cfg.min_segment_samples)

        return self.row_decoder.decode_calibrated(read)
