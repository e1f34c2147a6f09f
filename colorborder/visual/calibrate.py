"""Self-calibration from the INDEX block.

The decoder knows nothing about the scale, offset or exposure of the
strip it is looking at.  Everything is recovered from the 8-symbol INDEX
block that follows the START marker:

1. Scan the row into runs of equal coarse index (fixed midpoint 133).
2. Find 8 consecutive runs reading 0, 1, ..., 7 (at least 6 must match).
3. Unit width = mean length of those runs; each is one symbol wide.
4. Per channel, threshold = midpoint of the median "bit clear" and
   median "bit set" run colors.  This absorbs brightness/contrast drift.
5. Frame start = first INDEX run start - 6 unit widths.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import numpy as np

from .alphabet import (
    NEUTRAL_BASE,
    N_CHANNELS,
    bit_groups,
    coarse_index,
    is_alphabet_color,
)
from .codec import DATA_START_SEGMENT, INDEX_SEGMENTS, START_SEGMENTS

logger = logging.getLogger(__name__)

# x -> color, or None outside the image
Sampler = Callable[[int], Optional[Sequence[float]]]

SCAN_TOLERANCE = 25.0
MIN_INDEX_MATCHES = 6


@dataclass
class Run:
    """Maximal span of pixels sharing a coarse index; *end* is exclusive."""
    start: int
    end: int
    index: int
    color: tuple[float, float, float]

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass
class Calibration:
    """Thresholds and geometry derived for one decode attempt."""
    thresholds: tuple[float, float, float]
    unit_width: float
    encoding_start_x: float
    index_runs: list[Run] = field(default_factory=list)

    @property
    def data_start_x(self) -> float:
        return self.encoding_start_x + DATA_START_SEGMENT * self.unit_width

    def segment_x(self, segment: int) -> float:
        """Left edge of *segment* (0 = first START symbol)."""
        return self.encoding_start_x + segment * self.unit_width


def scan_runs(sample: Sampler, start_x: int, width: int,
              tolerance: float = SCAN_TOLERANCE,
              midpoint: float = NEUTRAL_BASE) -> list[Run]:
    """Collapse the pixels of [start_x, start_x + width) into runs.

    Pixels further than *tolerance* from every alphabet color close the
    current run and belong to none.
    """
    runs: list[Run] = []
    cur_start = -1
    cur_idx = -1
    acc = np.zeros(N_CHANNELS, dtype=np.float64)
    count = 0

    def flush(end: int) -> None:
        if count > 0:
            avg = acc / count
            runs.append(Run(cur_start, end, cur_idx,
                            (float(avg[0]), float(avg[1]), float(avg[2]))))

    for x in range(start_x, start_x + width):
        p = sample(x)
        if not is_alphabet_color(p, tolerance):
            flush(x)
            cur_idx, count = -1, 0
            continue
        idx = coarse_index(p, midpoint)
        if idx != cur_idx:
            flush(x)
            cur_start, cur_idx = x, idx
            acc[:] = 0
            count = 0
        acc += np.asarray(p[:N_CHANNELS], dtype=np.float64)
        count += 1
    flush(start_x + width)
    return runs


def find_index_runs(runs: Sequence[Run],
                    min_matches: int = MIN_INDEX_MATCHES) -> Optional[int]:
    """Position of the first 8-run window that reads as 0..7, else None."""
    for i in range(len(runs) - INDEX_SEGMENTS + 1):
        matches = sum(1 for j in range(INDEX_SEGMENTS)
                      if runs[i + j].index == j)
        if matches >= min_matches:
            return i
    return None


def _median4(values: Sequence[float]) -> float:
    s = sorted(values)
    return (s[1] + s[2]) / 2


def channel_thresholds(index_runs: Sequence[Run]) -> tuple[float, float, float]:
    """Decision boundary per channel from the observed INDEX colors."""
    out = []
    for c in range(N_CHANNELS):
        low, high = bit_groups(c)
        lo = _median4([index_runs[i].color[c] for i in low])
        hi = _median4([index_runs[i].color[c] for i in high])
        out.append((lo + hi) / 2)
    return out[0], out[1], out[2]


def calibrate(sample: Sampler, start_x: int, width: int,
              tolerance: float = SCAN_TOLERANCE,
              min_matches: int = MIN_INDEX_MATCHES,
              midpoint: float = NEUTRAL_BASE) -> Optional[Calibration]:
    """Derive a Calibration for the strip in [start_x, start_x + width).

    Returns None when no INDEX block can be found.
    """
    runs = scan_runs(sample, start_x, width, tolerance, midpoint)
    pos = find_index_runs(runs, min_matches)
    if pos is None:
        logger.debug("No INDEX block among %d runs: %s", len(runs),
                     [r.index for r in runs[:24]])
        return None

    index_runs = list(runs[pos:pos + INDEX_SEGMENTS])
    unit = sum(r.length for r in index_runs) / INDEX_SEGMENTS
    thresholds = channel_thresholds(index_runs)
    encoding_start = index_runs[0].start - START_SEGMENTS * unit

    logger.debug("INDEX at run %d, lengths %s, unit %.2f px, start x=%.1f, "
                 "thresholds R=%.1f G=%.1f B=%.1f", pos,
                 [r.length for r in index_runs], unit, encoding_start,
                 *thresholds)
    return Calibration(thresholds=thresholds, unit_width=unit,
                       encoding_start_x=encoding_start, index_runs=index_runs)
