"""Color alphabet: 8 reference colors, one per 3-bit symbol.

Each bit of a symbol modulates one channel around a neutral gray:

    bit 0 -> channel 0 (red)
    bit 1 -> channel 1 (green)
    bit 2 -> channel 2 (blue)

A set bit pushes the channel to ``base + offset``, a clear bit to
``base - offset``.  Colors that differ in a single bit are therefore
exactly ``2 * offset`` apart, which is the minimum pairwise distance.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

NEUTRAL_BASE = 133
CHANNEL_OFFSET = 10
N_SYMBOLS = 8
N_CHANNELS = 3


def generate_alphabet(base: int = NEUTRAL_BASE,
                      offset: int = CHANNEL_OFFSET) -> np.ndarray:
    """Return the (8, 3) alphabet in RGB order."""
    colors = np.zeros((N_SYMBOLS, N_CHANNELS), dtype=np.int16)
    for i in range(N_SYMBOLS):
        for c in range(N_CHANNELS):
            colors[i, c] = base + offset if (i >> c) & 1 else base - offset
    return colors


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


# Process-wide constant, never mutated.
ALPHABET = _frozen(generate_alphabet())


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance between two colors."""
    diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    return float(np.sqrt((diff ** 2).sum()))


def find_closest(sample: Sequence[float],
                 alphabet: np.ndarray = ALPHABET) -> int:
    """Index of the alphabet color nearest to *sample*.

    Ties go to the lowest index (``np.argmin`` returns the first minimum).
    """
    diff = alphabet.astype(np.float64) - np.asarray(sample, dtype=np.float64)
    return int(np.argmin((diff ** 2).sum(axis=1)))


def nearest_distance(samples, alphabet: np.ndarray = ALPHABET) -> np.ndarray:
    """Distance from each color in *samples* to its nearest alphabet color.

    *samples* may be a single color or any array of shape ``(..., 3)``;
    the result has the leading shape.
    """
    pts = np.asarray(samples, dtype=np.float64)
    diff = pts[..., np.newaxis, :] - alphabet.astype(np.float64)
    return np.sqrt((diff ** 2).sum(axis=-1)).min(axis=-1)


def is_alphabet_color(sample: Optional[Sequence[float]], tolerance: float,
                      alphabet: np.ndarray = ALPHABET) -> bool:
    """True if *sample* lies within *tolerance* of some alphabet color.

    ``None`` (an out-of-bounds read) is never an alphabet color.
    """
    if sample is None:
        return False
    return bool(nearest_distance(sample, alphabet) <= tolerance)


def threshold_index(sample: Sequence[float],
                    thresholds: Sequence[float]) -> int:
    """3-bit symbol from per-channel decision thresholds."""
    idx = 0
    for c in range(N_CHANNELS):
        if sample[c] > thresholds[c]:
            idx |= 1 << c
    return idx


def coarse_index(sample: Sequence[float],
                 midpoint: float = NEUTRAL_BASE) -> int:
    """3-bit symbol against a single provisional midpoint on every channel."""
    return threshold_index(sample, (midpoint,) * N_CHANNELS)


def bit_groups(channel: int) -> tuple[list[int], list[int]]:
    """Split symbols 0..7 by the bit that drives *channel*.

    Returns (symbols with the bit clear, symbols with the bit set).
    """
    low = [i for i in range(N_SYMBOLS) if not (i >> channel) & 1]
    high = [i for i in range(N_SYMBOLS) if (i >> channel) & 1]
    return low, high
