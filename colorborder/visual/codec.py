"""Frame codec: turn a 16-byte identifier into a linear symbol sequence and back.

A frame (CodeWord) is a row of symbols, each rendered as one color patch:

    START  6 symbols   [1, 1, 1, 0, 1, 2]
    INDEX  8 symbols   [0, 1, 2, 3, 4, 5, 6, 7]   (calibration block)
    DATA   4 symbols per Reed-Solomon coded byte
    END    6 symbols   [2, 1, 0, 1, 1, 1]

Every byte is split into two nibbles and every nibble into a symbol pair:
the first symbol carries the nibble's top bit (0 or 1), the second its low
three bits (0..7).  With the default redundancy the frame is
6 + 8 + 4 * 32 + 6 = 148 symbols long.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Union

from .ecc import (
    DEFAULT_REDUNDANCY_FACTOR,
    ECCCodec,
    ECCConfig,
    calculate_parity_bytes,
)
from .identifier import IDENTIFIER_BYTES, bytes_to_identifier, identifier_to_bytes

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MARKER_START = (1, 1, 1, 0, 1, 2)
MARKER_END = (2, 1, 0, 1, 1, 1)
INDEX_SYMBOLS = tuple(range(8))
MARKER_TOLERANCE = 1
SYMBOLS_PER_BYTE = 4

START_SEGMENTS = len(MARKER_START)
INDEX_SEGMENTS = len(INDEX_SYMBOLS)
END_SEGMENTS = len(MARKER_END)
DATA_START_SEGMENT = START_SEGMENTS + INDEX_SEGMENTS  # 14


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@dataclass
class CodecConfig:
    """Frame geometry.  Encoder and decoder must use identical values."""
    redundancy_factor: float = DEFAULT_REDUNDANCY_FACTOR

    @property
    def payload_bytes(self) -> int:
        return IDENTIFIER_BYTES

    @property
    def nsym(self) -> int:
        return calculate_parity_bytes(self.payload_bytes, self.redundancy_factor)

    @property
    def total_bytes(self) -> int:
        return self.payload_bytes + self.nsym

    @property
    def data_segments(self) -> int:
        return self.total_bytes * SYMBOLS_PER_BYTE

    @property
    def data_start_segment(self) -> int:
        return DATA_START_SEGMENT

    @property
    def end_start_segment(self) -> int:
        return DATA_START_SEGMENT + self.data_segments

    @property
    def total_segments(self) -> int:
        return self.end_start_segment + END_SEGMENTS

    def ecc_config(self) -> ECCConfig:
        return ECCConfig(nsym=self.nsym)


# ---------------------------------------------------------------------------
# Symbol mapping
# ---------------------------------------------------------------------------

def nibble_to_symbols(nibble: int) -> tuple[int, int]:
    """Map a nibble (0..15) to (high, low) with high in {0, 1}, low in 0..7."""
    return (nibble >> 3) & 1, nibble & 7


def symbols_to_nibble(high: int, low: int) -> int:
    return ((high & 1) << 3) | (low & 7)


def byte_to_symbols(value: int) -> list[int]:
    """One byte as four symbols: high nibble pair, then low nibble pair."""
    hh, hl = nibble_to_symbols((value >> 4) & 0xF)
    lh, ll = nibble_to_symbols(value & 0xF)
    return [hh, hl, lh, ll]


def symbols_to_byte(symbols: Sequence[int]) -> int:
    high = symbols_to_nibble(symbols[0], symbols[1])
    low = symbols_to_nibble(symbols[2], symbols[3])
    return (high << 4) | low


def bytes_to_symbols(data: bytes) -> list[int]:
    symbols: list[int] = []
    for b in data:
        symbols.extend(byte_to_symbols(b))
    return symbols


def symbols_to_bytes(symbols: Sequence[int]) -> bytes:
    """Inverse of bytes_to_symbols; trailing partial groups are dropped."""
    n = len(symbols) // SYMBOLS_PER_BYTE
    return bytes(symbols_to_byte(symbols[i * 4:i * 4 + 4]) for i in range(n))


def markers_match(observed: Sequence[Optional[int]], pattern: Sequence[int],
                  tolerance: int = MARKER_TOLERANCE) -> bool:
    """Per-symbol comparison allowing each reading to be off by *tolerance*."""
    if len(observed) != len(pattern):
        return False
    return all(o is not None and abs(o - p) <= tolerance
               for o, p in zip(observed, pattern))


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class FailureReason(Enum):
    NO_CODE_DETECTED = "no code detected"
    STRIP_TOO_NARROW = "strip too narrow"
    START_MARKER_MISMATCH = "start marker mismatch"
    UNREADABLE_SEGMENTS = "too many unreadable segments"
    UNCORRECTABLE = "uncorrectable errors"


@dataclass
class DecodeResult:
    """A payload certified by the Reed-Solomon check."""
    identifier: str
    end_marker_matched: bool
    errors_corrected: bool
    corrected_bytes: int = 0
    raw_bytes: bytes = b""

    ok = True


@dataclass
class DecodeFailure:
    """No certified payload.

    raw_identifier, when present, is the first 16 bytes exactly as read
    and is NOT verified.
    """
    reason: FailureReason
    raw_identifier: Optional[str] = None

    ok = False


Decoded = Union[DecodeResult, DecodeFailure]


# ---------------------------------------------------------------------------
# Encoder
# ---------------------------------------------------------------------------

@dataclass
class FrameEncoder:
    config: CodecConfig = field(default_factory=CodecConfig)

    def __post_init__(self) -> None:
        self.ecc = ECCCodec(self.config.ecc_config())

    def encode(self, payload: bytes) -> list[int]:
        """Encode *payload* into a full CodeWord symbol list."""
        cfg = self.config
        if len(payload) != cfg.payload_bytes:
            raise ValueError(
                f"payload must be {cfg.payload_bytes} bytes, got {len(payload)}")
        coded = self.ecc.encode(payload)
        symbols = list(MARKER_START) + list(INDEX_SYMBOLS)
        symbols.extend(bytes_to_symbols(coded))
        symbols.extend(MARKER_END)
        return symbols

    def encode_identifier(self, text: str) -> list[int]:
        return self.encode(identifier_to_bytes(text))


# ---------------------------------------------------------------------------
# Decoder (from symbols)
# ---------------------------------------------------------------------------

@dataclass
class FrameDecoder:
    config: CodecConfig = field(default_factory=CodecConfig)
    marker_tolerance: int = MARKER_TOLERANCE

    def __post_init__(self) -> None:
        self.ecc = ECCCodec(self.config.ecc_config())

    def decode_symbols(self, symbols: Sequence[Optional[int]]) -> Decoded:
        """Decode a full CodeWord read from an image.

        A ``None`` entry marks a segment that could not be read.  The START
        marker must match; the END marker is reported but never blocks a
        payload that passes the Reed-Solomon check.
        """
        cfg = self.config
        if len(symbols) != cfg.total_segments:
            raise ValueError(
                f"expected {cfg.total_segments} symbols, got {len(symbols)}")

        if not markers_match(symbols[:START_SEGMENTS], MARKER_START,
                             self.marker_tolerance):
            logger.debug("START marker mismatch: %s",
                         list(symbols[:START_SEGMENTS]))
            return DecodeFailure(FailureReason.START_MARKER_MISMATCH)

        data = symbols[cfg.data_start_segment:cfg.end_start_segment]
        raw, unreadable = self._reassemble(data)
        raw_identifier = bytes_to_identifier(raw)

        if unreadable > self.ecc.max_errors:
            logger.debug("%d bytes unreadable, at most %d correctable",
                         unreadable, self.ecc.max_errors)
            return DecodeFailure(FailureReason.UNREADABLE_SEGMENTS, raw_identifier)

        end_matched = markers_match(symbols[cfg.end_start_segment:], MARKER_END,
                                    self.marker_tolerance)

        corrected = self.ecc.correct(raw)
        if corrected is None:
            logger.debug("Reed-Solomon decode failed")
            return DecodeFailure(FailureReason.UNCORRECTABLE, raw_identifier)

        codeword, positions = corrected
        payload = codeword[:cfg.payload_bytes]
        return DecodeResult(
            identifier=bytes_to_identifier(payload),
            end_marker_matched=end_matched,
            errors_corrected=raw[:cfg.payload_bytes] != payload,
            corrected_bytes=len(positions),
            raw_bytes=raw,
        )

    @staticmethod
    def _reassemble(data: Sequence[Optional[int]]) -> tuple[bytes, int]:
        """Bytes from DATA symbols; unreadable groups become 0 and are counted."""
        out = bytearray()
        unreadable = 0
        for i in range(0, len(data), SYMBOLS_PER_BYTE):
            group = data[i:i + SYMBOLS_PER_BYTE]
            if any(s is None for s in group):
                unreadable += 1
                out.append(0)
            else:
                out.append(symbols_to_byte(group))
        return bytes(out), unreadable
