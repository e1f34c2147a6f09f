"""Tests for the frame codec: identifier -> symbols -> identifier."""

import pytest

from colorborder.visual.codec import (
    MARKER_END,
    MARKER_START,
    CodecConfig,
    FailureReason,
    FrameDecoder,
    FrameEncoder,
    byte_to_symbols,
    bytes_to_symbols,
    markers_match,
    nibble_to_symbols,
    symbols_to_byte,
    symbols_to_bytes,
    symbols_to_nibble,
)

SAMPLE = "00112233-4455-6677-8899-aabbccddeeff"


def _byte_slice(k: int) -> slice:
    """Segment range carrying coded byte *k*."""
    start = 14 + 4 * k
    return slice(start, start + 4)


class TestSymbolMapping:
    def test_nibble_bijection(self):
        seen = set()
        for n in range(16):
            high, low = nibble_to_symbols(n)
            assert high in (0, 1)
            assert 0 <= low <= 7
            assert symbols_to_nibble(high, low) == n
            seen.add((high, low))
        assert len(seen) == 16

    def test_byte_to_symbols(self):
        # 0xAB: high nibble 1010 -> (1, 2), low nibble 1011 -> (1, 3)
        assert byte_to_symbols(0xAB) == [1, 2, 1, 3]
        assert byte_to_symbols(0x00) == [0, 0, 0, 0]
        assert byte_to_symbols(0xFF) == [1, 7, 1, 7]

    def test_all_bytes(self):
        for value in range(256):
            assert symbols_to_byte(byte_to_symbols(value)) == value

    def test_bytes_roundtrip(self):
        data = bytes(range(0, 256, 7))
        assert symbols_to_bytes(bytes_to_symbols(data)) == data

    def test_partial_group_dropped(self):
        assert symbols_to_bytes([1, 7, 1, 7, 0, 0]) == b"\xff"


class TestMarkers:
    def test_exact(self):
        assert markers_match(MARKER_START, MARKER_START)

    def test_within_tolerance(self):
        assert markers_match([2, 2, 2, 1, 2, 3], MARKER_START)
        assert markers_match([3, 2, 1, 2, 2, 2], MARKER_END)

    def test_outside_tolerance(self):
        assert not markers_match([1, 1, 1, 0, 1, 4], MARKER_START)
        assert not markers_match([2, 2, 2, 1, 2, 3], MARKER_START, tolerance=0)

    def test_unreadable_never_matches(self):
        assert not markers_match([1, 1, None, 0, 1, 2], MARKER_START)

    def test_wrong_length(self):
        assert not markers_match([1, 1, 1], MARKER_START)


class TestCodecConfig:
    def test_default_geometry(self):
        cfg = CodecConfig()
        assert cfg.payload_bytes == 16
        assert cfg.nsym == 16
        assert cfg.total_bytes == 32
        assert cfg.data_segments == 128
        assert cfg.end_start_segment == 142
        assert cfg.total_segments == 148

    def test_lower_redundancy(self):
        cfg = CodecConfig(redundancy_factor=1.5)
        assert cfg.nsym == 8
        assert cfg.total_segments == 6 + 8 + 4 * 24 + 6


class TestFrameEncoder:
    def test_layout(self):
        symbols = FrameEncoder().encode_identifier(SAMPLE)
        assert len(symbols) == 148
        assert symbols[:6] == [1, 1, 1, 0, 1, 2]
        assert symbols[6:14] == [0, 1, 2, 3, 4, 5, 6, 7]
        assert symbols[-6:] == [2, 1, 0, 1, 1, 1]

    def test_reference_identifier(self):
        symbols = FrameEncoder().encode_identifier("12345678-1234-4234-8234-123456789abc")
        assert len(symbols) == 148
        assert symbols[0:6] == [1, 1, 1, 0, 1, 2]
        assert symbols[6:14] == [0, 1, 2, 3, 4, 5, 6, 7]
        assert symbols[142:148] == [2, 1, 0, 1, 1, 1]
        assert symbols[_byte_slice(0)] == [0, 1, 0, 2]   # 0x12

    def test_data_symbols(self):
        symbols = FrameEncoder().encode_identifier(SAMPLE)
        assert symbols[_byte_slice(0)] == [0, 0, 0, 0]   # 0x00
        assert symbols[_byte_slice(1)] == [0, 1, 0, 1]   # 0x11
        assert symbols[_byte_slice(15)] == [1, 7, 1, 7]  # 0xff

    def test_high_symbols_are_binary(self):
        symbols = FrameEncoder().encode_identifier(SAMPLE)
        data = symbols[14:142]
        assert all(s in (0, 1) for s in data[0::2])
        assert all(0 <= s <= 7 for s in data[1::2])

    def test_wrong_payload_length(self):
        with pytest.raises(ValueError):
            FrameEncoder().encode(b"short")

    def test_invalid_identifier(self):
        with pytest.raises(ValueError):
            FrameEncoder().encode_identifier("xyz")


class TestFrameDecoder:
    def setup_method(self):
        self.symbols = FrameEncoder().encode_identifier(SAMPLE)
        self.decoder = FrameDecoder()

    def test_clean(self):
        result = self.decoder.decode_symbols(self.symbols)
        assert result.ok
        assert result.identifier == SAMPLE
        assert result.end_marker_matched
        assert not result.errors_corrected
        assert result.corrected_bytes == 0
        assert len(result.raw_bytes) == 32

    def test_corrects_byte_errors(self):
        symbols = list(self.symbols)
        for k in (1, 2, 3):
            symbols[_byte_slice(k)] = [0, 0, 0, 0]
        result = self.decoder.decode_symbols(symbols)
        assert result.ok
        assert result.identifier == SAMPLE
        assert result.errors_corrected
        assert result.corrected_bytes == 3

    def test_unreadable_within_capacity(self):
        symbols = list(self.symbols)
        for k in (1, 2, 3, 4):
            symbols[_byte_slice(k)] = [None] * 4
        result = self.decoder.decode_symbols(symbols)
        assert result.ok
        assert result.identifier == SAMPLE
        assert result.corrected_bytes == 4

    def test_partially_unreadable_byte(self):
        symbols = list(self.symbols)
        symbols[_byte_slice(5).start + 2] = None
        result = self.decoder.decode_symbols(symbols)
        assert result.ok
        assert result.identifier == SAMPLE

    def test_too_many_unreadable(self):
        symbols = list(self.symbols)
        for k in range(1, 10):
            symbols[_byte_slice(k)] = [None] * 4
        result = self.decoder.decode_symbols(symbols)
        assert not result.ok
        assert result.reason is FailureReason.UNREADABLE_SEGMENTS
        assert result.raw_identifier == "00000000-0000-0000-0000-aabbccddeeff"

    def test_uncorrectable(self):
        symbols = list(self.symbols)
        for k in range(1, 13):
            symbols[_byte_slice(k)] = [1, 7, 1, 7]
        result = self.decoder.decode_symbols(symbols)
        assert not result.ok
        assert result.reason is FailureReason.UNCORRECTABLE
        assert result.raw_identifier == "00ffffff-ffff-ffff-ffff-ffffffddeeff"

    def test_start_mismatch(self):
        symbols = list(self.symbols)
        symbols[0] = 7
        result = self.decoder.decode_symbols(symbols)
        assert not result.ok
        assert result.reason is FailureReason.START_MARKER_MISMATCH
        assert result.raw_identifier is None

    def test_start_unreadable(self):
        symbols = list(self.symbols)
        symbols[3] = None
        result = self.decoder.decode_symbols(symbols)
        assert result.reason is FailureReason.START_MARKER_MISMATCH

    def test_start_within_tolerance(self):
        symbols = list(self.symbols)
        symbols[:6] = [2, 2, 2, 1, 2, 3]
        assert self.decoder.decode_symbols(symbols).ok

    def test_end_mismatch_is_advisory(self):
        symbols = list(self.symbols)
        symbols[-6:] = [7] * 6
        result = self.decoder.decode_symbols(symbols)
        assert result.ok
        assert result.identifier == SAMPLE
        assert not result.end_marker_matched

    def test_end_unreadable_is_advisory(self):
        symbols = list(self.symbols)
        symbols[-6:] = [None] * 6
        result = self.decoder.decode_symbols(symbols)
        assert result.ok
        assert not result.end_marker_matched

    def test_wrong_length(self):
        with pytest.raises(ValueError):
            self.decoder.decode_symbols(self.symbols[:-1])

    def test_config_mismatch(self):
        cfg = CodecConfig(redundancy_factor=1.5)
        symbols = FrameEncoder(config=cfg).encode_identifier(SAMPLE)
        assert FrameDecoder(config=cfg).decode_symbols(symbols).identifier == SAMPLE
        with pytest.raises(ValueError):
            self.decoder.decode_symbols(symbols)
