"""Decode diagnostic: analyze an image to identify decode issues.

Runs the decode pipeline step-by-step and shows exactly where failures
occur: row selection, run scan, INDEX calibration, or symbol reading.

Usage:
    python tools/decode_diagnose.py shot.png
    python tools/decode_diagnose.py shot.png --row 12
    python tools/decode_diagnose.py shot.png --expect 12345678-1234-4234-8234-123456789abc
"""

import argparse

from colorborder.visual.calibrate import find_index_runs, scan_runs
from colorborder.visual.capture import load_image
from colorborder.visual.codec import CodecConfig, FrameEncoder, symbols_to_byte
from colorborder.visual.decoder import DecoderConfig, RowDecoder
from colorborder.visual.rows import (
    ImageStripDecoder,
    row_alphabet_counts,
    row_sampler,
    strip_extent,
)


def diagnose_image(path: str, cfg: CodecConfig, dcfg: DecoderConfig,
                   row: int | None = None, expect: str | None = None) -> bool:
    """Run the decode pipeline step-by-step and print diagnostics."""
    image = load_image(path)
    print(f"  Image size: {image.shape[1]}x{image.shape[0]}")

    # Step 1: Row selection
    counts = row_alphabet_counts(image, dcfg.row_tolerance)
    if row is None:
        row = int(counts.argmax())
    top = sorted(range(len(counts)), key=lambda y: -counts[y])[:5]
    print(f"  Top rows: {[(y, int(counts[y])) for y in top]}")
    print(f"  Using row y={row} ({int(counts[row])} alphabet pixels)")

    extent = strip_extent(image, row, dcfg.row_tolerance)
    if extent is None:
        print("  FAIL: no alphabet pixels on this row.")
        return False
    start_x, end_x = extent
    print(f"  Strip extent: x={start_x}..{end_x} ({end_x - start_x} px, "
          f"need >= {cfg.total_segments})")

    # Step 2: Run scan
    sample = row_sampler(image, row)
    runs = scan_runs(sample, start_x, end_x - start_x, dcfg.scan_tolerance,
                     dcfg.midpoint)
    print(f"  Runs: {len(runs)}")
    print("  First 24: " + " ".join(f"{r.index}:{r.length}" for r in runs[:24]))

    # Step 3: Calibration
    pos = find_index_runs(runs, dcfg.min_index_matches)
    if pos is None:
        print("  FAIL: INDEX block (0..7) not found.")
        return False
    decoder = RowDecoder(cfg, dcfg)
    cal = decoder.calibrate_row(sample, start_x, end_x - start_x)
    print(f"  INDEX at run {pos}: lengths {[r.length for r in cal.index_runs]}")
    print(f"  Unit width: {cal.unit_width:.2f} px, encoding start x={cal.encoding_start_x:.1f}")
    print("  Thresholds: R={:.1f} G={:.1f} B={:.1f}".format(*cal.thresholds))

    # Step 4: Symbol readings
    symbols = decoder.read_frame(sample, cal)
    print(f"  START read: {symbols[:6]}  END read: {symbols[cfg.end_start_segment:]}")
    unreadable = sum(1 for s in symbols if s is None)
    if unreadable:
        print(f"  {unreadable} unreadable segment(s)")

    if expect:
        expected = FrameEncoder(config=cfg).encode_identifier(expect)
        wrong = [i for i, (a, b) in enumerate(zip(symbols, expected)) if a != b]
        print(f"  Symbols: {len(symbols) - len(wrong)}/{len(symbols)} correct")
        bad_bytes = sorted({(i - cfg.data_start_segment) // 4 for i in wrong
                            if cfg.data_start_segment <= i < cfg.end_start_segment})
        for b in bad_bytes[:20]:
            seg = cfg.data_start_segment + 4 * b
            got = symbols[seg:seg + 4]
            want = expected[seg:seg + 4]
            got_v = "??" if None in got else f"{symbols_to_byte(got):02x}"
            print(f"    byte {b:2d}: expected {symbols_to_byte(want):02x} "
                  f"{want} got {got_v} {got}")
        print(f"  {len(bad_bytes)} byte error(s), correctable: {cfg.nsym // 2}")

    # Step 5: Full decode
    result = ImageStripDecoder(cfg, dcfg).decode_image(image, row=row)
    if result.ok:
        print(f"\n  DECODE SUCCESS: {result.identifier} "
              f"(end marker {'ok' if result.end_marker_matched else 'mismatch'}, "
              f"{result.corrected_bytes} byte(s) corrected)")
        return True
    print(f"\n  DECODE FAILED: {result.reason.value}")
    if result.raw_identifier:
        print(f"  Unverified reading: {result.raw_identifier}")
    return False


def main():
    parser = argparse.ArgumentParser(description="Decode diagnostic tool")
    parser.add_argument("images", nargs="+", help="Image file(s) to analyze")
    parser.add_argument("--row", type=int, default=None, help="Scan row (default: best)")
    parser.add_argument("--redundancy", type=float, default=2.0,
                        help="Redundancy factor (default: 2.0)")
    parser.add_argument("--single-row", action="store_true",
                        help="Disable multi-row averaging")
    parser.add_argument("--expect", type=str, default=None,
                        help="Known identifier, to report per-byte errors")
    args = parser.parse_args()

    cfg = CodecConfig(redundancy_factor=args.redundancy)
    dcfg = DecoderConfig(multirow=not args.single_row)
    print(f"Config: redundancy={cfg.redundancy_factor}, nsym={cfg.nsym}, "
          f"segments={cfg.total_segments}")

    for path in args.images:
        print(f"\n{'=' * 60}")
        print(f"Analyzing: {path}")
        print(f"{'=' * 60}")
        diagnose_image(path, cfg, dcfg, row=args.row, expect=args.expect)


if __name__ == "__main__":
    main()
