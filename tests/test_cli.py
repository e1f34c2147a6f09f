"""CLI tests via click's CliRunner."""

import re

import numpy as np
import pytest
from click.testing import CliRunner

from colorborder.cli.main import cli
from colorborder.visual.capture import load_image, save_image

SAMPLE = "00112233-4455-6677-8899-aabbccddeeff"
UUID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_path(tmp_path):
    # Point at a file that does not exist so user config never leaks in.
    return str(tmp_path / "config.toml")


class TestEncodeDecode:
    def test_roundtrip(self, runner, config_path, tmp_path):
        out = str(tmp_path / "border.png")
        result = runner.invoke(cli, ["-c", config_path, "encode", SAMPLE, "-o", out])
        assert result.exit_code == 0, result.output
        assert SAMPLE in result.output

        result = runner.invoke(cli, ["-c", config_path, "decode", out])
        assert result.exit_code == 0, result.output
        assert result.output.strip().splitlines()[-1] == SAMPLE

    def test_random_identifier(self, runner, config_path, tmp_path):
        out = str(tmp_path / "border.png")
        result = runner.invoke(cli, ["-c", config_path, "encode", "-o", out])
        assert result.exit_code == 0, result.output
        ident = UUID_RE.search(result.output).group(0)

        result = runner.invoke(cli, ["-c", config_path, "decode", out])
        assert ident in result.output

    def test_size_and_radius(self, runner, config_path, tmp_path):
        out = tmp_path / "border.png"
        result = runner.invoke(cli, ["-c", config_path, "encode", SAMPLE,
                                     "-o", str(out), "-W", "640", "-H", "320",
                                     "-r", "16", "-b", "4"])
        assert result.exit_code == 0, result.output
        assert load_image(out).shape == (320, 640, 3)

        result = runner.invoke(cli, ["-c", config_path, "decode", str(out),
                                     "--single-row"])
        assert result.exit_code == 0, result.output
        assert SAMPLE in result.output

    def test_forced_row(self, runner, config_path, tmp_path):
        out = str(tmp_path / "border.png")
        runner.invoke(cli, ["-c", config_path, "encode", SAMPLE, "-o", out])
        result = runner.invoke(cli, ["-c", config_path, "decode", out, "-y", "1"])
        assert result.exit_code == 0, result.output
        assert SAMPLE in result.output

    def test_row_out_of_range(self, runner, config_path, tmp_path):
        out = str(tmp_path / "border.png")
        runner.invoke(cli, ["-c", config_path, "encode", SAMPLE, "-o", out])
        result = runner.invoke(cli, ["-c", config_path, "decode", out, "-y", "5000"])
        assert result.exit_code == 2

    def test_invalid_identifier(self, runner, config_path, tmp_path):
        out = str(tmp_path / "border.png")
        result = runner.invoke(cli, ["-c", config_path, "encode", "zzz", "-o", out])
        assert result.exit_code == 2

    def test_too_narrow(self, runner, config_path, tmp_path):
        out = str(tmp_path / "border.png")
        result = runner.invoke(cli, ["-c", config_path, "encode", SAMPLE,
                                     "-o", out, "-W", "100"])
        assert result.exit_code == 1
        assert "segments" in result.output

    def test_decode_failure(self, runner, config_path, tmp_path):
        path = tmp_path / "blank.png"
        save_image(path, np.full((100, 400, 3), 255, dtype=np.uint8))
        result = runner.invoke(cli, ["-c", config_path, "decode", str(path)])
        assert result.exit_code == 1
        assert "no code detected" in result.output

    def test_show_unverified(self, runner, config_path, tmp_path):
        out = tmp_path / "border.png"
        runner.invoke(cli, ["-c", config_path, "encode", SAMPLE, "-o", str(out)])
        # Wipe 12 data bytes so the read is uncorrectable.
        image = load_image(out)
        for k in range(1, 13):
            seg = 14 + 4 * k
            image[0:3, seg * 6:(seg + 4) * 6] = (133, 133, 133)
        save_image(out, image)
        result = runner.invoke(cli, ["-c", config_path, "decode", str(out),
                                     "--show-unverified"])
        assert result.exit_code == 1
        assert "Unverified reading" in result.output


class TestConfigCommands:
    def test_info(self, runner, config_path):
        result = runner.invoke(cli, ["-c", config_path, "info"])
        assert result.exit_code == 0
        assert "Total segments:    148" in result.output
        assert "Parity bytes:      16" in result.output

    def test_init(self, runner, config_path):
        result = runner.invoke(cli, ["-c", config_path, "init"])
        assert result.exit_code == 0
        result = runner.invoke(cli, ["-c", config_path, "init"])
        assert result.exit_code == 1
        result = runner.invoke(cli, ["-c", config_path, "init", "--force"])
        assert result.exit_code == 0

    def test_config_changes_geometry(self, runner, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[codec]\nredundancy_factor = 1.5\n")
        result = runner.invoke(cli, ["-c", str(path), "info"])
        assert "Total segments:    116" in result.output
