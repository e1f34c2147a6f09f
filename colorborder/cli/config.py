"""AppConfig and its TOML file (~/.config/colorborder/config.toml)."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from ..visual.codec import CodecConfig
from ..visual.decoder import DecoderConfig
from ..visual.ecc import DEFAULT_REDUNDANCY_FACTOR
from ..visual.renderer import RendererConfig

DEFAULT_CONFIG_PATH = Path("~/.config/colorborder/config.toml").expanduser()

_SCALARS = {"int": int, "float": float, "str": str, "bool": bool}


@dataclass
class AppConfig:
    """Top-level application configuration."""

    # Codec (must match between encoder and decoder)
    redundancy_factor: float = DEFAULT_REDUNDANCY_FACTOR

    # Renderer
    image_width: int = 1000
    image_height: int = 200
    border_px: int = 3
    border_radius: int = 0

    # Decoder
    scan_tolerance: float = 25.0
    segment_tolerance: float = 20.0
    row_tolerance: float = 20.0
    min_segment_samples: int = 1
    multirow: bool = True
    multirow_radius: int = 2

    # Logging
    log_level: str = "INFO"

    def to_codec_config(self) -> CodecConfig:
        return CodecConfig(redundancy_factor=self.redundancy_factor)

    def to_renderer_config(self) -> RendererConfig:
        return RendererConfig(
            border_px=self.border_px,
            border_radius=self.border_radius,
        )

    def to_decoder_config(self) -> DecoderConfig:
        return DecoderConfig(
            scan_tolerance=self.scan_tolerance,
            segment_tolerance=self.segment_tolerance,
            row_tolerance=self.row_tolerance,
            min_segment_samples=self.min_segment_samples,
            multirow=self.multirow,
            multirow_radius=self.multirow_radius,
        )


def load_config(path: Path | str | None = None) -> AppConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if the file doesn't exist.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
    path = Path(path)

    config = AppConfig()

    if not path.exists():
        return config

    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]

    with open(path, "rb") as f:
        data = tomllib.load(f)

    # Section names are for humans only; keys are unique across sections.
    flat = _flatten_toml(data)

    for fld in fields(AppConfig):
        if fld.name in flat:
            setattr(config, fld.name, _coerce(fld.type, flat[fld.name]))

    return config


def save_config(config: AppConfig, path: Path | str | None = None) -> None:
    """Save configuration to a TOML file."""
    if path is None:
        path = DEFAULT_CONFIG_PATH
    path = Path(path)

    path.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        "# colorborder configuration",
        "",
        "[codec]",
        f"redundancy_factor = {float(config.redundancy_factor)}",
        "",
        "[renderer]",
        f"image_width = {config.image_width}",
        f"image_height = {config.image_height}",
        f"border_px = {config.border_px}",
        f"border_radius = {config.border_radius}",
        "",
        "[decoder]",
        f"scan_tolerance = {float(config.scan_tolerance)}",
        f"segment_tolerance = {float(config.segment_tolerance)}",
        f"row_tolerance = {float(config.row_tolerance)}",
        f"min_segment_samples = {config.min_segment_samples}",
        f"multirow = {'true' if config.multirow else 'false'}",
        f"multirow_radius = {config.multirow_radius}",
        "",
        "[logging]",
        f'log_level = "{config.log_level}"',
        "",
    ]

    with open(path, "w") as f:
        f.write("\n".join(lines))


def _coerce(type_name: Any, value: Any) -> Any:
    """Convert a TOML value to the field's declared scalar type."""
    target = _SCALARS.get(type_name if isinstance(type_name, str)
                          else getattr(type_name, "__name__", ""))
    return target(value) if target is not None else value


def _flatten_toml(data: dict) -> dict:
    """Flatten nested TOML sections, keeping leaf key names."""
    result = {}
    for key, value in data.items():
        if isinstance(value, dict):
            result.update(_flatten_toml(value))
        else:
            result[key] = value
    return result
