"""CLI entry point for colorborder.

Commands:
    colorborder encode  — Render an identifier into a bordered PNG
    colorborder decode  — Recover the identifier from a screenshot/photo
    colorborder info    — Show frame geometry for the current config
    colorborder init    — Write a default config file
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from .config import DEFAULT_CONFIG_PATH, AppConfig, load_config, save_config


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.option("--config", "-c", type=click.Path(), default=None,
              help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, default=False,
              help="Enable verbose/debug logging")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """colorborder: identifiers encoded as a calibrated color border."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["config"] = load_config(config)
    ctx.obj["verbose"] = verbose
    cfg: AppConfig = ctx.obj["config"]
    _setup_logging("DEBUG" if verbose else cfg.log_level)


@cli.command()
@click.argument("identifier", required=False)
@click.option("--output", "-o", type=click.Path(dir_okay=False), required=True,
              help="PNG file to write")
@click.option("--width", "-W", type=int, default=None,
              help="Image width in pixels")
@click.option("--height", "-H", type=int, default=None,
              help="Image height in pixels")
@click.option("--border-px", "-b", type=int, default=None,
              help="Border thickness in pixels")
@click.option("--border-radius", "-r", type=int, default=None,
              help="Corner radius in pixels (0 = square)")
@click.pass_context
def encode(ctx: click.Context, identifier: str | None, output: str,
           width: int | None, height: int | None, border_px: int | None,
           border_radius: int | None) -> None:
    """Render IDENTIFIER (random if omitted) into an image border."""
    from ..visual.capture import save_image
    from ..visual.identifier import identifier_to_bytes, random_identifier
    from ..visual.renderer import BorderRenderer

    config: AppConfig = ctx.obj["config"]
    if border_px is not None:
        config.border_px = border_px
    if border_radius is not None:
        config.border_radius = border_radius
    width = width or config.image_width
    height = height or config.image_height

    if identifier is None:
        identifier = random_identifier()
    try:
        identifier_to_bytes(identifier)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="IDENTIFIER")

    codec = config.to_codec_config()
    usable = width - 2 * config.border_radius
    if usable < codec.total_segments:
        raise click.ClickException(
            f"Straight border length {usable}px is below the "
            f"{codec.total_segments} segments needed")

    renderer = BorderRenderer(codec, config.to_renderer_config())
    image = renderer.render(identifier, width, height)
    save_image(output, image)
    logging.getLogger("colorborder.cli").info(
        "Wrote %s (%dx%d, %d px/segment)", output, width, height,
        usable // codec.total_segments)
    click.echo(identifier.lower())


@cli.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.option("--row", "-y", type=int, default=None,
              help="Scan this row instead of searching for the best one")
@click.option("--multirow/--single-row", default=None,
              help="Average samples across adjacent rows")
@click.option("--show-unverified", is_flag=True, default=False,
              help="On failure, print the raw (unverified) reading")
@click.pass_context
def decode(ctx: click.Context, image: str, row: int | None,
           multirow: bool | None, show_unverified: bool) -> None:
    """Decode the identifier carried by IMAGE's border."""
    from ..visual.capture import load_image
    from ..visual.rows import ImageStripDecoder

    config: AppConfig = ctx.obj["config"]
    if multirow is not None:
        config.multirow = multirow
    logger = logging.getLogger("colorborder.cli")

    pixels = load_image(image)
    if row is not None and not 0 <= row < pixels.shape[0]:
        raise click.BadParameter(f"row {row} outside image height "
                                 f"{pixels.shape[0]}", param_hint="--row")

    decoder = ImageStripDecoder(config.to_codec_config(),
                                config.to_decoder_config())
    result = decoder.decode_image(pixels, row=row)

    if result.ok:
        click.echo(result.identifier)
        if not result.end_marker_matched:
            logger.warning("END marker mismatch (identifier still verified)")
        if result.errors_corrected:
            logger.info("Corrected %d byte error(s)", result.corrected_bytes)
        return

    click.echo(f"Decode failed: {result.reason.value}", err=True)
    if show_unverified and result.raw_identifier is not None:
        click.echo(f"Unverified reading: {result.raw_identifier}", err=True)
    ctx.exit(1)


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Show the frame geometry implied by the configuration."""
    config: AppConfig = ctx.obj["config"]
    codec = config.to_codec_config()
    click.echo(f"Redundancy factor: {codec.redundancy_factor}")
    click.echo(f"Payload bytes:     {codec.payload_bytes}")
    click.echo(f"Parity bytes:      {codec.nsym} "
               f"(corrects up to {codec.nsym // 2} byte errors)")
    click.echo(f"Total segments:    {codec.total_segments}")
    click.echo(f"Min strip width:   {codec.total_segments} px")


@cli.command()
@click.option("--force", "-f", is_flag=True, default=False,
              help="Overwrite an existing config file")
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """Write the default configuration file."""
    path = Path(ctx.obj["config_path"] or DEFAULT_CONFIG_PATH)
    if path.exists() and not force:
        raise click.ClickException(f"{path} exists (use --force to overwrite)")
    save_config(AppConfig(), path)
    click.echo(f"Configuration saved to {path}")


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
