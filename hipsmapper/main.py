from pathlib import Path
from typing import Optional

import click

from .config import MosaicConfig
from .logger import logger, set_log_level
from .pipeline import load_rasters, run
from .raster import RasterBuildError
from .resolution import MAX_ORDER, ResolutionError
from .rgb import compose_rgb_tiles
from .sources.collection import BlendingPolicy, ImageSourceCollection, ProviderFactory
from .sources.metadata import MastPDSMetadata, MetadataError, PlanisphereMetadata
from .tiles import TilesGenerationError
from .utils import get_num_processes
from .visualization import hammer_plot

PROVIDERS: dict[str, ProviderFactory] = {
    "pds": MastPDSMetadata,
    "planisphere": PlanisphereMetadata,
}

FATAL_ERRORS = (
    MetadataError,
    ResolutionError,
    RasterBuildError,
    TilesGenerationError,
    OSError,
    ValueError,
)


def mosaic_options(function):
    options = [
        click.option("--max-order", default=MAX_ORDER, show_default=True, type=click.IntRange(0, MAX_ORDER), help="Highest HEALPix order of the output"),
        click.option("--blending", type=click.Choice([p.value for p in BlendingPolicy]), default=BlendingPolicy.AVERAGE_ALL.value, show_default=True, help="How overlapping images are combined"),
        click.option("--num-processes", default=get_num_processes(), show_default=True, type=click.IntRange(min=1), help="Number of worker processes"),
        click.option("--chunk-size", default=65536, show_default=True, type=click.IntRange(min=1), help="Sky pixels per work unit"),
        click.option("--tiles/--no-tiles", default=False, show_default=True, help="Run Hipsgen and compose the RGB tiles"),
        click.option("--hipsgen", default="hipsgen", show_default=True, help="Command starting Hipsgen"),
        click.option("--pixel-cut", default="0 255", show_default=True, help="Hipsgen display range"),
        click.option("--label", default=None, help="HiPS label"),
        click.option("--publisher", default=None, help="HiPS publisher"),
    ]
    for option in reversed(options):
        function = option(function)
    return function


def _config(max_order, blending, num_processes, chunk_size, hipsgen, pixel_cut) -> MosaicConfig:
    return MosaicConfig(
        max_order=max_order,
        blending=BlendingPolicy(blending),
        num_processes=num_processes,
        chunk_size=chunk_size,
        pixel_cut=pixel_cut,
        hipsgen=hipsgen,
    )


def _run(collection, output_dir, config, tiles, label, publisher) -> None:
    try:
        output = run(collection, output_dir, config, tiles, label, publisher)
    except FATAL_ERRORS as e:
        logger.error(f"Mosaic failed: {e}")
        raise click.ClickException(str(e)) from e
    for path in output.fits_files:
        click.echo(str(path))
    if output.color_dir is not None:
        click.echo(str(output.color_dir))


@click.group()
@click.option("--log-level", default="INFO", show_default=True, type=click.Choice(["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def main(log_level: str) -> None:
    """Resample calibrated images onto HEALPix maps and HiPS tiles."""
    set_log_level(log_level)


@main.command()
@click.argument("folder", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("output-dir", type=click.Path(file_okay=False, path_type=Path))
@click.option("--provider", type=click.Choice(sorted(PROVIDERS)), default="pds", show_default=True, help="Where the image calibration comes from")
@click.option("--extension", default="png", show_default=True, help="Extension of the image files")
@mosaic_options
def mosaic(
    folder: Path,
    output_dir: Path,
    provider: str,
    extension: str,
    max_order: int,
    blending: str,
    num_processes: int,
    chunk_size: int,
    tiles: bool,
    hipsgen: str,
    pixel_cut: str,
    label: Optional[str],
    publisher: Optional[str],
) -> None:
    """
    Mosaic every image of FOLDER into OUTPUT_DIR.

    Images that cannot be calibrated or decoded are skipped.
    """
    config = _config(max_order, blending, num_processes, chunk_size, hipsgen, pixel_cut)
    collection = ImageSourceCollection.from_folder(
        folder, PROVIDERS[provider], extension, config.blending, config.index_order
    )
    if len(collection) == 0:
        raise click.ClickException(f"No usable image in {folder}")
    _run(collection, output_dir, config, tiles, label, publisher)


@main.command()
@click.argument("image-path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("output-dir", type=click.Path(file_okay=False, path_type=Path))
@mosaic_options
def planisphere(
    image_path: Path,
    output_dir: Path,
    max_order: int,
    blending: str,
    num_processes: int,
    chunk_size: int,
    tiles: bool,
    hipsgen: str,
    pixel_cut: str,
    label: Optional[str],
    publisher: Optional[str],
) -> None:
    """
    Resample one whole-sphere plate carree image into OUTPUT_DIR.
    """
    config = _config(max_order, blending, num_processes, chunk_size, hipsgen, pixel_cut)
    try:
        collection = ImageSourceCollection.from_file(
            image_path, PlanisphereMetadata, config.blending, config.index_order
        )
    except FATAL_ERRORS as e:
        raise click.ClickException(f"Cannot load {image_path}: {e}") from e
    _run(collection, output_dir, config, tiles, label or image_path.stem, publisher)


@main.command()
@click.argument("hips-root", type=click.Path(exists=True, file_okay=False, path_type=Path))
def rgb(hips_root: Path) -> None:
    """
    Combine HIPS_ROOT/{r,g,b}.fitsHiPS into HIPS_ROOT/color.
    """
    try:
        color_dir = compose_rgb_tiles(hips_root)
    except (OSError, ValueError) as e:
        logger.error(f"RGB composition failed: {e}")
        raise click.ClickException(str(e)) from e
    click.echo(str(color_dir))


@main.command()
@click.argument("output-dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Image file of the plot (shown interactively if not set)")
@click.option("--max-points", default=200000, show_default=True, type=click.IntRange(min=1), help="Maximum number of plotted pixels")
def preview(output_dir: Path, output: Optional[Path], max_points: int) -> None:
    """
    Plot the r.fits, g.fits and b.fits rasters of OUTPUT_DIR.
    """
    try:
        rasters = load_rasters(output_dir)
    except (OSError, ValueError, KeyError) as e:
        logger.error(f"Cannot load rasters from {output_dir}: {e}")
        raise click.ClickException(str(e)) from e
    hammer_plot(rasters, output, max_points)


if __name__ == "__main__":
    main()
