from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import MosaicConfig
from .healpix import HealpixRaster, load_healpix_raster, save_healpix_raster
from .properties import HipsProperties
from .raster import CHANNELS, build_rasters
from .rgb import compose_rgb_tiles
from .sources.collection import ImageSourceCollection
from .tiles import TilesGeneration


@dataclass
class MosaicOutput:
    fits_files: tuple[Path, Path, Path]
    color_dir: Optional[Path] = None


def raster_paths(output_dir: Path) -> tuple[Path, Path, Path]:
    return tuple(output_dir / f"{channel.lower()}.fits" for channel in CHANNELS)


def save_rasters(
    rasters: tuple[HealpixRaster, HealpixRaster, HealpixRaster],
    output_dir: Path,
    coordsys: str = "E",
) -> tuple[Path, Path, Path]:
    paths = raster_paths(output_dir)
    for raster, path in zip(rasters, paths):
        save_healpix_raster(raster, path, coordsys=coordsys)
    return paths


def load_rasters(output_dir: Path) -> tuple[HealpixRaster, HealpixRaster, HealpixRaster]:
    return tuple(load_healpix_raster(path) for path in raster_paths(output_dir))


def labelled_properties(
    properties: Optional[HipsProperties],
    label: Optional[str] = None,
    publisher: Optional[str] = None,
) -> Optional[HipsProperties]:
    """Properties of the color HiPS, with the label and publisher given to Hipsgen."""
    overrides = {}
    if label:
        overrides["obs_title"] = label
    if publisher:
        overrides["hips_creator"] = publisher
    if not overrides:
        return properties
    return replace(properties if properties is not None else HipsProperties(), **overrides)


def run(
    collection: ImageSourceCollection,
    output_dir: Path,
    config: MosaicConfig,
    generate_tiles: bool = False,
    label: Optional[str] = None,
    publisher: Optional[str] = None,
    properties: Optional[HipsProperties] = None,
) -> MosaicOutput:
    """Build the rasters of a collection, save them and optionally tile them.

    With ``generate_tiles``, Hipsgen is run on each channel and the three
    tile trees are combined into ``output_dir/color``.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    rasters = build_rasters(collection, config)
    fits_files = save_rasters(rasters, output_dir, config.coordsys)
    output = MosaicOutput(fits_files=fits_files)
    if not generate_tiles:
        return output

    for fits_file in fits_files:
        TilesGeneration.from_file(
            fits_file,
            pixel_cut=config.pixel_cut,
            label=label,
            publisher=publisher,
            hipsgen=config.hipsgen,
        )
    if properties is None and len(collection) > 0:
        properties = collection.sources[0].metadata.properties
    properties = labelled_properties(properties, label, publisher)
    output.color_dir = compose_rgb_tiles(output_dir, properties)
    logger.info(f"HiPS written to {output.color_dir}")
    return output
