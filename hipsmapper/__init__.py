"""hipsmapper - resample calibrated images onto HEALPix maps and HiPS tiles"""

__version__ = "0.1.0"

from .config import MosaicConfig
from .healpix import HealpixRaster, load_healpix_raster, save_healpix_raster
from .projection import ProjectionOutOfRange, ProjectionType, unproject
from .raster import RasterBuildError, build_rasters
from .resolution import ResolutionError, select_nside
from .sky_types import Color, SkyDirection
from .sources import (
    BlendingPolicy,
    ImageSource,
    ImageSourceCollection,
    MastPDSMetadata,
    MetadataError,
    PlanisphereMetadata,
    StaticMetadata,
)
from .tiles import TilesGeneration, TilesGenerationError

__all__ = [
    'BlendingPolicy',
    'Color',
    'HealpixRaster',
    'ImageSource',
    'ImageSourceCollection',
    'MastPDSMetadata',
    'MetadataError',
    'MosaicConfig',
    'PlanisphereMetadata',
    'ProjectionOutOfRange',
    'ProjectionType',
    'RasterBuildError',
    'ResolutionError',
    'SkyDirection',
    'StaticMetadata',
    'TilesGeneration',
    'TilesGenerationError',
    'build_rasters',
    'load_healpix_raster',
    'save_healpix_raster',
    'select_nside',
    'unproject',
]
