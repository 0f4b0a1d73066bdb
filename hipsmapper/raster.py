import math
import multiprocessing as mp
from typing import Optional

import numpy as np
from loguru import logger

from .config import MosaicConfig
from .healpix import HEALPixNside, HealpixRaster, num_pixels
from .resolution import ResolutionError, select_nside
from .sources.collection import ImageSourceCollection
from .utils import log_progress

CHANNELS = ("R", "G", "B")

# Set in each worker by the pool initializer, so that the collection is
# pickled once per worker instead of once per chunk.
_worker_collection: Optional[ImageSourceCollection] = None


class RasterBuildError(Exception):
    pass


def _init_worker(collection: ImageSourceCollection) -> None:
    global _worker_collection
    _worker_collection = collection


def _fill_chunk(args: tuple[HEALPixNside, int, int]) -> tuple[int, np.ndarray, np.ndarray]:
    nside, start, stop = args
    pixels = np.arange(start, stop, dtype=np.int64)
    colors, valid = _worker_collection.blended_colors(nside, pixels)
    return start, colors, valid


def select_raster_nside(collection: ImageSourceCollection, max_order: int) -> HEALPixNside:
    if len(collection) == 0:
        raise ResolutionError("No image source: the resolution cannot be computed")
    scale_arcsec = math.degrees(collection.diagonal_scale) * 3600.0
    return select_nside(scale_arcsec, max_order)


def build_rasters(
    collection: ImageSourceCollection, config: MosaicConfig
) -> tuple[HealpixRaster, HealpixRaster, HealpixRaster]:
    """Resample the collection onto three full-sky NESTED rasters (R, G, B).

    Args:
        collection: image sources, read only during the build
        config: max_order, chunk_size and num_processes are used

    Returns:
        the red, green and blue rasters, with their validity masks

    Raises:
        ResolutionError: if the collection is empty or its scale is invalid
        RasterBuildError: if anything fails while filling the rasters
    """
    global _worker_collection

    nside = select_raster_nside(collection, config.max_order)
    npix = num_pixels(nside)
    rasters = tuple(HealpixRaster.empty(nside, channel) for channel in CHANNELS)
    chunk_size = max(1, config.chunk_size)
    chunks = [(nside, start, min(start + chunk_size, npix)) for start in range(0, npix, chunk_size)]
    num_processes = max(1, config.num_processes)

    logger.info(
        f"Building {len(CHANNELS)} rasters of {npix} pixels (nside {nside}) from "
        f"{len(collection)} images, {len(chunks)} chunks, {num_processes} process(es)"
    )

    done = 0
    percent = 0

    def store(result: tuple[int, np.ndarray, np.ndarray]) -> None:
        nonlocal done, percent
        start, colors, valid = result
        stop = start + valid.size
        for index, raster in enumerate(rasters):
            raster.data[start:stop] = colors[:, index]
            raster.valid[start:stop] = valid
        done += valid.size
        percent = log_progress(done, npix, percent, label="Raster build")

    try:
        if num_processes == 1 or len(chunks) == 1:
            _worker_collection = collection
            try:
                for chunk in chunks:
                    store(_fill_chunk(chunk))
            finally:
                _worker_collection = None
        else:
            with mp.Pool(
                processes=num_processes,
                initializer=_init_worker,
                initargs=(collection,),
            ) as pool:
                for result in pool.imap(_fill_chunk, chunks):
                    store(result)
    except Exception as e:
        logger.error(f"Raster build failed: {e}")
        raise RasterBuildError(f"Raster build failed: {e}") from e

    covered = int(np.count_nonzero(rasters[0].valid))
    logger.info(f"Rasters built: {covered}/{npix} pixels covered")
    return rasters
