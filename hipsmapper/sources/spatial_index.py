import healpy as hp
import numpy as np
from loguru import logger

from ..sky_types import SkyDirection

# Nside 1024
DEFAULT_INDEX_ORDER = 10


class SpatialIndex:
    """
    Coarse coverage of an image: the NESTED cells, at a fixed order, of a
    disc around the image centre.

    A disc of radius pi or more covers the whole sphere and is stored as a
    flag rather than as a cell list.
    """

    def __init__(self, center: SkyDirection, radius: float, order: int = DEFAULT_INDEX_ORDER) -> None:
        self.center = center
        self.radius = float(radius)
        self.order = order
        self.nside = hp.order2nside(order)
        self.full_sky = self.radius >= np.pi
        if self.full_sky:
            self.cells = np.empty(0, dtype=np.int64)
        else:
            vector = hp.ang2vec(0.5 * np.pi - center.latitude, center.longitude)
            cells = hp.query_disc(self.nside, vector, self.radius, inclusive=True, nest=True)
            self.cells = np.unique(np.asarray(cells, dtype=np.int64))
        logger.debug(
            f"Spatial index at order {order}: "
            f"{'full sky' if self.full_sky else f'{self.cells.size} cells'}"
        )

    def __len__(self) -> int:
        if self.full_sky:
            return hp.order2npix(self.order)
        return int(self.cells.size)

    def contains(self, order: int, pixels: np.ndarray) -> np.ndarray:
        """Mask of the NESTED ``pixels`` at ``order`` intersecting the index."""
        pixels = np.asarray(pixels, dtype=np.int64)
        if self.full_sky:
            return np.ones(pixels.shape, dtype=bool)
        if self.cells.size == 0:
            return np.zeros(pixels.shape, dtype=bool)

        if order >= self.order:
            parents = pixels >> (2 * (order - self.order))
            position = np.searchsorted(self.cells, parents)
            position = np.minimum(position, self.cells.size - 1)
            return self.cells[position] == parents

        shift = 2 * (self.order - order)
        first_child = pixels << shift
        last_child = (pixels + 1) << shift
        return np.searchsorted(self.cells, last_child) > np.searchsorted(self.cells, first_child)
