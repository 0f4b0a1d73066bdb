import healpy as hp
import numpy as np

from hipsmapper.healpix import sky2pix
from hipsmapper.sky_types import SkyDirection
from hipsmapper.sources.spatial_index import SpatialIndex


def test_contains_finer_and_coarser_orders():
    center = SkyDirection(1.0, 0.3)
    index = SpatialIndex(center, 0.2, order=4)
    assert not index.full_sky
    assert len(index) > 0

    for order in (0, 2, 4, 7, 12):
        nside = hp.order2nside(order)
        inside = sky2pix(nside, center.longitude, center.latitude)
        antipode = sky2pix(nside, center.longitude + np.pi, -center.latitude)
        mask = index.contains(order, np.array([inside, antipode]))
        assert mask.tolist() == [True, False]


def test_cells_are_sorted_and_unique():
    index = SpatialIndex(SkyDirection(0.0, -1.4), 0.3, order=5)
    assert np.all(np.diff(index.cells) > 0)


def test_coarse_pixel_covering_the_disc():
    index = SpatialIndex(SkyDirection(2.0, 0.0), 0.05, order=8)
    # every order 0 base pixel either holds cells or is rejected
    mask = index.contains(0, np.arange(12))
    assert mask.sum() >= 1
    parents = np.unique(index.cells >> (2 * 8))
    np.testing.assert_array_equal(np.flatnonzero(mask), parents)


def test_full_sky():
    index = SpatialIndex(SkyDirection(0.0, 0.0), 4.0, order=10)
    assert index.full_sky
    assert index.cells.size == 0
    assert index.contains(3, np.arange(768)).all()
