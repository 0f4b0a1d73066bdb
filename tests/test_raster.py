import numpy as np
import pytest

from hipsmapper.config import MosaicConfig
from hipsmapper.raster import RasterBuildError, build_rasters
from hipsmapper.resolution import ResolutionError
from hipsmapper.sources.collection import ImageSourceCollection
from hipsmapper.sources.metadata import PlanisphereMetadata


@pytest.fixture
def planisphere(planisphere_png) -> ImageSourceCollection:
    return ImageSourceCollection.from_file(planisphere_png, PlanisphereMetadata)


def test_planisphere_covers_the_whole_sphere(planisphere):
    red, green, blue = build_rasters(planisphere, MosaicConfig(num_processes=1, chunk_size=100))

    assert red.nside == 8
    for raster in (red, green, blue):
        assert raster.npix == 768
        assert raster.unset_count() == 0
    # the gradient image has no zero byte
    assert red.data.min() > 0 and green.data.min() > 0 and blue.data.min() > 0

    for pixel in range(red.npix):
        color = planisphere.blended_color_at(8, pixel)
        assert (red.data[pixel], green.data[pixel], blue.data[pixel]) == color[:3]


def test_parallel_build_matches_serial(planisphere):
    serial = build_rasters(planisphere, MosaicConfig(num_processes=1, chunk_size=64))
    parallel = build_rasters(planisphere, MosaicConfig(num_processes=2, chunk_size=64))
    for expected, actual in zip(serial, parallel):
        np.testing.assert_array_equal(actual.data, expected.data)
        np.testing.assert_array_equal(actual.valid, expected.valid)


def test_max_order_caps_resolution(planisphere):
    red, _, _ = build_rasters(planisphere, MosaicConfig(max_order=2, num_processes=1))
    assert red.nside == 4


def test_empty_collection():
    with pytest.raises(ResolutionError):
        build_rasters(ImageSourceCollection(), MosaicConfig(num_processes=1))


def test_failure_aborts_the_build(planisphere, monkeypatch):
    def broken(longitude, latitude):
        raise RuntimeError("decoder exploded")

    monkeypatch.setattr(planisphere.sources[0], "colors_at", broken)
    with pytest.raises(RasterBuildError, match="decoder exploded"):
        build_rasters(planisphere, MosaicConfig(num_processes=1, chunk_size=100))
