import math
from pathlib import Path

import numpy as np
import pytest

from hipsmapper.healpix import pix2sky, sky2pix
from hipsmapper.image import ImageData
from hipsmapper.projection import ProjectionType
from hipsmapper.sky_types import Color, SkyDirection
from hipsmapper.sources.distortion import distortion_for
from hipsmapper.sources.image_source import ImageSource
from hipsmapper.sources.metadata import MetadataError, PlanisphereMetadata, StaticMetadata

from .conftest import DEGREE, gradient_image, make_source

POINTING = SkyDirection(1.0, 0.2)


def expected(image: np.ndarray, row: int, column: int) -> Color:
    return Color(*(int(v) for v in image[row, column]), 255)


def test_center_direction_hits_center_pixel():
    image = gradient_image(4, 4)
    source = make_source(image, pointing=POINTING)
    assert source.scale == pytest.approx((0.01, 0.01))
    assert source.center_pixel == (2.0, 2.0)
    assert source.color_at(POINTING) == expected(image, 1, 2)


def test_orientation():
    image = gradient_image(4, 4)
    source = make_source(image, pointing=POINTING)
    # longitude grows to the left, latitude to the top
    upper_left = SkyDirection(POINTING.longitude + 0.015, POINTING.latitude + 0.015)
    lower_right = SkyDirection(POINTING.longitude - 0.015, POINTING.latitude - 0.015)
    assert source.color_at(upper_left) == expected(image, 0, 0)
    assert source.color_at(lower_right) == expected(image, 3, 3)


def test_uncovered_directions():
    source = make_source(gradient_image(4, 4), pointing=POINTING)
    assert source.color_at(SkyDirection(POINTING.longitude + 0.5, POINTING.latitude)) is None
    # beyond the TAN hemisphere
    assert source.color_at(SkyDirection(POINTING.longitude + math.pi, -POINTING.latitude)) is None


def test_healpix_overload_matches_direction():
    image = gradient_image(4, 4)
    source = make_source(image, pointing=POINTING)
    nside = 4096
    pixel = int(sky2pix(nside, POINTING.longitude, POINTING.latitude))
    longitude, latitude = pix2sky(nside, pixel)
    direct = source.color_at(SkyDirection(float(longitude), float(latitude)))
    assert direct is not None
    assert source.color_at(nside, pixel) == direct
    assert source.color_at(nside, np.int64(pixel)) == direct


def test_vectorised_colors_match_scalar():
    image = gradient_image(8, 6)
    source = make_source(image, pointing=POINTING, fov=(0.08, 0.06))
    longitude = POINTING.longitude + np.linspace(-0.05, 0.05, 23)
    latitude = POINTING.latitude + np.linspace(-0.04, 0.04, 23)
    colors, valid = source.colors_at(longitude, latitude)
    assert valid.any() and not valid.all()
    for lon, lat, color, ok in zip(longitude, latitude, colors, valid):
        scalar = source.color_at(SkyDirection(float(lon), float(lat)))
        if ok:
            assert scalar == Color(*(int(c) for c in color))
        else:
            assert scalar is None


@pytest.mark.parametrize("projection", [ProjectionType.TAN, ProjectionType.CAR])
def test_spatial_index_covers_every_hit(projection):
    source = make_source(
        gradient_image(40, 30),
        pointing=SkyDirection(2.0, -0.4),
        fov=(0.2, 0.15),
        detector_size=(64, 48),
        sub_image_size=(40, 30),
        first_sample=(20, 4),
        projection=projection,
        index_order=8,
    )
    longitude, latitude = np.meshgrid(
        2.0 + np.linspace(-0.4, 0.4, 80), -0.4 + np.linspace(-0.3, 0.3, 60)
    )
    longitude, latitude = longitude.ravel(), latitude.ravel()
    _, valid = source.colors_at(longitude, latitude)
    assert valid.sum() > 100

    for order in (6, 8, 12):
        pixels = sky2pix(2 ** order, longitude[valid], latitude[valid])
        assert source.inside_mask(order, pixels).all()
    pixel = int(sky2pix(2 ** 12, longitude[valid][0], latitude[valid][0]))
    assert source.is_inside(12, pixel)


def test_distorted_source_index_covers_every_hit():
    # full Mastcam left frame, 15 degrees wide
    source = make_source(
        gradient_image(1648, 1200),
        pointing=SkyDirection(0.0, 0.0),
        fov=(15.0 * DEGREE, 15.0 * DEGREE * 1200 / 1648),
        distortion=distortion_for("MAST_LEFT"),
    )
    longitude, latitude = np.meshgrid(np.linspace(-1.2, 1.2, 601), np.linspace(-0.6, 0.6, 301))
    longitude, latitude = longitude.ravel(), latitude.ravel()
    _, valid = source.colors_at(longitude, latitude)
    assert valid.sum() > 100

    # far directions are not folded back into the image
    assert np.all(np.abs(longitude[valid]) < source.index.radius)
    for order in (6, 10):
        pixels = sky2pix(2 ** order, longitude[valid], latitude[valid])
        assert source.inside_mask(order, pixels).all()
    assert source.color_at(SkyDirection(0.6, 0.0)) is None


def test_validated_range_excludes_padding():
    image = gradient_image(6, 6)
    source = make_source(
        image,
        pointing=SkyDirection(0.0, 0.0),
        fov=(0.04, 0.04),
        sub_image_size=(4, 4),
        projection=ProjectionType.CAR,
    )
    assert source.validated_pixel_range == (1, 5, 1, 5)
    # half a pixel inside the left edge of the sub-image
    assert source.color_at(SkyDirection(0.015, 0.0)) == expected(image, 2, 1)
    # half a pixel into the padding
    assert source.color_at(SkyDirection(0.025, 0.0)) is None


def test_sub_image_larger_than_decoded_image():
    image = gradient_image(2, 2)
    source = make_source(
        image,
        pointing=SkyDirection(0.0, 0.0),
        fov=(0.04, 0.04),
        sub_image_size=(4, 4),
        projection=ProjectionType.CAR,
    )
    assert source.validated_pixel_range == (0, 2, 0, 2)
    assert source.color_at(SkyDirection(0.0, 0.0)) == expected(image, 0, 1)
    assert source.color_at(SkyDirection(-0.015, 0.0)) is None


def test_sizes_default_to_each_other():
    image = gradient_image(4, 4)
    only_detector = make_source(image, detector_size=(8, 8))
    assert only_detector.sub_image_size == (8, 8)
    only_sub_image = make_source(image, sub_image_size=(4, 4))
    assert only_sub_image.detector_size == (4, 4)


def test_missing_sizes():
    metadata = StaticMetadata(Path("no_size.png"), pointing=POINTING, fov=(0.1, 0.1))
    with pytest.raises(MetadataError):
        ImageSource(metadata, image=ImageData(gradient_image(4, 4)))

    metadata.image_size_fallback = True
    source = ImageSource(metadata, image=ImageData(gradient_image(5, 3)))
    assert source.detector_size == (5, 3)
    assert source.sub_image_size == (5, 3)


@pytest.mark.parametrize(
    "pointing, fov, first_sample",
    [
        (None, (0.1, 0.1), (0, 0)),
        (SkyDirection(math.nan, 0.0), (0.1, 0.1), (0, 0)),
        (POINTING, None, (0, 0)),
        (POINTING, (0.0, 0.1), (0, 0)),
        (POINTING, (0.1, math.inf), (0, 0)),
        (POINTING, (0.1, 0.1), (-1, 0)),
    ],
)
def test_invalid_calibration(pointing, fov, first_sample):
    metadata = StaticMetadata(
        Path("bad.png"),
        pointing=pointing,
        fov=fov,
        sub_image_size=(4, 4),
        first_sample=first_sample,
    )
    with pytest.raises(MetadataError):
        ImageSource(metadata, image=ImageData(gradient_image(4, 4)))


def test_set_sub_image_size_once():
    source = make_source(gradient_image(4, 4), pointing=POINTING)
    radius = source.index.radius

    with pytest.raises(MetadataError):
        source.set_sub_image_size((0, 4))

    source.set_sub_image_size((8, 8))
    assert source.sub_image_size == (8, 8)
    assert source.scale == pytest.approx((0.005, 0.005))
    assert source.validated_pixel_range == (0, 4, 0, 4)
    assert source.index.radius == pytest.approx(math.hypot(0.03, 0.03))
    assert source.index.radius != pytest.approx(radius)

    with pytest.raises(MetadataError):
        source.set_sub_image_size((4, 4))


def test_planisphere_from_file(planisphere_png):
    source = ImageSource(PlanisphereMetadata(planisphere_png))
    assert source.projection is ProjectionType.CAR
    assert source.detector_size == (64, 32)
    assert source.sub_image_size == (64, 32)
    assert source.scale == pytest.approx((math.pi / 32, math.pi / 32))
    assert source.index.full_sky


def test_undecodable_file(tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"this is not a png")
    with pytest.raises((OSError, ValueError)):
        ImageSource(PlanisphereMetadata(path))
