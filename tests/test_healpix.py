import healpy as hp
import numpy as np
import pytest
from astropy.io import fits

from hipsmapper.healpix import (
    HealpixRaster,
    load_healpix_raster,
    nside_to_order,
    num_pixels,
    pix2sky,
    save_healpix_raster,
    sky2pix,
)


def test_pix2sky_sky2pix():
    nside = 16
    pixels = np.arange(num_pixels(nside))
    longitude, latitude = pix2sky(nside, pixels)
    assert np.all(np.abs(latitude) < 0.5 * np.pi)
    np.testing.assert_array_equal(sky2pix(nside, longitude, latitude), pixels)


def test_pix2sky_is_nested():
    theta, phi = hp.pix2ang(4, 17, nest=True)
    longitude, latitude = pix2sky(4, 17)
    assert longitude == pytest.approx(phi)
    assert latitude == pytest.approx(0.5 * np.pi - theta)


def test_nside_to_order():
    assert nside_to_order(1024) == 10
    with pytest.raises(ValueError):
        nside_to_order(12)


def test_empty_raster():
    raster = HealpixRaster.empty(4, "R")
    assert raster.npix == 192
    assert raster.data.dtype == np.uint8
    assert raster.unset_count() == 192
    assert raster.order == 2


def test_save_and_load(tmp_path):
    raster = HealpixRaster.empty(2, "G")
    raster.data[:10] = np.arange(10)
    raster.valid[:10] = True
    path = tmp_path / "out" / "g.fits"

    save_healpix_raster(raster, path, coordsys="C")

    with fits.open(path) as hdul:
        header = hdul[1].header
        assert header["PIXTYPE"] == "HEALPIX"
        assert header["ORDERING"] == "NESTED"
        assert header["NSIDE"] == 2
        assert header["FIRSTPIX"] == 0
        assert header["LASTPIX"] == 47
        assert header["INDXSCHM"] == "IMPLICIT"
        assert header["COORDSYS"] == "C"
        assert "DATE" in header

    loaded = load_healpix_raster(path)
    assert loaded.nside == 2
    assert loaded.channel == "G"
    np.testing.assert_array_equal(loaded.data, raster.data)
    np.testing.assert_array_equal(loaded.valid, raster.valid)
    # pixel 0 holds a valid zero
    assert loaded.valid[0] and loaded.data[0] == 0


def test_load_without_validity(tmp_path):
    data = np.zeros(48, dtype=np.uint8)
    data[5] = 9
    hdu = fits.BinTableHDU.from_columns([fits.Column(name="data", format="B", array=data)])
    hdu.header["NSIDE"] = 2
    hdu.header["ORDERING"] = "NESTED"
    path = tmp_path / "legacy.fits"
    fits.HDUList([fits.PrimaryHDU(), hdu]).writeto(path)

    loaded = load_healpix_raster(path)
    assert loaded.valid.sum() == 1
    assert loaded.valid[5]


def test_load_rejects_ring(tmp_path):
    hdu = fits.BinTableHDU.from_columns(
        [fits.Column(name="data", format="B", array=np.zeros(48, dtype=np.uint8))]
    )
    hdu.header["NSIDE"] = 2
    hdu.header["ORDERING"] = "RING"
    path = tmp_path / "ring.fits"
    fits.HDUList([fits.PrimaryHDU(), hdu]).writeto(path)
    with pytest.raises(ValueError):
        load_healpix_raster(path)
