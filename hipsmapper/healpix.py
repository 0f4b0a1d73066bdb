from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import NewType

import healpy as hp
import numpy as np
from astropy.io import fits
from loguru import logger

HEALPixIndex = NewType("HEALPixIndex", int)
HEALPixNside = NewType("HEALPixNside", int)

VALIDITY_EXTENSION = "VALIDITY"


def num_pixels(nside: HEALPixNside) -> int:
    return hp.nside2npix(nside)


def nside_to_order(nside: HEALPixNside) -> int:
    if not hp.isnsideok(nside, nest=True):
        raise ValueError(f"Invalid NESTED nside: {nside}")
    return hp.nside2order(nside)


def pix2sky(nside: HEALPixNside, pixels: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """(longitude, latitude) in radians of NESTED pixel centres."""
    theta, phi = hp.pix2ang(nside, pixels, nest=True)
    return phi, 0.5 * np.pi - theta


def sky2pix(nside: HEALPixNside, longitude: np.ndarray, latitude: np.ndarray) -> np.ndarray:
    """NESTED pixel containing each (longitude, latitude) direction."""
    return hp.ang2pix(nside, 0.5 * np.pi - np.asarray(latitude), np.asarray(longitude), nest=True)


@dataclass
class HealpixRaster:
    """One channel of a full-sky NESTED map of bytes.

    ``valid`` tells which pixels received a value; an invalid pixel holds 0.
    """

    nside: HEALPixNside
    data: np.ndarray
    valid: np.ndarray
    channel: str = ""

    @classmethod
    def empty(cls, nside: HEALPixNside, channel: str = "") -> "HealpixRaster":
        npix = num_pixels(nside)
        return cls(
            nside=nside,
            data=np.zeros(npix, dtype=np.uint8),
            valid=np.zeros(npix, dtype=bool),
            channel=channel,
        )

    @property
    def npix(self) -> int:
        return int(self.data.shape[0])

    @property
    def order(self) -> int:
        return nside_to_order(self.nside)

    def unset_count(self) -> int:
        return int(self.npix - np.count_nonzero(self.valid))


def save_healpix_raster(
    raster: HealpixRaster,
    output_path: Path,
    coordsys: str = "E",
    author: str = "hipsmapper",
    overwrite: bool = True,
) -> None:
    """Write a raster as a HEALPix binary table (one byte per row).

    The validity mask goes to a second extension named ``VALIDITY``.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Saving HEALPix raster (nside {raster.nside}) to: {output_path}")

    data_hdu = fits.BinTableHDU.from_columns(
        [fits.Column(name="data", format="B", array=raster.data)]
    )
    header = data_hdu.header
    header["PIXTYPE"] = ("HEALPIX", "HEALPIX pixelisation")
    header["ORDERING"] = ("NESTED", "Pixel ordering scheme, either RING or NESTED")
    header["NSIDE"] = (int(raster.nside), "Resolution parameter for HEALPIX")
    header["ORDER"] = (raster.order, "Resolution order for HEALPIX")
    header["FIRSTPIX"] = (0, "First pixel # (0 based)")
    header["LASTPIX"] = (raster.npix - 1, "Last pixel # (0 based)")
    header["INDXSCHM"] = ("IMPLICIT", "Indexing: IMPLICIT or EXPLICIT")
    header["OBJECT"] = ("FULLSKY", "Sky coverage, either FULLSKY or PARTIAL")
    header["COORDSYS"] = (coordsys, "Pixelisation coordinate system")
    if raster.channel:
        header["CHANNEL"] = (raster.channel, "Color channel")
    header["AUTHOR"] = author
    header["ORIGIN"] = "hipsmapper"
    header["DATE"] = (
        datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S"),
        "File creation date (UTC)",
    )

    valid_hdu = fits.BinTableHDU.from_columns(
        [fits.Column(name="valid", format="L", array=raster.valid)],
        name=VALIDITY_EXTENSION,
    )
    fits.HDUList([fits.PrimaryHDU(), data_hdu, valid_hdu]).writeto(
        output_path, overwrite=overwrite
    )
    logger.info(f"Saved HEALPix raster to: {output_path}")


def load_healpix_raster(path: Path) -> HealpixRaster:
    logger.info(f"Loading HEALPix raster from: {path}")
    with fits.open(path) as hdul:
        header = hdul[1].header
        if header.get("ORDERING", "NESTED") != "NESTED":
            raise ValueError(f"{path}: only NESTED ordering is supported")
        nside = HEALPixNside(int(header["NSIDE"]))
        data = np.array(hdul[1].data["data"], dtype=np.uint8).ravel()
        if VALIDITY_EXTENSION in hdul:
            valid = np.array(hdul[VALIDITY_EXTENSION].data["valid"], dtype=bool).ravel()
        else:
            valid = data != 0
        channel = header.get("CHANNEL", "")
    if data.shape[0] != num_pixels(nside):
        raise ValueError(f"{path}: {data.shape[0]} values for nside {nside}")
    logger.info(f"Loaded HEALPix raster from: {path}")
    return HealpixRaster(nside=nside, data=data, valid=valid, channel=channel)
