from pathlib import Path
from typing import Optional

import healpy as hp
import matplotlib.pyplot as plt
import numpy as np
from loguru import logger

from .healpix import HealpixRaster


def hammer_plot(
    rasters: tuple[HealpixRaster, HealpixRaster, HealpixRaster],
    path: Optional[Path] = None,
    max_points: int = 200000,
    title: str = "HEALPix RGB Data",
) -> None:
    """Scatter the covered pixels of an RGB raster set on a Hammer projection.

    At most ``max_points`` pixels are drawn, evenly subsampled.
    """
    red, green, blue = rasters
    nside = red.nside
    indices = np.flatnonzero(red.valid & green.valid & blue.valid)
    if indices.size > max_points:
        indices = indices[:: int(np.ceil(indices.size / max_points))]
    logger.info(f"Plotting {indices.size} pixels (nside {nside})")

    colors = np.stack([red.data[indices], green.data[indices], blue.data[indices]], axis=1)
    colors = colors.astype(np.float32) / 255.0

    theta, phi = hp.pix2ang(nside, indices, nest=True)
    # hammer axes expect longitude in [-pi, pi]
    longitude = np.where(phi > np.pi, phi - 2.0 * np.pi, phi)
    latitude = 0.5 * np.pi - theta

    fig = plt.figure(figsize=(12, 6))
    ax = fig.add_subplot(111, projection="hammer")
    ax.scatter(longitude, latitude, c=colors, s=1, marker=".")
    ax.grid(True)
    ax.set_title(title)

    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Saving plot to {path}")
        fig.savefig(str(path), bbox_inches="tight", dpi=150)
        plt.close(fig)
    else:
        plt.show()
