import math

from loguru import logger

from .healpix import HEALPixNside

# HEALPix double precision limit
MAX_ORDER = 29


class ResolutionError(Exception):
    pass


def select_order(pixel_size_arcsec: float, max_order: int = MAX_ORDER) -> int:
    """HEALPix order oversampling a source pixel of the given angular size.

    The natural Nside for a pixel of angular side ``s`` is
    ``sqrt(4 pi / 12) / s``; the order is ``1 + floor(log2(nside))``, clamped
    to ``[0, max_order]``.

    Raises:
        ResolutionError: if the pixel size is not a positive finite number
    """
    if not math.isfinite(pixel_size_arcsec) or pixel_size_arcsec <= 0:
        raise ResolutionError(f"Invalid pixel size: {pixel_size_arcsec} arcsec")
    if not 0 <= max_order <= MAX_ORDER:
        raise ResolutionError(f"max_order must be in [0, {MAX_ORDER}], got {max_order}")
    pixel_size = math.radians(pixel_size_arcsec / 3600.0)
    nside_natural = math.sqrt(4.0 * math.pi / 12.0) / pixel_size
    order = 1 + math.floor(math.log2(min(nside_natural, 2.0 ** 62)))
    return min(max(order, 0), max_order)


def select_nside(pixel_size_arcsec: float, max_order: int = MAX_ORDER) -> HEALPixNside:
    order = select_order(pixel_size_arcsec, max_order)
    nside = HEALPixNside(1 << order)
    logger.info(f"Pixel size {pixel_size_arcsec:.3f} arcsec -> order {order} (nside {nside})")
    return nside
