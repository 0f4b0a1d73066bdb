"""Inverse sky-to-plane projections (TAN and CAR).

Pixel coordinates are continuous: pixel ``i`` covers ``[i, i + 1)`` and
``y`` points up. The orientation of each axis is carried by the sign of the
pixel scale, the way a FITS ``CDELT`` does.
"""

from enum import Enum
from typing import Union

import numpy as np

from .sky_types import Scale, SkyDirection

ArrayLike = Union[float, np.ndarray]


class ProjectionType(Enum):
    CAR = "CAR"
    TAN = "TAN"


class ProjectionOutOfRange(Exception):
    pass


def wrap_longitude(delta: ArrayLike) -> ArrayLike:
    """Wrap a longitude difference into (-pi, pi]."""
    wrapped = np.mod(np.asarray(delta, dtype=np.float64) + np.pi, 2.0 * np.pi) - np.pi
    wrapped = np.where(wrapped <= -np.pi, np.pi, wrapped)
    if wrapped.ndim == 0:
        return float(wrapped)
    return wrapped


def cd_matrix(pixel_scale: Scale, rotation: float) -> np.ndarray:
    sx, sy = pixel_scale
    cos_r = np.cos(rotation)
    sin_r = np.sin(rotation)
    return np.array(
        [
            [sx * cos_r, abs(sy) * np.sign(sx) * sin_r],
            [-abs(sx) * np.sign(sy) * sin_r, sy * cos_r],
        ]
    )


def _plane_to_pixel(
    center_pixel: tuple[float, float],
    cd: np.ndarray,
    xi: np.ndarray,
    eta: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    (cd11, cd12), (cd21, cd22) = cd
    det = cd11 * cd22 - cd12 * cd21
    x = center_pixel[0] - (cd12 * eta - cd22 * xi) / det
    y = center_pixel[1] + (cd11 * eta - cd21 * xi) / det
    return x, y


def unproject_many(
    center_pixel: tuple[float, float],
    center_sky: SkyDirection,
    pixel_scale: Scale,
    rotation: float,
    longitude: np.ndarray,
    latitude: np.ndarray,
    projection: ProjectionType,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vectorised unprojection.

    Returns the x and y pixel coordinates and a boolean mask telling which
    directions could be projected. Entries outside the mask are meaningless.
    """
    longitude = np.asarray(longitude, dtype=np.float64)
    latitude = np.asarray(latitude, dtype=np.float64)
    lon0, lat0 = center_sky

    if projection is ProjectionType.TAN:
        dlon = longitude - lon0
        cos_lat = np.cos(latitude)
        sin_lat = np.sin(latitude)
        # cosine of the angular separation to the tangent point
        h = sin_lat * np.sin(lat0) + cos_lat * np.cos(lat0) * np.cos(dlon)
        valid = h > 0.0
        h = np.where(valid, h, 1.0)
        xi = cos_lat * np.sin(dlon) / h
        eta = (sin_lat * np.cos(lat0) - cos_lat * np.sin(lat0) * np.cos(dlon)) / h
    elif projection is ProjectionType.CAR:
        xi = np.asarray(wrap_longitude(longitude - lon0))
        eta = latitude - lat0
        valid = np.ones(np.shape(xi), dtype=bool)
    else:
        raise ValueError(f"Unsupported projection: {projection}")

    x, y = _plane_to_pixel(center_pixel, cd_matrix(pixel_scale, rotation), xi, eta)
    return x, y, valid


def unproject(
    center_pixel: tuple[float, float],
    center_sky: SkyDirection,
    pixel_scale: Scale,
    rotation: float,
    target: SkyDirection,
    projection: ProjectionType,
) -> tuple[float, float]:
    """Pixel coordinates of ``target`` in an image centred on ``center_sky``.

    Args:
        center_pixel: pixel coordinates of the projection centre
        center_sky: sky direction of the projection centre
        pixel_scale: radians per pixel along x and y (signed)
        rotation: rotation of the pixel grid, radians
        target: sky direction to project
        projection: TAN or CAR

    Returns:
        (x, y), real valued

    Raises:
        ProjectionOutOfRange: TAN target on or beyond pi/2 from the centre
    """
    x, y, valid = unproject_many(
        center_pixel,
        center_sky,
        pixel_scale,
        rotation,
        np.array([target.longitude]),
        np.array([target.latitude]),
        projection,
    )
    if not valid[0]:
        raise ProjectionOutOfRange(
            f"{target} is not projectable around {center_sky} ({projection.value})"
        )
    return float(x[0]), float(y[0])
