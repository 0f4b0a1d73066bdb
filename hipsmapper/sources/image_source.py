import math
from typing import Optional

import numpy as np
from loguru import logger
from multipledispatch import dispatch

from ..healpix import pix2sky
from ..image import ImageData, PixelOutOfBounds
from ..projection import unproject_many
from ..sky_types import Color, Pixel, Scale, Size, SkyDirection
from .metadata import ImageMetadataProvider, MetadataError
from .spatial_index import DEFAULT_INDEX_ORDER, SpatialIndex

_INTEGER = (int, np.integer)


def _check_size(value, name: str, file) -> Size:
    try:
        width, height = (int(v) for v in value)
    except (TypeError, ValueError) as e:
        raise MetadataError(f"{file}: invalid {name} {value!r}") from e
    if width <= 0 or height <= 0:
        raise MetadataError(f"{file}: {name} must be positive, got {width}x{height}")
    return Size((width, height))


class ImageSource:
    """
    One calibrated image, able to tell the color it sees in a sky direction.

    Frames used to go from the sky to the decoded image:

    - detector frame: continuous (u, v), u from the left edge and v from the
      bottom edge of the full detector. The pointing is at the detector
      centre. Longitude grows toward -u (the sky is seen from inside the
      sphere), latitude toward +v.
    - sub-image frame: the downlinked window, starting at ``first_sample``
      (counted from the left and from the top of the detector).
    - decoded image frame: the sub-image centred in the decoded buffer.
      Column ``floor(x)``, row ``height - 1 - floor(y)``.

    ``validated_pixel_range`` is ``(x_min, x_max, y_min, y_max)``, in the
    decoded image frame with y upward, and excludes the padding around the
    sub-image when the decoded image is larger than it.
    """

    def __init__(
        self,
        metadata: ImageMetadataProvider,
        image: Optional[ImageData] = None,
        index_order: int = DEFAULT_INDEX_ORDER,
    ) -> None:
        """
        Args:
            metadata: calibration of the image
            image: already decoded image, decoded from ``metadata.file`` if None
            index_order: HEALPix order of the spatial index

        Raises:
            MetadataError: if the calibration is missing or invalid
            OSError, ValueError: if the image cannot be decoded
        """
        self.metadata = metadata
        self.file = metadata.file
        self.projection = metadata.projection
        self.instrument_id = metadata.instrument_id
        self.distortion = metadata.distortion
        self.index_order = index_order

        self.pointing = self._check_pointing(metadata.pointing)
        self.fov = self._check_fov(metadata.fov)
        first_sample = metadata.first_sample
        if first_sample[0] < 0 or first_sample[1] < 0:
            raise MetadataError(f"{self.file}: negative first sample {first_sample}")
        self.first_sample = Pixel((int(first_sample[0]), int(first_sample[1])))

        self.image = image if image is not None else ImageData.from_file(self.file)

        self.detector_size, sub_image_size = self._resolve_sizes(
            metadata.detector_size, metadata.sub_image_size
        )
        self._sub_image_corrected = False
        self._apply_sub_image_size(sub_image_size)
        logger.debug(
            f"Image source {self.file.name}: pointing {self.pointing}, "
            f"scale {self.scale}, detector {self.detector_size}, sub-image {self.sub_image_size}"
        )

    def __repr__(self) -> str:
        return f"ImageSource({self.file.name!r}, {self.projection.value}, scale={self.scale})"

    def _check_pointing(self, pointing: Optional[SkyDirection]) -> SkyDirection:
        if pointing is None:
            raise MetadataError(f"{self.file}: pointing is unknown")
        longitude, latitude = (float(v) for v in pointing)
        if not (math.isfinite(longitude) and math.isfinite(latitude)):
            raise MetadataError(f"{self.file}: invalid pointing {pointing}")
        return SkyDirection(longitude, latitude)

    def _check_fov(self, fov: Optional[tuple[float, float]]) -> tuple[float, float]:
        if fov is None:
            raise MetadataError(f"{self.file}: field of view is unknown")
        fov_x, fov_y = (float(v) for v in fov)
        if not (math.isfinite(fov_x) and math.isfinite(fov_y)) or fov_x <= 0 or fov_y <= 0:
            raise MetadataError(f"{self.file}: invalid field of view {fov}")
        return (fov_x, fov_y)

    def _resolve_sizes(
        self, detector: Optional[Size], sub_image: Optional[Size]
    ) -> tuple[Size, Size]:
        if detector is None and sub_image is None:
            if not self.metadata.image_size_fallback:
                raise MetadataError(
                    f"{self.file}: neither detector nor sub-image size is known"
                )
            logger.debug(f"{self.file.name}: using decoded image size {self.image.size}")
            detector = sub_image = self.image.size
        elif sub_image is None:
            # the whole detector was downlinked
            sub_image = detector
        elif detector is None:
            detector = sub_image
        return (
            _check_size(detector, "detector size", self.file),
            _check_size(sub_image, "sub-image size", self.file),
        )

    def _apply_sub_image_size(self, sub_image_size: Size) -> None:
        self.sub_image_size = sub_image_size
        self.scale = Scale(
            (self.fov[0] / sub_image_size[0], self.fov[1] / sub_image_size[1])
        )
        self.validated_pixel_range = self._compute_validated_range()
        self.distortion_margin = self._distortion_margin()
        self.index = self._build_index()

    def set_sub_image_size(self, size: Size) -> None:
        """Correct the sub-image size. Allowed once.

        Scale, spatial index and validated pixel range are recomputed.
        """
        if self._sub_image_corrected:
            raise MetadataError(f"{self.file}: sub-image size was already corrected")
        size = _check_size(size, "sub-image size", self.file)
        logger.info(f"{self.file.name}: sub-image size {self.sub_image_size} -> {size}")
        self._sub_image_corrected = True
        self._apply_sub_image_size(size)

    @property
    def center_pixel(self) -> tuple[float, float]:
        return (0.5 * self.detector_size[0], 0.5 * self.detector_size[1])

    def _padding(self) -> tuple[float, float]:
        return (
            0.5 * (self.image.width - self.sub_image_size[0]),
            0.5 * (self.image.height - self.sub_image_size[1]),
        )

    def _compute_validated_range(self) -> tuple[int, int, int, int]:
        pad_x, pad_y = self._padding()
        sub_width, sub_height = self.sub_image_size
        return (
            max(0, math.ceil(pad_x)),
            min(self.image.width, math.floor(pad_x + sub_width)),
            max(0, math.ceil(pad_y)),
            min(self.image.height, math.floor(pad_y + sub_height)),
        )

    def _distortion_margin(self) -> float:
        """Pixels added around the sub-image before the distortion correction."""
        if self.distortion is None:
            return 0.0
        return self.distortion.margin_pixels(
            0.5 * self.sub_image_size[0], 0.5 * self.sub_image_size[1]
        )

    def _build_index(self) -> SpatialIndex:
        sub_width, sub_height = self.sub_image_size
        # distance, in pixels, from the detector centre to the sub-image edges
        half_width = abs(self.first_sample[0] + 0.5 * sub_width - 0.5 * self.detector_size[0]) + 0.5 * sub_width
        half_height = abs(self.first_sample[1] + 0.5 * sub_height - 0.5 * self.detector_size[1]) + 0.5 * sub_height
        half_width += self.distortion_margin
        half_height += self.distortion_margin
        radius = math.hypot(half_width * self.scale[0], half_height * self.scale[1])
        return SpatialIndex(self.pointing, radius, self.index_order)

    def _image_coordinates(
        self, longitude: np.ndarray, latitude: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """(columns, rows, mask) of the decoded pixels seen in each direction."""
        scale_x, scale_y = self.scale
        u, v, valid = unproject_many(
            self.center_pixel,
            self.pointing,
            Scale((-scale_x, scale_y)),
            0.0,
            longitude,
            latitude,
            self.projection,
        )

        first_x, first_y = self.first_sample
        sub_width, sub_height = self.sub_image_size
        detector_height = self.detector_size[1]
        # bottom edge of the sub-image, from the bottom of the detector
        bottom = detector_height - first_y - sub_height

        if self.distortion is not None:
            # the radial polynomial folds back far from the lens centre: only
            # the sub-image widened by the index margin is corrected
            margin = self.distortion_margin
            valid = (
                valid
                & (u >= first_x - margin)
                & (u <= first_x + sub_width + margin)
                & (v >= bottom - margin)
                & (v <= bottom + sub_height + margin)
            )
            u, v = self.distortion.correct(
                u, v, first_x + 0.5 * sub_width, bottom + 0.5 * sub_height
            )

        pad_x, pad_y = self._padding()
        x = u - first_x + pad_x
        y = v - bottom + pad_y

        x_min, x_max, y_min, y_max = self.validated_pixel_range
        valid = valid & (x >= x_min) & (x < x_max) & (y >= y_min) & (y < y_max)

        columns = np.floor(np.where(valid, x, 0.0)).astype(np.int64)
        rows = self.image.height - 1 - np.floor(np.where(valid, y, 0.0)).astype(np.int64)
        return columns, rows, valid

    def colors_at(
        self, longitude: np.ndarray, latitude: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]:
        """RGBA colors, shape (N, 4), and the mask of covered directions."""
        columns, rows, valid = self._image_coordinates(
            np.atleast_1d(longitude), np.atleast_1d(latitude)
        )
        colors = np.zeros((valid.size, 4), dtype=np.uint8)
        if valid.any():
            colors[valid] = self.image.pixels(columns[valid], rows[valid])
        return colors, valid

    @dispatch(SkyDirection)
    def color_at(self, direction: SkyDirection) -> Optional[Color]:
        columns, rows, valid = self._image_coordinates(
            np.array([direction.longitude]), np.array([direction.latitude])
        )
        if not valid[0]:
            return None
        try:
            return self.image.pixel(int(columns[0]), int(rows[0]))
        except PixelOutOfBounds as e:
            logger.debug(f"{self.file.name}: {e}")
            return None

    @dispatch(_INTEGER, _INTEGER)
    def color_at(self, nside: int, pixel: int) -> Optional[Color]:
        longitude, latitude = pix2sky(nside, pixel)
        return self.color_at(SkyDirection(float(longitude), float(latitude)))

    def is_inside(self, order: int, pixel: int) -> bool:
        """True if the NESTED ``pixel`` at ``order`` intersects the spatial index."""
        return bool(self.index.contains(order, np.array([pixel]))[0])

    def inside_mask(self, order: int, pixels: np.ndarray) -> np.ndarray:
        return self.index.contains(order, pixels)
