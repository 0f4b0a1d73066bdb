"""
Providers of the calibration of a source image.

An :class:`ImageMetadataProvider` tells where a camera was pointing, how
wide its field of view was and which window of its detector ended up in
the image file. Each instrument or file format gets its own provider.
"""

import math
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from ..projection import ProjectionType
from ..properties import HipsProperties
from ..sky_types import Pixel, Size, SkyDirection
from .distortion import DistortionModel, distortion_for
from .pds import Label, LabelSyntaxError, find_last, label_path_for, read_label


class MetadataError(Exception):
    pass


class ImageMetadataProvider(ABC):
    """Calibration of one image file.

    Angles are in radians, sizes are (width, height) in pixels.
    ``None`` means "not known"; :class:`ImageSource` decides which defaults
    apply.
    """

    # When both sub-image and detector sizes are unknown, use the size of
    # the decoded image instead of failing.
    image_size_fallback: bool = False

    def __init__(self, file: Path) -> None:
        self.file = Path(file)

    @property
    @abstractmethod
    def pointing(self) -> Optional[SkyDirection]:
        ...

    @property
    @abstractmethod
    def fov(self) -> Optional[tuple[float, float]]:
        ...

    @property
    def sub_image_size(self) -> Optional[Size]:
        return None

    @property
    def detector_size(self) -> Optional[Size]:
        return None

    @property
    def first_sample(self) -> Pixel:
        return Pixel((0, 0))

    @property
    def instrument_id(self) -> Optional[str]:
        return None

    @property
    def distortion(self) -> Optional[DistortionModel]:
        return None

    @property
    def projection(self) -> ProjectionType:
        return ProjectionType.TAN

    @property
    def properties(self) -> HipsProperties:
        return HipsProperties()


class StaticMetadata(ImageMetadataProvider):
    """Calibration given explicitly, for images without embedded metadata."""

    def __init__(
        self,
        file: Path,
        pointing: Optional[SkyDirection],
        fov: Optional[tuple[float, float]],
        sub_image_size: Optional[Size] = None,
        detector_size: Optional[Size] = None,
        first_sample: Pixel = Pixel((0, 0)),
        projection: ProjectionType = ProjectionType.TAN,
        distortion: Optional[DistortionModel] = None,
        instrument_id: Optional[str] = None,
        properties: Optional[HipsProperties] = None,
        image_size_fallback: bool = False,
    ) -> None:
        super().__init__(file)
        self._pointing = pointing
        self._fov = fov
        self._sub_image_size = sub_image_size
        self._detector_size = detector_size
        self._first_sample = first_sample
        self._projection = projection
        self._distortion = distortion
        self._instrument_id = instrument_id
        self._properties = properties if properties is not None else HipsProperties()
        self.image_size_fallback = image_size_fallback

    @property
    def pointing(self) -> Optional[SkyDirection]:
        return self._pointing

    @property
    def fov(self) -> Optional[tuple[float, float]]:
        return self._fov

    @property
    def sub_image_size(self) -> Optional[Size]:
        return self._sub_image_size

    @property
    def detector_size(self) -> Optional[Size]:
        return self._detector_size

    @property
    def first_sample(self) -> Pixel:
        return self._first_sample

    @property
    def instrument_id(self) -> Optional[str]:
        return self._instrument_id

    @property
    def distortion(self) -> Optional[DistortionModel]:
        return self._distortion

    @property
    def projection(self) -> ProjectionType:
        return self._projection

    @property
    def properties(self) -> HipsProperties:
        return self._properties


class PlanisphereMetadata(ImageMetadataProvider):
    """A whole-sphere plate carree image: 2 pi wide, pi high."""

    image_size_fallback = True

    def __init__(
        self,
        file: Path,
        pointing: SkyDirection = SkyDirection(0.0, 0.0),
        properties: Optional[HipsProperties] = None,
    ) -> None:
        super().__init__(file)
        self._pointing = pointing
        self._properties = properties if properties is not None else HipsProperties(
            obs_title=self.file.stem,
            dataproduct_type="image",
            dataproduct_subtype="color",
        )

    @property
    def pointing(self) -> SkyDirection:
        return self._pointing

    @property
    def fov(self) -> tuple[float, float]:
        return (2.0 * math.pi, math.pi)

    @property
    def projection(self) -> ProjectionType:
        return ProjectionType.CAR

    @property
    def properties(self) -> HipsProperties:
        return self._properties


class MastPDSMetadata(ImageMetadataProvider):
    """
    Calibration of an MSL Mastcam image, read from the PDS3 label next to it.

    The label gives the mast articulation angles (azimuth, elevation from
    the zenith), the field of view in degrees, the detector size and the
    window of the detector that was downlinked.
    """

    def __init__(self, file: Path, properties: Optional[HipsProperties] = None) -> None:
        super().__init__(file)
        label_path = label_path_for(self.file)
        if label_path is None:
            raise MetadataError(f"No PDS label found next to {self.file}")
        try:
            self.label: Label = read_label(label_path)
        except (OSError, LabelSyntaxError) as e:
            logger.error(f"Failed to read PDS label {label_path}: {e}")
            raise MetadataError(f"Cannot read PDS label {label_path}: {e}") from e
        self._properties = properties if properties is not None else HipsProperties(
            obs_regime="Optical",
            dataproduct_type="image",
            dataproduct_subtype="color",
            hips_frame="horizontalLocal",
        )

    def _block(self, name: str) -> Label:
        block = self.label.get(name)
        if not isinstance(block, dict):
            return {}
        return block

    def _value(self, block: str, key: str) -> Any:
        return find_last(self._block(block), key)

    def _number(self, block: str, key: str) -> Optional[float]:
        value = self._value(block, key)
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise MetadataError(f"{self.file}: {block}.{key} is not a number: {value!r}") from e

    def _size(self, block: str, width_key: str, height_key: str) -> Optional[Size]:
        width = self._number(block, width_key)
        height = self._number(block, height_key)
        if width is None or height is None:
            return None
        return Size((int(width), int(height)))

    @property
    def pointing(self) -> Optional[SkyDirection]:
        angles = self._value("RSM_ARTICULATION_STATE_PARMS", "ARTICULATION_DEVICE_ANGLE")
        if angles is None:
            return None
        if not isinstance(angles, list) or len(angles) < 2:
            raise MetadataError(f"{self.file}: malformed ARTICULATION_DEVICE_ANGLE {angles!r}")
        try:
            azimuth, elevation = float(angles[0]), float(angles[1])
        except (TypeError, ValueError) as e:
            raise MetadataError(f"{self.file}: malformed ARTICULATION_DEVICE_ANGLE {angles!r}") from e
        return SkyDirection(azimuth, elevation - 0.5 * math.pi)

    @property
    def fov(self) -> Optional[tuple[float, float]]:
        horizontal = self._number("INSTRUMENT_STATE_PARMS", "HORIZONTAL_FOV")
        vertical = self._number("INSTRUMENT_STATE_PARMS", "VERTICAL_FOV")
        if horizontal is None or vertical is None:
            return None
        return (math.radians(horizontal), math.radians(vertical))

    @property
    def sub_image_size(self) -> Optional[Size]:
        return self._size("IMAGE_REQUEST_PARMS", "LINE_SAMPLES", "LINES")

    @property
    def detector_size(self) -> Optional[Size]:
        return self._size("INSTRUMENT_STATE_PARMS", "MSL:DETECTOR_SAMPLES", "DETECTOR_LINES")

    @property
    def first_sample(self) -> Pixel:
        # 1-based in the label
        x = self._number("IMAGE_REQUEST_PARMS", "FIRST_LINE_SAMPLE")
        y = self._number("IMAGE_REQUEST_PARMS", "FIRST_LINE")
        return Pixel((int(x) - 1 if x is not None else 0, int(y) - 1 if y is not None else 0))

    @property
    def instrument_id(self) -> Optional[str]:
        value = self.label.get("INSTRUMENT_ID")
        return None if value is None else str(value)

    @property
    def distortion(self) -> Optional[DistortionModel]:
        return distortion_for(self.instrument_id)

    @property
    def properties(self) -> HipsProperties:
        return self._properties
