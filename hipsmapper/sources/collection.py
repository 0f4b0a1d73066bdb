import math
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

import numpy as np
from loguru import logger
from multipledispatch import dispatch

from ..healpix import nside_to_order, pix2sky
from ..sky_types import Color, Scale, SkyDirection
from .image_source import ImageSource
from .metadata import ImageMetadataProvider, MetadataError
from .spatial_index import DEFAULT_INDEX_ORDER

_INTEGER = (int, np.integer)

ProviderFactory = Callable[[Path], ImageMetadataProvider]


class BlendingPolicy(Enum):
    """How overlapping images are combined in one sky pixel."""

    # integer mean of every image covering the pixel
    AVERAGE_ALL = "average"
    # first covering image, in insertion order
    FIRST_MATCH = "first"


class ImageSourceCollection:
    """
    Insertion-ordered image sources, blended into one color per direction.

    ``finest_scale`` is the component-wise minimum of the pixel scales of
    the members, ``(inf, inf)`` when empty.
    """

    def __init__(
        self,
        sources: Optional[Iterable[ImageSource]] = None,
        blending: BlendingPolicy = BlendingPolicy.AVERAGE_ALL,
    ) -> None:
        self.sources: list[ImageSource] = list(sources) if sources is not None else []
        self.blending = blending
        self._finest_scale = self.compute_finest_scale()

    def __len__(self) -> int:
        return len(self.sources)

    def __iter__(self) -> Iterator[ImageSource]:
        return iter(self.sources)

    def add(self, source: ImageSource) -> None:
        self.sources.append(source)
        self._finest_scale = Scale(
            (
                min(self._finest_scale[0], source.scale[0]),
                min(self._finest_scale[1], source.scale[1]),
            )
        )

    def compute_finest_scale(self) -> Scale:
        """Full rescan of the members' scales."""
        scale_x, scale_y = math.inf, math.inf
        for source in self.sources:
            scale_x = min(scale_x, source.scale[0])
            scale_y = min(scale_y, source.scale[1])
        return Scale((scale_x, scale_y))

    @property
    def finest_scale(self) -> Scale:
        return self._finest_scale

    @property
    def diagonal_scale(self) -> float:
        return math.hypot(*self._finest_scale)

    def _blend(self, candidates: Iterable[ImageSource], direction: SkyDirection) -> Optional[Color]:
        total = [0, 0, 0, 0]
        matches = 0
        for source in candidates:
            color = source.color_at(direction)
            if color is None:
                continue
            total = [t + c for t, c in zip(total, color)]
            matches += 1
            if self.blending is BlendingPolicy.FIRST_MATCH:
                break
        if matches == 0:
            return None
        return Color(*(t // matches for t in total))

    @dispatch(SkyDirection)
    def blended_color_at(self, direction: SkyDirection) -> Optional[Color]:
        return self._blend(self.sources, direction)

    @dispatch(_INTEGER, _INTEGER)
    def blended_color_at(self, nside: int, pixel: int) -> Optional[Color]:
        order = nside_to_order(nside)
        longitude, latitude = pix2sky(nside, pixel)
        candidates = (s for s in self.sources if s.is_inside(order, pixel))
        return self._blend(candidates, SkyDirection(float(longitude), float(latitude)))

    def blended_colors(self, nside: int, pixels: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """
        Vectorised form of ``blended_color_at(nside, pixel)``.

        Returns:
            (colors, valid): colors as an (N, 4) uint8 array, 0 where valid is False
        """
        pixels = np.asarray(pixels, dtype=np.int64)
        order = nside_to_order(nside)
        longitude, latitude = pix2sky(nside, pixels)
        longitude = np.atleast_1d(longitude)
        latitude = np.atleast_1d(latitude)

        totals = np.zeros((pixels.size, 4), dtype=np.int64)
        matches = np.zeros(pixels.size, dtype=np.int64)
        for source in self.sources:
            todo = source.inside_mask(order, pixels)
            if self.blending is BlendingPolicy.FIRST_MATCH:
                todo &= matches == 0
            indices = np.flatnonzero(todo)
            if indices.size == 0:
                continue
            colors, covered = source.colors_at(longitude[indices], latitude[indices])
            hits = indices[covered]
            totals[hits] += colors[covered]
            matches[hits] += 1

        valid = matches > 0
        colors = np.zeros((pixels.size, 4), dtype=np.uint8)
        colors[valid] = (totals[valid] // matches[valid, np.newaxis]).astype(np.uint8)
        return colors, valid

    @classmethod
    def from_file(
        cls,
        path: Path,
        provider: ProviderFactory,
        blending: BlendingPolicy = BlendingPolicy.AVERAGE_ALL,
        index_order: int = DEFAULT_INDEX_ORDER,
    ) -> "ImageSourceCollection":
        """Collection of a single, explicitly requested image. Errors propagate."""
        try:
            source = ImageSource(provider(path), index_order=index_order)
        except (MetadataError, OSError, ValueError) as e:
            logger.error(f"Failed to load image source {path}: {e}")
            raise
        return cls([source], blending)

    @classmethod
    def from_folder(
        cls,
        folder: Path,
        provider: ProviderFactory,
        file_extension: str = "png",
        blending: BlendingPolicy = BlendingPolicy.AVERAGE_ALL,
        index_order: int = DEFAULT_INDEX_ORDER,
    ) -> "ImageSourceCollection":
        """
        Collection of every image of a folder.

        Images whose calibration is invalid, or that cannot be decoded, are
        skipped with a warning.
        """
        suffix = f".{file_extension.lstrip('.').lower()}"
        image_files = sorted(f for f in folder.iterdir() if f.suffix.lower() == suffix)
        logger.info(f"Found {len(image_files)} {suffix} files in {folder}")

        collection = cls(blending=blending)
        for index, image_file in enumerate(image_files):
            logger.info(f"Loading {image_file.name} ({index + 1}/{len(image_files)})")
            try:
                source = ImageSource(provider(image_file), index_order=index_order)
            except (MetadataError, OSError, ValueError) as e:
                logger.warning(f"Skipping {image_file.name}: {e}")
                continue
            collection.add(source)

        logger.info(f"{len(collection)}/{len(image_files)} images loaded")
        return collection
