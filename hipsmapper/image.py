from pathlib import Path
from typing import Union

import imageio.v2 as imageio
import numpy as np
from loguru import logger

from .conversions import to_rgba
from .sky_types import Color, Size


class PixelOutOfBounds(Exception):
    pass


class ImageData:
    """Decoded image, stored as an (height, width, 4) uint8 RGBA array.

    Row 0 is the top of the image.
    """

    def __init__(self, image: np.ndarray) -> None:
        self.image = to_rgba(np.asarray(image))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ImageData":
        """Decode an image file (or URL).

        Raises:
            OSError, ValueError: if the file cannot be read or decoded
        """
        logger.debug(f"Decoding image {path}")
        image = imageio.imread(path)
        return cls(image)

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]

    @property
    def size(self) -> Size:
        return Size((self.width, self.height))

    def pixel(self, column: int, row: int) -> Color:
        if not (0 <= column < self.width and 0 <= row < self.height):
            raise PixelOutOfBounds(
                f"pixel ({column}, {row}) outside of {self.width}x{self.height} image"
            )
        return Color(*(int(v) for v in self.image[row, column]))

    def pixels(self, columns: np.ndarray, rows: np.ndarray) -> np.ndarray:
        """RGBA values, shape (N, 4), of in-bounds pixels."""
        return self.image[rows, columns]
