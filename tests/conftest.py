import math
from pathlib import Path

import imageio.v2 as imageio
import numpy as np
import pytest

from hipsmapper.image import ImageData
from hipsmapper.logger import set_log_level
from hipsmapper.projection import ProjectionType
from hipsmapper.sky_types import SkyDirection
from hipsmapper.sources.image_source import ImageSource
from hipsmapper.sources.metadata import StaticMetadata


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    # the CLI re-installs the sink on the (captured) stderr of its runner
    set_log_level("INFO")


def gradient_image(width: int, height: int) -> np.ndarray:
    """RGB image where every pixel has a distinct, non-zero color."""
    rows, columns = np.mgrid[0:height, 0:width]
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :, 0] = 1 + (columns * 254) // max(width - 1, 1)
    image[:, :, 1] = 1 + (rows * 254) // max(height - 1, 1)
    image[:, :, 2] = 1 + (columns + rows) % 200
    return image


def solid_image(width: int, height: int, color: tuple[int, int, int]) -> np.ndarray:
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :] = color
    return image


@pytest.fixture
def write_png(tmp_path):
    def _write(name: str, image: np.ndarray) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        imageio.imwrite(path, image, format="png")
        return path

    return _write


@pytest.fixture
def planisphere_png(write_png) -> Path:
    # power of two sizes keep pi / scale exact
    return write_png("planisphere.png", gradient_image(64, 32))


def make_source(
    image: np.ndarray,
    pointing: SkyDirection = SkyDirection(1.0, 0.2),
    fov: tuple[float, float] = (0.04, 0.04),
    projection: ProjectionType = ProjectionType.TAN,
    sub_image_size=None,
    detector_size=None,
    first_sample=(0, 0),
    distortion=None,
    index_order: int = 10,
    name: str = "synthetic.png",
) -> ImageSource:
    height, width = image.shape[:2]
    if sub_image_size is None and detector_size is None:
        sub_image_size = (width, height)
    metadata = StaticMetadata(
        Path(name),
        pointing=pointing,
        fov=fov,
        sub_image_size=sub_image_size,
        detector_size=detector_size,
        first_sample=first_sample,
        projection=projection,
        distortion=distortion,
    )
    return ImageSource(metadata, image=ImageData(image), index_order=index_order)


@pytest.fixture
def source_factory():
    return make_source


DEGREE = math.pi / 180.0
