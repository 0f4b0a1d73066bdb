from pathlib import Path
from typing import Optional

import imageio.v2 as imageio
import numpy as np
from loguru import logger

from .conversions import to_rgba
from .properties import HipsProperties, read_properties, utc_timestamp, write_properties

CHANNEL_DIRECTORIES = ("r.fitsHiPS", "g.fitsHiPS", "b.fitsHiPS")
COLOR_DIRECTORY = "color"
PROPERTIES_FILE = "properties"


def combine_tiles(red: np.ndarray, green: np.ndarray, blue: np.ndarray) -> np.ndarray:
    """RGBA tile from three single-channel tiles.

    A pixel is as transparent as the most transparent of its channels.
    """
    red, green, blue = to_rgba(red), to_rgba(green), to_rgba(blue)
    if not (red.shape == green.shape == blue.shape):
        raise ValueError(
            f"Tile shapes differ: {red.shape}, {green.shape}, {blue.shape}"
        )
    alpha = np.minimum(np.minimum(red[:, :, 3], green[:, :, 3]), blue[:, :, 3])
    return np.dstack([red[:, :, 0], green[:, :, 0], blue[:, :, 0], alpha])


def color_properties(
    channel_properties: dict[str, str], properties: Optional[HipsProperties] = None
) -> dict[str, str]:
    values = dict(channel_properties)
    if properties is not None:
        values.update(properties.to_dict())
    values["hips_tile_format"] = "png"
    values["format"] = "png"
    values["hips_creation_date"] = utc_timestamp()
    return values


def compose_rgb_tiles(root: Path, properties: Optional[HipsProperties] = None) -> Path:
    """
    Combine the red, green and blue tile trees found in ``root`` into
    ``root/color``.

    Every PNG tile of the red tree is combined with the tiles at the same
    relative path in the green and blue trees.

    Returns:
        the color tile directory

    Raises:
        FileNotFoundError: if one of the channel trees is missing
    """
    red_dir, green_dir, blue_dir = (root / name for name in CHANNEL_DIRECTORIES)
    for directory in (red_dir, green_dir, blue_dir):
        if not directory.is_dir():
            raise FileNotFoundError(f"Missing tile directory: {directory}")
    color_dir = root / COLOR_DIRECTORY

    red_tiles = sorted(red_dir.rglob("*.png"))
    logger.info(f"Composing {len(red_tiles)} RGB tiles into {color_dir}")
    written = 0
    for red_tile in red_tiles:
        relative = red_tile.relative_to(red_dir)
        green_tile = green_dir / relative
        blue_tile = blue_dir / relative
        if not (green_tile.exists() and blue_tile.exists()):
            logger.warning(f"Tile {relative} is missing in the green or blue tree, skipped")
            continue
        tile = combine_tiles(
            imageio.imread(red_tile), imageio.imread(green_tile), imageio.imread(blue_tile)
        )
        output = color_dir / relative
        output.parent.mkdir(parents=True, exist_ok=True)
        imageio.imwrite(output, tile, format="png")
        written += 1
    logger.info(f"Wrote {written}/{len(red_tiles)} RGB tiles")

    red_properties = red_dir / PROPERTIES_FILE
    channel_properties = read_properties(red_properties) if red_properties.exists() else {}
    write_properties(
        color_dir / PROPERTIES_FILE, color_properties(channel_properties, properties)
    )
    return color_dir
