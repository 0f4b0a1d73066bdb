from typing import NamedTuple, NewType


class SkyDirection(NamedTuple):
    """Direction on the sphere, in radians (latitude in [-pi/2, pi/2])."""

    longitude: float
    latitude: float


class Color(NamedTuple):
    red: int
    green: int
    blue: int
    alpha: int = 255


# (width, height) in pixels, i.e. (samples, lines)
Size = NewType("Size", tuple[int, int])
# (x, y) pixel offset, x counted from the left, y from the top
Pixel = NewType("Pixel", tuple[int, int])
# radians per pixel along (x, y)
Scale = NewType("Scale", tuple[float, float])
