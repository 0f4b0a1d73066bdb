from dataclasses import dataclass
from typing import Optional

import numpy as np

# Physical size of a Mastcam detector pixel, mm
MASTCAM_PIXEL_PITCH = 0.0074


@dataclass(frozen=True)
class DistortionModel:
    """
    Radial lens distortion, in the detector plane.

    Offsets from the lens centre are converted to millimetres with the
    pixel pitch and shifted by (x0, y0). A point at radius r moves radially
    by ``k1 r^3 + k2 r^5 + k3 r^7``.
    """

    x0: float
    y0: float
    k1: float
    k2: float = 0.0
    k3: float = 0.0
    pixel_pitch: tuple[float, float] = (MASTCAM_PIXEL_PITCH, MASTCAM_PIXEL_PITCH)

    def radial_shift(self, radius: np.ndarray) -> np.ndarray:
        r3 = radius ** 3
        return self.k1 * r3 + self.k2 * r3 * radius ** 2 + self.k3 * r3 * radius ** 4

    def correct(
        self,
        u: np.ndarray,
        v: np.ndarray,
        center_u: float,
        center_v: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Move detector pixel coordinates (u, v) by the radial shift."""
        pitch_x, pitch_y = self.pixel_pitch
        dx = (np.asarray(u, dtype=np.float64) - center_u) * pitch_x - self.x0
        dy = (np.asarray(v, dtype=np.float64) - center_v) * pitch_y - self.y0
        radius = np.hypot(dx, dy)
        ratio = np.divide(
            self.radial_shift(radius),
            radius,
            out=np.zeros_like(radius),
            where=radius > 0,
        )
        return u + dx * ratio / pitch_x, v + dy * ratio / pitch_y

    def max_shift_pixels(self, half_width: float, half_height: float) -> float:
        """Upper bound of the shift, in pixels, inside a centred rectangle."""
        pitch_x, pitch_y = self.pixel_pitch
        radius = np.hypot(
            half_width * pitch_x + abs(self.x0), half_height * pitch_y + abs(self.y0)
        )
        bound = abs(self.k1) * radius ** 3 + abs(self.k2) * radius ** 5 + abs(self.k3) * radius ** 7
        return float(bound / min(pitch_x, pitch_y))

    def margin_pixels(self, half_width: float, half_height: float) -> float:
        """Shift bound inside the rectangle widened by the bound itself.

        Points just outside the rectangle can be shifted into it.
        """
        margin = self.max_shift_pixels(half_width, half_height)
        for _ in range(20):
            widened = self.max_shift_pixels(half_width + margin, half_height + margin)
            converged = widened - margin <= 1e-6
            margin = max(margin, widened)
            if converged:
                break
        return margin


# x0 (mm), y0 (mm), k1, k2, k3
MASTCAM_DISTORTIONS: dict[str, DistortionModel] = {
    "MAST_LEFT": DistortionModel(x0=-0.113876, y0=0.152029, k1=-1.118977e-04, k2=-1.023513e-06, k3=0.0),
    "MAST_RIGHT": DistortionModel(x0=0.262451, y0=-0.250667, k1=1.513695e-04, k2=0.0, k3=0.0),
}


def distortion_for(instrument_id: Optional[str]) -> Optional[DistortionModel]:
    if instrument_id is None:
        return None
    return MASTCAM_DISTORTIONS.get(instrument_id.strip().upper())
