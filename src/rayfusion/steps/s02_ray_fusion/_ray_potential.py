"""Ray potential: score of a voxel's ray depth against an observed surface depth.

With ``d = voxel_depth - observed_depth`` and ``e = |d| - thickness``:

    p(d) = 0                                       |d| <= thickness
    p(d) = +OCCLUDED_LEVEL * (1 - exp(-rho * e))   d > +thickness  (behind the surface)
    p(d) = -EMPTY_LEVEL    * (1 - exp(-rho * e))   d < -thickness  (known empty space)

The band around the observed surface carries no penalty. Past the band edge the
potential leaves 0 continuously and saturates exponentially; ``rho`` is the
saturation rate (per scene unit), so a larger ``rho`` reaches the plateau sooner.
Empty space is penalized twice as strongly as occlusion is rewarded, since a voxel
seen through is known to be empty while an occluded one is only possibly solid.
|p(d)| < EMPTY_LEVEL for every real d.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass

import numpy as np

from rayfusion.core.errors import InvalidParameter

OCCLUDED_LEVEL = 1.0
EMPTY_LEVEL = 2.0


@dataclass(frozen=True)
class RayPotential:
    """Flat-band ray potential with band half-width ``thickness`` and saturation rate ``rho``."""

    thickness: float
    rho: float

    def __post_init__(self):
        for label, value in (("thickness", self.thickness), ("rho", self.rho)):
            is_number = isinstance(value, numbers.Real) and not isinstance(value, bool)
            if not (is_number and math.isfinite(value) and value > 0):
                raise InvalidParameter(f"Ray potential {label} must be a positive finite number, got {value!r}")
        object.__setattr__(self, "thickness", float(self.thickness))
        object.__setattr__(self, "rho", float(self.rho))

    @property
    def bound(self) -> float:
        """Upper bound of |p(d)|."""
        return max(OCCLUDED_LEVEL, EMPTY_LEVEL)

    def __call__(self, d: float) -> float:
        return float(self.evaluate(np.float64(d)))

    def evaluate(self, d: np.ndarray) -> np.ndarray:
        """Vectorized potential for an array of signed depth differences."""
        d = np.asarray(d, dtype=np.float64)
        excess = np.maximum(np.abs(d) - self.thickness, 0.0)
        # 1 - exp(-x), accurate near the band edge
        rise = -np.expm1(-self.rho * excess)
        level = np.where(d > 0.0, OCCLUDED_LEVEL, -EMPTY_LEVEL)
        return level * rise
