"""Common models shared across pipeline steps: pipeline config, voxel grid, calibrated views."""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidGeometry, InvalidView

_IDENTITY_4X4 = (
    (1.0, 0.0, 0.0, 0.0),
    (0.0, 1.0, 0.0, 0.0),
    (0.0, 0.0, 1.0, 0.0),
    (0.0, 0.0, 0.0, 1.0),
)


class StepMeta(BaseModel):
    """Metadata attached to every step output for reproducibility."""

    step_name: str
    elapsed_seconds: float = 0.0
    params: dict[str, Any] = Field(default_factory=dict)


class PipelineConfig(BaseModel):
    """Top-level pipeline configuration loaded from pipeline.yaml."""

    project_name: str = "rayfusion_project"
    data_root: Path = Path("./data")
    steps: list[StepEntry] = Field(default_factory=list)


class StepEntry(BaseModel):
    """One entry in the pipeline step list."""

    name: str
    module: str
    config_file: str
    depends_on: list[str] = Field(default_factory=list)
    inputs: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True


# Fix forward reference
PipelineConfig.model_rebuild()


class VoxelGridDescriptor(BaseModel):
    """Geometry of the output volume.

    Voxel ``(i, j, k)`` sits at ``origin + B @ ((i, j, k) * spacing)`` where ``B`` is the
    upper-left 3x3 block of ``basis``. Rows 0..2 of ``B`` are the grid X, Y, Z vectors,
    so grid axis ``i`` advances along column 0 of ``B``.
    """

    model_config = ConfigDict(frozen=True)

    dims: tuple[int, int, int]
    spacing: tuple[float, float, float] = (1.0, 1.0, 1.0)
    origin: tuple[float, float, float] = (0.0, 0.0, 0.0)
    basis: tuple[tuple[float, float, float, float], ...] = _IDENTITY_4X4

    @classmethod
    def from_vectors(
        cls,
        dims: tuple[int, int, int],
        spacing: tuple[float, float, float],
        origin: tuple[float, float, float],
        vec_x: tuple[float, float, float],
        vec_y: tuple[float, float, float],
        vec_z: tuple[float, float, float],
    ) -> VoxelGridDescriptor:
        from rayfusion.utils.geometry import make_grid_matrix

        matrix = make_grid_matrix(vec_x, vec_y, vec_z)
        return cls(
            dims=dims,
            spacing=spacing,
            origin=origin,
            basis=tuple(tuple(float(v) for v in row) for row in matrix),
        )

    @property
    def num_voxels(self) -> int:
        return int(np.prod(self.dims))

    def basis_matrix(self) -> np.ndarray:
        return np.asarray(self.basis, dtype=np.float64)

    def check(self, atol: float = 1e-9) -> None:
        """Raise InvalidGeometry for a degenerate grid or non-orthogonal basis."""
        from rayfusion.utils.geometry import are_vectors_orthogonal

        if len(self.basis) != 4 or any(len(row) != 4 for row in self.basis):
            raise InvalidGeometry("Grid basis must be a 4x4 matrix")
        if any(n <= 0 for n in self.dims):
            raise InvalidGeometry(f"Grid dims must be positive, got {self.dims}")
        if any(not (s > 0 and math.isfinite(s)) for s in self.spacing):
            raise InvalidGeometry(f"Grid spacing must be positive, got {self.spacing}")
        if any(not math.isfinite(o) for o in self.origin):
            raise InvalidGeometry(f"Grid origin must be finite, got {self.origin}")

        axes = self.basis_matrix()[:3, :3]
        if not np.all(np.isfinite(axes)):
            raise InvalidGeometry("Grid basis contains non-finite values")
        norms = np.linalg.norm(axes, axis=1)
        if np.any(norms <= atol):
            raise InvalidGeometry(f"Grid basis has a zero-length axis (norms={norms.tolist()})")
        if not are_vectors_orthogonal(axes[0], axes[1], axes[2], atol=atol):
            raise InvalidGeometry("Given grid vectors are not orthogonal")

    def voxel_centers(self, start: int = 0, stop: int | None = None) -> np.ndarray:
        """World coordinates of voxels ``[start, stop)`` in C (i, j, k) order.

        Computed with elementwise products only, so a voxel's coordinates do not
        depend on how the index range is batched.

        Returns:
            (N, 3) float64 array.
        """
        if stop is None:
            stop = self.num_voxels
        flat = np.arange(start, stop, dtype=np.int64)
        i, j, k = np.unravel_index(flat, self.dims)
        gx = i * self.spacing[0]
        gy = j * self.spacing[1]
        gz = k * self.spacing[2]
        B = self.basis_matrix()
        ox, oy, oz = self.origin
        x = ox + (B[0, 0] * gx + B[0, 1] * gy + B[0, 2] * gz)
        y = oy + (B[1, 0] * gx + B[1, 1] * gy + B[1, 2] * gz)
        z = oz + (B[2, 0] * gx + B[2, 1] * gy + B[2, 2] * gz)
        return np.stack([x, y, z], axis=1)


def _readonly(array: Any) -> np.ndarray | None:
    if array is None:
        return None
    arr = np.array(array, dtype=np.float64)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class CalibratedView:
    """One depth map plus the camera matrices needed to project world points into it.

    ``pose`` maps world to camera coordinates. Arrays are copied and made read-only
    on construction, so a view can be shared freely between fusion workers.
    """

    depth_map: np.ndarray | None
    intrinsic: np.ndarray | None
    pose: np.ndarray | None
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "depth_map", _readonly(self.depth_map))
        object.__setattr__(self, "intrinsic", _readonly(self.intrinsic))
        object.__setattr__(self, "pose", _readonly(self.pose))

    @property
    def width(self) -> int:
        return int(self.depth_map.shape[1])

    @property
    def height(self) -> int:
        return int(self.depth_map.shape[0])

    def validate(self) -> None:
        """Raise InvalidView unless depth map, K and TR are all set and well formed."""
        label = self.name or "<unnamed>"
        if self.depth_map is None:
            raise InvalidView(f"View {label}: missing depth map")
        if self.intrinsic is None:
            raise InvalidView(f"View {label}: missing intrinsic matrix")
        if self.pose is None:
            raise InvalidView(f"View {label}: missing pose matrix")
        if self.depth_map.ndim != 2 or self.depth_map.size == 0:
            raise InvalidView(f"View {label}: depth map must be a non-empty 2-D array, got shape {self.depth_map.shape}")
        if self.intrinsic.shape != (3, 3):
            raise InvalidView(f"View {label}: intrinsic must be 3x3, got {self.intrinsic.shape}")
        if self.pose.shape != (4, 4):
            raise InvalidView(f"View {label}: pose must be 4x4, got {self.pose.shape}")
        if not (np.all(np.isfinite(self.intrinsic)) and np.all(np.isfinite(self.pose))):
            raise InvalidView(f"View {label}: calibration matrices contain non-finite values")
        if not np.array_equal(self.pose[3], [0.0, 0.0, 0.0, 1.0]):
            raise InvalidView(f"View {label}: pose bottom row must be [0, 0, 0, 1], got {self.pose[3].tolist()}")

    def sample(self, pixel_x: float, pixel_y: float) -> float | None:
        """Depth at a pixel location, or None where there is no valid sample.

        Nearest-pixel lookup: pixel (i, j) covers [i, i+1) x [j, j+1).
        """
        if not (0.0 <= pixel_x < self.width and 0.0 <= pixel_y < self.height):
            return None
        value = float(self.depth_map[int(math.floor(pixel_y)), int(math.floor(pixel_x))])
        if not math.isfinite(value) or value <= 0.0:
            return None
        return value

    def sample_many(self, pixel_x: np.ndarray, pixel_y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Vectorized ``sample``: returns (depths, valid) with the same lookup rule."""
        inside = (pixel_x >= 0.0) & (pixel_x < self.width) & (pixel_y >= 0.0) & (pixel_y < self.height)
        depths = np.zeros(pixel_x.shape, dtype=np.float64)
        cols = np.floor(pixel_x[inside]).astype(np.int64)
        rows = np.floor(pixel_y[inside]).astype(np.int64)
        depths[inside] = self.depth_map[rows, cols]
        valid = inside & np.isfinite(depths) & (depths > 0.0)
        return depths, valid
