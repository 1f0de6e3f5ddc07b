"""Step 03: place the fused grid in world space and write it out."""

from __future__ import annotations

import logging
from typing import ClassVar

import numpy as np

from rayfusion.core.contracts import VoxelGridDescriptor
from rayfusion.core.step_base import BaseStep
from rayfusion.utils.io import load_fused_grid, write_vts
from .config import GridExportConfig
from .contracts import GridExportInput, GridExportOutput

logger = logging.getLogger(__name__)


def grid_from_arrays(data: dict[str, np.ndarray], apply_grid_matrix: bool = True) -> VoxelGridDescriptor:
    """Rebuild the grid descriptor stored next to a fused result."""
    kwargs = dict(
        dims=tuple(int(n) for n in data["dims"]),
        spacing=tuple(float(s) for s in data["spacing"]),
        origin=tuple(float(o) for o in data["origin"]),
    )
    if apply_grid_matrix:
        kwargs["basis"] = tuple(tuple(float(v) for v in row) for row in data["basis"])
    return VoxelGridDescriptor(**kwargs)


def to_vtk_order(grid: VoxelGridDescriptor, points: np.ndarray) -> np.ndarray:
    """Reorder (N, 3) points from C (i, j, k) order to VTK order (i fastest)."""
    nx, ny, nz = grid.dims
    return points.reshape(nx, ny, nz, 3).transpose(2, 1, 0, 3).reshape(-1, 3)


class GridExportStep(BaseStep[GridExportInput, GridExportOutput, GridExportConfig]):
    name: ClassVar[str] = "grid_export"
    input_type: ClassVar = GridExportInput
    output_type: ClassVar = GridExportOutput
    config_type: ClassVar = GridExportConfig

    def validate_inputs(self, inputs: GridExportInput) -> bool:
        if not inputs.fused_grid_path.exists():
            logger.error(f"Fused grid not found: {inputs.fused_grid_path}")
            return False
        return True

    def run(self, inputs: GridExportInput) -> GridExportOutput:
        output_dir = self.config.output_dir or (self.data_root / "processed")
        output_dir.mkdir(parents=True, exist_ok=True)

        data = load_fused_grid(inputs.fused_grid_path)
        grid = grid_from_arrays(data, apply_grid_matrix=self.config.apply_grid_matrix)
        potential = data["potential"]
        count = data["count"]

        points = grid.voxel_centers()
        npz_path = output_dir / f"{self.config.output_name}.npz"
        np.savez_compressed(
            str(npz_path),
            points=points,
            potential=potential.reshape(-1),
            count=count.reshape(-1),
            dims=np.asarray(grid.dims),
        )
        logger.info(f"Wrote {len(points)} grid points to {npz_path}")

        vts_path = None
        if self.config.write_vts:
            vts_path = output_dir / f"{self.config.output_name}.vts"
            write_vts(
                vts_path,
                grid.dims,
                to_vtk_order(grid, points),
                {
                    self.config.potential_array: potential.ravel(order="F"),
                    self.config.count_array: count.ravel(order="F"),
                },
            )
            logger.info(f"Wrote structured grid to {vts_path}")

        return GridExportOutput(
            structured_grid_path=npz_path,
            vts_path=vts_path,
            num_points=len(points),
        )
