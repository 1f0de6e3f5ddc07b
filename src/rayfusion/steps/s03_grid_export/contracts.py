"""I/O contracts for Step 03: fused grid export."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class GridExportInput(BaseModel):
    fused_grid_path: Path = Field(..., description="fused_grid.npz written by the ray_fusion step")


class GridExportOutput(BaseModel):
    structured_grid_path: Path = Field(..., description="structured_grid.npz with points, potential, count")
    vts_path: Optional[Path] = Field(None, description="VTK StructuredGrid (.vts)")
    num_points: int = Field(..., description="Number of grid points written")
