"""Configuration for Step 03: fused grid export."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class GridExportConfig(BaseModel):
    apply_grid_matrix: bool = Field(True, description="Place points with the grid basis (False = axis-aligned)")
    write_vts: bool = Field(True, description="Also write an ASCII VTK StructuredGrid")
    output_dir: Optional[Path] = Field(None, description="Output directory (None = data_root/processed)")
    output_name: str = Field("output", description="Base name of the exported files")
    potential_array: str = Field("reconstruction_scalar", description="Point data name of the fused potential")
    count_array: str = Field("vote_count", description="Point data name of the observation count")
