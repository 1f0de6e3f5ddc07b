"""I/O contracts for Step 02: ray-potential fusion."""

from pathlib import Path

from pydantic import BaseModel, Field


class RayFusionInput(BaseModel):
    views_manifest: Path = Field(..., description="views.json written by the load_views step")


class RayFusionOutput(BaseModel):
    fused_grid_path: Path = Field(..., description="fused_grid.npz with potential, count and grid geometry")
    metadata_path: Path = Field(..., description="Path to metadata.json")
    num_views: int = Field(..., description="Number of views fused")
    num_observed_voxels: int = Field(..., description="Voxels seen by at least one view")
    execution_time: float = Field(..., description="Wall-clock seconds of the fusion pass")
