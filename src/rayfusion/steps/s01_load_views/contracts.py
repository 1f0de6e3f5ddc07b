"""I/O contracts for Step 01: load calibrated views."""

from pathlib import Path

from pydantic import BaseModel, Field


class LoadViewsInput(BaseModel):
    data_folder: Path = Field(..., description="Folder holding depth maps, .krtd files and the two list files")


class LoadViewsOutput(BaseModel):
    views_manifest: Path = Field(..., description="views.json with depth file, K and TR per view")
    num_views: int = Field(..., description="Number of views loaded")
    skipped: list[str] = Field(default_factory=list, description="Entries skipped because a file was unreadable")
