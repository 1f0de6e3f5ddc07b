"""Configuration for Step 01: load calibrated views."""

from pydantic import BaseModel, Field


class LoadViewsConfig(BaseModel):
    depth_map_list: str = Field("vtiList.txt", description="File in the data folder listing depth map paths")
    krtd_list: str = Field("kList.txt", description="File in the data folder listing .krtd paths")
    depth_scale: float = Field(1.0, description="Depth scale (1.0 if scene units, 1000.0 if mm)")
