"""Configuration for Step 02: ray-potential fusion."""

from pydantic import BaseModel, Field

from rayfusion.core.contracts import VoxelGridDescriptor


class GridConfig(BaseModel):
    dims: tuple[int, int, int] = Field((100, 100, 100), description="Voxel counts along X, Y, Z")
    spacing: tuple[float, float, float] = Field((0.1, 0.1, 0.1), description="Voxel size per axis (scene units)")
    origin: tuple[float, float, float] = Field((-5.0, -5.0, -5.0), description="World position of voxel (0, 0, 0)")
    vec_x: tuple[float, float, float] = Field((1.0, 0.0, 0.0), description="Grid X direction")
    vec_y: tuple[float, float, float] = Field((0.0, 1.0, 0.0), description="Grid Y direction")
    vec_z: tuple[float, float, float] = Field((0.0, 0.0, 1.0), description="Grid Z direction")

    def to_descriptor(self) -> VoxelGridDescriptor:
        return VoxelGridDescriptor.from_vectors(
            self.dims, self.spacing, self.origin, self.vec_x, self.vec_y, self.vec_z
        )


class RayFusionConfig(BaseModel):
    thickness: float = Field(2.0, description="Ray potential band half-width (scene units)")
    rho: float = Field(3.0, description="Ray potential saturation rate outside the band (per scene unit)")
    use_parallel: bool = Field(True, description="Fuse voxel batches on a thread pool")
    num_workers: int | None = Field(None, description="Thread count (None = CPU count)")
    batch_size: int = Field(32768, description="Voxels per work batch")
    grid: GridConfig = Field(default_factory=GridConfig)
