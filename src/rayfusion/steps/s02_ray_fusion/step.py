"""Step 02: fuse calibrated depth maps into a ray-potential voxel grid."""

from __future__ import annotations

import json
import logging
from typing import ClassVar

from rayfusion.core.contracts import StepMeta
from rayfusion.core.step_base import BaseStep
from rayfusion.utils.io import load_views, save_fused_grid
from ._engine import RayFusionEngine
from .config import RayFusionConfig
from .contracts import RayFusionInput, RayFusionOutput

logger = logging.getLogger(__name__)


class RayFusionStep(BaseStep[RayFusionInput, RayFusionOutput, RayFusionConfig]):
    name: ClassVar[str] = "ray_fusion"
    input_type: ClassVar = RayFusionInput
    output_type: ClassVar = RayFusionOutput
    config_type: ClassVar = RayFusionConfig

    def validate_inputs(self, inputs: RayFusionInput) -> bool:
        if not inputs.views_manifest.exists():
            logger.error(f"Views manifest not found: {inputs.views_manifest}")
            return False
        return True

    def run(self, inputs: RayFusionInput) -> RayFusionOutput:
        output_dir = self.data_root / "interim" / "s02_fusion"
        output_dir.mkdir(parents=True, exist_ok=True)

        # Geometry and parameters are checked before any depth map is read
        grid = self.config.grid.to_descriptor()
        grid.check()
        engine = RayFusionEngine(
            thickness=self.config.thickness,
            rho=self.config.rho,
            use_parallel=self.config.use_parallel,
            num_workers=self.config.num_workers,
            batch_size=self.config.batch_size,
        )

        views = load_views(inputs.views_manifest)
        logger.info(f"{len(views)} depth maps loaded")

        result = engine.run(grid, views)

        fused_path = output_dir / "fused_grid.npz"
        save_fused_grid(fused_path, result)

        meta = StepMeta(
            step_name=self.name,
            elapsed_seconds=engine.last_execution_time(),
            params={
                **result.params,
                "strategy": result.strategy,
                "dims": list(grid.dims),
                "spacing": list(grid.spacing),
                "origin": list(grid.origin),
                "num_observed_voxels": result.num_observed,
                "views": [v.name for v in views],
            },
        )
        metadata_path = output_dir / "metadata.json"
        with open(metadata_path, "w") as f:
            json.dump(meta.model_dump(), f, indent=2)

        return RayFusionOutput(
            fused_grid_path=fused_path,
            metadata_path=metadata_path,
            num_views=len(views),
            num_observed_voxels=result.num_observed,
            execution_time=engine.last_execution_time(),
        )
