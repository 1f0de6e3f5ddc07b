"""Step 01: pair depth maps with their .krtd calibrations and write a views manifest."""

from __future__ import annotations

import logging
from typing import ClassVar

import numpy as np

from rayfusion.core.errors import NoEvidence
from rayfusion.core.step_base import BaseStep
from rayfusion.utils.io import read_depth_map, read_krtd, read_path_list, write_views_manifest
from .config import LoadViewsConfig
from .contracts import LoadViewsInput, LoadViewsOutput

logger = logging.getLogger(__name__)


class LoadViewsStep(BaseStep[LoadViewsInput, LoadViewsOutput, LoadViewsConfig]):
    name: ClassVar[str] = "load_views"
    input_type: ClassVar = LoadViewsInput
    output_type: ClassVar = LoadViewsOutput
    config_type: ClassVar = LoadViewsConfig

    def validate_inputs(self, inputs: LoadViewsInput) -> bool:
        ok = True
        for list_name in (self.config.depth_map_list, self.config.krtd_list):
            path = inputs.data_folder / list_name
            if not path.exists():
                logger.error(f"Unable to open list file: {path}")
                ok = False
        return ok

    def run(self, inputs: LoadViewsInput) -> LoadViewsOutput:
        output_dir = self.data_root / "interim" / "s01_views"
        output_dir.mkdir(parents=True, exist_ok=True)

        depth_paths = read_path_list(inputs.data_folder / self.config.depth_map_list, inputs.data_folder)
        krtd_paths = read_path_list(inputs.data_folder / self.config.krtd_list, inputs.data_folder)
        if len(depth_paths) != len(krtd_paths):
            logger.warning(
                f"{len(depth_paths)} depth maps but {len(krtd_paths)} calibration files; "
                f"pairing the first {min(len(depth_paths), len(krtd_paths))}"
            )

        entries = []
        skipped = []
        for depth_path, krtd_path in zip(depth_paths, krtd_paths):
            try:
                K, TR = read_krtd(krtd_path)
                depth = read_depth_map(depth_path, self.config.depth_scale)
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping {depth_path.name}: {e}")
                skipped.append(depth_path.name)
                continue

            valid = np.count_nonzero(np.isfinite(depth) & (depth > 0))
            logger.debug(f"{depth_path.name}: {depth.shape[1]}x{depth.shape[0]}, {valid} valid depth samples")
            entries.append({
                "name": depth_path.stem,
                "depth_file": str(depth_path.resolve()),
                "intrinsic": K.tolist(),
                "pose": TR.tolist(),
            })

        if not entries:
            raise NoEvidence(f"No depth map could be loaded from {inputs.data_folder}")

        manifest_path = output_dir / "views.json"
        write_views_manifest(manifest_path, entries, depth_scale=self.config.depth_scale)
        logger.info(f"{len(entries)} depth maps loaded ({len(skipped)} skipped)")

        return LoadViewsOutput(views_manifest=manifest_path, num_views=len(entries), skipped=skipped)
