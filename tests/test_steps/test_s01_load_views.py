"""Tests for S01: Load Views step."""

import json
from pathlib import Path

import numpy as np
import pytest

from rayfusion.core.errors import NoEvidence
from rayfusion.steps.s01_load_views.config import LoadViewsConfig
from rayfusion.steps.s01_load_views.contracts import LoadViewsInput, LoadViewsOutput
from rayfusion.steps.s01_load_views.step import LoadViewsStep
from rayfusion.utils.io import load_views


class TestLoadViewsContracts:
    def test_input_model(self):
        inp = LoadViewsInput(data_folder=Path("/tmp/data"))
        assert inp.data_folder == Path("/tmp/data")

    def test_config_defaults(self):
        cfg = LoadViewsConfig()
        assert cfg.depth_map_list == "vtiList.txt"
        assert cfg.krtd_list == "kList.txt"
        assert cfg.depth_scale == 1.0

    def test_output_schema(self):
        schema = LoadViewsOutput.model_json_schema()
        assert "views_manifest" in schema["properties"]
        assert "num_views" in schema["properties"]


class TestLoadViewsStep:
    def test_validate_missing_lists(self, data_root: Path):
        step = LoadViewsStep(config=LoadViewsConfig(), data_root=data_root)
        assert step.validate_inputs(LoadViewsInput(data_folder=data_root / "raw")) is False

    def test_execute_raises_on_missing_lists(self, data_root: Path):
        step = LoadViewsStep(config=LoadViewsConfig(), data_root=data_root)
        with pytest.raises(ValueError, match="Input validation failed"):
            step.execute(LoadViewsInput(data_folder=data_root / "raw"))

    def test_loads_all_views(self, data_root: Path, sample_data_folder: Path):
        step = LoadViewsStep(config=LoadViewsConfig(), data_root=data_root)
        output = step.execute(LoadViewsInput(data_folder=sample_data_folder))

        assert output.num_views == 2
        assert output.skipped == []
        assert output.views_manifest.exists()

        with open(output.views_manifest) as f:
            manifest = json.load(f)
        names = [v["name"] for v in manifest["views"]]
        assert names == ["depth_0000", "depth_0001"]
        assert Path(manifest["views"][0]["depth_file"]).parent == sample_data_folder.resolve()

        views = load_views(output.views_manifest)
        assert len(views) == 2
        assert views[0].depth_map.shape == (12, 16)
        assert views[1].sample(0.0, 0.0) == pytest.approx(5.0)
        np.testing.assert_array_equal(views[0].pose[3], [0.0, 0.0, 0.0, 1.0])

    def test_unreadable_krtd_is_skipped(self, data_root: Path, sample_data_folder: Path):
        (sample_data_folder / "frame_0001.krtd").write_text("not a camera\n")
        step = LoadViewsStep(config=LoadViewsConfig(), data_root=data_root)
        output = step.execute(LoadViewsInput(data_folder=sample_data_folder))
        assert output.num_views == 1
        assert output.skipped == ["depth_0001.npy"]

    def test_no_loadable_view_is_no_evidence(self, data_root: Path, sample_data_folder: Path):
        for krtd in sample_data_folder.glob("*.krtd"):
            krtd.unlink()
        step = LoadViewsStep(config=LoadViewsConfig(), data_root=data_root)
        with pytest.raises(NoEvidence):
            step.execute(LoadViewsInput(data_folder=sample_data_folder))

    def test_depth_scale_applied(self, data_root: Path, sample_data_folder: Path):
        step = LoadViewsStep(config=LoadViewsConfig(depth_scale=1000.0), data_root=data_root)
        output = step.execute(LoadViewsInput(data_folder=sample_data_folder))
        views = load_views(output.views_manifest)
        assert views[0].sample(1.0, 1.0) == pytest.approx(0.004)

    def test_loads_vti_depth_maps(self, data_root: Path, vti_data_folder: Path):
        step = LoadViewsStep(config=LoadViewsConfig(), data_root=data_root)
        output = step.execute(LoadViewsInput(data_folder=vti_data_folder))

        assert output.num_views == 2
        assert output.skipped == []
        views = load_views(output.views_manifest)
        assert views[0].depth_map.shape == (12, 16)
        assert views[0].sample(3.0, 7.0) == pytest.approx(4.0)
        assert views[1].sample(15.5, 11.5) == pytest.approx(5.0)
