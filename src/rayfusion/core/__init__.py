"""rayfusion core: pipeline runner, base step, shared contracts, error taxonomy."""

from .step_base import BaseStep
from .contracts import PipelineConfig, StepEntry, StepMeta, VoxelGridDescriptor, CalibratedView
from .errors import FusionError, InvalidParameter, InvalidGeometry, InvalidView, NoEvidence
from .pipeline_runner import run_pipeline, load_pipeline_config
from .logging import setup_logging

__all__ = [
    "BaseStep",
    "PipelineConfig",
    "StepEntry",
    "StepMeta",
    "VoxelGridDescriptor",
    "CalibratedView",
    "FusionError",
    "InvalidParameter",
    "InvalidGeometry",
    "InvalidView",
    "NoEvidence",
    "run_pipeline",
    "load_pipeline_config",
    "setup_logging",
]
