"""Error taxonomy for the fusion core.

Every error here is raised before any voxel is processed. Once a run has
started, per-voxel misses (out of frame, behind camera, no depth sample)
are skipped contributions, not errors.
"""

from __future__ import annotations


class FusionError(ValueError):
    """Base class for configuration and input errors of a fusion run."""


class InvalidParameter(FusionError):
    """Ray potential or engine parameter out of range (thickness, rho, workers)."""


class InvalidGeometry(FusionError):
    """Voxel grid is degenerate or its basis vectors are not orthogonal."""


class InvalidView(FusionError):
    """A calibrated view is missing its depth map or a calibration matrix."""


class NoEvidence(FusionError):
    """No calibrated views were supplied."""
