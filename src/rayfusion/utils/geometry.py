"""3D geometry utilities: grid orientation matrix and rigid transforms."""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)


def are_vectors_orthogonal(
    vec_x: list[float] | np.ndarray,
    vec_y: list[float] | np.ndarray,
    vec_z: list[float] | np.ndarray,
    atol: float = 0.0,
) -> bool:
    """True when the three vectors are pairwise orthogonal (|dot| <= atol)."""
    x = np.asarray(vec_x, dtype=float)
    y = np.asarray(vec_y, dtype=float)
    z = np.asarray(vec_z, dtype=float)
    return bool(
        abs(np.dot(x, y)) <= atol
        and abs(np.dot(y, z)) <= atol
        and abs(np.dot(z, x)) <= atol
    )


def make_grid_matrix(
    vec_x: list[float] | np.ndarray,
    vec_y: list[float] | np.ndarray,
    vec_z: list[float] | np.ndarray,
) -> np.ndarray:
    """Build the 4x4 grid orientation matrix with rows X, Y, Z and no translation."""
    matrix = np.eye(4)
    matrix[0, :3] = vec_x
    matrix[1, :3] = vec_y
    matrix[2, :3] = vec_z
    logger.debug("Reconstruct grid matrix:\n%s", np.array2string(matrix[:3, :3].T, precision=6))
    return matrix


def make_krt_pose(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Build a 4x4 world-to-camera matrix from rotation R (3x3) and translation t (3,)."""
    pose = np.eye(4)
    pose[:3, :3] = R
    pose[:3, 3] = np.asarray(t, dtype=float).reshape(3)
    return pose
