"""Voxel -> camera -> pixel projection for one calibrated view.

All products are written out elementwise instead of going through ``@`` so that a
voxel's projected depth and pixel do not depend on the batch it was computed in
(BLAS may reorder sums depending on array size).
"""

from __future__ import annotations

import numpy as np

from rayfusion.core.contracts import CalibratedView


def world_to_camera(points: np.ndarray, pose: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Apply the 4x4 world-to-camera pose to (N, 3) world points."""
    x, y, z = points[:, 0], points[:, 1], points[:, 2]
    xc = pose[0, 0] * x + pose[0, 1] * y + pose[0, 2] * z + pose[0, 3]
    yc = pose[1, 0] * x + pose[1, 1] * y + pose[1, 2] * z + pose[1, 3]
    zc = pose[2, 0] * x + pose[2, 1] * y + pose[2, 2] * z + pose[2, 3]
    return xc, yc, zc


def camera_to_pixel(
    xc: np.ndarray, yc: np.ndarray, zc: np.ndarray, K: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Apply K and perspective division.

    Returns:
        (u, v, in_front) where ``in_front`` marks points with positive camera depth and
        positive homogeneous denominator. u, v are NaN elsewhere.
    """
    px = K[0, 0] * xc + K[0, 1] * yc + K[0, 2] * zc
    py = K[1, 0] * xc + K[1, 1] * yc + K[1, 2] * zc
    pw = K[2, 0] * xc + K[2, 1] * yc + K[2, 2] * zc
    in_front = (zc > 0.0) & (pw > 0.0)
    safe_w = np.where(in_front, pw, 1.0)
    u = np.where(in_front, px / safe_w, np.nan)
    v = np.where(in_front, py / safe_w, np.nan)
    return u, v, in_front


def project_to_view(points: np.ndarray, view: CalibratedView) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Project world points into a view and look up the observed depth.

    Returns:
        (voxel_depth, observed_depth, valid): voxel depth along the camera's principal
        axis, depth map sample at the projected pixel, and the mask of voxels for which
        the view contributes evidence (in front of the camera, inside the image, valid
        depth sample).
    """
    xc, yc, zc = world_to_camera(points, view.pose)
    u, v, in_front = camera_to_pixel(xc, yc, zc, view.intrinsic)
    observed, valid = view.sample_many(u, v)
    return zc, observed, valid & in_front
