"""Shared pytest fixtures for rayfusion tests."""

from pathlib import Path

import numpy as np
import pytest

from rayfusion.core.contracts import CalibratedView, VoxelGridDescriptor
from rayfusion.utils.geometry import make_krt_pose


def _intrinsic(fx: float, fy: float, cx: float, cy: float) -> np.ndarray:
    return np.array([[fx, 0.0, cx], [0.0, fy, cy], [0.0, 0.0, 1.0]])


def _look_at_pose(camera_center, target, up=(0.0, -1.0, 0.0)) -> np.ndarray:
    """World-to-camera pose looking from ``camera_center`` at ``target`` (+Z forward, +Y down)."""
    c = np.asarray(camera_center, dtype=float)
    forward = np.asarray(target, dtype=float) - c
    forward /= np.linalg.norm(forward)
    right = np.cross(forward, np.asarray(up, dtype=float))
    right /= np.linalg.norm(right)
    down = np.cross(forward, right)
    R = np.stack([right, down, forward])
    return make_krt_pose(R, -R @ c)


def _write_krtd(path: Path, K: np.ndarray, TR: np.ndarray) -> None:
    """K, R and t in .krtd layout, followed by a zero distortion row."""
    lines = [" ".join(f"{v:.17g}" for v in row) for row in K]
    lines.append("")
    lines += [" ".join(f"{v:.17g}" for v in row[:3]) for row in TR[:3]]
    lines.append("")
    lines.append(" ".join(f"{v:.17g}" for v in TR[:3, 3]))
    lines.append("")
    lines.append("0")
    path.write_text("\n".join(lines) + "\n")


def _write_vti(path: Path, depth: np.ndarray, array_name: str = "Depths") -> None:
    """Single-slice VTK XML image with the depth samples as point scalars."""
    import pyvista as pv

    image = pv.ImageData(dimensions=(depth.shape[1], depth.shape[0], 1))
    image.point_data[array_name] = np.ascontiguousarray(depth).ravel()
    image.save(str(path))


def _populate_data_folder(folder: Path, suffix: str) -> Path:
    """Two depth maps (4.0 and 5.0), their .krtd files and the two list files.

    List entries carry foreign directory prefixes; only the file names must be used.
    """
    K = _intrinsic(20.0, 20.0, 8.0, 6.0)
    depth_lines, krtd_lines = [], []
    for i, center in enumerate([(0.0, 0.0, -4.0), (3.0, 0.0, -3.0)]):
        depth = np.full((12, 16), 4.0 + i, dtype=np.float32)
        depth_file = folder / f"depth_{i:04d}{suffix}"
        if suffix == ".vti":
            _write_vti(depth_file, depth)
        else:
            np.save(str(depth_file), depth)
        _write_krtd(folder / f"frame_{i:04d}.krtd", K, _look_at_pose(center, (0.0, 0.0, 0.0)))
        depth_lines.append(f"/some/other/machine/{depth_file.name}")
        krtd_lines.append(f"C:\\capture\\frame_{i:04d}.krtd")
    (folder / "vtiList.txt").write_text("\n".join(depth_lines) + "\n\n")
    (folder / "kList.txt").write_text("\n".join(krtd_lines) + "\n")
    return folder


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    """Create a temporary data root with standard directory structure."""
    for subdir in ["raw", "interim/s01_views", "interim/s02_fusion", "processed"]:
        (tmp_path / subdir).mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture
def unit_grid() -> VoxelGridDescriptor:
    """2x2x2 grid, unit spacing, origin at 0, identity basis."""
    return VoxelGridDescriptor(dims=(2, 2, 2), spacing=(1.0, 1.0, 1.0), origin=(0.0, 0.0, 0.0))


@pytest.fixture
def make_view():
    """Factory for a view looking down +Z from (0, 0, -tz) with a constant depth map."""

    def _make(
        depth: float = 5.0,
        width: int = 2,
        height: int = 4,
        focal: float = 8.0,
        tz: float = 4.0,
        name: str = "view",
    ) -> CalibratedView:
        return CalibratedView(
            depth_map=np.full((height, width), depth),
            intrinsic=_intrinsic(focal, focal, 0.5, 0.5),
            pose=make_krt_pose(np.eye(3), [0.0, 0.0, tz]),
            name=name,
        )

    return _make


@pytest.fixture
def ring_views() -> list[CalibratedView]:
    """Three cameras around the origin with noisy depth maps and some holes."""
    rng = np.random.default_rng(7)
    K = _intrinsic(40.0, 40.0, 32.0, 24.0)
    views = []
    for i, center in enumerate([(0.0, 0.0, -6.0), (5.0, 0.5, -3.0), (-4.0, -1.0, -4.5)]):
        depth = rng.uniform(4.0, 8.0, (48, 64))
        depth[rng.random((48, 64)) < 0.1] = 0.0
        views.append(CalibratedView(
            depth_map=depth,
            intrinsic=K,
            pose=_look_at_pose(center, (0.0, 0.0, 0.0)),
            name=f"ring_{i}",
        ))
    return views


@pytest.fixture
def sample_data_folder(data_root: Path) -> Path:
    """``raw`` populated with .npy depth maps, .krtd files and the list files."""
    return _populate_data_folder(data_root / "raw", ".npy")


@pytest.fixture
def vti_data_folder(data_root: Path) -> Path:
    """``raw`` populated with .vti depth maps, .krtd files and the list files."""
    return _populate_data_folder(data_root / "raw", ".vti")


@pytest.fixture
def write_vti():
    return _write_vti
