"""I/O utilities: list files, KRTD camera files, depth maps (.vti, .npy, .npz), fused grids, VTK structured grids."""

from __future__ import annotations

import json
import logging
from pathlib import Path, PureWindowsPath

import numpy as np

from rayfusion.core.contracts import CalibratedView
from rayfusion.utils.geometry import make_krt_pose

logger = logging.getLogger(__name__)


# ── List files ───────────────────────────────────────────────────────

def read_path_list(list_file: Path, data_folder: Path) -> list[Path]:
    """Read a list of paths (one per line) and re-root each entry in ``data_folder``.

    Only the file name of each entry is kept, so lists written on another
    machine (absolute or Windows-style paths) still resolve. Blank lines are skipped.
    """
    paths = []
    with open(list_file, encoding="utf-8") as f:
        for line in f:
            entry = line.strip()
            if not entry:
                continue
            name = PureWindowsPath(entry).name
            paths.append(Path(data_folder) / name)
    return paths


# ── KRTD camera files ────────────────────────────────────────────────

def read_krtd(path: Path) -> tuple[np.ndarray, np.ndarray]:
    """Read a .krtd file into (K 3x3, TR 4x4 world-to-camera).

    Layout: three rows of K, a blank line, three rows of R, a blank line,
    then one row with the translation t. Anything after t (distortion) is ignored.

    Raises:
        ValueError: if the file does not hold enough numeric rows.
    """
    with open(path, encoding="utf-8") as f:
        rows = [line.split() for line in f if line.strip()]

    if len(rows) < 7:
        raise ValueError(f"{path}: expected at least 7 non-empty rows, found {len(rows)}")
    try:
        K = np.array([[float(v) for v in row[:3]] for row in rows[0:3]])
        R = np.array([[float(v) for v in row[:3]] for row in rows[3:6]])
        t = np.array([float(v) for v in rows[6][:3]])
    except ValueError as e:
        raise ValueError(f"{path}: non-numeric value ({e})") from e
    if K.shape != (3, 3) or R.shape != (3, 3) or t.shape != (3,):
        raise ValueError(f"{path}: rows must hold 3 values each")

    return K, make_krt_pose(R, t)


# ── Depth maps ───────────────────────────────────────────────────────

def _read_vti(path: Path) -> np.ndarray:
    """Depth samples of a VTK XML image (.vti), one row per image line.

    Uses the active point scalars, or the first point array when none is active.
    VTK stores points x fastest, so a C-order reshape to (ny, nx) keeps line y in row y.
    """
    import pyvista as pv

    image = pv.read(str(path))
    nx, ny, nz = image.dimensions
    if nz != 1:
        raise ValueError(f"{path}: depth image must be a single z slice, got dimensions {image.dimensions}")
    values = image.active_scalars
    if values is None:
        names = image.point_data.keys()
        if not names:
            raise ValueError(f"{path}: image has no point data array")
        values = image.point_data[names[0]]
    return np.asarray(values, dtype=np.float64).reshape(ny, nx, -1)


def read_depth_map(path: Path, depth_scale: float = 1.0) -> np.ndarray:
    """Read a depth map as float64 in scene units.

    Supported formats: VTK XML image data (.vti), .npy, and .npz (the ``depth``
    array, else the first one). Raw values are divided by ``depth_scale``
    (1000.0 for millimetres).
    """
    path = Path(path)
    if path.suffix == ".vti":
        depth = _read_vti(path)
    elif path.suffix == ".npz":
        with np.load(str(path)) as data:
            key = "depth" if "depth" in data.files else data.files[0]
            depth = data[key]
    else:
        depth = np.load(str(path))
    depth = np.asarray(depth, dtype=np.float64)
    if depth.ndim == 3 and depth.shape[-1] == 1:
        depth = depth[..., 0]
    if depth.ndim != 2:
        raise ValueError(f"{path}: depth map must be 2-D, got shape {depth.shape}")
    return depth / depth_scale


# ── Views manifest ───────────────────────────────────────────────

def write_views_manifest(path: Path, views: list[dict], depth_scale: float = 1.0) -> None:
    """Write views.json: one entry per view with depth file, K and TR as nested lists."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"depth_scale": depth_scale, "views": views}, f, indent=2)


def load_views(manifest_path: Path) -> tuple[CalibratedView, ...]:
    """Load every view listed in views.json, in manifest order."""
    with open(manifest_path, encoding="utf-8") as f:
        manifest = json.load(f)
    depth_scale = manifest.get("depth_scale", 1.0)
    views = []
    for entry in manifest["views"]:
        views.append(CalibratedView(
            depth_map=read_depth_map(Path(entry["depth_file"]), depth_scale),
            intrinsic=np.asarray(entry["intrinsic"], dtype=float),
            pose=np.asarray(entry["pose"], dtype=float),
            name=entry.get("name", ""),
        ))
    logger.debug(f"Loaded {len(views)} views from {manifest_path}")
    return tuple(views)


# ── Fused grid ───────────────────────────────────────────────────────

def save_fused_grid(path: Path, result) -> None:
    """Persist a ResultGrid and its grid geometry to a compressed .npz."""
    grid = result.grid
    np.savez_compressed(
        str(path),
        potential=result.potential,
        count=result.count,
        dims=np.asarray(grid.dims, dtype=np.int64),
        spacing=np.asarray(grid.spacing, dtype=np.float64),
        origin=np.asarray(grid.origin, dtype=np.float64),
        basis=grid.basis_matrix(),
        execution_time=np.float64(result.execution_time),
    )


def load_fused_grid(path: Path) -> dict[str, np.ndarray]:
    """Load the arrays written by save_fused_grid."""
    with np.load(str(path)) as data:
        return {key: data[key] for key in data.files}


# ── VTK structured grid ──────────────────────────────────────────────

def _format_values(values: np.ndarray, per_line: int = 6) -> str:
    flat = np.asarray(values).ravel()
    lines = []
    for i in range(0, len(flat), per_line):
        lines.append(" ".join(repr(float(v)) if flat.dtype.kind == "f" else str(int(v))
                              for v in flat[i:i + per_line]))
    return "\n".join(lines)


def write_vts(
    path: Path,
    dims: tuple[int, int, int],
    points: np.ndarray,
    point_data: dict[str, np.ndarray],
) -> None:
    """Write an ASCII VTK XML StructuredGrid (.vts).

    Args:
        dims: (nx, ny, nz) point counts.
        points: (nx*ny*nz, 3) coordinates in VTK order (x fastest).
        point_data: name -> flat array in the same order. Float arrays are written
            as Float64, integer arrays as Int32.
    """
    nx, ny, nz = dims
    extent = f"0 {nx - 1} 0 {ny - 1} 0 {nz - 1}"
    n = nx * ny * nz
    if len(points) != n:
        raise ValueError(f"Expected {n} points, got {len(points)}")

    arrays = []
    for name, values in point_data.items():
        values = np.asarray(values).ravel()
        if len(values) != n:
            raise ValueError(f"Point data '{name}' has {len(values)} values, expected {n}")
        vtk_type = "Float64" if values.dtype.kind == "f" else "Int32"
        arrays.append(
            f'        <DataArray type="{vtk_type}" Name="{name}" format="ascii">\n'
            f"{_format_values(values)}\n"
            "        </DataArray>\n"
        )

    first = next(iter(point_data), None)
    scalars_attr = f' Scalars="{first}"' if first else ""
    with open(path, "w", encoding="utf-8") as f:
        f.write('<?xml version="1.0"?>\n')
        f.write('<VTKFile type="StructuredGrid" version="0.1" byte_order="LittleEndian">\n')
        f.write(f'  <StructuredGrid WholeExtent="{extent}">\n')
        f.write(f'    <Piece Extent="{extent}">\n')
        f.write(f"      <PointData{scalars_attr}>\n")
        for block in arrays:
            f.write(block)
        f.write("      </PointData>\n")
        f.write("      <Points>\n")
        f.write('        <DataArray type="Float64" NumberOfComponents="3" format="ascii">\n')
        f.write(_format_values(np.asarray(points, dtype=np.float64), per_line=3) + "\n")
        f.write("        </DataArray>\n")
        f.write("      </Points>\n")
        f.write("    </Piece>\n")
        f.write("  </StructuredGrid>\n")
        f.write("</VTKFile>\n")
