"""Tests for rayfusion.utils.io."""

from pathlib import Path

import numpy as np
import pytest

from rayfusion.utils.io import read_depth_map, read_krtd, read_path_list, write_vts


class TestPathList:
    def test_keeps_only_file_names(self, tmp_path: Path):
        list_file = tmp_path / "list.txt"
        list_file.write_text("/abs/dir/a.npy\n\nC:\\win\\dir\\b.npy\nc.npy\n")
        paths = read_path_list(list_file, tmp_path / "data")
        assert paths == [tmp_path / "data" / "a.npy", tmp_path / "data" / "b.npy", tmp_path / "data" / "c.npy"]


class TestKrtd:
    def test_reads_layout(self, tmp_path: Path):
        path = tmp_path / "cam.krtd"
        path.write_text(
            "1000 0 320\n0 1000 240\n0 0 1\n\n"
            "1 0 0\n0 0 -1\n0 1 0\n\n"
            "0.5 -1 7\n\n0 0 0 0 0\n"
        )
        K, TR = read_krtd(path)
        np.testing.assert_array_equal(K, [[1000, 0, 320], [0, 1000, 240], [0, 0, 1]])
        np.testing.assert_array_equal(TR[:3, :3], [[1, 0, 0], [0, 0, -1], [0, 1, 0]])
        np.testing.assert_array_equal(TR[:3, 3], [0.5, -1, 7])
        np.testing.assert_array_equal(TR[3], [0, 0, 0, 1])

    def test_full_precision_values(self, tmp_path: Path):
        path = tmp_path / "a.krtd"
        path.write_text(
            "10 0.1 4\n0 11 3\n0 0 1\n\n"
            "1 0 0\n0 1 0\n0 0 1\n\n"
            "0.33333333333333331 2 -3\n"
        )
        _, TR = read_krtd(path)
        assert TR[0, 3] == 1.0 / 3.0

    def test_truncated_file(self, tmp_path: Path):
        path = tmp_path / "bad.krtd"
        path.write_text("1 0 0\n0 1 0\n")
        with pytest.raises(ValueError, match="expected at least 7"):
            read_krtd(path)

    def test_non_numeric(self, tmp_path: Path):
        path = tmp_path / "bad.krtd"
        path.write_text("a b c\n" * 7)
        with pytest.raises(ValueError, match="non-numeric"):
            read_krtd(path)


class TestDepthMap:
    def test_npy(self, tmp_path: Path):
        np.save(str(tmp_path / "d.npy"), np.full((3, 4), 2000, dtype=np.uint16))
        depth = read_depth_map(tmp_path / "d.npy", depth_scale=1000.0)
        assert depth.dtype == np.float64
        np.testing.assert_allclose(depth, 2.0)

    def test_npz_depth_key(self, tmp_path: Path):
        np.savez(str(tmp_path / "d.npz"), mask=np.zeros((2, 2)), depth=np.ones((2, 2)))
        np.testing.assert_array_equal(read_depth_map(tmp_path / "d.npz"), np.ones((2, 2)))

    def test_single_channel_squeezed(self, tmp_path: Path):
        np.save(str(tmp_path / "d.npy"), np.ones((3, 4, 1)))
        assert read_depth_map(tmp_path / "d.npy").shape == (3, 4)

    def test_vti_keeps_image_rows(self, tmp_path: Path, write_vti):
        depth = np.arange(12, dtype=np.float32).reshape(3, 4) + 1.0
        write_vti(tmp_path / "d.vti", depth)
        loaded = read_depth_map(tmp_path / "d.vti")
        assert loaded.dtype == np.float64
        assert loaded.shape == (3, 4)
        np.testing.assert_array_equal(loaded, depth)

    def test_vti_scaled(self, tmp_path: Path, write_vti):
        write_vti(tmp_path / "d.vti", np.full((2, 5), 1500.0), array_name="depth_mm")
        np.testing.assert_allclose(read_depth_map(tmp_path / "d.vti", depth_scale=1000.0), 1.5)

    def test_missing_vti(self, tmp_path: Path):
        with pytest.raises(OSError):
            read_depth_map(tmp_path / "absent.vti")

    def test_rejects_color_image(self, tmp_path: Path):
        np.save(str(tmp_path / "d.npy"), np.ones((3, 4, 3)))
        with pytest.raises(ValueError, match="2-D"):
            read_depth_map(tmp_path / "d.npy")


class TestVts:
    def test_structure(self, tmp_path: Path):
        points = np.array([[x, y, 0.0] for y in range(2) for x in range(3)])
        path = tmp_path / "g.vts"
        write_vts(path, (3, 2, 1), points, {
            "scalar": np.array([0.5, np.nan, 1.0, 2.0, 3.0, 4.0]),
            "count": np.array([1, 0, 1, 1, 1, 1], dtype=np.int32),
        })
        text = path.read_text()
        assert text.startswith('<?xml version="1.0"?>')
        assert 'type="StructuredGrid"' in text
        assert 'WholeExtent="0 2 0 1 0 0"' in text
        assert '<PointData Scalars="scalar">' in text
        assert 'type="Float64" Name="scalar"' in text
        assert 'type="Int32" Name="count"' in text
        assert "1 0 1 1 1 1" in text

    def test_size_mismatch(self, tmp_path: Path):
        with pytest.raises(ValueError):
            write_vts(tmp_path / "g.vts", (2, 2, 2), np.zeros((7, 3)), {})
