import json

import numpy as np
import pytest

from acsfm.errors import ConfigError, ExportError
from data_io.camera import read_intrinsics, write_intrinsics
from data_io.matches_io import load_matches, save_matches
from data_io.parsing import parse_floats
from data_io.pointcloud_io import read_ply, write_ply, write_scene_ply

K_TXT = "2759.48 0 1520.69\n0 2764.16 1006.81\n0 0 1\n"


def test_read_intrinsics_txt(tmp_path):
    p = tmp_path / "K.txt"
    p.write_text(K_TXT)
    K = read_intrinsics(p)
    assert K.shape == (3, 3)
    assert K[0, 0] == pytest.approx(2759.48)
    assert K[1, 2] == pytest.approx(1006.81)


def test_read_intrinsics_json_and_yaml(tmp_path):
    pj = tmp_path / "cam.json"
    pj.write_text(json.dumps({"fx": 800, "fy": 810, "cx": 320, "cy": 240}))
    np.testing.assert_allclose(read_intrinsics(pj), [[800, 0, 320], [0, 810, 240], [0, 0, 1]])

    py = tmp_path / "cam.yaml"
    py.write_text("intrinsics:\n  K: [[700, 0, 300], [0, 700, 200], [0, 0, 1]]\n")
    assert read_intrinsics(py)[0, 0] == 700.0


@pytest.mark.parametrize("content", [
    "f 0 px\n0 f py\n0 0 1\n",          # non-numeric
    "800 0 320\n0 800 240\n0 0\n",      # too few values
    "800 0 320\n0 800 240\n0 0 2\n",    # K[2,2] != 1
    "-800 0 320\n0 800 240\n0 0 1\n",   # negative focal
    "800 0 320\n0 800 240\n0 0 nan\n",  # non-finite
])
def test_invalid_intrinsics_raise_config_error(tmp_path, content):
    p = tmp_path / "K.txt"
    p.write_text(content)
    with pytest.raises(ConfigError):
        read_intrinsics(p)


def test_missing_intrinsics_raise_config_error(tmp_path):
    with pytest.raises(ConfigError):
        read_intrinsics(tmp_path / "nope.txt")


def test_write_intrinsics_is_readable(tmp_path):
    K = np.array([[800.0, 0.0, 320.5], [0.0, 800.0, 240.25], [0.0, 0.0, 1.0]])
    write_intrinsics(tmp_path / "K.txt", K)
    np.testing.assert_array_equal(read_intrinsics(tmp_path / "K.txt"), K)


def test_parse_floats_comments_and_separators():
    assert parse_floats("# K\n1, 2 3\n[4;5]") == [1.0, 2.0, 3.0, 4.0, 5.0]
    with pytest.raises(ValueError):
        parse_floats("1 2 x")


def test_scene_ply_colors(tmp_path):
    pts = np.array([[0.0, 0.0, 1.0], [1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    centers = np.array([[0.0, 0.0, 0.0], [-1.0, 0.0, 0.0]])
    path = tmp_path / "scene.ply"
    write_scene_ply(path, pts, centers)

    X, colors = read_ply(path)
    np.testing.assert_allclose(X, np.vstack([pts, centers]))
    np.testing.assert_array_equal(colors[:3], np.full((3, 3), 255))
    np.testing.assert_array_equal(colors[3:], [[0, 255, 0], [0, 255, 0]])


def test_plain_ply_without_colors(tmp_path):
    write_ply(tmp_path / "a.ply", np.zeros((2, 3)))
    X, colors = read_ply(tmp_path / "a.ply")
    assert X.shape == (2, 3) and colors is None


def test_scene_ply_write_failure(tmp_path):
    with pytest.raises(ExportError):
        write_scene_ply(tmp_path, np.zeros((1, 3)), np.zeros((2, 3)))


def test_matches_npz(tmp_path):
    kl = np.arange(10.0).reshape(5, 2)
    kr = kl + 1.0
    m = np.array([[0, 1], [2, 3]])
    save_matches(tmp_path / "m.npz", kl, kr, m)
    a, b, c = load_matches(tmp_path / "m.npz")
    np.testing.assert_array_equal(a, kl)
    np.testing.assert_array_equal(b, kr)
    np.testing.assert_array_equal(c, m)

    np.savez(tmp_path / "bad.npz", kpts_left=kl)
    with pytest.raises(ValueError):
        load_matches(tmp_path / "bad.npz")
