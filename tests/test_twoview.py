import numpy as np
import pytest

from acsfm.errors import PoseRecoveryError
from acsfm.geometry import PinholeCamera, decompose_essential, recover_pose
from conftest import K, make_scene


def test_decomposition_yields_proper_rotations(scene):
    cands = decompose_essential(scene.E)
    assert cands._fields == ("ua_pos", "ua_neg", "ub_pos", "ub_neg")
    for R, t in cands:
        np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-10)
        assert np.linalg.det(R) == pytest.approx(1.0)
        assert np.linalg.norm(t) == pytest.approx(1.0)


def test_true_pose_is_among_candidates(scene):
    t_unit = scene.t / np.linalg.norm(scene.t)
    hits = [
        name for name, (R, t) in zip(decompose_essential(scene.E)._fields, decompose_essential(scene.E))
        if np.allclose(R, scene.R, atol=1e-8) and np.allclose(t, t_unit, atol=1e-8)
    ]
    assert len(hits) == 1


def test_recover_pose_selects_ground_truth(scene):
    pose = recover_pose(scene.E, K, K, scene.xL, scene.xR, np.arange(scene.n_inliers))

    np.testing.assert_allclose(pose.R, scene.R, atol=1e-8)
    np.testing.assert_allclose(pose.t, scene.t / np.linalg.norm(scene.t), atol=1e-8)
    assert pose.n_tested == scene.n_inliers
    assert pose.n_positive == scene.n_inliers


def test_recover_pose_caps_tested_points():
    s = make_scene(150, seed=5)
    pose = recover_pose(s.E, K, K, s.xL, s.xR, np.arange(150), max_test_points=100)
    assert pose.n_tested == 100


def test_no_inliers_raises(scene):
    with pytest.raises(PoseRecoveryError):
        recover_pose(scene.E, K, K, scene.xL, scene.xR, np.array([], dtype=int))


def test_mixed_cheirality_raises(scene):
    # half the points in front of both cameras, half behind both
    front = scene.X[:10]
    behind = scene.X[10:20] * np.array([1.0, 1.0, -1.0])
    X = np.vstack([front, behind])

    cam_L = PinholeCamera.at_origin(K)
    cam_R = PinholeCamera(K=K, R=scene.R, t=scene.t)
    assert np.all(cam_L.depth(behind) < 0) and np.all(cam_R.depth(behind) < 0)

    xL = cam_L.project(X)
    xR = cam_R.project(X)
    with pytest.raises(PoseRecoveryError):
        recover_pose(scene.E, K, K, xL, xR, np.arange(20))
