import numpy as np

from acsfm.geometry import (
    PinholeCamera,
    ResidualStats,
    triangulate_dlt,
    triangulate_dlt_batch,
    triangulate_inliers,
)
from conftest import K


def test_noiseless_points_are_recovered(scene):
    X = triangulate_dlt_batch(scene.cam_left.P, scene.xL, scene.cam_right.P, scene.xR)
    np.testing.assert_allclose(X, scene.X, atol=1e-6)

    X0 = triangulate_dlt(scene.cam_left.P, scene.xL[0], scene.cam_right.P, scene.xR[0])
    np.testing.assert_allclose(X0, scene.X[0], atol=1e-6)


def test_report_on_noiseless_scene(scene):
    rep = triangulate_inliers(scene.cam_left, scene.cam_right, scene.xL, scene.xR, np.arange(scene.n_inliers))

    assert rep.n_points == scene.n_inliers
    assert rep.n_negative_depth == 0
    np.testing.assert_array_equal(rep.kept_indices, np.arange(scene.n_inliers))
    assert np.all(rep.residuals < 1e-6)
    assert rep.stats.max < 1e-6
    assert np.all(rep.depths_left > 0) and np.all(rep.depths_right > 0)


def test_point_behind_both_cameras_is_dropped():
    cam_L = PinholeCamera.at_origin(K)
    cam_R = PinholeCamera(K=K, R=np.eye(3), t=np.array([[-1.0], [0.0], [0.0]]))
    X = np.array([[0.2, 0.1, 5.0],      # in front of both
                  [0.3, -0.2, -4.0]])   # behind both
    xL, xR = cam_L.project(X), cam_R.project(X)

    rep = triangulate_inliers(cam_L, cam_R, xL, xR)
    assert rep.n_negative_depth == 1
    np.testing.assert_array_equal(rep.kept_indices, [0])
    np.testing.assert_allclose(rep.points, X[:1], atol=1e-8)


def test_point_behind_one_camera_is_kept():
    cam_L = PinholeCamera.at_origin(K)
    cam_R = PinholeCamera(K=K, R=np.eye(3), t=np.array([[0.0], [0.0], [10.0]]))
    X = np.array([[1.0, 0.5, -2.0]])
    assert cam_L.depth(X[0]) < 0 < cam_R.depth(X[0])

    rep = triangulate_inliers(cam_L, cam_R, cam_L.project(X), cam_R.project(X))
    assert rep.n_negative_depth == 0
    assert rep.n_points == 1


def test_camera_helpers():
    cam = PinholeCamera(K=K, R=np.eye(3), t=np.array([[0.0], [0.0], [2.0]]))
    np.testing.assert_allclose(cam.C, [0.0, 0.0, -2.0])
    assert cam.P.shape == (3, 4)
    assert cam.depth(np.array([0.0, 0.0, 1.0])) == 3.0
    np.testing.assert_allclose(cam.project(np.array([[0.0, 0.0, 1.0]])), [[320.0, 240.0]])
    np.testing.assert_allclose(cam.residual(np.array([[0.0, 0.0, 1.0]]), np.array([[323.0, 244.0]])), [5.0])


def test_residual_stats_of_nothing_are_nan():
    st = ResidualStats.from_residuals(np.array([]))
    assert all(np.isnan(v) for v in (st.min, st.max, st.mean, st.median))

    st = ResidualStats.from_residuals(np.array([1.0, 2.0, 6.0]))
    assert (st.min, st.max, st.mean, st.median) == (1.0, 6.0, 3.0, 2.0)


def test_batch_keeps_row_alignment_around_non_finite_input(scene):
    xL = scene.xL[:4].copy()
    xL[1] = np.nan
    X = triangulate_dlt_batch(scene.cam_left.P, xL, scene.cam_right.P, scene.xR[:4])

    assert X.shape == (4, 3) and X.dtype == np.float64
    assert np.all(np.isnan(X[1]))
    np.testing.assert_allclose(X[[0, 2, 3]], scene.X[[0, 2, 3]], atol=1e-6)
    assert triangulate_dlt_batch(scene.cam_left.P, np.zeros((0, 2)), scene.cam_right.P, np.zeros((0, 2))).shape == (0, 3)
