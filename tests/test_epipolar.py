import numpy as np

from acsfm.geometry import (
    fundamental_from_essential,
    is_essential,
    project_to_essential,
    sampson_distance,
)


def test_sampson_is_zero_for_true_matches(scene):
    F = fundamental_from_essential(scene.E, scene.K, scene.K)
    d = sampson_distance(F, scene.xL, scene.xR)
    assert d.shape == (scene.n_inliers,)
    assert np.all(d < 1e-6)


def test_sampson_accepts_column_aligned_points(scene):
    F = fundamental_from_essential(scene.E, scene.K, scene.K)
    shifted = scene.xR + np.array([0.0, 3.0])
    np.testing.assert_allclose(
        sampson_distance(F, scene.xL.T, shifted.T),
        sampson_distance(F, scene.xL, shifted),
    )
    assert np.all(sampson_distance(F, scene.xL, shifted) > 0)


def test_projection_onto_essential_manifold():
    rng = np.random.default_rng(0)
    E = project_to_essential(rng.normal(size=(3, 3)))
    s = np.linalg.svd(E, compute_uv=False)
    assert is_essential(E)
    np.testing.assert_allclose(s, [1 / np.sqrt(2), 1 / np.sqrt(2), 0.0], atol=1e-12)
    assert not is_essential(np.diag([1.0, 0.5, 0.0]))
