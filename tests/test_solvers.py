import numpy as np
import pytest

from acsfm.geometry import (
    SOLVERS,
    essential_eight_point,
    essential_five_point,
    get_solver,
    is_essential,
    normalize_points,
)
from conftest import e_distance, make_scene


def _rays(scene, idx):
    return normalize_points(scene.K, scene.xL[idx]), normalize_points(scene.K, scene.xR[idx])


def test_five_point_recovers_ground_truth():
    scene = make_scene(20, seed=3)
    nL, nR = _rays(scene, np.arange(5))
    cands = essential_five_point(nL, nR)

    assert 1 <= len(cands) <= 10
    assert all(is_essential(E) for E in cands)
    assert min(e_distance(E, scene.E) for E in cands) < 1e-6


def test_five_point_candidates_satisfy_epipolar_constraint():
    scene = make_scene(20, seed=4)
    nL, nR = _rays(scene, np.arange(5))
    best = min(essential_five_point(nL, nR), key=lambda E: e_distance(E, scene.E))
    r = np.abs(np.sum(nR * (nL @ best.T), axis=1))
    assert np.all(r < 1e-8)


def test_eight_point_recovers_ground_truth(scene):
    nL, nR = _rays(scene, np.arange(20))
    cands = essential_eight_point(nL, nR)
    assert len(cands) == 1
    assert is_essential(cands[0])
    assert e_distance(cands[0], scene.E) < 1e-7


def test_degenerate_samples_give_no_candidates():
    p = np.tile([[0.1, 0.2, 1.0]], (8, 1))
    assert essential_five_point(p[:5], p[:5]) == []
    assert essential_eight_point(p, p) == []

    bad = p.copy()
    bad[0, 0] = np.nan
    assert essential_five_point(bad[:5], p[:5]) == []


def test_too_few_points():
    scene = make_scene(10)
    nL, nR = _rays(scene, np.arange(4))
    assert essential_five_point(nL, nR) == []
    assert essential_eight_point(nL, nR) == []


def test_solver_registry():
    assert SOLVERS["five_point"].sample_size == 5
    assert SOLVERS["five_point"].max_models == 10
    assert SOLVERS["eight_point"].sample_size == 8
    assert SOLVERS["eight_point"].max_models == 1
    with pytest.raises(ValueError):
        get_solver("seven_point")
