import numpy as np
import pytest

from acsfm.matches import (
    CorrespondenceSet,
    deduplicate_correspondences,
    deduplicate_matches,
)

KL = np.array([[10.0, 20.0], [10.0, 20.0], [30.0, 40.0], [10.2, 20.1]])
KR = np.array([[1.0, 2.0], [1.0, 2.0], [5.0, 6.0], [1.1, 2.2]])


def test_exact_duplicates_removed_in_order():
    pairs = [(0, 0), (2, 2), (1, 1), (0, 2)]
    # (1,1) has the same coordinates as (0,0) on both sides
    assert deduplicate_matches(pairs, KL, KR) == [(0, 0), (2, 2), (0, 2)]


def test_same_left_different_right_is_kept():
    pairs = [(0, 0), (0, 2)]
    assert deduplicate_matches(pairs, KL, KR) == pairs


def test_tolerance_merges_near_duplicates():
    pairs = [(0, 0), (3, 3)]
    assert deduplicate_matches(pairs, KL, KR, tol=0.0) == pairs
    assert deduplicate_matches(pairs, KL, KR, tol=1.0) == [(0, 0)]


def test_idempotent():
    pairs = [(0, 0), (1, 1), (2, 2), (3, 3), (1, 0), (2, 2)]
    once = deduplicate_matches(pairs, KL, KR, tol=0.5)
    assert deduplicate_matches(once, KL, KR, tol=0.5) == once


def test_empty_input():
    assert deduplicate_matches([], KL, KR) == []
    empty = CorrespondenceSet.from_matches([], KL, KR)
    assert len(deduplicate_correspondences(empty)) == 0


def test_out_of_range_index_rejected():
    with pytest.raises(ValueError):
        CorrespondenceSet.from_matches([(0, 9)], KL, KR)


def test_correspondence_set_iteration_and_subset():
    corrs = CorrespondenceSet.from_matches([(0, 0), (2, 2), (1, 1)], KL, KR)
    unique = deduplicate_correspondences(corrs)
    assert len(unique) == 2
    first = next(iter(unique))
    assert (first.i, first.j) == (0, 0)
    assert first.xy_left == (10.0, 20.0)
    sub = corrs.subset([1])
    np.testing.assert_allclose(sub.xR, [[5.0, 6.0]])


def test_tolerance_merges_points_across_pixel_boundary():
    kl = np.array([[0.999, 5.0], [1.001, 5.0]])
    kr = np.array([[7.0, 7.0], [7.0, 7.0]])
    assert deduplicate_matches([(0, 0), (1, 1)], kl, kr, tol=0.01) == [(0, 0)]


def test_tolerance_compares_against_kept_rows_only():
    # 0 and 2 are 1.2 px apart; 1 sits between them and is dropped by 0,
    # so 2 is kept
    kl = np.array([[0.0, 0.0], [0.6, 0.0], [1.2, 0.0]])
    kr = np.zeros((3, 2))
    pairs = [(0, 0), (1, 1), (2, 2)]
    once = deduplicate_matches(pairs, kl, kr, tol=1.0)
    assert once == [(0, 0), (2, 2)]
    assert deduplicate_matches(once, kl, kr, tol=1.0) == once
