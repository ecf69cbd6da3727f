"""
acsfm/matches.py

Putative correspondences between two images and their deduplication.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple, Union

import numpy as np
from scipy.spatial import cKDTree

Pair = Tuple[int, int]


@dataclass(frozen=True)
class Correspondence:
    i: int                          # feature index in the left image
    j: int                          # feature index in the right image
    xy_left: Tuple[float, float]
    xy_right: Tuple[float, float]


@dataclass(frozen=True)
class CorrespondenceSet:
    """Aligned arrays: row n of pairs/xL/xR describes correspondence n."""
    pairs: np.ndarray   # (N,2) int64
    xL: np.ndarray      # (N,2) float64 pixels
    xR: np.ndarray      # (N,2) float64 pixels

    @classmethod
    def from_matches(
        cls,
        pairs: Union[Sequence[Pair], np.ndarray],
        kpts_left: np.ndarray,
        kpts_right: np.ndarray,
    ) -> "CorrespondenceSet":
        """
        Look up pixel coordinates for (i, j) feature index pairs.
        Raises ValueError when an index is outside its keypoint table.
        """
        P = np.asarray(pairs, dtype=np.int64).reshape(-1, 2)
        kl = np.asarray(kpts_left, dtype=np.float64).reshape(-1, 2)
        kr = np.asarray(kpts_right, dtype=np.float64).reshape(-1, 2)

        if P.shape[0] and (P.min() < 0 or P[:, 0].max() >= kl.shape[0] or P[:, 1].max() >= kr.shape[0]):
            raise ValueError(
                f"Match indices out of range for keypoint tables of size {kl.shape[0]} / {kr.shape[0]}"
            )
        return cls(pairs=P, xL=kl[P[:, 0]], xR=kr[P[:, 1]])

    def subset(self, idx: np.ndarray) -> "CorrespondenceSet":
        idx = np.asarray(idx, dtype=np.int64).reshape(-1)
        return CorrespondenceSet(pairs=self.pairs[idx], xL=self.xL[idx], xR=self.xR[idx])

    def __len__(self) -> int:
        return int(self.pairs.shape[0])

    def __iter__(self) -> Iterator[Correspondence]:
        for (i, j), a, b in zip(self.pairs, self.xL, self.xR):
            yield Correspondence(int(i), int(j), (float(a[0]), float(a[1])), (float(b[0]), float(b[1])))


def _first_occurrence(coords: np.ndarray) -> np.ndarray:
    """Indices of the first row of each distinct (xL, xR) row, in input order."""
    seen = set()
    keep: List[int] = []
    for n, row in enumerate(coords):
        key = tuple(row.tolist())
        if key in seen:
            continue
        seen.add(key)
        keep.append(n)
    return np.asarray(keep, dtype=np.int64)


def _first_within_tol(coords: np.ndarray, tol: float) -> np.ndarray:
    """
    First-occurrence scan with a Chebyshev tolerance: a row is dropped when
    an already kept row lies within tol in all four coordinates.
    """
    tree = cKDTree(coords)
    neighbours = tree.query_ball_point(coords, r=float(tol), p=np.inf)
    kept = np.zeros((coords.shape[0],), dtype=bool)
    for n, near in enumerate(neighbours):
        if not any(m < n and kept[m] for m in near):
            kept[n] = True
    return np.flatnonzero(kept).astype(np.int64)


def _unique_rows(xL: np.ndarray, xR: np.ndarray, tol: float) -> np.ndarray:
    coords = np.hstack([xL, xR])
    if tol > 0:
        return _first_within_tol(coords, tol)
    return _first_occurrence(coords)


def deduplicate_matches(
    pairs: Union[Sequence[Pair], np.ndarray],
    kpts_left: np.ndarray,
    kpts_right: np.ndarray,
    tol: float = 0.0,
) -> List[Pair]:
    """
    Remove correspondences whose left AND right coordinates repeat an
    earlier one. With tol > 0 a row is a duplicate when every coordinate
    lies within tol pixels of a row already kept.

    Keeps the first occurrence and the input order. Idempotent.
    """
    corrs = CorrespondenceSet.from_matches(pairs, kpts_left, kpts_right)
    if len(corrs) == 0:
        return []
    keep = _unique_rows(corrs.xL, corrs.xR, tol)
    return [(int(i), int(j)) for i, j in corrs.pairs[keep]]


def deduplicate_correspondences(corrs: CorrespondenceSet, tol: float = 0.0) -> CorrespondenceSet:
    if len(corrs) == 0:
        return corrs
    keep = _unique_rows(corrs.xL, corrs.xR, tol)
    return corrs.subset(keep)
