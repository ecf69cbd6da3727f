from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional, Tuple

from cv2 import (KeyPoint, FlannBasedMatcher, BFMatcher,
                 NORM_HAMMING, COLOR_BGR2GRAY,
                 SIFT_create, ORB_create, cvtColor)
import numpy as np

from .pipeline.config import FeatureConfig

MatcherType = Literal["sift", "orb"]


@dataclass
class Features:
    kpts_xy: np.ndarray   # (N,2) float32
    scales: np.ndarray    # (N,) float32 keypoint diameter
    desc: np.ndarray      # (N,D) float32 (SIFT) or uint8 (ORB)

    def __len__(self) -> int:
        return int(self.kpts_xy.shape[0])


def _empty(dim: int, dtype) -> Features:
    return Features(np.zeros((0, 2), np.float32), np.zeros((0,), np.float32), np.zeros((0, dim), dtype))


def _to_xy(kps: List[KeyPoint]) -> np.ndarray:
    return np.array([kp.pt for kp in kps], dtype=np.float32)


def _to_scales(kps: List[KeyPoint]) -> np.ndarray:
    return np.array([kp.size for kp in kps], dtype=np.float32)


def detect_and_describe(
    image_bgr: np.ndarray,
    config: Optional[FeatureConfig] = None,
) -> Features:
    """
    Detect keypoints + descriptors.
    SIFT gives the strong baseline. ORB is faster but less stable.
    """
    cfg = config if config is not None else FeatureConfig()
    gray = cvtColor(image_bgr, COLOR_BGR2GRAY) if image_bgr.ndim == 3 else image_bgr

    if cfg.method == "sift":
        det = SIFT_create(nfeatures=cfg.sift_nfeatures,
                          nOctaveLayers=cfg.sift_nOctaveLayers,
                          contrastThreshold=cfg.sift_contrastThreshold,
                          edgeThreshold=cfg.sift_edgeThreshold,
                          sigma=cfg.sift_sigma)
        kps, desc = det.detectAndCompute(gray, None)
        if desc is None or len(kps) == 0:
            return _empty(128, np.float32)
        return Features(_to_xy(kps), _to_scales(kps), desc.astype(np.float32))

    if cfg.method == "orb":
        det = ORB_create(nfeatures=cfg.orb_nfeatures)
        kps, desc = det.detectAndCompute(gray, None)
        if desc is None or len(kps) == 0:
            return _empty(32, np.uint8)
        return Features(_to_xy(kps), _to_scales(kps), desc)

    raise ValueError(f"Unknown method: {cfg.method}")


def _knn_ratio(d1: np.ndarray, d2: np.ndarray, method: MatcherType, ratio: float) -> List[Tuple[int, int, float]]:
    if method == "sift":
        index_params = dict(algorithm=1, trees=5)
        search_params = dict(checks=100)
        matcher = FlannBasedMatcher(index_params, search_params)
    else:
        matcher = BFMatcher(NORM_HAMMING, crossCheck=False)

    scored: List[Tuple[int, int, float]] = []
    for m_n in matcher.knnMatch(d1, d2, k=2):
        if len(m_n) < 2:
            continue
        m, n = m_n
        if m.distance < ratio * n.distance:
            scored.append((m.queryIdx, m.trainIdx, float(m.distance)))
    return scored


def match_descriptors(
    f1: Features,
    f2: Features,
    method: MatcherType = "sift",
    ratio: float = 0.8,
    mutual: bool = False,
) -> List[Tuple[int, int]]:
    """
    Nearest-neighbour matching with Lowe's ratio test, one-to-one by distance.
    Returns (i, j) index pairs into f1 / f2.
    """
    if f1.desc is None or f2.desc is None or len(f1) == 0 or len(f2) == 0:
        return []

    # knnMatch(k=2) needs at least two train descriptors
    if len(f1.desc) < 2 or len(f2.desc) < 2:
        return []

    if method == "sift":
        d1 = f1.desc.astype(np.float32, copy=False)
        d2 = f2.desc.astype(np.float32, copy=False)
    else:
        d1 = f1.desc
        d2 = f2.desc

    m12 = make_unique_matches_by_distance(_knn_ratio(d1, d2, method, ratio))
    if not mutual:
        return m12

    m21 = make_unique_matches_by_distance(_knn_ratio(d2, d1, method, ratio))
    m21_set = set((j, i) for (i, j) in m21)
    return [p for p in m12 if p in m21_set]


def make_unique_matches_by_distance(
    matches: List[Tuple[int, int, float]]
) -> List[Tuple[int, int]]:
    """
    Enforce one-to-one mapping by keeping the lowest-distance matches first.
    Input: (i, j, dist)
    Output: (i, j)
    """
    matches_sorted = sorted(matches, key=lambda x: x[2])  # smallest distance first
    used_i = set()
    used_j = set()
    out: List[Tuple[int, int]] = []
    for i, j, d in matches_sorted:
        if i in used_i or j in used_j:
            continue
        used_i.add(i)
        used_j.add(j)
        out.append((i, j))
    return out
