"""
acsfm/geometry_utils/acransac.py

A-contrario RANSAC (AC-RANSAC) for the essential matrix.

The inlier threshold is not a parameter: each hypothesis is scored by its
Number of False Alarms (NFA), and the (model, inlier count, threshold)
triple with the lowest NFA wins. A model is accepted only when its NFA is
below the configured bound (log10 scale, default 0 i.e. NFA < 1).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.special import gammaln

from ..pipeline.config import RansacConfig
from .epipolar import fundamental_from_essential, sampson_distance
from .projective import as_points_nx2, normalize_points
from .solvers import get_solver

_LN10 = math.log(10.0)

# Residuals are floored before taking the log so that exact fits
# (noiseless data, the sample itself) keep a finite NFA.
_EPS_RESIDUAL = float(np.finfo(np.float32).eps)


@dataclass(frozen=True)
class EssentialEstimate:
    found: bool
    E: Optional[np.ndarray]       # (3,3) unit Frobenius norm, None when not found
    inliers: np.ndarray           # sorted correspondence indices
    threshold: float              # Sampson distance (px) of the last inlier
    nfa: float                    # log10 NFA of the best hypothesis
    iterations: int
    solver: str

    @property
    def n_inliers(self) -> int:
        return int(self.inliers.size)

    @classmethod
    def not_found(cls, solver: str, iterations: int = 0, nfa: float = np.inf) -> "EssentialEstimate":
        return cls(
            found=False,
            E=None,
            inliers=np.zeros((0,), dtype=np.int64),
            threshold=float("inf"),
            nfa=float(nfa),
            iterations=int(iterations),
            solver=solver,
        )


# ----------------------------
# NFA helpers
# ----------------------------

def log10_comb(n, k) -> np.ndarray:
    """log10 of the binomial coefficient C(n, k), vectorized."""
    n = np.asarray(n, dtype=np.float64)
    k = np.asarray(k, dtype=np.float64)
    return (gammaln(n + 1.0) - gammaln(k + 1.0) - gammaln(n - k + 1.0)) / _LN10


def log10_alpha0(size: Sequence[float]) -> float:
    """
    log10 of the probability that a uniform random point of a (w, h) image
    falls within 1 px of a line: 2 * diagonal / area.
    """
    w, h = float(size[0]), float(size[1])
    if w <= 0 or h <= 0:
        raise ValueError(f"Image size must be positive, got {size}")
    return math.log10(2.0 * math.hypot(w, h) / (w * h))


def best_nfa(
    d_sorted: np.ndarray,
    sample_size: int,
    log_e0: float,
    logc_n: np.ndarray,
    logc_k: np.ndarray,
    log_alpha0: float,
    max_threshold: float = np.inf,
) -> Tuple[float, int]:
    """
    Minimize NFA(k) = log_e0 + log10 C(N,k) + log10 C(k,s) + (k-s) * min(0, log10(alpha0 * d_k))
    over k = s+1..N, where d_k is the k-th smallest residual.

    Returns:
      (nfa, k). k == 0 when no admissible k exists (nfa is +inf then).
    """
    s = int(sample_size)
    N = d_sorted.shape[0]
    if N <= s:
        return float("inf"), 0

    k = np.arange(s + 1, N + 1)
    dk = d_sorted[s:]
    ok = np.isfinite(dk) & (dk <= max_threshold)
    if not np.any(ok):
        return float("inf"), 0

    log_res = np.minimum(0.0, log_alpha0 + np.log10(np.maximum(dk, _EPS_RESIDUAL)))
    nfa = log_e0 + logc_n[k] + logc_k[k] + (k - s) * log_res
    nfa = np.where(ok, nfa, np.inf)

    j = int(np.argmin(nfa))
    return float(nfa[j]), int(k[j])


def iterations_needed(inlier_ratio: float, sample_size: int, confidence: float, cap: int) -> int:
    """Trials needed to draw one all-inlier sample with the given confidence."""
    p = float(inlier_ratio) ** int(sample_size)
    if p >= 1.0 - 1e-12:
        return 1
    if p <= 0.0:
        return int(cap)
    n = math.log(1.0 - float(confidence)) / math.log(1.0 - p)
    return int(min(cap, math.ceil(n)))


# ----------------------------
# Estimator
# ----------------------------

def robust_essential(
    K_L: np.ndarray,
    K_R: np.ndarray,
    xL: np.ndarray,
    xR: np.ndarray,
    size_L: Sequence[int],
    size_R: Sequence[int],
    max_threshold: float = np.inf,
    config: Optional[RansacConfig] = None,
    rng: Optional[np.random.Generator] = None,
    logger=None,
) -> EssentialEstimate:
    """
    Estimate E with x_R^T E x_L = 0 from pixel correspondences.

    Args:
      K_L, K_R: (3,3) intrinsics of the left / right camera
      xL, xR: (N,2) or (2,N) pixel coordinates
      size_L, size_R: (width, height) of each image. The right image sets
        alpha0 since residuals are measured against right epipolar lines.
      max_threshold: upper bound on the inlier threshold in pixels
      config: sampling parameters (solver, budget, confidence, seed, ...)
      rng: optional generator; defaults to default_rng(config.seed)

    Returns:
      EssentialEstimate. found=False is a normal outcome, not an error.
    """
    cfg = config if config is not None else RansacConfig()
    solver = get_solver(cfg.solver)
    s = solver.sample_size

    pts_L = as_points_nx2(xL)
    pts_R = as_points_nx2(xR)
    if pts_L.shape != pts_R.shape:
        raise ValueError(f"xL/xR must have the same number of points. Got {pts_L.shape} and {pts_R.shape}")
    for name, size in (("size_L", size_L), ("size_R", size_R)):
        if size is None or len(size) != 2 or min(size) <= 0:
            raise ValueError(f"{name} must be a positive (width, height), got {size}")

    N = pts_L.shape[0]
    if N <= s:
        if logger:
            logger.info(f"AC-RANSAC: {N} correspondences, {solver.name} needs more than {s}. Skipping.")
        return EssentialEstimate.not_found(solver.name)

    K_L = np.asarray(K_L, np.float64)
    K_R = np.asarray(K_R, np.float64)
    nL = normalize_points(K_L, pts_L)
    nR = normalize_points(K_R, pts_R)

    thr_cap = min(float(max_threshold), float(cfg.max_threshold))

    all_k = np.arange(N + 1)
    logc_n = log10_comb(N, all_k)
    logc_k = np.where(all_k >= s, log10_comb(np.maximum(all_k, s), s), -np.inf)
    log_alpha0 = log10_alpha0(size_R)
    log_e0 = math.log10(solver.max_models * (N - s))

    if rng is None:
        rng = np.random.default_rng(cfg.seed)

    max_iter = max(1, int(cfg.max_iterations))
    min_iter = min(max_iter, max(0, int(cfg.min_iterations)))
    reserve = int(math.ceil(float(cfg.refine_fraction) * max_iter))
    budget = max_iter

    all_idx = np.arange(N)
    best_E: Optional[np.ndarray] = None
    best_inliers = np.zeros((0,), dtype=np.int64)
    best_thr = float("inf")
    best_nfa_val = float("inf")

    iteration = 0
    while iteration < budget:
        meaningful = best_nfa_val < cfg.nfa_bound
        if meaningful and iteration >= budget - reserve and best_inliers.size > s:
            pool = best_inliers
        else:
            pool = all_idx
        sample = rng.choice(pool, size=s, replace=False)
        iteration += 1

        for E in solver.solve(nL[sample], nR[sample]):
            F = fundamental_from_essential(E, K_L, K_R)
            d = sampson_distance(F, pts_L, pts_R)
            order = np.argsort(d, kind="stable")

            nfa, k = best_nfa(d[order], s, log_e0, logc_n, logc_k, log_alpha0, thr_cap)
            if k == 0 or nfa >= best_nfa_val:
                continue

            best_E = E
            best_inliers = np.sort(order[:k])
            best_thr = float(d[order[k - 1]])
            best_nfa_val = nfa

            if nfa < cfg.nfa_bound:
                needed = iterations_needed(k / N, s, cfg.confidence, max_iter)
                budget = min(max_iter, max(min_iter, iteration + needed + reserve))
                if logger:
                    logger.debug(
                        f"AC-RANSAC it={iteration}: {k}/{N} inliers, thr={best_thr:.4f}px, "
                        f"log10 NFA={nfa:.2f}, budget={budget}"
                    )

    if best_E is None or not best_nfa_val < cfg.nfa_bound:
        if logger:
            logger.info(
                f"AC-RANSAC: no meaningful model after {iteration} iterations "
                f"(best log10 NFA={best_nfa_val:.2f})"
            )
        return EssentialEstimate.not_found(solver.name, iterations=iteration, nfa=best_nfa_val)

    return EssentialEstimate(
        found=True,
        E=best_E,
        inliers=best_inliers.astype(np.int64),
        threshold=best_thr,
        nfa=best_nfa_val,
        iterations=iteration,
        solver=solver.name,
    )
