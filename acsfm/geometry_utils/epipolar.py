from __future__ import annotations

import numpy as np

from .projective import as_points_nx2, skew, to_homogeneous


def essential_from_pose(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """
    E = [t]x R, so that x_R^T E x_L = 0 for normalized rays when
    X_R = R X_L + t. Returned with unit Frobenius norm.
    """
    R = np.asarray(R, np.float64)
    E = skew(t) @ R
    return E / (np.linalg.norm(E) + 1e-12)


def fundamental_from_essential(
    E: np.ndarray,
    K_L: np.ndarray,
    K_R: np.ndarray,
) -> np.ndarray:
    """F = K_R^-T E K_L^-1 such that p_R^T F p_L = 0 in pixels."""
    K_L = np.asarray(K_L, np.float64)
    K_R = np.asarray(K_R, np.float64)
    return np.linalg.inv(K_R).T @ np.asarray(E, np.float64) @ np.linalg.inv(K_L)


def project_to_essential(E: np.ndarray) -> np.ndarray:
    """
    Closest essential matrix: singular values forced to (1, 1, 0),
    then scaled to unit Frobenius norm.
    """
    U, _, Vt = np.linalg.svd(np.asarray(E, np.float64))
    Ep = U @ np.diag([1.0, 1.0, 0.0]) @ Vt
    return Ep / np.linalg.norm(Ep)


def is_essential(E: np.ndarray, tol: float = 1e-6) -> bool:
    """True when singular values are (s, s, 0) up to tol (relative to s)."""
    E = np.asarray(E, np.float64)
    if E.shape != (3, 3) or not np.isfinite(E).all():
        return False
    s = np.linalg.svd(E, compute_uv=False)
    if s[0] <= 0:
        return False
    return abs(s[0] - s[1]) <= tol * s[0] and abs(s[2]) <= tol * s[0]


def sampson_distance(
    F: np.ndarray,
    pts_L: np.ndarray,  # (N,2) pixels in left image
    pts_R: np.ndarray,  # (N,2) pixels in right image
) -> np.ndarray:
    """
    First-order geometric (Sampson) distance of each correspondence to the
    epipolar geometry F, in pixels.

    d^2 = (x_R^T F x_L)^2 / ((F x_L)_1^2 + (F x_L)_2^2 + (F^T x_R)_1^2 + (F^T x_R)_2^2)

    Returns:
      d: (N,) float64, +inf where the denominator vanishes.
    """
    F = np.asarray(F, np.float64)
    xl = to_homogeneous(as_points_nx2(pts_L))
    xr = to_homogeneous(as_points_nx2(pts_R))

    Fx = xl @ F.T    # rows: F x_L
    Ftx = xr @ F     # rows: F^T x_R
    e = np.sum(xr * Fx, axis=1)
    den = Fx[:, 0] ** 2 + Fx[:, 1] ** 2 + Ftx[:, 0] ** 2 + Ftx[:, 1] ** 2

    d = np.full(e.shape, np.inf, dtype=np.float64)
    ok = den > 1e-300
    d[ok] = np.abs(e[ok]) / np.sqrt(den[ok])
    return d
