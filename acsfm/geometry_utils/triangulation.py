import numpy as np
from dataclasses import dataclass
from typing import Optional

from cv2 import triangulatePoints

from .projective import PinholeCamera, as_points_nx2
from .reprojection import _is_finite_xyz

# ----------------------------
# Small numeric helpers
# ----------------------------
_EPS_W = 1e-12


def triangulate_dlt_batch(
    P_L: np.ndarray,
    x_L: np.ndarray,
    P_R: np.ndarray,
    x_R: np.ndarray,
) -> np.ndarray:
    """
    Linear (DLT) triangulation of N correspondences. No filtering here.

    Args:
      P_L, P_R: (3,4) projection matrices
      x_L, x_R: (N,2) pixel coordinates

    Returns:
      X: (N,3) float64. Points at infinity (w ~ 0) and non-finite inputs are NaN.
    """
    P_L = np.asarray(P_L, np.float64)
    P_R = np.asarray(P_R, np.float64)
    if P_L.shape != (3, 4) or P_R.shape != (3, 4):
        raise ValueError(f"P_L/P_R must be (3,4). Got {P_L.shape} and {P_R.shape}")

    x_L = as_points_nx2(x_L)
    x_R = as_points_nx2(x_R)
    if x_L.shape != x_R.shape:
        raise ValueError(f"x_L/x_R must match. Got {x_L.shape} and {x_R.shape}")

    N = x_L.shape[0]
    X = np.full((N, 3), np.nan, dtype=np.float64)
    finite = np.isfinite(x_L).all(axis=1) & np.isfinite(x_R).all(axis=1)
    if N == 0 or not np.any(finite):
        return X

    # OpenCV expects 2xN; float64 in gives float64 out
    x1 = np.ascontiguousarray(x_L[finite].T)
    x2 = np.ascontiguousarray(x_R[finite].T)

    X_h = triangulatePoints(P_L, P_R, x1, x2)  # (4,Nf)
    w = X_h[3]
    good_w = np.isfinite(w) & (np.abs(w) > _EPS_W)

    idx = np.where(finite)[0][good_w]
    X[idx] = (X_h[:3, good_w] / w[good_w]).T.astype(np.float64)
    return X


def triangulate_dlt(P_L: np.ndarray, x_L, P_R: np.ndarray, x_R) -> np.ndarray:
    """Single-point DLT. Returns (3,), NaN for a point at infinity."""
    x_L = np.asarray(x_L, np.float64).reshape(1, 2)
    x_R = np.asarray(x_R, np.float64).reshape(1, 2)
    return triangulate_dlt_batch(P_L, x_L, P_R, x_R)[0]


def cheirality_mask(X: np.ndarray, cam: PinholeCamera) -> np.ndarray:
    """
    Points with strictly positive depth in the given camera.
    Camera coordinates: Xc = R*X + t
    """
    X = np.asarray(X, dtype=np.float64)
    keep = np.zeros((X.shape[0],), dtype=bool)
    finite = _is_finite_xyz(X)
    if not np.any(finite):
        return keep
    z = cam.depth(X[finite])
    keep[np.where(finite)[0]] = np.isfinite(z) & (z > 0.0)
    return keep


@dataclass(frozen=True)
class ResidualStats:
    min: float
    max: float
    mean: float
    median: float

    @classmethod
    def from_residuals(cls, r: np.ndarray) -> "ResidualStats":
        r = np.asarray(r, np.float64)
        r = r[np.isfinite(r)]
        if r.size == 0:
            return cls(np.nan, np.nan, np.nan, np.nan)
        return cls(float(r.min()), float(r.max()), float(r.mean()), float(np.median(r)))


@dataclass(frozen=True)
class TriangulationReport:
    points: np.ndarray          # (M,3) kept points
    kept_indices: np.ndarray    # (M,) correspondence indices
    residuals: np.ndarray       # (M,) mean pixel reprojection error over both cameras
    depths_left: np.ndarray     # (M,)
    depths_right: np.ndarray    # (M,)
    n_negative_depth: int
    stats: ResidualStats

    @property
    def n_points(self) -> int:
        return int(self.points.shape[0])


def triangulate_inliers(
    cam_L: PinholeCamera,
    cam_R: PinholeCamera,
    xL: np.ndarray,
    xR: np.ndarray,
    inliers: Optional[np.ndarray] = None,
    logger=None,
) -> TriangulationReport:
    """
    Triangulate the inlier correspondences and drop points that lie behind
    both cameras. A point with non-negative depth in at least one camera is
    kept; non-finite points are dropped as well.

    Returns:
      TriangulationReport with residual statistics over the kept points.
    """
    pts_L = as_points_nx2(xL)
    pts_R = as_points_nx2(xR)
    if inliers is None:
        inliers = np.arange(pts_L.shape[0])
    inliers = np.asarray(inliers, dtype=np.int64).reshape(-1)

    pL = pts_L[inliers]
    pR = pts_R[inliers]

    X = triangulate_dlt_batch(cam_L.P, pL, cam_R.P, pR)
    finite = _is_finite_xyz(X)

    zL = np.full((X.shape[0],), np.nan, dtype=np.float64)
    zR = np.full((X.shape[0],), np.nan, dtype=np.float64)
    if np.any(finite):
        zL[finite] = cam_L.depth(X[finite])
        zR[finite] = cam_R.depth(X[finite])

    behind_both = finite & (zL < 0.0) & (zR < 0.0)
    keep = finite & ~behind_both

    residuals = 0.5 * (cam_L.residual(X[keep], pL[keep]) + cam_R.residual(X[keep], pR[keep]))
    stats = ResidualStats.from_residuals(residuals)

    n_neg = int(np.count_nonzero(behind_both))
    if logger:
        logger.info(f"{n_neg} correspondence(s) with negative depth have been discarded.")
        if int(np.count_nonzero(~finite)):
            logger.info(f"{int(np.count_nonzero(~finite))} point(s) at infinity have been discarded.")

    return TriangulationReport(
        points=X[keep],
        kept_indices=inliers[keep],
        residuals=residuals,
        depths_left=zL[keep],
        depths_right=zR[keep],
        n_negative_depth=n_neg,
        stats=stats,
    )
