from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .reprojection import project_points, reprojection_errors


def projection_matrix(K: np.ndarray, R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """
    Compute the 3x4 projection matrix P = K [R | t].
    Args:
        K: (3,3) intrinsic matrix
        R: (3,3) rotation matrix
        t: (3,) or (3,1) translation vector
    Returns:
        P: (3,4) projection matrix
    """

    K = np.asarray(K, np.float64)
    R = np.asarray(R, np.float64)
    t = np.asarray(t, np.float64).reshape(3, 1)

    if K.shape != (3, 3):
        raise ValueError(f"K must be (3,3), got {K.shape}")
    if R.shape != (3, 3):
        raise ValueError(f"R must be (3,3), got {R.shape}")

    return K @ np.hstack([R, t])  # 3x4


def camera_center(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Compute camera center in world coordinates from extrinsics R and t.
    Args:
        R: (3,3) rotation matrix
        t: (3,1) translation vector
    Returns:
        C: (3,) camera center in world coordinates"""
    R = np.asarray(R, np.float64)
    t = np.asarray(t, np.float64).reshape(3, 1)
    # world->cam: Xc = R X + t  => C = -R^T t
    return (-R.T @ t).reshape(3)


def skew(v: np.ndarray) -> np.ndarray:
    """Cross-product matrix [v]x such that [v]x @ u == cross(v, u)."""
    v = np.asarray(v, np.float64).reshape(3)
    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0],
    ], dtype=np.float64)


def as_points_nx2(x: np.ndarray) -> np.ndarray:
    """
    Accept (N,2) or column-aligned (2,N) point arrays, return (N,2) float64.
    A (2,2) array is read as (N,2).
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim != 2:
        raise ValueError(f"Expected a 2D point array, got shape {x.shape}")
    if x.shape[1] == 2:
        return x
    if x.shape[0] == 2:
        return x.T.copy()
    raise ValueError(f"Expected (N,2) or (2,N) points, got {x.shape}")


def to_homogeneous(x: np.ndarray) -> np.ndarray:
    """(N,2) -> (N,3) with w=1."""
    x = np.asarray(x, dtype=np.float64)
    return np.hstack([x, np.ones((x.shape[0], 1), dtype=np.float64)])


def normalize_points(K: np.ndarray, x: np.ndarray) -> np.ndarray:
    """
    Pixel coordinates -> normalized camera rays K^-1 [u, v, 1]^T.

    Returns:
      (N,3) homogeneous normalized coordinates (last component 1).
    """
    K = np.asarray(K, np.float64)
    xh = to_homogeneous(as_points_nx2(x))
    return np.linalg.solve(K, xh.T).T


@dataclass(frozen=True)
class PinholeCamera:
    """
    Calibrated pinhole camera. x_cam = R X + t, x_pix ~ K x_cam.
    """
    K: np.ndarray  # (3,3)
    R: np.ndarray  # (3,3)
    t: np.ndarray  # (3,1)

    @staticmethod
    def at_origin(K: np.ndarray) -> "PinholeCamera":
        return PinholeCamera(K=np.asarray(K, np.float64), R=np.eye(3), t=np.zeros((3, 1)))

    @property
    def P(self) -> np.ndarray:
        return projection_matrix(self.K, self.R, self.t)

    @property
    def C(self) -> np.ndarray:
        return camera_center(self.R, self.t)

    def depth(self, X: np.ndarray) -> np.ndarray:
        """Signed depth along the principal axis for (3,) or (N,3) points."""
        X = np.asarray(X, np.float64)
        Xc = (np.asarray(self.R, np.float64) @ X.reshape(-1, 3).T) + np.asarray(self.t, np.float64).reshape(3, 1)
        z = Xc[2, :]
        return z if X.ndim == 2 else float(z[0])

    def project(self, X: np.ndarray) -> np.ndarray:
        """Project (N,3) world points to (N,2) pixels (no depth check)."""
        return project_points(X, self.K, self.R, self.t, require_positive_depth=False)

    def residual(self, X: np.ndarray, x: np.ndarray) -> np.ndarray:
        """Pixel reprojection error of (N,3) points against (N,2) observations."""
        return reprojection_errors(X, x, self.K, self.R, self.t, require_positive_depth=False)
