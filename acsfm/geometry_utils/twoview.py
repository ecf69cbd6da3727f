from attr import dataclass
import numpy as np
from typing import NamedTuple, Optional, Tuple

from ..errors import PoseRecoveryError
from .projective import PinholeCamera, as_points_nx2
from .triangulation import triangulate_dlt_batch, cheirality_mask

_W = np.array([[0.0, -1.0, 0.0],
               [1.0, 0.0, 0.0],
               [0.0, 0.0, 1.0]], dtype=np.float64)


class PoseCandidates(NamedTuple):
    """The four (R, t) decompositions of an essential matrix."""
    ua_pos: Tuple[np.ndarray, np.ndarray]   # (U W V^T,  +u3)
    ua_neg: Tuple[np.ndarray, np.ndarray]   # (U W V^T,  -u3)
    ub_pos: Tuple[np.ndarray, np.ndarray]   # (U W^T V^T, +u3)
    ub_neg: Tuple[np.ndarray, np.ndarray]   # (U W^T V^T, -u3)


@dataclass
class RelativePose:
    R: np.ndarray        # (3,3) det = +1
    t: np.ndarray        # (3,1) unit norm, up to scale
    name: str            # which PoseCandidates field won
    n_positive: int      # tested points in front of both cameras
    n_tested: int


def decompose_essential(E: np.ndarray) -> PoseCandidates:
    """
    Split E into the four pose hypotheses. U and V^T are sign-fixed so that
    both rotations are proper (det = +1).
    """
    E = np.asarray(E, np.float64)
    if E.shape != (3, 3):
        raise ValueError(f"E must be (3,3), got {E.shape}")

    U, _, Vt = np.linalg.svd(E)
    if np.linalg.det(U) < 0:
        U = -U
    if np.linalg.det(Vt) < 0:
        Vt = -Vt

    Ra = U @ _W @ Vt
    Rb = U @ _W.T @ Vt
    t = U[:, 2].reshape(3, 1)

    return PoseCandidates(
        ua_pos=(Ra, t.copy()),
        ua_neg=(Ra, -t),
        ub_pos=(Rb, t.copy()),
        ub_neg=(Rb, -t),
    )


def _test_indices(n: int, max_test_points: Optional[int]) -> np.ndarray:
    """Evenly spaced, deterministic subset of range(n) of size <= max_test_points."""
    if max_test_points is None or max_test_points <= 0 or n <= max_test_points:
        return np.arange(n)
    return np.unique(np.linspace(0, n - 1, int(max_test_points)).round().astype(np.int64))


def count_in_front(
    K_L: np.ndarray,
    K_R: np.ndarray,
    R: np.ndarray,
    t: np.ndarray,
    pL: np.ndarray,
    pR: np.ndarray,
) -> int:
    """Number of correspondences that triangulate in front of both cameras."""
    cam_L = PinholeCamera.at_origin(K_L)
    cam_R = PinholeCamera(K=np.asarray(K_R, np.float64), R=R, t=t)
    X = triangulate_dlt_batch(cam_L.P, pL, cam_R.P, pR)
    return int(np.count_nonzero(cheirality_mask(X, cam_L) & cheirality_mask(X, cam_R)))


def select_pose(
    candidates: PoseCandidates,
    K_L: np.ndarray,
    K_R: np.ndarray,
    pL: np.ndarray,
    pR: np.ndarray,
) -> RelativePose:
    """
    Score every candidate by cheirality and return the best one.
    Ties keep the earlier field (ua_pos, ua_neg, ub_pos, ub_neg).
    """
    best: Optional[RelativePose] = None
    for name, (R, t) in zip(candidates._fields, candidates):
        n = count_in_front(K_L, K_R, R, t, pL, pR)
        if best is None or n > best.n_positive:
            best = RelativePose(R=R, t=t, name=name, n_positive=n, n_tested=int(pL.shape[0]))
    return best


def recover_pose(
    E: np.ndarray,
    K_L: np.ndarray,
    K_R: np.ndarray,
    xL: np.ndarray,
    xR: np.ndarray,
    inliers: np.ndarray,
    max_test_points: Optional[int] = 100,
    logger=None,
) -> RelativePose:
    """
    Recover the relative pose of the right camera (left camera at identity).

    Args:
      E: (3,3) essential matrix with x_R^T E x_L = 0
      xL, xR: (N,2) or (2,N) pixel coordinates
      inliers: correspondence indices to test
      max_test_points: cap on the number of inliers triangulated per candidate

    Raises:
      PoseRecoveryError: no inliers, or the best candidate does not place a
      strict majority of the tested points in front of both cameras.
    """
    inliers = np.asarray(inliers, dtype=np.int64).reshape(-1)
    if inliers.size == 0:
        raise PoseRecoveryError("No inliers to disambiguate the pose with.")

    pts_L = as_points_nx2(xL)
    pts_R = as_points_nx2(xR)
    idx = inliers[_test_indices(inliers.size, max_test_points)]

    best = select_pose(decompose_essential(E), K_L, K_R, pts_L[idx], pts_R[idx])

    if logger:
        logger.debug(f"Pose: {best.name} with {best.n_positive}/{best.n_tested} points in front")

    if 2 * best.n_positive <= best.n_tested:
        raise PoseRecoveryError(
            f"Cheirality test failed: best candidate {best.name} has only "
            f"{best.n_positive}/{best.n_tested} points in front of both cameras."
        )
    return best
