from dataclasses import dataclass

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from acsfm.geometry import PinholeCamera, essential_from_pose

K = np.array([[800.0, 0.0, 320.0],
              [0.0, 800.0, 240.0],
              [0.0, 0.0, 1.0]])
SIZE = (640, 480)


@dataclass
class Scene:
    K: np.ndarray
    R: np.ndarray
    t: np.ndarray          # (3,1)
    X: np.ndarray          # (N,3) inlier points
    xL: np.ndarray         # (M,2) pixels, inliers first
    xR: np.ndarray
    n_inliers: int

    @property
    def E(self) -> np.ndarray:
        return essential_from_pose(self.R, self.t)

    @property
    def cam_left(self) -> PinholeCamera:
        return PinholeCamera.at_origin(self.K)

    @property
    def cam_right(self) -> PinholeCamera:
        return PinholeCamera(K=self.K, R=self.R, t=self.t)


def make_scene(n_inliers: int = 50, n_outliers: int = 0, seed: int = 0) -> Scene:
    rng = np.random.default_rng(seed)
    R = Rotation.from_euler("xyz", [3.0, -7.0, 2.0], degrees=True).as_matrix()
    t = np.array([[-1.0], [0.1], [0.05]])

    # back-project random left pixels at random depth
    uv = np.column_stack([rng.uniform(40, 600, n_inliers), rng.uniform(40, 440, n_inliers)])
    z = rng.uniform(4.0, 8.0, n_inliers)
    rays = np.linalg.solve(K, np.column_stack([uv, np.ones(n_inliers)]).T).T
    X = rays * z[:, None]

    cam_L = PinholeCamera.at_origin(K)
    cam_R = PinholeCamera(K=K, R=R, t=t)
    xL = cam_L.project(X)
    xR = cam_R.project(X)

    if n_outliers:
        oL = np.column_stack([rng.uniform(0, SIZE[0], n_outliers), rng.uniform(0, SIZE[1], n_outliers)])
        oR = np.column_stack([rng.uniform(0, SIZE[0], n_outliers), rng.uniform(0, SIZE[1], n_outliers)])
        xL = np.vstack([xL, oL])
        xR = np.vstack([xR, oR])

    return Scene(K=K, R=R, t=t, X=X, xL=xL, xR=xR, n_inliers=n_inliers)


@pytest.fixture
def scene() -> Scene:
    return make_scene(50, 0)


@pytest.fixture
def noisy_scene() -> Scene:
    """50 noiseless inliers followed by 50 uniform outliers."""
    return make_scene(50, 50, seed=1)


def e_distance(E1: np.ndarray, E2: np.ndarray) -> float:
    """Frobenius distance between unit-norm essentials, up to sign."""
    E1 = E1 / np.linalg.norm(E1)
    E2 = E2 / np.linalg.norm(E2)
    return float(min(np.linalg.norm(E1 - E2), np.linalg.norm(E1 + E2)))
