from __future__ import annotations

from pathlib import Path
from typing import Tuple, Union

import numpy as np

_KEYS = ("kpts_left", "kpts_right", "matches")


def save_matches(
    path: Union[str, Path],
    kpts_left: np.ndarray,
    kpts_right: np.ndarray,
    matches: np.ndarray,
) -> None:
    """
    Save putative matches as .npz with keys kpts_left (N,2), kpts_right (M,2)
    and matches (K,2) int (left index, right index).
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez(
        path,
        kpts_left=np.asarray(kpts_left, dtype=np.float64).reshape(-1, 2),
        kpts_right=np.asarray(kpts_right, dtype=np.float64).reshape(-1, 2),
        matches=np.asarray(matches, dtype=np.int64).reshape(-1, 2),
    )


def load_matches(path: Union[str, Path]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Load (kpts_left, kpts_right, matches) written by save_matches.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Matches file not found: {path}")

    with np.load(path) as data:
        missing = [k for k in _KEYS if k not in data.files]
        if missing:
            raise ValueError(f"{path} is missing keys {missing}")
        kl = np.asarray(data["kpts_left"], dtype=np.float64)
        kr = np.asarray(data["kpts_right"], dtype=np.float64)
        m = np.asarray(data["matches"], dtype=np.int64)

    if kl.ndim != 2 or kl.shape[1] != 2 or kr.ndim != 2 or kr.shape[1] != 2:
        raise ValueError(f"Keypoint tables must be (N,2). Got {kl.shape} and {kr.shape}")
    return kl, kr, m.reshape(-1, 2)
