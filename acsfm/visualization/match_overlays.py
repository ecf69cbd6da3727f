# acsfm/visualization/match_overlays.py
from __future__ import annotations
from pathlib import Path
from typing import Optional, Union
import numpy as np

from cv2 import (
    cvtColor, circle, line, imwrite,
    COLOR_GRAY2BGR, LINE_AA,
)

from ..errors import ExportError

# BGR colors (OpenCV)
LINE_COLOR = (0, 255, 0)        # green
KEYPOINT_COLOR = (0, 255, 255)  # yellow


def _as_bgr(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return cvtColor(img, COLOR_GRAY2BGR)
    return img.copy()


def side_by_side(img_left: np.ndarray, img_right: np.ndarray) -> np.ndarray:
    """Left | right canvas, padded with black to the taller image."""
    a = _as_bgr(img_left)
    b = _as_bgr(img_right)
    h = max(a.shape[0], b.shape[0])
    canvas = np.zeros((h, a.shape[1] + b.shape[1], 3), dtype=np.uint8)
    canvas[:a.shape[0], :a.shape[1]] = a
    canvas[:b.shape[0], a.shape[1]:] = b
    return canvas


def draw_matches(
    img_left: np.ndarray,
    img_right: np.ndarray,
    xL: np.ndarray,
    xR: np.ndarray,
    scales_left: Optional[np.ndarray] = None,
    scales_right: Optional[np.ndarray] = None,
    max_draw: int = 0,
) -> np.ndarray:
    """
    Draw correspondences (N,2)/(N,2) on a side-by-side canvas: a green line
    per match, a yellow circle per keypoint sized by its scale.
    """
    vis = side_by_side(img_left, img_right)
    offset = _as_bgr(img_left).shape[1]

    xL = np.asarray(xL, np.float64).reshape(-1, 2)
    xR = np.asarray(xR, np.float64).reshape(-1, 2)
    n = xL.shape[0] if max_draw <= 0 else min(xL.shape[0], int(max_draw))

    for k in range(n):
        pl = (int(round(xL[k, 0])), int(round(xL[k, 1])))
        pr = (int(round(xR[k, 0])) + offset, int(round(xR[k, 1])))
        rl = 3 if scales_left is None else max(1, int(round(scales_left[k] / 2.0)))
        rr = 3 if scales_right is None else max(1, int(round(scales_right[k] / 2.0)))
        circle(vis, pl, rl, KEYPOINT_COLOR, 1, LINE_AA)
        circle(vis, pr, rr, KEYPOINT_COLOR, 1, LINE_AA)
        line(vis, pl, pr, LINE_COLOR, 1, LINE_AA)
    return vis


def draw_features(
    img_left: np.ndarray,
    img_right: np.ndarray,
    kpts_left: np.ndarray,
    kpts_right: np.ndarray,
    scales_left: Optional[np.ndarray] = None,
    scales_right: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Every detected keypoint as a yellow circle sized by its scale."""
    vis = side_by_side(img_left, img_right)
    offset = _as_bgr(img_left).shape[1]

    for kpts, scales, dx in ((kpts_left, scales_left, 0), (kpts_right, scales_right, offset)):
        kpts = np.asarray(kpts, np.float64).reshape(-1, 2)
        for k in range(kpts.shape[0]):
            p = (int(round(kpts[k, 0])) + dx, int(round(kpts[k, 1])))
            r = 3 if scales is None else max(1, int(round(scales[k] / 2.0)))
            circle(vis, p, r, KEYPOINT_COLOR, 1, LINE_AA)
    return vis


def _write(out_path: Union[str, Path], vis: np.ndarray) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    if not imwrite(str(out_path), vis):
        raise ExportError(f"Failed to write overlay: {out_path}")
    return out_path


def save_side_by_side(out_path: Union[str, Path], img_left: np.ndarray, img_right: np.ndarray) -> Path:
    return _write(out_path, side_by_side(img_left, img_right))


def save_feature_overlay(
    out_path: Union[str, Path],
    img_left: np.ndarray,
    img_right: np.ndarray,
    kpts_left: np.ndarray,
    kpts_right: np.ndarray,
    scales_left: Optional[np.ndarray] = None,
    scales_right: Optional[np.ndarray] = None,
) -> Path:
    return _write(out_path, draw_features(img_left, img_right, kpts_left, kpts_right, scales_left, scales_right))


def save_match_overlay(
    out_path: Union[str, Path],
    img_left: np.ndarray,
    img_right: np.ndarray,
    xL: np.ndarray,
    xR: np.ndarray,
    scales_left: Optional[np.ndarray] = None,
    scales_right: Optional[np.ndarray] = None,
    max_draw: int = 0,
) -> Path:
    return _write(out_path, draw_matches(img_left, img_right, xL, xR, scales_left, scales_right, max_draw))
