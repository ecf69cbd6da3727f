from __future__ import annotations

from pathlib import Path
from typing import Tuple, Union

from cv2 import IMREAD_COLOR, IMREAD_GRAYSCALE, imread
import numpy as np


def load_image(path: Union[str, Path], *, color: bool = True) -> np.ndarray:
    """
    Load a single image with OpenCV.

    Args:
      color: True -> BGR. False -> grayscale.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")
    flag = IMREAD_COLOR if color else IMREAD_GRAYSCALE

    img = imread(str(path), flag)
    if img is None:
        raise IOError(f"Failed to load image: {path}")
    return img


def image_size(img: np.ndarray) -> Tuple[int, int]:
    """(width, height) of an image array."""
    h, w = img.shape[:2]
    return int(w), int(h)
