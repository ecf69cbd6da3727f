from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Union

import numpy as np
import yaml

from acsfm.errors import ConfigError
from .parsing import parse_floats, load_data


# -------------------------
# Public, format-agnostic API
# -------------------------

def read_intrinsics(path: Union[str, Path]) -> np.ndarray:
    """
    Read a 3x3 intrinsic matrix K from .txt/.json/.yaml.

    A text file holds 9 numbers, row-major:
        f 0 px
        0 f py
        0 0 1

    Raises:
      ConfigError: missing file, unparsable content or an invalid K.
    """
    try:
        obj = load_data(path)
        K = _k_from_obj(obj)
        _validate_K(K)
    except FileNotFoundError as e:
        raise ConfigError(f"Intrinsics file not found: {path}") from e
    except (ValueError, TypeError, yaml.YAMLError) as e:
        raise ConfigError(f"Invalid intrinsics in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read intrinsics {path}: {e}") from e
    return K


def write_intrinsics(path: Union[str, Path], K: np.ndarray) -> None:
    """Write K as three rows of three numbers (the format read_intrinsics accepts)."""
    K = np.asarray(K, dtype=np.float64)
    _validate_K(K)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(" ".join(repr(float(v)) for v in row) for row in K) + "\n", encoding="utf-8")


# -------------------------
# Domain decoding helpers (private)
# -------------------------

def _k_from_obj(obj: Any) -> np.ndarray:
    """
    Extract K from:
      - raw text: exactly 9 numbers
      - dict: supports {"K": ...} or {"intrinsics": {"K": ...}} or {fx,fy,cx,cy}
    """
    if isinstance(obj, str):
        vals = parse_floats(obj)
        if len(vals) != 9:
            raise ValueError(f"Expected 9 numbers for K, got {len(vals)}")
        return np.array(vals, dtype=np.float64).reshape(3, 3)

    if isinstance(obj, Mapping):
        # 1) direct K
        if "K" in obj:
            return _as_3x3(obj["K"])

        # 2) nested intrinsics
        intr = obj.get("intrinsics")
        if isinstance(intr, Mapping) and "K" in intr:
            return _as_3x3(intr["K"])

        # 3) fx/fy/cx/cy form
        if all(k in obj for k in ("fx", "fy", "cx", "cy")):
            fx = float(obj["fx"]); fy = float(obj["fy"])
            cx = float(obj["cx"]); cy = float(obj["cy"])
            return np.array([[fx, 0.0, cx],
                             [0.0, fy, cy],
                             [0.0, 0.0, 1.0]], dtype=np.float64)

    raise ValueError("Could not extract K from provided data.")


def _as_3x3(x: Any) -> np.ndarray:
    arr = np.array(x, dtype=np.float64)
    if arr.size != 9:
        raise ValueError(f"Expected 9 values for 3x3, got {arr.size}")
    return arr.reshape(3, 3)


def _validate_K(K: np.ndarray) -> None:
    if K.shape != (3, 3):
        raise ValueError(f"K must be 3x3, got {K.shape}")

    if not np.isfinite(K).all():
        raise ValueError("K contains non-finite values.")

    if abs(K[2, 2] - 1.0) > 1e-6:
        raise ValueError(f"Expected K[2,2] ~ 1, got {K[2,2]}")

    fx, fy = K[0, 0], K[1, 1]
    if fx <= 0 or fy <= 0:
        raise ValueError(f"Invalid focal lengths fx={fx}, fy={fy}")

    if abs(K[1, 0]) > 1e-9 or abs(K[2, 0]) > 1e-9 or abs(K[2, 1]) > 1e-9:
        raise ValueError("K must be upper-triangular.")
