from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from acsfm.errors import ExportError

POINT_COLOR = (255, 255, 255)   # triangulated points
CAMERA_COLOR = (0, 255, 0)      # camera centres


def _ply_header(n_vertices: int, has_color: bool) -> str:
    lines = [
        "ply",
        "format ascii 1.0",
        f"element vertex {n_vertices}",
        "property float x",
        "property float y",
        "property float z",
    ]
    if has_color:
        lines += ["property uchar red", "property uchar green", "property uchar blue"]
    lines.append("end_header")
    return "\n".join(lines) + "\n"


def write_ply(
    path: Union[str, Path],
    points: np.ndarray,
    colors: Optional[np.ndarray] = None,
) -> None:
    """
    Write a point cloud to an ASCII PLY file.

    Args:
        path: output file path
        points: (N, 3) float array
        colors: (N, 3) uint8 array in RGB [0,255], optional
    """
    path = Path(path)
    points = np.asarray(points, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"points must have shape (N,3), got {points.shape}")

    if colors is not None:
        colors = np.asarray(colors, dtype=np.uint8)
        if colors.shape != (points.shape[0], 3):
            raise ValueError(f"colors must have shape (N,3), got {colors.shape}")

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        f.write(_ply_header(points.shape[0], colors is not None))
        if colors is None:
            for p in points:
                f.write(f"{p[0]} {p[1]} {p[2]}\n")
        else:
            for p, c in zip(points, colors):
                f.write(f"{p[0]} {p[1]} {p[2]} {c[0]} {c[1]} {c[2]}\n")


def write_scene_ply(
    path: Union[str, Path],
    points: np.ndarray,
    camera_centers: np.ndarray,
) -> None:
    """
    Write triangulated points (white) followed by camera centres (green)
    to one ASCII PLY.

    Raises:
      ExportError: the file cannot be written.
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    centers = np.asarray(camera_centers, dtype=np.float64).reshape(-1, 3)

    colors = np.vstack([
        np.tile(np.array(POINT_COLOR, dtype=np.uint8), (points.shape[0], 1)),
        np.tile(np.array(CAMERA_COLOR, dtype=np.uint8), (centers.shape[0], 1)),
    ])
    try:
        write_ply(path, np.vstack([points, centers]), colors)
    except OSError as e:
        raise ExportError(f"Cannot write {path}: {e}") from e


def read_ply(
    path: Union[str, Path],
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Read an ASCII PLY point cloud (x,y,z and optional red,green,blue).

    Returns:
      points: (N,3) float64
      colors: (N,3) uint8 in RGB, or None if not present
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"PLY not found: {path}")

    lines = path.read_text(encoding="utf-8", errors="ignore").splitlines()
    if not lines or lines[0].strip() != "ply":
        raise ValueError("Not a PLY file (missing 'ply' header).")

    n_vertices: Optional[int] = None
    props: List[str] = []
    in_vertex = False
    body_start = None
    for n, line in enumerate(lines[1:], start=1):
        parts = line.split()
        if not parts:
            continue
        if parts[0] == "format" and (len(parts) < 2 or parts[1] != "ascii"):
            raise ValueError(f"Only ASCII PLY supported, got: {line}")
        if parts[0] == "element":
            in_vertex = parts[1] == "vertex"
            if in_vertex:
                n_vertices = int(parts[2])
        elif parts[0] == "property" and in_vertex:
            props.append(parts[-1])
        elif parts[0] == "end_header":
            body_start = n + 1
            break

    if body_start is None:
        raise ValueError("Unexpected EOF while reading PLY header.")
    if n_vertices is None:
        raise ValueError("PLY file has no vertex element.")
    if not all(p in props for p in ("x", "y", "z")):
        raise ValueError(f"PLY vertex properties must include x,y,z. Found: {props}")

    rows = lines[body_start:body_start + n_vertices]
    if len(rows) < n_vertices:
        raise ValueError("Unexpected EOF while reading PLY vertices.")
    data = np.array([r.split()[:len(props)] for r in rows], dtype=np.float64).reshape(n_vertices, len(props))

    points = data[:, [props.index("x"), props.index("y"), props.index("z")]]
    colors = None
    if all(p in props for p in ("red", "green", "blue")):
        colors = data[:, [props.index("red"), props.index("green"), props.index("blue")]].astype(np.uint8)
    return points, colors
