# acsfm/geometry.py
"""
Public geometry API.

Internals live in acsfm/geometry_utils/.
Import from here in the rest of the codebase to avoid deep-path imports.
"""

from acsfm.geometry_utils.epipolar import (
    essential_from_pose,
    fundamental_from_essential,
    project_to_essential,
    is_essential,
    sampson_distance,
)
from acsfm.geometry_utils.projective import (
    PinholeCamera,
    projection_matrix,
    camera_center,
    skew,
    as_points_nx2,
    normalize_points,
)
from acsfm.geometry_utils.reprojection import project_points, reprojection_errors
from acsfm.geometry_utils.solvers import (
    MinimalSolver,
    SOLVERS,
    get_solver,
    essential_five_point,
    essential_eight_point,
)
from acsfm.geometry_utils.acransac import EssentialEstimate, robust_essential
from acsfm.geometry_utils.triangulation import (
    triangulate_dlt,
    triangulate_dlt_batch,
    triangulate_inliers,
    cheirality_mask,
    ResidualStats,
    TriangulationReport,
)
from acsfm.geometry_utils.twoview import (
    PoseCandidates,
    RelativePose,
    decompose_essential,
    select_pose,
    recover_pose,
)

__all__ = [
    "essential_from_pose",
    "fundamental_from_essential",
    "project_to_essential",
    "is_essential",
    "sampson_distance",
    "PinholeCamera",
    "projection_matrix",
    "camera_center",
    "skew",
    "as_points_nx2",
    "normalize_points",
    "project_points",
    "reprojection_errors",
    "MinimalSolver",
    "SOLVERS",
    "get_solver",
    "essential_five_point",
    "essential_eight_point",
    "EssentialEstimate",
    "robust_essential",
    "triangulate_dlt",
    "triangulate_dlt_batch",
    "triangulate_inliers",
    "cheirality_mask",
    "ResidualStats",
    "TriangulationReport",
    "PoseCandidates",
    "RelativePose",
    "decompose_essential",
    "select_pose",
    "recover_pose",
]
