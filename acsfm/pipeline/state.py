"""
acsfm/pipeline/state.py

Result containers for the two-view reconstruction.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional
import numpy as np

if TYPE_CHECKING:
    from ..geometry_utils.acransac import EssentialEstimate
    from ..geometry_utils.projective import PinholeCamera
    from ..geometry_utils.triangulation import TriangulationReport
    from ..geometry_utils.twoview import RelativePose
    from ..matches import CorrespondenceSet


class ReconstructionStatus(Enum):
    SUCCESS = "success"
    NO_MODEL = "no_model"          # AC-RANSAC found no meaningful E (a normal outcome)
    POSE_FAILED = "pose_failed"    # E found, cheirality test failed


@dataclass
class TwoViewReconstruction:
    """Final output of the two-view pipeline."""
    status: ReconstructionStatus
    message: str
    n_putative: int
    n_unique: int
    matches: Optional["CorrespondenceSet"] = None     # deduplicated; estimate.inliers index into it
    estimate: Optional["EssentialEstimate"] = None
    pose: Optional["RelativePose"] = None
    cam_left: Optional["PinholeCamera"] = None
    cam_right: Optional["PinholeCamera"] = None
    report: Optional["TriangulationReport"] = None

    @property
    def ok(self) -> bool:
        return self.status is ReconstructionStatus.SUCCESS

    @property
    def n_inliers(self) -> int:
        return self.estimate.n_inliers if self.estimate is not None else 0

    @property
    def points(self) -> np.ndarray:
        if self.report is None:
            return np.zeros((0, 3), dtype=np.float64)
        return self.report.points

    def camera_centers(self) -> np.ndarray:
        """(2,3) centres of the left and right cameras, or (0,3) without a pose."""
        if self.cam_left is None or self.cam_right is None:
            return np.zeros((0, 3), dtype=np.float64)
        return np.vstack([self.cam_left.C, self.cam_right.C])
