"""
acsfm/run_twoview.py

Main entry point for the two-view pipeline.
This is a thin orchestrator that calls the modular components:

    deduplicate -> AC-RANSAC (E) -> pose recovery -> triangulation -> statistics

ALL numeric defaults come from pipeline/config.py - no hardcoded values here.
"""

from __future__ import annotations
from typing import List, Optional, Sequence, Tuple
import numpy as np

from utils.logging_utils import make_logger, timed, log_matrix

from .errors import PoseRecoveryError
from .features import Features, detect_and_describe, match_descriptors
from .geometry import (
    PinholeCamera,
    robust_essential,
    recover_pose,
    triangulate_inliers,
)
from .matches import CorrespondenceSet, deduplicate_correspondences
from .pipeline.config import TwoViewConfig, get_default_config
from .pipeline.state import ReconstructionStatus, TwoViewReconstruction


def match_images(
    img_left: np.ndarray,
    img_right: np.ndarray,
    config: Optional[TwoViewConfig] = None,
    logger=None,
) -> Tuple[List[Tuple[int, int]], Features, Features]:
    """
    Detect, describe and ratio-test match two images.

    Returns:
      pairs: (i, j) putative matches
      feats_left, feats_right: Features of each image
    """
    config = config if config is not None else get_default_config()
    mcfg = config.matching

    feats_left = detect_and_describe(img_left, mcfg.feature)
    feats_right = detect_and_describe(img_right, mcfg.feature)
    pairs = match_descriptors(
        feats_left, feats_right,
        method=mcfg.feature.method,
        ratio=mcfg.ratio,
        mutual=mcfg.mutual,
    )
    if logger:
        logger.info(
            f"Features: left={len(feats_left)} right={len(feats_right)} | putative matches={len(pairs)}"
        )
    return pairs, feats_left, feats_right


def run_two_view(
    pairs: Sequence[Tuple[int, int]],
    kpts_left: np.ndarray,
    kpts_right: np.ndarray,
    K_L: np.ndarray,
    K_R: np.ndarray,
    size_L: Sequence[int],
    size_R: Sequence[int],
    config: Optional[TwoViewConfig] = None,
    logger=None,
) -> TwoViewReconstruction:
    """
    Run the two-view reconstruction on putative matches.

    Args:
        pairs: (i, j) feature index pairs
        kpts_left, kpts_right: (N,2) / (M,2) keypoint pixel coordinates
        K_L, K_R: (3,3) intrinsics
        size_L, size_R: (width, height) of each image
        config: TwoViewConfig (if None, uses the default config)

    Returns:
        TwoViewReconstruction. NO_MODEL and POSE_FAILED are reported through
        its status, not raised.

    Example:
        result = run_two_view(pairs, feats_l.kpts_xy, feats_r.kpts_xy, K, K, (w, h), (w, h))
        if result.ok:
            write_scene_ply("scene.ply", result.points, result.camera_centers())
    """
    config = config if config is not None else get_default_config()
    if logger is None:
        logger = make_logger("acsfm", level=(20 if config.verbose else 40))

    K_L = np.asarray(K_L, np.float64)
    K_R = np.asarray(K_R, np.float64)

    # =========================================================
    # STAGE 1: Correspondences
    # =========================================================
    corrs = CorrespondenceSet.from_matches(pairs, kpts_left, kpts_right)
    unique = deduplicate_correspondences(corrs, tol=config.matching.dedup_tol)
    logger.info(f"Putative matches: {len(corrs)} | after deduplication: {len(unique)}")

    # =========================================================
    # STAGE 2: Robust essential matrix (AC-RANSAC)
    # =========================================================
    with timed(logger, f"AC-RANSAC ({config.ransac.solver})"):
        estimate = robust_essential(
            K_L, K_R, unique.xL, unique.xR, size_L, size_R,
            max_threshold=config.ransac.max_threshold,
            config=config.ransac,
            logger=logger,
        )

    if not estimate.found:
        msg = "AC-RANSAC was unable to estimate a rigid essential matrix."
        logger.info(msg)
        return TwoViewReconstruction(
            status=ReconstructionStatus.NO_MODEL,
            message=msg,
            n_putative=len(corrs),
            n_unique=len(unique),
            matches=unique,
            estimate=estimate,
        )

    logger.info(
        f"Found an essential matrix under the confidence threshold of {estimate.threshold:.4f} px "
        f"with {estimate.n_inliers} inliers from {len(unique)} putative correspondences "
        f"(log10 NFA={estimate.nfa:.2f}, {estimate.iterations} iterations)"
    )

    # =========================================================
    # STAGE 3: Relative pose
    # =========================================================
    try:
        pose = recover_pose(
            estimate.E, K_L, K_R, unique.xL, unique.xR, estimate.inliers,
            max_test_points=config.pose.max_test_points,
            logger=logger,
        )
    except PoseRecoveryError as e:
        msg = f"Failed to compute the relative pose for the pair: {e}"
        logger.error(msg)
        return TwoViewReconstruction(
            status=ReconstructionStatus.POSE_FAILED,
            message=msg,
            n_putative=len(corrs),
            n_unique=len(unique),
            matches=unique,
            estimate=estimate,
        )

    log_matrix(logger, "R", pose.R)
    log_matrix(logger, "t", pose.t.reshape(1, 3))

    cam_left = PinholeCamera.at_origin(K_L)
    cam_right = PinholeCamera(K=K_R, R=pose.R, t=pose.t)

    # =========================================================
    # STAGE 4: Triangulation + statistics
    # =========================================================
    report = triangulate_inliers(cam_left, cam_right, unique.xL, unique.xR, estimate.inliers, logger=logger)
    st = report.stats
    logger.info(
        f"Triangulated {report.n_points} points | residuals (px): "
        f"min={st.min:.4f} median={st.median:.4f} max={st.max:.4f} mean={st.mean:.4f}"
    )

    return TwoViewReconstruction(
        status=ReconstructionStatus.SUCCESS,
        message="Two-view reconstruction completed.",
        n_putative=len(corrs),
        n_unique=len(unique),
        matches=unique,
        estimate=estimate,
        pose=pose,
        cam_left=cam_left,
        cam_right=cam_right,
        report=report,
    )
