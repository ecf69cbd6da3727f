"""
scripts/run_reconstruction.py

Two-view reconstruction runner: intrinsics + two images (or a precomputed
.npz of matches) -> essential matrix, relative pose and a PLY point cloud.

Exit codes: 0 on success or when no model is found, 1 on bad intrinsics,
unreadable inputs, pose recovery failure or export failure.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np

from acsfm.errors import ConfigError, ExportError
from acsfm.matches import CorrespondenceSet
from acsfm.pipeline import (
    TwoViewConfig,
    ReconstructionStatus,
    load_config,
    get_config,
)
from acsfm.run_twoview import match_images, run_two_view
from acsfm.visualization.match_overlays import save_feature_overlay, save_match_overlay, save_side_by_side
from data_io.camera import read_intrinsics
from data_io.images import load_image, image_size
from data_io.matches_io import load_matches
from data_io.pointcloud_io import write_scene_ply
from utils.logging_utils import make_logger

PLY_NAME = "essential_geometry.ply"


def build_config_from_args(args) -> TwoViewConfig:
    """
    Build TwoViewConfig from command line arguments.

    Starts with the config file (or preset), then overrides with any
    explicitly provided arguments.
    """
    if args.config is not None:
        config = load_config(args.config)
    else:
        config = get_config(args.preset)

    # Override matching params
    if args.ratio is not None:
        config.matching.ratio = args.ratio

    # Override AC-RANSAC params
    if args.solver is not None:
        config.ransac.solver = args.solver
    if args.max_iterations is not None:
        config.ransac.max_iterations = args.max_iterations
    if args.confidence is not None:
        config.ransac.confidence = args.confidence
    if args.seed is not None:
        config.ransac.seed = args.seed
    if args.max_threshold is not None:
        config.ransac.max_threshold = args.max_threshold

    # Diagnostics
    if args.visualize:
        config.diagnostics.save_match_overlays = True
    if args.verbose:
        config.verbose = True

    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Two-view SfM with AC-RANSAC essential matrix estimation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # SIFT matching on two images
  python -m scripts.run_reconstruction --left Data/100_7101.jpg --right Data/100_7102.jpg --K_file Data/K.txt --visualize

  # Precomputed matches, 8-point solver
  python -m scripts.run_reconstruction --left a.png --right b.png --K_file K.txt --matches matches.npz --solver eight_point
        """
    )

    # =========================================================
    # INPUT PATHS
    # =========================================================
    parser.add_argument("--left", type=str, required=True, help="Left image")
    parser.add_argument("--right", type=str, required=True, help="Right image")
    parser.add_argument("--K_file", type=str, required=True,
                        help="Intrinsic matrix file (.txt with 9 numbers, .json or .yaml)")
    parser.add_argument("--K_right_file", type=str, default=None,
                        help="Intrinsics of the right camera (default: same as --K_file)")
    parser.add_argument("--matches", type=str, default=None,
                        help="Optional .npz with kpts_left, kpts_right, matches (skips SIFT)")

    # =========================================================
    # OUTPUT
    # =========================================================
    parser.add_argument("--output", type=str, default="output",
                        help="Output directory")

    # =========================================================
    # CONFIG
    # =========================================================
    parser.add_argument("--config", type=str, default=None,
                        help="JSON/YAML config file (overrides --preset)")
    parser.add_argument("--preset", type=str, default="default", choices=["default", "fast"])
    parser.add_argument("--ratio", type=float, default=None,
                        help="Lowe's ratio test (default: 0.8)")
    parser.add_argument("--solver", type=str, default=None, choices=["five_point", "eight_point"])
    parser.add_argument("--max_iterations", type=int, default=None,
                        help="AC-RANSAC iteration cap (default: 1024)")
    parser.add_argument("--confidence", type=float, default=None,
                        help="AC-RANSAC confidence for early stopping (default: 0.99)")
    parser.add_argument("--seed", type=int, default=None, help="RNG seed (default: 0)")
    parser.add_argument("--max_threshold", type=float, default=None,
                        help="Upper bound on the AC-RANSAC threshold in px (default: none)")

    # =========================================================
    # DIAGNOSTICS
    # =========================================================
    parser.add_argument("--visualize", action="store_true",
                        help="Write side-by-side, feature and putative / inlier match overlays")
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = make_logger("acsfm", level="DEBUG" if args.verbose else "INFO")

    # =========================================================
    # CALIBRATION + CONFIG (before any estimation)
    # =========================================================
    try:
        K_L = read_intrinsics(args.K_file)
        K_R = read_intrinsics(args.K_right_file) if args.K_right_file else K_L
        config = build_config_from_args(args)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    logger.info(f"K_left:\n{K_L}")
    if args.K_right_file:
        logger.info(f"K_right:\n{K_R}")

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    # =========================================================
    # IMAGES + PUTATIVE MATCHES
    # =========================================================
    try:
        img_left = load_image(args.left)
        img_right = load_image(args.right)
    except (IOError, OSError) as e:
        logger.error(str(e))
        return 1
    size_L = image_size(img_left)
    size_R = image_size(img_right)

    scales_left = scales_right = None
    if args.matches:
        try:
            kpts_left, kpts_right, pairs = load_matches(args.matches)
        except (OSError, ValueError) as e:
            logger.error(f"Cannot load matches: {e}")
            return 1
        logger.info(f"Loaded {len(pairs)} putative matches from {args.matches}")
    else:
        pairs, feats_left, feats_right = match_images(img_left, img_right, config, logger)
        kpts_left, kpts_right = feats_left.kpts_xy, feats_right.kpts_xy
        scales_left, scales_right = feats_left.scales, feats_right.scales

    # =========================================================
    # TWO-VIEW RECONSTRUCTION
    # =========================================================
    try:
        result = run_two_view(
            pairs, kpts_left, kpts_right, K_L, K_R, size_L, size_R,
            config=config, logger=logger,
        )
    except ValueError as e:
        logger.error(f"Invalid correspondences: {e}")
        return 1

    try:
        if config.diagnostics.save_match_overlays and result.matches is not None:
            _save_overlays(output_dir, img_left, img_right, result, kpts_left, kpts_right,
                           scales_left, scales_right, config, logger)
    except ExportError as e:
        logger.error(str(e))
        return 1

    if result.status is ReconstructionStatus.NO_MODEL:
        logger.info("No model found; nothing to export.")
        return 0
    if result.status is ReconstructionStatus.POSE_FAILED:
        return 1

    # =========================================================
    # EXPORT
    # =========================================================
    ply_path = output_dir / PLY_NAME
    try:
        write_scene_ply(ply_path, result.points, result.camera_centers())
    except ExportError as e:
        logger.error(str(e))
        return 1
    logger.info(f"Saved: {ply_path}")
    return 0


def _save_overlays(output_dir, img_left, img_right, result, kpts_left, kpts_right,
                   scales_left, scales_right, config, logger) -> None:
    corrs: CorrespondenceSet = result.matches
    max_draw = config.diagnostics.max_overlay_matches

    path = save_side_by_side(output_dir / "side_by_side.png", img_left, img_right)
    logger.info(f"Saved: {path}")
    path = save_feature_overlay(output_dir / "features.png", img_left, img_right,
                                kpts_left, kpts_right, scales_left, scales_right)
    logger.info(f"Saved: {path}")

    def _scales(scales, col, subset):
        if scales is None:
            return None
        return np.asarray(scales)[subset.pairs[:, col]]

    path = save_match_overlay(
        output_dir / "putative_matches.png", img_left, img_right, corrs.xL, corrs.xR,
        _scales(scales_left, 0, corrs), _scales(scales_right, 1, corrs), max_draw,
    )
    logger.info(f"Saved: {path}")

    if result.estimate is not None and result.estimate.found:
        inl = corrs.subset(result.estimate.inliers)
        path = save_match_overlay(
            output_dir / "inlier_matches.png", img_left, img_right, inl.xL, inl.xR,
            _scales(scales_left, 0, inl), _scales(scales_right, 1, inl), max_draw,
        )
        logger.info(f"Saved: {path}")


if __name__ == "__main__":
    sys.exit(main())
