"""
acsfm/pipeline/config.py

All configuration dataclasses for the two-view pipeline.
ALL default values live here - no hardcoded numbers elsewhere.
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Union
import math

import yaml

from data_io.parsing import load_data

from ..errors import ConfigError


@dataclass
class FeatureConfig:
    """
    Parameters for feature detection.

    SIFT tuning guide:
    - For TEXTURED surfaces (buildings, outdoor): Use defaults
    - For TEXTURELESS surfaces: Lower contrastThreshold to detect subtle features
    """
    method: str = "sift"                   # Feature detector: "sift", "orb"

    # SIFT parameters
    sift_nfeatures: int = 0                # Max features (0 = no limit)
    sift_nOctaveLayers: int = 3            # Layers per octave
    sift_contrastThreshold: float = 0.04   # Default SIFT value
    sift_edgeThreshold: float = 10         # Default SIFT value
    sift_sigma: float = 1.6                # Default SIFT value

    # ORB parameters
    orb_nfeatures: int = 5000


@dataclass
class MatchingConfig:
    """Parameters for putative correspondence generation."""
    feature: FeatureConfig = field(default_factory=FeatureConfig)

    ratio: float = 0.8                     # Lowe's ratio test
    mutual: bool = False                   # Mutual nearest neighbor
    dedup_tol: float = 0.0                 # Pixel tolerance for duplicate matches (0 = exact)


@dataclass
class RansacConfig:
    """Parameters for AC-RANSAC essential matrix estimation."""
    solver: str = "five_point"             # "five_point" | "eight_point"
    max_iterations: int = 1024             # Hard cap on trials
    min_iterations: int = 0                # Floor for the adaptive budget
    confidence: float = 0.99               # Probability of drawing one clean sample
    refine_fraction: float = 0.1           # Final share of the budget sampled from the best inliers
    nfa_bound: float = 0.0                 # Accept when log10 NFA < nfa_bound
    max_threshold: float = math.inf        # Upper bound on the inlier threshold (px)
    seed: Optional[int] = 0                # RNG seed (None = nondeterministic)


@dataclass
class PoseConfig:
    """Parameters for pose disambiguation."""
    max_test_points: int = 100             # Inliers triangulated per candidate


@dataclass
class DiagnosticsConfig:
    """Parameters for diagnostics and visualization."""
    save_match_overlays: bool = False
    max_overlay_matches: int = 500         # Drawn lines per overlay (0 = all)


@dataclass
class TwoViewConfig:
    """
    Master configuration for the two-view pipeline.

    Usage:
        config = TwoViewConfig()
        config.ransac.solver = "eight_point"
        config.matching.ratio = 0.75
    """
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    ransac: RansacConfig = field(default_factory=RansacConfig)
    pose: PoseConfig = field(default_factory=PoseConfig)
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)

    # Logging
    verbose: bool = True

    @classmethod
    def from_dict(cls, d: dict) -> "TwoViewConfig":
        """Create config from dictionary (e.g., loaded from YAML/JSON)."""
        matching_dict = dict(d.get("matching", {}))
        matching_dict["feature"] = FeatureConfig(**matching_dict.get("feature", {}))

        ransac_dict = dict(d.get("ransac", {}))
        if ransac_dict.get("max_threshold") is None:
            ransac_dict.pop("max_threshold", None)

        return cls(
            matching=MatchingConfig(**matching_dict),
            ransac=RansacConfig(**ransac_dict),
            pose=PoseConfig(**d.get("pose", {})),
            diagnostics=DiagnosticsConfig(**d.get("diagnostics", {})),
            verbose=d.get("verbose", True),
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary (for saving to YAML/JSON)."""
        return asdict(self)


def load_config(path: Union[str, Path]) -> TwoViewConfig:
    """Load a TwoViewConfig from a .json / .yaml / .yml file."""
    try:
        data = load_data(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must contain a mapping, got {type(data).__name__}")
    try:
        return TwoViewConfig.from_dict(data)
    except TypeError as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e


# ============================================================
# PRESET CONFIGURATIONS
# ============================================================

def get_default_config() -> TwoViewConfig:
    """5-point AC-RANSAC with a 1024-trial cap."""
    return TwoViewConfig()


def get_fast_config() -> TwoViewConfig:
    """Fewer features and trials; 8-point solver."""
    return TwoViewConfig(
        matching=MatchingConfig(
            feature=FeatureConfig(sift_nfeatures=4000),
            ratio=0.75,
        ),
        ransac=RansacConfig(
            solver="eight_point",
            max_iterations=256,
        ),
        pose=PoseConfig(max_test_points=50),
    )


def get_config(preset: str) -> TwoViewConfig:
    if preset == "default":
        return get_default_config()
    if preset == "fast":
        return get_fast_config()
    raise ValueError(f"Unknown preset: {preset}. Use 'default' or 'fast'")
