"""
acsfm/pipeline/__init__.py

Configuration and result types of the two-view pipeline.

Usage:
    from acsfm.pipeline import TwoViewConfig
    from acsfm.run_twoview import run_two_view

    config = TwoViewConfig()
    config.ransac.solver = "eight_point"
    result = run_two_view(pairs, kpts_left, kpts_right, K_L, K_R, size_L, size_R, config=config)
"""

from .config import (
    TwoViewConfig,
    FeatureConfig,
    MatchingConfig,
    RansacConfig,
    PoseConfig,
    DiagnosticsConfig,
    load_config,
    get_config,
    get_default_config,
    get_fast_config,
)

from .state import (
    ReconstructionStatus,
    TwoViewReconstruction,
)

__all__ = [
    # Config
    "TwoViewConfig",
    "FeatureConfig",
    "MatchingConfig",
    "RansacConfig",
    "PoseConfig",
    "DiagnosticsConfig",
    "load_config",
    "get_config",
    "get_default_config",
    "get_fast_config",
    # State
    "ReconstructionStatus",
    "TwoViewReconstruction",
]
