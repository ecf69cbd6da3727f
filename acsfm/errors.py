"""
acsfm/errors.py

Failure kinds that leave the two-view pipeline.

"No model found" is not an exception: the estimator reports it through
EssentialEstimate.found. Degenerate minimal samples never leave the solver.
"""


class SfMError(Exception):
    """Base class for pipeline errors."""


class ConfigError(SfMError):
    """Calibration or configuration input is missing or malformed."""


class PoseRecoveryError(SfMError):
    """No decomposition of E passes the cheirality majority test."""


class ExportError(SfMError):
    """Writing an output artifact (PLY, overlay) failed."""
