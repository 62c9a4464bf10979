from __future__ import annotations


class EllipsoidFittingFailedError(RuntimeError):
    """Raised when no valid ellipsoid could be fitted.

    This is an expected outcome for pathological or undersampled inputs
    (e.g. too few MIL directions, a seed on a thin plate), not a bug.
    """


class InsufficientDataError(ValueError):
    """Raised when a fit is asked for with fewer points than unknowns."""


class NoIntersectionError(ValueError):
    """Raised when a plane does not cut through an ellipsoid."""


class SamplingCancelledError(RuntimeError):
    """Raised when MIL sampling is cancelled before all directions finish."""
