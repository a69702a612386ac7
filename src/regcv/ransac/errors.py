# Andy Zhao
"""
Error taxonomy for fitting and robust estimation.

None of these are fatal to the process: callers retry with relaxed
parameters (larger tau, lower min_inliers) or give up on the image pair.
"""

from __future__ import annotations


class RegistrationError(RuntimeError):
    """Base class for all fitting / estimation failures."""


class InsufficientDataError(RegistrationError):
    """Too few correspondences for the requested model or estimator run."""

    def __init__(self, required: int, available: int, what: str = "model") -> None:
        self.required = int(required)
        self.available = int(available)
        super().__init__(
            f"{what} needs at least {self.required} correspondences, got {self.available}")


class IllConditionedError(RegistrationError):
    """Degenerate fit geometry: collinear, coincident or zero-scale points, singular system."""


class NonInvertibleError(RegistrationError):
    """Inverse requested on a transform whose forward map is not bijective."""


class NotEnoughInliersError(RegistrationError):
    """Robust search could not reach the configured inlier minimum."""

    def __init__(self, best_inliers: int, required: int, total: int) -> None:
        self.best_inliers = int(best_inliers)
        self.required = int(required)
        self.total = int(total)
        super().__init__(
            f"best candidate has {self.best_inliers}/{self.total} inliers, "
            f"need {self.required}")
