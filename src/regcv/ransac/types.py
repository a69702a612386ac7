# Andy Zhao

"""
Shared typed primitives for the registration/RANSAC engine.

Defines:
- Typed NumPy aliases for geometry
    - Points are (N,2) float arrays
    - Transforms are 3x3 homogeneous matrices
- The model tag (ModelKind) used to dispatch fitting and inversion
- Generic model protocol for RANSAC
- Structured fit result container (model + inliers + stats)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, TypeVar, Generic, Sequence, Tuple, TypeAlias

import numpy as np
import numpy.typing as npt

# ---------- Numpy typing aliases ----------
# - float64 for geometry / matrices (more stable for linear algebra)
# - bool_ for masks

FloatArray: TypeAlias = npt.NDArray[np.float64]
BoolArray: TypeAlias = npt.NDArray[np.bool_]

# Points in 2D image coordinates (x, y).
Points2D: TypeAlias = FloatArray      # shape: (N, 2)

# Homogeneous points [x, y, 1] for 3x3 transforms.
PointsHomog: TypeAlias = FloatArray   # shape: (N, 3)

# Boolean inlier mask: True as inlier, False as outlier
Mask2D: TypeAlias = BoolArray         # shape: (N,)

# 3x3 homogeneous transform matrix, last row [0, 0, 1].
Mat3x3: TypeAlias = FloatArray        # shape: (3, 3)

M = TypeVar("M")


# ---------- Model tag ----------
class ModelKind(str, Enum):
    """
    Tag selecting a transform family.

    The tag alone decides the minimum correspondence count, the solve
    strategy and whether the forward map can be inverted.
    """
    TRANSLATION = "translation"
    RIGID = "rigid"
    SIMILARITY = "similarity"
    AFFINE = "affine"


class CoordinateTransform(Protocol):
    """Anything that maps (N,2) or (2,) points to points of the same shape."""

    def apply(self, points: npt.ArrayLike) -> FloatArray:
        ...


class ModelFitter(Protocol[M]):
    """
    Interface that a model must implement to be usable by the generic RANSAC implementation.

    RANSAC steps:
    1) Fit a model from a minimal sample
    2) Refit a better model from all inliers (weighted least squares)
    3) Score all correspondences with a per-point residual error

    Fits raise IllConditionedError on degenerate samples; RANSAC resamples.
    """

    min_samples: int

    def fit_minimal(self, pts0: Points2D, pts1: Points2D, weights: FloatArray) -> M:
        ...

    def fit_least_squares(self, pts0: Points2D, pts1: Points2D, weights: FloatArray) -> M:
        ...

    def residuals(self, model: M, pts0: Points2D, pts1: Points2D) -> FloatArray:
        """
        Return a vector of residual errors, one per correspondence.
        Shape: (N,). Smaller = better.
        """
        ...


# ---------- RANSAC output container ----------
@dataclass(frozen=True)
class FitResult(Generic[M]):
    model: M            # refit model on the consensus set
    inliers: Mask2D     # boolean mask of inliers, in input order
    num_inliers: int    # count of True values in inliers
    cost: float         # weighted mean inlier residual under the refit model
    rms_error: float    # RMS inlier residual under the refit model
    iterations: int     # how many RANSAC trials were actually evaluated
    threshold: float    # the inlier threshold tau used
    cancelled: bool = False  # loop stopped by time budget / stop callback

    @property
    def inlier_ratio(self) -> float:
        n = int(self.inliers.shape[0])
        return self.num_inliers / float(n) if n else 0.0

    def inlier_correspondences(self, correspondences: Sequence) -> list:
        """Select the consensus set from the sequence the estimator was run on."""
        if len(correspondences) != self.inliers.shape[0]:
            raise ValueError(
                f"Expected {self.inliers.shape[0]} correspondences, got {len(correspondences)}")
        return [c for c, keep in zip(correspondences, self.inliers) if keep]


# ---------- Helper Function ----------
def as_homogeneous(pts: Points2D) -> PointsHomog:
    """
    Convert (N,2) points -> (N,3) homogeneous points: [x, y, 1].
    """
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise ValueError(f"Expected points shape (N, 2) but got {pts.shape}")

    ones = np.ones((pts.shape[0], 1), dtype=np.float64)
    return np.hstack([pts.astype(np.float64), ones])


def as_points(points: npt.ArrayLike) -> Tuple[Points2D, bool]:
    """
    Coerce a single point (2,) or a point array (N,2) to (N,2) float64.

    Returns the array and whether the input was a single point, so callers
    can hand back the same shape they were given.
    """
    pts = np.asarray(points, dtype=np.float64)
    if pts.shape == (2,):
        return pts.reshape(1, 2), True
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise ValueError(f"Expected point shape (2,) or (N, 2) but got {pts.shape}")
    return pts, False


def is_valid_mat3x3(T: Mat3x3) -> bool:
    """
    Verify a 3x3 homogeneous transform matrix.
    """
    return (
        isinstance(T, np.ndarray)
        and T.shape == (3, 3)
        and bool(np.isfinite(T).all())
        and np.allclose(T[2], [0.0, 0.0, 1.0])
    )
