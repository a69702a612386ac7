# Andy Zhao
"""
RANSAC package

This module provides:
- Correspondence value type and array helpers
- Tagged transform models (translation, rigid, similarity, affine)
- A moving least squares (local) transform
- Weighted least-squares fitting with conditioning checks
- A reusable, reproducible RANSAC estimator and a trust filter
"""

from .types import (
    FloatArray, BoolArray, Points2D, PointsHomog, Mask2D, Mat3x3,
    ModelKind, ModelFitter, CoordinateTransform, FitResult,
    as_homogeneous, as_points, is_valid_mat3x3,
)

from .errors import (
    RegistrationError, InsufficientDataError, IllConditionedError,
    NonInvertibleError, NotEnoughInliersError,
)

from .correspondence import Correspondence, stack_correspondences, correspondences_from_arrays

from .linalg import solve_weighted_normal_equations

from .lstsq import MIN_SAMPLES, min_samples, fit_least_squares

from .affine import fit_affine_minimal, fit_affine_least_squares, apply_T, residuals_L2

from .model import TransformModel, fit_model

from .mls import MovingLeastSquaresTransform

from .fitter import KindFitter

from .filter import filter_outliers

from .core import RansacParams, ransac, ransac_arrays, required_iterations

__all__ = [
    "FloatArray", "BoolArray", "Points2D", "PointsHomog", "Mask2D", "Mat3x3",
    "ModelKind", "ModelFitter", "CoordinateTransform", "FitResult",
    "as_homogeneous", "as_points", "is_valid_mat3x3",
    "RegistrationError", "InsufficientDataError", "IllConditionedError",
    "NonInvertibleError", "NotEnoughInliersError",
    "Correspondence", "stack_correspondences", "correspondences_from_arrays",
    "solve_weighted_normal_equations",
    "MIN_SAMPLES", "min_samples", "fit_least_squares",
    "fit_affine_minimal", "fit_affine_least_squares", "apply_T", "residuals_L2",
    "TransformModel", "fit_model",
    "MovingLeastSquaresTransform",
    "KindFitter",
    "filter_outliers",
    "RansacParams", "ransac", "ransac_arrays", "required_iterations",
]
