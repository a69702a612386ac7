"""
regcv: correspondence-based robust transform fitting for image registration.
"""
from .ransac import (
    Correspondence, ModelKind, TransformModel, MovingLeastSquaresTransform,
    FitResult, RansacParams, ransac, fit_model, filter_outliers,
    RegistrationError, InsufficientDataError, IllConditionedError,
    NonInvertibleError, NotEnoughInliersError,
)

__version__ = "0.1.0"

__all__ = [
    "Correspondence", "ModelKind", "TransformModel", "MovingLeastSquaresTransform",
    "FitResult", "RansacParams", "ransac", "fit_model", "filter_outliers",
    "RegistrationError", "InsufficientDataError", "IllConditionedError",
    "NonInvertibleError", "NotEnoughInliersError",
]
