# Andy Zhao
"""
Weighted least-squares fitter, dispatched by model tag.

For a model kind and weighted correspondences, minimizes

    sum_i w_i || T(src_i) - tgt_i ||^2

- translation: weighted mean displacement
- rigid:       closed-form weighted Procrustes
- similarity:  weighted normal equations, 4 unknowns
- affine:      weighted normal equations, 6 unknowns

Degenerate geometry raises IllConditionedError; nothing returns NaN.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

import numpy as np
import numpy.typing as npt

from . import affine, rigid, similarity, translation
from .errors import InsufficientDataError
from .types import FloatArray, Mat3x3, ModelKind, Points2D

LeastSquaresSolver = Callable[[Points2D, Points2D, FloatArray], Mat3x3]

# Degrees of freedom / 2 rounded up: the minimal correspondence count per kind.
MIN_SAMPLES: Dict[ModelKind, int] = {
    ModelKind.TRANSLATION: translation.MIN_SAMPLES,
    ModelKind.RIGID: rigid.MIN_SAMPLES,
    ModelKind.SIMILARITY: similarity.MIN_SAMPLES,
    ModelKind.AFFINE: affine.MIN_SAMPLES,
}

_SOLVERS: Dict[ModelKind, LeastSquaresSolver] = {
    ModelKind.TRANSLATION: translation.fit_translation_least_squares,
    ModelKind.RIGID: rigid.fit_rigid_least_squares,
    ModelKind.SIMILARITY: similarity.fit_similarity_least_squares,
    ModelKind.AFFINE: affine.fit_affine_least_squares,
}


def min_samples(kind: ModelKind | str) -> int:
    return MIN_SAMPLES[ModelKind(kind)]


def fit_least_squares(
        kind: ModelKind | str,
        pts0: npt.ArrayLike,
        pts1: npt.ArrayLike,
        weights: Optional[npt.ArrayLike] = None,
) -> Mat3x3:
    """
    Fit a model of the given kind to (N,2) point arrays.

    Raises:
    - InsufficientDataError if N is below the kind's minimum
    - IllConditionedError on degenerate geometry
    """
    kind = ModelKind(kind)
    pts0 = np.asarray(pts0, dtype=np.float64)
    pts1 = np.asarray(pts1, dtype=np.float64)
    if pts0.shape != pts1.shape:
        raise ValueError(f"pts0 and pts1 must have same shape, got {pts0.shape} vs {pts1.shape}")
    if pts0.ndim != 2 or pts0.shape[1] != 2:
        raise ValueError(f"Expected pts shape (N,2), got {pts0.shape}")

    n = pts0.shape[0]
    if n < MIN_SAMPLES[kind]:
        raise InsufficientDataError(MIN_SAMPLES[kind], n, f"{kind.value} model")

    if weights is None:
        w = np.ones((n,), dtype=np.float64)
    else:
        w = np.asarray(weights, dtype=np.float64).reshape(-1)

    return _SOLVERS[kind](pts0, pts1, w)
