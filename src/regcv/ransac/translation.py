# Andy Zhao
"""
Translation-only model.

Assume: every correspondence moves by the same displacement.
    pts1 ≈ pts0 + t
    t = (tx, ty)

This model has only 2 degrees of freedom, so a single correspondence
determines it.
"""

from __future__ import annotations

import numpy as np

from .errors import IllConditionedError
from .linalg import check_weights
from .types import FloatArray, Mat3x3, Points2D

MIN_SAMPLES = 1


def make_translation(tx: float, ty: float) -> Mat3x3:
    """
    3x3 homogeneous matrix for a pure translation:

        [ 1   0   tx ]
        [ 0   1   ty ]
        [ 0   0    1 ]
    """
    T = np.eye(3, dtype=np.float64)
    T[0, 2] = tx
    T[1, 2] = ty
    return T


def fit_translation_least_squares(pts0: Points2D, pts1: Points2D, weights: FloatArray) -> Mat3x3:
    """
    Weighted least-squares translation.

        minimize sum_i w_i || pts0_i + t - pts1_i ||^2
        → t = sum_i w_i (pts1_i - pts0_i) / sum_i w_i

    One correspondence is enough; the minimal fit is the same formula.
    """
    if pts0.shape[0] < MIN_SAMPLES:
        raise IllConditionedError("translation needs at least one correspondence")
    w = check_weights(weights, pts0.shape[0])

    displacements = pts1 - pts0
    t = (w[:, None] * displacements).sum(axis=0) / float(w.sum())
    if not np.isfinite(t).all():
        raise IllConditionedError("translation is not finite")

    return make_translation(tx=float(t[0]), ty=float(t[1]))
