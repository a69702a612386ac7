# Andy Zhao
"""
Rigid model (rotation + translation, 3 degrees of freedom).

    [x']   [cos θ  -sin θ] [x]   [tx]
    [y'] = [sin θ   cos θ] [y] + [ty]

Closed-form weighted Procrustes solution. With both point sets centered on
their weighted centroids (P, Q), the optimal angle is

    θ = atan2( Σ w (Px Qy - Py Qx), Σ w (Px Qx + Py Qy) )

and the translation maps the source centroid onto the target centroid.
"""

from __future__ import annotations

import math

import numpy as np

from .errors import IllConditionedError
from .linalg import check_weights, is_collapsed, weighted_spread
from .types import FloatArray, Mat3x3, Points2D

MIN_SAMPLES = 2


def make_rigid(theta: float, tx: float, ty: float) -> Mat3x3:
    c, s = math.cos(theta), math.sin(theta)
    return np.array(
        [
            [c, -s, tx],
            [s, c, ty],
            [0.0, 0.0, 1.0],
        ],
        dtype=np.float64,
    )


def rigid_angle(T: Mat3x3) -> float:
    return math.atan2(float(T[1, 0]), float(T[0, 0]))


def fit_rigid_least_squares(pts0: Points2D, pts1: Points2D, weights: FloatArray) -> Mat3x3:
    """
    Weighted least-squares rigid transform from N >= 2 correspondences.

    Raises IllConditionedError when either point set collapses to a single
    point: the rotation is then undefined.
    """
    if pts0.shape[0] < MIN_SAMPLES:
        raise IllConditionedError(f"rigid needs at least {MIN_SAMPLES} correspondences")
    w = check_weights(weights, pts0.shape[0])

    c0, spread0 = weighted_spread(pts0, w)
    if is_collapsed(c0, spread0):
        raise IllConditionedError("source points coincide; rotation is undefined")
    c1, spread1 = weighted_spread(pts1, w)
    if is_collapsed(c1, spread1):
        raise IllConditionedError("target points coincide; rotation is undefined")

    P = pts0 - c0
    Q = pts1 - c1
    sin_sum = float((w * (P[:, 0] * Q[:, 1] - P[:, 1] * Q[:, 0])).sum())
    cos_sum = float((w * (P[:, 0] * Q[:, 0] + P[:, 1] * Q[:, 1])).sum())

    # Both sums vanish when the cross-covariance carries no rotation signal.
    if math.hypot(sin_sum, cos_sum) <= 1e-12 * float(w.sum()) * spread0 * spread1:
        raise IllConditionedError("rotation is not determined by these correspondences")

    theta = math.atan2(sin_sum, cos_sum)
    T = make_rigid(theta, 0.0, 0.0)
    t = c1 - T[:2, :2] @ c0
    T[0, 2] = float(t[0])
    T[1, 2] = float(t[1])

    if not np.isfinite(T).all():
        raise IllConditionedError("rigid transform is not finite")
    return T
