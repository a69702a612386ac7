# Andy Zhao
"""
Similarity model (rotation + isotropic scale + translation, 4 degrees of freedom).

    T = [[a, -b, tx],
         [b,  a, ty],
         [0,  0,  1]]

with a = s cos θ, b = s sin θ. The scale is s = hypot(a, b).

Unknowns theta = [a, b, tx, ty]; each correspondence (x, y) -> (x', y') gives

    x' = a*x - b*y + tx
    y' = b*x + a*y + ty
"""

from __future__ import annotations

import math

import numpy as np

from .errors import IllConditionedError
from .linalg import check_weights, denormalize, normalize_points, solve_weighted_normal_equations
from .types import FloatArray, Mat3x3, Points2D

MIN_SAMPLES = 2


def make_similarity(a: float, b: float, tx: float, ty: float) -> Mat3x3:
    return np.array(
        [
            [a, -b, tx],
            [b, a, ty],
            [0.0, 0.0, 1.0],
        ],
        dtype=np.float64,
    )


def similarity_scale(T: Mat3x3) -> float:
    return math.hypot(float(T[0, 0]), float(T[1, 0]))


def fit_similarity_least_squares(pts0: Points2D, pts1: Points2D, weights: FloatArray) -> Mat3x3:
    """
    Weighted least-squares similarity from N >= 2 correspondences.

    Points are normalized first; coincident sources or targets (zero scale)
    raise IllConditionedError.
    """
    n = pts0.shape[0]
    if n < MIN_SAMPLES:
        raise IllConditionedError(f"similarity needs at least {MIN_SAMPLES} correspondences")
    w = check_weights(weights, n)

    p, N0 = normalize_points(pts0, w, "source points")
    q, N1 = normalize_points(pts1, w, "target points")

    # A is (2N x 4), rows interleaved x', y'
    A = np.zeros((2 * n, 4), dtype=np.float64)
    A[0::2, 0] = p[:, 0]
    A[0::2, 1] = -p[:, 1]
    A[0::2, 2] = 1.0
    A[1::2, 0] = p[:, 1]
    A[1::2, 1] = p[:, 0]
    A[1::2, 3] = 1.0
    bvec = q.reshape(-1)

    theta = solve_weighted_normal_equations(A, bvec, np.repeat(w, 2))
    a, b, tx, ty = map(float, theta.tolist())

    T = denormalize(make_similarity(a, b, tx, ty), N0, N1)
    if similarity_scale(T) <= 1e-12:
        raise IllConditionedError("similarity collapsed to zero scale")
    return T
