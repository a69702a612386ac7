# Andy Zhao
"""
Affine model, plus the homogeneous helpers shared by every kind
(apply_T, residuals_L2).

We estimate an affine transform T such that:

    [x', y', 1]^T  ≈  T @ [x, y, 1]^T

where:

    T = [[a, b, tx],
         [c, d, ty],
         [0, 0,  1]]

Unknowns are 6 parameters: a, b, tx, c, d, ty.
"""

from __future__ import annotations

import numpy as np

from .errors import IllConditionedError
from .linalg import check_weights, denormalize, normalize_points, solve_weighted_normal_equations
from .types import (
    Points2D, PointsHomog, Mat3x3, FloatArray,
    as_homogeneous)

MIN_SAMPLES = 3


# ---------- Degeneracy Check Helpers ----------
def _triangle_area(p1: np.ndarray, p2: np.ndarray, p3: np.ndarray) -> float:
    """
    Return 2x the triangle area formed by (p1, p2, p3):

        area2 = |(p2 - p1) x (p3 - p1)|
    """
    u = p2 - p1
    v = p3 - p1
    return float(abs(u[0] * v[1] - u[1] * v[0]))


def _is_degenerate_triplet(pts: Points2D, eps_area: float = 1e-6) -> bool:
    """
    Check whether 3 points (shape (3,2)) are nearly collinear.

    The area is compared against the squared longest edge, so the test does
    not depend on the coordinate units (pixels vs. micrometres):

        area2 <= eps_area * max_edge^2

    Coincident points (max_edge == 0) count as degenerate.
    """
    if pts.shape != (3, 2):
        raise ValueError(f"Expected (3,2) triplet, got {pts.shape}")

    area2 = _triangle_area(pts[0], pts[1], pts[2])
    max_edge2 = float(max(
        np.sum((pts[1] - pts[0]) ** 2),
        np.sum((pts[2] - pts[1]) ** 2),
        np.sum((pts[0] - pts[2]) ** 2),
    ))
    return area2 <= eps_area * max_edge2


# ---------- Affine Fitting ----------
def _theta_to_mat3x3(theta: np.ndarray) -> Mat3x3:
    """
    Convert parameter vector theta = [a, b, tx, c, d, ty] into a 3x3 affine matrix.
    """
    a, b, tx, c, d, ty = map(float, theta.tolist())
    return np.array(
        [
            [a, b, tx],
            [c, d, ty],
            [0.0, 0.0, 1.0],
        ],
        dtype=np.float64,
    )


def fit_affine_minimal(
        pts0: Points2D,
        pts1: Points2D,
        weights: FloatArray,
        eps_area: float = 1e-6,
) -> Mat3x3:
    """
    Fit affine transform from exactly 3 point correspondences.

    A collinear source triplet leaves shear/rotation undetermined, so it is
    rejected up front with IllConditionedError before any solve.
    """
    if pts0.shape != (3, 2) or pts1.shape != (3, 2):
        raise ValueError(f"fit_affine_minimal expects (3,2) inputs, got {pts0.shape} and {pts1.shape}")

    if _is_degenerate_triplet(pts0, eps_area):
        raise IllConditionedError("source triplet is collinear")

    return fit_affine_least_squares(pts0, pts1, weights)


def fit_affine_least_squares(pts0: Points2D, pts1: Points2D, weights: FloatArray) -> Mat3x3:
    """
    Fit affine transform from N >= 3 correspondences using weighted least squares.

    Used for the minimal solve and again after RANSAC picks inliers.

    Each correspondence gives 2 rows of the (2N x 6) system:
        A = [[x, y, 1, 0, 0, 0],
             [0, 0, 0, x, y, 1]]
    solved through the weighted normal equations on normalized points.
    """
    if pts0.shape != pts1.shape:
        raise ValueError(f"pts0 and pts1 must have same shape, got {pts0.shape} vs {pts1.shape}")
    if pts0.ndim != 2 or pts0.shape[1] != 2:
        raise ValueError(f"Expected pts shape (N,2), got {pts0.shape}")

    n = pts0.shape[0]
    if n < MIN_SAMPLES:
        raise IllConditionedError(f"affine needs at least {MIN_SAMPLES} correspondences")
    w = check_weights(weights, n)

    p, N0 = normalize_points(pts0, w, "source points")
    q, N1 = normalize_points(pts1, w, "target points")

    A = np.zeros((2 * n, 6), dtype=np.float64)
    A[0::2, 0:2] = p
    A[0::2, 2] = 1.0
    A[1::2, 3:5] = p
    A[1::2, 5] = 1.0
    bvec = q.reshape(-1)

    # Affine has 6 unknowns. Collinear or clustered points leave the
    # normal matrix (numerically) rank deficient and the solve refuses.
    theta = solve_weighted_normal_equations(A, bvec, np.repeat(w, 2))

    T = denormalize(_theta_to_mat3x3(theta), N0, N1)
    if not np.isfinite(T).all():
        raise IllConditionedError("affine transform is not finite")
    return T


# ---------- Apply transform + residuals ----------
def apply_T(T: Mat3x3, pts: Points2D) -> Points2D:
    """
    Apply a 3x3 transform to (N,2) points, returning (N,2) points.

        [x', y', 1]^T = T @ [x, y, 1]^T
    """
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise ValueError(f"Expected pts shape (N,2), got {pts.shape}")
    if T.shape != (3, 3):
        raise ValueError(f"Expected T shape (3,3), got {T.shape}")

    ph: PointsHomog = as_homogeneous(pts)

    # Each point is a row, so multiply by T^T
    ph_t = ph @ T.T
    return ph_t[:, :2].astype(np.float64)


def residuals_L2(T: Mat3x3, pts0: Points2D, pts1: Points2D) -> FloatArray:
    """
    Per-point L2 residuals:

        e_i = || apply_T(T, pts0[i]) - pts1[i] ||_2

    Returns shape (N,)
    """
    if pts0.shape != pts1.shape:
        raise ValueError(f"pts0 and pts1 must have same shape, got {pts0.shape} vs {pts1.shape}")
    predicted = apply_T(T, pts0)
    diff = predicted - pts1.astype(np.float64)
    return np.linalg.norm(diff, axis=1).astype(np.float64)
