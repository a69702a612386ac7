# Andy Zhao
"""
Numerical building blocks for the weighted least-squares fits.

- weighted centroid / spread of a point set
- isotropic point normalization (centroid to origin, unit mean distance)
- weighted normal-equation solve with a conditioning check

Every routine raises IllConditionedError instead of returning NaN or an
arbitrary solution for a degenerate system.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .errors import IllConditionedError
from .types import FloatArray, Mat3x3, Points2D

# Relative spread below which a point set counts as a single point.
SPREAD_EPS = 1e-9

# Reciprocal condition number floor for the normal matrix A^T W A.
RCOND = 1e-10


def check_weights(weights: FloatArray, n: int) -> FloatArray:
    w = np.asarray(weights, dtype=np.float64).reshape(-1)
    if w.shape[0] != n:
        raise ValueError(f"weights must have length {n}, got {w.shape[0]}")
    if not np.isfinite(w).all() or (w < 0.0).any():
        raise IllConditionedError("weights must be finite and non-negative")
    if float(w.sum()) <= 0.0:
        raise IllConditionedError("total weight is zero")
    return w


def weighted_centroid(pts: Points2D, w: FloatArray) -> FloatArray:
    return (w[:, None] * pts).sum(axis=0) / float(w.sum())


def weighted_spread(pts: Points2D, w: FloatArray) -> Tuple[FloatArray, float]:
    """
    Return (centroid, weighted mean distance to the centroid).
    """
    c = weighted_centroid(pts, w)
    d = np.linalg.norm(pts - c, axis=1)
    return c, float((w * d).sum() / w.sum())


def is_collapsed(centroid: FloatArray, spread: float) -> bool:
    """
    True when the points coincide up to floating noise, relative to where they sit.
    """
    scale = max(1.0, float(np.max(np.abs(centroid))))
    return not np.isfinite(spread) or spread <= SPREAD_EPS * scale


def normalize_points(pts: Points2D, w: FloatArray, name: str = "points") -> Tuple[Points2D, Mat3x3]:
    """
    Isotropic normalization: move the weighted centroid to the origin and
    scale so the weighted mean distance is 1.

    Returns the normalized points and the 3x3 matrix N with
    normalized = N @ [x, y, 1].

    Raises IllConditionedError when the points coincide (zero scale).
    """
    c, spread = weighted_spread(pts, w)
    if is_collapsed(c, spread):
        raise IllConditionedError(f"{name} coincide; cannot fit a model with zero-scale geometry")

    s = 1.0 / spread
    N = np.array(
        [
            [s, 0.0, -s * c[0]],
            [0.0, s, -s * c[1]],
            [0.0, 0.0, 1.0],
        ],
        dtype=np.float64,
    )
    return (pts - c) * s, N


def denormalize(T_norm: Mat3x3, N_src: Mat3x3, N_dst: Mat3x3) -> Mat3x3:
    """
    Undo normalization: T = N_dst^-1 @ T_norm @ N_src.

    N matrices are isotropic scale + shift, so the inverse is closed form.
    """
    s = N_dst[0, 0]
    N_dst_inv = np.array(
        [
            [1.0 / s, 0.0, -N_dst[0, 2] / s],
            [0.0, 1.0 / s, -N_dst[1, 2] / s],
            [0.0, 0.0, 1.0],
        ],
        dtype=np.float64,
    )
    T = N_dst_inv @ T_norm @ N_src
    T[2] = [0.0, 0.0, 1.0]
    return T


def solve_weighted_normal_equations(
        A: FloatArray,
        b: FloatArray,
        w: FloatArray,
        *,
        rcond: float = RCOND,
) -> FloatArray:
    """
    Minimize sum_i w_i (A_i x - b_i)^2 by solving (A^T W A) x = A^T W b.

    - A: (M,K) design matrix
    - b: (M,) observations
    - w: (M,) non-negative row weights

    The conditioning of A^T W A is measured from its singular values; a
    reciprocal condition number below rcond means the data does not
    constrain all K unknowns (collinear / coincident points) and raises
    IllConditionedError.
    """
    A = np.asarray(A, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64).reshape(-1)
    w = np.asarray(w, dtype=np.float64).reshape(-1)

    if A.ndim != 2 or A.shape[0] != b.shape[0] or w.shape[0] != b.shape[0]:
        raise ValueError(f"Inconsistent shapes: A {A.shape}, b {b.shape}, w {w.shape}")
    if A.shape[0] < A.shape[1]:
        raise IllConditionedError(
            f"under-determined system: {A.shape[0]} equations for {A.shape[1]} unknowns")
    if not (np.isfinite(A).all() and np.isfinite(b).all() and np.isfinite(w).all()):
        raise IllConditionedError("non-finite values in least-squares system")

    AtW = A.T * w            # (K,M)
    normal = AtW @ A         # (K,K)
    rhs = AtW @ b            # (K,)

    sv = np.linalg.svd(normal, compute_uv=False)
    if sv[0] <= 0.0 or sv[-1] / sv[0] < rcond:
        raise IllConditionedError(
            f"normal equations are singular (rcond={sv[-1] / sv[0] if sv[0] > 0 else 0.0:.3g})")

    try:
        x = np.linalg.solve(normal, rhs)
    except np.linalg.LinAlgError as exc:
        raise IllConditionedError(str(exc)) from exc

    if not np.isfinite(x).all():
        raise IllConditionedError("least-squares solution is not finite")
    return x
