# Andy Zhao
"""
TransformModel: a fitted coordinate transform, tagged by its ModelKind.

The model is a plain value (kind + 3x3 homogeneous matrix). Everything
kind-specific (minimum correspondence count, solver, parameter layout,
invertibility test) is looked up by tag; there is no subclass per kind.

Typical use:

    model = TransformModel.fit(ModelKind.AFFINE, correspondences)
    q = model.apply(p)
    p_back = model.apply_inverse(q)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Tuple

import numpy as np
import numpy.typing as npt

from .affine import apply_T, residuals_L2
from .correspondence import Correspondence, stack_correspondences
from .errors import InsufficientDataError, NonInvertibleError
from .lstsq import MIN_SAMPLES, fit_least_squares
from .rigid import rigid_angle
from .similarity import similarity_scale
from .types import FloatArray, Mat3x3, ModelKind, Points2D, as_points, is_valid_mat3x3

# Below this |det| (or scale) the forward map is treated as non-bijective.
INVERTIBLE_EPS = 1e-12

# Tolerance for checking that a matrix has the structure its kind promises,
# relative to the size of the linear part.
_STRUCTURE_TOL = 1e-9


# ---------- Per-kind tables ----------
def _translation_params(T: Mat3x3) -> Tuple[float, ...]:
    return float(T[0, 2]), float(T[1, 2])


def _rigid_params(T: Mat3x3) -> Tuple[float, ...]:
    return rigid_angle(T), float(T[0, 2]), float(T[1, 2])


def _similarity_params(T: Mat3x3) -> Tuple[float, ...]:
    return float(T[0, 0]), float(T[1, 0]), float(T[0, 2]), float(T[1, 2])


def _affine_params(T: Mat3x3) -> Tuple[float, ...]:
    return tuple(float(v) for v in T[:2].reshape(-1))


_PARAMS: Dict[ModelKind, Callable[[Mat3x3], Tuple[float, ...]]] = {
    ModelKind.TRANSLATION: _translation_params,
    ModelKind.RIGID: _rigid_params,
    ModelKind.SIMILARITY: _similarity_params,
    ModelKind.AFFINE: _affine_params,
}


def _linear_part_matches(kind: ModelKind, L: np.ndarray) -> bool:
    if kind is ModelKind.TRANSLATION:
        return np.allclose(L, np.eye(2), atol=_STRUCTURE_TOL)
    if kind is ModelKind.SIMILARITY:
        tol = _STRUCTURE_TOL * max(1.0, float(np.abs(L).max()))
        return (abs(L[0, 0] - L[1, 1]) <= tol
                and abs(L[0, 1] + L[1, 0]) <= tol)
    if kind is ModelKind.RIGID:
        return (np.allclose(L @ L.T, np.eye(2), atol=_STRUCTURE_TOL)
                and float(np.linalg.det(L)) > 0.0)
    return True


def _determinant(T: Mat3x3) -> float:
    return float(T[0, 0] * T[1, 1] - T[0, 1] * T[1, 0])


@dataclass(frozen=True, eq=False)
class TransformModel:
    """
    Immutable fitted transform.

    - kind: which transform family the matrix belongs to
    - matrix: 3x3 homogeneous matrix, read-only
    """
    kind: ModelKind
    matrix: Mat3x3

    def __post_init__(self) -> None:
        kind = ModelKind(self.kind)
        T = np.array(self.matrix, dtype=np.float64)
        if not is_valid_mat3x3(T):
            raise ValueError(f"Expected finite 3x3 homogeneous matrix, got {np.asarray(self.matrix).tolist()}")
        if not _linear_part_matches(kind, T[:2, :2]):
            raise ValueError(f"Matrix does not have {kind.value} structure: {T[:2, :2].tolist()}")

        T[2] = [0.0, 0.0, 1.0]
        T.setflags(write=False)
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "matrix", T)

    # ---------- Construction ----------
    @classmethod
    def identity(cls, kind: ModelKind | str = ModelKind.AFFINE) -> "TransformModel":
        return cls(ModelKind(kind), np.eye(3, dtype=np.float64))

    @classmethod
    def from_matrix(cls, kind: ModelKind | str, matrix: npt.ArrayLike) -> "TransformModel":
        """
        Wrap a known 3x3 (or 2x3 affine) matrix. The structure is validated
        against the kind.
        """
        T = np.asarray(matrix, dtype=np.float64)
        if T.shape == (2, 3):
            T = np.vstack([T, [0.0, 0.0, 1.0]])
        return cls(ModelKind(kind), T)

    @classmethod
    def fit(cls, kind: ModelKind | str, correspondences: Iterable[Correspondence]) -> "TransformModel":
        """
        Weighted least-squares fit of a model of the given kind.

        Raises:
        - InsufficientDataError when there are fewer correspondences than the kind needs
        - IllConditionedError on degenerate geometry (collinear, coincident, zero scale)
        """
        kind = ModelKind(kind)
        pts0, pts1, w = stack_correspondences(correspondences)
        if pts0.shape[0] < MIN_SAMPLES[kind]:
            raise InsufficientDataError(MIN_SAMPLES[kind], pts0.shape[0], f"{kind.value} model")
        return cls(kind, fit_least_squares(kind, pts0, pts1, w))

    # ---------- Properties ----------
    @property
    def min_correspondences(self) -> int:
        return MIN_SAMPLES[self.kind]

    @property
    def params(self) -> Tuple[float, ...]:
        """
        Kind-specific parameter vector:
        - translation: (tx, ty)
        - rigid:       (theta, tx, ty)
        - similarity:  (a, b, tx, ty)
        - affine:      (a, b, tx, c, d, ty)
        """
        return _PARAMS[self.kind](self.matrix)

    @property
    def is_invertible(self) -> bool:
        if self.kind in (ModelKind.TRANSLATION, ModelKind.RIGID):
            return True
        if self.kind is ModelKind.SIMILARITY:
            return similarity_scale(self.matrix) > INVERTIBLE_EPS
        return abs(_determinant(self.matrix)) > INVERTIBLE_EPS

    # ---------- Mapping ----------
    def apply(self, points: npt.ArrayLike) -> FloatArray:
        """
        Map a point (2,) or points (N,2); returns the same shape.
        """
        pts, single = as_points(points)
        out = apply_T(self.matrix, pts)
        return out[0] if single else out

    def inverse(self) -> "TransformModel":
        """
        The inverse transform, same kind.

        Raises NonInvertibleError when the forward map is not bijective.
        """
        if not self.is_invertible:
            raise NonInvertibleError(
                f"{self.kind.value} transform is singular (det={_determinant(self.matrix):.3g})")

        T = self.matrix
        if self.kind is ModelKind.RIGID:
            # Transpose of an exact rotation keeps the rigid structure free of round-off.
            theta = -rigid_angle(T)
            c, s = math.cos(theta), math.sin(theta)
            L_inv = np.array([[c, -s], [s, c]], dtype=np.float64)
        elif self.kind is ModelKind.SIMILARITY:
            # [[a, -b], [b, a]]^-1 = [[a, b], [-b, a]] / (a^2 + b^2), exact structure at any scale.
            a, b = float(T[0, 0]), float(T[1, 0])
            s2 = a * a + b * b
            L_inv = np.array([[a / s2, b / s2], [-b / s2, a / s2]], dtype=np.float64)
        else:
            L_inv = np.linalg.inv(T[:2, :2])

        inv = np.eye(3, dtype=np.float64)
        inv[:2, :2] = L_inv
        inv[:2, 2] = -L_inv @ T[:2, 2]
        return TransformModel(self.kind, inv)

    def apply_inverse(self, points: npt.ArrayLike) -> FloatArray:
        """
        Map target-space points back to source space. Same shapes as apply().
        """
        return self.inverse().apply(points)

    # ---------- Scoring ----------
    def residuals(self, pts0: Points2D, pts1: Points2D) -> FloatArray:
        return residuals_L2(self.matrix, pts0, pts1)

    def cost(self, correspondences: Iterable[Correspondence]) -> float:
        """
        Weighted mean residual over the correspondences.
        """
        pts0, pts1, w = stack_correspondences(correspondences)
        if pts0.shape[0] == 0:
            return 0.0
        err = self.residuals(pts0, pts1)
        return float((w * err).sum() / w.sum())

    # ---------- Value semantics ----------
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TransformModel):
            return NotImplemented
        return self.kind is other.kind and np.array_equal(self.matrix, other.matrix)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        params = ", ".join(f"{v:.6g}" for v in self.params)
        return f"TransformModel({self.kind.value}, params=({params}))"


def fit_model(kind: ModelKind | str, correspondences: Iterable[Correspondence]) -> TransformModel:
    """Functional alias of TransformModel.fit."""
    return TransformModel.fit(kind, correspondences)
