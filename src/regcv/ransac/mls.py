# Andy Zhao
"""
Moving least squares (MLS) transform.

Instead of one global parameter set, every query point x gets its own
weighted fit of the base kind, with control point i weighted by

    w_i(x) = weight_i / || p_i - x ||^(2 * alpha)

so nearby control points dominate. The result is a smooth, locally
adapted deformation that passes exactly through the control points.

The map has no closed-form inverse and is not used as a RANSAC hypothesis.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Tuple

import numpy as np
import numpy.typing as npt

from .affine import apply_T
from .correspondence import Correspondence, stack_correspondences
from .errors import InsufficientDataError, NonInvertibleError
from .lstsq import MIN_SAMPLES, fit_least_squares
from .types import FloatArray, ModelKind, as_points

_MIN_REL_WEIGHT = 1e-8


@dataclass(frozen=True)
class MovingLeastSquaresTransform:
    """
    - kind: model fitted locally per query point (affine by default)
    - alpha: falloff exponent of the distance weighting
    - control: the correspondences the transform interpolates, set by fit()
    """
    kind: ModelKind = ModelKind.AFFINE
    alpha: float = 1.0
    control: Tuple[Correspondence, ...] = ()

    _pts0: FloatArray = field(init=False, repr=False, compare=False)
    _pts1: FloatArray = field(init=False, repr=False, compare=False)
    _w: FloatArray = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ModelKind(self.kind))
        if not np.isfinite(self.alpha) or self.alpha <= 0.0:
            raise ValueError(f"alpha must be > 0, got {self.alpha}")

        control = tuple(self.control)
        pts0, pts1, w = stack_correspondences(control)
        object.__setattr__(self, "control", control)
        object.__setattr__(self, "_pts0", pts0)
        object.__setattr__(self, "_pts1", pts1)
        object.__setattr__(self, "_w", w)

    @property
    def min_correspondences(self) -> int:
        return MIN_SAMPLES[self.kind]

    @property
    def is_fitted(self) -> bool:
        return len(self.control) > 0

    @property
    def is_invertible(self) -> bool:
        return False

    def fit(self, correspondences: Iterable[Correspondence]) -> "MovingLeastSquaresTransform":
        """
        Return a new transform interpolating these correspondences.

        A global fit of the base kind is run once so degenerate control sets
        fail here (IllConditionedError) rather than on the first apply().
        """
        control = tuple(correspondences)
        if len(control) < self.min_correspondences:
            raise InsufficientDataError(
                self.min_correspondences, len(control), f"moving least squares ({self.kind.value})")

        pts0, pts1, w = stack_correspondences(control)
        fit_least_squares(self.kind, pts0, pts1, w)
        return replace(self, control=control)

    def apply(self, points: npt.ArrayLike) -> FloatArray:
        """
        Map a point (2,) or points (N,2) with a locally weighted fit per point.
        """
        if not self.is_fitted:
            raise InsufficientDataError(self.min_correspondences, 0, "moving least squares")

        pts, single = as_points(points)
        out = np.empty_like(pts)

        for i, x in enumerate(pts):
            d2 = np.sum((self._pts0 - x) ** 2, axis=1)

            # Weight is infinite on a control point: return its target exactly.
            hit = np.flatnonzero(d2 == 0.0)
            if hit.size:
                out[i] = self._pts1[hit[0]]
                continue

            w = self._w / d2 ** self.alpha
            # Floor the relative weights so their spread stays inside what the
            # normal-equation conditioning check accepts.
            w = np.maximum(w / w.max(), _MIN_REL_WEIGHT)
            T = fit_least_squares(self.kind, self._pts0, self._pts1, w)
            out[i] = apply_T(T, x.reshape(1, 2))[0]

        return out[0] if single else out

    def apply_inverse(self, points: npt.ArrayLike) -> FloatArray:
        raise NonInvertibleError("moving least squares transform has no closed-form inverse")
