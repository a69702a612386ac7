# Andy Zhao
"""
Correspondence: one matched pair (source point -> target point) with a weight.

Collections of correspondences are the only input to fitting. The vectorized
fitters work on arrays, so this module also converts between the value type
and the (pts0, pts1, weights) array triple.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from .types import CoordinateTransform, FloatArray, Points2D


def _as_point_tuple(value: npt.ArrayLike, name: str) -> Tuple[float, float]:
    arr = np.asarray(value, dtype=np.float64).reshape(-1)
    if arr.shape != (2,):
        raise ValueError(f"{name} must be a 2D point, got shape {np.shape(value)}")
    if not np.isfinite(arr).all():
        raise ValueError(f"{name} must be finite, got {arr.tolist()}")
    return float(arr[0]), float(arr[1])


@dataclass(frozen=True)
class Correspondence:
    """
    Immutable matched pair.

    - source: point in the moving image (x, y)
    - target: matching point in the fixed image (x, y)
    - weight: relative confidence, > 0
    """
    source: Tuple[float, float]
    target: Tuple[float, float]
    weight: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "source", _as_point_tuple(self.source, "source"))
        object.__setattr__(self, "target", _as_point_tuple(self.target, "target"))

        w = float(self.weight)
        if not np.isfinite(w) or w <= 0.0:
            raise ValueError(f"weight must be finite and > 0, got {self.weight}")
        object.__setattr__(self, "weight", w)

    def residual(self, model: CoordinateTransform) -> float:
        """
        Distance between model.apply(source) and target.
        """
        predicted = np.asarray(model.apply(np.asarray(self.source)), dtype=np.float64)
        diff = predicted - np.asarray(self.target, dtype=np.float64)
        return float(np.hypot(diff[0], diff[1]))


def stack_correspondences(
        correspondences: Iterable[Correspondence],
) -> Tuple[Points2D, Points2D, FloatArray]:
    """
    Split correspondences into (pts0 (N,2), pts1 (N,2), weights (N,)) float64 arrays.
    """
    cs = list(correspondences)
    n = len(cs)
    pts0 = np.empty((n, 2), dtype=np.float64)
    pts1 = np.empty((n, 2), dtype=np.float64)
    w = np.empty((n,), dtype=np.float64)

    for i, c in enumerate(cs):
        pts0[i] = c.source
        pts1[i] = c.target
        w[i] = c.weight
    return pts0, pts1, w


def correspondences_from_arrays(
        pts0: npt.ArrayLike,
        pts1: npt.ArrayLike,
        weights: Optional[npt.ArrayLike] = None,
) -> list[Correspondence]:
    """
    Build correspondences from matching (N,2) point arrays and optional (N,) weights.
    """
    pts0 = np.asarray(pts0, dtype=np.float64)
    pts1 = np.asarray(pts1, dtype=np.float64)
    if pts0.shape != pts1.shape:
        raise ValueError(f"pts0 and pts1 must have same shape, got {pts0.shape} vs {pts1.shape}")
    if pts0.ndim != 2 or pts0.shape[1] != 2:
        raise ValueError(f"Expected pts shape (N,2), got {pts0.shape}")

    if weights is None:
        w: Sequence[float] = [1.0] * pts0.shape[0]
    else:
        w = np.asarray(weights, dtype=np.float64).reshape(-1)
        if w.shape[0] != pts0.shape[0]:
            raise ValueError(f"weights must have length N; got {w.shape[0]} vs {pts0.shape[0]}")

    return [Correspondence(p, q, float(wi)) for p, q, wi in zip(pts0, pts1, w)]
