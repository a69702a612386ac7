# Andy Zhao
"""
Adapter: makes the tagged transform models conform to the ModelFitter Protocol.

One adapter serves every ModelKind; the tag picks the solver. This keeps
ransac/core.py generic and reusable.
"""

from __future__ import annotations

from dataclasses import dataclass

from .affine import fit_affine_minimal
from .lstsq import MIN_SAMPLES, fit_least_squares
from .model import TransformModel
from .types import FloatArray, ModelFitter, ModelKind, Points2D


@dataclass(frozen=True)
class KindFitter(ModelFitter[TransformModel]):
    kind: ModelKind = ModelKind.AFFINE
    eps_area: float = 1e-6

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ModelKind(self.kind))

    @property
    def min_samples(self) -> int:
        return MIN_SAMPLES[self.kind]

    def fit_minimal(self, pts0: Points2D, pts1: Points2D, weights: FloatArray) -> TransformModel:
        """
        Called by RANSAC during hypothesis generation.

        Affine triplets get the cheap collinearity test before the solve.
        """
        if self.kind is ModelKind.AFFINE and pts0.shape == (3, 2):
            return TransformModel(self.kind, fit_affine_minimal(pts0, pts1, weights, eps_area=self.eps_area))
        return TransformModel(self.kind, fit_least_squares(self.kind, pts0, pts1, weights))

    def fit_least_squares(self, pts0: Points2D, pts1: Points2D, weights: FloatArray) -> TransformModel:
        """
        Called by RANSAC after inliers are selected.
        """
        return TransformModel(self.kind, fit_least_squares(self.kind, pts0, pts1, weights))

    def residuals(self, model: TransformModel, pts0: Points2D, pts1: Points2D) -> FloatArray:
        return model.residuals(pts0, pts1)
