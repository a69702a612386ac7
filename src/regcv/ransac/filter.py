# Andy Zhao
"""
Iterative trust filter.

RANSAC's consensus set still contains correspondences that only just pass
the threshold tau. The trust filter tightens it relative to the data:

    repeat:
        fit on the current set
        median residual m over the current set
        drop correspondences with residual > max_trust * m
    until nothing is dropped

Used as an optional refinement after RANSAC and on its own for sets that
are known to be mostly clean.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple, TypeVar

import numpy as np

from .correspondence import Correspondence, stack_correspondences
from .errors import InsufficientDataError
from .fitter import KindFitter
from .model import TransformModel
from .types import FloatArray, Mask2D, ModelFitter, ModelKind, Points2D

logger = logging.getLogger(__name__)

M = TypeVar("M")

# Residuals at or below this are exact fits; the median may be 0 for noiseless data.
_RESIDUAL_FLOOR = 1e-9


def filter_arrays(
        model_fitter: ModelFitter[M],
        pts0: Points2D,
        pts1: Points2D,
        weights: FloatArray,
        mask: Optional[Mask2D] = None,
        *,
        max_trust: float = 4.0,
        min_inliers: Optional[int] = None,
) -> Tuple[M, Mask2D]:
    """
    Array version of filter_outliers, starting from an optional mask.

    Returns (model fitted on the final set, final mask). The mask only shrinks.
    """
    if max_trust <= 0.0:
        raise ValueError(f"max_trust must be > 0, got {max_trust}")

    n = pts0.shape[0]
    keep = np.ones((n,), dtype=bool) if mask is None else np.asarray(mask, dtype=bool).copy()
    required = max(model_fitter.min_samples, int(min_inliers or 0))

    rounds = 0
    while True:
        count = int(np.count_nonzero(keep))
        if count < required:
            raise InsufficientDataError(required, count, "trust filter")

        model = model_fitter.fit_least_squares(pts0[keep], pts1[keep], weights[keep])
        err = model_fitter.residuals(model, pts0, pts1)

        limit = max(max_trust * float(np.median(err[keep])), _RESIDUAL_FLOOR)
        new_keep = keep & (err <= limit)
        rounds += 1

        if int(np.count_nonzero(new_keep)) == count:
            logger.debug("trust filter converged after %d rounds: %d/%d kept", rounds, count, n)
            return model, keep
        keep = new_keep


def filter_outliers(
        correspondences: Iterable[Correspondence],
        kind: ModelKind | str,
        *,
        max_trust: float = 4.0,
        min_inliers: Optional[int] = None,
) -> Tuple[TransformModel, Mask2D]:
    """
    Fit `kind` to the correspondences, iteratively dropping those whose
    residual exceeds max_trust times the median residual.

    Raises InsufficientDataError when fewer than max(kind minimum, min_inliers)
    correspondences survive.
    """
    pts0, pts1, w = stack_correspondences(correspondences)
    return filter_arrays(
        KindFitter(ModelKind(kind)), pts0, pts1, w,
        max_trust=max_trust, min_inliers=min_inliers,
    )
