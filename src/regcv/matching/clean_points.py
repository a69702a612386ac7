# Andy Zhao
"""
Utilities for cleaning correspondence sets before robust estimation.

Remove:
- tracker / matcher failures (status == 0)
- NaNs/Infs
- non-positive or non-finite weights
- extreme motion outliers (helps stability and speed)
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import numpy.typing as npt

from ..ransac.correspondence import Correspondence
from ..ransac.types import BoolArray


def clean_correspondences(
    pts0: npt.ArrayLike,
    pts1: npt.ArrayLike,
    *,
    weights: Optional[npt.ArrayLike] = None,
    status: Optional[npt.ArrayLike] = None,
    max_motion_px: Optional[float] = None,
) -> tuple[list[Correspondence], BoolArray]:
    """
    Build Correspondence objects from raw (N,2) point arrays, dropping bad pairs.

    Returns the kept correspondences and the (N,) keep mask over the input.
    """
    pts0 = np.asarray(pts0, dtype=np.float64)
    pts1 = np.asarray(pts1, dtype=np.float64)

    if pts0.ndim != 2 or pts1.ndim != 2 or pts0.shape != pts1.shape or pts0.shape[1] != 2:
        raise ValueError(f"Expected pts0/pts1 shape (N,2) matching; got {pts0.shape} vs {pts1.shape}")

    n = pts0.shape[0]
    mask = np.ones((n,), dtype=bool)

    # Matcher status filter
    if status is not None:
        status = np.asarray(status).reshape(-1)
        if status.shape[0] != n:
            raise ValueError(f"status must have length N; got {status.shape[0]} vs {n}")
        mask &= (status.astype(np.uint8) == 1)

    if weights is None:
        w = np.ones((n,), dtype=np.float64)
    else:
        w = np.asarray(weights, dtype=np.float64).reshape(-1)
        if w.shape[0] != n:
            raise ValueError(f"weights must have length N; got {w.shape[0]} vs {n}")
        mask &= np.isfinite(w) & (w > 0.0)

    # Check if points are finite
    mask &= np.isfinite(pts0).all(axis=1)
    mask &= np.isfinite(pts1).all(axis=1)

    # big-jump pruning
    if max_motion_px is not None:
        with np.errstate(invalid="ignore"):
            motion = np.linalg.norm(pts1 - pts0, axis=1)
            mask &= motion <= float(max_motion_px)

    kept = [
        Correspondence(pts0[i], pts1[i], float(w[i]))
        for i in np.flatnonzero(mask)
    ]
    return kept, mask
