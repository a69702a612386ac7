"""
Visual diagnostics for a robust fit.
  - arrows source -> target, green for inliers, red for outliers
  - a small text HUD summarizing a FitResult

Drawing only: every function works on a copy of the frame. Warping images
with the fitted model happens outside this package.
"""

from __future__ import annotations

from typing import Optional, Sequence

import cv2
import numpy as np

from ..ransac.correspondence import Correspondence
from ..ransac.types import FitResult, Mask2D

INLIER_BGR = (0, 255, 0)
OUTLIER_BGR = (0, 0, 255)


def draw_status_text(img_bgr: np.ndarray, lines: list[str]) -> np.ndarray:
    """
    Draw a small multi-line debug HUD at top-left of an image.
    """
    if img_bgr is None or img_bgr.size == 0:
        return img_bgr

    out = img_bgr.copy()
    x0, y0 = 10, 25
    dy = 40

    for i, text in enumerate(lines):
        y = y0 + i * dy
        cv2.putText(out, text, (x0, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.8,
                    (0, 0, 0), 3, cv2.LINE_AA)   # shadow
        cv2.putText(out, text, (x0, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.8,
                    (0, 215, 255), 2, cv2.LINE_AA)
    return out


def draw_correspondence_arrows(
        frame_bgr: np.ndarray,
        correspondences: Sequence[Correspondence],
        inliers: Optional[Mask2D] = None,
        *,
        max_draw: int = 80,
) -> np.ndarray:
    """
    Draw arrows source -> target on a frame.
    - inliers==True : green arrows
    - inliers==False: red arrows
    - inliers is None: everything drawn as an inlier
    """
    if frame_bgr is None or frame_bgr.size == 0:
        return frame_bgr

    vis = frame_bgr.copy()
    n = min(len(correspondences), int(max_draw))

    for i in range(n):
        c = correspondences[i]
        p0 = (int(round(c.source[0])), int(round(c.source[1])))
        p1 = (int(round(c.target[0])), int(round(c.target[1])))

        ok = True
        if inliers is not None and i < len(inliers):
            ok = bool(inliers[i])

        color = INLIER_BGR if ok else OUTLIER_BGR

        cv2.arrowedLine(vis, p0, p1, color, 1, tipLength=0.25)
        cv2.circle(vis, p1, 2, color, -1)

    return vis


def draw_fit_summary(
        frame_bgr: np.ndarray,
        correspondences: Sequence[Correspondence],
        result: FitResult,
        *,
        max_draw: int = 80,
) -> np.ndarray:
    """
    Arrows colored by the consensus set, plus a HUD with the fit statistics.
    """
    vis = draw_correspondence_arrows(frame_bgr, correspondences, result.inliers, max_draw=max_draw)

    kind = getattr(getattr(result.model, "kind", None), "value", type(result.model).__name__)
    lines = [
        f"model: {kind}",
        f"inliers: {result.num_inliers}/{result.inliers.shape[0]} ({result.inlier_ratio:.0%})",
        f"rms: {result.rms_error:.3f}px  iters: {result.iterations}",
    ]
    if result.cancelled:
        lines.append("stopped early")
    return draw_status_text(vis, lines)
