from .overlay import (
    draw_status_text, draw_correspondence_arrows, draw_fit_summary,
    INLIER_BGR, OUTLIER_BGR,
)

__all__ = [
    "draw_status_text", "draw_correspondence_arrows", "draw_fit_summary",
    "INLIER_BGR", "OUTLIER_BGR",
]
