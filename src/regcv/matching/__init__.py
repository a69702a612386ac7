"""
Matching package: turns raw point matches into clean correspondences
"""
from .clean_points import clean_correspondences

__all__ = [
    "clean_correspondences",
]
