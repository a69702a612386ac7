# Andy Zhao
"""
Shared fixtures: known transforms of every kind and noiseless point sets.
"""

import numpy as np
import pytest

from regcv.ransac import ModelKind, TransformModel
from regcv.ransac.rigid import make_rigid
from regcv.ransac.similarity import make_similarity
from regcv.ransac.translation import make_translation


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def source_points(rng):
    """30 well spread points in a 640x480 frame."""
    return rng.uniform([0.0, 0.0], [640.0, 480.0], size=(30, 2))


@pytest.fixture
def known_models():
    """One ground-truth model per kind."""
    theta = np.deg2rad(7.5)
    return {
        ModelKind.TRANSLATION: TransformModel(ModelKind.TRANSLATION, make_translation(12.0, -4.5)),
        ModelKind.RIGID: TransformModel(ModelKind.RIGID, make_rigid(theta, 20.0, 3.0)),
        ModelKind.SIMILARITY: TransformModel(
            ModelKind.SIMILARITY,
            make_similarity(1.2 * np.cos(theta), 1.2 * np.sin(theta), -7.0, 11.0)),
        ModelKind.AFFINE: TransformModel.from_matrix(
            ModelKind.AFFINE, [[1.05, 0.02, 15.0], [-0.01, 0.98, -8.0]]),
    }
