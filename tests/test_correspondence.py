# Andy Zhao
"""
Tests for the Correspondence value type, the array helpers and
clean_correspondences.
"""

import dataclasses

import numpy as np
import pytest

from regcv.matching import clean_correspondences
from regcv.ransac import (
    Correspondence,
    ModelKind,
    TransformModel,
    correspondences_from_arrays,
    stack_correspondences,
)
from regcv.ransac.translation import make_translation


# ---------------------------------------------------------------------------
# Correspondence
# ---------------------------------------------------------------------------

class TestCorrespondence:

    def test_defaults_and_coercion(self):
        c = Correspondence(np.array([1, 2]), [3.5, 4])
        assert c.source == (1.0, 2.0)
        assert c.target == (3.5, 4.0)
        assert c.weight == 1.0
        assert isinstance(c.source[0], float)

    def test_is_immutable(self):
        c = Correspondence((0, 0), (1, 1))
        with pytest.raises(dataclasses.FrozenInstanceError):
            c.weight = 2.0

    def test_is_hashable_and_comparable(self):
        a = Correspondence((0, 0), (1, 1), 2.0)
        b = Correspondence([0.0, 0.0], np.array([1.0, 1.0]), 2)
        assert a == b
        assert len({a, b}) == 1

    @pytest.mark.parametrize("weight", [0.0, -1.0, float("nan"), float("inf")])
    def test_rejects_bad_weight(self, weight):
        with pytest.raises(ValueError, match="weight"):
            Correspondence((0, 0), (1, 1), weight)

    def test_rejects_non_finite_point(self):
        with pytest.raises(ValueError, match="finite"):
            Correspondence((0, float("nan")), (1, 1))

    def test_rejects_wrong_dimension(self):
        with pytest.raises(ValueError, match="2D point"):
            Correspondence((0, 0, 0), (1, 1))

    def test_residual_under_model(self):
        model = TransformModel(ModelKind.TRANSLATION, make_translation(1.0, 0.0))
        assert Correspondence((0, 0), (1, 0)).residual(model) == pytest.approx(0.0)
        assert Correspondence((0, 0), (1, 1)).residual(model) == pytest.approx(1.0)
        assert Correspondence((0, 0), (4, 4)).residual(model) == pytest.approx(5.0)


# ---------------------------------------------------------------------------
# Array helpers
# ---------------------------------------------------------------------------

class TestArrayHelpers:

    def test_stack(self):
        cs = [Correspondence((0, 1), (2, 3), 0.5), Correspondence((4, 5), (6, 7))]
        pts0, pts1, w = stack_correspondences(cs)
        np.testing.assert_array_equal(pts0, [[0, 1], [4, 5]])
        np.testing.assert_array_equal(pts1, [[2, 3], [6, 7]])
        np.testing.assert_array_equal(w, [0.5, 1.0])
        assert pts0.dtype == np.float64

    def test_stack_empty(self):
        pts0, pts1, w = stack_correspondences([])
        assert pts0.shape == (0, 2)
        assert pts1.shape == (0, 2)
        assert w.shape == (0,)

    def test_from_arrays(self):
        cs = correspondences_from_arrays([[0, 0], [1, 1]], [[2, 2], [3, 3]], weights=[1.0, 3.0])
        assert cs == [Correspondence((0, 0), (2, 2), 1.0), Correspondence((1, 1), (3, 3), 3.0)]

    def test_from_arrays_shape_mismatch(self):
        with pytest.raises(ValueError, match="same shape"):
            correspondences_from_arrays(np.zeros((3, 2)), np.zeros((2, 2)))

    def test_from_arrays_weight_length(self):
        with pytest.raises(ValueError, match="weights"):
            correspondences_from_arrays(np.zeros((3, 2)), np.zeros((3, 2)), weights=[1.0])


# ---------------------------------------------------------------------------
# clean_correspondences
# ---------------------------------------------------------------------------

class TestCleanCorrespondences:

    def test_drops_non_finite(self):
        pts0 = np.array([[0, 0], [np.nan, 1], [2, 2]], dtype=np.float64)
        pts1 = np.array([[1, 1], [1, 1], [np.inf, 3]], dtype=np.float64)
        kept, mask = clean_correspondences(pts0, pts1)
        np.testing.assert_array_equal(mask, [True, False, False])
        assert kept == [Correspondence((0, 0), (1, 1))]

    def test_status_and_motion(self):
        pts0 = np.zeros((4, 2))
        pts1 = np.array([[1, 0], [2, 0], [50, 0], [0, 1]], dtype=np.float64)
        kept, mask = clean_correspondences(pts0, pts1, status=[1, 0, 1, 1], max_motion_px=10.0)
        np.testing.assert_array_equal(mask, [True, False, False, True])
        assert len(kept) == 2

    def test_bad_weights_dropped(self):
        pts = np.zeros((3, 2))
        kept, mask = clean_correspondences(pts, pts + 1.0, weights=[1.0, 0.0, 2.0])
        np.testing.assert_array_equal(mask, [True, False, True])
        assert [c.weight for c in kept] == [1.0, 2.0]

    def test_shape_validation(self):
        with pytest.raises(ValueError):
            clean_correspondences(np.zeros((3, 2)), np.zeros((3, 3)))
