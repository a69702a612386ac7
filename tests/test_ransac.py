# Andy Zhao
"""
Tests for the RANSAC estimator: recovery under outliers, reproducibility,
adaptive iteration count, cancellation and the failure modes.
"""

import itertools

import numpy as np
import pytest

from regcv.ransac import (
    Correspondence,
    FitResult,
    InsufficientDataError,
    KindFitter,
    ModelKind,
    NotEnoughInliersError,
    RansacParams,
    TransformModel,
    correspondences_from_arrays,
    ransac,
    ransac_arrays,
    required_iterations,
)
from regcv.ransac.core import _Trial


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def affine_truth():
    return TransformModel.from_matrix(ModelKind.AFFINE, [[1.05, 0.02, 15.0], [-0.01, 0.98, -8.0]])


@pytest.fixture
def contaminated(affine_truth):
    """70 exact affine matches followed by 30 random wrong matches."""
    rng = np.random.default_rng(7)
    n_in, n_out = 70, 30
    pts0 = rng.uniform([0, 0], [640, 480], size=(n_in, 2))
    pts1 = affine_truth.apply(pts0)

    o0 = rng.uniform([0, 0], [640, 480], size=(n_out, 2))
    o1 = rng.uniform([0, 0], [640, 480], size=(n_out, 2))
    return correspondences_from_arrays(np.vstack([pts0, o0]), np.vstack([pts1, o1]))


def _assert_identical(a: FitResult, b: FitResult) -> None:
    assert a.model == b.model
    np.testing.assert_array_equal(a.inliers, b.inliers)
    assert a.num_inliers == b.num_inliers
    assert a.cost == b.cost
    assert a.rms_error == b.rms_error
    assert a.iterations == b.iterations
    assert a.threshold == b.threshold
    assert a.cancelled == b.cancelled


# ---------------------------------------------------------------------------
# Adaptive iteration bound
# ---------------------------------------------------------------------------

class TestRequiredIterations:

    def test_all_inliers(self):
        assert required_iterations(confidence=0.99, inlier_ratio=1.0, sample_size=3) == 1

    def test_no_inliers(self):
        assert required_iterations(confidence=0.99, inlier_ratio=0.0, sample_size=3) >= 10 ** 9

    def test_known_value(self):
        # log(0.01) / log(1 - 0.5^3) = 34.5
        assert required_iterations(confidence=0.99, inlier_ratio=0.5, sample_size=3) == 35

    def test_monotonic_in_ratio(self):
        ks = [required_iterations(confidence=0.99, inlier_ratio=w, sample_size=3)
              for w in (0.2, 0.4, 0.6, 0.8)]
        assert ks == sorted(ks, reverse=True)

    def test_bad_sample_size(self):
        with pytest.raises(ValueError):
            required_iterations(confidence=0.99, inlier_ratio=0.5, sample_size=0)


# ---------------------------------------------------------------------------
# Candidate ordering
# ---------------------------------------------------------------------------

class TestTrialOrdering:

    def test_more_inliers_wins(self):
        a = _Trial(0, object(), None, 10, 5.0)
        b = _Trial(1, object(), None, 11, 50.0)
        assert b.beats(a)
        assert not a.beats(b)

    def test_tie_broken_by_total_residual(self):
        a = _Trial(0, object(), None, 10, 5.0)
        b = _Trial(1, object(), None, 10, 4.0)
        assert b.beats(a)
        assert not a.beats(b)

    def test_exact_tie_keeps_earlier(self):
        a = _Trial(0, object(), None, 10, 5.0)
        b = _Trial(1, object(), None, 10, 5.0)
        assert not b.beats(a)

    def test_failed_trial_never_wins(self):
        assert not _Trial(0, None, None, -1, float("inf")).beats(None)
        assert _Trial(0, object(), None, 0, 0.0).beats(None)


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------

class TestRecovery:

    def test_recovers_affine_with_30_percent_outliers(self, contaminated, affine_truth):
        params = RansacParams(tau=1.0, max_iterations=300)
        res = ransac(contaminated, ModelKind.AFFINE, params=params, seed=3)

        np.testing.assert_allclose(res.model.matrix, affine_truth.matrix, atol=1e-6)
        assert res.inlier_ratio >= 0.65
        assert res.inliers[:70].all()
        assert res.num_inliers == int(res.inliers.sum())
        assert res.rms_error < 1e-6
        assert res.cost < 1e-6
        assert res.threshold == 1.0
        assert not res.cancelled

    @pytest.mark.parametrize("kind", [ModelKind.TRANSLATION, ModelKind.RIGID, ModelKind.SIMILARITY])
    def test_recovers_other_kinds(self, kind, known_models):
        rng = np.random.default_rng(11)
        truth = known_models[kind]
        pts0 = rng.uniform([0, 0], [640, 480], size=(60, 2))
        pts1 = truth.apply(pts0)
        pts1[40:] = rng.uniform([0, 0], [640, 480], size=(20, 2))

        params = RansacParams(tau=0.5, min_iterations=100)
        res = ransac(correspondences_from_arrays(pts0, pts1), kind, params=params, seed=5)

        assert res.model.kind is kind
        np.testing.assert_allclose(res.model.matrix, truth.matrix, atol=1e-6)
        assert res.inliers[:40].all()

    def test_noisy_refine(self, affine_truth):
        rng = np.random.default_rng(21)
        pts0 = rng.uniform([0, 0], [640, 480], size=(150, 2))
        pts1 = affine_truth.apply(pts0) + rng.normal(0.0, 0.5, size=(150, 2))
        pts1[100:] = rng.uniform([0, 0], [640, 480], size=(50, 2))
        cs = correspondences_from_arrays(pts0, pts1)

        base = RansacParams(tau=3.0, min_iterations=300)
        plain = ransac(cs, ModelKind.AFFINE, params=base, seed=1)
        refined = ransac(cs, ModelKind.AFFINE, params=RansacParams(tau=3.0, min_iterations=300, refine=True), seed=1)

        assert not np.any(refined.inliers & ~plain.inliers)
        assert refined.num_inliers >= 90
        np.testing.assert_allclose(refined.model.matrix, affine_truth.matrix, atol=0.5)

    def test_weights_are_used_in_refit(self):
        # Every correspondence is within tau; the heavy ones decide the translation.
        cs = [
            Correspondence((0, 0), (1.0, 0.0), 1.0),
            Correspondence((5, 5), (6.0, 5.0), 1.0),
            Correspondence((9, 1), (10.4, 1.0), 8.0),
            Correspondence((3, 7), (4.4, 7.0), 8.0),
        ]
        res = ransac(cs, "translation", tau=1.0, seed=0)
        assert res.num_inliers == 4
        assert res.model.params[0] == pytest.approx((1.0 + 1.0 + 8 * 1.4 + 8 * 1.4) / 18.0)

    def test_micrometre_scale_coordinates(self):
        # Every minimal triangle has an absolute area far below 1e-6 here.
        rng = np.random.default_rng(13)
        truth = TransformModel.from_matrix(
            ModelKind.AFFINE, [[1.05, 0.02, 1e-5], [-0.01, 0.98, -2e-5]])
        pts0 = rng.uniform(0.0, 1e-3, size=(50, 2))
        cs = correspondences_from_arrays(pts0, truth.apply(pts0))

        res = ransac(cs, ModelKind.AFFINE, tau=1e-7, seed=1, params=RansacParams(max_iterations=50))

        assert res.num_inliers == 50
        np.testing.assert_allclose(res.model.matrix, truth.matrix, rtol=1e-6, atol=1e-12)

    def test_inlier_correspondences(self, contaminated):
        res = ransac(contaminated, ModelKind.AFFINE, params=RansacParams(tau=1.0, min_iterations=200), seed=3)
        consensus = res.inlier_correspondences(contaminated)
        assert len(consensus) == res.num_inliers
        with pytest.raises(ValueError):
            res.inlier_correspondences(contaminated[:10])


# ---------------------------------------------------------------------------
# Reproducibility
# ---------------------------------------------------------------------------

class TestDeterminism:

    def test_same_seed_same_result(self, contaminated):
        a = ransac(contaminated, ModelKind.AFFINE, tau=1.0, seed=99)
        b = ransac(contaminated, ModelKind.AFFINE, tau=1.0, seed=99)
        _assert_identical(a, b)

    @pytest.mark.parametrize("workers, batch_size", [(2, 1), (4, 8), (3, 64)])
    def test_workers_do_not_change_result(self, contaminated, workers, batch_size):
        sequential = ransac(contaminated, ModelKind.AFFINE, tau=1.0, seed=17)
        parallel = ransac(
            contaminated, ModelKind.AFFINE, tau=1.0, seed=17,
            params=RansacParams(workers=workers, batch_size=batch_size),
        )
        _assert_identical(sequential, parallel)

    def test_no_global_random_state(self, contaminated):
        np.random.seed(0)
        a = ransac(contaminated, ModelKind.AFFINE, tau=1.0, seed=5)
        np.random.seed(12345)
        np.random.random(100)
        b = ransac(contaminated, ModelKind.AFFINE, tau=1.0, seed=5)
        _assert_identical(a, b)


# ---------------------------------------------------------------------------
# Loop control
# ---------------------------------------------------------------------------

class TestLoopControl:

    def test_clean_data_still_runs_fixed_count(self, affine_truth, source_points):
        # The adaptive count (1 here) never shortens the configured count.
        cs = correspondences_from_arrays(source_points, affine_truth.apply(source_points))
        res = ransac(cs, ModelKind.AFFINE, tau=1.0, max_iterations=40, seed=0)
        assert res.iterations == 40
        assert res.num_inliers == len(cs)

    def test_min_iterations_floor(self, affine_truth, source_points):
        cs = correspondences_from_arrays(source_points, affine_truth.apply(source_points))
        params = RansacParams(tau=1.0, min_iterations=25, max_iterations=10)
        res = ransac(cs, ModelKind.AFFINE, params=params, seed=0)
        assert res.iterations == 25

    def test_adaptive_count_extends_fixed_count(self):
        # A poor best candidate asks for thousands of trials; the safety bound stops at 60.
        rng = np.random.default_rng(3)
        cs = correspondences_from_arrays(rng.uniform(0, 100, (40, 2)), rng.uniform(0, 100, (40, 2)))
        params = RansacParams(tau=5.0, min_inliers=3, max_iterations=17, max_adaptive_iterations=60)
        res = ransac(cs, ModelKind.AFFINE, params=params, seed=0)
        assert res.iterations == 60

    def test_adaptive_bound_does_not_cut_fixed_count(self):
        rng = np.random.default_rng(3)
        cs = correspondences_from_arrays(rng.uniform(0, 100, (40, 2)), rng.uniform(0, 100, (40, 2)))
        params = RansacParams(tau=5.0, min_inliers=3, max_iterations=30, max_adaptive_iterations=5)
        res = ransac(cs, ModelKind.AFFINE, params=params, seed=0)
        assert res.iterations == 30

    def test_should_stop_keeps_best_so_far(self, known_models, source_points):
        truth = known_models[ModelKind.TRANSLATION]
        cs = correspondences_from_arrays(source_points, truth.apply(source_points))
        calls = itertools.count()

        res = ransac(
            cs, ModelKind.TRANSLATION, seed=0,
            params=RansacParams(tau=1.0, min_iterations=1000),
            should_stop=lambda: next(calls) >= 5,
        )
        assert res.cancelled
        assert res.iterations == 5
        np.testing.assert_allclose(res.model.matrix, truth.matrix, atol=1e-9)

    def test_cancel_before_any_candidate(self, contaminated):
        with pytest.raises(NotEnoughInliersError):
            ransac(contaminated, ModelKind.AFFINE, seed=0, should_stop=lambda: True)

    def test_zero_time_budget(self, contaminated):
        with pytest.raises(NotEnoughInliersError):
            ransac(contaminated, ModelKind.AFFINE, seed=0, params=RansacParams(time_budget=0.0))


# ---------------------------------------------------------------------------
# Failure modes
# ---------------------------------------------------------------------------

class TestFailures:

    def test_insufficient_data(self):
        cs = [Correspondence((0, 0), (1, 1)), Correspondence((1, 0), (2, 1))]
        with pytest.raises(InsufficientDataError):
            ransac(cs, ModelKind.AFFINE, seed=0)

    def test_not_enough_inliers(self):
        rng = np.random.default_rng(8)
        cs = correspondences_from_arrays(rng.uniform(0, 500, (50, 2)), rng.uniform(0, 500, (50, 2)))
        with pytest.raises(NotEnoughInliersError) as info:
            ransac(cs, ModelKind.AFFINE, tau=1e-6, min_inliers=10, seed=0,
                   params=RansacParams(max_iterations=50, max_adaptive_iterations=50))
        assert 3 <= info.value.best_inliers < 10
        assert info.value.required == 10

    def test_min_inlier_ratio(self, contaminated):
        params = RansacParams(tau=1.0, min_iterations=200, min_inlier_ratio=0.9)
        with pytest.raises(NotEnoughInliersError):
            ransac(contaminated, ModelKind.AFFINE, params=params, seed=3)

    def test_all_samples_degenerate(self):
        xs = np.linspace(0.0, 50.0, 12)
        pts0 = np.column_stack([xs, xs])
        cs = correspondences_from_arrays(pts0, pts0 + 1.0)
        params = RansacParams(max_iterations=5, max_resample=3)
        with pytest.raises(NotEnoughInliersError) as info:
            ransac(cs, ModelKind.AFFINE, params=params, seed=0)
        assert info.value.best_inliers == 0

    @pytest.mark.parametrize("overrides", [
        {"tau": -1.0},
        {"confidence": 1.0},
        {"confidence": 0.0},
        {"max_iterations": 0},
        {"min_inliers": -1},
        {"min_inlier_ratio": 1.5},
        {"workers": 0},
    ])
    def test_invalid_params(self, contaminated, overrides):
        with pytest.raises(ValueError):
            ransac(contaminated, ModelKind.AFFINE, params=RansacParams(**overrides), seed=0)

    def test_negative_seed(self, contaminated):
        with pytest.raises(ValueError, match="seed"):
            ransac(contaminated, ModelKind.AFFINE, seed=-1)

    def test_keyword_overrides_params(self, contaminated):
        res = ransac(
            contaminated, ModelKind.AFFINE, tau=1.0, seed=3,
            params=RansacParams(tau=50.0, min_iterations=200),
        )
        assert res.threshold == 1.0


# ---------------------------------------------------------------------------
# Array entry point
# ---------------------------------------------------------------------------

class TestRansacArrays:

    def test_shape_validation(self):
        with pytest.raises(ValueError, match="same shape"):
            ransac_arrays(KindFitter(ModelKind.AFFINE), np.zeros((5, 2)), np.zeros((4, 2)))

    def test_unit_weights_default(self, affine_truth, source_points):
        res = ransac_arrays(
            KindFitter(ModelKind.AFFINE), source_points, affine_truth.apply(source_points),
            params=RansacParams(tau=1.0), seed=0,
        )
        assert res.num_inliers == source_points.shape[0]

    @pytest.mark.parametrize("weights", [
        np.full(20, np.nan),
        -np.ones(20),
        np.zeros(20),
        np.ones(19),
    ])
    def test_invalid_weights(self, known_models, source_points, weights):
        pts0 = source_points[:20]
        pts1 = known_models[ModelKind.TRANSLATION].apply(pts0)
        with pytest.raises(ValueError, match="weights"):
            ransac_arrays(KindFitter(ModelKind.TRANSLATION), pts0, pts1, weights, seed=0)
