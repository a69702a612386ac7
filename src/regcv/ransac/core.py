# Andy Zhao
"""
Generic RANSAC loop (model-agnostic).

RANSAC overview:
- Randomly sample a *minimal* subset of correspondences
- Fit a candidate model from that subset (resample if degenerate)
- Score all correspondences by computing residual errors
- Mark inliers where error <= tau
- Keep the model with the most inliers (ties: lower total inlier residual)
- Refit using all inliers (weighted least squares) to get the final model

Reproducibility: trial i draws from its own generator seeded with
SeedSequence(seed, spawn_key=(i,)). Trials are independent, so they can be
evaluated on a thread pool; results are reduced in trial order with the same
rule as the sequential loop, which makes the outcome independent of the
number of workers.

Loop length: max(min_iterations, max_iterations, required), where the
adaptive `required` is bounded by max_adaptive_iterations.
"""
from __future__ import annotations

import itertools
import logging
import math
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Callable, Generic, Iterable, Iterator, Optional, Sequence, TypeVar

import numpy as np

from .correspondence import Correspondence, stack_correspondences
from .errors import IllConditionedError, InsufficientDataError, NotEnoughInliersError
from .filter import filter_arrays
from .fitter import KindFitter
from .model import TransformModel
from .types import FitResult, FloatArray, Mask2D, ModelFitter, ModelKind, Points2D

M = TypeVar("M")

logger = logging.getLogger(__name__)
_RANSAC_DEBUG = os.environ.get("REGCV_RANSAC_DEBUG", "0") == "1"

# Adaptive bound when no all-inlier sample can be drawn.
_UNBOUNDED = 10 ** 9


# ---------- Parameters ----------
@dataclass(frozen=True)
class RansacParams:
    """
    Settings for one estimator run.

    - tau: inlier threshold, same units as the points (pixels)
    - min_inliers: inliers required for success (None: the model minimum)
    - min_inlier_ratio: inlier fraction required for success
    - confidence: target probability of having drawn one all-inlier sample
    - max_iterations: fixed trial count; the adaptive count may extend it
    - min_iterations: trials always run, whatever the other two say
    - max_adaptive_iterations: safety bound on the adaptive count alone
    - max_resample: attempts per trial when samples are degenerate
    - time_budget: seconds before the loop stops with the best so far (None: no limit)
    - workers: threads evaluating trials (1: sequential)
    - batch_size: trials handed to the pool at once
    - refine: run the trust filter on the consensus set after the refit
    - max_trust: trust filter cut-off, in multiples of the median residual
    """
    tau: float = 3.0
    min_inliers: Optional[int] = None
    min_inlier_ratio: float = 0.0
    confidence: float = 0.99
    max_iterations: int = 1000
    min_iterations: int = 0
    max_adaptive_iterations: int = 100_000
    max_resample: int = 100
    time_budget: Optional[float] = None
    workers: int = 1
    batch_size: int = 64
    refine: bool = False
    max_trust: float = 4.0

    def validate(self) -> None:
        if not np.isfinite(self.tau) or self.tau < 0.0:
            raise ValueError(f"tau must be >= 0, got {self.tau}")
        if not 0.0 < self.confidence < 1.0:
            raise ValueError(f"confidence must be in (0, 1), got {self.confidence}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.min_iterations < 0:
            raise ValueError(f"min_iterations must be >= 0, got {self.min_iterations}")
        if self.max_adaptive_iterations < 1:
            raise ValueError(f"max_adaptive_iterations must be >= 1, got {self.max_adaptive_iterations}")
        if self.max_resample < 1:
            raise ValueError(f"max_resample must be >= 1, got {self.max_resample}")
        if self.min_inliers is not None and self.min_inliers < 0:
            raise ValueError(f"min_inliers must be >= 0, got {self.min_inliers}")
        if not 0.0 <= self.min_inlier_ratio <= 1.0:
            raise ValueError(f"min_inlier_ratio must be in [0, 1], got {self.min_inlier_ratio}")
        if self.time_budget is not None and self.time_budget < 0.0:
            raise ValueError(f"time_budget must be >= 0, got {self.time_budget}")
        if self.workers < 1 or self.batch_size < 1:
            raise ValueError(f"workers and batch_size must be >= 1, got {self.workers}, {self.batch_size}")
        if self.max_trust <= 0.0:
            raise ValueError(f"max_trust must be > 0, got {self.max_trust}")


def required_iterations(
        *,
        confidence: float,
        inlier_ratio: float,
        sample_size: int,
) -> int:
    """
    Number of RANSAC iterations needed so that the probability of having
    drawn at least ONE all-inlier minimal sample is >= confidence.

    inlier ratio w = (# inliers) / N, minimal sample s:
    - P(all-inliers) = w^s
    - P(at-least-once-all-inliers in k draws) = 1 - (1 - w^s)^k >= p

    Formula:
       k >= log(1 - p) / log(1 - w^s)

    Edge cases:
     - w == 0  -> impossible, return "infinite-ish" (capped by the caller)
     - w == 1  -> 1 iteration is enough
    """
    p = float(np.clip(confidence, 1e-12, 1.0 - 1e-12))
    w = float(np.clip(inlier_ratio, 0.0, 1.0))
    s = int(sample_size)

    if s <= 0:
        raise ValueError("sample_size must be >= 1")

    if w >= 1.0:
        return 1
    if w <= 0.0:
        return _UNBOUNDED

    # If w^s is extremely tiny, log(1 - w^s) is close to 0
    w_to_s = float(np.clip(w ** s, 1e-12, 1.0 - 1e-12))

    k = math.ceil(math.log(1.0 - p) / math.log(1.0 - w_to_s))
    return int(min(max(1, k), _UNBOUNDED))


# ---------- One trial ----------
@dataclass(frozen=True)
class _Trial(Generic[M]):
    index: int
    model: Optional[M]
    inliers: Optional[Mask2D]
    num_inliers: int
    total_residual: float

    def beats(self, other: Optional["_Trial[M]"]) -> bool:
        """
        Primary criterion: more inliers. Tie: lower total inlier residual.
        Exact ties keep the earlier trial.
        """
        if self.model is None:
            return False
        if other is None:
            return True
        return (self.num_inliers > other.num_inliers) or (
            self.num_inliers == other.num_inliers and self.total_residual < other.total_residual
        )


def _run_trial(
        model_fitter: ModelFitter[M],
        pts0: Points2D,
        pts1: Points2D,
        weights: FloatArray,
        *,
        index: int,
        seed: int,
        tau: float,
        max_resample: int,
) -> _Trial[M]:
    """
    SAMPLE -> FIT-CANDIDATE -> SCORE for trial `index`.
    """
    n = pts0.shape[0]
    s = model_fitter.min_samples
    rng = np.random.default_rng(np.random.SeedSequence(seed, spawn_key=(index,)))

    model: Optional[M] = None
    for _ in range(max_resample):
        # Sample a minimal subset of correspondences (unique indices, no replacement)
        sample_idx = rng.choice(n, size=s, replace=False)
        try:
            model = model_fitter.fit_minimal(pts0[sample_idx], pts1[sample_idx], weights[sample_idx])
            break
        except IllConditionedError:
            continue

    if model is None:
        logger.warning("RANSAC trial %d: no well-conditioned sample in %d attempts", index, max_resample)
        return _Trial(index, None, None, -1, float("inf"))

    err = model_fitter.residuals(model, pts0, pts1)
    inliers: Mask2D = err <= tau
    return _Trial(
        index=index,
        model=model,
        inliers=inliers,
        num_inliers=int(np.count_nonzero(inliers)),
        total_residual=float(err[inliers].sum()),
    )


def _iter_trials(run_one: Callable[[int], _Trial[M]], workers: int, batch_size: int) -> Iterator[_Trial[M]]:
    """
    Yield trials 0, 1, 2, ... in index order, computed inline or on a thread pool.
    """
    if workers <= 1:
        for i in itertools.count():
            yield run_one(i)
        return

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ransac") as pool:
        for start in itertools.count(0, batch_size):
            # map() preserves order; the next batch is submitted only once this one is consumed.
            yield from pool.map(run_one, range(start, start + batch_size))


# ---------- Estimator ----------
def ransac_arrays(
        model_fitter: ModelFitter[M],
        pts0: Points2D,
        pts1: Points2D,
        weights: Optional[FloatArray] = None,
        *,
        params: RansacParams = RansacParams(),
        seed: int = 0,
        should_stop: Optional[Callable[[], bool]] = None,
) -> FitResult[M]:
    """
    Run RANSAC to fit a model between pts0 -> pts1.

    Inputs:
    - model_fitter: provides min_samples, fit_minimal, fit_least_squares, residuals
    - pts0, pts1: (N,2) corresponding points (same N)
    - weights: (N,) correspondence weights, used by the fits (default 1)
    - params: RansacParams
    - seed: RNG seed for reproducibility
    - should_stop: polled between trials; True stops the loop early

    Returns:
    - FitResult with the refit model + inlier mask

    Raises:
    - InsufficientDataError if N < min_samples
    - NotEnoughInliersError if the best candidate misses min_inliers / min_inlier_ratio
    """
    # ---------- INIT ----------
    params.validate()
    if pts0.shape != pts1.shape:
        raise ValueError(f"pts0 and pts1 must have same shape, got {pts0.shape} vs {pts1.shape}")
    if pts0.ndim != 2 or pts0.shape[1] != 2:
        raise ValueError(f"Expected pts shape (N,2), got {pts0.shape}")
    if seed is None or int(seed) < 0:
        raise ValueError(f"seed must be a non-negative integer, got {seed}")

    pts0 = pts0.astype(np.float64, copy=False)
    pts1 = pts1.astype(np.float64, copy=False)
    n = pts0.shape[0]
    s = model_fitter.min_samples
    if n < s:
        raise InsufficientDataError(s, n, "RANSAC")

    if weights is None:
        w = np.ones((n,), dtype=np.float64)
    else:
        w = np.asarray(weights, dtype=np.float64).reshape(-1)
        if w.shape[0] != n:
            raise ValueError(f"weights must have length N; got {w.shape[0]} vs {n}")
        if not np.isfinite(w).all() or (w <= 0.0).any():
            raise ValueError("weights must be finite and > 0")
    min_inliers = s if params.min_inliers is None else int(params.min_inliers)
    tau = float(params.tau)

    def run_one(index: int) -> _Trial[M]:
        return _run_trial(
            model_fitter, pts0, pts1, w,
            index=index, seed=int(seed), tau=tau, max_resample=params.max_resample,
        )

    deadline = None if params.time_budget is None else time.monotonic() + params.time_budget

    best: Optional[_Trial[M]] = None
    # Fixed count and floor; the adaptive count can only add to this.
    base_iters = max(params.min_iterations, params.max_iterations)
    target_iters = base_iters
    iters_run = 0
    cancelled = False

    # ---------- Main RANSAC Loop ----------
    trials = _iter_trials(run_one, params.workers, params.batch_size)
    try:
        while iters_run < target_iters:
            if (deadline is not None and time.monotonic() >= deadline) or (
                    should_stop is not None and should_stop()):
                cancelled = True
                break

            trial = next(trials)
            iters_run += 1

            if not trial.beats(best):
                continue
            best = trial

            # Adaptive count from the inlier ratio of the current best
            ratio = best.num_inliers / float(n)
            iter_needed = required_iterations(
                confidence=params.confidence,
                inlier_ratio=ratio,
                sample_size=s,
            )
            target_iters = max(base_iters, min(iter_needed, params.max_adaptive_iterations))
            if _RANSAC_DEBUG:
                logger.debug(
                    "RANSAC better model at trial %d: inliers=%d/%d, w=%.3f, target_iters=%d",
                    trial.index, best.num_inliers, n, ratio, target_iters)
    finally:
        trials.close()

    required = max(min_inliers, int(math.ceil(params.min_inlier_ratio * n)))
    if best is None or best.inliers is None:
        raise NotEnoughInliersError(0, required, n)
    if best.num_inliers < required:
        raise NotEnoughInliersError(best.num_inliers, required, n)

    # ---------- REFIT ----------
    best_inliers = best.inliers
    try:
        final_model = model_fitter.fit_least_squares(pts0[best_inliers], pts1[best_inliers], w[best_inliers])
    except IllConditionedError as exc:
        # Inliers of a well-conditioned sample can still be degenerate as a whole
        # when tau is tiny; keep the minimal-sample model then.
        logger.warning("RANSAC refit on %d inliers failed (%s); keeping sample model",
                       best.num_inliers, exc)
        final_model = best.model

    if params.refine:
        try:
            final_model, best_inliers = filter_arrays(
                model_fitter, pts0, pts1, w, best_inliers,
                max_trust=params.max_trust, min_inliers=required,
            )
        except InsufficientDataError as exc:
            raise NotEnoughInliersError(exc.available, required, n) from exc

    # ---------- TERMINATE ----------
    num_inliers = int(np.count_nonzero(best_inliers))

    final_err = model_fitter.residuals(final_model, pts0, pts1)[best_inliers]
    w_in = w[best_inliers]
    cost = float((w_in * final_err).sum() / w_in.sum()) if num_inliers else 0.0
    rms = float(np.sqrt(np.mean(final_err * final_err))) if num_inliers else 0.0

    logger.info("RANSAC: %d/%d inliers after %d iterations%s (cost=%.4g)",
                num_inliers, n, iters_run, ", cancelled" if cancelled else "", cost)

    return FitResult(
        model=final_model,
        inliers=best_inliers,
        num_inliers=num_inliers,
        cost=cost,
        rms_error=rms,
        iterations=iters_run,
        threshold=tau,
        cancelled=cancelled,
    )


def ransac(
        correspondences: Iterable[Correspondence],
        kind: ModelKind | str = ModelKind.AFFINE,
        *,
        tau: Optional[float] = None,
        min_inliers: Optional[int] = None,
        confidence: Optional[float] = None,
        max_iterations: Optional[int] = None,
        seed: int = 0,
        params: Optional[RansacParams] = None,
        should_stop: Optional[Callable[[], bool]] = None,
) -> FitResult[TransformModel]:
    """
    Robustly fit a model of the given kind to correspondences.

    Keyword arguments override the matching fields of `params`.

    Example:
        result = ransac(matches, ModelKind.AFFINE, tau=2.0, min_inliers=10, seed=7)
        aligned_pts = result.model.apply(pts)
    """
    if not isinstance(kind, (ModelKind, str)):
        raise ValueError(f"RANSAC needs a global model kind, got {type(kind).__name__}")

    overrides = {
        name: value for name, value in (
            ("tau", tau),
            ("min_inliers", min_inliers),
            ("confidence", confidence),
            ("max_iterations", max_iterations),
        ) if value is not None
    }
    params = replace(params or RansacParams(), **overrides)

    cs: Sequence[Correspondence] = list(correspondences)
    pts0, pts1, w = stack_correspondences(cs)
    return ransac_arrays(
        KindFitter(ModelKind(kind)), pts0, pts1, w,
        params=params, seed=seed, should_stop=should_stop,
    )
