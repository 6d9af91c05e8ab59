################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for the PROSAC robust estimator."""

from __future__ import annotations

import numpy as np
import pytest
from numpy.typing import NDArray

from oasis_calibration.magnetometer.solver.prosac import ProsacRobustEstimator
from oasis_calibration.magnetometer.solver.robust_estimator import InliersData
from oasis_calibration.magnetometer.solver.robust_estimator import RobustEstimator
from oasis_calibration.magnetometer.solver.robust_estimator import RobustEstimatorError


_Line = tuple[float, float]


class _LineDelegate:
    """Fits y = a x + b through two samples."""

    def __init__(
        self,
        x: NDArray[np.float64],
        y: NDArray[np.float64],
        scores: NDArray[np.float64],
        threshold: float = 1e-6,
    ) -> None:
        self.x: NDArray[np.float64] = x
        self.y: NDArray[np.float64] = y
        self.scores: NDArray[np.float64] = scores
        self.limit: float = threshold
        self.started: int = 0
        self.ended: int = 0
        self.iterations: list[int] = []
        self.progress: list[float] = []

    def total_samples(self) -> int:
        return int(self.x.shape[0])

    def subset_size(self) -> int:
        return 2

    def sorted_indices(self) -> NDArray[np.int64]:
        return np.argsort(-self.scores, kind="stable").astype(np.int64)

    def threshold(self) -> float:
        return self.limit

    def estimate_preliminary_solutions(
        self, sample_indices: NDArray[np.int64]
    ) -> list[_Line]:
        x0, x1 = self.x[sample_indices]
        y0, y1 = self.y[sample_indices]
        if x0 == x1:
            return []
        slope: float = float((y1 - y0) / (x1 - x0))
        return [(slope, float(y0 - slope * x0))]

    def compute_residuals(self, solution: _Line) -> NDArray[np.float64]:
        slope, intercept = solution
        return self.y - (slope * self.x + intercept)

    def on_estimate_start(self, estimator: RobustEstimator[_Line]) -> None:
        self.started += 1

    def on_estimate_end(self, estimator: RobustEstimator[_Line]) -> None:
        self.ended += 1

    def on_estimate_next_iteration(
        self, estimator: RobustEstimator[_Line], iteration: int
    ) -> None:
        self.iterations.append(iteration)

    def on_estimate_progress_change(
        self, estimator: RobustEstimator[_Line], progress: float
    ) -> None:
        self.progress.append(progress)


def _line_samples(
    count: int, outliers: int, seed: int
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    rng: np.random.Generator = np.random.default_rng(seed)
    x: NDArray[np.float64] = rng.uniform(-10.0, 10.0, size=count)
    y: NDArray[np.float64] = 2.0 * x - 3.0
    scores: NDArray[np.float64] = np.ones(count)
    bad: NDArray[np.int64] = rng.choice(count, size=outliers, replace=False)
    y[bad] += rng.uniform(1.0, 5.0, size=outliers)
    scores[bad] = 0.1
    return x, y, scores


def test_prosac_finds_line_through_outliers() -> None:
    """Ensure the line and its consensus set are recovered."""
    x, y, scores = _line_samples(100, 30, 1)
    delegate: _LineDelegate = _LineDelegate(x, y, scores)
    estimator: ProsacRobustEstimator[_Line] = ProsacRobustEstimator(
        delegate,
        compute_and_keep_inliers=True,
        compute_and_keep_residuals=True,
        seed=7,
    )
    slope, intercept = estimator.estimate()
    assert slope == pytest.approx(2.0, abs=1e-9)
    assert intercept == pytest.approx(-3.0, abs=1e-9)

    data: InliersData | None = estimator.inliers_data
    assert data is not None
    assert data.num_inliers == 70
    assert data.inliers is not None
    np.testing.assert_array_equal(data.inliers, scores == 1.0)
    assert data.residuals is not None
    assert data.residuals.shape == (100,)

    assert delegate.started == 1
    assert delegate.ended == 1
    assert delegate.iterations == list(range(1, estimator.iterations + 1))
    # The best samples come first, so few iterations are needed
    assert estimator.iterations < 50


def test_prosac_inliers_data_follows_flags() -> None:
    """Ensure the mask and residuals are only kept when requested."""
    x, y, scores = _line_samples(40, 5, 2)
    estimator: ProsacRobustEstimator[_Line] = ProsacRobustEstimator(
        _LineDelegate(x, y, scores), seed=3
    )
    estimator.estimate()
    data: InliersData | None = estimator.inliers_data
    assert data is not None
    assert data.inliers is None
    assert data.residuals is None
    assert data.num_inliers == 35


def test_prosac_reports_progress() -> None:
    """Ensure progress notifications increase and end at completion."""
    x, y, scores = _line_samples(60, 10, 3)
    delegate: _LineDelegate = _LineDelegate(x, y, scores)
    ProsacRobustEstimator(delegate, progress_delta=0.0, seed=1).estimate()
    assert delegate.progress
    assert delegate.progress == sorted(delegate.progress)
    assert delegate.progress[-1] == pytest.approx(1.0)
    assert all(0.0 < value <= 1.0 for value in delegate.progress)


def test_prosac_without_hypothesis_raises() -> None:
    """Ensure degenerate samples raise after the iteration limit."""
    x: NDArray[np.float64] = np.zeros(10)
    delegate: _LineDelegate = _LineDelegate(x, np.arange(10.0), np.ones(10))
    estimator: ProsacRobustEstimator[_Line] = ProsacRobustEstimator(
        delegate, max_iterations=20, seed=0
    )
    with pytest.raises(RobustEstimatorError):
        estimator.estimate()
    assert estimator.iterations == 20
    assert estimator.inliers_data is None
    assert delegate.ended == 0


def test_prosac_without_consensus_raises() -> None:
    """Ensure hypotheses supported only by their own subset are rejected."""
    rng: np.random.Generator = np.random.default_rng(5)
    x: NDArray[np.float64] = rng.uniform(-10.0, 10.0, size=50)
    y: NDArray[np.float64] = rng.uniform(-10.0, 10.0, size=50)
    delegate: _LineDelegate = _LineDelegate(x, y, np.ones(50))
    estimator: ProsacRobustEstimator[_Line] = ProsacRobustEstimator(
        delegate, max_iterations=100, seed=2
    )
    with pytest.raises(RobustEstimatorError):
        estimator.estimate()
    assert estimator.inliers_data is None
    assert delegate.started == 1
    assert delegate.ended == 0


def test_prosac_follows_delegate_order() -> None:
    """Ensure the first hypothesis is drawn from the leading samples."""
    x, y, scores = _line_samples(30, 0, 6)
    y[:2] += 50.0
    scores[:2] = 2.0
    drawn: list[list[int]] = []

    class _Recording(_LineDelegate):
        def estimate_preliminary_solutions(
            self, sample_indices: NDArray[np.int64]
        ) -> list[_Line]:
            drawn.append(sorted(int(index) for index in sample_indices))
            return super().estimate_preliminary_solutions(sample_indices)

    slope, intercept = ProsacRobustEstimator(
        _Recording(x, y, scores), seed=4
    ).estimate()
    # The first draw holds the n-th sample of the first prefix grown to m + 1
    assert set(drawn[0]) <= {0, 1, 2}
    assert slope == pytest.approx(2.0, abs=1e-9)
    assert intercept == pytest.approx(-3.0, abs=1e-9)


def test_prosac_rejects_bad_configuration() -> None:
    """Ensure invalid settings and inputs raise."""
    x, y, scores = _line_samples(10, 0, 4)
    delegate: _LineDelegate = _LineDelegate(x, y, scores)
    with pytest.raises(ValueError):
        ProsacRobustEstimator(delegate, beta=0.0)
    with pytest.raises(ValueError):
        ProsacRobustEstimator(delegate, confidence=1.0)
    with pytest.raises(ValueError):
        ProsacRobustEstimator(delegate, max_iterations=0)
    with pytest.raises(ValueError):
        ProsacRobustEstimator(delegate, progress_delta=1.5)

    mismatched: _LineDelegate = _LineDelegate(x, y, scores[:5])
    with pytest.raises(RobustEstimatorError):
        ProsacRobustEstimator(mismatched).estimate()

    class _Repeated(_LineDelegate):
        def sorted_indices(self) -> NDArray[np.int64]:
            return np.zeros(self.total_samples(), dtype=np.int64)

    with pytest.raises(RobustEstimatorError):
        ProsacRobustEstimator(_Repeated(x, y, scores)).estimate()
    too_few: _LineDelegate = _LineDelegate(x[:1], y[:1], scores[:1])
    with pytest.raises(RobustEstimatorError):
        ProsacRobustEstimator(too_few).estimate()


def test_required_iterations() -> None:
    """Ensure the iteration count follows the confidence formula."""
    estimator: ProsacRobustEstimator[_Line] = ProsacRobustEstimator(
        _LineDelegate(np.zeros(2), np.zeros(2), np.ones(2)),
        confidence=0.99,
        max_iterations=1000,
    )
    assert estimator.required_iterations(10, 10, 2) == 1
    # log(0.01) / log(1 - 0.25) = 16.008
    assert estimator.required_iterations(5, 10, 2) == 17
    assert estimator.required_iterations(0, 10, 2) == 1000
    assert estimator.required_iterations(1, 10000, 4) == 1000


def test_non_random_minimums() -> None:
    """Ensure the minimum support grows with the prefix length."""
    estimator: ProsacRobustEstimator[_Line] = ProsacRobustEstimator(
        _LineDelegate(np.zeros(2), np.zeros(2), np.ones(2)), beta=0.05
    )
    minimums: NDArray[np.int64] = estimator.non_random_minimums(200, 13)
    assert minimums.shape == (201,)
    assert minimums[13] == 13
    assert np.all(np.diff(minimums) >= 0)
    assert minimums[200] > 13 + int(0.05 * 187)
