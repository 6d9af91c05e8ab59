################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Shared contract of sample-consensus robust estimators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic
from typing import Protocol
from typing import TypeVar

import numpy as np
from numpy.typing import NDArray


# Default confidence that an outlier-free subset is drawn
DEFAULT_CONFIDENCE: float = 0.99

# Default iteration limit
DEFAULT_MAX_ITERATIONS: int = 5000

# Default progress change between progress notifications
DEFAULT_PROGRESS_DELTA: float = 0.05


SolutionT = TypeVar("SolutionT")


class RobustEstimatorError(Exception):
    """Raised when no non-random consensus hypothesis can be produced."""


class RobustEstimatorDelegate(Protocol[SolutionT]):
    """Problem-specific callbacks driving a robust estimator."""

    def total_samples(self) -> int:
        """Return the number of samples."""

    def subset_size(self) -> int:
        """Return the number of samples drawn per hypothesis."""

    def sorted_indices(self) -> NDArray[np.int64]:
        """Return the sample indices by descending quality."""

    def threshold(self) -> float:
        """Return the residual magnitude accepted for inliers."""

    def estimate_preliminary_solutions(
        self, sample_indices: NDArray[np.int64]
    ) -> list[SolutionT]:
        """Return the hypotheses fitted to a subset, empty when degenerate."""

    def compute_residuals(self, solution: SolutionT) -> NDArray[np.float64]:
        """Return the residual of every sample under a hypothesis."""

    def on_estimate_start(self, estimator: RobustEstimator[SolutionT]) -> None:
        """Called before the first iteration."""

    def on_estimate_end(self, estimator: RobustEstimator[SolutionT]) -> None:
        """Called after the last iteration."""

    def on_estimate_next_iteration(
        self, estimator: RobustEstimator[SolutionT], iteration: int
    ) -> None:
        """Called at the start of every iteration."""

    def on_estimate_progress_change(
        self, estimator: RobustEstimator[SolutionT], progress: float
    ) -> None:
        """Called when progress advanced by at least the progress delta."""


@dataclass(frozen=True)
class InliersData:
    """Consensus set of the best hypothesis.

    Attributes:
        inliers: Boolean inlier mask, or None when not retained
        residuals: Per-sample residuals, or None when not retained
        num_inliers: Number of inliers
    """

    inliers: NDArray[np.bool_] | None
    residuals: NDArray[np.float64] | None
    num_inliers: int


class RobustEstimator(Generic[SolutionT]):
    """Configuration and bookkeeping common to robust estimators."""

    def __init__(
        self,
        delegate: RobustEstimatorDelegate[SolutionT],
        *,
        confidence: float = DEFAULT_CONFIDENCE,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        progress_delta: float = DEFAULT_PROGRESS_DELTA,
        compute_and_keep_inliers: bool = False,
        compute_and_keep_residuals: bool = False,
        seed: int | None = None,
    ) -> None:
        if not 0.0 < confidence < 1.0:
            raise ValueError("confidence must be within (0, 1)")
        if max_iterations < 1:
            raise ValueError("max_iterations must be positive")
        if not 0.0 <= progress_delta <= 1.0:
            raise ValueError("progress_delta must be within [0, 1]")
        self._delegate: RobustEstimatorDelegate[SolutionT] = delegate
        self._confidence: float = float(confidence)
        self._max_iterations: int = int(max_iterations)
        self._progress_delta: float = float(progress_delta)
        self._keep_inliers: bool = bool(compute_and_keep_inliers)
        self._keep_residuals: bool = bool(compute_and_keep_residuals)
        self._rng: np.random.Generator = np.random.default_rng(seed)
        self._inliers_data: InliersData | None = None
        self._iterations: int = 0
        self._progress: float = 0.0
        self._last_notified_progress: float = 0.0

    @property
    def confidence(self) -> float:
        return self._confidence

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @property
    def progress_delta(self) -> float:
        return self._progress_delta

    @property
    def inliers_data(self) -> InliersData | None:
        """Consensus set of the last estimate, None before a success."""
        return self._inliers_data

    @property
    def iterations(self) -> int:
        """Iterations used by the last estimate."""
        return self._iterations

    def estimate(self) -> SolutionT:
        raise NotImplementedError

    def _reset(self) -> None:
        self._inliers_data = None
        self._iterations = 0
        self._progress = 0.0
        self._last_notified_progress = 0.0

    def _update_progress(self, progress: float) -> None:
        """Record progress and notify when it advanced by the delta."""
        self._progress = min(max(progress, self._progress), 1.0)
        advance: float = self._progress - self._last_notified_progress
        if advance > 0.0 and advance >= self._progress_delta:
            self._last_notified_progress = self._progress
            self._delegate.on_estimate_progress_change(self, self._progress)

    def _build_inliers_data(
        self,
        residuals: NDArray[np.float64],
        inliers: NDArray[np.bool_],
    ) -> InliersData:
        return InliersData(
            inliers=inliers.copy() if self._keep_inliers else None,
            residuals=residuals.copy() if self._keep_residuals else None,
            num_inliers=int(np.count_nonzero(inliers)),
        )
