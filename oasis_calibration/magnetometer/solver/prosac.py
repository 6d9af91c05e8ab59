################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""PROSAC robust estimator.

Progressive sample consensus (Chum and Matas, 2005) draws hypotheses from a
growing prefix of the samples sorted by descending quality score. Early
iterations only touch the best samples and the prefix grows toward the full
set according to the growth function

    T_m     = T_N * prod_{i=0}^{m-1} (m - i) / (N - i)
    T_{n+1} = T_n * (n + 1) / (n + 1 - m)
    T'_{n+1} = T'_n + ceil(T_{n+1} - T_n)

where m is the subset size, N the number of samples and T_N the iteration
limit. At iteration t the subset holds m samples of the first n when
T'_n < t, otherwise m - 1 samples of the first n - 1 plus the n-th sample.

Sampling stops at the length n* that maximizes the inlier ratio among the
prefixes whose support passes the non-randomness test, once the number of
iterations guarantees the configured confidence of having drawn an
outlier-free subset from it.
"""

from __future__ import annotations

import logging
import math
from typing import Any

import numpy as np
from numpy.typing import NDArray

from oasis_calibration.magnetometer.solver.robust_estimator import RobustEstimator
from oasis_calibration.magnetometer.solver.robust_estimator import (
    RobustEstimatorDelegate,
)
from oasis_calibration.magnetometer.solver.robust_estimator import (
    RobustEstimatorError,
)
from oasis_calibration.magnetometer.solver.robust_estimator import SolutionT


_LOG: logging.Logger = logging.getLogger(__name__)

# Units: unitless. Meaning: probability that an outlier supports a wrong model
DEFAULT_BETA: float = 0.01

# Units: unitless. Meaning: squared one-sided normal quantile of the
# non-randomness test, 5% probability of a random consensus set
NON_RANDOMNESS_CHI_SQ: float = 2.706


class ProsacRobustEstimator(RobustEstimator[SolutionT]):
    """Quality-ordered sample consensus estimator."""

    def __init__(
        self,
        delegate: RobustEstimatorDelegate[SolutionT],
        *,
        beta: float = DEFAULT_BETA,
        **kwargs: Any,
    ) -> None:
        super().__init__(delegate, **kwargs)
        if not 0.0 < beta < 1.0:
            raise ValueError("beta must be within (0, 1)")
        self._beta: float = float(beta)

    @property
    def beta(self) -> float:
        return self._beta

    def non_random_minimums(self, total: int, subset_size: int) -> NDArray[np.int64]:
        """Return the smallest non-random support for every prefix length.

        Entry n holds the minimum number of inliers among the first n samples,
        approximating the binomial support of a wrong model by a normal
        distribution.
        """
        n: NDArray[np.float64] = np.arange(total + 1, dtype=np.float64)
        extra: NDArray[np.float64] = np.maximum(n - subset_size, 0.0)
        mean: NDArray[np.float64] = extra * self._beta
        std: NDArray[np.float64] = np.sqrt(extra * self._beta * (1.0 - self._beta))
        minimum: NDArray[np.float64] = np.ceil(
            subset_size + mean + math.sqrt(NON_RANDOMNESS_CHI_SQ) * std
        )
        return minimum.astype(np.int64)

    def required_iterations(self, inliers: int, n: int, subset_size: int) -> int:
        """Return the iterations needed to draw an all-inlier subset."""
        if n <= 0 or inliers <= 0:
            return self._max_iterations
        p_good: float = (inliers / n) ** subset_size
        if p_good >= 1.0:
            return 1
        if p_good <= 0.0:
            return self._max_iterations
        log_miss: float = math.log1p(-p_good)
        if log_miss == 0.0:
            return self._max_iterations
        k: float = math.log(1.0 - self._confidence) / log_miss
        return int(min(max(math.ceil(k), 1), self._max_iterations))

    def _termination_length(
        self,
        sorted_inliers: NDArray[np.bool_],
        subset_size: int,
        minimums: NDArray[np.int64],
    ) -> tuple[int, int] | None:
        """Return (n*, inliers within n*) or None when no prefix is non-random.

        A prefix no longer than the subset can be explained by the drawn
        samples alone and is never considered.
        """
        total: int = int(sorted_inliers.shape[0])
        counts: NDArray[np.int64] = np.cumsum(sorted_inliers, dtype=np.int64)
        lengths: NDArray[np.int64] = np.arange(
            subset_size + 1, total + 1, dtype=np.int64
        )
        support: NDArray[np.int64] = counts[lengths - 1]
        valid: NDArray[np.bool_] = support >= minimums[lengths]
        if not np.any(valid):
            return None
        ratios: NDArray[np.float64] = np.where(valid, support / lengths, -1.0)
        # Longest prefix among the best ratios
        best: int = int(np.flatnonzero(ratios == np.max(ratios))[-1])
        return int(lengths[best]), int(support[best])

    def _draw(
        self,
        order: NDArray[np.int64],
        n: int,
        m: int,
        full: bool,
    ) -> NDArray[np.int64]:
        picks: NDArray[np.int64]
        if full:
            picks = self._rng.choice(n, size=m, replace=False)
        else:
            head: NDArray[np.int64] = self._rng.choice(n - 1, size=m - 1, replace=False)
            picks = np.append(head, n - 1)
        return order[picks]

    def estimate(self) -> SolutionT:
        """Run PROSAC and return the hypothesis with the largest support.

        Raises:
            RobustEstimatorError: When the sample order is not a permutation,
                or no hypothesis gathered a non-random consensus set
        """
        self._reset()
        delegate: RobustEstimatorDelegate[SolutionT] = self._delegate
        total: int = int(delegate.total_samples())
        m: int = int(delegate.subset_size())
        if m < 1 or total < m:
            raise RobustEstimatorError("Not enough samples for the subset size")
        order: NDArray[np.int64] = np.asarray(delegate.sorted_indices(), dtype=np.int64)
        if order.shape != (total,) or not np.array_equal(
            np.sort(order), np.arange(total, dtype=np.int64)
        ):
            raise RobustEstimatorError("Sample order must permute the samples")
        threshold: float = float(delegate.threshold())
        minimums: NDArray[np.int64] = self.non_random_minimums(total, m)

        delegate.on_estimate_start(self)

        t_n: float = float(self._max_iterations)
        for i in range(m):
            t_n *= (m - i) / (total - i)
        t_n_prime: int = 1
        n: int = m
        n_star: int = total
        k_n_star: int = self._max_iterations

        best_solution: SolutionT | None = None
        best_count: int = -1
        best_residuals: NDArray[np.float64] | None = None
        best_inliers: NDArray[np.bool_] | None = None
        best_non_random: bool = False

        t: int = 0
        while t < k_n_star and t < self._max_iterations:
            t += 1
            delegate.on_estimate_next_iteration(self, t)

            if t >= t_n_prime and n < n_star:
                t_n_next: float = t_n * (n + 1) / (n + 1 - m)
                n += 1
                t_n_prime += int(math.ceil(t_n_next - t_n))
                t_n = t_n_next

            sample: NDArray[np.int64] = self._draw(order, n, m, t_n_prime < t)
            for solution in delegate.estimate_preliminary_solutions(sample):
                residuals: NDArray[np.float64] = np.asarray(
                    delegate.compute_residuals(solution), dtype=np.float64
                )
                inliers: NDArray[np.bool_] = np.abs(residuals) <= threshold
                count: int = int(np.count_nonzero(inliers))
                if count <= best_count:
                    continue
                best_solution = solution
                best_count = count
                best_residuals = residuals
                best_inliers = inliers

                termination: tuple[int, int] | None = self._termination_length(
                    inliers[order], m, minimums
                )
                best_non_random = termination is not None
                if termination is not None:
                    n_star, support = termination
                    k_n_star = self.required_iterations(support, n_star, m)

            self._update_progress(t / max(k_n_star, 1))

        self._iterations = t
        if best_solution is None or best_residuals is None or best_inliers is None:
            raise RobustEstimatorError(f"No hypothesis found after {t} iterations")
        if not best_non_random or best_count <= m:
            raise RobustEstimatorError(
                f"No non-random consensus set after {t} iterations, best support"
                f" {best_count}/{total}"
            )

        self._inliers_data = self._build_inliers_data(best_residuals, best_inliers)
        _LOG.debug(
            "PROSAC finished: %d iterations, %d/%d inliers, n*=%d",
            t,
            best_count,
            total,
            n_star,
        )
        delegate.on_estimate_end(self)
        return best_solution
