################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""PROSAC robust known-norm magnetometer calibrator.

Usage:
    calibrator = PROSACRobustKnownMagneticFluxDensityNormMagnetometerCalibrator(
        ground_truth_magnetic_flux_density_norm=norm_t,
        measurements=measurements,
        quality_scores=scores,
    )
    calibrator.calibrate()
    hard_iron = calibrator.estimated_hard_iron
    soft_iron = calibrator.estimated_mm
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from numpy.typing import NDArray

from oasis_calibration.magnetometer.calibrators.errors import CalibrationError
from oasis_calibration.magnetometer.calibrators.errors import LockedError
from oasis_calibration.magnetometer.calibrators.errors import NotReadyError
from oasis_calibration.magnetometer.calibrators.robust_known_norm_calibrator import (
    PreliminarySolutionDelegate,
)
from oasis_calibration.magnetometer.calibrators.robust_known_norm_calibrator import (
    RobustEstimatorMethod,
)
from oasis_calibration.magnetometer.calibrators.robust_known_norm_calibrator import (
    RobustKnownMagneticFluxDensityNormMagnetometerCalibrator,
)
from oasis_calibration.magnetometer.config.calibrator_params import (
    RobustCalibratorParams,
)
from oasis_calibration.magnetometer.models.quality_scores import as_quality_scores
from oasis_calibration.magnetometer.models.quality_scores import (
    QualityScoredMeasurements,
)
from oasis_calibration.magnetometer.solver.ellipsoid_fit import MinimalSolution
from oasis_calibration.magnetometer.solver.prosac import ProsacRobustEstimator
from oasis_calibration.magnetometer.solver.robust_estimator import InliersData
from oasis_calibration.magnetometer.solver.robust_estimator import (
    RobustEstimatorError,
)


_LOG: logging.Logger = logging.getLogger(__name__)


# Fewest quality scores accepted, the common-axis minimum
MINIMUM_QUALITY_SCORES: int = 10


class PROSACRobustKnownMagneticFluxDensityNormMagnetometerCalibrator(
    RobustKnownMagneticFluxDensityNormMagnetometerCalibrator
):
    """Calibrate with PROSAC, sampling high-quality measurements first."""

    def __init__(
        self,
        *,
        quality_scores: Any = None,
        **kwargs: Any,
    ) -> None:
        self._quality_scores: NDArray[np.float64] | None = None
        self._inliers_data: InliersData | None = None
        super().__init__(**kwargs)
        self.quality_scores = quality_scores

    @property
    def method(self) -> RobustEstimatorMethod:
        return RobustEstimatorMethod.PROSAC

    @property
    def quality_scores_required(self) -> bool:
        return True

    @property
    def threshold(self) -> float:
        """Residual magnitude in tesla accepted for inliers."""
        return self._params.threshold

    @threshold.setter
    def threshold(self, value: float) -> None:
        self._update_params(threshold=float(value))

    @property
    def beta(self) -> float:
        return self._params.beta

    @beta.setter
    def beta(self, value: float) -> None:
        self._update_params(beta=float(value))

    @property
    def compute_and_keep_inliers(self) -> bool:
        return self._params.compute_and_keep_inliers

    @compute_and_keep_inliers.setter
    def compute_and_keep_inliers(self, value: bool) -> None:
        self._update_params(compute_and_keep_inliers=bool(value))

    @property
    def compute_and_keep_residuals(self) -> bool:
        return self._params.compute_and_keep_residuals

    @compute_and_keep_residuals.setter
    def compute_and_keep_residuals(self, value: bool) -> None:
        self._update_params(compute_and_keep_residuals=bool(value))

    @property
    def quality_scores(self) -> NDArray[np.float64] | None:
        """Per-measurement quality scores, larger is better."""
        return self._quality_scores

    @quality_scores.setter
    def quality_scores(self, value: Any) -> None:
        self._check_unlocked()
        if value is None:
            self._quality_scores = None
            return
        scores: NDArray[np.float64] = as_quality_scores(value)
        if scores.shape[0] < MINIMUM_QUALITY_SCORES:
            raise ValueError(
                f"quality scores need at least {MINIMUM_QUALITY_SCORES} values"
            )
        if self._measurements is not None and scores.shape[0] != len(
            self._measurements
        ):
            raise ValueError("quality scores must match the measurement count")
        self._quality_scores = scores

    @property
    def is_ready(self) -> bool:
        """True when inputs are set and the quality scores match them."""
        return (
            super().is_ready
            and self._quality_scores is not None
            and self._measurements is not None
            and self._quality_scores.shape[0] == len(self._measurements)
        )

    @property
    def inliers_data(self) -> InliersData | None:
        """Consensus set of the last successful run."""
        return self._inliers_data

    def _snapshot_num_inliers(self) -> int | None:
        if self._inliers_data is None:
            return None
        return self._inliers_data.num_inliers

    def calibrate(self) -> None:
        """Estimate hard iron and soft iron robustly.

        Raises:
            LockedError: When already running
            NotReadyError: When ``is_ready`` is False
            CalibrationError: When PROSAC finds no consensus hypothesis
        """
        if self._running:
            raise LockedError("calibrator is running")
        if not self.is_ready:
            raise NotReadyError("calibrator is not ready")

        self._running = True
        try:
            self._reset_estimates()
            self._inliers_data = None
            self._notify_start()

            if self._measurements is None or self._quality_scores is None:
                raise NotReadyError("measurements or quality scores are not set")
            samples: QualityScoredMeasurements = QualityScoredMeasurements(
                self._measurements, self._quality_scores
            )
            delegate: PreliminarySolutionDelegate = PreliminarySolutionDelegate(
                self, samples
            )
            params: RobustCalibratorParams = self._params
            estimator: ProsacRobustEstimator[MinimalSolution] = ProsacRobustEstimator(
                delegate,
                beta=params.beta,
                confidence=params.confidence,
                max_iterations=params.max_iterations,
                progress_delta=params.progress_delta,
                compute_and_keep_inliers=True,
                compute_and_keep_residuals=params.compute_and_keep_residuals,
                seed=params.random_seed,
            )
            _LOG.debug(
                "Starting PROSAC with %d measurements, subset size %d",
                delegate.total_samples(),
                delegate.subset_size(),
            )
            try:
                preliminary: MinimalSolution = estimator.estimate()
            except RobustEstimatorError as exc:
                raise CalibrationError("no consensus hypothesis found") from exc

            found: InliersData | None = estimator.inliers_data
            if found is None or found.inliers is None:
                raise CalibrationError("robust estimator kept no inlier mask")
            self._attempt_refine(preliminary, found.inliers, samples)
            self._inliers_data = InliersData(
                inliers=found.inliers if params.compute_and_keep_inliers else None,
                residuals=found.residuals,
                num_inliers=found.num_inliers,
            )
            _LOG.info(
                "PROSAC calibration: %d/%d inliers after %d iterations",
                found.num_inliers,
                delegate.total_samples(),
                estimator.iterations,
            )
            self._notify_end()
        finally:
            self._running = False
