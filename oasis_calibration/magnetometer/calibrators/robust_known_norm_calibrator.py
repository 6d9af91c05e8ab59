################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Robust known-norm magnetometer calibration shared by estimator methods.

A robust estimator draws measurement subsets, asks the minimal-subset
ellipsoid solver for a hypothesis per subset and keeps the hypothesis with
the largest consensus set. The winning hypothesis is then refined by
Levenberg-Marquardt over its inliers.
"""

from __future__ import annotations

import enum
import logging
from typing import Any

import numpy as np
from numpy.typing import NDArray

from oasis_calibration.magnetometer.calibrators.base_norm_calibrator import (
    BaseMagneticFluxDensityNormCalibrator,
)
from oasis_calibration.magnetometer.calibrators.errors import NotReadyError
from oasis_calibration.magnetometer.calibrators.listener import (
    RobustCalibratorListener,
)
from oasis_calibration.magnetometer.config.calibrator_params import (
    RobustCalibratorParams,
)
from oasis_calibration.magnetometer.models.measurement_model import norm_residuals
from oasis_calibration.magnetometer.models.quality_scores import (
    QualityScoredMeasurements,
)
from oasis_calibration.magnetometer.solver.ellipsoid_fit import MinimalSolution
from oasis_calibration.magnetometer.solver.ellipsoid_fit import solve_minimal_subset
from oasis_calibration.magnetometer.solver.optimizer import FitResult
from oasis_calibration.magnetometer.solver.optimizer import OptimizerError
from oasis_calibration.magnetometer.solver.optimizer import measurement_weights
from oasis_calibration.magnetometer.solver.optimizer import refine
from oasis_calibration.magnetometer.solver.robust_estimator import RobustEstimator


_LOG: logging.Logger = logging.getLogger(__name__)


class RobustEstimatorMethod(enum.Enum):
    """Robust estimation method of a calibrator."""

    PROSAC = "prosac"


class PreliminarySolutionDelegate:
    """Adapts a robust calibrator to the robust estimator callbacks.

    The measured array, the sample order and the gauge reference soft iron
    are captured once per run.
    """

    def __init__(
        self,
        calibrator: RobustKnownMagneticFluxDensityNormMagnetometerCalibrator,
        samples: QualityScoredMeasurements,
    ) -> None:
        norm: float | None = calibrator.ground_truth_magnetic_flux_density_norm
        if norm is None:
            raise NotReadyError("ground truth norm is not set")
        self._calibrator: RobustKnownMagneticFluxDensityNormMagnetometerCalibrator = (
            calibrator
        )
        self._measured: NDArray[np.float64] = samples.measured_array()
        self._norm: float = norm
        self._sorted_indices: NDArray[np.int64] = samples.sorted_indices()
        self._reference_mm: NDArray[np.float64] = calibrator.initial_mm
        self._subset_size: int = calibrator.preliminary_subset_size
        self._threshold: float = calibrator.params.threshold
        self._common_axis_used: bool = calibrator.common_axis_used

    def total_samples(self) -> int:
        return int(self._measured.shape[0])

    def subset_size(self) -> int:
        return self._subset_size

    def sorted_indices(self) -> NDArray[np.int64]:
        return self._sorted_indices

    def threshold(self) -> float:
        return self._threshold

    def estimate_preliminary_solutions(
        self, sample_indices: NDArray[np.int64]
    ) -> list[MinimalSolution]:
        solution: MinimalSolution | None = solve_minimal_subset(
            self._measured[sample_indices],
            self._norm,
            self._common_axis_used,
            reference_mm=self._reference_mm,
        )
        return [] if solution is None else [solution]

    def compute_residuals(self, solution: MinimalSolution) -> NDArray[np.float64]:
        return norm_residuals(
            self._measured, solution.hard_iron, solution.mm, self._norm
        )

    def on_estimate_start(self, estimator: RobustEstimator[MinimalSolution]) -> None:
        pass

    def on_estimate_end(self, estimator: RobustEstimator[MinimalSolution]) -> None:
        pass

    def on_estimate_next_iteration(
        self, estimator: RobustEstimator[MinimalSolution], iteration: int
    ) -> None:
        listener: RobustCalibratorListener | None = self._calibrator.listener
        if listener is not None:
            listener.on_calibrate_next_iteration(self._calibrator, iteration)

    def on_estimate_progress_change(
        self, estimator: RobustEstimator[MinimalSolution], progress: float
    ) -> None:
        listener: RobustCalibratorListener | None = self._calibrator.listener
        if listener is not None:
            listener.on_calibrate_progress_change(self._calibrator, progress)


class RobustKnownMagneticFluxDensityNormMagnetometerCalibrator(
    BaseMagneticFluxDensityNormCalibrator
):
    """Robust estimator configuration and refinement of the best hypothesis.

    The tunables live in an immutable ``RobustCalibratorParams``. Each
    property setter validates through ``RobustCalibratorParams.replace`` so
    an invalid value leaves the previous parameters in place.
    """

    def __init__(
        self,
        *,
        params: RobustCalibratorParams | None = None,
        common_axis_used: bool | None = None,
        listener: RobustCalibratorListener | None = None,
        **kwargs: Any,
    ) -> None:
        self._params: RobustCalibratorParams = (
            RobustCalibratorParams.defaults() if params is None else params
        )
        if common_axis_used is None:
            common_axis_used = self._params.common_axis_used
        super().__init__(common_axis_used=common_axis_used, listener=listener, **kwargs)

    @property
    def method(self) -> RobustEstimatorMethod:
        raise NotImplementedError

    @property
    def params(self) -> RobustCalibratorParams:
        """Current robust calibration parameters."""
        return self._params

    @params.setter
    def params(self, value: RobustCalibratorParams) -> None:
        self._check_unlocked()
        if not isinstance(value, RobustCalibratorParams):
            raise ValueError("params must be RobustCalibratorParams")
        value.validate()
        self._params = value
        self._common_axis_used = value.common_axis_used

    def _update_params(self, **kwargs: Any) -> None:
        self._check_unlocked()
        self._params = self._params.replace(**kwargs)

    @property
    def common_axis_used(self) -> bool:
        return self._common_axis_used

    @common_axis_used.setter
    def common_axis_used(self, value: bool) -> None:
        self._update_params(common_axis_used=bool(value))
        self._common_axis_used = bool(value)

    @property
    def listener(self) -> RobustCalibratorListener | None:
        return self._listener  # type: ignore[return-value]

    @listener.setter
    def listener(self, value: RobustCalibratorListener | None) -> None:
        self._check_unlocked()
        self._listener = value

    @property
    def progress_delta(self) -> float:
        return self._params.progress_delta

    @progress_delta.setter
    def progress_delta(self, value: float) -> None:
        self._update_params(progress_delta=float(value))

    @property
    def confidence(self) -> float:
        return self._params.confidence

    @confidence.setter
    def confidence(self, value: float) -> None:
        self._update_params(confidence=float(value))

    @property
    def max_iterations(self) -> int:
        return self._params.max_iterations

    @max_iterations.setter
    def max_iterations(self, value: int) -> None:
        self._update_params(max_iterations=value)

    @property
    def result_refined(self) -> bool:
        return self._params.result_refined

    @result_refined.setter
    def result_refined(self, value: bool) -> None:
        self._update_params(result_refined=bool(value))

    @property
    def covariance_kept(self) -> bool:
        return self._params.covariance_kept

    @covariance_kept.setter
    def covariance_kept(self, value: bool) -> None:
        self._update_params(covariance_kept=bool(value))

    @property
    def random_seed(self) -> int | None:
        return self._params.random_seed

    @random_seed.setter
    def random_seed(self, value: int | None) -> None:
        self._update_params(random_seed=value)

    @property
    def preliminary_subset_size(self) -> int:
        """Samples per hypothesis, never below the model minimum.

        Defaults to ``minimum_required_measurements`` and follows the
        common-axis flag until set explicitly.
        """
        minimum: int = self.minimum_required_measurements
        requested: int | None = self._params.preliminary_subset_size
        if requested is None:
            return minimum
        return max(requested, minimum)

    @preliminary_subset_size.setter
    def preliminary_subset_size(self, value: int | None) -> None:
        self._check_unlocked()
        if value is not None and (
            isinstance(value, bool) or int(value) < self.minimum_required_measurements
        ):
            raise ValueError(
                "preliminary_subset_size must be at least "
                f"{self.minimum_required_measurements}"
            )
        self._update_params(
            preliminary_subset_size=None if value is None else int(value)
        )

    def _attempt_refine(
        self,
        preliminary: MinimalSolution,
        inliers: NDArray[np.bool_],
        samples: QualityScoredMeasurements,
    ) -> None:
        """Store the refined result, or the preliminary one if refinement fails.

        Args:
            preliminary: Best hypothesis of the robust estimator
            inliers: Inlier mask of that hypothesis
            samples: Measurements the hypothesis was drawn from
        """
        norm: float = self._require_ground_truth_norm()
        measured: NDArray[np.float64] = samples.measured_array()
        sigma: NDArray[np.float64] = samples.standard_deviations()

        if self._params.result_refined:
            try:
                result: FitResult = refine(
                    measured[inliers],
                    sigma[inliers],
                    norm,
                    preliminary.hard_iron,
                    preliminary.mm,
                    self.layout,
                    max_iterations=self._params.lm_max_iterations,
                    tolerance=self._params.lm_tolerance,
                    covariance_kept=self._params.covariance_kept,
                )
            except (OptimizerError, ValueError, np.linalg.LinAlgError) as exc:
                _LOG.warning(
                    "Refinement failed, keeping the preliminary solution: %s", exc
                )
            else:
                self._set_estimates(
                    result.hard_iron,
                    result.mm,
                    result.covariance,
                    result.mse,
                    result.chi_sq,
                )
                return

        residuals: NDArray[np.float64] = norm_residuals(
            measured, preliminary.hard_iron, preliminary.mm, norm
        )
        kept: NDArray[np.bool_] = np.abs(residuals) <= self._params.threshold
        selected: NDArray[np.float64] = residuals[kept]
        mse: float = float(np.mean(selected**2)) if selected.size else 0.0
        weighted: NDArray[np.float64] = selected * measurement_weights(sigma[kept])
        self._set_estimates(
            preliminary.hard_iron,
            preliminary.mm,
            None,
            mse,
            float(weighted @ weighted),
        )
