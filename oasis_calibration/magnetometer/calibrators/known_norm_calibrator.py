################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Non-robust known-norm magnetometer calibration."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from oasis_calibration.magnetometer.calibrators.base_norm_calibrator import (
    BaseMagneticFluxDensityNormCalibrator,
)
from oasis_calibration.magnetometer.calibrators.errors import CalibrationError
from oasis_calibration.magnetometer.calibrators.errors import LockedError
from oasis_calibration.magnetometer.calibrators.errors import NotReadyError
from oasis_calibration.magnetometer.config.calibrator_params import LM_MAX_ITERATIONS
from oasis_calibration.magnetometer.config.calibrator_params import LM_TOLERANCE
from oasis_calibration.magnetometer.solver.optimizer import FitResult
from oasis_calibration.magnetometer.solver.optimizer import OptimizerError
from oasis_calibration.magnetometer.solver.optimizer import refine


_LOG: logging.Logger = logging.getLogger(__name__)


class KnownMagneticFluxDensityNormMagnetometerCalibrator(
    BaseMagneticFluxDensityNormCalibrator
):
    """Fit every measurement by Levenberg-Marquardt from the initial guess.

    Without outlier rejection the result is only as good as the worst
    measurement, so the initial hard iron and soft iron should be close.
    """

    def __init__(self, *, covariance_kept: bool = True, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._covariance_kept: bool = bool(covariance_kept)

    @property
    def covariance_kept(self) -> bool:
        return self._covariance_kept

    @covariance_kept.setter
    def covariance_kept(self, value: bool) -> None:
        self._check_unlocked()
        self._covariance_kept = bool(value)

    def calibrate(self) -> None:
        """Estimate hard iron and soft iron from all measurements.

        Raises:
            LockedError: When already running
            NotReadyError: When measurements or the norm are missing
            CalibrationError: When the least squares fit fails
        """
        if self._running:
            raise LockedError("calibrator is running")
        if not self.is_ready:
            raise NotReadyError("calibrator is not ready")

        self._running = True
        try:
            self._reset_estimates()
            self._notify_start()

            norm: float = self._require_ground_truth_norm()
            try:
                result: FitResult = refine(
                    self._measured_array(),
                    self._standard_deviations(),
                    norm,
                    self._initial_hard_iron,
                    self._initial_mm,
                    self.layout,
                    max_iterations=LM_MAX_ITERATIONS,
                    tolerance=LM_TOLERANCE,
                    covariance_kept=self._covariance_kept,
                )
            except (OptimizerError, ValueError, np.linalg.LinAlgError) as exc:
                raise CalibrationError("least squares fit failed") from exc

            self._set_estimates(
                result.hard_iron,
                result.mm,
                result.covariance,
                result.mse,
                result.chi_sq,
            )
            _LOG.info(
                "Calibrated %d measurements in %d iterations (mse=%.3e T^2)",
                len(self._measurements or ()),
                result.iterations,
                result.mse,
            )
            self._notify_end()
        finally:
            self._running = False
