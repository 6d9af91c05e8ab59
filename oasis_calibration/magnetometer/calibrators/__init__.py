################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Known-norm magnetometer calibrators."""

from __future__ import annotations

from oasis_calibration.magnetometer.calibrators.errors import CalibrationError
from oasis_calibration.magnetometer.calibrators.errors import CalibratorError
from oasis_calibration.magnetometer.calibrators.errors import LockedError
from oasis_calibration.magnetometer.calibrators.errors import NotReadyError
from oasis_calibration.magnetometer.calibrators.known_norm_calibrator import (
    KnownMagneticFluxDensityNormMagnetometerCalibrator,
)
from oasis_calibration.magnetometer.calibrators.prosac_robust_known_norm_calibrator import (
    PROSACRobustKnownMagneticFluxDensityNormMagnetometerCalibrator,
)
from oasis_calibration.magnetometer.calibrators.robust_known_norm_calibrator import (
    RobustEstimatorMethod,
)


__all__ = [
    "CalibrationError",
    "CalibratorError",
    "KnownMagneticFluxDensityNormMagnetometerCalibrator",
    "LockedError",
    "NotReadyError",
    "PROSACRobustKnownMagneticFluxDensityNormMagnetometerCalibrator",
    "RobustEstimatorMethod",
]
