################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Calibrator configuration."""

from oasis_calibration.magnetometer.config.calibrator_params import (
    RobustCalibratorParams,
)


__all__ = ["RobustCalibratorParams"]
