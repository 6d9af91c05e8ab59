################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""
Minimal-subset, least squares and robust estimation solvers
"""

from __future__ import annotations

from oasis_calibration.magnetometer.solver.prosac import ProsacRobustEstimator
from oasis_calibration.magnetometer.solver.robust_estimator import InliersData
from oasis_calibration.magnetometer.solver.robust_estimator import RobustEstimatorError


__all__ = ["InliersData", "ProsacRobustEstimator", "RobustEstimatorError"]
