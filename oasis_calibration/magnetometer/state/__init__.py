################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

from oasis_calibration.magnetometer.state.covariance import Covariance
from oasis_calibration.magnetometer.state.parameter_layout import ParameterLayout


__all__ = ["Covariance", "ParameterLayout"]
