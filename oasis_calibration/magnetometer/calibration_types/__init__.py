################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Type definitions for magnetometer calibration."""

from __future__ import annotations

from oasis_calibration.magnetometer.calibration_types.body_magnetic_flux_density import (
    BodyMagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.body_magnetic_flux_density import (
    StandardDeviationBodyMagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.magnetic_flux_density import (
    MagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.magnetic_flux_density import (
    MagneticFluxDensityTriad,
)
from oasis_calibration.magnetometer.calibration_types.magnetic_flux_density import (
    MagneticFluxDensityUnit,
)
from oasis_calibration.magnetometer.calibration_types.ned_magnetic_flux_density import (
    NEDMagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.ned_magnetic_flux_density import (
    NEDPosition,
)


__all__ = [
    "BodyMagneticFluxDensity",
    "MagneticFluxDensity",
    "MagneticFluxDensityTriad",
    "MagneticFluxDensityUnit",
    "NEDMagneticFluxDensity",
    "NEDPosition",
    "StandardDeviationBodyMagneticFluxDensity",
]
