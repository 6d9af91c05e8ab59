################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

from oasis_calibration.magnetometer.models.earth_field import (
    EarthMagneticFluxDensityEstimator,
)
from oasis_calibration.magnetometer.models.measurement_generator import (
    MagnetometerMeasurementGenerator,
)
from oasis_calibration.magnetometer.models.quality_scores import (
    QualityScoredMeasurements,
)


__all__ = [
    "EarthMagneticFluxDensityEstimator",
    "MagnetometerMeasurementGenerator",
    "QualityScoredMeasurements",
]
