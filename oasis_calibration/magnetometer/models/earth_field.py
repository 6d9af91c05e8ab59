################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Earth magnetic field collaborators.

The world magnetic model is supplied by the caller through
``EarthMagneticFluxDensityEstimator``. This module only turns its output into
the quantities the calibrators need.
"""

from __future__ import annotations

import datetime
from typing import Protocol

import numpy as np
from numpy.typing import NDArray

from oasis_calibration.magnetometer.calibration_types.body_magnetic_flux_density import (
    BodyMagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.ned_magnetic_flux_density import (
    NEDMagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.ned_magnetic_flux_density import (
    NEDPosition,
)
from oasis_calibration.magnetometer.math_utils.linalg import Linalg


class EarthMagneticFluxDensityEstimator(Protocol):
    """Model returning the earth field at a position and decimal year."""

    def estimate(self, position: NEDPosition, year: float) -> NEDMagneticFluxDensity:
        """Return the field resolved in north, east and down axes."""


def ground_truth_norm(
    estimator: EarthMagneticFluxDensityEstimator,
    position: NEDPosition,
    year: float,
) -> float:
    """Return the expected field magnitude in tesla."""
    earth_b: NEDMagneticFluxDensity = estimator.estimate(position, year)
    norm: float = earth_b.norm()
    if not np.isfinite(norm) or norm <= 0.0:
        raise ValueError("earth field norm must be positive")
    return norm


def body_magnetic_flux_density(
    earth_b: NEDMagneticFluxDensity,
    c_nb: NDArray[np.float64],
) -> BodyMagneticFluxDensity:
    """Resolve an NED field in the body frame using the NED-to-body DCM."""
    mat: NDArray[np.float64] = np.asarray(c_nb, dtype=np.float64)
    Linalg.ensure_shape(mat, (3, 3), "c_nb")
    return BodyMagneticFluxDensity.from_array(mat @ earth_b.as_array())


def decimal_year(timestamp: datetime.datetime) -> float:
    """Convert a timestamp into a fractional year, e.g. 2020.5."""
    year: int = timestamp.year
    tzinfo: datetime.tzinfo | None = timestamp.tzinfo
    start: datetime.datetime = datetime.datetime(year, 1, 1, tzinfo=tzinfo)
    end: datetime.datetime = datetime.datetime(year + 1, 1, 1, tzinfo=tzinfo)
    elapsed: float = (timestamp - start).total_seconds()
    length: float = (end - start).total_seconds()
    return year + elapsed / length
