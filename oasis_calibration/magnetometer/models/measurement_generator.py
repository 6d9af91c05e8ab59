################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Synthetic magnetometer measurements for calibration experiments."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from oasis_calibration.magnetometer.calibration_types.body_magnetic_flux_density import (
    BodyMagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.body_magnetic_flux_density import (
    StandardDeviationBodyMagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.ned_magnetic_flux_density import (
    NEDMagneticFluxDensity,
)
from oasis_calibration.magnetometer.math_utils.linalg import SO3
from oasis_calibration.magnetometer.math_utils.validation import as_matrix33
from oasis_calibration.magnetometer.math_utils.validation import as_vector3
from oasis_calibration.magnetometer.models.earth_field import body_magnetic_flux_density
from oasis_calibration.magnetometer.models.measurement_model import generate_measured


# Units: rad. Meaning: default half-range of the random body attitude angles
DEFAULT_ANGLE_RANGE_RAD: float = float(np.pi / 4.0)


@dataclass(frozen=True)
class GeneratedMeasurements:
    """Synthetic measurements with their ground truth annotations.

    Attributes:
        measurements: Measured flux densities with their noise deviation
        quality_scores: Scores decreasing with the injected error
        outliers: Boolean mask of samples that received an outlier error
        true_values: Error-free body flux densities, shape (N, 3)
    """

    measurements: list[StandardDeviationBodyMagneticFluxDensity]
    quality_scores: NDArray[np.float64]
    outliers: NDArray[np.bool_]
    true_values: NDArray[np.float64]


class MagnetometerMeasurementGenerator:
    """Generate body-frame magnetometer readings under random attitudes.

    Each sample draws roll, pitch and yaw uniformly from
    [-angle_range_rad, angle_range_rad] and rotates the earth field into the
    body frame. The forward error model is then applied and Gaussian noise
    with ``noise_std`` is added. A fraction ``outlier_fraction`` of samples
    also receives an error with ``outlier_std``. Quality scores are
    ``1 / (1 + |error|)`` with the error expressed in tesla.

    ``measurement_std`` is the deviation attached to every measurement and
    defaults to ``noise_std``.
    """

    def __init__(
        self,
        earth_b: NEDMagneticFluxDensity,
        hard_iron: NDArray[np.float64],
        mm: NDArray[np.float64],
        *,
        noise_std: float = 0.0,
        outlier_fraction: float = 0.0,
        outlier_std: float = 0.0,
        angle_range_rad: float = DEFAULT_ANGLE_RANGE_RAD,
        measurement_std: float | None = None,
        seed: int | None = None,
    ) -> None:
        if measurement_std is None:
            measurement_std = noise_std
        if noise_std < 0.0 or outlier_std < 0.0 or measurement_std < 0.0:
            raise ValueError("standard deviations must be non-negative")
        if not 0.0 <= outlier_fraction <= 1.0:
            raise ValueError("outlier_fraction must be within [0, 1]")
        if angle_range_rad < 0.0:
            raise ValueError("angle_range_rad must be non-negative")
        self._earth_b: NEDMagneticFluxDensity = earth_b
        self._hard_iron: NDArray[np.float64] = as_vector3(hard_iron, "hard_iron")
        self._mm: NDArray[np.float64] = as_matrix33(mm, "mm")
        self._noise_std: float = float(noise_std)
        self._measurement_std: float = float(measurement_std)
        self._outlier_fraction: float = float(outlier_fraction)
        self._outlier_std: float = float(outlier_std)
        self._angle_range_rad: float = float(angle_range_rad)
        self._rng: np.random.Generator = np.random.default_rng(seed)

    def true_value(self) -> BodyMagneticFluxDensity:
        """Return the error-free field at a random attitude."""
        limit: float = self._angle_range_rad
        roll, pitch, yaw = self._rng.uniform(-limit, limit, size=3)
        c_nb: NDArray[np.float64] = SO3.from_euler(roll, pitch, yaw)
        return body_magnetic_flux_density(self._earth_b, c_nb)

    def generate(self, count: int) -> GeneratedMeasurements:
        """Generate ``count`` measurements."""
        if count < 0:
            raise ValueError("count must be non-negative")

        true_values: NDArray[np.float64] = np.zeros((count, 3), dtype=np.float64)
        for i in range(count):
            true_values[i] = self.true_value().as_array()
        measured: NDArray[np.float64] = generate_measured(
            true_values, self._hard_iron, self._mm
        )

        error: NDArray[np.float64] = self._rng.normal(
            0.0, self._noise_std, size=(count, 3)
        )
        outliers: NDArray[np.bool_] = self._rng.random(count) < self._outlier_fraction
        outlier_error: NDArray[np.float64] = self._rng.normal(
            0.0, self._outlier_std, size=(count, 3)
        )
        error[outliers] += outlier_error[outliers]
        measured = measured + error

        measurements: list[StandardDeviationBodyMagneticFluxDensity] = [
            StandardDeviationBodyMagneticFluxDensity(
                BodyMagneticFluxDensity.from_array(row), self._measurement_std
            )
            for row in measured
        ]
        quality_scores: NDArray[np.float64] = 1.0 / (
            1.0 + np.linalg.norm(error, axis=1)
        )
        return GeneratedMeasurements(
            measurements=measurements,
            quality_scores=quality_scores,
            outliers=outliers,
            true_values=true_values,
        )
