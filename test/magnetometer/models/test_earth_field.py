################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for earth field helpers."""

from __future__ import annotations

import datetime

import numpy as np
import pytest

from oasis_calibration.magnetometer.calibration_types.body_magnetic_flux_density import (
    BodyMagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.ned_magnetic_flux_density import (
    NEDMagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.ned_magnetic_flux_density import (
    NEDPosition,
)
from oasis_calibration.magnetometer.math_utils.linalg import SO3
from oasis_calibration.magnetometer.models.earth_field import body_magnetic_flux_density
from oasis_calibration.magnetometer.models.earth_field import decimal_year
from oasis_calibration.magnetometer.models.earth_field import ground_truth_norm


class _ConstantField:
    """Earth field model returning a fixed vector."""

    def __init__(self, field: NEDMagneticFluxDensity) -> None:
        self.field: NEDMagneticFluxDensity = field
        self.calls: list[tuple[NEDPosition, float]] = []

    def estimate(self, position: NEDPosition, year: float) -> NEDMagneticFluxDensity:
        self.calls.append((position, year))
        return self.field


def test_ground_truth_norm_from_model() -> None:
    """Ensure the norm of the modeled field is returned."""
    model: _ConstantField = _ConstantField(NEDMagneticFluxDensity(30e-6, 0.0, 40e-6))
    position: NEDPosition = NEDPosition(0.7, -0.1, 50.0)
    assert ground_truth_norm(model, position, 2026.5) == pytest.approx(50e-6)
    assert model.calls == [(position, 2026.5)]


def test_ground_truth_norm_rejects_zero_field() -> None:
    """Ensure a zero field cannot be used as ground truth."""
    model: _ConstantField = _ConstantField(NEDMagneticFluxDensity(0.0, 0.0, 0.0))
    with pytest.raises(ValueError):
        ground_truth_norm(model, NEDPosition(0.0, 0.0, 0.0), 2026.0)


def test_body_flux_density_keeps_norm() -> None:
    """Ensure rotating into the body frame keeps the magnitude."""
    earth_b: NEDMagneticFluxDensity = NEDMagneticFluxDensity(20e-6, 2e-6, 44e-6)
    body: BodyMagneticFluxDensity = body_magnetic_flux_density(
        earth_b, SO3.from_euler(0.2, 0.4, -1.0)
    )
    assert body.norm() == pytest.approx(earth_b.norm())
    level: BodyMagneticFluxDensity = body_magnetic_flux_density(earth_b, np.eye(3))
    np.testing.assert_allclose(level.as_array(), earth_b.as_array())
    with pytest.raises(ValueError):
        body_magnetic_flux_density(earth_b, np.eye(2))


def test_decimal_year() -> None:
    """Ensure timestamps map to fractional years."""
    assert decimal_year(datetime.datetime(2026, 1, 1)) == pytest.approx(2026.0)
    mid: float = decimal_year(datetime.datetime(2026, 7, 2, 12))
    assert 2026.49 < mid < 2026.51
