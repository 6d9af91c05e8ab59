################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for unit-tagged magnetic flux density values."""

from __future__ import annotations

import numpy as np
import pytest

from oasis_calibration.magnetometer.calibration_types.magnetic_flux_density import (
    MagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.magnetic_flux_density import (
    MagneticFluxDensityTriad,
)
from oasis_calibration.magnetometer.calibration_types.magnetic_flux_density import (
    MagneticFluxDensityUnit,
)


def test_gauss_converts_to_tesla() -> None:
    """Ensure one gauss is 1e-4 tesla."""
    value: MagneticFluxDensity = MagneticFluxDensity(
        1.0, MagneticFluxDensityUnit.GAUSS
    )
    assert value.to_tesla() == pytest.approx(1e-4)


def test_convert_between_units() -> None:
    """Ensure conversion keeps the physical value."""
    value: MagneticFluxDensity = MagneticFluxDensity(
        50.0, MagneticFluxDensityUnit.MICROTESLA
    )
    converted: MagneticFluxDensity = value.convert(MagneticFluxDensityUnit.NANOTESLA)
    assert converted.unit is MagneticFluxDensityUnit.NANOTESLA
    assert converted.value == pytest.approx(50000.0)
    assert converted.to_tesla() == pytest.approx(value.to_tesla())


def test_flux_density_rejects_invalid_input() -> None:
    """Ensure non-finite values and foreign units raise."""
    with pytest.raises(ValueError):
        MagneticFluxDensity(float("nan"))
    with pytest.raises(ValueError):
        MagneticFluxDensity(1.0, "T")  # type: ignore[arg-type]


def test_flux_density_equality() -> None:
    """Ensure equality compares value and unit."""
    assert MagneticFluxDensity.from_tesla(2.0) == MagneticFluxDensity(
        2.0, MagneticFluxDensityUnit.TESLA
    )
    assert MagneticFluxDensity(2.0, MagneticFluxDensityUnit.GAUSS) != (
        MagneticFluxDensity.from_tesla(2.0)
    )


def test_triad_representations() -> None:
    """Ensure array, matrix and per-axis views agree."""
    triad: MagneticFluxDensityTriad = MagneticFluxDensityTriad(
        1.0, 2.0, 2.0, MagneticFluxDensityUnit.MICROTESLA
    )
    np.testing.assert_allclose(triad.as_array(), [1.0, 2.0, 2.0])
    assert triad.as_matrix().shape == (3, 1)
    assert triad.norm() == pytest.approx(3.0)
    np.testing.assert_allclose(triad.to_tesla(), [1e-6, 2e-6, 2e-6])
    assert triad.measurement_y() == MagneticFluxDensity(
        2.0, MagneticFluxDensityUnit.MICROTESLA
    )


def test_triad_from_array_and_convert() -> None:
    """Ensure triads built from arrays convert between units."""
    triad: MagneticFluxDensityTriad = MagneticFluxDensityTriad.from_array(
        np.array([[1e-6], [0.0], [-2e-6]])
    )
    converted: MagneticFluxDensityTriad = triad.convert(
        MagneticFluxDensityUnit.MICROTESLA
    )
    np.testing.assert_allclose(converted.as_array(), [1.0, 0.0, -2.0])

    with pytest.raises(ValueError):
        MagneticFluxDensityTriad.from_array([1.0, 2.0])
