################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Unit-tagged magnetic flux density values and triads."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

import numpy as np

from oasis_calibration.magnetometer.math_utils.units import FluxDensity


class MagneticFluxDensityUnit(enum.Enum):
    """Supported magnetic flux density units."""

    TESLA = "T"
    MILLITESLA = "mT"
    MICROTESLA = "uT"
    NANOTESLA = "nT"
    GAUSS = "G"

    @property
    def scale(self) -> float:
        """Return the size of one unit expressed in tesla."""
        return _UNIT_SCALE[self]


_UNIT_SCALE: dict[MagneticFluxDensityUnit, float] = {
    MagneticFluxDensityUnit.TESLA: FluxDensity.TESLA,
    MagneticFluxDensityUnit.MILLITESLA: FluxDensity.MILLITESLA,
    MagneticFluxDensityUnit.MICROTESLA: FluxDensity.MICROTESLA,
    MagneticFluxDensityUnit.NANOTESLA: FluxDensity.NANOTESLA,
    MagneticFluxDensityUnit.GAUSS: FluxDensity.GAUSS,
}


def _require_finite(value: Any, name: str) -> float:
    number: float = float(value)
    if not np.isfinite(number):
        raise ValueError(f"{name} must be finite")
    return number


def _require_unit(unit: Any) -> MagneticFluxDensityUnit:
    if not isinstance(unit, MagneticFluxDensityUnit):
        raise ValueError("unit must be a MagneticFluxDensityUnit")
    return unit


@dataclass(frozen=True)
class MagneticFluxDensity:
    """Scalar magnetic flux density with its unit.

    Attributes:
        value: Magnitude expressed in ``unit``
        unit: Unit of ``value``
    """

    value: float
    unit: MagneticFluxDensityUnit = MagneticFluxDensityUnit.TESLA

    def __post_init__(self) -> None:
        """Validate the value and unit."""
        object.__setattr__(self, "value", _require_finite(self.value, "value"))
        object.__setattr__(self, "unit", _require_unit(self.unit))

    def to_tesla(self) -> float:
        """Return the value expressed in tesla."""
        return FluxDensity.convert(self.value, self.unit.scale, FluxDensity.TESLA)

    def convert(self, unit: MagneticFluxDensityUnit) -> MagneticFluxDensity:
        """Return an equivalent value expressed in another unit."""
        target: MagneticFluxDensityUnit = _require_unit(unit)
        value: float = FluxDensity.convert(self.value, self.unit.scale, target.scale)
        return MagneticFluxDensity(value, target)

    @staticmethod
    def from_tesla(value: float) -> MagneticFluxDensity:
        """Create a value in tesla."""
        return MagneticFluxDensity(value, MagneticFluxDensityUnit.TESLA)


@dataclass(frozen=True)
class MagneticFluxDensityTriad:
    """Three magnetic flux density components sharing one unit.

    Attributes:
        value_x: X component expressed in ``unit``
        value_y: Y component expressed in ``unit``
        value_z: Z component expressed in ``unit``
        unit: Unit of every component
    """

    value_x: float = 0.0
    value_y: float = 0.0
    value_z: float = 0.0
    unit: MagneticFluxDensityUnit = MagneticFluxDensityUnit.TESLA

    def __post_init__(self) -> None:
        """Validate components and unit."""
        object.__setattr__(self, "value_x", _require_finite(self.value_x, "value_x"))
        object.__setattr__(self, "value_y", _require_finite(self.value_y, "value_y"))
        object.__setattr__(self, "value_z", _require_finite(self.value_z, "value_z"))
        object.__setattr__(self, "unit", _require_unit(self.unit))

    @staticmethod
    def from_array(
        values: Any,
        unit: MagneticFluxDensityUnit = MagneticFluxDensityUnit.TESLA,
    ) -> MagneticFluxDensityTriad:
        """Create a triad from a length-3 array."""
        array: np.ndarray = np.asarray(values, dtype=np.float64).reshape(-1)
        if array.shape != (3,):
            raise ValueError("values must have 3 elements")
        return MagneticFluxDensityTriad(
            float(array[0]), float(array[1]), float(array[2]), unit
        )

    def as_array(self) -> np.ndarray:
        """Return the components as a (3,) array in the triad unit."""
        return np.array([self.value_x, self.value_y, self.value_z], dtype=np.float64)

    def as_matrix(self) -> np.ndarray:
        """Return the components as a (3, 1) column matrix in the triad unit."""
        return self.as_array().reshape(3, 1)

    def to_tesla(self) -> np.ndarray:
        """Return the components as a (3,) array in tesla."""
        return self.as_array() * self.unit.scale

    def convert(self, unit: MagneticFluxDensityUnit) -> MagneticFluxDensityTriad:
        """Return an equivalent triad expressed in another unit."""
        target: MagneticFluxDensityUnit = _require_unit(unit)
        values: np.ndarray = self.as_array() * (self.unit.scale / target.scale)
        return MagneticFluxDensityTriad.from_array(values, target)

    def norm(self) -> float:
        """Return the Euclidean norm in the triad unit."""
        return float(np.linalg.norm(self.as_array()))

    def measurement_x(self) -> MagneticFluxDensity:
        """Return the x component as a scalar value."""
        return MagneticFluxDensity(self.value_x, self.unit)

    def measurement_y(self) -> MagneticFluxDensity:
        """Return the y component as a scalar value."""
        return MagneticFluxDensity(self.value_y, self.unit)

    def measurement_z(self) -> MagneticFluxDensity:
        """Return the z component as a scalar value."""
        return MagneticFluxDensity(self.value_z, self.unit)
