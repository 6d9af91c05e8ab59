################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Body-frame magnetic flux density measurements."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from oasis_calibration.magnetometer.calibration_types.magnetic_flux_density import (
    MagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.magnetic_flux_density import (
    MagneticFluxDensityTriad,
)
from oasis_calibration.magnetometer.calibration_types.magnetic_flux_density import (
    MagneticFluxDensityUnit,
)


@dataclass(frozen=True)
class BodyMagneticFluxDensity:
    """Magnetic flux density resolved along the body axes.

    Attributes:
        bx: X-axis component in tesla
        by: Y-axis component in tesla
        bz: Z-axis component in tesla
    """

    bx: float = 0.0
    by: float = 0.0
    bz: float = 0.0

    def __post_init__(self) -> None:
        """Validate that every component is finite."""
        for name in ("bx", "by", "bz"):
            value: float = float(getattr(self, name))
            if not np.isfinite(value):
                raise ValueError(f"{name} must be finite")
            object.__setattr__(self, name, value)

    @staticmethod
    def from_array(values: Any) -> BodyMagneticFluxDensity:
        """Create a measurement from a (3,) or (3, 1) array in tesla."""
        array: np.ndarray = np.asarray(values, dtype=np.float64)
        if array.shape not in ((3,), (3, 1)):
            raise ValueError("values must have shape (3,) or (3, 1)")
        flat: np.ndarray = array.reshape(3)
        return BodyMagneticFluxDensity(float(flat[0]), float(flat[1]), float(flat[2]))

    @staticmethod
    def from_triad(triad: MagneticFluxDensityTriad) -> BodyMagneticFluxDensity:
        """Create a measurement from a unit-tagged triad."""
        return BodyMagneticFluxDensity.from_array(triad.to_tesla())

    def as_array(self) -> np.ndarray:
        """Return the components as a (3,) array in tesla."""
        return np.array([self.bx, self.by, self.bz], dtype=np.float64)

    def as_matrix(self) -> np.ndarray:
        """Return the components as a (3, 1) column matrix in tesla."""
        return self.as_array().reshape(3, 1)

    def as_triad(self) -> MagneticFluxDensityTriad:
        """Return the components as a triad in tesla."""
        return MagneticFluxDensityTriad(
            self.bx, self.by, self.bz, MagneticFluxDensityUnit.TESLA
        )

    def norm(self) -> float:
        """Return the magnitude in tesla."""
        return float(np.linalg.norm(self.as_array()))

    def norm_as_magnetic_flux_density(self) -> MagneticFluxDensity:
        """Return the magnitude as a unit-tagged value."""
        return MagneticFluxDensity.from_tesla(self.norm())

    def equals(self, other: BodyMagneticFluxDensity, threshold: float = 0.0) -> bool:
        """Return True when every component differs by at most threshold."""
        diff: np.ndarray = np.abs(self.as_array() - other.as_array())
        return bool(np.all(diff <= threshold))


@dataclass(frozen=True)
class StandardDeviationBodyMagneticFluxDensity:
    """Body magnetic flux density with isotropic measurement noise.

    Attributes:
        magnetic_flux_density: Measured flux density in the body frame
        standard_deviation: Per-axis noise standard deviation in tesla
    """

    magnetic_flux_density: BodyMagneticFluxDensity
    standard_deviation: float = 0.0

    def __post_init__(self) -> None:
        """Validate the measurement and its standard deviation."""
        if not isinstance(self.magnetic_flux_density, BodyMagneticFluxDensity):
            raise ValueError("magnetic_flux_density must be a BodyMagneticFluxDensity")
        std: float = float(self.standard_deviation)
        if not np.isfinite(std) or std < 0.0:
            raise ValueError("standard_deviation must be finite and non-negative")
        object.__setattr__(self, "standard_deviation", std)

    def as_array(self) -> np.ndarray:
        """Return the measured components as a (3,) array in tesla."""
        return self.magnetic_flux_density.as_array()
