################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Local navigation frame types used by earth field models."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class NEDPosition:
    """Geodetic position.

    Attributes:
        latitude_rad: Geodetic latitude in radians
        longitude_rad: Longitude in radians
        height_m: Height above the ellipsoid in meters
    """

    latitude_rad: float
    longitude_rad: float
    height_m: float

    def __post_init__(self) -> None:
        """Validate the position."""
        values: np.ndarray = np.array(
            [self.latitude_rad, self.longitude_rad, self.height_m], dtype=np.float64
        )
        if not np.all(np.isfinite(values)):
            raise ValueError("position must be finite")
        if abs(self.latitude_rad) > 0.5 * np.pi:
            raise ValueError("latitude_rad must be within [-pi/2, pi/2]")


@dataclass(frozen=True)
class NEDMagneticFluxDensity:
    """Earth magnetic flux density resolved along north, east and down.

    Attributes:
        bn: North component in tesla
        be: East component in tesla
        bd: Down component in tesla
    """

    bn: float
    be: float
    bd: float

    def __post_init__(self) -> None:
        """Validate the components."""
        if not np.all(np.isfinite(self.as_array())):
            raise ValueError("flux density must be finite")

    def as_array(self) -> np.ndarray:
        """Return the components as a (3,) array in tesla."""
        return np.array([self.bn, self.be, self.bd], dtype=np.float64)

    def norm(self) -> float:
        """Return the field magnitude in tesla."""
        return float(np.linalg.norm(self.as_array()))
