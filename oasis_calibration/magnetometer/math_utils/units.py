################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Unit conversion helpers and physical constants."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


class FluxDensity:
    """Magnetic flux density scale factors relative to tesla."""

    TESLA: float = 1.0
    MILLITESLA: float = 1e-3
    MICROTESLA: float = 1e-6
    NANOTESLA: float = 1e-9
    GAUSS: float = 1e-4

    @staticmethod
    def convert(value: float, from_scale: float, to_scale: float) -> float:
        """Convert a value between two scale factors."""
        if from_scale <= 0.0 or to_scale <= 0.0:
            raise ValueError("scale factors must be positive")
        return float(value) * from_scale / to_scale


class PhysicalConstants:
    """Physical constants used by math utilities."""

    EPS: float = 1e-12


def assert_finite(x: NDArray[np.float64], name: str) -> None:
    """Raise ValueError when the array contains non-finite values."""
    if not np.all(np.isfinite(x)):
        raise ValueError(f"{name} must be finite")
