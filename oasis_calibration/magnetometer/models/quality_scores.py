################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Quality-scored measurement collections used for progressive sampling."""

from __future__ import annotations

from typing import Any
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from oasis_calibration.magnetometer.calibration_types.body_magnetic_flux_density import (
    StandardDeviationBodyMagneticFluxDensity,
)


def as_quality_scores(values: Any) -> NDArray[np.float64]:
    """Return quality scores as a finite 1D float64 array."""
    scores: NDArray[np.float64] = np.asarray(values, dtype=np.float64)
    if scores.ndim != 1:
        raise ValueError("quality scores must be one-dimensional")
    if not np.all(np.isfinite(scores)):
        raise ValueError("quality scores must be finite")
    return scores


class QualityScoredMeasurements:
    """Measurements paired with per-sample quality scores.

    The measurement objects are referenced, not copied. A higher score means
    the sample is more likely to be an inlier.
    """

    def __init__(
        self,
        measurements: Sequence[StandardDeviationBodyMagneticFluxDensity],
        quality_scores: Any,
    ) -> None:
        scores: NDArray[np.float64] = as_quality_scores(quality_scores)
        if len(measurements) != scores.shape[0]:
            raise ValueError("quality scores must match the number of measurements")
        self._measurements: Sequence[StandardDeviationBodyMagneticFluxDensity] = (
            measurements
        )
        self._scores: NDArray[np.float64] = scores

    def __len__(self) -> int:
        return len(self._measurements)

    @property
    def measurements(self) -> Sequence[StandardDeviationBodyMagneticFluxDensity]:
        return self._measurements

    @property
    def quality_scores(self) -> NDArray[np.float64]:
        return self._scores

    def sorted_indices(self) -> NDArray[np.int64]:
        """Return sample indices by descending score, ties by original index."""
        # Stable sort on the negated scores keeps equal scores in input order
        return np.argsort(-self._scores, kind="stable").astype(np.int64)

    def measured_array(self) -> NDArray[np.float64]:
        """Return the measured flux densities as an (N, 3) array in tesla."""
        if not self._measurements:
            return np.zeros((0, 3), dtype=np.float64)
        return np.vstack([m.as_array() for m in self._measurements])

    def standard_deviations(self) -> NDArray[np.float64]:
        """Return the per-sample standard deviations, shape (N,)."""
        return np.array(
            [m.standard_deviation for m in self._measurements], dtype=np.float64
        )
