################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Shared state of magnetometer calibrators using a known field norm.

The calibrators estimate the hard-iron bias b and the soft-iron matrix Mm of
the model

    m = b + (I + Mm) @ t

from measurements m whose true field t has a known norm. Every setter
raises ``LockedError`` while ``calibrate()`` runs and validates its input
before assignment. Estimated values stay None until a run succeeds.
"""

from __future__ import annotations

from typing import Any
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from oasis_calibration.magnetometer.calibration_types.body_magnetic_flux_density import (
    StandardDeviationBodyMagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.magnetic_flux_density import (
    MagneticFluxDensity,
)
from oasis_calibration.magnetometer.calibration_types.magnetic_flux_density import (
    MagneticFluxDensityTriad,
)
from oasis_calibration.magnetometer.calibration_types.magnetic_flux_density import (
    MagneticFluxDensityUnit,
)
from oasis_calibration.magnetometer.calibrators.errors import LockedError
from oasis_calibration.magnetometer.calibrators.errors import NotReadyError
from oasis_calibration.magnetometer.calibrators.listener import CalibratorListener
from oasis_calibration.magnetometer.math_utils.validation import as_column3
from oasis_calibration.magnetometer.math_utils.validation import as_matrix33
from oasis_calibration.magnetometer.math_utils.validation import as_vector3
from oasis_calibration.magnetometer.math_utils.validation import require_positive
from oasis_calibration.magnetometer.state.covariance import Covariance
from oasis_calibration.magnetometer.state.parameter_layout import BLOCK_NAME_HARD_IRON
from oasis_calibration.magnetometer.state.parameter_layout import PARAMETER_NAMES
from oasis_calibration.magnetometer.state.parameter_layout import ParameterLayout
from oasis_calibration.magnetometer.storage.yaml_format import FORMAT_VERSION
from oasis_calibration.magnetometer.storage.yaml_format import (
    CalibrationSnapshotYaml,
)


# Measurements required by the general model: 12 unknowns plus one
MINIMUM_MEASUREMENTS_GENERAL: int = 13

# Measurements required by the common-axis model: 9 unknowns plus one
MINIMUM_MEASUREMENTS_COMMON_AXIS: int = 10


def _require_finite(value: float, name: str) -> float:
    number: float = float(value)
    if not np.isfinite(number):
        raise ValueError(f"{name} must be finite")
    return number


def _as_tesla(value: float | MagneticFluxDensity, name: str) -> float:
    """Return a finite flux density in tesla."""
    if isinstance(value, MagneticFluxDensity):
        return _require_finite(value.to_tesla(), name)
    return _require_finite(value, name)


def _initial_hard_iron_axis(axis: int, name: str) -> property:
    """Build a property for one axis of the initial hard iron in tesla."""

    def getter(self: BaseMagneticFluxDensityNormCalibrator) -> float:
        return float(self._initial_hard_iron[axis])

    def setter(
        self: BaseMagneticFluxDensityNormCalibrator,
        value: float | MagneticFluxDensity,
    ) -> None:
        self._check_unlocked()
        hard_iron: NDArray[np.float64] = self._initial_hard_iron.copy()
        hard_iron[axis] = _as_tesla(value, name)
        self._initial_hard_iron = hard_iron

    return property(getter, setter, doc=f"Initial {name} in tesla.")


def _initial_soft_iron_entry(row: int, col: int, name: str) -> property:
    """Build a property for one entry of the initial soft-iron matrix."""

    def getter(self: BaseMagneticFluxDensityNormCalibrator) -> float:
        return float(self._initial_mm[row, col])

    def setter(self: BaseMagneticFluxDensityNormCalibrator, value: float) -> None:
        self._check_unlocked()
        mm: NDArray[np.float64] = self._initial_mm.copy()
        mm[row, col] = _require_finite(value, name)
        self._initial_mm = mm

    return property(getter, setter, doc=f"Initial soft-iron entry {name}.")


def _estimated_hard_iron_axis(axis: int, name: str) -> property:
    def getter(self: BaseMagneticFluxDensityNormCalibrator) -> float | None:
        if self._estimated_hard_iron is None:
            return None
        return float(self._estimated_hard_iron[axis])

    return property(getter, doc=f"Estimated {name} in tesla, None before a run.")


def _estimated_soft_iron_entry(row: int, col: int, name: str) -> property:
    def getter(self: BaseMagneticFluxDensityNormCalibrator) -> float | None:
        if self._estimated_mm is None:
            return None
        return float(self._estimated_mm[row, col])

    return property(getter, doc=f"Estimated soft-iron entry {name}, None before a run.")


class BaseMagneticFluxDensityNormCalibrator:
    """Inputs, initial guess and estimated outputs of a known-norm calibration.

    Subclasses implement ``calibrate()``.
    """

    def __init__(
        self,
        *,
        ground_truth_magnetic_flux_density_norm: float
        | MagneticFluxDensity
        | None = None,
        measurements: Sequence[StandardDeviationBodyMagneticFluxDensity]
        | None = None,
        common_axis_used: bool = False,
        initial_hard_iron: Any = None,
        initial_soft_iron: Any = None,
        listener: CalibratorListener | None = None,
    ) -> None:
        self._running: bool = False
        self._ground_truth_norm: float | None = None
        self._measurements: (
            Sequence[StandardDeviationBodyMagneticFluxDensity] | None
        ) = None
        self._common_axis_used: bool = False
        self._initial_hard_iron: NDArray[np.float64] = np.zeros(3, dtype=np.float64)
        self._initial_mm: NDArray[np.float64] = np.zeros((3, 3), dtype=np.float64)
        self._listener: CalibratorListener | None = None

        self._estimated_hard_iron: NDArray[np.float64] | None = None
        self._estimated_mm: NDArray[np.float64] | None = None
        self._estimated_covariance: NDArray[np.float64] | None = None
        self._estimated_mse: float | None = None
        self._estimated_chi_sq: float | None = None

        self.ground_truth_magnetic_flux_density_norm = (
            ground_truth_magnetic_flux_density_norm
        )
        self.measurements = measurements
        self.common_axis_used = common_axis_used
        if initial_hard_iron is not None:
            self.initial_hard_iron = initial_hard_iron
        if initial_soft_iron is not None:
            self.initial_mm = initial_soft_iron
        self.listener = listener

    def _check_unlocked(self) -> None:
        if self._running:
            raise LockedError("calibrator is running")

    @property
    def running(self) -> bool:
        """True while ``calibrate()`` executes."""
        return self._running

    # Ground truth norm

    @property
    def ground_truth_magnetic_flux_density_norm(self) -> float | None:
        """Known field norm in tesla, None while unset."""
        return self._ground_truth_norm

    @ground_truth_magnetic_flux_density_norm.setter
    def ground_truth_magnetic_flux_density_norm(
        self, value: float | MagneticFluxDensity | None
    ) -> None:
        self._check_unlocked()
        if value is None:
            self._ground_truth_norm = None
            return
        norm: float = _as_tesla(value, "ground truth norm")
        self._ground_truth_norm = require_positive(norm, "ground truth norm")

    def ground_truth_magnetic_flux_density_norm_as_magnetic_flux_density(
        self,
    ) -> MagneticFluxDensity | None:
        if self._ground_truth_norm is None:
            return None
        return MagneticFluxDensity.from_tesla(self._ground_truth_norm)

    def _require_ground_truth_norm(self) -> float:
        if self._ground_truth_norm is None:
            raise NotReadyError("ground truth norm is not set")
        return self._ground_truth_norm

    # Measurements

    @property
    def measurements(
        self,
    ) -> Sequence[StandardDeviationBodyMagneticFluxDensity] | None:
        """Measurement list, held by reference."""
        return self._measurements

    @measurements.setter
    def measurements(
        self,
        value: Sequence[StandardDeviationBodyMagneticFluxDensity] | None,
    ) -> None:
        self._check_unlocked()
        if value is not None:
            for measurement in value:
                if not isinstance(
                    measurement, StandardDeviationBodyMagneticFluxDensity
                ):
                    raise ValueError(
                        "measurements must be StandardDeviationBodyMagneticFluxDensity"
                    )
        self._measurements = value

    def _measured_array(self) -> NDArray[np.float64]:
        if not self._measurements:
            return np.zeros((0, 3), dtype=np.float64)
        return np.vstack([m.as_array() for m in self._measurements])

    def _standard_deviations(self) -> NDArray[np.float64]:
        if not self._measurements:
            return np.zeros(0, dtype=np.float64)
        return np.array(
            [m.standard_deviation for m in self._measurements], dtype=np.float64
        )

    # Model

    @property
    def common_axis_used(self) -> bool:
        """Whether the soft-iron matrix is constrained to be upper triangular."""
        return self._common_axis_used

    @common_axis_used.setter
    def common_axis_used(self, value: bool) -> None:
        self._check_unlocked()
        self._common_axis_used = bool(value)

    @property
    def minimum_required_measurements(self) -> int:
        if self._common_axis_used:
            return MINIMUM_MEASUREMENTS_COMMON_AXIS
        return MINIMUM_MEASUREMENTS_GENERAL

    @property
    def layout(self) -> ParameterLayout:
        """Parameter layout of the active model."""
        return ParameterLayout.for_model(self._common_axis_used)

    @property
    def is_ready(self) -> bool:
        """True when enough measurements and a ground truth norm are set."""
        return (
            self._measurements is not None
            and len(self._measurements) >= self.minimum_required_measurements
            and self._ground_truth_norm is not None
        )

    @property
    def listener(self) -> CalibratorListener | None:
        return self._listener

    @listener.setter
    def listener(self, value: CalibratorListener | None) -> None:
        self._check_unlocked()
        self._listener = value

    # Initial hard iron

    @property
    def initial_hard_iron(self) -> NDArray[np.float64]:
        """Initial hard-iron bias in tesla, shape (3,)."""
        return self._initial_hard_iron.copy()

    @initial_hard_iron.setter
    def initial_hard_iron(self, value: Any) -> None:
        self._check_unlocked()
        self._initial_hard_iron = as_vector3(value, "initial hard iron")

    initial_hard_iron_x = _initial_hard_iron_axis(0, "hard iron x")
    initial_hard_iron_y = _initial_hard_iron_axis(1, "hard iron y")
    initial_hard_iron_z = _initial_hard_iron_axis(2, "hard iron z")

    def set_initial_hard_iron(
        self,
        x: float | MagneticFluxDensity,
        y: float | MagneticFluxDensity,
        z: float | MagneticFluxDensity,
    ) -> None:
        """Set every axis of the initial hard iron."""
        self._check_unlocked()
        self._initial_hard_iron = np.array(
            [
                _as_tesla(x, "hard iron x"),
                _as_tesla(y, "hard iron y"),
                _as_tesla(z, "hard iron z"),
            ],
            dtype=np.float64,
        )

    def initial_hard_iron_as_matrix(self) -> NDArray[np.float64]:
        return self._initial_hard_iron.reshape(3, 1).copy()

    def set_initial_hard_iron_from_matrix(self, value: Any) -> None:
        """Set the initial hard iron from a (3, 1) column matrix."""
        self._check_unlocked()
        self._initial_hard_iron = as_column3(value, "initial hard iron").reshape(3)

    def initial_hard_iron_as_triad(self) -> MagneticFluxDensityTriad:
        return MagneticFluxDensityTriad.from_array(
            self._initial_hard_iron, MagneticFluxDensityUnit.TESLA
        )

    def set_initial_hard_iron_from_triad(self, triad: MagneticFluxDensityTriad) -> None:
        self._check_unlocked()
        self._initial_hard_iron = triad.to_tesla()

    def initial_hard_iron_x_as_magnetic_flux_density(self) -> MagneticFluxDensity:
        return MagneticFluxDensity.from_tesla(float(self._initial_hard_iron[0]))

    def initial_hard_iron_y_as_magnetic_flux_density(self) -> MagneticFluxDensity:
        return MagneticFluxDensity.from_tesla(float(self._initial_hard_iron[1]))

    def initial_hard_iron_z_as_magnetic_flux_density(self) -> MagneticFluxDensity:
        return MagneticFluxDensity.from_tesla(float(self._initial_hard_iron[2]))

    # Initial soft iron

    @property
    def initial_mm(self) -> NDArray[np.float64]:
        """Initial soft-iron matrix, shape (3, 3)."""
        return self._initial_mm.copy()

    @initial_mm.setter
    def initial_mm(self, value: Any) -> None:
        self._check_unlocked()
        self._initial_mm = as_matrix33(value, "initial soft iron")

    initial_sx = _initial_soft_iron_entry(0, 0, "sx")
    initial_sy = _initial_soft_iron_entry(1, 1, "sy")
    initial_sz = _initial_soft_iron_entry(2, 2, "sz")
    initial_mxy = _initial_soft_iron_entry(0, 1, "mxy")
    initial_mxz = _initial_soft_iron_entry(0, 2, "mxz")
    initial_myx = _initial_soft_iron_entry(1, 0, "myx")
    initial_myz = _initial_soft_iron_entry(1, 2, "myz")
    initial_mzx = _initial_soft_iron_entry(2, 0, "mzx")
    initial_mzy = _initial_soft_iron_entry(2, 1, "mzy")

    def set_initial_scaling_factors(self, sx: float, sy: float, sz: float) -> None:
        self._check_unlocked()
        mm: NDArray[np.float64] = self._initial_mm.copy()
        mm[0, 0] = _require_finite(sx, "sx")
        mm[1, 1] = _require_finite(sy, "sy")
        mm[2, 2] = _require_finite(sz, "sz")
        self._initial_mm = mm

    def set_initial_cross_coupling_errors(
        self,
        mxy: float,
        mxz: float,
        myx: float,
        myz: float,
        mzx: float,
        mzy: float,
    ) -> None:
        self._check_unlocked()
        values: NDArray[np.float64] = as_vector3([mxy, mxz, myx], "cross coupling")
        rest: NDArray[np.float64] = as_vector3([myz, mzx, mzy], "cross coupling")
        mm: NDArray[np.float64] = self._initial_mm.copy()
        mm[0, 1], mm[0, 2], mm[1, 0] = values
        mm[1, 2], mm[2, 0], mm[2, 1] = rest
        self._initial_mm = mm

    def set_initial_scaling_factors_and_cross_coupling_errors(
        self,
        sx: float,
        sy: float,
        sz: float,
        mxy: float,
        mxz: float,
        myx: float,
        myz: float,
        mzx: float,
        mzy: float,
    ) -> None:
        """Set all nine initial soft-iron entries at once."""
        self._check_unlocked()
        self.initial_mm = np.array(
            [[sx, mxy, mxz], [myx, sy, myz], [mzx, mzy, sz]], dtype=np.float64
        )

    # Estimated values

    @property
    def estimated_hard_iron(self) -> NDArray[np.float64] | None:
        """Estimated hard-iron bias in tesla, shape (3,)."""
        if self._estimated_hard_iron is None:
            return None
        return self._estimated_hard_iron.copy()

    estimated_hard_iron_x = _estimated_hard_iron_axis(0, "hard iron x")
    estimated_hard_iron_y = _estimated_hard_iron_axis(1, "hard iron y")
    estimated_hard_iron_z = _estimated_hard_iron_axis(2, "hard iron z")

    def estimated_hard_iron_as_matrix(self) -> NDArray[np.float64] | None:
        if self._estimated_hard_iron is None:
            return None
        return self._estimated_hard_iron.reshape(3, 1).copy()

    def estimated_hard_iron_as_triad(self) -> MagneticFluxDensityTriad | None:
        if self._estimated_hard_iron is None:
            return None
        return MagneticFluxDensityTriad.from_array(
            self._estimated_hard_iron, MagneticFluxDensityUnit.TESLA
        )

    def estimated_hard_iron_x_as_magnetic_flux_density(
        self,
    ) -> MagneticFluxDensity | None:
        return self._axis_as_flux_density(self.estimated_hard_iron_x)

    def estimated_hard_iron_y_as_magnetic_flux_density(
        self,
    ) -> MagneticFluxDensity | None:
        return self._axis_as_flux_density(self.estimated_hard_iron_y)

    def estimated_hard_iron_z_as_magnetic_flux_density(
        self,
    ) -> MagneticFluxDensity | None:
        return self._axis_as_flux_density(self.estimated_hard_iron_z)

    @staticmethod
    def _axis_as_flux_density(value: float | None) -> MagneticFluxDensity | None:
        if value is None:
            return None
        return MagneticFluxDensity.from_tesla(value)

    @property
    def estimated_mm(self) -> NDArray[np.float64] | None:
        """Estimated soft-iron matrix, shape (3, 3)."""
        if self._estimated_mm is None:
            return None
        return self._estimated_mm.copy()

    estimated_sx = _estimated_soft_iron_entry(0, 0, "sx")
    estimated_sy = _estimated_soft_iron_entry(1, 1, "sy")
    estimated_sz = _estimated_soft_iron_entry(2, 2, "sz")
    estimated_mxy = _estimated_soft_iron_entry(0, 1, "mxy")
    estimated_mxz = _estimated_soft_iron_entry(0, 2, "mxz")
    estimated_myx = _estimated_soft_iron_entry(1, 0, "myx")
    estimated_myz = _estimated_soft_iron_entry(1, 2, "myz")
    estimated_mzx = _estimated_soft_iron_entry(2, 0, "mzx")
    estimated_mzy = _estimated_soft_iron_entry(2, 1, "mzy")

    @property
    def estimated_covariance(self) -> NDArray[np.float64] | None:
        """Estimated 12x12 covariance in the stacked parameter order.

        The order is [bx, by, bz, sx, sy, sz, mxy, mxz, myx, myz, mzx, mzy]
        with hard-iron rows in tesla.
        """
        if self._estimated_covariance is None:
            return None
        return self._estimated_covariance.copy()

    @property
    def estimated_mse(self) -> float | None:
        """Mean squared norm residual in tesla^2."""
        return self._estimated_mse

    @property
    def estimated_chi_sq(self) -> float | None:
        """Sum of squared residuals normalized by the measurement deviations."""
        return self._estimated_chi_sq

    def _hard_iron_covariance(self) -> Covariance | None:
        if self._estimated_covariance is None:
            return None
        cov: Covariance = Covariance(self._estimated_covariance, PARAMETER_NAMES)
        return cov.block(self.layout.block(BLOCK_NAME_HARD_IRON).sl())

    def _hard_iron_variance(self, name: str) -> float | None:
        cov: Covariance | None = self._hard_iron_covariance()
        if cov is None:
            return None
        return cov.variance(name)

    @property
    def estimated_hard_iron_x_variance(self) -> float | None:
        return self._hard_iron_variance("bx")

    @property
    def estimated_hard_iron_y_variance(self) -> float | None:
        return self._hard_iron_variance("by")

    @property
    def estimated_hard_iron_z_variance(self) -> float | None:
        return self._hard_iron_variance("bz")

    def estimated_hard_iron_standard_deviations(self) -> NDArray[np.float64] | None:
        """Per-axis hard-iron standard deviations in tesla, shape (3,)."""
        cov: Covariance | None = self._hard_iron_covariance()
        if cov is None:
            return None
        return np.sqrt(np.maximum(np.diag(cov.as_array()), 0.0))

    def estimated_hard_iron_standard_deviation_as_triad(
        self,
    ) -> MagneticFluxDensityTriad | None:
        std: NDArray[np.float64] | None = self.estimated_hard_iron_standard_deviations()
        if std is None:
            return None
        return MagneticFluxDensityTriad.from_array(std, MagneticFluxDensityUnit.TESLA)

    @property
    def estimated_hard_iron_standard_deviation_average(self) -> float | None:
        std: NDArray[np.float64] | None = self.estimated_hard_iron_standard_deviations()
        if std is None:
            return None
        return float(np.mean(std))

    @property
    def estimated_hard_iron_standard_deviation_norm(self) -> float | None:
        std: NDArray[np.float64] | None = self.estimated_hard_iron_standard_deviations()
        if std is None:
            return None
        return float(np.linalg.norm(std))

    def _reset_estimates(self) -> None:
        self._estimated_hard_iron = None
        self._estimated_mm = None
        self._estimated_covariance = None
        self._estimated_mse = None
        self._estimated_chi_sq = None

    def _set_estimates(
        self,
        hard_iron: NDArray[np.float64],
        mm: NDArray[np.float64],
        covariance: NDArray[np.float64] | None,
        mse: float,
        chi_sq: float,
    ) -> None:
        estimated_mm: NDArray[np.float64] = np.array(mm, dtype=np.float64)
        if self._common_axis_used:
            estimated_mm = np.triu(estimated_mm)
        self._estimated_hard_iron = np.array(hard_iron, dtype=np.float64).reshape(3)
        self._estimated_mm = estimated_mm
        self._estimated_covariance = (
            None if covariance is None else np.array(covariance, dtype=np.float64)
        )
        self._estimated_mse = float(mse)
        self._estimated_chi_sq = float(chi_sq)

    def _notify_start(self) -> None:
        if self._listener is not None:
            self._listener.on_calibrate_start(self)

    def _notify_end(self) -> None:
        if self._listener is not None:
            self._listener.on_calibrate_end(self)

    def calibrate(self) -> None:
        raise NotImplementedError

    def _snapshot_num_inliers(self) -> int | None:
        return None

    def to_snapshot(self) -> CalibrationSnapshotYaml:
        """Return the estimated calibration as a persistable snapshot.

        Raises:
            NotReadyError: When no calibration has succeeded
        """
        if (
            self._estimated_hard_iron is None
            or self._estimated_mm is None
            or self._ground_truth_norm is None
        ):
            raise NotReadyError("no estimated calibration to persist")
        count: int = 0 if self._measurements is None else len(self._measurements)
        return CalibrationSnapshotYaml(
            format_version=FORMAT_VERSION,
            common_axis_used=self._common_axis_used,
            ground_truth_norm_t=self._ground_truth_norm,
            hard_iron_t=self._estimated_hard_iron,
            soft_iron=self._estimated_mm,
            covariance=self._estimated_covariance,
            mse_t2=self._estimated_mse,
            chi_sq=self._estimated_chi_sq,
            num_measurements=count,
            num_inliers=self._snapshot_num_inliers(),
        )
