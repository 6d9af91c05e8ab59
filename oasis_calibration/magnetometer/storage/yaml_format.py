################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""YAML schema utilities for magnetometer calibration snapshots."""

from __future__ import annotations

import numbers
from dataclasses import dataclass
from typing import Any
from typing import cast

import numpy as np
import yaml

from oasis_calibration.magnetometer.math_utils.validation import reshape_covariance
from oasis_calibration.magnetometer.state.parameter_layout import (
    COMMON_AXIS_FIXED_NAMES,
)
from oasis_calibration.magnetometer.state.parameter_layout import PARAMETER_DIM
from oasis_calibration.magnetometer.state.parameter_layout import PARAMETER_NAMES


# Snapshot format version written by this module
FORMAT_VERSION: int = 1


class CalibrationYamlError(Exception):
    """Raised when the calibration YAML schema is invalid."""


@dataclass(frozen=True)
class CalibrationSnapshotYaml:
    """Magnetometer calibration result as persisted to YAML.

    Attributes:
        format_version: Snapshot format version, must be 1
        common_axis_used: Whether the soft-iron matrix is upper triangular
        ground_truth_norm_t: Field norm used for the calibration in tesla
        hard_iron_t: Hard-iron bias in tesla, shape (3,)
        soft_iron: Soft-iron matrix, shape (3, 3)
        covariance: 12x12 parameter covariance, or None
        mse_t2: Mean squared residual in tesla^2, or None
        chi_sq: Chi-square of the fit, or None
        num_measurements: Number of measurements used
        num_inliers: Number of inliers of the consensus set, or None
    """

    format_version: int
    common_axis_used: bool
    ground_truth_norm_t: float
    hard_iron_t: np.ndarray
    soft_iron: np.ndarray
    covariance: np.ndarray | None
    mse_t2: float | None
    chi_sq: float | None
    num_measurements: int
    num_inliers: int | None

    def __post_init__(self) -> None:
        """Validate snapshot fields and version."""
        object.__setattr__(
            self, "format_version", _require_int(self.format_version, "format_version")
        )
        if self.format_version != FORMAT_VERSION:
            raise CalibrationYamlError(f"format_version must be {FORMAT_VERSION}")
        object.__setattr__(
            self,
            "common_axis_used",
            _require_bool(self.common_axis_used, "common_axis_used"),
        )
        norm: float = _require_float(self.ground_truth_norm_t, "ground_truth_norm_t")
        if not np.isfinite(norm) or norm <= 0.0:
            raise CalibrationYamlError("ground_truth_norm_t must be positive")
        object.__setattr__(self, "ground_truth_norm_t", norm)
        object.__setattr__(
            self, "hard_iron_t", _coerce_array(self.hard_iron_t, "hard_iron_t", (3,))
        )
        soft_iron: np.ndarray = _coerce_array(self.soft_iron, "soft_iron", (3, 3))
        if self.common_axis_used and np.any(np.tril(soft_iron, -1) != 0.0):
            raise CalibrationYamlError("common-axis soft_iron must be upper triangular")
        object.__setattr__(self, "soft_iron", soft_iron)
        if self.covariance is not None:
            covariance: np.ndarray = _coerce_covariance(self.covariance)
            for name in fixed_parameter_names(self.common_axis_used):
                index: int = PARAMETER_NAMES.index(name)
                if np.any(covariance[index, :] != 0.0):
                    raise CalibrationYamlError(f"covariance of {name} must be zero")
            object.__setattr__(self, "covariance", covariance)
        object.__setattr__(self, "mse_t2", _optional_float(self.mse_t2, "mse_t2"))
        object.__setattr__(self, "chi_sq", _optional_float(self.chi_sq, "chi_sq"))
        count: int = _require_int(self.num_measurements, "num_measurements")
        if count < 0:
            raise CalibrationYamlError("num_measurements must be non-negative")
        object.__setattr__(self, "num_measurements", count)
        if self.num_inliers is not None:
            inliers: int = _require_int(self.num_inliers, "num_inliers")
            if inliers < 0 or inliers > count:
                raise CalibrationYamlError("num_inliers must be within measurements")
            object.__setattr__(self, "num_inliers", inliers)


def snapshot_to_dict(snapshot: CalibrationSnapshotYaml) -> dict[str, object]:
    """Convert a snapshot to a YAML-safe dictionary."""
    covariance: list[float] | None = None
    if snapshot.covariance is not None:
        covariance = _to_list(snapshot.covariance.reshape(-1))
    data: dict[str, object] = {
        "format_version": snapshot.format_version,
        "model": {
            "common_axis_used": snapshot.common_axis_used,
            "ground_truth_norm_t": snapshot.ground_truth_norm_t,
        },
        "calibration": {
            "hard_iron_t": _to_list(snapshot.hard_iron_t),
            "soft_iron_row_major_3x3": _to_list(snapshot.soft_iron.reshape(-1)),
            "parameter_names": list(PARAMETER_NAMES),
            "covariance_row_major_12x12": covariance,
        },
        "quality": {
            "mse_t2": snapshot.mse_t2,
            "chi_sq": snapshot.chi_sq,
            "num_measurements": snapshot.num_measurements,
            "num_inliers": snapshot.num_inliers,
        },
    }
    return data


def snapshot_from_dict(data: dict[str, object]) -> CalibrationSnapshotYaml:
    """Parse a YAML dictionary into a snapshot."""
    if not isinstance(data, dict):
        raise CalibrationYamlError("YAML root must be a mapping")
    _require_keys("root", data, {"format_version", "model", "calibration", "quality"})

    model: dict[str, object] = _require_mapping(data["model"], "model")
    _require_keys("model", model, {"common_axis_used", "ground_truth_norm_t"})

    calibration: dict[str, object] = _require_mapping(
        data["calibration"], "calibration"
    )
    _require_keys(
        "calibration",
        calibration,
        {
            "hard_iron_t",
            "soft_iron_row_major_3x3",
            "parameter_names",
            "covariance_row_major_12x12",
        },
    )
    names: object = calibration["parameter_names"]
    if not isinstance(names, list) or tuple(names) != PARAMETER_NAMES:
        raise CalibrationYamlError(
            "calibration.parameter_names does not match the parameter order"
        )
    soft_iron: np.ndarray = _coerce_array(
        calibration["soft_iron_row_major_3x3"],
        "calibration.soft_iron_row_major_3x3",
        (9,),
    ).reshape(3, 3)
    covariance: np.ndarray | None = None
    if calibration["covariance_row_major_12x12"] is not None:
        covariance = _coerce_array(
            calibration["covariance_row_major_12x12"],
            "calibration.covariance_row_major_12x12",
            (PARAMETER_DIM * PARAMETER_DIM,),
        )

    quality: dict[str, object] = _require_mapping(data["quality"], "quality")
    _require_keys(
        "quality", quality, {"mse_t2", "chi_sq", "num_measurements", "num_inliers"}
    )
    num_inliers: object = quality["num_inliers"]

    return CalibrationSnapshotYaml(
        format_version=_require_int(data["format_version"], "format_version"),
        common_axis_used=_require_bool(
            model["common_axis_used"], "model.common_axis_used"
        ),
        ground_truth_norm_t=_require_float(
            model["ground_truth_norm_t"], "model.ground_truth_norm_t"
        ),
        hard_iron_t=_coerce_array(
            calibration["hard_iron_t"], "calibration.hard_iron_t", (3,)
        ),
        soft_iron=soft_iron,
        covariance=covariance,
        mse_t2=_optional_float(quality["mse_t2"], "quality.mse_t2"),
        chi_sq=_optional_float(quality["chi_sq"], "quality.chi_sq"),
        num_measurements=_require_int(
            quality["num_measurements"], "quality.num_measurements"
        ),
        num_inliers=(
            None
            if num_inliers is None
            else _require_int(num_inliers, "quality.num_inliers")
        ),
    )


def dumps_yaml(snapshot: CalibrationSnapshotYaml) -> str:
    """Serialize a snapshot to deterministic YAML."""
    data: dict[str, object] = snapshot_to_dict(snapshot)
    safe_dump: Any = cast(Any, yaml.safe_dump)
    return safe_dump(
        data,
        sort_keys=False,
        indent=2,
        default_flow_style=False,
    )


def loads_yaml(text: str) -> CalibrationSnapshotYaml:
    """Parse a snapshot from YAML text."""
    try:
        loaded: Any = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise CalibrationYamlError("Invalid YAML document") from exc
    if not isinstance(loaded, dict):
        raise CalibrationYamlError("YAML root must be a mapping")
    return snapshot_from_dict(loaded)


def fixed_parameter_names(common_axis_used: bool) -> tuple[str, ...]:
    """Return the parameters whose covariance rows are zero."""
    return COMMON_AXIS_FIXED_NAMES if common_axis_used else ()


def _require_keys(scope: str, data: dict[str, object], required: set[str]) -> None:
    """Ensure a mapping has exactly the required keys."""
    unknown: set[str] = {key for key in data.keys() if key not in required}
    if unknown:
        raise CalibrationYamlError(
            f"Unexpected keys in {scope}: {', '.join(sorted(unknown))}"
        )
    missing: set[str] = {key for key in required if key not in data}
    if missing:
        raise CalibrationYamlError(
            f"Missing keys in {scope}: {', '.join(sorted(missing))}"
        )


def _require_mapping(value: object, name: str) -> dict[str, object]:
    """Ensure the value is a dictionary."""
    if not isinstance(value, dict):
        raise CalibrationYamlError(f"{name} must be a mapping")
    return value


def _require_bool(value: object, name: str) -> bool:
    """Ensure the value is a boolean."""
    if isinstance(value, np.bool_):
        return bool(value)
    if not isinstance(value, bool):
        raise CalibrationYamlError(f"{name} must be a boolean")
    return value


def _require_int(value: object, name: str) -> int:
    """Ensure the value is an integer."""
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise CalibrationYamlError(f"{name} must be an integer")
    return int(value)


def _require_float(value: object, name: str) -> float:
    """Ensure the value is a float."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise CalibrationYamlError(f"{name} must be a float")
    return float(value)


def _optional_float(value: object, name: str) -> float | None:
    """Ensure the value is a float or None."""
    if value is None:
        return None
    return _require_float(value, name)


def _coerce_array(value: object, name: str, shape: tuple[int, ...]) -> np.ndarray:
    """Convert an input to a finite numpy array with the required shape."""
    try:
        array: np.ndarray = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise CalibrationYamlError(f"{name} must be numeric") from exc
    if array.shape != shape:
        raise CalibrationYamlError(f"{name} must have shape {shape}")
    if not np.all(np.isfinite(array)):
        raise CalibrationYamlError(f"{name} must be finite")
    return array


def _coerce_covariance(value: object) -> np.ndarray:
    """Convert a flat or square covariance into a validated 12x12 matrix."""
    array: np.ndarray = np.asarray(value, dtype=np.float64)
    try:
        return reshape_covariance(
            array.reshape(-1), (PARAMETER_DIM, PARAMETER_DIM), "covariance"
        )
    except ValueError as exc:
        raise CalibrationYamlError(str(exc)) from exc


def _to_list(array: np.ndarray) -> list[float]:
    """Convert an array to a list of Python floats."""
    return [float(value) for value in np.asarray(array, dtype=np.float64).reshape(-1)]
