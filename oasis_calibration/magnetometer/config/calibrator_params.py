################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Configuration schema for robust magnetometer calibration."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import fields
from dataclasses import replace
from typing import Any

import numpy as np

from oasis_calibration.magnetometer.solver.prosac import DEFAULT_BETA
from oasis_calibration.magnetometer.solver.robust_estimator import DEFAULT_CONFIDENCE
from oasis_calibration.magnetometer.solver.robust_estimator import (
    DEFAULT_MAX_ITERATIONS,
)
from oasis_calibration.magnetometer.solver.robust_estimator import (
    DEFAULT_PROGRESS_DELTA,
)


# Residual magnitude in tesla accepted for inliers
THRESHOLD: float = 1e-9
# Confidence that an outlier-free subset is drawn
CONFIDENCE: float = DEFAULT_CONFIDENCE
# Maximum number of robust iterations
MAX_ITERATIONS: int = DEFAULT_MAX_ITERATIONS
# Progress change between progress notifications
PROGRESS_DELTA: float = DEFAULT_PROGRESS_DELTA
# Probability that an outlier supports a wrong model
BETA: float = DEFAULT_BETA
# Refine the consensus hypothesis over its inliers
RESULT_REFINED: bool = True
# Compute the parameter covariance during refinement
COVARIANCE_KEPT: bool = True
# Keep the inlier mask of the best hypothesis
COMPUTE_AND_KEEP_INLIERS: bool = False
# Keep the residuals of the best hypothesis
COMPUTE_AND_KEEP_RESIDUALS: bool = False
# Constrain the soft-iron matrix to be upper triangular
COMMON_AXIS_USED: bool = False
# Samples per hypothesis (None uses the model minimum)
PRELIMINARY_SUBSET_SIZE: int | None = None
# Random seed of the subset sampler (None draws fresh entropy)
RANDOM_SEED: int | None = None
# Maximum Levenberg-Marquardt iterations
LM_MAX_ITERATIONS: int = 100
# Relative cost decrease treated as converged
LM_TOLERANCE: float = 1e-12


class CalibratorParamsError(ValueError):
    """Raised when calibrator parameter validation fails."""


def _require_positive(value: float, name: str) -> None:
    """Require a finite positive value."""
    if not np.isfinite(value) or value <= 0.0:
        raise CalibratorParamsError(f"{name} must be positive")


def _require_open_unit(value: float, name: str) -> None:
    """Require a value within (0, 1)."""
    if not 0.0 < value < 1.0:
        raise CalibratorParamsError(f"{name} must be within (0, 1)")


def _require_closed_unit(value: float, name: str) -> None:
    """Require a value within [0, 1]."""
    if not 0.0 <= value <= 1.0:
        raise CalibratorParamsError(f"{name} must be within [0, 1]")


def _require_bool(value: Any, name: str) -> None:
    """Require a boolean value."""
    if not isinstance(value, (bool, np.bool_)):
        raise CalibratorParamsError(f"{name} must be a bool")


def _require_positive_int(value: Any, name: str) -> None:
    """Require a positive integer value."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise CalibratorParamsError(f"{name} must be an int")
    if value <= 0:
        raise CalibratorParamsError(f"{name} must be positive")


def _validate_optional_int(value: int | None, name: str) -> None:
    """Validate an optional integer value."""
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise CalibratorParamsError(f"{name} must be an int")


@dataclass(frozen=True)
class RobustCalibratorParams:
    """Tunables of the robust known-norm magnetometer calibrators."""

    # Residual magnitude in tesla accepted for inliers
    threshold: float = THRESHOLD
    # Confidence that an outlier-free subset is drawn
    confidence: float = CONFIDENCE
    # Maximum number of robust iterations
    max_iterations: int = MAX_ITERATIONS
    # Progress change between progress notifications
    progress_delta: float = PROGRESS_DELTA
    # Probability that an outlier supports a wrong model
    beta: float = BETA
    # Refine the consensus hypothesis over its inliers
    result_refined: bool = RESULT_REFINED
    # Compute the parameter covariance during refinement
    covariance_kept: bool = COVARIANCE_KEPT
    # Keep the inlier mask of the best hypothesis
    compute_and_keep_inliers: bool = COMPUTE_AND_KEEP_INLIERS
    # Keep the residuals of the best hypothesis
    compute_and_keep_residuals: bool = COMPUTE_AND_KEEP_RESIDUALS
    # Constrain the soft-iron matrix to be upper triangular
    common_axis_used: bool = COMMON_AXIS_USED
    # Samples per hypothesis (None uses the model minimum)
    preliminary_subset_size: int | None = PRELIMINARY_SUBSET_SIZE
    # Random seed of the subset sampler
    random_seed: int | None = RANDOM_SEED
    # Maximum Levenberg-Marquardt iterations
    lm_max_iterations: int = LM_MAX_ITERATIONS
    # Relative cost decrease treated as converged
    lm_tolerance: float = LM_TOLERANCE

    def __post_init__(self) -> None:
        """Validate on construction."""
        self.validate()

    @classmethod
    def defaults(cls) -> RobustCalibratorParams:
        """Return the default parameters."""
        return cls()

    def validate(self) -> None:
        """Validate parameter ranges and types."""
        _require_positive(self.threshold, "threshold")
        _require_open_unit(self.confidence, "confidence")
        _require_positive_int(self.max_iterations, "max_iterations")
        _require_closed_unit(self.progress_delta, "progress_delta")
        _require_open_unit(self.beta, "beta")
        _require_bool(self.result_refined, "result_refined")
        _require_bool(self.covariance_kept, "covariance_kept")
        _require_bool(self.compute_and_keep_inliers, "compute_and_keep_inliers")
        _require_bool(self.compute_and_keep_residuals, "compute_and_keep_residuals")
        _require_bool(self.common_axis_used, "common_axis_used")
        if self.preliminary_subset_size is not None:
            _require_positive_int(
                self.preliminary_subset_size, "preliminary_subset_size"
            )
        _validate_optional_int(self.random_seed, "random_seed")
        _require_positive_int(self.lm_max_iterations, "lm_max_iterations")
        _require_positive(self.lm_tolerance, "lm_tolerance")

    def replace(self, **kwargs: Any) -> RobustCalibratorParams:
        """Return a validated copy with the given fields replaced."""
        return replace(self, **kwargs)

    def as_nested_dict(self) -> dict[str, Any]:
        """Return the parameters grouped by concern."""
        robust_keys: tuple[str, ...] = (
            "threshold",
            "confidence",
            "max_iterations",
            "progress_delta",
            "beta",
            "compute_and_keep_inliers",
            "compute_and_keep_residuals",
            "preliminary_subset_size",
            "random_seed",
        )
        refinement_keys: tuple[str, ...] = (
            "result_refined",
            "covariance_kept",
            "lm_max_iterations",
            "lm_tolerance",
        )
        values: dict[str, Any] = {
            field_info.name: getattr(self, field_info.name)
            for field_info in fields(self)
        }
        return {
            "model": {"common_axis_used": values["common_axis_used"]},
            "robust": {key: values[key] for key in robust_keys},
            "refinement": {key: values[key] for key in refinement_keys},
        }

    @classmethod
    def from_nested_dict(cls, data: dict[str, Any]) -> RobustCalibratorParams:
        """Build parameters from the grouped form of ``as_nested_dict``."""
        if not isinstance(data, dict):
            raise CalibratorParamsError("params must be a mapping")
        known: set[str] = {field_info.name for field_info in fields(cls)}
        flat: dict[str, Any] = {}
        for section, values in data.items():
            if not isinstance(values, dict):
                raise CalibratorParamsError(f"{section} must be a mapping")
            for key, value in values.items():
                if key not in known:
                    raise CalibratorParamsError(f"Unknown parameter {section}.{key}")
                flat[key] = value
        return cls(**flat)
