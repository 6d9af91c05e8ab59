################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for the hard-iron and soft-iron measurement model."""

from __future__ import annotations

import numpy as np
import pytest

from oasis_calibration.magnetometer.models.measurement_model import (
    SingularSoftIronError,
)
from oasis_calibration.magnetometer.models.measurement_model import distortion_matrix
from oasis_calibration.magnetometer.models.measurement_model import fix
from oasis_calibration.magnetometer.models.measurement_model import generate_measured
from oasis_calibration.magnetometer.models.measurement_model import norm_residuals
from oasis_calibration.magnetometer.models.measurement_model import (
    residuals_and_jacobian,
)
from oasis_calibration.magnetometer.state.parameter_layout import PARAMETER_DIM
from oasis_calibration.magnetometer.state.parameter_layout import ParameterLayout


NORM_T: float = 48e-6


def _truth() -> tuple[np.ndarray, np.ndarray]:
    hard_iron: np.ndarray = np.array([3e-6, -2e-6, 1e-6], dtype=np.float64)
    mm: np.ndarray = np.array(
        [[0.02, 0.01, -0.005], [0.004, -0.01, 0.003], [-0.002, 0.006, 0.015]],
        dtype=np.float64,
    )
    return hard_iron, mm


def _unit_samples(count: int, seed: int) -> np.ndarray:
    rng: np.random.Generator = np.random.default_rng(seed)
    directions: np.ndarray = rng.normal(size=(count, 3))
    return directions / np.linalg.norm(directions, axis=1)[:, None]


def test_generate_measured_applies_errors() -> None:
    """Ensure the forward model adds hard iron after the soft-iron matrix."""
    hard_iron, mm = _truth()
    true: np.ndarray = np.array([20e-6, 5e-6, 40e-6])
    measured: np.ndarray = generate_measured(true, hard_iron, mm)
    np.testing.assert_allclose(measured, hard_iron + (np.eye(3) + mm) @ true)
    assert generate_measured(np.ones((4, 3)), hard_iron, mm).shape == (4, 3)


def test_fix_inverts_generate() -> None:
    """Ensure fix removes the errors applied by generate_measured."""
    hard_iron, mm = _truth()
    true: np.ndarray = _unit_samples(20, 1) * NORM_T
    measured: np.ndarray = generate_measured(true, hard_iron, mm)
    np.testing.assert_allclose(fix(measured, hard_iron, mm), true, atol=1e-18)
    np.testing.assert_allclose(
        fix(measured[0], hard_iron, mm), true[0], atol=1e-18
    )


def test_norm_residuals_vanish_at_truth() -> None:
    """Ensure exact parameters give zero residuals."""
    hard_iron, mm = _truth()
    measured: np.ndarray = generate_measured(
        _unit_samples(30, 2) * NORM_T, hard_iron, mm
    )
    residuals: np.ndarray = norm_residuals(measured, hard_iron, mm, NORM_T)
    assert residuals.shape == (30,)
    np.testing.assert_allclose(residuals, np.zeros(30), atol=1e-18)


def test_distortion_matrix_rejects_singular() -> None:
    """Ensure singular or reflecting soft-iron matrices raise."""
    np.testing.assert_allclose(distortion_matrix(np.zeros((3, 3))), np.eye(3))
    with pytest.raises(SingularSoftIronError):
        distortion_matrix(-np.eye(3))
    with pytest.raises(SingularSoftIronError):
        distortion_matrix(np.diag([0.0, 0.0, -2.0]))
    with pytest.raises(ValueError):
        distortion_matrix(np.zeros((2, 2)))


def test_jacobian_matches_finite_differences() -> None:
    """Ensure the analytic Jacobian matches central differences."""
    hard_iron, mm = _truth()
    measured: np.ndarray = generate_measured(_unit_samples(8, 3), 0.1 * hard_iron, mm)
    layout: ParameterLayout = ParameterLayout.for_model(False)
    params: np.ndarray = layout.pack(hard_iron * 1e4, mm * 0.5)
    b0, mm0 = layout.unpack(params)

    residuals, jacobian = residuals_and_jacobian(measured, b0, mm0, 1.0)
    assert jacobian.shape == (8, PARAMETER_DIM)
    np.testing.assert_allclose(residuals, norm_residuals(measured, b0, mm0, 1.0))

    step: float = 1e-7
    for k in range(PARAMETER_DIM):
        plus: np.ndarray = params.copy()
        minus: np.ndarray = params.copy()
        plus[k] += step
        minus[k] -= step
        r_plus: np.ndarray = norm_residuals(measured, *layout.unpack(plus), 1.0)
        r_minus: np.ndarray = norm_residuals(measured, *layout.unpack(minus), 1.0)
        numeric: np.ndarray = (r_plus - r_minus) / (2.0 * step)
        np.testing.assert_allclose(jacobian[:, k], numeric, atol=1e-6)
