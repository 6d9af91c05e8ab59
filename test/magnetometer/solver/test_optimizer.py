################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for Levenberg-Marquardt refinement."""

from __future__ import annotations

import numpy as np
import pytest

from oasis_calibration.magnetometer.models.measurement_model import generate_measured
from oasis_calibration.magnetometer.solver.optimizer import FitResult
from oasis_calibration.magnetometer.solver.optimizer import OptimizerError
from oasis_calibration.magnetometer.solver.optimizer import measurement_weights
from oasis_calibration.magnetometer.solver.optimizer import refine
from oasis_calibration.magnetometer.state.parameter_layout import ParameterLayout


NORM_T: float = 50e-6

HARD_IRON: np.ndarray = np.array([6e-6, -2e-6, 4e-6])

SOFT_IRON: np.ndarray = np.array(
    [[0.02, 0.01, -0.004], [0.01, -0.01, 0.006], [-0.004, 0.006, 0.03]]
)


def _measured(count: int, seed: int, noise: float = 0.0) -> np.ndarray:
    rng: np.random.Generator = np.random.default_rng(seed)
    directions: np.ndarray = rng.normal(size=(count, 3))
    true: np.ndarray = NORM_T * directions / np.linalg.norm(directions, axis=1)[:, None]
    measured: np.ndarray = generate_measured(true, HARD_IRON, SOFT_IRON)
    return measured + rng.normal(0.0, noise, size=measured.shape)


def test_measurement_weights() -> None:
    """Ensure weights invert deviations and fill missing ones."""
    weights: np.ndarray = measurement_weights(np.array([1.0, 2.0, 0.0]))
    np.testing.assert_allclose(weights, [1.0, 0.5, 1.0])
    np.testing.assert_allclose(measurement_weights(np.zeros(3)), np.ones(3))


def test_refine_converges_from_offset_guess() -> None:
    """Ensure refinement recovers the truth from a perturbed start."""
    measured: np.ndarray = _measured(200, 1)
    sigma: np.ndarray = np.full(200, 1e-7)
    result: FitResult = refine(
        measured,
        sigma,
        NORM_T,
        HARD_IRON + 1e-6,
        SOFT_IRON * 0.5,
        ParameterLayout.for_model(False),
    )
    np.testing.assert_allclose(result.hard_iron, HARD_IRON, atol=1e-12)
    a_true: np.ndarray = np.eye(3) + SOFT_IRON
    a_est: np.ndarray = np.eye(3) + result.mm
    np.testing.assert_allclose(a_est @ a_est.T, a_true @ a_true.T, atol=1e-8)
    assert result.iterations >= 1
    assert result.mse < 1e-20


def test_refine_covariance_and_statistics() -> None:
    """Ensure the covariance shape, symmetry and chi-square are sensible."""
    noise: float = 1e-7
    measured: np.ndarray = _measured(500, 2, noise)
    result: FitResult = refine(
        measured,
        np.full(500, noise),
        NORM_T,
        HARD_IRON,
        SOFT_IRON,
        ParameterLayout.for_model(False),
    )
    assert result.covariance is not None
    assert result.covariance.shape == (12, 12)
    np.testing.assert_allclose(result.covariance, result.covariance.T)
    assert np.all(np.diag(result.covariance)[0:3] > 0.0)
    # Chi-square of a good fit is close to the number of samples
    assert 250.0 < result.chi_sq < 1000.0
    assert result.mse == pytest.approx(result.chi_sq * noise**2 / 500, rel=1e-9)


def test_refine_common_axis_keeps_fixed_entries() -> None:
    """Ensure fixed soft-iron entries stay at zero."""
    measured: np.ndarray = _measured(100, 3, 1e-8)
    result: FitResult = refine(
        measured,
        np.zeros(100),
        NORM_T,
        HARD_IRON,
        np.triu(SOFT_IRON),
        ParameterLayout.for_model(True),
    )
    assert result.mm[1, 0] == 0.0
    assert result.mm[2, 0] == 0.0
    assert result.mm[2, 1] == 0.0
    assert result.covariance is not None
    for index in (8, 10, 11):
        assert np.all(result.covariance[index, :] == 0.0)
        assert np.all(result.covariance[:, index] == 0.0)


def test_refine_without_covariance() -> None:
    """Ensure the covariance can be skipped."""
    result: FitResult = refine(
        _measured(50, 4),
        np.full(50, 1e-7),
        NORM_T,
        HARD_IRON,
        SOFT_IRON,
        ParameterLayout.for_model(False),
        covariance_kept=False,
    )
    assert result.covariance is None


def test_refine_rejects_invalid_inputs() -> None:
    """Ensure invalid inputs raise."""
    layout: ParameterLayout = ParameterLayout.for_model(False)
    measured: np.ndarray = _measured(20, 5)
    with pytest.raises(ValueError):
        refine(measured, np.zeros(20), 0.0, HARD_IRON, SOFT_IRON, layout)
    with pytest.raises(ValueError):
        refine(measured, np.zeros(19), NORM_T, HARD_IRON, SOFT_IRON, layout)
    with pytest.raises(ValueError):
        refine(measured[:5], np.zeros(5), NORM_T, HARD_IRON, SOFT_IRON, layout)
    with pytest.raises(OptimizerError):
        refine(measured, np.zeros(20), NORM_T, HARD_IRON, -np.eye(3), layout)
