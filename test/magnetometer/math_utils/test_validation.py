################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for input validation helpers."""

from __future__ import annotations

import numpy as np
import pytest

from oasis_calibration.magnetometer.math_utils.validation import as_column3
from oasis_calibration.magnetometer.math_utils.validation import as_matrix33
from oasis_calibration.magnetometer.math_utils.validation import as_vector3
from oasis_calibration.magnetometer.math_utils.validation import require_positive
from oasis_calibration.magnetometer.math_utils.validation import reshape_covariance
from oasis_calibration.magnetometer.math_utils.validation import reshape_matrix


def test_as_vector3_shapes() -> None:
    """Ensure only (3,) inputs are accepted."""
    source: list[float] = [1.0, 2.0, 3.0]
    vector: np.ndarray = as_vector3(source, "v")
    np.testing.assert_allclose(vector, source)
    with pytest.raises(ValueError):
        as_vector3([1.0, 2.0], "v")
    with pytest.raises(ValueError):
        as_vector3(np.ones((3, 1)), "v")
    with pytest.raises(ValueError):
        as_vector3([1.0, np.inf, 0.0], "v")


def test_as_vector3_returns_copy() -> None:
    """Ensure the caller array is not aliased."""
    source: np.ndarray = np.zeros(3)
    vector: np.ndarray = as_vector3(source, "v")
    vector[0] = 1.0
    assert source[0] == 0.0


def test_as_column3_and_matrix33() -> None:
    """Ensure column and square matrix shapes are enforced."""
    assert as_column3(np.ones((3, 1)), "c").shape == (3, 1)
    with pytest.raises(ValueError):
        as_column3(np.ones(3), "c")
    with pytest.raises(ValueError):
        as_column3(np.ones((2, 1)), "c")

    assert as_matrix33(np.eye(3), "m").shape == (3, 3)
    with pytest.raises(ValueError):
        as_matrix33(np.eye(2), "m")
    with pytest.raises(ValueError):
        as_matrix33(np.ones((3, 4)), "m")


def test_reshape_matrix_and_covariance() -> None:
    """Ensure flat inputs are reshaped and covariances validated."""
    matrix: np.ndarray = reshape_matrix(list(range(4)), (2, 2), "m")
    np.testing.assert_allclose(matrix, [[0.0, 1.0], [2.0, 3.0]])
    with pytest.raises(ValueError):
        reshape_matrix([1.0, 2.0, 3.0], (2, 2), "m")

    cov: np.ndarray = reshape_covariance([2.0, 0.5, 0.5, 1.0], (2, 2), "cov")
    np.testing.assert_allclose(cov, cov.T)
    with pytest.raises(ValueError):
        reshape_covariance([1.0, 2.0, 0.0, 1.0], (2, 2), "cov")
    with pytest.raises(ValueError):
        reshape_covariance([-1.0, 0.0, 0.0, 1.0], (2, 2), "cov")


def test_require_positive() -> None:
    """Ensure only finite positive values pass."""
    assert require_positive(2, "x") == 2.0
    for bad in (0.0, -1.0, float("nan"), float("inf")):
        with pytest.raises(ValueError):
            require_positive(bad, "x")
