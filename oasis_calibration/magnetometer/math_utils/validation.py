################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Validation helpers for magnetometer calibration inputs."""

from __future__ import annotations

from typing import Any
from typing import Sequence

import numpy as np


# Covariance symmetry tolerance for soft symmetrization
COV_SYMMETRY_ATOL: float = 1e-8
COV_SYMMETRY_RTOL: float = 1e-5


def as_vector3(values: Any, name: str) -> np.ndarray:
    """Return a finite float64 array with shape (3,).

    Column matrices with shape (3, 1) are rejected so that callers choose
    the matrix variant explicitly.
    """
    array: np.ndarray = np.asarray(values, dtype=np.float64)
    if array.shape != (3,):
        raise ValueError(f"{name} must have shape (3,)")
    if not np.all(np.isfinite(array)):
        raise ValueError(f"{name} must be finite")
    return array.copy()


def as_column3(values: Any, name: str) -> np.ndarray:
    """Return a finite float64 column matrix with shape (3, 1)."""
    array: np.ndarray = np.asarray(values, dtype=np.float64)
    if array.shape != (3, 1):
        raise ValueError(f"{name} must have shape (3, 1)")
    if not np.all(np.isfinite(array)):
        raise ValueError(f"{name} must be finite")
    return array.copy()


def as_matrix33(values: Any, name: str) -> np.ndarray:
    """Return a finite float64 matrix with shape (3, 3)."""
    array: np.ndarray = np.asarray(values, dtype=np.float64)
    if array.shape != (3, 3):
        raise ValueError(f"{name} must have shape (3, 3)")
    if not np.all(np.isfinite(array)):
        raise ValueError(f"{name} must be finite")
    return array.copy()


def reshape_matrix(
    values: Sequence[float],
    shape: tuple[int, int],
    name: str,
) -> np.ndarray:
    """Return a finite matrix reshaped to the target shape."""
    array: np.ndarray = np.asarray(values, dtype=np.float64)
    if array.size != shape[0] * shape[1]:
        raise ValueError(f"{name} must have {shape[0] * shape[1]} elements")

    matrix: np.ndarray = array.reshape(shape)
    if not np.all(np.isfinite(matrix)):
        raise ValueError(f"{name} must be finite")

    return matrix


def reshape_covariance(
    values: Sequence[float],
    shape: tuple[int, int],
    name: str,
) -> np.ndarray:
    """Return a finite covariance matrix with basic validation."""
    matrix: np.ndarray = reshape_matrix(values, shape, name)

    if not np.allclose(
        matrix,
        matrix.T,
        atol=COV_SYMMETRY_ATOL,
        rtol=COV_SYMMETRY_RTOL,
    ):
        raise ValueError(f"{name} must be symmetric")

    # Remove round-off asymmetry
    matrix = 0.5 * (matrix + matrix.T)

    if np.any(np.diag(matrix) < 0.0):
        raise ValueError(f"{name} diagonal must be non-negative")

    return matrix


def require_positive(value: float, name: str) -> float:
    """Return value as float when it is finite and strictly positive."""
    number: float = float(value)
    if not np.isfinite(number) or number <= 0.0:
        raise ValueError(f"{name} must be positive")
    return number
