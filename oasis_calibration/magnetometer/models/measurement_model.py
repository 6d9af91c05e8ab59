################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Magnetometer measurement model with hard-iron and soft-iron errors.

A measured body flux density relates to the true one by

    m = b + (I + Mm) @ t

Given the true field norm, each measurement yields the scalar residual

    r = ||(I + Mm)^-1 (m - b)|| - norm

whose Jacobian with respect to the stacked parameter vector is computed
analytically. With A = I + Mm, y = A^-1 (m - b), u = y / ||y|| and
w = A^-T u:

    dr/db  = -w
    dr/dA  = -w y^T
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from oasis_calibration.magnetometer.math_utils.linalg import Linalg
from oasis_calibration.magnetometer.state.parameter_layout import PARAMETER_DIM
from oasis_calibration.magnetometer.state.parameter_layout import SOFT_IRON_ENTRIES


# Units: unitless. Meaning: largest accepted condition number of I + Mm
SOFT_IRON_CONDITION_LIMIT: float = 1e10


class SingularSoftIronError(ValueError):
    """Raised when I + Mm cannot be inverted reliably."""


def _as_measurements(measured: NDArray[np.float64]) -> NDArray[np.float64]:
    values: NDArray[np.float64] = np.asarray(measured, dtype=np.float64)
    if values.ndim == 1:
        values = values.reshape(1, -1)
    if values.ndim != 2 or values.shape[1] != 3:
        raise ValueError("measured must have shape (3,) or (N, 3)")
    return values


def distortion_matrix(mm: NDArray[np.float64]) -> NDArray[np.float64]:
    """Return I + Mm, raising SingularSoftIronError when ill-conditioned."""
    mat: NDArray[np.float64] = np.asarray(mm, dtype=np.float64)
    Linalg.ensure_shape(mat, (3, 3), "mm")
    A: NDArray[np.float64] = np.eye(3, dtype=np.float64) + mat
    if not np.all(np.isfinite(A)) or float(np.linalg.det(A)) <= 0.0:
        raise SingularSoftIronError("I + Mm must have a positive determinant")
    if Linalg.condition_number(A) > SOFT_IRON_CONDITION_LIMIT:
        raise SingularSoftIronError("I + Mm is ill-conditioned")
    return A


def generate_measured(
    true: NDArray[np.float64],
    hard_iron: NDArray[np.float64],
    mm: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Apply hard-iron and soft-iron errors to true flux densities.

    Accepts a single (3,) vector or a batch with shape (N, 3) and returns
    the same shape.
    """
    values: NDArray[np.float64] = np.asarray(true, dtype=np.float64)
    batch: NDArray[np.float64] = _as_measurements(values)
    A: NDArray[np.float64] = np.eye(3, dtype=np.float64) + np.asarray(mm, dtype=float)
    b: NDArray[np.float64] = np.asarray(hard_iron, dtype=np.float64).reshape(3)
    result: NDArray[np.float64] = batch @ A.T + b
    if values.ndim == 1:
        return result[0]
    return result


def fix(
    measured: NDArray[np.float64],
    hard_iron: NDArray[np.float64],
    mm: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Remove hard-iron and soft-iron errors from measured flux densities."""
    values: NDArray[np.float64] = np.asarray(measured, dtype=np.float64)
    batch: NDArray[np.float64] = _as_measurements(values)
    A: NDArray[np.float64] = distortion_matrix(mm)
    b: NDArray[np.float64] = np.asarray(hard_iron, dtype=np.float64).reshape(3)
    corrected: NDArray[np.float64] = np.linalg.solve(A, (batch - b).T).T
    if values.ndim == 1:
        return corrected[0]
    return corrected


def norm_residuals(
    measured: NDArray[np.float64],
    hard_iron: NDArray[np.float64],
    mm: NDArray[np.float64],
    norm: float,
) -> NDArray[np.float64]:
    """Return the corrected-norm residual of every measurement, shape (N,)."""
    corrected: NDArray[np.float64] = _as_measurements(fix(measured, hard_iron, mm))
    return np.linalg.norm(corrected, axis=1) - float(norm)


def residuals_and_jacobian(
    measured: NDArray[np.float64],
    hard_iron: NDArray[np.float64],
    mm: NDArray[np.float64],
    norm: float,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Return residuals (N,) and their Jacobian (N, 12) in parameter order."""
    batch: NDArray[np.float64] = _as_measurements(measured)
    A: NDArray[np.float64] = distortion_matrix(mm)
    A_inv: NDArray[np.float64] = np.linalg.inv(A)
    b: NDArray[np.float64] = np.asarray(hard_iron, dtype=np.float64).reshape(3)

    y: NDArray[np.float64] = (batch - b) @ A_inv.T
    y_norm: NDArray[np.float64] = np.linalg.norm(y, axis=1)
    residuals: NDArray[np.float64] = y_norm - float(norm)

    # A corrected sample at the origin has no defined gradient direction
    safe_norm: NDArray[np.float64] = np.where(y_norm > 0.0, y_norm, 1.0)
    u: NDArray[np.float64] = y / safe_norm[:, None]
    u[y_norm <= 0.0] = 0.0
    w: NDArray[np.float64] = u @ A_inv

    jacobian: NDArray[np.float64] = np.zeros((batch.shape[0], PARAMETER_DIM))
    jacobian[:, 0:3] = -w
    for offset, (row, col) in enumerate(SOFT_IRON_ENTRIES):
        jacobian[:, 3 + offset] = -w[:, row] * y[:, col]
    return residuals, jacobian
