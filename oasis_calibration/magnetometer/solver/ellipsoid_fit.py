################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Closed-form hard-iron and soft-iron hypothesis from a measurement subset.

Measurements are divided by the ground truth norm so that the corrected
samples lie on the unit sphere. A measured sample then satisfies

    (x - c)^T Q (x - c) = 1,    Q = (M M^T)^-1

with c = b / norm and M = I + Mm. The quadric

    x^T A x + 2 g^T x + d = 0

is fitted algebraically as the null vector of the (k, 10) design matrix,
from which c = -A^-1 g and Q = A / (c^T A c - d).

M is recovered from M M^T = Q^-1. For the common-axis model M is upper
triangular with a positive diagonal, which makes the factor unique. The
general model is only defined up to a rotation M R. The symmetric square
root is rotated onto the rotation closest to a reference matrix, by
default the identity, which leaves it symmetric.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from oasis_calibration.magnetometer.math_utils.linalg import SO3
from oasis_calibration.magnetometer.math_utils.linalg import Linalg
from oasis_calibration.magnetometer.models.measurement_model import (
    SingularSoftIronError,
)
from oasis_calibration.magnetometer.models.measurement_model import distortion_matrix


# Number of coefficients of a general quadric surface
QUADRIC_COEFFICIENTS: int = 10

# Units: unitless. Meaning: relative singular value below which the design
# matrix is treated as having more than one null direction
RANK_RTOL: float = 1e-12


@dataclass(frozen=True)
class MinimalSolution:
    """Hypothesis produced from a measurement subset.

    Attributes:
        hard_iron: Hard-iron bias in tesla, shape (3,)
        mm: Soft-iron matrix, shape (3, 3)
    """

    hard_iron: NDArray[np.float64]
    mm: NDArray[np.float64]


def _design_matrix(x: NDArray[np.float64]) -> NDArray[np.float64]:
    px: NDArray[np.float64] = x[:, 0]
    py: NDArray[np.float64] = x[:, 1]
    pz: NDArray[np.float64] = x[:, 2]
    return np.column_stack(
        [
            px * px,
            py * py,
            pz * pz,
            2.0 * px * py,
            2.0 * px * pz,
            2.0 * py * pz,
            2.0 * px,
            2.0 * py,
            2.0 * pz,
            np.ones_like(px),
        ]
    )


def fit_quadric(
    x: NDArray[np.float64],
) -> tuple[NDArray[np.float64], NDArray[np.float64], float] | None:
    """Return (A, g, d) of the algebraic quadric through the samples.

    Returns None when the samples do not determine a unique quadric.
    """
    if x.ndim != 2 or x.shape[1] != 3 or x.shape[0] < QUADRIC_COEFFICIENTS - 1:
        return None
    design: NDArray[np.float64] = _design_matrix(x)
    try:
        _, singular, vh = np.linalg.svd(design, full_matrices=False)
    except np.linalg.LinAlgError:
        return None
    if singular.shape[0] < QUADRIC_COEFFICIENTS:
        # Fewer rows than coefficients leaves an extra null direction
        singular = np.concatenate(
            [singular, np.zeros(QUADRIC_COEFFICIENTS - singular.shape[0])]
        )
    if singular[0] <= 0.0 or singular[-2] <= RANK_RTOL * singular[0]:
        return None

    coeffs: NDArray[np.float64] = vh[-1]
    A: NDArray[np.float64] = np.array(
        [
            [coeffs[0], coeffs[3], coeffs[4]],
            [coeffs[3], coeffs[1], coeffs[5]],
            [coeffs[4], coeffs[5], coeffs[2]],
        ],
        dtype=np.float64,
    )
    g: NDArray[np.float64] = coeffs[6:9].copy()
    d: float = float(coeffs[9])
    return A, g, d


def align_soft_iron_gauge(
    mm: NDArray[np.float64],
    reference_mm: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Return the soft iron of the same distortion closest to a reference.

    (I + Mm) R spans every general soft iron with equal corrected norms, R is
    chosen so that (I + Mm) R is nearest to I + reference_mm.
    """
    identity: NDArray[np.float64] = np.eye(3, dtype=np.float64)
    M: NDArray[np.float64] = identity + mm
    R: NDArray[np.float64] = SO3.nearest(M.T @ (identity + reference_mm))
    return M @ R - identity


def solve_minimal_subset(
    measured: NDArray[np.float64],
    norm: float,
    common_axis_used: bool,
    reference_mm: NDArray[np.float64] | None = None,
) -> MinimalSolution | None:
    """Estimate hard iron and soft iron from measured samples in tesla.

    Args:
        measured: Measured flux densities with shape (k, 3)
        norm: Ground truth field norm in tesla
        common_axis_used: Whether the soft-iron matrix is upper triangular
        reference_mm: Soft iron fixing the rotation of the general model

    Returns:
        The hypothesis, or None for a degenerate subset
    """
    if norm <= 0.0:
        raise ValueError("norm must be positive")
    x: NDArray[np.float64] = np.asarray(measured, dtype=np.float64) / norm

    quadric: tuple[NDArray[np.float64], NDArray[np.float64], float] | None = (
        fit_quadric(x)
    )
    if quadric is None:
        return None
    A, g, d = quadric

    try:
        center: NDArray[np.float64] = -np.linalg.solve(A, g)
    except np.linalg.LinAlgError:
        return None
    scale: float = float(center @ A @ center) - d
    if not np.isfinite(scale) or scale == 0.0:
        return None
    Q: NDArray[np.float64] = A / scale
    if not Linalg.is_positive_definite(Q):
        return None

    try:
        P: NDArray[np.float64] = np.linalg.inv(Q)
        M: NDArray[np.float64]
        if common_axis_used:
            M = Linalg.upper_triangular_factor(P)
        else:
            M = Linalg.symmetric_sqrt(P)
    except np.linalg.LinAlgError:
        return None

    mm: NDArray[np.float64] = M - np.eye(3, dtype=np.float64)
    if common_axis_used:
        mm = np.triu(mm)
    elif reference_mm is not None:
        mm = align_soft_iron_gauge(mm, reference_mm)
    try:
        distortion_matrix(mm)
    except SingularSoftIronError:
        return None
    return MinimalSolution(hard_iron=center * norm, mm=mm)
