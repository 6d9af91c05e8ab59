################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Levenberg-Marquardt refinement for known-norm magnetometer calibration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from oasis_calibration.magnetometer.models.measurement_model import (
    SingularSoftIronError,
)
from oasis_calibration.magnetometer.models.measurement_model import norm_residuals
from oasis_calibration.magnetometer.models.measurement_model import (
    residuals_and_jacobian,
)
from oasis_calibration.magnetometer.state.parameter_layout import BLOCK_NAME_HARD_IRON
from oasis_calibration.magnetometer.state.parameter_layout import PARAMETER_DIM
from oasis_calibration.magnetometer.state.parameter_layout import ParameterLayout


_LOG: logging.Logger = logging.getLogger(__name__)

# Units: unitless. Meaning: diagonal damping added to a singular system
_LM_DAMPING: float = 1e-6

# Units: unitless. Meaning: initial Marquardt damping factor
_LM_INITIAL_LAMBDA: float = 1e-3

# Units: unitless. Meaning: damping factor above which the fit is stalled
_LM_MAX_LAMBDA: float = 1e10

# Units: unitless. Meaning: damping multiplier on rejected and accepted steps
_LM_LAMBDA_UP: float = 10.0
_LM_LAMBDA_DOWN: float = 0.1

# Units: unitless. Meaning: relative cutoff for pseudo-inverting the normal
# matrix, drops the rotation gauge of the general soft-iron model
_COVARIANCE_RCOND: float = 1e-10


class OptimizerError(Exception):
    """Raised when the refinement cannot be evaluated."""


@dataclass(frozen=True)
class FitResult:
    """Refined calibration and its statistics.

    Attributes:
        hard_iron: Hard-iron bias in tesla, shape (3,)
        mm: Soft-iron matrix, shape (3, 3)
        covariance: Parameter covariance (12, 12) with hard-iron rows in
            tesla, or None when not requested
        chi_sq: Sum of squared normalized residuals
        mse: Mean squared residual in tesla^2
        iterations: Number of Levenberg-Marquardt iterations run
        converged: Whether the cost stopped decreasing before the limit
    """

    hard_iron: NDArray[np.float64]
    mm: NDArray[np.float64]
    covariance: NDArray[np.float64] | None
    chi_sq: float
    mse: float
    iterations: int
    converged: bool


def _solve(H: NDArray[np.float64], b: NDArray[np.float64]) -> NDArray[np.float64]:
    rhs: NDArray[np.float64] = -b
    try:
        delta: NDArray[np.float64] = np.asarray(
            np.linalg.solve(H, rhs),
            dtype=np.float64,
        )
    except np.linalg.LinAlgError:
        dim: int = int(H.shape[0])
        H_damped: NDArray[np.float64] = H + np.eye(dim, dtype=np.float64) * _LM_DAMPING
        try:
            delta = np.asarray(
                np.linalg.solve(H_damped, rhs),
                dtype=np.float64,
            )
        except np.linalg.LinAlgError:
            delta = np.asarray(
                np.linalg.lstsq(H_damped, rhs, rcond=None)[0],
                dtype=np.float64,
            )
    return delta


def measurement_weights(
    standard_deviations: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Return per-sample weights 1 / sigma in 1 / tesla.

    Samples without a positive deviation take the smallest positive one.
    When no sample has a positive deviation every weight is one.
    """
    sigma: NDArray[np.float64] = np.asarray(standard_deviations, dtype=np.float64)
    positive: NDArray[np.bool_] = sigma > 0.0
    if not np.any(positive):
        return np.ones_like(sigma)
    filled: NDArray[np.float64] = np.where(positive, sigma, np.min(sigma[positive]))
    return 1.0 / filled


def _cost(
    x: NDArray[np.float64],
    weights: NDArray[np.float64],
    hard_iron: NDArray[np.float64],
    mm: NDArray[np.float64],
) -> float:
    residuals: NDArray[np.float64] = norm_residuals(x, hard_iron, mm, 1.0)
    weighted: NDArray[np.float64] = weights * residuals
    return float(weighted @ weighted)


def refine(
    measured: NDArray[np.float64],
    standard_deviations: NDArray[np.float64],
    norm: float,
    initial_hard_iron: NDArray[np.float64],
    initial_mm: NDArray[np.float64],
    layout: ParameterLayout,
    *,
    max_iterations: int = 100,
    tolerance: float = 1e-12,
    covariance_kept: bool = True,
) -> FitResult:
    """Minimize the weighted corrected-norm residuals.

    The fit runs in norm-normalized units so that the bias and the soft-iron
    entries have comparable magnitudes. Parameters fixed by the layout stay
    at zero.

    Args:
        measured: Measured flux densities with shape (N, 3) in tesla
        standard_deviations: Per-sample standard deviations in tesla
        norm: Ground truth field norm in tesla
        initial_hard_iron: Starting hard-iron bias in tesla
        initial_mm: Starting soft-iron matrix
        layout: Parameter layout selecting the free parameters
        max_iterations: Iteration limit
        tolerance: Relative cost decrease treated as convergence
        covariance_kept: Whether to compute the parameter covariance

    Returns:
        The refined calibration
    """
    if norm <= 0.0:
        raise ValueError("norm must be positive")
    if max_iterations < 1:
        raise ValueError("max_iterations must be positive")
    x: NDArray[np.float64] = np.asarray(measured, dtype=np.float64) / norm
    sigma: NDArray[np.float64] = np.asarray(standard_deviations, dtype=np.float64)
    if x.ndim != 2 or x.shape[1] != 3 or sigma.shape != (x.shape[0],):
        raise ValueError("measured and standard_deviations must have N rows")
    free: list[int] = list(layout.free_indices())
    if x.shape[0] < len(free):
        raise ValueError("not enough measurements for the free parameters")

    unit_weights: bool = not np.any(sigma > 0.0)
    # Normalized residuals scale by 1 / norm, so do the deviations
    weights: NDArray[np.float64] = measurement_weights(sigma) * norm
    if unit_weights:
        weights = np.ones_like(sigma)

    params: NDArray[np.float64] = layout.pack(
        np.asarray(initial_hard_iron, dtype=np.float64) / norm, initial_mm
    )
    hard_iron, mm = layout.unpack(params)
    try:
        cost: float = _cost(x, weights, hard_iron, mm)
    except SingularSoftIronError as exc:
        raise OptimizerError("initial soft iron is singular") from exc

    lam: float = _LM_INITIAL_LAMBDA
    converged: bool = False
    iterations: int = 0
    for iteration in range(max_iterations):
        iterations = iteration + 1
        residuals, jacobian = residuals_and_jacobian(x, hard_iron, mm, 1.0)
        J: NDArray[np.float64] = jacobian[:, free] * weights[:, None]
        r: NDArray[np.float64] = residuals * weights
        H: NDArray[np.float64] = J.T @ J
        b: NDArray[np.float64] = J.T @ r

        improved: bool = False
        while lam <= _LM_MAX_LAMBDA:
            H_lm: NDArray[np.float64] = H + lam * np.diag(np.diag(H))
            delta: NDArray[np.float64] = _solve(H_lm, b)
            candidate: NDArray[np.float64] = params.copy()
            candidate[free] += delta
            cand_hard_iron, cand_mm = layout.unpack(candidate)
            try:
                cand_cost: float = _cost(x, weights, cand_hard_iron, cand_mm)
            except SingularSoftIronError:
                lam *= _LM_LAMBDA_UP
                continue
            if cand_cost < cost:
                improved = True
                break
            lam *= _LM_LAMBDA_UP

        if not improved:
            # No damping level lowers the cost, the fit is at a minimum
            converged = True
            break

        decrease: float = cost - cand_cost
        params = candidate
        hard_iron, mm = cand_hard_iron, cand_mm
        cost = cand_cost
        lam = max(lam * _LM_LAMBDA_DOWN, _LM_INITIAL_LAMBDA * 1e-6)
        if decrease <= tolerance * (cost + decrease):
            converged = True
            break

    _LOG.debug(
        "LM refinement: %d iterations, cost=%.6e, converged=%s",
        iterations,
        cost,
        converged,
    )

    covariance: NDArray[np.float64] | None = None
    if covariance_kept:
        covariance = _covariance(x, weights, hard_iron, mm, layout, norm)
        if unit_weights:
            dof: int = x.shape[0] - len(free)
            if dof > 0:
                covariance = covariance * (cost / dof)

    residuals_t: NDArray[np.float64] = norm_residuals(x, hard_iron, mm, 1.0) * norm
    chi_sq: float = float(np.sum((residuals_t * weights / norm) ** 2))
    if unit_weights:
        chi_sq = float(residuals_t @ residuals_t)
    mse: float = float(np.mean(residuals_t**2))
    return FitResult(
        hard_iron=hard_iron * norm,
        mm=mm,
        covariance=covariance,
        chi_sq=chi_sq,
        mse=mse,
        iterations=iterations,
        converged=converged,
    )


def _covariance(
    x: NDArray[np.float64],
    weights: NDArray[np.float64],
    hard_iron: NDArray[np.float64],
    mm: NDArray[np.float64],
    layout: ParameterLayout,
    norm: float,
) -> NDArray[np.float64]:
    free: list[int] = list(layout.free_indices())
    _, jacobian = residuals_and_jacobian(x, hard_iron, mm, 1.0)
    J: NDArray[np.float64] = jacobian[:, free] * weights[:, None]
    H: NDArray[np.float64] = J.T @ J
    cov_free: NDArray[np.float64] = np.linalg.pinv(H, rcond=_COVARIANCE_RCOND)

    cov: NDArray[np.float64] = np.zeros((PARAMETER_DIM, PARAMETER_DIM))
    cov[np.ix_(free, free)] = cov_free

    # Hard-iron parameters were fitted in units of the norm
    scale: NDArray[np.float64] = np.ones(PARAMETER_DIM, dtype=np.float64)
    scale[layout.block(BLOCK_NAME_HARD_IRON).sl()] = norm
    cov = cov * np.outer(scale, scale)
    return 0.5 * (cov + cov.T)
