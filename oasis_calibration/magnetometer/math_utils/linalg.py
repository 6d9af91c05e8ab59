################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Linear algebra utilities for rotations and matrices."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from .units import PhysicalConstants
from .units import assert_finite


class SO3:
    """SO(3) rotation utilities."""

    @staticmethod
    def from_euler(roll: float, pitch: float, yaw: float) -> NDArray[np.float64]:
        """Return the navigation-to-body direction cosine matrix C_nb.

        Angles follow the aerospace zyx convention in radians, so a vector
        expressed in the NED frame maps into the body frame as C_nb @ v.
        """
        angles: NDArray[np.float64] = np.array([roll, pitch, yaw], dtype=float)
        assert_finite(angles, "euler angles")
        sin_phi: float = float(np.sin(roll))
        cos_phi: float = float(np.cos(roll))
        sin_theta: float = float(np.sin(pitch))
        cos_theta: float = float(np.cos(pitch))
        sin_psi: float = float(np.sin(yaw))
        cos_psi: float = float(np.cos(yaw))
        return np.array(
            [
                [
                    cos_theta * cos_psi,
                    cos_theta * sin_psi,
                    -sin_theta,
                ],
                [
                    -cos_phi * sin_psi + sin_phi * sin_theta * cos_psi,
                    cos_phi * cos_psi + sin_phi * sin_theta * sin_psi,
                    sin_phi * cos_theta,
                ],
                [
                    sin_phi * sin_psi + cos_phi * sin_theta * cos_psi,
                    -sin_phi * cos_psi + cos_phi * sin_theta * sin_psi,
                    cos_phi * cos_theta,
                ],
            ],
            dtype=float,
        )

    @staticmethod
    def is_rotation(R: NDArray[np.float64], *, tol: float = 1e-9) -> bool:
        """Return True when R is orthonormal with unit determinant."""
        mat: NDArray[np.float64] = np.asarray(R, dtype=float)
        if mat.shape != (3, 3):
            return False
        if not np.allclose(mat @ mat.T, np.eye(3), atol=tol):
            return False
        return bool(abs(np.linalg.det(mat) - 1.0) <= tol)

    @staticmethod
    def nearest(A: NDArray[np.float64]) -> NDArray[np.float64]:
        """Return the rotation closest to A in the Frobenius norm.

        The orthogonal polar factor U V^T of A = U S V^T, with the last
        singular direction flipped when needed to keep det(R) = +1.
        """
        mat: NDArray[np.float64] = np.asarray(A, dtype=float)
        Linalg.ensure_shape(mat, (3, 3), "A")
        assert_finite(mat, "A")
        U, _, Vt = np.linalg.svd(mat)
        flip: NDArray[np.float64] = np.ones(3, dtype=float)
        flip[2] = float(np.sign(np.linalg.det(U @ Vt))) or 1.0
        return (U * flip) @ Vt


class Linalg:
    """General linear algebra helpers."""

    @staticmethod
    def ensure_shape(x: NDArray[np.float64], shape: tuple[int, ...], name: str) -> None:
        """Ensure an array has the expected shape."""
        if x.shape != shape:
            raise ValueError(f"{name} must have shape {shape}")

    @staticmethod
    def is_positive_definite(A: NDArray[np.float64]) -> bool:
        """Return True when a symmetric matrix is positive definite."""
        mat: NDArray[np.float64] = np.asarray(A, dtype=float)
        if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
            return False
        if not np.all(np.isfinite(mat)):
            return False
        sym: NDArray[np.float64] = 0.5 * (mat + mat.T)
        try:
            np.linalg.cholesky(sym)
        except np.linalg.LinAlgError:
            return False
        return True

    @staticmethod
    def symmetric_sqrt(P: NDArray[np.float64]) -> NDArray[np.float64]:
        """Return the symmetric positive square root of a PD matrix."""
        mat: NDArray[np.float64] = np.asarray(P, dtype=float)
        assert_finite(mat, "P")
        sym: NDArray[np.float64] = 0.5 * (mat + mat.T)
        eigvals: NDArray[np.float64]
        eigvecs: NDArray[np.float64]
        eigvals, eigvecs = np.linalg.eigh(sym)
        if np.min(eigvals) <= PhysicalConstants.EPS:
            raise np.linalg.LinAlgError("matrix is not positive definite")
        return (eigvecs * np.sqrt(eigvals)) @ eigvecs.T

    @staticmethod
    def upper_triangular_factor(P: NDArray[np.float64]) -> NDArray[np.float64]:
        """Return upper-triangular U with positive diagonal and U @ U.T == P.

        Uses a Cholesky factorization of the index-reversed matrix, so the
        lower factor maps back to an upper factor.
        """
        mat: NDArray[np.float64] = np.asarray(P, dtype=float)
        Linalg.ensure_shape(mat, (3, 3), "P")
        assert_finite(mat, "P")
        sym: NDArray[np.float64] = 0.5 * (mat + mat.T)
        flipped: NDArray[np.float64] = sym[::-1, ::-1]
        L: NDArray[np.float64] = np.linalg.cholesky(flipped)
        return np.ascontiguousarray(L[::-1, ::-1])

    @staticmethod
    def condition_number(A: NDArray[np.float64]) -> float:
        """Return the 2-norm condition number, inf for singular input."""
        mat: NDArray[np.float64] = np.asarray(A, dtype=float)
        if not np.all(np.isfinite(mat)):
            return float("inf")
        singular: NDArray[np.float64] = np.linalg.svd(mat, compute_uv=False)
        if singular[-1] <= 0.0:
            return float("inf")
        return float(singular[0] / singular[-1])
