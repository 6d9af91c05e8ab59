################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Covariance container for estimated calibration parameters."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

# Relative symmetry tolerance for covariance validation
SYM_RTOL: float = 1e-9

# Default relative PSD tolerance for eigenvalue checks
PSD_RTOL: float = 1e-9


class CovarianceError(Exception):
    """Raised when covariance matrices are invalid or unsupported."""


@dataclass(frozen=True)
class Covariance:
    """Symmetric covariance matrix with optional parameter names.

    Entries of a calibration covariance span many orders of magnitude (tesla
    squared for the bias, unitless for the soft iron), so symmetry and PSD
    checks are relative to the largest entry.

    Attributes:
        P: Symmetric covariance matrix with shape (N, N)
        names: Optional parameter name for each row
    """

    P: np.ndarray
    names: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        """Validate covariance shape, dtype, symmetry and names."""
        P: np.ndarray = np.asarray(self.P, dtype=np.float64)
        if P.ndim != 2 or P.shape[0] != P.shape[1]:
            raise CovarianceError("Covariance must be a square matrix")
        if not np.all(np.isfinite(P)):
            raise CovarianceError("Covariance contains non-finite values")
        scale: float = float(np.max(np.abs(P))) if P.size else 0.0
        if not np.allclose(P, P.T, rtol=0.0, atol=SYM_RTOL * scale):
            raise CovarianceError("Covariance must be symmetric")
        object.__setattr__(self, "P", 0.5 * (P + P.T))
        if self.names is not None:
            names: tuple[str, ...] = tuple(self.names)
            if len(names) != P.shape[0]:
                raise CovarianceError("names must match the covariance dimension")
            object.__setattr__(self, "names", names)

    def dim(self) -> int:
        """Return the dimension of the covariance matrix."""
        return int(self.P.shape[0])

    def as_array(self) -> np.ndarray:
        """Return a copy of the covariance matrix."""
        return self.P.copy()

    def is_psd(self, *, rtol: float = PSD_RTOL) -> bool:
        """Return True when the covariance is positive semi-definite."""
        if self.dim() == 0:
            return True
        eigvals: np.ndarray = np.linalg.eigvalsh(self.P)
        scale: float = float(np.max(np.abs(eigvals)))
        return bool(np.min(eigvals) >= -rtol * scale)

    def assert_psd(self, *, rtol: float = PSD_RTOL) -> None:
        """Raise CovarianceError if the covariance is not PSD."""
        if not self.is_psd(rtol=rtol):
            raise CovarianceError("Covariance is not positive semi-definite")

    def variance(self, name: str) -> float:
        """Return the variance of a named parameter."""
        if self.names is None or name not in self.names:
            raise CovarianceError(f"Parameter {name} not found")
        index: int = self.names.index(name)
        return float(self.P[index, index])

    def standard_deviation(self, name: str) -> float:
        """Return the standard deviation of a named parameter."""
        return float(np.sqrt(max(self.variance(name), 0.0)))

    def block(self, sl: slice) -> Covariance:
        """Return the square sub-covariance for a contiguous index range."""
        sub: np.ndarray = self.P[sl, sl]
        names: tuple[str, ...] | None = None
        if self.names is not None:
            names = self.names[sl]
        return Covariance(sub, names)

    @staticmethod
    def zeros(dim: int) -> Covariance:
        """Return a zero covariance matrix of the given dimension."""
        if dim <= 0:
            raise CovarianceError("dim must be positive")
        mat: np.ndarray = np.zeros((dim, dim), dtype=np.float64)
        return Covariance(mat)
