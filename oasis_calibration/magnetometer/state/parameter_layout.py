################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Parameter vector layout for magnetometer calibration.

The stacked parameter vector is ordered as

    [bx, by, bz, sx, sy, sz, mxy, mxz, myx, myz, mzx, mzy]

where b is the hard-iron bias and the remaining entries are the soft-iron
matrix

    Mm = [[sx,  mxy, mxz],
          [myx, sy,  myz],
          [mzx, mzy, sz ]]

The covariance reported by the calibrators uses the same ordering.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


# Block name for the hard-iron bias
BLOCK_NAME_HARD_IRON: str = "hard_iron"

# Block name for the soft-iron scale factors
BLOCK_NAME_SCALE: str = "scale"

# Block name for the soft-iron cross couplings
BLOCK_NAME_CROSS_COUPLING: str = "cross_coupling"

# Names of the stacked parameters in vector order
PARAMETER_NAMES: tuple[str, ...] = (
    "bx",
    "by",
    "bz",
    "sx",
    "sy",
    "sz",
    "mxy",
    "mxz",
    "myx",
    "myz",
    "mzx",
    "mzy",
)

# Soft-iron matrix entry (row, col) for each parameter after the bias
SOFT_IRON_ENTRIES: tuple[tuple[int, int], ...] = (
    (0, 0),
    (1, 1),
    (2, 2),
    (0, 1),
    (0, 2),
    (1, 0),
    (1, 2),
    (2, 0),
    (2, 1),
)

# Lower-triangular soft-iron entries pinned to zero by the common-axis model
COMMON_AXIS_FIXED_NAMES: tuple[str, ...] = ("myx", "mzx", "mzy")

# Total parameter count
PARAMETER_DIM: int = len(PARAMETER_NAMES)


class ParameterLayoutError(Exception):
    """Raised when a parameter layout is invalid."""


@dataclass(frozen=True)
class ParameterBlock:
    """Named contiguous block in the parameter vector.

    Attributes:
        name: Block name identifier
        start: Starting index in the parameter vector
        dim: Block dimension
    """

    name: str
    start: int
    dim: int

    def stop(self) -> int:
        """Return the exclusive stop index for the block."""
        return self.start + self.dim

    def sl(self) -> slice:
        """Return the slice covering the block indices."""
        return slice(self.start, self.stop())

    def validate(self) -> None:
        """Validate block indices and dimensions."""
        if not self.name:
            raise ParameterLayoutError("Block name must be non-empty")
        if self.start < 0:
            raise ParameterLayoutError("Block start must be non-negative")
        if self.dim <= 0:
            raise ParameterLayoutError("Block dim must be positive")


@dataclass(frozen=True)
class ParameterLayout:
    """Block layout and free/fixed split of the calibration parameters."""

    _blocks: tuple[ParameterBlock, ...]
    _fixed: tuple[int, ...]

    @classmethod
    def for_model(cls, common_axis_used: bool) -> ParameterLayout:
        """Construct the layout of the general or common-axis model."""
        blocks: list[ParameterBlock] = []
        offset: int = 0

        def _add_block(name: str, dim: int) -> None:
            nonlocal offset
            block: ParameterBlock = ParameterBlock(name=name, start=offset, dim=dim)
            block.validate()
            blocks.append(block)
            offset += dim

        _add_block(BLOCK_NAME_HARD_IRON, 3)
        _add_block(BLOCK_NAME_SCALE, 3)
        _add_block(BLOCK_NAME_CROSS_COUPLING, 6)

        fixed: tuple[int, ...] = ()
        if common_axis_used:
            fixed = tuple(
                PARAMETER_NAMES.index(name) for name in COMMON_AXIS_FIXED_NAMES
            )

        layout: ParameterLayout = cls(_blocks=tuple(blocks), _fixed=fixed)
        layout.validate()
        return layout

    @property
    def common_axis_used(self) -> bool:
        """Return True when the common-axis entries are fixed."""
        return bool(self._fixed)

    def dim(self) -> int:
        """Return the total dimension of the parameter vector."""
        if not self._blocks:
            return 0
        return self._blocks[-1].stop()

    def blocks(self) -> tuple[ParameterBlock, ...]:
        """Return the blocks in deterministic order."""
        return self._blocks

    def block(self, name: str) -> ParameterBlock:
        """Return the block with the given name."""
        for block in self._blocks:
            if block.name == name:
                return block
        raise ParameterLayoutError(f"Block {name} not found")

    def index(self, name: str) -> int:
        """Return the vector index of a named parameter."""
        if name not in PARAMETER_NAMES:
            raise ParameterLayoutError(f"Parameter {name} not found")
        return PARAMETER_NAMES.index(name)

    def fixed_indices(self) -> tuple[int, ...]:
        """Return the indices pinned to zero."""
        return self._fixed

    def free_indices(self) -> tuple[int, ...]:
        """Return the indices estimated by the solver."""
        return tuple(i for i in range(self.dim()) if i not in self._fixed)

    def free_dim(self) -> int:
        """Return the number of estimated parameters."""
        return self.dim() - len(self._fixed)

    def pack(
        self,
        hard_iron: NDArray[np.float64],
        mm: NDArray[np.float64],
    ) -> NDArray[np.float64]:
        """Stack a hard iron and soft iron into the parameter vector."""
        vector: NDArray[np.float64] = np.zeros(PARAMETER_DIM, dtype=np.float64)
        vector[0:3] = np.asarray(hard_iron, dtype=np.float64).reshape(3)
        mat: NDArray[np.float64] = np.asarray(mm, dtype=np.float64)
        for offset, (row, col) in enumerate(SOFT_IRON_ENTRIES):
            vector[3 + offset] = mat[row, col]
        vector[list(self._fixed)] = 0.0
        return vector

    def unpack(
        self,
        vector: NDArray[np.float64],
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Split a parameter vector into hard iron (3,) and soft iron (3, 3)."""
        values: NDArray[np.float64] = np.asarray(vector, dtype=np.float64)
        if values.shape != (PARAMETER_DIM,):
            raise ParameterLayoutError(f"vector must have shape ({PARAMETER_DIM},)")
        hard_iron: NDArray[np.float64] = values[0:3].copy()
        mm: NDArray[np.float64] = np.zeros((3, 3), dtype=np.float64)
        for offset, (row, col) in enumerate(SOFT_IRON_ENTRIES):
            if 3 + offset in self._fixed:
                continue
            mm[row, col] = values[3 + offset]
        return hard_iron, mm

    def validate(self) -> None:
        """Validate block contiguity and fixed indices."""
        offset: int = 0
        for block in self._blocks:
            block.validate()
            if block.start != offset:
                raise ParameterLayoutError("Blocks must be contiguous")
            offset = block.stop()
        if offset != PARAMETER_DIM:
            raise ParameterLayoutError("Block layout does not match dimension")
        if len(set(self._fixed)) != len(self._fixed):
            raise ParameterLayoutError("Fixed indices must be unique")
        for index in self._fixed:
            if index < 3 or index >= PARAMETER_DIM:
                raise ParameterLayoutError("Only soft-iron entries may be fixed")
