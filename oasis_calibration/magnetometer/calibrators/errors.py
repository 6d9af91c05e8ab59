################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Errors raised by magnetometer calibrators.

Invalid arguments raise ``ValueError`` and are not part of this hierarchy.
"""

from __future__ import annotations


class CalibratorError(Exception):
    """Base class for calibrator state and algorithm failures."""


class LockedError(CalibratorError):
    """Raised when a calibrator is modified or re-entered while running."""


class NotReadyError(CalibratorError):
    """Raised when calibration starts without the required inputs."""


class CalibrationError(CalibratorError):
    """Raised when a correctly configured calibration finds no solution."""
