################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Listener protocols notified synchronously during calibration."""

from __future__ import annotations

from typing import Any
from typing import Protocol


class CalibratorListener(Protocol):
    """Receives the start and end of a calibration run."""

    def on_calibrate_start(self, calibrator: Any) -> None:
        """Called once the calibrator is locked and before any work."""

    def on_calibrate_end(self, calibrator: Any) -> None:
        """Called after a successful run, before the calibrator unlocks."""


class RobustCalibratorListener(CalibratorListener, Protocol):
    """Also receives the iteration and progress of the robust estimator."""

    def on_calibrate_next_iteration(self, calibrator: Any, iteration: int) -> None:
        """Called at the start of every robust iteration, counting from 1."""

    def on_calibrate_progress_change(self, calibrator: Any, progress: float) -> None:
        """Called when progress in [0, 1] advanced by the progress delta."""
