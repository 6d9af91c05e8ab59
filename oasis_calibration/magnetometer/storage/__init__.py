################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Calibration snapshot persistence."""

from __future__ import annotations

from oasis_calibration.magnetometer.storage.persistence import load_yaml_snapshot
from oasis_calibration.magnetometer.storage.persistence import save_yaml_snapshot
from oasis_calibration.magnetometer.storage.yaml_format import CalibrationSnapshotYaml


__all__ = ["CalibrationSnapshotYaml", "load_yaml_snapshot", "save_yaml_snapshot"]
