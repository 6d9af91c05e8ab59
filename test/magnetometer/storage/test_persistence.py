################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for calibration persistence helpers."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from oasis_calibration.magnetometer.storage.persistence import (
    CalibrationPersistenceError,
)
from oasis_calibration.magnetometer.storage.persistence import is_yaml_path
from oasis_calibration.magnetometer.storage.persistence import load_yaml_snapshot
from oasis_calibration.magnetometer.storage.persistence import save_yaml_snapshot
from oasis_calibration.magnetometer.storage.yaml_format import FORMAT_VERSION
from oasis_calibration.magnetometer.storage.yaml_format import CalibrationSnapshotYaml


def _snapshot() -> CalibrationSnapshotYaml:
    return CalibrationSnapshotYaml(
        format_version=FORMAT_VERSION,
        common_axis_used=True,
        ground_truth_norm_t=50e-6,
        hard_iron_t=np.array([4e-6, 5e-6, -6e-6]),
        soft_iron=np.array([[0.01, 0.02, 0.03], [0.0, -0.01, 0.02], [0.0, 0.0, 0.02]]),
        covariance=None,
        mse_t2=None,
        chi_sq=None,
        num_measurements=20,
        num_inliers=None,
    )


def test_is_yaml_path() -> None:
    """Ensure YAML suffixes are recognized case-insensitively."""
    assert is_yaml_path("calibration.yaml")
    assert is_yaml_path(Path("calibration.YML"))
    assert not is_yaml_path("calibration.json")


@pytest.mark.parametrize("atomic_write", [True, False])
def test_save_and_load(tmp_path: Path, atomic_write: bool) -> None:
    """Ensure saved snapshots load back unchanged."""
    path: Path = tmp_path / "nested" / "mag.yaml"
    save_yaml_snapshot(path, _snapshot(), atomic_write=atomic_write)
    assert path.exists()
    assert [entry.name for entry in path.parent.iterdir()] == ["mag.yaml"]

    loaded: CalibrationSnapshotYaml = load_yaml_snapshot(path)
    assert loaded.common_axis_used
    np.testing.assert_array_equal(loaded.hard_iron_t, _snapshot().hard_iron_t)
    np.testing.assert_array_equal(loaded.soft_iron, _snapshot().soft_iron)
    assert loaded.covariance is None


def test_save_overwrites(tmp_path: Path) -> None:
    """Ensure an existing file is replaced."""
    path: Path = tmp_path / "mag.yml"
    path.write_text("stale", encoding="utf-8")
    save_yaml_snapshot(path, _snapshot())
    assert load_yaml_snapshot(path).num_measurements == 20


def test_persistence_errors(tmp_path: Path) -> None:
    """Ensure path, read and schema failures raise."""
    with pytest.raises(CalibrationPersistenceError):
        save_yaml_snapshot(tmp_path / "mag.json", _snapshot())
    with pytest.raises(CalibrationPersistenceError):
        load_yaml_snapshot(tmp_path / "missing.yaml")
    broken: Path = tmp_path / "broken.yaml"
    broken.write_text("format_version: [", encoding="utf-8")
    with pytest.raises(CalibrationPersistenceError):
        load_yaml_snapshot(broken)
