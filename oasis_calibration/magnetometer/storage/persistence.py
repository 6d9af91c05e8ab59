################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Reading and writing magnetometer calibration snapshots on disk."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from oasis_calibration.magnetometer.storage.yaml_format import (
    CalibrationSnapshotYaml,
)
from oasis_calibration.magnetometer.storage.yaml_format import CalibrationYamlError
from oasis_calibration.magnetometer.storage.yaml_format import dumps_yaml
from oasis_calibration.magnetometer.storage.yaml_format import loads_yaml


_LOG: logging.Logger = logging.getLogger(__name__)


# File suffixes accepted for calibration snapshots
YAML_SUFFIXES: frozenset[str] = frozenset({".yaml", ".yml"})


class CalibrationPersistenceError(Exception):
    """Raised when a calibration file cannot be read or written."""


def is_yaml_path(path: str | os.PathLike[str]) -> bool:
    """Return True if the path has a YAML extension."""
    return Path(os.fspath(path)).suffix.lower() in YAML_SUFFIXES


def _snapshot_path(path: str | os.PathLike[str]) -> Path:
    if not is_yaml_path(path):
        raise CalibrationPersistenceError(
            f"Calibration path {os.fspath(path)} must end with .yaml or .yml"
        )
    return Path(os.fspath(path))


def _replace_file(target: Path, text: str) -> None:
    """Write text next to the target, then rename over it."""
    staging: Path = target.with_name(f".{target.name}.{os.getpid()}.partial")
    try:
        with staging.open("w", encoding="utf-8") as stream:
            stream.write(text)
            stream.flush()
            os.fsync(stream.fileno())
        os.replace(staging, target)
    finally:
        if staging.exists():
            staging.unlink()


def save_yaml_snapshot(
    path: str | os.PathLike[str],
    snapshot: CalibrationSnapshotYaml,
    *,
    atomic_write: bool = True,
) -> None:
    """Store a calibration snapshot as YAML.

    Args:
        path: Destination ending in .yaml or .yml, parents are created
        snapshot: Calibration to store
        atomic_write: Stage the text in a sibling file and rename it over
            the destination so readers never observe a partial file

    Raises:
        CalibrationPersistenceError: When the path or the write is invalid
    """
    target: Path = _snapshot_path(path)
    try:
        text: str = dumps_yaml(snapshot)
        target.parent.mkdir(parents=True, exist_ok=True)
        if atomic_write:
            _replace_file(target, text)
        else:
            target.write_text(text, encoding="utf-8")
    except (OSError, CalibrationYamlError) as exc:
        raise CalibrationPersistenceError(
            f"Could not save magnetometer calibration to {target}"
        ) from exc
    _LOG.info("Saved magnetometer calibration to %s", target)


def load_yaml_snapshot(path: str | os.PathLike[str]) -> CalibrationSnapshotYaml:
    """Read a calibration snapshot stored by ``save_yaml_snapshot``."""
    source: Path = _snapshot_path(path)
    try:
        snapshot: CalibrationSnapshotYaml = loads_yaml(
            source.read_text(encoding="utf-8")
        )
    except (OSError, CalibrationYamlError) as exc:
        raise CalibrationPersistenceError(
            f"Could not load magnetometer calibration from {source}"
        ) from exc
    _LOG.debug("Loaded magnetometer calibration from %s", source)
    return snapshot
