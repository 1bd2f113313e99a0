"""
Tabular trajectory/motion files.

Trajectory rows: ``time, x, y, z, qx, qy, qz, qw`` after one header row.
Motion rows: ``time, <robot>-<joint_1>, ..., <robot>-<joint_n>`` after one header row.
"""

from __future__ import annotations

import logging
import warnings
from pathlib import Path

import numpy as np

from motionlink.protocol.types import Motion, Trajectory, Waypoint
from motionlink.utils.errors import TrajectoryFormatError

logger = logging.getLogger(__name__)

TRAJECTORY_COLUMNS = ("time", "x", "y", "z", "qx", "qy", "qz", "qw")


def robot_name_from_path(path: Path | str) -> str:
    """Robot identity is the file name prefix before the first underscore."""
    return Path(path).name.split("_", 1)[0]


def load_trajectory(path: Path | str) -> Trajectory:
    """Load and normalize a trajectory file; any malformed field is fatal."""
    p = Path(path)
    try:
        with warnings.catch_warnings():
            # Header-only files are reported below
            warnings.simplefilter("ignore", UserWarning)
            arr = np.loadtxt(p, delimiter=",", skiprows=1, ndmin=2, dtype=float)
    except ValueError as e:
        raise TrajectoryFormatError(f"{p}: {e}") from e

    if arr.size == 0:
        raise TrajectoryFormatError(f"{p}: no waypoints")
    if arr.shape[1] != len(TRAJECTORY_COLUMNS):
        raise TrajectoryFormatError(
            f"{p}: expected {len(TRAJECTORY_COLUMNS)} columns {TRAJECTORY_COLUMNS}, got {arr.shape[1]}"
        )
    if not np.all(np.isfinite(arr)):
        bad_row = int(np.flatnonzero(~np.all(np.isfinite(arr), axis=1))[0])
        raise TrajectoryFormatError(f"{p}: non-finite value in data row {bad_row + 1}")

    norms = np.linalg.norm(arr[:, 4:8], axis=1)
    if np.any(norms < 1e-12):
        bad_row = int(np.flatnonzero(norms < 1e-12)[0])
        raise TrajectoryFormatError(f"{p}: zero quaternion in data row {bad_row + 1}")

    trajectory = [Waypoint.from_xyzw(row[0], row[1:4], row[4:8] / norm) for row, norm in zip(arr, norms)]
    logger.debug(f"Loaded {len(trajectory)} waypoints from {p}")
    return trajectory


def motion_header(motion: Motion) -> list[str]:
    return ["time"] + [f"{motion.robot_name}-{name}" for name in motion.joint_names]


def save_motion(path: Path | str, motion: Motion) -> Path:
    """Write a motion file, creating parent directories as needed."""
    p = Path(path)
    rows = motion.as_array()
    if rows.shape[1] != len(motion.joint_names) + 1:
        raise ValueError(
            f"motion rows have {rows.shape[1] - 1} joint values for {len(motion.joint_names)} joint names"
        )
    p.parent.mkdir(parents=True, exist_ok=True)
    np.savetxt(p, rows, delimiter=",", header=",".join(motion_header(motion)), comments="", fmt="%.17g")
    logger.debug(f"Wrote {len(motion.data)} motion rows to {p}")
    return p
