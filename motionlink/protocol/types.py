"""
Type definitions for motionlink trajectories and motions.

Defines the dataclasses exchanged between file I/O, the linking engine and the
batch driver.
"""

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray
from spatialmath import UnitQuaternion


@dataclass(frozen=True)
class Waypoint:
    """One timestamped end-effector target (meters, unit quaternion)."""
    timestamp: float
    position: NDArray[np.float64]
    orientation: UnitQuaternion

    @classmethod
    def from_xyzw(cls, timestamp: float, position, quat_xyzw) -> "Waypoint":
        """Build from a position and a quaternion given in x, y, z, w order."""
        x, y, z, w = (float(v) for v in quat_xyzw)
        return cls(
            timestamp=float(timestamp),
            position=np.asarray(position, dtype=np.float64).reshape(3),
            orientation=UnitQuaternion([w, x, y, z]),
        )


Trajectory = list[Waypoint]


@dataclass
class Motion:
    """Joint-space motion: one (timestamp, configuration) entry per waypoint."""
    robot_name: str
    joint_names: list[str]
    data: list[tuple[float, NDArray[np.float64]]] = field(default_factory=list)

    @property
    def timestamps(self) -> list[float]:
        return [t for t, _ in self.data]

    def as_array(self) -> NDArray[np.float64]:
        """Rows of [time, q_1, ..., q_n]."""
        if not self.data:
            return np.zeros((0, len(self.joint_names) + 1))
        return np.vstack([np.concatenate(([t], q)) for t, q in self.data])
