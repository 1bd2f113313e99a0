# Typed, vectorized kinematics model shared by the oracle session and the linker
from dataclasses import dataclass
from enum import Enum
from math import pi
from typing import Sequence
import logging
import math

import numpy as np
from numpy.typing import ArrayLike, NDArray
from roboticstoolbox import ETS
from spatialmath import UnitQuaternion

from motionlink.config import ORIENTATION_TOLERANCE, POSITION_TOLERANCE
from motionlink.utils.errors import RobotModelError

logger = logging.getLogger(__name__)

# -----------------------------
# Typing aliases
# -----------------------------
Configuration = NDArray[np.float64]
Pose = tuple[NDArray[np.float64], UnitQuaternion]


class JointType(Enum):
    """Sampling behaviour of a joint."""
    CONTINUOUS = "continuous"  # sampled over [-pi, pi)
    BOUNDED = "bounded"  # sampled over [lower, upper]


@dataclass(frozen=True)
class JointSpec:
    name: str
    joint_type: JointType
    lower: float
    upper: float
    velocity_limit: float  # rad/s or m/s


@dataclass(frozen=True)
class KinematicChain:
    """End-effector chain evaluated on a subset of the configuration vector."""
    ets: ETS
    joint_indices: tuple[int, ...]
    base_link: str = "base"
    ee_link: str = "ee"


def orientation_error(actual: UnitQuaternion, target: UnitQuaternion) -> float:
    """
    Rotation angle (radians) of actual * target^-1.
    Uses |s| so that q and -q describe the same rotation.
    """
    err = actual * target.inv()
    return 2.0 * math.atan2(float(np.linalg.norm(err.v)), abs(float(err.s)))


class KinematicsModel:
    """
    Joint limits, velocity limits, joint types and forward kinematics of one robot.

    All queries are pure. The model is treated as immutable after construction;
    the limit arrays are exposed read-only.
    """

    def __init__(
        self,
        robot_name: str,
        joints: Sequence[JointSpec],
        chains: Sequence[KinematicChain],
        *,
        require_single_chain: bool = True,
    ) -> None:
        if not joints:
            raise RobotModelError(f"robot '{robot_name}' has no controllable joints")
        if not chains:
            raise RobotModelError(f"robot '{robot_name}' has no kinematic chain")
        if require_single_chain and len(chains) != 1:
            raise RobotModelError(
                f"robot '{robot_name}' should have exactly one chain, found {len(chains)}"
            )

        n = len(joints)
        for chain in chains:
            if len(chain.joint_indices) != chain.ets.n:
                raise RobotModelError(
                    f"chain {chain.base_link}->{chain.ee_link} has {chain.ets.n} joints "
                    f"but {len(chain.joint_indices)} joint indices"
                )
            if any(i < 0 or i >= n for i in chain.joint_indices):
                raise RobotModelError(
                    f"chain {chain.base_link}->{chain.ee_link} indexes outside {n} joints"
                )

        self.robot_name = robot_name
        self.joints: tuple[JointSpec, ...] = tuple(joints)
        self.chains: tuple[KinematicChain, ...] = tuple(chains)

        self._lower = self._frozen([j.lower for j in self.joints])
        self._upper = self._frozen([j.upper for j in self.joints])
        self._velocity_limits = self._frozen([j.velocity_limit for j in self.joints])
        continuous = np.array([j.joint_type is JointType.CONTINUOUS for j in self.joints])
        continuous.setflags(write=False)
        self._continuous = continuous
        self._chain_indices = [np.asarray(c.joint_indices, dtype=np.intp) for c in self.chains]
        self._sample_low = np.where(continuous, -pi, self._lower)
        self._sample_high = np.where(continuous, pi, self._upper)

        if np.any(self._velocity_limits < 0):
            raise RobotModelError(f"robot '{robot_name}' has negative velocity limits")
        bounded = ~self._continuous
        if np.any(self._lower[bounded] > self._upper[bounded]):
            raise RobotModelError(f"robot '{robot_name}' has lower limits above upper limits")

    @staticmethod
    def _frozen(values: Sequence[float]) -> NDArray[np.float64]:
        arr = np.asarray(values, dtype=np.float64)
        arr.setflags(write=False)
        return arr

    # -----------------------------
    # Read-only properties
    # -----------------------------
    @property
    def num_joints(self) -> int:
        return len(self.joints)

    @property
    def joint_names(self) -> list[str]:
        return [j.name for j in self.joints]

    @property
    def lower_limits(self) -> NDArray[np.float64]:
        return self._lower

    @property
    def upper_limits(self) -> NDArray[np.float64]:
        return self._upper

    @property
    def velocity_limits(self) -> NDArray[np.float64]:
        return self._velocity_limits

    @property
    def continuous_mask(self) -> NDArray[np.bool_]:
        return self._continuous

    # -----------------------------
    # Forward kinematics and pose checks
    # -----------------------------
    def _check_length(self, q: ArrayLike, what: str = "configuration") -> Configuration:
        arr = np.asarray(q, dtype=np.float64).reshape(-1)
        if arr.shape[0] != self.num_joints:
            raise ValueError(
                f"{what} has {arr.shape[0]} entries, robot '{self.robot_name}' has {self.num_joints} joints"
            )
        return arr

    def forward_kinematics(self, q: ArrayLike, chain: int = 0) -> Pose:
        """End-effector (position, orientation) of one chain."""
        arr = self._check_length(q)
        T = self.chains[chain].ets.fkine(arr[self._chain_indices[chain]])
        return np.asarray(T.t, dtype=np.float64), UnitQuaternion(T.R)

    def forward_kinematics_all(self, q: ArrayLike) -> list[Pose]:
        return [self.forward_kinematics(q, i) for i in range(len(self.chains))]

    def pose_matches(
        self,
        q: ArrayLike,
        target_position: ArrayLike,
        target_orientation: UnitQuaternion,
    ) -> bool:
        """True if FK of q lies within the position/orientation tolerances of the target."""
        position, orientation = self.forward_kinematics(q)
        pos_err = float(np.linalg.norm(position - np.asarray(target_position, dtype=np.float64)))
        if not pos_err < POSITION_TOLERANCE:
            return False
        return orientation_error(orientation, target_orientation) < ORIENTATION_TOLERANCE

    # -----------------------------
    # Joint-space predicates
    # -----------------------------
    def velocity_feasible(self, q_a: ArrayLike, q_b: ArrayLike, delta_t: float) -> bool:
        """Per-joint |a_i - b_i| <= v_i * delta_t for every joint."""
        if delta_t < 0:
            raise ValueError(f"delta_t must be non-negative, got {delta_t}")
        a = self._check_length(q_a, "first configuration")
        b = self._check_length(q_b, "second configuration")
        return bool(np.all(np.abs(a - b) <= self._velocity_limits * delta_t))

    def velocity_feasible_matrix(self, Q_a: ArrayLike, Q_b: ArrayLike, delta_t: float) -> NDArray[np.bool_]:
        """
        Vectorized velocity_feasible for every row pair.
        Returns an (len(Q_a), len(Q_b)) boolean matrix.
        """
        if delta_t < 0:
            raise ValueError(f"delta_t must be non-negative, got {delta_t}")
        A = self._as_rows(Q_a)
        B = self._as_rows(Q_b)
        diff = np.abs(A[:, None, :] - B[None, :, :])
        return np.all(diff <= self._velocity_limits * delta_t, axis=2)

    def joint_distance(self, q_a: ArrayLike, q_b: ArrayLike) -> float:
        a = np.asarray(q_a, dtype=np.float64)
        b = np.asarray(q_b, dtype=np.float64)
        if a.shape != b.shape:
            raise ValueError(f"configuration shapes differ: {a.shape} vs {b.shape}")
        return float(np.linalg.norm(a - b))

    def joint_distance_matrix(self, Q_a: ArrayLike, Q_b: ArrayLike) -> NDArray[np.float64]:
        A = self._as_rows(Q_a)
        B = self._as_rows(Q_b)
        return np.linalg.norm(A[:, None, :] - B[None, :, :], axis=2)

    def _as_rows(self, Q: ArrayLike) -> NDArray[np.float64]:
        arr = np.asarray(Q, dtype=np.float64)
        if arr.size == 0:
            return arr.reshape(0, self.num_joints)
        arr = np.atleast_2d(arr)
        if arr.shape[1] != self.num_joints:
            raise ValueError(
                f"configurations have {arr.shape[1]} entries, robot '{self.robot_name}' has {self.num_joints} joints"
            )
        return arr

    # -----------------------------
    # Sampling
    # -----------------------------
    def random_configuration(self, rng: np.random.Generator) -> Configuration:
        """Continuous joints uniform over [-pi, pi), bounded joints uniform over [lower, upper]."""
        return rng.uniform(self._sample_low, self._sample_high)

    def within_limits(self, q: ArrayLike) -> bool:
        """Bounded joints inside [lower, upper]; continuous joints are unconstrained."""
        arr = self._check_length(q)
        ok = (arr >= self._lower) & (arr <= self._upper)
        return bool(np.all(ok | self._continuous))

    def __repr__(self) -> str:
        return f"KinematicsModel(robot_name={self.robot_name!r}, joints={self.joint_names}, chains={len(self.chains)})"
