"""
Dynamic-programming linker over the per-waypoint candidate table.

Objective, compared lexicographically:
- primary: number of reconfigurations (discontinuous jumps between waypoints)
- secondary: accumulated joint-space travel along continuous edges

Costs are floats; UNREACHED is math.inf, so any reached cost compares strictly
smaller and UNREACHED + 1 == UNREACHED.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from motionlink.config import TRACE
from motionlink.kinematics import KinematicsModel
from motionlink.protocol.types import Motion, Waypoint
from motionlink.utils.errors import NoFeasiblePathError

logger = logging.getLogger(__name__)

UNREACHED: float = math.inf


@dataclass
class CandidateNode:
    """One configuration hypothesized for a waypoint, plus its DP bookkeeping."""
    configuration: NDArray[np.float64]
    primary_cost: float = UNREACHED
    secondary_cost: float = UNREACHED
    predecessor: int = 0  # index into the previous waypoint's list
    continuous: bool = False  # reached through a velocity-feasible edge

    @property
    def reached(self) -> bool:
        return self.primary_cost != UNREACHED

    def reset(self) -> None:
        self.primary_cost = UNREACHED
        self.secondary_cost = UNREACHED
        self.predecessor = 0
        self.continuous = False


CandidateTable = list[list[CandidateNode]]


def _lexicographic_best(primary: NDArray[np.float64], secondary: NDArray[np.float64]) -> int:
    """Index minimizing (primary, secondary); the first index wins full ties."""
    best_p = primary.min()
    tied = np.where(primary == best_p, secondary, np.inf)
    if np.all(np.isinf(tied)):
        return int(np.flatnonzero(primary == best_p)[0])
    return int(np.argmin(tied))


class TrajectoryLinker:
    """Selects one candidate per waypoint minimizing (reconfigurations, joint travel)."""

    def __init__(
        self,
        model: KinematicsModel,
        trajectory: Sequence[Waypoint],
        table: CandidateTable,
    ) -> None:
        if len(trajectory) != len(table):
            raise ValueError(
                f"trajectory has {len(trajectory)} waypoints but the table has {len(table)} columns"
            )
        if not trajectory:
            raise ValueError("cannot link an empty trajectory")
        self.model = model
        self.trajectory = list(trajectory)
        self.table = table
        self.path: list[int] = []
        self.best_cost: tuple[float, float] = (UNREACHED, UNREACHED)

    @property
    def reconfiguration_count(self) -> int:
        if self.best_cost[0] == UNREACHED:
            raise NoFeasiblePathError("linker has not produced a path")
        return int(self.best_cost[0])

    def _column(self, x: int) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
        nodes = self.table[x]
        if not nodes:
            return np.zeros((0, self.model.num_joints)), np.zeros(0), np.zeros(0)
        Q = np.vstack([node.configuration for node in nodes])
        P = np.array([node.primary_cost for node in nodes], dtype=np.float64)
        S = np.array([node.secondary_cost for node in nodes], dtype=np.float64)
        return Q, P, S

    def _relax(self, x: int) -> None:
        """Fill costs and predecessors of column x from the finished column x-1."""
        delta_t = self.trajectory[x].timestamp - self.trajectory[x - 1].timestamp
        Q_prev, P_prev, S_prev = self._column(x - 1)
        nodes = self.table[x]
        if not nodes:
            return

        # Reconfiguration floor, shared by every node of this column
        if len(P_prev):
            floor_idx = _lexicographic_best(P_prev + 1.0, S_prev)
            floor_p = P_prev[floor_idx] + 1.0
            floor_s = S_prev[floor_idx]
        else:
            floor_idx, floor_p, floor_s = 0, UNREACHED, UNREACHED

        Q_cur = np.vstack([node.configuration for node in nodes])
        if len(P_prev):
            feasible = self.model.velocity_feasible_matrix(Q_cur, Q_prev, delta_t)
            travel = self.model.joint_distance_matrix(Q_cur, Q_prev)
            cont_p = np.where(feasible, P_prev[None, :], np.inf)
            cont_s = S_prev[None, :] + travel
            best_p = cont_p.min(axis=1)
            tied = np.where(feasible & (cont_p == best_p[:, None]), cont_s, np.inf)
            best_idx = np.argmin(tied, axis=1)
            best_s = tied[np.arange(len(nodes)), best_idx]
        else:
            best_p = np.full(len(nodes), np.inf)
            best_s = best_p
            best_idx = np.zeros(len(nodes), dtype=int)

        n_continuous = 0
        for y, node in enumerate(nodes):
            # Continuous edges only override the floor on strictly lower primary cost
            if best_p[y] < floor_p:
                node.primary_cost = float(best_p[y])
                node.secondary_cost = float(best_s[y])
                node.predecessor = int(best_idx[y])
                node.continuous = True
                n_continuous += 1
            else:
                node.primary_cost = float(floor_p)
                node.secondary_cost = float(floor_s)
                node.predecessor = int(floor_idx)
                node.continuous = False
            logger.log(
                TRACE, "x=%d y=%d cost=(%s, %s) pred=%d continuous=%s",
                x, y, node.primary_cost, node.secondary_cost, node.predecessor, node.continuous,
            )
        logger.debug(
            "Column %d: dt=%.4f floor=(%s, %s) continuous=%d/%d",
            x, delta_t, floor_p, floor_s, n_continuous, len(nodes),
        )

    def _first_unreached_column(self) -> int | None:
        for x, nodes in enumerate(self.table):
            if not any(node.reached for node in nodes):
                return x
        return None

    def link(self) -> Motion:
        """Run the DP pass over the whole table and backtrace the optimal motion."""
        n = len(self.trajectory)
        logger.info("Running dynamic programming over %d waypoints", n)

        for nodes in self.table:
            for node in nodes:
                node.reset()
        for node in self.table[0]:
            node.primary_cost = 0.0
            node.secondary_cost = 0.0
            node.predecessor = 0

        for x in range(1, n):
            self._relax(x)

        _, P_last, S_last = self._column(n - 1)
        best_idx = _lexicographic_best(P_last, S_last) if len(P_last) else None
        if best_idx is None or P_last[best_idx] == UNREACHED:
            self.path = []
            self.best_cost = (UNREACHED, UNREACHED)
            x_bad = self._first_unreached_column()
            raise NoFeasiblePathError(
                f"no candidate chain reaches the final waypoint {n - 1} "
                f"(first unreachable waypoint: {x_bad}, "
                f"candidates there: {len(self.table[x_bad]) if x_bad is not None else 'n/a'})"
            )

        self.best_cost = (float(P_last[best_idx]), float(S_last[best_idx]))
        logger.info(
            "Min number of reconfigurations: %d (joint travel %.4f)",
            int(self.best_cost[0]), self.best_cost[1],
        )

        motion = Motion(robot_name=self.model.robot_name, joint_names=self.model.joint_names)
        path: list[int] = []
        idx = best_idx
        for i in range(n - 1, -1, -1):
            node = self.table[i][idx]
            path.append(idx)
            motion.data.append((self.trajectory[i].timestamp, node.configuration.copy()))
            idx = node.predecessor
        path.reverse()
        motion.data.reverse()
        self.path = path
        return motion
