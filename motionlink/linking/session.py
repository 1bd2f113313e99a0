"""
Stateful reach/track session around a pose oracle.

The session owns the random generator and the "current configuration" used for
continuity. It is not thread-safe: give each concurrent sampler its own session.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import ArrayLike, NDArray
from spatialmath import UnitQuaternion

from motionlink.config import TRACE
from motionlink.kinematics import KinematicsModel
from motionlink.utils.errors import SamplingExhaustedError
from motionlink.utils.ik import PoseOracle, has_nan

logger = logging.getLogger(__name__)

_EMPTY = np.zeros(0, dtype=np.float64)


class OracleSession:
    """Randomized reach and continuation-based track queries with pose validation."""

    def __init__(
        self,
        model: KinematicsModel,
        oracle: PoseOracle,
        rng: np.random.Generator | None = None,
        initial_state: ArrayLike | None = None,
    ) -> None:
        self.model = model
        self.oracle = oracle
        self.rng = rng if rng is not None else np.random.default_rng()
        # A configured start state is the initial guess of the first reach
        self._seeded = initial_state is not None
        if initial_state is None:
            self.state = model.random_configuration(self.rng)
        else:
            state = np.asarray(initial_state, dtype=np.float64).copy()
            if state.shape != (model.num_joints,):
                raise ValueError(
                    f"initial_state has shape {state.shape}, expected ({model.num_joints},)"
                )
            self.state = state
        self.reach_calls = 0
        self.track_calls = 0

    def _query(
        self, position: NDArray[np.float64], orientation: UnitQuaternion, continuity_required: bool
    ) -> tuple[bool, NDArray[np.float64]]:
        q = np.asarray(
            self.oracle.solve(self.state.copy(), position, orientation, continuity_required),
            dtype=np.float64,
        )
        if q.shape != self.state.shape or has_nan(q):
            # Oracle failure: keep the previous valid configuration
            logger.log(TRACE, "Oracle returned no solution (continuity=%s)", continuity_required)
            return False, _EMPTY
        if not self.model.pose_matches(q, position, orientation):
            logger.log(TRACE, "Oracle result misses target pose (continuity=%s)", continuity_required)
            return False, _EMPTY
        if not self.model.within_limits(q):
            logger.log(TRACE, "Oracle result outside joint limits: %s", np.round(q, 4).tolist())
            return False, _EMPTY
        self.state = q
        return True, q.copy()

    def try_reach(
        self, position: NDArray[np.float64], orientation: UnitQuaternion
    ) -> tuple[bool, NDArray[np.float64]]:
        """Reseed from a random configuration and solve without continuity.

        The first reach of a session built with an initial_state starts from that state.
        """
        self.reach_calls += 1
        if self._seeded:
            self._seeded = False
        else:
            self.state = self.model.random_configuration(self.rng)
        return self._query(position, orientation, continuity_required=False)

    def try_track(
        self, position: NDArray[np.float64], orientation: UnitQuaternion
    ) -> tuple[bool, NDArray[np.float64]]:
        """Solve near the current state; state advances only on success."""
        self.track_calls += 1
        return self._query(position, orientation, continuity_required=True)

    def reach_with_retries(
        self,
        position: NDArray[np.float64],
        orientation: UnitQuaternion,
        max_attempts: int | None = None,
    ) -> NDArray[np.float64]:
        """
        Repeat try_reach until it succeeds.

        With max_attempts=None this never gives up, which loops forever on a pose
        outside the workspace. A positive cap raises SamplingExhaustedError instead.
        """
        attempts = 0
        while max_attempts is None or attempts < max_attempts:
            attempts += 1
            found, q = self.try_reach(position, orientation)
            if found:
                return q
        raise SamplingExhaustedError(
            f"no configuration reaches position {np.round(position, 4).tolist()} "
            f"after {attempts} attempts",
            attempts=attempts,
        )
