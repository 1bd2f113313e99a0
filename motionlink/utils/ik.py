"""
IK Helper Functions and Utilities
Pose oracle contract and the Levenberg-Marquardt oracle used for reach/track queries.
"""

import logging
from collections import namedtuple
from typing import Protocol

import numpy as np
from numpy.typing import ArrayLike, NDArray
from roboticstoolbox import ETS
from spatialmath import SE3, UnitQuaternion

from motionlink.config import (
    REACH_ITERATIONS,
    SOLVER_TOLERANCE,
    TRACE,
    TRACK_ITERATIONS,
    TRACK_STEP_LIMIT,
)
from motionlink.kinematics import KinematicsModel

logger = logging.getLogger(__name__)


class PoseOracle(Protocol):
    """
    Single-pose IK solver consumed as a black box.

    A NaN in any component of the returned configuration signals failure.
    """

    def solve(
        self,
        initial_guess: NDArray[np.float64],
        target_position: NDArray[np.float64],
        target_orientation: UnitQuaternion,
        continuity_required: bool,
    ) -> NDArray[np.float64]: ...


def has_nan(q: ArrayLike) -> bool:
    return bool(np.any(np.isnan(np.asarray(q, dtype=float))))


def unwrap_angles(q_solution, q_current, mask=None):
    """
    Vectorized unwrap: bring solution angles near current by adding/subtracting 2*pi.
    This minimizes joint motion between consecutive configurations.
    Only entries selected by mask are unwrapped (all when mask is None).
    """
    qs = np.asarray(q_solution, dtype=float)
    qc = np.asarray(q_current, dtype=float)
    diff = qs - qc
    q_unwrapped = qs.copy()
    sel = np.ones(qs.shape, dtype=bool) if mask is None else np.asarray(mask, dtype=bool)
    q_unwrapped[sel & (diff > np.pi)] -= 2 * np.pi
    q_unwrapped[sel & (diff < -np.pi)] += 2 * np.pi
    return q_unwrapped


def target_se3(position: ArrayLike, orientation: UnitQuaternion) -> SE3:
    return SE3.Rt(orientation.R, np.asarray(position, dtype=float).reshape(3))


IKResult = namedtuple('IKResult', 'success q iterations residual')


def solve_ik(
    ets: ETS,
    target_pose: SE3,
    q0,
    ilimit: int,
    tol: float = SOLVER_TOLERANCE,
    joint_limits: bool = True,
):
    """
    IK solver

    Parameters
    ----------
    ets : ETS
        Chain to solve for
    target_pose : SE3
        Target pose to reach
    q0 : array_like
        Initial guess for the chain joints
    ilimit : int
        Iteration budget of the single search
    tol : float, optional
        Residual tolerance for convergence
    joint_limits : bool, optional
        Reject solutions outside the chain's joint limits

    Returns
    -------
    IKResult
        success - True if solution found
        q - Joint configuration (or None if failed)
        iterations - Number of iterations used
        residual - Final error value
    """
    result = ets.ik_LM(
        target_pose,
        q0=np.asarray(q0, dtype=float),
        ilimit=ilimit,
        slimit=1,
        tol=tol,
        joint_limits=joint_limits,
        k=0.0,
        method="sugihara"
    )
    q = result[0]
    success = result[1] > 0
    iterations = result[2]
    remaining = result[4]
    return IKResult(
        success=bool(success),
        q=np.asarray(q, dtype=float) if success else None,
        iterations=iterations,
        residual=remaining,
    )


class LevenbergMarquardtOracle:
    """
    Pose oracle backed by roboticstoolbox's Levenberg-Marquardt solver.

    Reach queries (continuity_required=False) get the large iteration budget and
    start from the caller's random seed. Track queries get the small budget, start
    from the current state, unwrap continuous joints next to it and are rejected when
    a joint moves further than track_step_limit.
    """

    def __init__(
        self,
        model: KinematicsModel,
        *,
        reach_iterations: int = REACH_ITERATIONS,
        track_iterations: int = TRACK_ITERATIONS,
        tolerance: float = SOLVER_TOLERANCE,
        joint_limits: bool = True,
        track_step_limit: float | None = TRACK_STEP_LIMIT,
    ) -> None:
        self.model = model
        self.chain = model.chains[0]
        self._indices = np.asarray(self.chain.joint_indices, dtype=np.intp)
        self.reach_iterations = reach_iterations
        self.track_iterations = track_iterations
        self.tolerance = tolerance
        self.joint_limits = joint_limits
        self.track_step_limit = track_step_limit

    def _failure(self) -> NDArray[np.float64]:
        return np.full(self.model.num_joints, np.nan)

    def solve(
        self,
        initial_guess: NDArray[np.float64],
        target_position: NDArray[np.float64],
        target_orientation: UnitQuaternion,
        continuity_required: bool,
    ) -> NDArray[np.float64]:
        q_init = np.asarray(initial_guess, dtype=float)
        ilimit = self.track_iterations if continuity_required else self.reach_iterations
        result = solve_ik(
            self.chain.ets,
            target_se3(target_position, target_orientation),
            q_init[self._indices],
            ilimit=ilimit,
            tol=self.tolerance,
            joint_limits=self.joint_limits,
        )
        if not result.success:
            logger.log(TRACE, "LM failed after %d iterations (residual=%.3g)", result.iterations, result.residual)
            return self._failure()

        q = q_init.copy()
        q[self._indices] = result.q
        if not continuity_required:
            return q

        q = unwrap_angles(q, q_init, mask=self.model.continuous_mask)
        if self.track_step_limit is not None:
            step = float(np.max(np.abs(q - q_init)))
            if step > self.track_step_limit:
                logger.log(TRACE, "Track step %.4f exceeds limit %.4f", step, self.track_step_limit)
                return self._failure()
        return q
