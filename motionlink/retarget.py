"""
Retargeting facade: sample candidates for a trajectory, then link them.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Sequence
from pathlib import Path

import numpy as np

from motionlink.config import SETTINGS_DIR, LinkingConfig
from motionlink.description import (
    RobotSettings,
    build_kinematics_model,
    load_robot_settings,
    settings_path_for,
)
from motionlink.kinematics import KinematicsModel
from motionlink.linking import CandidateSampler, OracleSession, TrajectoryLinker
from motionlink.protocol.types import Motion, Waypoint
from motionlink.utils.ik import LevenbergMarquardtOracle, PoseOracle

logger = logging.getLogger(__name__)


class Retargeter:
    """
    Maps a Cartesian trajectory onto one robot.

    Each solve() call uses a fresh OracleSession, so one Retargeter can process
    several trajectories in sequence.
    """

    def __init__(
        self,
        model: KinematicsModel,
        oracle: PoseOracle,
        config: LinkingConfig | None = None,
        starting_config: Sequence[float] | None = None,
    ) -> None:
        self.model = model
        self.oracle = oracle
        self.config = config or LinkingConfig()
        self.starting_config = starting_config
        self.rng = np.random.default_rng(self.config.seed)
        self.last_sampler: CandidateSampler | None = None
        self.last_linker: TrajectoryLinker | None = None

    @classmethod
    def from_settings(
        cls,
        robot_name: str,
        settings_dir: Path = SETTINGS_DIR,
        config: LinkingConfig | None = None,
    ) -> "Retargeter":
        path = settings_path_for(robot_name, settings_dir)
        logger.info(f"Loading robot settings from {path}")
        settings = load_robot_settings(path, robot_name=robot_name)
        return cls.from_robot_settings(settings, config)

    @classmethod
    def from_robot_settings(
        cls, settings: RobotSettings, config: LinkingConfig | None = None
    ) -> "Retargeter":
        config = config or LinkingConfig()
        if config.seed is None and settings.seed is not None:
            config = dataclasses.replace(config, seed=settings.seed)
        model = build_kinematics_model(settings)
        solver = settings.solver
        oracle = LevenbergMarquardtOracle(
            model,
            reach_iterations=solver.reach_iterations,
            track_iterations=solver.track_iterations,
            tolerance=solver.tolerance,
            joint_limits=solver.joint_limits,
            track_step_limit=solver.track_step_limit,
        )
        return cls(model, oracle, config, starting_config=settings.starting_config)

    def solve(self, trajectory: Sequence[Waypoint]) -> Motion:
        """Sample candidates, link them and return the optimal motion."""
        if not trajectory:
            raise ValueError("trajectory has no waypoints")
        session = OracleSession(self.model, self.oracle, self.rng, initial_state=self.starting_config)
        sampler = CandidateSampler(
            session,
            trajectory,
            quota=self.config.quota,
            tolerance=self.config.cluster_tolerance,
            min_cluster_size=self.config.cluster_min_size,
            max_reach_attempts=self.config.max_reach_attempts,
        )
        self.last_sampler = sampler
        self.last_linker = None
        table = sampler.sample()
        logger.info(
            f"Sampled {sum(len(c) for c in table)} candidates "
            f"({session.reach_calls} reach / {session.track_calls} track queries)"
        )
        linker = TrajectoryLinker(self.model, trajectory, table)
        self.last_linker = linker
        return linker.link()
