"""
Per-robot settings and robot-description loading.

A settings file ``<settings_dir>/<robot_name>.yaml`` names the URDF (relative to
the settings file), the base/end-effector link pairs and the solver budget::

    urdf: ur5.urdf
    base_links: [base_link]
    ee_links: [tool0]
    joint_ordering: null        # optional explicit joint order
    starting_config: null       # optional initial guess of the first reach
    seed: null                  # optional sampling seed when the run sets none
    solver:
      reach_iterations: 1000
      track_iterations: 100
      tolerance: 1.0e-8
      joint_limits: true
      track_step_limit: 0.5     # null lets track queries move freely
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import roboticstoolbox as rtb
import yaml  # type: ignore[import-untyped]
from roboticstoolbox.tools.urdf import URDF

from motionlink.config import (
    REACH_ITERATIONS,
    SETTINGS_DIR,
    SOLVER_TOLERANCE,
    TRACK_ITERATIONS,
    TRACK_STEP_LIMIT,
)
from motionlink.kinematics import JointSpec, JointType, KinematicChain, KinematicsModel
from motionlink.utils.errors import RobotModelError

logger = logging.getLogger(__name__)

_BOUNDED_URDF_TYPES = ("revolute", "prismatic")


@dataclass
class SolverSettings:
    """Budget and acceptance options of the pose oracle."""

    reach_iterations: int = REACH_ITERATIONS
    track_iterations: int = TRACK_ITERATIONS
    tolerance: float = SOLVER_TOLERANCE
    joint_limits: bool = True
    track_step_limit: Optional[float] = TRACK_STEP_LIMIT

    def as_dict(self) -> Dict[str, object]:
        return {
            "reach_iterations": self.reach_iterations,
            "track_iterations": self.track_iterations,
            "tolerance": self.tolerance,
            "joint_limits": self.joint_limits,
            "track_step_limit": self.track_step_limit,
        }


@dataclass
class RobotSettings:
    """Everything needed to build the kinematics model and oracle of one robot."""

    robot_name: str
    urdf_path: Path
    base_links: List[str]
    ee_links: List[str]
    joint_ordering: Optional[List[str]] = None
    starting_config: Optional[List[float]] = None
    seed: Optional[int] = None
    solver: SolverSettings = field(default_factory=SolverSettings)

    def as_dict(self) -> Dict[str, object]:
        return {
            "robot_name": self.robot_name,
            "urdf_path": str(self.urdf_path),
            "base_links": list(self.base_links),
            "ee_links": list(self.ee_links),
            "joint_ordering": list(self.joint_ordering) if self.joint_ordering else None,
            "starting_config": list(self.starting_config) if self.starting_config else None,
            "seed": self.seed,
            "solver": self.solver.as_dict(),
        }


def settings_path_for(robot_name: str, settings_dir: Path = SETTINGS_DIR) -> Path:
    return Path(settings_dir) / f"{robot_name}.yaml"


def _load_solver(data: Mapping[str, Any] | None) -> SolverSettings:
    data = data or {}
    step = data.get("track_step_limit", TRACK_STEP_LIMIT)
    return SolverSettings(
        reach_iterations=int(data.get("reach_iterations", REACH_ITERATIONS)),
        track_iterations=int(data.get("track_iterations", TRACK_ITERATIONS)),
        tolerance=float(data.get("tolerance", SOLVER_TOLERANCE)),
        joint_limits=bool(data.get("joint_limits", True)),
        track_step_limit=float(step) if step is not None else None,
    )


def load_robot_settings(path: Path, robot_name: str | None = None) -> RobotSettings:
    """Load RobotSettings from a YAML file; the robot name defaults to the file stem."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as fp:
            raw = yaml.safe_load(fp) or {}
    except FileNotFoundError as e:
        raise RobotModelError(f"no settings file {path}") from e
    if not isinstance(raw, Mapping):
        raise RobotModelError(f"{path} does not contain a settings mapping")

    try:
        urdf = raw["urdf"]
        base_links = [str(b) for b in raw["base_links"]]
        ee_links = [str(e) for e in raw["ee_links"]]
    except KeyError as e:
        raise RobotModelError(f"{path} is missing required key {e}") from e
    if len(base_links) != len(ee_links):
        raise RobotModelError(
            f"{path}: {len(base_links)} base links but {len(ee_links)} end-effector links"
        )

    ordering = raw.get("joint_ordering")
    start = raw.get("starting_config")
    return RobotSettings(
        robot_name=robot_name or path.stem,
        urdf_path=(path.parent / urdf).resolve(),
        base_links=base_links,
        ee_links=ee_links,
        joint_ordering=[str(j) for j in ordering] if ordering else None,
        starting_config=[float(v) for v in start] if start else None,
        seed=int(raw["seed"]) if raw.get("seed") is not None else None,
        solver=_load_solver(raw.get("solver")),
    )


def _load_urdf(urdf_path: Path) -> URDF:
    """Parse the URDF the same way for every robot."""
    try:
        urdf_string = urdf_path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise RobotModelError(f"URDF not found: {urdf_path}") from e
    return URDF.loadstr(urdf_string, str(urdf_path), base_path=urdf_path.parent)


def _joint_spec(urdf_joint: Any) -> JointSpec:
    kind = urdf_joint.joint_type
    limit = urdf_joint.limit
    if limit is None or limit.velocity is None:
        raise RobotModelError(f"joint '{urdf_joint.name}' has no velocity limit")
    if kind == "continuous":
        lower = limit.lower if limit.lower is not None else -math.inf
        upper = limit.upper if limit.upper is not None else math.inf
        return JointSpec(urdf_joint.name, JointType.CONTINUOUS, float(lower), float(upper), float(limit.velocity))
    if kind in _BOUNDED_URDF_TYPES:
        if limit.lower is None or limit.upper is None:
            raise RobotModelError(f"{kind} joint '{urdf_joint.name}' has no position limits")
        return JointSpec(urdf_joint.name, JointType.BOUNDED, float(limit.lower), float(limit.upper), float(limit.velocity))
    raise RobotModelError(f"joint '{urdf_joint.name}' has unsupported type '{kind}'")


def _chain_joint_links(robot: rtb.Robot, base_link: str, ee_link: str) -> list[Any]:
    links = robot.link_dict
    if base_link not in links:
        raise RobotModelError(f"base link '{base_link}' not found in '{robot.name}'")
    if ee_link not in links:
        raise RobotModelError(f"end-effector link '{ee_link}' not found in '{robot.name}'")
    path = []
    link = links[ee_link]
    while link is not None and link.name != base_link:
        path.append(link)
        link = link.parent
    if link is None:
        raise RobotModelError(f"'{base_link}' is not an ancestor of '{ee_link}'")
    return [lk for lk in reversed(path) if lk.isjoint]


def build_kinematics_model(settings: RobotSettings, *, require_single_chain: bool = True) -> KinematicsModel:
    """Build the kinematics model described by the settings' URDF and link pairs."""
    urdf = _load_urdf(settings.urdf_path)
    robot = rtb.Robot(urdf.elinks, name=urdf.name)
    joints_by_child = {j.child: j for j in urdf.joints}

    joints: list[JointSpec] = []
    chains: list[KinematicChain] = []
    for base_link, ee_link in zip(settings.base_links, settings.ee_links):
        chain_specs = []
        for link in _chain_joint_links(robot, base_link, ee_link):
            if link.name not in joints_by_child:
                raise RobotModelError(f"no URDF joint drives link '{link.name}'")
            chain_specs.append(_joint_spec(joints_by_child[link.name]))
        ets = robot.ets(start=base_link, end=ee_link)
        offset = len(joints)
        joints.extend(chain_specs)
        chains.append(
            KinematicChain(
                ets=ets,
                joint_indices=tuple(range(offset, offset + len(chain_specs))),
                base_link=base_link,
                ee_link=ee_link,
            )
        )

    if settings.joint_ordering:
        joints, chains = _apply_joint_ordering(joints, chains, settings.joint_ordering)

    logger.info(f"Lower joint limits: {[j.lower for j in joints]}")
    logger.info(f"Upper joint limits: {[j.upper for j in joints]}")
    logger.info(f"Joint velocity limits: {[j.velocity_limit for j in joints]}")

    model = KinematicsModel(
        settings.robot_name, joints, chains, require_single_chain=require_single_chain
    )
    logger.info(
        f"Robot '{settings.robot_name}' created: {len(chains)} chain(s), {model.num_joints} dofs"
    )
    if settings.starting_config is not None:
        if len(settings.starting_config) != model.num_joints:
            raise RobotModelError(
                f"starting_config has {len(settings.starting_config)} values for {model.num_joints} joints"
            )
        for chain, (position, _) in zip(model.chains, model.forward_kinematics_all(settings.starting_config)):
            logger.debug(f"Start pose {chain.base_link}->{chain.ee_link}: {np.round(position, 4).tolist()}")
    return model


def _apply_joint_ordering(
    joints: list[JointSpec], chains: list[KinematicChain], ordering: list[str]
) -> tuple[list[JointSpec], list[KinematicChain]]:
    by_name = {j.name: j for j in joints}
    missing = [name for name in ordering if name not in by_name]
    if missing:
        raise RobotModelError(f"joint_ordering names unknown joints: {missing}")
    position = {name: i for i, name in enumerate(ordering)}
    reordered_chains = []
    for chain in chains:
        names = [joints[i].name for i in chain.joint_indices]
        unordered = [name for name in names if name not in position]
        if unordered:
            raise RobotModelError(f"joint_ordering does not list chain joints {unordered}")
        reordered_chains.append(
            KinematicChain(
                ets=chain.ets,
                joint_indices=tuple(position[name] for name in names),
                base_link=chain.base_link,
                ee_link=chain.ee_link,
            )
        )
    return [by_name[name] for name in ordering], reordered_chains
