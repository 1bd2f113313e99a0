"""
motionlink Python Package

Retargets timed end-effector trajectories onto robot joint motions. Candidate
joint configurations are sampled per waypoint with an IK oracle and linked into
the motion with the fewest reconfigurations and the least joint travel.

Key components:
- Retargeter: Builds model and oracle from robot settings and solves trajectories
- KinematicsModel: Joint limits, velocity limits and forward kinematics of a robot
- LevenbergMarquardtOracle: Pose oracle backed by roboticstoolbox ik_LM
- CandidateSampler / TrajectoryLinker: Candidate sampling and optimal linking
- run_batch: Retargets every trajectory file of a directory
"""

from ._version import __version__
from .batch import BatchReport, run_batch
from .config import LinkingConfig
from .kinematics import KinematicsModel
from .linking import CandidateSampler, OracleSession, TrajectoryLinker
from .protocol.types import Motion, Waypoint
from .retarget import Retargeter
from .utils.ik import LevenbergMarquardtOracle, PoseOracle

__all__ = [
    "__version__",
    "BatchReport",
    "CandidateSampler",
    "KinematicsModel",
    "LevenbergMarquardtOracle",
    "LinkingConfig",
    "Motion",
    "OracleSession",
    "PoseOracle",
    "Retargeter",
    "TrajectoryLinker",
    "Waypoint",
    "run_batch",
]
