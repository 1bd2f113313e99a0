"""
Trajectory-linking engine: candidate sampling plus dynamic-programming linking.
"""

from .clustering import NOISE, cluster_configurations, cluster_representatives
from .linker import UNREACHED, CandidateNode, CandidateTable, TrajectoryLinker
from .sampler import CandidateSampler
from .session import OracleSession

__all__ = [
    "NOISE",
    "UNREACHED",
    "CandidateNode",
    "CandidateSampler",
    "CandidateTable",
    "OracleSession",
    "TrajectoryLinker",
    "cluster_configurations",
    "cluster_representatives",
]
