"""Per-waypoint candidate generation: random reach, greedy forward tracking, clustering."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray

from motionlink.config import CANDIDATE_QUOTA, CLUSTER_MIN_SIZE, CLUSTER_TOLERANCE, TRACE
from motionlink.linking.clustering import cluster_representatives
from motionlink.linking.linker import CandidateNode, CandidateTable
from motionlink.linking.session import OracleSession
from motionlink.protocol.types import Waypoint
from motionlink.utils.errors import SamplingExhaustedError

logger = logging.getLogger(__name__)


class CandidateSampler:
    """
    Builds the candidate table, one waypoint at a time.

    Every successful reach at waypoint i is propagated forward with track queries;
    the configurations it produces for later waypoints are pooled and clustered when
    those waypoints are processed, so one expensive reach seeds many cheap candidates.
    """

    def __init__(
        self,
        session: OracleSession,
        trajectory: Sequence[Waypoint],
        *,
        quota: int = CANDIDATE_QUOTA,
        tolerance: float = CLUSTER_TOLERANCE,
        min_cluster_size: int = CLUSTER_MIN_SIZE,
        max_reach_attempts: int | None = None,
    ) -> None:
        if quota <= 0:
            raise ValueError(f"quota must be positive, got {quota}")
        self.session = session
        self.trajectory = list(trajectory)
        self.quota = quota
        self.tolerance = tolerance
        self.min_cluster_size = min_cluster_size
        self.max_reach_attempts = max_reach_attempts
        # Waypoint indices whose reach attempts ran out before the quota was met
        self.exhausted: list[int] = []
        self.propagated: list[int] = []

    def sample(self) -> CandidateTable:
        n = len(self.trajectory)
        pools: list[list[NDArray[np.float64]]] = [[] for _ in range(n)]
        table: CandidateTable = [[] for _ in range(n)]
        self.exhausted = []
        self.propagated = [0] * n

        for i, waypoint in enumerate(self.trajectory):
            logger.info("Constructing candidates for waypoint %d / %d", i + 1, n)
            nodes = table[i]

            seeds = cluster_representatives(pools[i], self.tolerance, self.min_cluster_size) if pools[i] else []
            for q in seeds[: self.quota]:
                nodes.append(CandidateNode(q))
            self.propagated[i] = len(pools[i])
            logger.debug(
                "Waypoint %d: %d propagated configurations -> %d cluster seeds",
                i, len(pools[i]), min(len(seeds), self.quota),
            )
            pools[i] = []

            while len(nodes) < self.quota:
                try:
                    q = self.session.reach_with_retries(
                        waypoint.position, waypoint.orientation, self.max_reach_attempts
                    )
                except SamplingExhaustedError as e:
                    logger.warning(
                        "Waypoint %d: %s; keeping %d candidates", i, e.original_message, len(nodes)
                    )
                    self.exhausted.append(i)
                    break
                nodes.append(CandidateNode(q))
                self._propagate(i, pools)

        return table

    def _propagate(self, start: int, pools: list[list[NDArray[np.float64]]]) -> None:
        """Track forward from the session state until a waypoint is lost."""
        r = start
        while r < len(self.trajectory):
            waypoint = self.trajectory[r]
            found, q = self.session.try_track(waypoint.position, waypoint.orientation)
            if not found:
                break
            # The start waypoint's pool was already consumed
            if r > start:
                pools[r].append(q)
            r += 1
        logger.log(TRACE, "Propagated from waypoint %d through %d", start, r - 1)
