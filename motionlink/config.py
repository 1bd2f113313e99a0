"""
Central configuration for motionlink tunables and shared constants.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

TRACE: int = 5
logging.addLevelName(TRACE, "TRACE")
logging.TRACE = TRACE  # type: ignore[attr-defined]

logger = logging.getLogger(__name__)


def _env_int_optional(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}")
        return None
    # Zero or negative means "no cap", same as unset
    return value if value > 0 else None


# Pose acceptance tolerances (meters, radians)
POSITION_TOLERANCE: float = 1e-3
ORIENTATION_TOLERANCE: float = 1e-2

# Candidate sampling
CANDIDATE_QUOTA: int = int(os.getenv("MOTIONLINK_CANDIDATE_QUOTA", "300"))
CLUSTER_TOLERANCE: float = float(os.getenv("MOTIONLINK_CLUSTER_TOLERANCE", "0.05"))
CLUSTER_MIN_SIZE: int = int(os.getenv("MOTIONLINK_CLUSTER_MIN_SIZE", "2"))

# Unset retries reach queries without limit
MAX_REACH_ATTEMPTS: int | None = _env_int_optional("MOTIONLINK_MAX_REACH_ATTEMPTS")

# Solver iteration budgets
REACH_ITERATIONS: int = 1000
TRACK_ITERATIONS: int = 100
SOLVER_TOLERANCE: float = 1e-8
# Largest per-joint move (rad or m) a track query may make; null in robot settings disables it
TRACK_STEP_LIMIT: float = float(os.getenv("MOTIONLINK_TRACK_STEP_LIMIT", "0.5"))

RANDOM_SEED: int | None = _env_int_optional("MOTIONLINK_SEED")

# Batch driver defaults (overridable by env/CLI)
SETTINGS_DIR: Path = Path(os.getenv("MOTIONLINK_SETTINGS_DIR", "configs/robots"))
INPUT_DIR: Path = Path(os.getenv("MOTIONLINK_INPUT_DIR", "input_trajectories"))
OUTPUT_DIR: Path = Path(os.getenv("MOTIONLINK_OUTPUT_DIR", "output_motions"))
LOG_LEVEL_DEFAULT: str = "INFO"


@dataclass
class LinkingConfig:
    """Per-run tunables for candidate sampling."""

    quota: int = CANDIDATE_QUOTA
    cluster_tolerance: float = CLUSTER_TOLERANCE
    cluster_min_size: int = CLUSTER_MIN_SIZE
    max_reach_attempts: int | None = MAX_REACH_ATTEMPTS
    seed: int | None = RANDOM_SEED

    def __post_init__(self) -> None:
        if self.quota <= 0:
            raise ValueError(f"quota must be positive, got {self.quota}")
        if self.cluster_tolerance <= 0:
            raise ValueError(f"cluster_tolerance must be positive, got {self.cluster_tolerance}")
        if self.cluster_min_size < 1:
            raise ValueError(f"cluster_min_size must be >= 1, got {self.cluster_min_size}")
