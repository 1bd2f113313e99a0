"""
Custom exception types for the motionlink retargeting pipeline.
Keep this focused and non-redundant; prefer built-ins where appropriate.
"""


class MotionLinkError(RuntimeError):
    """Base class for failures that abort one retargeting unit of work."""

    prefix = "MOTIONLINK ERROR"

    def __init__(self, message: str):
        self.original_message = message
        super().__init__(f"{self.prefix}: {message}")

    def __str__(self):
        return f"{self.prefix}: {self.original_message}"


class RobotModelError(MotionLinkError):
    """Robot description unusable (missing links or limits, multiple chains, bad lengths)."""

    prefix = "Robot Model Error"


class TrajectoryFormatError(MotionLinkError):
    """Malformed trajectory file or record."""

    prefix = "Trajectory Format Error"


class SamplingExhaustedError(MotionLinkError):
    """Reach attempts for one waypoint ran out before a valid configuration was found."""

    prefix = "Sampling Exhausted"

    def __init__(self, message: str, attempts: int):
        self.attempts = attempts
        super().__init__(message)


class NoFeasiblePathError(MotionLinkError):
    """No chain of candidates connects the first waypoint to the last."""

    prefix = "No Feasible Path"
