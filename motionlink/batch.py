"""
Batch driver: retarget every trajectory file of a directory.

Each file is an independent unit of work. A failure while loading, setting up the
robot, solving or writing one file is logged with the file and stage and the run
moves on to the next file.
"""

from __future__ import annotations

import argparse
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from motionlink.config import (
    INPUT_DIR,
    LOG_LEVEL_DEFAULT,
    OUTPUT_DIR,
    SETTINGS_DIR,
    TRACE,
    LinkingConfig,
)
from motionlink.protocol.csv_io import load_trajectory, robot_name_from_path, save_motion
from motionlink.retarget import Retargeter
from motionlink.utils.errors import RobotModelError

logger = logging.getLogger(__name__)

RetargeterFactory = Callable[[str], Retargeter]


@dataclass
class BatchReport:
    """Outcome of one batch run."""
    written: list[Path] = field(default_factory=list)
    failed: dict[Path, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def discover_trajectories(input_dir: Path) -> list[Path]:
    return sorted(p for p in Path(input_dir).glob("*.csv") if p.is_file())


class _CachedFactory:
    """Build each robot's Retargeter once per run; setup failures are remembered too."""

    def __init__(self, factory: RetargeterFactory) -> None:
        self._factory = factory
        self._cache: dict[str, Retargeter] = {}
        self._failures: dict[str, str] = {}

    def __call__(self, robot_name: str) -> Retargeter:
        if robot_name in self._failures:
            raise RobotModelError(f"setup of '{robot_name}' failed earlier: {self._failures[robot_name]}")
        if robot_name not in self._cache:
            try:
                self._cache[robot_name] = self._factory(robot_name)
            except Exception as e:
                self._failures[robot_name] = str(e)
                raise
        return self._cache[robot_name]


class BatchStageError(RuntimeError):
    """Wraps the failure of one file with the stage it happened in."""

    def __init__(self, path: Path, stage: str, error: Exception):
        self.path = path
        self.stage = stage
        self.error = error
        super().__init__(f"{path.name}: {stage} failed: {error}")


def process_file(
    path: Path,
    input_dir: Path,
    output_dir: Path,
    factory: RetargeterFactory,
) -> Path:
    """Retarget one trajectory file and write its motion under output_dir."""
    stage = "load"
    try:
        trajectory = load_trajectory(path)
        robot_name = robot_name_from_path(path)
        stage = "setup"
        retargeter = factory(robot_name)
        stage = "solve"
        motion = retargeter.solve(trajectory)
        stage = "write"
        return save_motion(Path(output_dir) / Path(path).relative_to(input_dir), motion)
    except Exception as e:
        raise BatchStageError(path, stage, e) from e


def run_batch(
    input_dir: Path = INPUT_DIR,
    output_dir: Path = OUTPUT_DIR,
    settings_dir: Path = SETTINGS_DIR,
    config: LinkingConfig | None = None,
    factory: RetargeterFactory | None = None,
) -> BatchReport:
    """Process every trajectory in input_dir; one failing file never stops the others."""
    config = config or LinkingConfig()
    if factory is None:
        def factory(robot_name: str) -> Retargeter:
            return Retargeter.from_settings(robot_name, settings_dir, config)
    cached = _CachedFactory(factory)

    report = BatchReport()
    paths = discover_trajectories(input_dir)
    if not paths:
        logger.warning(f"No trajectory files found in {input_dir}")
    for path in paths:
        logger.info(f"Processing {path}")
        try:
            out = process_file(path, input_dir, output_dir, cached)
        except BatchStageError as e:
            logger.error(str(e))
            logger.debug("Traceback for %s", path, exc_info=e.error)
            report.failed[path] = f"{e.stage}: {e.error}"
            continue
        logger.info(f"Saved motion to: {out}")
        report.written.append(out)

    logger.info(f"Batch finished: {len(report.written)} written, {len(report.failed)} failed")
    return report


def _log_level(args: argparse.Namespace) -> int:
    if args.log_level:
        return TRACE if args.log_level == "TRACE" else getattr(logging, args.log_level)
    if args.verbose >= 3:
        return TRACE
    if args.verbose >= 2:
        return logging.DEBUG
    if args.verbose == 1:
        return logging.INFO
    if args.quiet:
        return logging.WARNING
    return getattr(logging, LOG_LEVEL_DEFAULT)


def build_parser() -> argparse.ArgumentParser:
    defaults = LinkingConfig()
    parser = argparse.ArgumentParser(
        description="Retarget end-effector trajectories onto robot joint motions"
    )
    parser.add_argument("--input-dir", type=Path, default=INPUT_DIR, help="Directory of trajectory CSV files")
    parser.add_argument("--output-dir", type=Path, default=OUTPUT_DIR, help="Directory for motion CSV files")
    parser.add_argument("--settings-dir", type=Path, default=SETTINGS_DIR, help="Directory of <robot>.yaml settings")
    parser.add_argument("--quota", type=int, default=defaults.quota, help="Candidates per waypoint")
    parser.add_argument("--max-reach-attempts", type=int, default=defaults.max_reach_attempts,
                        help="Give up on a waypoint after this many failed reach attempts (default: never)")
    parser.add_argument("--seed", type=int, default=defaults.seed, help="Random seed for reproducible sampling")

    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Increase verbosity; -v=INFO, -vv=DEBUG, -vvv=TRACE')
    parser.add_argument('-q', '--quiet', action='store_true',
                        help='Enable quiet logging (WARNING level)')
    parser.add_argument('--log-level', choices=['TRACE', 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Set specific log level')
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the batch retargeting run."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=_log_level(args),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = LinkingConfig(
            quota=args.quota,
            max_reach_attempts=args.max_reach_attempts if args.max_reach_attempts and args.max_reach_attempts > 0 else None,
            seed=args.seed,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    logger.debug(f"Working directory: {os.getcwd()}")
    report = run_batch(args.input_dir, args.output_dir, args.settings_dir, config)
    return 0 if report.ok else 1


if __name__ == '__main__':
    exit(main())
