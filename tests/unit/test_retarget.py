import numpy as np
import pytest

from motionlink.config import LinkingConfig
from motionlink.retarget import Retargeter
from motionlink.utils.errors import NoFeasiblePathError


def _config(**overrides):
    values = dict(quota=4, cluster_tolerance=0.05, cluster_min_size=1, seed=11)
    values.update(overrides)
    return LinkingConfig(**values)


@pytest.mark.unit
def test_smooth_line_needs_no_reconfiguration(planar_model, planar_oracle, line_trajectory):
    retargeter = Retargeter(planar_model, planar_oracle, _config())
    motion = retargeter.solve(line_trajectory)

    assert motion.robot_name == "planar"
    assert motion.joint_names == ["joint1", "joint2", "joint3"]
    assert motion.timestamps == [wp.timestamp for wp in line_trajectory]
    assert retargeter.last_linker.reconfiguration_count == 0

    for wp, (_, q) in zip(line_trajectory, motion.data):
        assert planar_model.pose_matches(q, wp.position, wp.orientation)
    for (t0, q0), (t1, q1) in zip(motion.data, motion.data[1:]):
        assert planar_model.velocity_feasible(q0, q1, t1 - t0)


@pytest.mark.unit
def test_fast_flip_forces_one_reconfiguration(planar_model, planar_oracle, waypoint_factory):
    # Half a turn of the tool in 10 ms is beyond every joint's velocity limit
    trajectory = [
        waypoint_factory(0.0, x=1.2, y=0.6, yaw=0.0),
        waypoint_factory(0.01, x=1.2, y=0.6, yaw=np.pi),
    ]
    retargeter = Retargeter(planar_model, planar_oracle, _config())
    motion = retargeter.solve(trajectory)
    assert len(motion.data) == 2
    assert retargeter.last_linker.reconfiguration_count == 1


@pytest.mark.unit
def test_unreachable_waypoint_has_no_path(planar_model, planar_oracle, waypoint_factory):
    trajectory = [
        waypoint_factory(0.0, x=1.2, y=0.6, yaw=0.3),
        waypoint_factory(0.1, x=4.0, y=0.0, yaw=0.0),
    ]
    retargeter = Retargeter(planar_model, planar_oracle, _config(max_reach_attempts=3))
    with pytest.raises(NoFeasiblePathError):
        retargeter.solve(trajectory)
    assert retargeter.last_sampler.exhausted == [1]


@pytest.mark.unit
def test_same_seed_same_motion(planar_model, planar_oracle, line_trajectory):
    first = Retargeter(planar_model, planar_oracle, _config(seed=5)).solve(line_trajectory)
    second = Retargeter(planar_model, planar_oracle, _config(seed=5)).solve(line_trajectory)
    assert np.array_equal(first.as_array(), second.as_array())


@pytest.mark.unit
def test_empty_trajectory_rejected(planar_model, planar_oracle):
    with pytest.raises(ValueError):
        Retargeter(planar_model, planar_oracle, _config()).solve([])


@pytest.mark.unit
@pytest.mark.parametrize("elbow", [1.0, -1.0], ids=["elbow-up", "elbow-down"])
def test_starting_config_selects_the_first_branch(planar_model, planar_oracle, line_trajectory, elbow):
    # One candidate per waypoint: the start reach is propagated through the whole line
    config = _config(quota=1)
    retargeter = Retargeter(planar_model, planar_oracle, config, starting_config=[0.0, elbow, 0.0])
    motion = retargeter.solve(line_trajectory)
    signs = {float(np.sign(np.sin(q[1]))) for _, q in motion.data}
    assert signs == {np.sign(elbow)}
