import numpy as np
import pytest

from motionlink.protocol.csv_io import load_trajectory, robot_name_from_path, save_motion
from motionlink.protocol.types import Motion
from motionlink.utils.errors import TrajectoryFormatError

HEADER = "time,x,y,z,qx,qy,qz,qw\n"


def _write(path, body):
    path.write_text(HEADER + body)
    return path


@pytest.mark.unit
def test_load_trajectory_normalizes_quaternions(tmp_path):
    path = _write(tmp_path / "ur5_pick.csv", "0.0,1,2,3,0,0,0,2\n0.5,1.1,2,3,0,0,1,1\n")
    trajectory = load_trajectory(path)

    assert [wp.timestamp for wp in trajectory] == [0.0, 0.5]
    assert np.allclose(trajectory[0].position, [1, 2, 3])
    assert np.allclose(trajectory[0].orientation.A, [1, 0, 0, 0])
    s = np.sqrt(0.5)
    assert np.allclose(trajectory[1].orientation.A, [s, 0, 0, s])


@pytest.mark.unit
@pytest.mark.parametrize(
    "body",
    [
        "",
        "0.0,1,2,3,0,0,0\n",
        "0.0,1,2,3,0,0,0,1\n0.1,1,2,abc,0,0,0,1\n",
        "0.0,1,2,3,0,0,0,0\n",
        "0.0,1,2,nan,0,0,0,1\n",
    ],
    ids=["no-rows", "seven-columns", "non-numeric", "zero-quaternion", "nan-position"],
)
def test_malformed_trajectories_rejected(tmp_path, body):
    path = _write(tmp_path / "ur5_bad.csv", body)
    with pytest.raises(TrajectoryFormatError):
        load_trajectory(path)


@pytest.mark.unit
def test_robot_name_is_prefix_before_underscore():
    assert robot_name_from_path("traj/ur5_pick_and_place.csv") == "ur5"


@pytest.mark.unit
def test_save_motion_writes_header_and_exact_values(tmp_path):
    motion = Motion(robot_name="ur5", joint_names=["shoulder", "elbow"])
    motion.data.append((0.0, np.array([0.1, -1.0 / 3.0])))
    motion.data.append((0.25, np.array([0.2, 2.0 / 3.0])))

    out = save_motion(tmp_path / "nested" / "ur5_pick.csv", motion)

    lines = out.read_text().splitlines()
    assert lines[0] == "time,ur5-shoulder,ur5-elbow"
    assert len(lines) == 3
    data = np.loadtxt(out, delimiter=",", skiprows=1)
    assert np.array_equal(data, motion.as_array())


@pytest.mark.unit
def test_save_motion_rejects_wrong_width(tmp_path):
    motion = Motion(robot_name="ur5", joint_names=["a", "b"], data=[(0.0, np.array([1.0]))])
    with pytest.raises(ValueError):
        save_motion(tmp_path / "out.csv", motion)
