import math
from types import SimpleNamespace

import pytest

from motionlink.config import TRACK_STEP_LIMIT
from motionlink.description import _joint_spec, load_robot_settings, settings_path_for
from motionlink.kinematics import JointType
from motionlink.utils.errors import RobotModelError


def _urdf_joint(name, joint_type, lower=None, upper=None, velocity=1.0, limit=True):
    lim = SimpleNamespace(lower=lower, upper=upper, velocity=velocity) if limit else None
    return SimpleNamespace(name=name, joint_type=joint_type, limit=lim)


@pytest.mark.unit
def test_load_settings_with_defaults(tmp_path):
    path = tmp_path / "arm.yaml"
    path.write_text("urdf: models/arm.urdf\nbase_links: [base_link]\nee_links: [tool0]\n")

    settings = load_robot_settings(path)

    assert settings.robot_name == "arm"
    assert settings.urdf_path == (tmp_path / "models" / "arm.urdf").resolve()
    assert settings.base_links == ["base_link"]
    assert settings.ee_links == ["tool0"]
    assert settings.joint_ordering is None
    assert settings.seed is None
    assert settings.solver.reach_iterations == 1000
    assert settings.solver.track_iterations == 100
    assert settings.solver.joint_limits is True


@pytest.mark.unit
def test_load_settings_with_solver_block(tmp_path):
    path = settings_path_for("ur5", tmp_path)
    path.write_text(
        "urdf: ur5.urdf\n"
        "base_links: [base_link]\n"
        "ee_links: [tool0]\n"
        "joint_ordering: [j1, j2]\n"
        "starting_config: [0.0, 1.5]\n"
        "seed: 7\n"
        "solver:\n"
        "  reach_iterations: 200\n"
        "  track_step_limit: 0.5\n"
    )

    settings = load_robot_settings(path, robot_name="ur5")

    assert path.name == "ur5.yaml"
    assert settings.joint_ordering == ["j1", "j2"]
    assert settings.starting_config == [0.0, 1.5]
    assert settings.seed == 7
    assert settings.solver.reach_iterations == 200
    assert settings.solver.track_step_limit == 0.5
    assert settings.as_dict()["solver"]["track_iterations"] == 100


@pytest.mark.unit
@pytest.mark.parametrize(
    "text",
    [
        "base_links: [a]\nee_links: [b]\n",
        "urdf: x.urdf\nbase_links: [a, c]\nee_links: [b]\n",
        "- just\n- a list\n",
    ],
    ids=["missing-urdf", "unpaired-links", "not-a-mapping"],
)
def test_invalid_settings_rejected(tmp_path, text):
    path = tmp_path / "bad.yaml"
    path.write_text(text)
    with pytest.raises(RobotModelError):
        load_robot_settings(path)


@pytest.mark.unit
def test_missing_settings_file(tmp_path):
    with pytest.raises(RobotModelError):
        load_robot_settings(tmp_path / "nope.yaml")


@pytest.mark.unit
def test_joint_spec_types():
    spec = _joint_spec(_urdf_joint("wrist", "continuous", velocity=3.0))
    assert spec.joint_type is JointType.CONTINUOUS
    assert spec.lower == -math.inf and spec.upper == math.inf
    assert spec.velocity_limit == 3.0

    spec = _joint_spec(_urdf_joint("elbow", "revolute", -2.0, 2.0, 1.5))
    assert spec.joint_type is JointType.BOUNDED
    assert (spec.lower, spec.upper, spec.velocity_limit) == (-2.0, 2.0, 1.5)


@pytest.mark.unit
def test_joint_spec_rejects_incomplete_limits():
    with pytest.raises(RobotModelError):
        _joint_spec(_urdf_joint("a", "revolute", limit=False))
    with pytest.raises(RobotModelError):
        _joint_spec(_urdf_joint("b", "revolute", lower=None, upper=1.0))
    with pytest.raises(RobotModelError):
        _joint_spec(_urdf_joint("c", "floating", -1.0, 1.0))


@pytest.mark.unit
def test_track_step_limit_defaults_to_finite_value(tmp_path):
    path = tmp_path / "arm.yaml"
    path.write_text("urdf: arm.urdf\nbase_links: [b]\nee_links: [e]\n")
    assert load_robot_settings(path).solver.track_step_limit == TRACK_STEP_LIMIT

    path.write_text("urdf: arm.urdf\nbase_links: [b]\nee_links: [e]\nsolver:\n  track_step_limit: null\n")
    assert load_robot_settings(path).solver.track_step_limit is None
