"""
Pytest configuration and shared fixtures for motionlink tests.

Provides markers, small kinematic models built directly from ETS, an analytic
pose oracle for the planar arm, and trajectory helpers used across the suite.
"""

import math
import os
import sys

import numpy as np
import pytest
from roboticstoolbox import ET
from spatialmath import UnitQuaternion

# Add the parent directory to Python path so we can import the package modules
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from motionlink.kinematics import JointSpec, JointType, KinematicChain, KinematicsModel
from motionlink.protocol.types import Waypoint

PLANAR_LINKS = (1.0, 1.0, 0.5)


def wrap_to_pi(a):
    return (np.asarray(a, dtype=float) + np.pi) % (2 * np.pi) - np.pi


class PlanarArmOracle:
    """
    Closed-form IK for the planar 3R arm.

    The elbow branch follows the sign of sin(initial_guess[1]). Track queries keep
    every joint on the 2*pi branch nearest the initial guess. Unreachable targets,
    or targets off the arm's plane, return NaN.
    """

    def __init__(self):
        self.calls = 0

    def solve(self, initial_guess, target_position, target_orientation, continuity_required):
        self.calls += 1
        guess = np.asarray(initial_guess, dtype=float)
        p = np.asarray(target_position, dtype=float)
        R = target_orientation.R
        if abs(p[2]) > 1e-9 or abs(R[2, 2] - 1.0) > 1e-9:
            return np.full(3, np.nan)
        phi = math.atan2(R[1, 0], R[0, 0])

        l1, l2, l3 = PLANAR_LINKS
        wx = p[0] - l3 * math.cos(phi)
        wy = p[1] - l3 * math.sin(phi)
        c2 = (wx * wx + wy * wy - l1 * l1 - l2 * l2) / (2 * l1 * l2)
        if abs(c2) > 1.0:
            return np.full(3, np.nan)
        s2 = math.sqrt(1.0 - c2 * c2)
        if math.sin(guess[1]) < 0:
            s2 = -s2
        q2 = math.atan2(s2, c2)
        q1 = math.atan2(wy, wx) - math.atan2(l2 * s2, l1 + l2 * c2)
        q3 = phi - q1 - q2
        q = wrap_to_pi([q1, q2, q3])
        if continuity_required:
            q = guess + wrap_to_pi(q - guess)
        return q


def planar_pose(x, y, yaw):
    return np.array([x, y, 0.0]), UnitQuaternion.Rz(yaw)


def make_waypoint(t, x=0.0, y=0.0, yaw=0.0):
    position, orientation = planar_pose(x, y, yaw)
    return Waypoint(timestamp=float(t), position=position, orientation=orientation)


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that exercise roboticstoolbox solvers and URDF parsing"
    )
    config.addinivalue_line(
        "markers", "slow: Slow-running tests (randomized solver restarts)"
    )


# ============================================================================
# MODEL FIXTURES
# ============================================================================

@pytest.fixture
def planar_model():
    """Planar 3R arm (link lengths 1.0, 1.0, 0.5) with continuous joints."""
    l1, l2, l3 = PLANAR_LINKS
    ets = ET.Rz() * ET.tx(l1) * ET.Rz() * ET.tx(l2) * ET.Rz() * ET.tx(l3)
    joints = [
        JointSpec(f"joint{i + 1}", JointType.CONTINUOUS, -math.inf, math.inf, 2.0)
        for i in range(3)
    ]
    chain = KinematicChain(ets=ets, joint_indices=(0, 1, 2), base_link="base", ee_link="tool")
    return KinematicsModel("planar", joints, [chain])


@pytest.fixture
def slider_model():
    """Single bounded joint in [-30, 30] with velocity limit 1."""
    ets = ET.Rz() * ET.tx(1.0)
    joints = [JointSpec("joint1", JointType.BOUNDED, -30.0, 30.0, 1.0)]
    return KinematicsModel("slider", joints, [KinematicChain(ets=ets, joint_indices=(0,))])


@pytest.fixture
def planar_oracle():
    return PlanarArmOracle()


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def line_trajectory():
    """Ten waypoints on a short straight line well inside the planar workspace."""
    return [make_waypoint(0.1 * i, x=1.2 + 0.02 * i, y=0.6, yaw=0.3) for i in range(10)]


@pytest.fixture
def waypoint_factory():
    return make_waypoint
