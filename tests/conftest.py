"""
Pytest configuration and shared fixtures.

The planning tests run against small analytic robots instead of URDF
models: forward and inverse kinematics are closed form, so every expected
pose and joint vector can be computed by hand.
"""

import math
import tempfile
from pathlib import Path
from typing import Callable, Optional, Sequence

import numpy as np
import pytest
from compas.geometry import Frame, Point, Vector

from screwmotion.core.config import PlannerConfig
from screwmotion.core.exceptions import RobotError
from screwmotion.core.robot import (
    JointGroup,
    JointModel,
    JointType,
    KinematicModel,
    VariableBounds,
)


def _wrap(angle: float) -> float:
    return math.atan2(math.sin(angle), math.cos(angle))


def _planar_frame(x: float, y: float, yaw: float) -> Frame:
    return Frame(
        Point(x, y, 0.0),
        Vector(math.cos(yaw), math.sin(yaw), 0.0),
        Vector(-math.sin(yaw), math.cos(yaw), 0.0),
    )


def _planar_pose(frame: Frame) -> Optional[tuple[float, float, float]]:
    """(x, y, yaw) of a frame lying in the XY plane, None otherwise."""
    if abs(frame.point[2]) > 1e-9 or abs(frame.zaxis[2] - 1.0) > 1e-9:
        return None
    return frame.point[0], frame.point[1], math.atan2(frame.xaxis[1], frame.xaxis[0])


class AnalyticModel(KinematicModel):
    """Base for the test robots: fixed groups and an optional collision predicate."""

    planning_frame = "world"
    ee_frame = "ee"

    def __init__(
        self,
        groups: dict[str, JointGroup],
        in_collision: Optional[Callable[[np.ndarray], bool]] = None,
    ) -> None:
        self.groups = groups
        self.in_collision = in_collision
        self.ik_calls = 0

    def get_joint_group(self, name: str) -> JointGroup:
        if name not in self.groups:
            raise RobotError(f"Unknown move group: {name}")
        return self.groups[name]

    def is_collision_free(self, group: JointGroup, positions: Sequence[float]) -> bool:
        if self.in_collision is None:
            return True
        return not self.in_collision(np.asarray(positions, dtype=float))

    def _check_frame(self, frame: str) -> None:
        if frame != self.ee_frame:
            raise RobotError(f"Unknown link: {frame}")


class XYYawModel(AnalyticModel):
    """
    Mobile base: prismatic x and y in [-2, 2], revolute yaw in [-pi, pi].

    IK is unique and ignores the seed.
    """

    def __init__(self, in_collision=None) -> None:
        group = JointGroup(
            name="base",
            active_joints=(
                JointModel("x", JointType.PRISMATIC, (VariableBounds(-2.0, 2.0),)),
                JointModel("y", JointType.PRISMATIC, (VariableBounds(-2.0, 2.0),)),
                JointModel("yaw", JointType.REVOLUTE, (VariableBounds(-math.pi, math.pi),)),
            ),
        )
        super().__init__({"base": group}, in_collision)

    def forward_kinematics(self, group, positions, frame):
        self._check_frame(frame)
        x, y, yaw = (float(v) for v in positions)
        return _planar_frame(x, y, yaw)

    def inverse_kinematics(self, group, pose, frame, seed):
        self._check_frame(frame)
        self.ik_calls += 1
        planar = _planar_pose(pose)
        if planar is None:
            return None
        solution = np.array(planar, dtype=float)
        if np.any(np.abs(solution[:2]) > 2.0):
            return None
        return solution


class PlanarArmModel(AnalyticModel):
    """
    Planar 3R arm with link lengths 1.0, 1.0 and 0.5, every joint in [-pi, pi].

    IK has an elbow-up and an elbow-down branch; the sign of the seed's
    elbow angle selects which one is returned.
    """

    lengths = (1.0, 1.0, 0.5)

    def __init__(self, in_collision=None) -> None:
        bounds = (VariableBounds(-math.pi, math.pi),)
        group = JointGroup(
            name="arm",
            active_joints=tuple(
                JointModel(f"joint_{i}", JointType.REVOLUTE, bounds) for i in (1, 2, 3)
            ),
        )
        super().__init__({"arm": group}, in_collision)

    def forward_kinematics(self, group, positions, frame):
        self._check_frame(frame)
        q1, q2, q3 = (float(v) for v in positions)
        l1, l2, l3 = self.lengths
        a1, a2, a3 = q1, q1 + q2, q1 + q2 + q3
        x = l1 * math.cos(a1) + l2 * math.cos(a2) + l3 * math.cos(a3)
        y = l1 * math.sin(a1) + l2 * math.sin(a2) + l3 * math.sin(a3)
        return _planar_frame(x, y, a3)

    def inverse_kinematics(self, group, pose, frame, seed):
        self._check_frame(frame)
        self.ik_calls += 1
        planar = _planar_pose(pose)
        if planar is None:
            return None
        x, y, phi = planar
        l1, l2, l3 = self.lengths
        wx, wy = x - l3 * math.cos(phi), y - l3 * math.sin(phi)

        c2 = (wx * wx + wy * wy - l1 * l1 - l2 * l2) / (2.0 * l1 * l2)
        if abs(c2) > 1.0:
            return None
        q2 = math.acos(c2)
        if seed[1] < 0.0:
            q2 = -q2
        q1 = math.atan2(wy, wx) - math.atan2(l2 * math.sin(q2), l1 + l2 * math.cos(q2))
        q1 = _wrap(q1)
        q3 = _wrap(phi - q1 - q2)
        return np.array([q1, q2, q3], dtype=float)


class UnboundedModel(XYYawModel):
    """XY-yaw base whose yaw joint has no position limits."""

    def __init__(self) -> None:
        super().__init__()
        joints = self.groups["base"].active_joints
        self.groups["base"] = JointGroup(
            name="base",
            active_joints=joints[:2] + (JointModel("yaw", JointType.REVOLUTE, ()),),
        )


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config_dir(temp_dir):
    """Create a sample configuration directory structure."""
    config_dir = temp_dir / "config"
    (config_dir / "robots").mkdir(parents=True)
    (config_dir / "planners").mkdir(parents=True)

    robot_config = """
robot:
  name: "Test Robot"
  manufacturer: "Test Manufacturer"
  urdf_path: "/fake/path/robot.urdf"

kinematics:
  base_frame: "base_link"
  tool_frame: "tool0"

limits:
  joints:
    joint_1:
      min: -3.0
      max: 3.0

groups:
  arm: [joint_1, joint_2]

frames:
  hinge: [0.5, 0.0, 0.2, 0.0, 0.0, 0.0, 1.0]
"""
    (config_dir / "robots" / "test_robot.yaml").write_text(robot_config)

    planner_config = """
planner:
  planning_time: 2.0
  num_goal_candidates: 4
  seed: 11
"""
    (config_dir / "planners" / "fast.yaml").write_text(planner_config)

    return config_dir


@pytest.fixture
def xy_yaw_model():
    """Analytic mobile base with a unique IK solution."""
    return XYYawModel()


@pytest.fixture
def planar_arm_model():
    """Analytic planar 3R arm with two IK branches."""
    return PlanarArmModel()


@pytest.fixture
def unbounded_model():
    """Mobile base whose yaw joint is continuous."""
    return UnboundedModel()


@pytest.fixture
def make_xy_yaw_model():
    """Factory for mobile bases with a collision predicate over (x, y, yaw)."""
    return XYYawModel


@pytest.fixture
def planner_config():
    """Seeded planner settings with short time budgets."""
    return PlannerConfig(planning_time=1.0, simplification_time=0.1, seed=3)
