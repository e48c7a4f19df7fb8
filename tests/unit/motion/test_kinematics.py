"""
Tests for the IK solver and the COMPAS-backed kinematic model.
"""

import math
from unittest.mock import MagicMock

import numpy as np
import pytest
from compas.geometry import Frame, Point, Vector
from compas_robots.model import Joint

from screwmotion.core.exceptions import RobotError
from screwmotion.core.robot import JointGroup, JointModel, JointType, VariableBounds
from screwmotion.motion.kinematics import CompasKinematicModel, IKSolver


def translation_fk(q):
    """Three prismatic axes: the frame origin is the joint vector."""
    return Frame(Point(*q), Vector(1, 0, 0), Vector(0, 1, 0))


def planar_fk(q):
    x, y, yaw = q
    return Frame(
        Point(x, y, 0.0),
        Vector(math.cos(yaw), math.sin(yaw), 0.0),
        Vector(-math.sin(yaw), math.cos(yaw), 0.0),
    )


BOUNDS = [(-1.0, 1.0)] * 3


class TestIKSolver:
    """Tests for IKSolver."""

    def test_solves_translation(self):
        solver = IKSolver(translation_fk, BOUNDS)
        target = translation_fk([0.3, -0.2, 0.5])

        solution = solver.solve(target)

        assert solution is not None
        assert np.allclose(solution, [0.3, -0.2, 0.5], atol=1e-3)

    def test_solves_with_orientation(self):
        solver = IKSolver(planar_fk, BOUNDS)
        target = planar_fk([0.2, 0.1, 0.4])

        solution = solver.solve(target, initial_guess=[0.0, 0.0, 0.3])

        assert solution is not None
        assert np.allclose(solution, [0.2, 0.1, 0.4], atol=5e-3)

    def test_out_of_bounds_target(self):
        solver = IKSolver(translation_fk, BOUNDS)

        assert solver.solve(translation_fk([2.0, 0.0, 0.0])) is None

    def test_seed_clipped_to_bounds(self):
        solver = IKSolver(translation_fk, BOUNDS)
        target = translation_fk([0.9, 0.0, 0.0])

        solution = solver.solve(target, initial_guess=[5.0, 5.0, 5.0])

        assert solution is not None
        assert np.all(solution <= 1.0)

    def test_fk_failure(self):
        fk = MagicMock(side_effect=RobotError("no such link"))
        solver = IKSolver(fk, BOUNDS)

        assert solver.solve(Frame.worldXY()) is None


def _mock_joint(name, joint_type):
    joint = MagicMock()
    joint.name = name
    joint.type = joint_type
    joint.is_configurable.return_value = joint_type != Joint.FIXED
    return joint


@pytest.fixture
def prismatic_group():
    bounds = (VariableBounds(-1.0, 1.0),)
    return JointGroup(
        "xyz",
        tuple(JointModel(name, JointType.PRISMATIC, bounds) for name in ("px", "py", "pz")),
    )


@pytest.fixture
def mock_robot(prismatic_group):
    """RobotInstance stand-in whose FK places the link at (px, py, pz)."""
    robot = MagicMock()
    robot.base_frame = "base_link"
    robot.joint_groups.return_value = {"xyz": prismatic_group}
    robot.model.joints = [
        _mock_joint("px", Joint.PRISMATIC),
        _mock_joint("py", Joint.PRISMATIC),
        _mock_joint("mount", Joint.FIXED),
        _mock_joint("pz", Joint.PRISMATIC),
    ]

    def forward_kinematics(config, link_name=None):
        values = dict(zip(config.joint_names, config.joint_values))
        return translation_fk([values["px"], values["py"], values["pz"]])

    robot.model.forward_kinematics.side_effect = forward_kinematics
    return robot


class TestCompasKinematicModel:
    """Tests for CompasKinematicModel."""

    def test_planning_frame(self, mock_robot):
        model = CompasKinematicModel(mock_robot)
        assert model.planning_frame == "base_link"

    def test_get_joint_group(self, mock_robot, prismatic_group):
        model = CompasKinematicModel(mock_robot)

        assert model.get_joint_group("xyz") is prismatic_group
        with pytest.raises(RobotError, match="Unknown move group"):
            model.get_joint_group("arm")

    def test_forward_kinematics(self, mock_robot, prismatic_group):
        model = CompasKinematicModel(mock_robot)

        frame = model.forward_kinematics(prismatic_group, [0.1, 0.2, 0.3], "tool0")

        assert np.allclose(frame.point, [0.1, 0.2, 0.3])
        config = mock_robot.model.forward_kinematics.call_args.args[0]
        assert config.joint_names == ["px", "py", "pz"]
        assert mock_robot.model.forward_kinematics.call_args.kwargs["link_name"] == "tool0"

    def test_forward_kinematics_wrong_size(self, mock_robot, prismatic_group):
        model = CompasKinematicModel(mock_robot)

        with pytest.raises(RobotError, match="does not match"):
            model.forward_kinematics(prismatic_group, [0.1], "tool0")

    def test_forward_kinematics_failure_wrapped(self, mock_robot, prismatic_group):
        mock_robot.model.forward_kinematics.side_effect = KeyError("tool9")
        model = CompasKinematicModel(mock_robot)

        with pytest.raises(RobotError, match="Forward kinematics failed"):
            model.forward_kinematics(prismatic_group, [0.0, 0.0, 0.0], "tool9")

    def test_planar_group_rejected(self, mock_robot):
        model = CompasKinematicModel(mock_robot)
        group = JointGroup("base", (JointModel("base", JointType.PLANAR),))

        with pytest.raises(RobotError, match="planar"):
            model.forward_kinematics(group, [0.0, 0.0, 0.0], "tool0")

    def test_inverse_kinematics(self, mock_robot, prismatic_group):
        model = CompasKinematicModel(mock_robot)
        target = translation_fk([0.4, -0.3, 0.2])

        solution = model.inverse_kinematics(prismatic_group, target, "tool0", [0.0, 0.0, 0.0])

        assert solution is not None
        assert np.allclose(solution, [0.4, -0.3, 0.2], atol=1e-3)

    def test_collision_without_checker(self, mock_robot, prismatic_group):
        model = CompasKinematicModel(mock_robot)
        assert model.is_collision_free(prismatic_group, [0.0, 0.0, 0.0])

    def test_collision_delegated(self, mock_robot, prismatic_group):
        checker = MagicMock()
        checker.check_collision.return_value = True
        model = CompasKinematicModel(mock_robot, collision_checker=checker)

        assert not model.is_collision_free(prismatic_group, [0.1, 0.2, 0.3])
        checker.check_collision.assert_called_once_with({"px": 0.1, "py": 0.2, "pz": 0.3})
