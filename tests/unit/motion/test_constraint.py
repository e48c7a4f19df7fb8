"""
Tests for the screw constraint model.
"""

import math

import numpy as np
import pytest
from compas.geometry import Frame, Point, Vector

from screwmotion.core.geometry import ScrewAxis, pose_error
from screwmotion.motion.constraint import ScrewConstraintModel


@pytest.fixture
def start_pose():
    """End effector one metre along x, facing +x."""
    return Frame(Point(1.0, 0.0, 0.0), Vector(1, 0, 0), Vector(0, 1, 0))


def _assert_same_pose(a, b, tol=1e-9):
    pos_err, orient_err = pose_error(a, b)
    assert pos_err < tol
    assert orient_err < 1e-6


class TestScrewConstraintModel:
    """Tests for pose_at along different screws."""

    @pytest.mark.parametrize("pitch", [0.0, 0.1, -0.05])
    def test_zero_progress_is_start(self, start_pose, pitch):
        axis = ScrewAxis(direction=(0, 0, 1), origin=(0, 0, 0), pitch=pitch)
        model = ScrewConstraintModel(axis, start_pose)

        _assert_same_pose(model.pose_at(0.0), start_pose)

    def test_pose_at_returns_copy(self, start_pose):
        model = ScrewConstraintModel(ScrewAxis((0, 0, 1), (0, 0, 0)), start_pose)

        pose = model.pose_at(0.0)
        pose.point = Point(5, 5, 5)

        assert np.allclose(model.pose_at(0.0).point, [1.0, 0.0, 0.0])

    def test_pure_rotation(self, start_pose):
        """Test a quarter turn about z through the origin."""
        model = ScrewConstraintModel(ScrewAxis((0, 0, 1), (0, 0, 0)), start_pose)

        pose = model.pose_at(math.pi / 2)

        assert np.allclose(pose.point, [0.0, 1.0, 0.0], atol=1e-9)
        assert np.allclose(pose.xaxis, [0.0, 1.0, 0.0], atol=1e-9)

    def test_rotation_about_offset_axis(self, start_pose):
        """Test an axis through the start point leaves the position fixed."""
        model = ScrewConstraintModel(ScrewAxis((0, 0, 1), (1, 0, 0)), start_pose)

        pose = model.pose_at(math.pi)

        assert np.allclose(pose.point, [1.0, 0.0, 0.0], atol=1e-9)
        assert np.allclose(pose.xaxis, [-1.0, 0.0, 0.0], atol=1e-9)

    def test_pitch_translates_along_axis(self, start_pose):
        model = ScrewConstraintModel(ScrewAxis((0, 0, 1), (0, 0, 0), pitch=0.1), start_pose)

        pose = model.pose_at(2 * math.pi)

        assert np.allclose(pose.point, [1.0, 0.0, 0.2 * math.pi], atol=1e-9)
        assert np.allclose(pose.xaxis, [1.0, 0.0, 0.0], atol=1e-9)

    def test_pure_translation(self, start_pose):
        axis = ScrewAxis((0, 1, 0), (0, 0, 0), is_pure_translation=True)
        model = ScrewConstraintModel(axis, start_pose)

        pose = model.pose_at(0.3)

        assert np.allclose(pose.point, [1.0, 0.3, 0.0])
        _assert_same_pose(Frame(pose.point, start_pose.xaxis, start_pose.yaxis), pose)

    def test_goal_pose(self, start_pose):
        model = ScrewConstraintModel(ScrewAxis((0, 0, 1), (0, 0, 0), pitch=0.2), start_pose)

        _assert_same_pose(model.goal_pose(1.2), model.pose_at(1.2))

    def test_composition(self, start_pose):
        """Test moving by a then b equals moving by a + b."""
        axis = ScrewAxis((0, 0.6, 0.8), (0.2, -0.1, 0.0), pitch=0.05)
        model = ScrewConstraintModel(axis, start_pose)

        halfway = ScrewConstraintModel(axis, model.pose_at(0.4))

        _assert_same_pose(halfway.pose_at(0.7), model.pose_at(1.1), tol=1e-7)

    def test_start_pose_is_copied(self, start_pose):
        model = ScrewConstraintModel(ScrewAxis((0, 0, 1), (0, 0, 0)), start_pose)
        start_pose.point = Point(9, 9, 9)

        assert np.allclose(model.start_pose.point, [1.0, 0.0, 0.0])
