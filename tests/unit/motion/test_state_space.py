"""
Tests for the constrained state space.
"""

import math

import numpy as np
import pytest

from screwmotion.core.exceptions import StateSpaceError
from screwmotion.core.robot import JointGroup, JointModel, JointType, VariableBounds
from screwmotion.motion.sampling import ConstrainedSampler
from screwmotion.motion.state_space import (
    EE_FRAME_PARAM,
    PLANAR_TRANSLATION_BOUND,
    ConstrainedState,
    ConstrainedStateSpace,
    JointSpaceBounds,
    SolutionPath,
)


@pytest.fixture
def space(xy_yaw_model):
    return ConstrainedStateSpace.from_joint_group(
        xy_yaw_model.get_joint_group("base"), math.pi / 2
    )


class TestJointSpaceBounds:
    """Tests for deriving bounds from move groups."""

    def test_from_joint_group(self, xy_yaw_model):
        bounds = JointSpaceBounds.from_joint_group(xy_yaw_model.get_joint_group("base"))

        assert bounds.names == ["x", "y", "yaw"]
        assert np.allclose(bounds.low, [-2.0, -2.0, -math.pi])
        assert np.allclose(bounds.high, [2.0, 2.0, math.pi])

    def test_planar_joint(self):
        group = JointGroup("base", (JointModel("base", JointType.PLANAR),))

        bounds = JointSpaceBounds.from_joint_group(group)

        assert bounds.names == ["base/x", "base/y", "base/theta"]
        assert bounds.high[0] == PLANAR_TRANSLATION_BOUND
        assert bounds.low[2] == -math.pi

    def test_unbounded_joint(self, unbounded_model):
        with pytest.raises(StateSpaceError) as exc_info:
            JointSpaceBounds.from_joint_group(unbounded_model.get_joint_group("base"))

        assert exc_info.value.joint_name == "yaw"

    def test_floating_joint(self):
        group = JointGroup("g", (JointModel("free", JointType.FLOATING, (VariableBounds(),)),))

        with pytest.raises(StateSpaceError, match="cannot be planned"):
            JointSpaceBounds.from_joint_group(group)

    def test_inverted_bounds(self):
        with pytest.raises(StateSpaceError, match="Invalid bounds"):
            JointSpaceBounds().add("a", 1.0, -1.0)

    def test_contains_and_clamp(self):
        bounds = JointSpaceBounds()
        bounds.add("a", -1.0, 1.0)
        bounds.add("b", 0.0, 2.0)

        assert bounds.contains([0.5, 1.5])
        assert not bounds.contains([1.5, 1.5])
        assert not bounds.contains([0.5])
        assert np.allclose(bounds.clamp([3.0, -1.0]), [1.0, 0.0])
        assert bounds.extent == pytest.approx(math.sqrt(8.0))


class TestConstrainedStateSpace:
    """Tests for ConstrainedStateSpace."""

    def test_dimensions(self, space):
        assert space.joint_dimension == 3
        assert space.dimension == 4
        assert space.joint_names == ["x", "y", "yaw"]

    @pytest.mark.parametrize("theta", [0.0, -1.0, float("nan"), float("inf")])
    def test_invalid_theta_max(self, theta):
        with pytest.raises(StateSpaceError, match="positive"):
            ConstrainedStateSpace(theta)

    def test_satisfies_bounds(self, space):
        assert space.satisfies_bounds(ConstrainedState(0.0, [0.0, 0.0, 0.0]))
        assert space.satisfies_bounds(ConstrainedState(math.pi / 2, [2.0, -2.0, math.pi]))
        assert not space.satisfies_bounds(ConstrainedState(-0.01, [0.0, 0.0, 0.0]))
        assert not space.satisfies_bounds(ConstrainedState(2.0, [0.0, 0.0, 0.0]))
        assert not space.satisfies_bounds(ConstrainedState(0.5, [2.5, 0.0, 0.0]))

    def test_enforce_bounds(self, space):
        state = space.enforce_bounds(ConstrainedState(5.0, [3.0, -3.0, 0.5]))

        assert state.theta == pytest.approx(math.pi / 2)
        assert np.allclose(state.joints, [2.0, -2.0, 0.5])

    def test_distance(self, space):
        a = ConstrainedState(0.0, [0.0, 0.0, 0.0])
        b = ConstrainedState(0.5, [0.3, 0.4, 0.0])

        assert space.distance(a, b) == pytest.approx(1.0)
        assert space.distances(a, np.array([b.as_vector(), a.as_vector()])) == pytest.approx(
            [1.0, 0.0]
        )

    def test_interpolate(self, space):
        a = ConstrainedState(0.0, [0.0, 0.0, 0.0])
        b = ConstrainedState(1.0, [1.0, -1.0, 0.5])

        mid = space.interpolate(a, b, 0.5)

        assert mid.theta == pytest.approx(0.5)
        assert np.allclose(mid.joints, [0.5, -0.5, 0.25])

    def test_make_state_wrong_size(self, space):
        with pytest.raises(StateSpaceError, match="does not match"):
            space.make_state(0.0, [0.0, 0.0])

    def test_segment_count(self, space):
        a = ConstrainedState(0.0, [0.0, 0.0, 0.0])
        step = space.longest_valid_segment_length

        assert space.valid_segment_count(a, a) == 1
        assert space.valid_segment_count(a, ConstrainedState(2.5 * step, [0.0, 0.0, 0.0])) == 3

    def test_lock(self, space):
        space.params.add(EE_FRAME_PARAM, "ee")
        space.lock()

        assert space.locked
        assert space.params[EE_FRAME_PARAM] == "ee"
        with pytest.raises(StateSpaceError):
            space.add_joint_dimension("z", 0.0, 1.0)
        with pytest.raises(StateSpaceError):
            space.params.add("other", "value")

    def test_duplicate_param(self, space):
        space.params.add(EE_FRAME_PARAM, "ee")

        with pytest.raises(StateSpaceError, match="already set"):
            space.params.add(EE_FRAME_PARAM, "tool0")

    def test_default_sampler(self, space):
        assert isinstance(space.alloc_sampler(), ConstrainedSampler)

    def test_custom_sampler_allocator(self, space):
        space.set_sampler_allocator(lambda s: ("custom", s))
        assert space.alloc_sampler() == ("custom", space)


class TestSolutionPath:
    """Tests for SolutionPath."""

    def test_length(self, space):
        path = SolutionPath(
            space,
            [
                ConstrainedState(0.0, [0.0, 0.0, 0.0]),
                ConstrainedState(0.5, [0.0, 0.0, 0.0]),
                ConstrainedState(1.0, [0.3, 0.4, 0.0]),
            ],
        )

        assert path.state_count == 3
        assert path.length() == pytest.approx(1.5)

    def test_interpolate_keeps_endpoints_and_order(self, space):
        a = ConstrainedState(0.0, [0.0, 0.0, 0.0])
        b = ConstrainedState(math.pi / 2, [0.0, 0.0, math.pi / 2])
        path = SolutionPath(space, [a, b])

        path.interpolate()

        thetas = [s.theta for s in path]
        assert len(path) == space.valid_segment_count(a, b) + 1
        assert thetas[0] == 0.0
        assert thetas[-1] == pytest.approx(math.pi / 2)
        assert all(t2 > t1 for t1, t2 in zip(thetas, thetas[1:]))

        for s1, s2 in zip(path.states, path.states[1:]):
            assert space.distance(s1, s2) <= space.longest_valid_segment_length + 1e-12

    def test_states_are_copied(self, space):
        state = ConstrainedState(0.0, [0.0, 0.0, 0.0])
        path = SolutionPath(space, [state])
        state.joints[0] = 1.0

        assert path.states[0].joints[0] == 0.0
