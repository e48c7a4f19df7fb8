"""
Sampling and validity checking on the constrained state space.

A state (theta, q) is valid when q is inside the joint bounds, the forward
kinematics of q at the end-effector frame matches the screw pose at theta
within tolerance, and q is collision free. The valid sampler produces such
states by solving IK at the screw pose of a random theta.
"""

import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from screwmotion.core.exceptions import RobotError
from screwmotion.core.geometry import pose_error
from screwmotion.core.logging import get_logger
from screwmotion.core.robot import JointGroup, KinematicModel, KinematicState
from screwmotion.motion.constraint import ScrewConstraintModel
from screwmotion.motion.state_space import ConstrainedState, ConstrainedStateSpace

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlanningContext:
    """Read-only robot handles shared by the samplers and checkers of one plan."""

    model: KinematicModel
    group: JointGroup
    ee_frame: str


class ConstrainedSampler:
    """
    Uniform and near-uniform sampling of (theta, q).

    Samples are clamped into the space bounds, so a returned sample never
    violates them. No constraint is enforced.
    """

    def __init__(
        self, space: ConstrainedStateSpace, rng: Optional[np.random.Generator] = None
    ) -> None:
        self.space = space
        self.rng = rng if rng is not None else np.random.default_rng()

    def sample_uniform(self) -> ConstrainedState:
        bounds = self.space.joint_bounds
        theta = self.rng.uniform(0.0, self.space.theta_max)
        joints = self.rng.uniform(bounds.low, bounds.high)
        return ConstrainedState(theta, joints)

    def sample_uniform_near(self, near: ConstrainedState, distance: float) -> ConstrainedState:
        theta = near.theta + self.rng.uniform(-distance, distance)
        joints = near.joints + self.rng.uniform(-distance, distance, size=near.joints.shape)
        return self.space.enforce_bounds(ConstrainedState(theta, joints))


class ConstrainedValidityChecker:
    """
    Accepts a state iff it is in bounds, on the screw constraint, and collision free.

    Rejection is silent: ``is_valid`` returns False and never raises.
    """

    def __init__(
        self,
        space: ConstrainedStateSpace,
        constraint: ScrewConstraintModel,
        context: PlanningContext,
        position_tolerance: float = 0.005,
        orientation_tolerance: float = 0.01,
    ) -> None:
        self.space = space
        self.constraint = constraint
        self.context = context
        self.position_tolerance = position_tolerance
        self.orientation_tolerance = orientation_tolerance

    def constraint_error(self, state: ConstrainedState) -> tuple[float, float]:
        """
        Position and orientation error between FK(q) and the screw pose at theta.

        Raises:
            RobotError: If forward kinematics fails
        """
        ctx = self.context
        current = ctx.model.forward_kinematics(ctx.group, state.joints, ctx.ee_frame)
        return pose_error(self.constraint.pose_at(state.theta), current)

    def is_valid(self, state: ConstrainedState) -> bool:
        if not self.space.satisfies_bounds(state):
            return False

        try:
            pos_err, orient_err = self.constraint_error(state)
        except RobotError as e:
            logger.debug("validity_fk_failed", theta=state.theta, error=str(e))
            return False
        if pos_err > self.position_tolerance or orient_err > self.orientation_tolerance:
            return False

        try:
            return bool(self.context.model.is_collision_free(self.context.group, state.joints))
        except RobotError as e:
            logger.debug("validity_collision_check_failed", theta=state.theta, error=str(e))
            return False

    def check_motion(self, a: ConstrainedState, b: ConstrainedState) -> bool:
        """True iff every intermediate state of the straight motion a -> b is valid."""
        segments = self.space.valid_segment_count(a, b)
        for k in range(1, segments + 1):
            if not self.is_valid(self.space.interpolate(a, b, k / segments)):
                return False
        return True


class ConstrainedValidSampler:
    """
    Samples states that pass the validity checker.

    Draws theta, then repeatedly re-seeds its own kinematic state and solves
    IK at the screw pose until a valid state is found, ``attempts`` runs out
    or the optional ``deadline`` (a ``time.perf_counter()`` value) passes.
    Near samples are seeded from the space's own sampler.
    """

    def __init__(
        self,
        space: ConstrainedStateSpace,
        constraint: ScrewConstraintModel,
        validity_checker: ConstrainedValidityChecker,
        context: PlanningContext,
        attempts: int = 100,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.space = space
        self.constraint = constraint
        self.validity_checker = validity_checker
        self.context = context
        self.attempts = attempts
        self.rng = rng if rng is not None else np.random.default_rng()
        self.space_sampler = space.alloc_sampler()
        self.kinematic_state = KinematicState(context.model, context.group, self.rng)

    def _attempts(self, deadline: Optional[float]):
        for _ in range(self.attempts):
            if deadline is not None and time.perf_counter() >= deadline:
                return
            yield

    def _solve_at(self, theta: float) -> Optional[ConstrainedState]:
        if not self.kinematic_state.set_from_ik(
            self.constraint.pose_at(theta), self.context.ee_frame
        ):
            return None
        state = ConstrainedState(theta, self.kinematic_state.copy_joint_group_positions())
        if self.validity_checker.is_valid(state):
            return state
        return None

    def sample(self, deadline: Optional[float] = None) -> Optional[ConstrainedState]:
        theta = self.rng.uniform(0.0, self.space.theta_max)
        for _ in self._attempts(deadline):
            self.kinematic_state.set_to_random_positions()
            state = self._solve_at(theta)
            if state is not None:
                return state
        return None

    def sample_near(
        self, near: ConstrainedState, distance: float, deadline: Optional[float] = None
    ) -> Optional[ConstrainedState]:
        for _ in self._attempts(deadline):
            seed = self.space_sampler.sample_uniform_near(near, distance)
            self.kinematic_state.set_joint_group_positions(seed.joints)
            state = self._solve_at(seed.theta)
            if state is not None:
                return state
        return None
