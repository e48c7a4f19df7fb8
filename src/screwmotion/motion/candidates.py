"""
Start and goal candidate generation.

IK for a pose is multi-valued and only locally convergent, so candidates
are collected by re-seeding a kinematic state at random and solving IK
repeatedly, keeping every distinct valid solution up to a quota.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
from compas.geometry import Frame

from screwmotion.core.logging import get_logger
from screwmotion.core.robot import KinematicState
from screwmotion.motion.sampling import ConstrainedValidityChecker
from screwmotion.motion.state_space import ConstrainedState

logger = get_logger(__name__)


@dataclass
class CandidatePool:
    """Start and goal joint configurations found for one request."""

    starts: List[np.ndarray] = field(default_factory=list)
    goals: List[np.ndarray] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.starts) and bool(self.goals)


def is_duplicate_state(
    pool: Sequence[np.ndarray], values: np.ndarray, threshold: float
) -> bool:
    """True if ``values`` is within ``threshold`` (joint-space norm) of a pool member."""
    for existing in pool:
        if np.linalg.norm(np.asarray(existing) - values) < threshold:
            return True
    return False


class CandidateGenerator:
    """
    Bounded-retry search for distinct valid start and goal configurations.

    The kinematic state is a scratch buffer owned by the caller; it is
    re-seeded on every attempt.
    """

    def __init__(
        self,
        kinematic_state: KinematicState,
        ee_frame: str,
        theta_max: float,
        validity_checker: Optional[ConstrainedValidityChecker] = None,
        duplicate_threshold: float = 0.01,
    ) -> None:
        self.kinematic_state = kinematic_state
        self.ee_frame = ee_frame
        self.theta_max = theta_max
        self.validity_checker = validity_checker
        self.duplicate_threshold = duplicate_threshold

    def _accept(self, values: np.ndarray, theta: float) -> bool:
        if self.validity_checker is None:
            return True
        return self.validity_checker.is_valid(ConstrainedState(theta, values))

    def _increase_state_list(
        self, pose: Frame, theta: float, state_list: List[np.ndarray]
    ) -> None:
        """Try one IK solve at ``pose`` and keep the solution if new and valid."""
        if not self.kinematic_state.set_from_ik(pose, self.ee_frame):
            return

        values = self.kinematic_state.copy_joint_group_positions()
        if is_duplicate_state(state_list, values, self.duplicate_threshold):
            return
        if self._accept(values, theta):
            state_list.append(values)

    def find_goal_states(
        self,
        start_config: Sequence[float],
        goal_pose: Frame,
        num_goal: int,
    ) -> CandidatePool:
        """
        Start-given mode: the start set is the given configuration.

        Up to ``2 * num_goal`` IK attempts at the goal pose, the first seeded
        from the start configuration and the rest from random positions.
        The pool is empty if the start configuration does not match the group.
        """
        pool = CandidatePool()
        start_config = np.asarray(start_config, dtype=float)
        if num_goal < 1 or start_config.shape != (self.kinematic_state.group.variable_count,):
            logger.info(
                "start_configuration_rejected",
                expected=self.kinematic_state.group.variable_count,
                got=int(start_config.size),
            )
            return pool

        pool.starts.append(start_config.copy())
        self.kinematic_state.set_joint_group_positions(start_config)

        i = 0
        while len(pool.goals) < num_goal and i < 2 * num_goal:
            self._increase_state_list(goal_pose, self.theta_max, pool.goals)

            self.kinematic_state.set_to_random_positions()
            i += 1

        logger.info(
            "goal_candidates_found", goals=len(pool.goals), attempts=i, quota=num_goal
        )
        return pool

    def find_start_goal_states(
        self,
        start_pose: Frame,
        goal_pose: Frame,
        num_start: int,
        num_goal: int,
    ) -> CandidatePool:
        """
        Start-and-goal mode: both sets come from IK.

        Runs up to ``2 * (num_start + num_goal)`` iterations, each re-seeding
        at random and then trying one start and one goal while their quotas
        are open. The pool is not ok if either set ends up empty.
        """
        pool = CandidatePool()
        if num_start < 1 or num_goal < 1:
            return pool

        i = 0
        while (len(pool.starts) < num_start or len(pool.goals) < num_goal) and i < 2 * (
            num_goal + num_start
        ):
            self.kinematic_state.set_to_random_positions()
            i += 1

            if len(pool.starts) < num_start:
                self._increase_state_list(start_pose, 0.0, pool.starts)

            if len(pool.goals) < num_goal:
                self._increase_state_list(goal_pose, self.theta_max, pool.goals)

        logger.info(
            "start_goal_candidates_found",
            starts=len(pool.starts),
            goals=len(pool.goals),
            iterations=i,
        )
        return pool
