"""
Goal region for screw planning.

All goal states share the final progress value; they differ in the joint
configuration (IK branch) used to reach the final pose, giving the search
several independent basins to connect to.
"""

import math
from typing import List, Optional

import numpy as np

from screwmotion.core.exceptions import MotionPlanningError
from screwmotion.motion.state_space import ConstrainedState, ConstrainedStateSpace


class GoalRegion:
    """
    An ordered set of distinct goal states at theta = theta_max.

    A state satisfies the goal when it lies within ``threshold`` of any of
    the stored states under the space's distance.
    """

    def __init__(
        self,
        space: ConstrainedStateSpace,
        threshold: float = 1e-9,
        duplicate_threshold: float = 1e-9,
    ) -> None:
        self.space = space
        self.threshold = threshold
        self.duplicate_threshold = duplicate_threshold
        self._states: List[ConstrainedState] = []
        self._next_sample = 0

    def add_state(self, state: ConstrainedState) -> bool:
        """
        Add a goal state.

        Returns:
            False if an equivalent state is already stored

        Raises:
            MotionPlanningError: If the state is not at the final progress value
        """
        if not math.isclose(state.theta, self.space.theta_max, abs_tol=1e-9):
            raise MotionPlanningError(
                "Goal states must be at the end of the screw",
                details={"theta": state.theta, "theta_max": self.space.theta_max},
            )
        if self._states and self.distance_goal(state) <= self.duplicate_threshold:
            return False
        self._states.append(state.copy())
        return True

    @property
    def states(self) -> List[ConstrainedState]:
        return [s.copy() for s in self._states]

    def __len__(self) -> int:
        return len(self._states)

    @property
    def max_sampled_goals(self) -> int:
        return len(self._states)

    def has_states(self) -> bool:
        return bool(self._states)

    def distance_goal(self, state: ConstrainedState) -> float:
        """Distance to the nearest goal state (inf when empty)."""
        if not self._states:
            return math.inf
        vectors = np.array([s.as_vector() for s in self._states])
        return float(np.min(self.space.distances(state, vectors)))

    def is_satisfied(self, state: ConstrainedState) -> bool:
        return self.distance_goal(state) <= self.threshold

    def sample_goal(self) -> Optional[ConstrainedState]:
        """Goal states in round-robin order."""
        if not self._states:
            return None
        state = self._states[self._next_sample % len(self._states)]
        self._next_sample += 1
        return state.copy()
