"""
Sampling-based search over the constrained state space.

The planner only depends on the :class:`SearchAlgorithm` interface. The
default implementation is a probabilistic roadmap: milestones come from the
valid (IK-based) sampler, edges are straight motions whose interpolated
states all pass the validity checker, and the path search only follows
edges that do not decrease theta, so solutions always make forward progress
along the screw.
"""

import heapq
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol

import numpy as np

from screwmotion.core.exceptions import ConfigurationError
from screwmotion.core.logging import get_logger
from screwmotion.motion.goal import GoalRegion
from screwmotion.motion.state_space import (
    ConstrainedState,
    ConstrainedStateSpace,
    SolutionPath,
)

logger = get_logger(__name__)

# Tolerance when comparing theta along an edge
_THETA_EPS = 1e-9


class ValidityChecker(Protocol):
    def is_valid(self, state: ConstrainedState) -> bool: ...

    def check_motion(self, a: ConstrainedState, b: ConstrainedState) -> bool: ...


class ValidStateSampler(Protocol):
    def sample(self, deadline: Optional[float] = None) -> Optional[ConstrainedState]: ...

    def sample_near(
        self, near: ConstrainedState, distance: float, deadline: Optional[float] = None
    ) -> Optional[ConstrainedState]: ...


@dataclass
class PlanningProblem:
    """Everything a search algorithm needs for one query."""

    space: ConstrainedStateSpace
    validity_checker: ValidityChecker
    valid_sampler_allocator: Callable[[], ValidStateSampler]
    goal: GoalRegion
    start_states: List[ConstrainedState] = field(default_factory=list)

    def add_start_state(self, state: ConstrainedState) -> None:
        self.start_states.append(state.copy())


class SearchAlgorithm(ABC):
    """Interface of a global sampling-based planner."""

    name = "search"

    def __init__(self) -> None:
        self.problem: Optional[PlanningProblem] = None

    def setup(self, problem: PlanningProblem) -> None:
        self.clear()
        self.problem = problem

    @abstractmethod
    def solve(self, time_budget: float) -> bool:
        """Search for a path within ``time_budget`` seconds."""

    @abstractmethod
    def solution_path(self) -> Optional[SolutionPath]:
        """The last solution found, if any."""

    def simplify(self, time_budget: float) -> None:
        """Shorten the solution in place. No-op by default."""

    def clear(self) -> None:
        """Drop all search data."""


class RoadmapPlanner(SearchAlgorithm):
    """
    Probabilistic roadmap (PRM) planner.

    Starts and goals are inserted as milestones first; the roadmap then
    alternates between growing (a valid sample anywhere in the space) and
    expanding (a valid sample near a sparsely connected milestone). Every new
    milestone is connected to its nearest neighbours. Once a start component
    meets a goal component, a forward-only shortest path search is run and a
    milestone ends the path when the goal region accepts it.
    """

    name = "roadmap"

    def __init__(
        self,
        max_nearest_neighbors: int = 10,
        expand_distance_fraction: float = 0.1,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        super().__init__()
        self.max_nearest_neighbors = max_nearest_neighbors
        self.expand_distance_fraction = expand_distance_fraction
        self.rng = rng if rng is not None else np.random.default_rng()
        self.clear()

    def clear(self) -> None:
        self._states: List[ConstrainedState] = []
        self._vectors: List[np.ndarray] = []
        self._edges: Dict[int, Dict[int, float]] = {}
        self._parent: List[int] = []
        self._start_ids: List[int] = []
        self._goal_ids: List[int] = []
        self._solution: Optional[SolutionPath] = None
        self._sampler: Optional[ValidStateSampler] = None
        self._initialized = False
        self._iterations = 0

    @property
    def milestone_count(self) -> int:
        return len(self._states)

    @property
    def edge_count(self) -> int:
        return sum(len(neighbors) for neighbors in self._edges.values()) // 2

    # -- union-find --------------------------------------------------------

    def _find(self, i: int) -> int:
        while self._parent[i] != i:
            self._parent[i] = self._parent[self._parent[i]]
            i = self._parent[i]
        return i

    def _union(self, a: int, b: int) -> None:
        ra, rb = self._find(a), self._find(b)
        if ra != rb:
            self._parent[rb] = ra

    # -- roadmap construction ----------------------------------------------

    def _add_milestone(self, state: ConstrainedState) -> int:
        problem = self.problem
        index = len(self._states)

        neighbors: List[int] = []
        if self._vectors:
            distances = problem.space.distances(state, np.array(self._vectors))
            order = np.argsort(distances)[: self.max_nearest_neighbors]
            neighbors = [int(j) for j in order]

        self._states.append(state.copy())
        self._vectors.append(state.as_vector())
        self._edges[index] = {}
        self._parent.append(index)

        for j in neighbors:
            other = self._states[j]
            if problem.validity_checker.check_motion(other, state):
                weight = problem.space.distance(other, state)
                self._edges[index][j] = weight
                self._edges[j][index] = weight
                self._union(index, j)

        return index

    def _initialize(self) -> None:
        problem = self.problem
        for start in problem.start_states:
            if problem.validity_checker.is_valid(start):
                self._start_ids.append(self._add_milestone(start))
            else:
                logger.debug("start_state_invalid", theta=start.theta)

        for goal in problem.goal.states:
            if problem.validity_checker.is_valid(goal):
                self._goal_ids.append(self._add_milestone(goal))
            else:
                logger.debug("goal_state_invalid", theta=goal.theta)

        self._sampler = problem.valid_sampler_allocator()
        self._initialized = True

    def _next_sample(self, deadline: float) -> Optional[ConstrainedState]:
        """Alternately grow the roadmap and expand it around a weakly connected milestone."""
        self._iterations += 1
        if self._iterations % 2 == 1:
            return self._sampler.sample(deadline)

        # Milestones with fewer edges are picked more often
        degrees = np.array([len(self._edges[i]) for i in range(len(self._states))], dtype=float)
        weights = 1.0 / (degrees + 1.0)
        index = int(self.rng.choice(len(self._states), p=weights / weights.sum()))
        distance = self.expand_distance_fraction * self.problem.space.maximum_extent()
        return self._sampler.sample_near(self._states[index], distance, deadline)

    def _connected(self) -> bool:
        goal_roots = {self._find(g) for g in self._goal_ids}
        return any(self._find(s) in goal_roots for s in self._start_ids)

    def _forward_shortest_path(self) -> Optional[List[int]]:
        """Multi-source Dijkstra from the starts to a goal-region state over non-decreasing theta."""
        goal = self.problem.goal
        dist = {s: 0.0 for s in self._start_ids}
        previous: Dict[int, int] = {}
        queue = [(0.0, s) for s in self._start_ids]
        heapq.heapify(queue)
        visited = set()

        while queue:
            d, current = heapq.heappop(queue)
            if current in visited:
                continue
            visited.add(current)

            if goal.is_satisfied(self._states[current]):
                path = [current]
                while path[-1] in previous:
                    path.append(previous[path[-1]])
                path.reverse()
                return path

            theta = self._states[current].theta
            for neighbor, weight in self._edges[current].items():
                if neighbor in visited or self._states[neighbor].theta < theta - _THETA_EPS:
                    continue
                candidate = d + weight
                if candidate < dist.get(neighbor, float("inf")):
                    dist[neighbor] = candidate
                    previous[neighbor] = current
                    heapq.heappush(queue, (candidate, neighbor))

        return None

    def _try_extract(self) -> bool:
        if not self._connected():
            return False
        ids = self._forward_shortest_path()
        if ids is None:
            return False
        self._solution = SolutionPath(self.problem.space, [self._states[i] for i in ids])
        return True

    # -- SearchAlgorithm ---------------------------------------------------

    def solve(self, time_budget: float) -> bool:
        if self.problem is None:
            raise ConfigurationError("RoadmapPlanner.solve() called before setup()")

        t0 = time.perf_counter()
        deadline = t0 + time_budget

        if not self._initialized:
            self._initialize()
        if not self._start_ids or not self._goal_ids:
            logger.info(
                "roadmap_no_valid_endpoints",
                starts=len(self._start_ids),
                goals=len(self._goal_ids),
            )
            return False

        solved = self._try_extract()
        while not solved and time.perf_counter() < deadline:
            sample = self._next_sample(deadline)
            if sample is None:
                continue
            self._add_milestone(sample)
            solved = self._try_extract()

        logger.info(
            "roadmap_search_complete",
            solved=solved,
            milestones=self.milestone_count,
            edges=self.edge_count,
            duration_s=round(time.perf_counter() - t0, 3),
        )
        return solved

    def solution_path(self) -> Optional[SolutionPath]:
        return self._solution

    def simplify(self, time_budget: float) -> None:
        """Random forward shortcutting of the solution within ``time_budget``."""
        if self._solution is None or self._solution.state_count < 3:
            return

        checker = self.problem.validity_checker
        states = list(self._solution.states)
        deadline = time.perf_counter() + time_budget
        failures = 0
        max_failures = 10 * len(states)

        while time.perf_counter() < deadline and len(states) > 2 and failures < max_failures:
            i = int(self.rng.integers(0, len(states) - 2))
            j = int(self.rng.integers(i + 2, len(states)))
            a, b = states[i], states[j]
            if b.theta >= a.theta - _THETA_EPS and checker.check_motion(a, b):
                states = states[: i + 1] + states[j:]
                failures = 0
            else:
                failures += 1

        before = self._solution.state_count
        self._solution = SolutionPath(self.problem.space, states)
        logger.debug("roadmap_path_simplified", before=before, after=len(states))


SEARCH_ALGORITHMS: Dict[str, Callable[..., SearchAlgorithm]] = {
    "roadmap": RoadmapPlanner,
    "prm": RoadmapPlanner,
}


def make_search_algorithm(name: str = "roadmap", **kwargs) -> SearchAlgorithm:
    """
    Build a search algorithm by name.

    Raises:
        ConfigurationError: If the name is not registered
    """
    key = name.lower()
    if key not in SEARCH_ALGORITHMS:
        raise ConfigurationError(
            f"Unknown search algorithm: {name}",
            details={"available": sorted(SEARCH_ALGORITHMS)},
        )
    return SEARCH_ALGORITHMS[key](**kwargs)
