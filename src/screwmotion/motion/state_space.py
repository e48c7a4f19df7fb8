"""
Constrained state space for screw planning.

A compound space pairing a bounded scalar progress variable theta in
[0, theta_max] with the bounded joint variables of one move group. States
carry both parts; whether a state actually satisfies the screw constraint is
decided by the validity checker, not by the representation.
"""

import math
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence

import numpy as np

from screwmotion.core.exceptions import StateSpaceError
from screwmotion.core.robot import JointGroup, JointType

# Range used for the x/y variables of planar joints
PLANAR_TRANSLATION_BOUND = 1e3

# Parameter names registered on the space during planner setup
SCREW_PARAM = "screw_param"
POSE_PARAM = "pose_param"
EE_FRAME_PARAM = "ee_frame_name"
MOVE_GROUP_PARAM = "move_group"


@dataclass
class ConstrainedState:
    """A progress value paired with a joint vector."""

    theta: float
    joints: np.ndarray

    def __post_init__(self) -> None:
        self.theta = float(self.theta)
        self.joints = np.asarray(self.joints, dtype=float)

    def copy(self) -> "ConstrainedState":
        return ConstrainedState(self.theta, self.joints.copy())

    def as_vector(self) -> np.ndarray:
        return np.concatenate(([self.theta], self.joints))


class JointSpaceBounds:
    """Per-variable [low, high] bounds of a move group."""

    def __init__(self) -> None:
        self.names: List[str] = []
        self._low: List[float] = []
        self._high: List[float] = []

    @classmethod
    def from_joint_group(cls, group: JointGroup) -> "JointSpaceBounds":
        """
        Derive bounds from the group's active joints.

        Raises:
            StateSpaceError: If a joint cannot be bounded
        """
        bounds = cls()
        for joint in group.get_active_joint_models():
            if joint.type == JointType.PLANAR:
                names = joint.variable_names
                bounds.add(names[0], -PLANAR_TRANSLATION_BOUND, PLANAR_TRANSLATION_BOUND)
                bounds.add(names[1], -PLANAR_TRANSLATION_BOUND, PLANAR_TRANSLATION_BOUND)
                bounds.add(names[2], -math.pi, math.pi)
            elif joint.type in (JointType.REVOLUTE, JointType.PRISMATIC):
                variable = joint.get_variable_bounds(joint.name)
                if not variable.position_bounded:
                    raise StateSpaceError(
                        f"Joint '{joint.name}' has no position bounds",
                        joint_name=joint.name,
                        details={"group": group.name},
                    )
                bounds.add(joint.name, variable.min_position, variable.max_position)
            else:
                raise StateSpaceError(
                    f"Joint '{joint.name}' of type {joint.type.value} cannot be planned",
                    joint_name=joint.name,
                    details={"group": group.name},
                )
        return bounds

    def add(self, name: str, low: float, high: float) -> None:
        if not (math.isfinite(low) and math.isfinite(high)) or low > high:
            raise StateSpaceError(
                f"Invalid bounds for '{name}'",
                joint_name=name,
                details={"low": low, "high": high},
            )
        self.names.append(name)
        self._low.append(float(low))
        self._high.append(float(high))

    @property
    def low(self) -> np.ndarray:
        return np.array(self._low, dtype=float)

    @property
    def high(self) -> np.ndarray:
        return np.array(self._high, dtype=float)

    @property
    def dimension(self) -> int:
        return len(self.names)

    @property
    def extent(self) -> float:
        """Length of the diagonal of the bounding box."""
        return float(np.linalg.norm(self.high - self.low))

    def contains(self, joints: np.ndarray) -> bool:
        joints = np.asarray(joints, dtype=float)
        if joints.shape != (self.dimension,):
            return False
        return bool(np.all(joints >= self.low) and np.all(joints <= self.high))

    def clamp(self, joints: np.ndarray) -> np.ndarray:
        return np.clip(np.asarray(joints, dtype=float), self.low, self.high)


class SpaceParams:
    """Named string parameters attached to a state space."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._locked = False

    def add(self, name: str, value: str) -> None:
        if self._locked:
            raise StateSpaceError(f"Cannot add parameter '{name}' to a locked space")
        if name in self._values:
            raise StateSpaceError(f"Parameter '{name}' already set")
        self._values[name] = str(value)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(name, default)

    def __getitem__(self, name: str) -> str:
        return self._values[name]

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def names(self) -> list[str]:
        return list(self._values.keys())

    def lock(self) -> None:
        self._locked = True


class ConstrainedStateSpace:
    """
    Compound space {theta in [0, theta_max]} x {joint vector in bounds}.

    The distance between two states is |d_theta| + ||d_q||. Motions are
    checked at a resolution of ``longest_valid_segment_fraction`` times the
    maximum extent of the space.
    """

    def __init__(
        self,
        theta_max: float,
        joint_bounds: Optional[JointSpaceBounds] = None,
        longest_valid_segment_fraction: float = 0.01,
    ) -> None:
        if not math.isfinite(theta_max) or theta_max <= 0.0:
            raise StateSpaceError(
                "Screw angle must be positive", details={"theta": theta_max}
            )
        self.theta_max = float(theta_max)
        self.joint_bounds = joint_bounds or JointSpaceBounds()
        self.longest_valid_segment_fraction = longest_valid_segment_fraction
        self.params = SpaceParams()
        self._locked = False
        self._sampler_allocator: Optional[Callable[["ConstrainedStateSpace"], object]] = None

    @classmethod
    def from_joint_group(
        cls,
        group: JointGroup,
        theta_max: float,
        longest_valid_segment_fraction: float = 0.01,
    ) -> "ConstrainedStateSpace":
        """
        Build the space for a move group.

        Raises:
            StateSpaceError: If theta_max is not positive or a joint is unbounded
        """
        space = cls(theta_max, longest_valid_segment_fraction=longest_valid_segment_fraction)
        bounds = JointSpaceBounds.from_joint_group(group)
        for name, low, high in zip(bounds.names, bounds.low, bounds.high):
            space.add_joint_dimension(name, low, high)
        return space

    # -- structure ---------------------------------------------------------

    def add_joint_dimension(self, name: str, low: float, high: float) -> None:
        if self._locked:
            raise StateSpaceError("Cannot add dimensions to a locked state space")
        self.joint_bounds.add(name, low, high)

    def lock(self) -> None:
        """Freeze dimensions and parameters."""
        self._locked = True
        self.params.lock()

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def joint_dimension(self) -> int:
        return self.joint_bounds.dimension

    @property
    def dimension(self) -> int:
        return 1 + self.joint_dimension

    @property
    def joint_names(self) -> list[str]:
        return list(self.joint_bounds.names)

    # -- samplers ----------------------------------------------------------

    def set_sampler_allocator(self, allocator: Callable[["ConstrainedStateSpace"], object]) -> None:
        self._sampler_allocator = allocator

    def alloc_sampler(self):
        """Allocate a state sampler, uniform unless an allocator was installed."""
        if self._sampler_allocator is not None:
            return self._sampler_allocator(self)

        from screwmotion.motion.sampling import ConstrainedSampler

        return ConstrainedSampler(self)

    # -- states ------------------------------------------------------------

    def make_state(self, theta: float, joints: Sequence[float]) -> ConstrainedState:
        joints = np.asarray(joints, dtype=float)
        if joints.shape != (self.joint_dimension,):
            raise StateSpaceError(
                "Joint vector does not match state space",
                details={"expected": self.joint_dimension, "got": int(joints.size)},
            )
        return ConstrainedState(theta, joints)

    def satisfies_bounds(self, state: ConstrainedState) -> bool:
        if not (0.0 <= state.theta <= self.theta_max):
            return False
        return self.joint_bounds.contains(state.joints)

    def enforce_bounds(self, state: ConstrainedState) -> ConstrainedState:
        return ConstrainedState(
            min(max(state.theta, 0.0), self.theta_max),
            self.joint_bounds.clamp(state.joints),
        )

    def distance(self, a: ConstrainedState, b: ConstrainedState) -> float:
        return abs(a.theta - b.theta) + float(np.linalg.norm(a.joints - b.joints))

    def distances(self, state: ConstrainedState, vectors: np.ndarray) -> np.ndarray:
        """Distance from ``state`` to each row of ``vectors`` (as from ``as_vector``)."""
        vectors = np.atleast_2d(vectors)
        return np.abs(vectors[:, 0] - state.theta) + np.linalg.norm(
            vectors[:, 1:] - state.joints, axis=1
        )

    def interpolate(
        self, a: ConstrainedState, b: ConstrainedState, t: float
    ) -> ConstrainedState:
        return ConstrainedState(
            a.theta + t * (b.theta - a.theta), a.joints + t * (b.joints - a.joints)
        )

    def maximum_extent(self) -> float:
        return self.theta_max + self.joint_bounds.extent

    @property
    def longest_valid_segment_length(self) -> float:
        return self.longest_valid_segment_fraction * self.maximum_extent()

    def valid_segment_count(self, a: ConstrainedState, b: ConstrainedState) -> int:
        """Number of segments a motion from ``a`` to ``b`` is checked in."""
        return max(1, int(math.ceil(self.distance(a, b) / self.longest_valid_segment_length)))


class SolutionPath:
    """Ordered sequence of states in a constrained state space."""

    def __init__(
        self,
        space: ConstrainedStateSpace,
        states: Optional[Sequence[ConstrainedState]] = None,
    ) -> None:
        self.space = space
        self.states: List[ConstrainedState] = [s.copy() for s in states or []]

    def __len__(self) -> int:
        return len(self.states)

    def __iter__(self) -> Iterator[ConstrainedState]:
        return iter(self.states)

    @property
    def state_count(self) -> int:
        return len(self.states)

    def append(self, state: ConstrainedState) -> None:
        self.states.append(state.copy())

    def length(self) -> float:
        return float(
            sum(self.space.distance(a, b) for a, b in zip(self.states, self.states[1:]))
        )

    def interpolate(self) -> None:
        """Insert intermediate states at the space's motion-check resolution."""
        if len(self.states) < 2:
            return

        dense = [self.states[0]]
        for a, b in zip(self.states, self.states[1:]):
            segments = self.space.valid_segment_count(a, b)
            for k in range(1, segments):
                dense.append(self.space.interpolate(a, b, k / segments))
            dense.append(b)
        self.states = dense
