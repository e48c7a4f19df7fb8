"""
Robot model management for screwmotion.

Handles robot model loading from URDF, move group extraction, and the
kinematics interface the planner drives (forward kinematics, inverse
kinematics, collision validity), using COMPAS robots.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Sequence

import numpy as np
from compas.geometry import Frame
from compas_robots import RobotModel
from compas_robots.model import Joint

from screwmotion.core.config import RobotConfig
from screwmotion.core.exceptions import RobotError
from screwmotion.core.logging import get_logger

logger = get_logger(__name__)


class JointType(Enum):
    """Kinematic joint types."""

    REVOLUTE = "revolute"
    PRISMATIC = "prismatic"
    PLANAR = "planar"
    FLOATING = "floating"
    FIXED = "fixed"


@dataclass(frozen=True)
class VariableBounds:
    """Position bounds of one joint variable."""

    min_position: float = -math.pi
    max_position: float = math.pi
    position_bounded: bool = True


@dataclass(frozen=True)
class JointModel:
    """
    A joint of a move group.

    Revolute and prismatic joints have one variable; planar joints have
    three (x, y, theta).
    """

    name: str
    type: JointType
    bounds: tuple[VariableBounds, ...] = ()

    @property
    def variable_names(self) -> list[str]:
        if self.type == JointType.PLANAR:
            return [f"{self.name}/x", f"{self.name}/y", f"{self.name}/theta"]
        return [self.name]

    @property
    def variable_count(self) -> int:
        return len(self.variable_names)

    def get_variable_bounds(self, variable: Optional[str] = None) -> VariableBounds:
        """Bounds of one variable (the first one when ``variable`` is None)."""
        if not self.bounds:
            return VariableBounds(position_bounded=False)
        if variable is None:
            return self.bounds[0]
        return self.bounds[self.variable_names.index(variable)]


@dataclass(frozen=True)
class JointGroup:
    """A named set of active joints planned together."""

    name: str
    active_joints: tuple[JointModel, ...] = field(default_factory=tuple)

    def get_active_joint_models(self) -> tuple[JointModel, ...]:
        return self.active_joints

    @property
    def variable_names(self) -> list[str]:
        names: list[str] = []
        for joint in self.active_joints:
            names.extend(joint.variable_names)
        return names

    @property
    def variable_count(self) -> int:
        return len(self.variable_names)

    def random_ranges(self) -> list[tuple[float, float]]:
        """Sampling range of each variable; unbounded variables use [-pi, pi]."""
        ranges = []
        for joint in self.active_joints:
            for name in joint.variable_names:
                bounds = joint.get_variable_bounds(name)
                if bounds.position_bounded:
                    ranges.append((bounds.min_position, bounds.max_position))
                else:
                    ranges.append((-math.pi, math.pi))
        return ranges


class KinematicModel(ABC):
    """
    Kinematics and validity collaborator used by the planner.

    Implementations are shared read-only between planner components; all
    mutable configuration lives in :class:`KinematicState`.
    """

    planning_frame: str = "base_link"

    @abstractmethod
    def get_joint_group(self, name: str) -> JointGroup:
        """Look up a move group by name. Raises RobotError if unknown."""

    @abstractmethod
    def forward_kinematics(
        self, group: JointGroup, positions: Sequence[float], frame: str
    ) -> Frame:
        """Pose of ``frame`` in the planning frame for the given group positions."""

    @abstractmethod
    def inverse_kinematics(
        self,
        group: JointGroup,
        pose: Frame,
        frame: str,
        seed: Sequence[float],
    ) -> Optional[np.ndarray]:
        """Group positions placing ``frame`` at ``pose``, or None if not found."""

    def is_collision_free(self, group: JointGroup, positions: Sequence[float]) -> bool:
        """Self and environment collision test. Models without geometry accept all."""
        return True

    def default_positions(self, group: JointGroup) -> np.ndarray:
        """Zero for every variable, moved to the middle of bounds that exclude zero."""
        values = []
        for low, high in group.random_ranges():
            values.append(0.0 if low <= 0.0 <= high else (low + high) / 2.0)
        return np.array(values, dtype=float)


class KinematicState:
    """
    Mutable joint configuration of one move group.

    A scratch buffer reused across repeated seeding and IK attempts. One
    instance must never be shared between concurrent planning calls.
    """

    def __init__(
        self,
        model: KinematicModel,
        group: JointGroup,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.model = model
        self.group = group
        self.rng = rng if rng is not None else np.random.default_rng()
        self._positions = model.default_positions(group)

    def set_to_default_values(self) -> None:
        self._positions = self.model.default_positions(self.group)

    def set_to_random_positions(self) -> None:
        ranges = self.group.random_ranges()
        self._positions = np.array(
            [self.rng.uniform(low, high) for low, high in ranges], dtype=float
        )

    def set_joint_group_positions(self, positions: Sequence[float]) -> None:
        positions = np.asarray(positions, dtype=float)
        if positions.shape != (self.group.variable_count,):
            raise RobotError(
                "Joint position vector does not match group",
                details={
                    "group": self.group.name,
                    "expected": self.group.variable_count,
                    "got": int(positions.size),
                },
            )
        self._positions = positions.copy()

    def copy_joint_group_positions(self) -> np.ndarray:
        return self._positions.copy()

    def set_from_ik(self, pose: Frame, frame: str) -> bool:
        """
        Solve IK for ``frame`` at ``pose`` seeded from the current positions.

        On success the solution replaces the current positions. Failures,
        including kinematics errors, leave the positions untouched.
        """
        try:
            solution = self.model.inverse_kinematics(
                self.group, pose, frame, self._positions
            )
        except RobotError as e:
            logger.debug("ik_attempt_error", group=self.group.name, error=str(e))
            return False

        if solution is None:
            return False
        self._positions = np.asarray(solution, dtype=float).copy()
        return True

    def get_frame_transform(self, frame: str) -> Frame:
        """Pose of ``frame`` at the current positions."""
        return self.model.forward_kinematics(self.group, self._positions, frame)


class RobotLoader:
    """
    Loads robot models from URDF and configuration files.

    Integrates with compas_robots for robot representation and kinematics.
    """

    @classmethod
    def load_from_urdf(cls, urdf_path: str | Path, **kwargs: Any) -> RobotModel:
        """
        Load robot model from URDF file.

        Raises:
            RobotError: If URDF loading fails
        """
        path = Path(urdf_path)

        if not path.exists():
            raise RobotError(f"URDF file not found: {path}")

        try:
            return RobotModel.from_urdf_file(str(path))
        except Exception as e:
            raise RobotError(f"Failed to load URDF from {path}: {e}") from e

    @classmethod
    def load_from_config(cls, config: RobotConfig) -> "RobotInstance":
        """
        Load robot from a RobotConfig.

        Raises:
            RobotError: If loading fails
        """
        if not config.urdf_path:
            raise RobotError(
                f"Robot '{config.name}' has no URDF path specified in configuration"
            )

        try:
            model = cls.load_from_urdf(config.urdf_path)
            return RobotInstance(model=model, config=config)
        except Exception as e:
            raise RobotError(
                f"Failed to load robot '{config.name}' from config: {e}"
            ) from e


_COMPAS_JOINT_TYPES = {
    Joint.REVOLUTE: JointType.REVOLUTE,
    Joint.CONTINUOUS: JointType.REVOLUTE,
    Joint.PRISMATIC: JointType.PRISMATIC,
    Joint.PLANAR: JointType.PLANAR,
    Joint.FLOATING: JointType.FLOATING,
    Joint.FIXED: JointType.FIXED,
}


class RobotInstance:
    """
    A compas_robots RobotModel combined with its screwmotion configuration.
    """

    def __init__(self, model: RobotModel, config: RobotConfig) -> None:
        self.model = model
        self.config = config

    @property
    def name(self) -> str:
        """Robot name from configuration."""
        return self.config.name

    @property
    def base_frame(self) -> str:
        """Base frame name from configuration."""
        return self.config.base_frame

    @property
    def tool_frame(self) -> str:
        """Tool frame name from configuration."""
        return self.config.tool_frame

    def get_joint_names(self) -> list[str]:
        """Names of all configurable joints, in model order."""
        return [joint.name for joint in self.model.joints if joint.is_configurable()]

    def get_joint_limits(self) -> dict[str, tuple[float, float]]:
        """
        Get joint limits from model and configuration.

        Returns:
            Dictionary mapping joint names to (min, max) tuples

        Note:
            Configuration limits override URDF limits if specified
        """
        limits = {}

        for joint in self.model.joints:
            if (
                joint.is_configurable()
                and joint.type != Joint.CONTINUOUS
                and joint.limit is not None
            ):
                limits[joint.name] = (joint.limit.lower, joint.limit.upper)

        for joint_name, config_limits in self.config.joint_limits.items():
            if joint_name in limits:
                limits[joint_name] = (
                    config_limits.get("min", limits[joint_name][0]),
                    config_limits.get("max", limits[joint_name][1]),
                )

        return limits

    def joint_model(self, joint: Joint) -> JointModel:
        """Translate a compas_robots joint into a JointModel."""
        joint_type = _COMPAS_JOINT_TYPES.get(joint.type)
        if joint_type is None:
            raise RobotError(f"Unsupported joint type for '{joint.name}': {joint.type}")

        limits = self.get_joint_limits()
        if joint_type == JointType.PLANAR:
            bounds = (
                VariableBounds(position_bounded=False),
                VariableBounds(position_bounded=False),
                VariableBounds(-math.pi, math.pi, True),
            )
        elif joint.name in limits:
            low, high = limits[joint.name]
            bounds = (VariableBounds(float(low), float(high), True),)
        else:
            bounds = (VariableBounds(position_bounded=False),)

        return JointModel(name=joint.name, type=joint_type, bounds=bounds)

    def joint_groups(self) -> dict[str, JointGroup]:
        """
        Move groups defined by the configuration.

        Without configured groups, a single group named after the robot holds
        every configurable joint.

        Raises:
            RobotError: If a group references an unknown joint
        """
        joints = {joint.name: joint for joint in self.model.joints}
        definitions = self.config.groups or {self.name: self.get_joint_names()}

        groups = {}
        for group_name, joint_names in definitions.items():
            missing = [name for name in joint_names if name not in joints]
            if missing:
                raise RobotError(
                    f"Group '{group_name}' references unknown joints",
                    details={"missing": missing},
                )
            active = tuple(
                self.joint_model(joints[name])
                for name in joint_names
                if joints[name].is_configurable()
            )
            groups[group_name] = JointGroup(name=group_name, active_joints=active)
        return groups

    def __repr__(self) -> str:
        """String representation of robot instance."""
        return (
            f"RobotInstance(name='{self.name}', "
            f"joints={len(self.get_joint_names())})"
        )
