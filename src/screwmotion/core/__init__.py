"""
Core module - Shared configuration, exceptions, geometry and robot models.
"""

from screwmotion.core.config import ConfigManager, PlannerConfig, RobotConfig
from screwmotion.core.exceptions import (
    ConfigurationError,
    GeometryError,
    MotionPlanningError,
    RobotError,
    ScrewMotionError,
    StateSpaceError,
    TransformError,
)
from screwmotion.core.geometry import FrameRegistry, PoseSpec, ScrewAxis, ScrewSpec
from screwmotion.core.robot import (
    JointGroup,
    JointModel,
    JointType,
    KinematicModel,
    KinematicState,
    RobotInstance,
    RobotLoader,
    VariableBounds,
)

__all__ = [
    # Config
    "ConfigManager",
    "PlannerConfig",
    "RobotConfig",
    # Exceptions
    "ScrewMotionError",
    "ConfigurationError",
    "GeometryError",
    "TransformError",
    "RobotError",
    "MotionPlanningError",
    "StateSpaceError",
    # Geometry
    "FrameRegistry",
    "PoseSpec",
    "ScrewAxis",
    "ScrewSpec",
    # Robot
    "JointGroup",
    "JointModel",
    "JointType",
    "KinematicModel",
    "KinematicState",
    "RobotInstance",
    "RobotLoader",
    "VariableBounds",
]
