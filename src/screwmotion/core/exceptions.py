"""
Custom exceptions for screwmotion.

All screwmotion exceptions inherit from ScrewMotionError for easy catching.
The planner converts them into flat result codes at its public boundary.
"""

from typing import Any


class ScrewMotionError(Exception):
    """Base exception for all screwmotion errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ConfigurationError(ScrewMotionError):
    """Raised when configuration is invalid or missing."""

    pass


class GeometryError(ScrewMotionError):
    """Raised when a pose or screw axis is malformed."""

    pass


class TransformError(GeometryError):
    """Raised when a frame cannot be resolved into the planning frame."""

    def __init__(
        self,
        message: str,
        frame_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.frame_id = frame_id


class RobotError(ScrewMotionError):
    """Raised when the robot model or a kinematics call fails."""

    pass


class MotionPlanningError(ScrewMotionError):
    """Raised when motion planning fails."""

    pass


class StateSpaceError(MotionPlanningError):
    """Raised when the constrained state space cannot be built or changed."""

    def __init__(
        self,
        message: str,
        joint_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.joint_name = joint_name
