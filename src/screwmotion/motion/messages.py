"""
Request, response and result types of the screw planner.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError

from screwmotion.core.config import load_document
from screwmotion.core.exceptions import ConfigurationError
from screwmotion.core.geometry import PoseSpec, ScrewSpec


class PlanningResult(Enum):
    """Outcome of one ``plan()`` call."""

    SUCCESS = "success"
    INITIALIZATION_FAIL = "initialization_fail"
    NO_IK_SOLUTION = "no_ik_solution"
    PLANNING_FAIL = "planning_fail"


class PlanningRequest(BaseModel):
    """
    A commanded screw motion for one end effector.

    ``theta`` is the total angle (or distance, for a pure translation screw)
    to move along the screw. When ``start_joint_state`` is empty the start is
    given by ``start_pose`` instead.
    """

    screw: ScrewSpec
    theta: float
    ee_frame_name: str
    move_group: str
    start_joint_state: List[float] = Field(default_factory=list)
    start_pose: Optional[PoseSpec] = None

    @classmethod
    def from_file(cls, path: str | Path) -> "PlanningRequest":
        """
        Load a request from a YAML or JSON file.

        Raises:
            ConfigurationError: If the file is unreadable or invalid
        """
        data = load_document(path)
        try:
            return cls(**data.get("request", data))
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid planning request: {path}", details={"error": str(e)}
            ) from e


@dataclass
class JointTrajectoryPoint:
    """One waypoint: positions only, no velocities or timing."""

    positions: List[float] = field(default_factory=list)


@dataclass
class JointTrajectory:
    joint_names: List[str] = field(default_factory=list)
    points: List[JointTrajectoryPoint] = field(default_factory=list)


@dataclass
class PlanningResponse:
    """Planned joint trajectory and completion metrics."""

    joint_trajectory: JointTrajectory = field(default_factory=JointTrajectory)
    trajectory_is_valid: bool = False
    percentage_complete: float = 0.0
    path_length: float = 0.0

    def reset(self) -> None:
        """Return to the failed/empty state."""
        self.joint_trajectory.joint_names.clear()
        self.joint_trajectory.points.clear()
        self.trajectory_is_valid = False
        self.percentage_complete = 0.0
        self.path_length = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.joint_trajectory.points

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
