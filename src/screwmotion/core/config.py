"""
Configuration management for screwmotion.

Handles loading, validation, and access to robot and planner configurations.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from screwmotion.core.exceptions import ConfigurationError


class RobotConfig(BaseModel):
    """Robot configuration model."""

    name: str
    manufacturer: str = ""
    urdf_path: str | None = None
    base_frame: str = "base_link"
    tool_frame: str = "tool0"
    joint_limits: dict[str, dict[str, float]] = Field(default_factory=dict)
    # Move group name -> ordered joint names. Empty means one group with
    # every configurable joint, named after the robot.
    groups: dict[str, list[str]] = Field(default_factory=dict)
    # Fixed frames expressed in the base frame: name -> [x, y, z, qx, qy, qz, qw]
    static_frames: dict[str, list[float]] = Field(default_factory=dict)

    @field_validator("static_frames")
    @classmethod
    def _check_static_frames(cls, value: dict[str, list[float]]) -> dict[str, list[float]]:
        for name, pose in value.items():
            if len(pose) != 7:
                raise ValueError(
                    f"static frame '{name}' needs 7 values (x y z qx qy qz qw)"
                )
        return value


class PlannerConfig(BaseModel):
    """Screw planner tuning parameters."""

    name: str = "default"
    planning_time: float = Field(default=5.0, gt=0.0)
    simplification_time: float = Field(default=1.0, ge=0.0)
    num_start_candidates: int = Field(default=5, ge=1)
    num_goal_candidates: int = Field(default=10, ge=1)
    duplicate_threshold: float = Field(default=0.01, gt=0.0)
    position_tolerance: float = Field(default=0.005, gt=0.0)
    orientation_tolerance: float = Field(default=0.01, gt=0.0)
    goal_tolerance: float = Field(default=0.01, gt=0.0)
    longest_valid_segment_fraction: float = Field(default=0.01, gt=0.0, le=1.0)
    max_nearest_neighbors: int = Field(default=10, ge=1)
    valid_sampler_attempts: int = Field(default=100, ge=1)
    ik_max_iterations: int = Field(default=100, ge=1)
    search_algorithm: str = "roadmap"
    seed: int | None = None


@dataclass
class ConfigManager:
    """
    Central configuration manager for screwmotion.

    Loads and validates configurations from YAML files laid out as
    ``<config_dir>/robots/*.yaml`` and ``<config_dir>/planners/*.yaml``.

    Example:
        >>> config = ConfigManager(config_dir=Path("config"))
        >>> robot = config.get_robot("ur5")
        >>> planner = config.get_planner("default")
    """

    config_dir: Path
    _robots: dict[str, RobotConfig] = field(default_factory=dict, init=False)
    _planners: dict[str, PlannerConfig] = field(default_factory=dict, init=False)
    _loaded: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        """Initialize configuration manager."""
        self.config_dir = Path(self.config_dir)
        if not self.config_dir.exists():
            raise ConfigurationError(
                f"Configuration directory not found: {self.config_dir}"
            )

    def load(self) -> None:
        """Load all configurations from disk."""
        self._load_robots()
        self._load_planners()
        self._loaded = True

    def _load_robots(self) -> None:
        """Load robot configurations."""
        robots_dir = self.config_dir / "robots"
        if not robots_dir.exists():
            return

        for config_file in robots_dir.glob("*.yaml"):
            try:
                with open(config_file) as f:
                    data = yaml.safe_load(f)

                if data and "robot" in data:
                    robot_data = dict(data["robot"])
                    if "kinematics" in data:
                        robot_data.update(data["kinematics"])
                    if "limits" in data:
                        robot_data["joint_limits"] = data["limits"].get("joints", {})
                    if "groups" in data:
                        robot_data["groups"] = data["groups"]
                    if "frames" in data:
                        robot_data["static_frames"] = data["frames"]

                    self._robots[config_file.stem] = RobotConfig(**robot_data)
            except (yaml.YAMLError, ValidationError) as e:
                raise ConfigurationError(
                    f"Failed to load robot config: {config_file}",
                    details={"error": str(e)},
                )

    def _load_planners(self) -> None:
        """Load planner configurations."""
        planners_dir = self.config_dir / "planners"
        if not planners_dir.exists():
            return

        for config_file in planners_dir.glob("*.yaml"):
            try:
                with open(config_file) as f:
                    data = yaml.safe_load(f)

                if data and "planner" in data:
                    planner_data = dict(data["planner"])
                    planner_data.setdefault("name", config_file.stem)
                    self._planners[config_file.stem] = PlannerConfig(**planner_data)
            except (yaml.YAMLError, ValidationError) as e:
                raise ConfigurationError(
                    f"Failed to load planner config: {config_file}",
                    details={"error": str(e)},
                )

    def get_robot(self, name: str) -> RobotConfig:
        """
        Get robot configuration by name.

        Args:
            name: Robot configuration name (without .yaml extension)

        Returns:
            RobotConfig instance

        Raises:
            ConfigurationError: If robot not found
        """
        if not self._loaded:
            self.load()

        if name not in self._robots:
            available = list(self._robots.keys())
            raise ConfigurationError(
                f"Robot configuration not found: {name}",
                details={"available": available},
            )
        return self._robots[name]

    def get_planner(self, name: Optional[str] = None) -> PlannerConfig:
        """
        Get planner configuration by name.

        Falls back to the built-in defaults when ``name`` is None.

        Raises:
            ConfigurationError: If a named planner is not found
        """
        if name is None:
            return PlannerConfig()

        if not self._loaded:
            self.load()

        if name not in self._planners:
            available = list(self._planners.keys())
            raise ConfigurationError(
                f"Planner configuration not found: {name}",
                details={"available": available},
            )
        return self._planners[name]

    def list_robots(self) -> list[str]:
        """List available robot configurations."""
        if not self._loaded:
            self.load()
        return list(self._robots.keys())

    def list_planners(self) -> list[str]:
        """List available planner configurations."""
        if not self._loaded:
            self.load()
        return list(self._planners.keys())


def load_document(path: str | Path) -> dict[str, Any]:
    """
    Read a YAML or JSON document into a dictionary.

    Raises:
        ConfigurationError: If the file is missing, unparsable or not a mapping
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"File not found: {path}")

    try:
        text = path.read_text()
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            f"Failed to parse {path}", details={"error": str(e)}
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}")
    return data
