"""
screwmotion - Constrained screw motion planning for robot manipulators.

Plans joint trajectories that move an end effector along a commanded screw
(rotation about and translation along a fixed axis), as used for
affordance-style tasks such as opening doors or turning valves.
"""

__version__ = "0.1.0"
__author__ = "screwmotion Contributors"

from screwmotion.core.config import ConfigManager, PlannerConfig
from screwmotion.motion.messages import PlanningRequest, PlanningResponse, PlanningResult
from screwmotion.motion.planner import ScrewPlanner

__all__ = [
    "__version__",
    "ConfigManager",
    "PlannerConfig",
    "PlanningRequest",
    "PlanningResponse",
    "PlanningResult",
    "ScrewPlanner",
]
