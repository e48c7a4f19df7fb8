"""
Motion module - Constrained screw motion planning.

This module provides:
- The screw constraint model (pose as a function of progress)
- The compound progress x joint state space
- IK-based valid sampling and constraint/collision validity checking
- Start/goal candidate generation and the goal region
- A probabilistic roadmap search behind a swappable interface
- Trajectory extraction and the ScrewPlanner orchestrator
- compas_robots/scipy kinematics and PyBullet collision checking
"""

from screwmotion.motion.candidates import CandidateGenerator, CandidatePool
from screwmotion.motion.collision import CollisionChecker
from screwmotion.motion.constraint import ScrewConstraintModel
from screwmotion.motion.goal import GoalRegion
from screwmotion.motion.kinematics import CompasKinematicModel, IKSolver
from screwmotion.motion.messages import (
    JointTrajectory,
    JointTrajectoryPoint,
    PlanningRequest,
    PlanningResponse,
    PlanningResult,
)
from screwmotion.motion.planner import ScrewPlanner
from screwmotion.motion.roadmap import (
    PlanningProblem,
    RoadmapPlanner,
    SearchAlgorithm,
    make_search_algorithm,
)
from screwmotion.motion.sampling import (
    ConstrainedSampler,
    ConstrainedValidityChecker,
    ConstrainedValidSampler,
    PlanningContext,
)
from screwmotion.motion.state_space import (
    ConstrainedState,
    ConstrainedStateSpace,
    JointSpaceBounds,
    SolutionPath,
)
from screwmotion.motion.trajectory import TrajectoryExtractor

__all__ = [
    "CandidateGenerator",
    "CandidatePool",
    "CollisionChecker",
    "CompasKinematicModel",
    "ConstrainedSampler",
    "ConstrainedState",
    "ConstrainedStateSpace",
    "ConstrainedValidityChecker",
    "ConstrainedValidSampler",
    "GoalRegion",
    "IKSolver",
    "JointSpaceBounds",
    "JointTrajectory",
    "JointTrajectoryPoint",
    "PlanningContext",
    "PlanningProblem",
    "PlanningRequest",
    "PlanningResponse",
    "PlanningResult",
    "RoadmapPlanner",
    "ScrewConstraintModel",
    "ScrewPlanner",
    "SearchAlgorithm",
    "SolutionPath",
    "TrajectoryExtractor",
    "make_search_algorithm",
]
