"""
Conversion of a solved constrained path into a joint trajectory.
"""

from typing import Sequence

from screwmotion.core.logging import get_logger
from screwmotion.motion.messages import JointTrajectoryPoint, PlanningResponse
from screwmotion.motion.sampling import ConstrainedValidityChecker
from screwmotion.motion.state_space import SolutionPath

logger = get_logger(__name__)


class TrajectoryExtractor:
    """
    Densifies a solution path, re-validates every state and fills a response.

    The walk stops at the first invalid state. The waypoints before it are
    kept as a usable partial trajectory, flagged invalid, with the fraction
    of the screw it covers.
    """

    def __init__(
        self,
        validity_checker: ConstrainedValidityChecker,
        joint_names: Sequence[str],
        goal_tolerance: float = 0.01,
    ) -> None:
        self.validity_checker = validity_checker
        self.joint_names = list(joint_names)
        self.goal_tolerance = goal_tolerance

    def populate_response(
        self,
        solution: SolutionPath,
        theta_max: float,
        response: PlanningResponse,
    ) -> None:
        """
        Fill ``response`` from ``solution`` (interpolated in place).

        Paths with fewer than two states leave the response untouched.
        """
        if solution.state_count < 2:
            logger.warning("solution_too_short", states=solution.state_count)
            return

        solution.interpolate()

        trajectory = response.joint_trajectory
        trajectory.joint_names = list(self.joint_names)
        trajectory.points = []

        for state in solution.states:
            if not self.validity_checker.is_valid(state):
                response.trajectory_is_valid = False
                response.percentage_complete = state.theta / theta_max
                logger.warning(
                    "trajectory_truncated",
                    theta=round(state.theta, 4),
                    waypoints=len(trajectory.points),
                    percentage_complete=round(response.percentage_complete, 4),
                )
                return

            trajectory.points.append(
                JointTrajectoryPoint(positions=[float(v) for v in state.joints])
            )

        final_theta = solution.states[-1].theta
        response.trajectory_is_valid = abs(theta_max - final_theta) <= self.goal_tolerance
        response.percentage_complete = final_theta / theta_max
        response.path_length = solution.length()

        logger.info(
            "trajectory_extracted",
            waypoints=len(trajectory.points),
            valid=response.trajectory_is_valid,
            percentage_complete=round(response.percentage_complete, 4),
            path_length=round(response.path_length, 4),
        )
