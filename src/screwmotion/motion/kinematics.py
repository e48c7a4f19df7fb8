"""
Inverse kinematics and the COMPAS-backed kinematic model.

IK is solved numerically with scipy's bounded optimizers on top of the
forward kinematics provided by compas_robots. The solver is local and
seed-sensitive: the planner treats it as a best-effort sampler and calls it
repeatedly from different seeds.
"""

from typing import Callable, Optional, Sequence

import numpy as np
from compas.geometry import Frame
from compas_robots import Configuration
from scipy.optimize import minimize

from screwmotion.core.exceptions import RobotError
from screwmotion.core.geometry import pose_error
from screwmotion.core.logging import get_logger
from screwmotion.core.robot import (
    JointGroup,
    JointType,
    KinematicModel,
    RobotInstance,
)
from screwmotion.motion.collision import CollisionChecker

logger = get_logger(__name__)


class IKSolver:
    """
    Inverse kinematics solver using numerical optimization.

    Minimises a weighted squared pose error between the forward kinematics
    of a joint vector and a target frame, within joint bounds.
    """

    def __init__(
        self,
        fk: Callable[[np.ndarray], Frame],
        bounds: Sequence[tuple[float, float]],
        method: str = "SLSQP",
        position_tolerance: float = 1e-3,
        orientation_tolerance: float = 5e-3,
        orientation_weight: float = 0.1,
    ):
        """
        Initialize IK solver.

        Args:
            fk: Forward kinematics from joint vector to end-effector frame
            bounds: (lower, upper) per joint variable
            method: scipy.optimize.minimize method ('SLSQP', 'L-BFGS-B', 'trust-constr')
            position_tolerance: Accepted position error (metres)
            orientation_tolerance: Accepted orientation error (radians)
            orientation_weight: Weight of the squared orientation error
        """
        self.fk = fk
        self.bounds = list(bounds)
        self.method = method
        self.position_tolerance = position_tolerance
        self.orientation_tolerance = orientation_tolerance
        self.orientation_weight = orientation_weight

    @property
    def n_joints(self) -> int:
        return len(self.bounds)

    def solve(
        self,
        target_frame: Frame,
        initial_guess: Optional[Sequence[float]] = None,
        max_iterations: int = 100,
    ) -> Optional[np.ndarray]:
        """
        Solve inverse kinematics for a target end-effector frame.

        Args:
            target_frame: Desired end-effector pose
            initial_guess: Seed joint configuration (zeros if None)
            max_iterations: Maximum optimization iterations

        Returns:
            Joint vector if a solution within tolerance was found, None otherwise
        """
        if initial_guess is None:
            x0 = np.zeros(self.n_joints)
        else:
            x0 = np.array(initial_guess[: self.n_joints], dtype=float)
        lower = np.array([b[0] for b in self.bounds])
        upper = np.array([b[1] for b in self.bounds])
        x0 = np.clip(x0, lower, upper)

        def objective(joint_values):
            try:
                current = self.fk(joint_values)
            except RobotError:
                return 1e6
            pos_err, orient_err = pose_error(target_frame, current)
            return pos_err**2 + self.orientation_weight * orient_err**2

        result = minimize(
            objective,
            x0,
            method=self.method,
            bounds=self.bounds,
            options={"maxiter": max_iterations},
        )

        solution = np.clip(result.x, lower, upper)
        try:
            pos_err, orient_err = pose_error(target_frame, self.fk(solution))
        except RobotError:
            return None

        if pos_err < self.position_tolerance and orient_err < self.orientation_tolerance:
            return solution
        return None


class CompasKinematicModel(KinematicModel):
    """
    KinematicModel backed by a compas_robots RobotModel.

    Joints outside the planned group stay at their default value. Collision
    checking is delegated to an optional PyBullet CollisionChecker.
    """

    def __init__(
        self,
        robot: RobotInstance,
        collision_checker: Optional[CollisionChecker] = None,
        ik_max_iterations: int = 100,
        ik_position_tolerance: float = 1e-3,
        ik_orientation_tolerance: float = 5e-3,
    ) -> None:
        self.robot = robot
        self.planning_frame = robot.base_frame
        self.collision_checker = collision_checker
        self.ik_max_iterations = ik_max_iterations
        self.ik_position_tolerance = ik_position_tolerance
        self.ik_orientation_tolerance = ik_orientation_tolerance
        self._groups = robot.joint_groups()

        joints = [j for j in robot.model.joints if j.is_configurable()]
        self._all_names = [j.name for j in joints]
        self._all_types = [j.type for j in joints]

    def get_joint_group(self, name: str) -> JointGroup:
        if name not in self._groups:
            raise RobotError(
                f"Unknown move group: {name}",
                details={"available": list(self._groups.keys())},
            )
        return self._groups[name]

    def _configuration(self, group: JointGroup, positions: Sequence[float]) -> Configuration:
        if any(j.type == JointType.PLANAR for j in group.active_joints):
            raise RobotError(
                "compas_robots forward kinematics does not support planar joints",
                details={"group": group.name},
            )
        if len(positions) != group.variable_count:
            raise RobotError(
                "Joint position vector does not match group",
                details={"expected": group.variable_count, "got": len(positions)},
            )

        values = dict.fromkeys(self._all_names, 0.0)
        values.update(zip(group.variable_names, (float(v) for v in positions)))
        return Configuration(
            [values[name] for name in self._all_names],
            self._all_types,
            self._all_names,
        )

    def forward_kinematics(
        self, group: JointGroup, positions: Sequence[float], frame: str
    ) -> Frame:
        config = self._configuration(group, positions)
        try:
            return self.robot.model.forward_kinematics(config, link_name=frame)
        except Exception as e:
            raise RobotError(f"Forward kinematics failed: {e}") from e

    def inverse_kinematics(
        self,
        group: JointGroup,
        pose: Frame,
        frame: str,
        seed: Sequence[float],
    ) -> Optional[np.ndarray]:
        solver = IKSolver(
            lambda q: self.forward_kinematics(group, q, frame),
            group.random_ranges(),
            position_tolerance=self.ik_position_tolerance,
            orientation_tolerance=self.ik_orientation_tolerance,
        )
        return solver.solve(pose, initial_guess=seed, max_iterations=self.ik_max_iterations)

    def is_collision_free(self, group: JointGroup, positions: Sequence[float]) -> bool:
        if self.collision_checker is None:
            return True
        joint_values = dict(zip(group.variable_names, (float(v) for v in positions)))
        return not self.collision_checker.check_collision(joint_values)
