"""
Collision detection for constrained screw planning.

This module provides collision checking using PyBullet's physics engine in
headless (DIRECT) mode.
"""

from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import pybullet as p

from screwmotion.core.exceptions import RobotError
from screwmotion.core.logging import get_logger

logger = get_logger(__name__)


class CollisionChecker:
    """
    Collision detection using PyBullet.

    Wraps PyBullet's collision detection API to check for:
    - Self-collision (non-adjacent robot links touching each other)
    - Environment collision (robot touching obstacles)
    """

    def __init__(self, urdf_path: str | Path, base_position=(0, 0, 0)):
        """
        Connect a headless PyBullet client and load the robot.

        Args:
            urdf_path: Path to robot URDF file
            base_position: Robot base position

        Raises:
            RobotError: If the URDF is missing or PyBullet cannot connect
        """
        urdf_path = Path(urdf_path)
        if not urdf_path.exists():
            raise RobotError(f"URDF file not found: {urdf_path}")

        self.client_id: Optional[int] = p.connect(p.DIRECT)
        if self.client_id < 0:
            raise RobotError("Failed to connect to PyBullet")

        self.robot_id = p.loadURDF(
            str(urdf_path),
            basePosition=base_position,
            useFixedBase=True,
            flags=p.URDF_USE_SELF_COLLISION,
            physicsClientId=self.client_id,
        )
        self.obstacle_ids: List[int] = []

        # Joint name -> index and link index -> parent link index
        self.joint_name_to_index: Dict[str, int] = {}
        self._parent: Dict[int, int] = {}
        num_joints = p.getNumJoints(self.robot_id, physicsClientId=self.client_id)
        for i in range(num_joints):
            joint_info = p.getJointInfo(self.robot_id, i, physicsClientId=self.client_id)
            self.joint_name_to_index[joint_info[1].decode("utf-8")] = i
            self._parent[i] = joint_info[16]

        logger.info(
            "collision_checker_ready", urdf=str(urdf_path), joints=num_joints
        )

    def __enter__(self) -> "CollisionChecker":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        """Disconnect the PyBullet client."""
        if self.client_id is not None:
            p.disconnect(physicsClientId=self.client_id)
            self.client_id = None

    def _require_client(self) -> int:
        if self.client_id is None:
            raise RobotError("Collision checker is closed")
        return self.client_id

    def add_box(
        self,
        half_extents: Sequence[float],
        position: Sequence[float],
        orientation: Optional[Sequence[float]] = None,
    ) -> int:
        """
        Add a static box obstacle.

        Args:
            half_extents: Box half sizes (x, y, z)
            position: Box centre
            orientation: Quaternion (x, y, z, w); identity if None

        Returns:
            Body ID of the obstacle
        """
        client = self._require_client()
        shape = p.createCollisionShape(
            shapeType=p.GEOM_BOX,
            halfExtents=list(half_extents),
            physicsClientId=client,
        )
        body_id = p.createMultiBody(
            baseMass=0,
            baseCollisionShapeIndex=shape,
            basePosition=list(position),
            baseOrientation=list(orientation or (0, 0, 0, 1)),
            physicsClientId=client,
        )
        self.obstacle_ids.append(body_id)
        return body_id

    def set_configuration(self, joint_values: Mapping[str, float]) -> None:
        """
        Set robot joints by name; unknown names are ignored.
        """
        client = self._require_client()
        for joint_name, joint_value in joint_values.items():
            if joint_name in self.joint_name_to_index:
                p.resetJointState(
                    self.robot_id,
                    self.joint_name_to_index[joint_name],
                    joint_value,
                    physicsClientId=client,
                )

    def _adjacent(self, link_a: int, link_b: int) -> bool:
        return self._parent.get(link_a) == link_b or self._parent.get(link_b) == link_a

    def check_self_collision(self) -> bool:
        """
        Check if robot is in self-collision.

        Returns:
            True if collision detected, False otherwise
        """
        client = self._require_client()
        p.performCollisionDetection(physicsClientId=client)

        num_joints = p.getNumJoints(self.robot_id, physicsClientId=client)
        for i in range(-1, num_joints):  # -1 for base link
            for j in range(i + 1, num_joints):
                if self._adjacent(i, j):
                    continue
                contacts = p.getContactPoints(
                    bodyA=self.robot_id,
                    bodyB=self.robot_id,
                    linkIndexA=i,
                    linkIndexB=j,
                    physicsClientId=client,
                )
                if len(contacts) > 0:
                    return True

        return False

    def check_environment_collision(self) -> bool:
        """
        Check if robot touches any registered obstacle.

        Returns:
            True if collision detected, False otherwise
        """
        client = self._require_client()
        p.performCollisionDetection(physicsClientId=client)

        for body_id in self.obstacle_ids:
            contacts = p.getContactPoints(
                bodyA=self.robot_id,
                bodyB=body_id,
                physicsClientId=client,
            )
            if len(contacts) > 0:
                return True

        return False

    def check_collision(self, joint_values: Mapping[str, float]) -> bool:
        """
        Check if a configuration is in collision.

        Args:
            joint_values: Joint name to position

        Returns:
            True if collision detected, False otherwise
        """
        self.set_configuration(joint_values)

        if self.check_self_collision():
            return True
        return self.check_environment_collision()
