"""
Pose and screw geometry for screwmotion using COMPAS.

Provides the payload models for poses and screw specifications, conversions
between those payloads and COMPAS frames, and the frame registry used to
express a screw given in an arbitrary frame in the planning frame.
"""

import json
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from compas.geometry import Frame, Point, Transformation, Vector
from pydantic import BaseModel
from scipy.spatial.transform import Rotation as ScipyRotation

from screwmotion.core.exceptions import GeometryError, TransformError

Vector3 = tuple[float, float, float]
Quaternion = tuple[float, float, float, float]


class PoseSpec(BaseModel):
    """A pose in a named frame; orientation is a quaternion (x, y, z, w)."""

    frame_id: str = ""
    position: Vector3 = (0.0, 0.0, 0.0)
    orientation: Quaternion = (0.0, 0.0, 0.0, 1.0)

    def to_frame(self) -> Frame:
        """Convert to a COMPAS Frame."""
        return frame_from_pose(self.position, self.orientation)

    @classmethod
    def from_frame(cls, frame: Frame, frame_id: str = "") -> "PoseSpec":
        """Build a pose payload from a COMPAS Frame."""
        position, orientation = frame_to_pose(frame)
        return cls(frame_id=frame_id, position=position, orientation=orientation)


class ScrewSpec(BaseModel):
    """
    Screw specification as sent by a task planner.

    The axis passes through ``origin`` along ``axis``. ``pitch`` is the
    translation per radian of rotation. A pure translation screw moves along
    the axis by the commanded amount without rotating.
    """

    frame_id: str = ""
    origin: Vector3 = (0.0, 0.0, 0.0)
    axis: Vector3 = (0.0, 0.0, 1.0)
    pitch: float = 0.0
    is_pure_translation: bool = False


def frame_from_pose(position: Vector3, orientation: Quaternion) -> Frame:
    """
    Build a COMPAS Frame from a position and an (x, y, z, w) quaternion.

    Raises:
        GeometryError: If the quaternion has zero norm
    """
    quat = np.asarray(orientation, dtype=float)
    if not np.all(np.isfinite(quat)) or np.linalg.norm(quat) < 1e-12:
        raise GeometryError("Invalid orientation quaternion", details={"q": list(quat)})

    R = ScipyRotation.from_quat(quat).as_matrix()
    return Frame(Point(*position), Vector(*R[:, 0]), Vector(*R[:, 1]))


def frame_to_pose(frame: Frame) -> tuple[Vector3, Quaternion]:
    """Split a COMPAS Frame into a position and an (x, y, z, w) quaternion."""
    R = frame_rotation(frame)
    quat = ScipyRotation.from_matrix(R).as_quat()
    position = tuple(float(c) for c in frame.point)
    return position, tuple(float(c) for c in quat)


def frame_rotation(frame: Frame) -> np.ndarray:
    """3x3 rotation matrix whose columns are the frame axes."""
    return np.column_stack(
        [np.array(frame.xaxis), np.array(frame.yaxis), np.array(frame.zaxis)]
    )


def frame_to_matrix(frame: Frame) -> np.ndarray:
    """4x4 homogeneous matrix of a frame."""
    return np.array(Transformation.from_frame(frame).matrix, dtype=float)


def matrix_to_frame(matrix: np.ndarray) -> Frame:
    """COMPAS Frame from a 4x4 homogeneous matrix."""
    matrix = np.asarray(matrix, dtype=float)
    return Frame(
        Point(*matrix[:3, 3]),
        Vector(*matrix[:3, 0]),
        Vector(*matrix[:3, 1]),
    )


def pose_error(target: Frame, current: Frame) -> tuple[float, float]:
    """
    Position and orientation error between two frames.

    Returns:
        (position error in metres, rotation angle of the relative rotation in radians)
    """
    pos_error = float(
        np.linalg.norm(np.array(target.point) - np.array(current.point))
    )

    R_error = frame_rotation(target).T @ frame_rotation(current)
    orient_error = float(np.arccos(np.clip((np.trace(R_error) - 1) / 2, -1, 1)))
    return pos_error, orient_error


@dataclass(frozen=True)
class ScrewAxis:
    """
    A screw axis expressed in the planning frame.

    Attributes:
        direction: Unit direction of the axis
        origin: A point on the axis
        pitch: Linear displacement per radian of rotation
        is_pure_translation: Motion is a translation along ``direction`` only
    """

    direction: tuple[float, float, float]
    origin: tuple[float, float, float]
    pitch: float = 0.0
    is_pure_translation: bool = False

    @classmethod
    def from_spec(cls, spec: ScrewSpec) -> "ScrewAxis":
        """
        Build a screw axis from a specification already in the planning frame.

        Raises:
            GeometryError: If the axis direction is zero or not finite
        """
        direction = np.asarray(spec.axis, dtype=float)
        norm = np.linalg.norm(direction)
        if not np.isfinite(norm) or norm < 1e-9:
            raise GeometryError(
                "Screw axis direction must be non-zero", details={"axis": spec.axis}
            )
        if not math.isfinite(spec.pitch):
            raise GeometryError("Screw pitch must be finite", details={"pitch": spec.pitch})

        direction = direction / norm
        return cls(
            direction=tuple(float(c) for c in direction),
            origin=tuple(float(c) for c in spec.origin),
            pitch=float(spec.pitch),
            is_pure_translation=spec.is_pure_translation,
        )

    def to_spec(self, frame_id: str = "") -> ScrewSpec:
        """Convert back into a payload expressed in ``frame_id``."""
        return ScrewSpec(
            frame_id=frame_id,
            origin=self.origin,
            axis=self.direction,
            pitch=self.pitch,
            is_pure_translation=self.is_pure_translation,
        )


def transform_screw(spec: ScrewSpec, frame_pose: Frame, frame_id: str = "") -> ScrewSpec:
    """
    Express a screw given in a child frame in that frame's parent.

    Args:
        spec: Screw expressed in the child frame
        frame_pose: Pose of the child frame in the parent frame
        frame_id: Name of the parent frame for the returned payload

    Returns:
        The same screw with origin and axis in parent coordinates
    """
    matrix = frame_to_matrix(frame_pose)
    origin = matrix[:3, :3] @ np.asarray(spec.origin, dtype=float) + matrix[:3, 3]
    axis = matrix[:3, :3] @ np.asarray(spec.axis, dtype=float)
    return ScrewSpec(
        frame_id=frame_id,
        origin=tuple(float(c) for c in origin),
        axis=tuple(float(c) for c in axis),
        pitch=spec.pitch,
        is_pure_translation=spec.is_pure_translation,
    )


def serialize_screw(spec: ScrewSpec, theta: float) -> str:
    """Serialize a screw and its commanded angle to a JSON string."""
    payload = spec.model_dump()
    payload["theta"] = theta
    return json.dumps(payload)


def deserialize_screw(text: str) -> tuple[ScrewSpec, float]:
    """Inverse of :func:`serialize_screw`."""
    payload = json.loads(text)
    theta = float(payload.pop("theta"))
    return ScrewSpec(**payload), theta


class FrameRegistry:
    """
    Resolves named frames into the planning frame.

    Knows the planning frame itself, a set of fixed frames registered up front
    (e.g. from robot configuration), and the end-effector frame at the start
    pose of the current request.
    """

    def __init__(
        self,
        planning_frame: str,
        static_frames: Optional[dict[str, Frame]] = None,
    ) -> None:
        self.planning_frame = planning_frame
        self._static: dict[str, Frame] = dict(static_frames or {})

    @classmethod
    def from_config(
        cls, planning_frame: str, static_frames: dict[str, list[float]]
    ) -> "FrameRegistry":
        """Build a registry from ``[x, y, z, qx, qy, qz, qw]`` lists."""
        frames = {
            name: frame_from_pose(tuple(pose[:3]), tuple(pose[3:]))
            for name, pose in static_frames.items()
        }
        return cls(planning_frame, frames)

    def add_frame(self, name: str, pose: Frame) -> None:
        """Register a fixed frame given in the planning frame."""
        self._static[name] = pose

    def resolve(
        self,
        frame_id: str,
        ee_frame_name: Optional[str] = None,
        ee_pose: Optional[Frame] = None,
    ) -> Frame:
        """
        Pose of ``frame_id`` in the planning frame.

        Raises:
            TransformError: If the frame is unknown
        """
        if not frame_id or frame_id == self.planning_frame:
            return Frame.worldXY()
        if ee_frame_name and frame_id == ee_frame_name and ee_pose is not None:
            return ee_pose
        if frame_id in self._static:
            return self._static[frame_id]

        raise TransformError(
            f"Cannot resolve frame '{frame_id}' into '{self.planning_frame}'",
            frame_id=frame_id,
            details={"known": [self.planning_frame, *self._static.keys()]},
        )

    def to_planning_frame(
        self,
        spec: ScrewSpec,
        ee_frame_name: Optional[str] = None,
        ee_pose: Optional[Frame] = None,
    ) -> ScrewSpec:
        """Express a screw specification in the planning frame."""
        frame_pose = self.resolve(spec.frame_id, ee_frame_name, ee_pose)
        return transform_screw(spec, frame_pose, frame_id=self.planning_frame)

    def pose_to_planning_frame(
        self,
        pose: PoseSpec,
        ee_frame_name: Optional[str] = None,
        ee_pose: Optional[Frame] = None,
    ) -> Frame:
        """Express a pose payload in the planning frame."""
        parent = self.resolve(pose.frame_id, ee_frame_name, ee_pose)
        return matrix_to_frame(frame_to_matrix(parent) @ frame_to_matrix(pose.to_frame()))
