"""
Screw constraint model.

Maps a progress value along a screw axis to the end-effector pose required
at that progress.
"""

from compas.geometry import Frame, Rotation, Transformation, Translation, Vector

from screwmotion.core.geometry import ScrewAxis


class ScrewConstraintModel:
    """
    End-effector pose as a function of progress along one screw axis.

    ``pose_at(theta)`` is the start pose rotated by ``theta`` about the axis
    and translated by ``pitch * theta`` along it. For a pure translation
    screw the start pose is translated by ``theta`` along the axis.

    Example:
        >>> axis = ScrewAxis(direction=(0, 0, 1), origin=(0, 0, 0))
        >>> model = ScrewConstraintModel(axis, Frame.worldXY())
        >>> model.pose_at(0.0) == Frame.worldXY()
        True
    """

    def __init__(self, axis: ScrewAxis, start_pose: Frame) -> None:
        self.axis = axis
        self.start_pose = start_pose.copy()
        self._direction = Vector(*axis.direction)

    def transform_at(self, theta: float) -> Transformation:
        """Rigid motion taking the start pose to the pose at ``theta``."""
        if self.axis.is_pure_translation:
            return Translation.from_vector(self._direction * theta)

        rotation = Rotation.from_axis_and_angle(
            self._direction, theta, point=self.axis.origin
        )
        if self.axis.pitch == 0.0:
            return rotation
        translation = Translation.from_vector(self._direction * (self.axis.pitch * theta))
        return translation * rotation

    def pose_at(self, theta: float) -> Frame:
        """Required end-effector pose at progress ``theta``."""
        if theta == 0.0:
            return self.start_pose.copy()
        return self.start_pose.transformed(self.transform_at(theta))

    def goal_pose(self, theta_max: float) -> Frame:
        """End-effector pose at the end of the commanded motion."""
        return self.pose_at(theta_max)
