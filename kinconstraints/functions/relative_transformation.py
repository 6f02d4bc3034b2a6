"""Pose of a frame relative to another frame of the same robot."""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..configuration import Kinematics
from ..function import DifferentiableFunction
from ..lie import SE3, LieGroupSpace, skew


class RelativeTransformation(DifferentiableFunction):
    """Pose of frame 2 expressed in frame 1, as an element of R^3 x SO(3).

    Frame i is rigidly attached to joint i with the constant placement
    ``frame_i`` in the joint frame. A joint set to None stands for the world
    frame.

    The output is [x, y, z, quat_x, quat_y, quat_z, quat_w]. Its tangent is
    the derivative of the position followed by the angular velocity of frame 2
    relative to frame 1, expressed in frame 2.

    Example:
        >>> f = RelativeTransformation(
        ...     "gripper/box", kinematics, "wrist", "box",
        ...     SE3.from_translation(np.array([0.0, 0.0, 0.1])), SE3.identity(),
        ... )
        >>> constraint = Implicit(f, mask=[True] * 3 + [False] * 3)
    """

    def __init__(
        self,
        name: str,
        kinematics: Kinematics,
        joint1: Optional[str],
        joint2: Optional[str],
        frame1: Optional[SE3] = None,
        frame2: Optional[SE3] = None,
    ):
        """Initialize the function.

        Args:
            name: Function name.
            kinematics: Kinematics of the robot.
            joint1: Joint holding frame 1, None for the world.
            joint2: Joint holding frame 2, None for the world.
            frame1: Placement of frame 1 in joint 1. Defaults to identity.
            frame2: Placement of frame 2 in joint 2. Defaults to identity.

        Raises:
            InvalidJoint: If a joint name is not in the model.
            NotImplementedError: If both joints are the world.
        """
        if joint1 is None and joint2 is None:
            raise NotImplementedError(
                f"{name}: relative transformation between two world frames"
            )
        space = kinematics.space
        super().__init__(
            space.nq, space.nv, LieGroupSpace.R3xSO3(), name=name, input_space=space
        )
        self.kinematics = kinematics
        self.joint1 = joint1
        self.joint2 = joint2
        self._joint1_id = kinematics.joint_id(joint1)
        self._joint2_id = kinematics.joint_id(joint2)
        self.frame1 = SE3.identity() if frame1 is None else frame1
        self.frame2 = SE3.identity() if frame2 is None else frame2

    def _frame_poses(self, q: np.ndarray):
        data = self.kinematics.forward(q)
        joint1 = self.kinematics.joint_placement(data, self._joint1_id)
        joint2 = self.kinematics.joint_placement(data, self._joint2_id)
        return data, joint1, joint2

    def _compute(self, argument: np.ndarray) -> np.ndarray:
        _, joint1, joint2 = self._frame_poses(argument)
        pose1 = joint1.multiply(self.frame1)
        pose2 = joint2.multiply(self.frame2)
        relative = pose1.inverse().multiply(pose2)
        return relative.parameters()

    def _frame_jacobian(self, data, q: np.ndarray, joint_id: int, joint: SE3, frame: SE3) -> np.ndarray:
        # Velocity of the frame origin and angular velocity, in world axes
        J = self.kinematics.joint_jacobian(data, q, joint_id)
        offset = joint.rotation.act(frame.translation)
        J[:3] -= skew(offset) @ J[3:]
        return J

    def _jacobian(self, argument: np.ndarray) -> np.ndarray:
        data, joint1, joint2 = self._frame_poses(argument)
        pose1 = joint1.multiply(self.frame1)
        pose2 = joint2.multiply(self.frame2)
        J1 = self._frame_jacobian(data, argument, self._joint1_id, joint1, self.frame1)
        J2 = self._frame_jacobian(data, argument, self._joint2_id, joint2, self.frame2)
        R1 = pose1.rotation.as_matrix()
        R2 = pose2.rotation.as_matrix()
        t12 = pose2.translation - pose1.translation

        jacobian = np.zeros((6, self.input_derivative_size))
        jacobian[:3] = R1.T @ (J2[:3] - J1[:3] + skew(t12) @ J1[3:])
        jacobian[3:] = R2.T @ (J2[3:] - J1[3:])
        return jacobian

    def _active(self, indices1, indices2, size: int) -> np.ndarray:
        mask = np.zeros(size, dtype=bool)
        mask[sorted(set(indices1) ^ set(indices2))] = True
        return mask

    def active_parameters(self) -> np.ndarray:
        return self._active(
            self.kinematics.support_configuration_indices(self._joint1_id),
            self.kinematics.support_configuration_indices(self._joint2_id),
            self.input_size,
        )

    def active_derivative_parameters(self) -> np.ndarray:
        return self._active(
            self.kinematics.support_velocity_indices(self._joint1_id),
            self.kinematics.support_velocity_indices(self._joint2_id),
            self.input_derivative_size,
        )

    def __str__(self) -> str:
        return (
            f"{super().__str__()}\n"
            f"joint1: {self.joint1 or 'world'}\n"
            f"joint2: {self.joint2 or 'world'}\n"
            f"frame1: {self.frame1!r}\n"
            f"frame2: {self.frame2!r}"
        )
