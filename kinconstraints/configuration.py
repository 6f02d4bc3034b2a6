"""Configuration space and kinematics of a robot model.

:class:`RobotConfigurationSpace` exposes a Pinocchio model as a
:class:`~kinconstraints.lie.LieGroupSpace` so that solvers integrate
configurations with the model's own joint operators (quaternions of spherical
and free-flyer joints stay normalized).

:class:`Kinematics` offers access to joint placements and joint Jacobians.
Each calling thread gets its own Pinocchio data, so that the same function
can be evaluated concurrently from several threads.
"""

import threading
from typing import List, Optional, Tuple

import numpy as np
import pinocchio as pin

from . import exceptions
from .lie import SE3, LieGroupSpace

_TRANSLATION_SIZE = {"JointModelFreeFlyer": 3, "JointModelPlanar": 2}


class RobotConfigurationSpace(LieGroupSpace):
    """Configuration space of a Pinocchio model.

    Attributes:
        model: Pinocchio model. It is shared and must not be modified after
            the space is created.
    """

    def __init__(self, model: pin.Model):
        super().__init__(model.nq, model.nv)
        self.model = model
        self._lower = np.array(model.lowerPositionLimit, dtype=np.float64)
        self._upper = np.array(model.upperPositionLimit, dtype=np.float64)
        self._lower.setflags(write=False)
        self._upper.setflags(write=False)

    @property
    def name(self) -> str:
        return f"{self.model.name or 'robot'}(nq={self.nq}, nv={self.nv})"

    def _key(self) -> tuple:
        return (id(self.model),)

    @property
    def lower_bound(self) -> np.ndarray:
        return self._lower.copy()

    @property
    def upper_bound(self) -> np.ndarray:
        return self._upper.copy()

    def vector_indices(self) -> List[Tuple[int, int]]:
        indices: List[Tuple[int, int]] = []
        # Joint 0 is the universe
        for joint in list(self.model.joints)[1:]:
            if joint.nq == joint.nv:
                size = joint.nq
            else:
                # Translation part of free-flyer and planar joints
                size = _TRANSLATION_SIZE.get(joint.shortname(), 0)
            indices.extend((joint.idx_q + k, joint.idx_v + k) for k in range(size))
        return indices

    def neutral(self) -> np.ndarray:
        return np.array(pin.neutral(self.model))

    def integrate(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        self._check(q, v)
        return np.array(pin.integrate(self.model, q, v))

    def difference(self, q0: np.ndarray, q1: np.ndarray) -> np.ndarray:
        self._check(q0)
        self._check(q1)
        return np.array(pin.difference(self.model, q0, q1))

    def d_integrate(self, q: np.ndarray, v: np.ndarray, argument: int) -> np.ndarray:
        self._check(q, v)
        position = pin.ArgumentPosition.ARG0 if argument == 0 else pin.ArgumentPosition.ARG1
        return np.array(pin.dIntegrate(self.model, q, v, position))

    def d_difference(self, q0: np.ndarray, q1: np.ndarray, argument: int) -> np.ndarray:
        self._check(q0)
        self._check(q1)
        position = pin.ArgumentPosition.ARG0 if argument == 0 else pin.ArgumentPosition.ARG1
        return np.array(pin.dDifference(self.model, q0, q1, position))


class Kinematics:
    """Encapsulates a Pinocchio model for convenient access to kinematic quantities.

    Key functionalities include:
    * Running forward kinematics on a given configuration.
    * Retrieving joint placements relative to the world frame.
    * Computing joint Jacobians expressed in the world-aligned joint frame.
    * Listing the velocity variables a joint depends on.

    Pinocchio data are created lazily, one per calling thread.
    """

    def __init__(self, model: pin.Model):
        """Constructor.

        Args:
            model: Pinocchio model.
        """
        self.model = model
        self.space = RobotConfigurationSpace(model)
        self._local = threading.local()

    @classmethod
    def from_urdf(cls, urdf_path: str) -> "Kinematics":
        """Create kinematics from a URDF file.

        Args:
            urdf_path: Path to URDF file.

        Returns:
            Kinematics instance.
        """
        return cls(pin.buildModelFromUrdf(urdf_path))

    @property
    def data(self) -> pin.Data:
        """Pinocchio data owned by the calling thread."""
        data = getattr(self._local, "data", None)
        if data is None:
            data = self.model.createData()
            self._local.data = data
        return data

    def joint_id(self, joint_name: Optional[str]) -> int:
        """Index of a joint in the model, 0 (universe) for None.

        Raises:
            InvalidJoint: If the joint does not exist in the model.
        """
        if joint_name is None:
            return 0
        if not self.model.existJointName(joint_name):
            raise exceptions.InvalidJoint(joint_name, list(self.model.names))
        return self.model.getJointId(joint_name)

    def forward(self, q: np.ndarray) -> pin.Data:
        """Run forward kinematics in the calling thread's data.

        Args:
            q: Configuration vector of size nq.

        Returns:
            The updated Pinocchio data.
        """
        assert q.shape == (self.model.nq,), (
            f"Expected configuration of size {self.model.nq}, got {q.shape}"
        )
        data = self.data
        pin.forwardKinematics(self.model, data, q)
        return data

    def joint_placement(self, data: pin.Data, joint_id: int) -> SE3:
        """Pose of a joint in the world frame after :meth:`forward`."""
        if joint_id == 0:
            return SE3.identity()
        return SE3.from_pinocchio(data.oMi[joint_id])

    def joint_jacobian(self, data: pin.Data, q: np.ndarray, joint_id: int) -> np.ndarray:
        """Compute the Jacobian of a joint velocity.

        The Jacobian relates joint velocities to the velocity of the joint
        origin and the joint angular velocity, both expressed in the world
        frame:
            [v; omega] = J * dq

        Args:
            data: Data returned by :meth:`forward` for ``q``.
            q: Configuration vector.
            joint_id: Joint index.

        Returns:
            Jacobian of shape (6, nv).
        """
        if joint_id == 0:
            return np.zeros((6, self.model.nv))
        # Local frame Jacobian, rotated to the world orientation
        J = np.array(pin.computeJointJacobian(self.model, data, q, joint_id))
        R = data.oMi[joint_id].rotation
        J[:3] = R @ J[:3]
        J[3:] = R @ J[3:]
        return J

    def support_velocity_indices(self, joint_id: int) -> List[int]:
        """Velocity variables of a joint and of all its ancestors."""
        indices: List[int] = []
        while joint_id != 0:
            joint = self.model.joints[joint_id]
            indices.extend(range(joint.idx_v, joint.idx_v + joint.nv))
            joint_id = self.model.parents[joint_id]
        return sorted(indices)

    def support_configuration_indices(self, joint_id: int) -> List[int]:
        """Configuration variables of a joint and of all its ancestors."""
        indices: List[int] = []
        while joint_id != 0:
            joint = self.model.joints[joint_id]
            indices.extend(range(joint.idx_q, joint.idx_q + joint.nq))
            joint_id = self.model.parents[joint_id]
        return sorted(indices)
