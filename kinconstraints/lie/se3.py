"""SE(3) parameterized like a pinocchio free-flyer joint."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pinocchio as pin

from .base import MatrixLieGroup
from .so3 import SO3


@dataclass(frozen=True)
class SE3(MatrixLieGroup):
    """Rigid transform with parameters ``[x, y, z, qx, qy, qz, qw]``.

    The tangent vector is a twist ``[linear, angular]`` in the local frame,
    as in ``pinocchio.exp6``.
    """

    rotation: SO3
    translation: np.ndarray
    parameters_dim: int = 7
    tangent_dim: int = 6

    def __repr__(self) -> str:
        return (
            f"SE3(xyz={np.round(self.translation, 5)}, "
            f"quat={np.round(self.rotation.quat, 5)})"
        )

    @classmethod
    def identity(cls) -> SE3:
        return SE3(rotation=SO3.identity(), translation=np.zeros(3))

    @classmethod
    def from_parameters(cls, parameters: np.ndarray) -> SE3:
        assert parameters.shape == (7,), f"Expected 7 parameters, got shape {parameters.shape}"
        return SE3(
            rotation=SO3.from_parameters(parameters[3:]),
            translation=np.array(parameters[:3], dtype=np.float64),
        )

    @classmethod
    def from_rotation_and_translation(cls, rotation: SO3, translation: np.ndarray) -> SE3:
        assert translation.shape == (3,)
        return SE3(rotation=rotation, translation=np.array(translation, dtype=np.float64))

    @classmethod
    def from_translation(cls, translation: np.ndarray) -> SE3:
        return SE3.from_rotation_and_translation(SO3.identity(), translation)

    @classmethod
    def from_pinocchio(cls, placement: pin.SE3) -> SE3:
        return SE3(
            rotation=SO3.from_rotation_matrix(placement.rotation),
            translation=np.array(placement.translation),
        )

    def to_pinocchio(self) -> pin.SE3:
        return pin.SE3(self.rotation.as_matrix(), self.translation.copy())

    def parameters(self) -> np.ndarray:
        return np.concatenate([self.translation, self.rotation.quat])

    def as_matrix(self) -> np.ndarray:
        return self.to_pinocchio().homogeneous

    def act(self, point: np.ndarray) -> np.ndarray:
        return self.rotation.act(point) + self.translation

    def multiply(self, other: SE3) -> SE3:
        return SE3(
            rotation=self.rotation.multiply(other.rotation),
            translation=self.act(other.translation),
        )

    def inverse(self) -> SE3:
        rotation = self.rotation.inverse()
        return SE3(rotation=rotation, translation=-rotation.act(self.translation))

    @classmethod
    def exp(cls, tangent: np.ndarray) -> SE3:
        assert tangent.shape == (6,)
        return SE3.from_pinocchio(pin.exp6(pin.Motion(tangent)))

    def log(self) -> np.ndarray:
        return np.array(pin.log6(self.to_pinocchio()).vector)

    @classmethod
    def jexp(cls, tangent: np.ndarray) -> np.ndarray:
        assert tangent.shape == (6,)
        return np.array(pin.Jexp6(pin.Motion(tangent)))

    def jlog(self) -> np.ndarray:
        return np.array(pin.Jlog6(self.to_pinocchio()))

    def adjoint(self) -> np.ndarray:
        # [R, [t]x R; 0, R] acting on [linear, angular]
        return np.array(self.to_pinocchio().action)
