"""SO(3) parameterized like a pinocchio spherical joint."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pinocchio as pin

from .base import MatrixLieGroup
from .utils import normalize_quaternion

# Below this angle exp uses a Taylor expansion of sin(theta / 2) / theta
_SMALL_ANGLE = 1e-4


@dataclass(frozen=True)
class SO3(MatrixLieGroup):
    """Rotation stored as a unit quaternion ``[x, y, z, w]``.

    The tangent vector is the angular velocity in the rotated frame.
    """

    quat: np.ndarray
    parameters_dim: int = 4
    tangent_dim: int = 3

    def __repr__(self) -> str:
        return f"SO3(quat={np.round(self.quat, 5)})"

    @classmethod
    def identity(cls) -> SO3:
        return SO3(quat=np.array([0.0, 0.0, 0.0, 1.0]))

    @classmethod
    def from_parameters(cls, parameters: np.ndarray) -> SO3:
        assert parameters.shape == (4,), f"Expected quaternion, got shape {parameters.shape}"
        return SO3(quat=normalize_quaternion(np.asarray(parameters, dtype=np.float64)))

    @classmethod
    def from_rotation_matrix(cls, matrix: np.ndarray) -> SO3:
        assert matrix.shape == (3, 3)
        return SO3(quat=np.array(pin.Quaternion(matrix).coeffs()))

    def parameters(self) -> np.ndarray:
        return self.quat

    def as_matrix(self) -> np.ndarray:
        x, y, z, w = self.quat
        return pin.Quaternion(w, x, y, z).toRotationMatrix()

    def act(self, point: np.ndarray) -> np.ndarray:
        """Rotate a 3D point."""
        return self.as_matrix() @ point

    def multiply(self, other: SO3) -> SO3:
        v1, w1 = self.quat[:3], self.quat[3]
        v2, w2 = other.quat[:3], other.quat[3]
        quat = np.empty(4)
        quat[:3] = w1 * v2 + w2 * v1 + np.cross(v1, v2)
        quat[3] = w1 * w2 - v1 @ v2
        return SO3(quat=normalize_quaternion(quat))

    def inverse(self) -> SO3:
        return SO3(quat=np.append(-self.quat[:3], self.quat[3]))

    @classmethod
    def exp(cls, tangent: np.ndarray) -> SO3:
        assert tangent.shape == (3,)
        theta = np.linalg.norm(tangent)
        if theta < _SMALL_ANGLE:
            k = 0.5 - theta**2 / 48.0
        else:
            k = np.sin(0.5 * theta) / theta
        return SO3(quat=np.append(k * tangent, np.cos(0.5 * theta)))

    def log(self) -> np.ndarray:
        return np.array(pin.log3(self.as_matrix()))

    @classmethod
    def jexp(cls, tangent: np.ndarray) -> np.ndarray:
        assert tangent.shape == (3,)
        return np.array(pin.Jexp3(tangent))

    def jlog(self) -> np.ndarray:
        return np.array(pin.Jlog3(self.as_matrix()))

    def adjoint(self) -> np.ndarray:
        return self.as_matrix()
