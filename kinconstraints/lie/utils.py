"""Small helpers shared by the group implementations."""

import numpy as np
import pinocchio as pin

from ..constants import get_epsilon


def skew(x: np.ndarray) -> np.ndarray:
    """Cross-product matrix: ``skew(a) @ b == np.cross(a, b)``."""
    assert x.shape == (3,), f"Expected 3D vector, got shape {x.shape}"
    return np.array(pin.skew(x))


def normalize_quaternion(quat: np.ndarray) -> np.ndarray:
    """Project a [x, y, z, w] quaternion back on the unit sphere."""
    norm = np.linalg.norm(quat)
    if norm < get_epsilon(quat.dtype):
        return np.array([0.0, 0.0, 0.0, 1.0])
    return quat / norm


__all__ = ["get_epsilon", "normalize_quaternion", "skew"]
