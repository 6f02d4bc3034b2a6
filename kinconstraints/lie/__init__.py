"""Lie groups and Lie group spaces."""

from .base import MatrixLieGroup
from .se3 import SE3
from .so3 import SO3
from .space import (
    CartesianProduct,
    LieGroupSpace,
    SE3Space,
    SO2Space,
    SO3Space,
    VectorSpace,
)
from .utils import get_epsilon, skew

__all__ = [
    "CartesianProduct",
    "LieGroupSpace",
    "MatrixLieGroup",
    "SE3",
    "SE3Space",
    "SO2Space",
    "SO3",
    "SO3Space",
    "VectorSpace",
    "get_epsilon",
    "skew",
]
