"""Differentiable functions used to define constraints and costs."""

from .affine import AffineFunction, Quadratic
from .configuration_distance import ConfigurationDistance
from .relative_transformation import RelativeTransformation

__all__ = [
    "AffineFunction",
    "ConfigurationDistance",
    "Quadratic",
    "RelativeTransformation",
]
