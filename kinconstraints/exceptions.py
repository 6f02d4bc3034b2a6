"""Exceptions specific to constraint definition, solving and persistence."""

from typing import Iterable


class ConstraintError(Exception):
    """Base class for constraint exceptions."""


class ConstraintDefinitionError(ConstraintError):
    """Exception raised when a constraint is incorrectly defined."""

    def __init__(self, message: str):
        super().__init__(message)


class SolverDefinitionError(ConstraintError):
    """Exception raised when a solver or a line search is incorrectly set up."""

    def __init__(self, message: str):
        super().__init__(message)


class InvalidJoint(ConstraintError):
    """Exception raised when a joint name is not found in the robot model."""

    def __init__(self, joint_name: str, available: Iterable[str]):
        message = (
            f"Joint '{joint_name}' does not exist in the model. "
            f"Available joint names: {list(available)}"
        )
        super().__init__(message)


class SerializationError(ConstraintError):
    """Exception raised when a constraint archive cannot be read back."""

    def __init__(self, message: str):
        super().__init__(message)
