"""Squared distance to a goal configuration."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from ..exceptions import ConstraintDefinitionError
from ..function import DifferentiableFunction
from ..lie import LieGroupSpace


class ConfigurationDistance(DifferentiableFunction):
    """f(q) = 0.5 * ||mask * (goal (-) q)||^2.

    Used as an optional cost to pull the solution towards a preferred
    configuration.

    Attributes:
        goal: Goal configuration.
        mask: Velocity variables taken into account.
    """

    def __init__(
        self,
        name: str,
        space: LieGroupSpace,
        goal: np.ndarray,
        mask: Optional[Sequence[bool]] = None,
    ):
        """Initialize the function.

        Args:
            name: Function name.
            space: Configuration space.
            goal: Goal configuration of size space.nq.
            mask: Velocity variables taken into account. A mask shorter than
                space.nv is completed with True.
        """
        super().__init__(space.nq, space.nv, 1, name=name, input_space=space)
        goal = np.asarray(goal, dtype=np.float64)
        if goal.shape != (space.nq,):
            raise ConstraintDefinitionError(
                f"{name}: goal should have shape ({space.nq},) but got {goal.shape}"
            )
        full_mask = np.ones(space.nv, dtype=bool)
        if mask is not None:
            mask = np.asarray(mask, dtype=bool)
            if mask.shape[0] > space.nv:
                raise ConstraintDefinitionError(
                    f"{name}: mask has {mask.shape[0]} entries, space has {space.nv} dofs"
                )
            full_mask[: mask.shape[0]] = mask
        self.space = space
        self.goal = goal
        self.mask = full_mask

    def _masked_difference(self, argument: np.ndarray) -> np.ndarray:
        return np.where(self.mask, self.space.difference(argument, self.goal), 0.0)

    def _compute(self, argument: np.ndarray) -> np.ndarray:
        diff = self._masked_difference(argument)
        return np.array([0.5 * diff @ diff])

    def _jacobian(self, argument: np.ndarray) -> np.ndarray:
        diff = self._masked_difference(argument)
        return (diff @ self.space.d_difference(argument, self.goal, 0)).reshape(1, -1)

    def active_derivative_parameters(self) -> np.ndarray:
        return self.mask.copy()
