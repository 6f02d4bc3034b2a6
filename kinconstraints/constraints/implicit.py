"""Implicit constraint: a function compared row by row to a right-hand side."""

from __future__ import annotations

import copy as copy_module
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import numpy.typing as npt

from .. import constants as consts
from ..comparison import (
    ComparisonType,
    compute_residual,
    equality_rows,
    format_comparison,
    residual_jacobian,
)
from ..exceptions import ConstraintDefinitionError
from ..function import DifferentiableFunction

ComparisonSpec = Union[ComparisonType, Sequence[ComparisonType], None]


def _format_vector(values: np.ndarray) -> str:
    return "(" + ", ".join(repr(float(v)) for v in values) + ")"


def _format_mask(mask: np.ndarray) -> str:
    return "(" + ", ".join("1" if m else "0" for m in mask) + ")"


class Implicit:
    """Constraint f(q) = rhs, f(q) >= rhs or f(q) <= rhs, row by row.

    Each row of the output tangent of the function gets a comparison type.
    EQUALITY rows compare to the right-hand side, which can be changed.
    Other rows always compare to the neutral element of the output space.

    Rows can be deactivated with a mask: inactive rows are removed from the
    residual and the Jacobian.

    Attributes:
        function: Constrained function of the configuration.

    Example:
        >>> constraint = Implicit(function, [ComparisonType.EQUALITY] * 6)
        >>> constraint.right_hand_side_from_config(q_init)
        >>> constraint.is_satisfied(q)
    """

    def __init__(
        self,
        function: DifferentiableFunction,
        comparison_type: ComparisonSpec = None,
        mask: Optional[npt.ArrayLike] = None,
    ):
        """Initialize the constraint.

        Args:
            function: Function of the configuration.
            comparison_type: One comparison type per output derivative row,
                or a single one for all rows. Defaults to EQUALITY.
            mask: Active rows. Defaults to all rows.

        Raises:
            ConstraintDefinitionError: If the comparison types or the mask do
                not match the output derivative size of the function.
        """
        self.function = function
        self.comparison_type = comparison_type
        if mask is None:
            mask = np.ones(function.output_derivative_size, dtype=bool)
        self.mask = mask
        self._rhs = function.output_space.neutral()

    @staticmethod
    def _comparison_types(comparison_type: ComparisonSpec, n: int) -> Tuple[ComparisonType, ...]:
        if comparison_type is None:
            return ComparisonType.n_times(n, ComparisonType.EQUALITY)
        if isinstance(comparison_type, ComparisonType):
            return ComparisonType.n_times(n, comparison_type)
        comparison_type = tuple(comparison_type)
        if len(comparison_type) != n:
            raise ConstraintDefinitionError(
                f"Expected {n} comparison types, got {len(comparison_type)}"
            )
        if not all(isinstance(c, ComparisonType) for c in comparison_type):
            raise ConstraintDefinitionError(
                f"Invalid comparison types {comparison_type}"
            )
        return comparison_type

    # Properties

    @property
    def comparison_type(self) -> Tuple[ComparisonType, ...]:
        return self._comparison

    @comparison_type.setter
    def comparison_type(self, value: ComparisonSpec) -> None:
        self._comparison = self._comparison_types(value, self.function.output_derivative_size)
        self._equality = equality_rows(self._comparison)

    @property
    def mask(self) -> np.ndarray:
        """Boolean mask of the active rows."""
        return self._mask

    @mask.setter
    def mask(self, value: npt.ArrayLike) -> None:
        mask = np.array(value, dtype=bool).reshape(-1)
        if mask.shape != (self.function.output_derivative_size,):
            raise ConstraintDefinitionError(
                f"Mask should have {self.function.output_derivative_size} "
                f"entries, got {mask.shape[0]}"
            )
        self._mask = mask

    @property
    def active_rows(self) -> np.ndarray:
        """Indices of the active rows in the output tangent."""
        return np.flatnonzero(self._mask)

    @property
    def dimension(self) -> int:
        """Number of active rows."""
        return int(np.count_nonzero(self._mask))

    @property
    def parameter_size(self) -> int:
        """Number of rows whose right-hand side can be set."""
        return int(np.count_nonzero(self._equality))

    @property
    def right_hand_side(self) -> np.ndarray:
        return self._rhs.copy()

    @right_hand_side.setter
    def right_hand_side(self, rhs: npt.ArrayLike) -> None:
        rhs = np.asarray(rhs, dtype=np.float64)
        space = self.function.output_space
        assert rhs.shape == (space.nq,), (
            f"Right hand side should have {space.nq} entries, got {rhs.shape}"
        )
        tangent = space.difference(space.neutral(), rhs)
        if np.all(np.abs(tangent[~self._equality]) <= consts.EPSILON_FLOAT64):
            self._rhs = rhs.copy()
        else:
            self._rhs = self._project(tangent)

    def _project(self, tangent: np.ndarray) -> np.ndarray:
        space = self.function.output_space
        tangent = tangent.copy()
        tangent[~self._equality] = 0.0
        return space.integrate(space.neutral(), tangent)

    def right_hand_side_from_config(self, q: np.ndarray) -> np.ndarray:
        """Set the right-hand side so that q satisfies the EQUALITY rows.

        Args:
            q: Configuration.

        Returns:
            The new right-hand side.
        """
        space = self.function.output_space
        value = self.function.value(q)
        self._rhs = self._project(space.difference(space.neutral(), value))
        return self.right_hand_side

    # Residual

    def _difference(self, q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        value = self.function.value(q)
        return value, self.function.output_space.difference(self._rhs, value)

    def residual(self, q: np.ndarray) -> np.ndarray:
        """Residual on the active rows, zero when q satisfies the constraint."""
        _, difference = self._difference(q)
        return compute_residual(difference, self._comparison)[self._mask]

    def residual_and_jacobian(self, q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Residual and its Jacobian on the active rows.

        Returns:
            Tuple (residual, jacobian) of shapes (dimension,) and
            (dimension, nv).
        """
        value, difference = self._difference(q)
        space = self.function.output_space
        jacobian = space.d_difference(self._rhs, value, 1) @ self.function.jacobian(q)
        residual = compute_residual(difference, self._comparison)
        jacobian = residual_jacobian(difference, jacobian, self._comparison)
        return residual[self._mask], jacobian[self._mask]

    def is_satisfied(
        self,
        q: np.ndarray,
        error_threshold: float = consts.DEFAULT_ERROR_THRESHOLD,
    ) -> bool:
        return bool(np.all(np.abs(self.residual(q)) <= error_threshold))

    # Copies

    def copy(self) -> "Implicit":
        """New constraint sharing the function, with its own rhs and mask."""
        other = copy_module.copy(self)
        other._rhs = self._rhs.copy()
        other._mask = self._mask.copy()
        return other

    def complement(self) -> "Implicit":
        """Same constraint on the rows that are inactive in this one."""
        other = self.copy()
        other._mask = ~self._mask
        return other

    def __str__(self) -> str:
        return "\n".join(
            [
                str(self.function),
                f"Comparison types: {format_comparison(self._comparison)}",
                f"Mask: {_format_mask(self._mask)}",
                f"Right hand side: {_format_vector(self._rhs)}",
            ]
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.function.name!r})"
