"""Comparison types and the residual of a function against a right-hand side."""

import enum
from typing import Iterable, Sequence, Tuple

import numpy as np


class ComparisonType(enum.Enum):
    """How one output row of a function is compared to its right-hand side."""

    EQUALITY = "Equality"
    EQUAL_TO_ZERO = "EqualToZero"
    GREATER_OR_EQUAL = "Superior"
    LESS_OR_EQUAL = "Inferior"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def n_times(cls, n: int, comparison: "ComparisonType") -> Tuple["ComparisonType", ...]:
        return (comparison,) * n


EQUALITY = ComparisonType.EQUALITY
EQUAL_TO_ZERO = ComparisonType.EQUAL_TO_ZERO
SUPERIOR = ComparisonType.GREATER_OR_EQUAL
INFERIOR = ComparisonType.LESS_OR_EQUAL


def equality_rows(comparison: Sequence[ComparisonType]) -> np.ndarray:
    """Boolean mask of the rows whose right-hand side can be changed."""
    return np.array([c is ComparisonType.EQUALITY for c in comparison], dtype=bool)


def compute_residual(
    difference: np.ndarray,
    comparison: Sequence[ComparisonType],
) -> np.ndarray:
    """Signed residual of each row.

    Args:
        difference: f(x) (-) rhs in the tangent space of the output.
        comparison: Comparison type of each row.

    Returns:
        Residual vector: zero on satisfied inequality rows, positive
        violation on violated inequality rows and the difference itself on
        equality rows.
    """
    assert difference.shape == (len(comparison),)
    residual = difference.copy()
    for i, c in enumerate(comparison):
        if c is ComparisonType.GREATER_OR_EQUAL:
            residual[i] = max(0.0, -difference[i])
        elif c is ComparisonType.LESS_OR_EQUAL:
            residual[i] = max(0.0, difference[i])
    return residual


def residual_jacobian(
    difference: np.ndarray,
    jacobian: np.ndarray,
    comparison: Sequence[ComparisonType],
) -> np.ndarray:
    """Jacobian of :func:`compute_residual` given the Jacobian of the difference.

    Satisfied inequality rows get a zero row: they do not constrain the
    step. Violated GREATER_OR_EQUAL rows are negated since their residual is
    ``-difference``.
    """
    assert jacobian.shape[0] == len(comparison)
    result = jacobian.copy()
    for i, c in enumerate(comparison):
        if c is ComparisonType.GREATER_OR_EQUAL:
            result[i] = -jacobian[i] if difference[i] < 0 else 0.0
        elif c is ComparisonType.LESS_OR_EQUAL:
            if difference[i] <= 0:
                result[i] = 0.0
    return result


def format_comparison(comparison: Iterable[ComparisonType]) -> str:
    return "(" + ", ".join(str(c) for c in comparison) + ")"
