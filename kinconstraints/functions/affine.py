"""Affine and quadratic functions of a vector."""

from __future__ import annotations

import numpy as np
import numpy.typing as npt

from ..exceptions import ConstraintDefinitionError
from ..function import DifferentiableFunction


class AffineFunction(DifferentiableFunction):
    """f(x) = A x + b.

    Example:
        >>> # x + y - 1
        >>> f = AffineFunction(np.array([[1.0, 1.0]]), np.array([-1.0]))
    """

    def __init__(self, A: npt.ArrayLike, b: npt.ArrayLike | None = None, name: str = "affine"):
        A = np.atleast_2d(np.asarray(A, dtype=np.float64))
        b = np.zeros(A.shape[0]) if b is None else np.atleast_1d(np.asarray(b, dtype=np.float64))
        if b.shape != (A.shape[0],):
            raise ConstraintDefinitionError(
                f"{self.__class__.__name__} offset should have shape ({A.shape[0]},) "
                f"but got {b.shape}"
            )
        super().__init__(A.shape[1], A.shape[1], A.shape[0], name=name)
        self.A = A
        self.b = b

    def _compute(self, argument: np.ndarray) -> np.ndarray:
        return self.A @ argument + self.b

    def _jacobian(self, argument: np.ndarray) -> np.ndarray:
        return self.A.copy()

    def active_parameters(self) -> np.ndarray:
        return np.any(self.A != 0, axis=0)

    def active_derivative_parameters(self) -> np.ndarray:
        return self.active_parameters()

    def __str__(self) -> str:
        return f"{super().__str__()}\nA = {self.A.tolist()}\nb = {self.b.tolist()}"


class Quadratic(DifferentiableFunction):
    """f(x) = x^T A x + c, a scalar function."""

    def __init__(self, A: npt.ArrayLike, c: float = 0.0, name: str = "quadratic"):
        A = np.asarray(A, dtype=np.float64)
        if A.ndim != 2 or A.shape[0] != A.shape[1]:
            raise ConstraintDefinitionError(
                f"{self.__class__.__name__} matrix should be square but got shape {A.shape}"
            )
        super().__init__(A.shape[0], A.shape[0], 1, name=name)
        self.A = A
        self.c = float(c)

    def _compute(self, argument: np.ndarray) -> np.ndarray:
        return np.array([argument @ self.A @ argument + self.c])

    def _jacobian(self, argument: np.ndarray) -> np.ndarray:
        return (argument @ (self.A + self.A.T)).reshape(1, -1)

    def __str__(self) -> str:
        return f"{super().__str__()}\nA = {self.A.tolist()}\nc = {self.c!r}"
