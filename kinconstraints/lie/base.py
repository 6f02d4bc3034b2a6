"""Abstract matrix Lie group used as the value type of group spaces."""

import abc

import numpy as np
from typing_extensions import Self


class MatrixLieGroup(abc.ABC):
    """Element of a matrix Lie group with a flat parameter vector.

    Tangent vectors live in the local frame of the element: ``g.plus(v)`` is
    ``g @ exp(v)`` and ``g.minus(h)`` is the ``v`` such that
    ``h.plus(v) == g``. Jacobians of ``exp`` and ``log`` follow the same
    convention, so that they chain with :meth:`adjoint`.

    Attributes:
        parameters_dim: Size of the parameter vector (configuration size).
        tangent_dim: Size of the tangent space (velocity size).
    """

    parameters_dim: int
    tangent_dim: int

    def __matmul__(self, other: Self) -> Self:
        return self.multiply(other)

    @classmethod
    @abc.abstractmethod
    def identity(cls) -> Self:
        raise NotImplementedError

    @classmethod
    @abc.abstractmethod
    def from_parameters(cls, parameters: np.ndarray) -> Self:
        raise NotImplementedError

    @abc.abstractmethod
    def parameters(self) -> np.ndarray:
        raise NotImplementedError

    @abc.abstractmethod
    def as_matrix(self) -> np.ndarray:
        raise NotImplementedError

    @abc.abstractmethod
    def multiply(self, other: Self) -> Self:
        raise NotImplementedError

    @abc.abstractmethod
    def inverse(self) -> Self:
        raise NotImplementedError

    @classmethod
    @abc.abstractmethod
    def exp(cls, tangent: np.ndarray) -> Self:
        raise NotImplementedError

    @abc.abstractmethod
    def log(self) -> np.ndarray:
        raise NotImplementedError

    @classmethod
    @abc.abstractmethod
    def jexp(cls, tangent: np.ndarray) -> np.ndarray:
        """Jacobian J such that exp(v + dv) = exp(v) exp(J dv)."""
        raise NotImplementedError

    @abc.abstractmethod
    def jlog(self) -> np.ndarray:
        """Jacobian J such that log(g exp(w)) = log(g) + J w."""
        raise NotImplementedError

    @abc.abstractmethod
    def adjoint(self) -> np.ndarray:
        raise NotImplementedError

    def plus(self, tangent: np.ndarray) -> Self:
        return self.multiply(type(self).exp(tangent))

    def between(self, other: Self) -> Self:
        """Element taking this one to ``other``: ``self.inverse() @ other``."""
        return self.inverse().multiply(other)

    def minus(self, other: Self) -> np.ndarray:
        return other.between(self).log()
