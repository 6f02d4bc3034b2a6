"""All constraint functions derive from the DifferentiableFunction base class."""

from __future__ import annotations

import abc
from typing import Optional

import numpy as np

from . import constants as consts
from .lie import LieGroupSpace


class DifferentiableFunction(abc.ABC):
    """Differentiable function of a configuration.

    Subclasses implement :meth:`_compute` and, when an analytic expression is
    available, :meth:`_jacobian`. Otherwise the Jacobian is approximated by
    forward finite differences.

    The input of the function lives in ``input_space`` (a vector space when
    the input size equals the input derivative size) and its output in
    ``output_space``. The Jacobian maps input tangent vectors to output
    tangent vectors: its shape is always
    (output_derivative_size, input_derivative_size).

    Evaluation does not modify the function, so that a function can be
    shared by several constraints and evaluated from several threads.

    Attributes:
        name: Function name.
        input_space: Space of the input vector.
        output_space: Space of the output vector.
    """

    def __init__(
        self,
        input_size: int,
        input_derivative_size: int,
        output_space: LieGroupSpace | int,
        name: str = "",
        input_space: Optional[LieGroupSpace] = None,
    ):
        """Initialize the function dimensions.

        Args:
            input_size: Size of the input vector.
            input_derivative_size: Size of the input tangent vectors.
            output_space: Space of the output, or its dimension for R^n.
            name: Function name.
            input_space: Space used to perturb inputs when computing finite
                differences. Required when the input is not a vector space.
        """
        if isinstance(output_space, (int, np.integer)):
            output_space = LieGroupSpace.Rn(int(output_space))
        if input_space is None:
            assert input_size == input_derivative_size, (
                "An input space is required when input size and input "
                "derivative size differ"
            )
            input_space = LieGroupSpace.Rn(input_size)
        assert (input_space.nq, input_space.nv) == (input_size, input_derivative_size)
        self.name = name
        self.input_space = input_space
        self.output_space = output_space

    @property
    def input_size(self) -> int:
        return self.input_space.nq

    @property
    def input_derivative_size(self) -> int:
        return self.input_space.nv

    @property
    def output_size(self) -> int:
        return self.output_space.nq

    @property
    def output_derivative_size(self) -> int:
        return self.output_space.nv

    def value(self, argument: np.ndarray) -> np.ndarray:
        """Evaluate the function.

        Args:
            argument: Input vector of size input_size.

        Returns:
            Output vector of size output_size.
        """
        argument = np.asarray(argument, dtype=np.float64)
        assert argument.shape == (self.input_size,), (
            f"{self.name}: expected argument of size {self.input_size}, got {argument.shape}"
        )
        result = np.asarray(self._compute(argument), dtype=np.float64)
        assert result.shape == (self.output_size,)
        return result

    def jacobian(self, argument: np.ndarray) -> np.ndarray:
        """Compute the Jacobian of the function.

        Args:
            argument: Input vector of size input_size.

        Returns:
            Matrix of shape (output_derivative_size, input_derivative_size).
        """
        argument = np.asarray(argument, dtype=np.float64)
        assert argument.shape == (self.input_size,), (
            f"{self.name}: expected argument of size {self.input_size}, got {argument.shape}"
        )
        jacobian = np.asarray(self._jacobian(argument), dtype=np.float64)
        assert jacobian.shape == (self.output_derivative_size, self.input_derivative_size)
        return jacobian

    @abc.abstractmethod
    def _compute(self, argument: np.ndarray) -> np.ndarray:
        """Value of the function, without size checks."""
        raise NotImplementedError

    def _jacobian(self, argument: np.ndarray) -> np.ndarray:
        return self.finite_difference_forward(argument)

    def finite_difference_forward(
        self,
        argument: np.ndarray,
        space: Optional[LieGroupSpace] = None,
        eps: float = consts.FINITE_DIFFERENCE_EPSILON,
    ) -> np.ndarray:
        """Approximate the Jacobian using forward finite differences.

        Evaluates the function input_derivative_size + 1 times. Less precise
        than :meth:`finite_difference_central`.

        Args:
            argument: Point at which the Jacobian is computed.
            space: Space used to perturb the argument. Defaults to the
                function input space.
            eps: Perturbation step.

        Returns:
            Approximated Jacobian.
        """
        space = self.input_space if space is None else space
        f0 = self._compute(argument)
        jacobian = np.zeros((self.output_derivative_size, self.input_derivative_size))
        dv = np.zeros(self.input_derivative_size)
        for i in range(self.input_derivative_size):
            dv[i] = eps
            f1 = self._compute(space.integrate(argument, dv))
            jacobian[:, i] = self.output_space.difference(f0, f1) / eps
            dv[i] = 0.0
        return jacobian

    def finite_difference_central(
        self,
        argument: np.ndarray,
        space: Optional[LieGroupSpace] = None,
        eps: float = consts.FINITE_DIFFERENCE_EPSILON,
    ) -> np.ndarray:
        """Approximate the Jacobian using central finite differences.

        Evaluates the function 2 * input_derivative_size times. More precise
        than :meth:`finite_difference_forward`.
        """
        space = self.input_space if space is None else space
        jacobian = np.zeros((self.output_derivative_size, self.input_derivative_size))
        dv = np.zeros(self.input_derivative_size)
        for i in range(self.input_derivative_size):
            dv[i] = eps
            f_plus = self._compute(space.integrate(argument, dv))
            dv[i] = -eps
            f_minus = self._compute(space.integrate(argument, dv))
            jacobian[:, i] = self.output_space.difference(f_minus, f_plus) / (2 * eps)
            dv[i] = 0.0
        return jacobian

    def active_parameters(self) -> np.ndarray:
        """Boolean mask of the input variables the output may depend on."""
        return np.ones(self.input_size, dtype=bool)

    def active_derivative_parameters(self) -> np.ndarray:
        """Boolean mask of the input derivative variables the output may depend on."""
        return np.ones(self.input_derivative_size, dtype=bool)

    def __str__(self) -> str:
        return f"Differentiable function:\n{self.name}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name!r}, "
            f"input_size={self.input_size}, output_space={self.output_space.name})"
        )
