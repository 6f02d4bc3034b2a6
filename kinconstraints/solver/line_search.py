"""Line search strategies: how far to move along a descent direction.

A line search is called by the solver at each iteration with the current
configuration and the descent direction, and returns the next configuration
together with the step length it used. It may query the solver for the
squared error at trial configurations (see
:class:`~kinconstraints.solver.HierarchicalIterativeSolver`).

Strategies are reset at the start of each solve.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Optional, Sequence, Tuple

import numpy as np

from .. import constants as consts
from ..exceptions import SolverDefinitionError

if TYPE_CHECKING:
    from .hierarchical_iterative import HierarchicalIterativeSolver


class LineSearch(abc.ABC):
    """Abstract base class for line search strategies."""

    def reset(self) -> None:
        """Forget the state of the previous solve."""

    @abc.abstractmethod
    def __call__(
        self,
        solver: "HierarchicalIterativeSolver",
        q: np.ndarray,
        dq: np.ndarray,
    ) -> Tuple[np.ndarray, float]:
        """Move along a descent direction.

        Args:
            solver: Solver calling the line search.
            q: Current configuration.
            dq: Descent direction, a velocity of the configuration space.

        Returns:
            Tuple (next configuration, step length).
        """
        raise NotImplementedError


class Constant(LineSearch):
    """Full Newton step."""

    def __call__(self, solver, q, dq):
        return solver.integrate(q, dq), 1.0


class Backtracking(LineSearch):
    """Shrink the step until the Armijo condition holds.

    The step alpha is accepted when
        ||e(q + alpha dq)||^2 <= ||e(q)||^2 + c * alpha * slope
    where slope is the derivative of the squared error along dq. When no step
    larger than ``small_alpha`` satisfies the condition, ``small_alpha`` is
    used.
    """

    def __init__(
        self,
        c: float = consts.BACKTRACKING_ARMIJO,
        tau: float = consts.BACKTRACKING_CONTRACTION,
        small_alpha: float = consts.BACKTRACKING_SMALL_ALPHA,
    ):
        if not 0.0 < c < 1.0:
            raise SolverDefinitionError(f"{self.__class__.__name__} c must be in (0, 1)")
        if not 0.0 < tau < 1.0:
            raise SolverDefinitionError(f"{self.__class__.__name__} tau must be in (0, 1)")
        if not 0.0 < small_alpha <= 1.0:
            raise SolverDefinitionError(
                f"{self.__class__.__name__} small_alpha must be in (0, 1]"
            )
        self.c = c
        self.tau = tau
        self.small_alpha = small_alpha

    def __call__(self, solver, q, dq):
        error = solver.squared_error
        slope = solver.error_slope(dq)
        alpha = 1.0
        while alpha > self.small_alpha:
            candidate = solver.integrate(q, alpha * dq)
            if solver.evaluate_squared_error(candidate) <= error + self.c * alpha * slope:
                return candidate, alpha
            alpha *= self.tau
        return solver.integrate(q, self.small_alpha * dq), self.small_alpha


class ErrorNormBased(LineSearch):
    """Step length decreasing with the norm of the error.

    The nominal step is
        alpha = alpha_max - (alpha_max - alpha_min) * tanh(||e||)
    so that large errors lead to cautious steps and small errors to almost
    full Newton steps. The nominal step is then scaled by a factor adapted
    from the ratio between the actual and the predicted reduction of the
    squared error at the previous iteration: halved below ``shrink_ratio``,
    doubled (up to 1) above ``grow_ratio``. The step never goes below
    ``alpha_min``.
    """

    def __init__(
        self,
        alpha_min: float = consts.ERROR_NORM_ALPHA_MIN,
        alpha_max: float = consts.ERROR_NORM_ALPHA_MAX,
        shrink_ratio: float = consts.ERROR_NORM_SHRINK_RATIO,
        grow_ratio: float = consts.ERROR_NORM_GROW_RATIO,
    ):
        if not 0.0 < alpha_min <= alpha_max <= 1.0:
            raise SolverDefinitionError(
                f"{self.__class__.__name__} requires 0 < alpha_min <= alpha_max <= 1"
            )
        if not 0.0 <= shrink_ratio <= grow_ratio:
            raise SolverDefinitionError(
                f"{self.__class__.__name__} requires 0 <= shrink_ratio <= grow_ratio"
            )
        self.alpha_min = alpha_min
        self.alpha_max = alpha_max
        self.shrink_ratio = shrink_ratio
        self.grow_ratio = grow_ratio
        self.reset()

    def reset(self) -> None:
        self._scale = 1.0

    def __call__(self, solver, q, dq):
        error = solver.squared_error
        nominal = self.alpha_max - (self.alpha_max - self.alpha_min) * np.tanh(np.sqrt(error))
        alpha = max(self.alpha_min, self._scale * nominal)
        candidate = solver.integrate(q, alpha * dq)

        predicted = error - solver.predicted_squared_error(dq, alpha)
        actual = error - solver.evaluate_squared_error(candidate)
        if predicted > 0.0:
            ratio = actual / predicted
            if ratio < self.shrink_ratio:
                self._scale *= 0.5
            elif ratio > self.grow_ratio:
                self._scale = min(1.0, 2.0 * self._scale)
        return candidate, alpha


class FixedSequence(LineSearch):
    """Predefined sequence of step lengths, one per iteration.

    By default the sequence is
        alpha_0 = alpha, alpha_{k+1} = alpha_max - K * (alpha_max - alpha_k)
    which starts with small steps and converges to alpha_max. A custom
    sequence can be given instead; its last value is repeated once it is
    exhausted.
    """

    def __init__(
        self,
        alphas: Optional[Sequence[float]] = None,
        alpha: float = consts.FIXED_SEQUENCE_ALPHA,
        alpha_max: float = consts.FIXED_SEQUENCE_ALPHA_MAX,
        K: float = consts.FIXED_SEQUENCE_K,
    ):
        if alphas is not None:
            alphas = [float(a) for a in alphas]
            if not alphas or not all(0.0 < a <= 1.0 for a in alphas):
                raise SolverDefinitionError(
                    f"{self.__class__.__name__} steps must be a non-empty sequence in (0, 1]"
                )
        if not 0.0 < alpha <= alpha_max <= 1.0:
            raise SolverDefinitionError(
                f"{self.__class__.__name__} requires 0 < alpha <= alpha_max <= 1"
            )
        if not 0.0 <= K < 1.0:
            raise SolverDefinitionError(f"{self.__class__.__name__} K must be in [0, 1)")
        self.alphas = alphas
        self.alpha_start = alpha
        self.alpha_max = alpha_max
        self.K = K
        self.reset()

    def reset(self) -> None:
        self._index = 0
        self._alpha = self.alpha_start

    def next_alpha(self) -> float:
        if self.alphas is not None:
            alpha = self.alphas[min(self._index, len(self.alphas) - 1)]
            self._index += 1
            return alpha
        alpha = self._alpha
        self._alpha = self.alpha_max - self.K * (self.alpha_max - self._alpha)
        return alpha

    def __call__(self, solver, q, dq):
        alpha = self.next_alpha()
        return solver.integrate(q, alpha * dq), alpha
