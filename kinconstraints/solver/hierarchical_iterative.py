"""Hierarchical iterative solver.

Solve a stack of constraints sorted by priority with a Newton-Raphson like
iteration. At each iteration, the correction of each priority level is
projected onto the null space of the levels of higher priority:

    dq <- dq + P (J_k P)^+ (-e_k - J_k dq)
    P  <- P (I - (J_k P)^+ (J_k P))

where e_k and J_k are the stacked residual and Jacobian of level k and the
pseudo-inverse is computed from a truncated singular value decomposition.
"""

from __future__ import annotations

import enum
import logging
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
from scipy import linalg

from .. import constants as consts
from ..constraints import Implicit
from ..exceptions import ConstraintDefinitionError, SolverDefinitionError
from ..lie import LieGroupSpace
from ..matrix_view import IndexedView, segment_indices, segments_from_mask
from .line_search import Constant, LineSearch
from .saturation import Bounds, NoSaturation, Saturation


class Status(enum.Enum):
    """Outcome of a call to solve."""

    SUCCESS = "success"
    MAX_ITERATIONS_REACHED = "max iterations reached"
    ERROR_INCREASED = "error increased"


class SolverResult(NamedTuple):
    """Result of a call to solve."""

    configuration: np.ndarray
    status: Status
    iterations: int
    squared_error: float

    @property
    def success(self) -> bool:
        return self.status is Status.SUCCESS


class _Level:
    """Constraints sharing a priority."""

    def __init__(self):
        self.constraints: List[Implicit] = []
        self.optional = False


class HierarchicalIterativeSolver:
    """Solve constraints sorted by priority on a configuration space.

    Levels are numbered from 0 (highest priority). Mandatory levels must be
    satisfied for the solve to succeed. Optional levels are only taken into
    account in the null space of all mandatory levels, and only as long as
    they do not increase the error of the mandatory levels.

    Example:
        >>> solver = HierarchicalIterativeSolver(LieGroupSpace.Rn(2))
        >>> solver.saturation = Bounds(np.zeros(2), np.ones(2))
        >>> solver.add(Implicit(Quadratic(np.eye(2), -1.0)))
        True
        >>> result = solver.solve(np.array([0.1, 0.0]))
        >>> result.status
        <Status.SUCCESS: 'success'>
    """

    def __init__(
        self,
        configuration_space: LieGroupSpace,
        max_iterations: int = consts.DEFAULT_MAX_ITERATIONS,
        error_threshold: float = consts.DEFAULT_ERROR_THRESHOLD,
        rank_threshold: float = consts.DEFAULT_RANK_THRESHOLD,
        saturation: Optional[Saturation] = None,
        stagnation_patience: int = consts.DEFAULT_STAGNATION_PATIENCE,
    ):
        """Initialize the solver.

        Args:
            configuration_space: Space of the unknown configuration.
            max_iterations: Maximal number of iterations of solve.
            error_threshold: Largest absolute residual of a satisfied row.
            rank_threshold: Singular values below this threshold are
                considered zero.
            saturation: Saturation policy. Defaults to no saturation.
            stagnation_patience: Number of consecutive iterations without
                decrease of the error after which solve gives up.

        Raises:
            SolverDefinitionError: If a setting is invalid.
        """
        self.configuration_space = configuration_space
        self.max_iterations = max_iterations
        self.error_threshold = error_threshold
        self.rank_threshold = rank_threshold
        self.saturation = saturation
        self.stagnation_patience = stagnation_patience
        self._levels: List[_Level] = []
        self._reset_state()

    # Settings

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @max_iterations.setter
    def max_iterations(self, value: int) -> None:
        if int(value) != value or value < 0:
            raise SolverDefinitionError(
                f"max_iterations must be a non-negative integer, got {value}"
            )
        self._max_iterations = int(value)

    @property
    def error_threshold(self) -> float:
        return self._error_threshold

    @error_threshold.setter
    def error_threshold(self, value: float) -> None:
        if not value > 0.0:
            raise SolverDefinitionError(f"error_threshold must be positive, got {value}")
        self._error_threshold = float(value)

    @property
    def rank_threshold(self) -> float:
        return self._rank_threshold

    @rank_threshold.setter
    def rank_threshold(self, value: float) -> None:
        if not value >= 0.0:
            raise SolverDefinitionError(f"rank_threshold must be non-negative, got {value}")
        self._rank_threshold = float(value)

    @property
    def saturation(self) -> Saturation:
        return self._saturation

    @saturation.setter
    def saturation(self, value: Optional[Saturation]) -> None:
        if value is None:
            value = NoSaturation(self.configuration_space.nv)
        if not isinstance(value, Saturation):
            raise SolverDefinitionError(f"Invalid saturation policy {value!r}")
        self._saturation = value

    @property
    def stagnation_patience(self) -> int:
        return self._stagnation_patience

    @stagnation_patience.setter
    def stagnation_patience(self, value: int) -> None:
        if int(value) != value or value < 0:
            raise SolverDefinitionError(
                f"stagnation_patience must be a non-negative integer, got {value}"
            )
        self._stagnation_patience = int(value)

    def saturate_with_bounds(self) -> None:
        """Use the bounds of the configuration space as saturation."""
        self.saturation = Bounds.from_configuration_space(self.configuration_space)

    # Constraints

    def add(self, constraint: Implicit, priority: int = 0) -> bool:
        """Add a constraint at a priority level.

        Args:
            constraint: Constraint on the configuration.
            priority: Level of the constraint, 0 being the highest priority.

        Returns:
            False if the constraint was already in the solver.

        Raises:
            ConstraintDefinitionError: If the constraint function does not
                take configurations of the solver's space.
            SolverDefinitionError: If priority is negative.
        """
        if self.contains(constraint):
            return False
        function = constraint.function
        space = self.configuration_space
        if (function.input_size, function.input_derivative_size) != (space.nq, space.nv):
            raise ConstraintDefinitionError(
                f"{function.name}: function input sizes ({function.input_size}, "
                f"{function.input_derivative_size}) do not match configuration "
                f"space {space.name} ({space.nq}, {space.nv})"
            )
        if int(priority) != priority or priority < 0:
            raise SolverDefinitionError(f"Invalid priority {priority}")
        while len(self._levels) <= priority:
            self._levels.append(_Level())
        self._levels[priority].constraints.append(constraint)
        return True

    def contains(self, constraint: Implicit) -> bool:
        return any(c is constraint for c in self.constraints)

    @property
    def constraints(self) -> Tuple[Implicit, ...]:
        """All constraints, by decreasing priority."""
        return tuple(c for level in self._levels for c in level.constraints)

    def level_constraints(self, priority: int) -> Tuple[Implicit, ...]:
        return tuple(self._level(priority).constraints)

    @property
    def number_stacks(self) -> int:
        return len(self._levels)

    def _level(self, priority: int) -> _Level:
        if not 0 <= priority < len(self._levels):
            raise SolverDefinitionError(
                f"No priority level {priority}, solver has {len(self._levels)}"
            )
        return self._levels[priority]

    def set_optional(self, priority: int, optional: bool) -> None:
        self._level(priority).optional = bool(optional)

    def is_optional(self, priority: int) -> bool:
        return self._level(priority).optional

    @property
    def last_is_optional(self) -> bool:
        return bool(self._levels) and self._levels[-1].optional

    @last_is_optional.setter
    def last_is_optional(self, optional: bool) -> None:
        self.set_optional(len(self._levels) - 1, optional)

    def right_hand_side_from_config(self, q: np.ndarray) -> None:
        """Set the right-hand side of every constraint from a configuration."""
        for constraint in self.constraints:
            constraint.right_hand_side_from_config(q)

    # Evaluation

    def _mandatory(self) -> List[_Level]:
        return [level for level in self._levels if not level.optional]

    def _optional(self) -> List[_Level]:
        return [level for level in self._levels if level.optional]

    def _stack(self, level: _Level, q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        evaluations = [c.residual_and_jacobian(q) for c in level.constraints]
        size = sum(e.shape[0] for e, _ in evaluations)
        residual = np.zeros(size)
        jacobian = np.zeros((size, self.configuration_space.nv))
        row = 0
        for constraint, (e, J) in zip(level.constraints, evaluations):
            rows = [(row, e.shape[0])]
            # Columns outside the active variables stay exactly zero
            cols = segments_from_mask(constraint.function.active_derivative_parameters())
            IndexedView(residual, rows=rows).write(e)
            IndexedView(jacobian, rows=rows, cols=cols).write(J[:, segment_indices(cols)])
            row += e.shape[0]
        return residual, jacobian

    def level_residual_and_jacobian(
        self, priority: int, q: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Stacked residual and Jacobian of the constraints of a level."""
        return self._stack(self._level(priority), q)

    def _level_residual(self, level: _Level, q: np.ndarray) -> np.ndarray:
        if not level.constraints:
            return np.zeros(0)
        return np.concatenate([c.residual(q) for c in level.constraints])

    def residual_error(self, q: np.ndarray) -> List[float]:
        """Squared norm of the residual of each level."""
        return [float(np.sum(self._level_residual(level, q) ** 2)) for level in self._levels]

    def is_satisfied(self, q: np.ndarray, error_threshold: Optional[float] = None) -> bool:
        """Whether q satisfies every constraint of the mandatory levels."""
        threshold = self.error_threshold if error_threshold is None else error_threshold
        return all(
            c.is_satisfied(q, threshold) for level in self._mandatory() for c in level.constraints
        )

    def evaluate_squared_error(self, q: np.ndarray) -> float:
        """Squared norm of the residual of all mandatory levels at q."""
        return float(sum(np.sum(self._level_residual(level, q) ** 2) for level in self._mandatory()))

    # Working state, valid during an iteration

    def _reset_state(self) -> None:
        self._mandatory_state: List[Tuple[np.ndarray, np.ndarray]] = []
        self._optional_state: List[Tuple[np.ndarray, np.ndarray]] = []
        self._saturation_state = np.zeros(self.configuration_space.nv, dtype=int)
        self._squared_error = 0.0

    @property
    def squared_error(self) -> float:
        """Squared error of the mandatory levels at the current iterate."""
        return self._squared_error

    def _update_state(self, q: np.ndarray) -> None:
        self._mandatory_state = [self._stack(level, q) for level in self._mandatory()]
        self._optional_state = [self._stack(level, q) for level in self._optional()]
        self._squared_error = float(sum(np.sum(e ** 2) for e, _ in self._mandatory_state))

    def _mandatory_satisfied(self) -> bool:
        return all(
            np.all(np.abs(e) <= self.error_threshold) for e, _ in self._mandatory_state
        )

    def error_slope(self, dq: np.ndarray) -> float:
        """Derivative of the mandatory squared error along dq."""
        return float(sum(2.0 * e @ (J @ dq) for e, J in self._mandatory_state))

    def predicted_squared_error(self, dq: np.ndarray, alpha: float = 1.0) -> float:
        """First order prediction of the mandatory squared error after a step alpha * dq."""
        return float(sum(np.sum((e + alpha * (J @ dq)) ** 2) for e, J in self._mandatory_state))

    # Variables of the search, overridden when some variables are eliminated

    @property
    def _reduced_size(self) -> int:
        return self.configuration_space.nv

    def _reduce(self, jacobian: np.ndarray) -> np.ndarray:
        return jacobian

    def _reduce_saturation(self, saturation: np.ndarray) -> np.ndarray:
        return saturation

    def _expand(self, dq: np.ndarray) -> np.ndarray:
        return dq

    def _prepare(self, q: np.ndarray) -> np.ndarray:
        q, self._saturation_state = self.saturation.saturate(q)
        return q

    def integrate(self, q: np.ndarray, dq: np.ndarray) -> np.ndarray:
        """Integrate a velocity and clamp the result with the saturation policy."""
        q, _ = self.saturation.saturate(self.configuration_space.integrate(q, dq))
        return q

    # Descent direction

    def _pseudo_inverse(self, matrix: np.ndarray) -> np.ndarray:
        if matrix.size == 0:
            return np.zeros(matrix.T.shape)
        U, s, Vt = linalg.svd(matrix, full_matrices=False)
        rank = int(np.count_nonzero(s > self.rank_threshold))
        return (Vt[:rank].T / s[:rank]) @ U[:, :rank].T

    def _saturate_columns(
        self, jacobian: np.ndarray, residual: np.ndarray, saturation: np.ndarray
    ) -> np.ndarray:
        # Saturated variables the Newton step would push further into their bound
        gradient = jacobian.T @ residual
        blocked = saturation * gradient < 0
        if np.any(blocked):
            jacobian = jacobian.copy()
            jacobian[:, blocked] = 0.0
        return jacobian

    def descent_direction(self, include_optional: bool = True) -> np.ndarray:
        """Velocity decreasing the error of each level in the null space of the previous ones."""
        n = self._reduced_size
        saturation = self._reduce_saturation(self._saturation_state)
        dq = np.zeros(n)
        projector = np.eye(n)
        levels = list(self._mandatory_state)
        if include_optional:
            levels += self._optional_state
        for residual, jacobian in levels:
            if residual.size == 0:
                continue
            jacobian = self._saturate_columns(self._reduce(jacobian), residual, saturation)
            projected = jacobian @ projector
            pinv = self._pseudo_inverse(projected)
            dq = dq + projector @ (pinv @ (-residual - jacobian @ dq))
            projector = projector @ (np.eye(n) - pinv @ projected)
        return self._expand(dq)

    # Solve

    def solve(self, q: np.ndarray, line_search: Optional[LineSearch] = None) -> SolverResult:
        """Find a configuration satisfying the mandatory levels.

        Args:
            q: Initial guess. It is not modified.
            line_search: Step length strategy. Defaults to :class:`Constant`.

        Returns:
            The last iterate, the status and the number of iterations.
        """
        line_search = Constant() if line_search is None else line_search
        line_search.reset()
        self._reset_state()
        q = self._prepare(np.array(q, dtype=np.float64))

        previous_error = np.inf
        stagnation = 0
        iteration = 0
        while True:
            self._update_state(q)
            error = self._squared_error
            if self._mandatory_satisfied():
                status = Status.SUCCESS
                break
            stagnation = stagnation + 1 if error >= previous_error else 0
            if stagnation > self.stagnation_patience:
                logging.warning(
                    f"Error did not decrease during {stagnation} iterations "
                    f"(squared error {error:.3e})"
                )
                status = Status.ERROR_INCREASED
                break
            if iteration >= self.max_iterations:
                status = Status.MAX_ITERATIONS_REACHED
                break
            previous_error = error

            q_next, alpha = self._step(q, line_search)
            logging.debug(
                f"Iteration {iteration}: squared error {error:.3e}, step length {alpha:.3f}"
            )
            q = self._prepare(q_next)
            iteration += 1

        logging.debug(f"Solver stopped after {iteration} iterations: {status.value}")
        return SolverResult(q, status, iteration, error)

    def _step(self, q: np.ndarray, line_search: LineSearch) -> Tuple[np.ndarray, float]:
        # Line searches are stateful: one call per iteration
        dq = self.descent_direction(include_optional=False)
        if any(e.size for e, _ in self._optional_state):
            with_optional = self.descent_direction(include_optional=True)
            trial = self.integrate(q, with_optional)
            if self.evaluate_squared_error(trial) <= self._squared_error:
                dq = with_optional
            else:
                logging.debug("Optional levels increase the error, stepping without them")
        return line_search(self, q, dq)


def solve_constraints(
    configuration_space: LieGroupSpace,
    constraints: Sequence[Implicit],
    q: np.ndarray,
    line_search: Optional[LineSearch] = None,
    **settings,
) -> SolverResult:
    """Solve a single priority level of constraints.

    Args:
        configuration_space: Space of the unknown configuration.
        constraints: Constraints, all of priority 0.
        q: Initial guess.
        line_search: Step length strategy.
        settings: Keyword arguments of :class:`HierarchicalIterativeSolver`.
    """
    solver = HierarchicalIterativeSolver(configuration_space, **settings)
    for constraint in constraints:
        solver.add(constraint)
    return solver.solve(q, line_search)
