"""Hierarchical iterative solver eliminating explicit constraints by substitution."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np

from ..comparison import ComparisonType
from ..constraints import Explicit, Implicit
from ..matrix_view import complement, overlaps, segment_indices, shrink
from .hierarchical_iterative import HierarchicalIterativeSolver

_SUBSTITUTABLE = (ComparisonType.EQUALITY, ComparisonType.EQUAL_TO_ZERO)


class SubstitutionSolver(HierarchicalIterativeSolver):
    """Solve explicit constraints in closed form and the others iteratively.

    Output variables of explicit constraints are computed from their input
    variables before each iteration and after each integration, in the order
    the explicit constraints were added. They are removed from the unknowns of
    the iteration: the Jacobians of the other constraints are composed with
    the Jacobians of the explicit functions (chain rule), so that the
    descent direction only involves the free variables.

    An explicit constraint is eliminated only if its output variables are
    not input or output variables of an explicit constraint added before.
    Otherwise, it is handled as an implicit constraint.
    """

    def __init__(self, configuration_space, **settings):
        super().__init__(configuration_space, **settings)
        self._explicit: List[Explicit] = []
        self._output_conf: List[Tuple[int, int]] = []
        self._output_velocity: List[Tuple[int, int]] = []
        self._chain = np.eye(configuration_space.nv)

    def _can_substitute(self, constraint: Explicit) -> bool:
        if not all(c in _SUBSTITUTABLE for c in constraint.comparison_type):
            return False
        if not np.all(constraint.mask):
            return False
        used_conf = list(self._output_conf)
        used_velocity = list(self._output_velocity)
        for other in self._explicit:
            used_conf += other.input_conf
            used_velocity += other.input_velocity
        return not (
            overlaps(constraint.output_conf, used_conf)
            or overlaps(constraint.output_velocity, used_velocity)
        )

    def add(self, constraint: Implicit, priority: int = 0) -> bool:
        """Add a constraint, solving it by substitution when possible.

        Explicit constraints are always substituted at the highest priority:
        the priority argument only applies to constraints handled
        iteratively.
        """
        if self.contains(constraint):
            return False
        if isinstance(constraint, Explicit) and constraint.configuration_space == self.configuration_space:
            if self._can_substitute(constraint):
                self._explicit.append(constraint)
                self._output_conf = shrink(self._output_conf + constraint.output_conf)
                self._output_velocity = shrink(self._output_velocity + constraint.output_velocity)
                return True
            logging.info(
                f"Explicit constraint {constraint.function.name!r} conflicts with "
                "previous explicit constraints, it is solved as an implicit constraint"
            )
        return super().add(constraint, priority)

    @property
    def constraints(self) -> Tuple[Implicit, ...]:
        return tuple(self._explicit) + super().constraints

    @property
    def explicit_constraints(self) -> Tuple[Explicit, ...]:
        return tuple(self._explicit)

    @property
    def free_velocity_indices(self) -> np.ndarray:
        """Velocity variables that are not outputs of a substituted constraint."""
        return segment_indices(complement(self.configuration_space.nv, self._output_velocity))

    @property
    def free_configuration_indices(self) -> np.ndarray:
        return segment_indices(complement(self.configuration_space.nq, self._output_conf))

    def solve_explicit(self, q: np.ndarray) -> np.ndarray:
        """Compute the output variables of the explicit constraints in place."""
        for constraint in self._explicit:
            constraint.solve(q)
        return q

    def is_satisfied(self, q: np.ndarray, error_threshold: Optional[float] = None) -> bool:
        threshold = self.error_threshold if error_threshold is None else error_threshold
        return all(c.is_satisfied(q, threshold) for c in self._explicit) and super().is_satisfied(
            q, error_threshold
        )

    # Reduction of the search to the free variables

    def _update_chain(self, q: np.ndarray) -> None:
        free = self.free_velocity_indices
        chain = np.zeros((self.configuration_space.nv, free.shape[0]))
        chain[free, np.arange(free.shape[0])] = 1.0
        for constraint in self._explicit:
            q_in = q[constraint.input_indices]
            f_value = constraint.explicit_function.value(q_in)
            jacobian = constraint.jacobian_output_value(q_in, f_value, constraint.right_hand_side)
            chain[constraint.output_velocity_indices] = (
                jacobian @ chain[constraint.input_velocity_indices]
            )
        self._chain = chain

    def _update_state(self, q: np.ndarray) -> None:
        self._update_chain(q)
        super()._update_state(q)

    @property
    def _reduced_size(self) -> int:
        return self._chain.shape[1]

    def _reduce(self, jacobian: np.ndarray) -> np.ndarray:
        return jacobian @ self._chain

    def _reduce_saturation(self, saturation: np.ndarray) -> np.ndarray:
        return saturation[self.free_velocity_indices]

    def _expand(self, dq: np.ndarray) -> np.ndarray:
        return self._chain @ dq

    def _prepare(self, q: np.ndarray) -> np.ndarray:
        return self.solve_explicit(super()._prepare(q))

    def integrate(self, q: np.ndarray, dq: np.ndarray) -> np.ndarray:
        return self.solve_explicit(super().integrate(q, dq))
