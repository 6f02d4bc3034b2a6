"""Explicit constraint: some configuration variables are functions of others."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import numpy.typing as npt

from ..comparison import ComparisonType
from ..exceptions import ConstraintDefinitionError
from ..function import DifferentiableFunction
from ..lie import LieGroupSpace
from ..matrix_view import Segment, Segments, cardinal, overlaps, segment_indices, shrink
from .implicit import ComparisonSpec, Implicit


def _format_segments(segments: Segments) -> str:
    return "[" + ", ".join(f"({s}, {n})" for s, n in segments) + "]"


class ExplicitImplicitForm(DifferentiableFunction):
    """Implicit form g(q) = q_out (-) f(q_in) of an explicit relation.

    The output lives in R^n where n is the output derivative size of f, so
    that the right-hand side of the implicit form is a tangent offset of the
    output variables.
    """

    def __init__(
        self,
        configuration_space: LieGroupSpace,
        explicit_function: DifferentiableFunction,
        input_conf: Segments,
        output_conf: Segments,
        input_velocity: Segments,
        output_velocity: Segments,
    ):
        super().__init__(
            configuration_space.nq,
            configuration_space.nv,
            explicit_function.output_derivative_size,
            name=explicit_function.name,
            input_space=configuration_space,
        )
        self.explicit_function = explicit_function
        self._in_q = segment_indices(input_conf)
        self._out_q = segment_indices(output_conf)
        self._in_v = segment_indices(input_velocity)
        self._out_v = segment_indices(output_velocity)

    def _compute(self, argument: np.ndarray) -> np.ndarray:
        f = self.explicit_function.value(argument[self._in_q])
        return self.explicit_function.output_space.difference(f, argument[self._out_q])

    def _jacobian(self, argument: np.ndarray) -> np.ndarray:
        q_in = argument[self._in_q]
        q_out = argument[self._out_q]
        f = self.explicit_function.value(q_in)
        space = self.explicit_function.output_space
        jacobian = np.zeros((self.output_derivative_size, self.input_derivative_size))
        jacobian[:, self._in_v] = space.d_difference(f, q_out, 0) @ self.explicit_function.jacobian(q_in)
        jacobian[:, self._out_v] = space.d_difference(f, q_out, 1)
        return jacobian

    def active_parameters(self) -> np.ndarray:
        mask = np.zeros(self.input_size, dtype=bool)
        mask[self._in_q] = True
        mask[self._out_q] = True
        return mask

    def active_derivative_parameters(self) -> np.ndarray:
        mask = np.zeros(self.input_derivative_size, dtype=bool)
        mask[self._in_v] = True
        mask[self._out_v] = True
        return mask

    def __str__(self) -> str:
        return f"Differentiable function:\n{self.name}\nExplicit function: {self.explicit_function.name}"


class Explicit(Implicit):
    """Constraint q_out = f(q_in) (+) rhs on disjoint subsets of variables.

    The input and output variables are given as segments of the
    configuration (for evaluating f) and of the velocity (for its Jacobian).
    Output segments must not overlap input segments.

    The constraint is also an :class:`Implicit` constraint through its
    implicit form ``q_out (-) f(q_in) = rhs``, so that it can be handled by
    any solver. Solvers that know about explicit constraints call
    :meth:`solve` instead.

    Example:
        >>> # Joint 2 mirrors joint 1
        >>> constraint = Explicit(
        ...     LieGroupSpace.Rn(2), mirror, [(0, 1)], [(1, 1)], [(0, 1)], [(1, 1)]
        ... )
        >>> constraint.solve(q)
    """

    def __init__(
        self,
        configuration_space: LieGroupSpace,
        explicit_function: DifferentiableFunction,
        input_conf: Sequence[Segment],
        output_conf: Sequence[Segment],
        input_velocity: Sequence[Segment],
        output_velocity: Sequence[Segment],
        comparison_type: ComparisonSpec = None,
        mask: Optional[npt.ArrayLike] = None,
    ):
        """Initialize the constraint.

        Args:
            configuration_space: Space of the whole configuration.
            explicit_function: Function computing the output variables from
                the input variables.
            input_conf: Segments of the input variables in the configuration.
            output_conf: Segments of the output variables in the configuration.
            input_velocity: Segments of the input variables in the velocity.
            output_velocity: Segments of the output variables in the velocity.
            comparison_type: Defaults to EQUAL_TO_ZERO on every row.
            mask: Active rows. Defaults to all rows.

        Raises:
            ConstraintDefinitionError: If segments overlap, exceed the
                configuration space or do not match the function sizes.
        """
        self.configuration_space = configuration_space
        self.explicit_function = explicit_function
        self.input_conf = shrink(input_conf)
        self.output_conf = shrink(output_conf)
        self.input_velocity = shrink(input_velocity)
        self.output_velocity = shrink(output_velocity)
        self._check_segments()
        if comparison_type is None:
            comparison_type = ComparisonType.n_times(
                explicit_function.output_derivative_size, ComparisonType.EQUAL_TO_ZERO
            )
        super().__init__(
            ExplicitImplicitForm(
                configuration_space,
                explicit_function,
                self.input_conf,
                self.output_conf,
                self.input_velocity,
                self.output_velocity,
            ),
            comparison_type,
            mask,
        )
        self._in_q = segment_indices(self.input_conf)
        self._out_q = segment_indices(self.output_conf)
        self._in_v = segment_indices(self.input_velocity)
        self._out_v = segment_indices(self.output_velocity)

    def _check_segments(self) -> None:
        f = self.explicit_function
        name = f.name or self.__class__.__name__
        if overlaps(self.input_conf, self.output_conf):
            raise ConstraintDefinitionError(
                f"{name}: input and output configuration segments overlap"
            )
        if overlaps(self.input_velocity, self.output_velocity):
            raise ConstraintDefinitionError(
                f"{name}: input and output velocity segments overlap"
            )
        expected = [
            ("input configuration", self.input_conf, f.input_size, self.configuration_space.nq),
            ("output configuration", self.output_conf, f.output_size, self.configuration_space.nq),
            ("input velocity", self.input_velocity, f.input_derivative_size, self.configuration_space.nv),
            ("output velocity", self.output_velocity, f.output_derivative_size, self.configuration_space.nv),
        ]
        for label, segments, size, bound in expected:
            if cardinal(segments) != size:
                raise ConstraintDefinitionError(
                    f"{name}: {label} segments cover {cardinal(segments)} "
                    f"variables but the function expects {size}"
                )
            if any(start < 0 or start + length > bound for start, length in segments):
                raise ConstraintDefinitionError(
                    f"{name}: {label} segments {segments} exceed size {bound}"
                )

    @property
    def input_indices(self) -> np.ndarray:
        return self._in_q

    @property
    def output_indices(self) -> np.ndarray:
        return self._out_q

    @property
    def input_velocity_indices(self) -> np.ndarray:
        return self._in_v

    @property
    def output_velocity_indices(self) -> np.ndarray:
        return self._out_v

    def output_value(self, q_in: np.ndarray, rhs: Optional[np.ndarray] = None) -> np.ndarray:
        """Compute f(q_in) (+) rhs.

        Args:
            q_in: Input variables.
            rhs: Tangent offset. Defaults to the right-hand side of the
                constraint.
        """
        rhs = self._rhs if rhs is None else np.asarray(rhs, dtype=np.float64)
        f = self.explicit_function.value(q_in)
        return self.explicit_function.output_space.integrate(f, rhs)

    def jacobian_output_value(
        self,
        q_in: np.ndarray,
        f_value: np.ndarray,
        rhs: np.ndarray,
    ) -> np.ndarray:
        """Jacobian of :meth:`output_value` with respect to the input velocity.

        Args:
            q_in: Input variables.
            f_value: Value of the explicit function at q_in.
            rhs: Tangent offset.

        Returns:
            Matrix of shape (output derivative size, input derivative size).
        """
        jacobian = self.explicit_function.jacobian(q_in)
        if np.any(rhs != 0):
            space = self.explicit_function.output_space
            jacobian = space.d_integrate(f_value, rhs, 0) @ jacobian
        return jacobian

    def solve(self, q: np.ndarray) -> np.ndarray:
        """Overwrite the output variables of q in place and return q."""
        q[self._out_q] = self.output_value(q[self._in_q])
        return q

    def __str__(self) -> str:
        return "\n".join(
            [
                super().__str__(),
                f"Input configuration: {_format_segments(self.input_conf)}",
                f"Output configuration: {_format_segments(self.output_conf)}",
                f"Input velocity: {_format_segments(self.input_velocity)}",
                f"Output velocity: {_format_segments(self.output_velocity)}",
            ]
        )
