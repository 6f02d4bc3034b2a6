"""Lie group spaces: how values and tangent vectors of curved spaces are handled.

A space describes a (possibly curved) manifold through its parameter vector of
size ``nq`` and its tangent vectors of size ``nv``. Values are plain numpy
arrays of size ``nq``; the space provides the operations that replace vector
addition and subtraction:

* ``integrate(q, v)``: move from ``q`` along the tangent vector ``v``,
* ``difference(q0, q1)``: tangent vector ``v`` such that
  ``integrate(q0, v) == q1``,

together with their Jacobians with respect to either argument. Tangent
vectors are expressed in the local frame of the base point, as in pinocchio.

Spaces never change after construction. The factory helpers
:meth:`LieGroupSpace.Rn`, :meth:`LieGroupSpace.SO3`, :meth:`LieGroupSpace.SE3`
and :meth:`LieGroupSpace.R3xSO3` return shared cached instances.
"""

from __future__ import annotations

import abc
import functools
from typing import List, Optional, Sequence, Tuple, Type

import numpy as np

from .base import MatrixLieGroup
from .se3 import SE3
from .so3 import SO3


class LieGroupSpace(abc.ABC):
    """Interface definition for configuration and output spaces.

    Attributes:
        nq: Size of the parameter (position) vector.
        nv: Size of the tangent (derivative) vector.
    """

    nq: int
    nv: int

    def __init__(self, nq: int, nv: int):
        assert 0 <= nv <= nq, f"Invalid space dimensions nq={nq}, nv={nv}"
        self.nq = nq
        self.nv = nv

    # Shared instances

    @staticmethod
    def Rn(n: int) -> "VectorSpace":
        """Vector space of dimension n."""
        return _vector_space(n)

    @staticmethod
    def SO3() -> "SO3Space":
        return _so3_space()

    @staticmethod
    def SE3() -> "SE3Space":
        return _se3_space()

    @staticmethod
    def R3xSO3() -> "CartesianProduct":
        return _r3xso3_space()

    # Description

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Printable name of the space, e.g. ``R^3*SO(3)``."""
        raise NotImplementedError

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LieGroupSpace):
            return NotImplemented
        return type(self) is type(other) and self._key() == other._key()

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._key()))

    def _key(self) -> tuple:
        return (self.nq, self.nv)

    def __mul__(self, other: "LieGroupSpace") -> "CartesianProduct":
        return CartesianProduct([self, other])

    @property
    def is_vector_space(self) -> bool:
        return False

    # Bounds

    @property
    def lower_bound(self) -> np.ndarray:
        return np.full(self.nq, -np.inf)

    @property
    def upper_bound(self) -> np.ndarray:
        return np.full(self.nq, np.inf)

    def vector_indices(self) -> List[Tuple[int, int]]:
        """Pairs (configuration index, velocity index) of flat coordinates.

        Only those coordinates can be compared against bounds one by one.
        """
        return []

    # Operations

    @abc.abstractmethod
    def neutral(self) -> np.ndarray:
        """Neutral element of the space."""
        raise NotImplementedError

    @abc.abstractmethod
    def integrate(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        """Compute q (+) v."""
        raise NotImplementedError

    @abc.abstractmethod
    def difference(self, q0: np.ndarray, q1: np.ndarray) -> np.ndarray:
        """Compute q1 (-) q0."""
        raise NotImplementedError

    @abc.abstractmethod
    def d_integrate(self, q: np.ndarray, v: np.ndarray, argument: int) -> np.ndarray:
        """Jacobian of ``integrate(q, v)`` with respect to q (0) or v (1).

        Returns:
            Matrix of shape (nv, nv).
        """
        raise NotImplementedError

    @abc.abstractmethod
    def d_difference(self, q0: np.ndarray, q1: np.ndarray, argument: int) -> np.ndarray:
        """Jacobian of ``difference(q0, q1)`` with respect to q0 (0) or q1 (1).

        Returns:
            Matrix of shape (nv, nv).
        """
        raise NotImplementedError

    def is_neutral(self, q: np.ndarray, tol: float = 0.0) -> bool:
        return bool(np.all(np.abs(self.difference(self.neutral(), q)) <= tol))

    def shoot(self, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Sample a random configuration, uniformly within finite bounds."""
        rng = np.random.default_rng() if rng is None else rng
        q = self.integrate(self.neutral(), rng.uniform(-np.pi, np.pi, self.nv))
        lower, upper = self.lower_bound, self.upper_bound
        for iq, _ in self.vector_indices():
            if np.isfinite(lower[iq]) and np.isfinite(upper[iq]):
                q[iq] = rng.uniform(lower[iq], upper[iq])
        return q

    def _check(self, q: np.ndarray, v: Optional[np.ndarray] = None) -> None:
        assert q.shape == (self.nq,), f"{self.name}: expected {self.nq} parameters, got {q.shape}"
        if v is not None:
            assert v.shape == (self.nv,), f"{self.name}: expected tangent of size {self.nv}, got {v.shape}"


class VectorSpace(LieGroupSpace):
    """R^n: integrate and difference are vector addition and subtraction."""

    def __init__(self, n: int):
        super().__init__(n, n)

    @property
    def name(self) -> str:
        return f"R^{self.nq}"

    @property
    def is_vector_space(self) -> bool:
        return True

    def vector_indices(self) -> List[Tuple[int, int]]:
        return [(i, i) for i in range(self.nq)]

    def neutral(self) -> np.ndarray:
        return np.zeros(self.nq)

    def integrate(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        self._check(q, v)
        return q + v

    def difference(self, q0: np.ndarray, q1: np.ndarray) -> np.ndarray:
        self._check(q0)
        self._check(q1)
        return q1 - q0

    def d_integrate(self, q: np.ndarray, v: np.ndarray, argument: int) -> np.ndarray:
        return np.eye(self.nv)

    def d_difference(self, q0: np.ndarray, q1: np.ndarray, argument: int) -> np.ndarray:
        return np.eye(self.nv) if argument == 1 else -np.eye(self.nv)


class SO2Space(LieGroupSpace):
    """Planar rotations parameterized by (cos, sin)."""

    def __init__(self):
        super().__init__(2, 1)

    @property
    def name(self) -> str:
        return "SO(2)"

    def neutral(self) -> np.ndarray:
        return np.array([1.0, 0.0])

    def integrate(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        self._check(q, v)
        angle = np.arctan2(q[1], q[0]) + v[0]
        return np.array([np.cos(angle), np.sin(angle)])

    def difference(self, q0: np.ndarray, q1: np.ndarray) -> np.ndarray:
        self._check(q0)
        self._check(q1)
        c = q0[0] * q1[0] + q0[1] * q1[1]
        s = q0[0] * q1[1] - q0[1] * q1[0]
        return np.array([np.arctan2(s, c)])

    def d_integrate(self, q: np.ndarray, v: np.ndarray, argument: int) -> np.ndarray:
        return np.eye(1)

    def d_difference(self, q0: np.ndarray, q1: np.ndarray, argument: int) -> np.ndarray:
        return np.eye(1) if argument == 1 else -np.eye(1)


class _GroupSpace(LieGroupSpace):
    """Space whose values are the parameters of a :class:`MatrixLieGroup`."""

    group: Type[MatrixLieGroup]

    def __init__(self):
        super().__init__(self.group.parameters_dim, self.group.tangent_dim)

    def neutral(self) -> np.ndarray:
        return self.group.identity().parameters().copy()

    def integrate(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        self._check(q, v)
        return self.group.from_parameters(q).plus(v).parameters()

    def difference(self, q0: np.ndarray, q1: np.ndarray) -> np.ndarray:
        self._check(q0)
        self._check(q1)
        return self.group.from_parameters(q1).minus(self.group.from_parameters(q0))

    def d_integrate(self, q: np.ndarray, v: np.ndarray, argument: int) -> np.ndarray:
        self._check(q, v)
        if argument == 0:
            return self.group.exp(v).inverse().adjoint()
        return self.group.jexp(v)

    def d_difference(self, q0: np.ndarray, q1: np.ndarray, argument: int) -> np.ndarray:
        self._check(q0)
        self._check(q1)
        relative = self.group.from_parameters(q0).between(self.group.from_parameters(q1))
        if argument == 1:
            return relative.jlog()
        return -relative.jlog() @ relative.inverse().adjoint()


class SO3Space(_GroupSpace):
    """3D rotations parameterized by a unit quaternion [x, y, z, w]."""

    group = SO3

    @property
    def name(self) -> str:
        return "SO(3)"


class SE3Space(_GroupSpace):
    """Rigid transforms parameterized by [x, y, z, quat_x, quat_y, quat_z, quat_w]."""

    group = SE3

    @property
    def name(self) -> str:
        return "SE(3)"


class CartesianProduct(LieGroupSpace):
    """Cartesian product of spaces; operations act block by block."""

    def __init__(self, spaces: Sequence[LieGroupSpace]):
        factors: List[LieGroupSpace] = []
        for space in spaces:
            if isinstance(space, CartesianProduct):
                factors.extend(space.factors)
            else:
                factors.append(space)
        self.factors: Tuple[LieGroupSpace, ...] = tuple(factors)
        super().__init__(
            sum(f.nq for f in self.factors), sum(f.nv for f in self.factors)
        )
        self._q_offsets = np.cumsum([0] + [f.nq for f in self.factors])
        self._v_offsets = np.cumsum([0] + [f.nv for f in self.factors])

    @property
    def name(self) -> str:
        return "*".join(f.name for f in self.factors)

    def _key(self) -> tuple:
        return tuple((type(f).__name__, f._key()) for f in self.factors)

    @property
    def is_vector_space(self) -> bool:
        return all(f.is_vector_space for f in self.factors)

    def vector_indices(self) -> List[Tuple[int, int]]:
        indices: List[Tuple[int, int]] = []
        for k, factor in enumerate(self.factors):
            iq, iv = self._q_offsets[k], self._v_offsets[k]
            indices.extend((iq + a, iv + b) for a, b in factor.vector_indices())
        return indices

    def _blocks(self):
        for k, factor in enumerate(self.factors):
            yield (
                factor,
                slice(self._q_offsets[k], self._q_offsets[k + 1]),
                slice(self._v_offsets[k], self._v_offsets[k + 1]),
            )

    def neutral(self) -> np.ndarray:
        return np.concatenate([f.neutral() for f in self.factors])

    def integrate(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        self._check(q, v)
        result = np.empty(self.nq)
        for factor, sq, sv in self._blocks():
            result[sq] = factor.integrate(q[sq], v[sv])
        return result

    def difference(self, q0: np.ndarray, q1: np.ndarray) -> np.ndarray:
        self._check(q0)
        self._check(q1)
        result = np.empty(self.nv)
        for factor, sq, sv in self._blocks():
            result[sv] = factor.difference(q0[sq], q1[sq])
        return result

    def d_integrate(self, q: np.ndarray, v: np.ndarray, argument: int) -> np.ndarray:
        self._check(q, v)
        jacobian = np.zeros((self.nv, self.nv))
        for factor, sq, sv in self._blocks():
            jacobian[sv, sv] = factor.d_integrate(q[sq], v[sv], argument)
        return jacobian

    def d_difference(self, q0: np.ndarray, q1: np.ndarray, argument: int) -> np.ndarray:
        self._check(q0)
        self._check(q1)
        jacobian = np.zeros((self.nv, self.nv))
        for factor, sq, sv in self._blocks():
            jacobian[sv, sv] = factor.d_difference(q0[sq], q1[sq], argument)
        return jacobian


@functools.lru_cache(maxsize=None)
def _vector_space(n: int) -> VectorSpace:
    return VectorSpace(n)


@functools.lru_cache(maxsize=None)
def _so3_space() -> SO3Space:
    return SO3Space()


@functools.lru_cache(maxsize=None)
def _se3_space() -> SE3Space:
    return SE3Space()


@functools.lru_cache(maxsize=None)
def _r3xso3_space() -> CartesianProduct:
    return CartesianProduct([_vector_space(3), _so3_space()])
