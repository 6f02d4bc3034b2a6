"""Saturation policies: keep configurations within bounds during solving."""

import abc
from typing import Tuple

import numpy as np
import numpy.typing as npt

from ..exceptions import SolverDefinitionError
from ..lie import LieGroupSpace


class Saturation(abc.ABC):
    """Abstract base class for saturation policies.

    A policy clamps a configuration and reports, for each velocity variable,
    whether it sits on its lower bound (-1), its upper bound (+1) or neither
    (0).
    """

    @abc.abstractmethod
    def saturate(self, q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Clamp a configuration.

        Args:
            q: Configuration.

        Returns:
            Tuple (clamped configuration, saturation) where saturation has one
            entry in {-1, 0, 1} per velocity variable.
        """
        raise NotImplementedError


class NoSaturation(Saturation):
    """Leave configurations untouched."""

    def __init__(self, nv: int):
        self.nv = nv

    def saturate(self, q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return q.copy(), np.zeros(self.nv, dtype=int)


class Bounds(Saturation):
    """Clamp flat configuration variables to [lower, upper].

    Only the coordinates listed by ``vector_indices`` are clamped: the
    parameters of curved factors (quaternions, ...) have no bounds.

    Example:
        >>> saturation = Bounds(np.zeros(2), np.ones(2))
        >>> saturation.saturate(np.array([1.5, 0.5]))
        (array([1. , 0.5]), array([1, 0]))
    """

    def __init__(
        self,
        lower: npt.ArrayLike,
        upper: npt.ArrayLike,
        vector_indices=None,
    ):
        """Initialize bounds.

        Args:
            lower: Lower bound of each configuration variable.
            upper: Upper bound of each configuration variable.
            vector_indices: Pairs (configuration index, velocity index) of
                the clamped variables. Defaults to every variable of a vector
                space of the bounds' size.

        Raises:
            SolverDefinitionError: If the bounds have different shapes or
                lower > upper somewhere.
        """
        lower = np.array(lower, dtype=np.float64)
        upper = np.array(upper, dtype=np.float64)
        if lower.shape != upper.shape or lower.ndim != 1:
            raise SolverDefinitionError(
                f"{self.__class__.__name__} bounds should be vectors of the same "
                f"size but got {lower.shape} and {upper.shape}"
            )
        if np.any(lower > upper):
            raise SolverDefinitionError(
                f"{self.__class__.__name__} lower bound exceeds upper bound at "
                f"indices {np.flatnonzero(lower > upper).tolist()}"
            )
        if vector_indices is None:
            vector_indices = [(i, i) for i in range(lower.shape[0])]
        self.lower = lower
        self.upper = upper
        self.nv = max((iv for _, iv in vector_indices), default=-1) + 1
        self._iq = np.array([iq for iq, _ in vector_indices], dtype=int)
        self._iv = np.array([iv for _, iv in vector_indices], dtype=int)

    @classmethod
    def from_configuration_space(cls, space: LieGroupSpace) -> "Bounds":
        """Bounds of a configuration space (e.g. joint limits of a robot)."""
        bounds = cls(space.lower_bound, space.upper_bound, space.vector_indices())
        bounds.nv = space.nv
        return bounds

    def saturate(self, q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        q = q.copy()
        saturation = np.zeros(self.nv, dtype=int)
        values = q[self._iq]
        lower = self.lower[self._iq]
        upper = self.upper[self._iq]
        at_lower = values <= lower
        at_upper = values >= upper
        q[self._iq] = np.clip(values, lower, upper)
        saturation[self._iv[at_lower]] = -1
        saturation[self._iv[at_upper]] = 1
        return q, saturation
