"""Numerical solvers for stacks of constraints."""

from .by_substitution import SubstitutionSolver
from .hierarchical_iterative import (
    HierarchicalIterativeSolver,
    SolverResult,
    Status,
    solve_constraints,
)
from .line_search import Backtracking, Constant, ErrorNormBased, FixedSequence, LineSearch
from .saturation import Bounds, NoSaturation, Saturation

__all__ = [
    "Backtracking",
    "Bounds",
    "Constant",
    "ErrorNormBased",
    "FixedSequence",
    "HierarchicalIterativeSolver",
    "LineSearch",
    "NoSaturation",
    "Saturation",
    "SolverResult",
    "Status",
    "SubstitutionSolver",
    "solve_constraints",
]
