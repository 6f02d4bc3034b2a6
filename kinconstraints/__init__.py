"""Pinocchio-based kinematic constraints and hierarchical solvers.

Constraints on the configuration of an articulated robot are expressed as
differentiable functions compared to a right-hand side, stacked by priority
and solved with a saturation-aware Newton iteration on the configuration
manifold.
"""

from .comparison import ComparisonType
from .configuration import Kinematics, RobotConfigurationSpace
from .constants import (
    DEFAULT_ERROR_THRESHOLD,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_RANK_THRESHOLD,
    DEFAULT_STAGNATION_PATIENCE,
    EPSILON_FLOAT32,
    EPSILON_FLOAT64,
    FINITE_DIFFERENCE_EPSILON,
    SCHEMA_VERSION,
)
from .constraints import Explicit, Implicit
from .exceptions import (
    ConstraintDefinitionError,
    ConstraintError,
    InvalidJoint,
    SerializationError,
    SolverDefinitionError,
)
from .function import DifferentiableFunction
from .functions import AffineFunction, ConfigurationDistance, Quadratic, RelativeTransformation
from .lie import (
    SE3,
    SO3,
    CartesianProduct,
    LieGroupSpace,
    MatrixLieGroup,
    SE3Space,
    SO2Space,
    SO3Space,
    VectorSpace,
)
from .matrix_view import IndexedView
from .serialization import dumps, loads
from .solver import (
    Backtracking,
    Bounds,
    Constant,
    ErrorNormBased,
    FixedSequence,
    HierarchicalIterativeSolver,
    LineSearch,
    NoSaturation,
    Saturation,
    SolverResult,
    Status,
    SubstitutionSolver,
    solve_constraints,
)

__version__ = "0.1.0"

__all__ = [
    # Spaces and groups
    "CartesianProduct",
    "LieGroupSpace",
    "MatrixLieGroup",
    "SE3",
    "SE3Space",
    "SO2Space",
    "SO3",
    "SO3Space",
    "VectorSpace",
    # Robot
    "Kinematics",
    "RobotConfigurationSpace",
    # Functions
    "AffineFunction",
    "ConfigurationDistance",
    "DifferentiableFunction",
    "Quadratic",
    "RelativeTransformation",
    # Constraints
    "ComparisonType",
    "Explicit",
    "Implicit",
    "IndexedView",
    # Solvers
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
    # Persistence
    "dumps",
    "loads",
    # Exceptions
    "ConstraintDefinitionError",
    "ConstraintError",
    "InvalidJoint",
    "SerializationError",
    "SolverDefinitionError",
    # Constants
    "DEFAULT_ERROR_THRESHOLD",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_RANK_THRESHOLD",
    "DEFAULT_STAGNATION_PATIENCE",
    "EPSILON_FLOAT32",
    "EPSILON_FLOAT64",
    "FINITE_DIFFERENCE_EPSILON",
    "SCHEMA_VERSION",
]
