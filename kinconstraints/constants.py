"""Constants used throughout the constraint solvers."""

import numpy as np

# Numerical tolerances
DEFAULT_ERROR_THRESHOLD = 1e-6
DEFAULT_RANK_THRESHOLD = 1e-8
EPSILON_FLOAT32 = 1e-5
EPSILON_FLOAT64 = 1e-10

# Step used by finite difference Jacobians
FINITE_DIFFERENCE_EPSILON = float(np.sqrt(np.finfo(np.float64).eps))

# Default solver parameters
DEFAULT_MAX_ITERATIONS = 40
DEFAULT_STAGNATION_PATIENCE = 3

# Backtracking line search (Armijo rule)
BACKTRACKING_ARMIJO = 1e-3
BACKTRACKING_CONTRACTION = 0.7
BACKTRACKING_SMALL_ALPHA = 0.2

# Error norm based line search
ERROR_NORM_ALPHA_MIN = 0.2
ERROR_NORM_ALPHA_MAX = 0.95
ERROR_NORM_SHRINK_RATIO = 0.25
ERROR_NORM_GROW_RATIO = 0.75

# Fixed sequence line search: alpha <- alpha_max - K * (alpha_max - alpha)
FIXED_SEQUENCE_ALPHA = 0.2
FIXED_SEQUENCE_ALPHA_MAX = 0.95
FIXED_SEQUENCE_K = 0.8

# Persistence
SCHEMA_VERSION = 1


def get_epsilon(dtype: np.dtype) -> float:
    """Get numerical epsilon for a given dtype."""
    return {
        np.dtype("float32"): EPSILON_FLOAT32,
        np.dtype("float64"): EPSILON_FLOAT64,
    }.get(dtype, EPSILON_FLOAT64)
