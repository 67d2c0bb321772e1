"""
Data structures for RBF models.

All types are NamedTuples for JAX pytree compatibility.
"""

from typing import NamedTuple

import numpy as np
from jax import Array


class ModelConfig(NamedTuple):
    """Immutable model construction configuration."""

    static_arrays: bool | str = "auto"  # True: jax.Array storage, False: numpy, "auto": by size
    vector_output: bool = True  # Only relevant for one-dimensional values
    min_precision: type = np.float64  # Floor for the working dtype
    solver_tol: float = 1e-8  # Maximum relative backward error of the dense solve
    cond_limit: float | None = None  # Reject systems with a larger condition number
    verbose: bool = False  # Progress bar during kernel matrix assembly


class CoefficientMatrices(NamedTuple):
    """Solution of the augmented interpolation system."""

    weights: Array  # Kernel weights W (n_centers, n_outputs)
    poly_coeffs: Array  # Polynomial coefficients (n_basis, n_outputs)
