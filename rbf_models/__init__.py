"""
RBF Models: Radial Basis Function interpolation with polynomial tails.

A JAX-based implementation providing:
- A catalogue of radial functions with their cpd orders
- Interpolation of scattered vector-valued data in any dimension
- Closed-form gradients and Hessians of the resulting models

Usage
-----
>>> import rbf_models
>>>
>>> # Build a model interpolating x² at three sites
>>> model = rbf_models.interpolate([0.0, 1.0, 2.0], [0.0, 1.0, 4.0], rbf_models.cubic())
>>>
>>> # Evaluate
>>> value = model(0.5)
>>>
>>> # Derivatives
>>> slope = model.gradient(0.5)
"""

import jax

# Enable float64 for numerical stability of the interpolation system
jax.config.update("jax_enable_x64", True)

from .core import RBFModel, evaluate, evaluate_batch, interpolate, interpolate_by_name
from .derivatives import gradient, hessian, jacobian
from .exceptions import (
    DimensionMismatchError,
    ParameterError,
    RBFError,
    SingularSystemError,
    UnknownKernelWarning,
)
from .kernels import (
    RADIAL_FUNCTIONS,
    KernelType,
    RadialFunction,
    cubic,
    gaussian,
    inverse_multiquadric,
    multiquadric,
    radial_function_from_name,
    thin_plate_spline,
)
from .polynomials import BASIS_CACHE, BasisCache, canonical_basis, non_negative_solutions
from .types import CoefficientMatrices, ModelConfig

try:
    from importlib.metadata import version

    __version__ = version("rbf_models")
except Exception:
    __version__ = "unknown"

__all__ = [
    # Model construction and evaluation
    "RBFModel",
    "interpolate",
    "interpolate_by_name",
    "evaluate",
    "evaluate_batch",
    # Derivatives
    "gradient",
    "jacobian",
    "hessian",
    # Radial functions
    "KernelType",
    "RadialFunction",
    "RADIAL_FUNCTIONS",
    "gaussian",
    "multiquadric",
    "inverse_multiquadric",
    "cubic",
    "thin_plate_spline",
    "radial_function_from_name",
    # Polynomial basis
    "BASIS_CACHE",
    "BasisCache",
    "canonical_basis",
    "non_negative_solutions",
    # Types
    "ModelConfig",
    "CoefficientMatrices",
    # Errors
    "RBFError",
    "ParameterError",
    "DimensionMismatchError",
    "SingularSystemError",
    "UnknownKernelWarning",
]
