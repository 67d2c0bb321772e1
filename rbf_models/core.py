"""
RBF interpolation model construction and evaluation.

Pure functional interface for JAX autodiff compatibility; `RBFModel`
methods are thin wrappers around the module-level functions.
"""

import logging
from typing import NamedTuple, Sequence

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from .derivatives import gradient, hessian, jacobian, output_index
from .exceptions import DimensionMismatchError
from .kernels import RADIAL_FUNCTIONS, KernelType, RadialFunction, resolve_kernel_type
from .polynomials import BasisCache, PolySystem, canonical_basis, exponent_table
from .rbf import RBFOutputSystem, as_point, coefficients, make_kernels, make_output_system
from .types import ModelConfig

logger = logging.getLogger(__name__)

# Largest input and output dimension stored as JAX arrays when static_arrays="auto"
STATIC_ARRAY_LIMIT = 10


class RBFModel(NamedTuple):
    """Immutable interpolation model r(x) = kernel sum + polynomial tail."""

    rbf: RBFOutputSystem  # Kernel-sum part
    psys: PolySystem  # Polynomial tail, one polynomial per output
    num_vars: int  # Input dimension n
    num_outputs: int  # Output dimension k
    num_centers: int  # Number of kernels N
    poly_degree: int  # Effective polynomial degree (-1 = no tail)
    vector_output: bool  # False only for scalar-valued models
    dtype: np.dtype  # Working precision

    @property
    def num_basis(self) -> int:
        """Number of polynomial basis terms Q."""
        return self.psys.exponents.shape[0]

    def __call__(self, x, output: int | None = None) -> Array:
        return evaluate(self, x, output)

    def evaluate_batch(self, points) -> Array:
        return evaluate_batch(self, points)

    def gradient(self, x, output: int | None = None) -> Array:
        return gradient(self, x, output)

    def jacobian(self, x) -> Array:
        return jacobian(self, x)

    def hessian(self, x, output: int | None = None) -> Array:
        return hessian(self, x, output)


def _stack_items(items, name: str) -> np.ndarray:
    """Stack sites or values into shape (n_items, dim); scalars become length-1 vectors."""
    if isinstance(items, (np.ndarray, jax.Array)):
        arr = np.asarray(items)
        if arr.ndim == 1:
            arr = arr[:, None]
        if arr.ndim != 2:
            raise DimensionMismatchError(f"Expected 1D or 2D array of {name}s, got shape {arr.shape}")
    else:
        rows = [np.atleast_1d(np.asarray(item)) for item in items]
        if any(row.ndim != 1 for row in rows):
            raise DimensionMismatchError(f"Each {name} must be a scalar or a vector")
        dims = {row.shape[0] for row in rows}
        if len(dims) > 1:
            raise DimensionMismatchError(f"All {name}s must share one dimension, got {sorted(dims)}")
        arr = np.stack(rows) if rows else np.zeros((0, 1))

    if arr.shape[0] == 0:
        raise DimensionMismatchError(f"At least one {name} is required")
    return arr


def _use_static_arrays(static_arrays: bool | str, n_vars: int, n_outputs: int) -> bool:
    if isinstance(static_arrays, (bool, np.bool_)):
        return bool(static_arrays)
    if static_arrays == "auto":
        return n_vars <= STATIC_ARRAY_LIMIT and n_outputs <= STATIC_ARRAY_LIMIT
    raise ValueError(f"static_arrays must be True, False or 'auto', got {static_arrays!r}")


def effective_degree(radial: RadialFunction | Sequence[RadialFunction], poly_degree: int) -> int:
    """
    Polynomial degree actually used: min(poly_degree, cpd_order - 1), at least -1.

    For a list of radial functions the largest cpd order counts.
    """
    radials = [radial] if isinstance(radial, RadialFunction) else list(radial)
    cpd = max(phi.cpd_order() for phi in radials)
    return max(min(poly_degree, cpd - 1), -1)


def interpolate(
    sites,
    values,
    kernel: RadialFunction | Sequence[RadialFunction],
    poly_degree: int = 1,
    config: ModelConfig = ModelConfig(),
    cache: BasisCache | None = None,
) -> RBFModel:
    """
    Build an RBF model interpolating `values` at `sites`.

    Parameters
    ----------
    sites : Sequence | Array
        Data sites: scalars, vectors of length n, or an array of shape
        (n_sites,) or (n_sites, n).
    values : Sequence | Array
        Data values: scalars, vectors of length k, or an array of shape
        (n_sites,) or (n_sites, k).
    kernel : RadialFunction | Sequence[RadialFunction]
        Radial function for all sites, or one per site.
    poly_degree : int
        Requested degree of the polynomial tail. Capped at cpd_order - 1.
    config : ModelConfig
        Construction options.
    cache : BasisCache | None
        Polynomial basis cache. Defaults to the process-wide cache.

    Returns
    -------
    RBFModel
        Interpolation model.

    Raises
    ------
    DimensionMismatchError
        If sites, values or kernels are inconsistent in number or dimension.
    SingularSystemError
        If the interpolation system cannot be solved.
    """
    sites = _stack_items(sites, "site")
    values = _stack_items(values, "value")
    n_sites, n_vars = sites.shape
    n_outputs = values.shape[1]

    if values.shape[0] != n_sites:
        raise DimensionMismatchError(f"Mismatch: {n_sites} sites vs {values.shape[0]} values")

    dtype = np.result_type(sites.dtype, values.dtype, config.min_precision)
    static = _use_static_arrays(config.static_arrays, n_vars, n_outputs)
    asarray = jnp.asarray if static else np.asarray
    logger.debug(
        "Building model with %d sites, n=%d, k=%d, dtype=%s, %s arrays",
        n_sites,
        n_vars,
        n_outputs,
        dtype,
        "JAX" if static else "NumPy",
    )

    sites = asarray(sites.astype(dtype))
    values = asarray(values.astype(dtype))
    kernels = make_kernels(kernel, sites)

    degree = effective_degree(kernel, poly_degree)
    if degree != poly_degree:
        logger.debug("Capped polynomial degree from %d to %d", poly_degree, degree)
    basis = canonical_basis(n_vars, degree, cache=cache)

    coeffs = coefficients(
        sites,
        values,
        kernels,
        basis,
        tol=config.solver_tol,
        cond_limit=config.cond_limit,
        verbose=config.verbose,
    )

    return RBFModel(
        rbf=make_output_system(kernels, coeffs.weights, asarray=asarray),
        psys=PolySystem(exponent_table(basis, n_vars), asarray(coeffs.poly_coeffs)),
        num_vars=n_vars,
        num_outputs=n_outputs,
        num_centers=n_sites,
        poly_degree=degree,
        vector_output=bool(config.vector_output) or n_outputs > 1,
        dtype=dtype,
    )


def _is_per_site(kernel_args) -> bool:
    return len(kernel_args) > 0 and all(isinstance(args, (tuple, list)) for args in kernel_args)


def interpolate_by_name(
    sites,
    values,
    name: str = "gaussian",
    kernel_args=None,
    poly_degree: int = 1,
    config: ModelConfig = ModelConfig(),
    cache: BasisCache | None = None,
) -> RBFModel:
    """
    Build an RBF model from a kernel identifier.

    Parameters
    ----------
    name : str
        One of 'gaussian', 'multiquadric', 'inv_multiquadric', 'cubic',
        'thin_plate_spline', in any letter case. Unknown names fall back to
        'gaussian' with an `UnknownKernelWarning`; `kernel_args` then go to
        `gaussian`.
    kernel_args : tuple | list[tuple] | None
        Shape parameters: one tuple for all sites, or one tuple per site.
        None uses the constructor defaults.

    See `interpolate` for the remaining parameters.
    """
    kind = resolve_kernel_type(name)
    if kind is None:
        kind = KernelType.GAUSSIAN
    constructor = RADIAL_FUNCTIONS[kind]

    if kernel_args is None:
        kernel = constructor()
    elif not isinstance(kernel_args, (tuple, list)):
        kernel = constructor(kernel_args)
    elif _is_per_site(kernel_args):
        kernel = [constructor(*args) for args in kernel_args]
    else:
        kernel = constructor(*kernel_args)

    return interpolate(sites, values, kernel, poly_degree=poly_degree, config=config, cache=cache)


def evaluate(model: RBFModel, x, output: int | None = None) -> Array:
    """
    Evaluate a model at a single point.

    Parameters
    ----------
    model : RBFModel
        Interpolation model.
    x : Array
        Query point, scalar or shape (n,).
    output : int | None
        Output index. If given, only that output is returned as a scalar.

    Returns
    -------
    Array
        Shape (k,) for vector models, scalar for scalar models or when
        `output` is given.

    Raises
    ------
    IndexError
        If `output` is out of range.
    """
    output = output_index(model, output)
    x = as_point(x, model.num_vars, model.dtype)
    return model.rbf.evaluate(x, output) + model.psys.evaluate(x, output)


def evaluate_batch(model: RBFModel, points) -> Array:
    """
    Evaluate a model at multiple points.

    Parameters
    ----------
    model : RBFModel
        Interpolation model.
    points : Array
        Query points, shape (n_points, n), or (n_points,) for n = 1.

    Returns
    -------
    Array
        Shape (n_points, k), or (n_points,) for scalar models.
    """
    points = jnp.asarray(points, dtype=model.dtype)
    if points.ndim == 1 and model.num_vars == 1:
        points = points[:, None]
    return jax.vmap(lambda x: evaluate(model, x))(points)
