"""
Shifted kernels, interpolation matrices and the coefficient solver.

An RBF model r: R^n -> R^k has the form

    r(x) = sum_i w_i phi_i(||x - c_i||) + p(x)

The weights w and the polynomial coefficients of p solve the augmented
saddle-point system

    [Phi  P] [W]   [Y]
    [P.T  0] [L] = [0]
"""

import logging
from typing import Callable, NamedTuple, Sequence

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from tqdm import tqdm

from .exceptions import DimensionMismatchError, SingularSystemError
from .kernels import RadialFunction
from .polynomials import exponent_table, monomials
from .types import CoefficientMatrices

logger = logging.getLogger(__name__)


class ShiftedKernel(NamedTuple):
    """Radial function bound to a center: k(x) = phi(||x - center||)."""

    radial: RadialFunction
    center: Array

    def __call__(self, x) -> Array:
        return self.radial(center_distances(jnp.asarray(x), self.center[None, :])[0])


class KernelGroup(NamedTuple):
    """Indices of all centers that share one radial function."""

    radial: RadialFunction
    indices: np.ndarray


def make_kernels(
    radial: RadialFunction | Sequence[RadialFunction], centers: Array
) -> tuple[ShiftedKernel, ...]:
    """
    Build one shifted kernel per center.

    Parameters
    ----------
    radial : RadialFunction | Sequence[RadialFunction]
        A single radial function used for every center, or one per center.
    centers : Array
        Kernel centers, shape (n_centers, n_vars).

    Returns
    -------
    tuple[ShiftedKernel, ...]
        Shifted kernels in center order.

    Raises
    ------
    DimensionMismatchError
        If a per-center list does not have one entry per center.
    """
    n_centers = centers.shape[0]
    if isinstance(radial, RadialFunction):
        radials = [radial] * n_centers
    else:
        radials = list(radial)
        if len(radials) != n_centers:
            raise DimensionMismatchError(
                f"Mismatch: {len(radials)} radial functions vs {n_centers} centers"
            )
    return tuple(ShiftedKernel(phi, centers[i]) for i, phi in enumerate(radials))


def group_kernels(kernels: Sequence[ShiftedKernel]) -> tuple[KernelGroup, ...]:
    """Group kernel indices by radial function, in order of first appearance."""
    groups: dict[RadialFunction, list[int]] = {}
    for i, kernel in enumerate(kernels):
        groups.setdefault(kernel.radial, []).append(i)
    return tuple(
        KernelGroup(radial, np.asarray(indices, dtype=np.int64))
        for radial, indices in groups.items()
    )


def as_point(x, n_vars: int, dtype=None) -> Array:
    """Query point as a 1D array of length n_vars; scalars become length-1 points."""
    x = jnp.atleast_1d(jnp.asarray(x, dtype=dtype))
    if x.shape != (n_vars,):
        raise DimensionMismatchError(
            f"Expected a point of dimension {n_vars}, got shape {x.shape}"
        )
    return x


def stack_centers(kernels: Sequence[ShiftedKernel]) -> Array:
    """Kernel centers as an array of shape (n_centers, n_vars)."""
    return jnp.stack([jnp.asarray(kernel.center) for kernel in kernels])


def center_distances(x: Array, centers: Array) -> Array:
    """Euclidean distances from x to each center, shape (n_centers,)."""
    return jnp.sqrt(jnp.sum((x[None, :] - centers) ** 2, axis=-1))


def distances(x, kernels: Sequence[ShiftedKernel]) -> Array:
    """Euclidean distances from x to the center of each kernel."""
    return center_distances(jnp.asarray(x), stack_centers(kernels))


def pairwise_distances(points: Array, centers: Array) -> Array:
    """Distance matrix, shape (n_points, n_centers)."""
    diff = points[:, None, :] - centers[None, :, :]
    return jnp.sqrt(jnp.sum(diff**2, axis=-1))


def apply_grouped(
    groups: Sequence[KernelGroup],
    rho: Array,
    fn: Callable[[RadialFunction, Array], Array],
    verbose: bool = False,
) -> Array:
    """
    Apply `fn(radial, rho_sub)` per kernel group along the last axis of rho.

    Parameters
    ----------
    groups : Sequence[KernelGroup]
        Kernel groups covering every index of the last axis of rho.
    rho : Array
        Distances, shape (..., n_centers).
    fn : Callable
        Maps a radial function and a slice of distances to values.
    verbose : bool
        Show progress bar over the groups.

    Returns
    -------
    Array
        Values, same shape as rho.
    """
    if len(groups) == 1:
        return fn(groups[0].radial, rho)

    result = jnp.zeros_like(rho)
    iterator = tqdm(groups, desc="Evaluating kernels") if verbose else groups
    for group in iterator:
        result = result.at[..., group.indices].set(fn(group.radial, rho[..., group.indices]))
    return result


def build_collocation_matrix(
    sites: Array,
    centers: Array,
    groups: Sequence[KernelGroup],
    verbose: bool = False,
) -> Array:
    """
    Build the kernel matrix Phi[i, j] = phi_j(||sites[i] - centers[j]||).

    Returns
    -------
    Array
        Kernel matrix, shape (n_sites, n_centers).
    """
    r = pairwise_distances(sites, centers)
    return apply_grouped(groups, r, lambda phi, rho: phi(rho), verbose=verbose)


def build_polynomial_matrix(sites: Array, exponents: np.ndarray) -> Array:
    """
    Build P[i, j] = j-th basis monomial evaluated at sites[i].

    Returns
    -------
    Array
        Polynomial matrix, shape (n_sites, n_basis).
    """
    return jax.vmap(lambda x: monomials(x, exponents))(sites)


def solve_augmented_system(
    F: Array,
    P: Array,
    rhs: Array,
    tol: float = 1e-8,
    cond_limit: float | None = None,
) -> tuple[Array, Array]:
    """
    Solve the augmented RBF system by direct assembly and dense solve.

    Solves the saddle-point system:
        [F  P] [W]   [rhs]
        [P.T 0] [L] = [0]

    Parameters
    ----------
    F : Array
        Kernel matrix, shape (n_sites, n_centers).
    P : Array
        Polynomial matrix, shape (n_sites, n_basis).
    rhs : Array
        Data values, shape (n_sites, n_outputs).
    tol : float
        Maximum accepted relative backward error of the solution.
    cond_limit : float | None
        If given, reject systems whose condition number exceeds it.

    Returns
    -------
    tuple[Array, Array]
        weights : shape (n_centers, n_outputs)
        poly_coeffs : shape (n_basis, n_outputs)

    Raises
    ------
    SingularSystemError
        If the system is singular or the solve is numerically unreliable.
    """
    n_centers = F.shape[1]
    n_poly = P.shape[1]
    n_rhs = rhs.shape[1]

    # [F  P ]
    # [P' 0 ]
    top = jnp.hstack([F, P])
    bottom = jnp.hstack([P.T, jnp.zeros((n_poly, n_poly), dtype=F.dtype)])
    A_aug = jnp.vstack([top, bottom])

    # [rhs]
    # [0  ]
    rhs_aug = jnp.vstack([rhs, jnp.zeros((n_poly, n_rhs), dtype=rhs.dtype)])

    logger.debug(
        "Solving augmented system of size %d with %d right-hand sides",
        A_aug.shape[0],
        n_rhs,
    )

    if cond_limit is not None:
        cond = float(jnp.linalg.cond(A_aug))
        if not cond <= cond_limit:
            raise SingularSystemError(
                f"Condition number {cond:.3e} exceeds limit {cond_limit:.3e}"
            )

    solution = jnp.linalg.solve(A_aug, rhs_aug)

    if not bool(jnp.all(jnp.isfinite(solution))):
        raise SingularSystemError("Augmented system is singular: solution is not finite")

    residual = float(jnp.linalg.norm(A_aug @ solution - rhs_aug))
    scale = float(
        jnp.linalg.norm(A_aug) * jnp.linalg.norm(solution) + jnp.linalg.norm(rhs_aug)
    )
    if residual > tol * scale:
        raise SingularSystemError(
            f"Augmented system is numerically singular: relative residual {residual / scale:.3e}"
        )

    return solution[:n_centers], solution[n_centers:]


def coefficients(
    sites: Array,
    values: Array,
    kernels: Sequence[ShiftedKernel],
    basis: Sequence[tuple[int, ...]],
    tol: float = 1e-8,
    cond_limit: float | None = None,
    verbose: bool = False,
) -> CoefficientMatrices:
    """
    Coefficients of the interpolating model r(x) = sum_i w_i k_i(x) + sum_j l_j p_j(x).

    Parameters
    ----------
    sites : Array
        Data sites, shape (n_sites, n_vars).
    values : Array
        Data values, shape (n_sites, n_outputs).
    kernels : Sequence[ShiftedKernel]
        One shifted kernel per site.
    basis : Sequence[tuple[int, ...]]
        Polynomial basis as exponent tuples (may be empty).

    Returns
    -------
    CoefficientMatrices
        Kernel weights (n_sites, n_outputs) and polynomial coefficients
        (n_basis, n_outputs).
    """
    n_sites, n_vars = sites.shape
    if len(kernels) != n_sites:
        raise DimensionMismatchError(f"Mismatch: {len(kernels)} kernels vs {n_sites} sites")

    centers = stack_centers(kernels)
    F = build_collocation_matrix(sites, centers, group_kernels(kernels), verbose=verbose)
    P = build_polynomial_matrix(sites, exponent_table(basis, n_vars))

    weights, poly_coeffs = solve_augmented_system(F, P, values, tol=tol, cond_limit=cond_limit)
    return CoefficientMatrices(weights=weights, poly_coeffs=poly_coeffs)


class RBFOutputSystem(NamedTuple):
    """Kernel-sum part of a model: sum_i W[i, l] * phi_i(||x - c_i||) for each output l."""

    kernels: tuple[ShiftedKernel, ...]
    centers: Array  # (n_centers, n_vars)
    weights: Array  # (n_centers, n_outputs)
    groups: tuple[KernelGroup, ...]

    def distances(self, x: Array) -> Array:
        """Distance of x to each kernel center."""
        return center_distances(x, self.centers)

    def kernel_values(self, x: Array) -> Array:
        """The vector [k_1(x), ..., k_N(x)]."""
        return apply_grouped(self.groups, self.distances(x), lambda phi, rho: phi(rho))

    def evaluate(self, x: Array, output: int | None = None) -> Array:
        """All outputs (shape (k,)) or a single output (scalar)."""
        values = self.kernel_values(x)
        if output is None:
            return values @ self.weights
        return values @ self.weights[:, output]


def make_output_system(
    kernels: Sequence[ShiftedKernel],
    weights: Array,
    asarray: Callable = jnp.asarray,
) -> RBFOutputSystem:
    """
    Kernel-sum evaluator for the given kernels and weight matrix.

    `asarray` selects the storage type of the centers and weights.
    """
    kernels = tuple(kernels)
    return RBFOutputSystem(
        kernels=kernels,
        centers=asarray(stack_centers(kernels)),
        weights=asarray(weights),
        groups=group_kernels(kernels),
    )
