"""
Closed-form gradients and Hessians of RBF models.

With xi = x - c and rho = ||xi||, a single shifted kernel k(x) = phi(rho) has

    grad k(x) = phi'(rho)/rho * xi
    hess k(x) = (phi''(rho)/rho² - phi'(rho)/rho³) * xi xi^T + phi'(rho)/rho * I

At rho = 0 the gradient term is zero and the Hessian reduces to phi''(0) * I.
Both limits are taken analytically here, never by dividing by zero. They
are finite whenever phi'(0) = 0 and phi''(0) exists, which holds for the
Gaussian, (inverse) multiquadric, cubic with beta > 2 and thin plate splines
with k >= 2. Where phi''(0) diverges the Hessian at that center has +-inf on
its diagonal and finite entries elsewhere.

Unlike `jax.grad` through the model, these formulas stay well defined at
the centers.
"""

import jax.numpy as jnp
from jax import Array

from .kernels import RadialFunction
from .rbf import RBFOutputSystem, ShiftedKernel, apply_grouped, as_point


def radial_ratio(radial: RadialFunction, rho: Array) -> Array:
    """phi'(rho)/rho, continued to rho = 0 by its limit phi''(0)."""
    positive = rho > 0
    safe_rho = jnp.where(positive, rho, 1.0)
    at_origin = radial.derivative(jnp.zeros_like(rho), nu=2)
    return jnp.where(positive, radial.derivative(safe_rho, nu=1) / safe_rho, at_origin)


def radial_curvature(radial: RadialFunction, rho: Array) -> Array:
    """(phi''(rho) - phi'(rho)/rho) / rho², the coefficient of xi xi^T; zero at rho = 0."""
    positive = rho > 0
    safe_rho = jnp.where(positive, rho, 1.0)
    value = (
        radial.derivative(safe_rho, nu=2) - radial.derivative(safe_rho, nu=1) / safe_rho
    ) / safe_rho**2
    return jnp.where(positive, value, 0.0)


def shifted_kernel_gradient(kernel: ShiftedKernel, x) -> Array:
    """Gradient of phi(||x - center||) with respect to x, shape (n,)."""
    xi = jnp.atleast_1d(jnp.asarray(x)) - kernel.center
    rho = jnp.sqrt(jnp.sum(xi**2))
    q = jnp.where(rho > 0, radial_ratio(kernel.radial, rho), 0.0)
    return q * xi


def shifted_kernel_hessian(kernel: ShiftedKernel, x) -> Array:
    """Hessian of phi(||x - center||) with respect to x, shape (n, n)."""
    xi = jnp.atleast_1d(jnp.asarray(x)) - kernel.center
    rho = jnp.sqrt(jnp.sum(xi**2))
    q = radial_ratio(kernel.radial, rho)
    c = radial_curvature(kernel.radial, rho)
    return c * jnp.outer(xi, xi) + _diagonal(q, xi.shape[0], xi.dtype)


def _diagonal(q: Array, n: int, dtype) -> Array:
    """q[..., None, None] * I without multiplying an infinite q by zero."""
    on_diagonal = jnp.eye(n, dtype=bool)
    return jnp.where(on_diagonal, jnp.asarray(q, dtype=dtype)[..., None, None], 0.0)


def _radial_terms(rbf: RBFOutputSystem, x: Array):
    xi = x[None, :] - rbf.centers  # (n_centers, n_vars)
    rho = jnp.sqrt(jnp.sum(xi**2, axis=-1))
    q = apply_grouped(rbf.groups, rho, radial_ratio)
    c = apply_grouped(rbf.groups, rho, radial_curvature)
    return xi, rho, q, c


def kernel_sum_gradient(rbf: RBFOutputSystem, x: Array, output: int | None = None) -> Array:
    """
    Gradient of the kernel sum.

    Returns
    -------
    Array
        Shape (n,) for a single output, (k, n) for all outputs.
    """
    xi, rho, q, _ = _radial_terms(rbf, x)
    q = jnp.where(rho > 0, q, 0.0)
    if output is None:
        return jnp.einsum("il,i,ia->la", rbf.weights, q, xi)
    return jnp.einsum("i,i,ia->a", rbf.weights[:, output], q, xi)


def kernel_sum_hessian(rbf: RBFOutputSystem, x: Array, output: int | None = None) -> Array:
    """
    Hessian of the kernel sum.

    Returns
    -------
    Array
        Shape (n, n) for a single output, (k, n, n) for all outputs.
    """
    xi, _, q, c = _radial_terms(rbf, x)
    n = x.shape[0]
    if output is None:
        outer = jnp.einsum("il,i,ia,ib->lab", rbf.weights, c, xi, xi)
        return outer + _diagonal(q @ rbf.weights, n, xi.dtype)
    w = rbf.weights[:, output]
    return jnp.einsum("i,i,ia,ib->ab", w, c, xi, xi) + _diagonal(jnp.dot(w, q), n, xi.dtype)


def output_index(model, output: int | None) -> int | None:
    """
    Validate an output index; scalar models select output 0 when none is given.

    Raises
    ------
    IndexError
        If `output` is not in [0, model.num_outputs).
    """
    if output is not None and not 0 <= output < model.num_outputs:
        raise IndexError(f"Output index {output} out of range for {model.num_outputs} outputs")
    if output is None and not model.vector_output:
        return 0
    return output


def jacobian(model, x) -> Array:
    """Jacobian of all model outputs at x, shape (k, n)."""
    x = as_point(x, model.num_vars, model.dtype)
    return kernel_sum_gradient(model.rbf, x) + model.psys.gradient(x)


def gradient(model, x, output: int | None = None) -> Array:
    """
    Gradient of a model output at x.

    Parameters
    ----------
    model : RBFModel
        Interpolation model.
    x : Array
        Query point, scalar or shape (n,).
    output : int | None
        Output index. If None, scalar models return their gradient (n,)
        and vector models their Jacobian (k, n).

    Returns
    -------
    Array
        Gradient (n,) or Jacobian (k, n).
    """
    output = output_index(model, output)
    if output is None:
        return jacobian(model, x)
    x = as_point(x, model.num_vars, model.dtype)
    return kernel_sum_gradient(model.rbf, x, output) + model.psys.gradient(x, output)


def hessian(model, x, output: int | None = None) -> Array:
    """
    Hessian of a model output at x.

    Returns
    -------
    Array
        Shape (n, n) for a single output or a scalar model, (k, n, n) otherwise.
    """
    output = output_index(model, output)
    x = as_point(x, model.num_vars, model.dtype)
    return kernel_sum_hessian(model.rbf, x, output) + model.psys.hessian(x, output)
