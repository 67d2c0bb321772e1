"""
Radial functions and dispatcher.

Supported radial functions phi(rho), rho = ||x - c||:
- Gaussian: exp(-(alpha*rho)²)
- Multiquadric: (-1)^ceil(beta) * (1 + (alpha*rho)²)^beta
- Inverse Multiquadric: (1 + (alpha*rho)²)^(-beta)
- Cubic: (-1)^ceil(beta/2) * rho^beta
- Thin Plate Spline: (-1)^(k+1) * rho^(2k) * log(rho)

Each kernel function returns phi or one of its first two derivatives with
respect to rho. Values at rho = 0 are the limits of the closed-form
expressions, so a divergent limit shows up as +-inf instead of NaN.
"""

import math
import warnings
from enum import Enum
from typing import NamedTuple

import jax.numpy as jnp
from jax import Array

from .exceptions import ParameterError, UnknownKernelWarning


class KernelType(str, Enum):
    """Radial function identifiers."""

    GAUSSIAN = "gaussian"
    MULTIQUADRIC = "multiquadric"
    INV_MULTIQUADRIC = "inv_multiquadric"
    CUBIC = "cubic"
    THIN_PLATE_SPLINE = "thin_plate_spline"


def _scaled_power(rho: Array, coeff: float, p: float) -> Array:
    """coeff * rho^p, identically zero when coeff vanishes."""
    if coeff == 0:
        return jnp.zeros_like(rho)
    return coeff * jnp.power(rho, p)


def _power_log(rho: Array, p: int, a: float, b: float) -> Array:
    """rho^p * (a*log(rho) + b) for a > 0, continued to rho = 0 by its limit."""
    positive = rho > 0
    safe_rho = jnp.where(positive, rho, 1.0)
    value = jnp.power(safe_rho, p) * (a * jnp.log(safe_rho) + b)
    limit = 0.0 if p > 0 else -jnp.inf
    return jnp.where(positive, value, limit)


def kernel_gaussian(rho: Array, alpha: float, nu: int = 0) -> Array:
    """
    Gaussian kernel.

    phi(rho) = exp(-(alpha*rho)²)

    Parameters
    ----------
    rho : Array
        Distances to the kernel center.
    alpha : float
        Shape parameter.
    nu : int, optional
        Derivative order (0, 1 or 2). Default is 0.

    Returns
    -------
    Array
        Kernel values (or derivatives), same shape as rho.
    """
    a2 = alpha**2
    phi = jnp.exp(-a2 * rho**2)
    if nu == 0:
        return phi
    if nu == 1:
        return -2.0 * a2 * rho * phi
    return (4.0 * a2**2 * rho**2 - 2.0 * a2) * phi


def kernel_multiquadric(rho: Array, alpha: float, beta: float, nu: int = 0) -> Array:
    """
    Generalized Multiquadric kernel.

    phi(rho) = (-1)^ceil(beta) * (1 + (alpha*rho)²)^beta

    beta = 1/2 gives the classic (negated) multiquadric.
    """
    sign = (-1.0) ** math.ceil(beta)
    a2 = alpha**2
    u = 1.0 + a2 * rho**2
    if nu == 0:
        return sign * jnp.power(u, beta)
    if nu == 1:
        return sign * 2.0 * beta * a2 * rho * jnp.power(u, beta - 1.0)
    return sign * (
        2.0 * beta * a2 * jnp.power(u, beta - 1.0)
        + 4.0 * beta * (beta - 1.0) * a2**2 * rho**2 * jnp.power(u, beta - 2.0)
    )


def kernel_inverse_multiquadric(
    rho: Array, alpha: float, beta: float, nu: int = 0
) -> Array:
    """
    Inverse Multiquadric kernel.

    phi(rho) = (1 + (alpha*rho)²)^(-beta)
    """
    a2 = alpha**2
    u = 1.0 + a2 * rho**2
    if nu == 0:
        return jnp.power(u, -beta)
    if nu == 1:
        return -2.0 * beta * a2 * rho * jnp.power(u, -beta - 1.0)
    return -2.0 * beta * a2 * jnp.power(u, -beta - 1.0) + 4.0 * beta * (
        beta + 1.0
    ) * a2**2 * rho**2 * jnp.power(u, -beta - 2.0)


def kernel_cubic(rho: Array, beta: float, nu: int = 0) -> Array:
    """
    Generalized Cubic (polyharmonic power) kernel.

    phi(rho) = (-1)^ceil(beta/2) * rho^beta

    Notes
    -----
    For beta < 2 the second derivative diverges at rho = 0 and is
    reported as inf.
    """
    sign = (-1.0) ** math.ceil(beta / 2)
    if nu == 0:
        return _scaled_power(rho, sign, beta)
    if nu == 1:
        return _scaled_power(rho, sign * beta, beta - 1.0)
    return _scaled_power(rho, sign * beta * (beta - 1.0), beta - 2.0)


def kernel_thin_plate_spline(rho: Array, k: int, nu: int = 0) -> Array:
    """
    Generalized Thin Plate Spline kernel.

    phi(rho) = (-1)^(k+1) * rho^(2k) * log(rho)

    Notes
    -----
    Uses log(0) * 0 = 0 so that phi(0) = 0. The second derivative of
    the k = 1 spline diverges logarithmically at rho = 0.
    """
    sign = (-1.0) ** (k + 1)
    m = 2 * k
    if nu == 0:
        return sign * _power_log(rho, m, 1.0, 0.0)
    if nu == 1:
        return sign * _power_log(rho, m - 1, float(m), 1.0)
    return sign * _power_log(rho, m - 2, float(m * (m - 1)), float(2 * m - 1))


def apply_kernel(rho: Array, kind: str, params: tuple, nu: int = 0) -> Array:
    """
    Apply a radial function (or a derivative) to an array of distances.

    Parameters
    ----------
    rho : Array
        Non-negative distances.
    kind : str
        Kernel identifier, see `KernelType`.
    params : tuple
        Shape parameters in constructor order.
    nu : int, optional
        Derivative order with respect to rho (0, 1 or 2).

    Returns
    -------
    Array
        Kernel values, same shape as rho.

    Raises
    ------
    ValueError
        If the kernel type or derivative order is not recognized.
    """
    kernel_type = KernelType(kind)
    if nu not in (0, 1, 2):
        raise ValueError(f"Derivative order must be 0, 1 or 2, got {nu}")

    if kernel_type == KernelType.GAUSSIAN:
        return kernel_gaussian(rho, *params, nu=nu)
    elif kernel_type == KernelType.MULTIQUADRIC:
        return kernel_multiquadric(rho, *params, nu=nu)
    elif kernel_type == KernelType.INV_MULTIQUADRIC:
        return kernel_inverse_multiquadric(rho, *params, nu=nu)
    elif kernel_type == KernelType.CUBIC:
        return kernel_cubic(rho, *params, nu=nu)
    elif kernel_type == KernelType.THIN_PLATE_SPLINE:
        return kernel_thin_plate_spline(rho, *params, nu=nu)
    else:
        raise ValueError(f"Unknown kernel type: {kind}")


class RadialFunction(NamedTuple):
    """Immutable radial function: a kernel tag plus validated shape parameters.

    Build instances through the constructors (`gaussian`, `multiquadric`, ...)
    so that parameters are checked once, at construction.
    """

    kind: KernelType
    params: tuple

    def __call__(self, rho) -> Array:
        return apply_kernel(jnp.asarray(rho), self.kind, self.params)

    def derivative(self, rho, nu: int = 1) -> Array:
        """Derivative of order `nu` with respect to rho."""
        return apply_kernel(jnp.asarray(rho), self.kind, self.params, nu=nu)

    def cpd_order(self) -> int:
        """Order of conditional positive definiteness."""
        if self.kind == KernelType.MULTIQUADRIC:
            return math.ceil(self.params[1])
        if self.kind == KernelType.CUBIC:
            return math.ceil(self.params[0] / 2)
        if self.kind == KernelType.THIN_PLATE_SPLINE:
            return self.params[0] + 1
        return 0


def _positive(name: str, value) -> float:
    value = float(value)
    if not (math.isfinite(value) and value > 0):
        raise ParameterError(f"The shape parameter `{name}` must be positive. {name}={value}")
    return value


def gaussian(alpha: float = 1.0) -> RadialFunction:
    """Gaussian radial function, cpd order 0."""
    return RadialFunction(KernelType.GAUSSIAN, (_positive("alpha", alpha),))


def multiquadric(alpha: float = 1.0, beta: float = 0.5) -> RadialFunction:
    """Multiquadric radial function, cpd order ceil(beta). beta must not be an integer."""
    alpha = _positive("alpha", alpha)
    beta = _positive("beta", beta)
    if beta.is_integer():
        raise ParameterError(f"The exponent `beta` must not be an integer. beta={beta}")
    return RadialFunction(KernelType.MULTIQUADRIC, (alpha, beta))


def inverse_multiquadric(alpha: float = 1.0, beta: float = 0.5) -> RadialFunction:
    """Inverse Multiquadric radial function, cpd order 0."""
    return RadialFunction(
        KernelType.INV_MULTIQUADRIC, (_positive("alpha", alpha), _positive("beta", beta))
    )


def cubic(beta: float = 3.0) -> RadialFunction:
    """Cubic radial function, cpd order ceil(beta/2). beta must not be an even integer."""
    beta = _positive("beta", beta)
    if beta.is_integer() and int(beta) % 2 == 0:
        raise ParameterError(f"The exponent `beta` must not be an even integer. beta={beta}")
    return RadialFunction(KernelType.CUBIC, (beta,))


def thin_plate_spline(k: int = 2) -> RadialFunction:
    """Thin Plate Spline radial function, cpd order k + 1."""
    if isinstance(k, bool) or not float(k).is_integer() or k < 1:
        raise ParameterError(f"The order `k` must be a positive integer. k={k}")
    return RadialFunction(KernelType.THIN_PLATE_SPLINE, (int(k),))


# Identifier table: name -> constructor
RADIAL_FUNCTIONS = {
    KernelType.GAUSSIAN: gaussian,
    KernelType.MULTIQUADRIC: multiquadric,
    KernelType.INV_MULTIQUADRIC: inverse_multiquadric,
    KernelType.CUBIC: cubic,
    KernelType.THIN_PLATE_SPLINE: thin_plate_spline,
}


def resolve_kernel_type(name: str) -> KernelType | None:
    """
    Look up a kernel identifier, ignoring letter case.

    Returns None, after emitting an `UnknownKernelWarning`, if the
    identifier is not in the table.
    """
    key = name.lower() if isinstance(name, str) else name
    try:
        return KernelType(key)
    except ValueError:
        warnings.warn(
            f"Unknown kernel {name!r}, using 'gaussian' instead.",
            UnknownKernelWarning,
            stacklevel=3,
        )
        return None


def radial_function_from_name(name: str, *args) -> RadialFunction:
    """
    Construct a radial function from its identifier.

    Parameters
    ----------
    name : str
        One of 'gaussian', 'multiquadric', 'inv_multiquadric', 'cubic',
        'thin_plate_spline', in any letter case.
    *args
        Shape parameters passed to the constructor.

    Returns
    -------
    RadialFunction
        The requested radial function. Unknown identifiers fall back to
        `gaussian(*args)`.
    """
    kind = resolve_kernel_type(name)
    if kind is None:
        return gaussian(*args)
    return RADIAL_FUNCTIONS[kind](*args)
