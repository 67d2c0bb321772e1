"""
Canonical polynomial basis and polynomial evaluation.

A polynomial of total degree at most d in n variables is stored as an
exponent table of shape (Q, n), Q = C(n+d, n), plus a coefficient array.
The exponent tables are memoized per (n, d) in a process-wide cache.
"""

import logging
import threading
from math import comb
from typing import NamedTuple

import jax.numpy as jnp
import numpy as np
from jax import Array

logger = logging.getLogger(__name__)


def non_negative_solutions(d: int, n: int) -> list[tuple[int, ...]]:
    """
    All integer tuples (x_1, ..., x_n) with x_i >= 0 and sum x_i = d.

    The order is deterministic: the first entry runs from d down to 0.
    """
    if n == 1:
        return [(d,)]
    solutions = []
    for i in range(d + 1):
        for shorter in non_negative_solutions(i, n - 1):
            solutions.append((d - i,) + shorter)
    return solutions


def basis_size(n: int, d: int) -> int:
    """Dimension of the space of n-variate polynomials of degree at most d."""
    if d < 0:
        return 0
    return comb(n + d, n)


def _build_basis(n: int, d: int) -> tuple[tuple[int, ...], ...]:
    basis = []
    for degree in range(d + 1):
        basis.extend(non_negative_solutions(degree, n))
    return tuple(basis)


class BasisCache:
    """
    Thread-safe memo of canonical bases keyed by (n, d).

    Empty on creation; entries live as long as the cache. The lock is held
    across check, build and insert, so each key is built at most once and
    no caller ever sees a partially built basis.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[tuple[int, int], tuple[tuple[int, ...], ...]] = {}
        self.builds = 0

    def get(self, n: int, d: int) -> tuple[tuple[int, ...], ...]:
        key = (n, d)
        with self._lock:
            basis = self._entries.get(key)
            if basis is None:
                basis = _build_basis(n, d)
                self._entries[key] = basis
                self.builds += 1
                logger.debug("Built canonical basis n=%d, d=%d with %d terms", n, d, len(basis))
            return basis

    def __contains__(self, key) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# Process-wide default cache
BASIS_CACHE = BasisCache()


def canonical_basis(
    n: int, d: int, cache: BasisCache | None = None
) -> tuple[tuple[int, ...], ...]:
    """
    Canonical monomial basis of n-variate polynomials of degree at most d.

    Parameters
    ----------
    n : int
        Number of variables (>= 1).
    d : int
        Maximum total degree. Negative degrees give the empty basis.
    cache : BasisCache | None, optional
        Cache to use. Defaults to the process-wide `BASIS_CACHE`.

    Returns
    -------
    tuple[tuple[int, ...], ...]
        Exponent tuples ordered by total degree, C(n+d, n) of them.
    """
    if n < 1:
        raise ValueError(f"Number of variables must be positive, got {n}")
    if d < 0:
        return ()
    if cache is None:
        cache = BASIS_CACHE
    return cache.get(n, d)


def exponent_table(basis, n: int) -> np.ndarray:
    """Basis as an integer array of shape (Q, n)."""
    return np.asarray(basis, dtype=np.int64).reshape(len(basis), n)


def monomials(x: Array, exponents: np.ndarray) -> Array:
    """Evaluate every monomial of the exponent table at x, shape (Q,)."""
    return jnp.prod(jnp.power(x[None, :], exponents), axis=1)


def monomial_gradients(x: Array, exponents: np.ndarray) -> Array:
    """
    Partial derivatives of every monomial at x.

    Returns
    -------
    Array
        Shape (n, Q); entry [a, q] is d/dx_a of monomial q.
    """
    n = exponents.shape[1]
    shifted = np.clip(exponents[None, :, :] - np.eye(n, dtype=np.int64)[:, None, :], 0, None)
    values = jnp.prod(jnp.power(x[None, None, :], shifted), axis=2)  # (n, Q)
    return values * exponents.T


def monomial_hessians(x: Array, exponents: np.ndarray) -> Array:
    """
    Second partial derivatives of every monomial at x.

    Returns
    -------
    Array
        Shape (n, n, Q); entry [a, b, q] is d²/dx_a dx_b of monomial q.
    """
    n = exponents.shape[1]
    eye = np.eye(n, dtype=np.int64)
    shifted = exponents[None, None, :, :] - eye[:, None, None, :] - eye[None, :, None, :]
    shifted = np.clip(shifted, 0, None)
    # e_a * (e_b - delta_ab) vanishes exactly where the clip took effect
    factor = exponents.T[:, None, :] * (exponents.T[None, :, :] - eye[:, :, None])
    values = jnp.prod(jnp.power(x[None, None, None, :], shifted), axis=3)  # (n, n, Q)
    return values * factor


class Polynomial(NamedTuple):
    """Single polynomial: exponent table (Q, n) and coefficients (Q,)."""

    exponents: np.ndarray
    coeffs: Array

    def evaluate(self, x: Array) -> Array:
        return monomials(x, self.exponents) @ self.coeffs

    def gradient(self, x: Array) -> Array:
        return monomial_gradients(x, self.exponents) @ self.coeffs

    def hessian(self, x: Array) -> Array:
        return monomial_hessians(x, self.exponents) @ self.coeffs


def make_polynomial(basis, coeffs, n: int | None = None) -> Polynomial:
    """Polynomial with the given coefficient for each basis term."""
    if n is None:
        n = len(basis[0]) if len(basis) else 1
    return Polynomial(exponent_table(basis, n), jnp.asarray(coeffs))


class PolySystem(NamedTuple):
    """
    Polynomial tail of a model, one polynomial per output.

    exponents : shared exponent table, shape (Q, n)
    coeffs : polynomial coefficients, shape (Q, k); column l belongs to output l
    """

    exponents: np.ndarray
    coeffs: Array

    def polynomials(self) -> tuple[Polynomial, ...]:
        return tuple(
            Polynomial(self.exponents, self.coeffs[:, l]) for l in range(self.coeffs.shape[1])
        )

    def evaluate(self, x: Array, output: int | None = None) -> Array:
        """All outputs (shape (k,)) or a single output (scalar)."""
        mons = monomials(x, self.exponents)
        if output is None:
            return mons @ self.coeffs
        return mons @ self.coeffs[:, output]

    def gradient(self, x: Array, output: int | None = None) -> Array:
        """Gradient (n,) of one output, or Jacobian (k, n) of all outputs."""
        grads = monomial_gradients(x, self.exponents)  # (n, Q)
        if output is None:
            return (grads @ self.coeffs).T
        return grads @ self.coeffs[:, output]

    def hessian(self, x: Array, output: int | None = None) -> Array:
        """Hessian (n, n) of one output, or stacked Hessians (k, n, n)."""
        hess = monomial_hessians(x, self.exponents)  # (n, n, Q)
        if output is None:
            return jnp.moveaxis(hess @ self.coeffs, -1, 0)
        return hess @ self.coeffs[:, output]
