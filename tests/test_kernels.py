"""
Tests for radial functions.
"""

import math
import warnings

import jax
import jax.numpy as jnp
import pytest

from rbf_models.exceptions import ParameterError, UnknownKernelWarning
from rbf_models.kernels import (
    RADIAL_FUNCTIONS,
    KernelType,
    RadialFunction,
    apply_kernel,
    cubic,
    gaussian,
    inverse_multiquadric,
    kernel_thin_plate_spline,
    multiquadric,
    radial_function_from_name,
    resolve_kernel_type,
    thin_plate_spline,
)


class TestGaussian:
    """Test Gaussian radial function."""

    def test_gaussian_at_zero(self):
        """Gaussian should be 1 at rho=0."""
        assert jnp.allclose(gaussian(2.0)(0.0), 1.0)

    def test_gaussian_formula(self):
        """phi(rho) = exp(-(alpha*rho)²)."""
        rho = jnp.array([0.5, 1.0, 2.0])
        assert jnp.allclose(gaussian(1.5)(rho), jnp.exp(-((1.5 * rho) ** 2)))

    def test_gaussian_cpd_order(self):
        """Gaussian is positive definite."""
        assert gaussian().cpd_order() == 0

    def test_gaussian_invalid_alpha(self):
        """Non-positive shape parameters are rejected at construction."""
        with pytest.raises(ParameterError):
            gaussian(-1.0)
        with pytest.raises(ParameterError):
            gaussian(0.0)

    def test_gaussian_nan_alpha(self):
        """NaN is not a positive shape parameter."""
        with pytest.raises(ParameterError):
            gaussian(float("nan"))


class TestMultiquadric:
    """Test Multiquadric radial function."""

    def test_classic_multiquadric(self):
        """beta=1/2 gives -sqrt(1 + (alpha*rho)²)."""
        rho = jnp.array([0.0, 1.0, 3.0])
        assert jnp.allclose(multiquadric(2.0, 0.5)(rho), -jnp.sqrt(1.0 + (2.0 * rho) ** 2))

    def test_sign_alternates(self):
        """beta=3/2 has positive sign since ceil(3/2) = 2."""
        rho = jnp.array([1.0])
        assert jnp.allclose(multiquadric(1.0, 1.5)(rho), 2.0**1.5)

    def test_cpd_order(self):
        """cpd order is ceil(beta)."""
        assert multiquadric(1.0, 0.5).cpd_order() == 1
        assert multiquadric(1.0, 1.5).cpd_order() == 2
        assert multiquadric(1.0, 2.2).cpd_order() == 3

    def test_integer_beta_rejected(self):
        """Integer exponents are rejected."""
        with pytest.raises(ParameterError):
            multiquadric(1.0, 2.0)
        with pytest.raises(ParameterError):
            multiquadric(1.0, 1)

    def test_invalid_alpha(self):
        """Non-positive alpha is rejected."""
        with pytest.raises(ParameterError):
            multiquadric(0.0, 0.5)


class TestInverseMultiquadric:
    """Test Inverse Multiquadric radial function."""

    def test_formula(self):
        """phi(rho) = (1 + (alpha*rho)²)^(-beta)."""
        rho = jnp.array([0.0, 0.5, 2.0])
        expected = (1.0 + (1.5 * rho) ** 2) ** (-2.0)
        assert jnp.allclose(inverse_multiquadric(1.5, 2.0)(rho), expected)

    def test_bounded(self):
        """Values should be in (0, 1]."""
        rho = jnp.array([0.0, 0.1, 1.0, 10.0])
        result = inverse_multiquadric()(rho)
        assert jnp.all(result > 0)
        assert jnp.all(result <= 1.0)

    def test_cpd_order(self):
        """Inverse multiquadric is positive definite."""
        assert inverse_multiquadric(1.0, 3.0).cpd_order() == 0

    def test_invalid_beta(self):
        """Non-positive beta is rejected."""
        with pytest.raises(ParameterError):
            inverse_multiquadric(1.0, -0.5)


class TestCubic:
    """Test Cubic radial function."""

    def test_default_is_cubic(self):
        """Default beta=3 gives rho³ with positive sign."""
        rho = jnp.array([0.0, 1.0, 2.0])
        assert jnp.allclose(cubic()(rho), rho**3)

    def test_linear_sign(self):
        """beta=1 gives -rho."""
        rho = jnp.array([0.0, 1.0, 2.0])
        assert jnp.allclose(cubic(1.0)(rho), -rho)

    def test_fractional_beta(self):
        """Non-integer beta is allowed."""
        rho = jnp.array([4.0])
        assert jnp.allclose(cubic(2.5)(rho), 4.0**2.5)
        assert cubic(2.5).cpd_order() == 2

    def test_cpd_order(self):
        """cpd order is ceil(beta/2)."""
        assert cubic(1.0).cpd_order() == 1
        assert cubic(3.0).cpd_order() == 2
        assert cubic(5.0).cpd_order() == 3

    def test_even_beta_rejected(self):
        """Even integer exponents are rejected."""
        for beta in [2, 4.0, 6]:
            with pytest.raises(ParameterError):
                cubic(beta)


class TestThinPlateSpline:
    """Test Thin Plate Spline radial function."""

    def test_classic_thin_plate_spline(self):
        """k=1 gives rho² log(rho)."""
        rho = jnp.array([0.5, 1.0, 3.0])
        assert jnp.allclose(thin_plate_spline(1)(rho), rho**2 * jnp.log(rho))

    def test_default_order(self):
        """Default k=2 gives -rho⁴ log(rho)."""
        rho = jnp.array([0.5, 2.0])
        assert jnp.allclose(thin_plate_spline()(rho), -(rho**4) * jnp.log(rho))

    def test_uses_own_order(self):
        """Each instance evaluates with its own k."""
        rho = jnp.array([2.0])
        assert jnp.allclose(thin_plate_spline(3)(rho), rho**6 * jnp.log(rho))
        assert jnp.allclose(thin_plate_spline(1)(rho), rho**2 * jnp.log(rho))

    def test_at_zero(self):
        """phi(0) = 0 without NaN from log(0)."""
        for k in [1, 2, 3]:
            result = thin_plate_spline(k)(jnp.array([0.0]))
            assert jnp.isfinite(result[0])
            assert jnp.allclose(result, 0.0)

    def test_cpd_order(self):
        """cpd order is k+1."""
        assert thin_plate_spline(1).cpd_order() == 2
        assert thin_plate_spline(2).cpd_order() == 3

    def test_invalid_order(self):
        """k must be a positive integer."""
        for k in [0, -1, 1.5, True]:
            with pytest.raises(ParameterError):
                thin_plate_spline(k)

    def test_integral_float_order(self):
        """An integral float is accepted and stored as int."""
        assert thin_plate_spline(2.0).params == (2,)


ALL_RADIALS = [
    gaussian(1.3),
    multiquadric(0.7, 0.5),
    multiquadric(1.1, 1.5),
    inverse_multiquadric(1.2, 0.5),
    cubic(3.0),
    cubic(1.5),
    thin_plate_spline(1),
    thin_plate_spline(2),
]


class TestKernelDerivatives:
    """Closed-form derivatives against automatic differentiation."""

    @pytest.mark.parametrize("phi", ALL_RADIALS, ids=lambda phi: f"{phi.kind.value}{phi.params}")
    def test_first_derivative(self, phi):
        """phi'(rho) should match jax.grad away from zero."""
        for rho in [0.3, 1.0, 2.7]:
            expected = jax.grad(lambda r: phi(r))(rho)
            assert jnp.allclose(phi.derivative(rho, nu=1), expected)

    @pytest.mark.parametrize("phi", ALL_RADIALS, ids=lambda phi: f"{phi.kind.value}{phi.params}")
    def test_second_derivative(self, phi):
        """phi''(rho) should match nested jax.grad away from zero."""
        for rho in [0.3, 1.0, 2.7]:
            expected = jax.grad(jax.grad(lambda r: phi(r)))(rho)
            assert jnp.allclose(phi.derivative(rho, nu=2), expected)

    def test_gaussian_limits(self):
        """phi'(0) = 0 and phi''(0) = -2 alpha²."""
        phi = gaussian(1.5)
        assert jnp.allclose(phi.derivative(0.0, nu=1), 0.0)
        assert jnp.allclose(phi.derivative(0.0, nu=2), -2.0 * 1.5**2)

    def test_thin_plate_spline_limits(self):
        """k=2 is twice differentiable at zero, k=1 diverges to -inf."""
        assert jnp.allclose(thin_plate_spline(2).derivative(0.0, nu=2), 0.0)
        assert jnp.allclose(thin_plate_spline(2).derivative(0.0, nu=1), 0.0)
        assert thin_plate_spline(1).derivative(0.0, nu=2) == -jnp.inf

    def test_linear_cubic_limits(self):
        """beta=1: phi'(0) = -1 and phi''(0) = 0, without NaN."""
        phi = cubic(1.0)
        assert jnp.allclose(phi.derivative(0.0, nu=1), -1.0)
        assert jnp.allclose(phi.derivative(0.0, nu=2), 0.0)

    def test_invalid_derivative_order(self):
        """Only derivatives up to order two are available."""
        with pytest.raises(ValueError, match="Derivative order"):
            gaussian().derivative(1.0, nu=3)


class TestApplyKernel:
    """Test kernel dispatcher."""

    def test_apply_matches_instance(self):
        """Dispatcher should agree with RadialFunction evaluation."""
        rho = jnp.array([0.0, 1.0, 4.0])
        for phi in ALL_RADIALS:
            assert jnp.allclose(apply_kernel(rho, phi.kind, phi.params), phi(rho))

    def test_apply_by_string(self):
        """Kernel kind may be given as a plain string."""
        rho = jnp.array([0.5])
        result = kernel_thin_plate_spline(rho, 1)
        assert jnp.allclose(apply_kernel(rho, "thin_plate_spline", (1,)), result)

    def test_apply_invalid_kernel(self):
        """Dispatcher should raise error for invalid kernel."""
        with pytest.raises(ValueError, match="is not a valid KernelType"):
            apply_kernel(jnp.array([1.0]), "invalid_kernel", (1.0,))


class TestRadialFunction:
    """Test the RadialFunction container."""

    def test_immutable(self):
        """Parameters cannot be changed after construction."""
        phi = gaussian(1.0)
        with pytest.raises(AttributeError):
            phi.params = (2.0,)

    def test_hashable_and_equal(self):
        """Equal parameters give equal, hashable radial functions."""
        assert gaussian(2.0) == gaussian(2.0)
        assert len({gaussian(2.0), gaussian(2.0), cubic()}) == 2

    def test_is_radial_function(self):
        """Constructors return RadialFunction instances with their tag."""
        phi = multiquadric()
        assert isinstance(phi, RadialFunction)
        assert phi.kind == KernelType.MULTIQUADRIC
        assert phi.params == (1.0, 0.5)


class TestNameTable:
    """Test kernel lookup by identifier."""

    def test_table_keys(self):
        """All identifiers should be present."""
        names = {kind.value for kind in RADIAL_FUNCTIONS}
        assert names == {"gaussian", "multiquadric", "inv_multiquadric", "cubic", "thin_plate_spline"}

    def test_from_name_with_args(self):
        """Arguments are passed to the constructor."""
        assert radial_function_from_name("cubic", 5.0) == cubic(5.0)
        assert radial_function_from_name("inv_multiquadric", 2.0, 1.0) == inverse_multiquadric(2.0, 1.0)
        assert radial_function_from_name("thin_plate_spline") == thin_plate_spline()

    def test_from_name_invalid_args(self):
        """Invalid arguments still raise ParameterError."""
        with pytest.raises(ParameterError):
            radial_function_from_name("multiquadric", 1.0, 2.0)

    def test_unknown_name_warns(self):
        """Unknown identifiers fall back to gaussian with a warning, keeping the arguments."""
        with pytest.warns(UnknownKernelWarning, match="not_a_kernel"):
            phi = radial_function_from_name("not_a_kernel", 3.0)
        assert phi == gaussian(3.0)

        with pytest.warns(UnknownKernelWarning):
            assert radial_function_from_name("not_a_kernel") == gaussian()

    def test_name_case_insensitive(self):
        """Identifiers match regardless of letter case."""
        with warnings.catch_warnings():
            warnings.simplefilter("error", UnknownKernelWarning)
            assert radial_function_from_name("Cubic", 5.0) == cubic(5.0)
            assert radial_function_from_name("THIN_PLATE_SPLINE") == thin_plate_spline()
            assert resolve_kernel_type("Inv_Multiquadric") == KernelType.INV_MULTIQUADRIC

    def test_known_name_does_not_warn(self):
        """Known identifiers produce no warning."""
        with warnings.catch_warnings():
            warnings.simplefilter("error", UnknownKernelWarning)
            radial_function_from_name("gaussian", 2.0)

    def test_enum_values(self):
        """Test creating enum from string."""
        assert KernelType("cubic") == KernelType.CUBIC
        assert KernelType.INV_MULTIQUADRIC == "inv_multiquadric"
        assert math.isclose(radial_function_from_name(KernelType.GAUSSIAN, 2.0).params[0], 2.0)
