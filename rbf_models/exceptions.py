"""Exceptions and warnings for RBF model construction."""

import numpy as np


class RBFError(Exception):
    """Base exception for RBF model errors."""

    pass


class ParameterError(RBFError, ValueError):
    """Raised when a radial function shape parameter is invalid.

    This occurs when:
    - A shape parameter is not positive
    - A Multiquadric exponent is an integer
    - A Cubic exponent is an even integer
    - A ThinPlateSpline order is not a positive integer
    """

    pass


class DimensionMismatchError(RBFError, ValueError):
    """Raised when sites, values, kernels or query points disagree in size.

    This occurs when:
    - The number of sites differs from the number of values
    - Sites (or values) do not share a common dimension
    - A per-site kernel list does not have one entry per site
    - A query point does not match the model's input dimension
    """

    pass


class SingularSystemError(RBFError, np.linalg.LinAlgError):
    """Raised when the augmented interpolation system cannot be solved."""

    pass


class UnknownKernelWarning(UserWarning):
    """Emitted when a kernel identifier is not recognized."""

    pass
