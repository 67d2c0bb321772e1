"""Pytest configuration and shared fixtures."""

import jax
import numpy as np
import pytest

# Ensure float64 is enabled for all tests
jax.config.update("jax_enable_x64", True)


@pytest.fixture
def scattered_data():
    """Ten scattered sites in the unit square with two outputs."""
    rng = np.random.default_rng(42)
    sites = rng.uniform(0.0, 1.0, size=(10, 2))
    values = np.stack(
        [np.sin(3.0 * sites[:, 0]) + sites[:, 1], sites[:, 0] * sites[:, 1]],
        axis=1,
    )
    return sites, values
