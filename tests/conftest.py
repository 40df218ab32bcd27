"""
Pytest configuration and fixtures for reproducible testing.

This file provides centralized test configuration including:
- Random seed management for reproducibility
- Shared fixtures
- Marker registration
"""
import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'src'))


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: long-running MCMC tests")


@pytest.fixture(scope="session", autouse=True)
def set_random_seeds():
    """Seed the legacy global NumPy state once per session.

    Library code draws from explicit Generators; this only pins down any
    incidental use of np.random in third-party code.
    """
    np.random.seed(42)
    yield


@pytest.fixture
def rng():
    """Fresh, deterministic Generator for each test."""
    return np.random.default_rng(42)


@pytest.fixture
def quiet_config():
    """Small, silent sampling configuration."""
    from bayes_ts.samplers import BayesianConfig
    return BayesianConfig(n_chains=2, n_draws=500, n_tune=200,
                          progressbar=False, verbose=False, random_seed=7)
