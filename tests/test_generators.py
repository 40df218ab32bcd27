"""
Unit tests for synthetic data generators and ODE integration
"""

import numpy as np
import pytest

from bayes_ts.errors import NumericalInstabilityError, ValidationError
from bayes_ts.generators import (
    is_stable, make_stable_transition_matrix, random_covariance,
    simulate_growth, simulate_linear_regression, simulate_ode, simulate_var,
    spectral_radius,
)
from bayes_ts.ode import (
    OdeTolerances, adaptive_integrate, integrate, logistic_growth, rk4_integrate,
)


def logistic_exact(t, r, K, y0):
    return K / (1.0 + (K / y0 - 1.0) * np.exp(-r * t))


class TestLinearRegression:
    """Test the regression generator."""

    def test_shape_and_columns(self, rng):
        ts = simulate_linear_regression(100, slope=1.5, intercept=2.0, noise_sd=1.25, rng=rng)
        assert ts.values.shape == (100, 2)
        assert ts.names == ('x', 'y')

    def test_noise_free_is_exactly_affine(self, rng):
        ts = simulate_linear_regression(50, slope=-0.7, intercept=3.0, noise_sd=0.0, rng=rng)
        np.testing.assert_allclose(ts.column('y'), 3.0 - 0.7 * ts.column('x'))

    def test_same_seed_same_data(self):
        a = simulate_linear_regression(20, 1.0, 0.0, 1.0, rng=5)
        b = simulate_linear_regression(20, 1.0, 0.0, 1.0, rng=5)
        np.testing.assert_array_equal(a.values, b.values)

    def test_rejects_tiny_n(self):
        with pytest.raises(ValidationError):
            simulate_linear_regression(1, 1.0, 0.0, 1.0)


class TestTransitionMatrices:
    """Test stable transition matrix construction."""

    @pytest.mark.parametrize("dim", [1, 2, 3, 6])
    @pytest.mark.parametrize("max_eig", [0.3, 0.9, 0.99])
    def test_rescaled_spectral_radius(self, dim, max_eig, rng):
        phi = make_stable_transition_matrix(dim, max_eigenvalue=max_eig, rng=rng)
        assert phi.shape == (dim, dim)
        assert spectral_radius(phi) == pytest.approx(max_eig)
        assert is_stable(phi)

    def test_rejects_unit_eigenvalue_target(self):
        with pytest.raises(ValidationError):
            make_stable_transition_matrix(3, max_eigenvalue=1.0)

    def test_random_covariance_is_spd(self, rng):
        cov = random_covariance(4, scale=2.0, rng=rng)
        np.testing.assert_allclose(cov, cov.T)
        assert np.all(np.linalg.eigvalsh(cov) > 0)
        np.testing.assert_allclose(np.diag(cov), 4.0)


class TestVARSimulation:
    """Test vector autoregressive simulation."""

    @pytest.mark.parametrize("seed", range(5))
    @pytest.mark.parametrize("noise_scale", [1e-3, 1.0, 1e3])
    def test_stable_process_stays_finite(self, seed, noise_scale):
        """Stable Phi gives a finite series for 1000+ steps at any noise scale."""
        rng = np.random.default_rng(seed)
        dim = 1 + seed % 4
        phi = make_stable_transition_matrix(dim, max_eigenvalue=0.99, rng=rng)
        cov = random_covariance(dim, scale=noise_scale, rng=rng)
        ts = simulate_var(phi, 1500, noise_cov=cov, rng=rng)
        assert ts.values.shape == (1500, dim)
        assert np.all(np.isfinite(ts.values))

    def test_recursion(self):
        """With zero noise the series follows Phi exactly."""
        phi = np.array([[0.5, 0.1], [0.0, 0.8]])
        ts = simulate_var(phi, 5, noise_sd=0.0, initial=[1.0, 2.0], rng=0)
        for t in range(1, 5):
            np.testing.assert_allclose(ts.values[t], phi @ ts.values[t - 1])

    def test_unstable_rejected_by_default(self):
        with pytest.raises(ValidationError, match="not stable"):
            simulate_var(1.5 * np.eye(2), 100)

    def test_unstable_divergence_reported(self):
        """Caller-owned stability: divergence surfaces as a numerical error."""
        with pytest.raises(NumericalInstabilityError):
            simulate_var(1.5 * np.eye(2), 5000, check_stability=False, rng=0)

    def test_correlated_noise_covariance(self):
        cov = np.array([[1.0, 0.8], [0.8, 1.0]])
        ts = simulate_var(np.zeros((2, 2)), 20000, noise_cov=cov, rng=1)
        est = np.cov(ts.values[1:].T)
        np.testing.assert_allclose(est, cov, atol=0.05)

    def test_bad_covariance(self):
        with pytest.raises(ValidationError):
            simulate_var(np.zeros((2, 2)), 10, noise_cov=np.array([[1.0, 2.0], [2.0, 1.0]]))
        with pytest.raises(ValidationError):
            simulate_var(np.zeros((2, 2)), 10, noise_cov=np.eye(3))

    def test_non_square_phi(self):
        with pytest.raises(ValidationError):
            simulate_var(np.zeros((2, 3)), 10)


class TestODEIntegration:
    """Test RK4 and adaptive integration of growth dynamics."""

    def test_rk4_matches_logistic_solution(self):
        t = np.linspace(0, 20, 41)
        sol = rk4_integrate(logistic_growth, [0.5], t, (0.5, 10.0), substeps=10)
        np.testing.assert_allclose(sol[:, 0], logistic_exact(t, 0.5, 10.0, 0.5), atol=1e-5)

    def test_adaptive_matches_logistic_solution(self):
        t = np.linspace(0, 20, 41)
        sol = adaptive_integrate(logistic_growth, [0.5, 2.0], t, (0.5, 10.0),
                                 OdeTolerances(rtol=1e-9, atol=1e-9))
        np.testing.assert_allclose(sol[:, 0], logistic_exact(t, 0.5, 10.0, 0.5), atol=1e-6)
        np.testing.assert_allclose(sol[:, 1], logistic_exact(t, 0.5, 10.0, 2.0), atol=1e-6)

    def test_step_budget_exhaustion(self):
        t = np.linspace(0, 100, 3)
        with pytest.raises(NumericalInstabilityError, match="within 1 steps"):
            adaptive_integrate(logistic_growth, [0.5], t, (0.5, 10.0),
                               OdeTolerances(rtol=1e-10, atol=1e-10, max_num_steps=1))

    def test_rk4_blowup_detected(self):
        def explosive(t, y, theta):
            return y ** 2
        with pytest.raises(NumericalInstabilityError):
            rk4_integrate(explosive, [1.0], np.linspace(0, 5, 11), ())

    def test_forcing_perturbs_growth(self):
        t = np.linspace(0, 10, 21)
        plain = integrate(logistic_growth, [0.5], t, (0.8, 5.0))
        forced = integrate(logistic_growth, [0.5], t, (0.8, 5.0, 0.5, 4.0))
        assert not np.allclose(plain, forced)
        # Forcing only modulates the rate, so both approach capacity
        assert forced[-1, 0] == pytest.approx(plain[-1, 0], rel=0.05)

    def test_unknown_method(self):
        with pytest.raises(ValidationError):
            integrate(logistic_growth, [0.5], [0.0, 1.0], (1.0, 2.0), method='euler')


class TestODEGenerator:
    """Test ODE-driven series generation."""

    def test_observe_subset_with_noise(self, rng):
        t = np.linspace(0, 10, 101)
        obs, traj = simulate_ode(logistic_growth, [0.2], t, (1.0, 4.0), noise_sd=0.0,
                                 observe_at=range(0, 101, 10), rng=rng)
        assert traj.shape == (101, 1)
        assert obs.values.shape == (11, 1)
        np.testing.assert_allclose(obs.times, t[::10])
        np.testing.assert_allclose(obs.values, traj[::10])

    def test_observe_at_out_of_range(self):
        with pytest.raises(ValidationError):
            simulate_ode(logistic_growth, [0.2], [0.0, 1.0], (1.0, 4.0), 0.1, observe_at=[0, 5])

    def test_growth_units_become_columns(self, rng):
        obs, traj = simulate_growth(3, np.arange(0.0, 15.0), growth_rate=0.6, capacity=2.0,
                                    initial=[0.1, 0.2, 0.3], noise_sd=0.01,
                                    forcing_amplitude=0.3, forcing_period=5.0, rng=rng)
        assert obs.values.shape == (15, 3)
        assert obs.names == ('unit0', 'unit1', 'unit2')
        assert np.all(traj[-1] > 1.8)

    def test_forcing_requires_period(self):
        with pytest.raises(ValidationError):
            simulate_growth(1, [0.0, 1.0], 0.5, 1.0, 0.1, 0.01, forcing_amplitude=0.2)
