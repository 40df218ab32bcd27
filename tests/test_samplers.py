"""
Unit tests for sampling engines and their configuration
"""

import numpy as np
import pytest

from bayes_ts.adapter import build_engine_input
from bayes_ts.errors import SamplerError, ValidationError
from bayes_ts.generators import (
    make_stable_transition_matrix, random_covariance, simulate_growth,
    simulate_linear_regression, simulate_var,
)
from bayes_ts.models import (
    FullCovarianceVAR, GrowthODEModel, IndependentNoiseVAR,
    LinearRegressionModel, StructuredVAR,
)
from bayes_ts.samplers import PYMC_AVAILABLE, BayesianConfig, ConjugateSampler


class TestBayesianConfig:
    """Test configuration validation and persistence."""

    def test_defaults(self):
        config = BayesianConfig()
        assert config.n_chains == 4
        assert config.rhat_threshold == 1.01
        assert config.timeout_s is None

    @pytest.mark.parametrize("kwargs", [
        {'n_chains': 0},
        {'target_accept': 1.0},
        {'sampler': 'HMC'},
        {'timeout_s': 0.0},
        {'credible_interval': 0.0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            BayesianConfig(**kwargs)

    def test_json_round_trip(self, tmp_path):
        config = BayesianConfig(n_chains=2, timeout_s=30.0, sampler='Slice')
        path = tmp_path / 'config.json'
        config.save(path)
        assert BayesianConfig.from_json(path) == config

    def test_unknown_keys(self):
        with pytest.raises(ValidationError, match="Unknown config keys"):
            BayesianConfig.from_dict({'n_chains': 2, 'chains': 4})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            BayesianConfig.from_json(tmp_path / 'missing.json')


class TestConjugateSampler:
    """Test exact posterior draws."""

    def test_regression_recovery(self, quiet_config):
        series = simulate_linear_regression(500, slope=1.5, intercept=2.0, noise_sd=1.25, rng=11)
        ei = build_engine_input(LinearRegressionModel(), series)
        samples = ConjugateSampler().fit(ei, quiet_config)
        assert samples.n_chains == 2 and samples.n_draws == 500
        assert samples.flat('slope').mean() == pytest.approx(1.5, abs=0.2)
        assert samples.flat('intercept').mean() == pytest.approx(2.0, abs=0.2)
        assert samples.flat('sigma').mean() == pytest.approx(1.25, abs=0.15)
        assert np.all(samples.get('sigma') > 0)

    def test_seeded_draws_repeat(self, quiet_config):
        series = simulate_linear_regression(50, 1.0, 0.0, 1.0, rng=2)
        ei = build_engine_input(LinearRegressionModel(), series)
        a = ConjugateSampler().fit(ei, quiet_config)
        b = ConjugateSampler().fit(ei, quiet_config)
        np.testing.assert_array_equal(a.get('slope'), b.get('slope'))
        assert not np.array_equal(a.get('slope')[0], a.get('slope')[1])

    def test_independent_var_recovery(self, quiet_config):
        phi = np.array([[0.6, 0.2], [-0.1, 0.4]])
        series = simulate_var(phi, 2000, noise_sd=0.5, rng=4)
        samples = ConjugateSampler().fit(build_engine_input(IndependentNoiseVAR(), series),
                                         quiet_config)
        assert samples.shape('Phi') == (2, 2)
        np.testing.assert_allclose(samples.flat('Phi').mean(axis=0), phi, atol=0.08)
        np.testing.assert_allclose(samples.flat('sigma').mean(axis=0), 0.5, atol=0.05)

    def test_full_covariance_draws(self, quiet_config):
        rng = np.random.default_rng(8)
        phi = make_stable_transition_matrix(3, 0.7, rng=rng)
        cov = random_covariance(3, scale=0.5, rng=rng)
        series = simulate_var(phi, 1000, noise_cov=cov, rng=rng)
        samples = ConjugateSampler().fit(build_engine_input(FullCovarianceVAR(), series),
                                         quiet_config)
        Sigma = samples.flat('Sigma')
        assert np.all(np.linalg.eigvalsh(Sigma) > 0)
        np.testing.assert_allclose(np.diagonal(samples.flat('Omega'), axis1=1, axis2=2), 1.0)
        np.testing.assert_allclose(Sigma.mean(axis=0), cov, atol=0.05)
        np.testing.assert_allclose(samples.flat('Phi').mean(axis=0), phi, atol=0.1)

    def test_unsupported_kinds(self, quiet_config):
        series = simulate_var(np.diag([0.5, 0.5]), 50, rng=1)
        ei = build_engine_input(StructuredVAR(mask=np.eye(2, dtype=bool)), series)
        with pytest.raises(SamplerError) as exc:
            ConjugateSampler().fit(ei, quiet_config)
        assert exc.value.diagnostic == 'unsupported_kind'

    def test_too_short_for_dimension(self, quiet_config):
        series = simulate_var(np.diag([0.5, 0.5, 0.5]), 5, rng=1)
        ei = build_engine_input(FullCovarianceVAR(), series)
        with pytest.raises(SamplerError, match="degrees_of_freedom"):
            ConjugateSampler().fit(ei, quiet_config)


@pytest.mark.skipif(not PYMC_AVAILABLE, reason="PyMC not installed")
class TestPyMCModelBuilding:
    """Test PyMC model construction per kind (no sampling)."""

    @pytest.fixture
    def sampler(self):
        from bayes_ts.samplers import PyMCSampler
        return PyMCSampler()

    def _free_names(self, model):
        return {rv.name for rv in model.free_RVs}

    def test_regression(self, sampler):
        series = simulate_linear_regression(30, 1.0, 0.0, 1.0, rng=0)
        model = sampler.build_model(build_engine_input(LinearRegressionModel(), series))
        assert {'intercept', 'slope', 'sigma'} <= self._free_names(model)

    def test_independent_var(self, sampler):
        series = simulate_var(np.diag([0.5, 0.3]), 40, rng=0)
        model = sampler.build_model(build_engine_input(IndependentNoiseVAR(), series))
        assert {'Phi', 'sigma'} <= self._free_names(model)

    def test_full_covariance_var(self, sampler):
        series = simulate_var(np.diag([0.5, 0.3]), 40, rng=0)
        model = sampler.build_model(build_engine_input(FullCovarianceVAR(), series))
        deterministics = {d.name for d in model.deterministics}
        assert {'sigma', 'Omega', 'Sigma'} <= deterministics

    def test_structured_var(self, sampler):
        series = simulate_var(np.diag([0.5, 0.3]), 40, rng=0)
        spec = StructuredVAR(mask=np.eye(2, dtype=bool), full_covariance=True)
        model = sampler.build_model(build_engine_input(spec, series))
        assert 'Phi' in self._free_names(model)

    def test_growth_ode(self, sampler):
        obs, _ = simulate_growth(2, np.arange(0.0, 10.0), growth_rate=0.5, capacity=1.0,
                                 initial=[0.1, 0.2], noise_sd=0.02, rng=0)
        model = sampler.build_model(build_engine_input(GrowthODEModel(), obs))
        assert {'growth_rate', 'capacity', 'y0', 'sigma'} <= self._free_names(model)
        assert 'mu' in {d.name for d in model.deterministics}


@pytest.mark.slow
@pytest.mark.skipif(not PYMC_AVAILABLE, reason="PyMC not installed")
class TestPyMCSampling:
    """Short MCMC runs."""

    def test_regression_sampling(self, quiet_config):
        from bayes_ts.samplers import PyMCSampler
        series = simulate_linear_regression(100, slope=1.5, intercept=2.0, noise_sd=1.25, rng=5)
        samples = PyMCSampler().fit(build_engine_input(LinearRegressionModel(), series),
                                    quiet_config)
        assert samples.n_chains == 2
        assert samples.flat('slope').mean() == pytest.approx(1.5, abs=0.5)
        assert samples.divergences().shape == (2,)
