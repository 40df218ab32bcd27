"""
Unit tests for posterior sample sets and convergence summarization
"""

import numpy as np
import pytest

from bayes_ts.errors import ConvergenceError, SamplerError, ValidationError
from bayes_ts.posterior import PosteriorSampleSet
from bayes_ts.summary import summarize


def well_mixed(rng, n_chains=4, n_draws=2000, shape=()):
    return rng.normal(size=(n_chains, n_draws) + shape)


class TestPosteriorSampleSet:
    """Test the draw container."""

    def test_dimensions(self, rng):
        s = PosteriorSampleSet({'a': well_mixed(rng), 'Phi': well_mixed(rng, shape=(2, 2))})
        assert s.n_chains == 4 and s.n_draws == 2000
        assert s.shape('Phi') == (2, 2)
        assert s.flat('Phi').shape == (8000, 2, 2)
        assert 'a' in s and 'b' not in s

    def test_mismatched_draws(self, rng):
        with pytest.raises(ValidationError):
            PosteriorSampleSet({'a': rng.normal(size=(4, 100)), 'b': rng.normal(size=(4, 99))})

    def test_read_only(self, rng):
        s = PosteriorSampleSet({'a': well_mixed(rng)})
        with pytest.raises(ValueError):
            s.get('a')[0, 0] = 1.0

    def test_chain_view(self, rng):
        draws = well_mixed(rng, n_draws=50)
        s = PosteriorSampleSet({'a': draws})
        np.testing.assert_array_equal(s.chain(-1).get('a')[0], draws[3])
        assert s.chain(1).n_chains == 1
        with pytest.raises(IndexError):
            s.chain(4)

    def test_divergences(self, rng):
        div = np.zeros((2, 100))
        div[1, :3] = 1
        s = PosteriorSampleSet({'a': well_mixed(rng, 2, 100)}, {'diverging': div})
        np.testing.assert_array_equal(s.divergences(), [0, 3])
        assert PosteriorSampleSet({'a': well_mixed(rng, 2, 100)}).divergences().tolist() == [0, 0]

    def test_inference_data_round_trip(self, rng):
        draws = {'a': well_mixed(rng, 2, 100), 'Phi': well_mixed(rng, 2, 100, (2, 2))}
        s = PosteriorSampleSet(draws, {'diverging': np.zeros((2, 100))})
        back = PosteriorSampleSet.from_inference_data(s.to_inference_data())
        assert sorted(back.names) == ['Phi', 'a']
        np.testing.assert_allclose(back.get('Phi'), draws['Phi'])
        assert back.divergences().tolist() == [0, 0]


class TestSummarize:
    """Test pooled summaries and chain flagging."""

    def test_well_mixed_converges(self, rng):
        s = PosteriorSampleSet({'mu': 1.0 + well_mixed(rng), 'tau': well_mixed(rng, shape=(2,))})
        summary = summarize(s)
        assert summary.converged
        assert summary.flagged_chains == []
        p = summary.parameters['mu']
        assert p.mean == pytest.approx(1.0, abs=0.05)
        assert p.ci_lower == pytest.approx(1.0 - 1.96, abs=0.15)
        assert p.ci_upper == pytest.approx(1.0 + 1.96, abs=0.15)
        assert p.rhat < 1.01
        assert p.ess_bulk > 1000
        assert len(p.chain_ess) == 4 and min(p.chain_ess) > 25
        summary.raise_for_convergence()

    def test_outlier_chain_is_flagged_not_dropped(self, rng):
        draws = well_mixed(rng)
        draws[2] += 3.0
        summary = summarize(PosteriorSampleSet({'mu': draws}))
        assert not summary.converged
        assert summary.flagged_chains == [2]
        assert any(v[2] == 'rhat' for v in summary.chains[2].violations)
        p = summary.parameters['mu']
        assert len(p.chain_means) == 4
        assert p.chain_means[2] == pytest.approx(3.0, abs=0.1)
        # Pooled estimate still includes the outlier
        assert p.mean == pytest.approx(0.75, abs=0.05)

    def test_raise_for_convergence(self, rng):
        draws = well_mixed(rng)
        draws[2] += 3.0
        summary = summarize(PosteriorSampleSet({'mu': draws}))
        with pytest.raises(ConvergenceError) as exc:
            summary.raise_for_convergence()
        assert isinstance(exc.value, SamplerError)
        assert "chain 2" in str(exc.value)
        assert exc.value.violations == summary.violations

    def test_disagreeing_chains_pooled_violation(self, rng):
        """Without a single outlier the failure is reported for all chains."""
        draws = well_mixed(rng, n_chains=2)
        draws[1] += 3.0
        summary = summarize(PosteriorSampleSet({'mu': draws}))
        assert not summary.converged
        assert summary.flagged_chains == []
        assert any(v[0] is None and v[2] == 'rhat' for v in summary.pooled_violations)

    def test_divergences_flag_chain(self, rng):
        div = np.zeros((4, 2000))
        div[3, :5] = 1
        s = PosteriorSampleSet({'mu': well_mixed(rng)}, {'diverging': div})
        summary = summarize(s)
        assert summary.flagged_chains == [3]
        assert summary.chains[3].n_divergent == 5
        assert summarize(s, max_divergences=5).converged

    def test_low_ess(self, rng):
        walk = np.cumsum(well_mixed(rng, n_draws=500), axis=1)
        summary = summarize(PosteriorSampleSet({'mu': walk}))
        assert any(v[2] == 'ess' for v in summary.pooled_violations)

    def test_sticky_chain_flagged_for_low_ess(self, rng):
        draws = well_mixed(rng)
        draws[1] = np.cumsum(0.05 * rng.normal(size=2000))
        draws[1] -= draws[1].mean()
        summary = summarize(PosteriorSampleSet({'mu': draws}))
        assert summary.flagged_chains == [1]
        assert any(v[2] == 'ess' for v in summary.chains[1].violations)
        p = summary.parameters['mu']
        assert p.chain_ess[1] < summary.min_ess / 4
        assert all(e > summary.min_ess / 4 for i, e in enumerate(p.chain_ess) if i != 1)

    def test_matrix_parameters(self, rng):
        base = np.array([[0.5, 0.1], [-0.2, 0.3]])
        draws = base + 0.01 * well_mixed(rng, shape=(2, 2))
        summary = summarize(PosteriorSampleSet({'Phi': draws}))
        assert set(summary.parameters) == {'Phi[0, 0]', 'Phi[0, 1]', 'Phi[1, 0]', 'Phi[1, 1]'}
        np.testing.assert_allclose(summary.mean('Phi'), base, atol=0.005)
        lo, hi = summary.credible_bounds('Phi')
        assert lo.shape == (2, 2) and np.all(lo < base) and np.all(base < hi)
        covered = summary.contains({'Phi': base})
        assert all(covered.values())
        assert not summary.contains({'Phi': base + 1.0})['Phi[1, 0]']

    def test_hdi_interval(self, rng):
        s = PosteriorSampleSet({'rate': rng.exponential(size=(4, 2000))})
        eti = summarize(s, interval='eti').parameters['rate']
        hdi = summarize(s, interval='hdi').parameters['rate']
        assert hdi.ci_lower < eti.ci_lower
        assert (hdi.ci_upper - hdi.ci_lower) < (eti.ci_upper - eti.ci_lower)

    def test_constant_parameter(self):
        s = PosteriorSampleSet({'c': np.full((4, 100), 2.0)})
        p = summarize(s, min_ess=10).parameters['c']
        assert p.rhat is None
        assert p.sd == 0.0

    def test_frames(self, rng):
        summary = summarize(PosteriorSampleSet({'mu': well_mixed(rng)}), credible_interval=0.9)
        df = summary.to_frame()
        assert list(df.columns) == ['mean', 'sd', 'eti_5.0%', 'eti_95.0%',
                                    'r_hat', 'ess_bulk', 'ess_tail']
        assert list(summary.chains_frame().index) == [0, 1, 2, 3]

    def test_invalid_arguments(self, rng):
        s = PosteriorSampleSet({'mu': well_mixed(rng, n_draws=10)})
        with pytest.raises(ValidationError):
            summarize(s, credible_interval=1.5)
        with pytest.raises(ValidationError):
            summarize(s, interval='mode')
