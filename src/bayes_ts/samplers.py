"""
bayes_ts — Sampling Engines
===========================
The external sampler is an opaque capability:

    sampler.fit(engine_input, config) -> PosteriorSampleSet

Implementations:
    PyMCSampler      builds a PyMC model from the EngineInput and runs MCMC
                     (NUTS by default; gradient-free DEMetropolisZ for the
                     ODE likelihood, whose solver has no gradient)
    ConjugateSampler exact posterior draws for regression and VAR kinds
                     under the Jeffreys prior; fast enough for repeated
                     simulate-and-refit studies

Conjugate posteriors (flat prior on coefficients, p(Σ) ∝ |Σ|^-(D+1)/2):
    regression:  σ² | y ~ Scaled-Inv-χ²(n-k, s²),  β | σ², y ~ N(β̂, σ²(XᵀX)⁻¹)
    VAR (full):  Σ | Y ~ Inv-Wishart(n-D, S),      B | Σ, Y ~ MN(B̂, (XᵀX)⁻¹, Σ)
    VAR (diag):  per-equation regression
ConjugateSampler ignores the declared priors; use it where the data
dominate (long series, weak priors).
"""

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
from scipy import stats

from .adapter import EngineInput
from .errors import NumericalInstabilityError, SamplerError, ValidationError
from .ode import OdeTolerances, adaptive_integrate, logistic_growth
from .posterior import PosteriorSampleSet

try:
    import pymc as pm
    import pytensor.tensor as pt
    from pytensor.graph.basic import Apply
    from pytensor.graph.op import Op
    PYMC_AVAILABLE = True
except ImportError:
    PYMC_AVAILABLE = False
    pm = None
    pt = None
    Op = object


# ═══════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════

@dataclass
class BayesianConfig:
    """Configuration for Bayesian MCMC inference."""
    n_chains: int = 4              # Number of independent chains
    n_draws: int = 2000            # Samples per chain (post-warm-up)
    n_tune: int = 1000             # Warm-up / tuning steps
    target_accept: float = 0.95    # Target acceptance rate (NUTS)
    sampler: str = 'NUTS'          # 'NUTS', 'Metropolis', 'Slice', 'DEMetropolisZ', 'auto'

    # Computational
    cores: int = 4                 # Parallel processes (engine-side, one per chain)
    progressbar: bool = True
    random_seed: Optional[int] = 42
    timeout_s: Optional[float] = None  # Wall-clock budget for one fit

    # Diagnostics
    check_convergence: bool = True
    rhat_threshold: float = 1.01
    min_ess: float = 100.0
    max_divergences: int = 0
    credible_interval: float = 0.95

    verbose: bool = True

    _SAMPLERS = ('NUTS', 'Metropolis', 'Slice', 'DEMetropolisZ', 'auto')

    def __post_init__(self):
        if self.n_chains < 1 or self.n_draws < 1 or self.n_tune < 0:
            raise ValidationError(
                f"Need n_chains >= 1, n_draws >= 1, n_tune >= 0; got "
                f"{self.n_chains}, {self.n_draws}, {self.n_tune}")
        if not 0.0 < self.target_accept < 1.0:
            raise ValidationError(f"target_accept must lie in (0, 1), got {self.target_accept}")
        if self.sampler not in self._SAMPLERS:
            raise ValidationError(
                f"Unknown sampler '{self.sampler}'. Valid: {list(self._SAMPLERS)}")
        if self.timeout_s is not None and not self.timeout_s > 0:
            raise ValidationError(f"timeout_s must be > 0, got {self.timeout_s}")
        if not 0.0 < self.credible_interval < 1.0:
            raise ValidationError(
                f"credible_interval must lie in (0, 1), got {self.credible_interval}")

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, values: Dict) -> 'BayesianConfig':
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValidationError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**values)

    @classmethod
    def from_json(cls, filepath: Union[str, Path]) -> 'BayesianConfig':
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Config not found at {filepath}")
        with open(filepath) as f:
            return cls.from_dict(json.load(f))

    def save(self, filepath: Union[str, Path]):
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


class Sampler:
    """Interface every sampling engine implements."""

    name = 'sampler'

    def fit(self, engine_input: EngineInput,
            config: Optional[BayesianConfig] = None) -> PosteriorSampleSet:
        raise NotImplementedError


# ═══════════════════════════════════════════════════════════════
# Exact conjugate sampler
# ═══════════════════════════════════════════════════════════════

def _ols(X: np.ndarray, Y: np.ndarray):
    """Least-squares fit plus the (XᵀX)⁻¹ Cholesky factor."""
    XtX = X.T @ X
    try:
        np.linalg.cholesky(XtX)
    except np.linalg.LinAlgError as e:
        raise SamplerError("Design matrix is rank deficient", diagnostic='XtX') from e
    B = np.linalg.solve(XtX, X.T @ Y)
    XtX_inv = np.linalg.inv(XtX)
    return B, XtX_inv, np.linalg.cholesky(XtX_inv)


class ConjugateSampler(Sampler):
    """Exact, independent posterior draws for linear-Gaussian kinds."""

    name = 'conjugate'
    SUPPORTED = ('linear_regression', 'var_independent', 'var_full_covariance')

    def fit(self, engine_input, config=None):
        config = config or BayesianConfig()
        if engine_input.kind not in self.SUPPORTED:
            raise SamplerError(
                f"ConjugateSampler cannot fit '{engine_input.kind}' models; "
                f"use PyMCSampler", diagnostic='unsupported_kind')

        seeds = np.random.SeedSequence(config.random_seed).spawn(config.n_chains)
        per_chain = []
        for seed in seeds:
            rng = np.random.default_rng(seed)
            if engine_input.kind == 'linear_regression':
                per_chain.append(self._regression(engine_input.data, config.n_draws, rng))
            elif engine_input.kind == 'var_independent':
                per_chain.append(self._var_diagonal(engine_input.data, config.n_draws, rng))
            else:
                per_chain.append(self._var_full(engine_input.data, config.n_draws, rng))

        draws = {k: np.stack([c[k] for c in per_chain]) for k in per_chain[0]}
        if config.verbose:
            print(f"[Sampler] conjugate: {config.n_chains} chains x {config.n_draws} exact draws")
        return PosteriorSampleSet(draws, kind=engine_input.kind)

    @staticmethod
    def _regression(data, n_draws, rng):
        x, y = np.asarray(data['x']), np.asarray(data['y'])
        X = np.column_stack([np.ones_like(x), x])
        dof = len(y) - X.shape[1]
        if dof < 1:
            raise SamplerError(f"Regression needs more than {X.shape[1]} observations",
                               diagnostic='degrees_of_freedom')
        beta_hat, _, L = _ols(X, y)
        s2 = float(np.sum((y - X @ beta_hat) ** 2)) / dof

        sigma2 = dof * s2 / rng.chisquare(dof, size=n_draws)
        z = rng.standard_normal((n_draws, X.shape[1]))
        beta = beta_hat + np.sqrt(sigma2)[:, None] * (z @ L.T)
        return {'intercept': beta[:, 0], 'slope': beta[:, 1], 'sigma': np.sqrt(sigma2)}

    @staticmethod
    def _lagged(data):
        y = np.asarray(data['y'])
        X, Y = y[:-1], y[1:]
        D = y.shape[1]
        dof = len(Y) - D
        if dof < D:
            raise SamplerError(
                f"VAR with D={D} needs at least {2 * D + 1} observations, got {len(y)}",
                diagnostic='degrees_of_freedom')
        return X, Y, D, dof

    def _var_diagonal(self, data, n_draws, rng):
        X, Y, D, dof = self._lagged(data)
        B, _, L = _ols(X, Y)                       # Y ≈ X·B, Phi = Bᵀ
        resid = Y - X @ B
        rss = np.sum(resid ** 2, axis=0)            # [D]

        sigma2 = rss[None, :] / rng.chisquare(dof, size=(n_draws, D))
        z = rng.standard_normal((n_draws, D, D))    # [draw, regressor, equation]
        B_draws = B[None] + np.einsum('ik,nkj->nij', L, z) * np.sqrt(sigma2)[:, None, :]
        return {'Phi': np.transpose(B_draws, (0, 2, 1)), 'sigma': np.sqrt(sigma2)}

    def _var_full(self, data, n_draws, rng):
        X, Y, D, dof = self._lagged(data)
        B, _, L = _ols(X, Y)
        resid = Y - X @ B
        S = resid.T @ resid

        Sigma = stats.invwishart(df=dof, scale=S).rvs(size=n_draws, random_state=rng)
        Sigma = np.reshape(Sigma, (n_draws, D, D))
        chol = np.linalg.cholesky(Sigma)
        z = rng.standard_normal((n_draws, D, D))
        B_draws = B[None] + np.einsum('ik,nkl,njl->nij', L, z, chol)
        sd = np.sqrt(np.einsum('nii->ni', Sigma))
        Omega = Sigma / (sd[:, :, None] * sd[:, None, :])
        return {'Phi': np.transpose(B_draws, (0, 2, 1)), 'sigma': sd,
                'Omega': Omega, 'Sigma': Sigma}


# ═══════════════════════════════════════════════════════════════
# PyMC engine
# ═══════════════════════════════════════════════════════════════

_PM_DISTRIBUTIONS = {
    'normal': 'Normal',
    'halfnormal': 'HalfNormal',
    'lognormal': 'LogNormal',
    'uniform': 'Uniform',
    'gamma': 'Gamma',
    'beta': 'Beta',
}


def _needs_truncation(prior, positive: bool) -> bool:
    return prior.bounds is not None or (positive and prior.distribution == 'normal')


def _prior_rv(name, prior, shape=(), positive=False, sigma=None):
    """Named PyMC random variable for a PriorSpec."""
    cls = getattr(pm, _PM_DISTRIBUTIONS[prior.distribution])
    kwargs = dict(prior.params)
    if sigma is not None:
        kwargs['sigma'] = sigma
    if _needs_truncation(prior, positive):
        lower, upper = prior.support(positive)
        return pm.Truncated(name, cls.dist(**kwargs, shape=shape),
                            lower=lower, upper=upper, shape=shape)
    return cls(name, **kwargs, shape=shape)


def _prior_dist(prior, shape=(), positive=False):
    """Unnamed PyMC distribution for a PriorSpec (e.g. LKJ sd_dist)."""
    cls = getattr(pm, _PM_DISTRIBUTIONS[prior.distribution])
    base = cls.dist(**prior.params, shape=shape)
    if _needs_truncation(prior, positive):
        lower, upper = prior.support(positive)
        return pm.Truncated.dist(base, lower=lower, upper=upper, shape=shape)
    return base


class GrowthODEOp(Op):
    """Black-box logistic-growth solution: theta -> [N, U] trajectory.

    theta = (growth_rate, capacity[, forcing_amplitude], y0_1 .. y0_U)
    A failed integration yields NaN, which the sampler rejects.
    """

    def __init__(self, ts, n_units: int, forcing_period: float,
                 tolerances: OdeTolerances):
        self.ts = np.asarray(ts, dtype=np.float64)
        self.n_units = n_units
        self.forcing_period = forcing_period
        self.tolerances = tolerances

    def make_node(self, theta):
        theta = pt.as_tensor_variable(theta)
        return Apply(self, [theta], [pt.dmatrix()])

    def perform(self, node, inputs, outputs):
        (theta,) = inputs
        r, K = theta[0], theta[1]
        params = (r, K)
        if self.forcing_period:
            params = (r, K, theta[2], self.forcing_period)
        y0 = theta[-self.n_units:]
        try:
            sol = adaptive_integrate(logistic_growth, y0, self.ts, params, self.tolerances)
        except NumericalInstabilityError:
            sol = np.full((len(self.ts), self.n_units), np.nan)
        outputs[0][0] = np.asarray(sol, dtype=np.float64)


class PyMCSampler(Sampler):
    """MCMC via PyMC for every model kind."""

    name = 'pymc'

    def __init__(self):
        if not PYMC_AVAILABLE:
            raise ImportError("PyMC required. Install with: pip install 'bayes-ts[bayesian]'")
        self.model = None

    # ── model construction ───────────────────────────────────────

    def build_model(self, engine_input: EngineInput) -> 'pm.Model':
        """Translate an EngineInput into a PyMC model."""
        builders = {
            'linear_regression': self._build_regression,
            'var_independent': self._build_var,
            'var_full_covariance': self._build_var,
            'var_structured': self._build_var,
            'ode_growth': self._build_ode,
        }
        if engine_input.kind not in builders:
            raise SamplerError(f"No PyMC model for kind '{engine_input.kind}'",
                               diagnostic='unsupported_kind')
        try:
            with pm.Model() as model:
                builders[engine_input.kind](engine_input)
        except SamplerError:
            raise
        except Exception as e:
            raise SamplerError(f"Failed to build PyMC model: {e}",
                               diagnostic='model_build') from e
        return model

    @staticmethod
    def _rv(engine_input, name, sigma=None):
        decl = engine_input.declaration(name)
        return _prior_rv(name, engine_input.prior(name), decl.shape, decl.positive, sigma)

    def _build_regression(self, ei):
        x = np.asarray(ei.data['x'])
        y = np.asarray(ei.data['y'])
        intercept = self._rv(ei, 'intercept')
        slope = self._rv(ei, 'slope')
        sigma = self._rv(ei, 'sigma')
        pm.Normal('y_obs', mu=intercept + slope * x, sigma=sigma, observed=y)

    def _build_var(self, ei):
        y = np.asarray(ei.data['y'])
        D = int(ei.data['D'])
        phi_sd = np.asarray(ei.data['phi_prior_sd']) if 'phi_prior_sd' in ei.data else None
        Phi = self._rv(ei, 'Phi', sigma=phi_sd)
        mu = pt.dot(y[:-1], Phi.T)

        if 'Omega' in ei.parameter_names:
            sd_decl = ei.declaration('sigma')
            sd_dist = _prior_dist(ei.prior('sigma'), sd_decl.shape, sd_decl.positive)
            chol, corr, stds = pm.LKJCholeskyCov(
                'chol_cov', n=D, eta=ei.prior('Omega').params['eta'],
                sd_dist=sd_dist, compute_corr=True)
            pm.Deterministic('sigma', stds)
            pm.Deterministic('Omega', corr)
            pm.Deterministic('Sigma', pt.dot(chol, chol.T))
            pm.MvNormal('y_obs', mu=mu, chol=chol, observed=y[1:])
        else:
            sigma = self._rv(ei, 'sigma')
            pm.Normal('y_obs', mu=mu, sigma=sigma, observed=y[1:])

    def _build_ode(self, ei):
        y = np.asarray(ei.data['y'])
        U = int(ei.data['U'])
        period = float(ei.data['forcing_period'])
        tolerances = OdeTolerances(rtol=ei.data['rtol'], atol=ei.data['atol'],
                                   max_num_steps=ei.data['max_num_steps'])

        rate = self._rv(ei, 'growth_rate')
        capacity = self._rv(ei, 'capacity')
        theta = [pt.atleast_1d(rate), pt.atleast_1d(capacity)]
        if period > 0:
            theta.append(pt.atleast_1d(self._rv(ei, 'forcing_amplitude')))
        y0 = self._rv(ei, 'y0')
        theta.append(y0)
        sigma = self._rv(ei, 'sigma')

        op = GrowthODEOp(ei.data['ts'], U, period, tolerances)
        mu = pm.Deterministic('mu', op(pt.concatenate(theta)))
        pm.Normal('y_obs', mu=mu, sigma=sigma, observed=y)

    # ── sampling ─────────────────────────────────────────────────

    def _step(self, kind: str, config: BayesianConfig):
        choice = config.sampler
        if kind == 'ode_growth' and choice == 'NUTS':
            if config.verbose:
                print("[Sampler] ODE likelihood has no gradient; using DEMetropolisZ")
            choice = 'DEMetropolisZ'
        if choice == 'NUTS':
            return pm.NUTS(target_accept=config.target_accept)
        elif choice == 'Metropolis':
            return pm.Metropolis()
        elif choice == 'Slice':
            return pm.Slice()
        elif choice == 'DEMetropolisZ':
            return pm.DEMetropolisZ()
        return None  # Auto-select

    def fit(self, engine_input, config=None):
        config = config or BayesianConfig()
        self.model = self.build_model(engine_input)

        if config.verbose:
            print(f"[Sampler] Starting MCMC sampling ({engine_input.kind})...")
            print(f"  Chains: {config.n_chains}")
            print(f"  Draws per chain: {config.n_draws}")
            print(f"  Tuning steps: {config.n_tune}")

        with self.model:
            step = self._step(engine_input.kind, config)
            try:
                idata = pm.sample(
                    draws=config.n_draws,
                    tune=config.n_tune,
                    chains=config.n_chains,
                    cores=min(config.cores, config.n_chains),
                    step=step,
                    progressbar=config.progressbar,
                    random_seed=config.random_seed,
                    return_inferencedata=True,
                    compute_convergence_checks=False,
                )
            except Exception as e:
                raise SamplerError(f"PyMC sampling failed: {e}",
                                   diagnostic='sampling') from e

        var_names = list(engine_input.parameter_names)
        if 'Omega' in var_names:
            var_names.append('Sigma')
        samples = PosteriorSampleSet.from_inference_data(
            idata, var_names=var_names, kind=engine_input.kind)

        if config.verbose:
            print(f"[Sampler] Sampling complete! Divergences per chain: "
                  f"{samples.divergences().tolist()}")
        return samples
