"""
bayes_ts — Posterior Summarization
==================================
Per-parameter mean, standard deviation, credible intervals and convergence
diagnostics for a PosteriorSampleSet.

Two stages:
    1. Per chain, independently: mean, sd, split-R̂ within the chain,
       bulk ESS (against min_ess / n_chains), divergent transitions.
    2. Explicit pooling: pooled mean / sd / credible interval, rank-normalised
       R̂ across chains and bulk / tail ESS (ArviZ).

Chains that fail a check are flagged in the output, never dropped. When
R̂ across chains is high and leaving out a single chain brings it back
under the threshold, that chain is named as the outlier.

Usage:
    summary = summarize(samples, credible_interval=0.95)
    print(summary.to_frame())
    if not summary.converged:
        print(summary.flagged_chains)
    summary.raise_for_convergence()
"""

import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import arviz as az
import numpy as np
import pandas as pd

from .errors import ConvergenceError, ValidationError
from .posterior import PosteriorSampleSet

# Minimum draws per chain for a split-R̂ to mean anything
_MIN_SPLIT_DRAWS = 8


@dataclass
class ParameterSummary:
    """Summary of one scalar element of a parameter."""
    label: str
    parameter: str
    index: Tuple[int, ...]
    mean: float
    sd: float
    ci_lower: float
    ci_upper: float
    rhat: Optional[float]
    ess_bulk: float
    ess_tail: float
    chain_means: Tuple[float, ...]
    chain_sds: Tuple[float, ...]
    chain_split_rhat: Tuple[Optional[float], ...]
    chain_ess: Tuple[Optional[float], ...]

    def contains(self, value: float) -> bool:
        return self.ci_lower <= value <= self.ci_upper


@dataclass
class ChainDiagnostics:
    """Convergence verdict for one chain."""
    chain: int
    n_divergent: int
    violations: List[Tuple] = field(default_factory=list)

    @property
    def flagged(self) -> bool:
        return bool(self.violations)

    @property
    def reasons(self) -> List[str]:
        return [f"{param} {diag}={value:.4g} (threshold {thr:.4g})"
                for _, param, diag, value, thr in self.violations]


@dataclass
class PosteriorSummary:
    """Output of `summarize`."""
    parameters: Dict[str, ParameterSummary]
    chains: List[ChainDiagnostics]
    pooled_violations: List[Tuple]
    credible_interval: float
    interval: str
    rhat_threshold: float
    min_ess: float
    max_divergences: int

    @property
    def violations(self) -> List[Tuple]:
        out = []
        for c in self.chains:
            out.extend(c.violations)
        return out + list(self.pooled_violations)

    @property
    def converged(self) -> bool:
        return not self.violations

    @property
    def flagged_chains(self) -> List[int]:
        return [c.chain for c in self.chains if c.flagged]

    def elements(self, parameter: str) -> List[ParameterSummary]:
        out = [p for p in self.parameters.values() if p.parameter == parameter]
        if not out:
            raise KeyError(f"No summary for parameter '{parameter}'")
        return out

    def _assemble(self, parameter: str, attr: str) -> np.ndarray:
        elems = self.elements(parameter)
        if len(elems) == 1 and elems[0].index == ():
            return np.asarray(getattr(elems[0], attr))
        shape = tuple(max(e.index[k] for e in elems) + 1 for k in range(len(elems[0].index)))
        out = np.empty(shape)
        for e in elems:
            out[e.index] = getattr(e, attr)
        return out

    def mean(self, parameter: str) -> np.ndarray:
        """Posterior mean reassembled into the parameter's shape."""
        return self._assemble(parameter, 'mean')

    def sd(self, parameter: str) -> np.ndarray:
        return self._assemble(parameter, 'sd')

    def credible_bounds(self, parameter: str) -> Tuple[np.ndarray, np.ndarray]:
        return self._assemble(parameter, 'ci_lower'), self._assemble(parameter, 'ci_upper')

    def contains(self, truth: Dict[str, np.ndarray]) -> Dict[str, bool]:
        """Element label -> whether the credible interval covers the true value."""
        out = {}
        for parameter, value in truth.items():
            value = np.asarray(value, dtype=np.float64)
            for e in self.elements(parameter):
                out[e.label] = e.contains(float(value[e.index]) if e.index else float(value))
        return out

    def raise_for_convergence(self):
        """Raise ConvergenceError listing every violated threshold."""
        if not self.converged:
            raise ConvergenceError(self.violations)

    def to_frame(self) -> pd.DataFrame:
        lo = f"{self.interval}_{(1 - self.credible_interval) / 2:.1%}"
        hi = f"{self.interval}_{(1 + self.credible_interval) / 2:.1%}"
        rows = {
            p.label: {
                'mean': p.mean, 'sd': p.sd, lo: p.ci_lower, hi: p.ci_upper,
                'r_hat': np.nan if p.rhat is None else p.rhat,
                'ess_bulk': p.ess_bulk, 'ess_tail': p.ess_tail,
            }
            for p in self.parameters.values()
        }
        return pd.DataFrame.from_dict(rows, orient='index')

    def chains_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{'chain': c.chain, 'n_divergent': c.n_divergent, 'flagged': c.flagged,
              'reasons': '; '.join(c.reasons)} for c in self.chains]
        ).set_index('chain')


# ═══════════════════════════════════════════════════════════════
# Diagnostics helpers
# ═══════════════════════════════════════════════════════════════

def _finite_or_none(value) -> Optional[float]:
    value = float(value)
    return value if np.isfinite(value) else None


def _rhat(x: np.ndarray) -> Optional[float]:
    """Rank-normalised R̂ for a (chain, draw) array; None when undefined."""
    if x.shape[0] < 2 or x.shape[1] < 4 or np.ptp(x) == 0:
        return None
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        return _finite_or_none(az.rhat(x, method='rank'))


def _split_rhat(chain_draws: np.ndarray) -> Optional[float]:
    """Within-chain stationarity: R̂ between the two halves of one chain."""
    n = len(chain_draws) // 2
    if n * 2 < _MIN_SPLIT_DRAWS:
        return None
    return _rhat(np.stack([chain_draws[:n], chain_draws[n:2 * n]]))


def _ess(x: np.ndarray, method: str) -> float:
    if np.ptp(x) == 0:
        return float(x.size)
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        value = float(az.ess(x, method=method))
    return value if np.isfinite(value) else 0.0


def _interval(flat: np.ndarray, prob: float, interval: str) -> Tuple[float, float]:
    if interval == 'eti':
        lo, hi = np.quantile(flat, [(1 - prob) / 2, (1 + prob) / 2])
    else:
        lo, hi = az.hdi(flat, hdi_prob=prob)
    return float(lo), float(hi)


def _label(name: str, index: Tuple[int, ...]) -> str:
    return name if not index else f"{name}[{', '.join(str(i) for i in index)}]"


# ═══════════════════════════════════════════════════════════════
# Summarization
# ═══════════════════════════════════════════════════════════════

def summarize(samples: PosteriorSampleSet,
              credible_interval: float = 0.95,
              interval: str = 'eti',
              rhat_threshold: float = 1.01,
              min_ess: float = 100.0,
              max_divergences: int = 0,
              var_names: Optional[List[str]] = None) -> PosteriorSummary:
    """Summarize posterior draws and flag chains that fail convergence checks.

    Args:
        samples: posterior draws grouped by chain
        credible_interval: probability mass of the reported interval
        interval: 'eti' (equal-tailed) or 'hdi' (highest density)
        rhat_threshold: R̂ above this is a violation
        min_ess: pooled bulk/tail ESS below this is a violation; each chain
            must reach min_ess / n_chains on its own
        max_divergences: divergent transitions allowed per chain
        var_names: parameters to summarize (default: all)

    Returns:
        PosteriorSummary
    """
    if not 0.0 < credible_interval < 1.0:
        raise ValidationError(f"credible_interval must lie in (0, 1), got {credible_interval}")
    if interval not in ('eti', 'hdi'):
        raise ValidationError(f"Unknown interval type: {interval}")

    names = var_names or samples.names
    n_chains = samples.n_chains
    divergent = samples.divergences()
    chains = [ChainDiagnostics(chain=c, n_divergent=int(divergent[c])) for c in range(n_chains)]
    pooled_violations = []

    for c in chains:
        if c.n_divergent > max_divergences:
            c.violations.append((c.chain, 'sampler', 'divergences', c.n_divergent, max_divergences))

    parameters = {}
    for name in names:
        arr = samples.get(name)
        for index in np.ndindex(*arr.shape[2:]):
            x = arr[(slice(None), slice(None)) + index]
            label = _label(name, index)

            # Stage 1: each chain on its own
            chain_means = tuple(float(v) for v in x.mean(axis=1))
            chain_sds = tuple(float(v) for v in x.std(axis=1, ddof=1)) \
                if x.shape[1] > 1 else (0.0,) * n_chains
            chain_split = tuple(_split_rhat(x[c]) for c in range(n_chains))
            for c, value in enumerate(chain_split):
                if value is not None and value > rhat_threshold:
                    chains[c].violations.append((c, label, 'split_rhat', value, rhat_threshold))
            chain_ess = tuple(_ess(x[c][None], 'bulk') if x.shape[1] >= _MIN_SPLIT_DRAWS else None
                              for c in range(n_chains))
            chain_min_ess = min_ess / n_chains
            for c, value in enumerate(chain_ess):
                if value is not None and value < chain_min_ess:
                    chains[c].violations.append((c, label, 'ess', value, chain_min_ess))

            # Stage 2: pooling
            flat = x.ravel()
            rhat = _rhat(x)
            ess_bulk = _ess(x, 'bulk')
            ess_tail = _ess(x, 'tail')
            lo, hi = _interval(flat, credible_interval, interval)

            if rhat is not None and rhat > rhat_threshold:
                outliers = []
                if n_chains >= 3:
                    for c in range(n_chains):
                        rest = _rhat(np.delete(x, c, axis=0))
                        if rest is not None and rest <= rhat_threshold:
                            outliers.append(c)
                if len(outliers) == 1:
                    c = outliers[0]
                    chains[c].violations.append((c, label, 'rhat', rhat, rhat_threshold))
                else:
                    pooled_violations.append((None, label, 'rhat', rhat, rhat_threshold))
            if min(ess_bulk, ess_tail) < min_ess:
                pooled_violations.append(
                    (None, label, 'ess', min(ess_bulk, ess_tail), min_ess))

            parameters[label] = ParameterSummary(
                label=label, parameter=name, index=tuple(int(i) for i in index),
                mean=float(flat.mean()),
                sd=float(flat.std(ddof=1)) if flat.size > 1 else 0.0,
                ci_lower=lo, ci_upper=hi, rhat=rhat,
                ess_bulk=ess_bulk, ess_tail=ess_tail,
                chain_means=chain_means, chain_sds=chain_sds,
                chain_split_rhat=chain_split, chain_ess=chain_ess,
            )

    return PosteriorSummary(
        parameters=parameters, chains=chains, pooled_violations=pooled_violations,
        credible_interval=credible_interval, interval=interval,
        rhat_threshold=rhat_threshold, min_ess=min_ess,
        max_divergences=max_divergences,
    )
