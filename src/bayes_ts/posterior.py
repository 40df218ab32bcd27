"""
bayes_ts — Posterior Sample Set
===============================
Parameter draws grouped by independent chains, as produced by a sampler.

Layout:
    draws[name]         (chain, draw, *param_shape)
    sample_stats[name]  (chain, draw)      e.g. 'diverging'

All parameters share the same chain and draw counts. Arrays are stored
read-only; analysis code never mutates sampler output.
"""

from typing import Dict, List, Optional

import arviz as az
import numpy as np

from .errors import ValidationError


def _frozen(arr) -> np.ndarray:
    arr = np.array(arr, dtype=np.float64)
    arr.setflags(write=False)
    return arr


class PosteriorSampleSet:
    """Read-only collection of posterior draws per chain."""

    def __init__(self,
                 draws: Dict[str, np.ndarray],
                 sample_stats: Optional[Dict[str, np.ndarray]] = None,
                 kind: Optional[str] = None):
        """
        Args:
            draws: parameter name -> (chain, draw, *shape) array
            sample_stats: per-draw sampler statistics, (chain, draw) arrays
            kind: model kind the draws came from (informational)
        """
        if not draws:
            raise ValidationError("Posterior sample set needs at least one parameter")

        self._draws = {}
        dims = None
        for name, arr in draws.items():
            arr = _frozen(arr)
            if arr.ndim < 2:
                raise ValidationError(
                    f"Draws for '{name}' must be (chain, draw, ...), got shape {arr.shape}")
            if dims is None:
                dims = arr.shape[:2]
            elif arr.shape[:2] != dims:
                raise ValidationError(
                    f"Draws for '{name}' have (chain, draw) = {arr.shape[:2]}, "
                    f"expected {dims}")
            self._draws[name] = arr

        self._stats = {}
        for name, arr in (sample_stats or {}).items():
            arr = _frozen(arr)
            if arr.shape[:2] != dims:
                raise ValidationError(
                    f"Sample stat '{name}' has shape {arr.shape}, expected {dims}")
            self._stats[name] = arr

        self.n_chains, self.n_draws = dims
        self.kind = kind

    def __repr__(self):
        params = ', '.join(f"{k}{list(v.shape[2:])}" for k, v in self._draws.items())
        return (f"PosteriorSampleSet(chains={self.n_chains}, draws={self.n_draws}, "
                f"params=[{params}])")

    def __contains__(self, name: str) -> bool:
        return name in self._draws

    @property
    def names(self) -> List[str]:
        return list(self._draws)

    @property
    def sample_stats(self) -> Dict[str, np.ndarray]:
        return dict(self._stats)

    def get(self, name: str) -> np.ndarray:
        """(chain, draw, *shape) draws for `name`."""
        try:
            return self._draws[name]
        except KeyError:
            raise KeyError(f"No draws for '{name}'. Available: {self.names}") from None

    def shape(self, name: str):
        return self.get(name).shape[2:]

    def flat(self, name: str) -> np.ndarray:
        """Pool chains: (chain*draw, *shape)."""
        arr = self.get(name)
        return arr.reshape((-1,) + arr.shape[2:])

    def chain(self, index: int) -> 'PosteriorSampleSet':
        """Single-chain view of this set."""
        if not -self.n_chains <= index < self.n_chains:
            raise IndexError(f"Chain {index} out of range for {self.n_chains} chains")
        index %= self.n_chains
        sl = slice(index, index + 1)
        return PosteriorSampleSet(
            {k: v[sl] for k, v in self._draws.items()},
            {k: v[sl] for k, v in self._stats.items()},
            kind=self.kind,
        )

    def divergences(self) -> np.ndarray:
        """Divergent transition count per chain (zeros if not reported)."""
        if 'diverging' not in self._stats:
            return np.zeros(self.n_chains, dtype=int)
        return self._stats['diverging'].sum(axis=1).astype(int)

    # ═══════════════════════════════════════════════════════════
    # ArviZ interop
    # ═══════════════════════════════════════════════════════════

    def to_inference_data(self) -> 'az.InferenceData':
        return az.from_dict(
            posterior={k: np.asarray(v) for k, v in self._draws.items()},
            sample_stats={k: np.asarray(v) for k, v in self._stats.items()} or None,
        )

    @classmethod
    def from_inference_data(cls, idata: 'az.InferenceData',
                            var_names: Optional[List[str]] = None,
                            kind: Optional[str] = None) -> 'PosteriorSampleSet':
        """Extract (chain, draw, ...) arrays from an InferenceData posterior group."""
        posterior = idata.posterior
        names = var_names or list(posterior.data_vars)
        draws = {}
        for name in names:
            da = posterior[name].transpose('chain', 'draw', ...)
            draws[name] = da.values

        stats = {}
        if 'sample_stats' in idata.groups() and 'diverging' in idata.sample_stats:
            stats['diverging'] = idata.sample_stats['diverging'].transpose(
                'chain', 'draw').values.astype(np.float64)
        return cls(draws, stats, kind=kind)
