"""
bayes_ts — Prior Specifications
===============================
Declarative prior distributions, validated before anything reaches the
sampling engine.

Supported distributions and their parameters:
    normal      mu, sigma
    halfnormal  sigma
    lognormal   mu, sigma
    uniform     lower, upper
    gamma       alpha, beta
    beta        alpha, beta
    lkj         eta            (correlation matrices only)

Bounds truncate the distribution to [lower, upper].
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .errors import ValidationError

DISTRIBUTION_PARAMS = {
    'normal': ('mu', 'sigma'),
    'halfnormal': ('sigma',),
    'lognormal': ('mu', 'sigma'),
    'uniform': ('lower', 'upper'),
    'gamma': ('alpha', 'beta'),
    'beta': ('alpha', 'beta'),
    'lkj': ('eta',),
}

# Parameters that must be strictly positive for the distribution to exist
_POSITIVE_DIST_PARAMS = {'sigma', 'alpha', 'beta', 'eta'}

# Distributions whose support is already (0, inf) or (0, 1)
_POSITIVE_SUPPORT = {'halfnormal', 'lognormal', 'gamma', 'beta'}


@dataclass(frozen=True)
class PriorSpec:
    """Specification for a single parameter prior distribution."""
    name: str
    distribution: str  # 'normal', 'halfnormal', 'lognormal', 'uniform', 'gamma', 'beta', 'lkj'
    params: Dict[str, float] = field(default_factory=dict)
    bounds: Optional[Tuple[float, float]] = None  # Hard bounds (truncation)

    def __post_init__(self):
        # Freeze params into a plain dict of floats so rendering is stable
        object.__setattr__(self, 'params',
                           {k: float(v) for k, v in dict(self.params).items()})
        if self.bounds is not None:
            object.__setattr__(self, 'bounds',
                               (float(self.bounds[0]), float(self.bounds[1])))

    def validate(self, positive: bool = False) -> 'PriorSpec':
        """Raise ValidationError if this prior is malformed.

        Args:
            positive: the parameter it describes is strictly positive
        """
        where = f"Prior for '{self.name}'"
        expected = DISTRIBUTION_PARAMS.get(self.distribution)
        if expected is None:
            raise ValidationError(
                f"{where}: unknown distribution '{self.distribution}'. "
                f"Valid: {sorted(DISTRIBUTION_PARAMS)}")
        if set(self.params) != set(expected):
            raise ValidationError(
                f"{where}: {self.distribution} expects parameters {list(expected)}, "
                f"got {sorted(self.params)}")
        for k in expected:
            if k in _POSITIVE_DIST_PARAMS and not self.params[k] > 0:
                raise ValidationError(f"{where}: {k} must be > 0, got {self.params[k]}")
        if self.distribution == 'uniform' and not self.params['lower'] < self.params['upper']:
            raise ValidationError(
                f"{where}: uniform lower {self.params['lower']} must be below "
                f"upper {self.params['upper']}")
        if self.bounds is not None:
            lower, upper = self.bounds
            if not lower < upper:
                raise ValidationError(f"{where}: empty bounds [{lower}, {upper}]")
            if self.distribution == 'lkj':
                raise ValidationError(f"{where}: lkj priors cannot be truncated")

        if positive:
            self._validate_positive(where)
        return self

    def _validate_positive(self, where: str):
        if self.distribution == 'lkj':
            raise ValidationError(f"{where}: lkj prior declared for a scalar parameter")
        if self.distribution == 'normal' and self.params['mu'] <= 0:
            raise ValidationError(
                f"{where}: strictly positive parameter has a normal prior centred "
                f"at {self.params['mu']} <= 0")
        if self.distribution == 'uniform' and self.params['lower'] < 0:
            raise ValidationError(
                f"{where}: strictly positive parameter has uniform support "
                f"starting at {self.params['lower']} < 0")
        if self.bounds is not None:
            lower, upper = self.bounds
            if upper <= 0 or lower < 0:
                raise ValidationError(
                    f"{where}: bounds [{lower}, {upper}] admit non-positive values "
                    f"for a strictly positive parameter")

    def support(self, positive: bool = False) -> Tuple[Optional[float], Optional[float]]:
        """Effective (lower, upper) support after truncation and positivity."""
        lower: Optional[float] = None
        upper: Optional[float] = None
        if self.distribution == 'uniform':
            lower, upper = self.params['lower'], self.params['upper']
        elif self.distribution == 'beta':
            lower, upper = 0.0, 1.0
        elif self.distribution in _POSITIVE_SUPPORT or positive:
            lower = 0.0
        if self.bounds is not None:
            lower = self.bounds[0] if lower is None else max(lower, self.bounds[0])
            upper = self.bounds[1] if upper is None else min(upper, self.bounds[1])
        return lower, upper

    def render(self) -> str:
        """Deterministic one-line text, e.g. 'normal(mu=0.0, sigma=0.5) T[-1.0, 1.0]'."""
        args = ', '.join(f"{k}={self.params[k]!r}"
                         for k in DISTRIBUTION_PARAMS.get(self.distribution, sorted(self.params)))
        text = f"{self.distribution}({args})"
        if self.bounds is not None:
            text += f" T[{self.bounds[0]!r}, {self.bounds[1]!r}]"
        return text

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'distribution': self.distribution,
            'params': dict(sorted(self.params.items())),
            'bounds': list(self.bounds) if self.bounds is not None else None,
        }


def get_default_priors(kind: str) -> List[PriorSpec]:
    """Weakly informative default priors per model kind.

    Series are expected to be roughly unit scale; rescale data or supply
    priors explicitly otherwise.
    """
    noise = PriorSpec('sigma', 'halfnormal', {'sigma': 2.0})
    phi = PriorSpec('Phi', 'normal', {'mu': 0.0, 'sigma': 0.5})

    if kind == 'linear_regression':
        return [
            PriorSpec('intercept', 'normal', {'mu': 0.0, 'sigma': 10.0}),
            PriorSpec('slope', 'normal', {'mu': 0.0, 'sigma': 10.0}),
            noise,
        ]
    elif kind == 'var_independent':
        return [phi, noise]
    elif kind in ('var_full_covariance', 'var_structured'):
        # Omega is only declared by structured specs with full_covariance=True
        return [phi, noise, PriorSpec('Omega', 'lkj', {'eta': 2.0})]
    elif kind == 'ode_growth':
        return [
            PriorSpec('growth_rate', 'lognormal', {'mu': -1.0, 'sigma': 1.0}),
            PriorSpec('capacity', 'lognormal', {'mu': 0.0, 'sigma': 1.0}),
            PriorSpec('forcing_amplitude', 'uniform', {'lower': 0.0, 'upper': 1.0}),
            PriorSpec('y0', 'lognormal', {'mu': -2.0, 'sigma': 1.0}),
            PriorSpec('sigma', 'halfnormal', {'sigma': 0.5}),
        ]
    else:
        raise ValidationError(f"Unknown model kind: {kind}")
