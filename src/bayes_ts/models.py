"""
bayes_ts — Model Specifications
===============================
One immutable dataclass per model kind, each carrying only the fields that
kind needs. `ModelSpec` is the union of all of them; `spec.kind` is the tag.

    kind                   parameters
    ─────────────────────  ─────────────────────────────────────────────
    linear_regression      intercept, slope, sigma
    var_independent        Phi[D,D], sigma[D]
    var_full_covariance    Phi[D,D], sigma[D], Omega[D,D] (LKJ), Sigma derived
    var_structured         Phi[D,D] with masked entries pinned near 0, sigma[D]
                           (+ Omega when full_covariance=True)
    ode_growth             growth_rate, capacity, [forcing_amplitude],
                           y0[units], sigma

Priors not supplied fall back to `get_default_priors(kind)`.
"""

from dataclasses import dataclass
from typing import ClassVar, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import ValidationError
from .ode import OdeTolerances
from .priors import PriorSpec, get_default_priors
from .timeseries import TimeSeries


@dataclass(frozen=True)
class ParameterDecl:
    """A declared model parameter with its resolved shape."""
    name: str
    shape: Tuple[int, ...] = ()
    positive: bool = False
    kind: str = 'real'  # 'real', 'positive', 'correlation'

    @property
    def size(self) -> int:
        return int(np.prod(self.shape)) if self.shape else 1


def _freeze_priors(priors: Optional[Sequence[PriorSpec]]) -> Optional[Tuple[PriorSpec, ...]]:
    if priors is None:
        return None
    priors = tuple(priors)
    names = [p.name for p in priors]
    if len(set(names)) != len(names):
        raise ValidationError(f"Duplicate prior names: {names}")
    return priors


class _SpecBase:
    """Behaviour shared by every model kind."""
    kind: ClassVar[str] = ''

    def _init_priors(self):
        object.__setattr__(self, 'priors', _freeze_priors(self.priors))

    def prior_for(self, name: str) -> PriorSpec:
        """User prior for `name`, else the kind's default."""
        for source in (self.priors or (), get_default_priors(self.kind)):
            for prior in source:
                if prior.name == name:
                    return prior
        raise ValidationError(f"No prior available for parameter '{name}' of {self.kind}")

    def parameters(self, series: TimeSeries) -> Tuple[ParameterDecl, ...]:
        raise NotImplementedError

    def validate(self, series: TimeSeries):
        """Check the series shape and every prior against the declared parameters."""
        series.validate(min_length=2)
        decls = self.parameters(series)
        declared = {d.name for d in decls}
        for prior in self.priors or ():
            if prior.name not in declared:
                raise ValidationError(
                    f"Prior given for undeclared parameter '{prior.name}' "
                    f"(declared: {sorted(declared)})")
        for decl in decls:
            prior = self.prior_for(decl.name)
            prior.validate(positive=decl.positive)
            if decl.kind == 'correlation' and prior.distribution != 'lkj':
                raise ValidationError(
                    f"Correlation matrix '{decl.name}' needs an lkj prior, "
                    f"got {prior.distribution}")
            if decl.kind != 'correlation' and prior.distribution == 'lkj':
                raise ValidationError(
                    f"lkj prior given for non-correlation parameter '{decl.name}'")


def _var_parameters(D: int, full_covariance: bool) -> Tuple[ParameterDecl, ...]:
    decls = (
        ParameterDecl('Phi', (D, D)),
        ParameterDecl('sigma', (D,), positive=True, kind='positive'),
    )
    if full_covariance:
        decls += (ParameterDecl('Omega', (D, D), kind='correlation'),)
    return decls


# ═══════════════════════════════════════════════════════════════
# Model kinds
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LinearRegressionModel(_SpecBase):
    """y = intercept + slope·x + N(0, sigma²) on a ('x', 'y') series."""
    priors: Optional[Tuple[PriorSpec, ...]] = None
    kind: ClassVar[str] = 'linear_regression'

    def __post_init__(self):
        self._init_priors()

    def parameters(self, series):
        return (
            ParameterDecl('intercept'),
            ParameterDecl('slope'),
            ParameterDecl('sigma', positive=True, kind='positive'),
        )

    def validate(self, series):
        if series.dim != 2:
            raise ValidationError(
                f"Linear regression needs a 2-column (x, y) series, got {series.dim} columns")
        super().validate(series)


@dataclass(frozen=True)
class IndependentNoiseVAR(_SpecBase):
    """state[t] ~ N(Phi·state[t-1], diag(sigma²))."""
    priors: Optional[Tuple[PriorSpec, ...]] = None
    kind: ClassVar[str] = 'var_independent'

    def __post_init__(self):
        self._init_priors()

    def parameters(self, series):
        return _var_parameters(series.dim, full_covariance=False)


@dataclass(frozen=True)
class FullCovarianceVAR(_SpecBase):
    """state[t] ~ MvN(Phi·state[t-1], Sigma), Sigma = diag(sigma)·Omega·diag(sigma)."""
    priors: Optional[Tuple[PriorSpec, ...]] = None
    kind: ClassVar[str] = 'var_full_covariance'

    def __post_init__(self):
        self._init_priors()

    def parameters(self, series):
        return _var_parameters(series.dim, full_covariance=True)


@dataclass(frozen=True)
class StructuredVAR(_SpecBase):
    """VAR whose Phi entries with mask[i][j] == False are pinned near zero.

    Args:
        mask: [D, D] booleans; True = free entry, False = pinned
        pinned_scale: sd of the normal(0, pinned_scale) prior on pinned entries
        full_covariance: estimate a dense noise covariance instead of a diagonal
    """
    mask: Tuple[Tuple[bool, ...], ...] = ()
    pinned_scale: float = 0.01
    full_covariance: bool = False
    priors: Optional[Tuple[PriorSpec, ...]] = None
    kind: ClassVar[str] = 'var_structured'

    def __post_init__(self):
        mask = np.asarray(self.mask, dtype=bool)
        if mask.ndim != 2 or mask.shape[0] != mask.shape[1] or mask.size == 0:
            raise ValidationError(f"Structure mask must be a non-empty square matrix, "
                                  f"got shape {mask.shape}")
        if not self.pinned_scale > 0:
            raise ValidationError(f"pinned_scale must be > 0, got {self.pinned_scale}")
        object.__setattr__(self, 'mask', tuple(tuple(bool(v) for v in row) for row in mask))
        self._init_priors()

    @property
    def mask_array(self) -> np.ndarray:
        return np.array(self.mask, dtype=bool)

    def parameters(self, series):
        return _var_parameters(series.dim, full_covariance=self.full_covariance)

    def validate(self, series):
        D = len(self.mask)
        if series.dim != D:
            raise ValidationError(
                f"Structure mask is {D}x{D} but the series has {series.dim} variables")
        super().validate(series)

    def phi_prior_scales(self) -> np.ndarray:
        """Per-entry prior sd for Phi: the free prior sd, or pinned_scale where masked."""
        free = self.prior_for('Phi')
        if free.distribution != 'normal':
            raise ValidationError("Structured VAR needs a normal prior on Phi")
        return np.where(self.mask_array, free.params['sigma'], self.pinned_scale)


@dataclass(frozen=True)
class GrowthODEModel(_SpecBase):
    """Logistic growth of each unit (series column) with shared rate and capacity.

    Args:
        forcing_period: period P of the sin(2πt/P) rate forcing; None disables it
        tolerances: rtol / atol / max_num_steps for the embedded ODE solver
    """
    forcing_period: Optional[float] = None
    tolerances: OdeTolerances = OdeTolerances()
    priors: Optional[Tuple[PriorSpec, ...]] = None
    kind: ClassVar[str] = 'ode_growth'

    def __post_init__(self):
        if self.forcing_period is not None and not self.forcing_period > 0:
            raise ValidationError(f"forcing_period must be > 0, got {self.forcing_period}")
        self._init_priors()

    @property
    def forced(self) -> bool:
        return self.forcing_period is not None

    def parameters(self, series):
        decls = (
            ParameterDecl('growth_rate', positive=True, kind='positive'),
            ParameterDecl('capacity', positive=True, kind='positive'),
        )
        if self.forced:
            decls += (ParameterDecl('forcing_amplitude'),)
        decls += (
            ParameterDecl('y0', (series.dim,), positive=True, kind='positive'),
            ParameterDecl('sigma', positive=True, kind='positive'),
        )
        return decls

    def validate(self, series):
        super().validate(series)
        _, cap_upper = self.prior_for('capacity').support(positive=True)
        observed_max = float(np.max(series.values))
        if cap_upper is not None and cap_upper < observed_max:
            raise ValidationError(
                f"Capacity prior is bounded above by {cap_upper} but the data reach "
                f"{observed_max:.4g}; the growth curve could never fit")
        if self.forced:
            lower, upper = self.prior_for('forcing_amplitude').support()
            if lower is None or upper is None or lower < -1.0 or upper > 1.0:
                raise ValidationError(
                    "forcing_amplitude prior must be bounded within [-1, 1] so the "
                    "forced growth rate stays non-negative")


ModelSpec = Union[LinearRegressionModel, IndependentNoiseVAR, FullCovarianceVAR,
                  StructuredVAR, GrowthODEModel]

MODEL_KINDS = {cls.kind: cls for cls in (LinearRegressionModel, IndependentNoiseVAR,
                                         FullCovarianceVAR, StructuredVAR, GrowthODEModel)}
