"""
bayes_ts — Model Specification Adapter
======================================
Translates a ModelSpec plus a TimeSeries into the input an external
Bayesian sampling engine consumes:

    program   structured textual model description (data declarations,
              parameter declarations with bounds, prior statements,
              likelihood statement)
    data      bundle of named scalars, vectors and matrices matching the
              program's data declarations

Every check runs here, before any engine work: series length, dimension
agreement between mask/priors and data, prior validity, prior bounds
consistent with the observations.

The output is a pure function of the inputs: two calls with equal inputs
give byte-identical `EngineInput.to_bytes()`.

Usage:
    spec = IndependentNoiseVAR()
    engine_input = build_engine_input(spec, series)
    print(engine_input.program)
    samples = PyMCSampler().fit(engine_input, config)
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

import numpy as np

from .errors import ValidationError
from .models import (
    MODEL_KINDS, FullCovarianceVAR, GrowthODEModel, IndependentNoiseVAR,
    LinearRegressionModel, ModelSpec, ParameterDecl, StructuredVAR,
)
from .priors import PriorSpec
from .timeseries import as_time_series


@dataclass(frozen=True, eq=False)
class EngineInput:
    """Engine-ready model description and data bundle."""
    kind: str
    program: str
    data: Dict[str, Any]
    parameters: Tuple[ParameterDecl, ...]
    priors: Tuple[PriorSpec, ...]

    def prior(self, name: str) -> PriorSpec:
        for p in self.priors:
            if p.name == name:
                return p
        raise KeyError(name)

    def declaration(self, name: str) -> ParameterDecl:
        for d in self.parameters:
            if d.name == name:
                return d
        raise KeyError(name)

    @property
    def parameter_names(self) -> List[str]:
        return [d.name for d in self.parameters]

    def to_dict(self) -> Dict:
        return {
            'kind': self.kind,
            'program': self.program,
            'data': {k: _jsonable(v) for k, v in self.data.items()},
            'parameters': [
                {'name': d.name, 'shape': list(d.shape), 'kind': d.kind}
                for d in self.parameters
            ],
            'priors': [p.to_dict() for p in self.priors],
        }

    def to_bytes(self) -> bytes:
        """Canonical JSON encoding (sorted keys, no whitespace)."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(',', ':'),
                          allow_nan=False).encode('utf-8')

    def fingerprint(self) -> str:
        return hashlib.sha256(self.to_bytes()).hexdigest()


def _jsonable(value):
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (np.floating,)):
        return float(value)
    return value


def _readonly(arr) -> np.ndarray:
    arr = np.array(arr)
    arr.setflags(write=False)
    return arr


# ═══════════════════════════════════════════════════════════════
# Program rendering
# ═══════════════════════════════════════════════════════════════

def _fmt_bound(lower, upper) -> str:
    parts = []
    if lower is not None:
        parts.append(f"lower={lower!r}")
    if upper is not None:
        parts.append(f"upper={upper!r}")
    return f"<{', '.join(parts)}>" if parts else ''


def _declare(decl: ParameterDecl, prior: PriorSpec, dims: Dict[Tuple[int, ...], str]) -> str:
    if decl.kind == 'correlation':
        return f"corr_matrix[{dims[decl.shape[:1]]}] {decl.name};"
    bound = _fmt_bound(*prior.support(positive=decl.positive))
    if not decl.shape:
        return f"real{bound} {decl.name};"
    if len(decl.shape) == 1:
        return f"vector{bound}[{dims[decl.shape]}] {decl.name};"
    return f"matrix{bound}[{dims[decl.shape[:1]]}, {dims[decl.shape[1:]]}] {decl.name};"


def _render_program(kind: str,
                    data_decls: List[str],
                    param_decls: List[str],
                    prior_lines: List[str],
                    derived: List[str],
                    likelihood: List[str]) -> str:
    lines = [f"model {kind}", "data {"]
    lines += [f"  {d}" for d in data_decls]
    lines += ["}", "parameters {"]
    lines += [f"  {p}" for p in param_decls]
    lines.append("}")
    if derived:
        lines.append("transformed parameters {")
        lines += [f"  {d}" for d in derived]
        lines.append("}")
    lines.append("model {")
    lines += [f"  {p}" for p in prior_lines]
    lines += [f"  {l}" for l in likelihood]
    lines.append("}")
    return "\n".join(lines) + "\n"


# ═══════════════════════════════════════════════════════════════
# Per-kind adapters
# ═══════════════════════════════════════════════════════════════

def _regression(spec: LinearRegressionModel, series, decls, priors):
    data = {
        'N': series.length,
        'x': _readonly(series.values[:, 0]),
        'y': _readonly(series.values[:, 1]),
    }
    data_decls = ["int<lower=2> N;", "vector[N] x;", "vector[N] y;"]
    likelihood = ["y ~ normal(intercept + slope * x, sigma);"]
    return data, data_decls, [], likelihood


def _var(spec, series, decls, priors, full_covariance: bool):
    data = {
        'N': series.length,
        'D': series.dim,
        'y': _readonly(series.values),
    }
    data_decls = ["int<lower=2> N;", "int<lower=1> D;", "matrix[N, D] y;"]
    derived = []
    if full_covariance:
        derived.append("cov_matrix[D] Sigma = diag(sigma) * Omega * diag(sigma);")
        likelihood = ["y[2:N] ~ multi_normal(y[1:N-1] * Phi', Sigma);"]
    else:
        likelihood = ["y[2:N] ~ normal(y[1:N-1] * Phi', sigma);"]
    return data, data_decls, derived, likelihood


def _structured(spec: StructuredVAR, series, decls, priors):
    data, data_decls, derived, likelihood = _var(
        spec, series, decls, priors, full_covariance=spec.full_covariance)
    data['mask'] = _readonly(spec.mask_array.astype(np.int64))
    data['phi_prior_sd'] = _readonly(spec.phi_prior_scales())
    data_decls += ["matrix<lower=0, upper=1>[D, D] mask;",
                   "matrix<lower=0>[D, D] phi_prior_sd;"]
    return data, data_decls, derived, likelihood


def _ode(spec: GrowthODEModel, series, decls, priors):
    data = {
        'N': series.length,
        'U': series.dim,
        'ts': _readonly(series.times),
        'y': _readonly(series.values),
        'forcing_period': float(spec.forcing_period) if spec.forced else 0.0,
        'rtol': float(spec.tolerances.rtol),
        'atol': float(spec.tolerances.atol),
        'max_num_steps': int(spec.tolerances.max_num_steps),
    }
    data_decls = ["int<lower=2> N;", "int<lower=1> U;", "vector[N] ts;",
                  "matrix[N, U] y;", "real<lower=0> forcing_period;",
                  "real<lower=0> rtol;", "real<lower=0> atol;",
                  "int<lower=1> max_num_steps;"]
    theta = "growth_rate, capacity"
    if spec.forced:
        theta += ", forcing_amplitude, forcing_period"
    derived = [
        f"matrix[N, U] mu = ode_lsoda(logistic_growth, y0, ts[1], ts, {{{theta}}}, "
        f"rtol, atol, max_num_steps);"
    ]
    likelihood = ["to_vector(y) ~ normal(to_vector(mu), sigma);"]
    return data, data_decls, derived, likelihood


_ADAPTERS = {
    LinearRegressionModel.kind: _regression,
    IndependentNoiseVAR.kind: lambda s, ser, d, p: _var(s, ser, d, p, False),
    FullCovarianceVAR.kind: lambda s, ser, d, p: _var(s, ser, d, p, True),
    StructuredVAR.kind: _structured,
    GrowthODEModel.kind: _ode,
}


def build_engine_input(spec: ModelSpec, series) -> EngineInput:
    """Validate `spec` against `series` and build the engine input.

    Args:
        spec: one of the ModelSpec kinds
        series: TimeSeries (or array / DataFrame coercible to one)

    Returns:
        EngineInput

    Raises:
        ValidationError: on any inconsistency, before engine work starts
    """
    kind = getattr(spec, 'kind', None)
    if kind not in MODEL_KINDS or not isinstance(spec, MODEL_KINDS[kind]):
        raise ValidationError(f"Unsupported model specification: {spec!r}")

    series = as_time_series(series)
    series.validate(min_length=2)
    spec.validate(series)

    decls = spec.parameters(series)
    priors = tuple(spec.prior_for(d.name) for d in decls)

    data, data_decls, derived, likelihood = _ADAPTERS[kind](spec, series, decls, priors)

    dim_names = {}
    if 'D' in data:
        dim_names[(data['D'],)] = 'D'
    if 'U' in data:
        dim_names[(data['U'],)] = 'U'

    param_lines = [_declare(d, p, dim_names) for d, p in zip(decls, priors)]
    prior_lines = []
    for d, p in zip(decls, priors):
        if kind == StructuredVAR.kind and d.name == 'Phi':
            mu = p.params['mu']
            line = f"to_vector(Phi) ~ normal({mu!r}, to_vector(phi_prior_sd))"
            if p.bounds is not None:
                line += f" T[{p.bounds[0]!r}, {p.bounds[1]!r}]"
            prior_lines.append(line + ";")
        else:
            prior_lines.append(f"{d.name} ~ {p.render()};")

    program = _render_program(kind, data_decls, param_lines, prior_lines, derived, likelihood)
    return EngineInput(kind=kind, program=program, data=data,
                       parameters=tuple(decls), priors=priors)
