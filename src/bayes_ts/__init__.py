"""
bayes_ts - Bayesian Time-Series Case Studies

A small reusable pipeline for Bayesian time-series fitting: simulate data
from a known process, translate a declared model into engine input, sample
the posterior with PyMC (or an exact conjugate sampler), and summarize the
draws with convergence diagnostics.
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    BayesTSError,
    ValidationError,
    NumericalInstabilityError,
    SamplerError,
    ConvergenceError,
    SamplerTimeoutError,
)

# Data
from .timeseries import TimeSeries, as_time_series, load_grouped_csv

# Synthetic data generation
from .generators import (
    simulate_linear_regression,
    make_stable_transition_matrix,
    random_covariance,
    simulate_var,
    simulate_ode,
    simulate_growth,
    spectral_radius,
    is_stable,
)
from .ode import OdeTolerances, logistic_growth

# Model specification
from .priors import PriorSpec, get_default_priors
from .models import (
    LinearRegressionModel,
    IndependentNoiseVAR,
    FullCovarianceVAR,
    StructuredVAR,
    GrowthODEModel,
)
from .adapter import EngineInput, build_engine_input

# Sampling and summarization
from .posterior import PosteriorSampleSet
from .samplers import BayesianConfig, Sampler, ConjugateSampler, PyMCSampler
from .summary import PosteriorSummary, summarize
from .pipeline import FitResult, fit, coverage_study

__all__ = [
    "BayesTSError",
    "ValidationError",
    "NumericalInstabilityError",
    "SamplerError",
    "ConvergenceError",
    "SamplerTimeoutError",
    "TimeSeries",
    "as_time_series",
    "load_grouped_csv",
    "simulate_linear_regression",
    "make_stable_transition_matrix",
    "random_covariance",
    "simulate_var",
    "simulate_ode",
    "simulate_growth",
    "spectral_radius",
    "is_stable",
    "OdeTolerances",
    "logistic_growth",
    "PriorSpec",
    "get_default_priors",
    "LinearRegressionModel",
    "IndependentNoiseVAR",
    "FullCovarianceVAR",
    "StructuredVAR",
    "GrowthODEModel",
    "EngineInput",
    "build_engine_input",
    "PosteriorSampleSet",
    "BayesianConfig",
    "Sampler",
    "ConjugateSampler",
    "PyMCSampler",
    "PosteriorSummary",
    "summarize",
    "FitResult",
    "fit",
    "coverage_study",
]
