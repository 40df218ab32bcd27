"""
bayes_ts — Synthetic Data Generator
===================================
Produces series from a known generative process with injected noise, so
that fitted posteriors can be checked against the truth.

Processes:
    Linear regression:      y = intercept + slope·x + ε,    ε ~ N(0, σ²)
    Vector autoregression:  state[t] = Φ·state[t-1] + ε[t], ε[t] ~ N(0, Σ)
    ODE-driven growth:      integrate dy/dt = f(t, y; θ), observe a subset
                            of grid points, add N(0, σ²) observation noise

Stability of Φ (spectral radius < 1) is validated by default; pass
check_stability=False to take responsibility for it, in which case a
divergent run raises NumericalInstabilityError.

No generator keeps state between calls. Randomness comes only from the
`rng` argument (a numpy Generator or an integer seed).
"""

from typing import Optional, Sequence, Tuple, Union

import numpy as np

from .errors import NumericalInstabilityError, ValidationError
from .ode import Derivative, OdeTolerances, integrate, logistic_growth
from .timeseries import TimeSeries

RngLike = Union[None, int, np.random.Generator]


def _rng(rng: RngLike) -> np.random.Generator:
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


# ═══════════════════════════════════════════════════════════════
# Linear regression
# ═══════════════════════════════════════════════════════════════

def simulate_linear_regression(n: int,
                               slope: float,
                               intercept: float,
                               noise_sd: float,
                               x_mean: float = 0.0,
                               x_sd: float = 1.0,
                               rng: RngLike = None) -> TimeSeries:
    """Draw x ~ N(x_mean, x_sd) and y = intercept + slope·x + N(0, noise_sd).

    Returns:
        TimeSeries with columns ('x', 'y')
    """
    if n < 2:
        raise ValidationError(f"Need at least 2 observations, got n={n}")
    if noise_sd < 0 or x_sd <= 0:
        raise ValidationError("noise_sd must be >= 0 and x_sd > 0")

    rng = _rng(rng)
    x = rng.normal(x_mean, x_sd, size=n)
    y = intercept + slope * x + rng.normal(0.0, noise_sd, size=n)
    return TimeSeries(np.column_stack([x, y]), names=('x', 'y'))


# ═══════════════════════════════════════════════════════════════
# Vector autoregression
# ═══════════════════════════════════════════════════════════════

def spectral_radius(phi: np.ndarray) -> float:
    return float(np.max(np.abs(np.linalg.eigvals(np.asarray(phi, dtype=np.float64)))))


def is_stable(phi: np.ndarray) -> bool:
    """True if every eigenvalue of Φ lies strictly inside the unit circle."""
    return spectral_radius(phi) < 1.0


def make_stable_transition_matrix(dim: int,
                                  max_eigenvalue: float = 0.9,
                                  rng: RngLike = None) -> np.ndarray:
    """Random Φ rescaled so its largest eigenvalue modulus is `max_eigenvalue`."""
    if dim < 1:
        raise ValidationError(f"dim must be >= 1, got {dim}")
    if not 0.0 < max_eigenvalue < 1.0:
        raise ValidationError(
            f"max_eigenvalue must lie in (0, 1) for a stable process, got {max_eigenvalue}")

    rng = _rng(rng)
    raw = rng.normal(size=(dim, dim))
    radius = spectral_radius(raw)
    while radius < 1e-8:
        raw = rng.normal(size=(dim, dim))
        radius = spectral_radius(raw)
    return raw * (max_eigenvalue / radius)


def random_covariance(dim: int, scale: float = 1.0, rng: RngLike = None) -> np.ndarray:
    """Dense symmetric positive-definite covariance with diagonal ≈ scale²."""
    rng = _rng(rng)
    A = rng.normal(size=(dim, dim))
    corr = A @ A.T + dim * np.eye(dim)
    d = np.sqrt(np.diag(corr))
    corr = corr / np.outer(d, d)
    return (scale ** 2) * corr


def simulate_var(phi: np.ndarray,
                 n_steps: int,
                 noise_cov: Optional[np.ndarray] = None,
                 noise_sd: Union[float, Sequence[float]] = 1.0,
                 initial: Optional[Sequence[float]] = None,
                 check_stability: bool = True,
                 rng: RngLike = None) -> TimeSeries:
    """Simulate state[t] = Φ·state[t-1] + ε[t].

    Args:
        phi: [D, D] transition matrix
        n_steps: number of states to return (including the initial state)
        noise_cov: [D, D] covariance of ε (overrides noise_sd)
        noise_sd: scalar or [D] standard deviations for independent noise
        initial: [D] initial state (default zeros)
        check_stability: reject Φ with spectral radius >= 1
        rng: numpy Generator or seed

    Returns:
        [n_steps, D] TimeSeries
    """
    phi = np.asarray(phi, dtype=np.float64)
    if phi.ndim != 2 or phi.shape[0] != phi.shape[1]:
        raise ValidationError(f"Transition matrix must be square, got shape {phi.shape}")
    D = phi.shape[0]
    if n_steps < 2:
        raise ValidationError(f"n_steps must be >= 2, got {n_steps}")
    if check_stability and not is_stable(phi):
        raise ValidationError(
            f"Transition matrix is not stable (spectral radius "
            f"{spectral_radius(phi):.4f} >= 1); the process would diverge")

    if noise_cov is None:
        sd = np.broadcast_to(np.asarray(noise_sd, dtype=np.float64), (D,))
        if np.any(sd < 0):
            raise ValidationError("noise_sd must be non-negative")
        noise_cov = np.diag(sd ** 2)
    noise_cov = np.asarray(noise_cov, dtype=np.float64)
    if noise_cov.shape != (D, D):
        raise ValidationError(f"noise_cov must be [{D}, {D}], got {noise_cov.shape}")
    if not np.allclose(noise_cov, noise_cov.T):
        raise ValidationError("noise_cov must be symmetric")
    if np.min(np.linalg.eigvalsh(noise_cov)) < -1e-10:
        raise ValidationError("noise_cov must be positive semi-definite")

    rng = _rng(rng)
    state = np.zeros((n_steps, D))
    if initial is not None:
        state[0] = np.asarray(initial, dtype=np.float64)
    noise = rng.multivariate_normal(np.zeros(D), noise_cov, size=n_steps, method='eigh')

    with np.errstate(over='ignore', invalid='ignore'):
        for t in range(1, n_steps):
            state[t] = phi @ state[t - 1] + noise[t]
            if not np.all(np.isfinite(state[t])):
                raise NumericalInstabilityError(
                    f"VAR simulation diverged at step {t} (spectral radius "
                    f"{spectral_radius(phi):.4f})")

    return TimeSeries(state)


# ═══════════════════════════════════════════════════════════════
# ODE-driven processes
# ═══════════════════════════════════════════════════════════════

def simulate_ode(derivative: Derivative,
                 y0: Sequence[float],
                 t_grid: Sequence[float],
                 theta: Sequence[float],
                 noise_sd: float,
                 observe_at: Optional[Sequence[int]] = None,
                 method: str = 'rk4',
                 tolerances: OdeTolerances = OdeTolerances(),
                 substeps: int = 10,
                 names: Tuple[str, ...] = (),
                 rng: RngLike = None) -> Tuple[TimeSeries, np.ndarray]:
    """Integrate an ODE over a grid, observe a subset of points with noise.

    Args:
        derivative: f(t, y, theta) -> dy/dt
        y0: initial state
        t_grid: integration grid
        theta: parameters passed to `derivative`
        noise_sd: observation noise standard deviation
        observe_at: indices into t_grid to observe (default: every point)
        method: 'rk4' or 'adaptive'
        tolerances: used by the adaptive integrator
        substeps: RK4 steps per grid interval
        names: state variable names

    Returns:
        (observed series, [len(t_grid), D] noise-free trajectory)
    """
    if noise_sd < 0:
        raise ValidationError("noise_sd must be non-negative")
    t_grid = np.asarray(t_grid, dtype=np.float64)
    trajectory = integrate(derivative, y0, t_grid, theta, method=method,
                           tolerances=tolerances, substeps=substeps)

    if observe_at is None:
        idx = np.arange(len(t_grid))
    else:
        idx = np.asarray(observe_at, dtype=int)
        if idx.ndim != 1 or len(idx) == 0:
            raise ValidationError("observe_at must be a non-empty 1-D index sequence")
        if np.any(idx < 0) or np.any(idx >= len(t_grid)):
            raise ValidationError("observe_at indices fall outside the time grid")
        if np.any(np.diff(idx) <= 0):
            raise ValidationError("observe_at indices must be strictly increasing")

    rng = _rng(rng)
    observed = trajectory[idx] + rng.normal(0.0, noise_sd, size=trajectory[idx].shape)
    return TimeSeries(observed, t_grid[idx], names), trajectory


def simulate_growth(n_units: int,
                    times: Sequence[float],
                    growth_rate: float,
                    capacity: float,
                    initial: Union[float, Sequence[float]],
                    noise_sd: float,
                    forcing_amplitude: float = 0.0,
                    forcing_period: Optional[float] = None,
                    method: str = 'rk4',
                    substeps: int = 10,
                    rng: RngLike = None) -> Tuple[TimeSeries, np.ndarray]:
    """Logistic growth for `n_units` units sharing (r, K), observed at `times`.

    The units become the columns of the returned series, matching the
    grouped CSV layout after transposition.
    """
    if forcing_amplitude != 0.0 and not forcing_period:
        raise ValidationError("forcing_period is required when forcing_amplitude != 0")
    y0 = np.broadcast_to(np.asarray(initial, dtype=np.float64), (n_units,)).copy()
    theta = (growth_rate, capacity)
    if forcing_amplitude != 0.0:
        theta = (growth_rate, capacity, forcing_amplitude, forcing_period)
    names = tuple(f"unit{i}" for i in range(n_units))
    return simulate_ode(logistic_growth, y0, times, theta, noise_sd,
                        method=method, substeps=substeps, names=names, rng=rng)
