"""
bayes_ts — Growth ODEs and Numerical Integration
================================================
Continuous-time growth dynamics used by the ODE-driven generator and the
ODE-constrained likelihood.

Logistic growth with optional periodic forcing of the rate:

    dy/dt = r · (1 + a · sin(2πt / P)) · y · (1 − y / K)

    r = growth rate, K = carrying capacity,
    a = forcing amplitude (0 disables forcing), P = forcing period

Integrators:
    'rk4':      classical fixed-step Runge-Kutta on the time grid
    'adaptive': scipy LSODA (odeint) with rtol/atol and a step budget
"""

from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np
from scipy.integrate import odeint

from .errors import NumericalInstabilityError, ValidationError

Derivative = Callable[[float, np.ndarray, Sequence[float]], np.ndarray]


@dataclass(frozen=True)
class OdeTolerances:
    """Numerical tolerances for embedded ODE integration."""
    rtol: float = 1e-6
    atol: float = 1e-6
    max_num_steps: int = 5000

    def __post_init__(self):
        if self.rtol <= 0 or self.atol <= 0:
            raise ValidationError(
                f"ODE tolerances must be positive, got rtol={self.rtol}, atol={self.atol}")
        if self.max_num_steps < 1:
            raise ValidationError(f"max_num_steps must be >= 1, got {self.max_num_steps}")


def logistic_growth(t: float, y: np.ndarray, theta: Sequence[float]) -> np.ndarray:
    """Logistic growth derivative, vectorised over independent units.

    Args:
        t: time
        y: [n_units] current state
        theta: (r, K) or (r, K, a, P)
    """
    r, K = theta[0], theta[1]
    rate = r
    if len(theta) > 2 and theta[2] != 0.0:
        a, P = theta[2], theta[3]
        rate = r * (1.0 + a * np.sin(2.0 * np.pi * t / P))
    return rate * y * (1.0 - y / K)


def _check_grid(y0: np.ndarray, t_grid: np.ndarray):
    if t_grid.ndim != 1 or len(t_grid) < 2:
        raise ValidationError("Time grid must be 1-D with at least 2 points")
    if not np.all(np.diff(t_grid) > 0):
        raise ValidationError("Time grid must be strictly increasing")
    if not np.all(np.isfinite(y0)):
        raise ValidationError("Initial state must be finite")


def rk4_integrate(derivative: Derivative,
                  y0: Sequence[float],
                  t_grid: Sequence[float],
                  theta: Sequence[float],
                  substeps: int = 1) -> np.ndarray:
    """Integrate with classical Runge-Kutta, `substeps` steps per grid interval.

    Returns:
        [len(t_grid), len(y0)] trajectory
    """
    y = np.atleast_1d(np.asarray(y0, dtype=np.float64)).copy()
    t_grid = np.asarray(t_grid, dtype=np.float64)
    _check_grid(y, t_grid)

    out = np.empty((len(t_grid), len(y)))
    out[0] = y
    for i in range(1, len(t_grid)):
        t = t_grid[i - 1]
        dt = (t_grid[i] - t_grid[i - 1]) / substeps
        for _ in range(substeps):
            k1 = derivative(t, y, theta)
            k2 = derivative(t + 0.5*dt, y + 0.5*dt*k1, theta)
            k3 = derivative(t + 0.5*dt, y + 0.5*dt*k2, theta)
            k4 = derivative(t + dt, y + dt*k3, theta)
            y = y + (dt/6.0) * (k1 + 2*k2 + 2*k3 + k4)
            t += dt
        if not np.all(np.isfinite(y)):
            raise NumericalInstabilityError(
                f"RK4 trajectory became non-finite at t={t_grid[i]:.4g}")
        out[i] = y
    return out


def adaptive_integrate(derivative: Derivative,
                       y0: Sequence[float],
                       t_grid: Sequence[float],
                       theta: Sequence[float],
                       tolerances: OdeTolerances = OdeTolerances()) -> np.ndarray:
    """Integrate with LSODA, failing if the step budget is exhausted.

    Returns:
        [len(t_grid), len(y0)] trajectory
    """
    y0 = np.atleast_1d(np.asarray(y0, dtype=np.float64))
    t_grid = np.asarray(t_grid, dtype=np.float64)
    _check_grid(y0, t_grid)

    with np.errstate(over='ignore', invalid='ignore'):
        sol, info = odeint(derivative, y0, t_grid, args=(theta,), tfirst=True,
                           rtol=tolerances.rtol, atol=tolerances.atol,
                           mxstep=tolerances.max_num_steps, full_output=True)

    if info['message'] != 'Integration successful.':
        raise NumericalInstabilityError(
            f"ODE integration failed within {tolerances.max_num_steps} steps: "
            f"{info['message']}")
    if not np.all(np.isfinite(sol)):
        raise NumericalInstabilityError("ODE trajectory contains non-finite values")
    return sol


def integrate(derivative: Derivative, y0, t_grid, theta,
              method: str = 'rk4',
              tolerances: OdeTolerances = OdeTolerances(),
              substeps: int = 1) -> np.ndarray:
    if method == 'rk4':
        return rk4_integrate(derivative, y0, t_grid, theta, substeps=substeps)
    elif method == 'adaptive':
        return adaptive_integrate(derivative, y0, t_grid, theta, tolerances)
    else:
        raise ValidationError(f"Unknown integration method: {method}")
