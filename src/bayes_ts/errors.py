"""
bayes_ts — Error Taxonomy
=========================
Distinguishes "bad input" from "bad luck in a stochastic draw" from
"the engine could not do its job".

    ValidationError            malformed spec / data, raised before sampling
    NumericalInstabilityError  divergent or non-finite generated series
    SamplerError               engine failed to build or run the model
      ConvergenceError         chains violate a diagnostic threshold
      SamplerTimeoutError      engine exceeded the wall-clock budget

Nothing in the package retries on any of these.
"""

from typing import Optional


class BayesTSError(Exception):
    """Base class for every error raised by bayes_ts."""


class ValidationError(BayesTSError, ValueError):
    """Model specification or data bundle is malformed."""


class NumericalInstabilityError(BayesTSError, ArithmeticError):
    """Generated series diverged or an integrator ran out of steps."""


class SamplerError(BayesTSError, RuntimeError):
    """The sampling engine failed; carries chain/diagnostic context."""

    def __init__(self, message: str,
                 chain: Optional[int] = None,
                 diagnostic: Optional[str] = None):
        self.chain = chain
        self.diagnostic = diagnostic
        context = []
        if chain is not None:
            context.append(f"chain={chain}")
        if diagnostic is not None:
            context.append(f"diagnostic={diagnostic}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class ConvergenceError(SamplerError):
    """One or more chains violated a convergence threshold.

    Args:
        violations: list of (chain, parameter, diagnostic, value, threshold)
    """

    def __init__(self, violations):
        self.violations = list(violations)
        lines = [
            f"{_where(c)}: {param} {diag}={value:.4g} (threshold {thr:.4g})"
            for c, param, diag, value, thr in self.violations
        ]
        chains = sorted({v[0] for v in self.violations if v[0] is not None})
        super().__init__(
            "Posterior failed convergence checks:\n  " + "\n  ".join(lines),
            chain=chains[0] if len(chains) == 1 else None,
            diagnostic=self.violations[0][2] if self.violations else None,
        )


class SamplerTimeoutError(SamplerError, TimeoutError):
    """Sampler did not return within the configured timeout."""


def _where(chain: Optional[int]) -> str:
    return f"chain {chain}" if chain is not None else "all chains"
