"""
Root-Finding Solver

Generic Newton-Raphson iteration shared by IRR, XIRR, APR and the
time-value-of-money rate solver. A failed solve is reported through
SolverResult instead of returning the last unstable estimate.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from fincalc.calculations.errors import NonConvergenceError

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 100
TOLERANCE = 1e-5
DEFAULT_GUESS = 0.1
MIN_DERIVATIVE = 1e-12


@dataclass(frozen=True)
class SolverResult:
    """Outcome of a root-finding run. ``rate`` is None when the solve failed."""

    rate: Optional[float]
    iterations: int
    converged: bool
    reason: str = ""

    @property
    def failed(self) -> bool:
        return not self.converged

    def unwrap(self) -> float:
        """Return the converged rate or raise NonConvergenceError."""
        if not self.converged or self.rate is None:
            raise NonConvergenceError(
                f"Solver did not converge: {self.reason or 'unknown reason'}",
                iterations=self.iterations,
            )
        return self.rate


def _failed(iterations: int, reason: str) -> SolverResult:
    logger.debug("Newton-Raphson failed after %d iterations: %s", iterations, reason)
    return SolverResult(rate=None, iterations=iterations, converged=False, reason=reason)


def newton_raphson(
    f: Callable[[float], float],
    f_prime: Callable[[float], float],
    initial_guess: float = DEFAULT_GUESS,
    tolerance: float = TOLERANCE,
    max_iterations: int = MAX_ITERATIONS,
    bounds: Optional[Tuple[float, float]] = None,
) -> SolverResult:
    """
    Find x such that f(x) = 0 using Newton-Raphson.

    Stops when two successive estimates differ by less than ``tolerance``.

    Args:
        f: Function whose root is sought
        f_prime: Derivative of f
        initial_guess: Starting estimate (default 0.1 = 10%)
        tolerance: Convergence threshold on the step size
        max_iterations: Iteration cap
        bounds: Optional (low, high) interval; estimates outside it are clamped

    Returns:
        SolverResult; ``converged`` is False when the derivative vanished,
        an estimate became non-finite, or the iterations ran out
    """
    x = initial_guess

    for iteration in range(1, max_iterations + 1):
        try:
            fx = f(x)
            dfx = f_prime(x)
        except (OverflowError, ZeroDivisionError) as e:
            return _failed(iteration, f"evaluation error at {x!r}: {e}")

        if not (math.isfinite(fx) and math.isfinite(dfx)):
            return _failed(iteration, f"non-finite value at {x!r}")

        if abs(dfx) < MIN_DERIVATIVE:
            return _failed(iteration, "derivative is zero")

        new_x = x - fx / dfx

        if not math.isfinite(new_x):
            return _failed(iteration, "estimate diverged")

        clamped = False
        if bounds is not None:
            bounded_x = min(max(new_x, bounds[0]), bounds[1])
            clamped = bounded_x != new_x
            new_x = bounded_x

        if abs(new_x - x) < tolerance:
            if clamped:
                return _failed(iteration, f"root lies outside {bounds!r}")
            return SolverResult(rate=new_x, iterations=iteration, converged=True)

        x = new_x

    return _failed(max_iterations, "maximum iterations reached")
