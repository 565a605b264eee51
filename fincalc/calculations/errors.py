"""
Calculation Errors

Typed failures raised by the calculation engine. All of them subclass
ValueError so callers that already handle ValueError keep working.
"""


class CalculationError(ValueError):
    """Base class for calculation failures."""


class InvalidInputError(CalculationError):
    """Input is malformed (non-positive period count, down payment above price, ...)."""


class NonConvergenceError(CalculationError):
    """An iterative solver exhausted its iterations without meeting tolerance."""

    def __init__(self, message: str = "Solver did not converge", iterations: int = 0):
        super().__init__(message)
        self.iterations = iterations
