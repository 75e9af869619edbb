"""Exception types raised by the grid-reduction and solver layers."""

from __future__ import annotations


class PolecalcError(Exception):
    """Base class for all polecalc errors."""


class ConfigurationError(PolecalcError, ValueError):
    """Invalid grid size, worker count, or persisted state."""


class BracketError(PolecalcError):
    """Residual has no sign change across the given bracket.

    Attributes
    ----------
    low, high : float
        Bracket endpoints
    f_low, f_high : float
        Residual values at the endpoints
    equation : str or None
        Name of the equation being solved, when known
    """

    def __init__(self, low, high, f_low, f_high, equation=None):
        self.low = low
        self.high = high
        self.f_low = f_low
        self.f_high = f_high
        self.equation = equation
        where = f" for equation '{equation}'" if equation else ""
        super().__init__(
            f"No sign change in bracket [{low:.6g}, {high:.6g}]{where} "
            f"(residuals {f_low:.6g}, {f_high:.6g})"
        )


class ConvergenceStallError(PolecalcError):
    """Iteration cap reached before the residuals fell below tolerance.

    Attributes
    ----------
    reason : str
        Message without the residual summary
    residuals : dict[str, float]
        Last residual seen for each tracked quantity
    """

    def __init__(self, message, residuals=None):
        self.reason = message
        self.residuals = dict(residuals or {})
        if self.residuals:
            detail = ", ".join(f"{name}={value:.3e}" for name, value in self.residuals.items())
            message = f"{message} (last residuals: {detail})"
        super().__init__(message)


class MaxIterationsError(ConvergenceStallError):
    """Bisection did not converge within its iteration bound."""
