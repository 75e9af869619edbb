"""Bracketing and bisection for one-dimensional residual functions."""

from __future__ import annotations

import logging
import math
from typing import Callable

from .errors import BracketError, ConfigurationError, MaxIterationsError
from .lattice import make_range

logger = logging.getLogger(__name__)

Func1D = Callable[[float], float]


def _brackets(f_low: float, f_high: float) -> bool:
    """True when the two residuals straddle (or touch) zero. NaN never brackets."""
    return (f_low <= 0.0 <= f_high) or (f_high <= 0.0 <= f_low)


def bisect(
    residual: Func1D,
    low: float,
    high: float,
    tolerance: float,
    max_iterations: int = 256,
) -> float:
    """Find a root of ``residual`` inside ``[low, high]`` by bisection.

    Parameters
    ----------
    residual : Callable[[float], float]
        Signed residual; its sign must differ at the two endpoints
    low, high : float
        Bracket endpoints (swapped if given in reverse order)
    tolerance : float
        Stop once the half-width of the bracket or ``|residual(mid)|`` is at
        most this value
    max_iterations : int, default 256
        Hard cap on the number of halvings

    Returns
    -------
    float
        The root estimate

    Raises
    ------
    BracketError
        If the residual has the same sign at both endpoints
    MaxIterationsError
        If the cap is reached first

    Examples
    --------
    >>> bisect(lambda x: x, -1.0, 1.0, 1e-10)
    0.0

    """
    if not tolerance > 0:
        raise ConfigurationError(f"bisection tolerance must be positive, got {tolerance}")
    if low > high:
        low, high = high, low

    f_low = residual(low)
    if abs(f_low) <= tolerance:
        return low
    f_high = residual(high)
    if abs(f_high) <= tolerance:
        return high
    if not _brackets(f_low, f_high):
        raise BracketError(low, high, f_low, f_high)

    for iteration in range(max_iterations):
        mid = 0.5 * (low + high)
        f_mid = residual(mid)
        # mid equal to an endpoint means the bracket is down to adjacent floats
        if abs(f_mid) <= tolerance or 0.5 * (high - low) <= tolerance or not (low < mid < high):
            logger.debug("bisection converged after %d iterations at %.12g", iteration + 1, mid)
            return mid
        if (f_mid < 0.0) == (f_low < 0.0):
            low, f_low = mid, f_mid
        else:
            high, f_high = mid, f_mid

    raise MaxIterationsError(
        f"Bisection exceeded {max_iterations} iterations in [{low:.12g}, {high:.12g}]",
        {"low": f_low, "high": f_high},
    )


def expand_bracket(
    residual: Func1D,
    center: float,
    step: float,
    max_expansions: int = 50,
    factor: float = 1.6,
) -> tuple[float, float]:
    """Grow ``[center - step, center + step]`` until the residual changes sign.

    The endpoint with the smaller ``|residual|`` moves outward each time.

    Raises
    ------
    BracketError
        If no sign change appears within ``max_expansions`` expansions
    """
    if not step > 0:
        raise ConfigurationError(f"bracket step must be positive, got {step}")
    low, high = center - step, center + step
    f_low, f_high = residual(low), residual(high)
    for _ in range(max_expansions):
        if _brackets(f_low, f_high):
            return low, high
        if math.isnan(f_low) or math.isnan(f_high):
            break
        if abs(f_low) < abs(f_high):
            low += factor * (low - high)
            f_low = residual(low)
        else:
            high += factor * (high - low)
            f_high = residual(high)
        logger.debug("expanded bracket to [%.6g, %.6g]", low, high)
    if _brackets(f_low, f_high):
        return low, high
    raise BracketError(low, high, f_low, f_high)


def find_brackets(residual: Func1D, left: float, right: float, num: int) -> list[tuple[float, float]]:
    """Scan ``num`` evenly spaced points and return every sub-interval with a sign change."""
    xs = make_range(left, right, num)
    values = [residual(float(x)) for x in xs]
    found = []
    for i in range(num - 1):
        if _brackets(values[i], values[i + 1]):
            found.append((float(xs[i]), float(xs[i + 1])))
    return found
