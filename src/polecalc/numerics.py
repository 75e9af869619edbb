"""Floating-point comparison helpers."""

from __future__ import annotations

import math

from .errors import ConfigurationError


def machine_epsilon() -> float:
    """Upper bound on relative rounding error for float64 (2**-53)."""
    return math.ldexp(1.0, -53)


def fuzzy_equal(x: float, y: float) -> bool:
    """Are x and y within machine epsilon of one another?"""
    return abs(x - y) < machine_epsilon()


def fuzzier_equal(x: float, y: float) -> bool:
    """Are x and y within a smallish multiple (64) of machine epsilon?"""
    return abs(x - y) < machine_epsilon() * 64


def convergence_tolerance(scale: float = 2.0**20) -> float:
    """Residual threshold below which an equation counts as solved."""
    if scale <= 0:
        raise ConfigurationError(f"tolerance scale must be positive, got {scale}")
    return machine_epsilon() * scale
