"""Reference holon dispersion and gap functions.

These are the physical-formula callables the grid engine evaluates. All of
them take the Environment and a point (or an ``(m, 2)`` array of points) in
the Brillouin zone and are vectorized over the leading axes of ``k``.
"""

from __future__ import annotations

import numpy as np

from .grid import GridReduction
from .lattice import square
from .reducers import MinimumTracker


def sines(k) -> tuple[np.ndarray, np.ndarray]:
    """``(sin kx, sin ky)`` for a point or an array of points."""
    k = np.asarray(k, dtype=np.float64)
    return np.sin(k[..., 0]), np.sin(k[..., 1])


def epsilon(env, k):
    """Holon dispersion before the shift by ``epsilon_min`` and ``mu``."""
    sx, sy = sines(k)
    return 2 * env.th * ((sx + sy) ** 2 - 1) + 4 * env.d1 * env.t0 * sx * sy


def epsilon_min(env) -> float:
    """Minimum of :func:`epsilon` over the Brillouin-zone lattice."""
    engine = GridReduction(env.num_procs, use_numba=env.use_numba)
    return engine.reduce(square(env.grid_length), lambda k: epsilon(env, k), MinimumTracker(), vectorized=True)


def xi(env, k, eps_min: float):
    """Holon energy measured from the band bottom and the chemical potential."""
    return epsilon(env, k) - eps_min - env.mu


def gap_form(env, k):
    """Symmetry factor ``sin kx + alpha sin ky`` of the pairing amplitude."""
    sx, sy = sines(k)
    return sx + env.alpha * sy


def delta(env, k):
    """Superconducting gap."""
    return 4 * (env.t0 + env.tz) * env.f0 * gap_form(env, k)


def energy(env, k, eps_min: float):
    """Quasiparticle energy ``sqrt(xi**2 + delta**2)``."""
    return np.sqrt(xi(env, k, eps_min) ** 2 + delta(env, k) ** 2)


def safe_ratio(numerator, denominator):
    """``numerator / denominator`` with 0 wherever the denominator vanishes."""
    numerator = np.asarray(numerator, dtype=np.float64)
    denominator = np.asarray(denominator, dtype=np.float64)
    out = np.zeros(np.broadcast(numerator, denominator).shape)
    return np.divide(numerator, denominator, out=out, where=denominator != 0)
