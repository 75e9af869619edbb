"""Zero-temperature self-consistent equations for ``d1``, ``mu`` and ``f0``.

Each residual is a signed error: zero at the self-consistent solution. The
grid averages run vectorized through the reduction engine with the
Environment treated as read-only; ``epsilon_min`` is read (and, if stale,
recomputed) before the pass starts.
"""

from __future__ import annotations

from .cascade import Equation
from .grid import GridReduction
from .lattice import square
from .physics import energy, gap_form, safe_ratio, sines, xi
from .reducers import MeanAccumulator


def _average(env, term) -> float:
    engine = GridReduction(env.num_procs, use_numba=env.use_numba)
    return engine.reduce(square(env.grid_length), term, MeanAccumulator(use_numba=env.use_numba), vectorized=True)


def d1_abs_error(env) -> float:
    eps_min = env.epsilon_min

    def term(k):
        sx, sy = sines(k)
        return sx * sy * (1 - safe_ratio(xi(env, k, eps_min), energy(env, k, eps_min)))

    return env.d1 - _average(env, term)


def mu_abs_error(env) -> float:
    eps_min = env.epsilon_min

    def term(k):
        return 0.5 * (1 - safe_ratio(xi(env, k, eps_min), energy(env, k, eps_min)))

    return env.x - _average(env, term)


def f0_abs_error(env) -> float:
    eps_min = env.epsilon_min

    def term(k):
        return safe_ratio(gap_form(env, k) ** 2, energy(env, k, eps_min))

    return 1 - 2 * (env.t0 + env.tz) * _average(env, term)


def zero_temp_equations(step: float = 0.05) -> list[Equation]:
    """The zero-temperature system in cascade order: d1, then mu, then f0."""
    return [
        Equation("d1", "d1", d1_abs_error, priority=0, step=step),
        Equation("mu", "mu", mu_abs_error, priority=1, step=step),
        Equation("f0", "f0", f0_abs_error, priority=2, step=step),
    ]
