"""Priority-cascaded solver for small systems of self-consistent equations.

Equations are admitted one at a time in priority order. Each time a new
equation is admitted, the whole admitted prefix is re-solved (newest first,
down to priority 0) until every admitted residual is within tolerance, and
only then is the next equation admitted. Equations with lower priority index
are therefore solved most often.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from .datastructures import CascadeConfig, CascadeResults
from .errors import BracketError, ConfigurationError, ConvergenceStallError, MaxIterationsError
from .numerics import convergence_tolerance
from .rootfind import bisect, expand_bracket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Equation:
    """A self-consistent equation for one scalar field of the shared state.

    Parameters
    ----------
    name : str
        Label used in logs, errors and results
    field : str
        Attribute of the state that this equation determines
    residual : Callable[[Any], float]
        Signed error of the equation at the current state (never its
        absolute value: the root finder needs the sign)
    priority : int, default 0
        Position in the cascade; 0 is solved most frequently
    bracket : tuple[float, float], optional
        Fixed bracket for the root finder. Without one, a bracket is grown
        around the field's current value.
    step : float, default 0.1
        Initial half-width of the grown bracket

    """

    name: str
    field: str
    residual: Callable[[Any], float]
    priority: int = 0
    bracket: tuple[float, float] | None = None
    step: float = 0.1

    def abs_error(self, state) -> float:
        return float(self.residual(state))

    def value(self, state) -> float:
        return getattr(state, self.field)

    def apply(self, state, value: float) -> None:
        setattr(state, self.field, value)


class CascadeSolver:
    """Drive a priority-ordered list of equations to simultaneous convergence.

    Parameters
    ----------
    tolerance : float, optional
        Residual magnitude below which an equation counts as solved.
        Defaults to :func:`convergence_tolerance`.
    max_cycles : int, default 200
        Maximum repeat passes per admitted frontier before giving up
    max_bisections : int, default 256
        Iteration cap handed to the root finder
    root_tolerance : float, optional
        Bisection tolerance; defaults to ``tolerance / 16`` so that the
        bisection noise stays well below the cascade tolerance
    max_expansions : int, default 50
        Bracket-growing attempts for equations without a fixed bracket

    Attributes
    ----------
    solve_counts : dict[str, int]
        Number of single-equation solves performed, by equation name

    Examples
    --------
    >>> solver = CascadeSolver(tolerance=1e-10)
    >>> results = solver.solve([eq_x, eq_y], state)
    >>> results.converged
    True

    """

    def __init__(
        self,
        tolerance: float | None = None,
        max_cycles: int = 200,
        max_bisections: int = 256,
        root_tolerance: float | None = None,
        max_expansions: int = 50,
    ):
        self.tolerance = convergence_tolerance() if tolerance is None else tolerance
        if not self.tolerance > 0:
            raise ConfigurationError(f"tolerance must be positive, got {self.tolerance}")
        if max_cycles < 1:
            raise ConfigurationError(f"max_cycles must be at least 1, got {max_cycles}")
        self.max_cycles = max_cycles
        self.max_bisections = max_bisections
        self.root_tolerance = self.tolerance / 16 if root_tolerance is None else root_tolerance
        self.max_expansions = max_expansions
        self.solve_counts: dict[str, int] = {}

    def solve_one(self, equation: Equation, state) -> float:
        """Root-find one equation and write the root into the state.

        On failure the field is restored to the value it had on entry and the
        root finder's error is re-raised with the equation name attached.
        """
        start = equation.value(state)

        def residual(x: float) -> float:
            equation.apply(state, x)
            return equation.abs_error(state)

        try:
            if equation.bracket is not None:
                low, high = equation.bracket
            else:
                low, high = expand_bracket(residual, start, equation.step, self.max_expansions)
            root = bisect(residual, low, high, self.root_tolerance, self.max_bisections)
        except BracketError as err:
            equation.apply(state, start)
            raise BracketError(err.low, err.high, err.f_low, err.f_high, equation=equation.name) from err
        except MaxIterationsError as err:
            equation.apply(state, start)
            raise MaxIterationsError(f"Equation '{equation.name}': {err.reason}", err.residuals) from err

        equation.apply(state, root)
        self.solve_counts[equation.name] = self.solve_counts.get(equation.name, 0) + 1
        return root

    def solve(self, equations: Sequence[Equation], state) -> CascadeResults:
        """Run the cascade over ``equations`` and return the convergence record.

        Raises
        ------
        ConvergenceStallError
            If a frontier is not converged within ``max_cycles`` passes
        BracketError, MaxIterationsError
            Propagated from :meth:`solve_one`
        """
        ordered = self._order(equations)
        self.solve_counts = {eq.name: 0 for eq in ordered}
        history: list[dict[str, float]] = []
        total_cycles = 0
        t_start = time.perf_counter()

        for frontier in range(len(ordered)):
            admitted = ordered[: frontier + 1]
            logger.info("Admitting equation '%s' (frontier %d)", admitted[-1].name, frontier)
            for cycle in range(1, self.max_cycles + 1):
                for equation in reversed(admitted):
                    self.solve_one(equation, state)
                residuals = {eq.name: eq.abs_error(state) for eq in admitted}
                history.append({"frontier": frontier, "cycle": cycle, **residuals})
                total_cycles += 1
                worst = max(abs(value) for value in residuals.values())
                logger.debug("frontier %d cycle %d: max residual %.3e", frontier, cycle, worst)
                if worst < self.tolerance:
                    break
            else:
                raise ConvergenceStallError(
                    f"Cascade stalled at frontier {frontier} after {self.max_cycles} cycles",
                    residuals,
                )

        final_residuals = {eq.name: eq.abs_error(state) for eq in ordered}
        elapsed_time = time.perf_counter() - t_start
        logger.info("Cascade converged after %d cycles (%.3f s)", total_cycles, elapsed_time)

        return CascadeResults(
            converged=True,
            cycles=total_cycles,
            solve_counts=dict(self.solve_counts),
            residual_history=history,
            final_residuals=final_residuals,
            wall_time=elapsed_time,
        )

    def config(self, equations: Sequence[Equation], **kwargs) -> CascadeConfig:
        """Describe this solver's settings for a run over ``equations``."""
        return CascadeConfig(
            tolerance=self.tolerance,
            max_cycles=self.max_cycles,
            max_bisections=self.max_bisections,
            equations=[eq.name for eq in self._order(equations)],
            **kwargs,
        )

    @staticmethod
    def _order(equations: Sequence[Equation]) -> list[Equation]:
        ordered = sorted(equations, key=lambda eq: eq.priority)
        priorities = [eq.priority for eq in ordered]
        if len(set(priorities)) != len(priorities):
            raise ConfigurationError(f"Equation priorities must be distinct, got {priorities}")
        names = [eq.name for eq in ordered]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Equation names must be distinct, got {names}")
        return ordered
