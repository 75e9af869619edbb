"""Data structures for solver configuration and results."""

from __future__ import annotations

from dataclasses import dataclass, field

import pandas as pd


@dataclass
class CascadeConfig:
    """Runtime configuration of one cascade solve."""
    # Grid
    grid_length: int = 0
    num_workers: int = 1
    use_numba: bool = False

    # Cascade
    tolerance: float = 0.0
    max_cycles: int = 0
    max_bisections: int = 0
    equations: list[str] = field(default_factory=list)


@dataclass
class CascadeResults:
    """Outcome of a cascade solve."""
    # Convergence info
    converged: bool = False
    cycles: int = 0
    solve_counts: dict[str, int] = field(default_factory=dict)
    residual_history: list[dict[str, float]] = field(default_factory=list)
    final_residuals: dict[str, float] = field(default_factory=dict)
    # Timings
    wall_time: float = 0.0

    def history_frame(self) -> pd.DataFrame:
        """One row per repeat pass: frontier, cycle and each equation's residual."""
        return pd.DataFrame(self.residual_history)


@dataclass
class PerWorkerResults:
    """Per-worker bookkeeping for one reduction pass."""
    worker: int = 0
    thread_name: str = ""
    chunks: int = 0
    points: int = 0
    compute_time: float = 0.0
