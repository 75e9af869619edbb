"""Self-consistent pole calculation: grid reductions and cascaded solver."""

from .cascade import CascadeSolver, Equation
from .datastructures import CascadeConfig, CascadeResults, PerWorkerResults
from .environment import Environment
from .errors import BracketError, ConfigurationError, ConvergenceStallError, MaxIterationsError, PolecalcError
from .grid import GridReduction, average, delta_bins, maximum, minimum
from .kernels import kahan_merge, kahan_step, kahan_sum_numba, kahan_sum_python
from .lattice import Lattice, make_range, square
from .numerics import convergence_tolerance, fuzzier_equal, fuzzy_equal, machine_epsilon
from .reducers import DeltaBinner, GridReducer, MaximumTracker, MeanAccumulator, MinimumTracker, create_reducer
from .rootfind import bisect, expand_bracket, find_brackets
from .zerotemp import zero_temp_equations

__all__ = [
    "CascadeSolver",
    "Equation",
    "CascadeConfig",
    "CascadeResults",
    "PerWorkerResults",
    "Environment",
    "PolecalcError",
    "ConfigurationError",
    "BracketError",
    "ConvergenceStallError",
    "MaxIterationsError",
    "GridReduction",
    "average",
    "minimum",
    "maximum",
    "delta_bins",
    "kahan_step",
    "kahan_merge",
    "kahan_sum_python",
    "kahan_sum_numba",
    "Lattice",
    "make_range",
    "square",
    "machine_epsilon",
    "fuzzy_equal",
    "fuzzier_equal",
    "convergence_tolerance",
    "GridReducer",
    "MeanAccumulator",
    "MinimumTracker",
    "MaximumTracker",
    "DeltaBinner",
    "create_reducer",
    "bisect",
    "expand_bracket",
    "find_brackets",
    "zero_temp_equations",
]
