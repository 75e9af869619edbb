"""Reducers that fold per-point evaluations into one summary result.

This module provides the reduction variants used by the grid-reduction engine:

- **MeanAccumulator**: Kahan-compensated average of scalar evaluations.
- **MinimumTracker** / **MaximumTracker**: running extremum, no summation.
- **DeltaBinner**: discrete approximation of a sum of delta functions. Each
  evaluation is a set of (position, weight) pairs; weights are summed into
  the bin containing their position.

Every reducer is owned by exactly one worker during a pass. ``initialize()``
hands out a fresh, unaliased instance with the same configuration; ``absorb``
updates that instance in place and returns it; ``merge`` builds a new
instance from two finished ones.

Runtime Selection:
```python
reducer = create_reducer("delta", bin_start=-4.0, bin_stop=4.0, num_bins=256)
```
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

import numpy as np

from .errors import ConfigurationError
from .kernels import kahan_merge, kahan_step, select_kernels


class GridReducer(ABC):
    """Abstract base class for grid reducers.

    Parameters
    ----------
    use_numba : bool, default False
        Use the numba-compiled kernels for array absorption

    Attributes
    ----------
    points : int
        Number of grid points absorbed so far
    """

    name = ""

    def __init__(self, use_numba: bool = False):
        self.use_numba = use_numba
        self.points = 0
        self._kahan_sum, self._kahan_bin = select_kernels(use_numba)

    @abstractmethod
    def initialize(self) -> GridReducer:
        """Return a fresh reducer with this one's configuration and no data."""
        pass

    @abstractmethod
    def absorb(self, value) -> GridReducer:
        """Fold the evaluation of one grid point into this reducer."""
        pass

    @abstractmethod
    def absorb_many(self, values) -> GridReducer:
        """Fold the evaluations of a chunk of grid points into this reducer."""
        pass

    @abstractmethod
    def merge(self, other: GridReducer) -> GridReducer:
        """Combine two reducers of the same variant into a new one."""
        pass

    @abstractmethod
    def result(self):
        """Final value of the reduction."""
        pass

    def _check_mergeable(self, other: GridReducer) -> None:
        if type(other) is not type(self):
            raise ConfigurationError(
                f"Cannot merge {type(other).__name__} into {type(self).__name__}"
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(points={self.points})"


class MeanAccumulator(GridReducer):
    """Average of scalar evaluations using Kahan summation.

    ``result()`` is NaN when no points were absorbed.

    Examples
    --------
    >>> accum = MeanAccumulator().initialize()
    >>> for value in (1.0, 2.0, 3.0):
    ...     accum = accum.absorb(value)
    >>> accum.result()
    2.0

    """

    name = "mean"

    def __init__(self, use_numba: bool = False):
        super().__init__(use_numba)
        self.total = 0.0
        self.compensate = 0.0

    def initialize(self) -> MeanAccumulator:
        return MeanAccumulator(use_numba=self.use_numba)

    def absorb(self, value) -> MeanAccumulator:
        self.total, self.compensate = kahan_step(float(value), self.total, self.compensate)
        self.points += 1
        return self

    def absorb_many(self, values) -> MeanAccumulator:
        values = np.ascontiguousarray(values, dtype=np.float64).ravel()
        total, compensate = self._kahan_sum(values, self.total, self.compensate)
        self.total, self.compensate = float(total), float(compensate)
        self.points += values.shape[0]
        return self

    def merge(self, other: MeanAccumulator) -> MeanAccumulator:
        self._check_mergeable(other)
        merged = self.initialize()
        merged.total, merged.compensate = kahan_merge(self.total, self.compensate, other.total, other.compensate)
        merged.points = self.points + other.points
        return merged

    def sum(self) -> float:
        """Compensated sum of all absorbed values."""
        return self.total - self.compensate

    def result(self) -> float:
        if self.points == 0:
            return math.nan
        return self.sum() / self.points


class _ExtremumTracker(GridReducer):
    """Running extremum; subclasses choose the direction."""

    sentinel = math.nan

    def __init__(self, use_numba: bool = False):
        super().__init__(use_numba)
        self.extremum = self.sentinel

    def initialize(self) -> _ExtremumTracker:
        return type(self)(use_numba=self.use_numba)

    @staticmethod
    @abstractmethod
    def _better(candidate: float, current: float) -> bool:
        pass

    @staticmethod
    @abstractmethod
    def _reduce_array(values: np.ndarray) -> float:
        pass

    def absorb(self, value) -> _ExtremumTracker:
        value = float(value)
        if self._better(value, self.extremum):
            self.extremum = value
        self.points += 1
        return self

    def absorb_many(self, values) -> _ExtremumTracker:
        values = np.asarray(values, dtype=np.float64).ravel()
        self.points += values.shape[0]
        # NaN never beats the current extremum, same as absorb()
        values = values[~np.isnan(values)]
        if values.size:
            candidate = float(self._reduce_array(values))
            if self._better(candidate, self.extremum):
                self.extremum = candidate
        return self

    def merge(self, other: _ExtremumTracker) -> _ExtremumTracker:
        self._check_mergeable(other)
        merged = self.initialize()
        merged.extremum = self.extremum
        if self._better(other.extremum, merged.extremum):
            merged.extremum = other.extremum
        merged.points = self.points + other.points
        return merged

    def result(self) -> float:
        """Extremum seen so far (the sentinel if no points were absorbed)."""
        return self.extremum


class MinimumTracker(_ExtremumTracker):
    """Smallest evaluation seen; ``+inf`` before any point is absorbed."""

    name = "minimum"
    sentinel = math.inf

    @staticmethod
    def _better(candidate: float, current: float) -> bool:
        return candidate < current

    @staticmethod
    def _reduce_array(values: np.ndarray) -> float:
        return values.min()


class MaximumTracker(_ExtremumTracker):
    """Largest evaluation seen; ``-inf`` before any point is absorbed."""

    name = "maximum"
    sentinel = -math.inf

    @staticmethod
    def _better(candidate: float, current: float) -> bool:
        return candidate > current

    @staticmethod
    def _reduce_array(values: np.ndarray) -> float:
        return values.max()


class DeltaBinner(GridReducer):
    """Histogram of weighted delta functions over ``[bin_start, bin_stop)``.

    Each grid point evaluates to a pair ``(positions, weights)`` of equal
    length sequences. Every weight is Kahan-added into the bin containing its
    position; positions outside the range are dropped without error.

    Parameters
    ----------
    bin_start : float
        Lower edge of the first bin (included)
    bin_stop : float
        Upper edge of the last bin (excluded)
    num_bins : int
        Number of equal-width bins
    use_numba : bool, default False
        Use the numba-compiled binning kernel

    Attributes
    ----------
    bins : np.ndarray
        Running per-bin sums
    compensates : np.ndarray
        Per-bin Kahan compensation terms
    binned : int
        Number of (position, weight) pairs that landed in a bin

    """

    name = "delta"

    def __init__(self, bin_start: float, bin_stop: float, num_bins: int, use_numba: bool = False):
        super().__init__(use_numba)
        if num_bins < 1:
            raise ConfigurationError(f"DeltaBinner needs at least one bin, got {num_bins}")
        if not bin_stop > bin_start:
            raise ConfigurationError(f"Empty binning range [{bin_start}, {bin_stop})")
        self.bin_start = float(bin_start)
        self.bin_stop = float(bin_stop)
        self.num_bins = int(num_bins)
        self.bins = np.zeros(self.num_bins, dtype=np.float64)
        self.compensates = np.zeros(self.num_bins, dtype=np.float64)
        self.binned = 0

    @property
    def bin_width(self) -> float:
        return (self.bin_stop - self.bin_start) / self.num_bins

    def initialize(self) -> DeltaBinner:
        return DeltaBinner(self.bin_start, self.bin_stop, self.num_bins, use_numba=self.use_numba)

    def _add_pairs(self, positions, weights) -> None:
        positions = np.ascontiguousarray(positions, dtype=np.float64).ravel()
        weights = np.ascontiguousarray(weights, dtype=np.float64).ravel()
        if positions.shape != weights.shape:
            raise ConfigurationError(
                f"Delta terms need matching positions and weights, got {positions.shape} and {weights.shape}"
            )
        self.binned += int(
            self._kahan_bin(self.bins, self.compensates, positions, weights, self.bin_start, self.bin_stop)
        )

    def absorb(self, value) -> DeltaBinner:
        positions, weights = value
        self._add_pairs(positions, weights)
        self.points += 1
        return self

    def absorb_many(self, values) -> DeltaBinner:
        positions, weights = values
        positions = np.asarray(positions, dtype=np.float64)
        self._add_pairs(positions, weights)
        self.points += positions.shape[0] if positions.ndim else 1
        return self

    def merge(self, other: DeltaBinner) -> DeltaBinner:
        self._check_mergeable(other)
        if (other.bin_start, other.bin_stop, other.num_bins) != (self.bin_start, self.bin_stop, self.num_bins):
            raise ConfigurationError("Cannot merge DeltaBinners with different bin layouts")
        merged = self.initialize()
        for i in range(self.num_bins):
            merged.bins[i], merged.compensates[i] = kahan_merge(
                self.bins[i], self.compensates[i], other.bins[i], other.compensates[i]
            )
        merged.points = self.points + other.points
        merged.binned = self.binned + other.binned
        return merged

    def result(self) -> np.ndarray:
        """Compensated per-bin sums."""
        return self.bins - self.compensates

    def bin_centers(self) -> np.ndarray:
        return self.bin_start + (np.arange(self.num_bins) + 0.5) * self.bin_width

    def density(self) -> np.ndarray:
        """Per-bin sums normalized by the number of grid points and the bin width."""
        if self.points == 0:
            return np.full(self.num_bins, math.nan)
        return self.result() / (self.points * self.bin_width)


# Factory function for easy creation
def create_reducer(reducer_name: str = "mean", **kwargs) -> GridReducer:
    """Create a grid reducer by name.

    Parameters
    ----------
    reducer_name : str
        One of "mean", "minimum", "maximum", "delta"
    **kwargs
        Passed to the reducer constructor (``DeltaBinner`` needs
        ``bin_start``, ``bin_stop`` and ``num_bins``)

    Returns
    -------
    GridReducer
        Initialized reducer

    Raises
    ------
    ConfigurationError
        If reducer_name is not recognized
    """
    reducers = {
        "mean": MeanAccumulator,
        "minimum": MinimumTracker,
        "maximum": MaximumTracker,
        "delta": DeltaBinner,
    }

    if reducer_name not in reducers:
        raise ConfigurationError(
            f"Unknown reducer '{reducer_name}'. "
            f"Available reducers: {list(reducers.keys())}"
        )

    return reducers[reducer_name](**kwargs)
