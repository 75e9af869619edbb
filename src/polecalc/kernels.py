"""Compensated-summation kernels for the grid reducers.

This module contains the summation step functions used by the reducer
implementations. They are pure functions with no class dependencies, so each
array kernel is also available as a numba-compiled twin (``*_numba``).
Neither version may be compiled with ``fastmath``: reassociation would cancel
the compensation term.
"""

from __future__ import annotations

import numpy as np
from numba import njit


def kahan_step(value: float, total: float, compensate: float) -> tuple[float, float]:
    """Add one value to a running compensated sum.

    Parameters
    ----------
    value : float
        New value to add
    total : float
        Running sum so far
    compensate : float
        Running compensation (rounding error lost by previous additions)

    Returns
    -------
    tuple[float, float]
        Updated ``(total, compensate)``. The represented sum is
        ``total - compensate``.

    """
    y = value - compensate
    new_total = total + y
    new_compensate = (new_total - total) - y
    return new_total, new_compensate


def kahan_merge(
    total_a: float,
    compensate_a: float,
    total_b: float,
    compensate_b: float,
) -> tuple[float, float]:
    """Merge two compensated sums into one.

    The second sum enters as its total followed by its negated compensation,
    so the low-order bits carried by either side survive.
    """
    total, compensate = kahan_step(total_b, total_a, compensate_a)
    return kahan_step(-compensate_b, total, compensate)


def kahan_sum_python(values: np.ndarray, total: float, compensate: float) -> tuple[float, float]:
    """Fold every element of ``values`` into ``(total, compensate)``.

    Parameters
    ----------
    values : np.ndarray
        1-D float64 array of values to add
    total : float
        Running sum so far
    compensate : float
        Running compensation

    Returns
    -------
    tuple[float, float]
        Updated ``(total, compensate)``

    """
    for i in range(values.shape[0]):
        y = values[i] - compensate
        t = total + y
        compensate = (t - total) - y
        total = t
    return total, compensate


def kahan_bin_python(
    bins: np.ndarray,
    compensates: np.ndarray,
    positions: np.ndarray,
    weights: np.ndarray,
    bin_start: float,
    bin_stop: float,
) -> int:
    """Add each weight into the bin containing its position.

    Bins split ``[bin_start, bin_stop)`` into ``len(bins)`` equal pieces.
    ``bins`` and ``compensates`` are updated in place. Positions outside the
    range (or NaN) are skipped.

    Parameters
    ----------
    bins : np.ndarray
        Per-bin running sums, shape (num_bins,)
    compensates : np.ndarray
        Per-bin compensation terms, shape (num_bins,)
    positions : np.ndarray
        1-D array of positions
    weights : np.ndarray
        1-D array of weights, same length as ``positions``
    bin_start, bin_stop : float
        Half-open binning range

    Returns
    -------
    int
        Number of (position, weight) pairs that landed in a bin

    """
    num_bins = bins.shape[0]
    width = (bin_stop - bin_start) / num_bins
    binned = 0
    for i in range(positions.shape[0]):
        pos = positions[i]
        if not (bin_start <= pos < bin_stop):
            continue
        idx = int((pos - bin_start) / width)
        # rounding can push a position just below bin_stop past the last edge
        if idx >= num_bins:
            idx = num_bins - 1
        y = weights[i] - compensates[idx]
        t = bins[idx] + y
        compensates[idx] = (t - bins[idx]) - y
        bins[idx] = t
        binned += 1
    return binned


kahan_sum_numba = njit(kahan_sum_python, cache=True)
kahan_bin_numba = njit(kahan_bin_python, cache=True)


def select_kernels(use_numba: bool):
    """Return the ``(kahan_sum, kahan_bin)`` pair for the requested backend."""
    if use_numba:
        return kahan_sum_numba, kahan_bin_numba
    return kahan_sum_python, kahan_bin_python
