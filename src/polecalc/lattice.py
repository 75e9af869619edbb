"""Point sources for grid reductions.

This module provides evenly spaced ranges and the finite lattices (typically
the 2D Brillouin zone) that the grid-reduction engine visits.
"""

from __future__ import annotations

import itertools
import math
from typing import Iterator

import numpy as np

from .errors import ConfigurationError


def make_range(left: float, right: float, num: int) -> np.ndarray:
    """Make ``num`` evenly spaced points between left and right (inclusive).

    Parameters
    ----------
    left : float
        First point
    right : float
        Last point
    num : int
        Number of points, at least 2

    Returns
    -------
    np.ndarray
        Points ``left + i * (right - left) / (num - 1)`` for ``i < num``

    Raises
    ------
    ConfigurationError
        If ``num < 2``

    Examples
    --------
    >>> make_range(0.0, 1.0, 5)
    array([0.  , 0.25, 0.5 , 0.75, 1.  ])

    """
    if num < 2:
        raise ConfigurationError(f"make_range needs at least 2 points, got {num}")
    step = (right - left) / (num - 1)
    return left + np.arange(num, dtype=np.float64) * step


class Lattice:
    """Hypercubic lattice of points covering ``[left, right]`` on every axis.

    The lattice is restartable: every iteration yields the same points in the
    same (row-major) order.

    Parameters
    ----------
    points_per_side : int
        Number of points along each axis, at least 2
    dimension : int, default 2
        Number of axes
    left, right : float, default -pi, pi
        Extent along every axis (both ends included)

    Examples
    --------
    >>> lattice = Lattice(4)
    >>> len(lattice)
    16
    >>> first = next(iter(lattice))

    """

    def __init__(self, points_per_side: int, dimension: int = 2, left: float = -math.pi, right: float = math.pi):
        if dimension < 1:
            raise ConfigurationError(f"lattice dimension must be positive, got {dimension}")
        self.points_per_side = int(points_per_side)
        self.dimension = int(dimension)
        self.left = left
        self.right = right
        self.axis = make_range(left, right, self.points_per_side)

    def __len__(self) -> int:
        return self.points_per_side**self.dimension

    def __iter__(self) -> Iterator[tuple[float, ...]]:
        axis = [float(v) for v in self.axis]
        return itertools.product(axis, repeat=self.dimension)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(points_per_side={self.points_per_side}, "
            f"dimension={self.dimension}, left={self.left}, right={self.right})"
        )

    def chunks(self, chunk_size: int) -> Iterator[list[tuple[float, ...]]]:
        """Yield consecutive lists of at most ``chunk_size`` points."""
        if chunk_size < 1:
            raise ConfigurationError(f"chunk size must be positive, got {chunk_size}")
        points = iter(self)
        while True:
            chunk = list(itertools.islice(points, chunk_size))
            if not chunk:
                return
            yield chunk

    def array_chunks(self, chunk_size: int) -> Iterator[np.ndarray]:
        """Yield consecutive ``(m, dimension)`` arrays of at most ``chunk_size`` points."""
        for chunk in self.chunks(chunk_size):
            yield np.asarray(chunk, dtype=np.float64)


def square(points_per_side: int) -> Lattice:
    """Square Brillouin-zone lattice ``[-pi, pi]^2``."""
    return Lattice(points_per_side, dimension=2)
