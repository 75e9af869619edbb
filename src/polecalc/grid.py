"""Concurrent map-reduce over a finite lattice of points.

The point source is cut into chunks on demand: workers share one lock-guarded
chunk stream, so point generation overlaps evaluation and only one chunk per
worker is held in memory. Each worker thread owns a private reducer obtained
from ``reducer.initialize()``, pulls chunks until it sees the end-of-work
sentinel, evaluates every point and absorbs the result. Once all workers have
joined, their reducers are merged in the calling thread and the merged result
is returned.

Results are independent of the worker count up to floating-point merge
order; they are not bit-identical across different worker counts.
"""

from __future__ import annotations

import functools
import itertools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Iterator

import numpy as np

from .datastructures import PerWorkerResults
from .errors import ConfigurationError
from .lattice import square
from .reducers import DeltaBinner, GridReducer, MaximumTracker, MeanAccumulator, MinimumTracker

logger = logging.getLogger(__name__)

_DONE = object()


class GridReduction:
    """Reduction engine with a fixed-size worker pool.

    Parameters
    ----------
    num_workers : int, default 1
        Number of worker threads, at least 1
    chunk_size : int, default 256
        Number of points handed to a worker per pull from the shared chunk stream
    use_numba : bool, default False
        Passed to reducers built by the convenience wrappers

    Attributes
    ----------
    worker_results : list[PerWorkerResults]
        Per-worker bookkeeping from the most recent pass

    Examples
    --------
    >>> engine = GridReduction(num_workers=4)
    >>> mean = engine.reduce(square(64), lambda k: k[0] ** 2, MeanAccumulator())

    """

    def __init__(self, num_workers: int = 1, chunk_size: int = 256, use_numba: bool = False):
        if num_workers < 1:
            raise ConfigurationError(f"GridReduction needs at least one worker, got {num_workers}")
        if chunk_size < 1:
            raise ConfigurationError(f"chunk size must be positive, got {chunk_size}")
        self.num_workers = int(num_workers)
        self.chunk_size = int(chunk_size)
        self.use_numba = use_numba
        self.worker_results: list[PerWorkerResults] = []

    def reduce(
        self,
        points: Iterable,
        evaluator: Callable,
        reducer: GridReducer,
        vectorized: bool = False,
    ):
        """Evaluate every point and return the merged reducer's result.

        Parameters
        ----------
        points : Iterable
            Point source; iterated once per call
        evaluator : Callable
            Per-point function. With ``vectorized=True`` it receives an
            ``(m, dimension)`` array and must return one evaluation per row.
            Evaluators must treat any shared state as read-only.
        reducer : GridReducer
            Prototype reducer; each worker gets ``reducer.initialize()``
        vectorized : bool, default False
            Evaluate whole chunks at once and use ``absorb_many``

        Returns
        -------
        object
            ``merged.result()``

        """
        return self.run(points, evaluator, reducer, vectorized=vectorized).result()

    def run(
        self,
        points: Iterable,
        evaluator: Callable,
        reducer: GridReducer,
        vectorized: bool = False,
    ) -> GridReducer:
        """Same as :meth:`reduce` but return the merged reducer itself."""
        feed = _ChunkFeed(self._chunks(points, vectorized))

        t_start = time.perf_counter()
        with ThreadPoolExecutor(max_workers=self.num_workers, thread_name_prefix="grid-worker") as pool:
            futures = [
                pool.submit(self._work, worker, feed, evaluator, reducer, vectorized)
                for worker in range(self.num_workers)
            ]
            # join barrier; re-raises the first worker failure
            outcomes = [future.result() for future in futures]
        elapsed_time = time.perf_counter() - t_start

        locals_ = [local for local, _ in outcomes]
        self.worker_results = [stats for _, stats in outcomes]
        merged = functools.reduce(lambda left, right: left.merge(right), locals_, reducer.initialize())

        if merged.points != feed.issued:
            raise ConfigurationError(
                f"Reduction absorbed {merged.points} evaluations for {feed.issued} points"
            )
        logger.debug(
            "%s over %d points with %d workers in %.3f s",
            type(reducer).__name__,
            feed.issued,
            self.num_workers,
            elapsed_time,
        )
        return merged

    def _chunks(self, points: Iterable, vectorized: bool):
        if vectorized and hasattr(points, "array_chunks"):
            yield from points.array_chunks(self.chunk_size)
            return
        iterator = iter(points)
        while True:
            chunk = list(itertools.islice(iterator, self.chunk_size))
            if not chunk:
                return
            yield np.asarray(chunk, dtype=np.float64) if vectorized else chunk

    def _work(self, worker, feed, evaluator, reducer, vectorized):
        local = reducer.initialize()
        compute_time = 0.0
        chunks = 0
        try:
            while True:
                chunk = feed.get()
                if chunk is _DONE:
                    break
                t0 = time.perf_counter()
                if vectorized:
                    before = local.points
                    local = local.absorb_many(evaluator(chunk))
                    if local.points - before != len(chunk):
                        raise ConfigurationError(
                            f"Vectorized evaluator returned {local.points - before} values for {len(chunk)} points"
                        )
                else:
                    for point in chunk:
                        local = local.absorb(evaluator(point))
                compute_time += time.perf_counter() - t0
                chunks += 1
        except BaseException:
            feed.stop()
            raise

        stats = PerWorkerResults(
            worker=worker,
            thread_name=threading.current_thread().name,
            chunks=chunks,
            points=local.points,
            compute_time=compute_time,
        )
        return local, stats


class _ChunkFeed:
    """Shared work queue over a lazily generated chunk stream.

    Chunks are produced on demand by whichever worker asks next, so at most
    one chunk per worker is alive at a time. After :meth:`stop` every caller
    gets the end-of-work sentinel.
    """

    def __init__(self, chunks: Iterator):
        self._chunks = chunks
        self._lock = threading.Lock()
        self._stopped = False
        self.issued = 0

    def get(self):
        with self._lock:
            if self._stopped:
                return _DONE
            chunk = next(self._chunks, _DONE)
            if chunk is _DONE:
                self._stopped = True
            else:
                self.issued += len(chunk)
            return chunk

    def stop(self) -> None:
        with self._lock:
            self._stopped = True


def average(points_per_side: int, worker: Callable, num_workers: int = 1, use_numba: bool = False) -> float:
    """Average of ``worker`` over the square Brillouin-zone lattice."""
    engine = GridReduction(num_workers, use_numba=use_numba)
    return engine.reduce(square(points_per_side), worker, MeanAccumulator(use_numba=use_numba))


def minimum(points_per_side: int, worker: Callable, num_workers: int = 1) -> float:
    """Minimum of ``worker`` over the square Brillouin-zone lattice."""
    engine = GridReduction(num_workers)
    return engine.reduce(square(points_per_side), worker, MinimumTracker())


def maximum(points_per_side: int, worker: Callable, num_workers: int = 1) -> float:
    """Maximum of ``worker`` over the square Brillouin-zone lattice."""
    engine = GridReduction(num_workers)
    return engine.reduce(square(points_per_side), worker, MaximumTracker())


def delta_bins(
    points_per_side: int,
    delta_terms: Callable,
    num_workers: int,
    bin_start: float,
    bin_stop: float,
    num_bins: int,
    use_numba: bool = False,
) -> tuple[np.ndarray, np.ndarray]:
    """Bin the delta terms of every Brillouin-zone point.

    Returns
    -------
    tuple[np.ndarray, np.ndarray]
        Bin centers and compensated per-bin sums

    """
    engine = GridReduction(num_workers, use_numba=use_numba)
    binner = DeltaBinner(bin_start, bin_stop, num_bins, use_numba=use_numba)
    merged = engine.run(square(points_per_side), delta_terms, binner)
    return merged.bin_centers(), merged.result()
