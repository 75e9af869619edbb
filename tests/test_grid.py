"""Tests for the concurrent grid-reduction engine.

These tests validate:
- Mean results agree across worker counts (up to merge order).
- Scalar and vectorized evaluation agree.
- Extremum tracking is exact on a grid with a known extremum.
- Histogram binning conserves in-range weight and drops the rest.
- Configuration and evaluator failures are reported, never swallowed.
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from polecalc import (
    ConfigurationError,
    DeltaBinner,
    GridReduction,
    Lattice,
    MaximumTracker,
    MeanAccumulator,
    MinimumTracker,
    average,
    delta_bins,
    maximum,
    minimum,
    square,
)


def _band(k):
    return math.sin(k[0]) ** 2 + 0.3 * math.cos(k[1]) + 0.01 * k[0] * k[1]


def _band_vectorized(k):
    return np.sin(k[:, 0]) ** 2 + 0.3 * np.cos(k[:, 1]) + 0.01 * k[:, 0] * k[:, 1]


def _brute_force_mean(points_per_side):
    axis = np.linspace(-math.pi, math.pi, points_per_side)
    kx, ky = np.meshgrid(axis, axis, indexing="ij")
    return math.fsum((np.sin(kx) ** 2 + 0.3 * np.cos(ky) + 0.01 * kx * ky).ravel()) / points_per_side**2


def test_mean_independent_of_worker_count():
    lattice = square(32)

    results = [
        GridReduction(num_workers, chunk_size=16).reduce(lattice, _band, MeanAccumulator())
        for num_workers in (1, 2, 8)
    ]

    for result in results[1:]:
        assert result == pytest.approx(results[0], rel=1e-13, abs=1e-15)
    assert results[0] == pytest.approx(_brute_force_mean(32), rel=1e-12, abs=1e-14)


@pytest.mark.parametrize("use_numba", [False, True])
def test_vectorized_matches_scalar(use_numba):
    lattice = square(24)
    engine = GridReduction(num_workers=3, chunk_size=50)

    scalar = engine.reduce(lattice, _band, MeanAccumulator())
    vectorized = engine.reduce(lattice, _band_vectorized, MeanAccumulator(use_numba=use_numba), vectorized=True)

    assert vectorized == pytest.approx(scalar, rel=1e-13, abs=1e-15)


def test_vectorized_accepts_plain_iterables():
    points = list(Lattice(6, left=0.0, right=1.0))
    engine = GridReduction(num_workers=2, chunk_size=5)

    result = engine.reduce(points, lambda k: k[:, 0] + k[:, 1], MeanAccumulator(), vectorized=True)

    assert result == pytest.approx(1.0)


@pytest.mark.parametrize("num_workers", [1, 4])
def test_extrema_are_exact(num_workers):
    lattice = Lattice(5, left=0.0, right=1.0)
    engine = GridReduction(num_workers, chunk_size=3)

    def bowl(k):
        return (k[0] - 0.5) ** 2 + (k[1] - 0.25) ** 2

    assert engine.reduce(lattice, bowl, MinimumTracker()) == 0.0
    assert engine.reduce(lattice, bowl, MaximumTracker()) == 0.8125


def test_histogram_conserves_in_range_weight():
    lattice = square(9)
    engine = GridReduction(num_workers=4, chunk_size=4)

    def delta_terms(k):
        return [k[0], 10.0], [1.0, 5.0]

    merged = engine.run(lattice, delta_terms, DeltaBinner(-4.0, 4.0, 16))

    assert merged.points == 81
    assert merged.binned == 81
    assert merged.result().sum() == pytest.approx(81.0)
    # kx takes 9 values, each on 9 points
    assert np.count_nonzero(merged.result()) == 9


def test_every_point_is_visited_once():
    lattice = square(20)
    engine = GridReduction(num_workers=8, chunk_size=7)
    seen = []

    engine.reduce(lattice, lambda k: seen.append(k) or 0.0, MeanAccumulator())

    assert sorted(seen) == sorted(lattice)
    assert sum(stats.points for stats in engine.worker_results) == len(lattice)
    assert len(engine.worker_results) == 8



def test_points_are_generated_while_workers_evaluate():
    produced = []
    produced_at_first_call = []

    def source():
        for i in range(1000):
            produced.append(i)
            yield (float(i),)

    def evaluator(point):
        if not produced_at_first_call:
            produced_at_first_call.append(len(produced))
        return point[0]

    engine = GridReduction(num_workers=2, chunk_size=10)
    mean = engine.reduce(source(), evaluator, MeanAccumulator())

    assert mean == pytest.approx(499.5)
    assert produced_at_first_call[0] < 1000


def test_failure_stops_remaining_workers():
    lattice = square(200)
    calls = []

    def evaluator(point):
        calls.append(point)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return 0.0

    engine = GridReduction(num_workers=2, chunk_size=4)
    with pytest.raises(RuntimeError, match="boom"):
        engine.reduce(lattice, evaluator, MeanAccumulator())

    assert len(calls) < len(lattice)


@pytest.mark.parametrize("num_workers", [0, -1])
def test_zero_workers_is_configuration_error(num_workers):
    with pytest.raises(ConfigurationError):
        GridReduction(num_workers)


def test_bad_chunk_size():
    with pytest.raises(ConfigurationError):
        GridReduction(2, chunk_size=0)


def test_worker_failure_propagates():
    def broken(k):
        if k[0] > 0:
            raise RuntimeError("evaluator failed")
        return 1.0

    with pytest.raises(RuntimeError, match="evaluator failed"):
        GridReduction(num_workers=3, chunk_size=4).reduce(square(8), broken, MeanAccumulator())


def test_vectorized_evaluator_must_return_one_value_per_point():
    with pytest.raises(ConfigurationError):
        GridReduction(num_workers=2, chunk_size=4).reduce(
            square(4), lambda k: np.zeros(1), MeanAccumulator(), vectorized=True
        )


def test_empty_point_source():
    engine = GridReduction(num_workers=2)

    assert math.isnan(engine.reduce([], _band, MeanAccumulator()))
    assert engine.reduce([], _band, MinimumTracker()) == math.inf


def test_convenience_wrappers():
    def cosines(k):
        return math.cos(k[0]) + math.cos(k[1])

    assert average(16, cosines, num_workers=2) == pytest.approx(_cosine_mean(16))
    assert maximum(17, cosines, num_workers=2) == pytest.approx(2.0)
    assert minimum(16, cosines, num_workers=2) == pytest.approx(-2.0)


def _cosine_mean(points_per_side):
    axis = np.linspace(-math.pi, math.pi, points_per_side)
    return 2 * np.cos(axis).mean()


def test_delta_bins_wrapper():
    centers, sums = delta_bins(8, lambda k: ([math.cos(k[0])], [1.0]), 2, -1.5, 1.5, 6)

    assert centers.shape == sums.shape == (6,)
    np.testing.assert_allclose(centers, [-1.25, -0.75, -0.25, 0.25, 0.75, 1.25])
    assert sums.sum() == pytest.approx(64.0)


def test_engine_spectrum_density_integrates_to_one():
    engine = GridReduction(num_workers=3)
    binner = DeltaBinner(-1.5, 1.5, 6)

    spectrum = engine.run(square(8), lambda k: ([math.cos(k[0])], [1.0]), binner)

    assert spectrum.points == 64
    density = spectrum.density()
    assert (density * spectrum.bin_width).sum() == pytest.approx(1.0)
    np.testing.assert_allclose(density, spectrum.result() / (64 * 0.5))
