"""Tests for the shared parameter state: cache invalidation and persistence."""

from __future__ import annotations

import json
import logging
import math
import stat

import numpy as np
import pytest

from polecalc import ConfigurationError, Environment
from polecalc import physics
from polecalc.lattice import make_range


@pytest.fixture
def counting_epsilon_min(monkeypatch):
    calls = []

    def fake(env):
        calls.append(env.d1)
        return -10.0 * env.d1

    monkeypatch.setattr(physics, "epsilon_min", fake)
    return calls


def test_epsilon_min_cached_until_d1_changes(counting_epsilon_min):
    env = Environment(d1=0.2)

    assert env.epsilon_min == -2.0
    assert env.epsilon_min == -2.0
    assert counting_epsilon_min == [0.2]

    env.mu = 0.7
    env.f0 = 0.3
    assert env.epsilon_min == -2.0
    assert counting_epsilon_min == [0.2]

    env.d1 = 0.5
    assert env.epsilon_min == -5.0
    assert counting_epsilon_min == [0.2, 0.5]


@pytest.mark.parametrize("name, value", [("t0", 2.0), ("x", 0.5), ("grid_length", 32)])
def test_epsilon_min_recomputed_after_dispersion_change(name, value):
    env = Environment(grid_length=16, d1=0.3)
    env.epsilon_min

    setattr(env, name, value)

    assert env.epsilon_min == physics.epsilon_min(env)


def test_epsilon_min_kept_when_unrelated_fields_change(counting_epsilon_min):
    env = Environment(d1=0.2)
    env.epsilon_min

    env.alpha = 1
    env.tz = 0.3
    env.num_procs = 4
    env.epsilon_min

    assert counting_epsilon_min == [0.2]


def test_epsilon_min_matches_brute_force():
    env = Environment(grid_length=16, d1=0.3, num_procs=3)

    axis = make_range(-math.pi, math.pi, 16)
    kx, ky = np.meshgrid(axis, axis, indexing="ij")
    expected = physics.epsilon(env, np.stack([kx, ky], axis=-1)).min()

    assert env.epsilon_min == pytest.approx(expected, abs=1e-14)


def test_initialize_copies_initial_values():
    env = Environment(init_d1=0.15, init_mu=-0.2, init_f0=0.05, num_procs=0)

    env.initialize()

    assert (env.d1, env.mu, env.f0) == (0.15, -0.2, 0.05)
    assert env.num_procs == 1


@pytest.mark.parametrize("overrides", [{"grid_length": 1}, {"alpha": 0}])
def test_initialize_validates(overrides):
    with pytest.raises(ConfigurationError):
        Environment(**overrides).initialize()


def test_derived_quantities():
    env = Environment(t0=2.0, x=0.25, delta_s=3.0, cs=4.0)

    assert env.th == 1.5
    assert env.lambda_ == 5.0
    assert env.tolerance == pytest.approx(2.0**-53 * env.tolerance_scale)


def test_json_round_trip():
    env = Environment(grid_length=32, num_procs=4, alpha=1, x=0.12, d1=0.05, mu=-0.3, f0=0.02, use_numba=True)

    restored = Environment.from_json(env.to_json())

    assert restored == env
    assert json.loads(str(env)) == env.to_dict()
    assert Environment.from_string(env.to_json()) == env


def test_to_dict_has_no_cache_fields():
    record = Environment().to_dict()

    assert "_epsilon_min" not in record
    assert "_epsilon_min_dirty" not in record
    assert "grid_length" in record and "f0" in record


def test_integer_fields_are_coerced():
    env = Environment.from_dict({"grid_length": 32.0, "num_procs": 4.0, "alpha": -1.0, "im_gc0_bins": 512})

    assert env.grid_length == 32 and type(env.grid_length) is int
    assert env.num_procs == 4 and type(env.num_procs) is int
    assert env.alpha == -1 and type(env.alpha) is int
    assert env.im_gc0_bins == 512


def test_float_fields_accept_integers():
    env = Environment.from_dict({"t0": 1, "x": 0})

    assert type(env.t0) is float and env.t0 == 1.0
    assert type(env.x) is float


@pytest.mark.parametrize(
    "record",
    [
        {"grid_length": 32.5},
        {"grid_length": -1},
        {"grid_length": 2**32},
        {"num_procs": 70000},
        {"alpha": 200},
        {"alpha": True},
        {"x": "0.1"},
        {"x": None},
        {"use_numba": 1},
    ],
)
def test_malformed_fields_rejected(record):
    with pytest.raises(ConfigurationError):
        Environment.from_dict(record)


def test_unknown_fields_rejected():
    with pytest.raises(ConfigurationError, match="EpsilonMin"):
        Environment.from_dict({"grid_length": 8, "EpsilonMin": -1.0})


def test_missing_fields_use_defaults(caplog):
    with caplog.at_level(logging.WARNING, logger="polecalc.environment"):
        env = Environment.from_dict({"grid_length": 8})

    assert env.grid_length == 8
    assert env.t0 == Environment().t0
    assert "missing" in caplog.text


def test_malformed_json():
    with pytest.raises(ConfigurationError):
        Environment.from_json("{not json")
    with pytest.raises(ConfigurationError):
        Environment.from_json("[1, 2, 3]")


def test_file_round_trip(tmp_path):
    env = Environment(grid_length=12, d1=0.01)
    path = tmp_path / "env.json"

    written = env.write_to_file(path)

    assert written == path
    assert Environment.from_file(path) == env
    assert [p.name for p in tmp_path.iterdir()] == ["env.json"]


def test_write_overwrites_existing_file(tmp_path):
    path = tmp_path / "env.json"
    Environment(grid_length=12).write_to_file(path)

    Environment(grid_length=24).write_to_file(path)

    assert Environment.from_file(path).grid_length == 24


def test_write_failure_is_reported(tmp_path):
    with pytest.raises(OSError):
        Environment().write_to_file(tmp_path / "missing" / "env.json")


def test_read_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Environment.from_file(tmp_path / "nope.json")


def test_zero_temp_errors_summary():
    env = Environment(grid_length=8)
    env.initialize()

    summary = env.zero_temp_errors()

    assert summary.startswith("errors - d1: ")
    assert "mu: " in summary and "f0: " in summary


def test_written_file_has_default_permissions(tmp_path):
    reference = tmp_path / "plain.json"
    reference.write_text("{}")
    path = tmp_path / "env.json"

    Environment().write_to_file(path)

    assert stat.S_IMODE(path.stat().st_mode) == stat.S_IMODE(reference.stat().st_mode)
