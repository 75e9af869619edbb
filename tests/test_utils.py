"""Tests for the CLI, I/O and plotting helpers."""

from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import pandas as pd
import pytest

from polecalc import CascadeConfig, CascadeResults, Environment
from utils import (
    apply_options,
    create_parser,
    get_experiment_name,
    load_simulation_data,
    save_run,
    save_simulation_data,
)
from utils.plotting import plot_bins, plot_residual_history


def test_parser_defaults_leave_environment_alone():
    options = create_parser().parse_args([])
    env = Environment()

    apply_options(env, options)

    assert env == Environment()
    assert options.verbose is False


def test_parser_overrides():
    options = create_parser().parse_args(
        ["--config", "env.json", "-N", "48", "--workers", "6", "--max-cycles", "9", "--no-numba", "-v"]
    )
    env = Environment(use_numba=True)

    apply_options(env, options)

    assert options.config == "env.json"
    assert (env.grid_length, env.num_procs, env.max_cycles, env.use_numba) == (48, 6, 9, False)
    assert options.verbose is True


def test_save_and_load_pickle(tmp_path):
    df = pd.DataFrame({"frontier": [0, 1], "cycle": [1, 1], "x": [1e-3, 2e-12]})

    save_simulation_data(df, tmp_path / "run_history.pkl", format="pickle")
    loaded = load_simulation_data(tmp_path, "run_history")

    pd.testing.assert_frame_equal(loaded, df)


def test_load_missing_data(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_simulation_data(tmp_path, "absent")


def test_save_unsupported_format(tmp_path):
    with pytest.raises(ValueError):
        save_simulation_data(pd.DataFrame(), tmp_path / "x.csv", format="csv")


def test_experiment_name(tmp_path):
    script = tmp_path / "Experiments" / "zerotemp" / "compute.py"

    assert get_experiment_name(script) == "zerotemp"
    with pytest.raises(ValueError):
        get_experiment_name(tmp_path / "compute.py")


def test_plot_residual_history():
    results = CascadeResults(
        residual_history=[
            {"frontier": 0, "cycle": 1, "x": 1e-12},
            {"frontier": 1, "cycle": 1, "x": 1e-3, "y": 0.5},
            {"frontier": 1, "cycle": 2, "x": 1e-12, "y": 1e-11},
        ]
    )

    fig = plot_residual_history(results.history_frame())

    ax = fig.axes[0]
    assert [line.get_label() for line in ax.get_lines()[:2]] == ["x", "y"]
    assert ax.get_xlabel() == "Cascade pass"


def test_plot_bins():
    fig = plot_bins([0.25, 0.75], [1.0, 3.0], label="DOS")

    assert fig.axes[0].get_legend() is not None


def test_save_run_writes_all_artifacts(tmp_path):
    env = Environment(grid_length=8, d1=0.02)
    config = CascadeConfig(grid_length=8, tolerance=1e-10, max_cycles=5, equations=["d1", "mu"])
    results = CascadeResults(residual_history=[{"frontier": 0, "cycle": 1, "d1": 1e-12}])

    written = save_run(tmp_path / "run", "demo", env, config, results)

    assert sorted(p.name for p in (tmp_path / "run").iterdir()) == [
        "demo_config.parquet",
        "demo_env.json",
        "demo_history.parquet",
    ]
    assert Environment.from_file(written["env"]) == env
    assert load_simulation_data(tmp_path / "run", "demo_config")["equations"].iloc[0] == "d1,mu"
    assert list(load_simulation_data(tmp_path / "run", "demo_history").columns) == ["frontier", "cycle", "d1"]
