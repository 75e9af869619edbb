"""Loading and saving solver runs under ``data/<experiment>/``.

A run with base name ``zerotemp_N64`` is stored as three files:

* ``zerotemp_N64_env.json``: the solved Environment
* ``zerotemp_N64_config.parquet``: one row of solver settings
* ``zerotemp_N64_history.parquet``: one row per cascade pass
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Literal

import pandas as pd

logger = logging.getLogger(__name__)

Format = Literal["parquet", "pickle"]

_SUFFIXES = {"parquet": ".parquet", "pickle": ".pkl"}
_READERS = {"parquet": pd.read_parquet, "pickle": pd.read_pickle}


def load_simulation_data(data_dir: Path | str, filename_base: str, prefer: Format = "parquet") -> pd.DataFrame:
    """Read ``<filename_base>.parquet`` or ``.pkl`` from ``data_dir``.

    The preferred format is tried first; the other one is used if only it
    exists.

    Raises
    ------
    FileNotFoundError
        If neither file exists
    """
    data_dir = Path(data_dir)
    order = [prefer] + [fmt for fmt in _SUFFIXES if fmt != prefer]

    for fmt in order:
        path = data_dir / f"{filename_base}{_SUFFIXES[fmt]}"
        if path.exists():
            logger.info("Loading %s data: %s", fmt, path)
            return _READERS[fmt](path)

    raise FileNotFoundError(
        f"No dataset found at {data_dir / filename_base}.{{parquet,pkl}}. "
        "Run the corresponding compute script first."
    )


def save_simulation_data(df: pd.DataFrame, output_path: Path | str, format: Format = "parquet") -> Path:
    """Write ``df`` to ``output_path`` and return the path."""
    output_path = Path(output_path)

    if format == "parquet":
        df.to_parquet(output_path, index=False)
    elif format == "pickle":
        df.to_pickle(output_path)
    else:
        raise ValueError(f"Unsupported format: {format}")

    logger.info("Saved %s data -> %s %s", format, output_path, df.shape)
    return output_path


def config_frame(config) -> pd.DataFrame:
    """One-row frame of a ``CascadeConfig``; the equation list is joined with commas."""
    record = asdict(config)
    record["equations"] = ",".join(record["equations"])
    return pd.DataFrame([record])


def save_run(data_dir: Path | str, base_name: str, env, config, results) -> dict[str, Path]:
    """Persist the solved Environment, solver settings and convergence history.

    Returns
    -------
    dict[str, Path]
        Written paths keyed by ``"env"``, ``"config"`` and ``"history"``
    """
    data_dir = ensure_output_dir(data_dir)
    return {
        "env": env.write_to_file(data_dir / f"{base_name}_env.json"),
        "config": save_simulation_data(config_frame(config), data_dir / f"{base_name}_config.parquet"),
        "history": save_simulation_data(results.history_frame(), data_dir / f"{base_name}_history.parquet"),
    }


def ensure_output_dir(path: Path | str) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_repo_root() -> Path:
    """Nearest ancestor of this package that holds ``pyproject.toml``."""
    here = Path(__file__).resolve().parent
    for parent in [here, *here.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    # src/utils -> repo root
    return here.parent.parent


def get_experiment_name(caller_file: Path | str | None = None) -> str:
    """Experiment name from a script path, e.g. ``Experiments/zerotemp/x.py`` -> ``"zerotemp"``.

    Without ``caller_file`` the script two frames up the stack is used, so that
    :func:`get_data_dir` and :func:`get_figures_dir` resolve their caller.

    Raises
    ------
    ValueError
        If the script does not live in a subdirectory of ``Experiments/``
    """
    if caller_file is None:
        frame = inspect.currentframe()
        if frame is None or frame.f_back is None or frame.f_back.f_back is None:
            raise RuntimeError("Cannot detect caller file")
        caller_file = frame.f_back.f_back.f_globals["__file__"]

    parts = Path(caller_file).resolve().parts
    if "Experiments" not in parts:
        raise ValueError(f"{caller_file} is not inside an Experiments/ directory")

    experiment_parts = parts[parts.index("Experiments") + 1 : -1]
    if not experiment_parts:
        raise ValueError(f"{caller_file} must live in a subdirectory of Experiments/")
    return "/".join(experiment_parts)


def get_data_dir(caller_file: Path | str | None = None, create: bool = True) -> Path:
    """``<repo>/data/<experiment>/`` for the calling script."""
    path = get_repo_root() / "data" / get_experiment_name(caller_file)
    return ensure_output_dir(path) if create else path


def get_figures_dir(caller_file: Path | str | None = None, create: bool = True) -> Path:
    """``<repo>/figures/<experiment>/`` for the calling script."""
    path = get_repo_root() / "figures" / get_experiment_name(caller_file)
    return ensure_output_dir(path) if create else path
