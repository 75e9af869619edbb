"""Shared helpers for the Experiments/ driver scripts: argument parsing and run I/O."""

from .cli import apply_options, create_parser
from .io import (
    config_frame,
    ensure_output_dir,
    get_data_dir,
    get_experiment_name,
    get_figures_dir,
    get_repo_root,
    load_simulation_data,
    save_run,
    save_simulation_data,
)

__all__ = [
    "apply_options",
    "config_frame",
    "create_parser",
    "ensure_output_dir",
    "get_data_dir",
    "get_experiment_name",
    "get_figures_dir",
    "get_repo_root",
    "load_simulation_data",
    "save_run",
    "save_simulation_data",
]
