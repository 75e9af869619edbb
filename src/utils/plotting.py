"""Plotting utilities for convergence histories and binned spectra.

Automatically applies seaborn style and custom utils.mplstyle on import.
"""

from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd


# Auto-apply plotting styles on import
def _apply_styles():
    """Apply seaborn style and custom utils.mplstyle."""
    plt.style.use("seaborn-v0_8")

    style_path = Path(__file__).parent / "utils.mplstyle"
    if style_path.exists():
        plt.style.use(str(style_path))


_apply_styles()


def plot_residual_history(history: pd.DataFrame, ax=None):
    """Plot |residual| per cascade pass for every equation.

    Parameters
    ----------
    history : pd.DataFrame
        Output of ``CascadeResults.history_frame()``: columns ``frontier``,
        ``cycle`` and one column per equation
    ax : matplotlib.axes.Axes, optional
        Axes to draw on; a new figure is created if omitted

    Returns
    -------
    matplotlib.figure.Figure

    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 5))
    else:
        fig = ax.figure

    passes = np.arange(1, len(history) + 1)
    for name in history.columns:
        if name in ("frontier", "cycle"):
            continue
        ax.semilogy(passes, history[name].abs(), marker="o", markersize=3, label=name)

    # mark the passes where a new equation was admitted
    admitted = passes[history["frontier"].diff().fillna(1).to_numpy() != 0]
    for position in admitted[1:]:
        ax.axvline(position, color="grey", linestyle=":", linewidth=1)

    ax.set_xlabel("Cascade pass")
    ax.set_ylabel("|residual|")
    ax.legend()
    return fig


def plot_bins(centers: np.ndarray, values: np.ndarray, ax=None, label: str | None = None):
    """Step plot of a binned spectrum (e.g. the output of ``delta_bins``)."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 5))
    else:
        fig = ax.figure

    ax.step(centers, values, where="mid", label=label)
    ax.set_xlabel(r"$\omega$")
    ax.set_ylabel("weight")
    if label is not None:
        ax.legend()
    return fig
