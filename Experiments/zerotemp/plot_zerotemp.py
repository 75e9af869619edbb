#!/usr/bin/env python3
"""
Plot results from the zero-temperature solver.

Reads the convergence history written by compute_zerotemp.py and the solved
Environment, then plots the residual history and the quasiparticle density
of states of the solved system.
"""

import sys

import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

from utils import get_data_dir, get_figures_dir, load_simulation_data
from utils.plotting import plot_bins, plot_residual_history
from polecalc import DeltaBinner, Environment, GridReduction, square
from polecalc.physics import energy

# Set seaborn style
sns.set_theme(style="whitegrid")

# Get directories (automatically mirrors Experiments/ structure)
data_dir = get_data_dir()
figures_dir = get_figures_dir()

base_name = sys.argv[1] if len(sys.argv) > 1 else "zerotemp_N64"

# Convergence history
history = load_simulation_data(data_dir, f"{base_name}_history")
fig = plot_residual_history(history)
fig.suptitle("Cascade convergence")
fig.tight_layout()
fig.savefig(figures_dir / f"{base_name}_history.pdf")
plt.close(fig)
print(f"History plot saved to: {figures_dir / f'{base_name}_history.pdf'}")

# Quasiparticle density of states of the solved Environment
env = Environment.from_file(data_dir / f"{base_name}_env.json")
eps_min = env.epsilon_min


def quasiparticle_terms(k):
    return np.atleast_1d(energy(env, k, eps_min)), np.ones(1)


e_max = 4 * (env.th + abs(env.d1) * env.t0 + (env.t0 + env.tz) * abs(env.f0)) + abs(env.mu)
engine = GridReduction(env.num_procs, use_numba=env.use_numba)
binner = DeltaBinner(0.0, e_max, env.im_gc0_bins, use_numba=env.use_numba)
spectrum = engine.run(square(env.grid_length), quasiparticle_terms, binner)

fig = plot_bins(spectrum.bin_centers(), spectrum.density(), label="DOS")
fig.tight_layout()
fig.savefig(figures_dir / f"{base_name}_dos.pdf")
plt.close(fig)
print(f"DOS plot saved to: {figures_dir / f'{base_name}_dos.pdf'}")
