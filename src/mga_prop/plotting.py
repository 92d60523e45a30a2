from __future__ import annotations
import logging
import re
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from .constants import AU, DAY
from .output import read_data_map
from .propagation import STATE_COLUMNS

logger = logging.getLogger(__name__)

colors = ["orange", "blue", "red", "green", "magenta", "cyan", "white"]


def _leg_tables(output_dir: Path, prefix: str):
    tables = {}
    for path in output_dir.glob(f"{prefix}*.dat"):
        m = re.fullmatch(rf"{prefix}(\d+)\.dat", path.name)
        if m:
            tables[int(m.group(1))] = read_data_map(path, STATE_COLUMNS)
    return dict(sorted(tables.items()))


def plot_results(output_dir: str | Path, show: bool = False) -> list[Path]:
    """
    Plot Lambert vs numerical legs written by the pipeline in the
    ecliptic plane, and the position difference along every leg.
    """
    output_dir = Path(output_dir)
    lambert = _leg_tables(output_dir, "lambertResult")
    numerical = _leg_tables(output_dir, "numericalResult")
    if not lambert or lambert.keys() != numerical.keys():
        raise FileNotFoundError(f"no matching lambert/numerical result tables in {output_dir}")

    # trajectory
    fig, ax = plt.subplots(figsize=(9, 9))
    fig.patch.set_facecolor('black'); ax.set_facecolor('black')
    ax.tick_params(colors='white'); [s.set_color('white') for s in ax.spines.values()]
    ax.plot(0.0, 0.0, 'o', color='yellow', ms=10, label="Sun")
    for i, c in zip(lambert, colors * (len(lambert) // len(colors) + 1)):
        lam, num = lambert[i], numerical[i]
        ax.plot(lam.x / AU, lam.y / AU, '--', color=c, lw=1, label=f"leg {i} Lambert")
        ax.plot(num.x / AU, num.y / AU, '-', color=c, lw=2, alpha=0.6, label=f"leg {i} numerical")
    ax.set_aspect('equal')
    ax.set_xlabel("x [AU]", color='white'); ax.set_ylabel("y [AU]", color='white')
    ax.legend(loc='upper right', fontsize=8)
    traj_png = output_dir / "trajectory.png"
    fig.savefig(traj_png, facecolor="black")

    # difference
    fig2, ax2 = plt.subplots(figsize=(10, 5))
    for i in lambert:
        lam, num = lambert[i], numerical[i]
        dr = np.linalg.norm(num[["x", "y", "z"]].values - lam[["x", "y", "z"]].values, axis=1)
        ax2.semilogy(num.index / DAY, dr, label=f"leg {i}")
    ax2.set_xlabel("time [d since J2000]")
    ax2.set_ylabel("|r_num - r_lambert| [km]")
    ax2.grid(True, which="both", alpha=0.3)
    ax2.legend()
    diff_png = output_dir / "position_difference.png"
    fig2.savefig(diff_png)

    logger.info("[plot] wrote %s, %s", traj_png, diff_png)
    if show:
        plt.show()
    plt.close(fig); plt.close(fig2)
    return [traj_png, diff_png]
