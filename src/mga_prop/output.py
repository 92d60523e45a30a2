"""Result tables: one tab-separated row per epoch, epoch first, full precision."""
from __future__ import annotations

import json
import logging
from pathlib import Path

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

FLOAT_FORMAT = "%.17g"


def write_data_map(table: pd.DataFrame, file_name: str, output_dir: str | Path) -> Path:
    """Write a time-indexed table without header, epoch in the first column."""
    path = Path(output_dir) / file_name
    path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(path, sep="\t", header=False, index=True, float_format=FLOAT_FORMAT)
    return path


def read_data_map(path: str | Path, columns=None) -> pd.DataFrame:
    """Inverse of write_data_map."""
    table = pd.read_csv(path, sep="\t", header=None, index_col=0, float_precision="round_trip")
    table.index.name = "t"
    if columns is not None:
        table.columns = list(columns)
    return table


def write_leg_results(results, output_dir: str | Path) -> list[Path]:
    written = []
    for i, res in results.items():
        written.append(write_data_map(res.lambert, f"lambertResult{i}.dat", output_dir))
    for i, res in results.items():
        written.append(write_data_map(res.numerical, f"numericalResult{i}.dat", output_dir))
    for i, res in results.items():
        written.append(write_data_map(res.dependent, f"dependentResult{i}.dat", output_dir))
    logger.info("[output] wrote %d leg tables to %s", len(written), output_dir)
    return written


def write_maneuvers(positions, epochs, delta_vs, bodies, output_dir: str | Path) -> Path:
    table = pd.DataFrame(
        np.column_stack((np.asarray(positions, dtype=float), np.asarray(delta_vs, dtype=float))),
        index=pd.Index(np.asarray(epochs, dtype=float), name="t"),
        columns=["x", "y", "z", "dv"],
    )
    table["body"] = list(bodies)
    return write_data_map(table, "maneuvers.dat", output_dir)


def _json_ready(obj):
    """
    Recursively convert ndarrays / numpy scalars so json.dumps accepts
    them; NaN and infinities become null.
    """
    if isinstance(obj, np.ndarray):
        return _json_ready(obj.tolist())
    if isinstance(obj, (np.integer, np.floating)):
        obj = obj.item()
    if isinstance(obj, float) and not np.isfinite(obj):
        return None
    if isinstance(obj, dict):
        return {k: _json_ready(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_ready(v) for v in obj]
    return obj


def write_json(payload: dict, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(_json_ready(payload), indent=2, allow_nan=False))
    return path
