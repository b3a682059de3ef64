# src/kitesim/utils/io.py
from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pandas as pd

from kitesim.config import SimulationConfig

if TYPE_CHECKING:
    from kitesim.core.simulation import SimulationSnapshot


def history_frame(snapshots: Iterable[SimulationSnapshot]) -> pd.DataFrame:
    """
    Flatten snapshots into a DataFrame, one row per step.

    Columns follow :meth:`SimulationSnapshot.as_dict` ('t', 'kite.p_x', ...).
    """
    return pd.DataFrame([s.as_dict() for s in snapshots])


def save_simulation_history(
    history: Iterable[SimulationSnapshot] | list[dict[str, Any]],
    filepath: str | Path,
) -> Path:
    """
    Save a run to CSV.

    Args:
        history: Snapshots from ``KiteSimulation.run`` or plain row dicts,
            e.g. ``[{'t': 0.1, 'kite.p_y': 8.0}, ...]``
        filepath: Destination path (e.g. 'results/run1.csv')

    Returns:
        The written path.
    """
    rows = [h if isinstance(h, dict) else h.as_dict() for h in history]
    if not rows:
        raise ValueError("Simulation history is empty. Nothing to save.")

    path = Path(filepath)
    # Ensure the directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame(rows)
    df.to_csv(path, index=False)
    print(f"Simulation results saved to {path.absolute()}")
    return path


def load_simulation_history(filepath: str | Path) -> pd.DataFrame:
    """Read a CSV written by :func:`save_simulation_history` or ``CSVLogger``."""
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"No simulation history at {path}")
    return pd.read_csv(path)


def load_simulation_config(filepath: str | Path) -> SimulationConfig:
    """
    Load a :class:`SimulationConfig` from JSON.

    The file holds the nested form of ``SimulationConfig.to_dict()``; keys
    left out keep their defaults.
    """
    path = Path(filepath)
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration in {path} must be a JSON object")
    return SimulationConfig.from_dict(data)


def save_simulation_config(config: SimulationConfig, filepath: str | Path) -> Path:
    """Write a configuration as indented JSON."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
    return path
