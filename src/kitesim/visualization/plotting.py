from __future__ import annotations
import os
import csv
from typing import Dict, Tuple, List, Iterable
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from mpl_toolkits.mplot3d import Axes3D  # noqa: F401  (registers 3D projection)


def _load_csv(filepath: str) -> Tuple[np.ndarray, Dict[str, np.ndarray], List[str]]:
    """
    Load a CSV produced by CSVLogger.

    Returns
    -------
    t : (N,) array
        Time vector.
    cols : dict[str, np.ndarray]
        Mapping column_name -> (N,) array.
    headers : list[str]
        Column headers in order (first one should be 't').
    """
    with open(filepath, "r", newline="") as f:
        reader = csv.reader(f)
        headers = next(reader)
    if headers[0] != "t":
        raise ValueError("First column must be time 't'.")
    data = np.loadtxt(filepath, delimiter=",", skiprows=1, dtype=float)
    if data.ndim == 1:  # single row edge case
        data = data[None, :]
    cols: Dict[str, np.ndarray] = {}
    for j, name in enumerate(headers):
        cols[name] = data[:, j]
    return cols["t"], cols, headers


def _get_components(cols: Dict[str, np.ndarray], names: Iterable[str]) -> List[np.ndarray]:
    out = []
    for name in names:
        if name not in cols:
            raise KeyError(f"Column '{name}' not found in CSV.")
        out.append(cols[name])
    return out


def _finish(fig: Figure, save_path: str | None, show: bool) -> Figure:
    fig.tight_layout()
    if save_path:
        os.makedirs(os.path.dirname(save_path) or ".", exist_ok=True)
        fig.savefig(save_path, dpi=180, bbox_inches="tight")
    if show:
        plt.show()
    return fig


def plot_trajectory_3d(
    csv_path: str,
    save_path: str | None = None,
    show: bool = True,
    winches: Iterable[Iterable[float]] | None = None,
) -> Figure:
    """
    Plot the kite's 3D path and altitude over time.

    World Y is up; the 3D axes are drawn with Y vertical.

    Parameters
    ----------
    csv_path : str
        Path to logger CSV.
    save_path : str | None
        If given, save the figure to this path (png/svg).
    show : bool
        Whether to call plt.show().
    winches : iterable of (x, y, z) | None
        Winch positions to mark on the plot.

    Returns
    -------
    fig : Figure
    """
    t, cols, _ = _load_csv(csv_path)
    px, py, pz = _get_components(cols, ["kite.p_x", "kite.p_y", "kite.p_z"])

    fig = plt.figure(figsize=(10, 6))
    gs = fig.add_gridspec(2, 2, height_ratios=[2.0, 1.0])
    ax3d = fig.add_subplot(gs[0, :], projection="3d")
    axy = fig.add_subplot(gs[1, :])

    # Plot (x, z, y) so altitude is the vertical axis
    ax3d.plot(px, pz, py, lw=2.0, color="#1a73e8")
    ax3d.scatter(px[0], pz[0], py[0], color="#34a853", s=40, label="start")
    ax3d.scatter(px[-1], pz[-1], py[-1], color="#ea4335", s=40, label="end")
    if winches is not None:
        for wx, wy, wz in winches:
            ax3d.scatter(wx, wz, wy, color="#5f6368", marker="^", s=40)
    ax3d.set_xlabel("x [m]"); ax3d.set_ylabel("z [m]"); ax3d.set_zlabel("y (up) [m]")
    ax3d.set_title("Kite trajectory")
    ax3d.legend(loc="best")

    axy.plot(t, py, color="#1a73e8", lw=2)
    axy.set_xlabel("t [s]"); axy.set_ylabel("altitude [m]")
    axy.grid(True, alpha=0.3)
    axy.set_title("Altitude vs time")

    return _finish(fig, save_path, show)


def plot_line_tensions(
    csv_path: str,
    save_path: str | None = None,
    show: bool = True,
) -> Figure:
    """
    Plot left/right line tensions and line stretch (distance - length).
    """
    t, cols, _ = _load_csv(csv_path)
    tl, tr = _get_components(cols, ["lines.left_tension", "lines.right_tension"])
    dl, dr, ll, lr = _get_components(cols, [
        "lines.left_distance", "lines.right_distance",
        "lines.left_length", "lines.right_length",
    ])

    fig, axes = plt.subplots(2, 1, figsize=(10, 7), sharex=True)
    axes[0].plot(t, tl, label="left", color="#1a73e8")
    axes[0].plot(t, tr, label="right", color="#ea4335")
    axes[0].plot(t, tl + tr, label="total", color="#5f6368", lw=1.0, alpha=0.7)
    axes[0].set_ylabel("tension [N]")
    axes[0].grid(True, alpha=0.3)
    axes[0].legend(loc="best")
    axes[0].set_title("Line tensions")

    axes[1].plot(t, dl - ll, label="left", color="#1a73e8")
    axes[1].plot(t, dr - lr, label="right", color="#ea4335")
    axes[1].axhline(0.0, color="k", lw=0.8, alpha=0.5)
    axes[1].set_xlabel("t [s]"); axes[1].set_ylabel("stretch [m]")
    axes[1].grid(True, alpha=0.3)
    axes[1].legend(loc="best")
    axes[1].set_title("Distance minus line length (negative = slack)")

    return _finish(fig, save_path, show)


def plot_forces(
    csv_path: str,
    save_path: str | None = None,
    show: bool = True,
) -> Figure:
    """
    Plot force magnitudes by source and net force components.
    """
    t, cols, _ = _load_csv(csv_path)

    fig, axes = plt.subplots(2, 1, figsize=(10, 7), sharex=True)
    for name, color in (("aero", "#1a73e8"), ("gravity", "#34a853"), ("lines", "#ea4335")):
        comps = _get_components(cols, [f"forces.{name}_{a}" for a in "xyz"])
        axes[0].plot(t, np.linalg.norm(np.column_stack(comps), axis=1), label=name, color=color)
    axes[0].set_ylabel("|F| [N]")
    axes[0].grid(True, alpha=0.3)
    axes[0].legend(loc="best")
    axes[0].set_title("Force magnitude by source")

    Fx, Fy, Fz = _get_components(cols, ["kite.f_x", "kite.f_y", "kite.f_z"])
    axes[1].plot(t, Fx, label="F_x", color="#1a73e8")
    axes[1].plot(t, Fy, label="F_y", color="#34a853")
    axes[1].plot(t, Fz, label="F_z", color="#fbbc05")
    axes[1].set_xlabel("t [s]"); axes[1].set_ylabel("force [N]")
    axes[1].grid(True, alpha=0.3)
    axes[1].legend(loc="best")
    axes[1].set_title("Net force")

    return _finish(fig, save_path, show)
