"""
Kite simulation orchestrator.

Runs the fixed-step physics pipeline and emits one snapshot per step:

``predict -> validate -> resolve lines -> project -> correct velocity -> ground clamp -> commit``

The step never raises on numerical trouble. A non-finite prediction, a
singular linear solve or a floating point error keeps the last committed
state and emits a snapshot flagged ``valid=False``.
"""
from __future__ import annotations

import warnings
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import NDArray

from kitesim.config import SimulationConfig
from kitesim.core.solver import VerletIntegrator
from kitesim.dynamics.body import KiteBody, MotionState, quat_delta_rotation_vector
from kitesim.dynamics.forces import (
    AerodynamicForce,
    ForceKind,
    GravityForce,
    PanelForce,
    WindState,
)
from kitesim.dynamics.lines import LineForceModel, LineForceResult
from kitesim.logger import CSVLogger
from kitesim.utils.orientation import describe_orientation, kite_orientation
from kitesim.utils.validation import validate_positive, validate_quaternion, validate_timestep

# Default output directory
DEFAULT_OUTPUT_DIR = Path("output")
DEFAULT_START_POSITION = (0.0, 6.0, -9.0)
DEFAULT_START_HEADING = 0.0  # deg, bridles toward the winches
DEFAULT_START_PITCH = -15.0  # deg

_AXES = ("x", "y", "z")


def _zeros() -> NDArray[np.float64]:
    return np.zeros(3, dtype=np.float64)


@dataclass
class ForceBundle:
    """
    Per-step force report, world frame.

    ``total`` and ``torque`` include the line loads; the integrator's free
    prediction only sees the aerodynamic and gravity parts.
    """
    aerodynamic: NDArray[np.float64] = field(default_factory=_zeros)
    gravity: NDArray[np.float64] = field(default_factory=_zeros)
    lines: NDArray[np.float64] = field(default_factory=_zeros)
    lines_left: NDArray[np.float64] = field(default_factory=_zeros)
    lines_right: NDArray[np.float64] = field(default_factory=_zeros)
    total: NDArray[np.float64] = field(default_factory=_zeros)
    torque: NDArray[np.float64] = field(default_factory=_zeros)

    def by_kind(self) -> dict[ForceKind, NDArray[np.float64]]:
        return {
            ForceKind.AERODYNAMIC: self.aerodynamic,
            ForceKind.GRAVITY: self.gravity,
            ForceKind.LINE: self.lines,
        }


@dataclass
class LineState:
    """Line lengths, tensions [N] and measured winch distances [m]."""
    base_length: float
    delta: float = 0.0
    left_length: float = 0.0
    right_length: float = 0.0
    left_tension: float = 0.0
    right_tension: float = 0.0
    left_distance: float = 0.0
    right_distance: float = 0.0

    @property
    def total_tension(self) -> float:
        return self.left_tension + self.right_tension

    @classmethod
    def from_result(cls, base_length: float, delta: float, result: LineForceResult) -> LineState:
        return cls(
            base_length=base_length,
            delta=delta,
            left_length=result.left.length,
            right_length=result.right.length,
            left_tension=result.left.tension,
            right_tension=result.right.tension,
            left_distance=result.left.distance,
            right_distance=result.right.distance,
        )


@dataclass
class SimulationSnapshot:
    """
    Read-only view of one simulation step.

    Attributes
    ----------
    state : MotionState
        Committed state (a copy; safe to keep)
    forces : ForceBundle
        Forces evaluated during the step
    lines : LineState
        Line lengths, tensions and distances
    wind : WindState
        Wind in effect
    elapsed_time : float
        Simulation time of ``state`` [s]
    delta_time : float
        Step size used [s]
    panel_forces : list[PanelForce]
        Per-panel aerodynamic loads
    control_points : dict[str, NDArray[np.float64]]
        Resolved control points, world frame
    valid : bool
        False when the step was rejected and ``state`` is the previous one
    """
    state: MotionState
    forces: ForceBundle
    lines: LineState
    wind: WindState
    elapsed_time: float
    delta_time: float
    panel_forces: list[PanelForce] = field(default_factory=list)
    control_points: dict[str, NDArray[np.float64]] = field(default_factory=dict)
    valid: bool = True

    def as_dict(self) -> dict[str, Any]:
        """Flat column/value mapping, as logged by :class:`CSVLogger`."""
        s = self.state
        row: dict[str, Any] = {"t": self.elapsed_time}
        vectors = {
            "kite.p": s.position,
            "kite.v": s.velocity,
            "kite.w": s.angular_velocity,
            "kite.a": s.acceleration,
            "kite.f": self.forces.total,
            "kite.tau": self.forces.torque,
            "forces.aero": self.forces.aerodynamic,
            "forces.gravity": self.forces.gravity,
            "forces.lines": self.forces.lines,
        }
        for prefix, vec in vectors.items():
            for axis, value in zip(_AXES, vec):
                row[f"{prefix}_{axis}"] = float(value)
        for axis, value in zip(("x", "y", "z", "w"), s.orientation):
            row[f"kite.q_{axis}"] = float(value)
        for name in ("base_length", "delta", "left_length", "right_length",
                     "left_tension", "right_tension", "left_distance", "right_distance"):
            row[f"lines.{name}"] = float(getattr(self.lines, name))
        row["valid"] = self.valid
        return row


class KiteSimulation:
    """
    Fixed-step simulation of a two-line kite.

    Parameters
    ----------
    config : SimulationConfig | None
        Run configuration. Defaults to ``SimulationConfig()``.
    body : KiteBody | None
        Kite body. Defaults to the body described by ``config.kite``.
    initial_state : MotionState | None
        Starting state. Defaults to :meth:`default_initial_state`.
    wind : WindState | None
        Ambient wind. Defaults to calm air.

    Attributes
    ----------
    state : MotionState
        Last committed state. Owned by the simulation; read copies via
        snapshots.
    base_line_length : float
        Line length at zero control delta [m]
    last_snapshot : SimulationSnapshot | None
        Snapshot from the most recent step
    logger : CSVLogger | None
        Telemetry logger, or None if logging is disabled

    Notes
    -----
    Single-threaded and deterministic: the same state, wind and inputs
    always produce the same snapshots after :meth:`reset`.

    Examples
    --------
    >>> sim = KiteSimulation(wind=WindState.from_speed(12.0))
    >>> sim.match_line_length()
    >>> for _ in range(240):
    ...     snap = sim.step(control_delta=0.0)
    >>> snap.lines.left_tension
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        body: KiteBody | None = None,
        initial_state: MotionState | None = None,
        wind: WindState | None = None,
    ) -> None:
        self.config = config if config is not None else SimulationConfig()
        self.body = body if body is not None else KiteBody.standard(self.config.kite)
        self.wind = wind if wind is not None else WindState()
        self.base_line_length = self.config.base_line_length
        self._build_components()

        start = initial_state if initial_state is not None else self.default_initial_state()
        self._initial_state = start.copy()
        self.state = start.copy()
        self.last_snapshot: SimulationSnapshot | None = None

        self.output_path: Path | None = None
        self.logger: CSVLogger | None = None

    def _build_components(self) -> None:
        cfg = self.config
        left, right = cfg.winch_positions()
        self.aerodynamics = AerodynamicForce(self.body, cfg.aero)
        self.gravity = GravityForce(self.body, cfg.integrator.gravity)
        self.lines = LineForceModel(self.body, left, right, cfg.lines, cfg.solver)
        self.integrator = VerletIntegrator(
            cfg.integrator, self.body.geometry.config.wingspan, self.body.geometry.config.height
        )

    @staticmethod
    def default_initial_state() -> MotionState:
        """Kite 6 m up and 9 m downwind along -Z, bridles toward the winches, pitched -15°."""
        return MotionState(
            position=np.array(DEFAULT_START_POSITION),
            orientation=kite_orientation(heading=DEFAULT_START_HEADING, pitch=DEFAULT_START_PITCH),
        )

    # --- Runtime configuration ---

    def configure(self, config: SimulationConfig) -> None:
        """
        Adopt a new configuration between runs.

        Rebuilds the force models from ``config`` (the body is rebuilt from
        ``config.kite``), keeps the committed state and clears solver caches.
        Winch positions set with :meth:`set_winch_positions` are kept.
        """
        winches = self.lines.winches
        self.config = config
        self.body = KiteBody.standard(config.kite)
        self.base_line_length = config.base_line_length
        self._build_components()
        self.lines.set_winch_positions(winches["left"], winches["right"])
        self.last_snapshot = None

    def set_wind(self, wind: WindState | NDArray[np.float64]) -> None:
        """Set the ambient wind (a WindState or a velocity vector)."""
        self.wind = wind if isinstance(wind, WindState) else WindState(velocity=wind)

    def set_base_line_length(self, length: float) -> None:
        validate_positive(length, "base line length")
        self.base_line_length = float(length)

    def set_winch_positions(self, left: NDArray[np.float64], right: NDArray[np.float64]) -> None:
        self.lines.set_winch_positions(left, right)

    def match_line_length(self, state: MotionState | None = None) -> float:
        """
        Set the base line length to the mean winch to control point distance.

        Uses the nominal control points of ``state`` (default: the committed
        state), so the lines start exactly at rest length.
        """
        state = state if state is not None else self.state
        distances = []
        for side, trans in self.lines.transmissions.items():
            cp = self.body.global_point(trans.control_point, state)
            distances.append(np.linalg.norm(cp - self.lines.winches[side]))
        self.set_base_line_length(float(np.mean(distances)))
        return self.base_line_length

    def reset(self, initial_state: MotionState | None = None) -> None:
        """
        Clear line caches and adopt ``initial_state`` as the committed state.

        Without an argument, returns to the state the simulation started with.
        """
        if initial_state is not None:
            validate_quaternion(initial_state.orientation)
            self._initial_state = initial_state.copy()
        self.lines.reset()
        self.state = self._initial_state.copy()
        self.last_snapshot = None

    # --- Stepping ---

    def advance(
        self,
        state: MotionState,
        wind: WindState,
        control_delta: float,
        dt: float,
    ) -> tuple[MotionState, SimulationSnapshot]:
        """
        Step from an explicit state and wind.

        Returns
        -------
        tuple[MotionState, SimulationSnapshot]
            New state (a copy) and the step snapshot
        """
        self.state = state.copy()
        self.set_wind(wind)
        snapshot = self.step(dt, control_delta)
        return snapshot.state.copy(), snapshot

    def step(self, dt: float | None = None, control_delta: float = 0.0) -> SimulationSnapshot:
        """
        Advance one fixed step.

        Parameters
        ----------
        dt : float | None
            Time step [s]. Defaults to ``config.timestep``.
        control_delta : float
            Line length differential [m]; left = base - delta,
            right = base + delta.

        Returns
        -------
        SimulationSnapshot
            Always returned; ``valid`` is False when the step was rejected.
            A non-positive or non-finite ``dt`` falls back to
            ``config.timestep`` with a RuntimeWarning.
        """
        dt = self.config.timestep if dt is None else float(dt)
        if not (np.isfinite(dt) and dt > 0.0):
            warnings.warn(
                f"Invalid timestep {dt}; using {self.config.timestep:.5f}s.",
                RuntimeWarning, stacklevel=2
            )
            dt = self.config.timestep
        validate_timestep(dt)
        control_delta = float(control_delta)
        if not np.isfinite(control_delta):
            warnings.warn(
                f"Non-finite control delta {control_delta}; using 0.",
                RuntimeWarning, stacklevel=2
            )
            control_delta = 0.0

        current = self.state
        saved_lines = self.lines.checkpoint()
        try:
            snapshot = self._step(current, dt, control_delta)
        except (np.linalg.LinAlgError, FloatingPointError, ValueError) as exc:
            warnings.warn(
                f"Physics step failed at t={current.timestamp:.4f}s ({exc}); "
                "keeping previous state.",
                RuntimeWarning,
                stacklevel=2,
            )
            snapshot = self._rejected(current, ForceBundle(), dt, control_delta)
        if not snapshot.valid:
            # The rejected frame must not leak into the next one
            self.lines.restore(saved_lines)

        self.last_snapshot = snapshot
        if self.logger is not None:
            self.logger.log(snapshot)
        return snapshot

    def _step(self, current: MotionState, dt: float, control_delta: float) -> SimulationSnapshot:
        # 1) Predict free motion under aerodynamics and gravity
        aero = self.aerodynamics.compute(current, self.wind)
        gravity_force = self.gravity.compute(current)
        gravity_torque = self.gravity.compute_torque(current)
        external_force = aero.force + gravity_force
        external_torque = aero.torque + gravity_torque
        predicted = self.integrator.advance(
            current, external_force, external_torque, dt, self.body.mass
        )

        # 2) Validate
        if not predicted.is_finite():
            warnings.warn(
                f"Non-finite predicted state at t={current.timestamp:.4f}s; "
                "keeping previous state.",
                RuntimeWarning,
                stacklevel=2,
            )
            forces = ForceBundle(
                aerodynamic=aero.force, gravity=gravity_force,
                total=external_force, torque=external_torque,
            )
            return self._rejected(current, forces, dt, control_delta)

        # 3) Resolve line geometry and tension on the predicted state
        lines = self.lines.compute(predicted, control_delta, self.base_line_length)
        constrained = self.project_on_bridle_constraints(predicted, lines)

        # 4) Position-based velocity correction
        self._correct_velocity(constrained, current, lines, dt)

        # 5) Ground contact
        self._clamp_to_ground(constrained)

        if not constrained.is_finite():
            warnings.warn(
                f"Non-finite constrained state at t={current.timestamp:.4f}s; "
                "keeping previous state.",
                RuntimeWarning,
                stacklevel=2,
            )
            return self._rejected(current, ForceBundle(), dt, control_delta)

        # 6) Commit
        self.state = constrained
        forces = ForceBundle(
            aerodynamic=aero.force,
            gravity=gravity_force,
            lines=lines.force,
            lines_left=lines.left.force,
            lines_right=lines.right.force,
            total=external_force + lines.force,
            torque=external_torque + lines.torque,
        )
        return SimulationSnapshot(
            state=constrained.copy(),
            forces=forces,
            lines=LineState.from_result(self.base_line_length, control_delta, lines),
            wind=self.wind,
            elapsed_time=constrained.timestamp,
            delta_time=dt,
            panel_forces=aero.panels,
            control_points={side: r.control_point.copy() for side, r in lines.sides.items()},
        )

    def _rejected(
        self,
        current: MotionState,
        forces: ForceBundle,
        dt: float,
        control_delta: float,
    ) -> SimulationSnapshot:
        lengths = self.lines.line_lengths(self.base_line_length, control_delta)
        return SimulationSnapshot(
            state=current.copy(),
            forces=forces,
            lines=LineState(
                base_length=self.base_line_length,
                delta=control_delta,
                left_length=lengths["left"],
                right_length=lengths["right"],
            ),
            wind=self.wind,
            elapsed_time=current.timestamp,
            delta_time=dt,
            valid=False,
        )

    def project_on_bridle_constraints(
        self,
        state: MotionState,
        lines: LineForceResult,
    ) -> MotionState:
        """
        Pose correction hook applied after the line solve.

        Currently returns a copy of ``state``: the lines act through force
        impulses only. Subclasses may move the body onto the bridle
        constraints here.
        """
        return state.copy()

    def _correct_velocity(
        self,
        state: MotionState,
        before: MotionState,
        lines: LineForceResult,
        dt: float,
    ) -> None:
        """Derive velocities from the realized motion, then add line impulses."""
        inertia = self.integrator.moment_of_inertia(self.body.mass)
        line_acc = lines.force * self.body.inv_mass
        line_ang_acc = lines.torque / inertia

        state.velocity = (state.position - before.position) / dt + line_acc * dt
        rotvec = quat_delta_rotation_vector(before.orientation, state.orientation)
        state.angular_velocity = rotvec / dt + line_ang_acc * dt
        state.acceleration = state.acceleration + line_acc
        state.angular_acceleration = state.angular_acceleration + line_ang_acc
        state.normalize_orientation()
        self.integrator.clamp(state)

    def _clamp_to_ground(self, state: MotionState) -> None:
        """Push the lowest frame point back above ground and damp the contact."""
        ground = self.config.ground
        _, altitude = self.body.lowest_point(state)
        if altitude >= ground.level:
            return

        state.position = state.position + np.array([0.0, ground.level - altitude, 0.0])
        v = state.velocity.copy()
        v[1] = -v[1] * ground.restitution if v[1] < 0.0 else 0.0
        v[0] *= ground.friction
        v[2] *= ground.friction
        v[np.abs(v) < ground.rest_velocity] = 0.0
        w = state.angular_velocity * ground.angular_damping
        w[np.abs(w) < ground.rest_angular_velocity] = 0.0
        state.velocity = v
        state.angular_velocity = w

    # --- Diagnostics ---

    def snapshot(self) -> SimulationSnapshot:
        """Latest snapshot, or a force-free one for the committed state."""
        if self.last_snapshot is not None:
            return self.last_snapshot
        return SimulationSnapshot(
            state=self.state.copy(),
            forces=ForceBundle(),
            lines=LineState(
                base_length=self.base_line_length,
                left_length=self.base_line_length,
                right_length=self.base_line_length,
            ),
            wind=self.wind,
            elapsed_time=self.state.timestamp,
            delta_time=0.0,
        )

    def get_energy(self) -> dict[str, float]:
        """
        Compute kite energy (diagnostic).

        Returns
        -------
        dict[str, float]
            'kinetic', 'potential' (gravity, relative to ground level) and
            'total' [J]
        """
        KE = self.body.kinetic_energy(self.state)
        PE = self.body.mass * self.gravity.g * (self.state.position[1] - self.config.ground.level)
        return {"kinetic": KE, "potential": PE, "total": KE + PE}

    # --- Logging and batch runs ---

    def enable_logging(
        self,
        name: str,
        output_dir: Path | str | None = None,
        auto_timestamp: bool = True,
    ) -> Path:
        """
        Create ``output_dir/name[_timestamp]/{logs,plots}`` and attach a CSV logger.

        Returns
        -------
        Path
            Path to the created output directory
        """
        base = Path(output_dir) if output_dir is not None else DEFAULT_OUTPUT_DIR
        folder = f"{name}_{datetime.now().strftime('%Y%m%d_%H%M%S')}" if auto_timestamp else name
        self.output_path = base / folder
        logs_dir = self.output_path / "logs"
        plots_dir = self.output_path / "plots"
        logs_dir.mkdir(parents=True, exist_ok=True)
        plots_dir.mkdir(parents=True, exist_ok=True)

        self.logger = CSVLogger(logs_dir / "simulation.csv")
        print(f"[KiteSimulation] Logging enabled: {self.output_path}")
        return self.output_path

    def disable_logging(self) -> None:
        if self.logger is not None:
            self.logger.close()
            self.logger = None
            print("[KiteSimulation] Logging disabled")

    def run(
        self,
        duration: float,
        dt: float | None = None,
        control: float | Callable[[float], float] = 0.0,
        log_interval: float = 1.0,
    ) -> list[SimulationSnapshot]:
        """
        Step for ``duration`` seconds.

        Parameters
        ----------
        duration : float
            Simulated time [s]
        dt : float | None
            Fixed step [s]. Defaults to ``config.timestep``.
        control : float | Callable[[float], float]
            Constant control delta [m], or a function of time returning it
        log_interval : float
            Interval [s] for printing progress. Set to <= 0 to disable.

        Returns
        -------
        list[SimulationSnapshot]
            One snapshot per step
        """
        dt = self.config.timestep if dt is None else float(dt)
        validate_timestep(dt)
        n_steps = int(round(float(duration) / dt))
        snapshots: list[SimulationSnapshot] = []
        last_print = self.state.timestamp

        if self.logger is not None:
            self.logger.log(self.snapshot())

        print(f"[KiteSimulation] Starting run: {duration}s duration, dt={dt:.5f}s")
        try:
            for _ in range(n_steps):
                t = self.state.timestamp
                delta = control(t) if callable(control) else control
                snap = self.step(dt, delta)
                snapshots.append(snap)

                if log_interval > 0 and snap.valid and (snap.elapsed_time - last_print) >= log_interval:
                    s = snap.state
                    print(
                        f"[KiteSimulation] t={snap.elapsed_time:6.2f}s | "
                        f"y={s.position[1]:7.2f}m |v|={np.linalg.norm(s.velocity):6.2f}m/s | "
                        f"T_L={snap.lines.left_tension:7.2f}N T_R={snap.lines.right_tension:7.2f}N | "
                        f"{describe_orientation(s.orientation)}"
                    )
                    last_print = snap.elapsed_time
        finally:
            if self.logger is not None:
                self.logger.flush()

        invalid = sum(1 for s in snapshots if not s.valid)
        if invalid:
            print(f"[KiteSimulation] {invalid} step(s) rejected during run")
        return snapshots

    def save_plots(self, show: bool = False) -> None:
        """
        Render trajectory, line tension and force plots from the CSV log.

        Raises
        ------
        RuntimeError
            If logging is not enabled or nothing has been logged yet
        """
        if self.logger is None or self.output_path is None:
            raise RuntimeError(
                "Logging must be enabled to save plots. Call enable_logging() first."
            )

        from kitesim.visualization.plotting import (
            plot_forces,
            plot_line_tensions,
            plot_trajectory_3d,
        )

        self.logger.flush()
        csv_path = self.output_path / "logs" / "simulation.csv"
        plots_dir = self.output_path / "plots"
        if not csv_path.exists():
            raise RuntimeError(
                f"No log file found at {csv_path}. Has the simulation been run yet?"
            )

        plot_trajectory_3d(str(csv_path), save_path=str(plots_dir / "trajectory_3d.png"), show=show)
        plot_line_tensions(str(csv_path), save_path=str(plots_dir / "line_tensions.png"), show=show)
        plot_forces(str(csv_path), save_path=str(plots_dir / "forces.png"), show=show)
        print(f"[KiteSimulation] Plots saved to: {plots_dir}")
