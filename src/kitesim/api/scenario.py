"""
Scenario API: Fluent interface for defining and running kite simulations.
"""
from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import numpy as np

from kitesim.config import SimulationConfig
from kitesim.core.simulation import KiteSimulation, SimulationSnapshot
from kitesim.dynamics.body import MotionState
from kitesim.dynamics.forces import WindState
from kitesim.utils.orientation import kite_orientation

TIMESTEP_PRESETS = {
    "default": 1.0 / 240.0,
    "fast": 1.0 / 120.0,
    "display": 1.0 / 60.0,
    "accurate": 1.0 / 480.0,
}


class Scenario:
    """
    Builder for a single kite run.

    Examples
    --------
    >>> snaps = (
    ...     Scenario("gusty")
    ...     .with_wind(12.0, turbulence=0.2)
    ...     .with_initial_pose(position=[0, 8, 8], pitch=-15)
    ...     .with_lines(match=True)
    ...     .run(duration=10.0)
    ... )
    """

    def __init__(self, name: str, config: SimulationConfig | None = None, output_dir: str = "output"):
        self.name = name
        self.output_dir = Path(output_dir)
        self.config = config if config is not None else SimulationConfig()
        self._wind = WindState()
        self._state = KiteSimulation.default_initial_state()
        self._base_length: float | None = None
        self._match_length = False
        self._winches: tuple[list[float], list[float]] | None = None
        self._control: float | Callable[[float], float] = 0.0
        self._dt = self.config.timestep
        self._logging = False
        self._plots = False
        self._show_plots = False
        self.simulation: KiteSimulation | None = None

    def with_wind(
        self,
        speed: float,
        direction: list[float] | tuple[float, float, float] = (0.0, 0.0, -1.0),
        turbulence: float = 0.0,
    ) -> 'Scenario':
        self._wind = WindState.from_speed(speed, direction, turbulence)
        return self

    def with_initial_pose(
        self,
        position: list[float] | np.ndarray | None = None,
        heading: float = 0.0,
        pitch: float = -15.0,
        roll: float = 0.0,
        velocity: list[float] | None = None,
    ) -> 'Scenario':
        """Place the kite. Angles in degrees, see :func:`kite_orientation`."""
        self._state = MotionState(
            position=np.array(position if position is not None else self._state.position, dtype=float),
            velocity=np.array(velocity if velocity is not None else [0.0, 0.0, 0.0], dtype=float),
            orientation=kite_orientation(heading=heading, pitch=pitch, roll=roll),
        )
        return self

    def with_lines(
        self,
        base_length: float | None = None,
        match: bool = False,
        winches: tuple[list[float], list[float]] | None = None,
    ) -> 'Scenario':
        """
        Set the line length, or ``match=True`` to start exactly at rest length.
        """
        if base_length is None and not match:
            raise ValueError("Give a base_length or set match=True")
        self._base_length = base_length
        self._match_length = match
        self._winches = winches
        return self

    def with_control(self, control: float | Callable[[float], float]) -> 'Scenario':
        """Constant control delta [m] or a function of time."""
        self._control = control
        return self

    def configure_timestep(self, preset: str = "default", dt: float | None = None) -> 'Scenario':
        """Presets: 'default', 'fast', 'display', 'accurate'. ``dt`` overrides."""
        if dt is not None:
            self._dt = float(dt)
        elif preset in TIMESTEP_PRESETS:
            self._dt = TIMESTEP_PRESETS[preset]
        else:
            raise ValueError(f"Unknown timestep preset '{preset}'")
        return self

    def enable_logging(self, plots: bool = False, show: bool = False) -> 'Scenario':
        self._logging = True
        self._plots = plots
        self._show_plots = show
        return self

    def build(self) -> KiteSimulation:
        """Create the configured :class:`KiteSimulation` without running it."""
        sim = KiteSimulation(config=self.config, initial_state=self._state, wind=self._wind)
        if self._winches is not None:
            sim.set_winch_positions(*(np.asarray(w, dtype=float) for w in self._winches))
        if self._match_length:
            sim.match_line_length()
        elif self._base_length is not None:
            sim.set_base_line_length(self._base_length)
        if self._logging:
            sim.enable_logging(self.name, self.output_dir)
        self.simulation = sim
        return sim

    def run(self, duration: float = 10.0, log_interval: float = 1.0) -> list[SimulationSnapshot]:
        print(f"Running Scenario: {self.name}")
        sim = self.build()
        print(f"[Scenario] dt={self._dt:.5f}s, wind={self._wind.speed:.1f}m/s, "
              f"lines={sim.base_line_length:.2f}m")
        try:
            snapshots = sim.run(duration, dt=self._dt, control=self._control, log_interval=log_interval)
            if self._plots:
                print("[Scenario] Generating plots...")
                sim.save_plots(show=self._show_plots)
        finally:
            sim.disable_logging()
        return snapshots
