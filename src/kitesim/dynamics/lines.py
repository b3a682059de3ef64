"""
Control line force model.

Both lines run from a winch to a control point. Each frame, per side:

1. Resolve the control point with a zero force (geometry only), seeded with
   last frame's point.
2. Compute the line tension from the resolved winch distance with the
   bi-regime spring-damper law, then smooth it in time.
3. Re-run the bridle solve with the real line force to distribute it onto
   the frame. The warm start from step 1 makes this pass cheap.

Evaluating tension at the point resolved in the same frame avoids a
one-frame lag between the line force and the kite position.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from kitesim.config import LineConfig, SolverConfig
from kitesim.dynamics.body import KiteBody, MotionState
from kitesim.dynamics.constraints import (
    BridleConstraintSolver,
    BridleForceResult,
    BridleTransmission,
)
from kitesim.dynamics.forces import ForceKind
from kitesim.utils.validation import validate_vector3

EPSILON_DISTANCE = 1e-9
MIN_LINE_LENGTH = 0.1  # Shortest allowed line after applying the control delta [m]
SIDES = ("left", "right")


@dataclass
class LineSideResult:
    """Line load and measurements for one side."""
    force: NDArray[np.float64]
    torque: NDArray[np.float64]
    tension: float
    raw_tension: float
    distance: float
    length: float
    control_point: NDArray[np.float64]
    bridle: BridleForceResult


@dataclass
class LineForceResult:
    """Line loads on the kite, summed over both sides."""
    force: NDArray[np.float64]
    torque: NDArray[np.float64]
    sides: dict[str, LineSideResult]

    @property
    def left(self) -> LineSideResult:
        return self.sides["left"]

    @property
    def right(self) -> LineSideResult:
        return self.sides["right"]


class LineForceModel:
    """
    Two-line spring-damper model coupled through the bridles.

    Parameters
    ----------
    body : KiteBody
        Kite body (geometry and mass)
    winch_left, winch_right : NDArray[np.float64]
        Winch positions in world frame [m] (3,)
    config : LineConfig | None
        Spring, damping and smoothing parameters
    solver_config : SolverConfig | None
        Bridle solver settings shared by both sides

    Attributes
    ----------
    transmissions : dict[str, BridleTransmission]
        Per-side bridle description; holds the warm-start control point
    solvers : dict[str, BridleConstraintSolver]
        One solver per side

    Notes
    -----
    Persistent state is limited to the smoothed tension and the warm-start
    control point of each side. :meth:`reset` clears both.

    **Tension law** with ``ext = distance - rest``:

    - ``distance < rest - slack_tolerance``: 0
    - ramp zone up to ``rest``: linear from 0 to ``min_tension``
    - taut: ``k·ext`` up to the exponential threshold, then
      ``k_exp·(exp(rate·(ext - threshold)) - 1) + k·threshold``, plus
      ``c·radial_velocity``, floored at ``min_tension``
    """
    kind = ForceKind.LINE

    def __init__(
        self,
        body: KiteBody,
        winch_left: NDArray[np.float64],
        winch_right: NDArray[np.float64],
        config: LineConfig | None = None,
        solver_config: SolverConfig | None = None,
    ) -> None:
        self.body = body
        self.config = config if config is not None else LineConfig()
        self.solver_config = solver_config if solver_config is not None else SolverConfig()
        lengths = body.geometry.config.bridle_lengths
        self.transmissions = {s: BridleTransmission.for_side(s, lengths) for s in SIDES}
        self.solvers = {
            s: BridleConstraintSolver(body, self.transmissions[s], self.solver_config)
            for s in SIDES
        }
        self.winches: dict[str, NDArray[np.float64]] = {}
        self.set_winch_positions(winch_left, winch_right)
        self._smoothed_tension = {s: 0.0 for s in SIDES}

    def set_winch_positions(
        self,
        left: NDArray[np.float64],
        right: NDArray[np.float64],
    ) -> None:
        self.winches = {
            "left": validate_vector3(left, "winch_left"),
            "right": validate_vector3(right, "winch_right"),
        }

    def reset(self) -> None:
        """Zero the smoothed tensions and drop the warm-start points."""
        for side in SIDES:
            self._smoothed_tension[side] = 0.0
            self.transmissions[side].forget()

    @property
    def smoothed_tensions(self) -> dict[str, float]:
        return dict(self._smoothed_tension)

    def checkpoint(self) -> dict[str, tuple[float, NDArray[np.float64] | None]]:
        """Copy of the per-side carry-over (smoothed tension, warm-start point)."""
        saved = {}
        for side in SIDES:
            cp = self.transmissions[side].resolved_position
            saved[side] = (self._smoothed_tension[side], None if cp is None else cp.copy())
        return saved

    def restore(self, saved: dict[str, tuple[float, NDArray[np.float64] | None]]) -> None:
        """Return to a :meth:`checkpoint`, discarding what later frames stored."""
        for side, (tension, cp) in saved.items():
            self._smoothed_tension[side] = tension
            self.transmissions[side].resolved_position = None if cp is None else cp.copy()

    @staticmethod
    def line_lengths(base_length: float, control_delta: float) -> dict[str, float]:
        """Left line is shortened and right line lengthened by ``control_delta``."""
        return {
            "left": base_length - control_delta,
            "right": base_length + control_delta,
        }

    def raw_tension(self, distance: float, rest_length: float, radial_velocity: float = 0.0) -> float:
        """
        Unsmoothed line tension [N].

        Parameters
        ----------
        distance : float
            Winch to control point distance [m]
        rest_length : float
            Line rest length [m]
        radial_velocity : float
            Rate of change of the distance [m/s], positive when stretching
        """
        cfg = self.config
        if distance < rest_length - cfg.slack_tolerance:
            return 0.0
        if distance < rest_length:
            if cfg.slack_tolerance <= 0.0:
                return cfg.min_tension
            frac = (distance - (rest_length - cfg.slack_tolerance)) / cfg.slack_tolerance
            return frac * cfg.min_tension

        ext = distance - rest_length
        if ext <= cfg.exponential_threshold:
            spring = cfg.stiffness * ext
        else:
            spring = (
                cfg.exponential_stiffness
                * (np.exp(cfg.exponential_rate * (ext - cfg.exponential_threshold)) - 1.0)
                + cfg.stiffness * cfg.exponential_threshold
            )
        return max(cfg.min_tension, float(spring + cfg.damping * radial_velocity))

    def _compute_side(self, side: str, state: MotionState, length: float) -> LineSideResult:
        solver = self.solvers[side]
        trans = self.transmissions[side]
        winch = self.winches[side]

        # Pass 1: geometry only
        geometry = solver.bridle_forces(np.zeros(3), winch, length, state, trans.resolved_position)
        cp = geometry.control_point
        if np.all(np.isfinite(cp)):
            trans.resolved_position = cp.copy()

        # Pass 2: tension at the freshly resolved point
        line_vec = cp - winch
        distance = float(np.linalg.norm(line_vec))
        if distance < EPSILON_DISTANCE:
            line_dir = np.zeros(3)
        else:
            line_dir = line_vec / distance
        radial_velocity = float(np.dot(state.point_velocity(cp), line_dir))
        raw = self.raw_tension(distance, length, radial_velocity)
        alpha = self.config.smoothing
        tension = alpha * raw + (1.0 - alpha) * self._smoothed_tension[side]
        # A non-finite tension would poison every later frame
        if np.isfinite(tension):
            self._smoothed_tension[side] = tension

        # Pass 3: distribute the real force
        line_force = -tension * line_dir
        bridle = solver.bridle_forces(line_force, winch, length, state, cp)
        if np.all(np.isfinite(bridle.control_point)):
            trans.resolved_position = bridle.control_point.copy()

        return LineSideResult(
            force=bridle.total_force,
            torque=bridle.torque,
            tension=tension,
            raw_tension=raw,
            distance=distance,
            length=length,
            control_point=bridle.control_point,
            bridle=bridle,
        )

    def compute(self, state: MotionState, control_delta: float, base_length: float) -> LineForceResult:
        """
        Line force and torque on the kite for both sides.

        Parameters
        ----------
        state : MotionState
            State the lines act on
        control_delta : float
            Signed length differential between the lines [m]
        base_length : float
            Line length at zero delta [m]

        Returns
        -------
        LineForceResult
            Summed force/torque and per-side details
        """
        sides: dict[str, LineSideResult] = {}
        for side, length in self.line_lengths(base_length, control_delta).items():
            if length < MIN_LINE_LENGTH:
                warnings.warn(
                    f"{side.capitalize()} line length {length:.3f} m too short; "
                    f"clamping to {MIN_LINE_LENGTH} m.",
                    RuntimeWarning,
                    stacklevel=2,
                )
                length = MIN_LINE_LENGTH
            sides[side] = self._compute_side(side, state, length)

        force = sides["left"].force + sides["right"].force
        torque = sides["left"].torque + sides["right"].torque
        return LineForceResult(force=force, torque=torque, sides=sides)
