"""
External force models acting on the kite.

Force calculators are pure functions of the motion state and environment.
The set of force kinds is closed (:class:`ForceKind`); the simulation
evaluates each kind explicitly rather than iterating an open plugin list.

Physical units:
- Forces: Newtons [N]
- Torques: Newton-meters [N·m]
- Velocities: meters per second [m/s]
- Areas: square meters [m²]
- Densities: kilograms per cubic meter [kg/m³]
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np
from numpy.typing import NDArray

from kitesim.config import AeroConfig
from kitesim.dynamics.body import KiteBody, MotionState
from kitesim.utils.validation import validate_fraction, validate_vector3

# Physical constants
EPSILON_VELOCITY = 1e-12
MIN_LIFT_DIRECTION = 0.01  # |n × ŵ| below this: panel edge-on or face-on, no lift

# Turbulence pattern: gust amplitude scale and angular frequency per axis
TURBULENCE_X = (0.5, 2.0)
TURBULENCE_Y = (0.25, 1.5)


class ForceKind(Enum):
    """Force sources acting on the kite."""

    AERODYNAMIC = "aerodynamic"
    GRAVITY = "gravity"
    LINE = "line"


@dataclass(frozen=True, eq=False)
class WindState:
    """
    Ambient wind.

    Parameters
    ----------
    velocity : NDArray[np.float64]
        Mean wind velocity in world frame [m/s] (3,)
    turbulence : float
        Gust intensity in [0, 1]. Gust amplitude is ``turbulence * speed``.

    Notes
    -----
    Turbulence is a deterministic function of time so that replaying a run
    from the same state reproduces it exactly.
    """
    velocity: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    turbulence: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "velocity", validate_vector3(self.velocity, "wind velocity"))
        self.velocity.setflags(write=False)
        validate_fraction(self.turbulence, "turbulence")

    @classmethod
    def from_speed(
        cls,
        speed: float,
        direction: NDArray[np.float64] | tuple[float, float, float] = (0.0, 0.0, -1.0),
        turbulence: float = 0.0,
    ) -> WindState:
        """Wind of ``speed`` m/s blowing toward ``direction``."""
        d = np.asarray(direction, dtype=np.float64)
        norm = np.linalg.norm(d)
        if norm < EPSILON_VELOCITY:
            raise ValueError("Wind direction must be non-zero")
        return cls(velocity=d / norm * float(speed), turbulence=turbulence)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    @property
    def direction(self) -> NDArray[np.float64]:
        """Unit vector the wind blows toward (zero for calm air)."""
        s = self.speed
        if s < EPSILON_VELOCITY:
            return np.zeros(3)
        return self.velocity / s

    def sample(self, t: float) -> NDArray[np.float64]:
        """Wind velocity at time ``t`` including gusts [m/s]."""
        v = np.array(self.velocity, dtype=np.float64)
        gust = self.turbulence * self.speed
        if gust > 0.0:
            v[0] += TURBULENCE_X[0] * gust * np.sin(TURBULENCE_X[1] * t)
            v[1] += TURBULENCE_Y[0] * gust * np.sin(TURBULENCE_Y[1] * t)
        return v


@dataclass
class PanelForce:
    """Aerodynamic load on one sail panel, in world frame."""
    lift: NDArray[np.float64]
    drag: NDArray[np.float64]
    centroid: NDArray[np.float64]
    angle_of_attack: float
    lift_coefficient: float
    drag_coefficient: float

    @property
    def force(self) -> NDArray[np.float64]:
        return self.lift + self.drag


@dataclass
class AerodynamicResult:
    """
    Summed aerodynamic load.

    ``angle_of_attack`` is the area-weighted mean over panels [rad].
    """
    force: NDArray[np.float64]
    torque: NDArray[np.float64]
    panels: list[PanelForce]
    apparent_wind: NDArray[np.float64]
    angle_of_attack: float

    @classmethod
    def calm(cls, apparent_wind: NDArray[np.float64]) -> AerodynamicResult:
        return cls(np.zeros(3), np.zeros(3), [], apparent_wind, 0.0)


class AerodynamicForce:
    """
    Flat-plate lift and drag summed over the sail panels.

    For each panel with world normal ``n`` and apparent wind direction ``ŵ``:

    - ``α = asin(|n · ŵ|)``
    - ``Cl`` rises linearly to ``lift_coefficient`` at the stall onset,
      blends to ``post_stall_lift_coefficient`` at full stall, then holds
    - ``Cd = drag_coefficient + drag_alpha_factor · α²``
    - ``q = ½ ρ |v_app|²``
    - lift along the part of the downstream-facing normal perpendicular to
      ``ŵ`` (``ŵ × (n × ŵ)``), drag along ``ŵ``

    Parameters
    ----------
    body : KiteBody
        Geometry providing panels, areas and centroids
    config : AeroConfig | None
        Coefficients. Defaults to ``AeroConfig()``.

    Examples
    --------
    >>> aero = AerodynamicForce(KiteBody.standard())
    >>> result = aero.compute(state, WindState.from_speed(12.0))
    >>> result.force
    """
    kind = ForceKind.AERODYNAMIC

    def __init__(self, body: KiteBody, config: AeroConfig | None = None) -> None:
        self.body = body
        self.config = config if config is not None else AeroConfig()
        self._stall_onset = np.deg2rad(self.config.stall_onset_deg)
        self._stall_full = np.deg2rad(self.config.stall_full_deg)

    def lift_coefficient(self, alpha: float) -> float:
        """Lift coefficient for angle of attack ``alpha`` [rad]."""
        cfg = self.config
        if alpha <= self._stall_onset:
            return cfg.lift_coefficient * alpha / self._stall_onset
        if alpha >= self._stall_full:
            return cfg.post_stall_lift_coefficient
        frac = (alpha - self._stall_onset) / (self._stall_full - self._stall_onset)
        return cfg.lift_coefficient + frac * (cfg.post_stall_lift_coefficient - cfg.lift_coefficient)

    def drag_coefficient(self, alpha: float) -> float:
        """Drag coefficient for angle of attack ``alpha`` [rad]."""
        return self.config.drag_coefficient + self.config.drag_alpha_factor * alpha**2

    def compute(self, state: MotionState, wind: WindState) -> AerodynamicResult:
        """
        Aerodynamic force and torque about the center of mass.

        Returns a zero result when the apparent wind is below
        ``min_apparent_wind``.
        """
        apparent = wind.sample(state.timestamp) - state.velocity
        speed = float(np.linalg.norm(apparent))
        if speed < self.config.min_apparent_wind:
            return AerodynamicResult.calm(apparent)

        w_hat = apparent / speed
        q_dyn = 0.5 * self.config.air_density * speed**2
        geom = self.body.geometry
        normals = state.rotate(geom.panel_normals)
        centroids = state.to_world(geom.panel_centroids)
        areas = geom.panel_areas

        panels: list[PanelForce] = []
        force = np.zeros(3)
        torque = np.zeros(3)
        weighted_alpha = 0.0
        for n, centroid, area in zip(normals, centroids, areas):
            cos_n = float(np.dot(n, w_hat))
            alpha = float(np.arcsin(min(1.0, abs(cos_n))))
            cl = self.lift_coefficient(alpha)
            cd = self.drag_coefficient(alpha)

            # Normal facing downstream, i.e. away from the pressure side
            n_eff = n if cos_n >= 0.0 else -n
            side = np.cross(n_eff, w_hat)
            if np.linalg.norm(side) < MIN_LIFT_DIRECTION:
                lift = np.zeros(3)
            else:
                lift_dir = np.cross(w_hat, side)
                lift = q_dyn * area * cl * lift_dir / np.linalg.norm(lift_dir)
            drag = q_dyn * area * cd * w_hat

            total = lift + drag
            magnitude = np.linalg.norm(total)
            if magnitude > self.config.max_panel_force:
                scale = self.config.max_panel_force / magnitude
                lift = lift * scale
                drag = drag * scale
                total = total * scale

            force += total
            torque += np.cross(centroid - state.position, total)
            weighted_alpha += alpha * area
            panels.append(PanelForce(lift, drag, centroid, alpha, cl, cd))

        return AerodynamicResult(
            force=force,
            torque=torque,
            panels=panels,
            apparent_wind=apparent,
            angle_of_attack=weighted_alpha / float(areas.sum()),
        )


class GravityForce:
    """
    Gravity with mass distributed over the sail panels.

    Mass is split across panels in proportion to panel area at construction.
    The net force is ``-m·g`` along world Y; the torque sums each panel's
    weight about the center of mass, which couples pitch and roll to the
    kite's attitude.

    Parameters
    ----------
    body : KiteBody
        Mass and geometry
    g : float
        Gravitational acceleration magnitude [m/s²]. Standard Earth: 9.81

    Examples
    --------
    >>> gravity = GravityForce(KiteBody.standard())
    >>> gravity.compute(state)
    array([ 0.    , -2.4525,  0.    ])
    """
    kind = ForceKind.GRAVITY

    def __init__(self, body: KiteBody, g: float = 9.81) -> None:
        if g < 0:
            raise ValueError(f"Gravity must be non-negative, got {g}")
        self.body = body
        self.g = float(g)
        areas = body.geometry.panel_areas
        self.panel_masses = body.mass * areas / areas.sum()

    def compute(self, state: MotionState) -> NDArray[np.float64]:
        """Gravitational force F = -m g ŷ [N]."""
        return np.array([0.0, -self.body.mass * self.g, 0.0])

    def compute_torque(self, state: MotionState) -> NDArray[np.float64]:
        """Torque of the distributed panel weights about the center of mass [N·m]."""
        centroids = state.to_world(self.body.geometry.panel_centroids)
        levers = centroids - state.position
        weights = np.zeros((len(self.panel_masses), 3))
        weights[:, 1] = -self.panel_masses * self.g
        return np.cross(levers, weights).sum(axis=0)
