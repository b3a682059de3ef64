"""
Configuration records for the kite simulation.

Every record is an immutable dataclass validated at construction. A run
keeps one :class:`SimulationConfig`; hot reload between runs builds a new
one with :meth:`SimulationConfig.replace` and hands it to
:meth:`kitesim.core.simulation.KiteSimulation.configure`.

Physical units:
- Lengths: meters [m]
- Masses: kilograms [kg]
- Forces: Newtons [N]
- Stiffness: Newtons per meter [N/m]
- Damping: Newton-seconds per meter [N·s/m]
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any

import numpy as np
from numpy.typing import NDArray

from kitesim.utils.validation import (
    validate_fraction,
    validate_non_negative,
    validate_positive,
)

DEFAULT_TIMESTEP = 1.0 / 240.0
DEFAULT_BASE_LINE_LENGTH = 10.0
DEFAULT_WINCH_LEFT = (-0.5, 0.0, 0.0)
DEFAULT_WINCH_RIGHT = (0.5, 0.0, 0.0)


@dataclass(frozen=True)
class KiteConfig:
    """
    Mass and frame dimensions of the kite.

    Attributes
    ----------
    mass : float
        Total mass [kg]
    wingspan : float
        Tip-to-tip span [m]
    height : float
        Spine length, nose to spine bottom [m]
    depth : float
        Sail depth, used for display only [m]
    frame_diameter : float
        Spar diameter, used for display only [m]
    bridle_nose, bridle_intermediate, bridle_center : float
        Bridle lengths from the control point to each attachment [m]
    """
    mass: float = 0.25
    wingspan: float = 1.65
    height: float = 0.65
    depth: float = 0.15
    frame_diameter: float = 0.01
    bridle_nose: float = 0.65
    bridle_intermediate: float = 0.65
    bridle_center: float = 0.65

    def __post_init__(self) -> None:
        validate_positive(self.mass, "mass")
        validate_positive(self.wingspan, "wingspan")
        validate_positive(self.height, "height")
        validate_non_negative(self.depth, "depth")
        validate_non_negative(self.frame_diameter, "frame_diameter")
        validate_positive(self.bridle_nose, "bridle_nose")
        validate_positive(self.bridle_intermediate, "bridle_intermediate")
        validate_positive(self.bridle_center, "bridle_center")

    @property
    def bridle_lengths(self) -> tuple[float, float, float]:
        """Bridle lengths ordered (nose, intermediate, center)."""
        return (self.bridle_nose, self.bridle_intermediate, self.bridle_center)


@dataclass(frozen=True)
class AeroConfig:
    """
    Flat-plate aerodynamic coefficients.

    Lift rises linearly up to ``lift_coefficient`` at ``stall_onset_deg``,
    blends to ``post_stall_lift_coefficient`` by ``stall_full_deg`` and holds
    it past that. Drag is ``drag_coefficient + drag_alpha_factor * alpha**2``
    with alpha in radians.
    """
    air_density: float = 1.225
    lift_coefficient: float = 0.8
    post_stall_lift_coefficient: float = 0.5
    drag_coefficient: float = 0.5
    drag_alpha_factor: float = 0.5
    stall_onset_deg: float = 15.0
    stall_full_deg: float = 25.0
    min_apparent_wind: float = 0.1
    max_panel_force: float = 200.0

    def __post_init__(self) -> None:
        validate_non_negative(self.air_density, "air_density")
        validate_non_negative(self.lift_coefficient, "lift_coefficient")
        validate_non_negative(self.post_stall_lift_coefficient, "post_stall_lift_coefficient")
        validate_non_negative(self.drag_coefficient, "drag_coefficient")
        validate_non_negative(self.drag_alpha_factor, "drag_alpha_factor")
        validate_positive(self.stall_onset_deg, "stall_onset_deg")
        if self.stall_full_deg < self.stall_onset_deg:
            raise ValueError(
                f"stall_full_deg ({self.stall_full_deg}) must not be below "
                f"stall_onset_deg ({self.stall_onset_deg})"
            )
        validate_non_negative(self.min_apparent_wind, "min_apparent_wind")
        validate_positive(self.max_panel_force, "max_panel_force")


@dataclass(frozen=True)
class LineConfig:
    """
    Bi-regime spring-damper parameters for both control lines.

    Attributes
    ----------
    stiffness : float
        Linear spring constant k [N/m]
    damping : float
        Radial damping coefficient c [N·s/m]
    smoothing : float
        Temporal smoothing weight alpha in (0, 1]; 1 disables smoothing
    min_tension : float
        Tension floor once the line is taut [N]
    slack_tolerance : float
        Width of the ramp zone below rest length [m]
    exponential_threshold : float
        Extension above which the spring stiffens exponentially [m]
    exponential_stiffness : float
        Scale of the exponential term [N]
    exponential_rate : float
        Growth rate of the exponential term [1/m]
    """
    stiffness: float = 2000.0
    damping: float = 10.0
    smoothing: float = 0.8
    min_tension: float = 0.1
    slack_tolerance: float = 0.05
    exponential_threshold: float = 0.3
    exponential_stiffness: float = 500.0
    exponential_rate: float = 2.0

    def __post_init__(self) -> None:
        validate_non_negative(self.stiffness, "stiffness")
        validate_non_negative(self.damping, "damping")
        validate_fraction(self.smoothing, "smoothing")
        if self.smoothing == 0.0:
            raise ValueError("smoothing must be greater than 0, got 0.0")
        validate_non_negative(self.min_tension, "min_tension")
        validate_non_negative(self.slack_tolerance, "slack_tolerance")
        validate_non_negative(self.exponential_threshold, "exponential_threshold")
        validate_non_negative(self.exponential_stiffness, "exponential_stiffness")
        validate_non_negative(self.exponential_rate, "exponential_rate")


@dataclass(frozen=True)
class SolverConfig:
    """
    Alternating-projection bridle solver settings.

    ``line_weight`` is the number of times the winch sphere is projected per
    iteration, giving the main line priority over the bridles.
    """
    max_iterations: int = 20
    tolerance: float = 1e-3
    relaxation: float = 0.8
    line_weight: int = 1
    error_smoothing_rate: float = 1e-4
    min_force_scale: float = 0.05
    singular_threshold: float = 1e-6

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        validate_positive(self.tolerance, "tolerance")
        validate_fraction(self.relaxation, "relaxation")
        if self.relaxation == 0.0:
            raise ValueError("relaxation must be greater than 0, got 0.0")
        if self.line_weight < 1:
            raise ValueError(f"line_weight must be at least 1, got {self.line_weight}")
        validate_non_negative(self.error_smoothing_rate, "error_smoothing_rate")
        validate_fraction(self.min_force_scale, "min_force_scale")
        validate_non_negative(self.singular_threshold, "singular_threshold")


@dataclass(frozen=True)
class IntegratorConfig:
    """Gravity, damping and safety clamps applied by the integrator."""
    gravity: float = 9.81
    damping_factor: float = 0.9999
    max_velocity: float = 30.0
    max_angular_velocity: float = 10.0

    def __post_init__(self) -> None:
        validate_non_negative(self.gravity, "gravity")
        validate_fraction(self.damping_factor, "damping_factor")
        validate_positive(self.max_velocity, "max_velocity")
        validate_positive(self.max_angular_velocity, "max_angular_velocity")


@dataclass(frozen=True)
class GroundConfig:
    """Ground plane contact response."""
    level: float = 0.0
    restitution: float = 0.15
    friction: float = 0.85
    angular_damping: float = 0.7
    rest_velocity: float = 0.1
    rest_angular_velocity: float = 0.05

    def __post_init__(self) -> None:
        validate_fraction(self.restitution, "restitution")
        validate_fraction(self.friction, "friction")
        validate_fraction(self.angular_damping, "angular_damping")
        validate_non_negative(self.rest_velocity, "rest_velocity")
        validate_non_negative(self.rest_angular_velocity, "rest_angular_velocity")


_SECTIONS = {
    "kite": KiteConfig,
    "aero": AeroConfig,
    "lines": LineConfig,
    "solver": SolverConfig,
    "integrator": IntegratorConfig,
    "ground": GroundConfig,
}


@dataclass(frozen=True)
class SimulationConfig:
    """
    Complete configuration of one simulation run.

    Examples
    --------
    >>> cfg = SimulationConfig()
    >>> stiff = cfg.replace(lines=LineConfig(stiffness=4000.0))
    >>> stiff.lines.stiffness
    4000.0
    """
    kite: KiteConfig = field(default_factory=KiteConfig)
    aero: AeroConfig = field(default_factory=AeroConfig)
    lines: LineConfig = field(default_factory=LineConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)
    integrator: IntegratorConfig = field(default_factory=IntegratorConfig)
    ground: GroundConfig = field(default_factory=GroundConfig)
    timestep: float = DEFAULT_TIMESTEP
    base_line_length: float = DEFAULT_BASE_LINE_LENGTH
    winch_left: tuple[float, float, float] = DEFAULT_WINCH_LEFT
    winch_right: tuple[float, float, float] = DEFAULT_WINCH_RIGHT

    def __post_init__(self) -> None:
        validate_positive(self.timestep, "timestep")
        validate_positive(self.base_line_length, "base_line_length")
        for name in ("winch_left", "winch_right"):
            value = tuple(float(c) for c in getattr(self, name))
            if len(value) != 3:
                raise ValueError(f"{name} must have 3 components, got {len(value)}")
            object.__setattr__(self, name, value)

    def winch_positions(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Return the (left, right) winch positions as arrays."""
        return (
            np.array(self.winch_left, dtype=np.float64),
            np.array(self.winch_right, dtype=np.float64),
        )

    def replace(self, **changes: Any) -> SimulationConfig:
        """Return a copy with the given top-level fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Nested plain-dict form, suitable for JSON."""
        out = asdict(self)
        out["winch_left"] = list(self.winch_left)
        out["winch_right"] = list(self.winch_right)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimulationConfig:
        """
        Build a configuration from a (possibly partial) nested dict.

        Missing keys keep their defaults; unknown keys raise ``ValueError``.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            section = _SECTIONS.get(key)
            if section is None:
                kwargs[key] = value
                continue
            section_keys = {f.name for f in fields(section)}
            bad = set(value) - section_keys
            if bad:
                raise ValueError(f"Unknown keys in '{key}': {sorted(bad)}")
            kwargs[key] = section(**value)
        return cls(**kwargs)
