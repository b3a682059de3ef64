"""
Kite rigid body: motion state and local-to-world transforms.

All physical quantities use SI units:
- Position: meters [m]
- Velocity: meters per second [m/s]
- Angular velocity: radians per second [rad/s]
- Mass: kilograms [kg]

Quaternions are scalar-last [x, y, z, w], rotating body frame to world
frame. Angular velocity is expressed in the world frame.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation as ScR

from kitesim.config import KiteConfig
from kitesim.dynamics.geometry import KiteGeometry

# Constants
QUATERNION_EPSILON = 1e-12
SMALL_ANGLE = 1e-6  # Below this, use the first-order rotation vector
MIN_MASS = 1e-10  # Minimum mass to avoid division by zero


def quat_normalize(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Return unit quaternion (float64).

    Parameters
    ----------
    q : NDArray[np.float64]
        Quaternion in scalar-last format [x, y, z, w].

    Returns
    -------
    NDArray[np.float64]
        Normalized unit quaternion. Returns [0, 0, 0, 1] if input norm is zero.
    """
    q = np.asarray(q, dtype=np.float64)
    n = np.linalg.norm(q)
    if n < QUATERNION_EPSILON or not np.isfinite(n):
        warnings.warn(
            "Degenerate quaternion detected. Returning identity quaternion [0,0,0,1].",
            RuntimeWarning,
            stacklevel=2
        )
        return np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)
    return q / n


def quat_integrate_exponential_map(
    q: NDArray[np.float64],
    omega: NDArray[np.float64],
    dt: float
) -> NDArray[np.float64]:
    """
    Rotate ``q`` by the world-frame angular velocity ``omega`` over ``dt``.

    Computes ``exp(omega * dt) * q`` and renormalizes.

    Parameters
    ----------
    q : NDArray[np.float64]
        Current unit quaternion (4,)
    omega : NDArray[np.float64]
        Angular velocity [rad/s] (3,)
    dt : float
        Time step [s]

    Returns
    -------
    NDArray[np.float64]
        Updated unit quaternion (4,)
    """
    rotvec = np.asarray(omega, dtype=np.float64) * dt
    if np.linalg.norm(rotvec) < QUATERNION_EPSILON:
        return quat_normalize(q)
    R_new = ScR.from_rotvec(rotvec) * ScR.from_quat(q)
    return quat_normalize(R_new.as_quat())


def quat_delta_rotation_vector(
    q_before: NDArray[np.float64],
    q_after: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    World-frame rotation vector taking ``q_before`` to ``q_after``.

    Extracts axis and angle from ``q_after * q_before⁻¹`` with
    ``angle = 2·acos(|w|)`` and ``axis = (x, y, z) / sin(angle/2)``. The
    delta is first flipped to its ``w >= 0`` form so the shortest rotation
    is returned. Tiny angles use the first-order limit ``2·(x, y, z)``.

    Returns
    -------
    NDArray[np.float64]
        Rotation vector (axis * angle) [rad] (3,)
    """
    delta = (ScR.from_quat(q_after) * ScR.from_quat(q_before).inv()).as_quat()
    if delta[3] < 0.0:
        delta = -delta
    xyz = delta[:3]
    w = min(1.0, float(delta[3]))
    angle = 2.0 * np.arccos(w)
    if angle < SMALL_ANGLE:
        return 2.0 * xyz
    return xyz / np.sin(angle / 2.0) * angle


def _vec3(value: NDArray[np.float64] | None) -> NDArray[np.float64]:
    if value is None:
        return np.zeros(3, dtype=np.float64)
    arr = np.array(value, dtype=np.float64)
    if arr.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {arr.shape}")
    return arr


@dataclass
class MotionState:
    """
    Kinematic state of the kite.

    Attributes
    ----------
    position : NDArray[np.float64]
        Body origin (spine bottom) in world frame [m] (3,)
    velocity : NDArray[np.float64]
        Linear velocity [m/s] (3,)
    orientation : NDArray[np.float64]
        Unit quaternion body->world [x, y, z, w] (4,). Normalized on init.
    angular_velocity : NDArray[np.float64]
        World-frame angular velocity [rad/s] (3,)
    acceleration, angular_acceleration : NDArray[np.float64]
        Last integrator accelerations, for diagnostics only
    timestamp : float
        Simulation time of this state [s]

    Notes
    -----
    States are values: the simulation hands out copies and never aliases
    the arrays of its committed state.
    """
    position: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    velocity: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    orientation: NDArray[np.float64] = field(
        default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0])
    )
    angular_velocity: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    acceleration: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    angular_acceleration: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        self.position = _vec3(self.position)
        self.velocity = _vec3(self.velocity)
        self.angular_velocity = _vec3(self.angular_velocity)
        self.acceleration = _vec3(self.acceleration)
        self.angular_acceleration = _vec3(self.angular_acceleration)
        q = np.array(self.orientation, dtype=np.float64)
        if q.shape != (4,):
            raise ValueError(f"Quaternion must have shape (4,), got {q.shape}")
        # Normalize only finite input; validation must still see NaNs
        self.orientation = quat_normalize(q) if np.all(np.isfinite(q)) else q
        self.timestamp = float(self.timestamp)

    def copy(self) -> MotionState:
        return MotionState(
            position=self.position.copy(),
            velocity=self.velocity.copy(),
            orientation=self.orientation.copy(),
            angular_velocity=self.angular_velocity.copy(),
            acceleration=self.acceleration.copy(),
            angular_acceleration=self.angular_acceleration.copy(),
            timestamp=self.timestamp,
        )

    def is_finite(self) -> bool:
        """True when position, velocity, orientation and angular velocity are all finite."""
        return bool(
            np.all(np.isfinite(self.position))
            and np.all(np.isfinite(self.velocity))
            and np.all(np.isfinite(self.orientation))
            and np.all(np.isfinite(self.angular_velocity))
        )

    def normalize_orientation(self) -> None:
        self.orientation = quat_normalize(self.orientation)

    def rotation(self) -> ScR:
        return ScR.from_quat(self.orientation)

    def rotation_matrix(self) -> NDArray[np.float64]:
        """3x3 matrix R such that v_world = R @ v_body."""
        return self.rotation().as_matrix()

    def to_world(self, local_point: NDArray[np.float64]) -> NDArray[np.float64]:
        """Transform local point(s) (3,) or (N, 3) to world frame."""
        local_point = np.asarray(local_point, dtype=np.float64)
        return local_point @ self.rotation_matrix().T + self.position

    def rotate(self, local_vector: NDArray[np.float64]) -> NDArray[np.float64]:
        """Rotate local direction(s) (3,) or (N, 3) to world frame."""
        local_vector = np.asarray(local_vector, dtype=np.float64)
        return local_vector @ self.rotation_matrix().T

    def point_velocity(self, world_point: NDArray[np.float64]) -> NDArray[np.float64]:
        """Velocity of a body-fixed point: v + ω × r."""
        r = np.asarray(world_point, dtype=np.float64) - self.position
        return self.velocity + np.cross(self.angular_velocity, r)


class KiteBody:
    """
    Kite geometry plus mass properties.

    The body holds no motion state; every query takes the
    :class:`MotionState` to evaluate against, so predicted and committed
    states can be inspected side by side.

    Parameters
    ----------
    geometry : KiteGeometry
        Local point/panel layout
    mass : float
        Total mass [kg]. Must be positive.
    name : str
        Identifier used in logs

    Raises
    ------
    ValueError
        If mass is not positive.

    Notes
    -----
    The center of mass is taken at the body origin. The rotational inertia
    is the scalar plate approximation ``I = m·(span² + height²)/12``.
    """
    __slots__ = ("name", "geometry", "mass", "inv_mass", "inertia")

    def __init__(self, geometry: KiteGeometry, mass: float, name: str = "kite") -> None:
        if mass <= 0:
            raise ValueError(f"Mass must be positive, got {mass}")
        if mass < MIN_MASS:
            warnings.warn(
                f"Very small mass ({mass} kg) detected. Consider using a larger value.",
                RuntimeWarning, stacklevel=2
            )
        self.name = name
        self.geometry = geometry
        self.mass = float(mass)
        self.inv_mass = 1.0 / self.mass
        span = geometry.config.wingspan
        height = geometry.config.height
        self.inertia = self.mass * (span**2 + height**2) / 12.0

    @classmethod
    def standard(cls, config: KiteConfig | None = None) -> KiteBody:
        """Build the body described by a :class:`KiteConfig`."""
        config = config if config is not None else KiteConfig()
        return cls(KiteGeometry(config), config.mass)

    def global_point(self, name: str, state: MotionState) -> NDArray[np.float64]:
        return state.to_world(self.geometry.point(name))

    def global_points(self, state: MotionState) -> dict[str, NDArray[np.float64]]:
        """World positions of every geometry point."""
        names = list(self.geometry.points)
        world = state.to_world(self.geometry.all_points())
        return dict(zip(names, world))

    def global_panel_normal(self, index: int, state: MotionState) -> NDArray[np.float64]:
        return state.rotate(self.geometry.panel_normal(index))

    def global_panel_centroid(self, index: int, state: MotionState) -> NDArray[np.float64]:
        return state.to_world(self.geometry.panel_centroid(index))

    def lowest_point(self, state: MotionState) -> tuple[NDArray[np.float64], float]:
        """
        Lowest geometry point in world frame.

        Returns
        -------
        tuple[NDArray[np.float64], float]
            The point (3,) and its altitude (world Y) [m]
        """
        world = state.to_world(self.geometry.all_points())
        idx = int(np.argmin(world[:, 1]))
        return world[idx], float(world[idx, 1])

    def kinetic_energy(self, state: MotionState) -> float:
        """Translational plus rotational kinetic energy [J]."""
        T_trans = 0.5 * self.mass * float(np.dot(state.velocity, state.velocity))
        T_rot = 0.5 * self.inertia * float(np.dot(state.angular_velocity, state.angular_velocity))
        return T_trans + T_rot
