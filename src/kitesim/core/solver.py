"""
Time integration for the kite body.

:class:`VerletIntegrator` advances a :class:`MotionState` one fixed step
with semi-implicit (velocity first) updates, velocity damping and hard
speed clamps. It integrates free motion only; line constraints are applied
afterwards by the simulation.
"""
from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from kitesim.config import IntegratorConfig
from kitesim.dynamics.body import MotionState, quat_integrate_exponential_map
from kitesim.utils.validation import validate_positive


def clamp_norm(v: NDArray[np.float64], limit: float) -> NDArray[np.float64]:
    """Scale ``v`` down so that ``|v| <= limit``; direction is kept."""
    n = float(np.linalg.norm(v))
    if n > limit:
        return v * (limit / n)
    return v


class VerletIntegrator:
    """
    Semi-implicit integrator with damping and velocity clamps.

    Parameters
    ----------
    config : IntegratorConfig | None
        Damping factor and velocity limits
    wingspan, height : float
        Frame dimensions used for the inertia approximation [m]

    Notes
    -----
    Integration order:

    1. a = F/m
    2. v' = clamp((v + a·dt)·damping, max_velocity)
    3. p' = p + v'·dt
    4. α = τ/I, I = m·(span² + height²)/12
    5. ω' = clamp((ω + α·dt)·damping, max_angular_velocity)
    6. q' = normalize(exp(ω'·dt) ⊗ q)

    Examples
    --------
    >>> integ = VerletIntegrator(IntegratorConfig(), wingspan=1.65, height=0.65)
    >>> new = integ.advance(state, force, torque, dt=1/240, mass=0.25)
    """

    def __init__(
        self,
        config: IntegratorConfig | None = None,
        wingspan: float = 1.65,
        height: float = 0.65,
    ) -> None:
        validate_positive(wingspan, "wingspan")
        validate_positive(height, "height")
        self.config = config if config is not None else IntegratorConfig()
        self.wingspan = float(wingspan)
        self.height = float(height)

    def moment_of_inertia(self, mass: float) -> float:
        """Scalar moment of inertia [kg·m²]."""
        return mass * (self.wingspan**2 + self.height**2) / 12.0

    def clamp(self, state: MotionState) -> None:
        """Enforce the velocity limits on ``state`` in place."""
        state.velocity = clamp_norm(state.velocity, self.config.max_velocity)
        state.angular_velocity = clamp_norm(state.angular_velocity, self.config.max_angular_velocity)

    def advance(
        self,
        state: MotionState,
        force: NDArray[np.float64],
        torque: NDArray[np.float64],
        dt: float,
        mass: float,
    ) -> MotionState:
        """
        Integrate one step of free motion.

        Parameters
        ----------
        state : MotionState
            Current state (not modified)
        force : NDArray[np.float64]
            Net external force [N] (3,)
        torque : NDArray[np.float64]
            Net external torque about the center of mass [N·m] (3,)
        dt : float
            Time step [s]
        mass : float
            Body mass [kg]

        Returns
        -------
        MotionState
            New state, timestamp advanced by ``dt``
        """
        cfg = self.config
        acceleration = np.asarray(force, dtype=np.float64) / mass
        velocity = clamp_norm((state.velocity + acceleration * dt) * cfg.damping_factor,
                              cfg.max_velocity)
        position = state.position + velocity * dt

        angular_acceleration = np.asarray(torque, dtype=np.float64) / self.moment_of_inertia(mass)
        angular_velocity = clamp_norm(
            (state.angular_velocity + angular_acceleration * dt) * cfg.damping_factor,
            cfg.max_angular_velocity,
        )
        orientation = quat_integrate_exponential_map(state.orientation, angular_velocity, dt)

        return MotionState(
            position=position,
            velocity=velocity,
            orientation=orientation,
            angular_velocity=angular_velocity,
            acceleration=acceleration,
            angular_acceleration=angular_acceleration,
            timestamp=state.timestamp + dt,
        )
