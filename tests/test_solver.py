import numpy as np
import pytest

from kitesim.config import IntegratorConfig
from kitesim.core.solver import VerletIntegrator, clamp_norm
from kitesim.dynamics.body import MotionState


def test_clamp_norm():
    assert np.allclose(clamp_norm(np.array([3.0, 4.0, 0.0]), 10.0), [3.0, 4.0, 0.0])
    assert np.allclose(clamp_norm(np.array([3.0, 4.0, 0.0]), 1.0), [0.6, 0.8, 0.0])


def test_moment_of_inertia():
    integ = VerletIntegrator(wingspan=2.0, height=1.0)
    assert integ.moment_of_inertia(1.2) == pytest.approx(0.5)


def test_free_fall_step():
    integ = VerletIntegrator(IntegratorConfig(damping_factor=1.0))
    state = MotionState(position=np.array([0.0, 10.0, 0.0]))
    dt = 0.01
    new = integ.advance(state, np.array([0.0, -9.81 * 0.25, 0.0]), np.zeros(3), dt, 0.25)

    # Semi-implicit: velocity first, then position with the new velocity
    assert np.allclose(new.acceleration, [0.0, -9.81, 0.0])
    assert np.allclose(new.velocity, [0.0, -9.81 * dt, 0.0])
    assert np.allclose(new.position, [0.0, 10.0 - 9.81 * dt * dt, 0.0])
    assert new.timestamp == pytest.approx(dt)
    # Input untouched
    assert np.allclose(state.position, [0.0, 10.0, 0.0])
    assert state.timestamp == 0.0


def test_damping_factor_applies():
    integ = VerletIntegrator(IntegratorConfig(damping_factor=0.5))
    state = MotionState(velocity=np.array([2.0, 0.0, 0.0]))
    new = integ.advance(state, np.zeros(3), np.zeros(3), 0.1, 1.0)
    assert np.allclose(new.velocity, [1.0, 0.0, 0.0])


def test_velocity_clamps():
    integ = VerletIntegrator(IntegratorConfig(max_velocity=30.0, max_angular_velocity=10.0))
    state = MotionState()
    new = integ.advance(state, np.array([1e6, 0.0, 0.0]), np.array([0.0, 1e6, 0.0]), 0.01, 1.0)
    assert np.linalg.norm(new.velocity) == pytest.approx(30.0)
    assert np.linalg.norm(new.angular_velocity) == pytest.approx(10.0)
    assert np.linalg.norm(new.orientation) == pytest.approx(1.0)


def test_torque_rotates_body():
    integ = VerletIntegrator(IntegratorConfig(damping_factor=1.0))
    state = MotionState()
    mass = 0.25
    inertia = integ.moment_of_inertia(mass)
    dt = 0.01
    torque = np.array([0.0, 0.0, inertia * 2.0])
    new = integ.advance(state, np.zeros(3), torque, dt, mass)
    assert np.allclose(new.angular_acceleration, [0.0, 0.0, 2.0])
    assert np.allclose(new.angular_velocity, [0.0, 0.0, 2.0 * dt])
    # Positive rotation about Z turns local +X toward +Y
    assert new.rotate([1.0, 0.0, 0.0])[1] > 0.0


def test_clamp_in_place():
    integ = VerletIntegrator()
    state = MotionState(velocity=np.array([0.0, 100.0, 0.0]),
                        angular_velocity=np.array([50.0, 0.0, 0.0]))
    integ.clamp(state)
    assert np.allclose(state.velocity, [0.0, 30.0, 0.0])
    assert np.allclose(state.angular_velocity, [10.0, 0.0, 0.0])


def test_rejects_bad_dimensions():
    with pytest.raises(ValueError):
        VerletIntegrator(wingspan=0.0)
