import numpy as np
import pytest

from kitesim.config import AeroConfig
from kitesim.dynamics.body import MotionState
from kitesim.dynamics.forces import AerodynamicForce, ForceKind, GravityForce, WindState
from kitesim.utils.orientation import orientation_from_axis_angle


# --- Wind ---

def test_wind_from_speed_normalizes_direction():
    wind = WindState.from_speed(12.0, direction=(0.0, 0.0, -2.0))
    assert np.allclose(wind.velocity, [0.0, 0.0, -12.0])
    assert wind.speed == pytest.approx(12.0)
    assert np.allclose(wind.direction, [0.0, 0.0, -1.0])


def test_calm_wind_has_zero_direction():
    wind = WindState()
    assert wind.speed == 0.0
    assert np.allclose(wind.direction, np.zeros(3))


def test_wind_is_immutable():
    wind = WindState.from_speed(5.0)
    with pytest.raises(ValueError):
        wind.velocity[0] = 1.0


def test_wind_rejects_bad_input():
    with pytest.raises(ValueError):
        WindState(velocity=np.array([np.nan, 0.0, 0.0]))
    with pytest.raises(ValueError):
        WindState(velocity=np.zeros(3), turbulence=1.5)
    with pytest.raises(ValueError):
        WindState.from_speed(10.0, direction=(0.0, 0.0, 0.0))


def test_turbulence_is_deterministic_gust():
    wind = WindState.from_speed(10.0, turbulence=0.2)
    t = 0.7
    expected = np.array([
        0.5 * 2.0 * np.sin(2.0 * t),
        0.25 * 2.0 * np.sin(1.5 * t),
        -10.0,
    ])
    assert np.allclose(wind.sample(t), expected)
    assert np.allclose(wind.sample(t), wind.sample(t))
    assert np.allclose(WindState.from_speed(10.0).sample(t), [0.0, 0.0, -10.0])


# --- Aerodynamics ---

def test_lift_and_drag_coefficient_curves(body):
    aero = AerodynamicForce(body)
    assert aero.lift_coefficient(0.0) == 0.0
    assert aero.lift_coefficient(np.deg2rad(7.5)) == pytest.approx(0.4)
    assert aero.lift_coefficient(np.deg2rad(15.0)) == pytest.approx(0.8)
    assert aero.lift_coefficient(np.deg2rad(20.0)) == pytest.approx(0.65)
    assert aero.lift_coefficient(np.deg2rad(30.0)) == pytest.approx(0.5)
    assert aero.drag_coefficient(0.0) == pytest.approx(0.5)
    assert aero.drag_coefficient(1.0) == pytest.approx(1.0)


def test_calm_apparent_wind_gives_no_force(body, upright_state):
    result = AerodynamicForce(body).compute(upright_state, WindState.from_speed(0.05))
    assert np.allclose(result.force, 0.0)
    assert np.allclose(result.torque, 0.0)
    assert result.panels == []


def test_face_on_wind_is_pure_drag(body):
    state = MotionState()
    result = AerodynamicForce(body).compute(state, WindState.from_speed(10.0, (0.0, 0.0, 1.0)))

    cd = 0.5 + 0.5 * (np.pi / 2.0) ** 2
    q_dyn = 0.5 * 1.225 * 100.0
    expected = q_dyn * body.geometry.total_area * cd
    assert np.allclose(result.force, [0.0, 0.0, expected])
    assert result.angle_of_attack == pytest.approx(np.pi / 2.0)
    for panel in result.panels:
        assert np.allclose(panel.lift, 0.0)
    # Symmetric sail: no yaw or roll
    assert result.torque[1] == pytest.approx(0.0, abs=1e-9)
    assert result.torque[2] == pytest.approx(0.0, abs=1e-9)


def test_lift_is_perpendicular_and_drag_parallel_to_wind(body):
    state = MotionState(
        position=np.array([0.0, 5.0, -8.0]),
        orientation=orientation_from_axis_angle([1.0, 0.0, 0.0], 70.0),
    )
    wind = WindState.from_speed(12.0, (0.0, 0.0, -1.0))
    result = AerodynamicForce(body).compute(state, wind)
    w_hat = wind.direction

    assert len(result.panels) == body.geometry.panel_count
    for panel in result.panels:
        assert np.dot(panel.lift, w_hat) == pytest.approx(0.0, abs=1e-9)
        assert np.linalg.norm(np.cross(panel.drag, w_hat)) == pytest.approx(0.0, abs=1e-9)
        assert np.dot(panel.drag, w_hat) > 0.0
        assert np.linalg.norm(panel.lift) > 0.0
    # Kite at 20 deg angle of attack lifts upward
    assert result.force[1] > 0.0
    assert result.angle_of_attack == pytest.approx(np.deg2rad(20.0))


def test_drag_opposes_motion_in_still_air(body):
    state = MotionState(velocity=np.array([0.0, 0.0, 5.0]))
    result = AerodynamicForce(body).compute(state, WindState())
    assert result.force[2] < 0.0
    assert np.allclose(result.apparent_wind, [0.0, 0.0, -5.0])


def test_panel_force_is_capped(body):
    aero = AerodynamicForce(body, AeroConfig(max_panel_force=5.0))
    result = aero.compute(MotionState(), WindState.from_speed(30.0, (0.0, 0.0, 1.0)))
    for panel in result.panels:
        assert np.linalg.norm(panel.force) == pytest.approx(5.0)
    assert np.linalg.norm(result.force) == pytest.approx(5.0 * body.geometry.panel_count)


def test_aerodynamic_kind(body):
    assert AerodynamicForce(body).kind is ForceKind.AERODYNAMIC


# --- Gravity ---

def test_gravity_force(body, upright_state):
    gravity = GravityForce(body)
    assert np.allclose(gravity.compute(upright_state), [0.0, -0.25 * 9.81, 0.0])
    assert gravity.panel_masses.sum() == pytest.approx(body.mass)
    assert gravity.kind is ForceKind.GRAVITY


def test_gravity_torque_zero_when_upright(body, upright_state):
    assert np.allclose(GravityForce(body).compute_torque(upright_state), 0.0, atol=1e-12)


def test_gravity_torque_on_pitched_kite(body):
    state = MotionState(orientation=orientation_from_axis_angle([1.0, 0.0, 0.0], -30.0))
    gravity = GravityForce(body)

    expected = np.zeros(3)
    for i, m in enumerate(gravity.panel_masses):
        lever = body.global_panel_centroid(i, state) - state.position
        expected += np.cross(lever, [0.0, -m * 9.81, 0.0])
    torque = gravity.compute_torque(state)
    assert np.allclose(torque, expected)
    assert abs(torque[0]) > 0.0


def test_negative_gravity_rejected(body):
    with pytest.raises(ValueError):
        GravityForce(body, g=-1.0)
