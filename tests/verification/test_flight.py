"""
Flight Verification Tests.

Runs the full step pipeline and checks:
- Ballistic motion with slack lines (analytical comparison)
- Energy conservation without air or damping
- Left/right symmetry of the line loads
- Long-run stability at the display timestep
- Deterministic replay
"""

import numpy as np
import pytest

from kitesim.config import AeroConfig, IntegratorConfig, SimulationConfig
from kitesim.core.simulation import KiteSimulation
from kitesim.dynamics.body import MotionState
from kitesim.dynamics.forces import WindState


def vacuum_config() -> SimulationConfig:
    """No air and no numerical damping: gravity is the only force."""
    return SimulationConfig(
        aero=AeroConfig(air_density=0.0),
        integrator=IntegratorConfig(damping_factor=1.0),
    )


class TestSlackFreeFall:
    """
    With the lines slack the kite is ballistic.

    Semi-implicit Euler with constant gravity gives, after n steps:
        v_n = -g·n·dt
        y_n = y_0 - g·dt²·n(n+1)/2
    which approaches y_0 - ½·g·t² as dt → 0.
    """

    def test_single_step_is_free_fall(self):
        sim = KiteSimulation(initial_state=MotionState(position=np.array([0.0, 10.0, 0.0])))
        sim.set_base_line_length(30.0)
        snap = sim.step(1.0 / 240.0)

        assert snap.valid
        assert snap.lines.left_tension == 0.0
        assert snap.lines.right_tension == 0.0
        assert np.allclose(snap.forces.lines, 0.0)
        assert snap.state.acceleration[1] == pytest.approx(-9.81, abs=1e-6)

    def test_ballistic_trajectory(self):
        g = 9.81
        dt = 1.0 / 240.0
        n = 120
        sim = KiteSimulation(
            config=vacuum_config(),
            initial_state=MotionState(position=np.array([0.0, 10.0, 0.0])),
        )
        sim.set_base_line_length(30.0)
        for _ in range(n):
            snap = sim.step(dt)

        y_discrete = 10.0 - g * dt**2 * n * (n + 1) / 2.0
        y_analytical = 10.0 - 0.5 * g * (n * dt) ** 2
        assert snap.state.position[1] == pytest.approx(y_discrete, abs=1e-9)
        assert snap.state.velocity[1] == pytest.approx(-g * n * dt, abs=1e-9)
        # First-order scheme: error bounded by g·dt·t
        assert abs(snap.state.position[1] - y_analytical) <= g * dt * n * dt
        # No lateral drift
        assert np.allclose(snap.state.position[[0, 2]], 0.0)
        assert np.allclose(snap.state.angular_velocity, 0.0)

    def test_energy_conserved_in_vacuum(self):
        sim = KiteSimulation(
            config=vacuum_config(),
            initial_state=MotionState(position=np.array([0.0, 10.0, 0.0])),
        )
        sim.set_base_line_length(30.0)
        e0 = sim.get_energy()["total"]
        for _ in range(120):
            sim.step(1.0 / 240.0)
        e1 = sim.get_energy()["total"]
        assert abs(e1 - e0) / e0 < 5e-3


class TestSymmetry:
    """Zero control delta on a mirrored setup loads both lines equally."""

    def test_equal_tensions(self, centered_sim):
        for _ in range(60):
            snap = centered_sim.step(1.0 / 240.0)
            assert snap.lines.left_tension == pytest.approx(
                snap.lines.right_tension, rel=1e-4, abs=1e-6
            )
        # Symmetric loads: no sideways drift
        assert abs(snap.state.position[0]) < 1e-6

    def test_mirrored_control_points(self, centered_sim):
        snap = centered_sim.step(1.0 / 240.0)
        left = snap.control_points["left"]
        right = snap.control_points["right"]
        assert np.allclose(left * [-1.0, 1.0, 1.0], right, atol=1e-8)

    def test_control_delta_breaks_symmetry(self, centered_sim):
        snap = centered_sim.step(1.0 / 240.0, control_delta=0.1)
        # Left line is shorter, so it pulls harder
        assert snap.lines.left_tension > snap.lines.right_tension


class TestStability:
    """
    Integration smoke test: 5 s at dt = 1/60 with 12 m/s wind.
    """

    def test_bounded_run(self, flying_sim):
        max_v = flying_sim.config.integrator.max_velocity
        max_w = flying_sim.config.integrator.max_angular_velocity

        for _ in range(300):
            snap = flying_sim.step(1.0 / 60.0)
            s = snap.state
            assert s.is_finite()
            assert abs(np.linalg.norm(s.orientation) - 1.0) < 1e-5
            assert np.linalg.norm(s.velocity) <= max_v + 1e-9
            assert np.linalg.norm(s.angular_velocity) <= max_w + 1e-9
            assert snap.lines.left_tension >= 0.0
            assert snap.lines.right_tension >= 0.0

        final = flying_sim.state
        assert -10.0 <= final.position[1] <= 100.0
        assert np.linalg.norm(final.velocity) < 50.0
        assert final.timestamp == pytest.approx(5.0)

    def test_gusty_run_stays_finite(self, flying_sim):
        flying_sim.set_wind(WindState.from_speed(12.0, turbulence=0.3))
        snaps = flying_sim.run(2.0, dt=1.0 / 120.0, control=lambda t: 0.1 * np.sin(t),
                               log_interval=0.0)
        assert len(snaps) == 240
        assert all(s.state.is_finite() for s in snaps)


class TestDeterminism:

    def test_identical_runs(self):
        rows = []
        for _ in range(2):
            sim = KiteSimulation(wind=WindState.from_speed(12.0, turbulence=0.2))
            sim.match_line_length()
            rows.append([sim.step(1.0 / 240.0, 0.05).as_dict() for _ in range(30)])
        assert rows[0] == rows[1]
