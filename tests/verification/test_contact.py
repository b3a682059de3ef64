"""
Contact and Robustness Verification Tests.

Tests the step pipeline at its edges:
- Ground plane is never penetrated by any frame point
- Bad input degrades to rejected steps instead of exceptions
"""

import numpy as np
import pytest

from kitesim.core.simulation import KiteSimulation
from kitesim.dynamics.body import MotionState
from kitesim.utils.orientation import kite_orientation


class TestGroundContact:

    def test_drop_never_penetrates(self):
        """Kite dropped nose-down from 2 m settles on the ground."""
        state = MotionState(
            position=np.array([0.0, 2.0, 0.0]),
            orientation=kite_orientation(roll=150.0),
        )
        sim = KiteSimulation(initial_state=state)
        sim.set_base_line_length(30.0)

        for _ in range(480):
            snap = sim.step(1.0 / 240.0)
            _, altitude = sim.body.lowest_point(snap.state)
            assert altitude >= -1e-9

        # At rest on the ground after 2 s
        assert np.linalg.norm(sim.state.velocity) < 0.5
        assert sim.state.position[1] < 2.0

    def test_bounce_is_damped(self):
        state = MotionState(
            position=np.array([0.0, 0.01, 0.0]),
            velocity=np.array([0.0, -5.0, 0.0]),
        )
        sim = KiteSimulation(initial_state=state)
        sim.set_base_line_length(30.0)
        snap = sim.step(1.0 / 240.0)
        # Restitution 0.15 of the impact speed
        assert 0.0 < snap.state.velocity[1] <= 0.15 * 5.1


class TestFailSoft:
    """No numerical error crosses the step boundary."""

    def test_nan_orientation(self):
        state = MotionState(position=np.array([0.0, 5.0, 0.0]))
        state.orientation = np.array([np.nan, 0.0, 0.0, 1.0])
        sim = KiteSimulation(initial_state=state)
        with pytest.warns(RuntimeWarning):
            snaps = [sim.step() for _ in range(3)]
        assert not any(s.valid for s in snaps)
        assert all(s.elapsed_time == 0.0 for s in snaps)

    def test_infinite_velocity(self):
        state = MotionState(
            position=np.array([0.0, 5.0, 0.0]),
            velocity=np.array([0.0, np.inf, 0.0]),
        )
        sim = KiteSimulation(initial_state=state)
        with pytest.warns(RuntimeWarning):
            snap = sim.step()
        assert not snap.valid
        assert np.allclose(snap.state.position, [0.0, 5.0, 0.0])

    def test_recovers_after_reset(self):
        bad = MotionState(velocity=np.array([np.nan, 0.0, 0.0]))
        sim = KiteSimulation(initial_state=bad)
        with pytest.warns(RuntimeWarning):
            assert not sim.step().valid
        sim.reset(MotionState(position=np.array([0.0, 10.0, 0.0])))
        sim.set_base_line_length(30.0)
        assert sim.step().valid

    def test_run_counts_rejected_steps(self, capsys):
        bad = MotionState(velocity=np.array([np.nan, 0.0, 0.0]))
        sim = KiteSimulation(initial_state=bad)
        with pytest.warns(RuntimeWarning):
            snaps = sim.run(0.05, dt=0.01, log_interval=0.0)
        assert len(snaps) == 5
        assert "5 step(s) rejected" in capsys.readouterr().out
