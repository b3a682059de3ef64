"""
Verification suite for kitesim.

These tests run the full step pipeline and check physical properties of
the result rather than individual functions.

Test Categories:
- Free fall: slack lines leave the kite in ballistic flight
- Symmetry: mirrored configurations give mirrored loads
- Stability: long runs stay bounded and normalized
- Constraints: bridle loads balance the line force
- Contact: the ground plane is never penetrated
"""

import numpy as np
import pytest

from kitesim.core.simulation import KiteSimulation
from kitesim.dynamics.body import MotionState
from kitesim.dynamics.forces import WindState
from kitesim.utils.orientation import kite_orientation


# -----------------------------------------------------------------------------
# Common Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def headwind():
    """12 m/s wind blowing toward -Z."""
    return WindState.from_speed(12.0, direction=(0.0, 0.0, -1.0))


@pytest.fixture
def flying_sim(headwind):
    """Default launch pose (downwind, facing the wind) with lines at rest length."""
    sim = KiteSimulation(wind=headwind)
    sim.match_line_length()
    return sim


@pytest.fixture
def centered_sim(headwind):
    """Kite centered downwind of symmetric winches, lines at rest length."""
    state = MotionState(
        position=np.array([0.0, 6.0, -9.0]),
        orientation=kite_orientation(heading=0.0, pitch=-15.0),
    )
    sim = KiteSimulation(initial_state=state, wind=headwind)
    sim.match_line_length()
    return sim
