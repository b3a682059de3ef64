import os
import sys

import numpy as np
import pytest

# Make the src/ layout importable without installing the package
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(project_root, "src"))

from kitesim.dynamics.body import KiteBody, MotionState  # noqa: E402


@pytest.fixture
def body():
    """Standard kite with default dimensions and mass."""
    return KiteBody.standard()


@pytest.fixture
def upright_state():
    """Kite 5 m up, unrotated: sail normal +Z, nose up."""
    return MotionState(position=np.array([0.0, 5.0, 0.0]))
