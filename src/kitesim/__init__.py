"""
KiteSim - Physics core for a two-line kite flight simulator.

Core Components
---------------
KiteSimulation : Fixed-step simulation orchestrator
VerletIntegrator : Semi-implicit integrator with damping and clamps
KiteGeometry : Point/panel layout of the kite
KiteBody, MotionState : Body mass properties and motion state

Forces and Constraints
----------------------
AerodynamicForce, GravityForce : External force models
LineForceModel : Bi-regime control line model
BridleConstraintSolver : Control point solver and tension splitter

Examples
--------
>>> from kitesim import KiteSimulation, WindState
>>> sim = KiteSimulation(wind=WindState.from_speed(12.0))
>>> sim.match_line_length()
>>> snapshot = sim.step(control_delta=0.05)
"""

__version__ = "0.1.0"

from kitesim.config import (
    AeroConfig,
    GroundConfig,
    IntegratorConfig,
    KiteConfig,
    LineConfig,
    SimulationConfig,
    SolverConfig,
)
from kitesim.core.simulation import (
    ForceBundle,
    KiteSimulation,
    LineState,
    SimulationSnapshot,
)
from kitesim.core.solver import VerletIntegrator
from kitesim.dynamics.body import KiteBody, MotionState
from kitesim.dynamics.constraints import BridleConstraintSolver, BridleTransmission
from kitesim.dynamics.forces import AerodynamicForce, ForceKind, GravityForce, WindState
from kitesim.dynamics.geometry import KiteGeometry
from kitesim.dynamics.lines import LineForceModel

# Logging
from kitesim.logger import CSVLogger
from kitesim.api.scenario import Scenario

__all__ = [
    # Version
    "__version__",
    # Configuration
    "SimulationConfig",
    "KiteConfig",
    "AeroConfig",
    "LineConfig",
    "SolverConfig",
    "IntegratorConfig",
    "GroundConfig",
    # Core
    "KiteSimulation",
    "SimulationSnapshot",
    "ForceBundle",
    "LineState",
    "VerletIntegrator",
    "KiteGeometry",
    "KiteBody",
    "MotionState",
    # Forces
    "ForceKind",
    "WindState",
    "AerodynamicForce",
    "GravityForce",
    "LineForceModel",
    # Constraints
    "BridleConstraintSolver",
    "BridleTransmission",
    # Logging
    "CSVLogger",
    # API
    "Scenario",
]
