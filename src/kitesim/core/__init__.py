from .simulation import ForceBundle, KiteSimulation, LineState, SimulationSnapshot
from .solver import VerletIntegrator
