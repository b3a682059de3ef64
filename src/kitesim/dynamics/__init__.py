from .geometry import KiteGeometry, trilaterate
from .body import KiteBody, MotionState
from .forces import AerodynamicForce, ForceKind, GravityForce, WindState
from .constraints import BridleConstraintSolver, BridleTransmission
from .lines import LineForceModel
