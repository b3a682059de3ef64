"""
Bridle transmission constraints.

Each control line ends at a free control point held by three bridles tied
to the kite frame. The control point must lie on four spheres at once:

- radius = line length around the winch
- radius = bridle length around each of the three attachments

:class:`BridleConstraintSolver` finds that point by alternating projection
and splits the line force into three bridle tensions.

Notes
-----
The four constraints are generally over-determined: when the kite is
farther from the winch than line plus bridles allow, no exact solution
exists and the solver returns the lowest-residual compromise. The line
model reads the resulting stretch as line extension.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from kitesim.config import SolverConfig
from kitesim.dynamics.body import KiteBody, MotionState
from kitesim.dynamics.geometry import BRIDLE_ATTACHMENTS, CONTROL_POINTS

EPSILON_DISTANCE = 1e-9
DIVERGENCE_RATIO = 2.0  # Stop once the residual exceeds this multiple of the best


@dataclass
class BridleTransmission:
    """
    One side of the line/bridle transmission.

    Attributes
    ----------
    side : str
        'left' or 'right'
    control_point : str
        Name of the nominal control point in the geometry
    attachments : tuple[str, str, str]
        Attachment point names, ordered (nose, intermediate, center)
    bridle_lengths : NDArray[np.float64]
        Bridle lengths in the same order [m] (3,)
    resolved_position : NDArray[np.float64] | None
        Control point world position found on the last solve. A warm-start
        hint only; ``None`` forces a cold start.
    """
    side: str
    control_point: str
    attachments: tuple[str, str, str]
    bridle_lengths: NDArray[np.float64]
    resolved_position: NDArray[np.float64] | None = None

    @classmethod
    def for_side(cls, side: str, bridle_lengths: tuple[float, float, float]) -> BridleTransmission:
        if side not in BRIDLE_ATTACHMENTS:
            raise ValueError(f"Side must be 'left' or 'right', got '{side}'")
        return cls(
            side=side,
            control_point=CONTROL_POINTS[side],
            attachments=BRIDLE_ATTACHMENTS[side],
            bridle_lengths=np.array(bridle_lengths, dtype=np.float64),
        )

    def forget(self) -> None:
        """Drop the warm-start hint."""
        self.resolved_position = None


@dataclass
class ControlPointSolution:
    """Outcome of :meth:`BridleConstraintSolver.resolve_control_point`."""
    point: NDArray[np.float64]
    residual: float
    initial_residual: float
    iterations: int
    converged: bool
    diverged: bool = False


@dataclass
class BridleForceResult:
    """
    Bridle loads on the kite for one side.

    Attributes
    ----------
    total_force : NDArray[np.float64]
        Sum of the three bridle forces on the frame [N] (3,)
    torque : NDArray[np.float64]
        Torque of those forces about the center of mass [N·m] (3,)
    attachment_forces : dict[str, NDArray[np.float64]]
        Force on each attachment point [N]
    tensions : dict[str, float]
        Bridle tension per attachment, after residual scaling [N], >= 0
    control_point : NDArray[np.float64]
        Resolved control point in world frame [m]
    solution : ControlPointSolution
        Solver diagnostics
    force_scale : float
        Residual smoothing factor applied to the forces, in (0, 1]
    """
    total_force: NDArray[np.float64]
    torque: NDArray[np.float64]
    attachment_forces: dict[str, NDArray[np.float64]]
    tensions: dict[str, float]
    control_point: NDArray[np.float64]
    solution: ControlPointSolution
    force_scale: float = 1.0
    directions: NDArray[np.float64] = field(default_factory=lambda: np.zeros((3, 3)))


def project_onto_sphere(
    point: NDArray[np.float64],
    center: NDArray[np.float64],
    radius: float,
    relaxation: float = 1.0,
) -> NDArray[np.float64]:
    """
    Move ``point`` toward the sphere surface by ``relaxation`` of the gap.

    A point at the center is pushed along +Y.
    """
    offset = point - center
    dist = np.linalg.norm(offset)
    if dist < EPSILON_DISTANCE:
        direction = np.array([0.0, 1.0, 0.0])
    else:
        direction = offset / dist
    target = center + direction * radius
    return point + relaxation * (target - point)


class BridleConstraintSolver:
    """
    Control point solver and tension splitter for one line side.

    Parameters
    ----------
    body : KiteBody
        Provides attachment positions and the center of mass
    transmission : BridleTransmission
        Attachment names and bridle lengths for this side
    config : SolverConfig | None
        Iteration limits and tolerances. Defaults to ``SolverConfig()``.

    Notes
    -----
    **Residual:** weighted RMS of the four distance errors, with the winch
    sphere weighted by ``line_weight``.

    **Force smoothing:** when the residual exceeds the tolerance, forces are
    scaled by ``max(min_force_scale, exp(-k·(residual/tol - 1)²))`` so a
    transient divergence fades the load instead of spiking it.

    Examples
    --------
    >>> body = KiteBody.standard()
    >>> solver = BridleConstraintSolver(body, BridleTransmission.for_side("left", (0.65,) * 3))
    >>> result = solver.bridle_forces(line_force, winch, 10.0, state)
    >>> result.tensions
    """

    def __init__(
        self,
        body: KiteBody,
        transmission: BridleTransmission,
        config: SolverConfig | None = None,
    ) -> None:
        self.body = body
        self.transmission = transmission
        self.config = config if config is not None else SolverConfig()

    # --- Geometry ---

    def residual(
        self,
        point: NDArray[np.float64],
        winch_pos: NDArray[np.float64],
        target_line_length: float,
        attach_points: NDArray[np.float64],
        bridle_lengths: NDArray[np.float64],
    ) -> float:
        """Weighted RMS distance error of ``point`` over the four spheres [m]."""
        weight = self.config.line_weight
        line_err = np.linalg.norm(point - winch_pos) - target_line_length
        bridle_err = np.linalg.norm(attach_points - point, axis=1) - bridle_lengths
        total = weight * line_err**2 + float(np.sum(bridle_err**2))
        return float(np.sqrt(total / (weight + len(bridle_lengths))))

    def resolve_control_point(
        self,
        winch_pos: NDArray[np.float64],
        target_line_length: float,
        attach_points: NDArray[np.float64],
        bridle_lengths: NDArray[np.float64],
        warm_start: NDArray[np.float64] | None = None,
    ) -> ControlPointSolution:
        """
        Find the point closest to all four distance constraints.

        Parameters
        ----------
        winch_pos : NDArray[np.float64]
            Winch position in world frame [m] (3,)
        target_line_length : float
            Line length from winch to control point [m]
        attach_points : NDArray[np.float64]
            Attachment positions in world frame [m] (3, 3)
        bridle_lengths : NDArray[np.float64]
            Bridle lengths [m] (3,)
        warm_start : NDArray[np.float64] | None
            Previous solution. Cold start uses the attachments' barycenter.

        Returns
        -------
        ControlPointSolution
            Best point seen (including the starting guess) and diagnostics.
            The residual of the returned point never exceeds the residual of
            the starting guess.
        """
        cfg = self.config
        winch_pos = np.asarray(winch_pos, dtype=np.float64)
        attach_points = np.asarray(attach_points, dtype=np.float64)
        bridle_lengths = np.asarray(bridle_lengths, dtype=np.float64)

        if warm_start is not None and np.all(np.isfinite(warm_start)):
            point = np.array(warm_start, dtype=np.float64)
        else:
            point = attach_points.mean(axis=0)

        args = (winch_pos, target_line_length, attach_points, bridle_lengths)
        best = point.copy()
        best_res = self.residual(point, *args)
        initial_res = best_res
        if best_res < cfg.tolerance:
            return ControlPointSolution(best, best_res, initial_res, 0, True)

        converged = False
        diverged = False
        iterations = 0
        for iterations in range(1, cfg.max_iterations + 1):
            for _ in range(cfg.line_weight):
                point = project_onto_sphere(point, winch_pos, target_line_length, cfg.relaxation)
            for center, radius in zip(attach_points, bridle_lengths):
                point = project_onto_sphere(point, center, radius, cfg.relaxation)

            res = self.residual(point, *args)
            if not np.isfinite(res):
                diverged = True
                break
            if res < best_res:
                best, best_res = point.copy(), res
            if res < cfg.tolerance:
                converged = True
                break
            if res > DIVERGENCE_RATIO * best_res:
                diverged = True
                break

        if diverged:
            warnings.warn(
                f"Bridle solver ({self.transmission.side}) diverged after "
                f"{iterations} iterations; keeping best residual {best_res:.2e} m.",
                RuntimeWarning,
                stacklevel=2,
            )
        return ControlPointSolution(best, best_res, initial_res, iterations, converged, diverged)

    # --- Tension ---

    def distribute_tension(
        self,
        line_force: NDArray[np.float64],
        unit_directions: NDArray[np.float64],
    ) -> NDArray[np.float64]:
        """
        Split a line force into three bridle tensions.

        Solves ``J·T = -line_force`` where the columns of ``J`` are the unit
        directions from the control point to each attachment.

        Parameters
        ----------
        line_force : NDArray[np.float64]
            Force of the line on the control point [N] (3,)
        unit_directions : NDArray[np.float64]
            Bridle directions, one per row (3, 3)

        Returns
        -------
        NDArray[np.float64]
            Tensions (3,) [N], all >= 0

        Notes
        -----
        Coplanar directions fall back to ``|F|/3`` per bridle. Negative
        tensions are slack bridles and are clamped to zero; the clamped set
        no longer balances the line force exactly.
        """
        line_force = np.asarray(line_force, dtype=np.float64)
        J = np.asarray(unit_directions, dtype=np.float64).T
        det = np.linalg.det(J)
        if not np.isfinite(det) or abs(det) < self.config.singular_threshold:
            warnings.warn(
                f"Singular bridle geometry ({self.transmission.side}, det={det:.2e}); "
                "splitting line force evenly.",
                RuntimeWarning,
                stacklevel=2,
            )
            return np.full(3, np.linalg.norm(line_force) / 3.0)

        tensions = np.linalg.solve(J, -line_force)
        slack = tensions < 0.0
        if np.any(slack):
            names = [n for n, s in zip(self.transmission.attachments, slack) if s]
            warnings.warn(
                f"Slack bridle(s) {names} on {self.transmission.side} side; "
                "clamping tension to zero.",
                RuntimeWarning,
                stacklevel=2,
            )
            tensions = np.where(slack, 0.0, tensions)
        return tensions

    def force_scale(self, residual: float) -> float:
        """Residual smoothing factor in [min_force_scale, 1]."""
        cfg = self.config
        normalized = residual / cfg.tolerance
        if normalized <= 1.0:
            return 1.0
        return max(cfg.min_force_scale,
                   float(np.exp(-cfg.error_smoothing_rate * (normalized - 1.0) ** 2)))

    def bridle_forces(
        self,
        line_force: NDArray[np.float64],
        winch_pos: NDArray[np.float64],
        target_length: float,
        state: MotionState,
        warm_start: NDArray[np.float64] | None = None,
    ) -> BridleForceResult:
        """
        Resolve the control point and turn the line force into frame loads.

        Parameters
        ----------
        line_force : NDArray[np.float64]
            Line force on the control point [N] (3,). Zero gives pure geometry.
        winch_pos : NDArray[np.float64]
            Winch position [m] (3,)
        target_length : float
            Line length [m]
        state : MotionState
            Kite state the attachments are evaluated against
        warm_start : NDArray[np.float64] | None
            Previous control point, if any

        Returns
        -------
        BridleForceResult
            Each bridle pulls its attachment toward the control point, so
            the total force points along the line force when no bridle is
            slack.
        """
        trans = self.transmission
        attach = np.array([self.body.global_point(n, state) for n in trans.attachments])
        solution = self.resolve_control_point(
            winch_pos, target_length, attach, trans.bridle_lengths, warm_start
        )
        cp = solution.point

        offsets = attach - cp
        dists = np.linalg.norm(offsets, axis=1)
        safe = np.where(dists < EPSILON_DISTANCE, 1.0, dists)
        directions = np.where((dists < EPSILON_DISTANCE)[:, None], 0.0, offsets / safe[:, None])

        if np.linalg.norm(line_force) < EPSILON_DISTANCE:
            tensions = np.zeros(3)
        else:
            tensions = self.distribute_tension(line_force, directions)

        scale = self.force_scale(solution.residual)
        tensions = tensions * scale

        forces = -tensions[:, None] * directions
        levers = attach - state.position
        torque = np.cross(levers, forces).sum(axis=0)

        return BridleForceResult(
            total_force=forces.sum(axis=0),
            torque=torque,
            attachment_forces=dict(zip(trans.attachments, forces)),
            tensions={n: float(t) for n, t in zip(trans.attachments, tensions)},
            control_point=cp,
            solution=solution,
            force_scale=scale,
            directions=directions,
        )
