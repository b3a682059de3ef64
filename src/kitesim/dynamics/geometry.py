"""
Parametric point/panel layout of a delta kite in its local frame.

Local frame:
- Origin at the bottom of the spine
- +Y along the spine toward the nose
- +X toward the right wing tip
- +Z on the bridle side (sail normals point this way)

Physical units:
- Lengths: meters [m]
- Areas: square meters [m²]
"""
from __future__ import annotations

import warnings
from collections.abc import Iterator, Mapping
from types import MappingProxyType

import numpy as np
from numpy.typing import NDArray

from kitesim.config import KiteConfig

EPSILON_LENGTH = 1e-9

# Whiskers stick out past the wing tips by this fraction of the span
WHISKER_EXTENSION = 0.15
# Intermediate spreader attachment, as fractions of span and height
INTERMEDIATE_SPAN_FRACTION = 0.3
INTERMEDIATE_HEIGHT_FRACTION = 0.75

LEFT_CONTROL = "LEFT_CONTROL"
RIGHT_CONTROL = "RIGHT_CONTROL"

# Bridle attachments per side, ordered (nose, intermediate, center)
BRIDLE_ATTACHMENTS: dict[str, tuple[str, str, str]] = {
    "left": ("NOSE", "LEFT_INTERMEDIATE", "CENTER"),
    "right": ("NOSE", "RIGHT_INTERMEDIATE", "CENTER"),
}
CONTROL_POINTS: dict[str, str] = {"left": LEFT_CONTROL, "right": RIGHT_CONTROL}


def trilaterate(
    centers: NDArray[np.float64],
    radii: NDArray[np.float64],
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Intersect three spheres.

    Parameters
    ----------
    centers : NDArray[np.float64]
        Sphere centers (3, 3), one per row
    radii : NDArray[np.float64]
        Sphere radii (3,)

    Returns
    -------
    tuple[NDArray, NDArray]
        The two mirror-image solutions, ``+ez`` side first, where
        ``ez = ex × ey`` in the frame built from the centers. When the
        spheres do not quite meet, both solutions collapse onto the plane
        of the centers and a RuntimeWarning is issued.

    Raises
    ------
    ValueError
        If the centers are collinear.
    """
    p1, p2, p3 = np.asarray(centers, dtype=np.float64)
    r1, r2, r3 = np.asarray(radii, dtype=np.float64)

    d = np.linalg.norm(p2 - p1)
    if d < EPSILON_LENGTH:
        raise ValueError("Trilateration centers must be distinct")
    ex = (p2 - p1) / d
    i = float(np.dot(ex, p3 - p1))
    ey_raw = p3 - p1 - i * ex
    j = np.linalg.norm(ey_raw)
    if j < EPSILON_LENGTH:
        raise ValueError("Trilateration centers must not be collinear")
    ey = ey_raw / j
    ez = np.cross(ex, ey)

    x = (r1**2 - r2**2 + d**2) / (2.0 * d)
    y = (r1**2 - r3**2 + i**2 + j**2) / (2.0 * j) - (i / j) * x
    z_sq = r1**2 - x**2 - y**2
    if z_sq < 0.0:
        warnings.warn(
            f"Spheres do not intersect (z² = {z_sq:.3e}); "
            "using the closest in-plane point.",
            RuntimeWarning,
            stacklevel=2,
        )
        z_sq = 0.0
    z = np.sqrt(z_sq)
    base = p1 + x * ex + y * ey
    return base + z * ez, base - z * ez


class KiteGeometry:
    """
    Immutable point/panel description of the kite.

    Parameters
    ----------
    config : KiteConfig | None
        Frame dimensions and bridle lengths. Defaults to ``KiteConfig()``.

    Attributes
    ----------
    points : Mapping[str, NDArray]
        Read-only map of local point positions, including the two nominal
        control points found by trilateration.
    connections : tuple[tuple[str, str], ...]
        Frame spars, for display only.
    panels : tuple[tuple[str, ...], ...]
        Triangular sail panels. Winding is counter-clockwise seen from +Z,
        so every panel normal points to the bridle side.

    Notes
    -----
    Control points obtained here are *nominal*: the line solver re-derives
    the live control point every step and keeps it outside the geometry.

    Examples
    --------
    >>> geom = KiteGeometry()
    >>> geom.panel_normal(0)
    array([0., 0., 1.])
    """

    def __init__(self, config: KiteConfig | None = None) -> None:
        self.config = config if config is not None else KiteConfig()
        w = self.config.wingspan
        h = self.config.height

        pts: dict[str, NDArray[np.float64]] = {
            "NOSE": np.array([0.0, h, 0.0]),
            "SPINE_BOTTOM": np.array([0.0, 0.0, 0.0]),
            "LEFT_WING_TIP": np.array([-w / 2.0, 0.0, 0.0]),
            "RIGHT_WING_TIP": np.array([w / 2.0, 0.0, 0.0]),
            "LEFT_INTERMEDIATE": np.array([
                -INTERMEDIATE_SPAN_FRACTION * w, INTERMEDIATE_HEIGHT_FRACTION * h, 0.0
            ]),
            "RIGHT_INTERMEDIATE": np.array([
                INTERMEDIATE_SPAN_FRACTION * w, INTERMEDIATE_HEIGHT_FRACTION * h, 0.0
            ]),
            "CENTER": np.array([0.0, 0.0, 0.0]),
            "LEFT_WHISKER": np.array([-w / 2.0 - WHISKER_EXTENSION * w, 0.0, 0.0]),
            "RIGHT_WHISKER": np.array([w / 2.0 + WHISKER_EXTENSION * w, 0.0, 0.0]),
        }
        lengths = np.array(self.config.bridle_lengths, dtype=np.float64)
        for side, name in CONTROL_POINTS.items():
            centers = np.array([pts[a] for a in BRIDLE_ATTACHMENTS[side]])
            # Keep the solution on the bridle side of the sail
            first, second = trilaterate(centers, lengths)
            pts[name] = first if first[2] >= second[2] else second

        for arr in pts.values():
            arr.setflags(write=False)
        self.points: Mapping[str, NDArray[np.float64]] = MappingProxyType(pts)

        self.connections: tuple[tuple[str, str], ...] = (
            ("NOSE", "SPINE_BOTTOM"),
            ("NOSE", "LEFT_WING_TIP"),
            ("NOSE", "RIGHT_WING_TIP"),
            ("LEFT_INTERMEDIATE", "RIGHT_INTERMEDIATE"),
            ("LEFT_WING_TIP", "LEFT_WHISKER"),
            ("RIGHT_WING_TIP", "RIGHT_WHISKER"),
        )
        self.panels: tuple[tuple[str, ...], ...] = (
            ("NOSE", "LEFT_INTERMEDIATE", "LEFT_WING_TIP"),
            ("NOSE", "RIGHT_WING_TIP", "RIGHT_INTERMEDIATE"),
            ("LEFT_INTERMEDIATE", "LEFT_WING_TIP", "CENTER"),
            ("RIGHT_INTERMEDIATE", "CENTER", "RIGHT_WING_TIP"),
        )

        self._normals = np.array([self._compute_normal(i) for i in range(len(self.panels))])
        self._areas = np.array([self._compute_area(i) for i in range(len(self.panels))])
        self._centroids = np.array([
            self.panel_points(i).mean(axis=0) for i in range(len(self.panels))
        ])

    # --- Points ---

    def __contains__(self, name: str) -> bool:
        return name in self.points

    def __iter__(self) -> Iterator[str]:
        return iter(self.points)

    def point(self, name: str) -> NDArray[np.float64]:
        """
        Local position of a named point.

        Unknown names are estimated instead of failing: the mirror image of
        the LEFT_/RIGHT_ counterpart when one exists, otherwise the centroid
        of all points. Either way a RuntimeWarning is issued.
        """
        p = self.points.get(name)
        if p is not None:
            return p.copy()

        for prefix, other in (("LEFT_", "RIGHT_"), ("RIGHT_", "LEFT_")):
            if name.startswith(prefix):
                mirror = self.points.get(other + name[len(prefix):])
                if mirror is not None:
                    warnings.warn(
                        f"Geometry point '{name}' not found; mirroring "
                        f"'{other + name[len(prefix):]}'.",
                        RuntimeWarning,
                        stacklevel=2,
                    )
                    return mirror * np.array([-1.0, 1.0, 1.0])

        warnings.warn(
            f"Geometry point '{name}' not found; using the centroid of the frame.",
            RuntimeWarning,
            stacklevel=2,
        )
        return np.mean(np.array(list(self.points.values())), axis=0)

    def all_points(self) -> NDArray[np.float64]:
        """All local points stacked as (N, 3)."""
        return np.array(list(self.points.values()))

    def nominal_control_point(self, side: str) -> NDArray[np.float64]:
        """Trilaterated control point for ``side`` ('left' or 'right')."""
        return self.point(CONTROL_POINTS[side])

    # --- Panels ---

    @property
    def panel_count(self) -> int:
        return len(self.panels)

    def panel_points(self, index: int) -> NDArray[np.float64]:
        """Corner positions of a panel (3, 3)."""
        return np.array([self.points[name] for name in self.panels[index]])

    def _compute_normal(self, index: int) -> NDArray[np.float64]:
        p = self.panel_points(index)
        n = np.cross(p[1] - p[0], p[2] - p[0])
        norm = np.linalg.norm(n)
        if norm < EPSILON_LENGTH:
            return np.array([0.0, 0.0, 1.0])
        return n / norm

    def _compute_area(self, index: int) -> float:
        p = self.panel_points(index)
        return 0.5 * float(np.linalg.norm(np.cross(p[1] - p[0], p[2] - p[0])))

    def panel_normal(self, index: int) -> NDArray[np.float64]:
        """Unit outward normal of a panel in the local frame."""
        return self._normals[index].copy()

    def panel_area(self, index: int) -> float:
        return float(self._areas[index])

    def panel_centroid(self, index: int) -> NDArray[np.float64]:
        return self._centroids[index].copy()

    @property
    def panel_normals(self) -> NDArray[np.float64]:
        return self._normals.copy()

    @property
    def panel_areas(self) -> NDArray[np.float64]:
        return self._areas.copy()

    @property
    def panel_centroids(self) -> NDArray[np.float64]:
        return self._centroids.copy()

    @property
    def total_area(self) -> float:
        return float(self._areas.sum())
