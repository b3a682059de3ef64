"""
Orientation helpers for placing the kite.

All functions return quaternions in the format used by
:class:`kitesim.dynamics.body.MotionState`: [x, y, z, w] (scalar-last).

The kite's local frame has the nose along +Y, the sail in the local XY
plane and the bridles on the +Z side. The world frame is Y-up.

Examples
--------
>>> from kitesim.utils.orientation import kite_orientation, IDENTITY
>>> # Facing winches placed toward -Z, nose tilted back 15 degrees
>>> q = kite_orientation(heading=180.0, pitch=-15.0)
"""
from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation as R


IDENTITY: NDArray[np.float64] = np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)
"""Identity quaternion [0, 0, 0, 1] representing no rotation."""


def orientation_from_axis_angle(
    axis: tuple[float, float, float] | list[float] | NDArray,
    angle: float,
    degrees: bool = True
) -> NDArray[np.float64]:
    """
    Create orientation from axis-angle representation.

    Parameters
    ----------
    axis : array-like
        Rotation axis [x, y, z]. Will be normalized.
    angle : float
        Rotation angle [degrees or radians]
    degrees : bool
        If True (default), angle is in degrees.

    Returns
    -------
    NDArray[np.float64]
        Quaternion [x, y, z, w]

    Raises
    ------
    ValueError
        If the axis has zero length
    """
    axis = np.asarray(axis, dtype=np.float64)
    norm = np.linalg.norm(axis)
    if norm < 1e-12:
        raise ValueError("Rotation axis must be non-zero")
    if degrees:
        angle = np.deg2rad(angle)
    return R.from_rotvec(axis / norm * angle).as_quat()


def compose(*quaternions: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Compose rotations left to right: ``compose(a, b)`` applies ``b`` first.

    Matches the product ``a * b`` of two quaternions.
    """
    rot = R.identity()
    for q in quaternions:
        rot = rot * R.from_quat(q)
    return rot.as_quat()


def kite_orientation(
    heading: float = 0.0,
    pitch: float = 0.0,
    roll: float = 0.0,
    degrees: bool = True,
) -> NDArray[np.float64]:
    """
    Orientation from a heading about world Y, then pitch about X and roll about Z.

    Parameters
    ----------
    heading : float
        Yaw about the vertical axis. 180 turns the bridle side toward -Z.
    pitch : float
        Rotation about the kite's lateral axis. Negative tips the nose
        away from the bridle side.
    roll : float
        Bank about the kite's local Z axis.
    degrees : bool
        If True (default), angles are in degrees.

    Returns
    -------
    NDArray[np.float64]
        Quaternion [x, y, z, w]
    """
    return compose(
        orientation_from_axis_angle([0.0, 1.0, 0.0], heading, degrees),
        orientation_from_axis_angle([1.0, 0.0, 0.0], pitch, degrees),
        orientation_from_axis_angle([0.0, 0.0, 1.0], roll, degrees),
    )


def quaternion_to_euler(
    q: NDArray[np.float64],
    degrees: bool = True,
    order: str = "YXZ"
) -> NDArray[np.float64]:
    """
    Convert quaternion to intrinsic (heading, pitch, roll) angles.

    The default sequence inverts :func:`kite_orientation`.
    """
    return R.from_quat(q).as_euler(order, degrees=degrees)


def describe_orientation(q: NDArray[np.float64]) -> str:
    """Human-readable heading/pitch/roll summary."""
    heading, pitch, roll = quaternion_to_euler(q)
    return f"heading={heading:.1f}°, pitch={pitch:.1f}°, roll={roll:.1f}°"
