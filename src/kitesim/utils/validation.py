"""
Validation utilities for physical parameters and state variables.

Provides functions to validate inputs for the kite simulation,
ensuring physical consistency and numerical stability.
"""
from __future__ import annotations
import numpy as np
from numpy.typing import NDArray
import warnings


def validate_positive(value: float, name: str, strict: bool = True) -> None:
    """
    Validate that a scalar value is positive.

    Parameters
    ----------
    value : float
        Value to validate
    name : str
        Parameter name for error messages
    strict : bool
        If True, raise ValueError. If False, issue warning.

    Raises
    ------
    ValueError
        If strict=True and value <= 0 (or value is not finite)
    """
    if not np.isfinite(value) or value <= 0:
        msg = f"{name} must be positive, got {value}"
        if strict:
            raise ValueError(msg)
        else:
            warnings.warn(msg, RuntimeWarning, stacklevel=2)


def validate_non_negative(value: float, name: str) -> None:
    """Validate that a value is non-negative."""
    if not np.isfinite(value) or value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


def validate_fraction(value: float, name: str) -> None:
    """Validate that a value lies in the closed interval [0, 1]."""
    if not np.isfinite(value) or not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must lie in [0, 1], got {value}")


def validate_vector3(v: NDArray[np.float64], name: str) -> NDArray[np.float64]:
    """
    Coerce to a finite float64 vector of shape (3,).

    Raises
    ------
    ValueError
        If the shape is wrong or a component is NaN/Inf
    """
    arr = np.asarray(v, dtype=np.float64)
    if arr.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must be finite, got {arr}")
    return arr.copy()


def validate_quaternion(q: NDArray[np.float64], tol: float = 1e-6) -> None:
    """
    Validate that array is a unit quaternion.

    Parameters
    ----------
    q : NDArray[np.float64]
        Quaternion [x, y, z, w]
    tol : float
        Tolerance for unit norm check

    Raises
    ------
    ValueError
        If quaternion shape is invalid
    """
    if q.shape != (4,):
        raise ValueError(f"Quaternion must have shape (4,), got {q.shape}")

    norm = np.linalg.norm(q)
    if abs(norm - 1.0) > tol:
        warnings.warn(
            f"Quaternion not normalized: |q| = {norm:.6f}. "
            "Consider normalizing before use.",
            RuntimeWarning,
            stacklevel=2
        )


def validate_timestep(dt: float, max_dt: float = 0.1) -> None:
    """
    Validate timestep is positive and reasonable.

    Parameters
    ----------
    dt : float
        Time step [s]
    max_dt : float
        Maximum reasonable timestep [s]. Line stiffness of a few kN/m
        needs steps well below this.

    Raises
    ------
    ValueError
        If timestep is invalid
    """
    if not np.isfinite(dt) or dt <= 0:
        raise ValueError(f"Timestep must be positive, got {dt}")
    if dt > max_dt:
        warnings.warn(
            f"Large timestep {dt}s may cause instability. "
            f"Consider using dt < {max_dt}s.",
            RuntimeWarning,
            stacklevel=2
        )
