"""Utility functions for kite simulations."""

from .orientation import (
    IDENTITY,
    compose,
    describe_orientation,
    kite_orientation,
    orientation_from_axis_angle,
    quaternion_to_euler,
)
from .validation import (
    validate_fraction,
    validate_non_negative,
    validate_positive,
    validate_quaternion,
    validate_timestep,
    validate_vector3,
)

__all__ = [
    "IDENTITY",
    "compose",
    "describe_orientation",
    "kite_orientation",
    "orientation_from_axis_angle",
    "quaternion_to_euler",
    "validate_fraction",
    "validate_positive",
    "validate_non_negative",
    "validate_quaternion",
    "validate_timestep",
    "validate_vector3",
]
