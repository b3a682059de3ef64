import numpy as np
import pytest
from scipy.spatial.transform import Rotation as R

from kitesim.utils.orientation import (
    IDENTITY,
    compose,
    describe_orientation,
    kite_orientation,
    orientation_from_axis_angle,
    quaternion_to_euler,
)
from kitesim.utils.validation import (
    validate_fraction,
    validate_non_negative,
    validate_positive,
    validate_quaternion,
    validate_timestep,
    validate_vector3,
)


# --- Orientation ---

def test_axis_angle_normalizes_axis():
    q = orientation_from_axis_angle([0.0, 2.0, 0.0], 90.0)
    assert np.allclose(R.from_quat(q).apply([1.0, 0.0, 0.0]), [0.0, 0.0, -1.0])
    q_rad = orientation_from_axis_angle([0.0, 1.0, 0.0], np.pi / 2.0, degrees=False)
    assert np.allclose(q, q_rad)
    with pytest.raises(ValueError):
        orientation_from_axis_angle([0.0, 0.0, 0.0], 10.0)


def test_compose_applies_right_operand_first():
    a = orientation_from_axis_angle([0, 1, 0], 90)
    b = orientation_from_axis_angle([1, 0, 0], 90)
    q = compose(a, b)
    # b maps +Y to +Z, then a maps +Z to +X
    assert np.allclose(R.from_quat(q).apply([0.0, 1.0, 0.0]), [1.0, 0.0, 0.0])
    assert np.allclose(compose(), IDENTITY)


def test_kite_orientation_heading_turns_bridle_side():
    q = kite_orientation(heading=180.0)
    assert np.allclose(R.from_quat(q).apply([0.0, 0.0, 1.0]), [0.0, 0.0, -1.0])
    # Nose stays up
    assert np.allclose(R.from_quat(q).apply([0.0, 1.0, 0.0]), [0.0, 1.0, 0.0])


def test_negative_pitch_tips_nose_away_from_bridles():
    nose = R.from_quat(kite_orientation(pitch=-15.0)).apply([0.0, 1.0, 0.0])
    assert nose[2] < 0.0
    assert nose[1] == pytest.approx(np.cos(np.deg2rad(15.0)))


def test_euler_round_trip():
    q = kite_orientation(heading=30.0, pitch=-15.0, roll=5.0)
    assert np.allclose(quaternion_to_euler(q), [30.0, -15.0, 5.0])
    text = describe_orientation(q)
    assert "heading=30.0" in text
    assert "pitch=-15.0" in text


# --- Validation ---

def test_validate_positive():
    validate_positive(1.0, "x")
    with pytest.raises(ValueError, match="x must be positive"):
        validate_positive(0.0, "x")
    with pytest.raises(ValueError):
        validate_positive(np.nan, "x")
    with pytest.warns(RuntimeWarning):
        validate_positive(-1.0, "x", strict=False)


def test_validate_ranges():
    validate_non_negative(0.0, "c")
    validate_fraction(1.0, "alpha")
    with pytest.raises(ValueError):
        validate_non_negative(-0.1, "c")
    with pytest.raises(ValueError):
        validate_fraction(1.1, "alpha")


def test_validate_vector3_copies():
    src = np.array([1.0, 2.0, 3.0])
    out = validate_vector3(src, "v")
    out[0] = 9.0
    assert src[0] == 1.0
    with pytest.raises(ValueError):
        validate_vector3([1.0, 2.0], "v")
    with pytest.raises(ValueError):
        validate_vector3([1.0, np.inf, 0.0], "v")


def test_validate_quaternion():
    validate_quaternion(IDENTITY)
    with pytest.warns(RuntimeWarning, match="not normalized"):
        validate_quaternion(np.array([0.0, 0.0, 0.0, 2.0]))
    with pytest.raises(ValueError):
        validate_quaternion(np.zeros(3))


def test_validate_timestep():
    validate_timestep(1.0 / 240.0)
    with pytest.raises(ValueError):
        validate_timestep(0.0)
    with pytest.warns(RuntimeWarning, match="Large timestep"):
        validate_timestep(0.5)
