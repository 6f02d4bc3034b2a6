import json

import numpy as np
import pytest

from kinconstraints import (
    AffineFunction,
    Explicit,
    Implicit,
    LieGroupSpace,
    RelativeTransformation,
    SerializationError,
    dumps,
    loads,
)
from kinconstraints.comparison import EQUAL_TO_ZERO, EQUALITY, SUPERIOR


@pytest.fixture
def affine():
    return AffineFunction(np.array([[1.0, 2.0], [3.0, 4.0]]), np.array([0.1, 0.2]), name="affine")


def assert_same(restored, constraint):
    assert type(restored) is type(constraint)
    assert str(restored) == str(constraint)
    np.testing.assert_array_equal(restored.right_hand_side, constraint.right_hand_side)
    np.testing.assert_array_equal(restored.mask, constraint.mask)
    assert restored.comparison_type == constraint.comparison_type


def test_implicit_round_trip(affine):
    constraint = Implicit(affine, [EQUALITY, SUPERIOR], mask=[True, False])
    constraint.right_hand_side_from_config(np.array([0.123456789, 1.0 / 3.0]))
    text = dumps(constraint)
    assert json.loads(text)["schema_version"] == 1
    assert json.loads(text)["constraint"]["kind"] == "implicit"
    assert_same(loads(text, {"affine": affine}), constraint)


def test_explicit_round_trip():
    f = AffineFunction(np.array([[2.0, 0.0]]), np.array([1.0]), name="linear")
    constraint = Explicit(
        LieGroupSpace.Rn(3), f, [(0, 2)], [(2, 1)], [(0, 2)], [(2, 1)], EQUALITY
    )
    constraint.right_hand_side = np.array([0.7])
    restored = loads(dumps(constraint, indent=2), {"linear": f})
    assert_same(restored, constraint)
    assert restored.configuration_space == LieGroupSpace.Rn(3)
    assert restored.output_conf == [(2, 1)]


def test_relative_transformation_round_trip(kinematics, rng, frame1, frame2):
    f = RelativeTransformation("grasp", kinematics, "joint3", "box", frame1, frame2)
    constraint = Implicit(f, [EQUALITY] * 3 + [EQUAL_TO_ZERO] * 3, mask=[True] * 5 + [False])
    constraint.right_hand_side_from_config(kinematics.space.shoot(rng))
    assert_same(loads(dumps(constraint), {"grasp": f}), constraint)


def test_explicit_on_robot_space(kinematics):
    space = kinematics.space
    f = AffineFunction(np.array([[0.5]]), name="follow")
    constraint = Explicit(space, f, [(0, 1)], [(2, 1)], [(0, 1)], [(2, 1)])
    restored = loads(dumps(constraint), {"follow": f, space.name: space})
    assert_same(restored, constraint)
    assert restored.configuration_space is space


def test_unknown_fields_are_ignored(affine):
    constraint = Implicit(affine)
    archive = json.loads(dumps(constraint))
    archive["comment"] = "written by a newer release"
    archive["constraint"]["weight"] = 2.0
    assert_same(loads(json.dumps(archive), {"affine": affine}), constraint)


def test_newer_schema_is_rejected(affine):
    archive = json.loads(dumps(Implicit(affine)))
    archive["schema_version"] = 2
    with pytest.raises(SerializationError):
        loads(json.dumps(archive), {"affine": affine})


def test_invalid_archives(affine):
    archive = json.loads(dumps(Implicit(affine)))
    archive["constraint"]["kind"] = "convex_shape_contact"
    with pytest.raises(SerializationError):
        loads(json.dumps(archive), {"affine": affine})
    with pytest.raises(SerializationError):
        loads("not json", {})
    with pytest.raises(SerializationError):
        loads(dumps(Implicit(affine)), {})
