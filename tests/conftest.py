import numpy as np
import pinocchio as pin
import pytest

from kinconstraints import SE3, SO3, Kinematics


def build_model() -> pin.Model:
    """Three revolute joints in series and a free-flying box."""
    model = pin.Model()
    model.name = "arm"
    joint1 = model.addJoint(0, pin.JointModelRZ(), pin.SE3.Identity(), "joint1")
    joint2 = model.addJoint(
        joint1, pin.JointModelRY(), pin.SE3(np.eye(3), np.array([0.0, 0.0, 0.5])), "joint2"
    )
    model.addJoint(
        joint2, pin.JointModelRX(), pin.SE3(np.eye(3), np.array([0.4, 0.0, 0.0])), "joint3"
    )
    model.addJoint(0, pin.JointModelFreeFlyer(), pin.SE3.Identity(), "box")

    lower = np.full(model.nq, -1.0)
    upper = np.full(model.nq, 1.0)
    lower[:3] = -np.pi
    upper[:3] = np.pi
    model.lowerPositionLimit = lower
    model.upperPositionLimit = upper
    return model


@pytest.fixture
def model() -> pin.Model:
    return build_model()


@pytest.fixture
def kinematics(model) -> Kinematics:
    return Kinematics(model)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(12345)


@pytest.fixture
def frame1() -> SE3:
    return SE3.from_translation(np.array([0.1, 0.0, 0.05]))


@pytest.fixture
def frame2() -> SE3:
    return SE3.from_rotation_and_translation(
        SO3.exp(np.array([0.1, -0.2, 0.3])), np.array([0.0, 0.1, 0.0])
    )
