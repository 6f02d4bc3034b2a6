import numpy as np
import pytest

from kinconstraints import (
    AffineFunction,
    ConfigurationDistance,
    ConstraintDefinitionError,
    DifferentiableFunction,
    LieGroupSpace,
    Quadratic,
    RobotConfigurationSpace,
    SO3,
)


class Rotation(DifferentiableFunction):
    """R^3 -> SO(3), x -> exp(x), with a finite difference Jacobian."""

    def __init__(self):
        super().__init__(3, 3, LieGroupSpace.SO3(), name="rotation")

    def _compute(self, argument):
        return SO3.exp(argument).parameters()


def test_affine_function():
    f = AffineFunction(np.array([[1.0, 2.0], [0.0, 3.0]]), np.array([1.0, -1.0]))
    np.testing.assert_allclose(f.value(np.array([1.0, 1.0])), [4.0, 2.0])
    np.testing.assert_allclose(f.jacobian(np.zeros(2)), f.A)
    np.testing.assert_array_equal(f.active_parameters(), [True, True])
    assert (f.input_size, f.output_size) == (2, 2)


def test_affine_function_rejects_bad_offset():
    with pytest.raises(ConstraintDefinitionError):
        AffineFunction(np.eye(2), np.zeros(3))


def test_quadratic_jacobian(rng):
    A = rng.normal(size=(3, 3))
    f = Quadratic(A, c=-1.0)
    x = rng.normal(size=3)
    np.testing.assert_allclose(f.value(x), [x @ A @ x - 1.0])
    np.testing.assert_allclose(f.jacobian(x), f.finite_difference_central(x), atol=1e-6)


def test_quadratic_rejects_non_square_matrix():
    with pytest.raises(ConstraintDefinitionError):
        Quadratic(np.ones((2, 3)))


def test_default_jacobian_is_forward_finite_difference(rng):
    f = Rotation()
    x = rng.uniform(-1.0, 1.0, 3)
    np.testing.assert_allclose(f.jacobian(x), SO3.jexp(x), atol=1e-6)
    np.testing.assert_allclose(f.finite_difference_central(x), SO3.jexp(x), atol=1e-6)
    assert f.jacobian(x).shape == (f.output_derivative_size, f.input_derivative_size)


def test_configuration_distance(model, rng):
    space = RobotConfigurationSpace(model)
    goal = space.shoot(rng)
    mask = [True, False, True]
    f = ConfigurationDistance("distance", space, goal, mask)
    np.testing.assert_array_equal(f.mask, [True, False, True] + [True] * 6)
    assert f.value(goal)[0] == pytest.approx(0.0)
    for _ in range(5):
        q = space.integrate(goal, rng.uniform(-0.5, 0.5, space.nv))
        np.testing.assert_allclose(f.jacobian(q), f.finite_difference_central(q), atol=1e-6)


def test_configuration_distance_value():
    space = LieGroupSpace.Rn(2)
    f = ConfigurationDistance("distance", space, np.array([1.0, 1.0]))
    np.testing.assert_allclose(f.value(np.array([0.0, 3.0])), [2.5])
    np.testing.assert_allclose(f.jacobian(np.array([0.0, 3.0])), [[-1.0, 2.0]])


def test_size_preconditions_are_assertions():
    f = AffineFunction(np.eye(2))
    with pytest.raises(AssertionError):
        f.value(np.zeros(3))
    with pytest.raises(AssertionError):
        f.jacobian(np.zeros(1))


def test_str():
    f = Quadratic(np.eye(2), name="circle")
    assert str(f).startswith("Differentiable function:\ncircle")
    assert "c = 0.0" in str(f)


class Zero(DifferentiableFunction):
    def _compute(self, argument):
        return np.zeros(1)


def test_input_space_required_for_curved_inputs():
    with pytest.raises(AssertionError):
        Zero(4, 3, 1)


def test_value_must_be_implemented():
    with pytest.raises(TypeError):
        DifferentiableFunction(3, 3, 1)
    np.testing.assert_array_equal(Zero(3, 3, 1).jacobian(np.ones(3)), np.zeros((1, 3)))
