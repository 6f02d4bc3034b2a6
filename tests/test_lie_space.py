import numpy as np
import pytest

from kinconstraints import (
    CartesianProduct,
    LieGroupSpace,
    RobotConfigurationSpace,
    SO2Space,
    VectorSpace,
)

EPS = 1e-6


def spaces(model):
    return [
        LieGroupSpace.Rn(3),
        SO2Space(),
        LieGroupSpace.SO3(),
        LieGroupSpace.SE3(),
        LieGroupSpace.R3xSO3(),
        LieGroupSpace.Rn(2) * LieGroupSpace.SE3(),
        RobotConfigurationSpace(model),
    ]


def fd_d_integrate(space, q, v, argument):
    jacobian = np.zeros((space.nv, space.nv))
    reference = space.integrate(q, v)
    for i in range(space.nv):
        dv = np.zeros(space.nv)
        dv[i] = EPS
        if argument == 0:
            perturbed = space.integrate(space.integrate(q, dv), v)
        else:
            perturbed = space.integrate(q, v + dv)
        jacobian[:, i] = space.difference(reference, perturbed) / EPS
    return jacobian


def fd_d_difference(space, q0, q1, argument):
    jacobian = np.zeros((space.nv, space.nv))
    reference = space.difference(q0, q1)
    for i in range(space.nv):
        dv = np.zeros(space.nv)
        dv[i] = EPS
        if argument == 0:
            perturbed = space.difference(space.integrate(q0, dv), q1)
        else:
            perturbed = space.difference(q0, space.integrate(q1, dv))
        jacobian[:, i] = (perturbed - reference) / EPS
    return jacobian


def test_factories_return_shared_instances():
    assert LieGroupSpace.Rn(4) is LieGroupSpace.Rn(4)
    assert LieGroupSpace.SO3() is LieGroupSpace.SO3()
    assert LieGroupSpace.R3xSO3() is LieGroupSpace.R3xSO3()


def test_names_and_dimensions():
    r3xso3 = LieGroupSpace.R3xSO3()
    assert r3xso3.name == "R^3*SO(3)"
    assert (r3xso3.nq, r3xso3.nv) == (7, 6)
    assert LieGroupSpace.Rn(3) * LieGroupSpace.SO3() == r3xso3
    assert LieGroupSpace.SE3() != r3xso3
    assert str(LieGroupSpace.SE3()) == "SE(3)"


def test_nested_products_are_flattened():
    product = CartesianProduct([LieGroupSpace.Rn(1) * LieGroupSpace.SO3(), LieGroupSpace.Rn(2)])
    assert len(product.factors) == 3
    assert product.name == "R^1*SO(3)*R^2"


def test_vector_space_flags():
    assert LieGroupSpace.Rn(2).is_vector_space
    assert (LieGroupSpace.Rn(2) * LieGroupSpace.Rn(1)).is_vector_space
    assert not LieGroupSpace.SO3().is_vector_space


def test_vector_indices_of_product():
    product = LieGroupSpace.Rn(2) * LieGroupSpace.SO3() * LieGroupSpace.Rn(1)
    assert product.vector_indices() == [(0, 0), (1, 1), (6, 5)]


def test_robot_space(model):
    space = RobotConfigurationSpace(model)
    assert (space.nq, space.nv) == (10, 9)
    assert space.vector_indices() == [(0, 0), (1, 1), (2, 2), (3, 3), (4, 4), (5, 5)]
    np.testing.assert_array_equal(space.lower_bound[:3], -np.pi)
    assert space == RobotConfigurationSpace(model)


@pytest.mark.parametrize("index", range(7))
def test_integrate_difference_inverse(model, rng, index):
    space = spaces(model)[index]
    q0 = space.shoot(rng)
    v = rng.uniform(-0.5, 0.5, space.nv)
    q1 = space.integrate(q0, v)
    np.testing.assert_allclose(space.difference(q0, q1), v, atol=1e-9)
    np.testing.assert_allclose(space.difference(q0, q0), np.zeros(space.nv), atol=1e-12)
    assert space.is_neutral(space.neutral())


@pytest.mark.parametrize("index", range(7))
@pytest.mark.parametrize("argument", [0, 1])
def test_d_integrate_matches_finite_differences(model, rng, index, argument):
    space = spaces(model)[index]
    q = space.shoot(rng)
    v = rng.uniform(-0.5, 0.5, space.nv)
    np.testing.assert_allclose(
        space.d_integrate(q, v, argument), fd_d_integrate(space, q, v, argument), atol=1e-5
    )


@pytest.mark.parametrize("index", range(7))
@pytest.mark.parametrize("argument", [0, 1])
def test_d_difference_matches_finite_differences(model, rng, index, argument):
    space = spaces(model)[index]
    q0 = space.shoot(rng)
    q1 = space.integrate(q0, rng.uniform(-0.5, 0.5, space.nv))
    np.testing.assert_allclose(
        space.d_difference(q0, q1, argument), fd_d_difference(space, q0, q1, argument), atol=1e-5
    )


def test_so2_wraps_angles():
    space = SO2Space()
    q0 = np.array([np.cos(3.0), np.sin(3.0)])
    q1 = space.integrate(q0, np.array([0.5]))
    np.testing.assert_allclose(space.difference(q0, q1), [0.5], atol=1e-12)


def test_size_mismatch_is_an_assertion():
    space = VectorSpace(2)
    with pytest.raises(AssertionError):
        space.integrate(np.zeros(3), np.zeros(2))
