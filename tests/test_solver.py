import logging

import numpy as np
import pytest

from kinconstraints import (
    AffineFunction,
    Backtracking,
    Bounds,
    ComparisonType,
    ConfigurationDistance,
    Constant,
    ConstraintDefinitionError,
    ErrorNormBased,
    FixedSequence,
    HierarchicalIterativeSolver,
    Implicit,
    LieGroupSpace,
    Quadratic,
    RelativeTransformation,
    SolverDefinitionError,
    Status,
    solve_constraints,
)

PRECISION = 1e-5


def quadratic_solver(a, b, max_iterations=20):
    # a * x^2 + b * y^2 - 1 = 0 with 0 <= x, y <= 1
    solver = HierarchicalIterativeSolver(
        LieGroupSpace.Rn(2),
        max_iterations=max_iterations,
        error_threshold=PRECISION,
        saturation=Bounds(np.zeros(2), np.ones(2)),
    )
    solver.add(Implicit(Quadratic(np.diag([a, b]), -1.0)))
    assert solver.number_stacks == 1
    return solver


def test_quadratic_unit_circle():
    solver = quadratic_solver(1.0, 1.0)
    result = solver.solve(np.array([0.0, 0.0]))
    assert result.status is not Status.SUCCESS
    np.testing.assert_array_equal(result.configuration, [0.0, 0.0])

    for x0 in ([0.1, 0.0], [0.0, 0.1], [0.5, 0.5]):
        result = solver.solve(np.array(x0))
        assert result.status is Status.SUCCESS, x0
        assert solver.is_satisfied(result.configuration)


def test_zero_jacobian_stagnates():
    solver = quadratic_solver(1.0, 1.0)
    result = solver.solve(np.zeros(2))
    assert result.status is Status.ERROR_INCREASED
    assert result.iterations == solver.stagnation_patience + 1


def test_larger_quadratic():
    solver = quadratic_solver(2.0, 2.0)
    for x0 in ([0.1, 0.0], [0.0, 0.1], [0.5, 0.5]):
        assert solver.solve(np.array(x0)).status is Status.SUCCESS


def test_saturation_slides_on_the_border():
    solver = quadratic_solver(0.5, 0.5)
    # Exact because of the saturation
    result = solver.solve(np.array([1.0, 0.001]), Constant())
    assert result.status is Status.SUCCESS
    np.testing.assert_array_equal(result.configuration, [1.0, 1.0])
    result = solver.solve(np.array([0.001, 1.0]), Constant())
    assert result.status is Status.SUCCESS
    np.testing.assert_array_equal(result.configuration, [1.0, 1.0])


def test_fixed_sequence_slides_on_the_border():
    solver = quadratic_solver(0.75, 0.75, max_iterations=40)
    result = solver.solve(np.array([1.0, 0.1]), FixedSequence())
    assert result.status is Status.SUCCESS
    np.testing.assert_allclose(result.configuration, [1.0, 1.0 / np.sqrt(3.0)], atol=1e-4)
    result = solver.solve(np.array([0.1, 1.0]), FixedSequence())
    assert result.status is Status.SUCCESS
    np.testing.assert_allclose(result.configuration, [1.0 / np.sqrt(3.0), 1.0], atol=1e-4)


@pytest.mark.parametrize("line_search", [Backtracking(), ErrorNormBased(), FixedSequence()])
def test_line_searches_converge(line_search):
    solver = quadratic_solver(1.0, 1.0, max_iterations=100)
    result = solver.solve(np.array([0.5, 0.5]), line_search)
    assert result.status is Status.SUCCESS
    assert result.squared_error <= 2 * PRECISION**2


def test_max_iterations_reached():
    solver = quadratic_solver(1.0, 1.0, max_iterations=1)
    result = solver.solve(np.array([0.5, 0.5]), FixedSequence())
    assert result.status is Status.MAX_ITERATIONS_REACHED
    assert result.iterations == 1


def test_inequality():
    # x + y >= 1
    solver = HierarchicalIterativeSolver(LieGroupSpace.Rn(2), error_threshold=PRECISION)
    solver.add(
        Implicit(
            AffineFunction(np.array([[1.0, 1.0]]), np.array([-1.0])),
            ComparisonType.GREATER_OR_EQUAL,
        )
    )
    satisfied = solver.solve(np.array([2.0, 0.0]))
    assert satisfied.iterations == 0
    np.testing.assert_array_equal(satisfied.configuration, [2.0, 0.0])
    result = solver.solve(np.array([0.0, 0.0]))
    assert result.status is Status.SUCCESS
    np.testing.assert_allclose(result.configuration, [0.5, 0.5])


def test_optional_cost():
    # x + y - 1 = 0 mandatory, x^2 + y^2 as small as possible
    solver = HierarchicalIterativeSolver(
        LieGroupSpace.Rn(2),
        max_iterations=20,
        error_threshold=PRECISION,
        saturation=Bounds(np.zeros(2), np.ones(2)),
    )
    assert solver.add(Implicit(AffineFunction(np.array([[1.0, 1.0]]), np.array([-1.0]))), 0)
    assert solver.add(Implicit(Quadratic(np.eye(2))), 1)
    solver.last_is_optional = True
    assert solver.number_stacks == 2
    assert solver.last_is_optional

    for x0 in ([0.0, 0.0], [0.1, 0.0], [0.0, 0.1], [0.5, 0.5]):
        result = solver.solve(np.array(x0))
        assert result.status is Status.SUCCESS, x0
        assert abs(result.configuration.sum() - 1.0) <= PRECISION
        assert solver.residual_error(result.configuration)[0] <= PRECISION**2


def line_solver(goal=None):
    # x + y = 1, optionally as close as possible to goal
    solver = HierarchicalIterativeSolver(LieGroupSpace.Rn(2), error_threshold=PRECISION)
    solver.add(Implicit(AffineFunction(np.array([[1.0, 1.0]]), np.array([-1.0]))), 0)
    if goal is not None:
        solver.add(Implicit(ConfigurationDistance("goal", LieGroupSpace.Rn(2), goal)), 1)
        solver.set_optional(1, True)
    return solver


def test_optional_level_moves_in_null_space():
    goal = np.array([2.0, 0.0])
    start = np.array([0.0, 0.0])
    alone = line_solver().solve(start)
    stacked = line_solver(goal).solve(start)
    assert alone.status is Status.SUCCESS
    assert stacked.status is Status.SUCCESS
    np.testing.assert_allclose(alone.configuration, [0.5, 0.5], atol=PRECISION)

    # The optional level does not degrade the mandatory one
    solver = line_solver(goal)
    alone_residual, _ = solver.level_residual_and_jacobian(0, alone.configuration)
    stacked_residual, _ = solver.level_residual_and_jacobian(0, stacked.configuration)
    assert np.linalg.norm(stacked_residual) <= np.linalg.norm(alone_residual) + PRECISION

    # but moves the configuration along x + y = 1 toward the goal
    np.testing.assert_allclose(stacked.configuration, [1.0, 0.0], atol=PRECISION)
    assert np.linalg.norm(stacked.configuration - goal) < np.linalg.norm(
        alone.configuration - goal
    )


class RecordingSequence(FixedSequence):
    def reset(self):
        super().reset()
        self.used = []

    def next_alpha(self):
        alpha = super().next_alpha()
        self.used.append(alpha)
        return alpha


def test_line_search_called_once_per_iteration():
    solver = HierarchicalIterativeSolver(
        LieGroupSpace.Rn(2), max_iterations=40, error_threshold=PRECISION
    )
    solver.add(Implicit(Quadratic(np.eye(2), -1.0)), 0)
    goal = np.array([-3.0, 5.0])
    solver.add(Implicit(ConfigurationDistance("goal", LieGroupSpace.Rn(2), goal)), 1)
    solver.set_optional(1, True)
    line_search = RecordingSequence()
    result = solver.solve(np.array([0.9, 0.1]), line_search)
    assert result.iterations > 0
    assert len(line_search.used) == result.iterations
    # The default sequence never decreases
    assert line_search.used == sorted(line_search.used)


def test_level_residual_and_jacobian_stacks_constraints():
    solver = HierarchicalIterativeSolver(LieGroupSpace.Rn(3))
    affine = Implicit(AffineFunction(np.array([[1.0, 0.0, 2.0], [0.0, 0.0, -1.0]]), np.ones(2)))
    quadratic = Implicit(Quadratic(np.diag([1.0, 2.0, 3.0]), -1.0))
    solver.add(affine)
    solver.add(quadratic)
    q = np.array([0.3, -0.2, 0.5])
    residual, jacobian = solver.level_residual_and_jacobian(0, q)
    expected = [c.residual_and_jacobian(q) for c in (affine, quadratic)]
    np.testing.assert_allclose(residual, np.concatenate([e for e, _ in expected]))
    np.testing.assert_allclose(jacobian, np.vstack([J for _, J in expected]))
    # The affine function does not depend on y
    np.testing.assert_array_equal(jacobian[:2, 1], 0.0)


def test_add_and_contains():
    solver = HierarchicalIterativeSolver(LieGroupSpace.Rn(2))
    constraint = Implicit(Quadratic(np.eye(2)))
    assert solver.add(constraint, 2)
    assert not solver.add(constraint, 0)
    assert solver.contains(constraint)
    assert solver.number_stacks == 3
    assert solver.constraints == (constraint,)
    assert solver.level_constraints(2) == (constraint,)
    assert solver.residual_error(np.ones(2)) == [0.0, 0.0, 4.0]


def test_add_rejects_mismatching_function():
    solver = HierarchicalIterativeSolver(LieGroupSpace.Rn(3))
    with pytest.raises(ConstraintDefinitionError):
        solver.add(Implicit(Quadratic(np.eye(2))))
    with pytest.raises(SolverDefinitionError):
        solver.add(Implicit(Quadratic(np.eye(3))), -1)


def test_invalid_settings():
    space = LieGroupSpace.Rn(2)
    with pytest.raises(SolverDefinitionError):
        HierarchicalIterativeSolver(space, error_threshold=0.0)
    with pytest.raises(SolverDefinitionError):
        HierarchicalIterativeSolver(space, max_iterations=-1)
    with pytest.raises(SolverDefinitionError):
        HierarchicalIterativeSolver(space, rank_threshold=-1.0)
    with pytest.raises(SolverDefinitionError):
        HierarchicalIterativeSolver(space, stagnation_patience=1.5)
    solver = HierarchicalIterativeSolver(space)
    with pytest.raises(SolverDefinitionError):
        solver.set_optional(0, True)
    with pytest.raises(SolverDefinitionError):
        solver.saturation = "bounds"


def test_invalid_line_search_parameters():
    with pytest.raises(SolverDefinitionError):
        Backtracking(c=2.0)
    with pytest.raises(SolverDefinitionError):
        ErrorNormBased(alpha_min=0.5, alpha_max=0.4)
    with pytest.raises(SolverDefinitionError):
        FixedSequence(alphas=[])
    with pytest.raises(SolverDefinitionError):
        FixedSequence(K=1.0)


def test_fixed_sequence_values():
    line_search = FixedSequence()
    alphas = [line_search.next_alpha() for _ in range(3)]
    np.testing.assert_allclose(alphas, [0.2, 0.35, 0.47])
    line_search.reset()
    assert line_search.next_alpha() == 0.2

    custom = FixedSequence(alphas=[0.5, 1.0])
    assert [custom.next_alpha() for _ in range(4)] == [0.5, 1.0, 1.0, 1.0]


def test_bounds_saturation():
    bounds = Bounds(np.zeros(2), np.ones(2))
    q, saturation = bounds.saturate(np.array([1.5, -0.5]))
    np.testing.assert_array_equal(q, [1.0, 0.0])
    np.testing.assert_array_equal(saturation, [1, -1])
    with pytest.raises(SolverDefinitionError):
        Bounds(np.ones(2), np.zeros(2))


def test_bounds_from_robot_space(kinematics):
    bounds = Bounds.from_configuration_space(kinematics.space)
    q = kinematics.space.neutral()
    q[0] = 4.0
    q[3] = 7.0
    q[6] = 5.0
    clamped, saturation = bounds.saturate(q)
    assert clamped[0] == np.pi
    # Free-flyer translation is clamped, its quaternion is not
    assert clamped[3] == 1.0
    assert clamped[6] == 5.0
    assert saturation.shape == (9,)
    assert saturation[0] == 1
    assert saturation[3] == 1
    np.testing.assert_array_equal(saturation[6:], 0)


def test_level_jacobian_on_robot_is_zero_outside_support(kinematics, frame1, frame2):
    space = kinematics.space
    solver = HierarchicalIterativeSolver(space)
    f = RelativeTransformation("elbow", kinematics, "joint2", "joint3", frame1, frame2)
    solver.add(Implicit(f))
    q = space.shoot(np.random.default_rng(3))
    residual, jacobian = solver.level_residual_and_jacobian(0, q)
    _, dense = solver.constraints[0].residual_and_jacobian(q)
    assert jacobian.shape == (6, 9)
    np.testing.assert_array_equal(jacobian[:, [0, 1]], 0.0)
    np.testing.assert_array_equal(jacobian[:, 3:], 0.0)
    np.testing.assert_allclose(jacobian[:, 2], dense[:, 2])


@pytest.mark.parametrize("line_search", [Backtracking(), ErrorNormBased(), FixedSequence()])
def test_relative_pose_on_robot(kinematics, rng, frame1, frame2, line_search):
    space = kinematics.space
    f = RelativeTransformation("grasp", kinematics, "joint3", "box", frame1, frame2)
    solver = HierarchicalIterativeSolver(space, max_iterations=100, error_threshold=1e-6)
    solver.saturate_with_bounds()
    constraint = Implicit(f)
    solver.add(constraint)

    goal = space.shoot(rng)
    solver.right_hand_side_from_config(goal)
    assert solver.is_satisfied(goal)

    q = space.integrate(goal, rng.uniform(-0.5, 0.5, space.nv))
    initial = q.copy()
    result = solver.solve(q, line_search)
    assert result.status is Status.SUCCESS
    assert constraint.is_satisfied(result.configuration, 1e-6)
    np.testing.assert_array_equal(q, initial)


def test_solve_constraints_helper():
    result = solve_constraints(
        LieGroupSpace.Rn(2),
        [Implicit(AffineFunction(np.eye(2), np.array([-1.0, -2.0])))],
        np.zeros(2),
    )
    assert result.success
    np.testing.assert_allclose(result.configuration, [1.0, 2.0])


def test_solver_logs_iterations(caplog):
    solver = quadratic_solver(1.0, 1.0)
    with caplog.at_level(logging.DEBUG):
        solver.solve(np.array([0.5, 0.5]))
    assert any("Iteration 0" in record.message for record in caplog.records)

    with caplog.at_level(logging.WARNING):
        solver.solve(np.zeros(2))
    assert any(record.levelno == logging.WARNING for record in caplog.records)
