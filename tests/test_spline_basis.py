import numpy as np
import pytest

from licalib.lie import SO3
from licalib.spline_basis import (
    base_coefficients,
    base_coeffs_with_time,
    blending_matrix,
    evaluate_euclidean,
    evaluate_lie,
)


def test_cumulative_blending_matrix_order_five():
    expected = np.array(
        [
            [24, 0, 0, 0, 0],
            [23, 4, -6, 4, -1],
            [12, 16, 0, -8, 3],
            [1, 4, 6, 4, -3],
            [0, 0, 0, 0, 1],
        ]
    ) / 24.0
    assert np.allclose(blending_matrix(5, cumulative=True), expected)


@pytest.mark.parametrize("order", [2, 3, 4, 5, 6])
def test_basis_is_partition_of_unity(order):
    for u in np.linspace(0.0, 1.0, 7):
        weights = blending_matrix(order) @ base_coeffs_with_time(order, 0, u)
        assert weights.sum() == pytest.approx(1.0)
        assert np.all(weights >= -1e-12)


@pytest.mark.parametrize("order", [3, 4, 5])
def test_cumulative_rows_are_tail_sums(order):
    plain = blending_matrix(order)
    cumulative = blending_matrix(order, cumulative=True)
    for i in range(order):
        assert np.allclose(cumulative[i], plain[i:].sum(axis=0))


@pytest.mark.parametrize("order", [4, 5])
def test_time_derivatives_match_finite_difference(order):
    t, h = 0.37, 1e-6
    for derivative in range(1, order):
        numeric = (
            base_coeffs_with_time(order, derivative - 1, t + h)
            - base_coeffs_with_time(order, derivative - 1, t - h)
        ) / (2 * h)
        assert np.allclose(base_coeffs_with_time(order, derivative, t), numeric, atol=1e-5)


def test_derivative_beyond_order_is_zero():
    assert np.array_equal(base_coeffs_with_time(4, 4, 0.5), np.zeros(4))


def test_zeroth_derivative_starts_with_one():
    assert base_coeffs_with_time(4, 0, 0.3)[0] == 1.0
    assert np.array_equal(base_coefficients(4)[0], np.ones(4))


def test_invalid_order_rejected():
    with pytest.raises(ValueError):
        base_coefficients(0)


def test_euclidean_constant_knots():
    knots = np.tile([1.0, -2.0, 3.0], (4, 1))
    assert np.allclose(evaluate_euclidean(knots, 0.4, 10.0), knots[0])
    assert np.allclose(evaluate_euclidean(knots, 0.4, 10.0, 1), 0.0)


def test_euclidean_linear_knots_have_constant_velocity():
    v = np.array([0.5, 1.0, -0.25])
    knots = np.outer(np.arange(4), v)
    inv_dt = 5.0
    for u in (0.0, 0.3, 0.9):
        assert np.allclose(evaluate_euclidean(knots, u, inv_dt, 1), v * inv_dt)
        assert np.allclose(evaluate_euclidean(knots, u, inv_dt, 2), 0.0)


def test_euclidean_derivative_matches_finite_difference():
    rng = np.random.default_rng(3)
    knots = rng.normal(size=(5, 3))
    inv_dt, u, h = 4.0, 0.42, 1e-6
    numeric = (evaluate_euclidean(knots, u + h, inv_dt) - evaluate_euclidean(knots, u - h, inv_dt)) / (2 * h) * inv_dt
    assert np.allclose(evaluate_euclidean(knots, u, inv_dt, 1), numeric, atol=1e-6)


def _random_knots(order, seed):
    rng = np.random.default_rng(seed)
    return [SO3.exp(rng.uniform(-1.0, 1.0, 3)) for _ in range(order)]


def test_lie_constant_knots():
    knots = [SO3.exp([0.2, -0.3, 0.1])] * 4
    result = evaluate_lie(knots, 0.6, 2.0, 3)
    assert np.allclose(result.transform.matrix(), knots[0].matrix())
    assert np.allclose(result.velocity, 0.0)
    assert np.allclose(result.acceleration, 0.0)
    assert np.allclose(result.jerk, 0.0)


def test_lie_constant_rotation_rate():
    omega = np.array([0.1, -0.2, 0.3])
    inv_dt = 10.0
    knots = [SO3.exp(omega * i / inv_dt) for i in range(4)]
    result = evaluate_lie(knots, 0.25, inv_dt, 2)
    assert np.allclose(result.velocity, omega)
    assert np.allclose(result.acceleration, 0.0, atol=1e-9)


def test_lie_without_derivatives_leaves_them_unset():
    result = evaluate_lie(_random_knots(4, 0), 0.5, 1.0)
    assert result.velocity is None and result.acceleration is None and result.jerk is None


@pytest.mark.parametrize("order", [4, 5])
def test_lie_derivatives_match_finite_difference(order):
    knots = _random_knots(order, order)
    inv_dt, u, h = 3.0, 0.4, 1e-5
    dt = 1.0 / inv_dt
    mid = evaluate_lie(knots, u, inv_dt, 3)
    before = evaluate_lie(knots, u - h, inv_dt, 3)
    after = evaluate_lie(knots, u + h, inv_dt, 3)

    vel = (before.transform.inverse() * after.transform).log() / (2 * h * dt)
    assert np.allclose(mid.velocity, vel, atol=1e-5)
    accel = (after.velocity - before.velocity) / (2 * h * dt)
    assert np.allclose(mid.acceleration, accel, atol=1e-4)
    jerk = (after.acceleration - before.acceleration) / (2 * h * dt)
    assert np.allclose(mid.jerk, jerk, atol=1e-3)


def test_lie_rejects_bad_arguments():
    with pytest.raises(ValueError):
        evaluate_lie(_random_knots(4, 1), 0.5, 1.0, 4)
    with pytest.raises(ValueError):
        evaluate_lie(_random_knots(1, 1), 0.5, 1.0)