import math

import numpy as np
import pytest

from licalib.lie import (
    SO3,
    hat,
    left_jacobian,
    left_jacobian_inv,
    lie_bracket,
    local_plus,
    plus_jacobian,
    right_jacobian,
    right_jacobian_inv,
)

VECTORS = [
    np.array([0.3, -0.2, 0.5]),
    np.array([1.2, 0.4, -2.0]),
    np.array([1e-12, 0.0, -1e-12]),
]


@pytest.mark.parametrize("omega", VECTORS)
def test_exp_log_round_trip(omega):
    assert np.allclose(SO3.exp(omega).log(), omega, atol=1e-12)


def test_log_of_half_turn_has_norm_pi():
    assert np.linalg.norm(SO3.exp([math.pi, 0.0, 0.0]).log()) == pytest.approx(math.pi)


def test_quarter_turn_about_z_moves_x_to_y():
    rotated = SO3.exp([0.0, 0.0, math.pi / 2]) * np.array([1.0, 0.0, 0.0])
    assert np.allclose(rotated, [0.0, 1.0, 0.0])


def test_inverse_composes_to_identity():
    rot = SO3.exp([0.4, -1.1, 0.2])
    assert np.allclose((rot * rot.inverse()).matrix(), np.eye(3))


def test_matrix_is_orthonormal():
    mat = SO3.exp([0.4, -1.1, 0.2]).matrix()
    assert np.allclose(mat @ mat.T, np.eye(3))
    assert np.linalg.det(mat) == pytest.approx(1.0)


@pytest.mark.parametrize("omega", [[0.1, 0.2, 0.3], [3.0, 0.1, 0.0], [0.0, -3.1, 0.2], [0.1, 0.0, 3.1]])
def test_from_matrix_round_trip(omega):
    mat = SO3.exp(omega).matrix()
    assert np.allclose(SO3.from_matrix(mat).matrix(), mat)


def test_composition_matches_matrix_product():
    a, b = SO3.exp([0.1, 0.5, -0.3]), SO3.exp([-0.7, 0.2, 0.9])
    assert np.allclose((a * b).matrix(), a.matrix() @ b.matrix())


def test_quaternion_is_unit():
    assert np.linalg.norm(SO3([1.0, 2.0, 3.0, 4.0]).quaternion()) == pytest.approx(1.0)


def test_zero_quaternion_rejected():
    with pytest.raises(ValueError):
        SO3([0.0, 0.0, 0.0, 0.0])


def test_adjoint_transports_tangent_vectors():
    rot = SO3.exp([0.3, 0.2, -0.1])
    v = np.array([0.05, -0.02, 0.01])
    lhs = rot * SO3.exp(v) * rot.inverse()
    assert np.allclose(lhs.log(), rot.adjoint() @ v)


def test_hat_is_cross_product():
    a, b = np.array([1.0, -2.0, 0.5]), np.array([0.3, 0.7, -1.0])
    assert np.allclose(hat(a) @ b, np.cross(a, b))


def test_lie_bracket_is_commutator():
    a, b = np.array([1.0, -2.0, 0.5]), np.array([0.3, 0.7, -1.0])
    commutator = hat(a) @ hat(b) - hat(b) @ hat(a)
    assert np.allclose(hat(lie_bracket(a, b)), commutator)


@pytest.mark.parametrize("phi", VECTORS[:2])
def test_right_jacobian_first_order(phi):
    d = np.array([1e-6, -2e-6, 1.5e-6])
    lhs = (SO3.exp(phi).inverse() * SO3.exp(phi + d)).log()
    assert np.allclose(lhs, right_jacobian(phi) @ d, atol=1e-11)


@pytest.mark.parametrize("phi", VECTORS[:2])
def test_left_jacobian_first_order(phi):
    d = np.array([1e-6, -2e-6, 1.5e-6])
    lhs = (SO3.exp(phi + d) * SO3.exp(phi).inverse()).log()
    assert np.allclose(lhs, left_jacobian(phi) @ d, atol=1e-11)


@pytest.mark.parametrize("phi", VECTORS)
def test_jacobian_inverses(phi):
    assert np.allclose(left_jacobian(phi) @ left_jacobian_inv(phi), np.eye(3))
    assert np.allclose(right_jacobian(phi) @ right_jacobian_inv(phi), np.eye(3))
    assert np.allclose(left_jacobian(phi), right_jacobian(-phi))


def test_local_plus_zero_is_identity_update():
    rot = SO3.exp([0.2, 0.1, -0.4])
    assert np.allclose(local_plus(rot, np.zeros(3)).matrix(), rot.matrix())


def test_plus_jacobian_matches_finite_difference():
    rot = SO3.exp([0.2, 0.1, -0.4])
    h = 1e-6
    numeric = np.empty((4, 3))
    for k, step in enumerate(np.eye(3) * h):
        numeric[:, k] = (
            local_plus(rot, step).quaternion() - local_plus(rot, -step).quaternion()
        ) / (2 * h)
    assert np.allclose(plus_jacobian(rot), numeric, atol=1e-8)