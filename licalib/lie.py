"""Rotation group SO(3) with unit quaternions, its tangent space and Jacobians.

Quaternion coefficients are stored in ``(x, y, z, w)`` order.
"""

from __future__ import annotations

import math

import numpy as np

_EPS = 1e-10


def _vec3(value) -> np.ndarray:
    arr = np.asarray(value, dtype=float).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"expected a 3-vector, got shape {arr.shape}")
    return arr


def _quat_mul(p: np.ndarray, q: np.ndarray) -> np.ndarray:
    """Hamilton product of two ``(x, y, z, w)`` quaternions."""
    pv, pw = p[:3], p[3]
    qv, qw = q[:3], q[3]
    vec = pw * qv + qw * pv + np.cross(pv, qv)
    return np.array([vec[0], vec[1], vec[2], pw * qw - pv @ qv])


def hat(vector) -> np.ndarray:
    """Skew-symmetric matrix such that ``hat(a) @ b == cross(a, b)``."""
    x, y, z = _vec3(vector)
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def lie_bracket(a, b) -> np.ndarray:
    """Lie bracket of two elements of so(3)."""
    return np.cross(_vec3(a), _vec3(b))


class SO3:
    """A 3D rotation represented by a unit quaternion."""

    __slots__ = ("_q",)

    def __init__(self, quaternion=(0.0, 0.0, 0.0, 1.0)):
        q = np.asarray(quaternion, dtype=float).reshape(-1)
        if q.shape != (4,):
            raise ValueError(f"expected 4 quaternion coefficients, got {q.shape}")
        norm = np.linalg.norm(q)
        if norm < _EPS:
            raise ValueError("quaternion must have non-zero norm")
        self._q = q / norm

    @staticmethod
    def exp(omega) -> "SO3":
        """Exponential map from a rotation vector."""
        omega = _vec3(omega)
        theta_sq = float(omega @ omega)
        theta = math.sqrt(theta_sq)
        if theta < _EPS:
            theta_po4 = theta_sq * theta_sq
            imag_factor = 0.5 - theta_sq / 48.0 + theta_po4 / 3840.0
            real_factor = 1.0 - theta_sq / 8.0 + theta_po4 / 384.0
        else:
            half = 0.5 * theta
            imag_factor = math.sin(half) / theta
            real_factor = math.cos(half)
        vec = imag_factor * omega
        return SO3((vec[0], vec[1], vec[2], real_factor))

    @staticmethod
    def from_matrix(matrix) -> "SO3":
        """Rotation from a 3x3 rotation matrix."""
        m = np.asarray(matrix, dtype=float)
        if m.shape != (3, 3):
            raise ValueError(f"expected a 3x3 matrix, got {m.shape}")
        trace = m[0, 0] + m[1, 1] + m[2, 2]
        q = np.zeros(4)
        if trace > 0.0:
            t = math.sqrt(trace + 1.0)
            q[3] = 0.5 * t
            t = 0.5 / t
            q[0] = (m[2, 1] - m[1, 2]) * t
            q[1] = (m[0, 2] - m[2, 0]) * t
            q[2] = (m[1, 0] - m[0, 1]) * t
        else:
            i = 0
            if m[1, 1] > m[0, 0]:
                i = 1
            if m[2, 2] > m[i, i]:
                i = 2
            j = (i + 1) % 3
            k = (j + 1) % 3
            t = math.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
            q[i] = 0.5 * t
            t = 0.5 / t
            q[3] = (m[k, j] - m[j, k]) * t
            q[j] = (m[j, i] + m[i, j]) * t
            q[k] = (m[k, i] + m[i, k]) * t
        return SO3(q)

    def log(self) -> np.ndarray:
        """Logarithmic map to a rotation vector."""
        vec = self._q[:3]
        w = self._q[3]
        squared_n = float(vec @ vec)
        if squared_n < _EPS * _EPS:
            factor = 2.0 / w - 2.0 / 3.0 * squared_n / (w * w * w)
        else:
            n = math.sqrt(squared_n)
            if abs(w) < _EPS:
                factor = (math.pi if w > 0 else -math.pi) / n
            else:
                factor = 2.0 * math.atan(n / w) / n
        return factor * vec

    def inverse(self) -> "SO3":
        x, y, z, w = self._q
        return SO3((-x, -y, -z, w))

    def matrix(self) -> np.ndarray:
        x, y, z, w = self._q
        return np.array(
            [
                [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
                [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
                [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
            ]
        )

    def quaternion(self) -> np.ndarray:
        """Coefficients ``(x, y, z, w)``."""
        return self._q.copy()

    def adjoint(self) -> np.ndarray:
        """Adjoint representation; for SO(3) this is the rotation matrix."""
        return self.matrix()

    def __mul__(self, other):
        if isinstance(other, SO3):
            return SO3(_quat_mul(self._q, other._q))
        points = np.asarray(other, dtype=float)
        if points.shape[-1:] != (3,):
            return NotImplemented
        return points @ self.matrix().T

    def __repr__(self) -> str:
        return f"SO3({self._q.tolist()!r})"


def _jacobian_terms(phi):
    phi = _vec3(phi)
    norm2 = float(phi @ phi)
    phi_hat = hat(phi)
    return norm2, phi_hat, phi_hat @ phi_hat


def right_jacobian(phi) -> np.ndarray:
    norm2, phi_hat, phi_hat2 = _jacobian_terms(phi)
    jac = np.eye(3)
    if norm2 > _EPS:
        norm = math.sqrt(norm2)
        jac -= (1 - math.cos(norm)) / norm2 * phi_hat
        jac += (norm - math.sin(norm)) / (norm2 * norm) * phi_hat2
    return jac


def right_jacobian_inv(phi) -> np.ndarray:
    norm2, phi_hat, phi_hat2 = _jacobian_terms(phi)
    jac = np.eye(3) + 0.5 * phi_hat
    if norm2 > _EPS:
        norm = math.sqrt(norm2)
        jac += (1 / norm2 - (1 + math.cos(norm)) / (2 * norm * math.sin(norm))) * phi_hat2
    return jac


def left_jacobian(phi) -> np.ndarray:
    norm2, phi_hat, phi_hat2 = _jacobian_terms(phi)
    jac = np.eye(3)
    if norm2 > _EPS:
        norm = math.sqrt(norm2)
        jac += (1 - math.cos(norm)) / norm2 * phi_hat
        jac += (norm - math.sin(norm)) / (norm2 * norm) * phi_hat2
    return jac


def left_jacobian_inv(phi) -> np.ndarray:
    norm2, phi_hat, phi_hat2 = _jacobian_terms(phi)
    jac = np.eye(3) - 0.5 * phi_hat
    if norm2 > _EPS:
        norm = math.sqrt(norm2)
        jac += (1 / norm2 - (1 + math.cos(norm)) / (2 * norm * math.sin(norm))) * phi_hat2
    return jac


def local_plus(rotation: SO3, delta) -> SO3:
    """Manifold update ``rotation * exp(delta)``."""
    return rotation * SO3.exp(delta)


def plus_jacobian(rotation: SO3) -> np.ndarray:
    """4x3 Jacobian of the quaternion of ``rotation * exp(x)`` at ``x = 0``."""
    q = rotation.quaternion()
    vec, w = q[:3], q[3]
    jac = np.empty((4, 3))
    jac[:3] = 0.5 * (w * np.eye(3) + hat(vec))
    jac[3] = -0.5 * vec
    return jac