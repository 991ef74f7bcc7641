"""Initial estimate of the IMU-to-sensor rotation from relative rotations."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Protocol, Sequence

import numpy as np

from .lie import SO3, hat

logger = logging.getLogger(__name__)

MIN_CONSTRAINTS = 15


class InsufficientMotionError(ValueError):
    """Raised when too few relative-rotation constraints are available."""


class OrientationTrajectory(Protocol):
    def max_time(self) -> float: ...

    def orientation(self, time: float) -> SO3: ...


@dataclass
class OdomData:
    """Sensor odometry pose (4x4 homogeneous transform) at a timestamp."""

    timestamp: float
    pose: np.ndarray = field(default_factory=lambda: np.eye(4))


def _coeffs(q) -> np.ndarray:
    if isinstance(q, SO3):
        return q.quaternion()
    arr = np.asarray(q, dtype=float).reshape(-1)
    if arr.shape != (4,):
        raise ValueError("expected 4 quaternion coefficients")
    return arr


def left_quat_matrix(q) -> np.ndarray:
    """Matrix L(q) such that ``L(q) @ p`` is the product ``q * p`` (x, y, z, w)."""
    c = _coeffs(q)
    vec, w = c[:3], c[3]
    m = np.empty((4, 4))
    m[:3, :3] = w * np.eye(3) + hat(vec)
    m[:3, 3] = vec
    m[3, :3] = -vec
    m[3, 3] = w
    return m


def right_quat_matrix(q) -> np.ndarray:
    """Matrix R(q) such that ``R(q) @ p`` is the product ``p * q`` (x, y, z, w)."""
    c = _coeffs(q)
    vec, w = c[:3], c[3]
    m = np.empty((4, 4))
    m[:3, :3] = w * np.eye(3) - hat(vec)
    m[:3, 3] = vec
    m[3, :3] = -vec
    m[3, 3] = w
    return m


def rotation_to_ypr(matrix) -> np.ndarray:
    """Yaw, pitch, roll in degrees for ``R = Rz(yaw) Ry(pitch) Rx(roll)``."""
    r = np.asarray(matrix, dtype=float)
    n, o, a = r[:, 0], r[:, 1], r[:, 2]
    yaw = math.atan2(n[1], n[0])
    sy, cy = math.sin(yaw), math.cos(yaw)
    pitch = math.atan2(-n[2], n[0] * cy + n[1] * sy)
    roll = math.atan2(a[0] * sy - a[1] * cy, -o[0] * sy + o[1] * cy)
    return np.degrees([yaw, pitch, roll])


def _rotation_angle(rotation: SO3) -> float:
    q = rotation.quaternion()
    return 2.0 * math.atan2(np.linalg.norm(q[:3]), abs(q[3]))


class InertialInitializer:
    """Solves ``q_sensor * q = q * q_imu`` for the IMU-to-sensor rotation ``q``."""

    def __init__(self):
        self._initialized = False
        self._q_ItoS = SO3()

    def build_problem(self, trajectory: OrientationTrajectory, odom_data: Sequence[OdomData]) -> np.ndarray:
        """Stack one weighted 4x4 constraint per consecutive pair of odometry poses."""
        odom = list(odom_data)
        blocks = []
        for prev, cur in zip(odom, odom[1:]):
            if cur.timestamp > trajectory.max_time():
                break
            delta_imu = trajectory.orientation(prev.timestamp).inverse() * trajectory.orientation(cur.timestamp)
            r_i = np.asarray(prev.pose, dtype=float)[:3, :3]
            r_j = np.asarray(cur.pose, dtype=float)[:3, :3]
            delta_sensor = SO3.from_matrix(r_i.T @ r_j)

            delta_angle = math.degrees(abs(_rotation_angle(delta_sensor) - _rotation_angle(delta_imu)))
            huber = 1.0 / delta_angle if delta_angle > 1.0 else 1.0
            blocks.append(huber * (left_quat_matrix(delta_sensor) - right_quat_matrix(delta_imu)))

        if len(blocks) < MIN_CONSTRAINTS:
            raise InsufficientMotionError(
                f"{len(blocks)} rotation constraints, at least {MIN_CONSTRAINTS} needed"
            )
        return np.vstack(blocks)

    def estimate_rotation(self, trajectory: OrientationTrajectory, odom_data: Sequence[OdomData]) -> bool:
        """Estimate the rotation; True when the motion was rich enough to accept it."""
        try:
            a = self.build_problem(trajectory, odom_data)
        except InsufficientMotionError:
            return False
        _, singular, vh = np.linalg.svd(a)
        if singular[2] > 0.25:
            self._q_ItoS = SO3(vh[3])
            self._initialized = True
            return True
        return False

    @staticmethod
    def solve_constraint_qyx(t1, t2) -> tuple[float, float]:
        """Roots ``x`` for which ``q = x * t1 + t2`` satisfies ``q0*q1 + q2*q3 = 0``."""
        t1 = np.asarray(t1, dtype=float)
        t2 = np.asarray(t2, dtype=float)
        a = t1[0] * t1[1] + t1[2] * t1[3]
        b = t1[0] * t2[1] + t1[1] * t2[0] + t1[2] * t2[3] + t1[3] * t2[2]
        c = t2[0] * t2[1] + t2[2] * t2[3]

        if abs(a) < 1e-10:
            root = -c / b
            return root, root
        delta2 = b * b - 4.0 * a * c
        if delta2 < 0.0:
            raise ValueError("quadratic equation has a negative discriminant")
        delta = math.sqrt(delta2)
        return (-b + delta) / (2.0 * a), (-b - delta) / (2.0 * a)

    def estimate_rotation_ryx(self, trajectory: OrientationTrajectory, odom_data: Sequence[OdomData]) -> bool:
        """Estimate a zero-yaw rotation for motion that leaves yaw unobservable."""
        try:
            a = self.build_problem(trajectory, odom_data)
        except InsufficientMotionError:
            return False

        _, _, vh = np.linalg.svd(a.T @ a)
        v1, v2 = vh[2], vh[3]
        try:
            roots = self.solve_constraint_qyx(v1, v2)
        except ValueError:
            logger.error("Quadratic equation cannot be solved due to negative determinant.")
            return False

        candidates = []
        for lam in roots:
            t = lam * lam * (v1 @ v1) + 2 * lam * (v1 @ v2) + v2 @ v2
            lambda2 = math.sqrt(1.0 / t)
            lambda1 = lam * lambda2
            rotation = SO3.from_matrix(SO3(lambda1 * v1 + lambda2 * v2).matrix())
            ypr = rotation_to_ypr(rotation.matrix())
            logger.debug("lambda: %s : %s; ypr: %s", lambda1, lambda2, ypr)
            candidates.append((abs(ypr[0]), rotation))

        self._q_ItoS = min(candidates, key=lambda item: item[0])[1]
        return True

    def is_initialized(self) -> bool:
        return self._initialized

    def q_ItoS(self) -> SO3:
        return self._q_ItoS