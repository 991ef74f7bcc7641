"""Body-frame angular acceleration and jerk of an SO(3) B-spline."""

from __future__ import annotations

from typing import NamedTuple, Optional

import numpy as np

from .lie import SO3, hat, right_jacobian, right_jacobian_inv
from .so3_spline import So3Spline, SplineJacobian


class BodyAcceleration(NamedTuple):
    """Angular acceleration with the velocity computed on the way.

    The Jacobians are present only when they were requested.
    """

    acceleration: np.ndarray
    velocity: np.ndarray
    jacobian: Optional[SplineJacobian] = None
    velocity_jacobian: Optional[SplineJacobian] = None


class BodyJerk(NamedTuple):
    """Angular jerk with the velocity and acceleration computed on the way."""

    jerk: np.ndarray
    velocity: np.ndarray
    acceleration: np.ndarray


def _segment(spline: So3Spline, time: float):
    u, s = spline.compute_t_index(time)
    knots = [spline[s + i] for i in range(spline.order)]
    return u, s, knots


def _plain_acceleration(spline: So3Spline, time: float) -> BodyAcceleration:
    u, _, knots = _segment(spline, time)
    coeff = spline.coefficients(u, 0)
    dcoeff = spline.coefficients(u, 1)
    ddcoeff = spline.coefficients(u, 2)

    rot_vel = np.zeros(3)
    rot_accel = np.zeros(3)
    for i, (p0, p1) in enumerate(zip(knots, knots[1:])):
        delta = (p0.inverse() * p1).log()
        rot = SO3.exp(-delta * coeff[i + 1])
        vel_current = dcoeff[i + 1] * delta
        rot_vel = rot * rot_vel + vel_current
        rot_accel = rot * rot_accel + ddcoeff[i + 1] * delta + np.cross(rot_vel, vel_current)
    return BodyAcceleration(rot_accel, rot_vel)


def acceleration_body(spline: So3Spline, time: float, with_jacobian: bool = False) -> BodyAcceleration:
    """Angular acceleration in the body frame at ``time``.

    With ``with_jacobian`` the Jacobians of the acceleration and of the
    velocity with respect to the knots (left perturbation) are included.
    """
    if not with_jacobian:
        return _plain_acceleration(spline, time)

    deg = spline.degree
    if deg < 2:
        raise ValueError("acceleration Jacobian needs a spline of order 3 or more")
    u, s, knots = _segment(spline, time)
    coeff = spline.coefficients(u, 0)
    dcoeff = spline.coefficients(u, 1)
    ddcoeff = spline.coefficients(u, 2)

    delta_vec = []
    exp_k_delta = []
    jr_delta_inv = []
    jr_kdelta = []
    rot_vel_arr = []
    rot_accel_arr = []

    rot_vel = np.zeros(3)
    rot_accel = np.zeros(3)
    for i, (p0, p1) in enumerate(zip(knots, knots[1:])):
        delta = (p0.inverse() * p1).log()
        delta_vec.append(delta)
        jr_delta_inv.append(right_jacobian_inv(delta) @ p1.inverse().matrix())
        k_delta = coeff[i + 1] * delta
        jr_kdelta.append(right_jacobian(-k_delta))
        rot = SO3.exp(-k_delta).matrix()
        exp_k_delta.append(rot)

        vel_current = dcoeff[i + 1] * delta
        rot_vel = rot @ rot_vel + vel_current
        rot_accel = rot @ rot_accel + ddcoeff[i + 1] * delta + np.cross(rot_vel, vel_current)
        rot_vel_arr.append(rot_vel)
        rot_accel_arr.append(rot_accel)

    eye = np.eye(3)
    d_vel_d_delta = [np.zeros((3, 3)) for _ in range(deg)]
    d_accel_d_delta = [np.zeros((3, 3)) for _ in range(deg)]

    last = deg - 1
    d_vel_d_delta[last] = (
        coeff[deg] * exp_k_delta[last] @ hat(rot_vel_arr[last - 1]) @ jr_kdelta[last]
        + eye * dcoeff[deg]
    )
    d_accel_d_delta[last] = (
        coeff[deg] * exp_k_delta[last] @ hat(rot_accel_arr[last - 1]) @ jr_kdelta[last]
        + eye * ddcoeff[deg]
        + dcoeff[deg] * (hat(rot_vel_arr[last]) - hat(delta_vec[last]) @ d_vel_d_delta[last])
    )

    pj = np.eye(3)
    sj = np.zeros(3)
    for i in range(deg - 2, -1, -1):
        sj = sj + dcoeff[i + 2] * pj @ delta_vec[i + 1]
        pj = pj @ exp_k_delta[i + 1]

        d_vel = eye * dcoeff[i + 1]
        if i >= 1:
            d_vel = d_vel + coeff[i + 1] * exp_k_delta[i] @ hat(rot_vel_arr[i - 1]) @ jr_kdelta[i]

        d_accel = eye * ddcoeff[i + 1] + dcoeff[i + 1] * (hat(rot_vel_arr[i]) - hat(delta_vec[i]) @ d_vel)
        if i >= 1:
            d_accel = d_accel + coeff[i + 1] * exp_k_delta[i] @ hat(rot_accel_arr[i - 1]) @ jr_kdelta[i]

        d_vel_d_delta[i] = pj @ d_vel
        d_accel_d_delta[i] = pj @ d_accel - hat(sj) @ d_vel_d_delta[i]

    def knot_blocks(per_delta):
        blocks = [np.zeros((3, 3)) for _ in range(spline.order)]
        for i, d in enumerate(per_delta):
            val = d @ jr_delta_inv[i]
            blocks[i] -= val
            blocks[i + 1] += val
        return SplineJacobian(s, blocks)

    return BodyAcceleration(
        rot_accel,
        rot_vel,
        knot_blocks(d_accel_d_delta),
        knot_blocks(d_vel_d_delta),
    )


def jerk_body(spline: So3Spline, time: float) -> BodyJerk:
    """Angular jerk in the body frame at ``time``."""
    u, _, knots = _segment(spline, time)
    coeff = spline.coefficients(u, 0)
    dcoeff = spline.coefficients(u, 1)
    ddcoeff = spline.coefficients(u, 2)
    dddcoeff = spline.coefficients(u, 3)

    rot_vel = np.zeros(3)
    rot_accel = np.zeros(3)
    rot_jerk = np.zeros(3)
    for i, (p0, p1) in enumerate(zip(knots, knots[1:])):
        delta = (p0.inverse() * p1).log()
        rot = SO3.exp(-delta * coeff[i + 1])

        vel_current = dcoeff[i + 1] * delta
        rot_vel = rot * rot_vel + vel_current

        vel_cross = np.cross(rot_vel, vel_current)
        rot_accel = rot * rot_accel + ddcoeff[i + 1] * delta + vel_cross

        rot_jerk = rot * rot_jerk + dddcoeff[i + 1] * delta + np.cross(
            ddcoeff[i + 1] * rot_vel + 2 * dcoeff[i + 1] * rot_accel - dcoeff[i + 1] * vel_cross,
            delta,
        )
    return BodyJerk(rot_jerk, rot_vel, rot_accel)