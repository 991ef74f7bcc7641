"""Uniform B-spline basis matrices and evaluation of Lie group and Euclidean splines."""

from __future__ import annotations

from dataclasses import dataclass
from math import comb, factorial
from typing import Optional, Sequence

import numpy as np

from .lie import SO3, lie_bracket


def base_coefficients(order: int) -> np.ndarray:
    """Matrix whose row ``n`` holds coefficients of the n-th derivative of ``[1, t, ..., t^(N-1)]``."""
    if order < 1:
        raise ValueError("spline order must be at least 1")
    coeffs = np.zeros((order, order))
    coeffs[0, :] = 1.0
    for n in range(1, order):
        factors = np.arange(order - n + 1, dtype=float)
        coeffs[n, n - 1:] = factors * coeffs[n - 1, n - 1:]
    return coeffs


def blending_matrix(order: int, cumulative: bool = False) -> np.ndarray:
    """Blending matrix of a uniform B-spline of the given order."""
    if order < 1:
        raise ValueError("spline order must be at least 1")
    m = np.zeros((order, order))
    for i in range(order):
        for j in range(order):
            total = sum(
                (-1) ** (s - j) * comb(order, s - j) * (order - s - 1) ** (order - 1 - i)
                for s in range(j, order)
            )
            m[j, i] = comb(order - 1, order - 1 - i) * total
    if cumulative:
        m = np.flipud(np.cumsum(np.flipud(m), axis=0))
    return m / factorial(order - 1)


def base_coeffs_with_time(order: int, derivative: int, t: float) -> np.ndarray:
    """Given derivative of the time polynomial vector ``[1, t, ..., t^(N-1)]``."""
    if derivative < 0:
        raise ValueError("derivative must be non-negative")
    res = np.zeros(order)
    if derivative < order:
        bc = base_coefficients(order)
        powers = float(t) ** np.arange(order - derivative)
        res[derivative:] = bc[derivative, derivative:] * powers
    return res


@dataclass
class LieEvaluation:
    """Value of an SO(3) spline and its body-frame time derivatives."""

    transform: SO3
    velocity: Optional[np.ndarray] = None
    acceleration: Optional[np.ndarray] = None
    jerk: Optional[np.ndarray] = None


def evaluate_lie(knots: Sequence[SO3], u: float, inv_dt: float, derivatives: int = 0) -> LieEvaluation:
    """Evaluate a cumulative SO(3) B-spline over ``len(knots)`` knots.

    ``derivatives`` selects how many time derivatives (0 to 3) are computed.
    """
    knots = list(knots)
    order = len(knots)
    if order < 2:
        raise ValueError("at least two knots are needed")
    if not 0 <= derivatives <= 3:
        raise ValueError("derivatives must be between 0 and 3")

    m = blending_matrix(order, cumulative=True)
    coeff = m @ base_coeffs_with_time(order, 0, u)
    dcoeff = inv_dt * m @ base_coeffs_with_time(order, 1, u)
    ddcoeff = inv_dt**2 * m @ base_coeffs_with_time(order, 2, u)
    dddcoeff = inv_dt**3 * m @ base_coeffs_with_time(order, 3, u)

    transform = knots[0]
    rot_vel = np.zeros(3)
    rot_accel = np.zeros(3)
    rot_jerk = np.zeros(3)

    for k, (p0, p1) in enumerate(zip(knots, knots[1:]), start=1):
        delta = (p0.inverse() * p1).log()
        exp_kdelta = SO3.exp(delta * coeff[k])
        transform = transform * exp_kdelta

        if derivatives >= 1:
            adj = exp_kdelta.inverse().adjoint()
            rot_vel = adj @ rot_vel
            rot_vel_current = delta * dcoeff[k]
            rot_vel = rot_vel + rot_vel_current

            if derivatives >= 2:
                rot_accel = adj @ rot_accel
                accel_bracket = lie_bracket(rot_vel, rot_vel_current)
                rot_accel = rot_accel + ddcoeff[k] * delta + accel_bracket

                if derivatives >= 3:
                    rot_jerk = adj @ rot_jerk
                    rot_jerk = rot_jerk + dddcoeff[k] * delta + lie_bracket(
                        ddcoeff[k] * rot_vel + 2.0 * dcoeff[k] * rot_accel - dcoeff[k] * accel_bracket,
                        delta,
                    )

    return LieEvaluation(
        transform=transform,
        velocity=rot_vel if derivatives >= 1 else None,
        acceleration=rot_accel if derivatives >= 2 else None,
        jerk=rot_jerk if derivatives >= 3 else None,
    )


def evaluate_euclidean(knots, u: float, inv_dt: float, derivative: int = 0) -> np.ndarray:
    """Value, or the given time derivative, of a Euclidean uniform B-spline."""
    points = np.asarray(knots, dtype=float)
    if points.ndim != 2 or points.shape[0] < 1:
        raise ValueError("knots must be a non-empty sequence of vectors")
    order = points.shape[0]
    coeff = inv_dt**derivative * blending_matrix(order) @ base_coeffs_with_time(order, derivative, u)
    return coeff @ points