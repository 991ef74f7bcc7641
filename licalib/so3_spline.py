"""Uniform cumulative B-spline on SO(3)."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .lie import SO3, hat, left_jacobian, left_jacobian_inv, right_jacobian, right_jacobian_inv
from .spline_basis import base_coeffs_with_time, blending_matrix


@dataclass
class SplineJacobian:
    """Jacobian of a spline quantity with respect to the knots it depends on.

    Only ``order`` consecutive knots starting at ``start_idx`` have influence;
    ``d_val_d_knot[i]`` is the 3x3 block for knot ``start_idx + i`` under a
    left perturbation ``exp(x) * knot``.
    """

    start_idx: int
    d_val_d_knot: list = field(default_factory=list)


class So3Spline:
    """Uniform cumulative B-spline of rotations with a fixed knot interval."""

    order: int = 4

    def __init__(self, time_interval: float, start_time: float = 0.0):
        if time_interval <= 0:
            raise ValueError("time interval must be positive")
        self._dt = float(time_interval)
        self._start_t = float(start_time)
        self._knots: deque[SO3] = deque()
        self._blending = blending_matrix(self.order, cumulative=True)

    @property
    def degree(self) -> int:
        return self.order - 1

    def compute_t_index(self, timestamp: float) -> tuple[float, int]:
        """Normalised time within the segment and index of its first knot."""
        if timestamp < self._start_t:
            raise ValueError(f"time {timestamp} is before spline start {self._start_t}")
        st = timestamp - self._start_t
        s = int(math.floor(st / self._dt))
        u = (st - s * self._dt) / self._dt
        if s + self.order > len(self._knots):
            raise ValueError(
                f"time {timestamp} needs knots up to {s + self.order}, spline has {len(self._knots)}"
            )
        return u, s

    def max_time(self) -> float:
        return self._start_t + (len(self._knots) - self.order + 1) * self._dt

    def min_time(self) -> float:
        return self._start_t

    def gen_random_trajectory(self, n: int, static_init: bool = False, rng=None) -> None:
        """Append ``n`` random knots; with ``static_init`` the first ``order`` are equal."""
        rng = np.random.default_rng() if rng is None else rng

        def random_rotation() -> SO3:
            return SO3.exp(rng.uniform(-1.0, 1.0, 3) * math.pi)

        if static_init:
            first = random_rotation()
            self._knots.extend(first for _ in range(self.order))
            self._knots.extend(random_rotation() for _ in range(n - self.order))
        else:
            self._knots.extend(random_rotation() for _ in range(n))

    def set_start_time(self, start_time: float) -> None:
        self._start_t = float(start_time)

    def push_back(self, knot: SO3) -> None:
        if not isinstance(knot, SO3):
            raise TypeError("knots must be SO3 rotations")
        self._knots.append(knot)

    def pop_back(self) -> SO3:
        return self._knots.pop()

    def front(self) -> SO3:
        return self._knots[0]

    def pop_front(self) -> SO3:
        """Remove the first knot and advance the start time by one interval."""
        knot = self._knots.popleft()
        self._start_t += self._dt
        return knot

    def resize(self, n: int) -> None:
        """Truncate, or extend with identity rotations, to ``n`` knots."""
        if n < 0:
            raise ValueError("size must be non-negative")
        while len(self._knots) > n:
            self._knots.pop()
        while len(self._knots) < n:
            self._knots.append(SO3())

    def __getitem__(self, index: int) -> SO3:
        return self._knots[index]

    def __len__(self) -> int:
        return len(self._knots)

    def knots(self) -> tuple[SO3, ...]:
        return tuple(self._knots)

    def time_interval(self) -> float:
        return self._dt

    def coefficients(self, u: float, derivative: int = 0) -> np.ndarray:
        """Cumulative blending coefficients (or their time derivative) at ``u``."""
        scale = (1.0 / self._dt) ** derivative
        return scale * self._blending @ base_coeffs_with_time(self.order, derivative, u)

    def _segment(self, s: int) -> list[SO3]:
        return [self._knots[s + i] for i in range(self.order)]

    def evaluate(self, time: float, with_jacobian: bool = False):
        """Rotation at ``time``; with ``with_jacobian`` also its SplineJacobian."""
        u, s = self.compute_t_index(time)
        coeff = self.coefficients(u, 0)
        knots = self._segment(s)

        res = knots[0]
        jac: Optional[SplineJacobian] = SplineJacobian(s) if with_jacobian else None
        j_helper = np.eye(3)

        for i in range(self.degree):
            p0, p1 = knots[i], knots[i + 1]
            delta = (p0.inverse() * p1).log()
            kdelta = delta * coeff[i + 1]
            if jac is not None:
                block = j_helper
                j_helper = (
                    coeff[i + 1]
                    * res.matrix()
                    @ left_jacobian(kdelta)
                    @ left_jacobian_inv(delta)
                    @ p0.inverse().matrix()
                )
                jac.d_val_d_knot.append(block - j_helper)
            res = res * SO3.exp(kdelta)

        if jac is None:
            return res
        jac.d_val_d_knot.append(j_helper)
        return res, jac

    def velocity_body(self, time: float, with_jacobian: bool = False):
        """Body-frame angular velocity at ``time``; optionally with its SplineJacobian."""
        u, s = self.compute_t_index(time)
        coeff = self.coefficients(u, 0)
        dcoeff = self.coefficients(u, 1)
        knots = self._segment(s)

        if not with_jacobian:
            rot_vel = np.zeros(3)
            for i in range(self.degree):
                delta = (knots[i].inverse() * knots[i + 1]).log()
                rot_vel = SO3.exp(-delta * coeff[i + 1]) * rot_vel
                rot_vel = rot_vel + delta * dcoeff[i + 1]
            return rot_vel

        deg = self.degree
        delta_vec = [np.zeros(3)] * deg
        r_tmp = [np.eye(3)] * deg
        exp_k_delta = [SO3()] * deg
        jr_delta_inv = [np.eye(3)] * deg
        jr_kdelta = [np.eye(3)] * deg
        accum = SO3()

        for i in reversed(range(deg)):
            p0, p1 = knots[i], knots[i + 1]
            delta_vec[i] = (p0.inverse() * p1).log()
            jr_delta_inv[i] = right_jacobian_inv(delta_vec[i]) @ p1.inverse().matrix()
            k_delta = coeff[i + 1] * delta_vec[i]
            jr_kdelta[i] = right_jacobian(-k_delta)
            r_tmp[i] = accum.matrix()
            exp_k_delta[i] = SO3.exp(-k_delta)
            accum = accum * exp_k_delta[i]

        d_vel_d_delta = [dcoeff[1] * r_tmp[0] @ jr_delta_inv[0]]
        rot_vel = delta_vec[0] * dcoeff[1]
        for i in range(1, deg):
            block = r_tmp[i - 1] @ hat(rot_vel) @ jr_kdelta[i] * coeff[i + 1] + r_tmp[i] * dcoeff[i + 1]
            d_vel_d_delta.append(block @ jr_delta_inv[i])
            rot_vel = exp_k_delta[i] * rot_vel + delta_vec[i] * dcoeff[i + 1]

        blocks = [np.zeros((3, 3)) for _ in range(self.order)]
        for i, d in enumerate(d_vel_d_delta):
            blocks[i] -= d
            blocks[i + 1] += d
        return rot_vel, SplineJacobian(s, blocks)