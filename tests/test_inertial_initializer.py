import math

import numpy as np
import pytest

from licalib.inertial_initializer import (
    InertialInitializer,
    InsufficientMotionError,
    OdomData,
    left_quat_matrix,
    right_quat_matrix,
    rotation_to_ypr,
)
from licalib.lie import SO3


class _FunctionTrajectory:
    def __init__(self, rotation_fn, end):
        self._fn = rotation_fn
        self._end = end

    def max_time(self):
        return self._end

    def orientation(self, time):
        return self._fn(time)


def _general_motion(t):
    return SO3.exp([0.8 * math.sin(1.1 * t), 0.8 * math.cos(0.9 * t), 0.6 * math.sin(1.7 * t)])


def _planar_motion(t):
    return SO3.exp([0.0, 0.0, 0.9 * math.sin(0.8 * t) + 0.5 * t])


def _odometry(motion, extrinsic, times):
    r_x = extrinsic.matrix()
    data = []
    for t in times:
        pose = np.eye(4)
        pose[:3, :3] = r_x @ motion(t).matrix() @ r_x.T
        data.append(OdomData(timestamp=t, pose=pose))
    return data


TIMES = [0.25 * k for k in range(41)]
EXTRINSIC = SO3.exp([0.3, -0.5, 0.2])


def test_quat_matrices_give_products():
    p, q = SO3.exp([0.1, 0.4, -0.2]), SO3.exp([-0.3, 0.2, 0.6])
    product = (p * q).quaternion()
    assert np.allclose(left_quat_matrix(p) @ q.quaternion(), product)
    assert np.allclose(right_quat_matrix(q) @ p.quaternion(), product)


def test_rotation_to_ypr_round_trip():
    yaw, pitch, roll = 0.5, 0.3, -0.2
    mat = (SO3.exp([0, 0, yaw]) * SO3.exp([0, pitch, 0]) * SO3.exp([roll, 0, 0])).matrix()
    assert np.allclose(rotation_to_ypr(mat), np.degrees([yaw, pitch, roll]))


def test_defaults():
    init = InertialInitializer()
    assert init.is_initialized() is False
    assert np.allclose(init.q_ItoS().matrix(), np.eye(3))


def test_build_problem_has_true_rotation_in_null_space():
    init = InertialInitializer()
    traj = _FunctionTrajectory(_general_motion, TIMES[-1])
    a = init.build_problem(traj, _odometry(_general_motion, EXTRINSIC, TIMES))
    assert a.shape == (4 * (len(TIMES) - 1), 4)
    assert np.allclose(a @ EXTRINSIC.quaternion(), 0.0, atol=1e-9)


def test_build_problem_stops_at_trajectory_end():
    init = InertialInitializer()
    traj = _FunctionTrajectory(_general_motion, TIMES[10])
    with pytest.raises(InsufficientMotionError):
        init.build_problem(traj, _odometry(_general_motion, EXTRINSIC, TIMES))


def test_estimate_rotation_recovers_extrinsic():
    init = InertialInitializer()
    traj = _FunctionTrajectory(_general_motion, TIMES[-1])
    assert init.estimate_rotation(traj, _odometry(_general_motion, EXTRINSIC, TIMES)) is True
    assert init.is_initialized() is True
    assert np.allclose(init.q_ItoS().matrix(), EXTRINSIC.matrix(), atol=1e-8)


def test_estimate_rotation_fails_with_few_poses():
    init = InertialInitializer()
    traj = _FunctionTrajectory(_general_motion, TIMES[-1])
    assert init.estimate_rotation(traj, _odometry(_general_motion, EXTRINSIC, TIMES[:10])) is False
    assert init.is_initialized() is False


def test_estimate_rotation_rejects_planar_motion():
    init = InertialInitializer()
    traj = _FunctionTrajectory(_planar_motion, TIMES[-1])
    assert init.estimate_rotation(traj, _odometry(_planar_motion, EXTRINSIC, TIMES)) is False


def test_estimate_rotation_ryx_recovers_zero_yaw_extrinsic():
    extrinsic = SO3.exp([0, 0.3, 0]) * SO3.exp([-0.2, 0, 0])
    init = InertialInitializer()
    traj = _FunctionTrajectory(_planar_motion, TIMES[-1])
    assert init.estimate_rotation_ryx(traj, _odometry(_planar_motion, extrinsic, TIMES)) is True
    assert np.allclose(init.q_ItoS().matrix(), extrinsic.matrix(), atol=1e-6)
    assert abs(rotation_to_ypr(init.q_ItoS().matrix())[0]) < 1e-4


def test_solve_constraint_roots_satisfy_constraint():
    t1 = np.array([0.3, 0.5, -0.2, 0.1])
    t2 = np.array([-0.4, 0.2, 0.6, 0.3])
    for x in InertialInitializer.solve_constraint_qyx(t1, t2):
        q = x * t1 + t2
        assert q[0] * q[1] + q[2] * q[3] == pytest.approx(0.0, abs=1e-12)


def test_solve_constraint_linear_case():
    t1 = np.array([1.0, 0.0, 0.0, 0.0])
    t2 = np.array([1.0, 1.0, 0.0, 0.0])
    x1, x2 = InertialInitializer.solve_constraint_qyx(t1, t2)
    assert x1 == x2
    q = x1 * t1 + t2
    assert q[0] * q[1] + q[2] * q[3] == pytest.approx(0.0)


def test_solve_constraint_negative_discriminant():
    with pytest.raises(ValueError):
        InertialInitializer.solve_constraint_qyx([1.0, 1.0, 0.0, 0.0], [0.0, 0.0, 1.0, 1.0])