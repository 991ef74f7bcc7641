"""Calibration parameters: extrinsics, per-segment IMU states and solver options."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import numpy as np
import yaml

from .lie import SO3

logger = logging.getLogger(__name__)

GRAVITY_NORM = 9.8


def _require(node: Mapping[str, Any], key: str):
    if not isinstance(node, Mapping) or key not in node:
        raise KeyError(f"missing configuration key: {key}")
    return node[key]


def _values(node: Mapping[str, Any], key: str, count: int) -> list[float]:
    raw = _require(node, key)
    if isinstance(raw, (str, bytes)) or not hasattr(raw, "__len__"):
        raise ValueError(f"configuration key {key} must be a list of {count} numbers")
    if len(raw) < count:
        raise ValueError(f"configuration key {key} needs {count} values, got {len(raw)}")
    return [float(v) for v in list(raw)[:count]]


def _se3(rotation: SO3, translation: np.ndarray) -> np.ndarray:
    pose = np.eye(4)
    pose[:3, :3] = rotation.matrix()
    pose[:3, 3] = translation
    return pose


def _rpy_matrix(roll: float, pitch: float, yaw: float) -> np.ndarray:
    cr, sr = math.cos(roll), math.sin(roll)
    cp, sp = math.cos(pitch), math.sin(pitch)
    cy, sy = math.cos(yaw), math.sin(yaw)
    rz = np.array([[cy, -sy, 0.0], [sy, cy, 0.0], [0.0, 0.0, 1.0]])
    ry = np.array([[cp, 0.0, sp], [0.0, 1.0, 0.0], [-sp, 0.0, cp]])
    rx = np.array([[1.0, 0.0, 0.0], [0.0, cr, -sr], [0.0, sr, cr]])
    return rz @ ry @ rx


def _euler_angles_xyz(m: np.ndarray) -> np.ndarray:
    """Angles ``(a, b, c)`` with ``m = Rx(a) Ry(b) Rz(c)``, ``a`` in ``[0, pi]``."""
    res0 = math.atan2(m[1, 2], m[2, 2])
    c2 = math.hypot(m[0, 0], m[0, 1])
    if res0 > 0:
        res0 -= math.pi
        res1 = math.atan2(-m[0, 2], -c2)
    else:
        res1 = math.atan2(-m[0, 2], c2)
    s1, c1 = math.sin(res0), math.cos(res0)
    res2 = math.atan2(s1 * m[2, 0] - c1 * m[1, 0], c1 * m[1, 1] - s1 * m[2, 1])
    return -np.array([res0, res1, res2])


def _fmt(value: float) -> str:
    return f"{float(value):g}"


@dataclass
class SegmentCalibParam:
    """IMU states estimated separately for every data segment."""

    g_refine: np.ndarray = field(default_factory=lambda: np.zeros(2))
    gyro_bias: np.ndarray = field(default_factory=lambda: np.zeros(3))
    acce_bias: np.ndarray = field(default_factory=lambda: np.zeros(3))
    gravity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, GRAVITY_NORM]))
    time_offset: float = 0.0


@dataclass
class NDTLocatorParam:
    """Prior map and initial pose for localising a segment against a map."""

    ndt_prior_map_path: str = ""
    locator_init_pose: np.ndarray = field(default_factory=lambda: np.eye(4))


@dataclass
class LiDAROdomParam:
    ndt_resolution: float = 0.5
    ndt_key_frame_downsample: float = 0.1
    map_downsample_size: float = 0.5
    scan4map_time: float = 10.0

    @classmethod
    def from_config(cls, node: Mapping[str, Any]) -> "LiDAROdomParam":
        return cls(
            ndt_resolution=float(_require(node, "ndtResolution")),
            ndt_key_frame_downsample=float(_require(node, "ndt_key_frame_downsample")),
            map_downsample_size=float(_require(node, "map_downsample_size")),
            scan4map_time=float(_require(node, "scan4map")),
        )


@dataclass
class CalibWeights:
    opt_gyro_weight: float = 0.0
    opt_acce_weight: float = 0.0
    opt_lidar_weight: float = 0.0

    @classmethod
    def from_config(cls, node: Mapping[str, Any]) -> "CalibWeights":
        weights = cls(
            opt_gyro_weight=float(_require(node, "gyro_weight")),
            opt_acce_weight=float(_require(node, "accel_weight")),
        )
        if node.get("lidar_weight") is not None:
            weights.opt_lidar_weight = float(node["lidar_weight"])
        return weights


@dataclass
class CalibOptions:
    is_plane_motion: bool = False
    opt_time_offset: bool = False
    time_offset_padding: float = 0.0
    lock_opt_first_accel_bias: bool = False
    opt_lidar_intrinsic: bool = False
    opt_IMU_intrinsic: bool = False
    apply_lidar_intrinstic_to_scan: bool = False

    @classmethod
    def from_config(cls, node: Mapping[str, Any]) -> "CalibOptions":
        options = cls(
            is_plane_motion=bool(_require(node, "plane_motion")),
            opt_time_offset=bool(_require(node, "opt_timeoffset")),
            time_offset_padding=float(_require(node, "timeoffset_padding")),
            lock_opt_first_accel_bias=bool(_require(node, "lock_accel_bias")),
            opt_lidar_intrinsic=bool(_require(node, "opt_lidar_intrinsic")),
            opt_IMU_intrinsic=bool(_require(node, "opt_IMU_intrinsic")),
        )
        logger.info("time_offset_padding set as: %s", options.time_offset_padding)
        return options


def friendly_output(data, description: str, precision: int = 2) -> str:
    """One line: the description right-aligned in 15 columns, then the values."""
    values = np.atleast_1d(np.asarray(data, dtype=float)).reshape(-1)
    return f"{description:>15}" + "".join(f", {v:.{precision}f}" for v in values)


def load_config(path) -> dict:
    """Read a YAML configuration file."""
    with Path(path).open("r", encoding="utf-8") as handle:
        config = yaml.safe_load(handle)
    if not isinstance(config, dict):
        raise ValueError(f"{path} does not hold a configuration mapping")
    return config


class CalibParamManager:
    """All parameters that the calibration estimates, read from a configuration."""

    def __init__(self, config: Mapping[str, Any]):
        self.lo_param = LiDAROdomParam.from_config(config)
        self.calib_weights = CalibWeights.from_config(config)
        self.calib_option = CalibOptions.from_config(config)

        segment_num = int(_require(config, "segment_num"))
        segments = _require(config, "selected_segment")

        self.segment_timestamp: list[tuple[float, float]] = []
        self.locator_segment_param: list[NDTLocatorParam] = []
        for index in range(segment_num):
            segment = segments[index]
            self.segment_timestamp.append(
                (float(_require(segment, "start_time")), float(_require(segment, "end_time")))
            )
            if segment.get("ndt_prior_map") is not None:
                rpyxyz = _values(segment, "locator_init_rpyxyz_pose", 6)
                roll, pitch, yaw = (math.radians(v) for v in rpyxyz[:3])
                pose = np.eye(4)
                pose[:3, :3] = _rpy_matrix(roll, pitch, yaw)
                pose[:3, 3] = rpyxyz[3:]
                self.locator_segment_param.append(
                    NDTLocatorParam(str(segment["ndt_prior_map"]), pose)
                )
        self.segment_param = [SegmentCalibParam() for _ in range(segment_num)]

        extrinsic = _require(config, "extrinsic")
        self.p_LinI = np.array(_values(extrinsic, "Trans", 3))
        rot = np.array(_values(extrinsic, "Rot", 9)).reshape(3, 3)
        if extrinsic.get("Trans_prior") is not None:
            self.p_LinI_prior = np.array(_values(extrinsic, "Trans_prior", 3))
        else:
            self.p_LinI_prior = self.p_LinI.copy()

        self.q_LtoI = SO3.from_matrix(rot)
        self.so3_LtoI = self.q_LtoI
        self.se3_LtoI = _se3(self.so3_LtoI, self.p_LinI)

        ring_case = config.get("vlp16_ring_case")
        self.vlp16_ring_case: Optional[int] = None if ring_case is None else int(ring_case)

    def reset_time_offset(self) -> None:
        for param in self.segment_param:
            param.time_offset = 0.0

    def update_extrinsic(self) -> None:
        """Refresh derived extrinsic forms after ``so3_LtoI`` or ``p_LinI`` changed."""
        self.q_LtoI = SO3(self.so3_LtoI.quaternion())
        self.se3_LtoI = _se3(self.so3_LtoI, self.p_LinI)

    def update_gravity(self, gravity, segment_id: int = 0) -> None:
        """Set a segment's gravity and the two angles that parametrise it."""
        if not 0 <= segment_id < len(self.segment_param):
            raise IndexError(f"segment_id {segment_id} out of range")
        gravity = np.asarray(gravity, dtype=float).reshape(3)
        param = self.segment_param[segment_id]
        param.gravity = gravity.copy()

        g = gravity / GRAVITY_NORM
        cr = math.sqrt(g[0] * g[0] + g[2] * g[2])
        param.g_refine = np.array(
            [
                math.acos(min(1.0, max(-1.0, cr))),
                math.acos(min(1.0, max(-1.0, -g[2] / cr))),
            ]
        )

    def show_states(self) -> str:
        """Print and return a readable summary of the current estimates."""
        euler_LtoI = np.degrees(_euler_angles_xyz(self.q_LtoI.matrix()))
        q_ItoL = self.q_LtoI.inverse()
        p_IinL = q_ItoL * (-self.p_LinI)
        euler_ItoL = np.degrees(_euler_angles_xyz(q_ItoL.matrix()))

        lines = [
            friendly_output(self.p_LinI, "P_LinI", 3),
            friendly_output(euler_LtoI, "euler_LtoI", 2),
            friendly_output(p_IinL, "p_IinL", 3),
            friendly_output(euler_ItoL, "euler_ItoL", 2),
        ]
        for index, param in enumerate(self.segment_param):
            lines += [
                "=========================",
                f"segment id  : {index}",
                friendly_output(param.time_offset, "time offset", 4),
                friendly_output(np.degrees(param.g_refine), "g_refine", 2),
                friendly_output(param.gravity, "gravity", 3),
                friendly_output(param.acce_bias, "accel bias", 4),
                friendly_output(param.gyro_bias, "gyro bias", 4),
            ]
        text = "\n".join(lines)
        print(text)
        return text

    def param_string(self) -> str:
        """Comma-separated result row for the first segment."""
        param = self.segment_param[0]
        start, end = self.segment_timestamp[0]
        q_ItoL = self.q_LtoI.inverse()
        p_IinL = q_ItoL * (-self.p_LinI)
        values = [
            start,
            end,
            *p_IinL,
            *q_ItoL.quaternion(),
            param.time_offset,
            *param.g_refine,
            *param.gravity,
            *param.gyro_bias,
            *param.acce_bias,
        ]
        return ",".join(_fmt(v) for v in values)