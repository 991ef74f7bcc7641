"""Device calibration of RoboSense LiDARs: temperature, intensity and angle tables."""

from __future__ import annotations

import logging
import math
from enum import Enum

import numpy as np

from .robosense_packet import ROTATION_MAX_UNITS

logger = logging.getLogger(__name__)

TEMPERATURE_MIN = 31
TEMPERATURE_RANGE = 40

DISTANCE_MAX = 200.0
DISTANCE_MIN = 0.2
DISTANCE_RESOLUTION = 0.01
DISTANCE_RESOLUTION_NEW = 0.005
DISTANCE_MAX_UNITS = DISTANCE_MAX / DISTANCE_RESOLUTION + 1.0

MAX_LASERS = 32
CHANNEL_TEMPERATURES = 51

DIFOP_HEADER = b"\xa5\xff\x00\x5a"
_CURVE_OFFSET = 50
_CURVE_STRIDE = 15
_ANGLE_OFFSET = 1165
_CURVE_SCALES = (0.001, 0.001, 0.001, 0.001, 0.00001, -0.0001, 0.001)


class ModelType(Enum):
    RS_16 = "RS_16"
    RS_32 = "RS_32"


_MODEL_GEOMETRY = {
    ModelType.RS_16: (16, 0.03825, -0.01088, 0.0),
    ModelType.RS_32: (32, 0.03997, -0.01087, 0.0),
}


def _blank(byte: int) -> bool:
    return byte in (0x00, 0xFF)


class RobosenseCalibration:
    """Calibration tables of one device, filled in from its DIFOP packets."""

    def __init__(self, model_type: ModelType = ModelType.RS_16):
        self.model_type = ModelType(model_type)
        self.num_lasers, self.rx, self.ry, self.rz = _MODEL_GEOMETRY[self.model_type]

        self.temper = 31.0
        self.dis_resolution_mode = 0
        self.return_mode = 1
        self.intensity_mode = 1
        self.intensity_factor = 51

        self.is_init_curve = False
        self.is_init_angle = False
        self.is_init_top_fw = False
        self.curves_is_new = True

        self.vert_angle = np.zeros(MAX_LASERS, dtype=int)
        self.hori_angle = np.zeros(MAX_LASERS)
        self.intensity_cal = np.zeros((7, MAX_LASERS), dtype=np.float32)
        self.channel_num = np.zeros((MAX_LASERS, CHANNEL_TEMPERATURES), dtype=int)
        self.curves_rate = np.ones(MAX_LASERS)

    @property
    def distance_resolution(self) -> float:
        """Metres per distance unit for the detected firmware."""
        return DISTANCE_RESOLUTION_NEW if self.dis_resolution_mode == 0 else DISTANCE_RESOLUTION

    def ready(self) -> bool:
        """True once angles and firmware resolution are known."""
        return self.is_init_angle and self.is_init_top_fw

    @staticmethod
    def estimate_temperature(temper: float) -> int:
        """Temperature rounded to a whole degree and clamped to the table range."""
        temp = int(math.floor(temper + 0.5))
        return min(max(temp, TEMPERATURE_MIN), TEMPERATURE_MIN + TEMPERATURE_RANGE)

    def _channel_offset(self, passageway: int) -> int:
        index = self.estimate_temperature(self.temper) - TEMPERATURE_MIN
        return int(self.channel_num[passageway][index])

    def pixel_to_distance(self, pixel_value: int, passageway: int) -> float:
        """Raw distance minus the channel's static offset, never negative."""
        offset = self._channel_offset(passageway)
        if pixel_value <= offset:
            return 0.0
        return float(pixel_value - offset)

    def _reference_poly(self, cal: np.ndarray, distance: float) -> float:
        return sum(cal[i + 4] * (distance / 100.0) ** (2 - i) for i in range(3))

    def calibrate_intensity(self, intensity: float, cal_idx: int, distance: int) -> float:
        """Intensity corrected for temperature and range, capped at 255."""
        temp = self.estimate_temperature(self.temper)
        real_pwr = max(intensity / (1 + (temp - TEMPERATURE_MIN) / 24.0), 1.0)

        if self.intensity_mode == 1:
            if int(real_pwr) < 126:
                real_pwr *= 4.0
            elif int(real_pwr) < 226:
                real_pwr = (real_pwr - 125.0) * 16.0 + 500.0
            else:
                real_pwr = (real_pwr - 225.0) * 256.0 + 2100.0
        elif self.intensity_mode == 2:
            if int(real_pwr) < 64:
                pass
            elif int(real_pwr) < 176:
                real_pwr = (real_pwr - 64.0) * 4.0 + 64.0
            else:
                real_pwr = (real_pwr - 176.0) * 16.0 + 512.0

        offset = self._channel_offset(cal_idx)
        s_dist = distance if distance > offset else offset
        s_dist = min(s_dist, offset + 20000)
        dist_f = float(s_dist - offset)

        cal = self.intensity_cal[:, cal_idx].astype(float)
        ref_pwr = 0.0
        if self.intensity_mode in (1, 2) and dist_f <= 500.0:
            ref_pwr = cal[0] * math.exp(cal[1] - cal[2] * dist_f / 100.0) + cal[3]
        elif self.intensity_mode == 1:
            ref_pwr = self._reference_poly(cal, dist_f)
        elif self.intensity_mode == 2 and dist_f <= 4000.0:
            ref_pwr = self._reference_poly(cal, dist_f)
        elif self.intensity_mode == 2:
            ref0 = self._reference_poly(cal, 4000.0)
            ref1 = self._reference_poly(cal, 3900.0)
            ref_pwr = 0.3 * (ref0 - ref1) * dist_f / 100.0 + ref0

        ref_pwr = max(min(ref_pwr, 500.0), 4.0)
        inten = self.intensity_factor * ref_pwr / real_pwr
        if self.model_type is ModelType.RS_32:
            inten *= self.curves_rate[cal_idx]
        if int(inten) > 255:
            inten = 255.0
        return inten

    def process_difop(self, data) -> None:
        """Update firmware mode, intensity curves and vertical angles from a DIFOP packet.

        Packets without the DIFOP header are ignored; a curve checksum mismatch
        stops processing of the packet.
        """
        data = bytes(data)
        if data[:4] != DIFOP_HEADER:
            return
        needed = max(301, _ANGLE_OFFSET + 3 * self.num_lasers)
        if len(data) < needed:
            raise ValueError(f"DIFOP packet has {len(data)} bytes, {needed} needed")

        v0, v1, v2 = data[45], data[46], data[47]
        if (v0 == 0x08 and v1 == 0x02 and v2 >= 0x09) or v0 > 0x08 or (v0 == 0x08 and v1 > 0x02):
            self.return_mode = data[300] if data[300] in (0x01, 0x02) else 0
        else:
            self.return_mode = 1

        if not self.is_init_top_fw:
            fw = tuple(data[41:44])
            if fw in ((0x00, 0x00, 0x00), (0xFF, 0xFF, 0xFF), (0x55, 0xAA, 0x5A), (0xE9, 0x01, 0x00)):
                self.dis_resolution_mode = 1
                logger.info("The distance resolution is 1cm")
            else:
                self.dis_resolution_mode = 0
                logger.info("The distance resolution is 0.5cm")
            self.is_init_top_fw = True

        if not self.is_init_curve:
            if not all(_blank(b) for b in data[50:54]):
                blocks = [
                    data[_CURVE_OFFSET + laser * _CURVE_STRIDE:_CURVE_OFFSET + (laser + 1) * _CURVE_STRIDE]
                    for laser in range(self.num_lasers)
                ]
                for block in blocks:
                    check = 0
                    for byte in block[:14]:
                        check ^= byte
                    if check != block[14]:
                        return
                for laser, block in enumerate(blocks):
                    for k, scale in enumerate(_CURVE_SCALES):
                        self.intensity_cal[k][laser] = (block[2 * k] * 256 + block[2 * k + 1]) * scale
                self.is_init_curve = True
                self.curves_is_new = True
                logger.info("intensity curves initialised")

            if not _blank(data[290]):
                self.intensity_factor = data[290]
            mode_byte = data[291]
            if mode_byte in (0x00, 0xFF, 0xA1):
                self.intensity_mode = 1
            elif mode_byte == 0xB1:
                self.intensity_mode = 2
            elif mode_byte == 0xC1:
                self.intensity_mode = 3

        if not self.is_init_angle:
            if not all(_blank(b) for b in data[_ANGLE_OFFSET:_ANGLE_OFFSET + 4]):
                scale = np.float32(0.01)
                for laser in range(self.num_lasers):
                    sign = -1 if laser < 8 and self.num_lasers == 16 else 1
                    base = _ANGLE_OFFSET + 3 * laser
                    raw = int.from_bytes(data[base:base + 3], "big")
                    self.vert_angle[laser] = int(np.float32(raw * sign) * scale)
                    self.hori_angle[laser] = 0.0
                self.is_init_angle = True
                logger.info("vertical angles initialised")

    def correct_azimuth(self, azimuth: float, passageway: int) -> int:
        """Azimuth in hundredths of a degree with the laser's horizontal offset applied."""
        azimuth = float(azimuth)
        if 0.0 < azimuth < 3000.0:
            shifted = azimuth + self.hori_angle[passageway] + 36000.0
        else:
            shifted = azimuth + self.hori_angle[passageway]
        return int(math.fmod(int(shifted), ROTATION_MAX_UNITS))