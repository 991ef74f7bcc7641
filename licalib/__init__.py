"""LiDAR-IMU calibration: SO(3) splines, rotation initialisation, RoboSense packet decoding and parameters."""

__version__ = "0.1.0"