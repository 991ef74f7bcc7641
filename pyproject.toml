[build-system]
requires = ["setuptools>=64"]
build-backend = "setuptools.build_meta"

[project]
name = "licalib"
version = "0.1.0"
description = "LiDAR-IMU calibration building blocks: SO(3) B-splines, rotation initialisation, RoboSense packet decoding and calibration parameters"
requires-python = ">=3.10"
keywords = ["lidar", "imu", "calibration", "b-spline", "so3", "robosense", "robotics"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]
dependencies = [
    "numpy",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.setuptools.packages.find]
include = ["licalib*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
