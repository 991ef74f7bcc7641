# licalib

Building blocks for LiDAR-IMU calibration in Python, built on numpy.

## Modules

- `licalib.lie` — the `SO3` rotation group, stored as a unit quaternion in
  `(x, y, z, w)` order: `SO3.exp`, `SO3.from_matrix`, `log`, `inverse`,
  `matrix`, `quaternion`, `adjoint`, and `*` for composing rotations or rotating
  3-vectors. Also `hat`, `lie_bracket`, `left_jacobian`, `left_jacobian_inv`,
  `right_jacobian`, `right_jacobian_inv`, and the manifold update pair
  `local_plus` (``rotation * exp(delta)``) and `plus_jacobian` (its 4x3
  quaternion Jacobian at zero).
- `licalib.spline_basis` — `base_coefficients`, `blending_matrix` (plain or
  cumulative) and `base_coeffs_with_time` for uniform B-splines of any order;
  `evaluate_lie` evaluates a cumulative SO(3) spline over a window of knots with
  up to three body-frame derivatives (returned as a `LieEvaluation`), and
  `evaluate_euclidean` evaluates a vector spline or one of its derivatives.
- `licalib.so3_spline` — `So3Spline`, a uniform cumulative B-spline of order 4
  on SO(3). Knots are managed with `push_back`, `pop_back`, `front`,
  `pop_front` (which also advances the start time), `resize`, indexing and
  `len`; `gen_random_trajectory` appends random knots. `evaluate` gives the
  rotation and `velocity_body` the body-frame angular velocity, each optionally
  with a `SplineJacobian` with respect to the knots.
- `licalib.so3_kinematics` — `acceleration_body` (a `BodyAcceleration`, with
  optional Jacobians of acceleration and velocity) and `jerk_body` (a
  `BodyJerk`) for an `So3Spline`.
- `licalib.inertial_initializer` — `InertialInitializer` estimates the
  IMU-to-sensor rotation from an orientation trajectory (any object with
  `max_time()` and `orientation(time)` returning an `SO3`) and a sequence of
  `OdomData` poses. `build_problem` raises `InsufficientMotionError` when fewer
  than 15 relative-rotation constraints are available; `estimate_rotation`
  and `estimate_rotation_ryx` (zero-yaw solution) return `True` on success.
  Helpers: `left_quat_matrix`, `right_quat_matrix`, `rotation_to_ypr`.
- `licalib.robosense_packet` — layout of RoboSense RS-16 data packets:
  `RawPacket.from_bytes` parses a packet (including its 42-byte header) into
  twelve `RawBlock`s, each giving its `azimuth` and per-laser
  `channel(firing, dsr)` raw distance and intensity; `compute_temperature`
  decodes the status temperature, and `exact_time` returns the timing-table
  offset of a return.
- `licalib.robosense_calib` — `RobosenseCalibration` holds one device's
  calibration, filled in by `process_difop` from DIFOP packets (firmware
  distance resolution, return mode, intensity curves and mode, vertical
  angles). It provides `ready`, `estimate_temperature`, `pixel_to_distance`,
  `calibrate_intensity`, `correct_azimuth` and `distance_resolution`.
  `ModelType` selects `RS_16` or `RS_32`.
- `licalib.calibration` — `CalibParamManager` and its records
  (`SegmentCalibParam`, `NDTLocatorParam`, `LiDAROdomParam`, `CalibWeights`,
  `CalibOptions`), read from a configuration mapping; `load_config` reads it
  from a YAML file, and `friendly_output` formats a labelled line of values.

## Installation

    pip install .

For running the tests:

    pip install .[test]
    pytest

## Example

    import numpy as np
    from licalib.lie import SO3
    from licalib.so3_spline import So3Spline
    from licalib.so3_kinematics import acceleration_body

    spline = So3Spline(0.1, 0.0)
    for angle in np.linspace(0.0, 1.0, 8):
        spline.push_back(SO3.exp(np.array([0.0, 0.0, angle])))

    rotation = spline.evaluate(0.25)              # SO3
    omega = spline.velocity_body(0.25)            # body angular velocity
    rotation, jac = spline.evaluate(0.25, with_jacobian=True)
    accel = acceleration_body(spline, 0.25).acceleration

## Configuration

`CalibParamManager(config)` expects these keys (missing ones raise `KeyError`):

- `ndtResolution`, `ndt_key_frame_downsample`, `map_downsample_size`, `scan4map`
- `gyro_weight`, `accel_weight`, and optionally `lidar_weight`
- `plane_motion`, `opt_timeoffset`, `timeoffset_padding`, `lock_accel_bias`,
  `opt_lidar_intrinsic`, `opt_IMU_intrinsic`
- `segment_num` and `selected_segment`, a list whose entries hold `start_time`,
  `end_time` and, optionally, `ndt_prior_map` with
  `locator_init_rpyxyz_pose` (roll, pitch, yaw in degrees, then x, y, z)
- `extrinsic` with `Trans` (3 values), `Rot` (9 values, row-major) and
  optionally `Trans_prior`
- optionally `vlp16_ring_case`

The manager offers `reset_time_offset`, `update_extrinsic`, `update_gravity`,
`show_states` (prints and returns a summary) and `param_string` (a
comma-separated result row for the first segment).

## What this package does not do

- It has no command-line program and runs no calibration end to end: there is
  no optimiser, no data association and no map building.
- It does not read recorded sensor logs or hold per-segment datasets of IMU and
  scan data.
- RoboSense packets can be parsed and the device calibration tables applied,
  but packets are not turned into point clouds, and Hesai or other LiDAR
  formats are not decoded.