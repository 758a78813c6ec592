"""Simulation of sensors.

The main functionality is synthesis of IMU and GNSS readings from the given
trajectory. Error-free kinematics are computed by `generate_imu` and then sensor
errors defined by `inertial_sensor.ImuErrorModel` and `gnss.GnssErrorModel` are
applied.

Functions
---------
.. autosummary::
    :toctree: generated/

    generate_imu
    generate_sine_velocity_motion
    resample_to_frequency
    generate_gyro
    generate_accel
    generate_imu_data
    generate_gnss
    generate_pva_error
    perturb_pva
"""
import logging
import numpy as np
import pandas as pd
from scipy.interpolate import CubicSpline, CubicHermiteSpline
from scipy.spatial.transform import Rotation, RotationSpline
from scipy._lib._util import check_random_state
from . import earth, transform, util
from .errors import ValidationError
from .inertial_sensor import generate_random_walk
from .util import (LLA_COLS, VEL_COLS, RPH_COLS, NED_COLS, GYRO_COLS, ACCEL_COLS,
                   RATE_COLS, TRAJECTORY_COLS, TRAJECTORY_ERROR_COLS, GNSS_COLS)


logger = logging.getLogger(__name__)


def generate_imu(time, lla, rph, velocity_n=None):
    """Generate error-free IMU readings from the trajectory.

    Attitude angles (`rph`) must be always given and there are 3 options for
    position and velocity:

        - Both position and velocity are given
        - Only position is given
        - Initial position and velocity are given

    The readings are instantaneous angular rates (rad/s) and specific forces
    (m/s^2).

    Parameters
    ----------
    time : array_like, shape (n,)
        Time points for which the trajectory is provided.
    lla : array_like, shape (n, 3) or (3,)
        Either time series of latitude, longitude and altitude or initial
        values of those.
    rph : array_like, shape (n, 3)
        Time series of roll, pitch and heading angles.
    velocity_n : array_like with shape (n, 3) or None
        Time series of velocity expressed in NED frame.

    Returns
    -------
    trajectory : Trajectory
        Trajectory dataframe with n rows.
    imu : Imu
        IMU dataframe with n rows.
    """
    MAX_ITER = 3
    ACCURACY = 0.01

    time = np.asarray(time, dtype=float)
    lla = np.asarray(lla, dtype=float)
    rph = np.asarray(rph, dtype=float)
    if lla.ndim == 1 and velocity_n is None:
        raise ValueError("`velocity_n` must be provided when `lla` contains only "
                         "initial values")

    n_points = len(time)
    if lla.ndim == 1:
        lat0, lon0, alt0 = lla
        velocity_n = np.asarray(velocity_n, dtype=float)
        VU_spline = CubicSpline(time, -velocity_n[:, 2])
        alt_spline = VU_spline.antiderivative()
        alt = alt0 + alt_spline(time)

        lat = lat0 = np.deg2rad(lat0)
        for iteration in range(MAX_ITER):
            rn, _, _ = earth.principal_radii(np.rad2deg(lat), alt)
            dlat_spline = CubicSpline(time, velocity_n[:, 0] / rn)
            lat_spline = dlat_spline.antiderivative()
            lat_new = lat0 + lat_spline(time)
            delta = (lat - lat_new) * rn
            lat = lat_new
            if np.all(np.abs(delta) < ACCURACY):
                break

        lat = np.rad2deg(lat)
        _, _, rp = earth.principal_radii(lat, alt)
        dlon_spline = CubicSpline(time, velocity_n[:, 1] / rp)
        lon_spline = dlon_spline.antiderivative()

        lla = np.empty((n_points, 3))
        lla[:, 0] = lat
        lla[:, 1] = lon0 + np.rad2deg(lon_spline(time))
        lla[:, 2] = alt

    lla_inertial = lla.copy()
    lla_inertial[:, 1] += np.rad2deg(earth.RATE) * time
    mat_in = transform.mat_en_from_ll(lla_inertial[:, 0], lla_inertial[:, 1])

    r_i = transform.lla_to_ecef(lla_inertial)
    earth_rate_i = [0, 0, earth.RATE]
    if velocity_n is None:
        v_i_spline = CubicSpline(time, r_i).derivative()
        velocity_n = util.mv_prod(
            mat_in, v_i_spline(time) - np.cross(earth_rate_i, r_i), True)
    else:
        velocity_n = np.asarray(velocity_n, dtype=float)
        v_i = util.mv_prod(mat_in, velocity_n) + np.cross(earth_rate_i, r_i)
        v_i_spline = CubicHermiteSpline(time, r_i, v_i).derivative()

    mat_ib = util.mm_prod(mat_in, transform.mat_from_rph(rph))
    rot_ib_spline = RotationSpline(time, Rotation.from_matrix(mat_ib))
    g_i = earth.gravitation_ecef(lla_inertial)

    gyro = rot_ib_spline(time, 1)
    accel = util.mv_prod(mat_ib, v_i_spline(time, 1) - g_i, at=True)

    index = pd.Index(time, name='time')
    return (pd.DataFrame(np.hstack([lla, velocity_n, rph]),
                         index=index, columns=TRAJECTORY_COLS),
            pd.DataFrame(data=np.hstack((gyro, accel)), index=index,
                         columns=GYRO_COLS + ACCEL_COLS))


def _hold_where_stationary(values, moving):
    if not np.any(moving):
        return np.zeros_like(values)
    index = np.where(moving, np.arange(len(values)), 0)
    index = np.maximum.accumulate(index)
    first_moving = np.argmax(moving)
    index[:first_moving] = first_moving
    return values[index]


def generate_sine_velocity_motion(dt, total_time, lla0, velocity_mean,
                                  velocity_change_amplitude=0,
                                  velocity_change_period=60,
                                  velocity_change_phase_offset=[0, 90, 0],
                                  stationary_time=0, ramp_time=10,
                                  rph_offset=[0, 0, 0]):
    """Generate trajectory with NED velocity changing as sine.

    The NED velocity changes as::

        V = ramp(t) * (V_mean + V_ampl * sin(2 * pi * (t - t0) / period +
                       phase_offset))

    Where ``t0`` is `stationary_time` and ``ramp`` is zero before ``t0`` and
    smoothly grows to 1 during `ramp_time` after it.

    Roll is set to zero, pitch and heading angles are computed with zero
    lateral and vertical velocity assumptions. During the stationary interval
    the angles are kept equal to their values at the motion start. Then
    `rph_offset` is added to all angles.

    Parameters
    ----------
    dt : float
        Time step.
    total_time : float
        Total motion time.
    lla0 : array_like, shape (3,)
        Initial latitude, longitude and altitude.
    velocity_mean : array_like, shape (3,)
        Mean velocity resolved in NED.
    velocity_change_amplitude : array_like, optional
        Velocity change amplitude. Default is 0.
    velocity_change_period : float, optional
        Period of sinusoidal velocity change in seconds. Default is 60.
    velocity_change_phase_offset : array_like, shape (3,), optional
        Phase offset for sinusoid part in degrees. Default is [0, 90, 0]
        which will create an ellipse for latitude-longitude trajectory when
        the mean velocity is zero.
    stationary_time : float, optional
        Duration of the initial stationary interval. Default is 0.
    ramp_time : float, optional
        Duration of the velocity ramp after the stationary interval. Only used
        when `stationary_time` is positive. Default is 10.
    rph_offset : array_like, shape (3,), optional
        Constant offset of roll, pitch and heading in degrees. Default is zeros.

    Returns
    -------
    trajectory : Trajectory
        Trajectory dataframe with n rows.
    imu : Imu
        IMU dataframe with n rows.
    """
    time = np.arange(0, total_time, dt)
    motion_time = time - stationary_time
    phase = (2 * np.pi * motion_time[:, None] / velocity_change_period +
             np.deg2rad(velocity_change_phase_offset))
    velocity_n = (np.atleast_2d(velocity_mean) +
                  np.atleast_2d(velocity_change_amplitude) * np.sin(phase))
    if stationary_time > 0:
        ramp = 0.5 * (1 - np.cos(np.pi * np.clip(motion_time / ramp_time, 0, 1)))
        velocity_n *= ramp[:, None]

    rph = np.zeros_like(velocity_n)
    rph[:, 1] = np.rad2deg(np.arctan2(
        velocity_n[:, 2], np.hypot(velocity_n[:, 0], velocity_n[:, 1])))
    rph[:, 2] = np.rad2deg(np.arctan2(velocity_n[:, 1], velocity_n[:, 0]))
    moving = np.any(velocity_n != 0, axis=1)
    rph = _hold_where_stationary(rph, moving) + np.asarray(rph_offset)
    return generate_imu(time, lla0, rph, velocity_n)


def resample_to_frequency(times, frequency):
    """Compute the time grid with the given sampling frequency.

    The grid starts at the first element of `times` and does not go past the last
    one. Its elements are computed as ``t0 + k / frequency``, so there is no
    accumulation of rounding errors.

    Parameters
    ----------
    times : array_like
        Time points, only the first and the last ones are used.
    frequency : float
        Sampling frequency in Hz.

    Returns
    -------
    ndarray
        Time grid.
    """
    if not frequency > 0:
        raise ValidationError("`frequency` must be positive")
    times = np.asarray(times, dtype=float)
    n_samples = int(np.floor((times[-1] - times[0]) * frequency + 1e-9)) + 1
    return times[0] + np.arange(n_samples) / frequency


def _check_trajectory(trajectory):
    util.check_time_index(trajectory, 'trajectory')
    missing = set(TRAJECTORY_COLS) - set(trajectory.columns)
    if missing:
        raise ValidationError(
            f"`trajectory` misses columns {sorted(missing)}")


def _compute_kinematics(trajectory, frequency):
    _check_trajectory(trajectory)
    times = resample_to_frequency(trajectory.index, frequency)
    trajectory = transform.resample_state(trajectory[TRAJECTORY_COLS], times)
    _, imu = generate_imu(trajectory.index, trajectory[LLA_COLS].values,
                          trajectory[RPH_COLS].values, trajectory[VEL_COLS].values)
    return imu


def _apply_errors(readings, white_sd, fix, drift, walk, dt, rng):
    n_samples = len(readings)
    errors = (fix + drift.generate(n_samples, dt, rng) +
              generate_random_walk(n_samples, dt, walk, rng) +
              white_sd * rng.standard_normal((n_samples, 3)))
    return readings + errors


def _generate_gyro(kinematics, imu_error_model, rng):
    return pd.DataFrame(
        _apply_errors(kinematics[GYRO_COLS].values, imu_error_model.g_std,
                      imu_error_model.gb_fix, imu_error_model.gyro_drift,
                      imu_error_model.arrw, imu_error_model.dt, rng),
        index=kinematics.index, columns=GYRO_COLS)


def _generate_accel(kinematics, imu_error_model, rng):
    return pd.DataFrame(
        _apply_errors(kinematics[ACCEL_COLS].values, imu_error_model.a_std,
                      imu_error_model.ab_fix, imu_error_model.accel_drift,
                      imu_error_model.vrrw, imu_error_model.dt, rng),
        index=kinematics.index, columns=ACCEL_COLS)


def generate_gyro(trajectory, imu_error_model, rng=None):
    """Generate gyro readings with errors.

    The readings are computed from the trajectory resampled to the IMU frequency
    with added white noise, the turn-on bias, the bias drift and the rate random
    walk.

    Parameters
    ----------
    trajectory : Trajectory
        Reference trajectory.
    imu_error_model : `inertial_sensor.ImuErrorModel`
        IMU error model.
    rng : None, int, `numpy.random.RandomState` or `numpy.random.Generator`
        Seed to create or already created random generator. None (default)
        corresponds to nondeterministic seeding.

    Returns
    -------
    DataFrame
        Gyro readings in rad/s with columns 'gyro_x', 'gyro_y', 'gyro_z'.
    """
    rng = check_random_state(rng)
    kinematics = _compute_kinematics(trajectory, imu_error_model.freq)
    return _generate_gyro(kinematics, imu_error_model, rng)


def generate_accel(trajectory, imu_error_model, rng=None):
    """Generate accelerometer readings with errors.

    The readings are computed from the trajectory resampled to the IMU frequency
    with added white noise, the turn-on bias, the bias drift and the rate random
    walk.

    Parameters
    ----------
    trajectory : Trajectory
        Reference trajectory.
    imu_error_model : `inertial_sensor.ImuErrorModel`
        IMU error model.
    rng : None, int, `numpy.random.RandomState` or `numpy.random.Generator`
        Seed to create or already created random generator. None (default)
        corresponds to nondeterministic seeding.

    Returns
    -------
    DataFrame
        Accelerometer readings in m/s^2 with columns 'accel_x', 'accel_y',
        'accel_z'.
    """
    rng = check_random_state(rng)
    kinematics = _compute_kinematics(trajectory, imu_error_model.freq)
    return _generate_accel(kinematics, imu_error_model, rng)


def generate_imu_data(trajectory, imu_error_model, rng=None):
    """Generate gyro and accelerometer readings with errors.

    Parameters
    ----------
    trajectory : Trajectory
        Reference trajectory.
    imu_error_model : `inertial_sensor.ImuErrorModel`
        IMU error model.
    rng : None, int, `numpy.random.RandomState` or `numpy.random.Generator`
        Seed to create or already created random generator. None (default)
        corresponds to nondeterministic seeding.

    Returns
    -------
    Imu
        IMU readings sampled with the frequency of `imu_error_model`.
    """
    rng = check_random_state(rng)
    kinematics = _compute_kinematics(trajectory, imu_error_model.freq)
    imu = pd.concat([_generate_gyro(kinematics, imu_error_model, rng),
                     _generate_accel(kinematics, imu_error_model, rng)],
                    axis='columns')
    logger.info("Generated %d IMU samples at %s Hz", len(imu), imu_error_model.freq)
    return imu


def generate_gnss(trajectory, gnss_error_model, rng=None):
    """Generate GNSS position and velocity readings.

    The trajectory is resampled to the GNSS frequency, translated to the antenna
    by the lever arm and perturbed by normal random errors.

    Parameters
    ----------
    trajectory : Trajectory
        Reference trajectory.
    gnss_error_model : `gnss.GnssErrorModel`
        GNSS error model.
    rng : None, int, `numpy.random.RandomState` or `numpy.random.Generator`
        Seed to create or already created random generator. None (default)
        corresponds to nondeterministic seeding.

    Returns
    -------
    Gnss
        DataFrame with columns 'lat', 'lon', 'alt', 'VN', 'VE', 'VD'.
    """
    _check_trajectory(trajectory)
    rng = check_random_state(rng)
    times = resample_to_frequency(trajectory.index, gnss_error_model.freq)
    antenna = transform.resample_state(trajectory[TRAJECTORY_COLS], times)
    if np.any(gnss_error_model.larm != 0):
        kinematics = _compute_kinematics(trajectory, gnss_error_model.freq)
        antenna[RATE_COLS] = kinematics[GYRO_COLS].values
        antenna = transform.translate_trajectory(antenna, gnss_error_model.larm)

    n_samples = len(antenna)
    noise = rng.standard_normal((n_samples, 6))
    lla = transform.perturb_lla(antenna[LLA_COLS].values,
                                gnss_error_model.stdm * noise[:, :3])
    velocity_n = antenna[VEL_COLS].values + gnss_error_model.stdv * noise[:, 3:]
    logger.info("Generated %d GNSS samples at %s Hz", n_samples,
                gnss_error_model.freq)
    return pd.DataFrame(np.hstack([lla, velocity_n]), index=antenna.index,
                        columns=GNSS_COLS)


def generate_pva_error(position_sd, velocity_sd, level_sd, azimuth_sd, rng=None):
    """Generate random position-velocity-attitude error.

    All errors are generated as independent and normally distributed.

    Parameters
    ----------
    position_sd : float
        Position error standard deviation in meters.
    velocity_sd : float
        Velocity error standard deviation in m/s.
    level_sd : float
        Roll and pitch standard deviation in degrees.
    azimuth_sd : float
        Heading standard deviation in degrees.
    rng : None, int, `numpy.random.RandomState` or `numpy.random.Generator`
        Seed to create or already created random generator. None (default)
        corresponds to nondeterministic seeding.

    Returns
    -------
    PvaError
        Series containing 9 elements with position-velocity-attitude errors.
    """
    rng = check_random_state(rng)
    result = pd.Series(index=TRAJECTORY_ERROR_COLS, dtype=float)
    result[NED_COLS] = position_sd * rng.standard_normal(3)
    result[VEL_COLS] = velocity_sd * rng.standard_normal(3)
    result[RPH_COLS] = [level_sd, level_sd, azimuth_sd] * rng.standard_normal(3)
    return result


def perturb_pva(pva, pva_error):
    """Apply errors to position-velocity-attitude.

    Parameters
    ----------
    pva : Pva
        Position-velocity-attitude.
    pva_error : PvaError
        Errors of position-velocity-attitude.

    Returns
    -------
    Pva
        Position-velocity-attitude with applied errors.
    """
    result = pva.copy()
    result[LLA_COLS] = transform.perturb_lla(result[LLA_COLS], pva_error[NED_COLS])
    result[VEL_COLS] += pva_error[VEL_COLS]
    result[RPH_COLS] += pva_error[RPH_COLS]
    return result
