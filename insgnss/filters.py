"""Navigation Kalman filters.

Module provides a loosely coupled INS/GNSS filter with feedback corrections
(extended error-state Kalman filter). It relies on functionality provided by
`insgnss.strapdown`, `insgnss.error_model`, `insgnss.measurements` and
`insgnss.zupt` modules.

The filter predicts the error covariance at every IMU epoch and processes GNSS
position and velocity measurements at IMU epochs matched to GNSS time stamps.
If the vehicle is detected to be stationary, a zero velocity update follows the
GNSS update at the same epoch. After each update the estimated errors are removed
from the strapdown solution and from the sensor bias estimates.

Refer to [1]_ for the discussion of Kalman filtering in context of inertial navigation.

Functions
---------
.. autosummary::
    :toctree: generated/

    run_ins_gnss

References
----------
.. [1] P. D. Groves, "Principles of GNSS, Inertial, and Multisensor Integrated
       Navigation Systems", 2nd edition
"""
import logging
import numpy as np
import pandas as pd
from . import kalman, util, strapdown
from .error_model import InsErrorModel
from .errors import ValidationError, SynchronizationError, NumericInstability
from .measurements import GnssPosition, GnssVelocity, ZeroVelocity
from .zupt import ZuptDetector
from .util import (TRAJECTORY_COLS, GNSS_COLS, IMU_COLS, GYRO_COLS, ACCEL_COLS,
                   THETA_COLS, DV_COLS, NED_COLS, VEL_COLS, INDEX_TO_XYZ)


logger = logging.getLogger(__name__)

#: Allowed relative difference between the IMU sampling period and the period
#: of the IMU error model.
SAMPLING_PERIOD_TOLERANCE = 0.1


def _check_inputs(imu, gnss, imu_error_model, initial_pva):
    missing = set(IMU_COLS) - set(imu.columns)
    if missing:
        raise ValidationError(f"`imu` misses columns {sorted(missing)}")
    missing = set(GNSS_COLS) - set(gnss.columns)
    if missing:
        raise ValidationError(f"`gnss` misses columns {sorted(missing)}")
    missing = set(TRAJECTORY_COLS) - set(initial_pva.index)
    if missing:
        raise ValidationError(f"`initial_pva` misses elements {sorted(missing)}")

    util.check_time_index(imu, 'imu')
    util.check_time_index(gnss, 'gnss', min_length=1)

    period = np.median(np.diff(imu.index))
    if abs(period - imu_error_model.dt) > SAMPLING_PERIOD_TOLERANCE * imu_error_model.dt:
        raise ValidationError(
            f"IMU sampling period {period} does not match the error model "
            f"period {imu_error_model.dt}")


def synchronize(imu_times, gnss_times, eps):
    """Match GNSS time stamps to IMU epochs.

    GNSS epochs within ``[imu_times[0] - eps, imu_times[-1] + eps]`` (both bounds
    inclusive) are considered. Each of them is matched to the nearest IMU epoch if
    the time difference does not exceed `eps`. When several GNSS epochs are matched
    to the same IMU epoch, the earliest one is kept.

    Parameters
    ----------
    imu_times : array_like, shape (n_imu,)
        IMU time stamps.
    gnss_times : array_like, shape (n_gnss,)
        GNSS time stamps.
    eps : float
        Matching tolerance in seconds.

    Returns
    -------
    dict
        Mapping from IMU epoch index to GNSS time stamp.

    Raises
    ------
    SynchronizationError
        If no GNSS epoch can be matched.
    """
    imu_times = np.asarray(imu_times, dtype=float)
    gnss_times = np.asarray(gnss_times, dtype=float)

    inside = ((gnss_times >= imu_times[0] - eps) &
              (gnss_times <= imu_times[-1] + eps))
    n_outside = np.sum(~inside)
    if n_outside > 0:
        logger.info("Discarded %d GNSS epochs outside of IMU time span", n_outside)
    gnss_times = gnss_times[inside]

    index = np.searchsorted(imu_times, gnss_times)
    left = np.clip(index - 1, 0, len(imu_times) - 1)
    right = np.clip(index, 0, len(imu_times) - 1)
    use_left = (np.abs(imu_times[left] - gnss_times) <=
                np.abs(imu_times[right] - gnss_times))
    nearest = np.where(use_left, left, right)
    matched = np.abs(imu_times[nearest] - gnss_times) <= eps

    n_unmatched = np.sum(~matched)
    if n_unmatched > 0:
        logger.warning("%d GNSS epochs have no IMU epoch within %s s",
                       n_unmatched, eps)

    result = {}
    for imu_index, gnss_time in zip(nearest[matched], gnss_times[matched]):
        if imu_index in result:
            logger.warning("GNSS epoch %s is ignored, IMU epoch %d is already "
                           "matched", gnss_time, imu_index)
        else:
            result[imu_index] = gnss_time

    if not result:
        raise SynchronizationError(
            "IMU and GNSS time stamps do not overlap within the tolerance")
    return result


def _correct(x, P, z, H, R, epoch, time):
    try:
        return kalman.correct(x, P, z, H, R)
    except NumericInstability as error:
        raise NumericInstability(str(error), epoch, time) from error


def _make_state(integrator, rate_b):
    lla, velocity_n, mat_nb = integrator.get_state()
    return util.Bunch(lla=lla, velocity_n=velocity_n, mat_nb=mat_nb, rate_b=rate_b)


def run_ins_gnss(imu, gnss, imu_error_model, gnss_error_model, initial_pva,
                 attitude_sd=1.0, mode='dcm', zupt=True, zupt_sd=0.01,
                 with_altitude=True):
    """Run loosely coupled INS/GNSS filter with feedback corrections.

    Parameters
    ----------
    imu : Imu
        Rate type IMU readings.
    gnss : Gnss
        GNSS position and velocity of the antenna.
    imu_error_model : `inertial_sensor.ImuErrorModel`
        IMU error model, defines the process noise and the initial bias
        uncertainty.
    gnss_error_model : `gnss.GnssErrorModel`
        GNSS error model, defines measurement noise, the lever arm, zero velocity
        detection parameters and time matching tolerance.
    initial_pva : Pva
        Position-velocity-attitude at the first IMU epoch.
    attitude_sd : float or array_like, shape (3,), optional
        Uncertainty of initial roll, pitch and heading in degrees. Default is 1.
    mode : 'dcm' or 'quaternion', optional
        Attitude representation used in the strapdown integration.
        Default is 'dcm'.
    zupt : bool, optional
        Whether to detect stationary intervals and apply zero velocity updates.
        Default is True.
    zupt_sd : float, optional
        Standard deviation of the zero velocity pseudo-measurement in m/s.
        Default is 0.01.
    with_altitude : bool, optional
        Whether to estimate altitude and vertical velocity. Default is True.

    Returns
    -------
    Bunch with the following fields:

        trajectory, trajectory_sd : DataFrame
            Estimated trajectory and its error standard deviations for each IMU
            epoch.
        P : DataFrame
            Diagonal of the error covariance matrix for each IMU epoch.
        gyro, accel : DataFrame
            Estimated gyro and accelerometer biases.
        innovations : dict of DataFrame
            For each measurement class name contains DataFrame with normalized
            measurement innovations.
        zupt : Series
            Zero velocity detection results for each matched GNSS epoch.
    """
    _check_inputs(imu, gnss, imu_error_model, initial_pva)
    error_model = InsErrorModel(with_altitude)

    times = np.asarray(imu.index, dtype=float)
    initial_pva = initial_pva[TRAJECTORY_COLS].astype(float)
    initial_pva.name = times[0]
    integrator = strapdown.Integrator(initial_pva, mode, with_altitude)

    gnss_epochs = synchronize(times, gnss.index, gnss_error_model.eps)
    larm = gnss_error_model.larm if np.any(gnss_error_model.larm != 0) else None
    gnss_measurements = [
        GnssPosition(gnss, gnss_error_model.stdm, larm),
        GnssVelocity(gnss, gnss_error_model.stdv, larm)
    ]
    zero_velocity = ZeroVelocity(zupt_sd)
    detector = ZuptDetector(gnss_error_model.zupt_th, gnss_error_model.zupt_win)

    logger.info("Running INS/GNSS filter in '%s' mode over %d IMU epochs with "
                "%d GNSS epochs", mode, len(times), len(gnss_epochs))

    increments = strapdown.compute_increments_from_imu(imu)
    dt = increments['dt'].values
    theta = increments[THETA_COLS].values
    dv = increments[DV_COLS].values
    gyro_readings = imu[GYRO_COLS].values
    accel_readings = imu[ACCEL_COLS].values

    P = error_model.initial_covariance(attitude_sd, gnss_error_model.stdm,
                                       gnss_error_model.stdv, imu_error_model)
    kalman.check_covariance(P, 0, times[0])

    n_epochs = len(times)
    P_diagonal = np.empty((n_epochs, error_model.n_states))
    P_attitude = np.empty((n_epochs, 3, 3))
    gyro_result = np.empty((n_epochs, 3))
    accel_result = np.empty((n_epochs, 3))
    gyro_bias = np.zeros(3)
    accel_bias = np.zeros(3)

    innovations = {'GnssPosition': [], 'GnssVelocity': [], 'ZeroVelocity': []}
    innovations_times = {name: [] for name in innovations}
    zupt_times = []
    zupt_flags = []

    for i in range(n_epochs):
        time = times[i]
        if i > 0:
            lla, velocity_n, mat_nb = integrator.get_state()
            theta_i = theta[i - 1] - gyro_bias * dt[i - 1]
            dv_i = dv[i - 1] - accel_bias * dt[i - 1]
            integrator.step(theta_i, dv_i, dt[i - 1], time)

            F = error_model.system_matrix(lla, velocity_n, mat_nb, dv_i / dt[i - 1],
                                          imu_error_model)
            Q = error_model.noise_matrix(mat_nb, imu_error_model)
            Phi, Qd = kalman.compute_process_matrices(F, Q, dt[i - 1])
            P = kalman.predict(P, Phi, Qd)
            kalman.check_covariance(P, i, time)

        if i in gnss_epochs:
            gnss_time = gnss_epochs[i]
            rate_b = gyro_readings[i] - gyro_bias

            x = np.zeros(error_model.n_states)
            state = _make_state(integrator, rate_b)
            for measurement in gnss_measurements:
                z, H, R = measurement.compute_matrices(gnss_time, state, error_model)
                x, P, innovation = _correct(x, P, z, H, R, i, time)
                name = measurement.__class__.__name__
                innovations[name].append(innovation)
                innovations_times[name].append(time)
            integrator.correct(x[error_model.DR], x[error_model.DV],
                               x[error_model.PHI])
            accel_bias += x[error_model.BA]
            gyro_bias += x[error_model.BG]
            logger.debug("GNSS update at %s, position correction %s m", time,
                         x[error_model.DR])

            if zupt:
                stationary = detector.update(
                    gnss_time, gnss.loc[gnss_time, VEL_COLS].values)
                zupt_times.append(gnss_time)
                zupt_flags.append(stationary)
                if stationary:
                    x = np.zeros(error_model.n_states)
                    state = _make_state(integrator, rate_b)
                    z, H, R = zero_velocity.compute_matrices(time, state, error_model)
                    x, P, innovation = _correct(x, P, z, H, R, i, time)
                    innovations['ZeroVelocity'].append(innovation)
                    innovations_times['ZeroVelocity'].append(time)
                    integrator.correct(x[error_model.DR], x[error_model.DV],
                                       x[error_model.PHI])
                    accel_bias += x[error_model.BA]
                    gyro_bias += x[error_model.BG]
                    logger.debug("ZUPT at %s", time)

            kalman.check_covariance(P, i, time)

        P_diagonal[i] = np.diag(P)
        P_attitude[i] = P[np.ix_(error_model.PHI, error_model.PHI)]
        gyro_result[i] = gyro_bias
        accel_result[i] = accel_bias

    logger.info("Filter finished: %d GNSS updates, %d zero velocity updates",
                len(innovations['GnssPosition']), len(innovations['ZeroVelocity']))

    trajectory = integrator.trajectory
    index = trajectory.index
    n_obs = error_model.n_obs
    columns = {'GnssPosition': NED_COLS[:n_obs],
               'GnssVelocity': VEL_COLS[:n_obs],
               'ZeroVelocity': VEL_COLS[:n_obs]}
    for name in innovations:
        innovations[name] = pd.DataFrame(
            np.reshape(innovations[name], (-1, n_obs)),
            index=pd.Index(innovations_times[name], name='time'),
            columns=columns[name])

    bias_columns = [f"bias_{INDEX_TO_XYZ[axis]}" for axis in range(3)]
    return util.Bunch(
        trajectory=trajectory,
        trajectory_sd=error_model.compute_sd(P_diagonal, P_attitude, trajectory),
        P=pd.DataFrame(P_diagonal, index=index, columns=error_model.states),
        gyro=pd.DataFrame(gyro_result, index=index, columns=bias_columns),
        accel=pd.DataFrame(accel_result, index=index, columns=bias_columns),
        innovations=innovations,
        zupt=pd.Series(zupt_flags, index=pd.Index(zupt_times, name='time'),
                       name='zupt', dtype=bool))
