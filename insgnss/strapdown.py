"""Strapdown INS mechanization.

This module provides implementation of the classic "strapdown algorithm" to obtain
position, velocity and attitude by integration of IMU readings.
The implementation follows [1]_ and [2]_ with some simplifications.

Two interchangeable attitude representations are supported and selected by
``mode``:

    - 'dcm' - direction cosine matrix ``mat_nb`` updated by products with
      Rodrigues exponentials of rotation vectors and periodically
      re-orthonormalized
    - 'quaternion' - scalar-first unit quaternion updated by products with
      quaternion exponentials of rotation vectors and renormalized after each step

Both variants share the velocity and position algorithm and produce equivalent
trajectories up to rounding errors, which makes them a cross-check of each other.

Functions
---------
.. autosummary::
    :toctree: generated/

    compute_increments_from_imu
    mechanize

Classes
-------
.. autosummary::
    :toctree: generated/

    Integrator

References
----------
.. [1] P. G. Savage, "Strapdown Inertial Navigation Integration Algorithm
       Design Part 1: Attitude Algorithms", Journal of Guidance, Control,
       and Dynamics 1998, Vol. 21, no. 2.
.. [2] P. G. Savage, "Strapdown Inertial Navigation Integration Algorithm
       Design Part 2: Velocity and Position Algorithms", Journal of
       Guidance, Control, and Dynamics 1998, Vol. 21, no. 2.
"""
import numpy as np
import pandas as pd
from . import transform
from .errors import ValidationError
from .util import (LLA_COLS, RPH_COLS, VEL_COLS, GYRO_COLS, ACCEL_COLS, THETA_COLS,
                   DV_COLS, TRAJECTORY_COLS)
from ._numba_strapdown import (integrate_dcm, integrate_quat, mat_from_rotvec,
                               quat_from_rotvec, quat_multiply, mat_from_quat)


MODES = ['dcm', 'quaternion']


def _check_mode(mode):
    if mode not in MODES:
        raise ValidationError("`mode` must be either 'dcm' or 'quaternion'")


def compute_increments_from_imu(imu):
    """Compute attitude and velocity increments from IMU readings.

    This function transforms raw gyro and accelerometer readings into
    rotation vectors and velocity increments by applying coning and sculling
    corrections and accounting for IMU rotation during a sampling period.

    The algorithm assumes a linear model for the angular velocity and the
    specific force between samples.

    The number of returned increments is always one less than the number
    of IMU readings.

    Parameters
    ----------
    imu : Imu
        Dataframe with rate type IMU data.

    Returns
    -------
    Increments
        DataFrame containing attitude and velocity increments with one less row than
        the passed `imu`.
    """
    gyro = imu[GYRO_COLS].values
    accel = imu[ACCEL_COLS].values
    dt = np.diff(imu.index).reshape(-1, 1)

    a_gyro = gyro[:-1]
    b_gyro = gyro[1:] - gyro[:-1]
    a_accel = accel[:-1]
    b_accel = accel[1:] - accel[:-1]
    gyro_increment = (a_gyro + 0.5 * b_gyro) * dt
    accel_increment = (a_accel + 0.5 * b_accel) * dt
    coning = np.cross(a_gyro, b_gyro) * dt ** 2 / 12
    sculling = (np.cross(a_gyro, b_accel) +
                np.cross(a_accel, b_gyro)) * dt ** 2 / 12

    theta = gyro_increment + coning
    dv = accel_increment + sculling + 0.5 * np.cross(gyro_increment, accel_increment)

    return pd.DataFrame(data=np.hstack((dt, theta, dv)), index=imu.index[1:],
                        columns=['dt'] + THETA_COLS + DV_COLS)


def _attitude_from_rph(rph, mode):
    if mode == 'dcm':
        return transform.mat_from_rph(rph)
    return transform.quat_from_rph(rph)


def _attitude_to_rph(attitude, mode):
    if mode == 'dcm':
        return transform.mat_to_rph(attitude)
    return transform.quat_to_rph(attitude)


def _run_kernel(mode, dt, lla, velocity_n, attitude, theta, dv, offset, with_altitude,
                orthonormalize_period):
    if mode == 'dcm':
        integrate_dcm(dt, lla, velocity_n, attitude, theta, dv, offset, with_altitude,
                      orthonormalize_period)
    else:
        integrate_quat(dt, lla, velocity_n, attitude, theta, dv, offset,
                       with_altitude)


def mechanize(lla, velocity_n, attitude, theta, dv, dt, mode='dcm',
              with_altitude=True):
    """Propagate position, velocity and attitude by a single IMU increment.

    This is the open-loop strapdown step: it never uses aiding information.

    Parameters
    ----------
    lla : array_like, shape (3,)
        Latitude, longitude and altitude at the beginning of the interval.
    velocity_n : array_like, shape (3,)
        Velocity resolved in NED frame.
    attitude : array_like, shape (3, 3) or (4,)
        Rotation matrix ``mat_nb`` for 'dcm' mode or scalar-first quaternion
        for 'quaternion' mode.
    theta, dv : array_like, shape (3,)
        Rotation vector and velocity increment from `compute_increments_from_imu`.
    dt : float
        Duration of the interval.
    mode : 'dcm' or 'quaternion', optional
        Attitude representation. Default is 'dcm'.
    with_altitude : bool, optional
        Whether to compute altitude and vertical velocity. Default is True.

    Returns
    -------
    lla : ndarray, shape (3,)
        Latitude, longitude and altitude at the end of the interval.
    velocity_n : ndarray, shape (3,)
        Velocity resolved in NED frame.
    attitude : ndarray, shape (3, 3) or (4,)
        Attitude in the same representation as the input.
    """
    _check_mode(mode)
    attitude = np.asarray(attitude, dtype=float)
    expected_shape = (3, 3) if mode == 'dcm' else (4,)
    if attitude.shape != expected_shape:
        raise ValidationError(
            f"`attitude` must have shape {expected_shape} in '{mode}' mode")

    lla_array = np.empty((2, 3))
    velocity_array = np.empty((2, 3))
    attitude_array = np.empty((2,) + expected_shape)
    lla_array[0] = lla
    velocity_array[0] = velocity_n
    attitude_array[0] = attitude

    _run_kernel(mode, np.array([dt], dtype=float), lla_array, velocity_array,
                attitude_array, np.asarray(theta, dtype=float).reshape(1, 3),
                np.asarray(dv, dtype=float).reshape(1, 3), 0, with_altitude, 0)
    return lla_array[1], velocity_array[1], attitude_array[1]


class Integrator:
    """Strapdown INS integration algorithm.

    The position is updated using the trapezoid rule.

    Parameters
    ----------
    pva : Pva
        Initial position-velocity-attitude, its name is the initial time.
    mode : 'dcm' or 'quaternion', optional
        Attitude representation. Default is 'dcm'.
    with_altitude : bool, optional
        Whether to compute altitude and vertical velocity. Default is True.
        If False, then vertical velocity is set to zero and altitude is kept
        as constant.
    orthonormalize_period : int, optional
        Number of steps between re-orthonormalizations of the DCM. Zero disables
        it. Only used in 'dcm' mode. Default is 100.

    Attributes
    ----------
    trajectory : Trajectory
        Computed trajectory so far.
    """
    INITIAL_SIZE = 10000

    def __init__(self, pva, mode='dcm', with_altitude=True, orthonormalize_period=100):
        _check_mode(mode)
        self.mode = mode
        self.with_altitude = with_altitude
        self.orthonormalize_period = orthonormalize_period

        initial_pva = pva.copy()
        if not with_altitude:
            initial_pva.VD = 0.0
        time = 0.0 if initial_pva.name is None else float(initial_pva.name)

        attitude_shape = (3, 3) if mode == 'dcm' else (4,)
        self.times = np.empty(self.INITIAL_SIZE)
        self.lla = np.empty((self.INITIAL_SIZE, 3))
        self.velocity_n = np.empty((self.INITIAL_SIZE, 3))
        self.attitude = np.empty((self.INITIAL_SIZE,) + attitude_shape)

        self.times[0] = time
        self.lla[0] = initial_pva[LLA_COLS]
        self.velocity_n[0] = initial_pva[VEL_COLS]
        self.attitude[0] = _attitude_from_rph(initial_pva[RPH_COLS].values, mode)
        self.n_data = 1

    def _reserve(self, n_readings):
        required_size = self.n_data + n_readings
        size = len(self.lla)
        if required_size > size:
            new_size = max(2 * size, required_size)
            self.times.resize(new_size, refcheck=False)
            self.lla.resize((new_size, 3), refcheck=False)
            self.velocity_n.resize((new_size, 3), refcheck=False)
            self.attitude.resize((new_size,) + self.attitude.shape[1:],
                                 refcheck=False)

    def _make_trajectory(self, start, end):
        rph = _attitude_to_rph(self.attitude[start:end], self.mode)
        trajectory = pd.DataFrame(
            np.hstack([self.lla[start:end], self.velocity_n[start:end], rph]),
            index=pd.Index(self.times[start:end], name='time'),
            columns=TRAJECTORY_COLS)
        return trajectory

    @property
    def trajectory(self):
        return self._make_trajectory(0, self.n_data)

    def integrate(self, increments):
        """Update trajectory by given inertial increments.

        The integration continues from the last computed values.

        Parameters
        ----------
        increments : Increments
            Attitude and velocity increments computed from gyro and accelerometer
            readings.

        Returns
        -------
        Trajectory
            Added chunk of the trajectory including the last point before
            `increments` were integrated.
        """
        n_readings = len(increments)
        self._reserve(n_readings)
        offset = self.n_data - 1

        theta = np.ascontiguousarray(increments[THETA_COLS], dtype=float)
        dv = np.ascontiguousarray(increments[DV_COLS], dtype=float)
        _run_kernel(self.mode, np.asarray(increments.dt, dtype=float), self.lla,
                    self.velocity_n, self.attitude, theta, dv, offset,
                    self.with_altitude, self.orthonormalize_period)
        self.times[self.n_data:self.n_data + n_readings] = increments.index
        self.n_data += n_readings
        return self._make_trajectory(offset, self.n_data)

    def step(self, theta, dv, dt, time):
        """Integrate a single increment.

        This is the fast path used inside filtering loops, no DataFrames are
        created.

        Parameters
        ----------
        theta, dv : ndarray, shape (3,)
            Rotation vector and velocity increment.
        dt : float
            Duration of the increment.
        time : float
            Time at the end of the increment.
        """
        self._reserve(1)
        _run_kernel(self.mode, np.array([dt], dtype=float), self.lla,
                    self.velocity_n, self.attitude,
                    np.asarray(theta, dtype=float).reshape(1, 3),
                    np.asarray(dv, dtype=float).reshape(1, 3),
                    self.n_data - 1, self.with_altitude, self.orthonormalize_period)
        self.times[self.n_data] = time
        self.n_data += 1

    def get_time(self):
        """Get time of the latest position-velocity-attitude."""
        return self.times[self.n_data - 1]

    def get_pva(self):
        """Get the latest position-velocity-attitude."""
        i = self.n_data - 1
        rph = _attitude_to_rph(self.attitude[i], self.mode)
        return pd.Series(np.hstack([self.lla[i], self.velocity_n[i], rph]),
                         index=TRAJECTORY_COLS, name=self.times[i])

    def set_pva(self, pva):
        """Set (overwrite) the latest position-velocity-attitude."""
        i = self.n_data - 1
        self.lla[i] = pva[LLA_COLS]
        self.velocity_n[i] = pva[VEL_COLS]
        self.attitude[i] = _attitude_from_rph(np.asarray(pva[RPH_COLS], dtype=float),
                                              self.mode)

    def get_state(self):
        """Get the latest state as arrays.

        Returns
        -------
        lla : ndarray, shape (3,)
            Latitude, longitude and altitude.
        velocity_n : ndarray, shape (3,)
            Velocity resolved in NED.
        mat_nb : ndarray, shape (3, 3)
            Attitude matrix, computed from the quaternion in 'quaternion' mode.
        """
        i = self.n_data - 1
        if self.mode == 'dcm':
            mat_nb = self.attitude[i].copy()
        else:
            mat_nb = np.empty((3, 3))
            mat_from_quat(self.attitude[i], mat_nb)
        return self.lla[i].copy(), self.velocity_n[i].copy(), mat_nb

    def correct(self, dr_n, dv_n, phi_n):
        """Remove estimated errors from the latest state.

        The errors are defined as computed minus true values. The attitude error
        `phi_n` is a small rotation vector resolved in NED such that
        ``mat_nb_computed = (I + skew(phi_n)) @ mat_nb_true``.

        Parameters
        ----------
        dr_n : array_like, shape (3,)
            Position error in meters resolved in NED.
        dv_n : array_like, shape (3,)
            Velocity error resolved in NED.
        phi_n : array_like, shape (3,)
            Attitude error rotation vector.
        """
        i = self.n_data - 1
        self.lla[i] = transform.perturb_lla(self.lla[i], -np.asarray(dr_n))
        self.velocity_n[i] -= dv_n
        if not self.with_altitude:
            self.velocity_n[i, 2] = 0.0

        rotvec = -np.asarray(phi_n, dtype=float)
        if self.mode == 'dcm':
            correction = np.empty((3, 3))
            mat_from_rotvec(rotvec, correction)
            self.attitude[i] = correction @ self.attitude[i]
        else:
            correction = np.empty(4)
            quat_from_rotvec(rotvec, correction)
            quat = np.empty(4)
            quat_multiply(correction, self.attitude[i], quat)
            self.attitude[i] = quat / np.linalg.norm(quat)

    def attitude_error(self):
        """Compute deviation of the attitude representation from a valid rotation.

        Returns
        -------
        ndarray, shape (n,)
            For 'dcm' mode the maximum absolute element of ``C.T @ C - I``,
            for 'quaternion' mode the absolute deviation of the norm from 1.
            One value for each computed epoch.
        """
        attitude = self.attitude[:self.n_data]
        if self.mode == 'dcm':
            error = np.einsum('nki,nkj->nij', attitude, attitude) - np.eye(3)
            return np.max(np.abs(error), axis=(1, 2))
        return np.abs(np.linalg.norm(attitude, axis=1) - 1)
