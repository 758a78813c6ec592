"""INS error model to use in navigation Kalman filters.

An INS error model is a system of non-stationary (depends on the trajectory) linear
differential equations which describe time evolution of INS errors.

Here the error vector has 15 states: attitude, velocity and position errors
resolved in NED frame, and residual biases of accelerometers and gyros. All errors
are defined as computed minus true values. The attitude error is a small rotation
vector ``phi`` such that::

    mat_nb_computed = (I + skew(phi)) @ mat_nb_true

The model is implemented in class `InsErrorModel`, see [1]_ for the derivation.

Classes
-------
.. autosummary::
    :toctree: generated/

    InsErrorModel

References
----------
.. [1] P. D. Groves, "Principles of GNSS, Inertial, and Multisensor Integrated
       Navigation Systems", 2nd edition
"""
import numpy as np
import pandas as pd
from . import earth, util, transform
from .util import RPH_COLS, NED_COLS, VEL_COLS


def _phi_to_delta_rph(rph):
    rph = np.asarray(rph)
    single = rph.ndim == 1
    rph = np.atleast_2d(rph)
    result = np.zeros((len(rph), 3, 3))

    sin = np.sin(np.deg2rad(rph))
    cos = np.cos(np.deg2rad(rph))

    result[:, 0, 0] = cos[:, 2] / cos[:, 1]
    result[:, 0, 1] = sin[:, 2] / cos[:, 1]
    result[:, 1, 0] = -sin[:, 2]
    result[:, 1, 1] = cos[:, 2]
    result[:, 2, 0] = cos[:, 2] * sin[:, 1] / cos[:, 1]
    result[:, 2, 1] = sin[:, 2] * sin[:, 1] / cos[:, 1]
    result[:, 2, 2] = 1
    result *= transform.RAD_TO_DEG

    return result[0] if single else result


class InsErrorModel:
    """INS error model with sensor bias states.

    The model has the form::

        dx/dt = F @ x + w, with w ~ N(0, Q)

    where ``x`` contains 15 states: ``PHI1-3`` (attitude error), ``DV1-3``
    (velocity error), ``DR1-3`` (position error in meters), ``BA1-3`` and
    ``BG1-3`` (accelerometer and gyro biases left after the compensation of
    estimated biases). Bias states follow first order Gauss-Markov processes
    defined by `inertial_sensor.ImuErrorModel`.

    If `with_altitude` is False, the vertical velocity and position errors are
    excluded from the dynamics and are kept at zero.

    Parameters
    ----------
    with_altitude : bool, optional
        Whether to model altitude and vertical velocity errors. Default is True.

    Attributes
    ----------
    with_altitude : bool
        Whether altitude and vertical velocity errors are modelled.
    states : list of str
        Names of the states.
    n_states : int
        Number of states, always 15.
    """
    PHI1 = 0
    PHI2 = 1
    PHI3 = 2
    DV1 = 3
    DV2 = 4
    DV3 = 5
    DR1 = 6
    DR2 = 7
    DR3 = 8
    BA1 = 9
    BA2 = 10
    BA3 = 11
    BG1 = 12
    BG2 = 13
    BG3 = 14
    PHI = [PHI1, PHI2, PHI3]
    DV = [DV1, DV2, DV3]
    DR = [DR1, DR2, DR3]
    BA = [BA1, BA2, BA3]
    BG = [BG1, BG2, BG3]
    VERTICAL = [DV3, DR3]

    DRN = 0
    DRE = 1
    DRD = 2
    DVN = 3
    DVE = 4
    DVD = 5
    DROLL = 6
    DPITCH = 7
    DHEADING = 8
    DR_OUT = [DRN, DRE, DRD]
    DV_OUT = [DVN, DVE, DVD]
    DRPH = [DROLL, DPITCH, DHEADING]

    def __init__(self, with_altitude=True):
        self.with_altitude = with_altitude
        self.states = ['PHI1', 'PHI2', 'PHI3', 'DV1', 'DV2', 'DV3',
                       'DR1', 'DR2', 'DR3', 'BA1', 'BA2', 'BA3',
                       'BG1', 'BG2', 'BG3']

    @property
    def n_states(self):
        return len(self.states)

    @property
    def n_obs(self):
        """Number of components in position and velocity measurements."""
        return 3 if self.with_altitude else 2

    def _remove_vertical(self, matrix):
        if not self.with_altitude:
            matrix[self.VERTICAL, :] = 0
            matrix[:, self.VERTICAL] = 0
        return matrix

    def system_matrix(self, lla, velocity_n, mat_nb, accel_b, imu_error_model):
        """Compute the error dynamics matrix.

        Parameters
        ----------
        lla : array_like, shape (3,)
            Latitude, longitude and altitude.
        velocity_n : array_like, shape (3,)
            Velocity resolved in NED.
        mat_nb : ndarray, shape (3, 3)
            Attitude matrix.
        accel_b : array_like, shape (3,)
            Specific force in body frame.
        imu_error_model : `inertial_sensor.ImuErrorModel`
            Defines dynamics of bias states.

        Returns
        -------
        F : ndarray, shape (15, 15)
            Error dynamics matrix.
        """
        lat, _, alt = lla
        velocity_n = np.asarray(velocity_n)
        R = earth.curvature_matrix(lat, alt)
        Omega_n = earth.rate_n(lat)
        rho_n = R @ velocity_n
        f_n = mat_nb @ accel_b
        V_skew = util.skew_matrix(velocity_n)

        rn, _, _ = earth.principal_radii(lat, alt)
        sin_lat = np.sin(np.deg2rad(lat))
        cos_lat = np.cos(np.deg2rad(lat))
        Omega_r = np.zeros((3, 3))
        Omega_r[0, 0] = -earth.RATE * sin_lat / rn
        Omega_r[2, 0] = -earth.RATE * cos_lat / rn

        F = np.zeros((15, 15))
        F[np.ix_(self.PHI, self.PHI)] = -util.skew_matrix(Omega_n + rho_n)
        F[np.ix_(self.PHI, self.DV)] = -R
        F[np.ix_(self.PHI, self.DR)] = -Omega_r
        F[np.ix_(self.PHI, self.BG)] = mat_nb

        F[np.ix_(self.DV, self.PHI)] = -util.skew_matrix(f_n)
        F[np.ix_(self.DV, self.DV)] = (-util.skew_matrix(2 * Omega_n + rho_n) +
                                       V_skew @ R)
        F[np.ix_(self.DV, self.DR)] = 2 * V_skew @ Omega_r
        F[self.DV3, self.DR3] += 2 * earth.gravity(lat, 0) / earth.A
        F[np.ix_(self.DV, self.BA)] = mat_nb

        F[np.ix_(self.DR, self.DV)] = np.eye(3)

        F[self.BA, self.BA] = -imu_error_model.accel_drift.decay_rate
        F[self.BG, self.BG] = -imu_error_model.gyro_drift.decay_rate

        return self._remove_vertical(F)

    def noise_matrix(self, mat_nb, imu_error_model):
        """Compute the continuous process noise matrix.

        Parameters
        ----------
        mat_nb : ndarray, shape (3, 3)
            Attitude matrix.
        imu_error_model : `inertial_sensor.ImuErrorModel`
            Error model with noise intensities.

        Returns
        -------
        Q : ndarray, shape (15, 15)
            Process noise power spectral density matrix.
        """
        dt = imu_error_model.dt
        gyro_psd = (imu_error_model.arw ** 2 +
                    imu_error_model.gyro_drift.white_psd(dt))
        accel_psd = (imu_error_model.vrw ** 2 +
                     imu_error_model.accel_drift.white_psd(dt))

        Q = np.zeros((15, 15))
        Q[np.ix_(self.PHI, self.PHI)] = mat_nb @ np.diag(gyro_psd) @ mat_nb.T
        Q[np.ix_(self.DV, self.DV)] = mat_nb @ np.diag(accel_psd) @ mat_nb.T
        Q[self.BA, self.BA] = (imu_error_model.accel_drift.noise_psd +
                               imu_error_model.vrrw ** 2)
        Q[self.BG, self.BG] = (imu_error_model.gyro_drift.noise_psd +
                               imu_error_model.arrw ** 2)
        return self._remove_vertical(0.5 * (Q + Q.T))

    def initial_covariance(self, attitude_sd, position_sd, velocity_sd,
                           imu_error_model):
        """Compute the initial covariance matrix.

        Parameters
        ----------
        attitude_sd : float or array_like, shape (3,)
            Standard deviations of roll, pitch and heading errors in degrees.
            Used as standard deviations of the attitude error vector components.
        position_sd : float or array_like, shape (3,)
            Standard deviations of NED position errors in meters.
        velocity_sd : float or array_like, shape (3,)
            Standard deviations of NED velocity errors in m/s.
        imu_error_model : `inertial_sensor.ImuErrorModel`
            Defines standard deviations of biases.

        Returns
        -------
        P : ndarray, shape (15, 15)
            Diagonal covariance matrix.
        """
        attitude_sd = util.to_triad(attitude_sd, 'attitude_sd')
        diagonal = np.hstack([
            np.deg2rad(attitude_sd) ** 2,
            util.to_triad(velocity_sd, 'velocity_sd') ** 2,
            util.to_triad(position_sd, 'position_sd') ** 2,
            imu_error_model.accel_bias_sd ** 2,
            imu_error_model.gyro_bias_sd ** 2
        ])
        return self._remove_vertical(np.diag(diagonal))

    def position_error_jacobian(self, mat_nb, imu_to_antenna_b=None):
        """Compute position error Jacobian matrix.

        This is the matrix which linearly relates the position error of a point
        displaced by `imu_to_antenna_b` in NED frame and the error state vector.

        Parameters
        ----------
        mat_nb : ndarray, shape (3, 3)
            Attitude matrix.
        imu_to_antenna_b : array_like, shape (3,) or None, optional
            Vector from IMU to antenna (measurement point) expressed in body
            frame. If None, assumed to be zero.

        Returns
        -------
        ndarray, shape (3, 15) or (2, 15)
            Jacobian matrix. When `with_altitude` is False it has only 2 rows for
            North and East position errors.
        """
        result = np.zeros((3, 15))
        result[:, self.DR] = np.eye(3)
        if imu_to_antenna_b is not None:
            result[:, self.PHI] = -util.skew_matrix(mat_nb @ imu_to_antenna_b)
        return result[:self.n_obs]

    def ned_velocity_error_jacobian(self, mat_nb, rate_b=None, imu_to_antenna_b=None):
        """Compute NED velocity error Jacobian matrix.

        This is the matrix which linearly relates the velocity error of a point
        displaced by `imu_to_antenna_b` in NED frame and the error state vector.

        Parameters
        ----------
        mat_nb : ndarray, shape (3, 3)
            Attitude matrix.
        rate_b : array_like, shape (3,) or None, optional
            Angular rate of the body frame, required to account for
            `imu_to_antenna_b`.
        imu_to_antenna_b : array_like, shape (3,) or None, optional
            Vector from IMU to antenna (measurement point) expressed in body
            frame. If None (default), assumed to be zero.

        Returns
        -------
        ndarray, shape (3, 15) or (2, 15)
            Jacobian matrix. When `with_altitude` is False it has only 2 rows for
            North and East velocity errors.
        """
        result = np.zeros((3, 15))
        result[:, self.DV] = np.eye(3)
        if imu_to_antenna_b is not None and rate_b is not None:
            result[:, self.PHI] = -util.skew_matrix(
                mat_nb @ np.cross(rate_b, imu_to_antenna_b))
            result[:, self.BG] = -mat_nb @ util.skew_matrix(imu_to_antenna_b)
        return result[:self.n_obs]

    def transform_to_output(self, trajectory):
        """Compute matrix transforming the internal states into output states.

        Output states are comprised of NED position errors, NED velocity errors, roll,
        pitch and heading errors.

        Parameters
        ----------
        trajectory : Trajectory or Pva
            Either full trajectory dataframe or single position-velocity-attitude.

        Returns
        -------
        ndarray, shape (9, 15) or (n, 9, 15)
            Transformation matrix or matrices.
        """
        series = isinstance(trajectory, pd.Series)
        if series:
            trajectory = trajectory.to_frame().transpose()

        result = np.zeros((len(trajectory), 9, 15))
        samples = np.arange(len(trajectory))
        result[np.ix_(samples, self.DR_OUT, self.DR)] = np.eye(3)
        result[np.ix_(samples, self.DV_OUT, self.DV)] = np.eye(3)
        result[np.ix_(samples, self.DRPH, self.PHI)] = _phi_to_delta_rph(
            trajectory[RPH_COLS].values)

        return result[0] if series else result

    def compute_sd(self, P_diagonal, P_attitude, trajectory):
        """Compute standard deviations of trajectory errors.

        Position and velocity errors map to the output one to one, so only the
        diagonal of the covariance and its attitude block are required.

        Parameters
        ----------
        P_diagonal : ndarray, shape (n, 15)
            Diagonals of covariance matrices.
        P_attitude : ndarray, shape (n, 3, 3)
            Attitude error blocks of covariance matrices.
        trajectory : Trajectory
            Trajectory with n rows.

        Returns
        -------
        DataFrame
            Standard deviations of NED position, velocity and roll, pitch, heading
            errors.
        """
        T = _phi_to_delta_rph(trajectory[RPH_COLS].values)
        rph_variance = np.diagonal(util.mm_prod_symmetric(T, P_attitude),
                                   axis1=1, axis2=2)
        result = pd.DataFrame(index=trajectory.index)
        result[NED_COLS] = np.maximum(P_diagonal[:, self.DR], 0) ** 0.5
        result[VEL_COLS] = np.maximum(P_diagonal[:, self.DV], 0) ** 0.5
        result[RPH_COLS] = np.maximum(rph_variance, 0) ** 0.5
        return result
