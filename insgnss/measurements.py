"""Measurement models for navigation Kalman filters.

In context of inertial navigation measurements are obtained from sensors other than
IMU. In a Kalman filter a measurement is processed by forming a difference between
the predicted and the measured vectors and linearly relating it to the error vector::

    z = Z_ins - Z = H @ x + v

Where

    - ``Z`` - measured vector
    - ``Z_ins`` - predicted vector using the current INS state
    - ``z`` - innovation vector
    - ``x`` - error state vector
    - ``H`` - measurement Jacobian
    - ``v`` - noise vector, typically assumed to have zero mean and known variance

The module provides a base class `Measurement` which abstracts this concept and
implementations for GNSS position and velocity and zero velocity updates.

The INS state is passed to measurements as a `util.Bunch` with fields ``lla``,
``velocity_n``, ``mat_nb`` and ``rate_b`` (bias compensated angular rate).

Refer to [1]_ and [2]_ for the discussion of measurements in navigation and in
Kalman filtering in general.

Classes
-------
.. autosummary::
    :toctree: generated/

    Measurement
    GnssPosition
    GnssVelocity
    ZeroVelocity

References
----------
.. [1] P. D. Groves, "Principles of GNSS, Inertial, and Multisensor Integrated
       Navigation Systems", 2nd edition
.. [2] P\. S\. Maybeck, "Stochastic Models, Estimation and Control", volume 1
"""
import numpy as np
from . import transform, util
from .util import LLA_COLS, VEL_COLS


#: Minimum standard deviation of measurement errors. Keeps the innovation
#: covariance non-singular for error-free sensors.
MIN_SD = 1e-3


def _make_covariance(sd, name):
    sd = util.to_triad(sd, name)
    return np.diag(np.maximum(sd, MIN_SD) ** 2)


class Measurement:
    """Base class for measurement models.

    To introduce a new measurement `compute_matrices` method needs to be implemented.
    See Also section contains links to already implemented measurements.

    Parameters
    ----------
    data : DataFrame or None
        Measured values as a DataFrame indexed by time.

    Attributes
    ----------
    data : DataFrame or None
        Data saved from the constructor.

    See Also
    --------
    GnssPosition
    GnssVelocity
    ZeroVelocity
    """
    def __init__(self, data):
        self.data = data

    def compute_matrices(self, time, state, error_model):
        """Compute matrices for a single linearized measurement.

        It must compute the linearized measurement model (z, H, R) at a given time.
        If the measurement is not available at the given `time`, it must return
        None.

        Parameters
        ----------
        time : float
            Time.
        state : Bunch
            INS state at `time`.
        error_model : `insgnss.error_model.InsErrorModel`
            InsErrorModel instance. The method must account for
            ``error_model.with_altitude`` as appropriate.

        Returns
        -------
        z : ndarray, shape (n_obs,)
            Observation vector. A difference between the value derived from `state`
            and an observed value.
        H : ndarray, shape (n_obs, n_states)
            Observation model matrix. It relates the vector `z` to the INS error states.
        R : ndarray, shape (n_obs, n_obs)
            Covariance matrix of the measurement error.
        """
        raise NotImplementedError


class GnssPosition(Measurement):
    """Measurement of GNSS antenna latitude, longitude and altitude.

    Parameters
    ----------
    data : DataFrame
        Must be indexed by time and contain columns 'lat', 'lon' and 'alt' columns for
        latitude, longitude and altitude.
    sd : float or array_like, shape (3,)
        Measurement accuracy in meters for North, East and Down directions.
    imu_to_antenna_b : array_like with shape (3,) or None, optional
        Vector from IMU to antenna expressed in body frame. If None, assumed to be
        zero.

    Attributes
    ----------
    data : DataFrame
        Data saved from the constructor.
    """
    def __init__(self, data, sd, imu_to_antenna_b=None):
        super(GnssPosition, self).__init__(data[LLA_COLS])
        self.R = _make_covariance(sd, 'sd')
        self.imu_to_antenna_b = imu_to_antenna_b

    def compute_matrices(self, time, state, error_model):
        if time not in self.data.index:
            return None

        z = transform.compute_lla_difference(state.lla,
                                             self.data.loc[time, LLA_COLS].values)
        if self.imu_to_antenna_b is not None:
            z += state.mat_nb @ self.imu_to_antenna_b
        H = error_model.position_error_jacobian(state.mat_nb, self.imu_to_antenna_b)
        n_obs = error_model.n_obs
        return z[:n_obs], H, self.R[:n_obs, :n_obs]


class GnssVelocity(Measurement):
    """Measurement of GNSS antenna velocity resolved in NED frame.

    Parameters
    ----------
    data : DataFrame
        Must be indexed by time and contain 'VN', 'VE' and 'VD' columns.
    sd : float or array_like, shape (3,)
        Measurement accuracy in m/s.
    imu_to_antenna_b : array_like with shape (3,) or None, optional
        Vector from IMU to antenna expressed in body frame. If None (default),
        assumed to be zero.

    Attributes
    ----------
    data : DataFrame
        Data saved from the constructor.
    """
    def __init__(self, data, sd, imu_to_antenna_b=None):
        super(GnssVelocity, self).__init__(data[VEL_COLS])
        self.R = _make_covariance(sd, 'sd')
        self.imu_to_antenna_b = imu_to_antenna_b

    def compute_matrices(self, time, state, error_model):
        if time not in self.data.index:
            return None

        z = state.velocity_n - self.data.loc[time, VEL_COLS].values
        if self.imu_to_antenna_b is not None:
            z += state.mat_nb @ np.cross(state.rate_b, self.imu_to_antenna_b)
        H = error_model.ned_velocity_error_jacobian(state.mat_nb, state.rate_b,
                                                    self.imu_to_antenna_b)
        n_obs = error_model.n_obs
        return z[:n_obs], H, self.R[:n_obs, :n_obs]


class ZeroVelocity(Measurement):
    """Zero velocity pseudo-measurement (ZUPT).

    It states that the IMU velocity is zero. The measurement is available at any
    time, so the caller decides when to apply it.

    Parameters
    ----------
    sd : float
        Measurement accuracy in m/s.
    """
    def __init__(self, sd):
        super(ZeroVelocity, self).__init__(None)
        self.R = _make_covariance(sd, 'sd')

    def compute_matrices(self, time, state, error_model):
        z = np.asarray(state.velocity_n, dtype=float)
        H = error_model.ned_velocity_error_jacobian(state.mat_nb)
        n_obs = error_model.n_obs
        return z[:n_obs], H, self.R[:n_obs, :n_obs]
