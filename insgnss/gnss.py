"""GNSS receiver error model.

A loosely coupled GNSS receiver is described by standard deviations of its position
and velocity solutions, the lever arm between IMU and antenna, the sampling frequency
and a few parameters used when processing its data together with IMU: zero velocity
detection threshold and window, and the tolerance for IMU and GNSS time matching.

Classes
-------
.. autosummary::
    :toctree: generated/

    GnssSpec
    GnssErrorModel

Functions
---------
.. autosummary::
    :toctree: generated/

    derive_gnss_error_model
"""
import logging
import numpy as np
from . import earth, util
from .errors import ValidationError


logger = logging.getLogger(__name__)

#: Knots to m/s.
KT_TO_MPS = 0.514444


class GnssSpec:
    """GNSS receiver specification.

    Parameters
    ----------
    stdm : float or array_like, shape (3,)
        Standard deviations of North, East and Down position errors in meters.
    stdv : float or array_like, shape (3,)
        Standard deviations of NED velocity errors in m/s.
    freq : float
        Sampling frequency in Hz.
    larm : float or array_like, shape (3,), optional
        Lever arm from IMU to antenna in body frame in meters. Default is 0.
    zupt_th : float, optional
        Zero velocity threshold in m/s. Default is 0.5.
    zupt_win : float, optional
        Zero velocity detection window in seconds. Default is 4.
    eps : float, optional
        Tolerance for matching GNSS and IMU time stamps in seconds.
        Default is 1e-3.
    """
    def __init__(self, stdm, stdv, freq, larm=0, zupt_th=0.5, zupt_win=4, eps=1e-3):
        self.stdm = stdm
        self.stdv = stdv
        self.freq = freq
        self.larm = larm
        self.zupt_th = zupt_th
        self.zupt_win = zupt_win
        self.eps = eps


class GnssErrorModel:
    """GNSS error model in SI units.

    Instances are created by `derive_gnss_error_model`.

    Attributes
    ----------
    stdm, stdv : ndarray, shape (3,)
        Position (m) and velocity (m/s) standard deviations.
    std : ndarray, shape (3,)
        Latitude and longitude standard deviations in radians and altitude
        standard deviation in meters.
    freq : float
        Sampling frequency.
    larm : ndarray, shape (3,)
        Lever arm from IMU to antenna in body frame.
    zupt_th, zupt_win, eps : float
        Zero velocity threshold and window, time matching tolerance.
    """
    def __init__(self, stdm, stdv, std, freq, larm, zupt_th, zupt_win, eps):
        self.stdm = stdm
        self.stdv = stdv
        self.std = std
        self.freq = freq
        self.larm = larm
        self.zupt_th = zupt_th
        self.zupt_win = zupt_win
        self.eps = eps


def derive_gnss_error_model(spec, lat, alt):
    """Convert GNSS specification to the error model.

    Parameters
    ----------
    spec : `GnssSpec`
        GNSS specification.
    lat, alt : float
        Latitude and altitude used to express position standard deviations in
        angular units.

    Returns
    -------
    `GnssErrorModel`
        Error model.
    """
    if not spec.freq > 0:
        raise ValidationError("`freq` must be positive")
    stdm = util.to_triad(spec.stdm, 'stdm')
    stdv = util.to_triad(spec.stdv, 'stdv')
    larm = util.to_triad(spec.larm, 'larm')
    if np.any(stdm < 0):
        raise ValidationError("`stdm` must be non-negative")
    if np.any(stdv < 0):
        raise ValidationError("`stdv` must be non-negative")
    if not spec.zupt_win > 0:
        raise ValidationError("`zupt_win` must be positive")
    if not spec.zupt_th >= 0:
        raise ValidationError("`zupt_th` must be non-negative")
    if not spec.eps >= 0:
        raise ValidationError("`eps` must be non-negative")
    if spec.eps >= 0.5 / spec.freq:
        logger.warning("Time matching tolerance %s is not smaller than half of "
                       "the GNSS sampling period", spec.eps)

    rn, _, rp = earth.principal_radii(lat, alt)
    std = np.array([stdm[0] / rn, stdm[1] / rp, stdm[2]])
    return GnssErrorModel(stdm, stdv, std, spec.freq, larm, spec.zupt_th,
                          spec.zupt_win, spec.eps)


def garmin_gps18x(freq=5):
    """Garmin GPS 18x specification."""
    return GnssSpec(stdm=[5, 5, 10], stdv=0.1 * KT_TO_MPS, freq=freq)
