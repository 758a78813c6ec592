"""Coordinate and attitude transformations.

Quaternions are stored scalar-first as ``[w, x, y, z]`` and, like the rotation
matrices ``mat_nb``, project vectors from the body frame to NED frame.

Constants
----------
.. autosummary::
    :toctree: generated

    DEG_TO_RAD
    RAD_TO_DEG
    DH_TO_RS
    DRH_TO_RRS

Functions
---------
.. autosummary::
    :toctree: generated

    lla_to_ecef
    perturb_lla
    translate_trajectory
    compute_lla_difference
    resample_state
    compute_state_difference
    mat_en_from_ll
    mat_from_rph
    mat_to_rph
    quat_from_rph
    quat_to_rph
    mat_from_quat
    quat_from_mat
"""
import numpy as np
import pandas as pd
from scipy.interpolate import interp1d
from scipy.spatial.transform import Rotation, Slerp
from .util import LLA_COLS, VEL_COLS, RPH_COLS, RATE_COLS
from . import earth, util

#: Degrees to radians.
DEG_TO_RAD = np.pi / 180
#: Radians to degrees.
RAD_TO_DEG = 1 / DEG_TO_RAD
#: Degrees per hour to radians per second.
DH_TO_RS = DEG_TO_RAD / 3600
#: Degrees per root-hour to radians per root-second.
DRH_TO_RRS = DEG_TO_RAD / 60


def lla_to_ecef(lla):
    """Convert latitude, longitude, altitude into ECEF Cartesian coordinates.

    Parameters
    ----------
    lla : array_like, shape (3,) or (n, 3)
        Latitude, longitude and altitude values.

    Returns
    -------
    r_e : ndarray, shape (3,) or (n, 3)
        Cartesian coordinates in ECEF frame.
    """
    lat, lon, alt = np.asarray(lla).T

    sin_lat = np.sin(np.deg2rad(lat))
    cos_lat = np.cos(np.deg2rad(lat))
    sin_lon = np.sin(np.deg2rad(lon))
    cos_lon = np.cos(np.deg2rad(lon))

    _, re, _ = earth.principal_radii(lat, 0)
    r_e = np.empty((3,) + lat.shape)
    r_e[0] = (re + alt) * cos_lat * cos_lon
    r_e[1] = (re + alt) * cos_lat * sin_lon
    r_e[2] = ((1 - earth.E2) * re + alt) * sin_lat

    return r_e.transpose()


def perturb_lla(lla, dr_n):
    """Perturb latitude, longitude and altitude.

    This function recomputes linear displacements in meters to changes in a
    latitude and longitude considering Earth curvature. The computation is
    approximate and valid for displacements much smaller than Earth radius.

    Parameters
    ----------
    lla : array_like, shape (3,) or (n, 3)
        Latitude, longitude and altitude.
    dr_n : array_like, shape (3,) or (n, 3)
        Perturbation values in meters resolved in NED frame.

    Returns
    -------
    lla_new : ndarray, shape (3,) or (n, 3)
        Perturbed values of latitude, longitude and altitude.
    """
    lla = np.asarray(lla, dtype=float)
    dr_n = np.asarray(dr_n, dtype=float)
    return_single = lla.ndim == 1 and dr_n.ndim == 1

    lla = np.atleast_2d(lla).copy()
    dr_n = np.atleast_2d(dr_n)

    rn, _, rp = earth.principal_radii(lla[:, 0], lla[:, 2])

    lla[:, 0] += np.rad2deg(dr_n[:, 0] / rn)
    lla[:, 1] += np.rad2deg(dr_n[:, 1] / rp)
    lla[:, 2] -= dr_n[:, 2]

    return lla[0] if return_single else lla


def translate_trajectory(trajectory, translation_b):
    """Translate trajectory by a vector expressed in body frame.

    This is how the position and velocity of a GNSS antenna displaced from the IMU
    by a lever arm are obtained.

    Parameters
    ----------
    trajectory : Trajectory or Pva
        Either trajectory or position-velocity-attitude.
        If has columns 'rate_x', 'rate_y', 'rate_z', velocity will be adjusted by
        rotation effect.
    translation_b : array_like, shape (3,)
        Translation vector expressed in body frame.

    Returns
    -------
    Trajectory or Pva
        Translated trajectory or position-velocity-attitude.
    """
    mat_nb = mat_from_rph(trajectory[RPH_COLS])
    result = trajectory.copy()
    result[LLA_COLS] = perturb_lla(result[LLA_COLS],
                                   util.mv_prod(mat_nb, translation_b))
    if all(col in trajectory for col in RATE_COLS):
        result[VEL_COLS] += util.mv_prod(
            mat_nb, np.cross(trajectory[RATE_COLS], translation_b))
    return result


def compute_lla_difference(lla1, lla2):
    """Compute difference between lla points resolved in NED in meters.

    Parameters
    ----------
    lla1, lla2 : array_like
        Points with latitude, longitude and altitude.

    Returns
    -------
    dr_n : ndarray
        Difference in meters resolved in NED.
    """
    lla1 = np.asarray(lla1, dtype=float)
    lla2 = np.asarray(lla2, dtype=float)
    single = lla1.ndim == 1 and lla2.ndim == 1
    lla1 = np.atleast_2d(lla1)
    lla2 = np.atleast_2d(lla2)
    rn, _, rp = earth.principal_radii(0.5 * (lla1[:, 0] + lla2[:, 0]),
                                      0.5 * (lla1[:, 2] + lla2[:, 2]))
    diff = lla1 - lla2
    result = np.empty_like(diff)
    result[:, 0] = np.deg2rad(diff[:, 0]) * rn
    result[:, 1] = np.deg2rad(diff[:, 1]) * rp
    result[:, 2] = -diff[:, 2]
    return result[0] if single else result


def _has_rph(data):
    return all(col in data for col in RPH_COLS)


def resample_state(state, times):
    """Compute state values at new set of time values.

    Piecewise linear interpolation is used with special care for rotation
    ('roll', 'pitch', 'heading' columns), for which SLERP is used.

    Parameters
    ----------
    state : DataFrame
        State data indexed by time.
    times : array_like
        Values of time at which compute new state values. Values outside the original
        time span of `state` will be discarded.

    Returns
    -------
    DataFrame
        Resampled state values.
    """
    times = np.sort(np.asarray(times, dtype=float))
    times = times[(times >= state.index[0]) & (times <= state.index[-1])]

    result = pd.DataFrame(index=pd.Index(times, name=state.index.name))
    if _has_rph(state):
        slerp = Slerp(state.index, Rotation.from_euler('xyz', state[RPH_COLS], True))
        result[RPH_COLS] = slerp(times).as_euler('xyz', True)

    other_columns = state.columns.difference(RPH_COLS)
    if len(other_columns) > 0:
        interpolator = interp1d(state.index, state[other_columns].values, axis=0)
        result[other_columns] = interpolator(times)
    return result[state.columns]


def compute_state_difference(first, second):
    """Compute difference between two state data frames indexed by time.

    If both inputs are DataFrame, the function synchronizes data to the common time
    index using `resample_state`. The interpolation is done for the dataframe with more
    frequent data (to reduce average interpolation period).

    For columns 'lat', 'lon', 'alt', the difference is computed in meters
    resolved in NED frame. For columns 'roll', 'pitch' and 'heading' the difference
    is reduced to [-180, 180] range.

    Parameters
    ----------
    first, second : DataFrame or Series
        State data to compute the difference between.

    Returns
    -------
    DataFrame
        Computed difference.
    """
    def has_lla(data):
        return all(col in data for col in LLA_COLS)

    if isinstance(first, pd.DataFrame) and isinstance(second, pd.DataFrame):
        if np.median(np.diff(first.index)) < np.median(np.diff(second.index)):
            result_sign = -1.0
            first, second = second, first
        else:
            result_sign = 1.0

        index = first.index
        index = index[(index >= second.index[0]) & (index <= second.index[-1])]
        columns = first.columns.intersection(second.columns)

        first = first.loc[index, columns]
        second = resample_state(second[columns], index)
    elif isinstance(first, pd.Series) and isinstance(second, pd.Series):
        result_sign = 1.0
    else:
        raise ValueError("Both inputs must be either DataFrame or Series")

    difference = first - second
    if has_lla(difference):
        rn, _, rp = earth.principal_radii(0.5 * (first.lat + second.lat),
                                          0.5 * (first.alt + second.alt))
        difference.lat *= rn * DEG_TO_RAD
        difference.lon *= rp * DEG_TO_RAD
        difference.alt *= -1
        difference = difference.rename(
            {'lat': 'north', 'lon': 'east', 'alt': 'down'},
            axis=1 if isinstance(difference, pd.DataFrame) else 0)

    if _has_rph(difference):
        difference[RPH_COLS] = util.to_180_range(difference[RPH_COLS])

    return result_sign * difference


def mat_en_from_ll(lat, lon):
    """Create a rotation matrix projecting from NED to ECEF frame.

    Parameters
    ----------
    lat, lon : float or array_like, shape (n,)
        Latitude and longitude.

    Returns
    -------
    ndarray, shape (3, 3) or (n, 3, 3)
        Rotation matrices.
    """
    lat = np.asarray(lat)
    lon = np.asarray(lon)

    if lat.ndim == 0 and lon.ndim == 0:
        return Rotation.from_euler('ZY', [lon, -90 - lat], degrees=True).as_matrix()

    lat = np.atleast_1d(lat)
    lon = np.atleast_1d(lon)

    n = max(len(lat), len(lon))
    angles = np.empty((n, 2))
    angles[:, 0] = lon
    angles[:, 1] = -90 - lat
    return Rotation.from_euler('ZY', angles, degrees=True).as_matrix()


def mat_from_rph(rph):
    """Create a rotation matrix from roll, pitch and heading.

    Parameters
    ----------
    rph : array_like, shape (3,) or (n, 3)
        Roll, pitch and heading.

    Returns
    -------
    ndarray, shape (3, 3) or (n, 3, 3)
        Rotation matrices.
    """
    return Rotation.from_euler('xyz', rph, degrees=True).as_matrix()


def mat_to_rph(mat):
    """Convert a rotation matrix to roll, pitch and heading angles.

    Parameters
    ----------
    mat : array_like, shape (3, 3) or (n, 3, 3)
        Rotation matrices.

    Returns
    -------
    ndarray, with shape (3,) or (n, 3)
        Roll, pitch and heading angles.
    """
    return Rotation.from_matrix(mat).as_euler('xyz', degrees=True)


def _to_scalar_first(quat):
    return np.roll(quat, 1, axis=-1)


def _to_scalar_last(quat):
    return np.roll(np.asarray(quat, dtype=float), -1, axis=-1)


def quat_from_rph(rph):
    """Create a quaternion from roll, pitch and heading.

    Parameters
    ----------
    rph : array_like, shape (3,) or (n, 3)
        Roll, pitch and heading.

    Returns
    -------
    ndarray, shape (4,) or (n, 4)
        Unit quaternions in scalar-first order.
    """
    quat = Rotation.from_euler('xyz', rph, degrees=True).as_quat()
    return _to_scalar_first(quat)


def quat_to_rph(quat):
    """Convert a quaternion to roll, pitch and heading angles.

    Parameters
    ----------
    quat : array_like, shape (4,) or (n, 4)
        Quaternions in scalar-first order, normalized internally.

    Returns
    -------
    ndarray, with shape (3,) or (n, 3)
        Roll, pitch and heading angles.
    """
    return Rotation.from_quat(_to_scalar_last(quat)).as_euler('xyz', degrees=True)


def mat_from_quat(quat):
    """Convert a scalar-first quaternion to a rotation matrix."""
    return Rotation.from_quat(_to_scalar_last(quat)).as_matrix()


def quat_from_mat(mat):
    """Convert a rotation matrix to a scalar-first quaternion."""
    return _to_scalar_first(Rotation.from_matrix(mat).as_quat())
