"""Utility functions.

Functions
---------
.. autosummary::
    :toctree: generated

    mm_prod
    mm_prod_symmetric
    mv_prod
    skew_matrix
    compute_rms
    to_180_range
    to_triad
    check_time_index
"""
import numpy as np
import pandas as pd
from .errors import ValidationError


LLA_COLS = ['lat', 'lon', 'alt']
VEL_COLS = ['VN', 'VE', 'VD']
RPH_COLS = ['roll', 'pitch', 'heading']
RATE_COLS = ['rate_x', 'rate_y', 'rate_z']
GYRO_COLS = ['gyro_x', 'gyro_y', 'gyro_z']
ACCEL_COLS = ['accel_x', 'accel_y', 'accel_z']
THETA_COLS = ['theta_x', 'theta_y', 'theta_z']
DV_COLS = ['dv_x', 'dv_y', 'dv_z']
NED_COLS = ['north', 'east', 'down']
TRAJECTORY_COLS = LLA_COLS + VEL_COLS + RPH_COLS
TRAJECTORY_ERROR_COLS = NED_COLS + VEL_COLS + RPH_COLS
GNSS_COLS = LLA_COLS + VEL_COLS
IMU_COLS = GYRO_COLS + ACCEL_COLS
INDEX_TO_XYZ = {0: 'x', 1: 'y', 2: 'z'}


def mm_prod(a, b, at=False, bt=False):
    """Compute products of multiple matrices stored in a stack.

    Parameters
    ----------
    a, b : array_like with 2 or 3 dimensions
        Single matrix or stack of matrices. Matrices are stored in the two
        trailing dimensions. If one of the arrays is 2-D and another is
        3-D then broadcasting along the 0-th axis is applied.
    at, bt : bool, optional
        Whether to use transpose of `a` and `b` respectively.

    Returns
    -------
    ndarray
        Computed products.
    """
    a = np.asarray(a)
    b = np.asarray(b)

    if a.ndim not in [2, 3]:
        raise ValueError("Wrong number of dimensions in `a`.")
    if b.ndim not in [2, 3]:
        raise ValueError("Wrong number of dimensions in `b`.")

    if at:
        a = np.swapaxes(a, -1, -2)
    if bt:
        b = np.swapaxes(b, -1, -2)

    return np.einsum("...ij,...jk->...ik", a, b)


def mm_prod_symmetric(a, b):
    """Compute ``a @ b @ a.T`` for stacks of matrices."""
    return mm_prod(mm_prod(a, b), a, bt=True)


def mv_prod(a, b, at=False):
    """Compute products of multiple matrices and vectors stored in a stack.

    Parameters
    ----------
    a : array_like with 2 or 3 dimensions
        Single matrix or stack of matrices. Matrices are stored in the two
        trailing dimensions.
    b : array_like with 1 or 2 dimensions
        Single vector or stack of vectors. Vectors are stored in the trailing
        dimension.
    at : bool, optional
        Whether to use transpose of `a`.

    Returns
    -------
    ndarray
        Computed products.
    """
    a = np.asarray(a)
    b = np.asarray(b)

    if a.ndim not in [2, 3]:
        raise ValueError("Wrong number of dimensions in `a`.")
    if b.ndim not in [1, 2]:
        raise ValueError("Wrong number of dimensions in `b`.")

    if at:
        a = np.swapaxes(a, -1, -2)

    return np.einsum("...ij,...j->...i", a, b)


def skew_matrix(vec):
    """Create a skew matrix corresponding to a vector.

    Parameters
    ----------
    vec : array_like, shape (3,) or (n, 3)
        Vector.

    Returns
    -------
    ndarray, shape (3, 3) or (n, 3, 3)
        Corresponding skew matrix, such that ``skew_matrix(a) @ b`` is equal to
        ``np.cross(a, b)``.
    """
    vec = np.asarray(vec, dtype=float)
    single = vec.ndim == 1
    vec = np.atleast_2d(vec)
    result = np.zeros((len(vec), 3, 3))
    result[:, 0, 1] = -vec[:, 2]
    result[:, 0, 2] = vec[:, 1]
    result[:, 1, 0] = vec[:, 2]
    result[:, 1, 2] = -vec[:, 0]
    result[:, 2, 0] = -vec[:, 1]
    result[:, 2, 1] = vec[:, 0]
    return result[0] if single else result


def compute_rms(data):
    """Compute root-mean-square of data along 0 axis."""
    return np.mean(np.square(data), axis=0) ** 0.5


def to_180_range(angle):
    """Reduce angle in degrees to the range of [-180, 180]."""
    is_pandas = isinstance(angle, (pd.Series, pd.DataFrame))
    if not is_pandas:
        angle = np.asarray(angle)
    result = angle % 360
    if is_pandas or result.ndim > 0:
        result[result > 180] -= 360
    elif result > 180:
        result -= 360
    return result


def to_triad(value, name, allow_inf=False):
    """Convert a sensor triad parameter to an array with 3 elements.

    Parameters
    ----------
    value : float or array_like, shape (3,)
        Parameter value, a float is used for all 3 axes.
    name : str
        Parameter name for error messages.
    allow_inf : bool, optional
        Whether infinite values are accepted. Default is False.

    Returns
    -------
    ndarray, shape (3,)
        Parameter value for each axis.
    """
    value = np.asarray(value, dtype=float)
    if value.ndim == 0:
        value = np.resize(value, 3)
    if value.shape != (3,):
        raise ValidationError(f"`{name}` must be float or array with shape (3,)")
    if np.any(np.isnan(value)):
        raise ValidationError(f"`{name}` must not contain NaN")
    if not allow_inf and not np.all(np.isfinite(value)):
        raise ValidationError(f"`{name}` must be finite")
    return value


def check_time_index(data, name, min_length=2):
    """Verify that data is indexed by strictly increasing time.

    Parameters
    ----------
    data : DataFrame
        Data to check.
    name : str
        Name used in error messages.
    min_length : int, optional
        Minimum number of rows. Default is 2.
    """
    if len(data) < min_length:
        raise ValidationError(f"`{name}` must contain at least {min_length} rows")
    if np.any(np.diff(np.asarray(data.index, dtype=float)) <= 0):
        raise ValidationError(f"`{name}` must be indexed by strictly increasing time")


class Bunch(dict):
    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)

    __setattr__ = dict.__setitem__
    __delattr__ = dict.__delitem__

    def __repr__(self):
        if self.keys():
            m = max(map(len, list(self.keys()))) + 1
            return '\n'.join(['{}: {}'.format(k.rjust(m), type(v))
                              for k, v in self.items()])
        else:
            return self.__class__.__name__ + "()"

    def __dir__(self):
        return list(self.keys())
