"""Kalman filter functions.

Module contains abstract functions for linear Kalman filter operations.
Refer to [1]_ for the theory of Kalman filters.

Functions
---------
.. autosummary::
    :toctree: generated/

    compute_process_matrices
    predict
    correct
    check_covariance

References
----------
.. [1] P\. S\. Maybeck, "Stochastic Models, Estimation and Control", volume 1
"""
import numpy as np
from scipy.linalg import cholesky, cho_solve, solve_triangular, expm, LinAlgError
from .errors import NumericInstability


#: Relative tolerance used in covariance checks.
COVARIANCE_TOLERANCE = 1e-9


def compute_process_matrices(F, Q, dt):
    """Compute discrete process matrices for Kalman filter prediction.

    The algorithm with matrix exponential described in [1]_ is used.

    Parameters
    ----------
    F : ndarray, shape (n_states, n_states)
        Continuous process transition matrix.
    Q : ndarray, shape (n_states, n_states)
        Continuous process noise matrix.
    dt : float
        Time step.

    Returns
    -------
    Phi : ndarray, shape (n_states, n_states)
        State transition matrix.
    Qd : ndarray, shape (n_states, n_states)
        Discrete process noise matrix.

    References
    ----------
    .. [1] Charles F. van Loan, "Computing Integrals Involving the Matrix Exponential"
    """
    n = len(F)
    H = np.zeros((2 * n, 2 * n))
    H[:n, :n] = F
    H[:n, n:] = Q
    H[n:, n:] = -F.T
    H = expm(H * dt)
    Phi = H[:n, :n]
    Qd = H[:n, n:] @ Phi.T
    return Phi, 0.5 * (Qd + Qd.T)


def predict(P, Phi, Qd):
    """Propagate covariance matrix to the next time step.

    Parameters
    ----------
    P : ndarray, shape (n_states, n_states)
        Covariance matrix.
    Phi : ndarray, shape (n_states, n_states)
        State transition matrix.
    Qd : ndarray, shape (n_states, n_states)
        Discrete process noise matrix.

    Returns
    -------
    ndarray, shape (n_states, n_states)
        Propagated and symmetrized covariance matrix.
    """
    P = Phi @ P @ Phi.T + Qd
    return 0.5 * (P + P.T)


def correct(x, P, z, H, R):
    """Perform Kalman correction.

    The correction obtains a posteriori state and covariance given measurement
    of the form::

        z = H @ x + v, with v ~ N(0, R)

    The covariance is updated in Joseph form.

    Parameters
    ----------
    x : ndarray, shape (n_states,)
        State vector.
    P : ndarray, shape (n_states, n_states)
        Covariance matrix.
    z : ndarray, shape (n_obs,)
        Observation vector.
    H : ndarray, shape (n_obs, n_states)
        Matrix which relates state and measurement vectors.
    R : ndarray, shape (n_obs, n_obs)
        Positive semi-definite measurement noise matrix.

    Returns
    -------
    x : ndarray, shape (n_states,)
        Corrected state vector.
    P : ndarray, shape (n_states, n_states)
        A posteriori covariance matrix.
    innovation : ndarray, shape (n_obs,)
        Standardized innovation vector with theoretical zero mean and identity
        covariance matrix.

    Raises
    ------
    NumericInstability
        If the innovation covariance ``H @ P @ H.T + R`` is not positive definite.
    """
    HP = H @ P
    S = HP @ H.T + R

    e = z - H.dot(x)
    try:
        L = cholesky(S, lower=True)
    except LinAlgError:
        raise NumericInstability("Innovation covariance is not positive definite")
    K = cho_solve((L, True), HP, overwrite_b=True).T
    U = np.eye(len(x)) - K.dot(H)
    P = U.dot(P).dot(U.T) + K.dot(R).dot(K.T)

    return (x + K @ e, 0.5 * (P + P.T),
            solve_triangular(L, e, lower=True))


def check_covariance(P, epoch=None, time=None):
    """Verify that a covariance matrix is symmetric and positive semi-definite.

    Parameters
    ----------
    P : ndarray, shape (n_states, n_states)
        Covariance matrix.
    epoch : int or None, optional
        Epoch index to report.
    time : float or None, optional
        Epoch time to report.

    Raises
    ------
    NumericInstability
        If the matrix contains non-finite values, is not symmetric or has
        negative eigenvalues beyond rounding errors.
    """
    if not np.all(np.isfinite(P)):
        raise NumericInstability("Covariance contains non-finite values", epoch, time)
    scale = max(np.max(np.abs(np.diag(P))), np.finfo(float).tiny)
    if np.max(np.abs(P - P.T)) > COVARIANCE_TOLERANCE * scale:
        raise NumericInstability("Covariance is not symmetric", epoch, time)
    if np.min(np.linalg.eigvalsh(P)) < -COVARIANCE_TOLERANCE * scale:
        raise NumericInstability("Covariance is not positive semi-definite",
                                 epoch, time)
