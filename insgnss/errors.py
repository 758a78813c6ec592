"""Exceptions raised by insgnss.

Classes
-------
.. autosummary::
    :toctree: generated/

    ValidationError
    SynchronizationError
    NumericInstability
"""


class ValidationError(ValueError):
    """Malformed input detected before any processing starts.

    Raised for negative variances, non-positive frequencies, mismatched series
    lengths, unknown modes and similar problems with the supplied parameters.
    """


class SynchronizationError(ValueError):
    """IMU and GNSS time bases do not overlap within the tolerance."""


class NumericInstability(RuntimeError):
    """Filter covariance became invalid.

    Raised when the error covariance loses symmetry or positive
    semi-definiteness, or when the innovation covariance of a measurement update
    is singular. The condition indicates a modelling error, so the run is
    aborted.

    Parameters
    ----------
    message : str
        Description of the condition.
    epoch : int or None, optional
        Index of the IMU epoch at which the condition was detected.
    time : float or None, optional
        Time of the epoch.
    """
    def __init__(self, message, epoch=None, time=None):
        if epoch is not None:
            message = f"{message} (epoch {epoch}, time {time})"
        super().__init__(message)
        self.epoch = epoch
        self.time = time
