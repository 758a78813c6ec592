"""Zero velocity detection.

A vehicle is considered stationary when the speed reported by GNSS stays below
a threshold during a time window. Such intervals are used to apply zero velocity
pseudo-measurements (ZUPT) in a navigation filter.

Functions
---------
.. autosummary::
    :toctree: generated/

    detect_zupt

Classes
-------
.. autosummary::
    :toctree: generated/

    ZuptDetector
"""
from collections import deque
import numpy as np
from .errors import ValidationError
from .util import VEL_COLS


def _check_parameters(threshold, window):
    if not threshold >= 0:
        raise ValidationError("`threshold` must be non-negative")
    if not window > 0:
        raise ValidationError("`window` must be positive")


def _is_stationary(times, speed, threshold, window):
    if len(times) < 2:
        return False
    period = np.median(np.diff(times))
    span = times[-1] - times[0] + period
    if span < window and not np.isclose(span, window):
        return False
    return np.max(speed) < threshold


def detect_zupt(velocity, threshold, window):
    """Detect whether the vehicle is stationary at the end of a velocity series.

    Samples within the last `window` seconds are considered. The window counts as
    filled when its span plus one sampling period reaches `window`.

    Parameters
    ----------
    velocity : DataFrame
        Velocity indexed by time with columns 'VN', 'VE' and 'VD'.
    threshold : float
        Speed threshold in m/s.
    window : float
        Window duration in seconds.

    Returns
    -------
    bool
        True if the window is filled and the speed stays below `threshold`
        within it.
    """
    _check_parameters(threshold, window)
    times = np.asarray(velocity.index, dtype=float)
    if len(times) == 0:
        return False
    mask = times > times[-1] - window
    speed = np.linalg.norm(velocity[VEL_COLS].values[mask], axis=1)
    return bool(_is_stationary(times[mask], speed, threshold, window))


class ZuptDetector:
    """Online zero velocity detector.

    Keeps a buffer of velocity samples over the last `window` seconds.

    Parameters
    ----------
    threshold : float
        Speed threshold in m/s.
    window : float
        Window duration in seconds.
    """
    def __init__(self, threshold, window):
        _check_parameters(threshold, window)
        self.threshold = threshold
        self.window = window
        self.times = deque()
        self.speed = deque()

    def reset(self):
        """Clear the buffer."""
        self.times.clear()
        self.speed.clear()

    def update(self, time, velocity_n):
        """Add a sample and check whether the vehicle is stationary.

        Parameters
        ----------
        time : float
            Sample time, must be greater than the previous one.
        velocity_n : array_like, shape (3,)
            Velocity in NED frame.

        Returns
        -------
        bool
            Detection result with the sample added.
        """
        if self.times and time <= self.times[-1]:
            raise ValidationError("`time` must be increasing between calls")
        self.times.append(time)
        self.speed.append(np.linalg.norm(velocity_n))
        while self.times[0] <= time - self.window:
            self.times.popleft()
            self.speed.popleft()
        return bool(_is_stationary(np.array(self.times), np.array(self.speed),
                                   self.threshold, self.window))
