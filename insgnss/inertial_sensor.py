"""Stochastic error models of inertial sensors.

Manufacturers specify errors of gyros and accelerometers in mixed practical units:
random walks in deg/sqrt(h) or m/s/sqrt(h), biases in deg/s or mg and so on.
This module converts such specifications into SI parameters of stochastic processes
which are used both to synthesize sensor readings and to set up the process noise
of navigation Kalman filters.

The error of each sensor triad is modelled as a sum of:

    - white noise with the intensity given by the random walk parameter
    - random constant turn-on bias
    - bias drift as a first order Gauss-Markov process (`GaussMarkov`)
    - optional rate random walk (integrated white noise)

Classes
-------
.. autosummary::
    :toctree: generated/

    ImuSpec
    ImuErrorModel
    GaussMarkov

Functions
---------
.. autosummary::
    :toctree: generated/

    derive_error_model
    generate_random_walk
"""
import logging
import numpy as np
from scipy.signal import lfilter
from scipy._lib._util import check_random_state
from . import earth, transform, util
from .errors import ValidationError


logger = logging.getLogger(__name__)

#: Milli-g to m/s^2.
MG_TO_MPS2 = 1e-3 * earth.G0

WHITE = 'white'
GAUSS_MARKOV = 'gauss_markov'
CONSTANT = 'constant'


class GaussMarkov:
    """First order Gauss-Markov process for a sensor triad.

    For each axis the process follows the recursion::

        b[k + 1] = b[k] * exp(-dt / tau) + w[k]

    where ``w[k]`` is zero-mean normal noise with variance
    ``sd ** 2 * (1 - exp(-2 * dt / tau))``, so that the stationary standard deviation
    is `sd` for any sampling period. The first sample is drawn from the stationary
    distribution.

    The limiting values of `tau` are treated as separate process kinds:

        - 'white' (``tau == 0``) - independent normal samples with standard
          deviation `sd`
        - 'constant' (``tau == inf``) - a random constant with standard deviation
          `sd`

    Parameters
    ----------
    sd : float or array_like, shape (3,)
        Stationary standard deviation.
    tau : float or array_like, shape (3,)
        Correlation time in seconds, 0 and infinity are allowed.

    Attributes
    ----------
    sd, tau : ndarray, shape (3,)
        Parameters saved from the constructor.
    kinds : list of str
        Process kind for each axis: 'white', 'gauss_markov' or 'constant'.
    """
    def __init__(self, sd, tau):
        sd = util.to_triad(sd, 'sd')
        tau = util.to_triad(tau, 'tau', allow_inf=True)
        if np.any(sd < 0):
            raise ValidationError("`sd` must be non-negative")
        if np.any(tau < 0):
            raise ValidationError("`tau` must be non-negative")

        kinds = []
        for axis in range(3):
            if tau[axis] == 0:
                kind = WHITE
            elif np.isinf(tau[axis]):
                kind = CONSTANT
            else:
                kind = GAUSS_MARKOV
            if kind != GAUSS_MARKOV and sd[axis] > 0:
                logger.info("Correlation time %s for axis %s, modelling the drift "
                            "as %s", tau[axis], util.INDEX_TO_XYZ[axis], kind)
            kinds.append(kind)

        self.sd = sd
        self.tau = tau
        self.kinds = kinds

    def _mask(self, kind):
        return np.array([k == kind for k in self.kinds])

    @property
    def decay_rate(self):
        """Coefficient ``1 / tau`` of the continuous model, zero when degenerate."""
        result = np.zeros(3)
        mask = self._mask(GAUSS_MARKOV)
        result[mask] = 1 / self.tau[mask]
        return result

    @property
    def noise_psd(self):
        """PSD of the continuous driving noise, ``2 * sd ** 2 / tau``."""
        result = np.zeros(3)
        mask = self._mask(GAUSS_MARKOV)
        result[mask] = 2 * self.sd[mask] ** 2 / self.tau[mask]
        return result

    def white_psd(self, dt):
        """Compute PSD of white noise equivalent to 'white' kind axes.

        Parameters
        ----------
        dt : float
            Sampling period of the sensor.

        Returns
        -------
        ndarray, shape (3,)
            ``sd ** 2 * dt`` for 'white' axes and zero for the others.
        """
        result = np.zeros(3)
        mask = self._mask(WHITE)
        result[mask] = self.sd[mask] ** 2 * dt
        return result

    def generate(self, n_samples, dt, rng=None):
        """Generate a sample sequence of the process.

        Parameters
        ----------
        n_samples : int
            Number of samples.
        dt : float
            Sampling period.
        rng : None, int, `numpy.random.RandomState` or `numpy.random.Generator`
            Seed to create or already created random generator. None (default)
            corresponds to nondeterministic seeding.

        Returns
        -------
        ndarray, shape (n_samples, 3)
            Generated samples.
        """
        if n_samples < 1:
            raise ValidationError("`n_samples` must be positive")
        if dt <= 0:
            raise ValidationError("`dt` must be positive")

        rng = check_random_state(rng)
        noise = rng.standard_normal((n_samples, 3))
        result = np.empty((n_samples, 3))
        for axis in range(3):
            sd = self.sd[axis]
            kind = self.kinds[axis]
            if kind == WHITE:
                result[:, axis] = sd * noise[:, axis]
            elif kind == CONSTANT:
                result[:, axis] = sd * noise[0, axis]
            else:
                phi = np.exp(-dt / self.tau[axis])
                w = sd * np.sqrt(1 - phi ** 2) * noise[:, axis]
                w[0] = sd * noise[0, axis]
                result[:, axis] = lfilter([1.0], [1.0, -phi], w)
        return result


def generate_random_walk(n_samples, dt, density, rng=None):
    """Generate a random walk sequence.

    Parameters
    ----------
    n_samples : int
        Number of samples.
    dt : float
        Sampling period.
    density : float or array_like, shape (3,)
        Root PSD of the integrated white noise, the walk grows as
        ``density * sqrt(t)``.
    rng : None, int, `numpy.random.RandomState` or `numpy.random.Generator`
        Seed to create or already created random generator. None (default)
        corresponds to nondeterministic seeding.

    Returns
    -------
    ndarray, shape (n_samples, 3)
        Random walk starting from zero.
    """
    density = util.to_triad(density, 'density')
    rng = check_random_state(rng)
    steps = density * dt ** 0.5 * rng.standard_normal((n_samples, 3))
    steps[0] = 0
    return np.cumsum(steps, axis=0)


class ImuSpec:
    """IMU error specification in manufacturer units.

    Each triad parameter can be a float (same for all axes) or an array with 3
    elements.

    Parameters
    ----------
    arw : float or array_like
        Angle random walk in deg/sqrt(h).
    vrw : float or array_like
        Velocity random walk in m/s/sqrt(h).
    gb_fix : float or array_like
        Gyro turn-on (static) bias in deg/s.
    ab_fix : float or array_like
        Accelerometer turn-on (static) bias in mg.
    gb_drift : float or array_like
        Gyro bias instability (drift) in deg/s.
    ab_drift : float or array_like
        Accelerometer bias instability (drift) in mg.
    gb_corr, ab_corr : float or array_like
        Correlation times of the gyro and accelerometer bias drifts in seconds.
        0 means white noise and infinity means a random constant.
    freq : float
        Sampling frequency in Hz.
    arrw : float or array_like, optional
        Angle rate random walk in deg/sqrt(h)/s. Default is 0.
    vrrw : float or array_like, optional
        Velocity rate random walk in m/s/sqrt(h)/s. Default is 0.
    """
    def __init__(self, arw, vrw, gb_fix, ab_fix, gb_drift, ab_drift, gb_corr,
                 ab_corr, freq, arrw=0, vrrw=0):
        self.arw = arw
        self.vrw = vrw
        self.gb_fix = gb_fix
        self.ab_fix = ab_fix
        self.gb_drift = gb_drift
        self.ab_drift = ab_drift
        self.gb_corr = gb_corr
        self.ab_corr = ab_corr
        self.freq = freq
        self.arrw = arrw
        self.vrrw = vrrw

    def __repr__(self):
        return (f"ImuSpec(arw={self.arw}, vrw={self.vrw}, gb_fix={self.gb_fix}, "
                f"ab_fix={self.ab_fix}, gb_drift={self.gb_drift}, "
                f"ab_drift={self.ab_drift}, gb_corr={self.gb_corr}, "
                f"ab_corr={self.ab_corr}, freq={self.freq})")


class ImuErrorModel:
    """IMU error model in SI units.

    Instances are created by `derive_error_model`.

    Attributes
    ----------
    freq, dt : float
        Sampling frequency and period.
    arw, vrw : ndarray, shape (3,)
        Random walks in rad/sqrt(s) and m/s/sqrt(s), which are also root PSDs of
        white noise in the rate readings.
    arrw, vrrw : ndarray, shape (3,)
        Rate random walks in rad/s/sqrt(s) and m/s^2/sqrt(s).
    g_std, a_std : ndarray, shape (3,)
        Standard deviations of white noise in a single gyro and accelerometer sample.
    gb_fix, ab_fix : ndarray, shape (3,)
        Turn-on biases in rad/s and m/s^2. Simulated sensors apply them as
        constants, the filter uses them as standard deviations of the initial
        bias uncertainty.
    gb_drift, ab_drift : ndarray, shape (3,)
        Steady-state standard deviations of bias drifts in rad/s and m/s^2.
    gb_corr, ab_corr : ndarray, shape (3,)
        Correlation times of bias drifts.
    gb_psd, ab_psd : ndarray, shape (3,)
        Root PSD of the noise driving the bias drifts.
    gyro_drift, accel_drift : `GaussMarkov`
        Bias drift processes.
    """
    def __init__(self, freq, dt, arw, vrw, arrw, vrrw, gb_fix, ab_fix, gyro_drift,
                 accel_drift):
        self.freq = freq
        self.dt = dt
        self.arw = arw
        self.vrw = vrw
        self.arrw = arrw
        self.vrrw = vrrw
        self.g_std = arw / dt ** 0.5
        self.a_std = vrw / dt ** 0.5
        self.gb_fix = gb_fix
        self.ab_fix = ab_fix
        self.gyro_drift = gyro_drift
        self.accel_drift = accel_drift
        self.gb_drift = gyro_drift.sd
        self.ab_drift = accel_drift.sd
        self.gb_corr = gyro_drift.tau
        self.ab_corr = accel_drift.tau
        self.gb_psd = gyro_drift.noise_psd ** 0.5
        self.ab_psd = accel_drift.noise_psd ** 0.5

    @property
    def gyro_bias_sd(self):
        """Initial standard deviation of the total gyro bias."""
        return (self.gb_fix ** 2 + self.gb_drift ** 2) ** 0.5

    @property
    def accel_bias_sd(self):
        """Initial standard deviation of the total accelerometer bias."""
        return (self.ab_fix ** 2 + self.ab_drift ** 2) ** 0.5


def _non_negative_triad(value, name, allow_inf=False):
    value = util.to_triad(value, name, allow_inf)
    if np.any(value < 0):
        raise ValidationError(f"`{name}` must be non-negative")
    return value


def derive_error_model(spec, sample_period=None):
    """Convert IMU specification to the SI error model.

    Parameters
    ----------
    spec : `ImuSpec`
        Specification in manufacturer units.
    sample_period : float or None, optional
        Sampling period. If None (default), computed as ``1 / spec.freq``.

    Returns
    -------
    `ImuErrorModel`
        Error model in SI units.
    """
    if not spec.freq > 0:
        raise ValidationError("`freq` must be positive")
    if sample_period is None:
        sample_period = 1 / spec.freq
    elif not sample_period > 0:
        raise ValidationError("`sample_period` must be positive")

    arw = _non_negative_triad(spec.arw, 'arw') * transform.DRH_TO_RRS
    vrw = _non_negative_triad(spec.vrw, 'vrw') / 60
    arrw = _non_negative_triad(spec.arrw, 'arrw') * transform.DRH_TO_RRS
    vrrw = _non_negative_triad(spec.vrrw, 'vrrw') / 60
    gb_fix = _non_negative_triad(spec.gb_fix, 'gb_fix') * transform.DEG_TO_RAD
    ab_fix = _non_negative_triad(spec.ab_fix, 'ab_fix') * MG_TO_MPS2
    gb_drift = _non_negative_triad(spec.gb_drift, 'gb_drift') * transform.DEG_TO_RAD
    ab_drift = _non_negative_triad(spec.ab_drift, 'ab_drift') * MG_TO_MPS2
    gb_corr = _non_negative_triad(spec.gb_corr, 'gb_corr', allow_inf=True)
    ab_corr = _non_negative_triad(spec.ab_corr, 'ab_corr', allow_inf=True)

    return ImuErrorModel(spec.freq, sample_period, arw, vrw, arrw, vrrw, gb_fix,
                         ab_fix, GaussMarkov(gb_drift, gb_corr),
                         GaussMarkov(ab_drift, ab_corr))


def adis16405(freq=100):
    """ADIS16405 IMU specification, a low grade MEMS unit."""
    return ImuSpec(arw=2, vrw=0.2, gb_fix=3, ab_fix=50, gb_drift=0.007,
                   ab_drift=0.2, gb_corr=100, ab_corr=100, freq=freq)


def adis16488(freq=100):
    """ADIS16488 IMU specification, a tactical grade MEMS unit."""
    return ImuSpec(arw=0.3, vrw=0.029, gb_fix=0.2, ab_fix=16, gb_drift=6.5 / 3600,
                   ab_drift=0.1, gb_corr=100, ab_corr=100, freq=freq)


#: Factories of built-in IMU specifications.
PROFILES = {
    'ADIS16405': adis16405,
    'ADIS16488': adis16488,
}
