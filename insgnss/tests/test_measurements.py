import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose, assert_equal
from insgnss import transform, util
from insgnss.error_model import InsErrorModel
from insgnss.measurements import (GnssPosition, GnssVelocity, ZeroVelocity,
                                  Measurement, MIN_SD)
from insgnss.util import GNSS_COLS


def make_state(lla, velocity_n, rph, rate_b=(0, 0, 0)):
    return util.Bunch(lla=np.asarray(lla, dtype=float),
                      velocity_n=np.asarray(velocity_n, dtype=float),
                      mat_nb=transform.mat_from_rph(rph),
                      rate_b=np.asarray(rate_b, dtype=float))


def make_gnss():
    return pd.DataFrame([[50.0, 20.0, 100.0, 1.0, 2.0, 0.5],
                         [50.0, 20.0, 101.0, 1.0, 2.0, 0.5]],
                        index=[0.0, 0.2], columns=GNSS_COLS)


def test_base_measurement():
    measurement = Measurement(None)
    with pytest.raises(NotImplementedError):
        measurement.compute_matrices(0, None, InsErrorModel())


def test_gnss_position():
    em = InsErrorModel()
    gnss = make_gnss()
    measurement = GnssPosition(gnss, [5, 5, 10])
    lla = transform.perturb_lla([50, 20, 100], [1, -2, 3])
    state = make_state(lla, [0, 0, 0], [0, 0, 30])

    assert measurement.compute_matrices(0.1, state, em) is None

    z, H, R = measurement.compute_matrices(0.0, state, em)
    assert_allclose(z, [1, -2, 3], rtol=1e-6)
    assert_equal(H, em.position_error_jacobian(state.mat_nb))
    assert_allclose(R, np.diag([25, 25, 100]))

    em_2d = InsErrorModel(with_altitude=False)
    z, H, R = measurement.compute_matrices(0.0, state, em_2d)
    assert z.shape == (2,)
    assert H.shape == (2, 15)
    assert R.shape == (2, 2)


def test_gnss_position_lever_arm():
    em = InsErrorModel()
    imu_to_antenna_b = np.array([1.0, 0.0, -0.5])
    state = make_state([50, 20, 100], [0, 0, 0], [0, 0, 90])
    antenna = transform.perturb_lla(state.lla, state.mat_nb @ imu_to_antenna_b)
    gnss = pd.DataFrame([np.hstack([antenna, [0, 0, 0]])], index=[1.0],
                        columns=GNSS_COLS)
    measurement = GnssPosition(gnss, 1, imu_to_antenna_b)
    z, H, R = measurement.compute_matrices(1.0, state, em)
    assert_allclose(z, 0, atol=1e-6)
    assert_allclose(H[:, em.PHI], -util.skew_matrix([0, 1, -0.5]), atol=1e-12)


def test_gnss_velocity():
    em = InsErrorModel()
    gnss = make_gnss()
    imu_to_antenna_b = np.array([0, 2.0, 0])
    measurement = GnssVelocity(gnss, 0.1, imu_to_antenna_b)
    state = make_state([50, 20, 100], [1.5, 2.0, 0.5], [0, 0, 0], [0, 0, 0.1])

    assert measurement.compute_matrices(0.3, state, em) is None
    z, H, R = measurement.compute_matrices(0.2, state, em)
    assert_allclose(z, [0.5 - 0.2, 0, 0], atol=1e-12)
    assert_allclose(H[:, em.DV], np.eye(3))
    assert_allclose(H[:, em.BG], -util.skew_matrix(imu_to_antenna_b))
    assert_allclose(R, 0.01 * np.eye(3))


def test_zero_velocity():
    em = InsErrorModel()
    measurement = ZeroVelocity(0.01)
    state = make_state([50, 20, 100], [0.01, -0.02, 0.003], [1, 2, 3])
    z, H, R = measurement.compute_matrices(123.0, state, em)
    assert_allclose(z, [0.01, -0.02, 0.003])
    assert_equal(H, em.ned_velocity_error_jacobian(state.mat_nb))
    assert_allclose(R, 1e-4 * np.eye(3))

    z, H, R = measurement.compute_matrices(
        0.0, state, InsErrorModel(with_altitude=False))
    assert_allclose(z, [0.01, -0.02])
    assert H.shape == (2, 15)


def test_minimum_sd():
    em = InsErrorModel()
    state = make_state([50, 20, 100], [1, 2, 0.5], [0, 0, 0])
    _, _, R = GnssPosition(make_gnss(), 0, None).compute_matrices(0.0, state, em)
    assert_allclose(R, MIN_SD ** 2 * np.eye(3))
    _, _, R = ZeroVelocity(0).compute_matrices(0.0, state, em)
    assert_allclose(R, MIN_SD ** 2 * np.eye(3))
