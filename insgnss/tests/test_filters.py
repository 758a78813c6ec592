import logging
import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose
from insgnss import filters, sim, transform, util
from insgnss.errors import NumericInstability, SynchronizationError, ValidationError
from insgnss.gnss import GnssSpec, derive_gnss_error_model, garmin_gps18x
from insgnss.inertial_sensor import ImuSpec, derive_error_model, adis16405
from insgnss.strapdown import compute_increments_from_imu, Integrator
from insgnss.util import NED_COLS, VEL_COLS, RPH_COLS, GNSS_COLS


IMU_FREQUENCY = 50


def mild_imu_spec(freq=IMU_FREQUENCY):
    return ImuSpec(arw=0.3, vrw=0.03, gb_fix=0.01, ab_fix=2, gb_drift=0.001,
                   ab_drift=0.1, gb_corr=100, ab_corr=100, freq=freq)


def make_scenario(total_time, imu_spec, gnss_spec, velocity_mean,
                  velocity_change_amplitude=0, stationary_time=0, seed=0):
    trajectory, _ = sim.generate_sine_velocity_motion(
        1 / imu_spec.freq, total_time, [45, 30, 100], velocity_mean,
        velocity_change_amplitude, stationary_time=stationary_time,
        rph_offset=[1, 1, 0])
    imu_error_model = derive_error_model(imu_spec)
    gnss_error_model = derive_gnss_error_model(gnss_spec, 45, 100)
    rng = np.random.RandomState(seed)
    imu = sim.generate_imu_data(trajectory, imu_error_model, rng)
    gnss = sim.generate_gnss(trajectory, gnss_error_model, rng)
    return trajectory, imu, gnss, imu_error_model, gnss_error_model


def test_synchronize(caplog):
    imu_times = np.arange(11) * 0.1
    gnss_times = [-0.0005, 0.3004, 0.55, 1.0008, 2.0]
    with caplog.at_level(logging.WARNING, logger='insgnss.filters'):
        result = filters.synchronize(imu_times, gnss_times, 1e-3)
    assert result == {0: -0.0005, 3: 0.3004, 10: 1.0008}
    assert "1 GNSS epochs have no IMU epoch" in caplog.text

    with pytest.raises(SynchronizationError):
        filters.synchronize(imu_times, [0.05, 0.15], 1e-3)
    with pytest.raises(SynchronizationError):
        filters.synchronize(imu_times, [5.0, 6.0], 1e-3)


def test_run_ins_gnss_end_to_end():
    trajectory, imu, gnss, imu_error_model, gnss_error_model = make_scenario(
        600, adis16405(IMU_FREQUENCY), garmin_gps18x(), [10, 0, 0], [2, 3, 0],
        stationary_time=60)
    result = filters.run_ins_gnss(imu, gnss, imu_error_model, gnss_error_model,
                                  trajectory.iloc[0])

    assert len(result.trajectory) == len(imu)
    assert np.all(np.isfinite(result.trajectory.values))
    assert np.all(result.P.values >= 0)
    assert list(result.trajectory_sd.columns) == NED_COLS + VEL_COLS + RPH_COLS

    error = transform.compute_state_difference(result.trajectory, trajectory)
    rms = util.compute_rms(error[['north', 'east']])
    assert (rms < gnss_error_model.stdm[:2]).all()

    reference = transform.resample_state(trajectory, gnss.index)
    gnss_error = transform.compute_lla_difference(gnss[['lat', 'lon', 'alt']],
                                                  reference[['lat', 'lon', 'alt']])
    horizontal_rms = np.mean(np.sum(error[['north', 'east']].values ** 2, axis=1)) ** 0.5
    gnss_horizontal_rms = np.mean(np.sum(gnss_error[:, :2] ** 2, axis=1)) ** 0.5
    assert horizontal_rms < gnss_horizontal_rms

    assert result.zupt.loc[10:50].all()
    assert not result.zupt.loc[100:].any()
    assert len(result.innovations['ZeroVelocity']) > 0
    assert len(result.innovations['GnssPosition']) == len(result.zupt)


@pytest.mark.parametrize("mode", ["dcm", "quaternion"])
def test_zero_noise_matches_mechanization(mode):
    spec = ImuSpec(arw=0, vrw=0, gb_fix=0, ab_fix=0, gb_drift=0, ab_drift=0,
                   gb_corr=100, ab_corr=100, freq=IMU_FREQUENCY)
    trajectory, imu, gnss, imu_error_model, gnss_error_model = make_scenario(
        60, spec, GnssSpec(stdm=0, stdv=0, freq=5), [5, 1, 0], [1, 1, 0])

    result = filters.run_ins_gnss(imu, gnss, imu_error_model, gnss_error_model,
                                  trajectory.iloc[0], attitude_sd=0, mode=mode)
    assert_allclose(result.P, 0, atol=1e-20)
    assert_allclose(result.gyro, 0, atol=1e-12)
    assert_allclose(result.accel, 0, atol=1e-12)

    integrator = Integrator(trajectory.iloc[0], mode)
    expected = integrator.integrate(compute_increments_from_imu(imu))
    assert_allclose(result.trajectory, expected, rtol=1e-12, atol=1e-9)

    error = transform.compute_state_difference(result.trajectory, trajectory)
    assert (error[NED_COLS].abs().max() < 1.0).all()


def test_dcm_and_quaternion_agree():
    gnss_spec = GnssSpec(stdm=[2, 2, 4], stdv=0.05, freq=5, larm=[0.5, 0.2, -1.0])
    trajectory, imu, gnss, imu_error_model, gnss_error_model = make_scenario(
        120, mild_imu_spec(), gnss_spec, [5, 1, 0], [2, 2, 0.2], seed=1)

    results = {}
    for mode in ['dcm', 'quaternion']:
        results[mode] = filters.run_ins_gnss(imu, gnss, imu_error_model,
                                             gnss_error_model, trajectory.iloc[0],
                                             mode=mode, zupt=False)

    difference = transform.compute_state_difference(results['dcm'].trajectory,
                                                    results['quaternion'].trajectory)
    sd = results['dcm'].trajectory_sd
    assert (difference.abs() <= 3 * sd).all().all()
    assert_allclose(results['dcm'].P, results['quaternion'].P, rtol=1e-3,
                    atol=1e-12)
    assert results['dcm'].zupt.empty

    error = transform.compute_state_difference(results['dcm'].trajectory, trajectory)
    assert (util.compute_rms(error[NED_COLS]) < 2.0).all()
    for name in ['GnssPosition', 'GnssVelocity']:
        assert (util.compute_rms(results['dcm'].innovations[name]) < 3.0).all()


def test_run_ins_gnss_without_altitude():
    trajectory, imu, gnss, imu_error_model, gnss_error_model = make_scenario(
        60, mild_imu_spec(), GnssSpec(stdm=2, stdv=0.05, freq=5), [5, 1, 0],
        [1, 1, 0], seed=2)
    result = filters.run_ins_gnss(imu, gnss, imu_error_model, gnss_error_model,
                                  trajectory.iloc[0], with_altitude=False)
    assert_allclose(result.trajectory.VD, 0)
    assert_allclose(result.trajectory.alt, trajectory.alt.iloc[0])
    assert_allclose(result.P[['DV3', 'DR3']], 0)
    assert list(result.innovations['GnssPosition'].columns) == ['north', 'east']
    assert list(result.innovations['GnssVelocity'].columns) == ['VN', 'VE']

    error = transform.compute_state_difference(result.trajectory, trajectory)
    assert (util.compute_rms(error[['north', 'east']]) < 2.0).all()


def test_run_ins_gnss_validation():
    trajectory, imu, gnss, imu_error_model, gnss_error_model = make_scenario(
        5, mild_imu_spec(), GnssSpec(stdm=2, stdv=0.05, freq=5), [5, 1, 0])
    pva = trajectory.iloc[0]

    with pytest.raises(ValidationError):
        filters.run_ins_gnss(imu.drop(columns='gyro_x'), gnss, imu_error_model,
                             gnss_error_model, pva)
    with pytest.raises(ValidationError):
        filters.run_ins_gnss(imu, gnss.drop(columns='VD'), imu_error_model,
                             gnss_error_model, pva)
    with pytest.raises(ValidationError):
        filters.run_ins_gnss(imu, gnss.iloc[::-1], imu_error_model,
                             gnss_error_model, pva)
    with pytest.raises(ValidationError):
        filters.run_ins_gnss(imu, gnss, imu_error_model, gnss_error_model,
                             pva.drop('heading'))
    with pytest.raises(ValidationError):
        filters.run_ins_gnss(imu, gnss, imu_error_model, gnss_error_model, pva,
                             mode='euler')
    with pytest.raises(ValidationError):
        filters.run_ins_gnss(imu, gnss, derive_error_model(mild_imu_spec(100)),
                             gnss_error_model, pva)

    shifted = gnss.copy()
    shifted.index = shifted.index + 0.01
    with pytest.raises(SynchronizationError):
        filters.run_ins_gnss(imu, shifted, imu_error_model, gnss_error_model, pva)

    late = pd.DataFrame([gnss.iloc[0].values], index=[100.0], columns=GNSS_COLS)
    with pytest.raises(SynchronizationError):
        filters.run_ins_gnss(imu, late, imu_error_model, gnss_error_model, pva)


def test_run_ins_gnss_aborts_on_invalid_readings():
    trajectory, imu, gnss, imu_error_model, gnss_error_model = make_scenario(
        10, mild_imu_spec(), GnssSpec(stdm=2, stdv=0.05, freq=5), [5, 1, 0])
    imu = imu.copy()
    imu.iloc[100] = np.nan

    with pytest.raises(NumericInstability) as excinfo:
        filters.run_ins_gnss(imu, gnss, imu_error_model, gnss_error_model,
                             trajectory.iloc[0])
    assert excinfo.value.epoch == 100
    assert_allclose(excinfo.value.time, imu.index[100])


@pytest.mark.parametrize("mode", ["dcm", "quaternion"])
def test_run_ins_gnss_from_perturbed_pva(mode):
    trajectory, imu, gnss, imu_error_model, gnss_error_model = make_scenario(
        180, mild_imu_spec(), GnssSpec(stdm=2, stdv=0.05, freq=5), [5, 1, 0],
        [2, 2, 0], seed=3)
    level_sd = 0.3
    azimuth_sd = 2.0
    pva_error = sim.generate_pva_error(2.0, 0.05, level_sd, azimuth_sd, rng=4)
    initial_pva = sim.perturb_pva(trajectory.iloc[0], pva_error)

    result = filters.run_ins_gnss(imu, gnss, imu_error_model, gnss_error_model,
                                  initial_pva,
                                  attitude_sd=[level_sd, level_sd, azimuth_sd],
                                  mode=mode, zupt=False)
    assert_allclose(result.trajectory_sd[RPH_COLS].iloc[0],
                    [level_sd, level_sd, azimuth_sd], rtol=0.05)

    error = transform.compute_state_difference(result.trajectory, trajectory)
    final_error = error.iloc[-1]
    final_sd = result.trajectory_sd.iloc[-1]
    assert (final_error[RPH_COLS].abs() < 3 * final_sd[RPH_COLS]).all()
    assert (final_sd[RPH_COLS] < [level_sd, level_sd, azimuth_sd]).all()
    assert abs(final_error.heading) < 1.0

    second_half = error.loc[90:]
    assert (util.compute_rms(second_half[NED_COLS]) < 2.0).all()
