import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_equal
from insgnss import earth, transform
from insgnss.errors import ValidationError
from insgnss.inertial_sensor import (GaussMarkov, ImuSpec, derive_error_model,
                                     generate_random_walk, adis16405, adis16488,
                                     PROFILES, MG_TO_MPS2)


def test_derive_error_model():
    spec = ImuSpec(arw=2, vrw=0.2, gb_fix=3, ab_fix=50, gb_drift=0.007, ab_drift=0.2,
                   gb_corr=100, ab_corr=[100, 200, np.inf], freq=100, arrw=0.1,
                   vrrw=0.6)
    model = derive_error_model(spec)

    assert model.freq == 100
    assert_allclose(model.dt, 0.01)
    assert_allclose(model.arw, 2 * np.pi / 180 / 60)
    assert_allclose(model.vrw, 0.2 / 60)
    assert_allclose(model.arrw, 0.1 * np.pi / 180 / 60)
    assert_allclose(model.vrrw, 0.01)
    assert_allclose(model.g_std, model.arw / 0.01 ** 0.5)
    assert_allclose(model.a_std, model.vrw / 0.01 ** 0.5)
    assert_allclose(model.gb_fix, np.deg2rad(3))
    assert_allclose(model.ab_fix, 50e-3 * earth.G0)
    assert_allclose(model.gb_drift, np.deg2rad(0.007))
    assert_allclose(model.ab_drift, 0.2 * MG_TO_MPS2)
    assert_equal(model.ab_corr, [100, 200, np.inf])
    assert_allclose(model.gb_psd, np.deg2rad(0.007) * (2 / 100) ** 0.5)
    assert_allclose(model.ab_psd, 0.2 * MG_TO_MPS2 * np.array([
        (2 / 100) ** 0.5, (2 / 200) ** 0.5, 0]))
    assert_allclose(model.gyro_bias_sd,
                    (np.deg2rad(3) ** 2 + np.deg2rad(0.007) ** 2) ** 0.5)

    model = derive_error_model(spec, sample_period=0.02)
    assert_allclose(model.dt, 0.02)
    assert_allclose(model.g_std, model.arw / 0.02 ** 0.5)


@pytest.mark.parametrize("field, value", [
    ('arw', -1), ('vrw', [1, 2]), ('gb_fix', np.nan), ('ab_drift', np.inf),
    ('gb_corr', -5), ('freq', 0)])
def test_derive_error_model_validation(field, value):
    spec = adis16405()
    setattr(spec, field, value)
    with pytest.raises(ValidationError):
        derive_error_model(spec)

    with pytest.raises(ValidationError):
        derive_error_model(adis16405(), sample_period=-0.01)


def test_profiles():
    for name, factory in PROFILES.items():
        spec = factory(50)
        assert spec.freq == 50
        assert name in factory.__name__.upper()
        assert isinstance(repr(spec), str)

    model = derive_error_model(adis16488())
    assert_allclose(model.gb_drift, 6.5 / 3600 * transform.DEG_TO_RAD)


def test_gauss_markov_kinds():
    process = GaussMarkov([1, 2, 3], [0, 10, np.inf])
    assert process.kinds == ['white', 'gauss_markov', 'constant']
    assert_allclose(process.decay_rate, [0, 0.1, 0])
    assert_allclose(process.noise_psd, [0, 2 * 4 / 10, 0])
    assert_allclose(process.white_psd(0.01), [0.01, 0, 0])

    samples = process.generate(1000, 0.01, rng=0)
    assert samples.shape == (1000, 3)
    assert np.all(samples[:, 2] == samples[0, 2])
    assert abs(np.corrcoef(samples[:-1, 0], samples[1:, 0])[0, 1]) < 0.1

    with pytest.raises(ValidationError):
        GaussMarkov(-1, 10)
    with pytest.raises(ValidationError):
        GaussMarkov(1, -10)
    with pytest.raises(ValidationError):
        process.generate(0, 0.01)
    with pytest.raises(ValidationError):
        process.generate(10, 0)


def test_gauss_markov_statistics():
    sd = 1.0
    tau = 1.0
    dt = 0.01
    process = GaussMarkov(sd, tau)
    samples = process.generate(200000, dt, rng=1)

    assert_allclose(np.std(samples, axis=0), sd, rtol=0.2)
    lag = int(tau / dt)
    for axis in range(3):
        correlation = np.corrcoef(samples[:-lag, axis], samples[lag:, axis])[0, 1]
        assert_allclose(correlation, np.exp(-1), atol=0.1)


def test_gauss_markov_reproducible():
    process = GaussMarkov(0.5, 20)
    assert_allclose(process.generate(100, 0.1, rng=5),
                    process.generate(100, 0.1, rng=np.random.RandomState(5)))


def test_generate_random_walk():
    walk = generate_random_walk(10, 0.1, 0, rng=0)
    assert_allclose(walk, 0)

    n_samples = 1000
    n_trials = 400
    rng = np.random.RandomState(0)
    final = np.array([generate_random_walk(n_samples, 0.01, 2.0, rng)[-1]
                      for _ in range(n_trials)])
    expected_sd = 2.0 * ((n_samples - 1) * 0.01) ** 0.5
    assert_allclose(np.std(final, axis=0), expected_sd, rtol=0.15)


@pytest.mark.parametrize("make_rng", [np.random.RandomState, np.random.default_rng])
def test_random_generator_types(make_rng):
    process = GaussMarkov([1.0, 0.5, 2.0], [0, 10, np.inf])
    samples = process.generate(100, 0.01, rng=make_rng(0))
    assert samples.shape == (100, 3)
    assert_allclose(samples, process.generate(100, 0.01, rng=make_rng(0)))
    assert np.all(samples[:, 2] == samples[0, 2])

    walk = generate_random_walk(100, 0.01, 1.0, rng=make_rng(1))
    assert walk.shape == (100, 3)
    assert_equal(walk[0], 0)
    assert_allclose(walk, generate_random_walk(100, 0.01, 1.0, rng=make_rng(1)))
