import numpy as np
import pandas as pd
import pytest
from insgnss.errors import ValidationError
from insgnss.zupt import ZuptDetector, detect_zupt
from insgnss.util import VEL_COLS


def make_velocity(speed, freq=5):
    speed = np.asarray(speed, dtype=float)
    velocity = np.zeros((len(speed), 3))
    velocity[:, 0] = speed
    return pd.DataFrame(velocity, index=np.arange(len(speed)) / freq,
                        columns=VEL_COLS)


def test_detect_zupt():
    velocity = make_velocity(0.1 * np.ones(20))
    assert detect_zupt(velocity, 0.5, 4)

    speed = 0.1 * np.ones(20)
    speed[10] = 2.0
    assert not detect_zupt(make_velocity(speed), 0.5, 4)

    speed = np.hstack([2.0 * np.ones(5), 0.1 * np.ones(25)])
    assert detect_zupt(make_velocity(speed), 0.5, 4)

    assert not detect_zupt(make_velocity(0.1 * np.ones(10)), 0.5, 4)
    assert not detect_zupt(make_velocity([]), 0.5, 4)


def test_zupt_detector():
    detector = ZuptDetector(0.5, 4)
    results = [detector.update(0.2 * i, [0.1, 0, 0]) for i in range(20)]
    assert not any(results[:19])
    assert results[19]

    assert not detector.update(4.0, [2.0, 0, 0])
    results = [detector.update(4.0 + 0.2 * i, [0, 0.1, 0]) for i in range(1, 21)]
    assert not any(results[:19])
    assert results[19]

    with pytest.raises(ValidationError):
        detector.update(1.0, [0, 0, 0])

    detector.reset()
    assert not detector.update(1.0, [0, 0, 0])


def test_zupt_detector_agrees_with_batch():
    rng = np.random.RandomState(0)
    speed = np.abs(rng.randn(100)) * 0.3
    speed[40:45] = 1.0
    velocity = make_velocity(speed)
    detector = ZuptDetector(0.5, 4)
    for i, (time, row) in enumerate(velocity.iterrows()):
        online = detector.update(time, row.values)
        assert online == detect_zupt(velocity.iloc[:i + 1], 0.5, 4)


def test_invalid_parameters():
    with pytest.raises(ValidationError):
        ZuptDetector(-1, 4)
    with pytest.raises(ValidationError):
        ZuptDetector(0.5, 0)
    with pytest.raises(ValidationError):
        detect_zupt(make_velocity([0.1, 0.1]), 0.5, -1)
