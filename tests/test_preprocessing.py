import numpy as np
import pytest

from strength_preclassification.data import SignalPreprocessor

from conftest import RATE, make_window, noise, sinusoid, still


@pytest.fixture
def preprocessor(config):
    return SignalPreprocessor(config)


def test_principal_axis_follows_the_moving_axis(preprocessor):
    signal = sinusoid(4.0)

    axis = preprocessor.principal_axis(signal)

    expected = signal[:, 0] - signal[:, 0].mean()
    assert abs(np.corrcoef(axis, expected)[0, 1]) == pytest.approx(1.0)


def test_principal_axis_of_still_signal_is_flat(preprocessor):
    assert not np.any(preprocessor.principal_axis(still(2.0)))


def test_intensity(preprocessor):
    assert preprocessor.intensity(still(2.0)) == 0.0
    assert preprocessor.intensity(sinusoid(4.0, amplitude=1000)) == pytest.approx(1000 / np.sqrt(2), rel=0.01)


@pytest.mark.parametrize('period', [0.6, 1.0, 1.6])
def test_dominant_period_of_sinusoid(preprocessor, period):
    x = preprocessor.principal_axis(sinusoid(4.0, period=period))

    found, periodicity = preprocessor.dominant_period(x, RATE, 0.3, 2.5)

    assert found == pytest.approx(period, abs=0.04)
    assert periodicity > 0.9


def test_dominant_period_of_noise_is_weak(preprocessor):
    x = preprocessor.principal_axis(noise(4.0))

    _, periodicity = preprocessor.dominant_period(x, RATE, 0.3, 2.5)

    assert periodicity < 0.5


def test_window_features(preprocessor):
    moving = preprocessor.window_features(make_window(0, 0.0, sinusoid(4.0)))
    resting = preprocessor.window_features(make_window(1, 4.0, still(4.0)))

    assert moving.is_periodic
    assert moving.period == pytest.approx(1.0, abs=0.04)
    assert moving.sampling_rate == RATE
    assert resting.intensity == 0.0
    assert not resting.is_periodic


def test_lowpass_filter_keeps_slow_motion(preprocessor):
    slow = sinusoid(4.0, period=1.0)[:, 0].astype(float)
    fast = sinusoid(4.0, period=0.05, amplitude=300)[:, 0].astype(float)

    filtered = preprocessor._lowpass_filter(slow + fast, 5.0, RATE)

    assert np.max(np.abs(filtered - slow)) < 150
