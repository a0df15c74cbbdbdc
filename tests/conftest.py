"""
Shared fixtures: isolated configuration, synthetic motion signals, window
builders and recording observers.
"""

import numpy as np
import pytest

from strength_preclassification.classification import WindowClassification
from strength_preclassification.config import Config
from strength_preclassification.data import (
    FusedWindow,
    Location,
    SensorType,
    SourceKey,
    SourceSegment,
    encode_frame,
)

RATE = 50.0
GRAVITY = 1000

LEFT_ACC = SourceKey(SensorType.ACCELEROMETER, 0, Location.LEFT_WRIST)
RIGHT_ACC = SourceKey(SensorType.ACCELEROMETER, 0, Location.RIGHT_WRIST)


def sinusoid(duration, period=1.0, amplitude=1000, rate=RATE, start=0.0):
    """3-axis signal oscillating on x with constant gravity on z, int16 [n, 3]."""
    t = start + np.arange(int(round(duration * rate))) / rate
    values = np.zeros((len(t), 3))
    values[:, 0] = amplitude * np.sin(2 * np.pi * t / period)
    values[:, 2] = GRAVITY
    return np.round(values).astype(np.int16)


def still(duration, rate=RATE):
    """Motionless 3-axis signal (gravity only)."""
    values = np.zeros((int(round(duration * rate)), 3))
    values[:, 2] = GRAVITY
    return values.astype(np.int16)


def noise(duration, sigma=500, rate=RATE, seed=0):
    """Gaussian noise around gravity."""
    rng = np.random.default_rng(seed)
    values = rng.normal(0.0, sigma, size=(int(round(duration * rate)), 3))
    values[:, 2] += GRAVITY
    return np.round(values).astype(np.int16)


def make_window(index, start, values, key=LEFT_ACC, rate=RATE, gap=False, hints=()):
    """Single-source window holding ``values`` sampled from ``start``."""
    values = np.asarray(values, dtype=np.int16)
    if values.ndim == 1:
        values = values.reshape(-1, 1)
    timestamps = start + np.arange(len(values)) / rate
    end = start + len(values) / rate
    return FusedWindow(
        index=index,
        start=start,
        end=end,
        segments={key: SourceSegment(timestamps, values, gap)},
        hints=tuple(hints)
    )


def sliding_windows(signal, length_sec=4.0, step_sec=1.0, rate=RATE, key=LEFT_ACC, first_index=0):
    """Cut a continuous signal into overlapping windows."""
    length = int(round(length_sec * rate))
    step = int(round(step_sec * rate))
    windows = []
    for i, offset in enumerate(range(0, len(signal) - length + 1, step)):
        windows.append(make_window(
            first_index + i, offset / rate, signal[offset:offset + length], key=key, rate=rate
        ))
    return windows


def frames(values, sensor_type=SensorType.ACCELEROMETER, device_id=0, start=0.0,
           frame_size=25, rate=RATE, config=None):
    """Encode a continuous signal as consecutive device frames."""
    encoded = []
    for offset in range(0, len(values), frame_size):
        encoded.append(encode_frame(
            sensor_type, device_id, values[offset:offset + frame_size],
            start + offset / rate, config
        ))
    return encoded


class RecordingObserver:
    """Implements every observer interface and records the calls in order."""

    def __init__(self):
        self.events = []
        self.batches = []
        self.classifications = []
        self.trainings = []

    def device_data_decoded(self, batch):
        self.batches.append(batch)

    def moving(self):
        self.events.append('moving')

    def not_moving(self):
        self.events.append('not_moving')

    def exercising(self):
        self.events.append('exercising')

    def exercise_ended(self):
        self.events.append('exercise_ended')

    def classification_completed(self, results, data, failure=None):
        self.events.append('classification_completed')
        self.classifications.append((results, data, failure))

    def training_completed(self, exercise, data):
        self.events.append('training_completed')
        self.trainings.append((exercise, data))


class StubClassifier:
    """Returns a fixed verdict, or one chosen by ``fn(window)``."""

    def __init__(self, label='Squat', confidence=0.9, fn=None):
        self.label = label
        self.confidence = confidence
        self.fn = fn
        self.calls = 0

    def classify(self, window):
        self.calls += 1
        if self.fn is not None:
            return self.fn(window)
        return WindowClassification(self.label, self.confidence)


class FailingClassifier:
    def classify(self, window):
        raise RuntimeError("model unavailable")


@pytest.fixture
def config(tmp_path):
    """Fresh configuration with all output under tmp_path."""
    cfg = Config()
    cfg.output.output_dir = tmp_path / "output"
    cfg.output.logs_dir = tmp_path / "output" / "logs"
    cfg.output.training_dir = tmp_path / "output" / "training"
    cfg.output.models_dir = tmp_path / "output" / "models"
    return cfg


@pytest.fixture
def short_window_config(config):
    """One-second windows without overlap."""
    config.fusion.window_length_sec = 1.0
    config.fusion.window_step_sec = 1.0
    return config


@pytest.fixture
def observer():
    return RecordingObserver()
