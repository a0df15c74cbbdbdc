import numpy as np
import pytest

from strength_preclassification.data import (
    Location,
    RawFrame,
    SampleDecoder,
    SensorType,
    Threed,
    encode_samples,
    parse_frame,
)
from strength_preclassification.data.codec import FRAME_HEADER, FRAME_MAGIC
from strength_preclassification.exceptions import DecodeError


def _frame(sensor_type, payload, timestamp=1.0, hint=None):
    return RawFrame(sensor_type, 2, Location.RIGHT_WRIST, payload, timestamp, hint)


def test_decode_threed_records(config):
    values = np.array([[1, -2, 3], [-32768, 0, 32767], [10, 20, 30]], dtype=np.int16)
    decoder = SampleDecoder(config)

    batch = decoder.decode(_frame(SensorType.ACCELEROMETER, encode_samples(values)))

    np.testing.assert_array_equal(batch.values, values)
    assert not batch.partial
    assert batch.dimension == 3
    samples = batch.samples
    assert samples[0].value == Threed(1, -2, 3)
    assert samples[0].is_3d
    assert samples[0].source.location == Location.RIGHT_WRIST
    assert samples[2].timestamp == pytest.approx(1.0 + 2 / 50.0)
    assert decoder.frames_decoded == 1


def test_decode_scalar_records(config):
    payload = encode_samples(np.array([[72], [75], [-1]]))
    batch = SampleDecoder(config).decode(_frame(SensorType.HEART_RATE, payload, timestamp=5.0))

    assert [s.value for s in batch] == [72, 75, -1]
    assert [s.timestamp for s in batch] == pytest.approx([5.0, 6.0, 7.0])
    assert not batch.samples[0].is_3d


def test_decode_big_endian(config):
    config.sensors['gyroscope'].byte_order = 'big'
    values = np.array([[258, -3, 7]])

    batch = SampleDecoder(config).decode(_frame(SensorType.GYROSCOPE, encode_samples(values, 'big')))

    np.testing.assert_array_equal(batch.values, values)


def test_decode_stops_at_truncated_record(config):
    values = np.array([[1, 2, 3], [4, 5, 6]])
    payload = encode_samples(values) + b'\x01\x02\x03'
    decoder = SampleDecoder(config)

    with pytest.raises(DecodeError) as excinfo:
        decoder.decode(_frame(SensorType.ACCELEROMETER, payload))

    partial = excinfo.value.decoded
    assert partial.partial
    np.testing.assert_array_equal(partial.values, values)
    assert decoder.partial_frames == 1


def test_decode_partial_returns_what_was_decoded(config):
    payload = encode_samples(np.array([[1, 2, 3]])) + b'\x00'

    batch = SampleDecoder(config).decode_partial(_frame(SensorType.ACCELEROMETER, payload, hint='Squat'))

    assert len(batch) == 1
    assert batch.partial
    assert batch.hint == 'Squat'


def test_frame_missing_whole_records_is_partial(config):
    values = np.arange(60, dtype=np.int16).reshape(20, 3)
    data = FRAME_HEADER.pack(FRAME_MAGIC, int(SensorType.ACCELEROMETER), 1, 25, 2000) + encode_samples(values)
    frame = parse_frame(data, Location.LEFT_WRIST, config=config)
    decoder = SampleDecoder(config)

    with pytest.raises(DecodeError) as excinfo:
        decoder.decode(frame)

    batch = excinfo.value.decoded
    assert batch.partial
    np.testing.assert_array_equal(batch.values, values)
    assert decoder.partial_frames == 1


def test_frame_with_declared_count_is_complete(config):
    values = np.arange(75, dtype=np.int16).reshape(25, 3)
    data = FRAME_HEADER.pack(FRAME_MAGIC, int(SensorType.ACCELEROMETER), 1, 25, 2000) + encode_samples(values)

    batch = SampleDecoder(config).decode(parse_frame(data, Location.LEFT_WRIST, config=config))

    assert not batch.partial
    assert len(batch) == 25


def test_decode_empty_payload(config):
    batch = SampleDecoder(config).decode(_frame(SensorType.ACCELEROMETER, b''))
    assert len(batch) == 0
    assert batch.samples == []


def test_encode_samples_rejects_out_of_range():
    with pytest.raises(ValueError):
        encode_samples(np.array([[40000, 0, 0]]))
