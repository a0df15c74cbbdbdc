import struct

import numpy as np
import pytest

from strength_preclassification.config import Config
from strength_preclassification.data import (
    Location,
    SampleDecoder,
    SensorType,
    decode_windows,
    encode_frame,
    encode_windows,
    frame_to_bytes,
    parse_frame,
)
from strength_preclassification.data.codec import FRAME_HEADER, FRAME_MAGIC
from strength_preclassification.exceptions import BadHeader, DecodeError, NotEnoughInput

from conftest import LEFT_ACC, RIGHT_ACC, make_window, sinusoid


def test_frame_values_survive_encoding(config):
    values = np.array([[100, -200, 1000], [0, 32767, -32768]], dtype=np.int16)
    data = encode_frame(SensorType.ACCELEROMETER, 4, values, 12.5, config)

    frame = parse_frame(data, Location.LEFT_WRIST, hint='Squat', config=config)
    batch = SampleDecoder(config).decode(frame)

    assert frame.device_id == 4
    assert frame.timestamp == pytest.approx(12.5)
    assert frame.hint == 'Squat'
    np.testing.assert_array_equal(batch.values, values)


def test_frame_to_bytes_matches_encode_frame(config):
    values = sinusoid(0.5)
    data = encode_frame(SensorType.ACCELEROMETER, 1, values, 3.0, config)
    frame = parse_frame(data, Location.RIGHT_WRIST, config=config)

    assert frame_to_bytes(frame, config) == data


def test_parse_frame_short_header(config):
    with pytest.raises(NotEnoughInput):
        parse_frame(b'\xad\x01\x00', Location.LEFT_WRIST, config=config)


def test_parse_frame_bad_magic(config):
    data = FRAME_HEADER.pack(0x00, 1, 0, 0, 0)
    with pytest.raises(BadHeader):
        parse_frame(data, Location.LEFT_WRIST, config=config)


def test_parse_frame_unknown_sensor(config):
    data = FRAME_HEADER.pack(FRAME_MAGIC, 99, 0, 0, 0)
    with pytest.raises(BadHeader):
        parse_frame(data, Location.LEFT_WRIST, config=config)


def test_codec_errors_are_decode_errors():
    assert issubclass(BadHeader, DecodeError)
    assert issubclass(NotEnoughInput, DecodeError)


def test_parse_frame_cuts_payload_to_declared_count(config):
    data = encode_frame(SensorType.ACCELEROMETER, 0, sinusoid(0.1), 0.0, config)
    frame = parse_frame(data + b'trailing', Location.LEFT_WRIST, config=config)
    assert len(frame.payload) == 5 * 6


def test_exported_windows_keep_segments_and_hints():
    left = make_window(3, 10.0, sinusoid(1.0), key=LEFT_ACC, hints=('Squat', 'Deadlift'))
    right = make_window(3, 10.0, sinusoid(1.0, period=0.5), key=RIGHT_ACC, gap=True)
    window = left
    window.segments.update(right.segments)

    decoded = decode_windows(encode_windows([window]))

    assert len(decoded) == 1
    result = decoded[0]
    assert result.index == 3
    assert result.start == pytest.approx(10.0)
    assert result.hints == ('Squat', 'Deadlift')
    assert result.sources == [LEFT_ACC, RIGHT_ACC]
    assert result.gaps == [RIGHT_ACC]
    np.testing.assert_array_equal(result.segments[LEFT_ACC].values, window.segments[LEFT_ACC].values)
    np.testing.assert_allclose(result.segments[RIGHT_ACC].timestamps, window.segments[RIGHT_ACC].timestamps)


def test_exported_windows_empty_block():
    assert decode_windows(encode_windows([])) == []


def test_decode_windows_bad_magic():
    data = b'XXXX' + encode_windows([])[4:]
    with pytest.raises(BadHeader):
        decode_windows(data)


def test_decode_windows_bad_version():
    data = struct.pack('<4sBI', b'MVFW', 9, 0)
    with pytest.raises(BadHeader):
        decode_windows(data)


def test_decode_windows_truncated():
    data = encode_windows([make_window(0, 0.0, sinusoid(1.0))])
    with pytest.raises(NotEnoughInput):
        decode_windows(data[:-10])


def test_frame_header_uses_configured_sensor_code(config):
    config.sensors['accelerometer'].code = 7
    data = encode_frame(SensorType.ACCELEROMETER, 0, sinusoid(0.1), 0.0, config)

    assert data[1] == 7
    assert parse_frame(data, Location.LEFT_WRIST, config=config).sensor_type == SensorType.ACCELEROMETER
    with pytest.raises(BadHeader):
        parse_frame(data, Location.LEFT_WRIST, config=Config())
