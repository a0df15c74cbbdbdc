"""
Binary formats.

Device frames (what the wearable sends):

    magic 0xAD | sensor type u8 | device id u8 | record count u16 | timestamp ms u32
    followed by the packed 16-bit records

Exported windows (what the classification and training observers receive):

    b'MVFW' | version u8 | window count u32
    per window:  index u32 | start f64 | end f64 | hint count u8 | segment count u16
                 hints as (length u16, utf-8 bytes)
    per segment: sensor u8 | device u8 | location u8 | gap u8 | dimension u8 | count u32
                 timestamps f64[count] | values i16[count * dimension]

All fields are little-endian.
"""

import struct
from typing import List, Optional, Sequence

import numpy as np

from ..config import CONFIG
from ..exceptions import BadHeader, NotEnoughInput
from .decoder import encode_samples
from .sensor_data import Location, RawFrame, SensorType, SourceKey
from .windows import FusedWindow, SourceSegment

FRAME_MAGIC = 0xAD
FRAME_HEADER = struct.Struct('<BBBHI')

WINDOWS_MAGIC = b'MVFW'
WINDOWS_VERSION = 1
WINDOWS_HEADER = struct.Struct('<4sBI')
WINDOW_HEADER = struct.Struct('<IddBH')
HINT_HEADER = struct.Struct('<H')
SEGMENT_HEADER = struct.Struct('<BBBBBI')


# =============================================================================
# DEVICE FRAMES
# =============================================================================

def encode_frame(
    sensor_type: SensorType,
    device_id: int,
    values,
    timestamp: float,
    config=None
) -> bytes:
    """
    Encode sample values as a device frame.

    Args:
        sensor_type: Sensor type of the records
        device_id: Device identifier
        values: Array-like of shape [n, dimension]
        timestamp: Timestamp of the first record in seconds
        config: Configuration object (for the sensor's byte order)

    Returns:
        Header followed by the packed records
    """
    sensor = sensor_type.config(config)
    array = np.asarray(values).reshape(-1, sensor.dimension)
    header = FRAME_HEADER.pack(
        FRAME_MAGIC, sensor.code, device_id, len(array), int(round(timestamp * 1000))
    )
    return header + encode_samples(array, sensor.byte_order)


def frame_to_bytes(frame: RawFrame, config=None) -> bytes:
    """Encode an already packed RawFrame as a device frame."""
    sensor = frame.sensor_type.config(config)
    count = len(frame.payload) // sensor.record_size
    header = FRAME_HEADER.pack(
        FRAME_MAGIC, sensor.code, frame.device_id, count, int(round(frame.timestamp * 1000))
    )
    return header + frame.payload


def parse_frame(
    data: bytes,
    location: Location,
    hint: Optional[str] = None,
    config=None
) -> RawFrame:
    """
    Parse a device frame into a RawFrame.

    The payload is cut to the record count declared in the header and the
    count is kept on the frame, so the decoder reports a frame that ends
    early as partial, whether it stops inside a record or between two.

    Raises:
        NotEnoughInput: if the header is incomplete
        BadHeader: if the magic byte or the sensor type is unknown
    """
    config = config or CONFIG
    if len(data) < FRAME_HEADER.size:
        raise NotEnoughInput(f"Frame of {len(data)} bytes has no complete header")

    magic, sensor_code, device_id, count, timestamp_ms = FRAME_HEADER.unpack_from(data)
    if magic != FRAME_MAGIC:
        raise BadHeader(f"Bad frame magic 0x{magic:02x}")

    try:
        sensor_type = SensorType.from_code(sensor_code, config)
        sensor = sensor_type.config(config)
    except (ValueError, KeyError) as e:
        raise BadHeader(f"Unknown sensor type {sensor_code}") from e

    end = FRAME_HEADER.size + count * sensor.record_size
    return RawFrame(
        sensor_type=sensor_type,
        device_id=device_id,
        location=Location(location),
        payload=bytes(data[FRAME_HEADER.size:end]),
        timestamp=timestamp_ms / 1000.0,
        hint=hint,
        expected_records=count
    )


# =============================================================================
# EXPORTED WINDOWS
# =============================================================================

def encode_windows(windows: Sequence[FusedWindow]) -> bytes:
    """Export windows to bytes."""
    parts = [WINDOWS_HEADER.pack(WINDOWS_MAGIC, WINDOWS_VERSION, len(windows))]

    for window in windows:
        hints = [h.encode('utf-8') for h in window.hints]
        parts.append(WINDOW_HEADER.pack(
            window.index, window.start, window.end, len(hints), len(window.segments)
        ))
        for hint in hints:
            parts.append(HINT_HEADER.pack(len(hint)))
            parts.append(hint)

        for key in window.sources:
            segment = window.segments[key]
            parts.append(SEGMENT_HEADER.pack(
                int(key.sensor_type), key.device_id, int(key.location),
                int(segment.gap), segment.dimension, len(segment)
            ))
            parts.append(np.asarray(segment.timestamps, dtype='<f8').tobytes())
            parts.append(np.asarray(segment.values, dtype='<i2').tobytes())

    return b''.join(parts)


class _Reader:
    """Bounds-checked cursor over a byte buffer."""

    def __init__(self, data: bytes):
        self.data = memoryview(data)
        self.offset = 0

    def take(self, size: int) -> memoryview:
        if self.offset + size > len(self.data):
            raise NotEnoughInput(
                f"Needed {size} bytes at offset {self.offset}, "
                f"only {len(self.data) - self.offset} left"
            )
        chunk = self.data[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def unpack(self, fmt: struct.Struct) -> tuple:
        return fmt.unpack(self.take(fmt.size))


def decode_windows(data: bytes) -> List[FusedWindow]:
    """
    Import windows exported by ``encode_windows``.

    Raises:
        NotEnoughInput: if the data ends early
        BadHeader: if the magic, version or a source code is invalid
    """
    reader = _Reader(data)
    magic, version, count = reader.unpack(WINDOWS_HEADER)
    if magic != WINDOWS_MAGIC:
        raise BadHeader(f"Bad window magic {bytes(magic)!r}")
    if version != WINDOWS_VERSION:
        raise BadHeader(f"Unsupported window format version {version}")

    windows = []
    for _ in range(count):
        index, start, end, n_hints, n_segments = reader.unpack(WINDOW_HEADER)

        hints = []
        for _ in range(n_hints):
            (length,) = reader.unpack(HINT_HEADER)
            hints.append(bytes(reader.take(length)).decode('utf-8'))

        segments = {}
        for _ in range(n_segments):
            sensor, device, location, gap, dimension, n = reader.unpack(SEGMENT_HEADER)
            try:
                key = SourceKey(SensorType(sensor), device, Location(location))
            except ValueError as e:
                raise BadHeader(f"Unknown source ({sensor}, {device}, {location})") from e
            if dimension not in (1, 3):
                raise BadHeader(f"Invalid dimension {dimension}")

            timestamps = np.frombuffer(reader.take(n * 8), dtype='<f8').astype(np.float64)
            values = np.frombuffer(reader.take(n * dimension * 2), dtype='<i2')
            segments[key] = SourceSegment(
                timestamps=timestamps,
                values=values.reshape(n, dimension).astype(np.int16),
                gap=bool(gap)
            )

        windows.append(FusedWindow(
            index=index, start=start, end=end, segments=segments, hints=tuple(hints)
        ))

    return windows
