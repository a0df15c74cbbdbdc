"""
Sample decoder: raw device payloads to typed samples.

Three-dimensional sensors deliver packed (x, y, z) triples of 16-bit
signed integers, one-dimensional sensors packed 16-bit scalars. The byte
order is configured per sensor type.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional

import numpy as np

from ..config import CONFIG
from ..exceptions import DecodeError
from ..utils import get_logger
from .sensor_data import RawFrame, Sample, SourceKey, Threed


@dataclass
class DecodedBatch:
    """
    Samples decoded from one frame, column-oriented.

    Attributes:
        source: Originating (sensor, device, location)
        timestamps: Sample timestamps in seconds, shape [n]
        values: Sample values, shape [n, dimension], int16
        partial: True when decoding stopped at a malformed record
        hint: Planned exercise attached to the frame, if any
    """
    source: SourceKey
    timestamps: np.ndarray
    values: np.ndarray
    partial: bool = False
    hint: Optional[str] = None

    @property
    def dimension(self) -> int:
        return self.values.shape[1]

    @property
    def samples(self) -> List[Sample]:
        return list(self)

    def __len__(self) -> int:
        return len(self.timestamps)

    def __iter__(self) -> Iterator[Sample]:
        three_d = self.dimension == 3
        for timestamp, row in zip(self.timestamps, self.values):
            if three_d:
                value = Threed(int(row[0]), int(row[1]), int(row[2]))
            else:
                value = int(row[0])
            yield Sample(self.source, float(timestamp), value)


class SampleDecoder:
    """
    Decodes raw frames into typed samples.

    The decoder keeps nothing from the frames it decodes; it only counts
    partial frames for diagnostics.
    """

    def __init__(self, config=None):
        self.config = config or CONFIG
        self.logger = get_logger('decoder')
        self.frames_decoded = 0
        self.partial_frames = 0

    def decode(self, frame: RawFrame) -> DecodedBatch:
        """
        Decode all records of a frame.

        Args:
            frame: Raw frame with a payload of packed records

        Returns:
            Decoded batch of samples

        Raises:
            DecodeError: if the payload length is not a multiple of the
                record size, or holds fewer records than the frame
                declared. The error carries the complete records as a
                partial batch in ``decoded``.
        """
        try:
            sensor = frame.sensor_type.config(self.config)
        except (KeyError, ValueError) as e:
            raise DecodeError(f"Unknown sensor type {frame.sensor_type!r}: {e}") from e

        record_size = sensor.record_size
        n_records, remainder = divmod(len(frame.payload), record_size)

        dtype = np.dtype('<i2' if sensor.byte_order == 'little' else '>i2')
        values = np.frombuffer(frame.payload, dtype=dtype, count=n_records * sensor.dimension)
        values = values.reshape(n_records, sensor.dimension).astype(np.int16)
        timestamps = frame.timestamp + np.arange(n_records) * sensor.sample_period

        missing = frame.expected_records is not None and n_records < frame.expected_records
        batch = DecodedBatch(
            source=frame.source,
            timestamps=timestamps,
            values=values,
            partial=remainder != 0 or missing,
            hint=frame.hint
        )

        if remainder:
            self.partial_frames += 1
            raise DecodeError(
                f"{len(frame.payload)} bytes from {frame.source} is not a multiple of "
                f"the {record_size}-byte record size; decoded {n_records} records",
                decoded=batch
            )
        if missing:
            self.partial_frames += 1
            raise DecodeError(
                f"Frame from {frame.source} declared {frame.expected_records} records, "
                f"only {n_records} arrived",
                decoded=batch
            )

        self.frames_decoded += 1
        return batch

    def decode_partial(self, frame: RawFrame) -> DecodedBatch:
        """
        Decode a frame, keeping the records before a malformed one.

        Returns:
            Decoded batch, with ``partial`` set when the frame was truncated
        """
        try:
            return self.decode(frame)
        except DecodeError as e:
            if e.decoded is None:
                raise
            self.logger.warning(str(e))
            return e.decoded


def encode_samples(values, byte_order: str = 'little') -> bytes:
    """
    Pack sample values into a device payload.

    Args:
        values: Array-like of shape [n, dimension] (or [n] for scalars)
        byte_order: 'little' or 'big'

    Returns:
        Packed 16-bit signed integer records
    """
    dtype = np.dtype('<i2' if byte_order == 'little' else '>i2')
    array = np.asarray(values)
    if np.any(array > np.iinfo(np.int16).max) or np.any(array < np.iinfo(np.int16).min):
        raise ValueError("Sample values must fit 16-bit signed integers")
    return array.astype(dtype).tobytes()
