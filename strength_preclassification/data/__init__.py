"""
Sensor data: types, decoding, fusion into windows and wire formats.
"""

from .sensor_data import (
    SensorType,
    Location,
    SourceKey,
    Threed,
    Sample,
    RawFrame,
)

from .decoder import (
    DecodedBatch,
    SampleDecoder,
    encode_samples,
)

from .windows import (
    SourceSegment,
    FusedWindow,
    concatenate_windows,
)

from .fusion import FusionBuffer

from .codec import (
    encode_frame,
    frame_to_bytes,
    parse_frame,
    encode_windows,
    decode_windows,
)

from .preprocessing import (
    SignalPreprocessor,
    MotionFeatures,
)

from .recording import (
    save_training_block,
    load_recording,
    TrainingDataWriter,
)

__all__ = [
    # Types
    'SensorType',
    'Location',
    'SourceKey',
    'Threed',
    'Sample',
    'RawFrame',

    # Decoding
    'DecodedBatch',
    'SampleDecoder',
    'encode_samples',

    # Windows
    'SourceSegment',
    'FusedWindow',
    'concatenate_windows',
    'FusionBuffer',

    # Wire formats
    'encode_frame',
    'frame_to_bytes',
    'parse_frame',
    'encode_windows',
    'decode_windows',

    # Preprocessing
    'SignalPreprocessor',
    'MotionFeatures',

    # Recording
    'save_training_block',
    'load_recording',
    'TrainingDataWriter',
]
