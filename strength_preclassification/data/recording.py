"""
Recording I/O.

Training blocks are saved as numbered folders:

    training_001/
        accelerometer_left_wrist_0.csv     time + one column per axis
        windows.bin                         exported window bytes
        metadata.json

Recordings in the same CSV layout can be loaded back as raw frames and
replayed through a session.
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..config import CONFIG
from ..config.settings import TRAINING_DIR
from ..utils import get_logger
from .codec import decode_windows, encode_windows
from .decoder import encode_samples
from .sensor_data import Location, RawFrame, SensorType, SourceKey
from .windows import FusedWindow

AXIS_COLUMNS = ['x', 'y', 'z']
VALUE_COLUMNS = ['value']

logger = get_logger('main')


def get_next_training_folder(base_dir: Path) -> Path:
    """Create and return the next free ``training_NNN`` folder."""
    base = Path(base_dir)
    base.mkdir(parents=True, exist_ok=True)

    i = 1
    while True:
        folder = base / f"training_{i:03d}"
        if not folder.exists():
            folder.mkdir()
            return folder
        i += 1


def source_filename(key: SourceKey) -> str:
    return f"{key.sensor_type.config_name}_{key.location.name.lower()}_{key.device_id}.csv"


def windows_to_frames(windows: Sequence[FusedWindow]) -> Dict[SourceKey, pd.DataFrame]:
    """
    Collect the samples of a block per source.

    Overlapping windows share samples; each sample appears once.
    """
    parts: Dict[SourceKey, List[pd.DataFrame]] = {}
    for window in windows:
        for key, segment in window.segments.items():
            if len(segment) == 0:
                continue
            columns = AXIS_COLUMNS if segment.dimension == 3 else VALUE_COLUMNS
            df = pd.DataFrame(segment.values.astype(np.int64), columns=columns)
            df.insert(0, 'time', segment.timestamps)
            parts.setdefault(key, []).append(df)

    return {
        key: (pd.concat(dfs, ignore_index=True)
              .drop_duplicates(subset='time')
              .sort_values('time')
              .reset_index(drop=True))
        for key, dfs in parts.items()
    }


def save_training_block(
    exercise: str,
    data: Union[bytes, Sequence[FusedWindow]],
    base_dir: Optional[Path] = None
) -> Path:
    """
    Save a labelled training block.

    Args:
        exercise: Ground-truth exercise label
        data: Exported window bytes, or the windows themselves
        base_dir: Folder that receives the numbered training folders

    Returns:
        The folder the block was written to
    """
    if isinstance(data, (bytes, bytearray)):
        raw = bytes(data)
        windows = decode_windows(raw)
    else:
        windows = list(data)
        raw = encode_windows(windows)

    folder = get_next_training_folder(base_dir or TRAINING_DIR)

    sources = windows_to_frames(windows)
    for key, df in sources.items():
        df.to_csv(folder / source_filename(key), index=False)

    (folder / "windows.bin").write_bytes(raw)

    metadata = {
        "timestamp": datetime.now().strftime("%Y%m%d_%H%M%S"),
        "exercise": exercise,
        "windows": len(windows),
        "start": windows[0].start if windows else None,
        "end": windows[-1].end if windows else None,
        "total_samples": {str(key): len(df) for key, df in sources.items()},
        "hints": sorted({h for w in windows for h in w.hints}),
    }
    with open(folder / "metadata.json", 'w') as f:
        json.dump(metadata, f, indent=2)

    logger.info(f"Saved training block '{exercise}' ({len(windows)} windows) to {folder}")
    return folder


def _filename_pattern() -> re.Pattern:
    sensors = '|'.join(s.config_name for s in SensorType)
    locations = '|'.join(loc.name.lower() for loc in Location)
    return re.compile(
        rf"^(?P<sensor>{sensors})_(?P<location>{locations})(?:_(?P<device>\d+))?\.csv$"
    )


def load_recording(
    folder: Path,
    frame_size: int = 25,
    config=None,
    hint: Optional[str] = None
) -> List[RawFrame]:
    """
    Load per-source CSV files as raw frames, ordered by time.

    Files are matched as ``<sensor>_<location>[_<device>].csv`` and must have
    a ``time`` column (seconds) followed by one column per axis. Other
    files are ignored.

    Args:
        folder: Recording folder
        frame_size: Records per frame
        config: Configuration object (for the sensors' byte order)
        hint: Planned exercise attached to every frame

    Returns:
        Frames of all sources, sorted by their first timestamp
    """
    config = config or CONFIG
    folder = Path(folder)
    if not folder.is_dir():
        raise FileNotFoundError(f"Recording folder not found: {folder}")

    pattern = _filename_pattern()
    frames: List[RawFrame] = []

    for path in sorted(folder.glob("*.csv")):
        match = pattern.match(path.name)
        if match is None:
            logger.debug(f"Skipping {path.name}")
            continue

        sensor_type = SensorType.from_name(match.group('sensor'))
        location = Location.from_name(match.group('location'))
        device_id = int(match.group('device') or 0)
        sensor = sensor_type.config(config)

        df = pd.read_csv(path)
        if 'time' not in df.columns:
            raise ValueError(f"{path.name} has no 'time' column")
        value_columns = [c for c in df.columns if c != 'time']
        if len(value_columns) != sensor.dimension:
            raise ValueError(
                f"{path.name} has {len(value_columns)} value columns, "
                f"{sensor.name} needs {sensor.dimension}"
            )

        df = df.sort_values('time')
        times = df['time'].to_numpy(dtype=np.float64)
        values = df[value_columns].to_numpy(dtype=np.int64)

        for start in range(0, len(df), frame_size):
            chunk = values[start:start + frame_size]
            frames.append(RawFrame(
                sensor_type=sensor_type,
                device_id=device_id,
                location=location,
                payload=encode_samples(chunk, sensor.byte_order),
                timestamp=float(times[start]),
                hint=hint
            ))

        logger.info(f"Loaded {len(df)} samples from {path.name}")

    frames.sort(key=lambda frame: (frame.timestamp, frame.source))
    return frames


class TrainingDataWriter:
    """Training observer that saves every completed training block."""

    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = Path(base_dir or TRAINING_DIR)
        self.saved: List[Path] = []

    def training_completed(self, exercise, data: bytes):
        self.saved.append(save_training_block(exercise.id, data, self.base_dir))
