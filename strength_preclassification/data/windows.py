"""
Fused sensor windows.

A FusedWindow holds, for every registered source, the samples that fall
into a fixed time span [start, end). Windows are handed out as copies and
treated as read-only afterwards.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..config import CONFIG
from ..exceptions import MismatchedDimension, TooDiscontinuous
from .sensor_data import SourceKey

# Timestamps closer than this are considered equal
TIME_EPSILON = 1e-9


@dataclass
class SourceSegment:
    """Samples of one source within a window."""
    timestamps: np.ndarray
    values: np.ndarray
    gap: bool = False

    @property
    def dimension(self) -> int:
        return self.values.shape[1]

    def __len__(self) -> int:
        return len(self.timestamps)

    @classmethod
    def empty(cls, dimension: int, gap: bool = False) -> 'SourceSegment':
        return cls(
            timestamps=np.zeros(0, dtype=np.float64),
            values=np.zeros((0, dimension), dtype=np.int16),
            gap=gap
        )


@dataclass
class FusedWindow:
    """
    Multi-source aggregate of samples covering [start, end).

    Attributes:
        index: Sequence number of the window within the stream
        start: Window start time in seconds
        end: Window end time in seconds
        segments: Samples per registered source
        hints: Planned-exercise hints of the frames that contributed
    """
    index: int
    start: float
    end: float
    segments: Dict[SourceKey, SourceSegment] = field(default_factory=dict)
    hints: Tuple[str, ...] = ()

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def sources(self) -> List[SourceKey]:
        return sorted(self.segments)

    @property
    def gaps(self) -> List[SourceKey]:
        return [key for key in self.sources if self.segments[key].gap]

    @property
    def has_gap(self) -> bool:
        return any(segment.gap for segment in self.segments.values())

    @property
    def gap_ratio(self) -> float:
        """Share of the sources that missed this window."""
        if not self.segments:
            return 0.0
        return len(self.gaps) / len(self.segments)

    @property
    def sample_count(self) -> int:
        return sum(len(segment) for segment in self.segments.values())

    def motion_sources(self, config=None) -> List[SourceKey]:
        """Three-dimensional motion sources with at least one sample."""
        config = config or CONFIG
        keys = []
        for key in self.sources:
            sensor = key.sensor_type.config(config)
            segment = self.segments[key]
            if sensor.motion and segment.dimension == 3 and len(segment) > 0:
                keys.append(key)
        return keys

    def channel_names(self) -> List[str]:
        names = []
        for key in self.sources:
            axes = ['x', 'y', 'z'] if self.segments[key].dimension == 3 else ['value']
            names.extend(f"{key}:{axis}" for axis in axes)
        return names

    def to_matrix(self, config=None, window_sec: Optional[float] = None) -> np.ndarray:
        """
        Resample the window into a fixed-size [channels, samples] matrix.

        Every source is brought to its expected sample count for the window
        length: short segments are padded with their edge values, long ones
        truncated, and empty (gapped) ones filled with zeros. Sources with
        different rates are then stretched to the longest source's length.

        Args:
            config: Configuration object
            window_sec: Nominal window length (defaults to the fusion window)

        Returns:
            Float32 matrix, channels ordered by source then axis
        """
        config = config or CONFIG
        window_sec = window_sec or config.fusion.window_length_sec

        columns = []
        for key in self.sources:
            segment = self.segments[key]
            expected = max(1, key.sensor_type.config(config).samples_per_window(window_sec))
            data = segment.values.astype(np.float32)

            if len(data) == 0:
                # Empty window - create zeros
                data = np.zeros((expected, segment.dimension), dtype=np.float32)
            elif len(data) < expected:
                # Pad with edge values
                data = np.pad(data, ((0, expected - len(data)), (0, 0)), mode='edge')
            elif len(data) > expected:
                data = data[:expected]

            columns.append(data)

        if not columns:
            return np.zeros((0, 0), dtype=np.float32)

        length = max(len(c) for c in columns)
        channels = []
        for data in columns:
            if len(data) != length:
                source_x = np.linspace(0.0, 1.0, len(data))
                target_x = np.linspace(0.0, 1.0, length)
                data = np.stack(
                    [np.interp(target_x, source_x, data[:, axis]) for axis in range(data.shape[1])],
                    axis=1
                )
            channels.append(data.T)

        return np.concatenate(channels, axis=0).astype(np.float32)


def _merge_segment(
    merged: SourceSegment,
    segment: SourceSegment,
    period: float,
    max_gap: float
) -> SourceSegment:
    """Append ``segment`` to ``merged``, resolving overlaps and filling gaps."""
    if len(segment) == 0:
        return merged
    if len(merged) == 0:
        return SourceSegment(segment.timestamps.copy(), segment.values.copy())
    if merged.dimension != segment.dimension:
        raise MismatchedDimension(merged.dimension, segment.dimension)

    last_timestamp = merged.timestamps[-1]
    newer = segment.timestamps > last_timestamp + TIME_EPSILON
    timestamps = segment.timestamps[newer]
    values = segment.values[newer]
    if len(timestamps) == 0:
        return merged

    gap = timestamps[0] - last_timestamp
    missing = int(round(gap / period)) - 1
    if missing > 0:
        if gap > max_gap:
            raise TooDiscontinuous(gap)
        # Linear interpolation per axis between the samples around the gap
        last = merged.values[-1].astype(np.float64)
        first = values[0].astype(np.float64)
        steps = np.arange(1, missing + 1)[:, None] / (missing + 1)
        fill_values = np.round(last + (first - last) * steps).astype(np.int16)
        fill_times = last_timestamp + np.arange(1, missing + 1) * period
        timestamps = np.concatenate([fill_times, timestamps])
        values = np.concatenate([fill_values, values])

    return SourceSegment(
        timestamps=np.concatenate([merged.timestamps, timestamps]),
        values=np.concatenate([merged.values, values]).astype(np.int16),
        gap=merged.gap
    )


def concatenate_windows(windows: Sequence[FusedWindow], config=None) -> FusedWindow:
    """
    Merge a sequence of (overlapping) windows into one continuous window.

    Overlapping samples are kept once, gaps up to the configured
    interpolation limit are filled linearly per axis.

    Args:
        windows: Windows in stream order
        config: Configuration object

    Returns:
        Window spanning the first window's start to the last window's end

    Raises:
        TooDiscontinuous: if a source has a gap longer than the limit
        MismatchedDimension: if a source changes its dimension
    """
    config = config or CONFIG
    if not windows:
        return FusedWindow(index=0, start=0.0, end=0.0)

    max_gap = config.fusion.max_interpolation_gap_sec
    merged: Dict[SourceKey, SourceSegment] = {}
    hints: List[str] = []

    for window in windows:
        for key, segment in window.segments.items():
            period = key.sensor_type.config(config).sample_period
            current = merged.get(key, SourceSegment.empty(segment.dimension))
            merged[key] = _merge_segment(current, segment, period, max_gap)
            if segment.gap:
                merged[key].gap = True
        hints.extend(h for h in window.hints if h not in hints)

    return FusedWindow(
        index=windows[0].index,
        start=windows[0].start,
        end=windows[-1].end,
        segments=merged,
        hints=tuple(hints)
    )
