"""
Fusion buffer: time-aligns samples from several sources into windows.

Each (sensor, device, location) source is buffered independently. The
window [t, t + length) is complete once every registered source has
samples covering its end; the cursor then advances by the step size, so a
step shorter than the window yields overlapping windows. A source that
falls behind by more than the gap timeout (in stream time) no longer holds
the window back: the window is emitted with that source marked as a gap.
"""

import math
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..config import CONFIG
from ..exceptions import FusionGap, ReorderError
from ..utils import get_logger
from .decoder import DecodedBatch
from .sensor_data import Sample, SourceKey
from .windows import FusedWindow, SourceSegment, TIME_EPSILON


class _SourceStream:
    """Buffered samples of a single source."""

    def __init__(self, key: SourceKey, period: float, dimension: int):
        self.key = key
        self.period = period
        self.dimension = dimension
        self.timestamps = np.zeros(0, dtype=np.float64)
        self.values = np.zeros((0, dimension), dtype=np.int16)
        self.last_timestamp = -math.inf

    @property
    def coverage_end(self) -> float:
        """Time up to which this source has delivered samples."""
        return self.last_timestamp + self.period

    @property
    def earliest(self) -> float:
        return self.timestamps[0] if len(self.timestamps) else math.inf

    def append(self, timestamps: np.ndarray, values: np.ndarray):
        self.timestamps = np.concatenate([self.timestamps, timestamps])
        self.values = np.concatenate([self.values, values.astype(np.int16)])
        self.last_timestamp = float(timestamps[-1])

    def segment(self, start: float, end: float, gap: bool) -> SourceSegment:
        mask = (self.timestamps >= start - TIME_EPSILON) & (self.timestamps < end - TIME_EPSILON)
        return SourceSegment(
            timestamps=self.timestamps[mask].copy(),
            values=self.values[mask].copy(),
            gap=gap
        )

    def discard_before(self, time: float):
        keep = self.timestamps >= time - TIME_EPSILON
        self.timestamps = self.timestamps[keep]
        self.values = self.values[keep]

    def clear(self):
        self.timestamps = self.timestamps[:0]
        self.values = self.values[:0]


class FusionBuffer:
    """
    Time-aligns sample streams into fixed-length, possibly overlapping windows.

    ``push`` and ``push_batch`` never block; ``poll`` returns the next
    complete window or None.
    """

    def __init__(self, config=None):
        self.config = config or CONFIG
        self.logger = get_logger('fusion')

        fusion = self.config.fusion
        self.window_length = fusion.window_length_sec
        self.window_step = fusion.window_step_sec
        self.gap_timeout = fusion.gap_timeout_sec
        self.auto_register = not fusion.sources

        self._streams: Dict[SourceKey, _SourceStream] = {}
        self._hints: List[Tuple[float, float, str]] = []
        self._cursor: Optional[float] = None
        self._next_index = 0

        # Diagnostics
        self.boundary_violations = 0
        self.unregistered_samples = 0
        self.gap_windows = 0

        for sensor, device_id, location in fusion.sources:
            self.register(SourceKey.parse(sensor, device_id, location))

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    @property
    def sources(self) -> List[SourceKey]:
        return sorted(self._streams)

    @property
    def cursor(self) -> Optional[float]:
        """Start time of the next window, None before the first sample."""
        return self._cursor

    @property
    def backlog(self) -> int:
        """Windows whose span every source has already covered but that were not yet polled."""
        if self._cursor is None or not self._streams:
            return 0
        covered = min(stream.coverage_end for stream in self._streams.values())
        ready = covered - self._cursor - self.window_length
        if ready < -TIME_EPSILON:
            return 0
        return math.floor(ready / self.window_step + TIME_EPSILON) + 1

    def register(self, key: SourceKey):
        """Register a source that every window must wait for."""
        if key in self._streams:
            return
        sensor = key.sensor_type.config(self.config)
        self._streams[key] = _SourceStream(key, sensor.sample_period, sensor.dimension)
        self.logger.debug(f"Registered source {key}")

    # -------------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------------

    def push(self, sample: Sample) -> bool:
        """
        Append a single sample.

        Returns:
            False if the sample was dropped
        """
        values = np.asarray([sample.as_tuple()], dtype=np.int16)
        timestamps = np.asarray([sample.timestamp], dtype=np.float64)
        return self._append(sample.source, timestamps, values, None) == 1

    def push_batch(self, batch: DecodedBatch) -> int:
        """
        Append all samples of a decoded batch.

        Returns:
            Number of samples accepted
        """
        if len(batch) == 0:
            return 0
        return self._append(batch.source, batch.timestamps, batch.values, batch.hint)

    def _append(self, key: SourceKey, timestamps: np.ndarray, values: np.ndarray,
                hint: Optional[str]) -> int:
        stream = self._streams.get(key)
        if stream is None:
            if not self.auto_register:
                self.unregistered_samples += len(timestamps)
                self.logger.warning(f"Dropped {len(timestamps)} samples from unregistered source {key}")
                return 0
            self.register(key)
            stream = self._streams[key]

        # Each sample must be newer than everything the source delivered so far
        prior = np.maximum.accumulate(np.concatenate([[stream.last_timestamp], timestamps]))[:-1]
        in_order = timestamps > prior + TIME_EPSILON
        if self._cursor is not None:
            in_order &= timestamps >= self._cursor - TIME_EPSILON

        dropped = int(np.count_nonzero(~in_order))
        if dropped:
            first_bad = int(np.argmin(in_order))
            error = ReorderError(key, float(timestamps[first_bad]), float(prior[first_bad]))
            self.boundary_violations += dropped
            self.logger.warning(
                f"{error}; dropped {dropped} samples "
                f"({self.boundary_violations} boundary violations so far)"
            )
            timestamps = timestamps[in_order]
            values = values[in_order]

        if len(timestamps) == 0:
            return 0

        stream.append(timestamps, values.reshape(len(timestamps), stream.dimension))
        if hint is not None:
            self._hints.append((float(timestamps[0]), float(timestamps[-1]), hint))
        if self._cursor is None:
            self._cursor = float(timestamps[0])

        return len(timestamps)

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def poll(self) -> Optional[FusedWindow]:
        """
        Return the next complete window, if any.

        Returns:
            The window, or None if some source has not yet covered it and
            the gap timeout has not expired
        """
        if self._cursor is None or not self._streams:
            return None

        self._skip_silence()

        start = self._cursor
        end = start + self.window_length

        lagging = [key for key, stream in self._streams.items()
                   if stream.coverage_end < end - TIME_EPSILON]
        if lagging:
            frontier = max(stream.coverage_end for stream in self._streams.values())
            if frontier < end + self.gap_timeout - TIME_EPSILON:
                return None
            self.gap_windows += 1
            for key in lagging:
                self.logger.warning(str(FusionGap(key, start, end)))

        segments = {
            key: stream.segment(start, end, key in lagging)
            for key, stream in self._streams.items()
        }
        hints = []
        for first, last, hint in self._hints:
            if first < end and last >= start and hint not in hints:
                hints.append(hint)

        window = FusedWindow(
            index=self._next_index,
            start=start,
            end=end,
            segments=segments,
            hints=tuple(hints)
        )
        self._next_index += 1
        self._advance(start + self.window_step)

        self.logger.debug(
            f"Window {window.index} [{start:.3f}, {end:.3f}) "
            f"{window.sample_count} samples, gaps: {len(window.gaps)}"
        )
        return window

    def drain(self, limit: Optional[int] = None) -> List[FusedWindow]:
        """Poll until no window is complete, or ``limit`` windows were emitted."""
        windows = []
        while limit is None or len(windows) < limit:
            window = self.poll()
            if window is None:
                break
            windows.append(window)
        return windows

    def _skip_silence(self):
        """Jump over stretches where no source has buffered samples."""
        earliest = min(stream.earliest for stream in self._streams.values())
        if math.isinf(earliest):
            return
        if earliest >= self._cursor + self.window_length:
            steps = math.floor((earliest - self._cursor - self.window_length) / self.window_step) + 1
            self._advance(self._cursor + steps * self.window_step)

    def _advance(self, cursor: float):
        self._cursor = cursor
        for stream in self._streams.values():
            stream.discard_before(cursor)
        self._hints = [h for h in self._hints if h[1] >= cursor - TIME_EPSILON]

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def set_window_step(self, step_sec: float):
        """
        Change the window step size.

        Changing the step resets in-flight fusion state: buffered samples
        and the window cursor are discarded; registered sources are kept.
        """
        if step_sec <= 0:
            raise ValueError("Window step must be positive")
        self.window_step = step_sec
        self.reset()

    def reset(self):
        """Discard buffered samples and restart windowing at the next sample."""
        for stream in self._streams.values():
            stream.clear()
            stream.last_timestamp = -math.inf
        self._hints = []
        self._cursor = None
