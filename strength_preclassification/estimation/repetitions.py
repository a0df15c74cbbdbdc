"""
Repetition estimator.

Counts repetitions in the motion signal of an exercise block: the most
active motion source is reduced to its principal movement axis, the
dominant period is taken from the autocorrelation, and the peaks of the
low-pass filtered signal that are at least half a period apart are counted.
"""

from typing import Optional, Sequence, Tuple, Union

import numpy as np
from scipy import signal as scipy_signal

from ..config import CONFIG
from ..data.preprocessing import SignalPreprocessor
from ..data.windows import FusedWindow, concatenate_windows
from ..exceptions import MismatchedDimension, RepetitionUnavailable, TooDiscontinuous
from ..utils import get_logger


class RepetitionEstimator:
    """
    Estimates the repetition count of a block of fused windows.

    Holds only its tunable parameters; every call is independent.
    """

    def __init__(self, config=None, preprocessor: Optional[SignalPreprocessor] = None):
        self.config = config or CONFIG
        self.preprocessor = preprocessor or SignalPreprocessor(self.config)
        self.logger = get_logger('reps')

    def estimate(
        self,
        data: Union[FusedWindow, Sequence[FusedWindow]],
        exercise: Optional[str] = None
    ) -> Optional[int]:
        """
        Estimate the number of repetitions.

        Args:
            data: A window, or the windows of a block (concatenated first)
            exercise: Resolved exercise label, selects per-exercise periods

        Returns:
            Repetition count, or None when the signal is not periodic enough
        """
        try:
            return self.count(data, exercise)
        except RepetitionUnavailable as e:
            self.logger.debug(f"No repetition estimate: {e}")
            return None

    def count(
        self,
        data: Union[FusedWindow, Sequence[FusedWindow]],
        exercise: Optional[str] = None
    ) -> int:
        """
        Like ``estimate`` but raises instead of returning None.

        Raises:
            RepetitionUnavailable: if there is no periodic motion to count
        """
        window = data if isinstance(data, FusedWindow) else self._concatenate(data)

        signal, rate = self._motion_signal(window)
        min_period, max_period = self._period_range(exercise)
        cfg = self.config.repetition

        period, periodicity = self.preprocessor.dominant_period(
            signal, rate, min_period, max_period
        )
        if period is None or periodicity < cfg.min_periodicity:
            raise RepetitionUnavailable(
                f"Periodicity {periodicity:.2f} below {cfg.min_periodicity:.2f}"
            )

        smoothed = self.preprocessor._lowpass_filter(signal, cfg.lowpass_cutoff_hz, rate)
        prominence = cfg.prominence_ratio * float(np.ptp(smoothed))
        distance = max(1, int(0.5 * period * rate))
        peaks, _ = scipy_signal.find_peaks(smoothed, distance=distance, prominence=prominence)

        if len(peaks) < cfg.min_cycles:
            raise RepetitionUnavailable(
                f"{len(peaks)} cycles detected, at least {cfg.min_cycles} required"
            )

        self.logger.info(
            f"Estimated {len(peaks)} repetitions "
            f"(period {period:.2f} s, periodicity {periodicity:.2f})"
        )
        return len(peaks)

    def _concatenate(self, windows: Sequence[FusedWindow]) -> FusedWindow:
        if not windows:
            raise RepetitionUnavailable("No windows")
        try:
            return concatenate_windows(windows, self.config)
        except (TooDiscontinuous, MismatchedDimension) as e:
            raise RepetitionUnavailable(str(e)) from e

    def _motion_signal(self, window: FusedWindow) -> Tuple[np.ndarray, float]:
        """Principal-axis signal of the most active motion source."""
        best = None
        for key in window.motion_sources(self.config):
            values = window.segments[key].values
            intensity = self.preprocessor.intensity(values)
            if best is None or intensity > best[0]:
                best = (intensity, key, values)

        if best is None or best[0] == 0:
            raise RepetitionUnavailable("No motion data")

        _, key, values = best
        rate = key.sensor_type.config(self.config).sampling_rate
        return self.preprocessor.principal_axis(values), rate

    def _period_range(self, exercise: Optional[str]) -> Tuple[float, float]:
        cfg = self.config.repetition
        if exercise is not None and exercise in cfg.exercise_periods:
            return cfg.exercise_periods[exercise]
        return cfg.min_period_sec, cfg.max_period_sec
