"""
Motion signal preprocessing shared by the detector and the repetition estimator.

Handles:
- Reduction of a 3-axis signal to its dominant movement axis
- Motion intensity (spread of the samples around their mean)
- Low-pass filtering (Butterworth)
- Periodicity via normalized autocorrelation
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy import signal as scipy_signal

from ..config import CONFIG
from .windows import FusedWindow


@dataclass
class MotionFeatures:
    """Motion summary of a window."""
    intensity: float
    period: Optional[float]
    periodicity: float
    sampling_rate: float

    @property
    def is_periodic(self) -> bool:
        return self.period is not None


class SignalPreprocessor:
    """
    Preprocessor for three-dimensional motion signals.
    """

    def __init__(self, config=None):
        self.config = config or CONFIG

    def principal_axis(self, values: np.ndarray) -> np.ndarray:
        """
        Project a [n, 3] signal onto its axis of largest variance.

        Args:
            values: Raw samples

        Returns:
            Zero-mean 1D signal of length n
        """
        data = np.asarray(values, dtype=np.float64)
        if data.ndim == 1:
            return data - data.mean()
        centered = data - data.mean(axis=0)
        if len(centered) < 2 or not np.any(centered):
            return np.zeros(len(centered))
        _, _, vt = np.linalg.svd(centered, full_matrices=False)
        return centered @ vt[0]

    def intensity(self, values: np.ndarray) -> float:
        """Root of the total variance over all axes."""
        data = np.asarray(values, dtype=np.float64)
        if len(data) < 2:
            return 0.0
        return float(np.sqrt(np.sum(np.var(data, axis=0))))

    def autocorrelation(
        self,
        x: np.ndarray,
        max_lag: int,
        min_overlap: int
    ) -> np.ndarray:
        """
        Normalized autocorrelation for lags 0..max_lag.

        Each lag is the Pearson correlation of the overlapping parts, so the
        values do not shrink with the lag. Lags whose overlap is shorter
        than ``min_overlap`` are left at zero.
        """
        x = np.asarray(x, dtype=np.float64)
        result = np.zeros(max_lag + 1)
        for lag in range(max_lag + 1):
            a = x[:len(x) - lag]
            b = x[lag:]
            if len(a) < max(min_overlap, 2):
                break
            a = a - a.mean()
            b = b - b.mean()
            denom = np.sqrt(np.sum(a * a) * np.sum(b * b))
            result[lag] = np.sum(a * b) / denom if denom > 0 else 0.0
        return result

    def dominant_period(
        self,
        x: np.ndarray,
        sampling_rate: float,
        min_period: float,
        max_period: float,
        min_overlap_ratio: float = 0.5
    ) -> Tuple[Optional[float], float]:
        """
        Estimate the dominant period of a signal.

        The first autocorrelation peak within the period range that reaches
        80% of the strongest peak is taken, which avoids picking multiples
        of the true period.

        Returns:
            (period in seconds or None, autocorrelation at that period)
        """
        n = len(x)
        min_overlap = int(np.ceil(n * min_overlap_ratio))
        min_lag = max(1, int(np.ceil(min_period * sampling_rate)))
        max_lag = min(int(np.floor(max_period * sampling_rate)), n - min_overlap)
        if max_lag <= min_lag or not np.any(x):
            return None, 0.0

        acf = self.autocorrelation(x, max_lag + 1, min_overlap)
        peaks, _ = scipy_signal.find_peaks(acf[:max_lag + 2])
        peaks = peaks[(peaks >= min_lag) & (peaks <= max_lag)]
        if len(peaks) == 0:
            return None, 0.0

        strongest = np.max(acf[peaks])
        if strongest <= 0:
            return None, 0.0
        lag = int(next(p for p in peaks if acf[p] >= 0.8 * strongest))
        return lag / sampling_rate, float(acf[lag])

    def window_features(self, window: FusedWindow) -> MotionFeatures:
        """
        Motion intensity and periodicity of the most active motion source.

        Args:
            window: Fused window

        Returns:
            MotionFeatures; intensity 0 when the window holds no motion data
        """
        detector = self.config.detector
        best = None
        for key in window.motion_sources(self.config):
            values = window.segments[key].values
            value = self.intensity(values)
            if best is None or value > best[0]:
                best = (value, key, values)

        if best is None:
            return MotionFeatures(0.0, None, 0.0, 0.0)

        value, key, values = best
        rate = key.sensor_type.config(self.config).sampling_rate
        period, periodicity = self.dominant_period(
            self.principal_axis(values),
            rate,
            detector.min_period_sec,
            detector.max_period_sec
        )
        if periodicity < detector.min_periodicity:
            period = None

        return MotionFeatures(value, period, periodicity, rate)

    def _lowpass_filter(
        self,
        data: np.ndarray,
        cutoff: float,
        fs: float,
        order: int = 4
    ) -> np.ndarray:
        """Apply lowpass Butterworth filter."""
        nyq = 0.5 * fs
        normalized_cutoff = min(cutoff / nyq, 0.99)

        b, a = scipy_signal.butter(order, normalized_cutoff, btype='low')
        # filtfilt needs a signal longer than its padding
        if len(data) <= 3 * max(len(a), len(b)):
            return data
        return scipy_signal.filtfilt(b, a, data)

