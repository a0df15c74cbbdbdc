"""
Exercise-block detector.

A cyclic state machine evaluated once per fused window:

    NotMoving -> Moving         intensity rises above the still baseline
    Moving    -> NotMoving      intensity falls back
    Moving    -> Exercising     a run of windows with consistent period and intensity
    Exercising -> ExerciseEnded -> NotMoving
                                more than a grace run of still or divergent
                                windows, or the block reached its maximum length

Each transition is reported exactly once, not once per window.
"""

from collections import deque
from enum import Enum
from typing import Deque, List, Optional

import numpy as np

from ..config import CONFIG
from ..data.preprocessing import MotionFeatures, SignalPreprocessor
from ..data.windows import FusedWindow
from ..utils import get_logger


class DetectorState(Enum):
    NOT_MOVING = 'not_moving'
    MOVING = 'moving'
    EXERCISING = 'exercising'
    EXERCISE_ENDED = 'exercise_ended'


class DetectorEvent(Enum):
    """Transition events; the values name the observer methods."""
    MOVING = 'moving'
    NOT_MOVING = 'not_moving'
    EXERCISING = 'exercising'
    EXERCISE_ENDED = 'exercise_ended'


def _coefficient_of_variation(values: List[float]) -> float:
    mean = float(np.mean(values))
    if mean <= 0:
        return float('inf')
    return float(np.std(values)) / mean


class ExerciseBlockDetector:
    """
    Classifies motion intensity into not moving / moving / exercising.

    The still baseline is a running average of the intensity of still
    windows; it survives ``reset`` so that block boundaries do not forget
    the noise floor of the sensors.
    """

    def __init__(self, config=None, observer=None, preprocessor: Optional[SignalPreprocessor] = None):
        """
        Initialize the detector.

        Args:
            config: Configuration object
            observer: Optional exercise-block observer notified directly
            preprocessor: Signal preprocessor used for window features
        """
        self.config = config or CONFIG
        self.observer = observer
        self.preprocessor = preprocessor or SignalPreprocessor(self.config)
        self.logger = get_logger('detector')

        self.state = DetectorState.NOT_MOVING
        self.baseline = 0.0
        self._run: Deque[MotionFeatures] = deque(maxlen=self.config.detector.consistency_run)
        self._reference: Optional[MotionFeatures] = None
        self._bad_run = 0
        self._block_windows = 0

    @property
    def exercising(self) -> bool:
        return self.state == DetectorState.EXERCISING

    @property
    def block_windows(self) -> int:
        """Windows seen in the current exercise block, including the run that started it."""
        return self._block_windows

    def update(self, window: FusedWindow) -> List[DetectorEvent]:
        """
        Evaluate one window.

        Args:
            window: Complete fused window

        Returns:
            Transition events fired by this window, in order
        """
        cfg = self.config.detector
        features = self.preprocessor.window_features(window)
        moving = features.intensity - self.baseline > cfg.movement_threshold

        self.logger.debug(
            f"Window {window.index}: intensity {features.intensity:.1f} "
            f"(baseline {self.baseline:.1f}), period {features.period}, "
            f"periodicity {features.periodicity:.2f}, state {self.state.value}"
        )

        events = []
        if self.state == DetectorState.NOT_MOVING:
            if moving:
                self.state = DetectorState.MOVING
                self._run.clear()
                self._run.append(features)
                events.append(DetectorEvent.MOVING)
            else:
                self._update_baseline(features)

        elif self.state == DetectorState.MOVING:
            if not moving:
                self.state = DetectorState.NOT_MOVING
                self._run.clear()
                self._update_baseline(features)
                events.append(DetectorEvent.NOT_MOVING)
            else:
                self._run.append(features)
                if len(self._run) == self._run.maxlen and self._is_consistent(list(self._run)):
                    self._start_block()
                    events.append(DetectorEvent.EXERCISING)

        elif self.state == DetectorState.EXERCISING:
            self._block_windows += 1
            if not moving or self._diverges(features):
                self._bad_run += 1
            else:
                self._bad_run = 0

            if self._bad_run > cfg.grace_run:
                self.logger.info(f"Exercise block ended after {self._block_windows} windows")
                events.extend(self._end_block())
            elif self._block_windows >= cfg.max_block_windows:
                self.logger.info(f"Exercise block reached the limit of {cfg.max_block_windows} windows")
                events.extend(self._end_block())

        self._notify(events)
        return events

    def end_block(self) -> List[DetectorEvent]:
        """
        Force the machine back to NotMoving at a block boundary.

        Returns:
            The closing events (exercise_ended and/or not_moving), if any
        """
        events = []
        if self.state == DetectorState.EXERCISING:
            events = self._end_block()
        elif self.state == DetectorState.MOVING:
            self.state = DetectorState.NOT_MOVING
            self._run.clear()
            events = [DetectorEvent.NOT_MOVING]
        self._notify(events)
        return events

    def reset(self, keep_baseline: bool = True):
        """Return to NotMoving without firing events."""
        self.state = DetectorState.NOT_MOVING
        self._run.clear()
        self._reference = None
        self._bad_run = 0
        self._block_windows = 0
        if not keep_baseline:
            self.baseline = 0.0

    def _start_block(self):
        run = list(self._run)
        self._reference = MotionFeatures(
            intensity=float(np.median([f.intensity for f in run])),
            period=float(np.median([f.period for f in run])),
            periodicity=float(np.median([f.periodicity for f in run])),
            sampling_rate=run[-1].sampling_rate
        )
        self.state = DetectorState.EXERCISING
        self._bad_run = 0
        self._block_windows = len(run)
        self.logger.info(
            f"Exercising: period {self._reference.period:.2f} s, "
            f"intensity {self._reference.intensity:.1f}"
        )

    def _end_block(self) -> List[DetectorEvent]:
        self.state = DetectorState.EXERCISE_ENDED
        self.reset()
        return [DetectorEvent.EXERCISE_ENDED, DetectorEvent.NOT_MOVING]

    def _is_consistent(self, run: List[MotionFeatures]) -> bool:
        cfg = self.config.detector
        if any(f.period is None for f in run):
            return False
        period_cv = _coefficient_of_variation([f.period for f in run])
        intensity_cv = _coefficient_of_variation([f.intensity for f in run])
        return period_cv <= cfg.period_cv_max and intensity_cv <= cfg.magnitude_cv_max

    def _diverges(self, features: MotionFeatures) -> bool:
        reference = self._reference
        bound = self.config.detector.divergence_bound
        if reference is None or features.period is None:
            return True
        period_change = abs(features.period - reference.period) / reference.period
        intensity_change = abs(features.intensity - reference.intensity) / max(reference.intensity, 1e-9)
        return period_change > bound or intensity_change > bound

    def _update_baseline(self, features: MotionFeatures):
        alpha = self.config.detector.baseline_alpha
        self.baseline = (1 - alpha) * self.baseline + alpha * features.intensity

    def _notify(self, events: List[DetectorEvent]):
        if self.observer is None:
            return
        for event in events:
            getattr(self.observer, event.value)()
