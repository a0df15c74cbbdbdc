"""
Preclassification pipeline facade.

Owns the decoder, the fusion buffer, the exercise-block detector, the
classification engine and the repetition estimator of one session, and
turns pushed device frames into observer callbacks:

    push_data -> decode -> fuse -> detect -> classify -> observers

A session is created either for training or for classifying; the mode
cannot change afterwards. ``push_data`` is the hot path and completes at
most ``max_windows_per_push`` windows per call; the block boundaries
(``training_completed`` / ``exercise_completed``) flush whatever is
complete and hand the block over.
"""

from collections import deque
from typing import Deque, Dict, List, Optional, Union

from ..classification.engine import ClassificationEngine, PendingBlock, SessionMode
from ..config import CONFIG
from ..data.codec import parse_frame
from ..data.decoder import SampleDecoder
from ..data.fusion import FusionBuffer
from ..data.preprocessing import SignalPreprocessor
from ..data.sensor_data import Location, RawFrame
from ..data.windows import FusedWindow
from ..detection.exercise_block import DetectorEvent, ExerciseBlockDetector
from ..estimation.repetitions import RepetitionEstimator
from ..exceptions import DecodeError, SessionModeError
from ..utils import get_logger
from .dispatch import Dispatcher


class Preclassification:
    """
    One preclassification session.

    Callers must serialize calls per session. Observer callbacks run inline
    or, with ``pipeline.background_dispatch``, on a single worker thread in
    the order the events occurred. A callback that raises is logged and
    counted in ``diagnostics``; the session carries on.
    """

    def __init__(
        self,
        mode: SessionMode,
        classifier=None,
        config=None,
        device_data_observer=None,
        exercise_block_observer=None,
        classification_observer=None,
        training_observer=None
    ):
        """
        Initialize the session.

        Args:
            mode: Training or classifying, fixed for the session lifetime
            classifier: Window classifier (classifying sessions)
            config: Configuration object
            device_data_observer: Receives every decoded batch
            exercise_block_observer: Receives detector transitions
            classification_observer: Receives fused block results
            training_observer: Receives labelled training blocks
        """
        self.config = config or CONFIG
        self.mode = mode
        self.logger = get_logger('pipeline')

        self.device_data_observer = device_data_observer
        self.exercise_block_observer = exercise_block_observer
        self.classification_observer = classification_observer
        self.training_observer = training_observer

        preprocessor = SignalPreprocessor(self.config)
        self.decoder = SampleDecoder(self.config)
        self.fusion = FusionBuffer(self.config)
        self.detector = ExerciseBlockDetector(self.config, preprocessor=preprocessor)
        self.estimator = RepetitionEstimator(self.config, preprocessor)
        self.engine = ClassificationEngine(mode, classifier, self.estimator, self.config)
        self.dispatcher = Dispatcher(self.config.pipeline.background_dispatch)

        # Windows of the movement run that precedes an exercise block
        self._preroll: Deque[FusedWindow] = deque(maxlen=self.config.detector.consistency_run)

        # Diagnostics
        self.decode_errors = 0
        self.windows_processed = 0
        self.peak_backlog = 0
        self._behind = False

        if mode == SessionMode.CLASSIFYING and classifier is None:
            self.logger.warning("Classifying session without a classifier; blocks will report failures")

        self.logger.info(
            f"Session started in {mode.value} mode "
            f"(window {self.fusion.window_length:.2f} s, step {self.fusion.window_step:.2f} s)"
        )

    @classmethod
    def training(cls, config=None, **observers) -> 'Preclassification':
        """Create a session that records labelled training blocks."""
        return cls(SessionMode.TRAINING, config=config, **observers)

    @classmethod
    def classifying(cls, classifier, config=None, **observers) -> 'Preclassification':
        """Create a session that classifies exercise blocks with ``classifier``."""
        return cls(SessionMode.CLASSIFYING, classifier=classifier, config=config, **observers)

    # -------------------------------------------------------------------------
    # Hot path
    # -------------------------------------------------------------------------

    def push_data(
        self,
        data: bytes,
        location: Union[Location, int, str],
        hint: Optional[str] = None
    ) -> int:
        """
        Push one raw device frame.

        Malformed frames are counted and logged, never raised.

        Args:
            data: Frame bytes (header and packed records)
            location: Where the sending sensor is worn
            hint: Planned exercise, used only by training sessions

        Returns:
            Number of fused windows completed by this call
        """
        if isinstance(location, str):
            location = Location.from_name(location)

        try:
            frame = parse_frame(data, location, hint, self.config)
        except DecodeError as e:
            self.decode_errors += 1
            self.logger.warning(f"Dropped frame: {e} ({self.decode_errors} decode errors so far)")
            return 0

        return self.push_frame(frame)

    def push_frame(self, frame: RawFrame) -> int:
        """
        Push one already parsed frame.

        Returns:
            Number of fused windows completed by this call
        """
        try:
            batch = self.decoder.decode(frame)
        except DecodeError as e:
            self.decode_errors += 1
            self.logger.warning(f"{e} ({self.decode_errors} decode errors so far)")
            batch = e.decoded
            if batch is None:
                return 0

        if len(batch) == 0:
            return 0

        if self.device_data_observer is not None:
            self.dispatcher.submit(self.device_data_observer.device_data_decoded, batch)

        self.fusion.push_batch(batch)

        windows = self.fusion.drain(self.config.fusion.max_windows_per_push)
        for window in windows:
            self._process_window(window)
        self._check_backlog()
        return len(windows)

    def _check_backlog(self):
        backlog = self.fusion.backlog
        self.peak_backlog = max(self.peak_backlog, backlog)
        behind = backlog > self.config.fusion.max_window_backlog
        if behind and not self._behind:
            self.logger.warning(
                f"{backlog} complete windows waiting; processing falls behind the stream "
                f"(raise max_windows_per_push or the window step)"
            )
        elif self._behind and not behind:
            self.logger.info("Window backlog cleared")
        self._behind = behind

    def _process_window(self, window: FusedWindow):
        self.windows_processed += 1
        events = self.detector.update(window)
        self._notify_block_events(events)

        if self.mode == SessionMode.TRAINING:
            self.engine.add_window(window)
            return

        if DetectorEvent.EXERCISING in events:
            self._preroll.append(window)
            self.engine.begin_block()
            for preceding in self._preroll:
                self.engine.add_window(preceding)
            self._preroll.clear()
        elif DetectorEvent.EXERCISE_ENDED in events:
            self._finish_exercise_block()
        elif self.detector.exercising:
            self.engine.add_window(window)
        else:
            self._preroll.append(window)

    # -------------------------------------------------------------------------
    # Block boundaries
    # -------------------------------------------------------------------------

    def training_started(self, label: Optional[str] = None):
        """
        Start a training block.

        Args:
            label: Ground-truth exercise; when None, the hints pushed with
                the frames of the block are used instead

        Raises:
            SessionModeError: on a classifying session
        """
        if self.mode != SessionMode.TRAINING:
            raise SessionModeError("training_started called on a classifying session")

        if label is not None and label not in self.config.classification.exercises:
            self.logger.warning(f"Training label '{label}' is not a configured exercise")

        # Windows that completed before the block belong to no block
        self._flush_windows()
        self.engine.begin_block(label)
        self.logger.info(f"Training started: {label}")

    def training_completed(self):
        """
        End the training block and deliver it to the training observer.

        Raises:
            SessionModeError: on a classifying session
        """
        if self.mode != SessionMode.TRAINING:
            raise SessionModeError("training_completed called on a classifying session")

        self._flush_windows()
        pending = self.engine.detach_block()
        self._notify_block_events(self.detector.end_block())
        self._preroll.clear()
        self.dispatcher.submit(self._deliver_training, pending)

    def exercise_completed(self):
        """
        End the current exercise block and deliver its classification.

        Always valid: without accumulated windows the classification
        observer receives an empty result.

        Raises:
            SessionModeError: on a training session
        """
        if self.mode != SessionMode.CLASSIFYING:
            raise SessionModeError("exercise_completed called on a training session")

        self._flush_windows()
        self._notify_block_events(self.detector.end_block())
        self._finish_exercise_block()

    def set_window_step(self, step_sec: float):
        """
        Change the window step size.

        Resets in-flight fusion state: buffered samples are discarded and
        windowing restarts at the next pushed sample. A running exercise
        block is completed first; a training block keeps accumulating.
        """
        if self.mode == SessionMode.CLASSIFYING and self.engine.in_block:
            self._notify_block_events(self.detector.end_block())
            self._finish_exercise_block()
        self.fusion.set_window_step(step_sec)
        self._preroll.clear()
        self.logger.info(f"Window step set to {step_sec:.2f} s")

    def _flush_windows(self):
        """Process every window that is already complete."""
        for window in self.fusion.drain():
            self._process_window(window)

    def _finish_exercise_block(self):
        pending = self.engine.detach_block()
        self._preroll.clear()
        self.dispatcher.submit(self._deliver_classification, pending)

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    def _deliver_classification(self, pending: PendingBlock):
        block = self.engine.classify_block(pending)
        if self.classification_observer is not None:
            self.classification_observer.classification_completed(block.results, block.data, block.failure)

    def _deliver_training(self, pending: PendingBlock):
        block = self.engine.training_block(pending)
        if block is not None and self.training_observer is not None:
            self.training_observer.training_completed(block.exercise, block.data)

    def _notify_block_events(self, events: List[DetectorEvent]):
        if self.exercise_block_observer is None:
            return
        for event in events:
            self.dispatcher.submit(getattr(self.exercise_block_observer, event.value))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def diagnostics(self) -> Dict[str, int]:
        """Running counters of absorbed data-level problems."""
        return {
            'decode_errors': self.decode_errors,
            'partial_frames': self.decoder.partial_frames,
            'boundary_violations': self.fusion.boundary_violations,
            'unregistered_samples': self.fusion.unregistered_samples,
            'gap_windows': self.fusion.gap_windows,
            'windows_processed': self.windows_processed,
            'window_backlog': self.fusion.backlog,
            'peak_window_backlog': self.peak_backlog,
            'callback_failures': self.dispatcher.failures,
        }

    def flush(self):
        """Wait for all dispatched callbacks to run."""
        self.dispatcher.flush()

    def close(self):
        """Run the remaining callbacks and stop the background worker."""
        self.dispatcher.close()
        self.logger.info(f"Session closed: {self.diagnostics}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
