"""
Classification engine.

In classifying mode every window of an exercise block is sent to the
classifier as it arrives; when the block completes, the per-window verdicts
are fused into one ranked list. Votes are weighted by confidence and by the
share of sources that covered the window; ties go to the label seen most
recently.

In training mode no classifier is involved: the windows between the start
and the end of a training block are exported together with the ground-truth
label.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..config import CONFIG
from ..data.codec import encode_windows
from ..data.windows import FusedWindow
from ..exceptions import ClassificationFailure, SessionModeError
from ..utils import get_logger
from .results import (
    BlockClassification,
    ClassifiedExercise,
    ResistanceExercise,
    TrainingBlock,
    WindowClassification,
)


class SessionMode(Enum):
    TRAINING = 'training'
    CLASSIFYING = 'classifying'


@dataclass
class WindowVerdict:
    """Classifier verdict for one window of the block."""
    window_index: int
    weight: float
    classification: WindowClassification


@dataclass
class PendingBlock:
    """Windows and verdicts of a block detached from the engine."""
    windows: List[FusedWindow] = field(default_factory=list)
    verdicts: List[WindowVerdict] = field(default_factory=list)
    failures: List[ClassificationFailure] = field(default_factory=list)
    label: Optional[str] = None
    started: bool = False


def fuse_verdicts(verdicts: List[WindowVerdict], max_results: int = 10) -> List[ClassifiedExercise]:
    """
    Fuse per-window verdicts into a ranked list of exercises.

    The score of a label is the sum of weight * confidence over the windows
    that voted for it; the reported confidence is that score divided by the
    total weight of all windows.

    Args:
        verdicts: Verdicts of the block, in any order
        max_results: Maximum number of exercises returned

    Returns:
        Exercises ordered by score, then by their most recent vote
    """
    if not verdicts:
        return []

    scores: Dict[str, float] = {}
    last_seen: Dict[str, int] = {}
    for verdict in verdicts:
        label = verdict.classification.label
        scores[label] = scores.get(label, 0.0) + verdict.weight * verdict.classification.confidence
        last_seen[label] = max(last_seen.get(label, -1), verdict.window_index)

    total_weight = sum(v.weight for v in verdicts)
    ranked = sorted(scores, key=lambda label: (scores[label], last_seen[label]), reverse=True)

    return [
        ClassifiedExercise(
            exercise=ResistanceExercise(label),
            confidence=min(1.0, scores[label] / total_weight) if total_weight > 0 else 0.0
        )
        for label in ranked[:max_results]
    ]


class ClassificationEngine:
    """
    Accumulates the windows of one block and turns them into a result.

    The mode is fixed at construction.
    """

    def __init__(
        self,
        mode: SessionMode,
        classifier=None,
        estimator=None,
        config=None
    ):
        """
        Initialize the engine.

        Args:
            mode: Training or classifying
            classifier: Window classifier (classifying mode)
            estimator: Repetition estimator applied to completed blocks
            config: Configuration object
        """
        self.config = config or CONFIG
        self._mode = mode
        self.classifier = classifier
        self.estimator = estimator
        self.logger = get_logger('classifier')

        self._windows: List[FusedWindow] = []
        self._verdicts: List[WindowVerdict] = []
        self._failures: List[ClassificationFailure] = []
        self._label: Optional[str] = None
        self._in_block = False

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def in_block(self) -> bool:
        return self._in_block

    @property
    def windows(self) -> List[FusedWindow]:
        return list(self._windows)

    # -------------------------------------------------------------------------
    # Block lifecycle
    # -------------------------------------------------------------------------

    def begin_block(self, label: Optional[str] = None):
        """
        Start accumulating a block.

        Args:
            label: Ground-truth exercise (training mode)
        """
        if self._in_block:
            self.logger.warning("Block started while another was in progress; discarding it")
        self.reset()
        self._label = label
        self._in_block = True

    def add_window(self, window: FusedWindow):
        """Add a window to the current block, classifying it in classifying mode."""
        if not self._in_block:
            return
        self._windows.append(window)
        if self._mode == SessionMode.CLASSIFYING:
            self._classify(window)

    def reset(self):
        """Drop everything accumulated for the current block."""
        self._windows = []
        self._verdicts = []
        self._failures = []
        self._label = None
        self._in_block = False

    def _classify(self, window: FusedWindow):
        if self.classifier is None:
            self._failures.append(ClassificationFailure("No classifier model available"))
            return

        try:
            classification = self.classifier.classify(window)
        except ClassificationFailure as e:
            self._failures.append(e)
            self.logger.warning(f"Window {window.index} not classified: {e.reason}")
            return
        except Exception as e:
            # The classifier is external; anything it raises is a failure of this window
            failure = ClassificationFailure(f"{type(e).__name__}: {e}")
            self._failures.append(failure)
            self.logger.warning(f"Window {window.index} not classified: {failure.reason}")
            return

        self._verdicts.append(WindowVerdict(window.index, self.window_weight(window), classification))

    def window_weight(self, window: FusedWindow) -> float:
        """Vote weight of a window; gapped sources reduce it but never to zero."""
        cfg = self.config.classification
        return max(cfg.min_window_weight, 1.0 - cfg.gap_penalty * window.gap_ratio)


    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    def detach_block(self) -> PendingBlock:
        """
        Hand over everything accumulated for the current block and reset.

        The returned block can be completed on another thread while the
        engine keeps accepting windows.
        """
        pending = PendingBlock(
            windows=self._windows,
            verdicts=self._verdicts,
            failures=self._failures,
            label=self._label,
            started=self._in_block
        )
        self.reset()
        return pending

    def complete_classification(self) -> BlockClassification:
        """Fuse the verdicts of the current block and reset it."""
        if self._mode != SessionMode.CLASSIFYING:
            raise SessionModeError("Exercise classification requires a classifying session")
        return self.classify_block(self.detach_block())

    def complete_training(self) -> Optional[TrainingBlock]:
        """Export the current training block and reset it."""
        if self._mode != SessionMode.TRAINING:
            raise SessionModeError("Training requires a training session")
        return self.training_block(self.detach_block())

    def classify_block(self, pending: PendingBlock) -> BlockClassification:
        """
        Fuse the verdicts of a detached block.

        Never raises for classifier problems: when no window could be
        classified the result is empty and carries the failure.
        """
        windows, verdicts, failures = pending.windows, pending.verdicts, pending.failures
        block = BlockClassification(data=encode_windows(windows), windows=len(windows))

        if verdicts:
            block.results = fuse_verdicts(verdicts, self.config.classification.max_results)
            if failures:
                self.logger.warning(
                    f"{len(failures)} of {len(windows)} windows could not be classified"
                )
        elif failures:
            block.failure = ClassificationFailure(
                f"{len(failures)} of {len(windows)} windows failed: {failures[-1].reason}"
            )
            self.logger.warning(f"Classification failed: {block.failure.reason}")
            return block

        if block.results and self.estimator is not None:
            repetitions = self.estimator.estimate(windows, exercise=block.results[0].label)
            for result in block.results:
                result.repetitions = repetitions

        if block.top is not None:
            self.logger.info(
                f"Classified {len(windows)} windows as {block.top.label} "
                f"({block.top.confidence:.2f}), repetitions: {block.top.repetitions}"
            )
        else:
            self.logger.info("Exercise block completed without windows")

        return block

    def training_block(self, pending: PendingBlock) -> Optional[TrainingBlock]:
        """
        Label a detached training block.

        Returns:
            The labelled block, or None if no training block was started
            or no label is known
        """
        if not pending.started:
            return None

        windows, label = pending.windows, pending.label
        if label is None:
            # Fall back to the planned exercise the frames were pushed with
            hints = Counter(h for window in windows for h in window.hints)
            label = hints.most_common(1)[0][0] if hints else None
        if label is None:
            self.logger.warning(f"Training block of {len(windows)} windows has no label; dropped")
            return None

        self.logger.info(f"Training block '{label}' completed with {len(windows)} windows")
        return TrainingBlock(
            exercise=ResistanceExercise(label),
            data=encode_windows(windows),
            windows=len(windows)
        )
