"""
Classification result types.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..exceptions import ClassificationFailure


@dataclass(frozen=True)
class ResistanceExercise:
    """A resistance exercise, identified by its label."""
    id: str


@dataclass(frozen=True)
class WindowClassification:
    """Verdict of the classifier for a single window."""
    label: str
    confidence: float


@dataclass
class ClassifiedExercise:
    """
    Fused classification of an exercise block.

    Repetitions, weight and intensity are None when unknown.
    """
    exercise: ResistanceExercise
    confidence: float
    repetitions: Optional[int] = None
    weight: Optional[float] = None
    intensity: Optional[float] = None

    @property
    def label(self) -> str:
        return self.exercise.id


@dataclass
class BlockClassification:
    """
    Result of one exercise block, as delivered to the classification observer.

    Attributes:
        results: Ranked exercises, best first (empty on failure or no data)
        data: Exported bytes of the windows that were classified
        failure: Set when the classifier could not produce any verdict
        windows: Number of windows in the block
    """
    results: List[ClassifiedExercise] = field(default_factory=list)
    data: bytes = b''
    failure: Optional[ClassificationFailure] = None
    windows: int = 0

    @property
    def top(self) -> Optional[ClassifiedExercise]:
        return self.results[0] if self.results else None


@dataclass
class TrainingBlock:
    """Ground-truth label plus the windows recorded for it."""
    exercise: ResistanceExercise
    data: bytes
    windows: int
