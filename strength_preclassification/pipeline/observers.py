"""
Observer interfaces of the pipeline.

One capability per event category, so that components can be observed and
tested independently. Any object with the matching methods qualifies.
"""

from typing import List, Optional, Protocol

from ..classification.results import ClassifiedExercise, ResistanceExercise
from ..data.decoder import DecodedBatch
from ..exceptions import ClassificationFailure


class DeviceDataObserver(Protocol):
    """Receives every decoded batch, for diagnostics and display."""

    def device_data_decoded(self, batch: DecodedBatch) -> None:
        ...


class ExerciseBlockObserver(Protocol):
    """Receives the transitions of the exercise-block detector."""

    def moving(self) -> None:
        ...

    def not_moving(self) -> None:
        ...

    def exercising(self) -> None:
        ...

    def exercise_ended(self) -> None:
        ...


class ClassificationObserver(Protocol):
    """Receives the fused result of each completed exercise block."""

    def classification_completed(
        self,
        results: List[ClassifiedExercise],
        data: bytes,
        failure: Optional[ClassificationFailure] = None
    ) -> None:
        ...


class TrainingObserver(Protocol):
    """Receives the labelled data of each completed training block."""

    def training_completed(self, exercise: ResistanceExercise, data: bytes) -> None:
        ...
