"""
Preclassification pipeline: session facade, observers and dispatch.
"""

from .preclassification import Preclassification

from .observers import (
    DeviceDataObserver,
    ExerciseBlockObserver,
    ClassificationObserver,
    TrainingObserver,
)

from .dispatch import Dispatcher

__all__ = [
    'Preclassification',
    'DeviceDataObserver',
    'ExerciseBlockObserver',
    'ClassificationObserver',
    'TrainingObserver',
    'Dispatcher',
]
