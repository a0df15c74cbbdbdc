"""
Window classification and result fusion.
"""

from .results import (
    ResistanceExercise,
    WindowClassification,
    ClassifiedExercise,
    BlockClassification,
    TrainingBlock,
)

from .classifier import (
    WindowClassifier,
    MLPClassifier,
    TorchWindowClassifier,
    ExerciseModelSource,
    DirectoryModelSource,
    check_labels,
    create_classifier,
    save_classifier,
    load_classifier,
)

from .engine import (
    ClassificationEngine,
    SessionMode,
    WindowVerdict,
    PendingBlock,
    fuse_verdicts,
)

__all__ = [
    # Results
    'ResistanceExercise',
    'WindowClassification',
    'ClassifiedExercise',
    'BlockClassification',
    'TrainingBlock',

    # Classifier
    'WindowClassifier',
    'MLPClassifier',
    'TorchWindowClassifier',
    'ExerciseModelSource',
    'DirectoryModelSource',
    'check_labels',
    'create_classifier',
    'save_classifier',
    'load_classifier',

    # Engine
    'ClassificationEngine',
    'SessionMode',
    'WindowVerdict',
    'PendingBlock',
    'fuse_verdicts',
]
