"""
Strength Preclassification

Turns raw byte streams from wearable motion sensors into classified
resistance-exercise events.

Features:
- Decoding of device frames into typed samples
- Time-aligned fusion of several sensors into overlapping windows
- Exercise-block detection (moving / exercising / exercise ended)
- Windowed classification with weighted fusion of the verdicts
- Repetition counting
- Training-data capture with ground-truth labels

Usage:
    strength-preclassification --summary
    strength-preclassification --replay DIR --model-path model.pth
"""

__version__ = "1.0.0"
__author__ = "Master Thesis Project"

from .config import CONFIG, get_config, set_window_step
from .classification import (
    ClassificationEngine,
    ClassifiedExercise,
    ResistanceExercise,
    SessionMode,
    load_classifier,
)
from .data import FusionBuffer, SampleDecoder, FusedWindow
from .detection import ExerciseBlockDetector
from .estimation import RepetitionEstimator
from .pipeline import Preclassification

__all__ = [
    'CONFIG',
    'get_config',
    'set_window_step',
    'ClassificationEngine',
    'ClassifiedExercise',
    'ResistanceExercise',
    'SessionMode',
    'load_classifier',
    'FusionBuffer',
    'SampleDecoder',
    'FusedWindow',
    'ExerciseBlockDetector',
    'RepetitionEstimator',
    'Preclassification',
]
