"""
Exercise-block detection.
"""

from .exercise_block import (
    ExerciseBlockDetector,
    DetectorState,
    DetectorEvent,
)

__all__ = [
    'ExerciseBlockDetector',
    'DetectorState',
    'DetectorEvent',
]
