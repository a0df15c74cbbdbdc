"""
Repetition estimation.
"""

from .repetitions import RepetitionEstimator

__all__ = [
    'RepetitionEstimator',
]
