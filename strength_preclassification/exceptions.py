"""
Error taxonomy for the preclassification pipeline.

Data-level errors (decode, reorder, gaps) are absorbed by the pipeline and
counted; block-level errors (classification failure) are surfaced through
the observers. Only SessionModeError reaches the caller.
"""

from typing import Any, Optional


class PreclassificationError(Exception):
    """Base class for all pipeline errors."""


class DecodeError(PreclassificationError):
    """
    A raw frame could not be decoded completely.

    Attributes:
        decoded: Batch of the records decoded before the malformed one, if any
    """

    def __init__(self, message: str, decoded: Optional[Any] = None):
        super().__init__(message)
        self.decoded = decoded


class BadHeader(DecodeError):
    """The header of a frame or an exported window block is malformed."""


class NotEnoughInput(DecodeError):
    """The input ended before a complete header or payload."""


class ReorderError(PreclassificationError):
    """A source delivered a sample older than one it already delivered."""

    def __init__(self, source, timestamp: float, last_timestamp: float):
        super().__init__(
            f"Out-of-order sample from {source}: {timestamp:.4f} < {last_timestamp:.4f}"
        )
        self.source = source
        self.timestamp = timestamp
        self.last_timestamp = last_timestamp


class FusionGap(PreclassificationError):
    """A registered source did not cover a window before the gap timeout."""

    def __init__(self, source, window_start: float, window_end: float):
        super().__init__(
            f"Source {source} missed window [{window_start:.3f}, {window_end:.3f})"
        )
        self.source = source
        self.window_start = window_start
        self.window_end = window_end


class TooDiscontinuous(PreclassificationError):
    """The gap between two segments is too long to interpolate."""

    def __init__(self, gap: float):
        super().__init__(f"Gap of {gap:.3f} s is too long to pad")
        self.gap = gap


class MismatchedDimension(PreclassificationError):
    """Two segments of the same source disagree on their dimension."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Expected dimension {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class ClassificationFailure(PreclassificationError):
    """The external classifier is unavailable or rejected its input."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RepetitionUnavailable(PreclassificationError):
    """The motion signal is not periodic enough to count repetitions."""


class SessionModeError(PreclassificationError):
    """A training call was made on a classifying session, or vice versa."""
