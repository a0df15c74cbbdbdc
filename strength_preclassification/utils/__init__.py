"""
Utility modules for the preclassification pipeline.
"""

from .logging_utils import (
    setup_logging,
    get_logger,
    ColorFormatter,
    MinimalConsoleFormatter,
)

__all__ = [
    'setup_logging',
    'get_logger',
    'ColorFormatter',
    'MinimalConsoleFormatter',
]
