"""
Logging utilities for the preclassification pipeline.

Provides structured logging with separate handlers for:
- Console output (minimal, essential information only)
- File output (detailed logging for debugging)
- Per-stage logs (decoder, fusion, detector, classifier, reps)
"""

import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Optional

LOGGER_NAMESPACE = 'strength_pre'

LOGGER_FILES = {
    'main': 'main.log',
    'pipeline': 'pipeline.log',
    'decoder': 'decoder.log',
    'fusion': 'fusion.log',
    'detector': 'detector.log',
    'classifier': 'classifier.log',
    'reps': 'repetitions.log',
}

# Loggers that also write to the console
CONSOLE_LOGGERS = ['main', 'pipeline', 'classifier']


class ColorFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    # Color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        # Color a copy so file handlers keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        return super().format(record)


class MinimalConsoleFormatter(logging.Formatter):
    """Minimal formatter for essential console output."""

    def format(self, record):
        # Only show message for INFO, add prefix for warnings/errors
        if record.levelno == logging.INFO:
            return record.getMessage()
        elif record.levelno == logging.WARNING:
            return f"[WARNING] {record.getMessage()}"
        elif record.levelno >= logging.ERROR:
            return f"[ERROR] {record.getMessage()}"
        return record.getMessage()


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: str = 'INFO',
    verbose_console: bool = False,
    log_to_file: bool = True
) -> Dict[str, logging.Logger]:
    """
    Setup logging system with one logger per pipeline stage.

    Args:
        log_dir: Directory for log files
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        verbose_console: If True, show detailed output in console
        log_to_file: If False, only console handlers are installed

    Returns:
        Dictionary of loggers for different purposes
    """
    from ..config.settings import LOGS_DIR

    log_dir = Path(log_dir or LOGS_DIR)
    if log_to_file:
        log_dir.mkdir(parents=True, exist_ok=True)

    # Create timestamp for log files
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    loggers = {}
    for logger_name, log_filename in LOGGER_FILES.items():
        logger = logging.getLogger(f'{LOGGER_NAMESPACE}.{logger_name}')
        logger.setLevel(getattr(logging, log_level))
        logger.propagate = False
        logger.handlers = []  # Clear existing handlers

        # File handler - detailed output
        if log_to_file:
            file_handler = logging.FileHandler(
                log_dir / f"{timestamp}_{log_filename}",
                encoding='utf-8'
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            logger.addHandler(file_handler)

        # Console handler - minimal output for the user-facing loggers
        if logger_name in CONSOLE_LOGGERS or verbose_console:
            console_handler = logging.StreamHandler(sys.stdout)
            if verbose_console:
                console_handler.setLevel(logging.DEBUG)
                console_handler.setFormatter(ColorFormatter(
                    '%(levelname)s | %(name)s | %(message)s'
                ))
            else:
                console_handler.setLevel(logging.INFO)
                console_handler.setFormatter(MinimalConsoleFormatter())
            logger.addHandler(console_handler)

        loggers[logger_name] = logger

    return loggers


def get_logger(name: str = 'main') -> logging.Logger:
    """
    Get a logger by name.

    Args:
        name: Logger name (main, pipeline, decoder, fusion, detector, classifier, reps)

    Returns:
        Logger instance
    """
    logger = logging.getLogger(f'{LOGGER_NAMESPACE}.{name}')
    if not logger.handlers:
        # Logger not set up yet, create a basic one
        logger.setLevel(logging.INFO)
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(logging.WARNING)
        handler.setFormatter(MinimalConsoleFormatter())
        logger.addHandler(handler)
    return logger
