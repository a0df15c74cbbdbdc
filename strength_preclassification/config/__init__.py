"""
Configuration module for the preclassification pipeline.
"""

from .settings import (
    CONFIG,
    Config,
    SensorConfig,
    FusionConfig,
    DetectorConfig,
    ClassificationConfig,
    RepetitionConfig,
    PipelineConfig,
    OutputConfig,
    SENSORS,
    get_config,
    set_window_step,
)

__all__ = [
    'CONFIG',
    'Config',
    'SensorConfig',
    'FusionConfig',
    'DetectorConfig',
    'ClassificationConfig',
    'RepetitionConfig',
    'PipelineConfig',
    'OutputConfig',
    'SENSORS',
    'get_config',
    'set_window_step',
]
