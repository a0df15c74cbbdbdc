"""
Centralized Configuration Module for the Preclassification Pipeline.

All sensor definitions, window sizes, detector thresholds, classification
and repetition-counting parameters are defined here. The detector and
estimator thresholds are tunable; the defaults suit wrist-worn
accelerometers reporting milli-g.
"""

from pathlib import Path
from typing import Dict, List, Any, Optional, Tuple
from dataclasses import dataclass, field, asdict
import copy
import json


# =============================================================================
# BASE PATHS
# =============================================================================

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent.absolute()

# Output directories
OUTPUT_DIR = PROJECT_ROOT / "output"
LOGS_DIR = OUTPUT_DIR / "logs"
TRAINING_DIR = OUTPUT_DIR / "training"
MODELS_DIR = OUTPUT_DIR / "models"


# =============================================================================
# SENSOR CONFIGURATION
# =============================================================================

@dataclass
class SensorConfig:
    """Configuration for a single sensor type on the wire."""
    name: str
    code: int
    dimension: int
    sampling_rate: float
    byte_order: str = 'little'  # 'little' or 'big'
    motion: bool = True  # used for motion detection and repetition counting

    @property
    def record_size(self) -> int:
        """Bytes per record: one 16-bit signed integer per axis."""
        return self.dimension * 2

    @property
    def sample_period(self) -> float:
        return 1.0 / self.sampling_rate

    def samples_per_window(self, window_sec: float) -> int:
        """Calculate number of samples for a given time window."""
        return int(round(self.sampling_rate * window_sec))


# Sensor definitions with sampling rates
SENSORS: Dict[str, SensorConfig] = {
    'accelerometer': SensorConfig(
        name='accelerometer',
        code=1,
        dimension=3,
        sampling_rate=50.0
    ),
    'gyroscope': SensorConfig(
        name='gyroscope',
        code=2,
        dimension=3,
        sampling_rate=50.0
    ),
    'heart_rate': SensorConfig(
        name='heart_rate',
        code=3,
        dimension=1,
        sampling_rate=1.0,
        motion=False
    ),
}


# =============================================================================
# FUSION CONFIGURATION
# =============================================================================

@dataclass
class FusionConfig:
    """Windowing and multi-source alignment configuration."""

    # Time windowing (in seconds, not samples)
    window_length_sec: float = 4.0
    window_step_sec: float = 1.0  # 75% overlap

    # A lagging source is marked as a gap once the most advanced source
    # has covered this much stream time past the window end
    gap_timeout_sec: float = 1.0

    # Registered (sensor, device id, location) sources. Empty means that
    # sources are registered as they deliver their first sample.
    sources: List[Tuple[str, int, str]] = field(default_factory=list)

    # Windows completed per push_data call (block boundaries drain all)
    max_windows_per_push: int = 1

    # Complete windows left waiting before the session warns that
    # processing falls behind the stream
    max_window_backlog: int = 10

    # Longest gap that is linearly interpolated when concatenating windows
    max_interpolation_gap_sec: float = 10.0


# =============================================================================
# DETECTOR CONFIGURATION
# =============================================================================

@dataclass
class DetectorConfig:
    """Exercise-block detector thresholds."""

    # Motion intensity (raw sensor units) above the still baseline
    movement_threshold: float = 100.0
    baseline_alpha: float = 0.1

    # Consecutive consistent windows required before "exercising"
    consistency_run: int = 3
    period_cv_max: float = 0.25
    magnitude_cv_max: float = 0.35

    # Relative deviation from the block reference that counts as divergent
    divergence_bound: float = 0.5

    # Consecutive still or divergent windows tolerated inside a block
    grace_run: int = 2

    # Upper bound on a single exercise block
    max_block_windows: int = 120

    # Period search range and minimum autocorrelation for a window
    min_period_sec: float = 0.3
    max_period_sec: float = 2.5
    min_periodicity: float = 0.5


# =============================================================================
# CLASSIFICATION CONFIGURATION
# =============================================================================

@dataclass
class ClassificationConfig:
    """Per-window classification and result fusion."""

    max_results: int = 10

    # Weight of a window is reduced by this share for each gapped source
    gap_penalty: float = 0.5
    min_window_weight: float = 0.1

    exercises: List[str] = field(default_factory=lambda: [
        'Squat', 'Benchpress', 'Deadlift', 'Pullups', 'BicepCurl'
    ])

    model_path: Optional[Path] = None


# =============================================================================
# REPETITION CONFIGURATION
# =============================================================================

@dataclass
class RepetitionConfig:
    """Periodicity-based repetition counting."""

    min_period_sec: float = 0.5
    max_period_sec: float = 6.0
    min_cycles: int = 2
    min_periodicity: float = 0.5
    lowpass_cutoff_hz: float = 5.0
    prominence_ratio: float = 0.3

    # Period range overrides per exercise label, (min_sec, max_sec)
    exercise_periods: Dict[str, Tuple[float, float]] = field(default_factory=dict)


# =============================================================================
# PIPELINE CONFIGURATION
# =============================================================================

@dataclass
class PipelineConfig:
    """Pipeline facade behaviour."""

    # Run observer callbacks and block completion on a background worker
    background_dispatch: bool = False


# =============================================================================
# OUTPUT CONFIGURATION
# =============================================================================

@dataclass
class OutputConfig:
    """Output paths and logging configuration."""

    # Directories
    output_dir: Path = OUTPUT_DIR
    logs_dir: Path = LOGS_DIR
    training_dir: Path = TRAINING_DIR
    models_dir: Path = MODELS_DIR

    # Logging
    log_level: str = 'INFO'
    log_to_file: bool = True
    verbose_console: bool = False  # Only show essential info in terminal

    def ensure_directories(self):
        """Create output directories if they don't exist."""
        for dir_path in [self.output_dir, self.logs_dir,
                         self.training_dir, self.models_dir]:
            Path(dir_path).mkdir(parents=True, exist_ok=True)


# =============================================================================
# MASTER CONFIGURATION CLASS
# =============================================================================

_SECTIONS = ['fusion', 'detector', 'classification', 'repetition',
             'pipeline', 'output']


@dataclass
class Config:
    """Master configuration container."""

    fusion: FusionConfig = field(default_factory=FusionConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    classification: ClassificationConfig = field(default_factory=ClassificationConfig)
    repetition: RepetitionConfig = field(default_factory=RepetitionConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # Sensor configurations (copied from module level)
    sensors: Dict[str, SensorConfig] = field(default_factory=lambda: copy.deepcopy(SENSORS))

    def get_sensor_config(self, name: str) -> Optional[SensorConfig]:
        """Get configuration for a sensor by name."""
        return self.sensors.get(name)

    def get_sensor_by_code(self, code: int) -> Optional[SensorConfig]:
        """Get configuration for a sensor by its wire code."""
        for sensor in self.sensors.values():
            if sensor.code == code:
                return sensor
        return None

    def validate(self) -> Tuple[List[str], List[str]]:
        """Validate configuration settings."""
        errors = []
        warnings = []

        fusion = self.fusion
        if fusion.window_length_sec <= 0:
            errors.append("window_length_sec must be positive")
        if fusion.window_step_sec <= 0:
            errors.append("window_step_sec must be positive")
        elif fusion.window_step_sec > fusion.window_length_sec:
            warnings.append("window_step_sec exceeds window_length_sec; samples will be skipped")
        if fusion.gap_timeout_sec < 0:
            errors.append("gap_timeout_sec must not be negative")
        if fusion.max_windows_per_push < 1:
            errors.append("max_windows_per_push must be at least 1")
        if fusion.max_window_backlog < 1:
            errors.append("max_window_backlog must be at least 1")

        for sensor_name, _, _ in fusion.sources:
            if sensor_name not in self.sensors:
                errors.append(f"Registered source uses undefined sensor '{sensor_name}'")

        codes = [s.code for s in self.sensors.values()]
        if len(codes) != len(set(codes)):
            errors.append("Sensor wire codes must be unique")

        for name, sensor in self.sensors.items():
            if sensor.sampling_rate <= 0:
                errors.append(f"Sensor '{name}' has invalid sampling rate")
            if sensor.byte_order not in ('little', 'big'):
                errors.append(f"Sensor '{name}' has invalid byte order '{sensor.byte_order}'")

        detector = self.detector
        if detector.consistency_run < 1:
            errors.append("consistency_run must be at least 1")
        if detector.min_period_sec >= detector.max_period_sec:
            errors.append("Detector period range is empty")
        if detector.max_period_sec > fusion.window_length_sec:
            warnings.append("Detector periods longer than the window cannot be observed")

        repetition = self.repetition
        if repetition.min_period_sec >= repetition.max_period_sec:
            errors.append("Repetition period range is empty")
        if repetition.min_cycles < 1:
            errors.append("min_cycles must be at least 1")

        if not 0.0 <= self.classification.gap_penalty <= 1.0:
            errors.append("gap_penalty must be within [0, 1]")
        if not 0.0 < self.classification.min_window_weight <= 1.0:
            errors.append("min_window_weight must be within (0, 1]")

        return errors, warnings

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization."""

        def convert(obj):
            if isinstance(obj, Path):
                return str(obj)
            if isinstance(obj, tuple):
                return list(obj)
            if isinstance(obj, list):
                return [convert(v) for v in obj]
            return obj

        result = {}
        for section in _SECTIONS:
            values = asdict(getattr(self, section))
            result[section] = {key: convert(value) for key, value in values.items()}

        result['sensors'] = {name: asdict(cfg) for name, cfg in self.sensors.items()}
        return result

    def save(self, filepath: Path):
        """Save configuration to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load(cls, filepath: Path) -> 'Config':
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)

        config = cls()

        for section in _SECTIONS:
            target = getattr(config, section)
            for key, value in data.get(section, {}).items():
                if not hasattr(target, key):
                    continue
                if key.endswith('_dir') or (key == 'model_path' and value is not None):
                    value = Path(value)
                elif key == 'sources':
                    value = [tuple(source) for source in value]
                elif key == 'exercise_periods':
                    value = {label: tuple(bounds) for label, bounds in value.items()}
                setattr(target, key, value)

        if 'sensors' in data:
            config.sensors = {
                name: SensorConfig(**values) for name, values in data['sensors'].items()
            }

        return config

    def print_summary(self):
        """Print a summary of the current configuration."""
        print("\n" + "="*70)
        print("CONFIGURATION SUMMARY")
        print("="*70)

        print(f"\nWindow: {self.fusion.window_length_sec} seconds")
        print(f"Step: {self.fusion.window_step_sec} seconds")
        print(f"Gap timeout: {self.fusion.gap_timeout_sec} seconds")

        print("\nSensors Configured:")
        for name, cfg in self.sensors.items():
            samples = cfg.samples_per_window(self.fusion.window_length_sec)
            print(f"  {name:14s}: code {cfg.code}, {cfg.sampling_rate:>6.1f} Hz, "
                  f"{cfg.dimension} axes, {samples:>5d} samples/window")

        if self.fusion.sources:
            print("\nRegistered Sources:")
            for sensor, device, location in self.fusion.sources:
                print(f"  {sensor:14s} device {device} @ {location}")
        else:
            print("\nSources: registered on first sample")

        print("\nDetector:")
        print(f"  Movement threshold: {self.detector.movement_threshold}")
        print(f"  Consistency run: {self.detector.consistency_run} windows")
        print(f"  Grace run: {self.detector.grace_run} windows")
        print(f"  Max block: {self.detector.max_block_windows} windows")

        print("\nClassification:")
        print(f"  Exercises: {', '.join(self.classification.exercises)}")
        print(f"  Max results: {self.classification.max_results}")
        print(f"  Gap penalty: {self.classification.gap_penalty}")
        print(f"  Model: {self.classification.model_path or 'not configured'}")

        print("="*70)


# =============================================================================
# DEFAULT CONFIGURATION INSTANCE
# =============================================================================

# Create default configuration
CONFIG = Config()


def get_config() -> Config:
    """Get the default configuration instance."""
    return CONFIG


def set_window_step(step_sec: float):
    """Set the default window step size (CLI override)."""
    CONFIG.fusion.window_step_sec = step_sec
