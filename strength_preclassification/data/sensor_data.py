"""
Sensor data types shared by the decoder, the fusion buffer and the observers.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import NamedTuple, Optional, Union

from ..config import CONFIG, SensorConfig


class SensorType(IntEnum):
    """Sensor type. The code used in frame headers comes from its SensorConfig."""
    ACCELEROMETER = 1
    GYROSCOPE = 2
    HEART_RATE = 3

    @property
    def config_name(self) -> str:
        return self.name.lower()

    def config(self, config=None) -> SensorConfig:
        """Sensor configuration (rate, dimension, byte order) for this type."""
        config = config or CONFIG
        sensor_config = config.get_sensor_config(self.config_name)
        if sensor_config is None:
            raise KeyError(f"No sensor configuration for {self.config_name}")
        return sensor_config

    @classmethod
    def from_name(cls, name: str) -> 'SensorType':
        return cls[name.upper()]

    @classmethod
    def from_code(cls, code: int, config=None) -> 'SensorType':
        """Sensor type configured for a frame-header code."""
        config = config or CONFIG
        sensor_config = config.get_sensor_by_code(code)
        if sensor_config is None:
            raise KeyError(f"No sensor configured for code {code}")
        return cls.from_name(sensor_config.name)


class Location(IntEnum):
    """Where on the body the sensor is worn."""
    LEFT_WRIST = 0
    RIGHT_WRIST = 1

    @classmethod
    def from_name(cls, name: str) -> 'Location':
        return cls[name.upper()]


class SourceKey(NamedTuple):
    """Identifies one independent sample stream."""
    sensor_type: SensorType
    device_id: int
    location: Location

    @classmethod
    def parse(cls, sensor: Union[str, int], device_id: int,
              location: Union[str, int]) -> 'SourceKey':
        """Build a key from names (as used in the configuration) or codes."""
        sensor_type = SensorType.from_name(sensor) if isinstance(sensor, str) else SensorType(sensor)
        loc = Location.from_name(location) if isinstance(location, str) else Location(location)
        return cls(sensor_type, int(device_id), loc)

    def __str__(self) -> str:
        return f"{self.sensor_type.config_name}/{self.device_id}@{self.location.name.lower()}"


@dataclass(frozen=True)
class Threed:
    """x, y, z triple of a three-dimensional sensor."""
    x: int
    y: int
    z: int


@dataclass(frozen=True)
class Sample:
    """A single decoded reading tagged with its source and timestamp."""
    source: SourceKey
    timestamp: float
    value: Union[Threed, int]

    @property
    def is_3d(self) -> bool:
        return isinstance(self.value, Threed)

    def as_tuple(self) -> tuple:
        if isinstance(self.value, Threed):
            return (self.value.x, self.value.y, self.value.z)
        return (self.value,)


@dataclass(frozen=True)
class RawFrame:
    """
    Raw payload of one device frame.

    The payload holds packed records of the sensor's record size; the
    timestamp (seconds) is that of the first record. ``expected_records``
    is the record count the sender declared, when known.
    """
    sensor_type: SensorType
    device_id: int
    location: Location
    payload: bytes
    timestamp: float
    hint: Optional[str] = None
    expected_records: Optional[int] = None

    @property
    def source(self) -> SourceKey:
        return SourceKey(self.sensor_type, self.device_id, self.location)
