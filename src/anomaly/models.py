"""
Data models and configuration for the snapshot anomaly detector.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class AnomalyType(Enum):
    """Kinds of anomalies found between snapshots"""

    NEW_DEVICE = "NewDevice"
    DEVICE_GONE = "DeviceGone"
    TRAFFIC_SPIKE = "TrafficSpike"
    SECURITY_ALERT = "SecurityAlert"
    DEVICE_COUNT_ANOMALY = "DeviceCountAnomaly"


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class DetectorConfig:
    """Tunable thresholds for the detection heuristics"""

    # A device must be seen this many snapshots in a row before its
    # disappearance is reported
    established_sightings: int = 3

    # Traffic spike when current total > multiplier x baseline mean
    traffic_spike_multiplier: float = 3.0
    traffic_min_baseline: int = 2

    # Device count anomaly when |current - mean| > fraction x mean
    device_count_change_fraction: float = 0.5
    device_count_min_baseline: int = 3

    # Number of preceding snapshots used for rolling baselines (None = all)
    baseline_window: int | None = 6

    def __post_init__(self):
        if self.established_sightings < 1:
            raise ValueError("established_sightings must be at least 1")
        if self.traffic_spike_multiplier <= 0:
            raise ValueError("traffic_spike_multiplier must be positive")
        if self.traffic_min_baseline < 1 or self.device_count_min_baseline < 1:
            raise ValueError("minimum baselines must be at least 1")
        if self.device_count_change_fraction < 0:
            raise ValueError("device_count_change_fraction must not be negative")
        if self.baseline_window is not None and self.baseline_window < max(
            self.traffic_min_baseline, self.device_count_min_baseline
        ):
            raise ValueError("baseline_window is smaller than the minimum baselines")


@dataclass
class AnomalyFinding:
    """One anomaly found for a given snapshot"""

    timestamp: datetime
    type: AnomalyType
    severity: Severity
    description: str
    details: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "timestamp": self.timestamp.isoformat(),
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "details": dict(self.details),
        }
