"""
Anomaly Detection over the snapshot history

Compares the newest snapshot with the ones before it and reports new or
departed devices, traffic spikes, IDS alerts and device population shifts.

Usage:
    # Findings for the latest snapshot
    python -m src.anomaly.detect

    # Findings across the whole retained history
    python -m src.anomaly.detect --all
"""

from .detector import AnomalyDetector, format_bytes
from .models import AnomalyFinding, AnomalyType, DetectorConfig, Severity

__all__ = [
    "AnomalyDetector",
    "AnomalyFinding",
    "AnomalyType",
    "DetectorConfig",
    "Severity",
    "format_bytes",
]
