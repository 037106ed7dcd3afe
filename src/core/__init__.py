"""
Core utilities shared across the monitor: snapshot data model and logging.
"""

from .logger import setup_logging
from .models import (
    AlertBrief,
    ContainerBrief,
    ContainerSnapshot,
    DeviceBrief,
    EventLogEntry,
    MeshSnapshot,
    NetworkSnapshot,
    PowerEvent,
    PowerSnapshot,
    SecuritySummary,
    ServiceHealthEntry,
    SystemSnapshot,
    TopTalker,
    TrafficSummary,
)

__all__ = [
    "setup_logging",
    "AlertBrief",
    "ContainerBrief",
    "ContainerSnapshot",
    "DeviceBrief",
    "EventLogEntry",
    "MeshSnapshot",
    "NetworkSnapshot",
    "PowerEvent",
    "PowerSnapshot",
    "SecuritySummary",
    "ServiceHealthEntry",
    "SystemSnapshot",
    "TopTalker",
    "TrafficSummary",
]
