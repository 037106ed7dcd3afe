"""
Snapshot Collector
Gathers system, power, VPN mesh, container, network and service health state
from independent sources in one concurrent pass.
"""

from .collector import SnapshotCollector, SourceUnavailable
from .models import CollectorConfig
from .sources import (
    DockerCliRuntime,
    HttpHealthSource,
    NmapScanner,
    TailscaleCliClient,
)

__all__ = [
    "CollectorConfig",
    "SnapshotCollector",
    "SourceUnavailable",
    "DockerCliRuntime",
    "HttpHealthSource",
    "NmapScanner",
    "TailscaleCliClient",
]

__version__ = "1.0.0"
