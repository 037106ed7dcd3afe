"""
Configuration and source-side data shapes for the snapshot collector.
"""

import os
from dataclasses import dataclass, field


def parse_endpoints(raw: str | None) -> dict[str, str]:
    """Parse ``name=url,name=url`` into a mapping, ignoring malformed items"""
    endpoints: dict[str, str] = {}
    if not raw:
        return endpoints
    for item in raw.split(","):
        name, sep, url = item.partition("=")
        if sep and name.strip() and url.strip():
            endpoints[name.strip()] = url.strip()
    return endpoints


@dataclass
class CollectorConfig:
    """Configuration for one collection cycle"""

    # Network scan
    subnet: str = "192.168.1.0/24"
    quick_scan: bool = True

    # Per-source deadlines
    source_timeout_seconds: float = 10.0
    scan_timeout_seconds: float = 10.0
    command_timeout_seconds: float = 10.0

    # Power events older than one collection interval were already reported
    collection_interval_minutes: int = 10

    # Service name -> health URL
    health_endpoints: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "CollectorConfig":
        """Build a config from HOMELAB_* environment variables"""
        defaults = cls()
        return cls(
            subnet=os.getenv("HOMELAB_SUBNET", defaults.subnet),
            source_timeout_seconds=float(
                os.getenv("HOMELAB_SOURCE_TIMEOUT", defaults.source_timeout_seconds)
            ),
            scan_timeout_seconds=float(
                os.getenv("HOMELAB_SCAN_TIMEOUT", defaults.scan_timeout_seconds)
            ),
            collection_interval_minutes=int(
                os.getenv("HOMELAB_COLLECTION_INTERVAL", defaults.collection_interval_minutes)
            ),
            health_endpoints=parse_endpoints(os.getenv("HOMELAB_HEALTH_ENDPOINTS")),
        )


@dataclass
class ContainerInfo:
    name: str
    is_running: bool
    image: str = ""
    state: str = ""


@dataclass
class MeshPeer:
    hostname: str
    online: bool
    ips: list[str] = field(default_factory=list)


@dataclass
class MeshStatus:
    backend_state: str = "Stopped"
    self_ips: list[str] = field(default_factory=list)
    peers: list[MeshPeer] = field(default_factory=list)

    @property
    def is_connected(self) -> bool:
        return self.backend_state == "Running"

    @property
    def self_ip(self) -> str | None:
        return self.self_ips[0] if self.self_ips else None


@dataclass
class NetworkDevice:
    ip: str
    mac: str | None = None
    hostname: str | None = None
    vendor: str | None = None
    status: str = "up"


@dataclass
class HealthResult:
    name: str
    is_healthy: bool
    status_code: int | None = None
    message: str = ""
