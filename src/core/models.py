"""
Snapshot data model shared by the collector, the event store and the detector.

One ``EventLogEntry`` is produced per collection cycle. Every optional section
is typed ``X | None``: ``None`` means the source was unavailable for that cycle
and is never the same thing as an empty or zero value.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def utc_now() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC"""
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop None-valued keys so absent sections are not written at all"""
    return {key: value for key, value in data.items() if value is not None}


def _text(data: dict[str, Any], key: str, required: bool = False) -> str | None:
    """String field of a stored record; None when optional and missing

    Raises:
        KeyError: If a required field is missing
        TypeError: If the value is not a string
    """
    value = data[key] if required else data.get(key)
    if (value is not None or required) and not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class SystemSnapshot:
    """CPU / memory / disk usage and uptime; fields are None when unparseable"""

    cpu_percent: float | None = None
    memory_percent: float | None = None
    disk_percent: int | None = None
    uptime: str = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "cpu_percent": self.cpu_percent,
                "memory_percent": self.memory_percent,
                "disk_percent": self.disk_percent,
                "uptime": self.uptime,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SystemSnapshot":
        return cls(
            cpu_percent=data.get("cpu_percent"),
            memory_percent=data.get("memory_percent"),
            disk_percent=data.get("disk_percent"),
            uptime=data.get("uptime", "unknown"),
        )


@dataclass(frozen=True)
class PowerEvent:
    timestamp: datetime
    type: str  # Sleep, Wake, DarkWake

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "type": self.type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PowerEvent":
        return cls(
            timestamp=parse_timestamp(data["timestamp"]), type=_text(data, "type", required=True)
        )


@dataclass(frozen=True)
class PowerSnapshot:
    recent_events: list[PowerEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"recent_events": [e.to_dict() for e in self.recent_events]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PowerSnapshot":
        return cls(recent_events=[PowerEvent.from_dict(e) for e in data.get("recent_events", [])])


@dataclass(frozen=True)
class MeshSnapshot:
    """VPN mesh connectivity as seen from this host"""

    is_connected: bool = False
    backend_state: str = ""
    self_ip: str | None = None
    peer_count: int = 0
    online_peer_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "is_connected": self.is_connected,
                "backend_state": self.backend_state,
                "self_ip": self.self_ip,
                "peer_count": self.peer_count,
                "online_peer_count": self.online_peer_count,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MeshSnapshot":
        return cls(
            is_connected=bool(data.get("is_connected", False)),
            backend_state=data.get("backend_state", ""),
            self_ip=data.get("self_ip"),
            peer_count=int(data.get("peer_count", 0)),
            online_peer_count=int(data.get("online_peer_count", 0)),
        )


@dataclass(frozen=True)
class ContainerBrief:
    name: str
    is_running: bool

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "is_running": self.is_running}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContainerBrief":
        return cls(name=_text(data, "name", required=True), is_running=bool(data["is_running"]))


@dataclass(frozen=True)
class ContainerSnapshot:
    available: bool = False
    running_count: int = 0
    total_count: int = 0
    containers: list[ContainerBrief] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "running_count": self.running_count,
            "total_count": self.total_count,
            "containers": [c.to_dict() for c in self.containers],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContainerSnapshot":
        return cls(
            available=bool(data.get("available", False)),
            running_count=int(data.get("running_count", 0)),
            total_count=int(data.get("total_count", 0)),
            containers=[ContainerBrief.from_dict(c) for c in data.get("containers", [])],
        )


@dataclass(frozen=True)
class DeviceBrief:
    ip: str
    mac: str | None = None
    hostname: str | None = None
    vendor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {"ip": self.ip, "mac": self.mac, "hostname": self.hostname, "vendor": self.vendor}
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeviceBrief":
        return cls(
            ip=_text(data, "ip", required=True),
            mac=_text(data, "mac"),
            hostname=_text(data, "hostname"),
            vendor=_text(data, "vendor"),
        )


@dataclass(frozen=True)
class TopTalker:
    ip: str
    bytes: int
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact({"ip": self.ip, "name": self.name, "bytes": self.bytes})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TopTalker":
        return cls(
            ip=_text(data, "ip", required=True), bytes=int(data["bytes"]), name=_text(data, "name")
        )


@dataclass(frozen=True)
class TrafficSummary:
    total_bytes: int = 0
    active_flows: int = 0
    top_talkers: list[TopTalker] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_bytes": self.total_bytes,
            "active_flows": self.active_flows,
            "top_talkers": [t.to_dict() for t in self.top_talkers],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrafficSummary":
        return cls(
            total_bytes=int(data.get("total_bytes", 0)),
            active_flows=int(data.get("active_flows", 0)),
            top_talkers=[TopTalker.from_dict(t) for t in data.get("top_talkers", [])],
        )


@dataclass(frozen=True)
class AlertBrief:
    severity: str
    signature: str
    source_ip: str
    destination_ip: str
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "severity": self.severity,
                "signature": self.signature,
                "source_ip": self.source_ip,
                "destination_ip": self.destination_ip,
                "category": self.category,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlertBrief":
        return cls(
            severity=_text(data, "severity", required=True),
            signature=_text(data, "signature", required=True),
            source_ip=data.get("source_ip", ""),
            destination_ip=data.get("destination_ip", ""),
            category=data.get("category"),
        )


@dataclass(frozen=True)
class SecuritySummary:
    total_alerts: int = 0
    critical_count: int = 0
    high_count: int = 0
    recent_alerts: list[AlertBrief] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_alerts": self.total_alerts,
            "critical_count": self.critical_count,
            "high_count": self.high_count,
            "recent_alerts": [a.to_dict() for a in self.recent_alerts],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SecuritySummary":
        return cls(
            total_alerts=int(data.get("total_alerts", 0)),
            critical_count=int(data.get("critical_count", 0)),
            high_count=int(data.get("high_count", 0)),
            recent_alerts=[AlertBrief.from_dict(a) for a in data.get("recent_alerts", [])],
        )


@dataclass(frozen=True)
class NetworkSnapshot:
    """Devices on the LAN plus optional traffic and IDS summaries.

    ``scanned`` is False when the device scan could not run; the device list is
    then empty but must not be read as "no devices on the network".
    """

    device_count: int = 0
    devices: list[DeviceBrief] = field(default_factory=list)
    scanned: bool = True
    traffic: TrafficSummary | None = None
    security: SecuritySummary | None = None

    @property
    def device_ips(self) -> set[str]:
        return {d.ip for d in self.devices}

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "device_count": self.device_count,
                "devices": [d.to_dict() for d in self.devices],
                "scanned": self.scanned,
                "traffic": self.traffic.to_dict() if self.traffic else None,
                "security": self.security.to_dict() if self.security else None,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NetworkSnapshot":
        traffic = data.get("traffic")
        security = data.get("security")
        return cls(
            device_count=int(data.get("device_count", 0)),
            devices=[DeviceBrief.from_dict(d) for d in data.get("devices", [])],
            scanned=bool(data.get("scanned", True)),
            traffic=TrafficSummary.from_dict(traffic) if traffic is not None else None,
            security=SecuritySummary.from_dict(security) if security is not None else None,
        )


@dataclass(frozen=True)
class ServiceHealthEntry:
    name: str
    is_healthy: bool

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "is_healthy": self.is_healthy}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServiceHealthEntry":
        return cls(name=_text(data, "name", required=True), is_healthy=bool(data["is_healthy"]))


@dataclass(frozen=True)
class EventLogEntry:
    """One timestamped snapshot of the whole homelab, written as one JSON line"""

    timestamp: datetime = field(default_factory=utc_now)
    system: SystemSnapshot | None = None
    power: PowerSnapshot | None = None
    mesh: MeshSnapshot | None = None
    containers: ContainerSnapshot | None = None
    network: NetworkSnapshot | None = None
    services: list[ServiceHealthEntry] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary; absent sections are omitted"""
        return _compact(
            {
                "timestamp": self.timestamp.isoformat(),
                "system": self.system.to_dict() if self.system else None,
                "power": self.power.to_dict() if self.power else None,
                "mesh": self.mesh.to_dict() if self.mesh else None,
                "containers": self.containers.to_dict() if self.containers else None,
                "network": self.network.to_dict() if self.network else None,
                "services": [s.to_dict() for s in self.services],
                "errors": list(self.errors),
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EventLogEntry":
        """Create from dictionary

        Raises:
            KeyError, TypeError, ValueError: If the record is malformed
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")

        def section(key, loader):
            value = data.get(key)
            return loader(value) if value is not None else None

        return cls(
            timestamp=parse_timestamp(data["timestamp"]),
            system=section("system", SystemSnapshot.from_dict),
            power=section("power", PowerSnapshot.from_dict),
            mesh=section("mesh", MeshSnapshot.from_dict),
            containers=section("containers", ContainerSnapshot.from_dict),
            network=section("network", NetworkSnapshot.from_dict),
            services=[ServiceHealthEntry.from_dict(s) for s in data.get("services", [])],
            errors=[str(e) for e in data.get("errors", [])],
        )
