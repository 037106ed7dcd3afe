"""
Snapshot collector: one concurrent pass over every source per cycle.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta
from functools import partial
from typing import TypeVar

import structlog

from src.core.models import (
    ContainerBrief,
    ContainerSnapshot,
    DeviceBrief,
    EventLogEntry,
    MeshSnapshot,
    NetworkSnapshot,
    PowerSnapshot,
    ServiceHealthEntry,
    SystemSnapshot,
    utc_now,
)

from .models import CollectorConfig
from .sources import (
    ContainerRuntime,
    DeviceScanner,
    DockerCliRuntime,
    HealthSource,
    HttpHealthSource,
    MeshClient,
    NmapScanner,
    SecuritySource,
    TailscaleCliClient,
    TrafficSource,
)
from .system import collect_power_snapshot, collect_system_snapshot

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class SourceUnavailable(Exception):
    """A source reported itself unavailable; the message is recorded verbatim"""


class SnapshotCollector:
    """Collects one EventLogEntry from all sources in parallel

    A failing source never aborts the cycle: its section stays empty and a
    ``"<Source>: <message>"`` string is appended to the entry's errors.
    """

    def __init__(
        self,
        config: CollectorConfig | None = None,
        containers: ContainerRuntime | None = None,
        mesh: MeshClient | None = None,
        scanner: DeviceScanner | None = None,
        health: HealthSource | None = None,
        traffic: TrafficSource | None = None,
        security: SecuritySource | None = None,
    ):
        self.config = config or CollectorConfig()
        timeout = self.config.command_timeout_seconds

        self.containers = containers or DockerCliRuntime(timeout=timeout)
        self.mesh = mesh or TailscaleCliClient(timeout=timeout)
        self.scanner = scanner or NmapScanner(timeout=self.config.scan_timeout_seconds)
        self.health = health or HttpHealthSource(self.config.health_endpoints)
        self.traffic = traffic
        self.security = security

    async def collect_event(self) -> EventLogEntry:
        """Query every source once and return the combined entry

        Cancelling this coroutine cancels all in-flight source queries.
        """
        timestamp = utc_now()
        errors: list[str] = []
        source_timeout = self.config.source_timeout_seconds

        system, power, mesh, containers, network, services = await asyncio.gather(
            self._guard("System", self.collect_system, source_timeout, errors),
            self._guard("Power", self.collect_power, source_timeout, errors),
            self._guard("Tailscale", self.collect_mesh, source_timeout, errors),
            self._guard("Docker", self.collect_containers, source_timeout, errors),
            self._guard(
                "Network",
                partial(self.collect_network, errors),
                self.config.scan_timeout_seconds,
                errors,
            ),
            self._guard("Health", self.collect_services, source_timeout, errors),
        )

        entry = EventLogEntry(
            timestamp=timestamp,
            system=system,
            power=power,
            mesh=mesh,
            containers=containers,
            network=network,
            services=services or [],
            errors=errors,
        )
        logger.info(
            "Event collected",
            timestamp=timestamp.isoformat(),
            errors=len(errors),
        )
        return entry

    async def _guard(
        self,
        source: str,
        collect: Callable[[], Awaitable[T]],
        timeout: float,
        errors: list[str],
    ) -> T | None:
        """Run one source under its own deadline, converting failure into an error string"""
        try:
            return await asyncio.wait_for(collect(), timeout=timeout)
        except SourceUnavailable as e:
            errors.append(str(e))
            logger.warning("Source unavailable", source=source, reason=str(e))
        except TimeoutError:
            errors.append(f"{source}: timed out after {timeout:g}s")
            logger.warning("Source timed out", source=source, timeout=timeout)
        except Exception as e:
            errors.append(f"{source}: {e}")
            logger.warning("Source failed", source=source, error=str(e))
        return None

    async def collect_system(self) -> SystemSnapshot:
        return await collect_system_snapshot(timeout=self.config.command_timeout_seconds)

    async def collect_power(self) -> PowerSnapshot:
        window = timedelta(minutes=self.config.collection_interval_minutes)
        return await collect_power_snapshot(
            window=window, timeout=self.config.command_timeout_seconds
        )

    async def collect_mesh(self) -> MeshSnapshot:
        if not await self.mesh.is_installed():
            raise SourceUnavailable("Tailscale not installed")

        status = await self.mesh.get_status()
        return MeshSnapshot(
            is_connected=status.is_connected,
            backend_state=status.backend_state,
            self_ip=status.self_ip,
            peer_count=len(status.peers),
            online_peer_count=sum(1 for p in status.peers if p.online),
        )

    async def collect_containers(self) -> ContainerSnapshot:
        if not await self.containers.is_available():
            raise SourceUnavailable("Docker not available")

        containers = await self.containers.list_containers()
        return ContainerSnapshot(
            available=True,
            running_count=sum(1 for c in containers if c.is_running),
            total_count=len(containers),
            containers=[ContainerBrief(name=c.name, is_running=c.is_running) for c in containers],
        )

    async def collect_network(self, errors: list[str] | None = None) -> NetworkSnapshot:
        """Device scan plus the optional traffic and IDS summaries

        A missing scanner degrades to zero devices with ``scanned=False``.
        Traffic and security failures only drop their own sub-section.
        """
        devices: list[DeviceBrief] = []
        scanned = False
        if await self.scanner.is_available():
            found = await self.scanner.scan(self.config.subnet, quick=self.config.quick_scan)
            devices = [
                DeviceBrief(ip=d.ip, mac=d.mac, hostname=d.hostname, vendor=d.vendor) for d in found
            ]
            scanned = True
        else:
            logger.info("Device scanner not available, skipping scan")

        traffic = await self._optional_summary("Traffic", self.traffic, errors)
        security = await self._optional_summary("Security", self.security, errors)

        return NetworkSnapshot(
            device_count=len(devices),
            devices=devices,
            scanned=scanned,
            traffic=traffic,
            security=security,
        )

    async def _optional_summary(self, name: str, source, errors: list[str] | None):
        if source is None:
            return None
        try:
            return await source.get_summary()
        except Exception as e:
            if errors is not None:
                errors.append(f"{name}: {e}")
            logger.warning("Network sub-source failed", source=name, error=str(e))
            return None

    async def collect_services(self) -> list[ServiceHealthEntry]:
        results = await self.health.check_all()
        return [ServiceHealthEntry(name=r.name, is_healthy=r.is_healthy) for r in results]
