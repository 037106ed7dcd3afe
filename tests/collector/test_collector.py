"""
Tests for SnapshotCollector.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.collector.collector import SnapshotCollector
from src.collector.models import ContainerInfo, HealthResult, MeshPeer, MeshStatus, NetworkDevice
from src.core.models import PowerSnapshot, SecuritySummary, SystemSnapshot, TrafficSummary


def make_sources(**overrides):
    """Healthy async source doubles; keyword arguments replace individual sources"""
    containers = MagicMock()
    containers.is_available = AsyncMock(return_value=True)
    containers.list_containers = AsyncMock(
        return_value=[
            ContainerInfo(name="pihole", is_running=True),
            ContainerInfo(name="backup", is_running=False),
        ]
    )

    mesh = MagicMock()
    mesh.is_installed = AsyncMock(return_value=True)
    mesh.get_status = AsyncMock(
        return_value=MeshStatus(
            backend_state="Running",
            self_ips=["100.64.0.1"],
            peers=[MeshPeer(hostname="nas", online=True), MeshPeer(hostname="phone", online=False)],
        )
    )

    scanner = MagicMock()
    scanner.is_available = AsyncMock(return_value=True)
    scanner.scan = AsyncMock(
        return_value=[
            NetworkDevice(ip="192.168.1.1", mac="AA:BB:CC:00:11:22", vendor="Ubiquiti"),
            NetworkDevice(ip="192.168.1.10", hostname="nas"),
        ]
    )

    health = MagicMock()
    health.check_all = AsyncMock(
        return_value=[HealthResult(name="nas", is_healthy=True), HealthResult(name="grafana", is_healthy=False)]
    )

    sources = {"containers": containers, "mesh": mesh, "scanner": scanner, "health": health}
    sources.update(overrides)
    return sources


@pytest.fixture
def host_sources():
    """Patch the host utilities so no real commands run"""
    with (
        patch(
            "src.collector.collector.collect_system_snapshot",
            AsyncMock(return_value=SystemSnapshot(cpu_percent=12.5, memory_percent=40.0, disk_percent=46)),
        ) as system,
        patch(
            "src.collector.collector.collect_power_snapshot",
            AsyncMock(return_value=PowerSnapshot()),
        ) as power,
    ):
        yield system, power


class TestCollectEvent:
    """Tests for a full collection cycle."""

    @pytest.mark.asyncio
    async def test_all_sources_healthy(self, collector_config, host_sources):
        collector = SnapshotCollector(collector_config, **make_sources())

        entry = await collector.collect_event()

        assert entry.errors == []
        assert entry.system.cpu_percent == 12.5
        assert entry.power.recent_events == []
        assert entry.mesh.is_connected is True
        assert entry.mesh.self_ip == "100.64.0.1"
        assert (entry.mesh.peer_count, entry.mesh.online_peer_count) == (2, 1)
        assert (entry.containers.running_count, entry.containers.total_count) == (1, 2)
        assert entry.network.device_count == 2
        assert entry.network.scanned is True
        assert entry.network.devices[0].vendor == "Ubiquiti"
        assert [s.is_healthy for s in entry.services] == [True, False]

    @pytest.mark.asyncio
    async def test_scan_uses_configured_subnet(self, collector_config, host_sources):
        sources = make_sources()
        collector_config.quick_scan = False
        collector = SnapshotCollector(collector_config, **sources)

        await collector.collect_event()

        sources["scanner"].scan.assert_awaited_once_with("192.168.1.0/24", quick=False)

    @pytest.mark.asyncio
    async def test_unavailable_sources_recorded(self, collector_config, host_sources):
        """Missing tools leave their section absent with a verbatim message."""
        sources = make_sources()
        sources["mesh"].is_installed.return_value = False
        sources["containers"].is_available.return_value = False
        collector = SnapshotCollector(collector_config, **sources)

        entry = await collector.collect_event()

        assert entry.mesh is None
        assert entry.containers is None
        assert sorted(entry.errors) == ["Docker not available", "Tailscale not installed"]
        sources["mesh"].get_status.assert_not_awaited()
        assert entry.network is not None

    @pytest.mark.asyncio
    async def test_failing_source_is_isolated(self, collector_config, host_sources):
        sources = make_sources()
        sources["health"].check_all.side_effect = RuntimeError("boom")
        collector = SnapshotCollector(collector_config, **sources)

        entry = await collector.collect_event()

        assert entry.services == []
        assert entry.errors == ["Health: boom"]
        assert entry.mesh is not None

    @pytest.mark.asyncio
    async def test_every_source_failing_still_produces_entry(self, collector_config):
        failing = AsyncMock(side_effect=RuntimeError("down"))
        sources = make_sources()
        sources["mesh"].is_installed = failing
        sources["containers"].is_available = failing
        sources["scanner"].is_available = failing
        sources["health"].check_all = failing

        with (
            patch("src.collector.collector.collect_system_snapshot", failing),
            patch("src.collector.collector.collect_power_snapshot", failing),
        ):
            entry = await SnapshotCollector(collector_config, **sources).collect_event()

        assert entry.timestamp is not None
        assert entry.to_dict().keys() == {"timestamp", "services", "errors"}
        assert sorted(entry.errors) == [
            "Docker: down",
            "Health: down",
            "Network: down",
            "Power: down",
            "System: down",
            "Tailscale: down",
        ]

    @pytest.mark.asyncio
    async def test_slow_source_times_out(self, collector_config, host_sources):
        async def hang():
            await asyncio.sleep(60)

        collector_config.source_timeout_seconds = 0.05
        sources = make_sources()
        sources["health"].check_all = hang
        collector = SnapshotCollector(collector_config, **sources)

        entry = await asyncio.wait_for(collector.collect_event(), timeout=5)

        assert entry.services == []
        assert entry.errors == ["Health: timed out after 0.05s"]
        assert entry.containers is not None

    @pytest.mark.asyncio
    async def test_timestamp_taken_at_start(self, collector_config, host_sources):
        collector = SnapshotCollector(collector_config, **make_sources())

        with patch("src.collector.collector.utc_now") as mock_now:
            mock_now.return_value = MagicMock()
            entry = await collector.collect_event()

        assert entry.timestamp is mock_now.return_value
        mock_now.assert_called_once()

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, collector_config, host_sources):
        """Cancelling the cycle cancels the in-flight source queries."""
        started = asyncio.Event()
        cancelled = []

        async def hang():
            started.set()
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                cancelled.append("health")
                raise

        collector_config.source_timeout_seconds = 30
        sources = make_sources()
        sources["health"].check_all = hang
        task = asyncio.create_task(SnapshotCollector(collector_config, **sources).collect_event())

        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert cancelled == ["health"]

    @pytest.mark.asyncio
    async def test_sources_run_concurrently(self, collector_config, host_sources):
        """Cycle time follows the slowest source, not the sum of all of them."""

        async def slow_status():
            await asyncio.sleep(0.3)
            return MeshStatus(backend_state="Running")

        async def slow_health():
            await asyncio.sleep(0.3)
            return []

        sources = make_sources()
        sources["mesh"].get_status = slow_status
        sources["health"].check_all = slow_health
        collector = SnapshotCollector(collector_config, **sources)
        loop = asyncio.get_running_loop()

        started = loop.time()
        entry = await collector.collect_event()
        elapsed = loop.time() - started

        assert entry.errors == []
        assert entry.mesh.is_connected is True
        assert elapsed < 0.5


class TestCollectNetwork:
    """Tests for the network section."""

    @pytest.mark.asyncio
    async def test_scanner_unavailable(self, collector_config):
        """A missing scanner reports zero devices and is flagged as not scanned."""
        sources = make_sources()
        sources["scanner"].is_available.return_value = False
        collector = SnapshotCollector(collector_config, **sources)

        network = await collector.collect_network()

        assert network.device_count == 0
        assert network.devices == []
        assert network.scanned is False
        sources["scanner"].scan.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_traffic_and_security_summaries(self, collector_config):
        traffic = MagicMock()
        traffic.get_summary = AsyncMock(return_value=TrafficSummary(total_bytes=1234))
        security = MagicMock()
        security.get_summary = AsyncMock(return_value=SecuritySummary(total_alerts=1, high_count=1))
        collector = SnapshotCollector(
            collector_config, traffic=traffic, security=security, **make_sources()
        )

        network = await collector.collect_network()

        assert network.traffic.total_bytes == 1234
        assert network.security.high_count == 1

    @pytest.mark.asyncio
    async def test_failing_summary_only_drops_its_section(self, collector_config):
        traffic = MagicMock()
        traffic.get_summary = AsyncMock(side_effect=ConnectionError("ntopng unreachable"))
        collector = SnapshotCollector(collector_config, traffic=traffic, **make_sources())
        errors = []

        network = await collector.collect_network(errors)

        assert network.traffic is None
        assert network.device_count == 2
        assert errors == ["Traffic: ntopng unreachable"]

    @pytest.mark.asyncio
    async def test_no_optional_sources(self, collector_config):
        network = await SnapshotCollector(collector_config, **make_sources()).collect_network()

        assert network.traffic is None
        assert network.security is None
