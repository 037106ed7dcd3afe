"""
Tests for the collector command-line entry point.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

from src.collector.collect import build_config_from_args, main, parse_arguments, summarize
from src.core.models import (
    ContainerSnapshot,
    EventLogEntry,
    MeshSnapshot,
    NetworkSnapshot,
    ServiceHealthEntry,
    SystemSnapshot,
)
from src.storage.event_store import EventStore


def sample_entry():
    return EventLogEntry(
        timestamp=datetime(2026, 2, 10, 12, 0, tzinfo=UTC),
        system=SystemSnapshot(cpu_percent=12.5, memory_percent=40.0, disk_percent=46, uptime="3 days"),
        mesh=MeshSnapshot(is_connected=True, backend_state="Running", peer_count=2, online_peer_count=1),
        containers=ContainerSnapshot(available=True, running_count=1, total_count=2),
        network=NetworkSnapshot(scanned=False),
        services=[ServiceHealthEntry(name="nas", is_healthy=True)],
        errors=["Docker not available"],
    )


class TestArguments:
    """Tests for argument handling."""

    def test_overrides(self, monkeypatch):
        monkeypatch.delenv("HOMELAB_SUBNET", raising=False)
        args = parse_arguments(["--subnet", "10.0.0.0/24", "--full-scan", "--timeout", "3"])

        config = build_config_from_args(args)

        assert config.subnet == "10.0.0.0/24"
        assert config.quick_scan is False
        assert config.source_timeout_seconds == 3.0
        assert config.scan_timeout_seconds == 3.0

    def test_environment_defaults(self, monkeypatch):
        monkeypatch.setenv("HOMELAB_SUBNET", "172.16.0.0/24")
        monkeypatch.setenv("HOMELAB_HEALTH_ENDPOINTS", "nas=http://nas.lan/health")

        config = build_config_from_args(parse_arguments([]))

        assert config.subnet == "172.16.0.0/24"
        assert config.quick_scan is True
        assert config.health_endpoints == {"nas": "http://nas.lan/health"}


class TestSummarize:
    """Tests for the printed summary."""

    def test_summary_lines(self):
        lines = summarize(sample_entry())

        assert lines[0] == "Event logged at 12:00:00 UTC"
        assert any("Tailscale: Running (1/2 peers online)" in line for line in lines)
        assert any("Devices: not scanned" in line for line in lines)
        assert any("Services: 1/1 healthy" in line for line in lines)
        assert lines[-1] == "    - Docker not available"


class TestMain:
    """Tests for the main entry point."""

    @patch("src.collector.collect.SnapshotCollector")
    def test_appends_entry(self, mock_collector_class, tmp_path, capsys):
        mock_collector_class.return_value.collect_event = AsyncMock(return_value=sample_entry())
        log_path = tmp_path / "events.jsonl"

        exit_code = main(["--log-path", str(log_path), "--no-cleanup"])

        assert exit_code == 0
        assert EventStore(log_path).query() == [sample_entry()]
        assert "Event logged at" in capsys.readouterr().out

    @patch("src.collector.collect.SnapshotCollector")
    def test_quiet(self, mock_collector_class, tmp_path, capsys):
        mock_collector_class.return_value.collect_event = AsyncMock(return_value=sample_entry())

        exit_code = main(["--log-path", str(tmp_path / "events.jsonl"), "--quiet"])

        assert exit_code == 0
        assert capsys.readouterr().out == ""

    @patch("src.collector.collect.EventStore.cleanup")
    @patch("src.collector.collect.SnapshotCollector")
    def test_cleanup_failure_keeps_entry(self, mock_collector_class, mock_cleanup, tmp_path):
        """A failed prune after a successful append still exits 0."""
        mock_collector_class.return_value.collect_event = AsyncMock(return_value=sample_entry())
        mock_cleanup.side_effect = PermissionError("read-only directory")
        log_path = tmp_path / "events.jsonl"

        exit_code = main(["--log-path", str(log_path), "--retention-days", "7", "--quiet"])

        assert exit_code == 0
        mock_cleanup.assert_called_once_with(retention_days=7)
        assert EventStore(log_path).query() == [sample_entry()]

    @patch("src.collector.collect.EventStore.append")
    @patch("src.collector.collect.SnapshotCollector")
    def test_write_failure_returns_error_code(self, mock_collector_class, mock_append, tmp_path):
        mock_collector_class.return_value.collect_event = AsyncMock(return_value=sample_entry())
        mock_append.side_effect = PermissionError("read-only directory")

        assert main(["--log-path", str(tmp_path / "events.jsonl"), "--quiet"]) == 1

    @patch("src.collector.collect.SnapshotCollector")
    def test_failure_returns_error_code(self, mock_collector_class, tmp_path):
        mock_collector_class.return_value.collect_event = AsyncMock(side_effect=RuntimeError("boom"))

        assert main(["--log-path", str(tmp_path / "events.jsonl"), "--quiet"]) == 1
