"""
Pytest configuration and shared fixtures.
"""

from datetime import UTC, datetime, timedelta

import pytest

from src.anomaly.models import DetectorConfig
from src.collector.models import CollectorConfig
from src.core.models import (
    AlertBrief,
    DeviceBrief,
    EventLogEntry,
    NetworkSnapshot,
    SecuritySummary,
    TrafficSummary,
)

BASE_TIME = datetime(2026, 2, 10, 12, 0, tzinfo=UTC)


# Snapshot fixtures
@pytest.fixture
def base_time():
    """Fixed reference instant for building histories."""
    return BASE_TIME


@pytest.fixture
def make_entry():
    """Factory building an entry ``index`` collection intervals after BASE_TIME.

    Only the network section is populated; ``network=False`` leaves it absent.
    """

    def _make(
        index=0,
        ips=None,
        device_count=None,
        traffic_bytes=None,
        security=None,
        network=True,
        scanned=True,
    ):
        timestamp = BASE_TIME + timedelta(minutes=10 * index)
        if not network:
            return EventLogEntry(timestamp=timestamp)

        devices = [DeviceBrief(ip=ip) for ip in (ips or [])]
        if device_count is None:
            device_count = len(devices)
        traffic = TrafficSummary(total_bytes=traffic_bytes) if traffic_bytes is not None else None
        return EventLogEntry(
            timestamp=timestamp,
            network=NetworkSnapshot(
                device_count=device_count,
                devices=devices,
                scanned=scanned,
                traffic=traffic,
                security=security,
            ),
        )

    return _make


@pytest.fixture
def make_history(make_entry):
    """Factory turning a list of per-entry keyword dicts into an ordered history."""

    def _make(specs):
        return [make_entry(index=i, **spec) for i, spec in enumerate(specs)]

    return _make


@pytest.fixture
def critical_security():
    return SecuritySummary(
        total_alerts=3,
        critical_count=1,
        high_count=2,
        recent_alerts=[
            AlertBrief(
                severity="high",
                signature="ET SCAN Nmap Scripting Engine",
                source_ip="192.168.1.50",
                destination_ip="192.168.1.10",
            ),
            AlertBrief(
                severity="critical",
                signature="ET EXPLOIT Possible CVE-2024-3400",
                source_ip="203.0.113.7",
                destination_ip="192.168.1.10",
                category="Attempted Administrator Privilege Gain",
            ),
        ],
    )


@pytest.fixture
def high_security():
    return SecuritySummary(
        total_alerts=2,
        critical_count=0,
        high_count=2,
        recent_alerts=[
            AlertBrief(
                severity="high",
                signature="ET SCAN Nmap Scripting Engine",
                source_ip="192.168.1.50",
                destination_ip="192.168.1.10",
            ),
        ],
    )


# Component configuration fixtures
@pytest.fixture
def detector_config():
    """Default detector thresholds."""
    return DetectorConfig()


@pytest.fixture
def collector_config():
    """Collector configuration with short deadlines for fast tests."""
    return CollectorConfig(
        subnet="192.168.1.0/24",
        source_timeout_seconds=1.0,
        scan_timeout_seconds=1.0,
        command_timeout_seconds=1.0,
    )
