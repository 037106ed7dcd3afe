"""
Heuristic anomaly detection over the snapshot history.

The newest entry is compared against the entries before it (the baseline).
Sections that are absent on an entry mean "no data this cycle": such entries
are left out of the baselines instead of being counted as zero.

Checks:
1. NewDevice          - IP never seen in any earlier snapshot
2. DeviceGone         - established IP (seen N snapshots in a row) is missing
3. TrafficSpike       - total bytes above a multiple of the rolling mean
4. SecurityAlert      - critical or high IDS alerts on the newest snapshot
5. DeviceCountAnomaly - device count far from the rolling mean
"""

from collections.abc import Sequence

import numpy as np
import pandas as pd
import structlog

from src.core.models import EventLogEntry

from .models import AnomalyFinding, AnomalyType, DetectorConfig, Severity

logger = structlog.get_logger(__name__)


def format_bytes(num_bytes: float) -> str:
    """Human readable byte count, e.g. ``1.5 KB``"""
    sizes = ["B", "KB", "MB", "GB", "TB"]
    value = float(num_bytes)
    order = 0
    while value >= 1024 and order < len(sizes) - 1:
        order += 1
        value /= 1024
    return f"{value:.1f}".rstrip("0").rstrip(".") + f" {sizes[order]}"


def has_device_data(entry: EventLogEntry) -> bool:
    return entry.network is not None and entry.network.scanned


def history_frame(entries: Sequence[EventLogEntry]) -> pd.DataFrame:
    """One row per entry; NaN marks a metric the entry has no data for"""
    rows = []
    for entry in entries:
        network = entry.network
        traffic = network.traffic if network is not None else None
        rows.append(
            {
                "timestamp": entry.timestamp,
                "traffic_bytes": traffic.total_bytes if traffic is not None else np.nan,
                "device_count": network.device_count if has_device_data(entry) else np.nan,
            }
        )
    return pd.DataFrame(rows, columns=["timestamp", "traffic_bytes", "device_count"])


class AnomalyDetector:
    """Finds anomalies on the newest snapshot of an ordered history"""

    def __init__(self, config: DetectorConfig | None = None):
        self.config = config or DetectorConfig()

    def detect(self, entries: Sequence[EventLogEntry]) -> list[AnomalyFinding]:
        """Anomalies present on ``entries[-1]``, using earlier entries as baseline

        Args:
            entries: Snapshots ordered oldest to newest

        Returns:
            Findings for the newest entry; empty when there is no baseline
        """
        if len(entries) < 2:
            return []

        current = entries[-1]
        history = list(entries[:-1])
        frame = history_frame(history)

        findings: list[AnomalyFinding] = []
        findings.extend(self._detect_new_devices(current, history))
        findings.extend(self._detect_gone_devices(current, history))
        findings.extend(self._detect_traffic_spike(current, frame))
        findings.extend(self._detect_security_alert(current))
        findings.extend(self._detect_device_count_anomaly(current, frame))

        if findings:
            logger.debug(
                "Anomalies detected",
                timestamp=current.timestamp.isoformat(),
                types=[f.type.value for f in findings],
            )
        return findings

    def scan(self, entries: Sequence[EventLogEntry]) -> list[AnomalyFinding]:
        """Run ``detect`` at every point of the history, oldest first"""
        findings: list[AnomalyFinding] = []
        for i in range(1, len(entries)):
            findings.extend(self.detect(entries[: i + 1]))
        return findings

    def _window(self, frame: pd.DataFrame) -> pd.DataFrame:
        if self.config.baseline_window is None:
            return frame
        return frame.tail(self.config.baseline_window)

    def _detect_new_devices(
        self, current: EventLogEntry, history: list[EventLogEntry]
    ) -> list[AnomalyFinding]:
        if not has_device_data(current):
            return []

        observed = [e for e in history if has_device_data(e)]
        if not observed:
            return []

        known_ips: set[str] = set()
        for entry in observed:
            known_ips |= entry.network.device_ips

        findings = []
        for device in current.network.devices:
            if device.ip in known_ips:
                continue
            info = device.hostname or device.vendor or "unknown"
            findings.append(
                AnomalyFinding(
                    timestamp=current.timestamp,
                    type=AnomalyType.NEW_DEVICE,
                    severity=Severity.WARNING,
                    description=f"New device: {device.ip} ({info})",
                    details={
                        "ip": device.ip,
                        "mac": device.mac or "",
                        "hostname": device.hostname or "",
                        "vendor": device.vendor or "",
                    },
                )
            )
        return findings

    def _detect_gone_devices(
        self, current: EventLogEntry, history: list[EventLogEntry]
    ) -> list[AnomalyFinding]:
        if not has_device_data(current):
            return []

        required = self.config.established_sightings
        recent = [e.network.device_ips for e in history if has_device_data(e)][-required:]
        if len(recent) < required:
            return []

        # Established = present in every one of the last N observed snapshots
        established = set.intersection(*recent)
        findings = []
        for ip in sorted(established - current.network.device_ips):
            findings.append(
                AnomalyFinding(
                    timestamp=current.timestamp,
                    type=AnomalyType.DEVICE_GONE,
                    severity=Severity.WARNING,
                    description=f"Device left network: {ip}",
                    details={"ip": ip, "consecutive": str(required)},
                )
            )
        return findings

    def _detect_traffic_spike(
        self, current: EventLogEntry, frame: pd.DataFrame
    ) -> list[AnomalyFinding]:
        network = current.network
        if network is None or network.traffic is None:
            return []

        required = self.config.traffic_min_baseline
        preceding = frame["traffic_bytes"].tail(required)
        if len(preceding) < required or preceding.isna().any():
            return []

        average = self._window(frame)["traffic_bytes"].mean()
        current_bytes = network.traffic.total_bytes
        if not average > 0 or current_bytes <= average * self.config.traffic_spike_multiplier:
            return []

        return [
            AnomalyFinding(
                timestamp=current.timestamp,
                type=AnomalyType.TRAFFIC_SPIKE,
                severity=Severity.WARNING,
                description=(
                    f"Traffic spike: {format_bytes(current_bytes)} "
                    f"(avg: {format_bytes(average)})"
                ),
                details={
                    "current_bytes": str(current_bytes),
                    "average_bytes": str(int(average)),
                },
            )
        ]

    def _detect_security_alert(self, current: EventLogEntry) -> list[AnomalyFinding]:
        security = current.network.security if current.network is not None else None
        if security is None:
            return []

        if security.critical_count > 0:
            severity, label, count = Severity.CRITICAL, "critical", security.critical_count
        elif security.high_count > 0:
            severity, label, count = Severity.WARNING, "high", security.high_count
        else:
            return []

        top = next((a for a in security.recent_alerts if a.severity == label), None)
        signature = top.signature if top is not None else "unknown"
        details = {
            "critical_count": str(security.critical_count),
            "high_count": str(security.high_count),
            "signature": signature,
        }
        if top is not None:
            details["source_ip"] = top.source_ip
            details["destination_ip"] = top.destination_ip

        return [
            AnomalyFinding(
                timestamp=current.timestamp,
                type=AnomalyType.SECURITY_ALERT,
                severity=severity,
                description=f"{count} {label} severity alert(s): {signature}",
                details=details,
            )
        ]

    def _detect_device_count_anomaly(
        self, current: EventLogEntry, frame: pd.DataFrame
    ) -> list[AnomalyFinding]:
        if not has_device_data(current):
            return []

        counts = self._window(frame)["device_count"].dropna()
        if len(counts) < self.config.device_count_min_baseline:
            return []

        average = counts.mean()
        current_count = current.network.device_count
        deviation = abs(current_count - average)
        if not average > 0 or deviation <= average * self.config.device_count_change_fraction:
            return []

        direction = "increase" if current_count > average else "decrease"
        return [
            AnomalyFinding(
                timestamp=current.timestamp,
                type=AnomalyType.DEVICE_COUNT_ANOMALY,
                severity=Severity.WARNING,
                description=f"Device count {direction}: {current_count} (avg: {average:.0f})",
                details={
                    "current_count": str(current_count),
                    "average_count": f"{average:.0f}",
                    "direction": direction,
                },
            )
        ]
