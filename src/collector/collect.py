"""
Snapshot Collector - CLI Entry Point
Collects one snapshot, appends it to the event log and prunes old entries.
Meant to be run periodically (cron, systemd timer, launchd).
"""

import argparse
import asyncio
import os
import sys

import structlog

from src.core.logger import level_from_name, setup_logging
from src.core.models import EventLogEntry
from src.storage.event_store import EventStore
from src.storage.models import StoreConfig

from .collector import SnapshotCollector
from .models import CollectorConfig

logger = structlog.get_logger(__name__)


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Collect one homelab snapshot into the event log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
            Examples:
            # Collect and print a summary
            python -m src.collector.collect

            # Scheduled run, no output
            python -m src.collector.collect --quiet

            # Scan another subnet and keep 30 days of history
            python -m src.collector.collect --subnet 10.0.0.0/24 --retention-days 30
        """,
    )

    store_defaults = StoreConfig()
    parser.add_argument(
        "--log-path",
        default=str(store_defaults.path),
        help="Event log file (default: ~/.homelab/events.jsonl or HOMELAB_EVENT_LOG env var)",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        default=store_defaults.retention_days,
        help="Days of history kept by the cleanup pass (default: 7)",
    )
    parser.add_argument(
        "--no-cleanup", action="store_true", help="Skip the retention cleanup after writing"
    )

    # Collection settings
    parser.add_argument("--subnet", help="Subnet to scan for devices (default: 192.168.1.0/24)")
    parser.add_argument(
        "--full-scan", action="store_true", help="Port scan instead of a quick ping scan"
    )
    parser.add_argument("--timeout", type=float, help="Per-source timeout in seconds")

    parser.add_argument("--quiet", action="store_true", help="Suppress output (for scheduled runs)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "WARNING"),
        help="Logging level (default: WARNING)",
    )

    return parser.parse_args(argv)


def build_config_from_args(args) -> CollectorConfig:
    """Build a CollectorConfig from environment and command-line arguments"""
    config = CollectorConfig.from_env()

    if args.subnet:
        config.subnet = args.subnet
    if args.full_scan:
        config.quick_scan = False
    if args.timeout:
        config.source_timeout_seconds = args.timeout
        config.scan_timeout_seconds = args.timeout

    return config


def summarize(entry: EventLogEntry) -> list[str]:
    """Plain-text summary lines for one entry"""
    lines = [f"Event logged at {entry.timestamp:%H:%M:%S} UTC"]

    if entry.system is not None:
        s = entry.system
        lines.append(
            f"  CPU: {s.cpu_percent}% | Mem: {s.memory_percent}% | Disk: {s.disk_percent}%"
            f" | Up: {s.uptime}"
        )
    if entry.power is not None and entry.power.recent_events:
        kinds = ", ".join(e.type for e in entry.power.recent_events)
        lines.append(f"  Power: {kinds}")
    if entry.mesh is not None:
        m = entry.mesh
        lines.append(
            f"  Tailscale: {m.backend_state} ({m.online_peer_count}/{m.peer_count} peers online)"
        )
    if entry.containers is not None and entry.containers.available:
        c = entry.containers
        lines.append(f"  Docker: {c.running_count}/{c.total_count} containers running")
    if entry.network is not None:
        n = entry.network
        parts = [f"Devices: {n.device_count}" if n.scanned else "Devices: not scanned"]
        if n.traffic is not None:
            parts.append(f"Traffic: {n.traffic.total_bytes} B")
        if n.security is not None and n.security.total_alerts > 0:
            parts.append(
                f"Alerts: {n.security.total_alerts} "
                f"({n.security.critical_count}c/{n.security.high_count}h)"
            )
        lines.append(f"  Network: {' | '.join(parts)}")
    if entry.services:
        healthy = sum(1 for s in entry.services if s.is_healthy)
        lines.append(f"  Services: {healthy}/{len(entry.services)} healthy")
    if entry.errors:
        lines.append(f"  Warnings: {len(entry.errors)}")
        lines.extend(f"    - {err}" for err in entry.errors)

    return lines


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)
    setup_logging(level=level_from_name(args.log_level))

    try:
        collector = SnapshotCollector(build_config_from_args(args))
        entry = asyncio.run(collector.collect_event())

        store = EventStore(args.log_path)
        store.append(entry)
        if not args.no_cleanup:
            # Entry is already written; pruning is retried on the next run
            try:
                store.cleanup(retention_days=args.retention_days)
            except OSError as e:
                logger.warning("Event log cleanup failed", path=str(store.path), error=str(e))

        if not args.quiet:
            print("\n".join(summarize(entry)))
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Collection failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
