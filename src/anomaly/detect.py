"""
CLI for snapshot anomaly detection.

Usage:
    python -m src.anomaly.detect [options]
"""

import argparse
import json
import os
import sys
from datetime import UTC, datetime, timedelta

import structlog

from src.core.logger import level_from_name, setup_logging
from src.storage.event_store import EventStore
from src.storage.models import StoreConfig

from .detector import AnomalyDetector
from .models import AnomalyFinding, DetectorConfig

logger = structlog.get_logger(__name__)


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Detect anomalies in the homelab event log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Findings for the latest snapshot, using the last 24h as baseline
        python -m src.anomaly.detect

        # Every finding over the last week, as JSON lines
        python -m src.anomaly.detect --all --hours 168 --json

        # More sensitive traffic spike detection
        python -m src.anomaly.detect --spike-multiplier 2.0
        """,
    )

    parser.add_argument(
        "--log-path",
        default=str(StoreConfig().path),
        help="Event log file (default: ~/.homelab/events.jsonl or HOMELAB_EVENT_LOG env var)",
    )
    parser.add_argument(
        "--hours",
        type=float,
        default=24.0,
        help="How much history to load (default: 24)",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Report findings at every snapshot instead of only the latest",
    )
    parser.add_argument("--json", action="store_true", help="Print findings as JSON lines")

    # Thresholds
    defaults = DetectorConfig()
    parser.add_argument(
        "--spike-multiplier",
        type=float,
        default=defaults.traffic_spike_multiplier,
        help="Traffic spike multiplier over the rolling mean (default: 3.0)",
    )
    parser.add_argument(
        "--count-change",
        type=float,
        default=defaults.device_count_change_fraction,
        help="Device count change fraction considered anomalous (default: 0.5)",
    )
    parser.add_argument(
        "--established-sightings",
        type=int,
        default=defaults.established_sightings,
        help="Consecutive sightings before a device counts as established (default: 3)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "WARNING"),
        help="Logging level (default: WARNING)",
    )

    return parser.parse_args(argv)


def build_config(args) -> DetectorConfig:
    """Build configuration from arguments"""
    return DetectorConfig(
        traffic_spike_multiplier=args.spike_multiplier,
        device_count_change_fraction=args.count_change,
        established_sightings=args.established_sightings,
    )


def format_finding(finding: AnomalyFinding) -> str:
    ts = finding.timestamp.strftime("%Y-%m-%d %H:%M:%S")
    return f"{ts} [{finding.severity.value}] {finding.type.value}: {finding.description}"


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)
    setup_logging(level=level_from_name(args.log_level))

    try:
        detector = AnomalyDetector(build_config(args))
        store = EventStore(args.log_path)

        since = datetime.now(UTC) - timedelta(hours=args.hours)
        events = store.query(since=since)
        logger.info("History loaded", path=str(store.path), events=len(events))

        findings = detector.scan(events) if args.all else detector.detect(events)

        for finding in findings:
            if args.json:
                print(json.dumps(finding.to_dict()))
            else:
                print(format_finding(finding))

        if not findings and not args.json:
            print(f"No anomalies in {len(events)} snapshot(s)")
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Detection failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
