"""
Event Log Cleanup - CLI Entry Point
Drops entries older than the retention window from the event log
"""

import argparse
import os
import sys

import structlog

from src.core.logger import level_from_name, setup_logging
from src.storage.event_store import EventStore
from src.storage.models import StoreConfig

logger = structlog.get_logger(__name__)


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    defaults = StoreConfig()
    parser = argparse.ArgumentParser(
        description="Prune the homelab event log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Keep the default 7 days
        python -m src.storage.cleanup

        # Keep 30 days of a custom log
        python -m src.storage.cleanup --retention-days 30 --log-path /mnt/data/events.jsonl

        Do not run while a collection is appending to the same log.
        """,
    )
    parser.add_argument(
        "--log-path",
        default=str(defaults.path),
        help="Event log file (default: ~/.homelab/events.jsonl or HOMELAB_EVENT_LOG env var)",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        default=defaults.retention_days,
        help="Days of history to keep (default: 7 or HOMELAB_RETENTION_DAYS env var)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)
    setup_logging(level=level_from_name(args.log_level))

    try:
        store = EventStore(args.log_path)
        removed = store.cleanup(retention_days=args.retention_days)
        print(f"Removed {removed} entr{'y' if removed == 1 else 'ies'} from {store.path}")
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Cleanup failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
