"""
Append-only JSONL event log.

Each entry is one self-contained JSON object per line, so a writer that dies
mid-append can at worst leave a truncated last line, which readers skip.
"""

import json
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path

import structlog

from src.core.models import EventLogEntry

from .models import StoreConfig

logger = structlog.get_logger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class EventStore:
    """JSONL-backed history of EventLogEntry records"""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path is not None else StoreConfig().path

    @classmethod
    def from_config(cls, config: StoreConfig) -> "EventStore":
        return cls(config.path)

    def append(self, entry: EventLogEntry) -> None:
        """Append one entry as a single line, creating the file if needed"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), separators=(",", ":"))
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
        logger.debug("Event appended", path=str(self.path), timestamp=entry.timestamp.isoformat())

    def _read_records(self) -> list[tuple[str, EventLogEntry]]:
        """Parse every line, dropping blank and malformed ones"""
        if not self.path.exists():
            return []

        records = []
        skipped = 0
        with self.path.open("r", encoding="utf-8", errors="replace") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = EventLogEntry.from_dict(json.loads(line))
                except (ValueError, KeyError, TypeError, AttributeError, RecursionError):
                    skipped += 1
                    continue
                records.append((line, entry))

        if skipped:
            logger.debug("Skipped malformed event lines", path=str(self.path), count=skipped)
        return records

    def query(
        self, since: datetime | None = None, until: datetime | None = None
    ) -> list[EventLogEntry]:
        """Entries in file order with ``since <= timestamp <= until``

        A missing file is an empty history, never an error.
        """
        since, until = _as_utc(since), _as_utc(until)
        events = []
        for _, entry in self._read_records():
            if since is not None and entry.timestamp < since:
                continue
            if until is not None and entry.timestamp > until:
                continue
            events.append(entry)
        return events

    def tail(self, count: int) -> list[EventLogEntry]:
        """The newest ``count`` entries, oldest first"""
        if count <= 0:
            return []
        return [entry for _, entry in self._read_records()[-count:]]

    def cleanup(self, retention_days: int = 7, now: datetime | None = None) -> int:
        """Rewrite the log keeping only entries newer than the retention window

        Malformed lines are dropped as well. Returns the number of removed lines.
        Must not run concurrently with ``append``.
        """
        if not self.path.exists():
            return 0

        now = _as_utc(now) or datetime.now(UTC)
        cutoff = now - timedelta(days=retention_days)

        with self.path.open("r", encoding="utf-8", errors="replace") as f:
            total = sum(1 for line in f if line.strip())
        kept = [line for line, entry in self._read_records() if entry.timestamp >= cutoff]

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            f.writelines(line + "\n" for line in kept)
        os.replace(tmp_path, self.path)

        removed = total - len(kept)
        logger.info(
            "Event log cleaned up",
            path=str(self.path),
            retention_days=retention_days,
            kept=len(kept),
            removed=removed,
        )
        return removed
