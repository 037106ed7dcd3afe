"""
Configuration for the event log store.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_LOG_PATH = Path.home() / ".homelab" / "events.jsonl"


def _default_path() -> Path:
    env_path = os.getenv("HOMELAB_EVENT_LOG")
    return Path(env_path).expanduser() if env_path else DEFAULT_LOG_PATH


@dataclass
class StoreConfig:
    """Configuration for the JSONL event log"""

    path: Path = field(default_factory=_default_path)
    retention_days: int = field(
        default_factory=lambda: int(os.getenv("HOMELAB_RETENTION_DAYS", "7"))
    )
