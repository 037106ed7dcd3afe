"""
Event Store - append-only JSONL history of collected snapshots.
"""

from .event_store import EventStore
from .models import StoreConfig

__all__ = ["EventStore", "StoreConfig"]
