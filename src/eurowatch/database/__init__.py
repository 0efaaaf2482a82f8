"""Database access layer."""
from __future__ import annotations

from .storage import SittingOverview, Storage, StorageTransaction, StoredSpeech, busy_delay, create_storage

__all__ = [
    "SittingOverview",
    "Storage",
    "StorageTransaction",
    "StoredSpeech",
    "busy_delay",
    "create_storage",
]
