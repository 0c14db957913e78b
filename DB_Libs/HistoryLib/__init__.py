"""
HistoryLib - Creation history storage and management

This module handles the bounded history ring of past creations and its
persistence to durable key-value storage.
"""

from DB_Libs.HistoryLib.key_value_storage import (
    KeyValueStorage,
    JsonFileStorage,
    MemoryStorage,
)
from DB_Libs.HistoryLib.history_store import (
    CreationRecord,
    RecordRef,
    HistoryStore,
)

__all__ = [
    "KeyValueStorage",
    "JsonFileStorage",
    "MemoryStorage",
    "CreationRecord",
    "RecordRef",
    "HistoryStore",
]
