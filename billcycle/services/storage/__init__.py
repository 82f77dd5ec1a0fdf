"""
Storage Services Package

Provides the abstract key-value interface, concrete backends, the
read-through cache and the BillStore that owns every bill collection.
"""

from billcycle.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    KeyValueStoreInterface,
    NotFoundError,
    StorageError,
)
from billcycle.services.storage.audit import KeyValueAuditStorage
from billcycle.services.storage.bill_store import BillStore
from billcycle.services.storage.cache import ReadThroughCache
from billcycle.services.storage.json_file import JsonFileKeyValueStore
from billcycle.services.storage.memory import InMemoryKeyValueStore

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStoreInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "BillStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueAuditStorage",
    "ReadThroughCache",
]
