"""Services package."""

from billcycle.services.ledger import (
    InMemoryLedger,
    LedgerInterface,
    LedgerWriteError,
)
from billcycle.services.storage import (
    AuditStorageInterface,
    BillStore,
    ConnectionError,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueAuditStorage,
    KeyValueStoreInterface,
    NotFoundError,
    ReadThroughCache,
    StorageError,
)

__all__ = [
    # Ledger collaborator
    "InMemoryLedger",
    "LedgerInterface",
    "LedgerWriteError",
    # Storage services
    "AuditStorageInterface",
    "BillStore",
    "ConnectionError",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueAuditStorage",
    "KeyValueStoreInterface",
    "NotFoundError",
    "ReadThroughCache",
    "StorageError",
]
