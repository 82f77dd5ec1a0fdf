"""
Abstract Storage Interface

DESIGN DECISION: The engine persists whole collections under single keys.
Bills, payments, categories, notifications and payment intents each live
as one ordered list of records. This allows us to:
1. Run on any durable key-value store (files, mobile async storage, Redis)
2. Use in-memory storage for testing
3. Put a read-through cache in front without changing business logic

The interface is intentionally tiny - get/set/remove of a whole
collection. There is no query language; filtering happens in Python.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from billcycle.models.audit import AuditEvent


Record = dict[str, Any]


class KeyValueStoreInterface(ABC):
    """
    Abstract interface for collection storage.

    Any backend (JSON files, SQLite, a mobile key-value store)
    must implement these methods.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[list[Record]]:
        """
        Read a whole collection.

        Args:
            key: Namespaced collection key

        Returns:
            The stored records in insertion order, or None if the key
            has never been written

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def set(self, key: str, records: list[Record]) -> None:
        """
        Replace a whole collection.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """
        Delete a collection. Removing a missing key is not an error.

        Raises:
            StorageError: If the delete fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one mark-paid call).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not reach the storage backend."""
    pass
