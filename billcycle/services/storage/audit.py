"""
Key-Value Audit Storage

Keeps the audit trail as one more collection in the key-value store, so
the engine needs a single persistence backend. Events are append-only;
once the log holds max_events, the oldest events are dropped.
"""

from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from billcycle.config import get_settings
from billcycle.models.audit import AuditEvent
from billcycle.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStoreInterface,
    StorageError,
)


class KeyValueAuditStorage(AuditStorageInterface):

    def __init__(
        self,
        store: KeyValueStoreInterface,
        key: Optional[str] = None,
        max_events: Optional[int] = None,
    ):
        storage_settings = get_settings().storage
        self._store = store
        self._key = key or f"{storage_settings.key_prefix}audit_log"
        self._max_events = max_events or storage_settings.audit_max_events

    async def _load(self) -> list[AuditEvent]:
        records = await self._store.get(self._key) or []
        events = []
        for record in records:
            try:
                events.append(AuditEvent.model_validate(record))
            except ValidationError:
                continue  # Skip malformed rows
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            records = await self._store.get(self._key) or []
            records.append(event.model_dump(mode="json"))
            await self._store.set(self._key, records[-self._max_events:])
            return True
        except StorageError:
            # Audit logging must not break the main flow
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in await self._load() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in await self._load()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = await self._load()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
