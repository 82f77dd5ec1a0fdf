"""
JSON File Storage Implementation

DESIGN DECISION: Each collection is one JSON file holding a list of records.
1. Users can open and inspect their data directly
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Whole-collection rewrites (fine for a personal bill list)
- No cross-collection transactions (the payment processor keeps an
  outbox of payment intents instead)
- No query capabilities (we filter in Python)

Writes go to a temporary file that replaces the target, so a crash mid-write
leaves the previous version intact.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from billcycle.config import get_settings
from billcycle.services.storage.interface import (
    ConnectionError,
    KeyValueStoreInterface,
    Record,
    StorageError,
)


class JsonFileKeyValueStore(KeyValueStoreInterface):
    """
    Stores every key as <data_dir>/<key>.json.

    Transient OS errors are retried with exponential backoff before being
    surfaced as StorageError.
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        retry_attempts: Optional[int] = None,
    ):
        settings = get_settings().storage
        self._data_dir = Path(data_dir or settings.data_dir)
        self._retry_attempts = retry_attempts or settings.retry_attempts
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConnectionError(f"Cannot use data directory {self._data_dir}: {e}")

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._data_dir / f"{key}.json"

    async def get(self, key: str) -> Optional[list[Record]]:
        """Read a collection file, or None if it was never written."""
        path = self._path_for(key)
        try:
            async for attempt in self._retrying():
                with attempt:
                    if not path.exists():
                        return None
                    text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

        try:
            records = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt collection {key}: {e}") from e

        if not isinstance(records, list):
            raise StorageError(f"Collection {key} is not a list of records")
        return records

    async def set(self, key: str, records: list[Record]) -> None:
        """Atomically replace a collection file."""
        path = self._path_for(key)
        try:
            payload = json.dumps(list(records), ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Records for {key} are not JSON serializable: {e}") from e

        try:
            async for attempt in self._retrying():
                with attempt:
                    fd, tmp_name = tempfile.mkstemp(
                        dir=self._data_dir, prefix=".tmp-", suffix=".json"
                    )
                    try:
                        with os.fdopen(fd, "w", encoding="utf-8") as handle:
                            handle.write(payload)
                        os.replace(tmp_name, path)
                    except OSError:
                        Path(tmp_name).unlink(missing_ok=True)
                        raise
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

    async def remove(self, key: str) -> None:
        path = self._path_for(key)
        try:
            async for attempt in self._retrying():
                with attempt:
                    path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove {key}: {e}") from e
