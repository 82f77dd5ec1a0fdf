"""
In-Memory Storage

Process-local backend for tests and throwaway sessions. Records are
deep-copied on the way in and out so callers can never mutate stored state
by holding on to a returned list.
"""

import copy
from typing import Optional

from billcycle.services.storage.interface import KeyValueStoreInterface, Record


class InMemoryKeyValueStore(KeyValueStoreInterface):

    def __init__(self, initial: Optional[dict[str, list[Record]]] = None):
        self._data: dict[str, list[Record]] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> Optional[list[Record]]:
        if key not in self._data:
            return None
        return copy.deepcopy(self._data[key])

    async def set(self, key: str, records: list[Record]) -> None:
        self._data[key] = copy.deepcopy(list(records))

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)
