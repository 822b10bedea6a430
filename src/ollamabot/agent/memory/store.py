"""In-process key-value store backing conversation memory."""

from __future__ import annotations

from typing import Any, Optional

from ..domain.ports import IKeyValueStore


class InMemoryKeyValueStore(IKeyValueStore):
    """Dict-backed store. Contents are lost when the process exits."""

    def __init__(self):
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)
