# simplechain/storage/memory.py

from typing import AsyncIterator, Dict, Tuple

from simplechain.exceptions import KeyNotFoundError
from simplechain.storage.base import Storage


class MemoryStorage(Storage):
    """Dict-backed store. Nothing survives the process."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> str:
        try:
            return self._data[key]
        except KeyError:
            raise KeyNotFoundError(key) from None

    async def put(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def scan(self) -> AsyncIterator[Tuple[str, str]]:
        for key, value in list(self._data.items()):
            yield key, value

    def to_dict(self) -> Dict[str, str]:
        return dict(self._data)
