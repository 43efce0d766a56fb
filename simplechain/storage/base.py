# simplechain/storage/base.py

from abc import ABC, abstractmethod
from typing import AsyncIterator, Tuple


class Storage(ABC):
    """
    Asynchronous key-value store the ledger persists into.

    `get` raises KeyNotFoundError for a missing key; any backend failure is
    raised as StorageError.
    """

    async def open(self) -> None:
        """Attach to the backend. Called once by the ledger before first use."""

    async def close(self) -> None:
        """Release the backend."""

    @abstractmethod
    async def get(self, key: str) -> str:
        ...

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Removes `key`; deleting an absent key is a no-op."""

    @abstractmethod
    def scan(self) -> AsyncIterator[Tuple[str, str]]:
        """Yields every (key, value) pair. Diagnostic use only."""
