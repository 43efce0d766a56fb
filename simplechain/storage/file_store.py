# simplechain/storage/file_store.py
"""
File-backed key-value store.
The whole mapping is rewritten on every mutation via temp file + rename, so a
crash mid-write leaves the previous version intact.
"""
import json
import logging
import os
from typing import AsyncIterator, Dict, Tuple

from simplechain.exceptions import KeyNotFoundError, StorageError
from simplechain.storage.base import Storage

logger = logging.getLogger(__name__)


class FileStorage(Storage):

    def __init__(self, path: str):
        self.path = path
        self._data: Dict[str, str] = {}

    async def open(self) -> None:
        self._load()
        logger.info(f"📂 FileStorage opened at {self.path} ({len(self._data)} keys).")

    def _load(self):
        if not os.path.exists(self.path):
            self._data = {}
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Could not read ledger file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Ledger file {self.path} does not hold a JSON object.")
        self._data = {str(k): str(v) for k, v in data.items()}

    def _persist(self):
        tmp = self.path + '.tmp'
        try:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            with open(tmp, 'w', encoding='utf-8') as f:
                json.dump(self._data, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f"Could not write ledger file {self.path}: {e}") from e

    async def get(self, key: str) -> str:
        try:
            return self._data[key]
        except KeyError:
            raise KeyNotFoundError(key) from None

    async def put(self, key: str, value: str) -> None:
        previous = self._data.get(key)
        self._data[key] = value
        try:
            self._persist()
        except StorageError:
            # Keep memory consistent with what is on disk.
            if previous is None:
                self._data.pop(key, None)
            else:
                self._data[key] = previous
            raise

    async def delete(self, key: str) -> None:
        if key not in self._data:
            return
        previous = self._data.pop(key)
        try:
            self._persist()
        except StorageError:
            self._data[key] = previous
            raise

    async def scan(self) -> AsyncIterator[Tuple[str, str]]:
        for key, value in list(self._data.items()):
            yield key, value
