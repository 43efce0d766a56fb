# simplechain/storage/__init__.py

from typing import Any, Mapping

from .base import Storage
from .file_store import FileStorage
from .memory import MemoryStorage
from .redis_store import RedisStorage

__all__ = ["Storage", "MemoryStorage", "FileStorage", "RedisStorage", "create_storage"]


def create_storage(config: Mapping[str, Any]) -> Storage:
    """Builds the backend named by LEDGER_STORAGE."""
    backend = str(config.get("LEDGER_STORAGE", "file")).lower()
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return FileStorage(config.get("LEDGER_FILE_PATH", "ledger.json"))
    if backend == "redis":
        return RedisStorage(
            config.get("REDIS_URL", "redis://localhost:6379/0"),
            key_prefix=config.get("LEDGER_KEY_PREFIX", "simplechain:"),
        )
    raise ValueError(f"Unknown LEDGER_STORAGE backend: {backend!r}")
