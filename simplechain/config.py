# simplechain/config.py
import os
from typing import Any, Dict


class Config:
    """
    Settings for the ledger, its storage backend and the front ends.
    Read from environment variables (a .env file is loaded by the entry
    points), with defaults suitable for local use.
    """

    # --- Logging ---
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_FILE = os.environ.get("LOG_FILE")

    # --- Storage ---
    # One of: memory, file, redis
    LEDGER_STORAGE = os.environ.get("LEDGER_STORAGE", "file").lower()
    LEDGER_FILE_PATH = os.environ.get("LEDGER_FILE_PATH", "ledger.json")

    # --- Redis Configuration ---
    REDIS_HOST = os.environ.get("REDIS_HOST", "localhost")
    REDIS_PORT = int(os.environ.get("REDIS_PORT", 6379))
    REDIS_DB = int(os.environ.get("REDIS_DB", 0))
    REDIS_URL = os.environ.get("REDIS_URL") or f"redis://{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}"
    LEDGER_KEY_PREFIX = os.environ.get("LEDGER_KEY_PREFIX", "simplechain:")

    # --- Ledger ---
    GENESIS_BODY = os.environ.get("GENESIS_BODY", "First block in the chain - Genesis block")
    # Seconds a synchronous caller waits on a queued ledger operation.
    LEDGER_CALL_TIMEOUT = float(os.environ.get("LEDGER_CALL_TIMEOUT", 30))

    # --- HTTP API ---
    API_HOST = os.environ.get("API_HOST", "0.0.0.0")
    API_PORT = int(os.environ.get("API_PORT", 5001))

    @classmethod
    def as_dict(cls) -> Dict[str, Any]:
        return {key: getattr(cls, key) for key in dir(cls) if key.isupper()}
