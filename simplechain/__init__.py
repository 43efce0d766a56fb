# simplechain/__init__.py
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from .exceptions import (
    BlockNotFoundError,
    LedgerClosedError,
    LedgerError,
    NotFoundError,
    StorageError,
)
from .ledger import GENESIS_BODY, Ledger
from .models import Block, ChainValidation
from .operation_queue import OperationQueue

__version__ = "1.0.0"

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(level: str = "INFO", log_file: Optional[str] = None, stream=None) -> None:
    # Clear existing handlers
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    ch = logging.StreamHandler(stream or sys.stdout)
    ch.setFormatter(formatter)
    handlers = [ch]

    if log_file:
        fh = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=5)
        fh.setFormatter(formatter)
        handlers.append(fh)

    logging.basicConfig(level=level.upper(), handlers=handlers)


__all__ = [
    "Block",
    "BlockNotFoundError",
    "ChainValidation",
    "GENESIS_BODY",
    "Ledger",
    "LedgerClosedError",
    "LedgerError",
    "NotFoundError",
    "OperationQueue",
    "StorageError",
    "setup_logging",
]
