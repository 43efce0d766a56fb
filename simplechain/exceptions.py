# simplechain/exceptions.py
"""
Exception hierarchy shared by the ledger, its storage backends and the
HTTP/CLI front ends.
"""


class LedgerError(Exception):
    """Base class for every error raised by simplechain."""


class StorageError(LedgerError):
    """The storage backend failed to complete a get/put/delete/scan."""


class NotFoundError(LedgerError):
    """A requested record does not exist."""


class KeyNotFoundError(NotFoundError):
    """Raised by storage backends when a key is absent."""

    def __init__(self, key: str):
        super().__init__(f"Key not found: {key!r}")
        self.key = key


class BlockNotFoundError(NotFoundError):
    """No block is stored at the requested height (or it lies beyond the tip)."""

    def __init__(self, height: int):
        super().__init__(f"Block #{height} not found")
        self.height = height


class CorruptBlockError(LedgerError):
    """A stored record could not be decoded into a Block."""


class LedgerClosedError(LedgerError):
    """An operation was submitted after the ledger was closed."""
