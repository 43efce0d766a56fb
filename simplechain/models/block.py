# simplechain/models/block.py

import hashlib
import json
import logging
from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from simplechain.exceptions import CorruptBlockError

logger = logging.getLogger(__name__)

# Order matters: the digest is taken over the fields serialized in exactly
# this sequence. Changing it invalidates every stored hash.
CANONICAL_FIELDS = ("hash", "height", "body", "timestamp", "previous_hash")


def sha256(data: bytes) -> str:
    """Computes a SHA256 hash."""
    return hashlib.sha256(data).hexdigest()


class Block(BaseModel):
    """
    One ledger entry: an opaque body linked to its predecessor by hash.

    A caller only supplies `body`; the ledger assigns height, timestamp and
    previous_hash when the block is appended and then seals it with `hash`.
    """
    model_config = ConfigDict(extra="forbid")

    hash: str = ""
    height: int = Field(default=0, ge=0)
    body: str
    timestamp: int = Field(default=0, ge=0)
    previous_hash: str = ""

    def canonical_payload(self) -> bytes:
        """Deterministic serialization with `hash` blanked."""
        fields = {name: getattr(self, name) for name in CANONICAL_FIELDS}
        fields["hash"] = ""
        return json.dumps(fields, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def calculate_hash(self) -> str:
        return sha256(self.canonical_payload())

    def validate_hash(self) -> bool:
        """Returns True if the stored hash matches the block's content."""
        valid_hash = self.calculate_hash()
        if self.hash == valid_hash:
            return True
        logger.warning(f"Block #{self.height} invalid hash:\n{self.hash}<>{valid_hash}")
        return False

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str) -> "Block":
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise CorruptBlockError(f"Stored record is not a valid block: {e}") from e


class ChainValidation(BaseModel):
    """Outcome of a full-chain integrity check."""
    is_valid: bool
    errors: List[int] = Field(default_factory=list)

    def __bool__(self) -> bool:
        return self.is_valid
