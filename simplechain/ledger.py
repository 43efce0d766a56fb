# simplechain/ledger.py

import asyncio
import logging
import time
from typing import List

from simplechain.exceptions import (
    BlockNotFoundError,
    KeyNotFoundError,
    LedgerClosedError,
)
from simplechain.models import Block, ChainValidation
from simplechain.operation_queue import OperationQueue
from simplechain.storage import Storage

logger = logging.getLogger(__name__)

GENESIS_BODY = "First block in the chain - Genesis block"
TIP_KEY = "tip"
NO_HEIGHT = -1


def block_key(height: int) -> str:
    return str(height)


class Ledger:
    """
    Append-only hash chain persisted in a key-value store.

    Every public operation is submitted to an OperationQueue and returns the
    queue's future, so operations run one at a time in the order they were
    called. The private `_*` helpers do the actual storage work and must only
    run inside a queued unit; they never submit to the queue themselves.
    """

    def __init__(self, storage: Storage, genesis_body: str = GENESIS_BODY):
        self.storage = storage
        self.genesis_body = genesis_body
        self._queue = OperationQueue(name="ledger")
        self._closed = False
        # Queued ahead of anything a caller can submit.
        self.ready: asyncio.Future = self._submit(self._initialize)
        logger.info("✅ Ledger instance created.")

    @classmethod
    async def open(cls, storage: Storage, **kwargs) -> "Ledger":
        """Creates a ledger and waits until it holds at least the genesis block."""
        ledger = cls(storage, **kwargs)
        await ledger.ready
        return ledger

    @property
    def closed(self) -> bool:
        return self._closed

    def _submit(self, unit, *args) -> asyncio.Future:
        if self._closed:
            raise LedgerClosedError("Ledger is closed; no further operations accepted.")
        return self._queue.submit(unit, *args)

    # --- Public, queued operations ---

    def append(self, block: Block) -> asyncio.Future:
        return self._submit(self._append, block)

    def get_block_height(self) -> asyncio.Future:
        return self._submit(self._read_tip)

    def get_block(self, height: int) -> asyncio.Future:
        return self._submit(self._get_block, height)

    def update_block(self, height: int, block: Block) -> asyncio.Future:
        """Overwrites the record at `height` verbatim. No hashing, no tip change."""
        return self._submit(self._update_block, height, block)

    def validate_block(self, height: int) -> asyncio.Future:
        return self._submit(self._validate_block, height)

    def validate_chain(self) -> asyncio.Future:
        return self._submit(self._validate_chain)

    def get_chain(self) -> asyncio.Future:
        return self._submit(self._get_chain)

    def dump_chain(self) -> asyncio.Future:
        return self._submit(self._dump_chain)

    def reset(self, purge: bool = False) -> asyncio.Future:
        return self._submit(self._reset, purge)

    def close(self) -> asyncio.Future:
        future = self._submit(self._close)
        self._closed = True
        return future

    # --- Units of work ---

    async def _initialize(self) -> None:
        await self.storage.open()
        height = await self._read_tip()
        if height == NO_HEIGHT:
            logger.info("🔷 No blocks found. Creating genesis block...")
            genesis = await self._append(Block(body=self.genesis_body))
            logger.info(f"✅ Genesis block created: {genesis.hash}")
        else:
            logger.info(f"✅ Ledger opened at height {height}.")

    async def _read_tip(self) -> int:
        try:
            value = await self.storage.get(TIP_KEY)
        except KeyNotFoundError:
            return NO_HEIGHT
        return int(value)

    async def _load_block(self, height: int) -> Block:
        try:
            raw = await self.storage.get(block_key(height))
        except KeyNotFoundError as e:
            raise BlockNotFoundError(height) from e
        return Block.from_json(raw)

    async def _append(self, block: Block) -> Block:
        height = await self._read_tip()
        new_block = block.model_copy(update={
            "height": height + 1,
            "timestamp": int(time.time()),
            "previous_hash": "",
            "hash": "",
        })
        if height >= 0:
            previous_block = await self._load_block(height)
            new_block.previous_hash = previous_block.hash
        new_block.hash = new_block.calculate_hash()

        await self.storage.put(block_key(new_block.height), new_block.to_json())
        await self.storage.put(TIP_KEY, str(new_block.height))
        logger.info(f"📦 Block #{new_block.height} appended (hash={new_block.hash[:12]}).")
        return new_block

    async def _get_block(self, height: int) -> Block:
        tip = await self._read_tip()
        if height < 0 or height > tip:
            raise BlockNotFoundError(height)
        return await self._load_block(height)

    async def _update_block(self, height: int, block: Block) -> None:
        await self.storage.put(block_key(height), block.to_json())
        logger.debug(f"Block #{height} overwritten in place.")

    async def _validate_block(self, height: int) -> bool:
        block = await self._get_block(height)
        return block.validate_hash()

    async def _get_chain(self) -> List[Block]:
        tip = await self._read_tip()
        return [await self._load_block(h) for h in range(tip + 1)]

    async def _validate_chain(self) -> ChainValidation:
        chain = await self._get_chain()
        error_log: List[int] = []

        if chain and chain[0].previous_hash != "":
            logger.warning("Genesis block has a non-empty previous hash.")
            error_log.append(0)

        for i, block in enumerate(chain):
            if not block.validate_hash():
                error_log.append(i)
            if i + 1 < len(chain) and block.hash != chain[i + 1].previous_hash:
                logger.warning(f"Broken link between block #{i} and #{i + 1}.")
                error_log.append(i)

        if error_log:
            logger.warning(f"Block errors = {len(error_log)}")
            logger.warning(f"Blocks: {error_log}")
            return ChainValidation(is_valid=False, errors=error_log)
        logger.info("No errors detected")
        return ChainValidation(is_valid=True)

    async def _dump_chain(self) -> List[Block]:
        blocks = []
        async for key, value in self.storage.scan():
            if key.isdigit():
                blocks.append(Block.from_json(value))
        blocks.sort(key=lambda b: b.height)
        return blocks

    async def _reset(self, purge: bool) -> None:
        if purge:
            # Orphans from earlier resets may sit above the current tip.
            keys = [key async for key, _ in self.storage.scan() if key.isdigit()]
            for key in keys:
                await self.storage.delete(key)
        await self.storage.delete(TIP_KEY)
        logger.info(f"♻️ Ledger reset{' (records purged)' if purge else ''}.")

    async def _close(self) -> None:
        await self.storage.close()
        logger.info("🔒 Ledger closed.")
