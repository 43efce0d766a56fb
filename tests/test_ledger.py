"""
Tests for the Ledger: genesis creation, appends, reads, tampering detection,
reset/close semantics and ordering through the operation queue.
"""
import asyncio

import pytest

from simplechain.exceptions import BlockNotFoundError, LedgerClosedError, StorageError
from simplechain.ledger import GENESIS_BODY, TIP_KEY, Ledger
from simplechain.models import Block
from simplechain.storage import FileStorage, MemoryStorage


class SlowStorage(MemoryStorage):
    """Yields to the event loop on every call so interleaving would show up."""

    async def get(self, key):
        await asyncio.sleep(0.001)
        return await super().get(key)

    async def put(self, key, value):
        await asyncio.sleep(0.001)
        await super().put(key, value)


class FlakyStorage(MemoryStorage):
    """Fails block writes while `fail_puts` is set."""

    def __init__(self):
        super().__init__()
        self.fail_puts = False
        self.closed = False

    async def put(self, key, value):
        if self.fail_puts and key != TIP_KEY:
            raise StorageError(f"disk full writing {key}")
        await super().put(key, value)

    async def close(self):
        self.closed = True


async def build_chain(ledger, count, prefix="test data"):
    return [await ledger.append(Block(body=f"{prefix} {i}")) for i in range(count)]


async def tamper(ledger, height, body="induced chain error"):
    block = await ledger.get_block(height)
    await ledger.update_block(height, block.model_copy(update={"body": body}))


def test_new_ledger_has_genesis_block():
    async def scenario():
        ledger = await Ledger.open(MemoryStorage())
        assert await ledger.get_block_height() == 0
        genesis = await ledger.get_block(0)
        assert genesis.body == GENESIS_BODY
        assert genesis.height == 0
        assert genesis.previous_hash == ""
        assert genesis.validate_hash()

    asyncio.run(scenario())


def test_initialization_is_queued_before_caller_operations():
    async def scenario():
        ledger = Ledger(MemoryStorage(), genesis_body="custom genesis")
        # Not awaiting ledger.ready: the height read still runs after init.
        assert await ledger.get_block_height() == 0
        assert (await ledger.get_block(0)).body == "custom genesis"

    asyncio.run(scenario())


def test_append_assigns_contiguous_heights_and_links():
    async def scenario():
        ledger = await Ledger.open(MemoryStorage())
        blocks = await build_chain(ledger, 10)
        assert [b.height for b in blocks] == list(range(1, 11))
        assert await ledger.get_block_height() == 10

        chain = await ledger.get_chain()
        assert [b.height for b in chain] == list(range(11))
        for previous, current in zip(chain, chain[1:]):
            assert current.previous_hash == previous.hash
            assert current.timestamp > 0

    asyncio.run(scenario())


def test_append_does_not_trust_caller_fields():
    async def scenario():
        ledger = await Ledger.open(MemoryStorage())
        supplied = Block(body="hello", height=99, previous_hash="bogus", hash="bogus")
        stored = await ledger.append(supplied)
        assert stored.height == 1
        assert stored.previous_hash == (await ledger.get_block(0)).hash
        assert stored.hash == stored.calculate_hash()
        # The caller's object is left alone.
        assert supplied.height == 99

    asyncio.run(scenario())


def test_valid_chain_validates():
    async def scenario():
        ledger = await Ledger.open(MemoryStorage())
        await build_chain(ledger, 10)
        return await ledger.validate_chain()

    result = asyncio.run(scenario())
    assert result.is_valid is True
    assert result.errors == []
    assert result


def test_tampered_blocks_are_reported():
    """Ten appends after a reset give heights 0-9; bodies of 2, 4 and 7 are rewritten."""
    async def scenario():
        ledger = await Ledger.open(MemoryStorage())
        await ledger.reset()
        await build_chain(ledger, 10)
        assert await ledger.get_block_height() == 9
        for height in (2, 4, 7):
            await tamper(ledger, height)
        return await ledger.validate_chain()

    result = asyncio.run(scenario())
    assert result.is_valid is False
    assert result.errors == [2, 4, 7]


def test_tampered_last_block_is_reported():
    """The tip has no successor, so only its own hash check can catch this."""
    async def scenario():
        ledger = await Ledger.open(MemoryStorage())
        await build_chain(ledger, 5)
        await tamper(ledger, 5)
        return await ledger.validate_chain()

    result = asyncio.run(scenario())
    assert not result.is_valid
    assert result.errors == [5]


def test_resealed_block_breaks_the_link_to_its_successor():
    async def scenario():
        ledger = await Ledger.open(MemoryStorage())
        await build_chain(ledger, 8)
        block = await ledger.get_block(5)
        forged = block.model_copy(update={"body": "forged"})
        forged.hash = forged.calculate_hash()
        await ledger.update_block(5, forged)
        return await ledger.validate_chain()

    result = asyncio.run(scenario())
    assert not result.is_valid
    assert result.errors == [5]


def test_index_can_be_reported_twice():
    async def scenario():
        ledger = await Ledger.open(MemoryStorage())
        await build_chain(ledger, 4)
        block = await ledger.get_block(2)
        # Stale hash that also differs from block 3's previous_hash.
        await ledger.update_block(2, block.model_copy(update={"hash": "0" * 64}))
        return await ledger.validate_chain()

    result = asyncio.run(scenario())
    assert result.errors == [2, 2]


def test_validate_block():
    async def scenario():
        ledger = await Ledger.open(MemoryStorage())
        await build_chain(ledger, 3)
        await tamper(ledger, 2)
        return await ledger.validate_block(1), await ledger.validate_block(2)

    assert asyncio.run(scenario()) == (True, False)


def test_get_block_outside_range_is_not_found():
    async def scenario():
        ledger = await Ledger.open(MemoryStorage())
        await build_chain(ledger, 3)
        for height in (4, 100, -1):
            with pytest.raises(BlockNotFoundError) as exc_info:
                await ledger.get_block(height)
            assert exc_info.value.height == height
        for height in range(4):
            assert (await ledger.get_block(height)).height == height

    asyncio.run(scenario())


def test_reset_starts_again_at_genesis_height():
    async def scenario():
        ledger = await Ledger.open(MemoryStorage())
        await build_chain(ledger, 5)
        await ledger.reset()
        assert await ledger.get_block_height() == -1

        first = await ledger.append(Block(body="fresh start"))
        assert first.height == 0
        assert first.previous_hash == ""
        assert await ledger.get_block_height() == 0

        # Old records above the tip stay in storage but are not readable.
        with pytest.raises(BlockNotFoundError):
            await ledger.get_block(3)
        dumped = await ledger.dump_chain()
        assert [b.height for b in dumped] == list(range(6))
        assert dumped[0].body == "fresh start"
        assert (await ledger.validate_chain()).is_valid

    asyncio.run(scenario())


def test_reset_with_purge_removes_block_records():
    async def scenario():
        storage = MemoryStorage()
        ledger = await Ledger.open(storage)
        await build_chain(ledger, 5)
        await ledger.reset()
        await ledger.append(Block(body="short chain"))
        await ledger.reset(purge=True)
        assert storage.to_dict() == {}
        assert await ledger.dump_chain() == []

    asyncio.run(scenario())


def test_validate_empty_ledger():
    async def scenario():
        ledger = await Ledger.open(MemoryStorage())
        await ledger.reset()
        return await ledger.validate_chain()

    assert asyncio.run(scenario()).is_valid


def test_operations_observe_submission_order():
    async def scenario():
        ledger = await Ledger.open(SlowStorage())
        futures = [
            ledger.append(Block(body="a")),
            ledger.get_block_height(),
            ledger.append(Block(body="b")),
            ledger.get_block_height(),
            ledger.validate_chain(),
        ]
        return await asyncio.gather(*futures)

    first, height_after_first, second, height_after_second, validation = asyncio.run(scenario())
    assert first.height == 1
    assert height_after_first == 1
    assert second.height == 2
    assert height_after_second == 2
    assert second.previous_hash == first.hash
    assert validation.is_valid


def test_concurrent_appends_get_unique_heights():
    async def scenario():
        ledger = await Ledger.open(SlowStorage())
        blocks = await asyncio.gather(*[ledger.append(Block(body=str(i))) for i in range(20)])
        return blocks, await ledger.validate_chain()

    blocks, validation = asyncio.run(scenario())
    assert [b.height for b in blocks] == list(range(1, 21))
    assert [b.body for b in blocks] == [str(i) for i in range(20)]
    assert validation.is_valid


def test_storage_failure_reaches_caller_and_queue_keeps_going():
    async def scenario():
        storage = FlakyStorage()
        ledger = await Ledger.open(storage)
        await ledger.append(Block(body="ok"))

        storage.fail_puts = True
        failed = ledger.append(Block(body="lost"))
        height = ledger.get_block_height()
        with pytest.raises(StorageError, match="disk full"):
            await failed
        assert await height == 1

        storage.fail_puts = False
        recovered = await ledger.append(Block(body="recovered"))
        assert recovered.height == 2
        assert (await ledger.validate_chain()).is_valid

    asyncio.run(scenario())


def test_close_rejects_further_operations():
    async def scenario():
        storage = FlakyStorage()
        ledger = await Ledger.open(storage)
        pending = ledger.append(Block(body="before close"))
        closing = ledger.close()
        with pytest.raises(LedgerClosedError):
            ledger.get_block_height()
        assert (await pending).height == 1
        await closing
        assert storage.closed
        assert ledger.closed

    asyncio.run(scenario())


def test_ledger_survives_reopen(tmp_path):
    path = str(tmp_path / "ledger.json")

    async def first_session():
        ledger = await Ledger.open(FileStorage(path))
        blocks = await build_chain(ledger, 3)
        await ledger.close()
        return blocks

    async def second_session():
        ledger = await Ledger.open(FileStorage(path))
        height = await ledger.get_block_height()
        tip = await ledger.get_block(height)
        validation = await ledger.validate_chain()
        await ledger.close()
        return height, tip, validation

    blocks = asyncio.run(first_session())
    height, tip, validation = asyncio.run(second_session())
    assert height == 3
    assert tip == blocks[-1]
    assert validation.is_valid
