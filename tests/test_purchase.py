"""Tests for PurchaseExecutor: validation, atomic commit, entitlements."""

import asyncio

import pytest
from kungfu import Result, Error

from bazaar.catalog import (
    MemoryInventory,
    MemoryLedger,
    MemoryTransactionLog,
    MemoryGrants,
    NewTransaction,
    TransactionRecord,
)
from bazaar.errors import (
    StoreError,
    EmptyRequest,
    InvalidQuantity,
    ItemNotFound,
    ItemInactive,
    StockShortage,
    InsufficientStock,
    InsufficientBalance,
    UserNotFound,
    CommitFailed,
)
from bazaar.purchase import PurchaseExecutor, RequestedLine, normalize_lines
from bazaar._types import UserId, ItemId
from bazaar._locks import KeyedLocks

from conftest import SWORD, POTION, VIP, RELIC, RETIRED, ok, err


async def stock_of(inventory: MemoryInventory, item_id: int) -> int:
    item = ok(await inventory.get_item(item_id))
    return item.stock


async def balance_of(ledger: MemoryLedger, user_id: str) -> int:
    account = ok(await ledger.get_account(user_id))
    return account.balance


# ═══════════════════════════════════════════════════════════════════════════════
# Request normalization
# ═══════════════════════════════════════════════════════════════════════════════


def test_normalize_merges_duplicates_in_first_seen_order() -> None:
    lines = ok(normalize_lines([
        RequestedLine(2, 1),
        RequestedLine(1, 2),
        RequestedLine(2, 3),
    ]))

    assert lines == (RequestedLine(2, 4), RequestedLine(1, 2))


def test_normalize_rejects_empty_and_bad_quantities() -> None:
    assert err(normalize_lines([])) == EmptyRequest()
    assert err(normalize_lines([RequestedLine(1, 0)])) == InvalidQuantity(0)


# ═══════════════════════════════════════════════════════════════════════════════
# Success
# ═══════════════════════════════════════════════════════════════════════════════


async def test_buying_two_swords_debits_balance_and_stock(
    executor: PurchaseExecutor,
    inventory: MemoryInventory,
    ledger: MemoryLedger,
    transactions: MemoryTransactionLog,
) -> None:
    result = ok(await executor.execute("alice", [RequestedLine(SWORD, 2)]))

    assert result.new_balance == 0
    assert result.total == 1000
    assert not result.is_partial
    assert await balance_of(ledger, "alice") == 0
    assert await stock_of(inventory, SWORD) == 1

    (record,) = transactions.records
    assert record.item_id == SWORD
    assert record.quantity == 2
    assert record.total_price == 1000
    assert result.records == (record,)


async def test_infinite_stock_is_never_decremented(
    executor: PurchaseExecutor,
    inventory: MemoryInventory,
    ledger: MemoryLedger,
) -> None:
    await ledger.adjust_balance(ok(await ledger.get_account("carol")).id, 19_000)

    result = ok(await executor.execute("carol", [RequestedLine(VIP, 100)]))

    assert result.total == 200 * 100
    assert await balance_of(ledger, "carol") == 0
    assert await stock_of(inventory, VIP) == 0


async def test_multi_line_purchase_writes_one_record_per_item(
    executor: PurchaseExecutor,
    inventory: MemoryInventory,
    transactions: MemoryTransactionLog,
) -> None:
    result = ok(await executor.execute(
        "alice",
        [RequestedLine(POTION, 2), RequestedLine(SWORD, 1), RequestedLine(POTION, 1)],
    ))

    assert result.total == 3 * 50 + 500
    assert result.new_balance == 1000 - 650
    assert [line.item_id for line in result.lines] == [POTION, SWORD]
    assert {(r.item_id, r.quantity) for r in transactions.records} == {
        (POTION, 3),
        (SWORD, 1),
    }
    assert await stock_of(inventory, POTION) == 7


async def test_price_is_read_at_commit_time(
    executor: PurchaseExecutor,
    inventory: MemoryInventory,
) -> None:
    await inventory.update_item_price(POTION, 75)

    result = ok(await executor.execute("alice", [RequestedLine(POTION, 2)]))

    assert result.total == 150
    assert result.lines[0].unit_price == 75


# ═══════════════════════════════════════════════════════════════════════════════
# Rejections leave every store untouched
# ═══════════════════════════════════════════════════════════════════════════════


async def test_insufficient_balance(
    executor: PurchaseExecutor,
    inventory: MemoryInventory,
    ledger: MemoryLedger,
    transactions: MemoryTransactionLog,
) -> None:
    error = err(await executor.execute("bob", [RequestedLine(SWORD, 1)]))

    assert error == InsufficientBalance(required=500, available=400)
    assert await balance_of(ledger, "bob") == 400
    assert await stock_of(inventory, SWORD) == 3
    assert transactions.records == ()


async def test_insufficient_stock_lists_every_short_item(
    executor: PurchaseExecutor,
    inventory: MemoryInventory,
    ledger: MemoryLedger,
) -> None:
    error = err(await executor.execute(
        "alice",
        [RequestedLine(SWORD, 4), RequestedLine(POTION, 1), RequestedLine(RELIC, 2)],
    ))

    assert error == InsufficientStock((
        StockShortage(SWORD, requested=4, available=3),
        StockShortage(RELIC, requested=2, available=1),
    ))
    assert await balance_of(ledger, "alice") == 1000
    assert await stock_of(inventory, POTION) == 10


async def test_unknown_and_inactive_items(executor: PurchaseExecutor) -> None:
    assert err(await executor.execute("alice", [RequestedLine(99, 1)])) == ItemNotFound(99)
    assert err(await executor.execute("alice", [RequestedLine(RETIRED, 1)])) == ItemInactive(
        RETIRED
    )


async def test_unknown_user(executor: PurchaseExecutor) -> None:
    assert err(await executor.execute("mallory", [RequestedLine(POTION, 1)])) == UserNotFound(
        "mallory"
    )


async def test_request_shape_is_checked_first(executor: PurchaseExecutor) -> None:
    assert err(await executor.execute("alice", [])) == EmptyRequest()
    assert err(await executor.execute("alice", [RequestedLine(SWORD, -1)])) == InvalidQuantity(
        -1
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Concurrency
# ═══════════════════════════════════════════════════════════════════════════════


async def test_last_unit_is_sold_exactly_once(
    executor: PurchaseExecutor,
    inventory: MemoryInventory,
    transactions: MemoryTransactionLog,
) -> None:
    first, second = await asyncio.gather(
        executor.execute("alice", [RequestedLine(RELIC, 1)]),
        executor.execute("carol", [RequestedLine(RELIC, 1)]),
    )

    outcomes = [first, second]
    successes = [r for r in outcomes if not isinstance(r, Error)]
    failures = [err(r) for r in outcomes if isinstance(r, Error)]

    assert len(successes) == 1
    assert failures == [InsufficientStock((StockShortage(RELIC, requested=1, available=0),))]
    assert await stock_of(inventory, RELIC) == 0
    assert len(transactions.records) == 1


async def test_concurrent_purchases_never_overdraw(
    executor: PurchaseExecutor,
    ledger: MemoryLedger,
) -> None:
    # bob has 400: at most eight potions at 50 each
    results = await asyncio.gather(
        *(executor.execute("bob", [RequestedLine(POTION, 1)]) for _ in range(10))
    )

    succeeded = sum(1 for r in results if not isinstance(r, Error))
    assert succeeded == 8
    assert await balance_of(ledger, "bob") == 0


# ═══════════════════════════════════════════════════════════════════════════════
# Commit failure rolls back
# ═══════════════════════════════════════════════════════════════════════════════


class FlakyTransactionLog(MemoryTransactionLog):
    """Fails the append with the given 1-based index."""

    def __init__(self, fail_on: int) -> None:
        super().__init__()
        self._fail_on = fail_on
        self._calls = 0

    async def append(self, record: NewTransaction) -> Result[TransactionRecord, StoreError]:
        self._calls += 1
        if self._calls == self._fail_on:
            return Error(StoreError("disk full"))
        return await super().append(record)


async def test_failed_append_restores_balance_and_stock(
    inventory: MemoryInventory,
    ledger: MemoryLedger,
) -> None:
    log = FlakyTransactionLog(fail_on=2)
    executor = PurchaseExecutor(inventory, ledger, log)

    error = err(await executor.execute(
        "alice", [RequestedLine(SWORD, 1), RequestedLine(POTION, 2)]
    ))

    assert isinstance(error, CommitFailed)
    assert error.rollback_complete
    assert "disk full" in error.message
    assert await balance_of(ledger, "alice") == 1000
    assert await stock_of(inventory, SWORD) == 3
    assert await stock_of(inventory, POTION) == 10
    assert log.records == ()


# ═══════════════════════════════════════════════════════════════════════════════
# Entitlements
# ═══════════════════════════════════════════════════════════════════════════════


async def test_entitlement_granted_after_commit(
    executor: PurchaseExecutor,
    grants: MemoryGrants,
) -> None:
    result = ok(await executor.execute("alice", [RequestedLine(VIP, 1)]))

    assert result.warnings == ()
    assert grants.granted == [("alice", "role-vip")]


async def test_refused_grant_is_a_warning_not_a_rollback(
    inventory: MemoryInventory,
    ledger: MemoryLedger,
    transactions: MemoryTransactionLog,
) -> None:
    executor = PurchaseExecutor(
        inventory, ledger, transactions, MemoryGrants(failing={"role-vip"})
    )

    result = ok(await executor.execute("alice", [RequestedLine(VIP, 1)]))

    assert result.is_partial
    (warning,) = result.warnings
    assert warning.item_id == VIP
    assert warning.grant_ref == "role-vip"
    assert await balance_of(ledger, "alice") == 800
    assert len(transactions.records) == 1


class ExplodingGrants:
    async def grant(self, user_id: UserId, grant_ref: str) -> Result[None, str]:
        raise RuntimeError("gateway down")


async def test_raising_grant_is_a_warning(
    inventory: MemoryInventory,
    ledger: MemoryLedger,
    transactions: MemoryTransactionLog,
) -> None:
    executor = PurchaseExecutor(inventory, ledger, transactions, ExplodingGrants())

    result = ok(await executor.execute("alice", [RequestedLine(VIP, 1)]))

    (warning,) = result.warnings
    assert "gateway down" in warning.reason
    assert await balance_of(ledger, "alice") == 800


# ═══════════════════════════════════════════════════════════════════════════════
# Cancellation during commit
# ═══════════════════════════════════════════════════════════════════════════════


class GatedTransactionLog(MemoryTransactionLog):
    """Blocks every append until released."""

    def __init__(self) -> None:
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def append(self, record: NewTransaction) -> Result[TransactionRecord, StoreError]:
        self.started.set()
        await self.release.wait()
        return await super().append(record)


@pytest.mark.parametrize("cancels", [1, 2, 3])
async def test_cancelled_caller_does_not_interrupt_commit(
    inventory: MemoryInventory,
    ledger: MemoryLedger,
    cancels: int,
) -> None:
    log = GatedTransactionLog()
    item_locks = KeyedLocks[ItemId]()
    user_locks = KeyedLocks[UserId]()
    executor = PurchaseExecutor(
        inventory, ledger, log, item_locks=item_locks, user_locks=user_locks
    )

    buying = asyncio.create_task(executor.execute("alice", [RequestedLine(SWORD, 1)]))
    await log.started.wait()

    for _ in range(cancels):
        buying.cancel()
        for _ in range(3):
            await asyncio.sleep(0)

    assert not buying.done()
    assert item_locks.is_locked(SWORD)

    log.release.set()
    with pytest.raises(asyncio.CancelledError):
        await buying

    assert await balance_of(ledger, "alice") == 500
    assert await stock_of(inventory, SWORD) == 2
    assert len(log.records) == 1
    assert len(item_locks) == 0
    assert len(user_locks) == 0
