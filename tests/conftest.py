"""Pytest fixtures: seeded in-memory stores and a controllable clock."""

from datetime import datetime, timedelta
from typing import Any

import pytest
from kungfu import Result, Ok, Error

from bazaar.catalog import (
    Item,
    MemoryInventory,
    MemoryLedger,
    MemoryTransactionLog,
    MemoryGrants,
)
from bazaar.purchase import PurchaseExecutor

SWORD = 1
POTION = 2
VIP = 3
RELIC = 4
RETIRED = 5


class FakeClock:
    """datetime.now replacement that only moves when told to."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def seed_items() -> tuple[Item, ...]:
    return (
        Item(SWORD, "Sword", price=500, stock=3),
        Item(POTION, "Potion", price=50, stock=10),
        Item(VIP, "VIP role", price=200, stock=0, infinite_stock=True, grant_ref="role-vip"),
        Item(RELIC, "Relic", price=100, stock=1),
        Item(RETIRED, "Old hat", price=10, stock=5, is_active=False),
    )


@pytest.fixture
def inventory() -> MemoryInventory:
    return MemoryInventory(seed_items())


@pytest.fixture
async def ledger() -> MemoryLedger:
    ledger = MemoryLedger()
    await ledger.create_account("alice", 1000)
    await ledger.create_account("bob", 400)
    await ledger.create_account("carol", 1000)
    return ledger


@pytest.fixture
def transactions() -> MemoryTransactionLog:
    return MemoryTransactionLog()


@pytest.fixture
def grants() -> MemoryGrants:
    return MemoryGrants()


@pytest.fixture
def executor(
    inventory: MemoryInventory,
    ledger: MemoryLedger,
    transactions: MemoryTransactionLog,
    grants: MemoryGrants,
) -> PurchaseExecutor:
    return PurchaseExecutor(inventory, ledger, transactions, grants)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def ok(result: Result[Any, Any]) -> Any:
    match result:
        case Ok(value):
            return value
        case Error(e):
            pytest.fail(f"expected Ok, got Error({e!r})")


def err(result: Result[Any, Any]) -> Any:
    match result:
        case Ok(value):
            pytest.fail(f"expected Error, got Ok({value!r})")
        case Error(e):
            return e
