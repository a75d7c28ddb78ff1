"""
Memory ports — asyncio-locked dicts.

Note: Только для single-process ботов / тестов.
Почему: Данные не переживут рестарт.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
from itertools import count

from kungfu import Result, Ok, Error

from bazaar._types import UserId, ItemId, AccountId, Money
from bazaar.errors import StoreError
from bazaar.catalog._types import (
    Item,
    NewItem,
    UserAccount,
    NewTransaction,
    TransactionRecord,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Inventory
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryInventory:
    """In-memory InventoryRepository."""

    def __init__(self, items: tuple[Item, ...] = ()) -> None:
        self._items: dict[ItemId, Item] = {item.id: item for item in items}
        self._ids = count(max(self._items, default=0) + 1)
        self._lock = asyncio.Lock()

    async def get_item(self, item_id: ItemId) -> Result[Item | None, StoreError]:
        async with self._lock:
            return Ok(self._items.get(item_id))

    async def update_item_stock(
        self, item_id: ItemId, new_stock: int
    ) -> Result[Item, StoreError]:
        if new_stock < 0:
            return Error(StoreError(f"Negative stock for item {item_id}: {new_stock}"))
        return await self._update(item_id, stock=new_stock)

    async def adjust_stock(
        self, item_id: ItemId, delta: int
    ) -> Result[Item, StoreError]:
        async with self._lock:
            existing = self._items.get(item_id)
            if existing is None:
                return Error(StoreError(f"No item: {item_id}"))
            if existing.stock + delta < 0:
                return Error(StoreError(f"Stock of item {item_id} would go negative"))
            updated = replace(existing, stock=existing.stock + delta)
            self._items[item_id] = updated
            return Ok(updated)

    async def list_items(self) -> Result[tuple[Item, ...], StoreError]:
        async with self._lock:
            return Ok(tuple(self._items[k] for k in sorted(self._items)))

    async def create_item(self, item: NewItem) -> Result[Item, StoreError]:
        async with self._lock:
            created = Item(
                id=next(self._ids),
                name=item.name,
                price=item.price,
                stock=item.stock,
                infinite_stock=item.infinite_stock,
                grant_ref=item.grant_ref,
                description=item.description,
            )
            self._items[created.id] = created
            return Ok(created)

    async def update_item_price(
        self, item_id: ItemId, price: Money
    ) -> Result[Item, StoreError]:
        return await self._update(item_id, price=price)

    async def update_item_active(
        self, item_id: ItemId, active: bool
    ) -> Result[Item, StoreError]:
        return await self._update(item_id, is_active=active)

    async def delete_item(self, item_id: ItemId) -> Result[bool, StoreError]:
        async with self._lock:
            return Ok(self._items.pop(item_id, None) is not None)

    async def _update(self, item_id: ItemId, **changes: object) -> Result[Item, StoreError]:
        async with self._lock:
            existing = self._items.get(item_id)
            if existing is None:
                return Error(StoreError(f"No item: {item_id}"))
            updated = replace(existing, **changes)  # type: ignore[arg-type]
            self._items[item_id] = updated
            return Ok(updated)


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryLedger:
    """In-memory BalanceLedger."""

    def __init__(self) -> None:
        self._accounts: dict[AccountId, UserAccount] = {}
        self._by_user: dict[UserId, AccountId] = {}
        self._ids = count(1)
        self._lock = asyncio.Lock()

    async def get_account(
        self, user_id: UserId
    ) -> Result[UserAccount | None, StoreError]:
        async with self._lock:
            account_id = self._by_user.get(user_id)
            if account_id is None:
                return Ok(None)
            return Ok(self._accounts[account_id])

    async def create_account(
        self, user_id: UserId, initial_balance: Money
    ) -> Result[UserAccount, StoreError]:
        if initial_balance < 0:
            return Error(StoreError(f"Negative initial balance: {initial_balance}"))
        async with self._lock:
            if user_id in self._by_user:
                return Error(StoreError(f"Account exists: {user_id}"))
            account = UserAccount(
                id=next(self._ids), external_id=user_id, balance=initial_balance
            )
            self._accounts[account.id] = account
            self._by_user[user_id] = account.id
            return Ok(account)

    async def adjust_balance(
        self, account_id: AccountId, delta: Money
    ) -> Result[UserAccount, StoreError]:
        async with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return Error(StoreError(f"No account: {account_id}"))
            if account.balance + delta < 0:
                return Error(StoreError(
                    f"Balance of account {account_id} would go negative"
                ))
            updated = replace(account, balance=account.balance + delta)
            self._accounts[account_id] = updated
            return Ok(updated)


# ═══════════════════════════════════════════════════════════════════════════════
# Transaction Log
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryTransactionLog:
    """In-memory TransactionLog."""

    def __init__(self) -> None:
        self._records: dict[int, TransactionRecord] = {}
        self._ids = count(1)
        self._lock = asyncio.Lock()

    @property
    def records(self) -> tuple[TransactionRecord, ...]:
        return tuple(self._records.values())

    async def append(
        self, record: NewTransaction
    ) -> Result[TransactionRecord, StoreError]:
        async with self._lock:
            stored = TransactionRecord(
                id=next(self._ids),
                account_id=record.account_id,
                item_id=record.item_id,
                quantity=record.quantity,
                total_price=record.total_price,
                created_at=datetime.now(),
            )
            self._records[stored.id] = stored
            return Ok(stored)

    async def discard(self, record_id: int) -> Result[bool, StoreError]:
        async with self._lock:
            return Ok(self._records.pop(record_id, None) is not None)

    async def list_for_account(
        self, account_id: AccountId
    ) -> Result[tuple[TransactionRecord, ...], StoreError]:
        async with self._lock:
            return Ok(tuple(
                r for r in self._records.values() if r.account_id == account_id
            ))


# ═══════════════════════════════════════════════════════════════════════════════
# Grants
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryGrants:
    """
    Records grants. Refs listed in failing are refused.

    Example:
        grants = MemoryGrants(failing={"role-vip"})
    """

    def __init__(self, failing: set[str] | None = None) -> None:
        self.granted: list[tuple[UserId, str]] = []
        self._failing = set(failing or ())

    async def grant(self, user_id: UserId, grant_ref: str) -> Result[None, str]:
        if grant_ref in self._failing:
            return Error(f"Grant refused: {grant_ref}")
        self.granted.append((user_id, grant_ref))
        return Ok(None)


__all__ = (
    "MemoryInventory",
    "MemoryLedger",
    "MemoryTransactionLog",
    "MemoryGrants",
)
