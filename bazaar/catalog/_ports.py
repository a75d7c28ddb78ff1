"""
Storage ports — typed, Result-based protocols.

All methods return Result for explicit error handling. Implementations
must turn unexpected exceptions into StoreError instead of raising.

Example — a hand-written inventory:

    class ApiInventory(InventoryRepository):
        async def get_item(self, item_id: ItemId) -> Result[Item | None, StoreError]:
            try:
                payload = await self.client.get(f"/items/{item_id}")
                return Ok(Item(**payload) if payload else None)
            except Exception as e:
                return Error(StoreError("Failed to get item", e))

        # ... other methods
"""

from __future__ import annotations

from typing import Protocol

from kungfu import Result

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
# Inventory Repository
# ═══════════════════════════════════════════════════════════════════════════════


class InventoryRepository(Protocol):
    """Read/write of item price, stock and active flag."""

    async def get_item(self, item_id: ItemId) -> Result[Item | None, StoreError]:
        """Get item. Returns Ok(None) if not found."""
        ...

    async def update_item_stock(
        self, item_id: ItemId, new_stock: int
    ) -> Result[Item, StoreError]:
        """Set absolute stock. Error if item missing or new_stock < 0."""
        ...

    async def adjust_stock(
        self, item_id: ItemId, delta: int
    ) -> Result[Item, StoreError]:
        """
        Add delta (may be negative) to the stock.

        Must be atomic and must refuse to take the stock below zero.

        Note: Purchases write stock only through this.
        Почему: A relative, checked write stays correct when several
        processes share one store.
        """
        ...

    async def list_items(self) -> Result[tuple[Item, ...], StoreError]:
        """All items, ordered by id."""
        ...

    async def create_item(self, item: NewItem) -> Result[Item, StoreError]:
        ...

    async def update_item_price(
        self, item_id: ItemId, price: Money
    ) -> Result[Item, StoreError]:
        ...

    async def update_item_active(
        self, item_id: ItemId, active: bool
    ) -> Result[Item, StoreError]:
        ...

    async def delete_item(self, item_id: ItemId) -> Result[bool, StoreError]:
        """Delete item. Returns Ok(True) if existed."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Balance Ledger
# ═══════════════════════════════════════════════════════════════════════════════


class BalanceLedger(Protocol):
    """Per-user currency balance."""

    async def get_account(
        self, user_id: UserId
    ) -> Result[UserAccount | None, StoreError]:
        """Get account by external id. Returns Ok(None) if not found."""
        ...

    async def create_account(
        self, user_id: UserId, initial_balance: Money
    ) -> Result[UserAccount, StoreError]:
        ...

    async def adjust_balance(
        self, account_id: AccountId, delta: Money
    ) -> Result[UserAccount, StoreError]:
        """
        Add delta (may be negative) to the balance.

        Must be atomic and must refuse to take the balance below zero.
        """
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Transaction Log
# ═══════════════════════════════════════════════════════════════════════════════


class TransactionLog(Protocol):
    """Append-only purchase records."""

    async def append(
        self, record: NewTransaction
    ) -> Result[TransactionRecord, StoreError]:
        ...

    async def discard(self, record_id: int) -> Result[bool, StoreError]:
        """
        Remove a record appended by a commit that did not complete.

        Note: Only the purchase executor's rollback calls this.
        Completed purchases are never touched.
        """
        ...

    async def list_for_account(
        self, account_id: AccountId
    ) -> Result[tuple[TransactionRecord, ...], StoreError]:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Entitlement Grants
# ═══════════════════════════════════════════════════════════════════════════════


class EntitlementGrants(Protocol):
    """
    Best-effort side effect tied to an item (e.g. a chat role).

    Error(reason) or a raised exception both count as a failed grant.
    """

    async def grant(self, user_id: UserId, grant_ref: str) -> Result[None, str]:
        ...


__all__ = (
    "InventoryRepository",
    "BalanceLedger",
    "TransactionLog",
    "EntitlementGrants",
)
