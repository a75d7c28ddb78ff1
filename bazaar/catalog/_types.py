"""
Catalog types — the external entities the engine reads and writes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from bazaar._types import UserId, ItemId, AccountId, Money


# ═══════════════════════════════════════════════════════════════════════════════
# Inventory
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Item:
    """
    A sellable item, as stored.

    Note: infinite_stock=True means stock is never checked and never
    decremented — the stored number is informational only.
    grant_ref names an external entitlement (e.g. a chat role id).
    """

    id: ItemId
    name: str
    price: Money
    stock: int
    infinite_stock: bool = False
    is_active: bool = True
    grant_ref: str | None = None
    description: str = ""

    def covers(self, quantity: int) -> bool:
        """Whether current stock satisfies quantity."""
        return self.infinite_stock or self.stock >= quantity


@dataclass(frozen=True, slots=True)
class NewItem:
    """Input for creating an item."""

    name: str
    price: Money
    stock: int = 0
    infinite_stock: bool = False
    grant_ref: str | None = None
    description: str = ""


# ═══════════════════════════════════════════════════════════════════════════════
# Accounts
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class UserAccount:
    id: AccountId
    external_id: UserId
    balance: Money


# ═══════════════════════════════════════════════════════════════════════════════
# Transaction Log
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class NewTransaction:
    account_id: AccountId
    item_id: ItemId
    quantity: int
    total_price: Money


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """Append-only purchase record. One per distinct item per purchase."""

    id: int
    account_id: AccountId
    item_id: ItemId
    quantity: int
    total_price: Money
    created_at: datetime = field(default_factory=datetime.now)


__all__ = (
    "Item",
    "NewItem",
    "UserAccount",
    "NewTransaction",
    "TransactionRecord",
)
