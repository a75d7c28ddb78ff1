"""
Purchase types — requests, validated lines, results.
"""

from __future__ import annotations

from dataclasses import dataclass

from bazaar._types import UserId, ItemId, Money
from bazaar.errors import EntitlementGrantFailed
from bazaar.catalog._types import Item, UserAccount, TransactionRecord


# ═══════════════════════════════════════════════════════════════════════════════
# Request
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class RequestedLine:
    """
    What a purchase asks for.

    Note: No price. Prices are read at commit time, never trusted from
    whatever was displayed when the request was built.
    """

    item_id: ItemId
    quantity: int


# ═══════════════════════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LoadedLine:
    """A requested line joined with the authoritative item."""

    item: Item
    quantity: int


@dataclass(frozen=True, slots=True)
class PurchaseLine:
    """A line priced at validation time."""

    item_id: ItemId
    name: str
    quantity: int
    unit_price: Money
    total_price: Money


@dataclass(frozen=True, slots=True)
class ValidatedPurchase:
    """Everything the commit needs. Only valid while the locks are held."""

    account: UserAccount
    loaded: tuple[LoadedLine, ...]
    lines: tuple[PurchaseLine, ...]
    total: Money


# ═══════════════════════════════════════════════════════════════════════════════
# Result
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PurchaseResult:
    """
    Successful purchase.

    warnings holds failed entitlement grants; the purchase itself is
    committed regardless.
    """

    purchase_id: str
    user_id: UserId
    new_balance: Money
    total: Money
    lines: tuple[PurchaseLine, ...]
    records: tuple[TransactionRecord, ...]
    warnings: tuple[EntitlementGrantFailed, ...] = ()

    @property
    def is_partial(self) -> bool:
        return bool(self.warnings)


__all__ = (
    "RequestedLine",
    "LoadedLine",
    "PurchaseLine",
    "ValidatedPurchase",
    "PurchaseResult",
)
