"""
Cart types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from bazaar._types import UserId, ItemId, Money


@dataclass(frozen=True, slots=True)
class ItemSnapshot:
    """What the cart copies from an Item when a line is added."""

    item_id: ItemId
    name: str
    unit_price: Money


@dataclass(frozen=True, slots=True)
class CartLine:
    """
    One item in a cart. quantity > 0 always.

    Note: unit_price is display-only.
    Почему: The executor re-reads prices at commit time.
    """

    item_id: ItemId
    name: str
    unit_price: Money
    quantity: int

    @property
    def subtotal(self) -> Money:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class Cart:
    """Snapshot of a user's cart. At most one line per item_id."""

    user_id: UserId
    lines: tuple[CartLine, ...]
    last_updated: datetime

    @property
    def total(self) -> Money:
        return sum(line.subtotal for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def line(self, item_id: ItemId) -> CartLine | None:
        for line in self.lines:
            if line.item_id == item_id:
                return line
        return None


__all__ = ("ItemSnapshot", "CartLine", "Cart")
