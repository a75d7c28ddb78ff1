"""
Cart store — per-user ephemeral line items.

No stock or balance validation happens here: carts live much longer than
inventory stays unchanged, so the purchase executor re-reads authoritative
state at commit time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import structlog
from kungfu import Result, Ok, Error

from bazaar._types import UserId, ItemId, Money, Clock
from bazaar._locks import KeyedLocks
from bazaar.errors import InvalidQuantity, LineNotFound
from bazaar.cart._types import ItemSnapshot, CartLine, Cart
from bazaar.purchase._types import RequestedLine

logger = structlog.get_logger()


@dataclass
class _StoredCart:
    """Internal mutable cart for CartStore."""

    user_id: UserId
    last_updated: datetime
    lines: dict[ItemId, CartLine] = field(default_factory=dict[ItemId, CartLine])

    def to_cart(self) -> Cart:
        return Cart(
            user_id=self.user_id,
            lines=tuple(self.lines.values()),
            last_updated=self.last_updated,
        )


class CartStore:
    """
    In-memory carts keyed by user.

    Construct one per process and inject it; there is no module-level
    instance. Operations on one user's cart serialize; different users
    never contend.
    """

    def __init__(self, clock: Clock = datetime.now) -> None:
        self._carts: dict[UserId, _StoredCart] = {}
        self._locks = KeyedLocks[UserId]()
        self._clock = clock

    def __len__(self) -> int:
        return len(self._carts)

    async def get(self, user_id: UserId) -> Cart | None:
        """Peek without creating."""
        async with self._locks.hold(user_id):
            stored = self._carts.get(user_id)
            return stored.to_cart() if stored is not None else None

    async def get_or_create(self, user_id: UserId) -> Cart:
        async with self._locks.hold(user_id):
            return self._ensure(user_id).to_cart()

    async def add_line(
        self,
        user_id: UserId,
        item: ItemSnapshot,
        quantity: int = 1,
    ) -> Result[Cart, InvalidQuantity]:
        """
        Add quantity of item.

        An existing line for the item gets the quantity summed (its
        name/price stay as first added); otherwise a new line is appended.
        """
        if quantity < 1:
            return Error(InvalidQuantity(quantity))

        async with self._locks.hold(user_id):
            stored = self._ensure(user_id)
            existing = stored.lines.get(item.item_id)
            if existing is not None:
                stored.lines[item.item_id] = CartLine(
                    item_id=existing.item_id,
                    name=existing.name,
                    unit_price=existing.unit_price,
                    quantity=existing.quantity + quantity,
                )
            else:
                stored.lines[item.item_id] = CartLine(
                    item_id=item.item_id,
                    name=item.name,
                    unit_price=item.unit_price,
                    quantity=quantity,
                )
            stored.last_updated = self._clock()

            logger.debug(
                "cart_line_added",
                user_id=user_id,
                item_id=item.item_id,
                quantity=stored.lines[item.item_id].quantity,
            )
            return Ok(stored.to_cart())

    async def remove_line(
        self,
        user_id: UserId,
        item_id: ItemId,
        quantity: int = 1,
    ) -> Result[Cart, LineNotFound | InvalidQuantity]:
        """
        Remove quantity of item.

        Removing at least the line's quantity deletes the line; it never
        goes negative.
        """
        if quantity < 1:
            return Error(InvalidQuantity(quantity))

        async with self._locks.hold(user_id):
            stored = self._carts.get(user_id)
            existing = stored.lines.get(item_id) if stored is not None else None
            if stored is None or existing is None:
                return Error(LineNotFound(item_id))

            if existing.quantity <= quantity:
                del stored.lines[item_id]
            else:
                stored.lines[item_id] = CartLine(
                    item_id=existing.item_id,
                    name=existing.name,
                    unit_price=existing.unit_price,
                    quantity=existing.quantity - quantity,
                )
            stored.last_updated = self._clock()

            logger.debug("cart_line_removed", user_id=user_id, item_id=item_id)
            return Ok(stored.to_cart())

    async def clear(self, user_id: UserId) -> bool:
        """Delete the cart entirely. Returns True if one existed."""
        async with self._locks.hold(user_id):
            existed = self._carts.pop(user_id, None) is not None
            if existed:
                logger.debug("cart_cleared", user_id=user_id)
            return existed

    async def total(self, user_id: UserId) -> Money:
        async with self._locks.hold(user_id):
            stored = self._carts.get(user_id)
            return stored.to_cart().total if stored is not None else 0

    async def requested_lines(self, user_id: UserId) -> tuple[RequestedLine, ...]:
        """The cart as a purchase request — ids and quantities, no prices."""
        async with self._locks.hold(user_id):
            stored = self._carts.get(user_id)
            if stored is None:
                return ()
            return tuple(
                RequestedLine(line.item_id, line.quantity)
                for line in stored.lines.values()
            )

    def _ensure(self, user_id: UserId) -> _StoredCart:
        stored = self._carts.get(user_id)
        if stored is None:
            stored = self._carts[user_id] = _StoredCart(user_id, self._clock())
        return stored


__all__ = ("CartStore",)
