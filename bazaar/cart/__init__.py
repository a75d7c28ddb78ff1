"""
Cart — per-user, in-memory, uncommitted purchase lines.

    from bazaar import cart as K

    carts = K.CartStore()
    await carts.add_line("u1", K.ItemSnapshot(1, "Sword", 500), quantity=2)
"""

from bazaar.cart._types import ItemSnapshot, CartLine, Cart
from bazaar.cart._store import CartStore

__all__ = (
    "ItemSnapshot",
    "CartLine",
    "Cart",
    "CartStore",
)
