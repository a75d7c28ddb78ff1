"""
bazaar — purchase engine for chat-platform shops.

    from bazaar import cart as K      # Per-user carts
    from bazaar import confirm as F   # Confirmation sessions
    from bazaar import purchase as P  # Validate + atomic commit
    from bazaar import catalog as D   # Store ports & backends
    from bazaar.shop import Shop      # Everything behind one facade
"""

from bazaar import cart
from bazaar import catalog
from bazaar import confirm
from bazaar import purchase
from bazaar import shop
from bazaar import errors
from bazaar.config import Settings
from bazaar.log import configure_logging
from bazaar._types import (
    UserId,
    ItemId,
    AccountId,
    Money,
    Clock,
    LCR,
)

__version__ = "0.1.0"

__all__ = (
    "cart",
    "catalog",
    "confirm",
    "purchase",
    "shop",
    "errors",
    "Settings",
    "configure_logging",
    "UserId",
    "ItemId",
    "AccountId",
    "Money",
    "Clock",
    "LCR",
)
