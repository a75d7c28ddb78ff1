"""
Error taxonomy — every recoverable per-request condition as a value.

Errors are returned inside kungfu.Error, never raised across a public
boundary. Each carries enough data for a front-end to render it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from bazaar._types import UserId, ItemId, Money

if TYPE_CHECKING:
    from bazaar.confirm._types import SessionState


# ═══════════════════════════════════════════════════════════════════════════════
# Storage
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Request Shape
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class InvalidQuantity:
    quantity: int

    @property
    def message(self) -> str:
        return f"Invalid quantity: {self.quantity}"


@dataclass(frozen=True, slots=True)
class EmptyRequest:
    @property
    def message(self) -> str:
        return "Nothing to purchase"


@dataclass(frozen=True, slots=True)
class LineNotFound:
    item_id: ItemId

    @property
    def message(self) -> str:
        return f"Item {self.item_id} is not in the cart"


# ═══════════════════════════════════════════════════════════════════════════════
# Purchase Validation
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ItemNotFound:
    item_id: ItemId

    @property
    def message(self) -> str:
        return f"Item {self.item_id} not found"


@dataclass(frozen=True, slots=True)
class ItemInactive:
    item_id: ItemId

    @property
    def message(self) -> str:
        return f"Item {self.item_id} is not for sale"


@dataclass(frozen=True, slots=True)
class StockShortage:
    """One item that cannot cover the requested quantity."""

    item_id: ItemId
    requested: int
    available: int


@dataclass(frozen=True, slots=True)
class InsufficientStock:
    """
    Every short item of the request, not only the first.

    Note: The whole purchase is rejected — no partial fulfillment.
    """

    shortages: tuple[StockShortage, ...]

    @property
    def message(self) -> str:
        parts = ", ".join(
            f"item {s.item_id} (requested {s.requested}, available {s.available})"
            for s in self.shortages
        )
        return f"Insufficient stock: {parts}"


@dataclass(frozen=True, slots=True)
class InsufficientBalance:
    required: Money
    available: Money

    @property
    def message(self) -> str:
        return f"Insufficient balance: required {self.required}, available {self.available}"


@dataclass(frozen=True, slots=True)
class UserNotFound:
    user_id: UserId

    @property
    def message(self) -> str:
        return f"User {self.user_id} has no account"


@dataclass(frozen=True, slots=True)
class StorageFailure:
    """A port read failed before anything was written."""

    message: str


@dataclass(frozen=True, slots=True)
class CommitFailed:
    """
    A write failed mid-commit.

    rollback_complete=False means a compensator also failed and the
    stores need manual reconciliation (it is logged with full context).
    """

    message: str
    rollback_complete: bool


# ═══════════════════════════════════════════════════════════════════════════════
# Confirmation Sessions
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SessionNotFound:
    session_id: str

    @property
    def message(self) -> str:
        return f"Session {self.session_id} not found"


@dataclass(frozen=True, slots=True)
class SessionAlreadyResolved:
    session_id: str
    state: SessionState

    @property
    def message(self) -> str:
        return f"Session {self.session_id} already {self.state.name.lower()}"


@dataclass(frozen=True, slots=True)
class SessionExpired:
    session_id: str

    @property
    def message(self) -> str:
        return f"Session {self.session_id} expired"


@dataclass(frozen=True, slots=True)
class Unauthorized:
    session_id: str
    actor_id: UserId

    @property
    def message(self) -> str:
        return f"User {self.actor_id} does not own session {self.session_id}"


# ═══════════════════════════════════════════════════════════════════════════════
# Warnings
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class EntitlementGrantFailed:
    """
    Non-fatal: attached to an otherwise successful PurchaseResult.

    Note: The purchase stays committed.
    """

    item_id: ItemId
    grant_ref: str
    reason: str

    @property
    def message(self) -> str:
        return f"Could not grant {self.grant_ref} for item {self.item_id}: {self.reason}"


# ═══════════════════════════════════════════════════════════════════════════════
# Unions
# ═══════════════════════════════════════════════════════════════════════════════

type CartError = InvalidQuantity | LineNotFound

type PurchaseError = (
    EmptyRequest
    | InvalidQuantity
    | UserNotFound
    | ItemNotFound
    | ItemInactive
    | InsufficientStock
    | InsufficientBalance
    | StorageFailure
    | CommitFailed
)

type SessionError = (
    SessionNotFound | SessionAlreadyResolved | SessionExpired | Unauthorized
)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "StoreError",
    "InvalidQuantity",
    "EmptyRequest",
    "LineNotFound",
    "ItemNotFound",
    "ItemInactive",
    "StockShortage",
    "InsufficientStock",
    "InsufficientBalance",
    "UserNotFound",
    "StorageFailure",
    "CommitFailed",
    "SessionNotFound",
    "SessionAlreadyResolved",
    "SessionExpired",
    "Unauthorized",
    "EntitlementGrantFailed",
    "CartError",
    "PurchaseError",
    "SessionError",
)
