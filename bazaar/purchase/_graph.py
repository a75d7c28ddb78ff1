"""
Purchase validation graph — steps 1–5 as nodnod nodes.

Architecture:
    PurchaseRequest (injected)
         │
         ▼
    RequestNode
         │
         ▼
    AccountNode ─────────────────────────────┐
         │                                   │
         ▼                                   │
    ItemsNode (traverse_par over lines)      │
         │                                   │
         ▼                                   │
    StockNode                                │
         │                                   │
         ▼                                   │
    PricingNode                              │
         │                                   │
         ▼                                   │
    BalanceNode ◄────────────────────────────┘
         │
         ▼
    ValidatedPurchaseNode

A node rejects the purchase by raising PurchaseRejected; nothing in the
graph writes, so a rejection leaves every store untouched.

Note: НЕ используем 'from __future__ import annotations' потому что
nodnod использует type hints в runtime для dependency resolution.
"""

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

import combinators as C
from kungfu import Result, Ok, Error, LazyCoroResult
from nodnod import Scope, Value, EventLoopAgent, Node, scalar_node as node

from bazaar._types import UserId
from bazaar.errors import (
    PurchaseError,
    UserNotFound,
    ItemNotFound,
    ItemInactive,
    StockShortage,
    InsufficientStock,
    InsufficientBalance,
    StorageFailure,
)
from bazaar.catalog._ports import InventoryRepository, BalanceLedger
from bazaar.catalog._types import UserAccount
from bazaar.purchase._types import (
    RequestedLine,
    LoadedLine,
    PurchaseLine,
    ValidatedPurchase,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Input & Rejection
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class PurchaseRequest:
    """
    Complete input for one validation run.

    lines must already be normalized (merged per item, quantities > 0).
    """

    user_id: UserId
    lines: tuple[RequestedLine, ...]
    inventory: InventoryRepository
    ledger: BalanceLedger


class PurchaseRejected(Exception):
    """Raised by a node to stop the graph with a PurchaseError."""

    def __init__(self, error: PurchaseError) -> None:
        super().__init__(error.message)
        self.error = error


# ═══════════════════════════════════════════════════════════════════════════════
# Entry Node
# ═══════════════════════════════════════════════════════════════════════════════


@node
class RequestNode:
    """Wraps PurchaseRequest for graph."""

    def __init__(self, request: PurchaseRequest) -> None:
        self.request = request

    @classmethod
    def __compose__(cls, request: PurchaseRequest) -> "RequestNode":
        return cls(request)


# ═══════════════════════════════════════════════════════════════════════════════
# Step 1 — Account
# ═══════════════════════════════════════════════════════════════════════════════


@node
class AccountNode:
    """Loads the buyer's account."""

    def __init__(self, account: UserAccount) -> None:
        self.account = account

    @classmethod
    async def __compose__(cls, request: RequestNode) -> "AccountNode":
        req = request.request
        match await req.ledger.get_account(req.user_id):
            case Error(err):
                raise PurchaseRejected(StorageFailure(err.message))
            case Ok(None):
                raise PurchaseRejected(UserNotFound(req.user_id))
            case Ok(account):
                return cls(account)


# ═══════════════════════════════════════════════════════════════════════════════
# Step 2 — Items
# ═══════════════════════════════════════════════════════════════════════════════


@node
class ItemsNode:
    """
    Re-reads every requested item, all lines in parallel.

    Uses combinators.traverse_par — fail-fast on the first missing or
    inactive item.
    """

    def __init__(self, loaded: list[LoadedLine]) -> None:
        self.loaded = loaded

    @classmethod
    async def __compose__(cls, request: RequestNode, account: AccountNode) -> "ItemsNode":
        _ = account  # Account must exist before items are read
        inventory = request.request.inventory

        def load(line: RequestedLine) -> LazyCoroResult[LoadedLine, PurchaseError]:
            async def impl() -> Result[LoadedLine, PurchaseError]:
                match await inventory.get_item(line.item_id):
                    case Error(err):
                        return Error(StorageFailure(err.message))
                    case Ok(None):
                        return Error(ItemNotFound(line.item_id))
                    case Ok(item) if not item.is_active:
                        return Error(ItemInactive(line.item_id))
                    case Ok(item):
                        return Ok(LoadedLine(item, line.quantity))
            return LazyCoroResult(impl)

        result = await C.traverse_par(list(request.request.lines), load)()

        match result:
            case Ok(loaded):
                return cls(loaded)
            case Error(e):
                raise PurchaseRejected(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Step 3 — Stock
# ═══════════════════════════════════════════════════════════════════════════════


@node
class StockNode:
    """All-or-nothing stock check. Infinite-stock items always pass."""

    def __init__(self, checked: int) -> None:
        self.checked = checked

    @classmethod
    def __compose__(cls, items: ItemsNode) -> "StockNode":
        shortages = tuple(
            StockShortage(
                item_id=line.item.id,
                requested=line.quantity,
                available=line.item.stock,
            )
            for line in items.loaded
            if not line.item.covers(line.quantity)
        )
        if shortages:
            raise PurchaseRejected(InsufficientStock(shortages))
        return cls(sum(1 for line in items.loaded if not line.item.infinite_stock))


# ═══════════════════════════════════════════════════════════════════════════════
# Step 4 — Pricing
# ═══════════════════════════════════════════════════════════════════════════════


@node
class PricingNode:
    """Prices every line with the price read in step 2."""

    def __init__(self, lines: tuple[PurchaseLine, ...], total: int) -> None:
        self.lines = lines
        self.total = total

    @classmethod
    def __compose__(cls, items: ItemsNode, stock: StockNode) -> "PricingNode":
        _ = stock  # Stock is checked before money
        lines = tuple(
            PurchaseLine(
                item_id=line.item.id,
                name=line.item.name,
                quantity=line.quantity,
                unit_price=line.item.price,
                total_price=line.item.price * line.quantity,
            )
            for line in items.loaded
        )
        return cls(lines, sum(line.total_price for line in lines))


# ═══════════════════════════════════════════════════════════════════════════════
# Step 5 — Balance
# ═══════════════════════════════════════════════════════════════════════════════


@node
class BalanceNode:
    """Balance must cover the total."""

    def __init__(self, remaining: int) -> None:
        self.remaining = remaining

    @classmethod
    def __compose__(cls, account: AccountNode, pricing: PricingNode) -> "BalanceNode":
        balance = account.account.balance
        if balance < pricing.total:
            raise PurchaseRejected(
                InsufficientBalance(required=pricing.total, available=balance)
            )
        return cls(balance - pricing.total)


# ═══════════════════════════════════════════════════════════════════════════════
# Final Node
# ═══════════════════════════════════════════════════════════════════════════════


@node
class ValidatedPurchaseNode:
    """Collects everything the commit needs."""

    def __init__(self, data: ValidatedPurchase) -> None:
        self.data = data

    @classmethod
    def __compose__(
        cls,
        account: AccountNode,
        items: ItemsNode,
        pricing: PricingNode,
        balance: BalanceNode,
    ) -> "ValidatedPurchaseNode":
        _ = balance  # Ensures the balance check ran
        return cls(ValidatedPurchase(
            account=account.account,
            loaded=tuple(items.loaded),
            lines=pricing.lines,
            total=pricing.total,
        ))


# ═══════════════════════════════════════════════════════════════════════════════
# Compiled Graph
# ═══════════════════════════════════════════════════════════════════════════════

# Compile once at import, run per purchase.
_AGENT = EventLoopAgent.build(
    {cast(type[Node[Any, Any]], ValidatedPurchaseNode)}
)


async def validate(
    request: PurchaseRequest,
) -> Result[ValidatedPurchase, PurchaseError]:
    """Run steps 1–5. Reads only; never writes."""
    try:
        scope = Scope(detail="purchase")
        async with scope:
            scope.push(Value(PurchaseRequest, request))

            run_method = cast(
                Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
                getattr(_AGENT, "run"),
            )
            await run_method(scope, {})

            found = scope.get(ValidatedPurchaseNode)
            if found is None:
                raise KeyError("ValidatedPurchaseNode not found in scope")
            return Ok(cast(ValidatedPurchaseNode, found.value).data)
    except PurchaseRejected as rejected:
        return Error(rejected.error)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "PurchaseRequest",
    "PurchaseRejected",
    "RequestNode",
    "AccountNode",
    "ItemsNode",
    "StockNode",
    "PricingNode",
    "BalanceNode",
    "ValidatedPurchaseNode",
    "validate",
)
