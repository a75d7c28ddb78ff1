"""
Purchase executor — validates and atomically commits a purchase.

    executor = PurchaseExecutor(inventory, ledger, transactions, grants)
    result = await executor.execute("u1", (RequestedLine(item_id=1, quantity=2),))

    match result:
        case Ok(purchase):
            print(purchase.new_balance)
        case Error(e):
            print(e.message)

Concurrency: item locks (sorted by id), then the buyer's balance lock, are
held across re-validation and commit, so two purchases touching the same
item or user can never both pass validation against the same stock or
balance.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Iterable
from typing import Any
from uuid import uuid4

import structlog
from combinators import lift as L
from kungfu import Result, Ok, Error

from bazaar._types import UserId, ItemId, Money
from bazaar._locks import KeyedLocks
from bazaar.errors import (
    PurchaseError,
    EmptyRequest,
    InvalidQuantity,
    CommitFailed,
    EntitlementGrantFailed,
)
from bazaar.catalog._ports import (
    InventoryRepository,
    BalanceLedger,
    TransactionLog,
    EntitlementGrants,
)
from bazaar.catalog._types import UserAccount, NewTransaction, TransactionRecord
from bazaar.purchase._types import (
    RequestedLine,
    ValidatedPurchase,
    PurchaseResult,
)
from bazaar.purchase._graph import PurchaseRequest, validate
from bazaar.purchase._commit import CommitStep, step, run_commit

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════════════════════
# Request Normalization
# ═══════════════════════════════════════════════════════════════════════════════


def normalize_lines(
    lines: Iterable[RequestedLine],
) -> Result[tuple[RequestedLine, ...], EmptyRequest | InvalidQuantity]:
    """
    Reject empty requests and quantities < 1; merge duplicate items.

    First-seen order is kept.
    """
    merged: dict[ItemId, int] = {}
    for line in lines:
        if line.quantity < 1:
            return Error(InvalidQuantity(line.quantity))
        merged[line.item_id] = merged.get(line.item_id, 0) + line.quantity

    if not merged:
        return Error(EmptyRequest())

    return Ok(tuple(RequestedLine(item_id, qty) for item_id, qty in merged.items()))


# ═══════════════════════════════════════════════════════════════════════════════
# Executor
# ═══════════════════════════════════════════════════════════════════════════════


class PurchaseExecutor:
    """
    The one place balance, stock and the transaction log are written.

    Every front-end surface (slash command, prefix command, button, select
    menu) ends up here, so validation exists exactly once.
    """

    def __init__(
        self,
        inventory: InventoryRepository,
        ledger: BalanceLedger,
        transactions: TransactionLog,
        grants: EntitlementGrants | None = None,
        *,
        item_locks: KeyedLocks[ItemId] | None = None,
        user_locks: KeyedLocks[UserId] | None = None,
    ) -> None:
        """
        Args:
            inventory: Item store (re-read at commit time)
            ledger: Balance store
            transactions: Append-only purchase log
            grants: Best-effort entitlement side effects (optional)
            item_locks: Share with anything else that writes stock
            user_locks: Share with anything else that writes balances
        """
        self._inventory = inventory
        self._ledger = ledger
        self._transactions = transactions
        self._grants = grants
        self._item_locks = item_locks if item_locks is not None else KeyedLocks[ItemId]()
        self._user_locks = user_locks if user_locks is not None else KeyedLocks[UserId]()

    async def execute(
        self,
        user_id: UserId,
        lines: Iterable[RequestedLine],
    ) -> Result[PurchaseResult, PurchaseError]:
        """
        Validate against current state and commit, or change nothing.

        Steps:
            0. normalize the request, take the locks
            1–5. validation graph (account, items, stock, total, balance)
            6. compensated commit (debit, stock, transaction records)
            7. release locks, best-effort entitlement grants
        """
        normalized = normalize_lines(lines)
        match normalized:
            case Error(e):
                return Error(e)
            case Ok(requested):
                pass

        purchase_id = uuid4().hex[:12]
        log = logger.bind(purchase_id=purchase_id, user_id=user_id)
        item_ids = [line.item_id for line in requested]

        async with self._item_locks.hold(*item_ids), self._user_locks.hold(user_id):
            request = PurchaseRequest(
                user_id=user_id,
                lines=requested,
                inventory=self._inventory,
                ledger=self._ledger,
            )
            match await validate(request):
                case Error(e):
                    log.info("purchase_rejected", reason=type(e).__name__, detail=e.message)
                    return Error(e)
                case Ok(validated):
                    pass

            # Not cancellable once writes begin.
            committed = await _run_to_completion(self._commit(validated))

        match committed:
            case Error(e):
                log.error(
                    "purchase_commit_failed",
                    detail=e.message,
                    rollback_complete=e.rollback_complete,
                )
                return Error(e)
            case Ok((account, records)):
                pass

        log.info(
            "purchase_committed",
            total=validated.total,
            new_balance=account.balance,
            lines=len(validated.lines),
        )

        warnings = await self._grant_entitlements(user_id, validated, log)

        return Ok(PurchaseResult(
            purchase_id=purchase_id,
            user_id=user_id,
            new_balance=account.balance,
            total=validated.total,
            lines=validated.lines,
            records=records,
            warnings=warnings,
        ))

    # ───────────────────────────────────────────────────────────────────────────
    # Step 6 — Commit
    # ───────────────────────────────────────────────────────────────────────────

    async def _commit(
        self,
        purchase: ValidatedPurchase,
    ) -> Result[tuple[UserAccount, tuple[TransactionRecord, ...]], CommitFailed]:
        ledger = self._ledger
        inventory = self._inventory
        transactions = self._transactions
        account = purchase.account
        total: Money = purchase.total

        steps: list[CommitStep[Any]] = [
            step(
                "debit_balance",
                lambda: ledger.adjust_balance(account.id, -total),
                compensate=lambda acc: ledger.adjust_balance(acc.id, total),
            ),
        ]

        for loaded in purchase.loaded:
            if loaded.item.infinite_stock:
                continue
            item = loaded.item
            steps.append(step(
                f"decrement_stock:{item.id}",
                lambda item_id=item.id, qty=loaded.quantity: inventory.adjust_stock(
                    item_id, -qty
                ),
                compensate=lambda _, item_id=item.id, qty=loaded.quantity: (
                    inventory.adjust_stock(item_id, qty)
                ),
            ))

        for line in purchase.lines:
            steps.append(step(
                f"append_transaction:{line.item_id}",
                lambda line=line: transactions.append(NewTransaction(
                    account_id=account.id,
                    item_id=line.item_id,
                    quantity=line.quantity,
                    total_price=line.total_price,
                )),
                compensate=lambda record: transactions.discard(record.id),
            ))

        match await run_commit(steps):
            case Ok(values):
                records = tuple(v for v in values if isinstance(v, TransactionRecord))
                return Ok((values[0], records))
            case Error(err):
                return Error(CommitFailed(
                    message=f"{err.step_failed}: {err.error.message}",
                    rollback_complete=err.rollback_complete,
                ))

    # ───────────────────────────────────────────────────────────────────────────
    # Step 7 — Entitlements
    # ───────────────────────────────────────────────────────────────────────────

    async def _grant_entitlements(
        self,
        user_id: UserId,
        purchase: ValidatedPurchase,
        log: Any,
    ) -> tuple[EntitlementGrantFailed, ...]:
        """Best-effort. Failures become warnings, never a rollback."""
        if self._grants is None:
            return ()
        grants = self._grants

        warnings: list[EntitlementGrantFailed] = []
        seen: set[ItemId] = set()

        for loaded in purchase.loaded:
            item = loaded.item
            if item.grant_ref is None or item.id in seen:
                continue
            seen.add(item.id)

            granted = await L.catching_async(
                lambda ref=item.grant_ref: grants.grant(user_id, ref),
                on_error=lambda e: f"{type(e).__name__}: {e}",
            )
            match granted:
                case Ok(Ok(_)):
                    log.info("entitlement_granted", item_id=item.id, grant_ref=item.grant_ref)
                case Ok(Error(reason)) | Error(reason):
                    log.warning(
                        "entitlement_grant_failed",
                        item_id=item.id,
                        grant_ref=item.grant_ref,
                        reason=reason,
                    )
                    warnings.append(EntitlementGrantFailed(
                        item_id=item.id,
                        grant_ref=item.grant_ref,
                        reason=str(reason),
                    ))

        return tuple(warnings)


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════


async def _run_to_completion[T](coro: Coroutine[Any, Any, T]) -> T:
    """
    Await coro even if the caller is cancelled meanwhile.

    Every cancellation is absorbed until coro has finished, then the first
    one is re-raised, so locks held by the caller are released only after
    the last write.
    """
    task = asyncio.ensure_future(coro)
    cancelled: asyncio.CancelledError | None = None
    while not task.done():
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError as e:
            if cancelled is None:
                cancelled = e
    if cancelled is not None:
        raise cancelled
    return task.result()


__all__ = ("PurchaseExecutor", "normalize_lines")
