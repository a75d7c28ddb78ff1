"""
Compensated commit — step 6 as a sequence of undoable writes.

Each write is a CommitStep: action + compensator. Steps run in order; when
one fails, the compensators of every completed step run in reverse and the
commit reports whether the rollback itself was clean.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

import structlog
from kungfu import Result, Ok, Error, LazyCoroResult

from bazaar.errors import StoreError

logger = structlog.get_logger()

# ═══════════════════════════════════════════════════════════════════════════════
# Step & Outcome Types
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[Result[Any, StoreError]]]
"""Receives the action's value and undoes it."""


@dataclass(frozen=True, slots=True)
class CommitStep[T]:
    """
    A single write: action + compensator.

    When action succeeds, compensator is recorded.
    If a later step fails, compensators run in reverse.
    """

    name: str
    action: LazyCoroResult[T, StoreError]
    compensate: Compensator[T] | None = None


@dataclass(frozen=True, slots=True)
class CommitError:
    """Commit error with rollback status."""

    error: StoreError
    step_failed: str
    compensators_run: int
    compensators_failed: int
    rollback_complete: bool


type RecordedCompensator = tuple[str, Any, Compensator[Any]]

# ═══════════════════════════════════════════════════════════════════════════════
# step() — Constructor
# ═══════════════════════════════════════════════════════════════════════════════


def step[T](
    name: str,
    action: Callable[[], Awaitable[Result[T, StoreError]]],
    compensate: Compensator[T] | None = None,
) -> CommitStep[T]:
    """
    Create a compensated commit step.

    Example:
        debit = step(
            "debit",
            lambda: ledger.adjust_balance(account.id, -total),
            compensate=lambda acc: ledger.adjust_balance(acc.id, total),
        )
    """
    return CommitStep(name=name, action=LazyCoroResult(action), compensate=compensate)


# ═══════════════════════════════════════════════════════════════════════════════
# run_compensators() — Rollback
# ═══════════════════════════════════════════════════════════════════════════════


async def run_compensators(
    compensators: list[RecordedCompensator],
) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    comp_run = 0
    comp_failed = 0

    for name, value, comp in reversed(compensators):
        try:
            result = await comp(value)
        except Exception:
            logger.exception("compensation_raised", step=name)
            comp_failed += 1
            continue

        match result:
            case Ok(_):
                comp_run += 1
            case Error(err):
                logger.error("compensation_failed", step=name, error=err.message)
                comp_failed += 1

    return comp_run, comp_failed


# ═══════════════════════════════════════════════════════════════════════════════
# run_commit() — Execute all steps
# ═══════════════════════════════════════════════════════════════════════════════


async def run_commit(
    steps: Sequence[CommitStep[Any]],
) -> Result[tuple[Any, ...], CommitError]:
    """
    Execute steps in order with automatic rollback on failure.

    On success: returns every step's value, in step order.
    On failure: runs compensators in reverse, returns CommitError.
    """
    compensators: list[RecordedCompensator] = []
    values: list[Any] = []

    for commit_step in steps:
        try:
            result = await commit_step.action
        except Exception as e:
            result = Error(StoreError(f"{commit_step.name} raised: {e}", e))

        match result:
            case Ok(value):
                values.append(value)
                if commit_step.compensate is not None:
                    compensators.append((commit_step.name, value, commit_step.compensate))
            case Error(error):
                comp_run, comp_failed = await run_compensators(compensators)
                return Error(CommitError(
                    error=error,
                    step_failed=commit_step.name,
                    compensators_run=comp_run,
                    compensators_failed=comp_failed,
                    rollback_complete=comp_failed == 0,
                ))

    return Ok(tuple(values))


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Compensator",
    "CommitStep",
    "CommitError",
    "step",
    "run_compensators",
    "run_commit",
)
