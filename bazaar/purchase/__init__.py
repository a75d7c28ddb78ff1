"""
Purchase — the atomic balance/stock/ledger commit.

    from bazaar import purchase as P

    executor = P.PurchaseExecutor(inventory, ledger, transactions, grants)
    result = await executor.execute("u1", (P.RequestedLine(1, 2),))

Validation (steps 1–5) is a nodnod graph; the commit (step 6) is a
sequence of compensated writes.
"""

from bazaar.purchase._types import (
    RequestedLine,
    LoadedLine,
    PurchaseLine,
    ValidatedPurchase,
    PurchaseResult,
)
from bazaar.purchase._graph import PurchaseRequest, PurchaseRejected, validate
from bazaar.purchase._commit import CommitStep, CommitError, step, run_commit
from bazaar.purchase._executor import PurchaseExecutor, normalize_lines

__all__ = (
    "RequestedLine",
    "LoadedLine",
    "PurchaseLine",
    "ValidatedPurchase",
    "PurchaseResult",
    "PurchaseRequest",
    "PurchaseRejected",
    "validate",
    "CommitStep",
    "CommitError",
    "step",
    "run_commit",
    "PurchaseExecutor",
    "normalize_lines",
)
