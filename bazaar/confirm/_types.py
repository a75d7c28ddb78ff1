"""
Confirmation types — session lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto

from kungfu import Result

from bazaar._types import UserId
from bazaar.errors import PurchaseError
from bazaar.purchase._types import RequestedLine, PurchaseResult


# ═══════════════════════════════════════════════════════════════════════════════
# Session State — Lifecycle
# ═══════════════════════════════════════════════════════════════════════════════


class SessionState(Enum):
    """
    State of a confirmation session.

    Lifecycle:
        PENDING → CONFIRMED (owner confirmed)
                → CANCELLED (owner cancelled)
                → EXPIRED   (deadline passed)

    Terminal states never change.
    """

    PENDING = auto()
    CONFIRMED = auto()
    CANCELLED = auto()
    EXPIRED = auto()

    @property
    def is_terminal(self) -> bool:
        return self is not SessionState.PENDING


class Action(Enum):
    """What the owner can do to a pending session."""

    CONFIRM = auto()
    CANCEL = auto()


class FlowKind(Enum):
    """
    Which flow opened the session. Picks the default timeout.

    SINGLE:   one item, bought directly (30 s).
    CHECKOUT: the whole cart (60 s).
    """

    SINGLE = auto()
    CHECKOUT = auto()


# ═══════════════════════════════════════════════════════════════════════════════
# Session — Snapshot
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ConfirmationSession:
    """
    Snapshot of one purchase intent.

    Note: lines carry ids and quantities only — no prices.
    Почему: Prices are re-validated at resolution, never trusted from
    snapshot time.
    """

    session_id: str
    owner_id: UserId
    lines: tuple[RequestedLine, ...]
    kind: FlowKind
    created_at: datetime
    deadline: datetime
    state: SessionState
    resolved_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.state is SessionState.PENDING


# ═══════════════════════════════════════════════════════════════════════════════
# Resolution
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Resolution:
    """
    Outcome of a successful resolve().

    purchase is the executor's Result for a confirmation, None for a
    cancellation. A confirmed session whose purchase failed validation is
    still CONFIRMED — the failure is in purchase.
    """

    session: ConfirmationSession
    purchase: Result[PurchaseResult, PurchaseError] | None = None


__all__ = (
    "SessionState",
    "Action",
    "FlowKind",
    "ConfirmationSession",
    "Resolution",
)
