"""
Confirmation workflow — time-bound, single-resolution gate in front of a
purchase.

    workflow = ConfirmationWorkflow(executor.execute)

    match await workflow.create("u1", lines, kind=FlowKind.SINGLE):
        case Ok(session):
            ...  # render buttons carrying session.session_id

    # later, from the button callback
    result = await workflow.resolve(session_id, actor_id, Action.CONFIRM)

Every terminal transition, including the deadline timer's, goes through
one compare-and-set on PENDING under the gate lock. Whoever gets there first
wins; everyone else sees SessionAlreadyResolved.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import uuid4

import structlog
from kungfu import Result, Ok, Error

from bazaar._types import UserId, Clock
from bazaar.errors import (
    PurchaseError,
    SessionError,
    EmptyRequest,
    InvalidQuantity,
    SessionNotFound,
    SessionAlreadyResolved,
    SessionExpired,
    Unauthorized,
)
from bazaar.purchase._types import RequestedLine, PurchaseResult
from bazaar.purchase._executor import normalize_lines
from bazaar.confirm._types import (
    SessionState,
    Action,
    FlowKind,
    ConfirmationSession,
    Resolution,
)
from bazaar.confirm._policy import Policy

logger = structlog.get_logger()

type Execute = Callable[
    [UserId, tuple[RequestedLine, ...]],
    Awaitable[Result[PurchaseResult, PurchaseError]],
]
"""PurchaseExecutor.execute, or anything shaped like it."""


# ═══════════════════════════════════════════════════════════════════════════════
# Stored Session — internal mutable state
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class _StoredSession:
    """Internal mutable session for ConfirmationWorkflow."""

    session_id: str
    owner_id: UserId
    lines: tuple[RequestedLine, ...]
    kind: FlowKind
    created_at: datetime
    deadline: datetime
    state: SessionState = SessionState.PENDING
    resolved_at: datetime | None = None
    timer: asyncio.Task[None] | None = None
    done: asyncio.Event = field(default_factory=asyncio.Event)

    def to_session(self) -> ConfirmationSession:
        return ConfirmationSession(
            session_id=self.session_id,
            owner_id=self.owner_id,
            lines=self.lines,
            kind=self.kind,
            created_at=self.created_at,
            deadline=self.deadline,
            state=self.state,
            resolved_at=self.resolved_at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Workflow
# ═══════════════════════════════════════════════════════════════════════════════


class ConfirmationWorkflow:
    """
    Owns every confirmation session of one process.

    Note: Sessions live in memory; a restart drops pending ones, which is
    equivalent to them expiring.
    """

    def __init__(
        self,
        execute: Execute,
        policy: Policy = Policy(),
        clock: Clock = datetime.now,
    ) -> None:
        self._execute = execute
        self._policy = policy
        self._clock = clock
        self._sessions: dict[str, _StoredSession] = {}
        self._gate = asyncio.Lock()

    @property
    def policy(self) -> Policy:
        return self._policy

    # ───────────────────────────────────────────────────────────────────────────
    # Creation
    # ───────────────────────────────────────────────────────────────────────────

    async def create(
        self,
        owner_id: UserId,
        lines: Iterable[RequestedLine],
        *,
        kind: FlowKind = FlowKind.SINGLE,
        timeout: timedelta | None = None,
    ) -> Result[ConfirmationSession, EmptyRequest | InvalidQuantity]:
        """
        Open a session and start its deadline timer.

        timeout defaults to the policy's value for kind.
        """
        requested = tuple(lines)
        match normalize_lines(requested):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        self._purge()

        window = timeout if timeout is not None else self._policy.timeout_for(kind)
        now = self._clock()
        stored = _StoredSession(
            session_id=uuid4().hex,
            owner_id=owner_id,
            lines=requested,
            kind=kind,
            created_at=now,
            deadline=now + window,
        )
        self._sessions[stored.session_id] = stored
        stored.timer = asyncio.create_task(
            self._expire_after(stored.session_id, window.total_seconds()),
            name=f"confirmation-deadline:{stored.session_id}",
        )

        logger.info(
            "confirmation_opened",
            session_id=stored.session_id,
            owner_id=owner_id,
            kind=kind.name,
            lines=len(requested),
            timeout=window.total_seconds(),
        )
        return Ok(stored.to_session())

    # ───────────────────────────────────────────────────────────────────────────
    # Resolution
    # ───────────────────────────────────────────────────────────────────────────

    async def resolve(
        self,
        session_id: str,
        actor_id: UserId,
        action: Action,
    ) -> Result[Resolution, SessionError]:
        """
        Apply the owner's CONFIRM or CANCEL.

        A non-owner is rejected without touching the session or its timer.
        On CONFIRM the original requested lines go to the executor, which
        re-validates everything against current state.
        """
        self._purge()
        stored = self._sessions.get(session_id)
        if stored is None:
            return Error(SessionNotFound(session_id))

        if actor_id != stored.owner_id:
            logger.warning(
                "confirmation_unauthorized",
                session_id=session_id,
                actor_id=actor_id,
            )
            return Error(Unauthorized(session_id, actor_id))

        async with self._gate:
            if stored.state.is_terminal:
                logger.info(
                    "confirmation_duplicate",
                    session_id=session_id,
                    state=stored.state.name,
                    action=action.name,
                )
                return Error(SessionAlreadyResolved(session_id, stored.state))

            # Deadline passed but the timer has not fired yet.
            expired = self._clock() >= stored.deadline
            if expired:
                self._close(stored, SessionState.EXPIRED)
            elif action is Action.CONFIRM:
                self._close(stored, SessionState.CONFIRMED)
            else:
                self._close(stored, SessionState.CANCELLED)

        if expired:
            return Error(SessionExpired(session_id))

        session = stored.to_session()
        if action is Action.CANCEL:
            return Ok(Resolution(session))

        purchase = await self._execute(stored.owner_id, stored.lines)
        return Ok(Resolution(session, purchase))

    async def expire(
        self,
        session_id: str,
    ) -> Result[ConfirmationSession, SessionAlreadyResolved | SessionNotFound]:
        """
        Mark a pending session EXPIRED.

        The deadline timer calls this; it contends at the same gate as
        resolve(), so exactly one of them wins.
        """
        stored = self._sessions.get(session_id)
        if stored is None:
            return Error(SessionNotFound(session_id))

        async with self._gate:
            if stored.state.is_terminal:
                return Error(SessionAlreadyResolved(session_id, stored.state))
            self._close(stored, SessionState.EXPIRED)

        return Ok(stored.to_session())

    # ───────────────────────────────────────────────────────────────────────────
    # Queries
    # ───────────────────────────────────────────────────────────────────────────

    def get(self, session_id: str) -> ConfirmationSession | None:
        self._purge()
        stored = self._sessions.get(session_id)
        return stored.to_session() if stored is not None else None

    def pending(self) -> tuple[ConfirmationSession, ...]:
        return tuple(
            s.to_session() for s in self._sessions.values()
            if s.state is SessionState.PENDING
        )

    async def wait(self, session_id: str) -> ConfirmationSession | None:
        """Suspend until the session is terminal. None if unknown."""
        stored = self._sessions.get(session_id)
        if stored is None:
            return None
        await stored.done.wait()
        return stored.to_session()

    # ───────────────────────────────────────────────────────────────────────────
    # Shutdown
    # ───────────────────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Cancel every outstanding deadline timer."""
        timers = [
            s.timer for s in self._sessions.values()
            if s.timer is not None and not s.timer.done()
        ]
        for timer in timers:
            timer.cancel()
        await asyncio.gather(*timers, return_exceptions=True)

    # ───────────────────────────────────────────────────────────────────────────
    # Internals
    # ───────────────────────────────────────────────────────────────────────────

    async def _expire_after(self, session_id: str, seconds: float) -> None:
        await asyncio.sleep(seconds)
        match await self.expire(session_id):
            case Ok(_):
                pass
            case Error(e):
                logger.debug("confirmation_timer_lost", session_id=session_id, reason=e.message)

    def _close(self, stored: _StoredSession, state: SessionState) -> None:
        """Terminal transition. Caller holds the gate."""
        stored.state = state
        stored.resolved_at = self._clock()
        timer = stored.timer
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()
        stored.done.set()
        logger.info(
            "confirmation_resolved",
            session_id=stored.session_id,
            owner_id=stored.owner_id,
            state=state.name,
        )

    def _purge(self) -> None:
        """Drop tombstones older than the retention window."""
        now = self._clock()
        retain = self._policy.retain_resolved
        stale = [
            key for key, s in self._sessions.items()
            if s.resolved_at is not None and s.resolved_at + retain <= now
        ]
        for key in stale:
            del self._sessions[key]


__all__ = ("ConfirmationWorkflow", "Execute")
