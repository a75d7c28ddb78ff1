"""Tests for ConfirmationWorkflow: ownership, single resolution, deadlines."""

import asyncio
from datetime import timedelta

from kungfu import Ok, Error

from bazaar.catalog import MemoryInventory
from bazaar.confirm import (
    ConfirmationWorkflow,
    Policy,
    SessionState,
    FlowKind,
    CONFIRM,
    CANCEL,
)
from bazaar.errors import (
    EmptyRequest,
    InsufficientStock,
    StockShortage,
    SessionNotFound,
    SessionAlreadyResolved,
    SessionExpired,
    Unauthorized,
)
from bazaar.purchase import PurchaseExecutor, RequestedLine

from conftest import SWORD, FakeClock, ok, err


def make_workflow(
    executor: PurchaseExecutor,
    policy: Policy = Policy(),
    clock: FakeClock | None = None,
) -> ConfirmationWorkflow:
    if clock is None:
        return ConfirmationWorkflow(executor.execute, policy)
    return ConfirmationWorkflow(executor.execute, policy, clock)


# ═══════════════════════════════════════════════════════════════════════════════
# Creation
# ═══════════════════════════════════════════════════════════════════════════════


async def test_deadline_follows_flow_kind(executor: PurchaseExecutor, clock: FakeClock) -> None:
    workflow = make_workflow(executor, clock=clock)

    single = ok(await workflow.create("alice", [RequestedLine(SWORD, 1)]))
    checkout = ok(await workflow.create(
        "alice", [RequestedLine(SWORD, 1)], kind=FlowKind.CHECKOUT
    ))

    assert single.deadline - single.created_at == timedelta(seconds=30)
    assert checkout.deadline - checkout.created_at == timedelta(seconds=60)
    assert single.is_pending
    assert len(workflow.pending()) == 2
    await workflow.close()


async def test_create_rejects_empty_request(executor: PurchaseExecutor) -> None:
    workflow = make_workflow(executor)

    assert err(await workflow.create("alice", [])) == EmptyRequest()
    assert workflow.pending() == ()


# ═══════════════════════════════════════════════════════════════════════════════
# Resolution
# ═══════════════════════════════════════════════════════════════════════════════


async def test_confirm_runs_the_purchase(executor: PurchaseExecutor) -> None:
    workflow = make_workflow(executor)
    session = ok(await workflow.create("alice", [RequestedLine(SWORD, 2)]))

    resolution = ok(await workflow.resolve(session.session_id, "alice", CONFIRM))

    assert resolution.session.state is SessionState.CONFIRMED
    assert resolution.session.resolved_at is not None
    purchase = ok(resolution.purchase)
    assert purchase.new_balance == 0


async def test_cancel_runs_nothing(executor: PurchaseExecutor, inventory: MemoryInventory) -> None:
    workflow = make_workflow(executor)
    session = ok(await workflow.create("alice", [RequestedLine(SWORD, 1)]))

    resolution = ok(await workflow.resolve(session.session_id, "alice", CANCEL))

    assert resolution.session.state is SessionState.CANCELLED
    assert resolution.purchase is None
    assert ok(await inventory.get_item(SWORD)).stock == 3


async def test_second_resolution_is_rejected(executor: PurchaseExecutor) -> None:
    workflow = make_workflow(executor)
    session = ok(await workflow.create("alice", [RequestedLine(SWORD, 1)]))

    ok(await workflow.resolve(session.session_id, "alice", CONFIRM))
    error = err(await workflow.resolve(session.session_id, "alice", CONFIRM))

    assert error == SessionAlreadyResolved(session.session_id, SessionState.CONFIRMED)


async def test_non_owner_cannot_resolve(executor: PurchaseExecutor) -> None:
    workflow = make_workflow(executor)
    session = ok(await workflow.create("alice", [RequestedLine(SWORD, 1)]))

    error = err(await workflow.resolve(session.session_id, "bob", CONFIRM))

    assert error == Unauthorized(session.session_id, "bob")
    current = workflow.get(session.session_id)
    assert current is not None
    assert current.is_pending

    ok(await workflow.resolve(session.session_id, "alice", CANCEL))


async def test_unknown_session(executor: PurchaseExecutor) -> None:
    workflow = make_workflow(executor)

    assert err(await workflow.resolve("nope", "alice", CONFIRM)) == SessionNotFound("nope")
    assert workflow.get("nope") is None


async def test_stock_gone_before_confirm_fails_the_purchase(
    executor: PurchaseExecutor,
    inventory: MemoryInventory,
) -> None:
    workflow = make_workflow(executor)
    session = ok(await workflow.create("alice", [RequestedLine(SWORD, 1)]))

    await inventory.update_item_stock(SWORD, 0)
    resolution = ok(await workflow.resolve(session.session_id, "alice", CONFIRM))

    assert resolution.session.state is SessionState.CONFIRMED
    assert err(resolution.purchase) == InsufficientStock(
        (StockShortage(SWORD, requested=1, available=0),)
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Deadlines
# ═══════════════════════════════════════════════════════════════════════════════


async def test_unanswered_session_expires(executor: PurchaseExecutor) -> None:
    workflow = make_workflow(executor)
    session = ok(await workflow.create(
        "alice", [RequestedLine(SWORD, 1)], timeout=timedelta(milliseconds=20)
    ))

    final = await asyncio.wait_for(workflow.wait(session.session_id), timeout=2)

    assert final is not None
    assert final.state is SessionState.EXPIRED
    error = err(await workflow.resolve(session.session_id, "alice", CONFIRM))
    assert error == SessionAlreadyResolved(session.session_id, SessionState.EXPIRED)


async def test_deadline_checked_even_if_timer_has_not_fired(
    executor: PurchaseExecutor,
    inventory: MemoryInventory,
    clock: FakeClock,
) -> None:
    workflow = make_workflow(executor, clock=clock)
    session = ok(await workflow.create("alice", [RequestedLine(SWORD, 1)]))

    clock.advance(31)
    error = err(await workflow.resolve(session.session_id, "alice", CONFIRM))

    assert error == SessionExpired(session.session_id)
    current = workflow.get(session.session_id)
    assert current is not None
    assert current.state is SessionState.EXPIRED
    assert ok(await inventory.get_item(SWORD)).stock == 3


async def test_confirm_racing_expiry_has_one_winner(executor: PurchaseExecutor) -> None:
    workflow = make_workflow(executor)
    session = ok(await workflow.create("alice", [RequestedLine(SWORD, 1)]))

    confirmed, expired = await asyncio.gather(
        workflow.resolve(session.session_id, "alice", CONFIRM),
        workflow.expire(session.session_id),
    )

    outcomes = [confirmed, expired]
    wins = [r for r in outcomes if isinstance(r, Ok)]
    losses = [r for r in outcomes if isinstance(r, Error)]
    assert len(wins) == 1
    assert len(losses) == 1
    assert isinstance(err(losses[0]), SessionAlreadyResolved)


async def test_expire_after_confirm_is_rejected(executor: PurchaseExecutor) -> None:
    workflow = make_workflow(executor)
    session = ok(await workflow.create("alice", [RequestedLine(SWORD, 1)]))
    ok(await workflow.resolve(session.session_id, "alice", CONFIRM))

    error = err(await workflow.expire(session.session_id))

    assert error == SessionAlreadyResolved(session.session_id, SessionState.CONFIRMED)


async def test_resolved_sessions_are_forgotten_after_retention(
    executor: PurchaseExecutor,
) -> None:
    workflow = make_workflow(executor, Policy().with_retention(seconds=0))
    session = ok(await workflow.create("alice", [RequestedLine(SWORD, 1)]))
    ok(await workflow.resolve(session.session_id, "alice", CANCEL))

    error = err(await workflow.resolve(session.session_id, "alice", CONFIRM))

    assert error == SessionNotFound(session.session_id)


async def test_close_cancels_pending_timers(executor: PurchaseExecutor) -> None:
    workflow = make_workflow(executor)
    session = ok(await workflow.create("alice", [RequestedLine(SWORD, 1)]))

    await workflow.close()

    current = workflow.get(session.session_id)
    assert current is not None
    assert current.is_pending


# ═══════════════════════════════════════════════════════════════════════════════
# Policy
# ═══════════════════════════════════════════════════════════════════════════════


def test_policy_builders_return_new_instances() -> None:
    base = Policy()
    tuned = base.with_single_timeout(seconds=10).with_checkout_timeout(seconds=20)

    assert base.timeout_for(FlowKind.SINGLE) == timedelta(seconds=30)
    assert tuned.timeout_for(FlowKind.SINGLE) == timedelta(seconds=10)
    assert tuned.timeout_for(FlowKind.CHECKOUT) == timedelta(seconds=20)
    assert tuned.retain_resolved == base.retain_resolved
    assert base.with_retention(minutes=1).retain_resolved == timedelta(minutes=1)


def test_policy_builders_accept_zero() -> None:
    policy = (
        Policy()
        .with_single_timeout(seconds=0)
        .with_checkout_timeout(delta=timedelta(0))
        .with_retention(seconds=0)
    )

    assert policy.single_timeout == timedelta(0)
    assert policy.checkout_timeout == timedelta(0)
    assert policy.retain_resolved == timedelta(0)
    assert Policy().with_single_timeout().single_timeout == timedelta(seconds=30)
