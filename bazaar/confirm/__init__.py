"""
Confirm — time-bound, single-resolution confirmation sessions.

    from bazaar import confirm as F

    workflow = F.ConfirmationWorkflow(executor.execute, F.Policy())
    session = (await workflow.create("u1", lines)).value
    await workflow.resolve(session.session_id, "u1", F.Action.CONFIRM)
"""

from bazaar.confirm._types import (
    SessionState,
    Action,
    FlowKind,
    ConfirmationSession,
    Resolution,
)
from bazaar.confirm._policy import Policy
from bazaar.confirm._workflow import ConfirmationWorkflow, Execute

# Singleton instances for convenience
CONFIRM = Action.CONFIRM
CANCEL = Action.CANCEL

__all__ = (
    "SessionState",
    "Action",
    "FlowKind",
    "ConfirmationSession",
    "Resolution",
    "Policy",
    "ConfirmationWorkflow",
    "Execute",
    "CONFIRM",
    "CANCEL",
)
