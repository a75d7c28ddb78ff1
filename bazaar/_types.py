"""
Core types for bazaar.

Re-exports from kungfu + identity and money aliases shared by every component.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# Re-export from combinators
from combinators import LCR

# ═══════════════════════════════════════════════════════════════════════════════
# Identity
# ═══════════════════════════════════════════════════════════════════════════════

type UserId = str
"""External chat-platform identity (e.g. a Discord snowflake)."""

type ItemId = int
"""Inventory item primary key."""

type AccountId = int
"""Balance ledger primary key."""

# ═══════════════════════════════════════════════════════════════════════════════
# Money & Time
# ═══════════════════════════════════════════════════════════════════════════════

type Money = int
"""Whole currency units. Never fractional, never negative in a balance."""

type Clock = Callable[[], datetime]
"""Injected time source — datetime.now in production, frozen in tests."""

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Re-exports from combinators
    "LCR",
    # Aliases
    "UserId",
    "ItemId",
    "AccountId",
    "Money",
    "Clock",
)
