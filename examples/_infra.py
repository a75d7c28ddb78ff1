"""Shared infrastructure for examples."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

from kungfu import Result, Ok, Error

from bazaar.catalog import (
    Item,
    MemoryInventory,
    MemoryLedger,
    MemoryTransactionLog,
)
from bazaar.config import Settings
from bazaar.shop import Shop


# Demo catalog
DEMO_ITEMS: tuple[Item, ...] = (
    Item(1, "Sword", price=500, stock=3, description="Sharp."),
    Item(2, "Potion", price=50, stock=10, description="Restores 20 HP."),
    Item(3, "VIP role", price=200, stock=0, infinite_stock=True, grant_ref="role-vip"),
    Item(4, "Relic", price=100, stock=1, description="Only one exists."),
)


# Fake chat platform
class PrintingGrants:
    """Pretends to assign chat roles. Refs starting with 'broken' fail."""

    async def grant(self, user_id: str, grant_ref: str) -> Result[None, str]:
        await asyncio.sleep(0.01)
        if grant_ref.startswith("broken"):
            print(f"  ✗ Grant {grant_ref} → {user_id}")
            return Error("role hierarchy forbids it")
        print(f"  ✓ Grant {grant_ref} → {user_id}")
        return Ok(None)


def memory_shop(settings: Settings | None = None) -> Shop:
    return Shop(
        MemoryInventory(DEMO_ITEMS),
        MemoryLedger(),
        MemoryTransactionLog(),
        PrintingGrants(),
        settings or Settings(),
    )


# Helpers
def expect[T](result: Result[T, Any]) -> T:
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise RuntimeError(e.message)


def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


def run(main: Callable[[], Coroutine[object, object, None]]) -> None:
    asyncio.run(main())
