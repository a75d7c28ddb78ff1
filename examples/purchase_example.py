"""
Purchase — validate against current state, commit all or nothing.

Level 4: bazaar.purchase
Level 3: nodnod graph (validation) + compensated commit
Level 2: kungfu.Result
"""

import asyncio

from kungfu import Ok, Error

from bazaar.catalog import MemoryInventory, MemoryLedger, MemoryTransactionLog
from bazaar.purchase import PurchaseExecutor, RequestedLine
from examples._infra import DEMO_ITEMS, PrintingGrants, banner, run


def show(label: str, result) -> None:  # type: ignore[no-untyped-def]
    match result:
        case Ok(p):
            print(f"  ✓ {label}: paid {p.total}, balance now {p.new_balance}")
            for w in p.warnings:
                print(f"    ⚠ {w.message}")
        case Error(e):
            print(f"  ✗ {label}: {e.message}")


async def main() -> None:
    inventory = MemoryInventory(DEMO_ITEMS)
    ledger = MemoryLedger()
    await ledger.create_account("alice", 1000)
    await ledger.create_account("bob", 400)
    executor = PurchaseExecutor(inventory, ledger, MemoryTransactionLog(), PrintingGrants())

    banner("Buy two swords")
    show("alice", await executor.execute("alice", [RequestedLine(1, 2)]))

    banner("Not enough money")
    show("bob", await executor.execute("bob", [RequestedLine(1, 1)]))

    banner("Infinite stock + role grant")
    show("bob", await executor.execute("bob", [RequestedLine(3, 1)]))

    banner("Two buyers, one relic")
    await ledger.create_account("carol", 1000)
    first, second = await asyncio.gather(
        executor.execute("bob", [RequestedLine(4, 1)]),
        executor.execute("carol", [RequestedLine(4, 1)]),
    )
    show("bob", first)
    show("carol", second)


if __name__ == "__main__":
    run(main)
