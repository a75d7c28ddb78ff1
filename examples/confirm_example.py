"""
Confirmation — every purchase waits for its owner's click.

Level 5: bazaar.shop
Level 4: bazaar.confirm
Level 2: kungfu.Result
"""

import asyncio
from datetime import timedelta

from kungfu import Ok, Error

from bazaar.config import Settings
from bazaar.confirm import CONFIRM, CANCEL
from examples._infra import memory_shop, expect, banner, run


async def main() -> None:
    shop = memory_shop(Settings(single_item_timeout=0.2))

    banner("Confirm")
    offer = expect(await shop.request_purchase("alice", item_id=2, quantity=3))
    print(f"  Buy {offer.lines[0].quantity}× {offer.lines[0].name} for {offer.total}?")
    match await shop.resolve(offer.session.session_id, "alice", CONFIRM):
        case Ok(resolution):
            print(f"  ✓ {resolution.session.state.name}")
        case Error(e):
            print(f"  ✗ {e.message}")

    banner("Someone else clicks")
    offer = expect(await shop.request_purchase("alice", item_id=1))
    match await shop.resolve(offer.session.session_id, "mallory", CONFIRM):
        case Error(e):
            print(f"  ✗ {e.message}")
        case Ok(_):
            print("  ?? should not happen")
    await shop.resolve(offer.session.session_id, "alice", CANCEL)

    banner("Nobody clicks")
    offer = expect(await shop.request_purchase("alice", item_id=1))
    final = await shop.workflow.wait(offer.session.session_id)
    print(f"  Session is {final.state.name if final else 'gone'}")
    match await shop.resolve(offer.session.session_id, "alice", CONFIRM):
        case Error(e):
            print(f"  ✗ Late click: {e.message}")
        case Ok(_):
            print("  ?? should not happen")

    banner("Click races the deadline")
    session = expect(await shop.workflow.create(
        "alice",
        offer.session.lines,
        timeout=timedelta(milliseconds=1),
    ))
    await asyncio.sleep(0.001)
    clicked = await shop.resolve(session.session_id, "alice", CONFIRM)
    match clicked:
        case Ok(_):
            print("  Click won")
        case Error(e):
            print(f"  Deadline won: {e.message}")

    await shop.close()


if __name__ == "__main__":
    run(main)
