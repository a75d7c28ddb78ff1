"""Tests for CartStore."""

import asyncio

from bazaar.cart import CartStore, ItemSnapshot
from bazaar.errors import InvalidQuantity, LineNotFound
from bazaar.purchase import RequestedLine

from conftest import ok, err

SWORD = ItemSnapshot(1, "Sword", 500)
POTION = ItemSnapshot(2, "Potion", 50)


async def test_get_or_create_returns_empty_cart() -> None:
    carts = CartStore()

    cart = await carts.get_or_create("alice")

    assert cart.user_id == "alice"
    assert cart.is_empty
    assert cart.total == 0
    assert len(carts) == 1


async def test_get_does_not_create() -> None:
    carts = CartStore()

    assert await carts.get("alice") is None
    assert len(carts) == 0


async def test_adding_same_item_twice_merges_lines() -> None:
    carts = CartStore()

    ok(await carts.add_line("alice", SWORD, 2))
    cart = ok(await carts.add_line("alice", SWORD, 3))

    assert len(cart.lines) == 1
    assert cart.lines[0].item_id == 1
    assert cart.lines[0].quantity == 5


async def test_merged_line_keeps_first_snapshot() -> None:
    carts = CartStore()

    await carts.add_line("alice", SWORD, 1)
    await carts.add_line("alice", ItemSnapshot(1, "Sword (sale)", 400), 1)

    line = (await carts.get_or_create("alice")).line(1)
    assert line is not None
    assert line.name == "Sword"
    assert line.unit_price == 500
    assert line.quantity == 2


async def test_total_sums_subtotals() -> None:
    carts = CartStore()

    await carts.add_line("alice", SWORD, 2)
    await carts.add_line("alice", POTION, 3)

    assert await carts.total("alice") == 2 * 500 + 3 * 50
    assert await carts.total("bob") == 0


async def test_add_rejects_non_positive_quantity() -> None:
    carts = CartStore()

    assert err(await carts.add_line("alice", SWORD, 0)) == InvalidQuantity(0)
    assert await carts.get("alice") is None


async def test_remove_more_than_held_drops_line() -> None:
    carts = CartStore()
    await carts.add_line("alice", SWORD, 5)

    cart = ok(await carts.remove_line("alice", SWORD.item_id, 6))

    assert cart.line(SWORD.item_id) is None
    assert cart.is_empty


async def test_remove_partial_quantity() -> None:
    carts = CartStore()
    await carts.add_line("alice", SWORD, 5)

    cart = ok(await carts.remove_line("alice", SWORD.item_id, 2))

    line = cart.line(SWORD.item_id)
    assert line is not None
    assert line.quantity == 3


async def test_remove_missing_line() -> None:
    carts = CartStore()
    await carts.add_line("alice", POTION, 1)

    assert err(await carts.remove_line("alice", SWORD.item_id)) == LineNotFound(1)
    assert err(await carts.remove_line("nobody", SWORD.item_id)) == LineNotFound(1)


async def test_remove_rejects_non_positive_quantity() -> None:
    carts = CartStore()
    await carts.add_line("alice", SWORD, 1)

    assert err(await carts.remove_line("alice", SWORD.item_id, -1)) == InvalidQuantity(-1)


async def test_clear_destroys_cart() -> None:
    carts = CartStore()
    await carts.add_line("alice", SWORD, 1)

    assert await carts.clear("alice") is True
    assert await carts.clear("alice") is False
    assert await carts.get("alice") is None


async def test_requested_lines_carry_no_prices() -> None:
    carts = CartStore()
    await carts.add_line("alice", SWORD, 2)
    await carts.add_line("alice", POTION, 1)

    assert await carts.requested_lines("alice") == (RequestedLine(1, 2), RequestedLine(2, 1))
    assert await carts.requested_lines("bob") == ()


async def test_concurrent_adds_for_one_user_are_not_lost() -> None:
    carts = CartStore()

    await asyncio.gather(*(carts.add_line("alice", POTION, 1) for _ in range(50)))

    line = (await carts.get_or_create("alice")).line(POTION.item_id)
    assert line is not None
    assert line.quantity == 50


async def test_users_have_separate_carts() -> None:
    carts = CartStore()

    await carts.add_line("alice", SWORD, 1)
    await carts.add_line("bob", POTION, 4)

    alice = await carts.get_or_create("alice")
    bob = await carts.get_or_create("bob")
    assert [line.item_id for line in alice.lines] == [1]
    assert [line.item_id for line in bob.lines] == [2]
