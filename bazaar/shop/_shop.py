"""
Shop — the single entry point for every front-end surface.

Slash commands, prefix commands, buttons and select menus all call the
same Shop methods, so validation and purchase logic exist exactly once.

    shop = Shop(inventory, ledger, transactions, grants, settings)

    match await shop.request_purchase("u1", item_id=1, quantity=2):
        case Ok(offer):
            render(offer)   # buttons carry offer.session.session_id
        case Error(e):
            reply(e.message)

    # button callback
    match await shop.resolve(session_id, interaction_user_id, CONFIRM):
        case Ok(resolution):
            ...
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

import structlog
from kungfu import Result, Ok, Error

from bazaar._types import UserId, ItemId, Money, Clock
from bazaar._locks import KeyedLocks
from bazaar.config import Settings
from bazaar.errors import (
    StoreError,
    CartError,
    SessionError,
    EmptyRequest,
    InvalidQuantity,
    ItemNotFound,
    ItemInactive,
    StorageFailure,
)
from bazaar.cart import CartStore, Cart, ItemSnapshot
from bazaar.catalog import (
    Item,
    NewItem,
    UserAccount,
    TransactionRecord,
    InventoryRepository,
    BalanceLedger,
    TransactionLog,
    EntitlementGrants,
)
from bazaar.purchase import PurchaseExecutor, RequestedLine, PurchaseLine
from bazaar.confirm import (
    ConfirmationWorkflow,
    ConfirmationSession,
    Resolution,
    Action,
    FlowKind,
    SessionState,
)

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════════════════════
# Offer — what a confirmation prompt shows
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Offer:
    """
    A pending session plus the display-time numbers for rendering it.

    Note: lines/total/balance are stale the moment they are shown.
    Почему: Stock and balance can change before the owner clicks; the
    executor re-validates everything on CONFIRM.
    """

    session: ConfirmationSession
    lines: tuple[PurchaseLine, ...]
    total: Money
    balance: Money

    @property
    def affordable(self) -> bool:
        return self.balance >= self.total


# ═══════════════════════════════════════════════════════════════════════════════
# Shop
# ═══════════════════════════════════════════════════════════════════════════════


class Shop:
    """Cart, confirmation and purchase behind one facade."""

    def __init__(
        self,
        inventory: InventoryRepository,
        ledger: BalanceLedger,
        transactions: TransactionLog,
        grants: EntitlementGrants | None = None,
        settings: Settings | None = None,
        *,
        clock: Clock = datetime.now,
    ) -> None:
        self.settings = settings if settings is not None else Settings()
        self._inventory = inventory
        self._ledger = ledger
        self._transactions = transactions

        # Shared with the executor: admin stock writes and account
        # creation serialize against purchases.
        self._item_locks = KeyedLocks[ItemId]()
        self._user_locks = KeyedLocks[UserId]()

        self.carts = CartStore(clock)
        self.executor = PurchaseExecutor(
            inventory,
            ledger,
            transactions,
            grants,
            item_locks=self._item_locks,
            user_locks=self._user_locks,
        )
        self.workflow = ConfirmationWorkflow(
            self.executor.execute,
            self.settings.confirmation_policy(),
            clock,
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Browsing & accounts
    # ───────────────────────────────────────────────────────────────────────────

    async def catalog(self) -> Result[tuple[Item, ...], StorageFailure]:
        """Items currently for sale."""
        match await self._inventory.list_items():
            case Ok(items):
                return Ok(tuple(item for item in items if item.is_active))
            case Error(err):
                return Error(_storage(err))

    async def account(self, user_id: UserId) -> Result[UserAccount, StorageFailure]:
        """Get the account, creating it with the starting balance on first use."""
        async with self._user_locks.hold(user_id):
            match await self._ledger.get_account(user_id):
                case Error(err):
                    return Error(_storage(err))
                case Ok(None):
                    pass
                case Ok(existing):
                    return Ok(existing)

            match await self._ledger.create_account(user_id, self.settings.starting_balance):
                case Error(err):
                    return Error(_storage(err))
                case Ok(created):
                    logger.info(
                        "account_created",
                        user_id=user_id,
                        balance=created.balance,
                    )
                    return Ok(created)

    async def history(
        self, user_id: UserId
    ) -> Result[tuple[TransactionRecord, ...], StorageFailure]:
        match await self.account(user_id):
            case Error(e):
                return Error(e)
            case Ok(account):
                pass
        match await self._transactions.list_for_account(account.id):
            case Ok(records):
                return Ok(records)
            case Error(err):
                return Error(_storage(err))

    # ───────────────────────────────────────────────────────────────────────────
    # Cart
    # ───────────────────────────────────────────────────────────────────────────

    async def cart(self, user_id: UserId) -> Cart:
        return await self.carts.get_or_create(user_id)

    async def add_to_cart(
        self,
        user_id: UserId,
        item_id: ItemId,
        quantity: int = 1,
    ) -> Result[Cart, CartError | ItemNotFound | ItemInactive | StorageFailure]:
        """Add an item that exists and is for sale. Stock is not checked here."""
        match await self._load_item(item_id):
            case Error(e):
                return Error(e)
            case Ok(item):
                pass
        snapshot = ItemSnapshot(item_id=item.id, name=item.name, unit_price=item.price)
        return await self.carts.add_line(user_id, snapshot, quantity)

    async def remove_from_cart(
        self,
        user_id: UserId,
        item_id: ItemId,
        quantity: int = 1,
    ) -> Result[Cart, CartError]:
        return await self.carts.remove_line(user_id, item_id, quantity)

    async def clear_cart(self, user_id: UserId) -> bool:
        return await self.carts.clear(user_id)

    # ───────────────────────────────────────────────────────────────────────────
    # Purchase requests
    # ───────────────────────────────────────────────────────────────────────────

    async def request_purchase(
        self,
        user_id: UserId,
        item_id: ItemId,
        quantity: int = 1,
    ) -> Result[
        Offer, InvalidQuantity | EmptyRequest | ItemNotFound | ItemInactive | StorageFailure
    ]:
        """Open a SINGLE confirmation for one item."""
        if quantity < 1:
            return Error(InvalidQuantity(quantity))

        match await self.account(user_id):
            case Error(e):
                return Error(e)
            case Ok(account):
                pass
        match await self._load_item(item_id):
            case Error(e):
                return Error(e)
            case Ok(item):
                pass

        line = PurchaseLine(
            item_id=item.id,
            name=item.name,
            quantity=quantity,
            unit_price=item.price,
            total_price=item.price * quantity,
        )
        match await self.workflow.create(
            user_id, (RequestedLine(item.id, quantity),), kind=FlowKind.SINGLE
        ):
            case Error(e):
                return Error(e)
            case Ok(session):
                return Ok(Offer(session, (line,), line.total_price, account.balance))

    async def request_checkout(
        self,
        user_id: UserId,
    ) -> Result[Offer, EmptyRequest | InvalidQuantity | StorageFailure]:
        """Open a CHECKOUT confirmation over the whole cart."""
        match await self.account(user_id):
            case Error(e):
                return Error(e)
            case Ok(account):
                pass

        cart = await self.carts.get(user_id)
        if cart is None or cart.is_empty:
            return Error(EmptyRequest())

        lines = tuple(
            PurchaseLine(
                item_id=line.item_id,
                name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.subtotal,
            )
            for line in cart.lines
        )
        requested = tuple(RequestedLine(line.item_id, line.quantity) for line in cart.lines)

        match await self.workflow.create(user_id, requested, kind=FlowKind.CHECKOUT):
            case Error(e):
                return Error(e)
            case Ok(session):
                return Ok(Offer(session, lines, cart.total, account.balance))

    async def resolve(
        self,
        session_id: str,
        actor_id: UserId,
        action: Action,
    ) -> Result[Resolution, SessionError]:
        """
        Confirm or cancel. A successful checkout removes the purchased
        quantities from the cart; an emptied cart is destroyed.
        """
        resolved = await self.workflow.resolve(session_id, actor_id, action)
        match resolved:
            case Ok(Resolution(session=session, purchase=Ok(_))) if (
                session.kind is FlowKind.CHECKOUT
                and session.state is SessionState.CONFIRMED
            ):
                await self._settle_cart(session)
            case _:
                pass
        return resolved

    async def _settle_cart(self, session: ConfirmationSession) -> None:
        for line in session.lines:
            await self.carts.remove_line(session.owner_id, line.item_id, line.quantity)
        cart = await self.carts.get(session.owner_id)
        if cart is not None and cart.is_empty:
            await self.carts.clear(session.owner_id)

    # ───────────────────────────────────────────────────────────────────────────
    # Admin
    # ───────────────────────────────────────────────────────────────────────────

    async def add_item(self, item: NewItem) -> Result[Item, InvalidQuantity | StorageFailure]:
        if item.price < 0:
            return Error(InvalidQuantity(item.price))
        if item.stock < 0:
            return Error(InvalidQuantity(item.stock))
        match await self._inventory.create_item(item):
            case Ok(created):
                logger.info("item_added", item_id=created.id, name=created.name)
                return Ok(created)
            case Error(err):
                return Error(_storage(err))

    async def remove_item(self, item_id: ItemId) -> Result[None, ItemNotFound | StorageFailure]:
        async with self._item_locks.hold(item_id):
            match await self._inventory.delete_item(item_id):
                case Ok(True):
                    logger.info("item_removed", item_id=item_id)
                    return Ok(None)
                case Ok(_):
                    return Error(ItemNotFound(item_id))
                case Error(err):
                    return Error(_storage(err))

    async def set_price(
        self, item_id: ItemId, price: Money
    ) -> Result[Item, InvalidQuantity | ItemNotFound | StorageFailure]:
        if price < 0:
            return Error(InvalidQuantity(price))
        async with self._item_locks.hold(item_id):
            return await self._admin_update(
                item_id, lambda: self._inventory.update_item_price(item_id, price)
            )

    async def set_stock(
        self, item_id: ItemId, stock: int
    ) -> Result[Item, InvalidQuantity | ItemNotFound | StorageFailure]:
        if stock < 0:
            return Error(InvalidQuantity(stock))
        async with self._item_locks.hold(item_id):
            return await self._admin_update(
                item_id, lambda: self._inventory.update_item_stock(item_id, stock)
            )

    async def set_active(
        self, item_id: ItemId, active: bool
    ) -> Result[Item, ItemNotFound | StorageFailure]:
        async with self._item_locks.hold(item_id):
            return await self._admin_update(
                item_id, lambda: self._inventory.update_item_active(item_id, active)
            )

    # ───────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ───────────────────────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self.workflow.close()

    # ───────────────────────────────────────────────────────────────────────────
    # Internals
    # ───────────────────────────────────────────────────────────────────────────

    async def _load_item(
        self, item_id: ItemId
    ) -> Result[Item, ItemNotFound | ItemInactive | StorageFailure]:
        match await self._inventory.get_item(item_id):
            case Error(err):
                return Error(_storage(err))
            case Ok(None):
                return Error(ItemNotFound(item_id))
            case Ok(item) if not item.is_active:
                return Error(ItemInactive(item_id))
            case Ok(item):
                return Ok(item)

    async def _admin_update(
        self,
        item_id: ItemId,
        write: Callable[[], Awaitable[Result[Item, StoreError]]],
    ) -> Result[Item, ItemNotFound | StorageFailure]:
        """Existence check, then the write. Caller holds the item lock."""
        match await self._inventory.get_item(item_id):
            case Error(err):
                return Error(_storage(err))
            case Ok(None):
                return Error(ItemNotFound(item_id))
            case Ok(_):
                pass
        match await write():
            case Ok(updated):
                logger.info("item_updated", item_id=item_id)
                return Ok(updated)
            case Error(err):
                return Error(_storage(err))


def _storage(err: StoreError) -> StorageFailure:
    return StorageFailure(err.message)


__all__ = ("Offer", "Shop")
