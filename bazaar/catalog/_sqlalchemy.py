"""
SQLAlchemy ports — async SQLAlchemy 2.0 implementations of every store.

Usage:
    session_factory, engine = await create_database("sqlite+aiosqlite:///shop.db")

    inventory = SQLAlchemyInventory(session_factory)
    ledger = SQLAlchemyLedger(session_factory)
    log = SQLAlchemyTransactionLog(session_factory)

Note: Balance changes and purchase stock changes are single conditional UPDATEs.
Почему: The "never negative" check happens inside the database, so it holds
even for writers that bypass this process.
"""

from datetime import datetime
from typing import Any, cast

from sqlalchemy import (
    select,
    update,
    String,
    DateTime,
    Integer,
    Boolean,
    Text,
    ForeignKey,
)
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from kungfu import Result, Ok, Error

from bazaar._types import UserId, ItemId, AccountId, Money
from bazaar.errors import StoreError
from bazaar.catalog._types import (
    Item,
    NewItem,
    UserAccount,
    NewTransaction,
    TransactionRecord,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Tables
# ═══════════════════════════════════════════════════════════════════════════════


class Base(DeclarativeBase):
    pass


class ItemTable(Base):
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    infinite_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    grant_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_item(self) -> Item:
        return Item(
            id=self.id,
            name=self.name,
            price=self.price,
            stock=self.stock,
            infinite_stock=self.infinite_stock,
            is_active=self.is_active,
            grant_ref=self.grant_ref,
            description=self.description,
        )


class AccountTable(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_account(self) -> UserAccount:
        return UserAccount(id=self.id, external_id=self.external_id, balance=self.balance)


class TransactionTable(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    # No FK to items: records outlive deleted items.
    item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def to_record(self) -> TransactionRecord:
        return TransactionRecord(
            id=self.id,
            account_id=self.account_id,
            item_id=self.item_id,
            quantity=self.quantity,
            total_price=self.total_price,
            created_at=self.created_at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Inventory
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyInventory:
    """InventoryRepository over the items table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_item(self, item_id: ItemId) -> Result[Item | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(ItemTable, item_id)
                return Ok(row.to_item() if row is not None else None)
        except Exception as e:
            return Error(StoreError(f"Failed to get item: {e}", e))

    async def update_item_stock(
        self, item_id: ItemId, new_stock: int
    ) -> Result[Item, StoreError]:
        if new_stock < 0:
            return Error(StoreError(f"Negative stock for item {item_id}: {new_stock}"))
        return await self._update(item_id, stock=new_stock)

    async def adjust_stock(
        self, item_id: ItemId, delta: int
    ) -> Result[Item, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(ItemTable)
                    .where(ItemTable.id == item_id, ItemTable.stock + delta >= 0)
                    .values(stock=ItemTable.stock + delta)
                    .execution_options(synchronize_session=False)
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                if cursor.rowcount == 0:
                    await session.rollback()
                    exists = await session.get(ItemTable, item_id)
                    if exists is None:
                        return Error(StoreError(f"No item: {item_id}"))
                    return Error(StoreError(
                        f"Stock of item {item_id} would go negative"
                    ))
                await session.commit()

                result = await session.execute(
                    select(ItemTable).where(ItemTable.id == item_id)
                )
                return Ok(result.scalar_one().to_item())
        except Exception as e:
            return Error(StoreError(f"Failed to adjust stock: {e}", e))

    async def update_item_price(
        self, item_id: ItemId, price: Money
    ) -> Result[Item, StoreError]:
        return await self._update(item_id, price=price)

    async def update_item_active(
        self, item_id: ItemId, active: bool
    ) -> Result[Item, StoreError]:
        return await self._update(item_id, is_active=active)

    async def list_items(self) -> Result[tuple[Item, ...], StoreError]:
        try:
            async with self._session_factory() as session:
                rows = await session.execute(select(ItemTable).order_by(ItemTable.id))
                return Ok(tuple(row.to_item() for row in rows.scalars()))
        except Exception as e:
            return Error(StoreError(f"Failed to list items: {e}", e))

    async def create_item(self, item: NewItem) -> Result[Item, StoreError]:
        try:
            async with self._session_factory() as session:
                row = ItemTable(
                    name=item.name,
                    description=item.description,
                    price=item.price,
                    stock=item.stock,
                    infinite_stock=item.infinite_stock,
                    is_active=True,
                    grant_ref=item.grant_ref,
                )
                session.add(row)
                await session.commit()
                return Ok(row.to_item())
        except Exception as e:
            return Error(StoreError(f"Failed to create item: {e}", e))

    async def delete_item(self, item_id: ItemId) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(ItemTable, item_id)
                if row is None:
                    return Ok(False)
                await session.delete(row)
                await session.commit()
                return Ok(True)
        except Exception as e:
            return Error(StoreError(f"Failed to delete item: {e}", e))

    async def _update(self, item_id: ItemId, **values: Any) -> Result[Item, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(ItemTable, item_id)
                if row is None:
                    return Error(StoreError(f"No item: {item_id}"))
                for column, value in values.items():
                    setattr(row, column, value)
                await session.commit()
                return Ok(row.to_item())
        except Exception as e:
            return Error(StoreError(f"Failed to update item: {e}", e))


# ═══════════════════════════════════════════════════════════════════════════════
# Ledger
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyLedger:
    """BalanceLedger over the accounts table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_account(
        self, user_id: UserId
    ) -> Result[UserAccount | None, StoreError]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(AccountTable).where(AccountTable.external_id == user_id)
                )
                row = result.scalar_one_or_none()
                return Ok(row.to_account() if row is not None else None)
        except Exception as e:
            return Error(StoreError(f"Failed to get account: {e}", e))

    async def create_account(
        self, user_id: UserId, initial_balance: Money
    ) -> Result[UserAccount, StoreError]:
        if initial_balance < 0:
            return Error(StoreError(f"Negative initial balance: {initial_balance}"))
        try:
            async with self._session_factory() as session:
                row = AccountTable(external_id=user_id, balance=initial_balance)
                session.add(row)
                await session.commit()
                return Ok(row.to_account())
        except Exception as e:
            return Error(StoreError(f"Failed to create account: {e}", e))

    async def adjust_balance(
        self, account_id: AccountId, delta: Money
    ) -> Result[UserAccount, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(AccountTable)
                    .where(
                        AccountTable.id == account_id,
                        AccountTable.balance + delta >= 0,
                    )
                    .values(balance=AccountTable.balance + delta)
                    .execution_options(synchronize_session=False)
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                if cursor.rowcount == 0:
                    await session.rollback()
                    exists = await session.get(AccountTable, account_id)
                    if exists is None:
                        return Error(StoreError(f"No account: {account_id}"))
                    return Error(StoreError(
                        f"Balance of account {account_id} would go negative"
                    ))
                await session.commit()

                result = await session.execute(
                    select(AccountTable).where(AccountTable.id == account_id)
                )
                return Ok(result.scalar_one().to_account())
        except Exception as e:
            return Error(StoreError(f"Failed to adjust balance: {e}", e))


# ═══════════════════════════════════════════════════════════════════════════════
# Transaction Log
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyTransactionLog:
    """TransactionLog over the transactions table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(
        self, record: NewTransaction
    ) -> Result[TransactionRecord, StoreError]:
        try:
            async with self._session_factory() as session:
                row = TransactionTable(
                    account_id=record.account_id,
                    item_id=record.item_id,
                    quantity=record.quantity,
                    total_price=record.total_price,
                    created_at=datetime.now(),
                )
                session.add(row)
                await session.commit()
                return Ok(row.to_record())
        except Exception as e:
            return Error(StoreError(f"Failed to append transaction: {e}", e))

    async def discard(self, record_id: int) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(TransactionTable, record_id)
                if row is None:
                    return Ok(False)
                await session.delete(row)
                await session.commit()
                return Ok(True)
        except Exception as e:
            return Error(StoreError(f"Failed to discard transaction: {e}", e))

    async def list_for_account(
        self, account_id: AccountId
    ) -> Result[tuple[TransactionRecord, ...], StoreError]:
        try:
            async with self._session_factory() as session:
                rows = await session.execute(
                    select(TransactionTable)
                    .where(TransactionTable.account_id == account_id)
                    .order_by(TransactionTable.id)
                )
                return Ok(tuple(row.to_record() for row in rows.scalars()))
        except Exception as e:
            return Error(StoreError(f"Failed to list transactions: {e}", e))


# ═══════════════════════════════════════════════════════════════════════════════
# Database Setup
# ═══════════════════════════════════════════════════════════════════════════════


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create tables and return (session_factory, engine)."""
    engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


__all__ = (
    "Base",
    "ItemTable",
    "AccountTable",
    "TransactionTable",
    "SQLAlchemyInventory",
    "SQLAlchemyLedger",
    "SQLAlchemyTransactionLog",
    "create_database",
)
