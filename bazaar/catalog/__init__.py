"""
Catalog — the external stores the engine consumes.

    from bazaar import catalog as D

    inventory = D.MemoryInventory((D.Item(1, "Sword", price=500, stock=3),))
    ledger = D.MemoryLedger()

Ports are Protocols; Memory* and SQLAlchemy* implementations ship here.
"""

from bazaar.catalog._types import (
    Item,
    NewItem,
    UserAccount,
    NewTransaction,
    TransactionRecord,
)
from bazaar.catalog._ports import (
    InventoryRepository,
    BalanceLedger,
    TransactionLog,
    EntitlementGrants,
)
from bazaar.catalog._memory import (
    MemoryInventory,
    MemoryLedger,
    MemoryTransactionLog,
    MemoryGrants,
)
from bazaar.catalog._sqlalchemy import (
    ItemTable,
    AccountTable,
    TransactionTable,
    SQLAlchemyInventory,
    SQLAlchemyLedger,
    SQLAlchemyTransactionLog,
    create_database,
)

__all__ = (
    # Types
    "Item",
    "NewItem",
    "UserAccount",
    "NewTransaction",
    "TransactionRecord",
    # Ports
    "InventoryRepository",
    "BalanceLedger",
    "TransactionLog",
    "EntitlementGrants",
    # Memory
    "MemoryInventory",
    "MemoryLedger",
    "MemoryTransactionLog",
    "MemoryGrants",
    # SQLAlchemy
    "ItemTable",
    "AccountTable",
    "TransactionTable",
    "SQLAlchemyInventory",
    "SQLAlchemyLedger",
    "SQLAlchemyTransactionLog",
    "create_database",
)
