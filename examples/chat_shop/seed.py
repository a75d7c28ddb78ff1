"""Database bootstrap and demo catalog."""

from kungfu import Ok, Error
from sqlalchemy.ext.asyncio import AsyncEngine

from bazaar.catalog import (
    NewItem,
    SQLAlchemyInventory,
    SQLAlchemyLedger,
    SQLAlchemyTransactionLog,
    create_database,
)
from bazaar.config import Settings
from bazaar.shop import Shop
from examples._infra import PrintingGrants

CATALOG = (
    NewItem("Sword", price=500, stock=3, description="Sharp."),
    NewItem("Potion", price=50, stock=10, description="Restores 20 HP."),
    NewItem("VIP role", price=200, infinite_stock=True, grant_ref="role-vip"),
    NewItem("Cursed role", price=10, infinite_stock=True, grant_ref="broken-role"),
    NewItem("Relic", price=100, stock=1, description="Only one exists."),
)


async def build_shop(settings: Settings) -> tuple[Shop, AsyncEngine]:
    session_factory, engine = await create_database(settings.database_url)
    inventory = SQLAlchemyInventory(session_factory)

    shop = Shop(
        inventory,
        SQLAlchemyLedger(session_factory),
        SQLAlchemyTransactionLog(session_factory),
        PrintingGrants(),
        settings,
    )

    match await inventory.list_items():
        case Ok(()):
            for item in CATALOG:
                await shop.add_item(item)
        case Ok(_):
            pass
        case Error(e):
            raise RuntimeError(e.message)

    return shop, engine
