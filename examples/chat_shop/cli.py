"""
Interactive CLI — a chat bot's commands without the chat platform.

┌─────────────────────────────────────────────────────────────────────────┐
│  CHAT SURFACE                    SHOP CALL                              │
├─────────────────────────────────────────────────────────────────────────┤
│  /shop                           catalog()                              │
│  /buy <item> [qty]               request_purchase() → buttons           │
│  /cart add|remove|view|clear     add_to_cart() / remove_from_cart() ... │
│  /checkout                       request_checkout() → buttons           │
│  [Confirm] / [Cancel] button     resolve(session, clicker, action)      │
│  /admin item|price|stock|remove  add_item() / set_price() ...           │
└─────────────────────────────────────────────────────────────────────────┘

Every surface ends in the same Shop; nothing here validates anything.
"""

import shlex

from kungfu import Ok, Error

from bazaar.catalog import NewItem
from bazaar.config import Settings
from bazaar.confirm import CONFIRM, CANCEL, Action
from bazaar.log import configure_logging
from bazaar.shop import Shop, Offer
from examples.chat_shop.seed import build_shop


# ═══════════════════════════════════════════════════════════════════════════════
# Help
# ═══════════════════════════════════════════════════════════════════════════════

HELP_TEXT = """
┌─────────────────────────────────────────────────────────────────────────────┐
│                              COMMANDS                                        │
├─────────────────────────────────────────────────────────────────────────────┤
│  as <user>                     Switch who is typing                         │
│  shop                          List items for sale                          │
│  balance                       Show your balance                            │
│  buy <item> [qty]              Buy one item (asks for confirmation)         │
│  cart                          Show your cart                               │
│  add <item> [qty]              Add to cart                                  │
│  remove <item> [qty]           Remove from cart                             │
│  clear                         Empty your cart                              │
│  checkout                      Buy the whole cart (asks for confirmation)   │
│  confirm <session>             Click [Confirm]                              │
│  cancel <session>              Click [Cancel]                               │
│  history                       Your purchases                               │
├─────────────────────────────────────────────────────────────────────────────┤
│  admin item <name> <price> <stock>                                          │
│  admin price <item> <price>                                                 │
│  admin stock <item> <stock>                                                 │
│  admin remove <item>                                                        │
├─────────────────────────────────────────────────────────────────────────────┤
│  help / quit                                                                │
└─────────────────────────────────────────────────────────────────────────────┘

Sessions expire: 30 s for buy, 60 s for checkout.
"""


# ═══════════════════════════════════════════════════════════════════════════════
# Rendering
# ═══════════════════════════════════════════════════════════════════════════════


def render_offer(offer: Offer, currency: str) -> None:
    print(f"\n  Confirm purchase (session {offer.session.session_id})")
    for line in offer.lines:
        print(f"    {line.quantity}× {line.name:<12} {line.total_price:>6} {currency}")
    print(f"    {'Total':<15} {offer.total:>6} {currency}")
    print(f"    {'Your balance':<15} {offer.balance:>6} {currency}")
    if not offer.affordable:
        print("    ⚠ You cannot afford this right now")
    print(f"  → confirm {offer.session.session_id}   |   cancel {offer.session.session_id}")


async def cmd_shop(shop: Shop, currency: str) -> None:
    match await shop.catalog():
        case Ok(items):
            for item in items:
                stock = "∞" if item.infinite_stock else str(item.stock)
                print(f"  [{item.id}] {item.name:<12} {item.price:>6} {currency}  stock {stock}")
        case Error(e):
            print(f"  ✗ {e.message}")


async def cmd_cart(shop: Shop, user: str, currency: str) -> None:
    cart = await shop.cart(user)
    if cart.is_empty:
        print("  Cart is empty")
        return
    for line in cart.lines:
        print(f"  [{line.item_id}] {line.quantity}× {line.name:<12} {line.subtotal:>6} {currency}")
    print(f"  Total {cart.total} {currency}")


async def cmd_resolve(shop: Shop, user: str, session_id: str, action: Action, currency: str) -> None:
    match await shop.resolve(session_id, user, action):
        case Error(e):
            print(f"  ✗ {e.message}")
        case Ok(resolution) if resolution.purchase is None:
            print("  Cancelled")
        case Ok(resolution):
            match resolution.purchase:
                case Ok(purchase):
                    print(f"  ✓ Paid {purchase.total} {currency}, balance {purchase.new_balance}")
                    for warning in purchase.warnings:
                        print(f"  ⚠ {warning.message}")
                case Error(e):
                    print(f"  ✗ {e.message}")


async def cmd_admin(shop: Shop, args: list[str]) -> None:
    match args:
        case ["item", name, price, stock]:
            result = await shop.add_item(NewItem(name, price=int(price), stock=int(stock)))
        case ["price", item_id, price]:
            result = await shop.set_price(int(item_id), int(price))
        case ["stock", item_id, stock]:
            result = await shop.set_stock(int(item_id), int(stock))
        case ["remove", item_id]:
            result = await shop.remove_item(int(item_id))
        case _:
            print("  Usage: admin item|price|stock|remove ...")
            return

    match result:
        case Ok(_):
            print("  ✓ Done")
        case Error(e):
            print(f"  ✗ {e.message}")


# ═══════════════════════════════════════════════════════════════════════════════
# Loop
# ═══════════════════════════════════════════════════════════════════════════════


async def handle(shop: Shop, user: str, parts: list[str], currency: str) -> None:
    match parts:
        case ["shop"]:
            await cmd_shop(shop, currency)
        case ["balance"]:
            match await shop.account(user):
                case Ok(account):
                    print(f"  {account.balance} {currency}")
                case Error(e):
                    print(f"  ✗ {e.message}")
        case ["buy", item_id, *rest]:
            qty = int(rest[0]) if rest else 1
            match await shop.request_purchase(user, int(item_id), qty):
                case Ok(offer):
                    render_offer(offer, currency)
                case Error(e):
                    print(f"  ✗ {e.message}")
        case ["cart"]:
            await cmd_cart(shop, user, currency)
        case ["add", item_id, *rest]:
            match await shop.add_to_cart(user, int(item_id), int(rest[0]) if rest else 1):
                case Ok(cart):
                    print(f"  ✓ Cart total {cart.total} {currency}")
                case Error(e):
                    print(f"  ✗ {e.message}")
        case ["remove", item_id, *rest]:
            match await shop.remove_from_cart(user, int(item_id), int(rest[0]) if rest else 1):
                case Ok(cart):
                    print(f"  ✓ Cart total {cart.total} {currency}")
                case Error(e):
                    print(f"  ✗ {e.message}")
        case ["clear"]:
            await shop.clear_cart(user)
            print("  ✓ Cart cleared")
        case ["checkout"]:
            match await shop.request_checkout(user):
                case Ok(offer):
                    render_offer(offer, currency)
                case Error(e):
                    print(f"  ✗ {e.message}")
        case ["confirm", session_id]:
            await cmd_resolve(shop, user, session_id, CONFIRM, currency)
        case ["cancel", session_id]:
            await cmd_resolve(shop, user, session_id, CANCEL, currency)
        case ["history"]:
            match await shop.history(user):
                case Ok(records):
                    for r in records:
                        print(f"  {r.created_at:%H:%M:%S}  item {r.item_id}  ×{r.quantity}  {r.total_price}")
                case Error(e):
                    print(f"  ✗ {e.message}")
        case ["admin", *args]:
            await cmd_admin(shop, args)
        case _:
            print(f"  ✗ Unknown command: {' '.join(parts)}")
            print("  Type 'help' for available commands.")


async def run_cli() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level, json=settings.log_json)
    shop, engine = await build_shop(settings)
    currency = settings.currency_name
    user = "alice"

    print(HELP_TEXT)
    await cmd_shop(shop, currency)

    try:
        while True:
            try:
                line = input(f"\n{user}> ").strip()
            except (EOFError, KeyboardInterrupt):
                print("\nBye!")
                break

            if not line:
                continue

            try:
                parts = shlex.split(line)
            except ValueError as e:
                print(f"  ✗ {e}")
                continue

            match parts:
                case ["quit" | "exit" | "q"]:
                    print("Bye!")
                    break
                case ["help" | "h" | "?"]:
                    print(HELP_TEXT)
                case ["as", name]:
                    user = name
                case _:
                    try:
                        await handle(shop, user, parts, currency)
                    except ValueError:
                        print("  ✗ ids and quantities must be numbers")
    finally:
        await shop.close()
        await engine.dispose()
