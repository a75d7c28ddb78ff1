"""
Chat Shop Example — the engine behind a text front-end.

Every command a chat bot would expose maps to one Shop call; the
confirmation buttons become `confirm`/`cancel` commands carrying the
session id.

Structure:
- seed.py  — SQLAlchemy database + demo catalog
- cli.py   — Interactive command loop
- main.py  — Entry point

Run: uv run python -m examples.chat_shop.main
Env: BAZAAR_* (see bazaar.config.Settings)
"""
