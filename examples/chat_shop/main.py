"""
Entry point.

Run: uv run python -m examples.chat_shop.main
"""

import asyncio
from examples.chat_shop.cli import run_cli


if __name__ == "__main__":
    asyncio.run(run_cli())
