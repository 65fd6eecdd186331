"""Helpers shared by CLI commands."""

import asyncio
from typing import Coroutine, TypeVar

from unified_search import db

T = TypeVar("T")


async def _run_and_shutdown(coro: Coroutine[None, None, T]) -> T:
    try:
        return await coro
    finally:
        await db.shutdown_db()


def run_with_cleanup(coro: Coroutine[None, None, T]) -> T:
    """Run a command coroutine and dispose of the database engine afterwards.

    The engine must be disposed inside the same event loop that created it.
    """
    return asyncio.run(_run_and_shutdown(coro))
