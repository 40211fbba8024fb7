"""Helpers shared by the test modules."""

import asyncio

FIXED_TS = 1_700_000_000_000
MIB = 1024 * 1024


def run(coro):
    """Run a coroutine to completion."""
    return asyncio.run(coro)
