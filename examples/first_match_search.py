"""
Search several sources concurrently and stop as soon as one has the answer.

Run with: python examples/first_match_search.py
"""

import asyncio
import random

from asyncscope.concurrency import Scope, async_scope

SOURCES = ["cache", "replica-a", "replica-b", "archive"]


async def lookup(source: str, key: str) -> str | None:
    await asyncio.sleep(random.uniform(0.05, 0.3))
    return f"{key}@{source}" if source != "cache" else None


async def find(key: str) -> str | None:
    async def body(scope: Scope[str | None]) -> str | None:
        async def ask(source: str) -> None:
            found = await lookup(source, key)
            if found is not None:
                await scope.terminate(found)

        for source in SOURCES:
            scope.spawn(ask(source))
        return None

    return await async_scope(body)


if __name__ == "__main__":
    print(asyncio.run(find("user:42")))
