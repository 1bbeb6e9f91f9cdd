import asyncio

import pytest

from asyncscope.concurrency.scope import Scope, ScopePoll
from asyncscope.concurrency.task_registry import Context
from asyncscope.config.environment import Environment


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep user settings and .env files out of the tests."""
    monkeypatch.setenv("ASYNCSCOPE_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.delenv("ASYNCSCOPE_POLL_BUDGET", raising=False)
    monkeypatch.chdir(tmp_path)
    Environment.reset()
    yield
    Environment.reset()


@pytest.fixture
def drain():
    """Drive a scope's poll_step_all until it stops returning PENDING."""

    async def _drain(scope: Scope, max_cycles: int = 1000) -> ScopePoll:
        event = asyncio.Event()
        context = Context(event.set)
        for _ in range(max_cycles):
            poll = scope.poll_step_all(context)
            if not poll.is_pending:
                return poll
            if event.is_set():
                await asyncio.sleep(0)
            else:
                await event.wait()
            event.clear()
        raise AssertionError("scope did not settle")

    return _drain
