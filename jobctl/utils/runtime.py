"""Helpers shared by commands that talk to the job store"""

import asyncio
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar

import typer

from jobqueue.config.settings import Settings, get_settings
from jobqueue.core.exceptions import JobQueueError
from jobqueue.queue import JobQueue

from .formatting import print_error

T = TypeVar("T")


def load_settings(ctx: typer.Context) -> Settings:
    """Settings from the environment, with the --database-url override applied."""
    database_url = (ctx.obj or {}).get("database_url")
    if database_url:
        return Settings(database_url=database_url)
    return get_settings()


@asynccontextmanager
async def open_queue(settings: Settings) -> AsyncIterator[JobQueue]:
    queue = JobQueue(settings)
    try:
        yield queue
    finally:
        await queue.close()


def run(coro: Awaitable[T]) -> T:
    """Run a coroutine to completion, turning queue errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except JobQueueError as e:
        print_error(e.message)
        raise typer.Exit(1) from None
