"""Worker Command - Run job handlers against the store"""

import asyncio
import importlib
import os
import signal
import sys

import typer

from jobqueue.config.logging import setup_logging
from jobqueue.config.settings import Settings
from jobqueue.core.exceptions import JobQueueError
from jobqueue.core.registries import JobRegistry
from jobqueue.queue import JobQueue

from ..utils.formatting import print_error, print_info
from ..utils.runtime import load_settings, run


def load_app(target: str, settings: Settings) -> JobQueue:
    """
    Resolve a `module:attribute` reference to a JobQueue.

    A JobRegistry is wrapped in a new JobQueue built from `settings`; a
    JobQueue is used as-is, with its own settings.
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter(f"Expected 'module:attribute', got {target!r}")

    # allow apps in the current directory, as `python -m` would
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"Could not import {module_name!r}: {e}") from e

    try:
        obj = getattr(module, attribute)
    except AttributeError:
        raise typer.BadParameter(
            f"Module {module_name!r} has no attribute {attribute!r}"
        ) from None

    if isinstance(obj, JobQueue):
        return obj
    if isinstance(obj, JobRegistry):
        return JobQueue(settings, registry=obj)
    raise typer.BadParameter(
        f"{target!r} is a {type(obj).__name__}, expected a JobQueue or JobRegistry"
    )


async def serve(
    queue: JobQueue,
    *,
    concurrency: int | None = None,
    poll_interval: float | None = None,
    names: list[str] | None = None,
    drain_timeout: float | None = None,
) -> None:
    """Run a worker until SIGINT or SIGTERM, then drain and close the store."""
    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    try:
        await queue.start(concurrency, poll_interval, names=names)
        await stop_requested.wait()
        await queue.stop(timeout=drain_timeout)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await queue.close()


def worker(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="module:attribute naming a JobQueue or JobRegistry"),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c", min=1, help="Execution slots"),
    poll_interval: float | None = typer.Option(None, "--poll-interval", "-p", min=0.001, help="Idle wait in seconds"),
    names: list[str] | None = typer.Option(None, "--name", "-n", help="Only run jobs with this name (repeatable)"),
    drain_timeout: float | None = typer.Option(None, "--drain-timeout", help="Max seconds to wait for running jobs on shutdown"),
):
    """⚙️  Run a worker until interrupted"""
    try:
        queue = load_app(target, load_settings(ctx))
    except JobQueueError as e:
        print_error(e.message)
        raise typer.Exit(1) from None

    handlers = queue.registry.list()
    if not handlers:
        print_error(f"No handlers registered in {target}")
        raise typer.Exit(1)

    setup_logging(queue.settings)

    print_info(f"Starting worker for {len(handlers)} job type(s): {', '.join(handlers)}")
    run(
        serve(
            queue,
            concurrency=concurrency,
            poll_interval=poll_interval,
            names=names or None,
            drain_timeout=drain_timeout,
        )
    )
    print_info("Worker stopped")
