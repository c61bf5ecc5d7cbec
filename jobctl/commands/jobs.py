"""Job Commands - Enqueue, inspect and maintain jobs"""

import json
from datetime import timedelta

import typer
from rich.console import Console
from rich.panel import Panel

from jobqueue.config.settings import Settings
from jobqueue.jobs.models import JobState
from jobqueue.jobs.schemas import JobResponse

from ..utils.formatting import (
    create_job_panel,
    create_jobs_table,
    create_stats_table,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from ..utils.parsing import parse_delay, parse_timestamp
from ..utils.runtime import load_settings, open_queue, run

console = Console()


def init_db(ctx: typer.Context):
    """🗄️  Create the jobs table and indexes"""
    settings = load_settings(ctx)

    async def _init(settings: Settings):
        async with open_queue(settings) as queue:
            await queue.database.create_schema()

    run(_init(settings))
    print_success("Job schema is ready")


def enqueue(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Job name (handler name)"),
    args: str = typer.Option("{}", "--args", "-a", help="JSON object passed to the handler"),
    delay: str | None = typer.Option(None, "--delay", "-d", help="Run after a delay, e.g. 5m or 1h30m"),
    start_after: str | None = typer.Option(None, "--start-after", help="Run at an ISO-8601 time (UTC if no offset)"),
    retries: int | None = typer.Option(None, "--retries", "-r", min=1, help="Maximum attempts"),
):
    """➕ Enqueue a job"""
    try:
        payload = json.loads(args)
    except json.JSONDecodeError as e:
        print_error(f"--args is not valid JSON: {e}")
        raise typer.Exit(1) from None
    if not isinstance(payload, dict):
        print_error("--args must be a JSON object")
        raise typer.Exit(1)

    if delay and start_after:
        print_error("Use either --delay or --start-after, not both")
        raise typer.Exit(1)

    try:
        wait = parse_delay(delay) if delay else None
        when = parse_timestamp(start_after) if start_after else None
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1) from None

    settings = load_settings(ctx)

    async def _enqueue(settings: Settings) -> int:
        async with open_queue(settings) as queue:
            run_at = queue.service.clock() + wait if wait else when
            return await queue.enqueue(name, payload, start_after=run_at, retries=retries)

    try:
        job_id = run(_enqueue(settings))
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1) from None

    print_success(f"Enqueued job {job_id} ({name})")


def list_jobs(
    ctx: typer.Context,
    state: JobState | None = typer.Option(None, "--state", "-s", help="Filter by state"),
    name: str | None = typer.Option(None, "--name", "-n", help="Filter by job name"),
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Number of jobs to show"),
    offset: int = typer.Option(0, "--offset", "-o", min=0, help="Skip first N jobs"),
):
    """📋 List jobs, newest first"""
    settings = load_settings(ctx)

    async def _list(settings: Settings):
        async with open_queue(settings) as queue:
            return await queue.service.list_jobs(
                state=state, name=name, limit=limit, offset=offset
            )

    page = run(_list(settings))

    if not page.jobs:
        console.print(Panel(
            "📭 [yellow]No jobs found![/yellow]\n\n"
            f"Filters applied:\n"
            f"• State: {state.value if state else 'any'}\n"
            f"• Name: {name or 'any'}",
            title="Empty Results",
            border_style="yellow"
        ))
        return

    console.print(create_jobs_table([job.model_dump() for job in page.jobs]))
    shown_to = page.offset + len(page.jobs)
    print_info(f"Showing {page.offset + 1}-{shown_to} of {page.total} jobs")


def show_job(
    ctx: typer.Context,
    job_id: int = typer.Argument(..., help="Job ID"),
):
    """🔍 Show one job in detail"""
    settings = load_settings(ctx)

    async def _show(settings: Settings):
        async with open_queue(settings) as queue:
            job = await queue.service.get_job(job_id)
            return JobResponse.model_validate(job)

    job = run(_show(settings))
    console.print(create_job_panel(job.model_dump()))


def stats(ctx: typer.Context):
    """📊 Show job counts per state and per name"""
    settings = load_settings(ctx)

    async def _stats(settings: Settings):
        async with open_queue(settings) as queue:
            return await queue.service.get_job_stats()

    job_stats = run(_stats(settings))

    if not job_stats.total_jobs:
        print_info("No jobs in the store")
        return

    console.print(create_stats_table(job_stats.model_dump()))
    print_info(f"{job_stats.due_now} pending jobs are due now")


def dead_jobs(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Number of jobs to show"),
):
    """💀 List jobs that exhausted their attempts"""
    settings = load_settings(ctx)

    async def _dead(settings: Settings):
        async with open_queue(settings) as queue:
            jobs = await queue.service.list_dead_jobs(limit=limit)
            return [JobResponse.model_validate(job) for job in jobs]

    jobs = run(_dead(settings))

    if not jobs:
        print_success("No dead jobs")
        return

    console.print(
        create_jobs_table([job.model_dump() for job in jobs], title="Dead Jobs")
    )


def recover(
    ctx: typer.Context,
    older_than: str = typer.Option(..., "--older-than", help="Claim age, e.g. 30m or 1h"),
):
    """♻️  Return jobs stuck in running back to pending"""
    try:
        threshold = parse_delay(older_than)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1) from None

    settings = load_settings(ctx)

    async def _recover(settings: Settings) -> int:
        async with open_queue(settings) as queue:
            return await queue.service.recover_stale(threshold)

    recovered = run(_recover(settings))
    if recovered:
        print_warning(f"Recovered {recovered} stale job(s)")
    else:
        print_success("No stale jobs found")


def purge(
    ctx: typer.Context,
    older_than_days: int | None = typer.Option(
        None, "--older-than-days", min=1, help="Retention in days (default: JOB_CLEANUP_AFTER_DAYS)"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """🧹 Delete completed jobs older than the retention window"""
    settings = load_settings(ctx)
    days = older_than_days or settings.job_cleanup_after_days

    if not yes:
        typer.confirm(f"Delete completed jobs older than {days} days?", abort=True)

    async def _purge(settings: Settings) -> int:
        async with open_queue(settings) as queue:
            return await queue.service.purge_completed(timedelta(days=days))

    deleted = run(_purge(settings))
    print_success(f"Deleted {deleted} completed job(s)")
