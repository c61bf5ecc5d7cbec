"""Rich Formatting Utilities for CLI Output"""

from datetime import datetime
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATE_STYLES = {
    "pending": "yellow",
    "running": "cyan",
    "completed": "green",
    "dead": "red",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    """Print warning message with yellow styling"""
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def format_timestamp(value: datetime | None) -> str:
    if value is None:
        return "—"
    return value.strftime("%Y-%m-%d %H:%M:%S")


def styled_state(state: str) -> str:
    style = STATE_STYLES.get(state, "white")
    return f"[{style}]{state}[/{style}]"


def create_jobs_table(jobs: list[dict[str, Any]], title: str = "Jobs") -> Table:
    """Create a formatted table for a list of jobs"""
    table = Table(title=title, box=box.ROUNDED)

    table.add_column("ID", justify="right", style="cyan", no_wrap=True)
    table.add_column("Name", justify="left", style="magenta")
    table.add_column("State", justify="center")
    table.add_column("Attempts", justify="center")
    table.add_column("Start After", justify="center", style="yellow")
    table.add_column("Last Error", justify="left", style="white")

    for job in jobs:
        error = job.get("error") or "—"
        table.add_row(
            str(job["id"]),
            job["name"],
            styled_state(job["state"]),
            f"{job['attempts']}/{job['retries']}",
            format_timestamp(job.get("start_after")),
            error if len(error) <= 60 else error[:57] + "...",
        )

    return table


def create_job_panel(job: dict[str, Any]) -> Panel:
    """Create a detail panel for one job"""
    lines = [
        f"• Name: [magenta]{job['name']}[/magenta]",
        f"• State: {styled_state(job['state'])}",
        f"• Attempts: [cyan]{job['attempts']}/{job['retries']}[/cyan]",
        f"• Created: {format_timestamp(job['created_at'])}",
        f"• Start after: {format_timestamp(job['start_after'])}",
        f"• Started: {format_timestamp(job.get('started_at'))}",
        f"• Completed: {format_timestamp(job.get('completed_at'))}",
        f"• Args: [dim]{job['args']}[/dim]",
    ]
    if job.get("error"):
        lines.append(f"• Error: [red]{job['error']}[/red]")

    return Panel(
        "\n".join(lines),
        title=f"Job {job['id']}",
        border_style=STATE_STYLES.get(job["state"], "blue"),
    )


def create_stats_table(stats: dict[str, Any]) -> Table:
    """Create a table of job counts per name and state"""
    states = list(STATE_STYLES)
    table = Table(title="Job Statistics", box=box.ROUNDED)

    table.add_column("Name", justify="left", style="magenta")
    for state in states:
        table.add_column(state.title(), justify="right", style=STATE_STYLES[state])

    for name, counts in sorted(stats["by_name"].items()):
        table.add_row(name, *(str(counts.get(state, 0)) for state in states))

    table.add_section()
    table.add_row(
        "[bold]Total[/bold]",
        *(f"[bold]{stats['by_state'].get(state, 0)}[/bold]" for state in states),
    )
    return table
