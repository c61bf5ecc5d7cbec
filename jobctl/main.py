"""jobctl - Job Queue CLI Main Entry Point"""

import typer
from rich.console import Console
from rich.panel import Panel

from .commands import jobs, worker

console = Console()

# Create main Typer app
app = typer.Typer(
    name="jobctl",
    help="⚙️  jobctl - durable background job queue",
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    database_url: str | None = typer.Option(
        None, "--database-url", envvar="DATABASE_URL", help="Job store URL"
    ),
):
    """Manage and run jobs stored in a SQL database."""
    ctx.obj = {"database_url": database_url}


app.command("init-db")(jobs.init_db)
app.command("enqueue")(jobs.enqueue)
app.command("list")(jobs.list_jobs)
app.command("show")(jobs.show_job)
app.command("stats")(jobs.stats)
app.command("dead")(jobs.dead_jobs)
app.command("recover")(jobs.recover)
app.command("purge")(jobs.purge)
app.command("worker")(worker.worker)


@app.command()
def version():
    """📎 Show version information"""
    from . import __version__

    console.print(Panel(
        f"⚙️  [bold cyan]jobctl[/bold cyan]\n\n"
        f"• Version: [green]{__version__}[/green]\n"
        f"• Type: [yellow]Command Line Interface[/yellow]",
        title="Version Info",
        border_style="cyan"
    ))


if __name__ == "__main__":
    app()
