"""Tests for CLI commands"""

import pytest
import typer
from typer.testing import CliRunner

from jobctl.commands.worker import load_app
from jobctl.main import app
from jobqueue.config.settings import Settings
from jobqueue.queue import JobQueue


# Test fixtures
@pytest.fixture
def runner():
    """CLI test runner"""
    return CliRunner()


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


@pytest.fixture
def invoke(runner, db_url):
    """Invoke jobctl against an initialized SQLite store"""

    def _invoke(*args, **kwargs):
        return runner.invoke(app, ["--database-url", db_url, *args], **kwargs)

    result = _invoke("init-db")
    assert result.exit_code == 0, result.stdout
    return _invoke


class TestMainCommands:
    """Test main CLI commands"""

    def test_version(self, runner):
        """Test version command"""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "jobctl" in result.stdout
        assert "0.1.0" in result.stdout

    def test_init_db(self, runner, db_url):
        result = runner.invoke(app, ["--database-url", db_url, "init-db"])
        assert result.exit_code == 0
        assert "Job schema is ready" in result.stdout

    def test_database_url_from_env(self, runner, db_url, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", db_url)
        result = runner.invoke(app, ["init-db"])
        assert result.exit_code == 0


class TestEnqueueCommand:
    """Test enqueueing from the command line"""

    def test_enqueue(self, invoke):
        result = invoke("enqueue", "send_email", "--args", '{"to": "ada@example.com"}')
        assert result.exit_code == 0
        assert "Enqueued job 1 (send_email)" in result.stdout

        result = invoke("show", "1")
        assert result.exit_code == 0
        assert "Job 1" in result.stdout
        assert "send_email" in result.stdout
        assert "pending" in result.stdout

    def test_enqueue_with_delay(self, invoke):
        result = invoke("enqueue", "report", "--delay", "1h", "--retries", "3")
        assert result.exit_code == 0

        result = invoke("stats")
        assert result.exit_code == 0
        assert "0 pending jobs are due now" in result.stdout

    def test_enqueue_start_after(self, invoke):
        result = invoke("enqueue", "report", "--start-after", "2030-01-01T00:00:00Z")
        assert result.exit_code == 0

        result = invoke("show", "1")
        assert "2030-01-01 00:00:00" in result.stdout

    def test_enqueue_invalid_json(self, invoke):
        result = invoke("enqueue", "send_email", "--args", "{not json")
        assert result.exit_code == 1
        assert "not valid JSON" in result.stdout

    def test_enqueue_args_must_be_object(self, invoke):
        result = invoke("enqueue", "send_email", "--args", "[1, 2]")
        assert result.exit_code == 1
        assert "must be a JSON object" in result.stdout

    def test_enqueue_invalid_delay(self, invoke):
        result = invoke("enqueue", "send_email", "--delay", "soon")
        assert result.exit_code == 1
        assert "Invalid delay format" in result.stdout

    def test_enqueue_delay_and_start_after(self, invoke):
        result = invoke(
            "enqueue", "a", "--delay", "5m", "--start-after", "2030-01-01T00:00:00"
        )
        assert result.exit_code == 1
        assert "not both" in result.stdout


class TestInspectionCommands:
    """Test listing and inspecting jobs"""

    def test_list(self, invoke):
        invoke("enqueue", "send_email")
        invoke("enqueue", "resize_image")

        result = invoke("list")
        assert result.exit_code == 0
        assert "send_email" in result.stdout
        assert "resize_image" in result.stdout
        assert "Showing 1-2 of 2 jobs" in result.stdout

    def test_list_filters(self, invoke):
        invoke("enqueue", "send_email")
        invoke("enqueue", "resize_image")

        result = invoke("list", "--name", "resize_image", "--state", "pending")
        assert result.exit_code == 0
        assert "resize_image" in result.stdout
        assert "send_email" not in result.stdout

    def test_list_empty(self, invoke):
        result = invoke("list", "--state", "completed")
        assert result.exit_code == 0
        assert "No jobs found" in result.stdout

    def test_list_invalid_state(self, invoke):
        result = invoke("list", "--state", "sleeping")
        assert result.exit_code == 2

    def test_show_missing(self, invoke):
        result = invoke("show", "99")
        assert result.exit_code == 1
        assert "Job 99 not found" in result.stdout

    def test_stats(self, invoke):
        invoke("enqueue", "send_email")
        invoke("enqueue", "send_email")

        result = invoke("stats")
        assert result.exit_code == 0
        assert "Job Statistics" in result.stdout
        assert "send_email" in result.stdout
        assert "2 pending jobs are due now" in result.stdout

    def test_stats_empty(self, invoke):
        result = invoke("stats")
        assert result.exit_code == 0
        assert "No jobs in the store" in result.stdout

    def test_dead_empty(self, invoke):
        result = invoke("dead")
        assert result.exit_code == 0
        assert "No dead jobs" in result.stdout


class TestMaintenanceCommands:
    """Test recovery and cleanup commands"""

    def test_recover_nothing_stale(self, invoke):
        invoke("enqueue", "send_email")

        result = invoke("recover", "--older-than", "1h")
        assert result.exit_code == 0
        assert "No stale jobs found" in result.stdout

    def test_recover_invalid_threshold(self, invoke):
        result = invoke("recover", "--older-than", "0s")
        assert result.exit_code == 1
        assert "delay must be > 0 seconds" in result.stdout

    def test_purge(self, invoke):
        result = invoke("purge", "--yes")
        assert result.exit_code == 0
        assert "Deleted 0 completed job(s)" in result.stdout

    def test_purge_requires_confirmation(self, invoke):
        result = invoke("purge", "--older-than-days", "7", input="n\n")
        assert result.exit_code == 1
        assert "older than 7 days" in result.stdout


class TestWorkerCommand:
    """Test resolving worker applications"""

    @pytest.fixture
    def app_module(self, tmp_path, monkeypatch):
        (tmp_path / "cli_test_app.py").write_text(
            "from jobqueue import JobQueue, JobRegistry\n"
            "\n"
            "registry = JobRegistry()\n"
            "\n"
            "@registry.job('send_email')\n"
            "async def send_email(args):\n"
            "    pass\n"
            "\n"
            "queue = JobQueue(registry=JobRegistry())\n"
            "not_an_app = 42\n"
        )
        monkeypatch.syspath_prepend(str(tmp_path))
        return "cli_test_app"

    def test_load_registry(self, app_module, db_url):
        settings = Settings(database_url=db_url)
        queue = load_app(f"{app_module}:registry", settings)

        assert isinstance(queue, JobQueue)
        assert queue.settings is settings
        assert queue.registry.list() == ["send_email"]

    def test_load_queue(self, app_module, db_url):
        queue = load_app(f"{app_module}:queue", Settings(database_url=db_url))
        assert isinstance(queue, JobQueue)
        assert queue.registry.list() == []

    @pytest.mark.parametrize(
        "target",
        ["cli_test_app", "cli_test_app:missing", "cli_test_app:not_an_app", "no_such_module:app"],
    )
    def test_load_invalid_targets(self, app_module, db_url, target):
        with pytest.raises(typer.BadParameter):
            load_app(target, Settings(database_url=db_url))

    def test_worker_requires_handlers(self, app_module, invoke):
        result = invoke("worker", f"{app_module}:queue")
        assert result.exit_code == 1
        assert "No handlers registered" in result.stdout

    def test_worker_bad_target(self, invoke):
        result = invoke("worker", "not-a-target")
        assert result.exit_code == 2
