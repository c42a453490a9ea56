"""Tests for the occupancy-pacer CLI."""

import json
from collections.abc import Iterator
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from occupancy_pacer import __version__
from occupancy_pacer.cli.app import app
from occupancy_pacer.config import get_settings
from occupancy_pacer.logging import reset_logging
from tests.fixtures.occupancy_responses import PENDING_EMPTY, PENDING_URL, SUBMIT_URL

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Use instant actuator steps and drop CLI log sinks after each test."""
    monkeypatch.setenv("ACTUATOR__PRE_SUBMIT_DELAY_MS", "0")
    monkeypatch.setenv("ACTUATOR__FILL_SETTLE_DELAY_MS", "0")
    monkeypatch.setenv("ACTUATOR__POST_ACTIVATE_DELAY_MS", "0")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    reset_logging()


@pytest.fixture
def items_json(tmp_path: Path) -> Path:
    path = tmp_path / "prompts.json"
    path.write_text(
        json.dumps(
            {"prompts": [{"fullPrompt": "first prompt", "scene": "Scene 1"}, "second prompt"]}
        )
    )
    return path


class TestGlobalFlags:
    """Tests for global CLI flags (--verbose, --quiet, --version)."""

    def test_global_help_shows_verbose_flag(self):
        """Main help text shows --verbose and -v flags."""
        result = runner.invoke(app, ["--help"])
        assert "-v" in result.stdout
        assert "--verbose" in result.stdout

    def test_global_help_shows_quiet_flag(self):
        """Main help text shows --quiet and -q flags."""
        result = runner.invoke(app, ["--help"])
        assert "-q" in result.stdout
        assert "--quiet" in result.stdout

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestConfigCommand:
    """Tests for the config command."""

    def test_shows_effective_settings(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PACING__BURST_SIZE", "7")
        get_settings.cache_clear()

        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "pacing.burst_size" in result.stdout
        assert "7" in result.stdout
        assert "signal.probe_url" in result.stdout


class TestQueueRun:
    """Tests for `queue run`."""

    def test_dry_run_json(self, items_json: Path):
        result = runner.invoke(
            app, ["-q", "queue", "run", str(items_json), "--dry-run", "--burst-delay-ms", "0"]
        )

        assert result.exit_code == 0, result.stdout
        assert "would submit: first prompt" in result.stdout
        assert "would submit: second prompt" in result.stdout
        assert "2/2 submitted" in result.stdout

    def test_dry_run_text_file(self, tmp_path: Path):
        path = tmp_path / "prompts.txt"
        path.write_text("one\n\n  two  \nthree\n")

        result = runner.invoke(
            app,
            ["-q", "queue", "run", str(path), "--dry-run", "-b", "3", "--burst-delay-ms", "0"],
        )

        assert result.exit_code == 0, result.stdout
        assert "would submit: two" in result.stdout
        assert "3/3 submitted" in result.stdout

    def test_log_file_tagged_with_queue(
        self, items_json: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        log_file = tmp_path / "pacer.log"
        monkeypatch.setenv("LOGGING__LOG_FILE", str(log_file))
        get_settings.cache_clear()

        result = runner.invoke(
            app, ["-q", "queue", "run", str(items_json), "--dry-run", "--burst-delay-ms", "0"]
        )
        reset_logging()

        assert result.exit_code == 0, result.stdout
        content = log_file.read_text()
        assert "Starting run" in content
        assert "'queue': 'prompts.json'" in content

    def test_submit_url_required(self, items_json: Path):
        result = runner.invoke(app, ["queue", "run", str(items_json)])

        assert result.exit_code == 1
        assert "--submit-url is required" in result.stdout

    def test_empty_file_rejected(self, tmp_path: Path):
        path = tmp_path / "empty.txt"
        path.write_text("\n\n")

        result = runner.invoke(app, ["queue", "run", str(path), "--dry-run"])

        assert result.exit_code == 1
        assert "No work items found" in result.stdout

    def test_invalid_json_rejected(self, tmp_path: Path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"scenes": ["a"]}))

        result = runner.invoke(app, ["queue", "run", str(path), "--dry-run"])

        assert result.exit_code == 1
        assert "does not contain a list of work items" in result.stdout

    def test_submits_over_http_with_probing(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        """Burst of three, then the fourth item once a probe reports a free slot."""
        posted: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                posted.append(request.content.decode())
                return httpx.Response(201)
            return httpx.Response(200, text=PENDING_EMPTY)

        transport = httpx.MockTransport(handler)

        class MockedAsyncClient(httpx.AsyncClient):
            def __init__(self, **kwargs):
                super().__init__(transport=transport, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", MockedAsyncClient)

        path = tmp_path / "prompts.txt"
        path.write_text("a\nb\nc\nd\n")

        result = runner.invoke(
            app,
            [
                "-q",
                "queue",
                "run",
                str(path),
                "--submit-url",
                SUBMIT_URL,
                "--probe-url",
                PENDING_URL,
                "--burst-delay-ms",
                "0",
                "--settle-delay-ms",
                "0",
                "--poll-interval-ms",
                "10",
            ],
        )

        assert result.exit_code == 0, result.stdout
        assert posted == ["prompt=a", "prompt=b", "prompt=c", "prompt=d"]
        assert "4/4 submitted" in result.stdout
