"""code-transform CLI コマンドのテスト"""

import asyncio
from io import StringIO

import httpx
import pytest
import respx
from loguru import logger
from rich.console import Console
from typer.testing import CliRunner

from code_transform.application.services.observers import Notification, NotificationLevel
from code_transform.cli import app
from code_transform.cli.run import ConsoleObserver, _schedule_stop
from code_transform.constants import FEEDBACK_PROMPT
from code_transform.shared.config.settings import reload_settings

runner = CliRunner()

BASE_URL = "https://transform.test/v1"


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setenv("TRANSFORM_API_BASE_URL", BASE_URL)
    monkeypatch.setenv("TRANSFORM_MIN_REQUEST_INTERVAL", "0")
    monkeypatch.setenv("TRANSFORM_WORK_DIR", str(tmp_path / "work"))
    reload_settings()
    yield
    logger.remove()
    monkeypatch.undo()
    reload_settings()


class TestProjectsCommand:
    def test_lists_candidates(self, java_project):
        result = runner.invoke(app, ["projects", str(java_project)])
        assert result.exit_code == 0
        assert "sample-app" in result.stdout

    def test_warns_when_java_home_missing(self, java_project, monkeypatch):
        monkeypatch.delenv("JAVA_HOME", raising=False)
        result = runner.invoke(app, ["projects", str(java_project)])
        assert result.exit_code == 0
        assert "JAVA_HOME is not set" in result.stdout

    def test_rejects_folder_without_java(self, tmp_path):
        folder = tmp_path / "docs"
        folder.mkdir()
        (folder / "README.md").write_text("docs")

        result = runner.invoke(app, ["projects", str(folder)])

        assert result.exit_code == 1
        assert "None of the open projects contain Java source files." in result.stdout


class TestRunCommand:
    def test_validation_failure_exits_before_remote_calls(self, tmp_path):
        project = tmp_path / "no-pom"
        (project / "src").mkdir(parents=True)
        (project / "src/App.java").write_text("class App {}")

        with respx.mock(assert_all_called=False) as mock:
            result = runner.invoke(app, ["run", str(project), "--from", "8", "--to", "17"])
            assert mock.calls.call_count == 0

        assert result.exit_code == 1
        assert "pom.xml" in result.stdout

    def test_java_home_missing_exits_before_remote_calls(self, java_project, monkeypatch):
        monkeypatch.delenv("JAVA_HOME", raising=False)

        with respx.mock(assert_all_called=False) as mock:
            result = runner.invoke(app, ["run", str(java_project)])
            assert mock.calls.call_count == 0

        assert result.exit_code == 1
        assert "JAVA_HOME is not set" in result.stdout

    def test_rejects_unknown_jdk_version(self, java_project):
        result = runner.invoke(app, ["run", str(java_project), "--to", "21"])
        assert result.exit_code != 0


class TestStatusCommand:
    @respx.mock
    def test_prints_status(self):
        respx.get(f"{BASE_URL}/transformations/job-1").mock(
            return_value=httpx.Response(
                200, json={"transformationJob": {"status": "TRANSFORMING", "reason": ""}}
            )
        )
        result = runner.invoke(app, ["status", "job-1"])
        assert result.exit_code == 0
        assert "TRANSFORMING" in result.stdout

    @respx.mock
    def test_status_error(self):
        respx.get(f"{BASE_URL}/transformations/job-1").mock(return_value=httpx.Response(404))
        result = runner.invoke(app, ["status", "job-1"])
        assert result.exit_code == 1


class TestStopCommand:
    @respx.mock
    def test_stop(self):
        route = respx.post(f"{BASE_URL}/transformations/job-1/stop").mock(
            return_value=httpx.Response(200)
        )
        result = runner.invoke(app, ["stop", "job-1"])
        assert result.exit_code == 0
        assert route.call_count == 1


class FailingStopService:
    async def stop_transformation(self, cancel_source):
        raise RuntimeError("stop exploded")


class TestScheduleStop:
    @pytest.mark.asyncio
    async def test_failed_stop_is_logged_and_released(self):
        messages: list[str] = []
        handler_id = logger.add(messages.append, level="ERROR")
        pending: set[asyncio.Task[bool]] = set()
        try:
            task = _schedule_stop(FailingStopService(), pending)
            assert pending == {task}
            await asyncio.gather(task, return_exceptions=True)
            await asyncio.sleep(0)
        finally:
            logger.remove(handler_id)

        assert pending == set()
        assert any("Stop request failed: stop exploded" in m for m in messages)


class TestConsoleObserver:
    def test_feedback_prompt_printed_only_when_requested(self):
        buffer = StringIO()
        observer = ConsoleObserver(Console(file=buffer, width=120))

        observer.on_notification(Notification(NotificationLevel.INFO, "Transformation completed."))
        assert FEEDBACK_PROMPT not in buffer.getvalue()

        observer.on_notification(
            Notification(NotificationLevel.ERROR, "Transformation cancelled.", feedback_prompt=True)
        )
        assert FEEDBACK_PROMPT in buffer.getvalue()
