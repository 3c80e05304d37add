"""
変換ジョブ関連サブコマンド
"""

from __future__ import annotations

import asyncio
import signal
from contextlib import suppress
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from code_transform.application.services.dependency_service import LocalCacheDependencyPreparer
from code_transform.application.services.observers import (
    CancelSource,
    Notification,
    NotificationLevel,
    RunObserver,
    TelemetryEvent,
)
from code_transform.application.services.project_validation import (
    get_open_projects,
    validate_java_home,
    validate_open_projects,
)
from code_transform.application.services.transformation_service import (
    RunOutcome,
    TransformationRequest,
    TransformationService,
)
from code_transform.constants import FEEDBACK_PROMPT
from code_transform.domains.transformation.models import JDKVersion, StepProgress, TransformByQStatus
from code_transform.domains.transformation.run_context import RunSnapshot
from code_transform.infrastructure.external_api.clients.transform_client import TransformApiClient
from code_transform.shared.config.settings import get_settings
from code_transform.shared.exceptions import TransformError

console = Console()

_STEP_STYLES = {
    StepProgress.PENDING: "yellow",
    StepProgress.SUCCEEDED: "green",
    StepProgress.FAILED: "red",
}


class ConsoleObserver(RunObserver):
    """進捗・通知をコンソールに表示するオブザーバー"""

    def __init__(self, output: Console | None = None) -> None:
        self._console = output or console
        self._last_polled_status = ""

    def on_run_started(self, snapshot: RunSnapshot) -> None:
        self._console.print(
            f"[green]🚀 変換を開始しました[/green] [dim](session {snapshot.session_id})[/dim]"
        )

    def on_progress(self, snapshot: RunSnapshot) -> None:
        if snapshot.polled_status and snapshot.polled_status != self._last_polled_status:
            self._last_polled_status = snapshot.polled_status
            job = f" {snapshot.job_id}" if snapshot.job_id else ""
            self._console.print(f"[cyan]   job{job}: {snapshot.polled_status}[/cyan]")

    def on_plan_ready(self, plan_file_path: Path) -> None:
        self._console.print(f"[cyan]📄 変換プラン: {plan_file_path}[/cyan]")

    def on_notification(self, notification: Notification) -> None:
        style = "green" if notification.level == NotificationLevel.INFO else "red"
        self._console.print(f"[{style}]{notification.message}[/{style}]")
        if notification.feedback_prompt:
            self._console.print(f"[dim]💬 {FEEDBACK_PROMPT}[/dim]")

    def on_telemetry(self, event: TelemetryEvent) -> None:
        logger.bind(**event.fields).debug(f"Telemetry: {event.name}")


def _print_outcome(outcome: RunOutcome) -> None:
    table = Table(title="Transformation Result", show_header=True, header_style="bold magenta")
    table.add_column("Step", style="cyan")
    table.add_column("Progress")

    for step, progress in outcome.step_progress.items():
        style = _STEP_STYLES[progress]
        table.add_row(step.value, f"[{style}]{progress.value}[/{style}]")

    console.print(table)
    entry = outcome.history_entry
    console.print(
        f"\n[bold]{entry.module}[/bold] {entry.status} "
        f"[dim]({entry.timestamp}, {entry.duration}, job {entry.id or '-'})[/dim]"
    )
    if outcome.plan_file_path is not None:
        console.print(f"[dim]プラン: {outcome.plan_file_path}[/dim]")


def run_projects(paths: list[Path]) -> None:
    """変換可能なプロジェクト一覧を表示"""
    try:
        projects = validate_open_projects(get_open_projects(paths))
    except TransformError as e:
        console.print(f"[red]❌ {e.user_message}[/red]")
        raise typer.Exit(code=1) from e

    table = Table(title="Candidate Projects", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="green")
    table.add_column("Path", style="blue")
    for project in projects:
        table.add_row(project.name, str(project.path))
    console.print(table)

    try:
        java_home = validate_java_home()
    except TransformError as e:
        console.print(f"[yellow]⚠️  {e.user_message}[/yellow]")
    else:
        console.print(f"[dim]JAVA_HOME: {java_home}[/dim]")


def _schedule_stop(
    service: TransformationService, pending: set[asyncio.Task[bool]]
) -> asyncio.Task[bool]:
    """停止要求をタスクとして登録（完了まで参照を保持し、例外はログに残す）"""
    task = asyncio.get_running_loop().create_task(service.stop_transformation(CancelSource.CLI))
    pending.add(task)

    def _on_done(done: asyncio.Task[bool]) -> None:
        pending.discard(done)
        if done.cancelled():
            return
        exc = done.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"Stop request failed: {exc}")

    task.add_done_callback(_on_done)
    return task


async def _run_transformation_async(request: TransformationRequest) -> RunOutcome:
    settings = get_settings()
    client = TransformApiClient.from_settings(settings)
    service = TransformationService(client, settings=settings, observer=ConsoleObserver())

    loop = asyncio.get_running_loop()
    stop_tasks: set[asyncio.Task[bool]] = set()

    def _request_stop() -> None:
        console.print("[yellow]⏹  停止を要求しています...[/yellow]")
        _schedule_stop(service, stop_tasks)

    # add_signal_handler は Windows のイベントループでは未実装
    with suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, _request_stop)
    try:
        return await service.start_transformation(request)
    finally:
        with suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)
        if stop_tasks:
            await asyncio.gather(*stop_tasks, return_exceptions=True)
        await client.close()


def run_transformation(
    project: Path,
    source: JDKVersion,
    target: JDKVersion,
    dependency_cache: Path | None = None,
) -> None:
    """
    変換ジョブを実行

    Args:
        project: プロジェクトのパス
        source: 変換元 JDK バージョン
        target: 変換先 JDK バージョン
        dependency_cache: 依存関係キャッシュ（省略時は依存関係なし）
    """
    preparer = None
    if dependency_cache is not None:
        preparer = LocalCacheDependencyPreparer(dependency_cache, get_settings().work_path)
    request = TransformationRequest(
        project_path=project,
        source_version=source,
        target_version=target,
        dependency_preparer=preparer,
    )

    try:
        outcome = asyncio.run(_run_transformation_async(request))
    except TransformError as e:
        console.print(f"[red]❌ {e.user_message}[/red]")
        raise typer.Exit(code=1) from e

    _print_outcome(outcome)
    if outcome.status not in (TransformByQStatus.SUCCEEDED, TransformByQStatus.PARTIALLY_SUCCEEDED):
        raise typer.Exit(code=1)


async def _get_status_async(job_id: str):
    client = TransformApiClient.from_settings(get_settings())
    try:
        return await client.get_status(job_id)
    finally:
        await client.close()


async def _stop_async(job_id: str) -> None:
    client = TransformApiClient.from_settings(get_settings())
    try:
        await client.stop(job_id)
    finally:
        await client.close()


def run_status(job_id: str) -> None:
    """リモートジョブの状態を表示"""
    try:
        job = asyncio.run(_get_status_async(job_id))
    except TransformError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(f"[bold]{job_id}[/bold]: [cyan]{job.status}[/cyan]")
    if job.reason:
        console.print(f"[dim]{job.reason}[/dim]")


def run_stop(job_id: str) -> None:
    """リモートジョブの停止を要求"""
    try:
        asyncio.run(_stop_async(job_id))
    except TransformError as e:
        console.print(f"[red]❌ {e.user_message}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]⏹  停止を要求しました: {job_id}[/green]")
