"""
Transformation Service

コード変換ジョブのオーケストレーション。
アーカイブ作成 → アップロード → ジョブ開始 → プラン生成待ち → 完了待ち → 終了処理 を順に実行し、
各ステップの前でキャンセルを確認する。どの経路で終了しても終了処理（履歴・クリーンアップ・状態リセット）は必ず実行する。
"""

from __future__ import annotations

import asyncio
from collections.abc import Collection, Iterable
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from loguru import logger

from code_transform.application.services.dependency_service import (
    DependencyPreparer,
    release_dependency_folder,
)
from code_transform.application.services.job_poller import poll_transformation_job
from code_transform.application.services.observers import (
    CancelSource,
    Notification,
    NotificationLevel,
    RunObserver,
    SafeObserver,
    TelemetryEvent,
)
from code_transform.application.services.project_validation import (
    get_open_projects,
    resolve_maven_executable,
    validate_java_home,
    validate_open_projects,
)
from code_transform.constants import (
    ERROR_STOPPING_JOB_MESSAGE,
    FAILED_TO_COMPLETE_JOB_MESSAGE,
    FAILED_TO_START_JOB_MESSAGE,
    PLAN_FILE_NAME,
    RESULT_JOB_CANCELLED,
    RESULT_JOB_COMPLETED,
    RESULT_JOB_FAILED,
    RESULT_JOB_PARTIALLY_SUCCEEDED,
    STATUS_PARTIALLY_COMPLETED,
    SUCCESS_STATES,
    TRANSFORM_CANCELLED_MESSAGE,
    TRANSFORM_COMPLETED_MESSAGE,
    TRANSFORM_PARTIALLY_COMPLETED_MESSAGE,
    VALID_STATES_FOR_CHECKING_DOWNLOAD_URL,
    VALID_STATES_FOR_PLAN_GENERATED,
)
from code_transform.domains.transformation.models import (
    CandidateProject,
    JDKVersion,
    PlanStep,
    RunHistoryEntry,
    StepProgress,
    TransformByQStatus,
    force_unfinished_steps_failed,
    new_plan_progress,
    process_history,
)
from code_transform.domains.transformation.run_context import RunContext, RunRegistry
from code_transform.domains.transformation.step_result import StepFailure, StepResult, run_step
from code_transform.infrastructure.archive.zip_builder import zip_code
from code_transform.infrastructure.external_api.clients.transform_client import (
    TransformationJobStatus,
)
from code_transform.shared.config.settings import Settings, get_settings
from code_transform.shared.exceptions import JobNotSuccessfulError, PollError, TransformError
from code_transform.shared.observability import reset_session_id, set_session_id
from code_transform.shared.utils.text_utils import (
    convert_date_to_timestamp,
    convert_to_time_string,
    encode_html,
    get_string_hash,
)

_MIN_REFRESH_INTERVAL = 0.1


class TransformClient(Protocol):
    async def upload(self, archive_path: Path) -> str: ...

    async def start(
        self,
        upload_id: str,
        source_version: JDKVersion | None = None,
        target_version: JDKVersion | None = None,
    ) -> str: ...

    async def stop(self, job_id: str) -> None: ...

    async def get_status(self, job_id: str) -> TransformationJobStatus: ...

    async def get_plan(self, job_id: str) -> str: ...


@dataclass(frozen=True)
class TransformationRequest:
    project_path: Path
    source_version: JDKVersion
    target_version: JDKVersion
    dependency_preparer: DependencyPreparer | None = None


@dataclass(frozen=True)
class RunOutcome:
    """1 回の実行の最終結果"""

    status: TransformByQStatus
    job_id: str
    result_status: str
    history_entry: RunHistoryEntry
    step_progress: dict[PlanStep, StepProgress]
    plan_file_path: Path | None
    failure_message: str
    notification: Notification


def write_plan_file(plan: str, directory: Path) -> Path:
    """プランを Markdown ファイルとして保存（実行終了後も残す）"""
    plan_path = Path(directory) / PLAN_FILE_NAME
    plan_path.parent.mkdir(parents=True, exist_ok=True)
    plan_path.write_text(plan, encoding="utf-8")
    return plan_path


class TransformationService:
    """コード変換ジョブのオーケストレーター

    Args:
        client: 変換サービスクライアント
        settings: 設定（省略時は環境変数から取得）
        observer: UI・通知・テレメトリ用オブザーバー
        registry: 実行コンテキストのレジストリ
    """

    def __init__(
        self,
        client: TransformClient,
        settings: Settings | None = None,
        observer: RunObserver | None = None,
        registry: RunRegistry | None = None,
    ) -> None:
        self._client = client
        self._settings = settings or get_settings()
        self._observer = SafeObserver(observer)
        self._registry = registry or RunRegistry()
        self._job_history: list[RunHistoryEntry] = []
        self._last_plan_progress = new_plan_progress()

    # ============================================
    # Queries
    # ============================================

    @property
    def current_status(self) -> TransformByQStatus:
        context = self._registry.active
        return context.job_state.status if context else TransformByQStatus.NOT_STARTED

    def get_job_history(self) -> list[RunHistoryEntry]:
        return list(self._job_history)

    def get_plan_progress(self) -> dict[PlanStep, StepProgress]:
        context = self._registry.active
        return dict(context.step_progress if context else self._last_plan_progress)

    def get_valid_candidate_projects(self, folders: Iterable[Path | str]) -> list[CandidateProject]:
        return validate_open_projects(get_open_projects(folders))

    # ============================================
    # Run
    # ============================================

    async def start_transformation(self, request: TransformationRequest) -> RunOutcome:
        """
        変換を実行

        バリデーションと依存関係の準備は実行開始前に行い、失敗時は状態を変更せず例外を送出する。

        Raises:
            ProjectValidationError: プロジェクトが変換対象外、JAVA_HOME が不正、または別の実行が進行中
            DependencyPreparationError: 依存関係の準備に失敗
        """
        project = self.get_valid_candidate_projects([request.project_path])[0]
        validate_java_home()
        context = await self._registry.open_run(
            project, request.source_version, request.target_version
        )
        try:
            context.job_state.maven_name = resolve_maven_executable(project.path)
            if request.dependency_preparer is not None:
                context.job_state.dependency_folder = await asyncio.to_thread(
                    request.dependency_preparer.prepare, project.path
                )
        except BaseException:
            await self._registry.close_run(context)
            raise
        return await self._run(context)

    async def _run(self, context: RunContext) -> RunOutcome:
        session_token = set_session_id(context.session_id)
        self._set_transformation_to_running_state(context)
        refresh_task = asyncio.create_task(self._refresh_progress_periodically(context))
        try:
            result = await self._execute_steps(context)
            if isinstance(result, StepFailure):
                await self._transformation_job_error_handler(context, result)
        finally:
            outcome = self._post_transformation_job(context)
            await self._cleanup_transformation_job(context, refresh_task)
            reset_session_id(session_token)
        self._observer.on_run_finished(outcome)
        return outcome

    async def _execute_steps(self, context: RunContext) -> StepResult[str]:
        upload = await run_step(self._pre_transformation_upload_code(context))
        if isinstance(upload, StepFailure):
            return upload

        started = await run_step(self._start_transformation_job(context, upload.value))
        if isinstance(started, StepFailure):
            return started

        planned = await run_step(self._poll_until_plan_ready(context, started.value))
        if isinstance(planned, StepFailure):
            return planned

        completed = await run_step(self._poll_until_complete(context, started.value))
        if isinstance(completed, StepFailure):
            return completed

        return await run_step(self._finalize_transformation_job(context, completed.value))

    def _set_transformation_to_running_state(self, context: RunContext) -> None:
        state = context.job_state
        context.start_clock(self._settings.poll_deadline_seconds)
        state.set_to_running()
        context.step_progress.update(new_plan_progress())

        project_id = get_string_hash(str(state.project_path)) if state.project_path else ""
        self._observer.on_telemetry(
            TelemetryEvent(
                "jobStarted",
                {
                    "sessionId": context.session_id,
                    "sourceVersion": state.source_version.value if state.source_version else "",
                    "targetVersion": state.target_version.value if state.target_version else "",
                    "projectId": project_id,
                    "result": "Succeeded",
                },
            )
        )
        self._observer.on_run_started(context.snapshot())
        logger.info(f"CodeTransformation: started run {context.run_id} for {state.project_name}")

    async def _refresh_progress_periodically(self, context: RunContext) -> None:
        interval = max(self._settings.poll_interval_seconds, _MIN_REFRESH_INTERVAL)
        while True:
            await asyncio.sleep(interval)
            self._observer.on_progress(context.snapshot())

    def _record_failure(self, context: RunContext, message: str, metadata: str = "") -> None:
        if not context.job_state.is_cancelled():
            context.job_state.set_failure(message, metadata)

    # ============================================
    # Steps
    # ============================================

    async def _pre_transformation_upload_code(self, context: RunContext) -> str:
        context.raise_if_cancelled()
        state = context.job_state
        folder = state.dependency_folder
        output_name = f"{folder.name if folder else context.run_id}.zip"
        try:
            payload_path = await asyncio.to_thread(
                zip_code,
                state.project_path,
                folder,
                output_name,
                self._settings.work_path,
                self._settings.excluded_dependency_extensions,
            )
            state.payload_file_path = payload_path
            upload_id = await self._client.upload(payload_path)
        except TransformError as e:
            logger.error(f"Failed to upload code due to {e}")
            self._record_failure(context, e.user_message)
            raise

        # ThrottlingException を避けるため開始前に待機
        await context.cancellation.sleep(self._settings.throttle_delay_seconds)
        context.raise_if_cancelled()
        return upload_id

    async def _start_transformation_job(self, context: RunContext, upload_id: str) -> str:
        state = context.job_state
        try:
            job_id = await self._client.start(upload_id, state.source_version, state.target_version)
        except TransformError as e:
            logger.error(f"CodeTransformation: {FAILED_TO_START_JOB_MESSAGE} ({e})")
            self._record_failure(context, FAILED_TO_START_JOB_MESSAGE)
            raise
        state.job_id = job_id
        context.mark_step(PlanStep.START_JOB, StepProgress.SUCCEEDED)
        self._observer.on_progress(context.snapshot())

        # ThrottlingException を避けるためポーリング前に待機
        await context.cancellation.sleep(self._settings.throttle_delay_seconds)
        context.raise_if_cancelled()
        return job_id

    async def _poll(self, context: RunContext, job_id: str, valid_states: Collection[str]) -> str:
        try:
            return await poll_transformation_job(
                self._client,
                job_id,
                valid_states,
                cancellation=context.cancellation,
                interval=self._settings.poll_interval_seconds,
                deadline=context.deadline,
                on_status=context.record_polled_status,
            )
        except PollError as e:
            logger.error(f"CodeTransformation: {FAILED_TO_COMPLETE_JOB_MESSAGE} ({e})")
            self._record_failure(context, e.user_message, e.metadata)
            raise

    async def _poll_until_plan_ready(self, context: RunContext, job_id: str) -> Path:
        await self._poll(context, job_id, VALID_STATES_FOR_PLAN_GENERATED)
        context.mark_step(PlanStep.BUILD_CODE, StepProgress.SUCCEEDED)

        try:
            plan = await self._client.get_plan(job_id)
        except TransformError as e:
            logger.error(f"CodeTransformation: {FAILED_TO_COMPLETE_JOB_MESSAGE} ({e})")
            self._record_failure(context, FAILED_TO_COMPLETE_JOB_MESSAGE, f"(job ID: {job_id})")
            raise

        plan_path = await asyncio.to_thread(write_plan_file, plan, self._settings.work_path)
        context.job_state.plan_file_path = plan_path
        self._observer.on_plan_ready(plan_path)
        context.mark_step(PlanStep.GENERATE_PLAN, StepProgress.SUCCEEDED)
        self._observer.on_progress(context.snapshot())
        context.raise_if_cancelled()
        return plan_path

    async def _poll_until_complete(self, context: RunContext, job_id: str) -> str:
        return await self._poll(context, job_id, VALID_STATES_FOR_CHECKING_DOWNLOAD_URL)

    async def _finalize_transformation_job(self, context: RunContext, status: str) -> str:
        state = context.job_state
        if status not in SUCCESS_STATES:
            logger.error(f"CodeTransformation: {FAILED_TO_COMPLETE_JOB_MESSAGE} (status: {status})")
            context.mark_step(PlanStep.TRANSFORM_CODE, StepProgress.FAILED)
            self._record_failure(context, FAILED_TO_COMPLETE_JOB_MESSAGE, f"(job ID: {state.job_id})")
            raise JobNotSuccessfulError(
                f"Job was not successful nor partially successful (status: {status})"
            )

        if state.is_cancelled():
            logger.warning(
                f"CodeTransformation: job {state.job_id} reached {status} after a stop was requested"
            )
        if status == STATUS_PARTIALLY_COMPLETED:
            state.set_to_partially_succeeded()
            context.result_status = RESULT_JOB_PARTIALLY_SUCCEEDED
        else:
            state.set_to_succeeded()
            context.result_status = RESULT_JOB_COMPLETED

        context.mark_step(PlanStep.TRANSFORM_CODE, StepProgress.SUCCEEDED)
        self._observer.on_progress(context.snapshot())
        return status

    # ============================================
    # Error handling / cancellation
    # ============================================

    async def _transformation_job_error_handler(
        self, context: RunContext, failure: StepFailure
    ) -> None:
        state = context.job_state
        error = failure.error
        if state.is_cancelled():
            # キャンセルが優先。ジョブ ID が後から判明した場合はここで停止を要求する
            context.result_status = RESULT_JOB_CANCELLED
            await self._stop_remote_job(context)
            logger.info(f"CodeTransformation: run {context.run_id} cancelled ({error})")
            return

        state.set_to_failed()
        context.result_status = RESULT_JOB_FAILED
        if isinstance(error, TransformError):
            state.set_failure(error.user_message, error.metadata)
        else:
            state.set_failure(FAILED_TO_COMPLETE_JOB_MESSAGE)
        logger.error(f"CodeTransformation: {error}")

    async def _stop_remote_job(self, context: RunContext) -> None:
        """ベストエフォートの停止要求。同じジョブ ID には 1 回だけ送る"""
        job_id = context.job_state.job_id
        if not job_id or context.stopped_job_id == job_id:
            return
        context.stopped_job_id = job_id
        try:
            await self._client.stop(job_id)
        except Exception as e:
            context.stop_failed = True
            logger.exception(f"CodeTransformation: failed to stop job {job_id}: {e}")

    async def stop_transformation(
        self, cancel_source: CancelSource = CancelSource.BOTTOM_HUB_PANEL
    ) -> bool:
        """
        実行中の変換をキャンセル

        RUNNING の実行がない場合は何もしない。

        Returns:
            キャンセルを要求した場合 True
        """
        context = self._registry.active
        if context is None or not context.job_state.is_running():
            return False

        logger.info("CodeTransformation: User requested to stop transformation. Stopping transformation.")
        context.request_cancel()
        context.result_status = RESULT_JOB_CANCELLED
        self._observer.on_progress(context.snapshot())
        await self._stop_remote_job(context)
        self._observer.on_telemetry(
            TelemetryEvent(
                "jobCancelledByUser",
                {
                    "sessionId": context.session_id,
                    "cancelSrcComponents": cancel_source.value,
                    "result": "Succeeded",
                },
            )
        )
        return True

    # ============================================
    # Finalization
    # ============================================

    def _post_transformation_job(self, context: RunContext) -> RunOutcome:
        state = context.job_state
        if state.is_running():
            # ステップ外で中断された場合（タスクのキャンセルなど）
            state.set_to_failed()
            state.set_failure(FAILED_TO_COMPLETE_JOB_MESSAGE)
            context.result_status = RESULT_JOB_FAILED

        force_unfinished_steps_failed(context.step_progress)
        duration_ms = context.elapsed_ms()
        result_status = context.result_status or RESULT_JOB_FAILED

        self._observer.on_telemetry(
            TelemetryEvent(
                "totalRunTime",
                {
                    "sessionId": context.session_id,
                    "resultStatusMessage": result_status,
                    "runTimeLatency": int(duration_ms),
                    "localMavenName": state.maven_name,
                    "result": "Succeeded" if result_status == RESULT_JOB_COMPLETED else "Failed",
                    "reason": result_status,
                },
            )
        )

        self._job_history = process_history(
            self._job_history,
            convert_date_to_timestamp(context.start_time),
            state.project_name,
            state.status.value,
            convert_to_time_string(duration_ms),
            encode_html(state.job_id),
        )
        self._last_plan_progress = dict(context.step_progress)

        notification = self._build_terminal_notification(context)
        self._observer.on_notification(notification)

        if state.payload_file_path is not None:
            try:
                state.payload_file_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to delete payload {state.payload_file_path.name}: {e}")

        return RunOutcome(
            status=state.status,
            job_id=state.job_id,
            result_status=result_status,
            history_entry=self._job_history[0],
            step_progress=dict(context.step_progress),
            plan_file_path=state.plan_file_path,
            failure_message=state.failure_message,
            notification=notification,
        )

    def _build_terminal_notification(self, context: RunContext) -> Notification:
        state = context.job_state
        if state.is_succeeded():
            return Notification(NotificationLevel.INFO, TRANSFORM_COMPLETED_MESSAGE)
        if state.is_partially_succeeded():
            return Notification(
                NotificationLevel.INFO, TRANSFORM_PARTIALLY_COMPLETED_MESSAGE, feedback_prompt=True
            )
        if state.is_cancelled():
            message = ERROR_STOPPING_JOB_MESSAGE if context.stop_failed else TRANSFORM_CANCELLED_MESSAGE
            return Notification(NotificationLevel.ERROR, message, feedback_prompt=True)

        message = state.failure_message or FAILED_TO_COMPLETE_JOB_MESSAGE
        if state.failure_metadata:
            message = f"{message} {state.failure_metadata}"
        return Notification(NotificationLevel.ERROR, message, feedback_prompt=True)

    async def _cleanup_transformation_job(
        self, context: RunContext, refresh_task: asyncio.Task[None]
    ) -> None:
        refresh_task.cancel()
        with suppress(asyncio.CancelledError):
            await refresh_task
        await asyncio.to_thread(release_dependency_folder, context.job_state.dependency_folder)
        context.job_state.set_job_defaults()
        await self._registry.close_run(context)
        self._observer.on_progress(context.snapshot())
