"""
Run Context

1 回の変換実行が所有する状態（JobState・ステップ進捗・キャンセルトークン）と、
実行コンテキストを run_id で管理するレジストリ。
"""

from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from loguru import logger

from code_transform.domains.transformation.models import (
    CandidateProject,
    JDKVersion,
    JobState,
    PlanStep,
    StepProgress,
    TransformByQStatus,
    new_plan_progress,
)
from code_transform.shared.exceptions import (
    RunAlreadyActiveError,
    TransformationCancelledError,
)
from code_transform.shared.observability import new_session_id


class CancellationToken:
    """レベルトリガーのキャンセルフラグ"""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TransformationCancelledError()

    async def sleep(self, seconds: float) -> None:
        """指定秒数待機。キャンセルされた場合は即座に戻る"""
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._event.wait(), timeout=seconds)


@dataclass(frozen=True)
class RunSnapshot:
    """UI 層に渡す読み取り専用スナップショット"""

    run_id: str
    session_id: str
    status: TransformByQStatus
    job_id: str
    polled_status: str
    step_progress: dict[PlanStep, StepProgress]
    start_time: datetime
    plan_file_path: Path | None


@dataclass
class RunContext:
    """1 回の変換実行のコンテキスト"""

    job_state: JobState
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str = field(default_factory=new_session_id)
    step_progress: dict[PlanStep, StepProgress] = field(default_factory=new_plan_progress)
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    start_time: datetime = field(default_factory=datetime.now)
    started_monotonic: float = field(default_factory=time.monotonic)
    deadline: float | None = None
    result_status: str = ""
    stopped_job_id: str = ""
    stop_failed: bool = False

    def request_cancel(self) -> bool:
        """
        キャンセルを要求

        RUNNING の場合のみ CANCELLED に遷移し、トークンをセットする。

        Returns:
            遷移した場合 True
        """
        if not self.job_state.set_to_cancelled():
            return False
        self.cancellation.cancel()
        return True

    def raise_if_cancelled(self) -> None:
        if self.job_state.is_cancelled():
            raise TransformationCancelledError()

    def mark_step(self, step: PlanStep, progress: StepProgress) -> None:
        self.step_progress[step] = progress

    def record_polled_status(self, status: str) -> None:
        self.job_state.polled_status = status

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_monotonic) * 1000

    def start_clock(self, poll_timeout_seconds: float | None = None) -> None:
        """実行開始時刻を記録し、必要ならポーリング期限を設定"""
        self.start_time = datetime.now()
        self.started_monotonic = time.monotonic()
        self.deadline = (
            self.started_monotonic + poll_timeout_seconds if poll_timeout_seconds else None
        )

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            run_id=self.run_id,
            session_id=self.session_id,
            status=self.job_state.status,
            job_id=self.job_state.job_id,
            polled_status=self.job_state.polled_status,
            step_progress=dict(self.step_progress),
            start_time=self.start_time,
            plan_file_path=self.job_state.plan_file_path,
        )


class RunRegistry:
    """単一アクティブ実行制約付きの RunContext レジストリ"""

    def __init__(self, max_active_runs: int = 1) -> None:
        self._contexts: dict[str, RunContext] = {}
        self._lock = asyncio.Lock()
        self._max_active_runs = max_active_runs

    async def open_run(
        self,
        project: CandidateProject,
        source_version: JDKVersion,
        target_version: JDKVersion,
    ) -> RunContext:
        """新しい実行コンテキストを作成。上限に達している場合は RunAlreadyActiveError"""
        async with self._lock:
            if len(self._contexts) >= self._max_active_runs:
                raise RunAlreadyActiveError(
                    f"{len(self._contexts)} transformation run(s) already active"
                )
            context = RunContext(
                job_state=JobState(
                    project_name=project.name,
                    project_path=project.path,
                    source_version=source_version,
                    target_version=target_version,
                )
            )
            self._contexts[context.run_id] = context
            logger.debug(f"Run opened: {context.run_id} ({project.name})")
            return context

    async def close_run(self, context: RunContext) -> None:
        async with self._lock:
            self._contexts.pop(context.run_id, None)
        logger.debug(f"Run closed: {context.run_id}")

    @property
    def active(self) -> RunContext | None:
        """直近に開始されたアクティブな実行"""
        if not self._contexts:
            return None
        return next(reversed(self._contexts.values()))
