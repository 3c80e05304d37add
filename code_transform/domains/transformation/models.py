"""
Transformation domain models

ジョブ状態・ステップ進捗・実行履歴のデータモデル。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path

from loguru import logger


class TransformByQStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    PARTIALLY_SUCCEEDED = "PartiallySucceeded"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


class StepProgress(str, Enum):
    PENDING = "Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class PlanStep(str, Enum):
    START_JOB = "startJob"
    BUILD_CODE = "buildCode"
    GENERATE_PLAN = "generatePlan"
    TRANSFORM_CODE = "transformCode"


class JDKVersion(str, Enum):
    JDK8 = "8"
    JDK11 = "11"
    JDK17 = "17"

    @property
    def language(self) -> str:
        """サービスに渡す言語識別子"""
        return f"JAVA_{self.value}"


@dataclass(frozen=True)
class FolderInfo:
    """実行が所有するローカル作業ディレクトリ"""

    path: Path
    name: str


@dataclass(frozen=True)
class CandidateProject:
    """変換候補のプロジェクト"""

    name: str
    path: Path


@dataclass(frozen=True)
class RunHistoryEntry:
    timestamp: str
    module: str
    status: str
    duration: str
    id: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def new_plan_progress() -> dict[PlanStep, StepProgress]:
    """全ステップ PENDING の進捗マップ"""
    return {step: StepProgress.PENDING for step in PlanStep}


def force_unfinished_steps_failed(progress: dict[PlanStep, StepProgress]) -> None:
    """SUCCEEDED 以外のステップを FAILED に確定"""
    for step in PlanStep:
        if progress.get(step) != StepProgress.SUCCEEDED:
            progress[step] = StepProgress.FAILED


def process_history(
    session_job_history: list[RunHistoryEntry],
    start_time: str,
    module: str,
    status: str,
    duration: str,
    job_id: str,
) -> list[RunHistoryEntry]:
    """
    実行履歴を更新

    履歴は常に直近 1 件のみを保持する（追記ではなく置き換え）。

    Returns:
        新しい履歴リスト
    """
    session_job_history = []
    session_job_history.append(
        RunHistoryEntry(
            timestamp=start_time,
            module=module,
            status=status,
            duration=duration,
            id=job_id,
        )
    )
    return session_job_history


class JobState:
    """1 回の変換実行の状態"""

    def __init__(
        self,
        project_name: str = "",
        project_path: Path | None = None,
        source_version: JDKVersion | None = None,
        target_version: JDKVersion | None = None,
    ) -> None:
        # 実行開始前に一度だけ設定される
        self.project_name = project_name
        self.project_path = project_path
        self.source_version = source_version
        self.target_version = target_version
        self.maven_name = "mvn"
        self.plan_file_path: Path | None = None
        self.set_job_defaults()

    def set_job_defaults(self) -> None:
        """実行ごとのフィールドを既定値に戻す"""
        self.status = TransformByQStatus.NOT_STARTED
        self.job_id = ""
        self.polled_status = ""
        self.dependency_folder: FolderInfo | None = None
        self.payload_file_path: Path | None = None
        self.failure_message = ""
        self.failure_metadata = ""

    # ============================================
    # Status queries
    # ============================================

    def is_not_started(self) -> bool:
        return self.status == TransformByQStatus.NOT_STARTED

    def is_running(self) -> bool:
        return self.status == TransformByQStatus.RUNNING

    def is_cancelled(self) -> bool:
        return self.status == TransformByQStatus.CANCELLED

    def is_succeeded(self) -> bool:
        return self.status == TransformByQStatus.SUCCEEDED

    def is_partially_succeeded(self) -> bool:
        return self.status == TransformByQStatus.PARTIALLY_SUCCEEDED

    # ============================================
    # Transitions
    # ============================================

    def set_to_running(self) -> None:
        if not self.is_not_started():
            raise RuntimeError(f"Cannot start a run from status {self.status.value}")
        self.status = TransformByQStatus.RUNNING

    def set_to_cancelled(self) -> bool:
        """RUNNING からのみ CANCELLED に遷移。遷移した場合 True"""
        if not self.is_running():
            return False
        self.status = TransformByQStatus.CANCELLED
        return True

    def set_to_failed(self) -> None:
        if not self.is_running():
            logger.debug(f"Ignoring failure transition from {self.status.value}")
            return
        self.status = TransformByQStatus.FAILED

    def set_to_succeeded(self) -> None:
        self._set_success(TransformByQStatus.SUCCEEDED)

    def set_to_partially_succeeded(self) -> None:
        self._set_success(TransformByQStatus.PARTIALLY_SUCCEEDED)

    def _set_success(self, status: TransformByQStatus) -> None:
        # キャンセル要求後にリモートが終了状態へ到達した場合も成功として扱う
        if self.status not in (TransformByQStatus.RUNNING, TransformByQStatus.CANCELLED):
            raise RuntimeError(f"Cannot mark {status.value} from status {self.status.value}")
        self.status = status

    def set_failure(self, message: str, metadata: str = "") -> None:
        """失敗メッセージを設定（最初の 1 回のみ有効）"""
        if self.failure_message:
            return
        self.failure_message = message
        self.failure_metadata = metadata
