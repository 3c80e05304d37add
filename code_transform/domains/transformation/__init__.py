"""
Transformation domain

ジョブ状態・実行コンテキスト・ステップ結果の型。
"""

from code_transform.domains.transformation.models import (
    CandidateProject,
    FolderInfo,
    JDKVersion,
    JobState,
    PlanStep,
    RunHistoryEntry,
    StepProgress,
    TransformByQStatus,
    process_history,
)
from code_transform.domains.transformation.run_context import (
    CancellationToken,
    RunContext,
    RunRegistry,
    RunSnapshot,
)

__all__ = [
    "CancellationToken",
    "CandidateProject",
    "FolderInfo",
    "JDKVersion",
    "JobState",
    "PlanStep",
    "RunContext",
    "RunHistoryEntry",
    "RunRegistry",
    "RunSnapshot",
    "StepProgress",
    "TransformByQStatus",
    "process_history",
]
