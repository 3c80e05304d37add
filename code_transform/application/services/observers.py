"""
Run Observers

UI 更新・通知・テレメトリ用のオブザーバーインターフェース。
オーケストレーターは SafeObserver 経由でのみ呼び出し、オブザーバーの例外が
実行本体をブロック・失敗させないようにする。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from code_transform.domains.transformation.run_context import RunSnapshot

if TYPE_CHECKING:
    from code_transform.application.services.transformation_service import RunOutcome


class NotificationLevel(str, Enum):
    INFO = "info"
    ERROR = "error"


class CancelSource(str, Enum):
    BOTTOM_HUB_PANEL = "BottomHubPanel"
    CHAT_PROMPT = "ChatPrompt"
    CLI = "CommandLine"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    feedback_prompt: bool = False


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    fields: dict[str, Any] = field(default_factory=dict)


class RunObserver:
    """全フックが no-op の基底オブザーバー"""

    def on_run_started(self, snapshot: RunSnapshot) -> None:
        pass

    def on_progress(self, snapshot: RunSnapshot) -> None:
        pass

    def on_plan_ready(self, plan_file_path: Path) -> None:
        pass

    def on_notification(self, notification: Notification) -> None:
        pass

    def on_telemetry(self, event: TelemetryEvent) -> None:
        pass

    def on_run_finished(self, outcome: RunOutcome) -> None:
        pass


class SafeObserver(RunObserver):
    """例外を伝播させないオブザーバーラッパー"""

    def __init__(self, inner: RunObserver | None = None) -> None:
        self._inner = inner or RunObserver()

    def _call(self, hook: str, *args: Any) -> None:
        try:
            getattr(self._inner, hook)(*args)
        except Exception as e:
            logger.warning(f"Observer hook {hook} failed: {e}")

    def on_run_started(self, snapshot: RunSnapshot) -> None:
        self._call("on_run_started", snapshot)

    def on_progress(self, snapshot: RunSnapshot) -> None:
        self._call("on_progress", snapshot)

    def on_plan_ready(self, plan_file_path: Path) -> None:
        self._call("on_plan_ready", plan_file_path)

    def on_notification(self, notification: Notification) -> None:
        self._call("on_notification", notification)

    def on_telemetry(self, event: TelemetryEvent) -> None:
        self._call("on_telemetry", event)

    def on_run_finished(self, outcome: RunOutcome) -> None:
        self._call("on_run_finished", outcome)
