"""
Centralized settings

環境変数とデフォルト値の単一ソースを提供する。
"""

from __future__ import annotations

import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator

# カレントディレクトリから上方向に .env を探索（実環境変数は上書きしない）
load_dotenv(find_dotenv(usecwd=True), override=False)


class Settings(BaseModel):
    """アプリケーション設定"""

    # Transformation service
    api_base_url: str = Field(
        default="http://localhost:8080/v1", alias="TRANSFORM_API_BASE_URL"
    )
    api_token: str = Field(default="", alias="TRANSFORM_API_TOKEN")
    api_timeout: float = Field(default=30.0, alias="TRANSFORM_API_TIMEOUT")
    kms_key_arn: str = Field(default="", alias="TRANSFORM_KMS_KEY_ARN")
    min_request_interval: float = Field(
        default=0.2, alias="TRANSFORM_MIN_REQUEST_INTERVAL"
    )
    status_max_retries: int = Field(default=3, alias="TRANSFORM_STATUS_MAX_RETRIES")

    log_level: str = Field(default="WARNING", alias="LOG_LEVEL")

    # Polling / throttling
    poll_interval_seconds: float = Field(
        default=5.0, alias="TRANSFORM_POLL_INTERVAL_SECONDS"
    )
    throttle_delay_seconds: float = Field(
        default=2.0, alias="TRANSFORM_THROTTLE_DELAY_SECONDS"
    )
    # 0 は期限なし
    poll_timeout_seconds: float = Field(
        default=0.0, alias="TRANSFORM_POLL_TIMEOUT_SECONDS"
    )

    # Local working files
    work_dir: str = Field(default="", alias="TRANSFORM_WORK_DIR")
    excluded_dependency_extensions: list[str] = Field(
        default_factory=lambda: [".sha1"],
        alias="TRANSFORM_EXCLUDED_DEPENDENCY_EXTENSIONS",
    )

    model_config = {"populate_by_name": True}

    @field_validator("excluded_dependency_extensions", mode="before")
    @classmethod
    def _split_extensions(cls, value: Any) -> Any:
        """カンマ区切りの環境変数をリストに変換し、先頭ドットを補完"""
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(value, (list, tuple)):
            return [ext if ext.startswith(".") else f".{ext}" for ext in value]
        return value

    def model_post_init(self, __context: Any) -> None:
        """作業ディレクトリ未設定時にシステムの一時ディレクトリを使用"""
        if not self.work_dir:
            self.work_dir = tempfile.gettempdir()

    @property
    def work_path(self) -> Path:
        return Path(self.work_dir)

    @property
    def poll_deadline_seconds(self) -> float | None:
        return self.poll_timeout_seconds if self.poll_timeout_seconds > 0 else None


@lru_cache
def get_settings() -> Settings:
    """キャッシュされた設定を取得"""
    return Settings.model_validate(dict(os.environ))


def reload_settings() -> Settings:
    """環境変数の再読み込み"""
    get_settings.cache_clear()
    return get_settings()
