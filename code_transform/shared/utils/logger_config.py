"""
Loguruベースのログ設定モジュール

CLI とオーケストレーター用の統一ログシステムを提供します。
環境変数やフラグによるログレベル制御に対応。
"""

import re
import sys
from typing import Optional

from loguru import logger

from code_transform.shared.config.settings import reload_settings


def sanitize_sensitive_info(message: str) -> str:
    """
    ログメッセージから機密情報を除去

    Args:
        message: 元のログメッセージ

    Returns:
        サニタイズされたログメッセージ
    """
    # ユーザーディレクトリ部分をマスク
    message = re.sub(r"/Users/[^/]+/[^/]+/", ".../", message)
    message = re.sub(r"C:\\Users\\[^\\]+\\[^\\]+\\", r"...\\", message)

    # 一般的なファイルシステムパスをマスク
    message = re.sub(
        r"/(?:home|root|var|etc|usr|bin|sbin)/[^\s]+", "[SYSTEM_PATH]", message
    )

    # Bearer トークン
    message = re.sub(r"(Bearer)\s+[^\s]+", r"\1 ***", message, flags=re.IGNORECASE)

    # パスワードやキーらしき文字列をマスク
    message = re.sub(
        r"(password|passwd|pwd|key|token|secret)[=:\s]+[^\s]+",
        r"\1=***",
        message,
        flags=re.IGNORECASE,
    )

    # KMS キー ARN のキー ID 部分
    message = re.sub(r"(arn:aws[\w-]*:kms:[^:\s]*:\d*:key/)[^\s]+", r"\1***", message)

    return message


def setup_logger(
    verbose: bool = False, quiet: bool = False, level_override: Optional[str] = None
) -> None:
    """
    ロガー設定

    Args:
        verbose: 詳細ログを有効化（DEBUGレベル）
        quiet: エラーログのみ表示（ERRORレベル）
        level_override: ログレベルの直接指定（INFO/DEBUG/WARNING/ERROR）
    """
    # 既存のハンドラーを削除
    logger.remove()

    # ログレベルを決定
    if level_override:
        level = level_override.upper()
    elif quiet:
        level = "ERROR"
    elif verbose:
        level = "DEBUG"
    else:
        # 環境変数から取得、デフォルトはWARNING
        level = reload_settings().log_level.upper()

    def secure_message_filter(record):
        """ログレコードの機密情報をサニタイズ"""
        if "message" in record:
            record["message"] = sanitize_sensitive_info(str(record["message"]))
        return True

    format_string = (
        "<green>{time:HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stderr,
        level=level,
        format=format_string,
        colorize=True,
        backtrace=True,
        diagnose=verbose,
        filter=secure_message_filter,
    )

    logger.info(f"Logger initialized - Level: {level}")
