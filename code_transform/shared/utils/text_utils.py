"""
Text formatting helpers

実行履歴やテレメトリで使う表示用の文字列変換。
"""

from __future__ import annotations

import hashlib
import html
from datetime import datetime


def convert_to_time_string(duration_in_ms: float) -> str:
    """
    ミリ秒を "1 hr 1 min 40 sec" 形式に変換

    値が 0 の単位は省略する。秒は上位単位がある場合のみ省略可能。

    Args:
        duration_in_ms: 経過時間（ミリ秒）

    Returns:
        表示用の経過時間文字列
    """
    total_seconds = max(int(duration_in_ms // 1000), 0)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts: list[str] = []
    if hours:
        parts.append(f"{hours} hr")
    if minutes:
        parts.append(f"{minutes} min")
    if seconds or not parts:
        parts.append(f"{seconds} sec")
    return " ".join(parts)


def convert_date_to_timestamp(date: datetime) -> str:
    """
    日時を "01/01/23, 12:00 AM" 形式に変換

    %p はロケール依存のため AM/PM は自前で決定する。
    """
    hour = date.hour % 12 or 12
    meridiem = "AM" if date.hour < 12 else "PM"
    return f"{date:%m/%d/%y}, {hour:02d}:{date:%M} {meridiem}"


def encode_html(text: str) -> str:
    """HTML 特殊文字をエスケープ"""
    return html.escape(text, quote=True)


def get_string_hash(text: str) -> str:
    """文字列の SHA-256 ハッシュ（16進）"""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
