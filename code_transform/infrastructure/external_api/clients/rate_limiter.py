"""
Async FIFO Rate Limiter

変換サービスへの連続呼び出しを最小インターバルで直列化する。
同一セッションからの短時間の連続呼び出しはサービス側でスロットリングされる。
"""

from __future__ import annotations

import asyncio
import time


class RateLimiter:
    """非同期 FIFO レートリミッター

    asyncio.Lock で直列化し、リクエスト間の最小インターバルを遵守する。

    Args:
        min_interval: リクエスト間の最小インターバル（秒）
    """

    def __init__(self, min_interval: float = 0.2) -> None:
        self._interval: float = max(min_interval, 0.0)
        self._lock = asyncio.Lock()
        self._last_request: float | None = None

    @property
    def interval(self) -> float:
        """リクエスト間の最小インターバル（秒）"""
        return self._interval

    async def acquire(self) -> None:
        """レートリミットスロットを取得する。

        FIFO 順序を保証し、必要に応じてスリープする。
        """
        async with self._lock:
            if self._last_request is not None:
                wait = self._interval - (time.monotonic() - self._last_request)
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_request = time.monotonic()
