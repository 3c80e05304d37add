"""
Job Poller

変換ジョブのステータスを一定間隔でポーリングし、
指定したステータス集合に到達するまで待機する。
"""

from __future__ import annotations

import time
from collections.abc import Callable, Collection
from typing import Protocol

from loguru import logger

from code_transform.constants import FAILED_TO_COMPLETE_JOB_MESSAGE, FAILURE_STATES
from code_transform.domains.transformation.run_context import CancellationToken
from code_transform.infrastructure.external_api.clients.transform_client import (
    TransformationJobStatus,
)
from code_transform.shared.exceptions import PollError, TransformApiError


class StatusClient(Protocol):
    async def get_status(self, job_id: str) -> TransformationJobStatus: ...


async def poll_transformation_job(
    client: StatusClient,
    job_id: str,
    valid_states: Collection[str],
    *,
    cancellation: CancellationToken,
    interval: float,
    deadline: float | None = None,
    on_status: Callable[[str], None] | None = None,
) -> str:
    """
    ジョブが valid_states のいずれかに到達するまでポーリング

    毎回の反復でキャンセルを確認し、待機中のキャンセルは 1 インターバル以内に反映される。
    経過時間の上限はここでは設けず、呼び出し側が deadline（time.monotonic 基準）で指定する。

    Args:
        client: ステータス取得クライアント
        job_id: ジョブID
        valid_states: 成功とみなすステータス集合
        cancellation: キャンセルトークン
        interval: ポーリング間隔（秒）
        deadline: ポーリング期限（None の場合は無期限）
        on_status: ステータス取得ごとのコールバック

    Returns:
        到達したステータス

    Raises:
        TransformationCancelledError: キャンセルを検出
        PollError: 失敗ステータスへの到達・期限超過・ステータス取得失敗
    """
    job_metadata = f"(job ID: {job_id})"
    while True:
        cancellation.raise_if_cancelled()
        if deadline is not None and time.monotonic() >= deadline:
            raise PollError(
                f"Polling for job {job_id} exceeded its deadline",
                metadata=job_metadata,
            )

        try:
            result = await client.get_status(job_id)
        except TransformApiError as e:
            raise PollError(
                f"Failed to get status of job {job_id}: {e}",
                metadata=job_metadata,
            ) from e

        status = result.status
        logger.debug(f"Job {job_id} status: {status}", event="transform_poll", jobId=job_id)
        if on_status is not None:
            on_status(status)

        if status in valid_states:
            return status

        if status in FAILURE_STATES:
            logger.error(f"Job {job_id} reached failure status {status}: {result.reason}")
            message = FAILED_TO_COMPLETE_JOB_MESSAGE
            if result.reason:
                message = f"{message} {result.reason}"
            raise PollError(
                f"Job {job_id} reached failure status {status}",
                user_message=message,
                status=status,
                reason=result.reason,
                metadata=job_metadata,
            )

        await cancellation.sleep(interval)
        cancellation.raise_if_cancelled()
