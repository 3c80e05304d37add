"""
Transformation Service Async Client

コード変換サービスへの非同期 HTTP クライアント。
アップロード先の取得・アーカイブ転送・ジョブの開始/停止/ステータス取得/プラン取得を行う。
ステータスとプランの取得のみ指数バックオフでリトライし、開始と停止はリトライしない。
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
from loguru import logger

from code_transform.domains.transformation.models import JDKVersion
from code_transform.infrastructure.external_api.clients.rate_limiter import RateLimiter
from code_transform.shared.exceptions import (
    JobStartError,
    JobStopError,
    PlanFetchError,
    TransformApiError,
    UploadError,
)
from code_transform.shared.observability import SESSION_ID_HEADER, get_session_id


@dataclass(frozen=True)
class UploadDestination:
    upload_url: str
    upload_id: str
    kms_key_arn: str = ""


@dataclass(frozen=True)
class TransformationJobStatus:
    status: str
    reason: str = ""
    plan: str | None = None


def get_sha256(file_path: Path) -> str:
    """ファイル内容の SHA-256 を base64 で返す"""
    hasher = hashlib.sha256()
    with Path(file_path).open("rb") as fh:
        for chunk in iter(lambda: fh.read(1024 * 1024), b""):
            hasher.update(chunk)
    return base64.b64encode(hasher.digest()).decode("ascii")


def get_headers_obj(sha256: str, kms_key_arn: str) -> dict[str, str]:
    """
    アップロード用ヘッダーを構築

    KMS キー ARN が空の場合は暗号化ヘッダーを一切含めない。
    """
    headers = {
        "x-amz-checksum-sha256": sha256,
        "Content-Type": "application/zip",
    }
    if kms_key_arn:
        headers["x-amz-server-side-encryption"] = "aws:kms"
        headers["x-amz-server-side-encryption-aws-kms-key-id"] = kms_key_arn
    return headers


def render_plan_markdown(body: dict[str, Any]) -> str:
    """プラン API のレスポンスを Markdown に整形"""
    plan = body.get("transformationPlan") or {}
    steps = plan.get("transformationSteps") or []
    lines = ["# Code Transformation Plan", ""]
    if not steps:
        lines.append("_The service did not return any plan steps._")
    for index, step in enumerate(steps, start=1):
        name = str(step.get("name") or f"Step {index}").strip()
        lines.append(f"## {index}. {name}")
        description = str(step.get("description") or "").strip()
        if description:
            lines.extend(["", description])
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


class TransformApiClient:
    """コード変換サービス非同期クライアント

    Args:
        base_url: サービスのベース URL
        api_token: Bearer トークン（空の場合は Authorization ヘッダーなし）
        timeout: リクエストタイムアウト（秒）
        min_request_interval: サービス呼び出し間の最小インターバル（秒）
        kms_key_arn: アップロード時に使用する KMS キー ARN（サービス応答より優先）
        max_retries: ステータス/プラン取得の最大リトライ回数
        http_client: テスト用に差し替える httpx.AsyncClient
    """

    RETRY_STATUSES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        timeout: float = 30.0,
        min_request_interval: float = 0.2,
        kms_key_arn: str = "",
        max_retries: int = 3,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_token}"} if api_token else {}
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
        )
        # 署名付き URL への転送にはサービスの認証ヘッダーを付けない
        self._upload_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None
        self._rate_limiter = RateLimiter(min_interval=min_request_interval)
        self._kms_key_arn = kms_key_arn
        self._max_retries = max_retries

    @classmethod
    def from_settings(cls, settings: Any) -> TransformApiClient:
        return cls(
            base_url=settings.api_base_url,
            api_token=settings.api_token,
            timeout=settings.api_timeout,
            min_request_interval=settings.min_request_interval,
            kms_key_arn=settings.kms_key_arn,
            max_retries=settings.status_max_retries,
        )

    def _request_headers(self) -> dict[str, str]:
        session_id = get_session_id()
        return {SESSION_ID_HEADER: session_id} if session_id else {}

    async def _send(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> httpx.Response:
        await self._rate_limiter.acquire()
        logger.info(
            f"Transform API {method} {path}",
            event="transform_api_call",
            endpoint=path,
            sessionId=get_session_id(),
        )
        resp = await self._client.request(
            method, path, json=json, headers=self._request_headers()
        )
        resp.raise_for_status()
        return resp

    async def _request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """リトライなしのリクエスト。httpx の例外を TransformApiError に変換"""
        try:
            resp = await self._send(method, path, json)
        except httpx.HTTPStatusError as exc:
            raise TransformApiError(
                exc.response.status_code,
                f"Transform API error ({exc.response.status_code}): {method} {path}",
            ) from exc
        except httpx.TimeoutException as exc:
            raise TransformApiError(504, f"Transform API timeout: {method} {path}") from exc
        except httpx.RequestError as exc:
            raise TransformApiError(502, f"Transform API connection error: {method} {path}") from exc
        if not resp.content:
            return {}
        try:
            result: dict[str, Any] = resp.json()
        except ValueError as exc:
            raise TransformApiError(
                resp.status_code, f"Transform API returned a non-JSON body: {method} {path}"
            ) from exc
        return result

    async def _get_with_retry(self, path: str) -> dict[str, Any]:
        """GET with exponential backoff for 429/5xx/timeout."""
        for attempt in range(self._max_retries + 1):
            try:
                return await self._request("GET", path)
            except TransformApiError as exc:
                retryable = exc.status_code in self.RETRY_STATUSES
                if not retryable or attempt >= self._max_retries:
                    raise
                wait = 2**attempt
                logger.warning(
                    f"Transform API {path} returned {exc.status_code}, "
                    f"retrying in {wait}s (attempt {attempt + 1}/{self._max_retries})"
                )
                await asyncio.sleep(wait)
        # unreachable, but satisfies type checker
        raise TransformApiError(504, f"Transform API max retries exceeded: GET {path}")

    # ============================================
    # Upload
    # ============================================

    async def create_upload_url(self, sha256: str) -> UploadDestination:
        """アップロード先 URL を取得"""
        body = await self._request(
            "POST",
            "/uploads",
            json={
                "contentChecksum": sha256,
                "contentChecksumType": "SHA_256",
                "uploadIntent": "TRANSFORMATION",
            },
        )
        try:
            return UploadDestination(
                upload_url=body["uploadUrl"],
                upload_id=body["uploadId"],
                kms_key_arn=body.get("kmsKeyArn") or "",
            )
        except KeyError as exc:
            raise UploadError(f"Upload destination response missing {exc}") from exc

    async def upload(self, archive_path: Path) -> str:
        """
        アーカイブをアップロードして upload ID を返す

        Raises:
            UploadError: アップロード先の取得または転送に失敗
        """
        sha256 = await asyncio.to_thread(get_sha256, archive_path)
        try:
            destination = await self.create_upload_url(sha256)
        except TransformApiError as exc:
            raise UploadError(f"Failed to create upload URL: {exc}") from exc

        kms_key_arn = self._kms_key_arn or destination.kms_key_arn
        headers = get_headers_obj(sha256, kms_key_arn)
        content = await asyncio.to_thread(Path(archive_path).read_bytes)
        try:
            resp = await self._upload_client.put(destination.upload_url, content=content, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UploadError(
                f"Upload rejected ({exc.response.status_code}) for upload {destination.upload_id}"
            ) from exc
        except httpx.HTTPError as exc:
            raise UploadError(f"Upload failed for upload {destination.upload_id}: {exc}") from exc

        logger.info(f"Uploaded {Path(archive_path).name} as {destination.upload_id}")
        return destination.upload_id

    # ============================================
    # Job lifecycle
    # ============================================

    async def start(
        self,
        upload_id: str,
        source_version: JDKVersion | None = None,
        target_version: JDKVersion | None = None,
    ) -> str:
        """
        変換ジョブを開始（冪等ではないためリトライしない）

        Raises:
            JobStartError: 開始に失敗
        """
        payload: dict[str, Any] = {"uploadId": upload_id}
        if source_version is not None and target_version is not None:
            payload["transformationSpec"] = {
                "source": {"language": source_version.language},
                "target": {"language": target_version.language},
            }
        try:
            body = await self._request("POST", "/transformations", json=payload)
        except TransformApiError as exc:
            raise JobStartError(f"Start job failed: {exc}") from exc
        job_id = body.get("transformationJobId")
        if not job_id:
            raise JobStartError("Start job response did not include a job ID")
        logger.info(f"Transformation job started: {job_id}")
        return str(job_id)

    async def stop(self, job_id: str) -> None:
        """
        変換ジョブの停止を要求

        job_id が空の場合は何もしない（開始されていないジョブは停止できない）。

        Raises:
            JobStopError: 停止要求に失敗
        """
        if not job_id:
            return
        try:
            await self._request("POST", f"/transformations/{job_id}/stop")
        except TransformApiError as exc:
            raise JobStopError(f"Stop job failed: {exc}") from exc
        logger.info(f"Stop requested for transformation job {job_id}")

    async def get_status(self, job_id: str) -> TransformationJobStatus:
        """
        ジョブのステータスを取得

        Raises:
            TransformApiError: リトライ後も取得できない場合
        """
        body = await self._get_with_retry(f"/transformations/{job_id}")
        job = body.get("transformationJob") or {}
        return TransformationJobStatus(
            status=str(job.get("status") or ""),
            reason=str(job.get("reason") or ""),
            plan=job.get("plan"),
        )

    async def get_plan(self, job_id: str) -> str:
        """
        変換プランを Markdown で取得

        Raises:
            PlanFetchError: 取得に失敗
        """
        try:
            body = await self._get_with_retry(f"/transformations/{job_id}/plan")
        except TransformApiError as exc:
            raise PlanFetchError(f"Get plan failed: {exc}") from exc
        return render_plan_markdown(body)

    async def close(self) -> None:
        """HTTP クライアントをクローズ"""
        if self._owns_client:
            await self._client.aclose()
            await self._upload_client.aclose()
