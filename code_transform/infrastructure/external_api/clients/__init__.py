"""
Transformation Service Client Package

変換サービスへの非同期クライアント・レートリミッターを提供する。
"""

from code_transform.infrastructure.external_api.clients.rate_limiter import RateLimiter
from code_transform.infrastructure.external_api.clients.transform_client import (
    TransformApiClient,
    TransformationJobStatus,
    UploadDestination,
    get_headers_obj,
)

__all__ = [
    "RateLimiter",
    "TransformApiClient",
    "TransformationJobStatus",
    "UploadDestination",
    "get_headers_obj",
]
