"""
Constants for the transformation workflow

リモートジョブのステータス集合、ユーザー向けメッセージ、既定値。
"""

# =============================================================================
# Remote job statuses
# =============================================================================
# サービス側のステータスは完全には列挙できないため文字列のまま扱う

STATUS_COMPLETED = "COMPLETED"
STATUS_PARTIALLY_COMPLETED = "PARTIALLY_COMPLETED"
STATUS_FAILED = "FAILED"
STATUS_STOPPED = "STOPPED"
STATUS_STOPPING = "STOPPING"
STATUS_REJECTED = "REJECTED"

# プラン生成済みとみなすステータス
VALID_STATES_FOR_PLAN_GENERATED = frozenset(
    {
        "PLANNED",
        "TRANSFORMING",
        "TRANSFORMED",
        STATUS_PARTIALLY_COMPLETED,
        STATUS_COMPLETED,
    }
)

# 成果物のダウンロード可否を確認できるステータス
VALID_STATES_FOR_CHECKING_DOWNLOAD_URL = frozenset(
    {
        STATUS_COMPLETED,
        STATUS_PARTIALLY_COMPLETED,
        STATUS_FAILED,
        STATUS_STOPPED,
    }
)

FAILURE_STATES = frozenset(
    {
        STATUS_FAILED,
        STATUS_STOPPING,
        STATUS_STOPPED,
        STATUS_REJECTED,
    }
)

SUCCESS_STATES = frozenset({STATUS_COMPLETED, STATUS_PARTIALLY_COMPLETED})

# =============================================================================
# Result status messages (telemetry)
# =============================================================================

RESULT_JOB_COMPLETED = "JobCompletedSuccessfully"
RESULT_JOB_PARTIALLY_SUCCEEDED = "JobPartiallySucceeded"
RESULT_JOB_FAILED = "JobFailed"
RESULT_JOB_CANCELLED = "JobCancelled"

# =============================================================================
# User-facing messages
# =============================================================================

FAILED_TO_UPLOAD_MESSAGE = "The project could not be uploaded for transformation. Try starting the transformation again."
FAILED_TO_START_JOB_MESSAGE = "The transformation job could not be started. Try starting the transformation again."
FAILED_TO_COMPLETE_JOB_MESSAGE = "The transformation could not be completed. Try starting the transformation again."
TRANSFORM_COMPLETED_MESSAGE = "Transformation completed. Review the proposed changes before accepting them."
TRANSFORM_PARTIALLY_COMPLETED_MESSAGE = "Transformation partially completed. Review the changes that were made."
TRANSFORM_CANCELLED_MESSAGE = "Transformation cancelled."
ERROR_STOPPING_JOB_MESSAGE = "The transformation was cancelled locally, but the remote job could not be stopped."
FEEDBACK_PROMPT = "Send feedback"

# =============================================================================
# Files and archive layout
# =============================================================================

PLAN_FILE_NAME = "transformation-plan.md"
DEPENDENCY_FOLDER_PREFIX = "transformation-dependencies-"
ARCHIVE_SOURCES_ROOT = "sources/"
ARCHIVE_DEPENDENCIES_ROOT = "dependencies/"
ARCHIVE_MANIFEST_VERSION = "1.0"

# ソースツリーから除外するビルドツール由来のディレクトリ
EXCLUDED_SOURCE_DIRECTORIES = frozenset(
    {".git", ".idea", ".vscode", ".gradle", "target", "build", "node_modules"}
)
