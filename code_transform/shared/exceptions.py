"""
カスタム例外モジュール

プロジェクト固有の例外クラスを定義。
各例外は内部メッセージとは別にユーザー向けメッセージ (user_message) を持つ。
"""

from code_transform.constants import (
    FAILED_TO_COMPLETE_JOB_MESSAGE,
    FAILED_TO_START_JOB_MESSAGE,
    FAILED_TO_UPLOAD_MESSAGE,
    TRANSFORM_CANCELLED_MESSAGE,
)


class TransformError(Exception):
    """プロジェクトの基底例外クラス"""

    default_user_message = FAILED_TO_COMPLETE_JOB_MESSAGE

    def __init__(
        self,
        message: str = "",
        *,
        user_message: str | None = None,
        metadata: str = "",
    ) -> None:
        super().__init__(message or self.default_user_message)
        self.user_message = user_message or self.default_user_message
        self.metadata = metadata


class TransformationCancelledError(TransformError):
    """ユーザーによるキャンセルを検出"""

    default_user_message = TRANSFORM_CANCELLED_MESSAGE

    def __init__(self, message: str = "Transformation was cancelled by the user") -> None:
        super().__init__(message)


# =============================================================================
# リモート呼び出し関連
# =============================================================================


class TransformApiError(TransformError):
    """変換サービス呼び出しエラー（HTTP エラー / タイムアウト / 接続エラー）"""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class UploadError(TransformError):
    """アップロード先の取得またはアーカイブ転送の失敗"""

    default_user_message = FAILED_TO_UPLOAD_MESSAGE


class JobStartError(TransformError):
    """ジョブ開始の失敗（リトライしない）"""

    default_user_message = FAILED_TO_START_JOB_MESSAGE


class JobStopError(TransformError):
    """ジョブ停止要求の失敗（ベストエフォート、エスカレーションしない）"""

    default_user_message = "The transformation job could not be stopped."


class PollError(TransformError):
    """ステータスポーリングの失敗"""

    def __init__(
        self,
        message: str = "",
        *,
        user_message: str | None = None,
        status: str = "",
        reason: str = "",
        metadata: str = "",
    ) -> None:
        super().__init__(message, user_message=user_message, metadata=metadata)
        self.status = status
        self.reason = reason


class PlanFetchError(TransformError):
    """変換プランの取得失敗"""

    pass


class JobNotSuccessfulError(TransformError):
    """ジョブが成功・部分成功のいずれでもない状態で終了"""

    pass


# =============================================================================
# ローカル処理関連
# =============================================================================


class ArchiveBuildError(TransformError):
    """アーカイブ作成エラー"""

    default_user_message = FAILED_TO_UPLOAD_MESSAGE


class DependencyPreparationError(TransformError):
    """依存関係キャッシュの準備エラー（実行開始前）"""

    default_user_message = "Dependencies for the project could not be prepared."


# =============================================================================
# 実行前バリデーション
# =============================================================================


class ProjectValidationError(TransformError):
    """実行前バリデーションエラーの基底クラス"""

    default_user_message = "The selected project cannot be transformed."


class NoOpenProjectsError(ProjectValidationError):
    """対象となるプロジェクトが開かれていない"""

    default_user_message = "No open projects were found. Open a project to transform."


class NoJavaProjectsFoundError(ProjectValidationError):
    """Java ソースを含むプロジェクトがない"""

    default_user_message = "None of the open projects contain Java source files."


class NoMavenJavaProjectsFoundError(ProjectValidationError):
    """pom.xml を持つ Java プロジェクトがない"""

    default_user_message = "None of the open Java projects are built with Maven (no pom.xml found)."


class JavaHomeNotSetError(ProjectValidationError):
    """JAVA_HOME が未設定または不正"""

    default_user_message = "JAVA_HOME is not set to a valid JDK installation."


class RunAlreadyActiveError(ProjectValidationError):
    """別の変換ジョブが実行中"""

    default_user_message = "A transformation is already in progress."
