"""logger_config のテスト"""

import pytest
from loguru import logger

from code_transform.shared.utils.logger_config import sanitize_sensitive_info, setup_logger


@pytest.fixture(autouse=True)
def _restore_logger():
    """テスト後に capsys へのシンクを残さない"""
    yield
    logger.remove()


class TestSanitizeSensitiveInfo:
    def test_masks_bearer_token(self):
        result = sanitize_sensitive_info("Authorization: Bearer abc.def.ghi")
        assert "abc.def.ghi" not in result
        assert "Bearer ***" in result

    def test_masks_token_values(self):
        result = sanitize_sensitive_info("api_token=s3cr3t-value")
        assert "s3cr3t-value" not in result

    def test_masks_kms_key_id(self):
        arn = "arn:aws:kms:us-east-1:123456789012:key/1234abcd-12ab-34cd-56ef-1234567890ab"
        result = sanitize_sensitive_info(f"using {arn}")
        assert "1234abcd-12ab" not in result
        assert "arn:aws:kms:us-east-1:123456789012:key/***" in result

    def test_masks_user_directory(self):
        result = sanitize_sensitive_info("reading /Users/alice/projects/app/pom.xml")
        assert "alice" not in result

    def test_masks_system_path(self):
        result = sanitize_sensitive_info("archive at /home/dev/work/app.zip")
        assert result == "archive at [SYSTEM_PATH]"

    def test_plain_message_unchanged(self):
        assert sanitize_sensitive_info("Job 42 status: COMPLETED") == "Job 42 status: COMPLETED"


class TestSetupLogger:
    def test_verbose_emits_debug(self, capsys):
        setup_logger(verbose=True)
        logger.debug("debug-visible")
        assert "debug-visible" in capsys.readouterr().err

    def test_quiet_suppresses_warning(self, capsys):
        setup_logger(quiet=True)
        logger.warning("warning-hidden")
        logger.error("error-visible")
        err = capsys.readouterr().err
        assert "warning-hidden" not in err
        assert "error-visible" in err

    def test_sink_sanitizes(self, capsys):
        setup_logger(level_override="INFO")
        logger.info("token=abcdef123")
        assert "abcdef123" not in capsys.readouterr().err
