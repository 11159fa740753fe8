# =============================================================================
# tests/unit/test_config.py
# Unit Tests for Settings, Errors and Logging
# =============================================================================

import logging

import pytest

ENV_KEYS = (
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "SKILL_TRACKER_ROW_ID",
    "SKILL_TRACKER_DB_PATH",
    "SKILL_TRACKER_TABLE",
    "SKILL_TRACKER_BUCKET",
    "SKILL_TRACKER_ADMIN_ID",
    "SKILL_TRACKER_ADMIN_PASSWORD",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestLoadSettings:
    """Test settings resolution order"""

    def test_defaults(self, clean_env):
        from skill_core.config import load_settings

        settings = load_settings(secrets={})

        assert settings.table_name == "hospitals_json"
        assert settings.data_row_id == 1
        assert settings.bucket_name == "app_files"
        assert settings.storage_prefix == "public"
        assert not settings.remote_configured

    def test_from_secrets(self, clean_env, tmp_path):
        from skill_core.config import load_settings

        settings = load_settings(secrets={
            "supabase": {"url": "https://x.supabase.co", "key": "anon"},
            "skill_tracker": {"table": "t", "row_id": "7", "db_path": str(tmp_path / "c.db")},
        })

        assert settings.remote_configured
        assert settings.table_name == "t"
        assert settings.data_row_id == 7
        assert settings.local_db_path == tmp_path / "c.db"

    def test_environment_wins(self, clean_env):
        from skill_core.config import load_settings

        clean_env.setenv("SUPABASE_URL", "https://env.supabase.co")
        clean_env.setenv("SKILL_TRACKER_BUCKET", "files")

        settings = load_settings(secrets={"supabase": {"url": "https://secret.supabase.co"}})

        assert settings.supabase_url == "https://env.supabase.co"
        assert settings.bucket_name == "files"

    def test_bad_row_id(self, clean_env):
        from skill_core.config import load_settings
        from skill_core.errors import ConfigurationError

        clean_env.setenv("SKILL_TRACKER_ROW_ID", "one")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(secrets={})

        assert not exc_info.value.recoverable

    def test_client_without_credentials_is_none(self, clean_env):
        from skill_core.config import Settings
        from skill_core.data.supabase_client import get_supabase_client

        assert get_supabase_client(Settings()) is None


class TestErrors:
    """Test the exception hierarchy and results"""

    def test_verification_is_a_policy_rejection(self):
        from skill_core.errors import PolicyRejectionError, RemoteStoreError, VerificationError

        error = VerificationError("still there", entity="hospital", entity_id="H1")

        assert isinstance(error, PolicyRejectionError)
        assert isinstance(error, RemoteStoreError)
        assert error.code == "SYNC_003"
        assert error.details == {"entity": "hospital", "entity_id": "H1"}

    def test_error_to_dict(self):
        from skill_core.errors import EntityNotFoundError

        error = EntityNotFoundError("Hospital", "H9")

        assert error.to_dict() == {
            "error_type": "EntityNotFoundError",
            "code": "DATA_002",
            "message": "Hospital not found",
            "details": {"entity": "Hospital", "entity_id": "H9"},
            "recoverable": True,
        }

    def test_operation_result(self):
        from skill_core.errors import OperationResult, PolicyRejectionError

        assert OperationResult.success(data=3).ok
        failed = OperationResult.failure(PolicyRejectionError("no"))
        assert not failed
        assert failed.policy_rejected

    def test_foreign_exception_is_wrapped(self):
        from skill_core.errors import OperationResult

        result = OperationResult.from_exception(ValueError("x"))

        assert result.error.code == "EXCEPTION"
        assert "x" in result.error.message

    def test_upload_result_needs_path(self):
        from skill_core.errors import UploadResult

        assert UploadResult(path="public/1-a.pdf").ok
        assert not UploadResult(path="")


class TestErrorPresentation:
    """Test Streamlit error display"""

    def test_present_success(self, mock_streamlit):
        from skill_core.errors import OperationResult, present_result

        assert present_result(OperationResult.success(), success_message="Saved")
        mock_streamlit.success.assert_called_once_with("Saved")

    def test_present_policy_failure(self, mock_streamlit):
        from skill_core.errors import OperationResult, PolicyRejectionError, present_result

        assert not present_result(OperationResult.failure(PolicyRejectionError("RLS")))
        message = mock_streamlit.error.call_args[0][0]
        assert "rejected by the database" in message

    def test_error_context_suppresses_recoverable(self, mock_streamlit):
        from skill_core.errors import ErrorContext

        with ErrorContext("Restoring backup"):
            raise ValueError("bad file")

        mock_streamlit.error.assert_called_once()

    def test_safe_execute_returns_default(self, mock_streamlit):
        from skill_core.errors import safe_execute

        def fail():
            raise RuntimeError("x")

        assert safe_execute(fail, default=5) == 5


class TestLogging:
    """Test logging helpers"""

    def test_log_context_records_start_and_completion(self, caplog):
        from skill_core.logging import LogContext, get_logger

        logger = get_logger("skill_core.test")
        with caplog.at_level(logging.INFO, logger="skill_core.test"):
            with LogContext(logger, "Deleting hospital H1"):
                pass

        messages = [r.getMessage() for r in caplog.records]
        assert "Deleting hospital H1... started" in messages
        assert any(m.startswith("Deleting hospital H1... completed") for m in messages)

    def test_log_context_does_not_suppress(self):
        from skill_core.logging import LogContext, get_logger

        with pytest.raises(KeyError):
            with LogContext(get_logger("skill_core.test"), "Failing"):
                raise KeyError("x")


    def test_setup_logging_configures_root_and_file(self, tmp_path, monkeypatch):
        from skill_core.logging import config as logging_config
        from skill_core.logging import setup_logging

        monkeypatch.setattr(logging_config, "LOG_DIR", tmp_path / "logs")
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(level=logging.DEBUG, log_filename="run.log")
            logging.getLogger("skill_core.test").info("Dataset refreshed")
            for handler in root.handlers:
                handler.flush()

            assert root.level == logging.DEBUG
            assert logging.getLogger("postgrest").level == logging.WARNING
            assert "Dataset refreshed" in (tmp_path / "logs" / "run.log").read_text(encoding="utf-8")
        finally:
            for handler in root.handlers:
                if handler not in saved_handlers:
                    handler.close()
            root.handlers = saved_handlers
            root.setLevel(saved_level)

    def test_setup_logging_without_file(self, tmp_path, monkeypatch):
        from skill_core.logging import config as logging_config
        from skill_core.logging import setup_logging

        monkeypatch.setattr(logging_config, "LOG_DIR", tmp_path / "logs")
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(log_to_file=False)

            assert not (tmp_path / "logs").exists()
            assert not any(isinstance(h, logging.FileHandler) for h in root.handlers)
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
