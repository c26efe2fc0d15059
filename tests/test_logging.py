"""
Tests for logging setup, credential masking and the error hierarchy
"""
import io
import json
import logging

import pytest
from rich.console import Console

from bridgemail.utils import logging as logging_module
from bridgemail.utils.errors import (
    ErrorCategory,
    IMAPError,
    InvalidCredentialsError,
    MailerError,
    MessageNotFoundError,
    MissingCredentialsError,
    NetworkError,
    format_error_message,
)
from bridgemail.utils.logging import (
    LogManager,
    SensitiveDataFilter,
    SensitiveDataMasker,
    get_logger,
    init_logging,
)


def capture_console():
    """Console writing to an in-memory buffer"""
    buffer = io.StringIO()
    return Console(file=buffer, width=300, color_system=None, highlight=False), buffer


class TestMasking:
    """Tests for SensitiveDataMasker and SensitiveDataFilter"""

    @pytest.mark.parametrize(
        "text",
        ["password=hunter2", "IMAP_PASS=hunter2", "token: hunter2", "secret='hunter2'"],
    )
    def test_mask_string(self, text):
        """Test credential patterns are redacted"""
        masked = SensitiveDataMasker().mask_string(text)
        assert "hunter2" not in masked
        assert "[REDACTED]" in masked

    def test_mask_dict(self):
        """Test sensitive keys are redacted recursively"""
        masked = SensitiveDataMasker().mask_dict(
            {"username": "me", "password": "hunter2", "nested": {"token": "abc"}}
        )
        assert masked == {
            "username": "me",
            "password": "[REDACTED]",
            "nested": {"token": "[REDACTED]"},
        }

    def test_filter_masks_record(self):
        """Test the filter rewrites messages and extra fields"""
        record = logging.LogRecord("bridgemail", logging.INFO, __file__, 1, "login password=hunter2", None, None)
        record.password = "hunter2"

        assert SensitiveDataFilter().filter(record) is True
        assert "hunter2" not in record.msg
        assert record.password == "[REDACTED]"


class TestLogManager:
    """Tests for LogManager and the module helpers"""

    def test_invalid_level(self):
        """Test unknown level names are rejected"""
        with pytest.raises(ValueError):
            LogManager("LOUD")

    def test_console_level(self):
        """Test records below the level are not shown"""
        console, buffer = capture_console()
        init_logging("WARNING", console=console)

        get_logger("tests").info("quiet message")
        get_logger("tests").warning("loud message")

        output = buffer.getvalue()
        assert "quiet message" not in output
        assert "loud message" in output

    def test_debug_level(self):
        """Test verbose runs show debug records"""
        console, buffer = capture_console()
        init_logging("DEBUG", console=console)

        get_logger("tests").debug("step one")
        assert "step one" in buffer.getvalue()

    def test_console_output_masked(self):
        """Test credentials never reach the console"""
        console, buffer = capture_console()
        init_logging("INFO", console=console)

        get_logger("tests").info("IMAP_PASS=hunter2")
        assert "hunter2" not in buffer.getvalue()

    def test_json_log_file(self, tmp_path, monkeypatch):
        """Test the optional file handler writes JSON lines"""
        log_path = tmp_path / "logs" / "bridgemail.log"
        monkeypatch.setattr(logging_module, "LOG_FILE_PATH", log_path)
        console, _ = capture_console()
        init_logging("WARNING", log_to_file=True, console=console)

        get_logger("tests").debug("written to file")

        entry = json.loads(log_path.read_text(encoding="utf-8").splitlines()[-1])
        assert entry["message"] == "written to file"
        assert entry["level"] == "DEBUG"

    def test_logger_names_are_namespaced(self):
        """Test loggers live under the bridgemail root"""
        assert get_logger("core.mime").name == "bridgemail.core.mime"
        assert get_logger("bridgemail.cli").name == "bridgemail.cli"


class TestErrors:
    """Tests for the MailerError hierarchy"""

    def test_hierarchy(self):
        """Test categories follow the base classes"""
        assert issubclass(IMAPError, NetworkError)
        assert IMAPError.category is ErrorCategory.NETWORK
        assert InvalidCredentialsError.category is ErrorCategory.AUTHENTICATION
        assert MissingCredentialsError.category is ErrorCategory.CONFIGURATION
        assert MessageNotFoundError.category is ErrorCategory.NOT_FOUND

    def test_default_message(self):
        """Test the class message is used when none is given"""
        assert MessageNotFoundError().message == "Message not found"

    def test_to_dict(self):
        """Test structured representation"""
        error = IMAPError("search failed", details={"criteria": "ALL"})
        assert error.to_dict() == {
            "error_type": "IMAPError",
            "category": "network",
            "message": "search failed",
            "details": {"criteria": "ALL"},
        }

    def test_format_error_message(self):
        """Test display text for known and unknown errors"""
        assert format_error_message(MailerError("boom")) == "boom"
        assert format_error_message(RuntimeError("boom")) == "Unexpected error: boom"
