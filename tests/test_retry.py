"""
Tests for the retry policy and error messages
"""
import pytest

from manga_narrator.core.error_handler import ErrorHandler
from manga_narrator.core.exceptions import (
    AnalysisError,
    CaptureError,
    ErrorKind,
    SpeechError,
)
from manga_narrator.core.retry import compute_backoff_delay, should_retry


class TestBackoff:
    """Test exponential backoff delays"""

    def test_delays_double(self):
        assert compute_backoff_delay(1) == 1.0
        assert compute_backoff_delay(2) == 2.0
        assert compute_backoff_delay(3) == 4.0

    def test_custom_base(self):
        assert compute_backoff_delay(2, base_delay=0.5) == 1.0

    def test_invalid_retry_number(self):
        with pytest.raises(ValueError):
            compute_backoff_delay(0)


class TestShouldRetry:
    """Test retry decisions"""

    def test_transient_errors_retry_within_budget(self):
        error = AnalysisError("down", kind=ErrorKind.SERVER)
        assert should_retry(error, attempt=1) is True
        assert should_retry(error, attempt=2) is True
        assert should_retry(error, attempt=3) is False

    def test_auth_never_retries(self):
        error = AnalysisError("bad key", kind=ErrorKind.AUTH)
        assert should_retry(error, attempt=1) is False


class TestUserMessages:
    """Test actionable error messages"""

    def test_auth_message(self):
        message = ErrorHandler.user_message(AnalysisError("401", kind=ErrorKind.AUTH))
        assert message == "Gemini API key not configured or invalid. Please add your API key in Settings."

    def test_rate_limit_message(self):
        message = ErrorHandler.user_message(AnalysisError("429", kind=ErrorKind.RATE_LIMIT))
        assert "wait a moment and try again" in message

    @pytest.mark.parametrize("kind", [ErrorKind.SERVER, ErrorKind.NETWORK, ErrorKind.TIMEOUT])
    def test_transient_message(self, kind):
        message = ErrorHandler.user_message(AnalysisError("x", kind=kind))
        assert "try again" in message

    def test_capture_message(self):
        assert ErrorHandler.user_message(CaptureError("Screen sharing ended")) == "Screen capture failed: Screen sharing ended"

    def test_speech_message(self):
        assert ErrorHandler.user_message(SpeechError("device busy")) == "Text-to-speech failed: device busy"

    def test_kind_from_string(self):
        assert ErrorHandler.user_message_for_kind("speech_failed", "boom") == "Text-to-speech failed: boom"

    def test_unclassified_error(self):
        assert ErrorHandler.user_message(RuntimeError("boom")) == "Unexpected error: boom"

    def test_handle_node_error_records_kind(self):
        info = ErrorHandler.handle_node_error("analyze", AnalysisError("down", kind=ErrorKind.SERVER))
        assert info["node_name"] == "analyze"
        assert info["error_kind"] == "server"
        assert info["error_message"] == "down"
        assert info["error_type"] == "AnalysisError"
