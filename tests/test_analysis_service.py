"""
Tests for AnalysisService
"""
import concurrent.futures
import json
import threading
from unittest.mock import Mock, patch

import pytest
from google.api_core import exceptions as api_exceptions

from manga_narrator.core.exceptions import AnalysisCancelled, AnalysisError, ErrorKind
from manga_narrator.services.analysis_service import AnalysisService, classify_error


@pytest.fixture
def delays():
    return []


@pytest.fixture
def service(settings_manager, delays):
    return AnalysisService(config_manager=settings_manager, sleep=delays.append)


class TestAnalyzeRetries:
    """Test the retry loop around the vision call"""

    def test_success_on_first_attempt(self, service, delays, manga_payload):
        with patch.object(service, "_generate", return_value=json.dumps(manga_payload)) as generate:
            analysis = service.analyze(b"png-bytes")

        assert generate.call_count == 1
        assert delays == []
        assert len(analysis.panels) == 2
        assert service.last_timing_ok is True

    def test_retries_with_exponential_backoff(self, service, delays, manga_payload):
        side_effect = [
            api_exceptions.ServiceUnavailable("down"),
            api_exceptions.ServiceUnavailable("down"),
            json.dumps(manga_payload),
        ]
        with patch.object(service, "_generate", side_effect=side_effect) as generate:
            analysis = service.analyze(b"png-bytes")

        assert generate.call_count == 3
        assert delays == [1.0, 2.0]
        assert analysis.overall_scene == "Two friends in a park"

    def test_fails_after_three_attempts(self, service, delays):
        with patch.object(service, "_generate", side_effect=api_exceptions.ServiceUnavailable("down")) as generate:
            with pytest.raises(AnalysisError, match="failed after 3 attempts") as exc_info:
                service.analyze(b"png-bytes")

        assert generate.call_count == 3
        assert delays == [1.0, 2.0]
        assert exc_info.value.kind == ErrorKind.SERVER
        assert exc_info.value.attempts == 3

    def test_auth_error_is_not_retried(self, service, delays):
        with patch.object(service, "_generate", side_effect=api_exceptions.Unauthenticated("bad key")) as generate:
            with pytest.raises(AnalysisError, match="after 1 attempt:") as exc_info:
                service.analyze(b"png-bytes")

        assert generate.call_count == 1
        assert delays == []
        assert exc_info.value.kind == ErrorKind.AUTH

    def test_missing_api_key_raises_without_calling(self, settings_manager, delays):
        settings_manager.get_settings.return_value = {"api_key": "  ", "model_name": "gemini-2.5-flash"}
        service = AnalysisService(config_manager=settings_manager, sleep=delays.append)

        with patch.object(service, "_generate") as generate:
            with pytest.raises(AnalysisError) as exc_info:
                service.analyze(b"png-bytes")

        generate.assert_not_called()
        assert exc_info.value.kind == ErrorKind.AUTH
        assert exc_info.value.attempts == 0

    def test_unreadable_response_yields_fallback(self, service):
        with patch.object(service, "_generate", return_value="") as generate:
            analysis = service.analyze(b"png-bytes")

        assert generate.call_count == 1
        assert analysis.overall_scene == "Unable to parse manga analysis"

    def test_uses_configured_model(self, service, settings_manager, manga_payload):
        settings_manager.get_settings.return_value["model_name"] = "gemini-2.5-pro"
        with patch.object(service, "_generate", return_value=json.dumps(manga_payload)) as generate:
            service.analyze(b"png-bytes", mime_type="image/jpeg")

        generate.assert_called_once_with("test-key", "gemini-2.5-pro", b"png-bytes", "image/jpeg")


class TestAnalyzeTiming:
    """Test the five-second timing check"""

    def test_slow_analysis_still_returns_result(self, settings_manager, manga_payload):
        service = AnalysisService(
            config_manager=settings_manager,
            sleep=lambda _: None,
            clock=Mock(side_effect=[0.0, 6.0]),
        )
        with patch.object(service, "_generate", return_value=json.dumps(manga_payload)):
            analysis = service.analyze(b"png-bytes")

        assert len(analysis.panels) == 2
        assert service.last_elapsed == 6.0
        assert service.last_timing_ok is False

    def test_validate_timing_boundary(self, service):
        assert service.validate_analysis_timing(5.0) is True
        assert service.validate_analysis_timing(5.01) is False


class TestAnalyzeCancellation:
    """Test that a stopped session aborts the retry wait"""

    def test_cancel_before_call(self, service):
        event = threading.Event()
        event.set()
        with patch.object(service, "_generate") as generate:
            with pytest.raises(AnalysisCancelled):
                service.analyze(b"png-bytes", cancel_event=event)
        generate.assert_not_called()

    def test_cancel_during_backoff(self, service, delays):
        event = Mock()
        event.is_set.return_value = False
        event.wait.return_value = True

        with patch.object(service, "_generate", side_effect=api_exceptions.ServiceUnavailable("down")) as generate:
            with pytest.raises(AnalysisCancelled):
                service.analyze(b"png-bytes", cancel_event=event)

        assert generate.call_count == 1
        event.wait.assert_called_once_with(1.0)
        assert delays == []


class TestClassifyError:
    """Test error classification"""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (api_exceptions.Unauthenticated("bad key"), ErrorKind.AUTH),
            (api_exceptions.PermissionDenied("denied"), ErrorKind.AUTH),
            (api_exceptions.InvalidArgument("API key not valid. Please pass a valid API key."), ErrorKind.AUTH),
            (api_exceptions.ResourceExhausted("quota"), ErrorKind.RATE_LIMIT),
            (api_exceptions.TooManyRequests("slow down"), ErrorKind.RATE_LIMIT),
            (Exception("429 Too Many Requests"), ErrorKind.RATE_LIMIT),
            (api_exceptions.DeadlineExceeded("late"), ErrorKind.TIMEOUT),
            (TimeoutError(), ErrorKind.TIMEOUT),
            (concurrent.futures.TimeoutError(), ErrorKind.TIMEOUT),
            (api_exceptions.ServiceUnavailable("down"), ErrorKind.SERVER),
            (api_exceptions.InternalServerError("oops"), ErrorKind.SERVER),
            (api_exceptions.InvalidArgument("bad request"), ErrorKind.SERVER),
            (ConnectionError("reset"), ErrorKind.NETWORK),
            (ValueError("boom"), ErrorKind.NETWORK),
        ],
    )
    def test_classification(self, error, expected):
        assert classify_error(error) == expected
