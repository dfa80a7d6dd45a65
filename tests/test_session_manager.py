"""
Tests for NarrationSession (state machine and cycle orchestration)
"""
import threading
import time
from unittest.mock import Mock

import pytest

from manga_narrator.core.exceptions import AnalysisError, CaptureError, ErrorKind, SpeechError
from manga_narrator.models.analysis import Analysis
from manga_narrator.services.tts_service import RenderResult
from manga_narrator.session_manager import NarrationSession, NarrationStatus, StatusChannel


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def analysis(manga_payload):
    return Analysis.model_validate(manga_payload)


@pytest.fixture
def analysis_service(analysis):
    service = Mock()
    service.analyze.return_value = analysis
    return service


@pytest.fixture
def speech_service():
    service = Mock()
    service.available_voices = []
    service.render.return_value = RenderResult(text="x", voice_name="Achernar", duration_seconds=0.0)
    return service


@pytest.fixture
def session(settings_manager, analysis_service, speech_service):
    return NarrationSession(
        config_manager=settings_manager,
        analysis_service=analysis_service,
        speech_service=speech_service,
    )


class TestCommands:
    """Test start / pause / resume / stop transitions"""

    def test_initial_state(self, session):
        assert session.get_status() == {"status": "idle", "capture_count": 0, "uptime": 0.0}
        assert session.get_state()["last_message"] == "Ready"

    def test_start_enters_capturing(self, session):
        assert session.start() is True
        state = session.get_state()
        assert state["status"] == "capturing"
        assert state["last_message"] == "Waiting for first capture..."

    def test_start_loads_backend_voices(self, session, speech_service):
        session.start()
        speech_service.load_voices.assert_called_once()

    def test_start_twice_is_rejected(self, session):
        session.start()
        assert session.start() is False

    def test_pause_from_idle_is_rejected(self, session):
        assert session.pause() is False
        assert session.resume() is False
        assert session.get_status()["status"] == "idle"

    def test_pause_and_resume(self, session, speech_service):
        session.start()
        assert session.pause() is True
        assert session.get_status()["status"] == "paused"
        speech_service.pause.assert_called_once()

        assert session.resume() is True
        assert session.get_status()["status"] == "capturing"

    def test_stop_resets_everything(self, session, speech_service):
        session.start()
        session.capture_completed(b"img")
        session.join_cycle(5)

        assert session.stop() is True
        state = session.get_state()
        assert state["status"] == "idle"
        assert state["capture_count"] == 0
        assert state["previous_narration_text"] is None
        assert state["uptime"] == 0.0
        speech_service.stop.assert_called()

    def test_uptime(self, settings_manager, analysis_service):
        now = [1000.0]
        session = NarrationSession(
            config_manager=settings_manager,
            analysis_service=analysis_service,
            clock=lambda: now[0],
        )
        session.start()
        now[0] = 1012.54
        assert session.get_status()["uptime"] == 12.5


class TestCycle:
    """Test a full capture cycle"""

    def test_capture_while_idle_is_dropped(self, session, analysis_service):
        assert session.capture_completed(b"img") is False
        analysis_service.analyze.assert_not_called()

    def test_capture_cycle_speaks_and_returns_to_capturing(self, session, analysis_service, speech_service):
        session.start()
        assert session.capture_completed(b"img", timestamp=123.0) is True
        session.join_cycle(5)

        state = session.get_state()
        assert state["status"] == "capturing"
        assert state["capture_count"] == 1
        assert state["last_capture_time"] == 123.0
        assert state["previous_narration_text"] == "Spring is beautiful!"
        analysis_service.analyze.assert_called_once()
        text, params = speech_service.render.call_args.args
        assert text == "Spring is beautiful!"
        assert params.voice_name == "Achernar"
        assert params.speed == pytest.approx(1.15)

    def test_repeated_page_is_not_spoken_again(self, session, speech_service):
        session.start()
        session.capture_completed(b"img")
        session.join_cycle(5)
        session.capture_completed(b"img")
        session.join_cycle(5)

        assert speech_service.render.call_count == 1
        state = session.get_state()
        assert state["status"] == "capturing"
        assert state["capture_count"] == 2

    def test_no_speech_backend(self, settings_manager, analysis_service):
        session = NarrationSession(config_manager=settings_manager, analysis_service=analysis_service)
        session.start()
        session.capture_completed(b"img")
        session.join_cycle(5)
        assert session.get_status()["status"] == "capturing"

    def test_capture_during_cycle_is_dropped(self, session, analysis_service, analysis):
        gate = threading.Event()

        def slow_analyze(*args, **kwargs):
            gate.wait(5)
            return analysis

        analysis_service.analyze.side_effect = slow_analyze
        session.start()
        assert session.capture_completed(b"first") is True
        assert session.get_status()["status"] == "analyzing"
        assert session.capture_completed(b"second") is False

        gate.set()
        session.join_cycle(5)
        assert session.get_status()["capture_count"] == 1

    def test_capture_while_paused_still_analyzes(self, session, analysis_service, speech_service):
        session.start()
        session.pause()
        assert session.capture_completed(b"img") is True
        session.join_cycle(5)

        analysis_service.analyze.assert_called_once()
        state = session.get_state()
        assert state["status"] == "paused"
        assert state["capture_count"] == 1
        assert state["previous_narration_text"] == "Spring is beautiful!"

        assert session.resume() is True
        assert session.get_status()["status"] == "capturing"

    def test_pause_during_cycle_resumes_to_capturing(self, session, analysis_service, analysis):
        gate = threading.Event()

        def slow_analyze(*args, **kwargs):
            gate.wait(5)
            return analysis

        analysis_service.analyze.side_effect = slow_analyze
        session.start()
        session.capture_completed(b"img")
        assert session.pause() is True

        gate.set()
        session.join_cycle(5)
        assert session.get_status()["status"] == "paused"

        session.resume()
        assert session.get_status()["status"] == "capturing"

    def test_stop_during_cycle_discards_result(self, session, analysis_service, analysis, speech_service):
        gate = threading.Event()

        def slow_analyze(*args, **kwargs):
            gate.wait(5)
            return analysis

        analysis_service.analyze.side_effect = slow_analyze
        session.start()
        session.capture_completed(b"img")
        session.stop()

        gate.set()
        session.join_cycle(5)
        state = session.get_state()
        assert state["status"] == "idle"
        assert state["previous_narration_text"] is None
        speech_service.render.assert_not_called()


class TestErrors:
    """Test error transitions and messages"""

    def test_rate_limit_error(self, session, analysis_service):
        analysis_service.analyze.side_effect = AnalysisError(
            "Vision analysis failed after 3 attempts: 429", kind=ErrorKind.RATE_LIMIT, attempts=3
        )
        session.start()
        session.capture_completed(b"img")
        session.join_cycle(5)

        state = session.get_state()
        assert state["status"] == "error"
        assert state["error_message"] == "API rate limit exceeded. Please wait a moment and try again."

    def test_missing_key_error(self, session, analysis_service):
        analysis_service.analyze.side_effect = AnalysisError("no key", kind=ErrorKind.AUTH, attempts=0)
        session.start()
        session.capture_completed(b"img")
        session.join_cycle(5)

        assert "API key" in session.get_state()["error_message"]

    def test_speech_failure_is_an_error(self, session, speech_service):
        speech_service.render.side_effect = SpeechError("device busy")
        session.start()
        session.capture_completed(b"img")
        session.join_cycle(5)

        state = session.get_state()
        assert state["status"] == "error"
        assert state["error_message"] == "Text-to-speech failed: device busy"
        assert state["previous_narration_text"] is None

    def test_start_from_error_keeps_counters(self, session, analysis_service, analysis):
        analysis_service.analyze.side_effect = AnalysisError("down", kind=ErrorKind.SERVER, attempts=3)
        session.start()
        session.capture_completed(b"img")
        session.join_cycle(5)
        assert session.get_status()["status"] == "error"

        analysis_service.analyze.side_effect = None
        analysis_service.analyze.return_value = analysis
        assert session.start() is True
        state = session.get_state()
        assert state["status"] == "capturing"
        assert state["capture_count"] == 1
        assert state["last_message"] == "Waiting for next capture..."

    def test_capture_failed(self, session):
        session.start()
        assert session.capture_failed("Screen sharing ended") is True
        state = session.get_state()
        assert state["status"] == "error"
        assert state["error_message"] == "Screen capture failed: Screen sharing ended"

    def test_capture_failed_while_idle_is_ignored(self, session):
        assert session.capture_failed("gone") is False
        assert session.get_status()["status"] == "idle"


class TestCaptureLoop:
    """Test the built-in capture loop"""

    def test_loop_captures_immediately(self, settings_manager, analysis_service, speech_service):
        capture = Mock()
        capture.capture_frame.return_value = b"frame"
        session = NarrationSession(
            config_manager=settings_manager,
            analysis_service=analysis_service,
            speech_service=speech_service,
            capture_service=capture,
        )

        session.start()
        assert wait_until(lambda: analysis_service.analyze.called)
        session.stop()
        session.join_cycle(5)
        capture.capture_frame.assert_called()

    def test_capture_error_moves_to_error(self, settings_manager, analysis_service):
        capture = Mock()
        capture.capture_frame.side_effect = CaptureError("No display available")
        session = NarrationSession(
            config_manager=settings_manager,
            analysis_service=analysis_service,
            capture_service=capture,
        )

        session.start()
        assert wait_until(lambda: session.get_status()["status"] == "error")
        assert session.get_state()["error_message"] == "Screen capture failed: No display available"

    def test_unexpected_capture_exception_moves_to_error(self, settings_manager, analysis_service):
        capture = Mock()
        capture.capture_frame.side_effect = OSError("display gone")
        session = NarrationSession(
            config_manager=settings_manager,
            analysis_service=analysis_service,
            capture_service=capture,
        )

        session.start()
        assert wait_until(lambda: session.get_status()["status"] == "error")
        assert session.get_state()["error_message"] == "Screen capture failed: display gone"
        session._capture_thread.join(5)
        assert not session._capture_thread.is_alive()

    def test_cycle_error_stops_capture_loop(self, settings_manager, analysis_service):
        analysis_service.analyze.side_effect = AnalysisError("bad key", kind=ErrorKind.AUTH, attempts=1)
        capture = Mock()
        capture.capture_frame.return_value = b"frame"
        session = NarrationSession(
            config_manager=settings_manager,
            analysis_service=analysis_service,
            capture_service=capture,
        )

        session.start()
        assert wait_until(lambda: session.get_status()["status"] == "error")
        session._capture_thread.join(5)

        assert not session._capture_thread.is_alive()
        assert capture.capture_frame.call_count == 1

    def test_stream_end_callback(self, settings_manager, analysis_service):
        capture = Mock()
        capture.capture_frame.return_value = b"frame"
        session = NarrationSession(
            config_manager=settings_manager,
            analysis_service=analysis_service,
            capture_service=capture,
        )
        session.start()
        capture.on_stream_ended()
        assert session.get_state()["error_message"] == "Screen capture failed: Screen sharing ended"
        session.join_cycle(5)


class TestStatusChannel:
    """Test status broadcasts"""

    def test_events_are_published(self, session):
        events = []
        session.status_channel.subscribe(events.append)
        session.start()
        session.pause()

        assert events[0] == {"type": "status", "status": "capturing", "message": "Waiting for first capture..."}
        assert events[1]["status"] == NarrationStatus.PAUSED.value

    def test_error_event(self, session):
        events = []
        session.status_channel.subscribe(events.append)
        session.start()
        session.capture_failed("gone")
        assert events[-1] == {"type": "error", "message": "Screen capture failed: gone"}

    def test_failing_subscriber_is_ignored(self, session):
        events = []
        session.status_channel.subscribe(Mock(side_effect=RuntimeError("socket closed")))
        session.status_channel.subscribe(events.append)

        assert session.start() is True
        assert session.get_status()["status"] == "capturing"
        assert len(events) == 1

    def test_unsubscribe(self):
        channel = StatusChannel()
        events = []
        unsubscribe = channel.subscribe(events.append)
        unsubscribe()
        channel.publish(NarrationStatus.IDLE, "Ready")
        assert events == []
