"""
Session Manager for Manga Narrator
캡처 -> 분석 -> 내레이션 -> 음성 사이클을 반복 실행하고 상태 머신을 관리
"""
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .core.config_manager import ConfigManager, get_default_config_manager
from .core.constants import (
    MSG_ANALYZING,
    MSG_NARRATING,
    MSG_PAUSED,
    MSG_READY,
    MSG_SKIPPED_REDUNDANT,
    MSG_SPEAKING,
    MSG_WAITING_FIRST_CAPTURE,
    MSG_WAITING_NEXT_CAPTURE,
)
from .core.error_handler import ErrorHandler
from .core.exceptions import CaptureError
from .graph import compile_cycle_graph
from .services.narration_service import SKIP_REDUNDANT
from .state import CycleState, create_cycle_state
from .utils.logging import log_error, print_error
from .utils.timing import get_workflow_timing_summary, reset_workflow_timing, save_workflow_timing_log


class NarrationStatus(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    ANALYZING = "analyzing"
    NARRATING = "narrating"
    PAUSED = "paused"
    ERROR = "error"


PAUSABLE_STATUSES = (NarrationStatus.CAPTURING, NarrationStatus.ANALYZING, NarrationStatus.NARRATING)

_RESUME_MESSAGES = {
    NarrationStatus.CAPTURING: MSG_WAITING_NEXT_CAPTURE,
    NarrationStatus.ANALYZING: MSG_ANALYZING,
    NarrationStatus.NARRATING: MSG_NARRATING,
}

StatusSubscriber = Callable[[Dict[str, Any]], None]


class OperationState:
    """세션 상태 (세션 락 안에서만 변경)"""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.status = NarrationStatus.IDLE
        self.start_time: Optional[float] = None
        self.capture_count = 0
        self.last_capture_time: Optional[float] = None
        self.previous_narration_text: Optional[str] = None
        self.last_message: str = MSG_READY
        self.error_message: Optional[str] = None

    def to_dict(self) -> dict:
        """딕셔너리로 변환"""
        data = {
            "status": self.status.value,
            "start_time": self.start_time,
            "capture_count": self.capture_count,
            "last_capture_time": self.last_capture_time,
            "previous_narration_text": self.previous_narration_text,
            "last_message": self.last_message,
        }
        if self.error_message:
            data["error_message"] = self.error_message
        return data


class StatusChannel:
    """
    상태 브로드캐스트 (best effort)
    구독자 예외는 기록만 하고 버림
    """

    def __init__(self):
        self._subscribers: List[StatusSubscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: StatusSubscriber) -> Callable[[], None]:
        """
        Returns:
            구독 해제 함수
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _broadcast(self, event: Dict[str, Any]) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                log_error(f"Status broadcast failed: {e}", context="status_channel", exception=e)

    def publish(self, status: NarrationStatus, message: str) -> None:
        self._broadcast({"type": "status", "status": NarrationStatus(status).value, "message": message})

    def publish_error(self, message: str) -> None:
        self._broadcast({"type": "error", "message": message})


class NarrationSession:
    """
    내레이션 세션
    명령(start/pause/resume/stop)과 캡처 이벤트를 받아 사이클 그래프를 실행합니다.
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        analysis_service=None,
        narration_service=None,
        prosody_service=None,
        speech_service=None,
        capture_service=None,
        status_channel: Optional[StatusChannel] = None,
        graph=None,
        clock: Callable[[], float] = time.time,
    ):
        from .services.analysis_service import AnalysisService
        from .services.narration_service import NarrationService
        from .services.prosody_service import ProsodyService

        self.config_manager = config_manager or get_default_config_manager()
        self.analysis_service = analysis_service or AnalysisService(config_manager=self.config_manager)
        self.narration_service = narration_service or NarrationService()
        self.prosody_service = prosody_service or ProsodyService()
        self.speech_service = speech_service
        self.capture_service = capture_service
        self.status_channel = status_channel or StatusChannel()
        self._graph = graph if graph is not None else compile_cycle_graph()
        self._clock = clock

        self.state = OperationState()
        self._lock = threading.RLock()
        self._cycle_lock = threading.Lock()
        self._run_id = 0
        self._cancel_event = threading.Event()
        self._cancel_event.set()
        self._status_before_pause: Optional[NarrationStatus] = None
        self._capture_thread: Optional[threading.Thread] = None
        self._cycle_thread: Optional[threading.Thread] = None

        if self.capture_service is not None:
            self.capture_service.on_stream_ended = lambda: self.capture_failed("Screen sharing ended")

    # ------------------------------------------------------------------
    # 상태 전이
    # ------------------------------------------------------------------

    def _transition(self, status: NarrationStatus, message: str, error: bool = False) -> None:
        """모든 상태 변경은 여기를 거침 (세션 락을 잡은 상태에서 호출)"""
        previous = self.state.status
        self.state.status = status
        self.state.last_message = message
        self.state.error_message = message if error else None
        if previous != status:
            print(f"[Session] {previous.value} -> {status.value}: {message}", flush=True)

    def _publish(self, status: NarrationStatus, message: str, error: bool = False) -> None:
        # 락 밖에서 호출
        self.status_channel.publish(status, message)
        if error:
            self.status_channel.publish_error(message)

    def _is_current(self, run_id: int) -> bool:
        return run_id == self._run_id

    def _advance(self, run_id: int, status: NarrationStatus, message: str) -> bool:
        """
        사이클 진행에 따른 전이. 일시정지 중이면 재개 후 상태만 갱신합니다.
        """
        with self._lock:
            if not self._is_current(run_id):
                return False
            if self.state.status in (NarrationStatus.IDLE, NarrationStatus.ERROR):
                return False
            if self.state.status == NarrationStatus.PAUSED:
                self._status_before_pause = status
                return False
            self._transition(status, message)
        self._publish(status, message)
        return True

    def _enter_error(self, run_id: Optional[int], message: str) -> bool:
        with self._lock:
            if run_id is not None and not self._is_current(run_id):
                return False
            if self.state.status in (NarrationStatus.IDLE, NarrationStatus.ERROR):
                return False
            # error에서는 캡처 루프를 끝냄, 새 start()가 루프를 다시 시작
            self._cancel_event.set()
            self._status_before_pause = None
            self._transition(NarrationStatus.ERROR, message, error=True)
        if self.speech_service is not None:
            self.speech_service.resume()
        print_error(message, context="session")
        self._publish(NarrationStatus.ERROR, message, error=True)
        return True

    # ------------------------------------------------------------------
    # 명령
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        idle 또는 error에서 capturing으로 전환하고 캡처 루프를 시작합니다.
        카운터는 idle에서 시작할 때만 초기화합니다.
        """
        with self._lock:
            if self.state.status not in (NarrationStatus.IDLE, NarrationStatus.ERROR):
                return False
            if self.state.status == NarrationStatus.IDLE or self.state.start_time is None:
                self.state.start_time = self._clock()
                self.state.capture_count = 0
                self.state.last_capture_time = None

            # 이전 실행(캡처 루프, 사이클)은 무효화
            self._cancel_event.set()
            self._run_id += 1
            self._cancel_event = threading.Event()
            run_id, cancel_event = self._run_id, self._cancel_event
            self._status_before_pause = None

            message = MSG_WAITING_FIRST_CAPTURE if self.state.capture_count == 0 else MSG_WAITING_NEXT_CAPTURE
            self._transition(NarrationStatus.CAPTURING, message)

        if self.speech_service is not None:
            self.speech_service.resume()
            # 음성 선택용 백엔드 목록 (캐시되므로 첫 start에서만 조회)
            self.speech_service.load_voices()
        self._publish(NarrationStatus.CAPTURING, message)

        if self.capture_service is not None:
            interval = self.config_manager.get_settings()["capture_interval"]
            self._capture_thread = threading.Thread(
                target=self._capture_loop,
                args=(run_id, cancel_event, interval),
                daemon=True,
            )
            self._capture_thread.start()
        return True

    def pause(self) -> bool:
        """진행 중인 발화만 멈추고, 카운터/타이머/캡처 루프는 그대로 둡니다."""
        with self._lock:
            if self.state.status not in PAUSABLE_STATUSES:
                return False
            self._status_before_pause = self.state.status
            self._transition(NarrationStatus.PAUSED, MSG_PAUSED)
        if self.speech_service is not None:
            self.speech_service.pause()
        self._publish(NarrationStatus.PAUSED, MSG_PAUSED)
        return True

    def resume(self) -> bool:
        """일시정지 직전 상태로 복귀 (그 사이 사이클이 끝났으면 capturing)"""
        with self._lock:
            if self.state.status != NarrationStatus.PAUSED:
                return False
            target = self._status_before_pause or NarrationStatus.CAPTURING
            self._status_before_pause = None
            message = _RESUME_MESSAGES.get(target, MSG_WAITING_NEXT_CAPTURE)
            self._transition(target, message)
        if self.speech_service is not None:
            self.speech_service.resume()
        self._publish(target, message)
        return True

    def stop(self) -> bool:
        """
        어떤 상태에서든 idle로. 재시도 대기, 캡처 타이머, 진행 중인 발화를 취소하고
        이전 내레이션/카운터/타이머를 초기화합니다.
        """
        with self._lock:
            self._cancel_event.set()
            self._run_id += 1
            self._status_before_pause = None
            self.state.reset()
            self._transition(NarrationStatus.IDLE, MSG_READY)
        if self.speech_service is not None:
            self.speech_service.stop()
        self._publish(NarrationStatus.IDLE, MSG_READY)

        if get_workflow_timing_summary():
            save_workflow_timing_log()
        reset_workflow_timing()
        return True

    def get_status(self) -> dict:
        """
        Returns:
            {"status", "capture_count", "uptime"} (uptime 초 단위)
        """
        with self._lock:
            uptime = 0.0
            if self.state.start_time is not None and self.state.status != NarrationStatus.IDLE:
                uptime = max(0.0, self._clock() - self.state.start_time)
            return {
                "status": self.state.status.value,
                "capture_count": self.state.capture_count,
                "uptime": round(uptime, 1),
            }

    def get_state(self) -> dict:
        with self._lock:
            data = self.state.to_dict()
        data.update(self.get_status())
        return data

    # ------------------------------------------------------------------
    # 캡처 이벤트
    # ------------------------------------------------------------------

    def capture_completed(
        self,
        image_bytes: bytes,
        timestamp: Optional[float] = None,
        mime_type: str = "image/png",
    ) -> bool:
        """
        캡처 한 장을 받아 사이클을 시작합니다.

        Returns:
            수락 여부 (capturing/paused가 아니거나 사이클이 진행 중이면 버림)

        일시정지 중에도 분석과 내레이션은 진행하며, 발화만 음성 서비스의 pause에서 대기합니다.
        """
        with self._lock:
            if self.state.status not in (NarrationStatus.CAPTURING, NarrationStatus.PAUSED):
                return False
            if not self._cycle_lock.acquire(blocking=False):
                return False

            self.state.capture_count += 1
            self.state.last_capture_time = timestamp if timestamp is not None else self._clock()
            capture_index = self.state.capture_count
            previous = self.state.previous_narration_text
            run_id, cancel_event = self._run_id, self._cancel_event
            paused = self.state.status == NarrationStatus.PAUSED
            if paused:
                self._status_before_pause = NarrationStatus.ANALYZING
            else:
                self._transition(NarrationStatus.ANALYZING, MSG_ANALYZING)

        if not paused:
            self._publish(NarrationStatus.ANALYZING, MSG_ANALYZING)

        self._cycle_thread = threading.Thread(
            target=self._run_cycle,
            args=(run_id, cancel_event, image_bytes, mime_type, capture_index, previous),
            daemon=True,
        )
        self._cycle_thread.start()
        return True

    def capture_failed(self, reason: str) -> bool:
        """캡처 실패/화면 공유 종료 -> 즉시 error (재시도 없음)"""
        with self._lock:
            if self.state.status in (NarrationStatus.IDLE, NarrationStatus.ERROR):
                return False
            self._cancel_event.set()
            self._run_id += 1
        return self._enter_error(None, ErrorHandler.user_message(CaptureError(reason)))

    def join_cycle(self, timeout: Optional[float] = None) -> None:
        """진행 중인 사이클 스레드가 끝날 때까지 대기"""
        thread = self._cycle_thread
        if thread is not None:
            thread.join(timeout)

    # ------------------------------------------------------------------
    # 백그라운드 스레드
    # ------------------------------------------------------------------

    def _capture_loop(self, run_id: int, cancel_event: threading.Event, interval: float) -> None:
        """즉시 한 번 캡처한 뒤 interval마다 캡처"""
        while not cancel_event.is_set():
            try:
                image_bytes = self.capture_service.capture_frame()
            except CaptureError as e:
                if self._is_current(run_id):
                    self.capture_failed(e.message)
                return
            except Exception as e:
                # 캡처 어댑터의 예상치 못한 예외도 캡처 실패로 처리
                log_error("Unexpected screen capture failure", context="capture", exception=e)
                if self._is_current(run_id):
                    self.capture_failed(str(e) or type(e).__name__)
                return
            if cancel_event.is_set():
                return
            if not self.capture_completed(image_bytes, self._clock()):
                print("  ⚠ Capture dropped (cycle in progress)", flush=True)
            if cancel_event.wait(interval):
                return

    def _cycle_config(self, cancel_event: threading.Event) -> dict:
        return {
            "configurable": {
                "analysis_service": self.analysis_service,
                "narration_service": self.narration_service,
                "prosody_service": self.prosody_service,
                "speech_service": self.speech_service,
                "cancel_event": cancel_event,
            }
        }

    def _run_cycle(
        self,
        run_id: int,
        cancel_event: threading.Event,
        image_bytes: bytes,
        mime_type: str,
        capture_index: int,
        previous: Optional[str],
    ) -> None:
        """사이클 그래프 실행 (백그라운드 스레드)"""
        try:
            settings = self.config_manager.get_settings()
            initial_state = create_cycle_state(image_bytes, capture_index, previous, settings, mime_type)
            final_state = self._run_graph_with_updates(run_id, initial_state, cancel_event)
            self._finish_cycle(run_id, final_state)
        except Exception as e:
            log_error(f"Cycle {capture_index} failed: {e}", context="session", exception=e)
            self._enter_error(run_id, ErrorHandler.user_message(e))
        finally:
            self._cycle_lock.release()

    def _run_graph_with_updates(self, run_id: int, initial_state: CycleState, cancel_event: threading.Event) -> CycleState:
        """그래프를 실행하면서 노드 완료마다 상태 전이"""
        final_state = initial_state
        for output in self._graph.stream(initial_state, config=self._cycle_config(cancel_event)):
            for node_name, state_update in output.items():
                if isinstance(state_update, dict):
                    final_state.update(state_update)
                if not self._is_current(run_id):
                    continue

                if node_name == "analyze" and not final_state.get("errors") and not final_state.get("cancelled"):
                    self._advance(run_id, NarrationStatus.NARRATING, MSG_NARRATING)
                elif node_name == "narrate" and final_state.get("segments") and not final_state.get("errors"):
                    self._advance(run_id, NarrationStatus.NARRATING, MSG_SPEAKING)
        return final_state

    def _finish_cycle(self, run_id: int, final_state: CycleState) -> None:
        if final_state.get("cancelled") or not self._is_current(run_id):
            return

        errors = final_state.get("errors", [])
        if errors:
            last = errors[-1]
            message = ErrorHandler.user_message_for_kind(last.get("error_kind"), last.get("error_message", ""))
            self._enter_error(run_id, message)
            return

        if final_state.get("skipped"):
            reason = final_state.get("skip_reason")
            if reason == SKIP_REDUNDANT:
                print(f"  ⚠ {MSG_SKIPPED_REDUNDANT}", flush=True)
            self._advance(run_id, NarrationStatus.CAPTURING, MSG_WAITING_NEXT_CAPTURE)
            return

        with self._lock:
            if not self._is_current(run_id):
                return
            baseline = final_state.get("narration_baseline")
            if baseline:
                self.state.previous_narration_text = baseline
        self._advance(run_id, NarrationStatus.CAPTURING, MSG_WAITING_NEXT_CAPTURE)
