"""
Analysis Service for manga page vision analysis
Gemini 비전 모델 호출, 에러 분류, 재시도, 시간 검증을 담당
"""
import concurrent.futures
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import google.generativeai as genai
from google.api_core import exceptions as api_exceptions

from ..core.config_manager import ConfigManager, get_default_config_manager
from ..core.constants import (
    ANALYSIS_BASE_DELAY_SEC,
    ANALYSIS_MAX_ATTEMPTS,
    ANALYSIS_MAX_OUTPUT_TOKENS,
    ANALYSIS_REQUEST_TIMEOUT_SEC,
    ANALYSIS_TEMPERATURE,
    ANALYSIS_TIME_LIMIT_SEC,
    DEFAULT_VISION_MODEL,
)
from ..core.exceptions import AnalysisCancelled, AnalysisError, ErrorKind
from ..core.retry import compute_backoff_delay, should_retry
from ..models.analysis import Analysis
from ..utils.logging import log_error, print_warning
from .response_parser import ResponseParser


ANALYSIS_PROMPT = """You are analyzing a manga page. Please provide a detailed analysis in the following JSON format:

{
  "overallScene": "Brief description of the overall scene and atmosphere",
  "readingOrder": [0, 1, 2],
  "panels": [
    {
      "id": 0,
      "setting": "Description of the panel's setting/background",
      "characters": [
        {
          "description": "Character appearance and identity",
          "position": "Where they are in the panel",
          "expression": "Facial expression and body language",
          "gender": "male or female",
          "isSpeaking": true
        }
      ],
      "actions": ["Action 1", "Action 2"],
      "emotions": ["Emotion 1", "Emotion 2"],
      "dialogue": ["Dialogue line 1", "Dialogue line 2"]
    }
  ]
}

Instructions:
1. Identify all manga panels in the image
2. Determine the reading order (right-to-left, top-to-bottom for Japanese manga)
3. For each panel, describe the setting, the visible characters, the actions, the emotions and any readable dialogue
4. For characters: identify their gender (male/female) and mark "isSpeaking": true for the character speaking the dialogue
5. For dialogue: extract the text EXACTLY as written, in casual natural language, without added explanations
6. Provide the overall scene context

Return ONLY the JSON object, no additional text."""

MISSING_API_KEY_MESSAGE = "Gemini API key not configured"

_INVALID_KEY_MARKERS = ("api_key_invalid", "api key not valid", "invalid api key")
_RATE_LIMIT_MARKERS = ("429", "quota", "rate limit")


def classify_error(error: BaseException) -> ErrorKind:
    """
    비전 API 호출 예외를 ErrorKind로 분류합니다.

    Args:
        error: generate_content 호출 중 발생한 예외

    Returns:
        ErrorKind (auth / rate_limit / timeout / server / network)
    """
    message = str(error).lower()

    if isinstance(error, (api_exceptions.Unauthenticated, api_exceptions.PermissionDenied)):
        return ErrorKind.AUTH
    if any(marker in message for marker in _INVALID_KEY_MARKERS):
        return ErrorKind.AUTH

    if isinstance(error, (api_exceptions.ResourceExhausted, api_exceptions.TooManyRequests)):
        return ErrorKind.RATE_LIMIT
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMIT

    # TimeoutError는 OSError의 하위 클래스이므로 network보다 먼저 확인
    if isinstance(error, (api_exceptions.DeadlineExceeded, TimeoutError, concurrent.futures.TimeoutError)):
        return ErrorKind.TIMEOUT

    if isinstance(error, api_exceptions.ServerError):
        return ErrorKind.SERVER

    if isinstance(error, (ConnectionError, OSError, api_exceptions.RetryError)):
        return ErrorKind.NETWORK

    if isinstance(error, api_exceptions.GoogleAPICallError):
        return ErrorKind.SERVER

    return ErrorKind.NETWORK


class AnalysisService:
    """
    만화 페이지 이미지를 Gemini 비전 모델로 분석하는 서비스
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        parser: Optional[ResponseParser] = None,
        max_attempts: int = ANALYSIS_MAX_ATTEMPTS,
        base_delay: float = ANALYSIS_BASE_DELAY_SEC,
        request_timeout: float = ANALYSIS_REQUEST_TIMEOUT_SEC,
        time_limit: float = ANALYSIS_TIME_LIMIT_SEC,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config_manager = config_manager or get_default_config_manager()
        self._parser = parser or ResponseParser()
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.request_timeout = request_timeout
        self.time_limit = time_limit
        self._sleep = sleep
        self._clock = clock
        self.last_elapsed: Optional[float] = None
        self.last_timing_ok: Optional[bool] = None

    def analyze(
        self,
        image_bytes: bytes,
        mime_type: str = "image/png",
        cancel_event: Optional[threading.Event] = None,
    ) -> Analysis:
        """
        이미지 한 장을 분석합니다.

        Args:
            image_bytes: 캡처된 이미지 바이트
            mime_type: 이미지 MIME 타입
            cancel_event: 세션 정지 시 set되는 이벤트 (재시도 대기 중단)

        Returns:
            Analysis (응답이 깨져 있으면 fallback 분석)

        Raises:
            AnalysisError: 호출이 실패했고 재시도 한도를 소진한 경우 (auth는 즉시)
            AnalysisCancelled: 대기 중 세션이 정지된 경우
        """
        settings = self._config_manager.get_settings()
        api_key = (settings.get("api_key") or "").strip()
        if not api_key:
            raise AnalysisError(MISSING_API_KEY_MESSAGE, kind=ErrorKind.AUTH, attempts=0)
        model_name = settings.get("model_name") or DEFAULT_VISION_MODEL

        started = self._clock()
        last_error: Optional[AnalysisError] = None

        for attempt in range(1, self.max_attempts + 1):
            self._check_cancelled(cancel_event)
            try:
                raw_text = self._generate(api_key, model_name, image_bytes, mime_type)
            except Exception as e:
                kind = classify_error(e)
                last_error = AnalysisError(str(e) or type(e).__name__, kind=kind, attempts=attempt)
                print_warning(
                    f"Vision analysis attempt {attempt}/{self.max_attempts} failed ({kind.value}): {e}",
                    context="analysis",
                )
                log_error(f"Vision analysis attempt {attempt} failed ({kind.value})", context="analysis", exception=e)

                if not should_retry(last_error, attempt, self.max_attempts):
                    break
                delay = compute_backoff_delay(attempt, self.base_delay)
                print(f"⏱️  Retrying vision analysis in {delay:.1f}s... (Attempt {attempt + 1}/{self.max_attempts})", flush=True)
                self._wait(delay, cancel_event)
                continue

            self._check_cancelled(cancel_event)
            analysis = self._parser.parse(raw_text)
            self.validate_analysis_timing(self._clock() - started)
            return analysis

        attempts = last_error.attempts
        noun = "attempt" if attempts == 1 else "attempts"
        raise AnalysisError(
            f"Vision analysis failed after {attempts} {noun}: {last_error.message}",
            kind=last_error.kind,
            attempts=attempts,
        )

    def validate_analysis_timing(self, elapsed: float) -> bool:
        """
        분석 소요 시간이 목표(기본 5초) 안인지 확인합니다.
        초과해도 결과는 그대로 사용하며 경고만 남깁니다.
        """
        self.last_elapsed = elapsed
        self.last_timing_ok = elapsed <= self.time_limit
        if not self.last_timing_ok:
            message = f"Vision analysis took {elapsed:.2f}s (target {self.time_limit:.1f}s)"
            print_warning(message, context="analysis")
            log_error(message, context="analysis_timing")
        return self.last_timing_ok

    def _check_cancelled(self, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelled("Vision analysis cancelled")

    def _wait(self, delay: float, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is None:
            self._sleep(delay)
            return
        if cancel_event.wait(delay):
            raise AnalysisCancelled("Vision analysis cancelled during retry backoff")

    def _generate(self, api_key: str, model_name: str, image_bytes: bytes, mime_type: str) -> str:
        """
        Gemini generate_content 단일 호출 (타임아웃 적용)

        Returns:
            응답 텍스트 (차단/빈 응답이면 빈 문자열)
        """
        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(model_name)
        generation_config = genai.types.GenerationConfig(
            max_output_tokens=ANALYSIS_MAX_OUTPUT_TOKENS,
            temperature=ANALYSIS_TEMPERATURE,
            response_mime_type="application/json",
        )

        # 타임아웃 후 워커 스레드를 기다리지 않음
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(
                model.generate_content,
                [ANALYSIS_PROMPT, {"mime_type": mime_type, "data": image_bytes}],
                generation_config=generation_config,
            )
            response = future.result(timeout=self.request_timeout)
        finally:
            executor.shutdown(wait=False)

        return self._response_text(response)

    @staticmethod
    def _response_text(response) -> str:
        try:
            return response.text or ""
        except ValueError as e:
            # 안전 필터 등으로 후보가 없으면 .text 접근 시 ValueError
            print_warning(f"Vision response has no readable text: {e}", context="analysis")
            return ""
