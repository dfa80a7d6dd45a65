"""
Settings Builder
설정 화면/HTTP/CLI에서 받은 원시 설정값을 정규화된 설정 딕셔너리로 변환합니다.
"""
from typing import Any, Dict

from .core.constants import (
    DEFAULT_CAPTURE_INTERVAL_SEC,
    DEFAULT_SPEECH_RATE,
    DEFAULT_VISION_MODEL,
    GEMINI_MODEL_FLASH,
    GEMINI_MODEL_FLASH_LITE,
    GEMINI_MODEL_PRO,
    MAX_CAPTURE_INTERVAL_SEC,
    MAX_SPEECH_RATE,
    MIN_CAPTURE_INTERVAL_SEC,
    MIN_SPEECH_RATE,
)

# 설정 화면은 camelCase 키를 보냄
_KEY_ALIASES = {
    "apiKey": "api_key",
    "GOOGLE_API_KEY": "api_key",
    "speechRate": "speech_rate",
    "captureInterval": "capture_interval",
    "autoStart": "auto_start",
    "modelName": "model_name",
    "MODEL_NAME": "model_name",
}

SUPPORTED_VISION_MODELS = (GEMINI_MODEL_PRO, GEMINI_MODEL_FLASH, GEMINI_MODEL_FLASH_LITE)

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _to_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def build_settings(raw_settings: Dict[str, Any]) -> Dict[str, Any]:
    """
    원시 설정을 기반으로 완전한 설정 객체를 생성합니다.

    Args:
        raw_settings: 원시 설정 딕셔너리
            - api_key / apiKey: Gemini API 키
            - voice: 선호 음성 이름 (빈 문자열이면 성별 기본 음성)
            - speech_rate / speechRate: 기본 말하기 속도 (0.5 ~ 2.0)
            - capture_interval / captureInterval: 캡처 주기 초 (5 ~ 60)
            - auto_start / autoStart: 자동 시작 여부
            - model_name: Gemini 비전 모델

    Returns:
        정규화된 설정 딕셔너리 (알 수 없는 키는 그대로 보존)
    """
    settings: Dict[str, Any] = {}
    for key, value in (raw_settings or {}).items():
        settings[_KEY_ALIASES.get(key, key)] = value

    settings["api_key"] = str(settings.get("api_key") or "").strip()
    settings["voice"] = str(settings.get("voice") or "").strip()

    speech_rate = _to_float(settings.get("speech_rate"), DEFAULT_SPEECH_RATE)
    settings["speech_rate"] = _clamp(speech_rate, MIN_SPEECH_RATE, MAX_SPEECH_RATE)

    interval = _to_float(settings.get("capture_interval"), DEFAULT_CAPTURE_INTERVAL_SEC)
    settings["capture_interval"] = _clamp(interval, MIN_CAPTURE_INTERVAL_SEC, MAX_CAPTURE_INTERVAL_SEC)

    settings["auto_start"] = _to_bool(settings.get("auto_start", False))

    model_name = settings.get("model_name") or DEFAULT_VISION_MODEL
    if model_name not in SUPPORTED_VISION_MODELS:
        model_name = DEFAULT_VISION_MODEL
    settings["model_name"] = model_name

    return settings
