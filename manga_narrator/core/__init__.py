"""
Core modules for Manga Narrator
"""
from .constants import (
    ANALYSIS_MAX_ATTEMPTS,
    ANALYSIS_BASE_DELAY_SEC,
    ANALYSIS_TIME_LIMIT_SEC,
    REDUNDANCY_THRESHOLD,
    DEFAULT_CAPTURE_INTERVAL_SEC,
    DEFAULT_SPEECH_RATE,
)
from .exceptions import (
    ErrorKind,
    NarratorError,
    AnalysisError,
    AnalysisCancelled,
    CaptureError,
    SpeechError,
)
from .retry import compute_backoff_delay, should_retry

# ErrorHandler / ConfigManager는 config, utils에 의존하므로 re-export하지 않음

__all__ = [
    "ErrorKind",
    "NarratorError",
    "AnalysisError",
    "AnalysisCancelled",
    "CaptureError",
    "SpeechError",
    "compute_backoff_delay",
    "should_retry",
    # Constants
    "ANALYSIS_MAX_ATTEMPTS",
    "ANALYSIS_BASE_DELAY_SEC",
    "ANALYSIS_TIME_LIMIT_SEC",
    "REDUNDANCY_THRESHOLD",
    "DEFAULT_CAPTURE_INTERVAL_SEC",
    "DEFAULT_SPEECH_RATE",
]
