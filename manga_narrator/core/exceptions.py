"""
Custom exceptions for Manga Narrator
에러 분류 체계 (auth / rate_limit / server / malformed_response / network / timeout / capture_failed)
"""
from enum import Enum
from typing import Optional

__all__ = [
    "ErrorKind",
    "NarratorError",
    "AnalysisError",
    "AnalysisCancelled",
    "CaptureError",
    "SpeechError",
]


class ErrorKind(str, Enum):
    """분류된 에러 종류"""
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    MALFORMED_RESPONSE = "malformed_response"
    NETWORK = "network"
    TIMEOUT = "timeout"
    CAPTURE_FAILED = "capture_failed"
    SPEECH_FAILED = "speech_failed"


# 재시도해도 해결되지 않는 에러 종류
NON_RETRYABLE_KINDS = frozenset({ErrorKind.AUTH, ErrorKind.MALFORMED_RESPONSE})


class NarratorError(Exception):
    """Base exception for all Manga Narrator errors"""

    kind: ErrorKind = ErrorKind.NETWORK

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class AnalysisError(NarratorError):
    """Vision analysis call failed"""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.NETWORK, attempts: int = 1):
        super().__init__(message, kind)
        self.attempts = attempts

    @property
    def is_retryable(self) -> bool:
        return self.kind not in NON_RETRYABLE_KINDS


class AnalysisCancelled(NarratorError):
    """Analysis was aborted because the session was stopped"""


class CaptureError(NarratorError):
    """Screen capture failed or the capture stream ended"""

    kind = ErrorKind.CAPTURE_FAILED


class SpeechError(NarratorError):
    """Speech synthesis or playback failed"""

    kind = ErrorKind.SPEECH_FAILED
