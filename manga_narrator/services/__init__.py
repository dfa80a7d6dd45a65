"""
Service modules for Manga Narrator
"""
from .response_parser import ResponseParser
from .analysis_service import AnalysisService
from .narration_service import NarrationService
from .prosody_service import ProsodyService
from .tts_service import SpeechService, RenderResult
from .capture_service import ScreenCaptureService

__all__ = [
    "ResponseParser",
    "AnalysisService",
    "NarrationService",
    "ProsodyService",
    "SpeechService",
    "RenderResult",
    "ScreenCaptureService",
]
