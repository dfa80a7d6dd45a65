"""
Data models and metadata for Manga Narrator
"""
from .narration import Gender, Emotion, NarrationSegment, NarrationResult
from .analysis import Analysis, Panel, Character
from .voice import VOICE_BANKS, VoiceParams, VoiceInfo, default_voice_for

__all__ = [
    "Gender",
    "Emotion",
    "NarrationSegment",
    "NarrationResult",
    "Analysis",
    "Panel",
    "Character",
    "VOICE_BANKS",
    "VoiceParams",
    "VoiceInfo",
    "default_voice_for",
]
