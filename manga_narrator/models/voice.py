"""
Voice bank definitions and voice-related metadata
"""
from dataclasses import dataclass, field
from typing import Tuple

from ..core.constants import LANG_EN_FULL
from .narration import Gender

# Gemini-TTS speaker 이름 (언어 코드 접두사 없이 사용)
VOICE_BANKS = {
    "female": {
        "label": "Female voices",
        "description": "Warm female voices for female speakers",
        "default": "Achernar",
        "voices": [
            {"name": "Achernar", "display": "Achernar", "gender": "FEMALE"},
            {"name": "Aoede", "display": "Aoede", "gender": "FEMALE"},
            {"name": "Kore", "display": "Kore", "gender": "FEMALE"},
            {"name": "Leda", "display": "Leda", "gender": "FEMALE"},
            {"name": "Sulafat", "display": "Sulafat", "gender": "FEMALE"},
        ],
    },
    "male": {
        "label": "Male voices",
        "description": "Deeper voices for male speakers",
        "default": "Achird",
        "voices": [
            {"name": "Achird", "display": "Achird", "gender": "MALE"},
            {"name": "Charon", "display": "Charon", "gender": "MALE"},
            {"name": "Fenrir", "display": "Fenrir", "gender": "MALE"},
            {"name": "Orus", "display": "Orus", "gender": "MALE"},
            {"name": "Puck", "display": "Puck", "gender": "MALE"},
        ],
    },
    "neutral": {
        "label": "Narrator voices",
        "description": "Balanced narrator voices for unknown speakers",
        "default": "Zephyr",
        "voices": [
            {"name": "Zephyr", "display": "Zephyr", "gender": "NEUTRAL"},
            {"name": "Sadaltager", "display": "Sadaltager", "gender": "NEUTRAL"},
            {"name": "Umbriel", "display": "Umbriel", "gender": "NEUTRAL"},
        ],
    },
}


def default_voice_for(gender: Gender) -> str:
    bank = VOICE_BANKS.get(Gender.normalize(gender).value, VOICE_BANKS["neutral"])
    return bank["default"]


@dataclass(frozen=True)
class VoiceParams:
    """한 세그먼트를 읽을 때 사용할 음성 파라미터"""
    voice_name: str
    language_code: str = LANG_EN_FULL
    speed: float = 1.0
    pitch: float = 0.0
    gender: Gender = Gender.NEUTRAL


@dataclass(frozen=True)
class VoiceInfo:
    """TTS 백엔드가 나열한 음성 하나"""
    name: str
    language_codes: Tuple[str, ...] = field(default_factory=tuple)
    gender: Gender = Gender.NEUTRAL

    def supports(self, language_code: str) -> bool:
        return language_code in self.language_codes

