"""
Narration data types
내레이션 세그먼트와 생성 결과
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    NEUTRAL = "neutral"

    @classmethod
    def normalize(cls, value) -> "Gender":
        """알 수 없는 값은 neutral로"""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        return cls.NEUTRAL


class Emotion(str, Enum):
    NEUTRAL = "neutral"
    EXCITED = "excited"
    SAD = "sad"
    ANGRY = "angry"
    SURPRISED = "surprised"
    WHISPER = "whisper"
    SHOUTING = "shouting"


@dataclass(frozen=True)
class NarrationSegment:
    """패널 하나의 대사를 감정이 반영된 문장으로 만든 단위"""
    text: str
    gender: Gender = Gender.NEUTRAL
    emotion: Emotion = Emotion.NEUTRAL


@dataclass(frozen=True)
class NarrationResult:
    """
    NarrationService.generate()의 결과

    skipped=True이면 segments는 비어 있고 baseline은 None (이전 기준 유지)
    """
    segments: List[NarrationSegment] = field(default_factory=list)
    baseline: Optional[str] = None
    skipped: bool = False
    reason: Optional[str] = None

    @classmethod
    def skip(cls, reason: str) -> "NarrationResult":
        return cls(segments=[], baseline=None, skipped=True, reason=reason)
