"""
Prosody Service
감정/성별이 반영된 세그먼트를 TTS 음성 파라미터로 매핑
"""
from typing import Dict, Iterable, Optional, Tuple

from ..core.constants import DEFAULT_SPEECH_RATE, LANG_EN_FULL, TTS_MAX_SPEAKING_RATE, TTS_MIN_SPEAKING_RATE
from ..models.narration import Emotion, Gender, NarrationSegment
from ..models.voice import VoiceInfo, VoiceParams, default_voice_for

# emotion -> (속도 배수, 피치 semitones)
PROSODY_TABLE: Dict[Emotion, Tuple[float, float]] = {
    Emotion.EXCITED: (1.15, 2.0),
    Emotion.SHOUTING: (1.20, 3.0),
    Emotion.SAD: (0.90, -2.0),
    Emotion.WHISPER: (0.85, -1.0),
    Emotion.SURPRISED: (1.10, 2.5),
    Emotion.ANGRY: (1.0, 0.0),
    Emotion.NEUTRAL: (1.0, 0.0),
}


def clamp_speaking_rate(rate: float) -> float:
    return max(TTS_MIN_SPEAKING_RATE, min(TTS_MAX_SPEAKING_RATE, rate))


class ProsodyService:
    """세그먼트 -> VoiceParams"""

    def __init__(self, language_code: str = LANG_EN_FULL):
        self.language_code = language_code

    def select_voice(
        self,
        wanted: str,
        gender: Gender,
        available_voices: Optional[Iterable[VoiceInfo]] = None,
    ) -> str:
        """
        백엔드가 나열한 음성 중에서 wanted에 가장 가까운 음성을 고릅니다.

        우선순위: 정확한 이름 > 이름 포함 (같은 로케일 우선) > 같은 로케일의 같은 성별 > 같은 로케일 > 첫 음성
        """
        voices = list(available_voices or [])
        if not voices:
            return wanted

        for voice in voices:
            if voice.name == wanted:
                return voice.name

        in_locale = [voice for voice in voices if voice.supports(self.language_code)]
        lowered = wanted.lower()
        if lowered:
            for voice in in_locale + voices:
                if lowered in voice.name.lower():
                    return voice.name

        for voice in in_locale:
            if voice.gender == gender:
                return voice.name

        if in_locale:
            return in_locale[0].name
        return voices[0].name

    def map_to_voice_params(
        self,
        segment: NarrationSegment,
        base_rate: float = DEFAULT_SPEECH_RATE,
        preferred_voice: Optional[str] = None,
        available_voices: Optional[Iterable[VoiceInfo]] = None,
    ) -> VoiceParams:
        """
        Args:
            segment: 내레이션 세그먼트
            base_rate: 사용자 설정 기본 속도
            preferred_voice: 설정의 선호 음성 (neutral 화자에만 적용)
            available_voices: 백엔드 음성 목록 (없으면 음성 뱅크 기본값 사용)

        Returns:
            VoiceParams
        """
        multiplier, pitch = PROSODY_TABLE.get(segment.emotion, PROSODY_TABLE[Emotion.NEUTRAL])
        speed = clamp_speaking_rate(base_rate * multiplier)

        gender = Gender.normalize(segment.gender)
        wanted = default_voice_for(gender)
        if gender == Gender.NEUTRAL and preferred_voice:
            wanted = preferred_voice

        voice_name = self.select_voice(wanted, gender, available_voices)
        return VoiceParams(
            voice_name=voice_name,
            language_code=self.language_code,
            speed=speed,
            pitch=pitch,
            gender=gender,
        )
