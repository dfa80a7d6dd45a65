"""
Narration Service
분석 결과(Analysis)를 읽기 순서에 따른 감정 내레이션 세그먼트로 변환
"""
import re
from typing import Iterable, List, Optional, Set

from ..core.constants import REDUNDANCY_THRESHOLD
from ..models.analysis import Analysis, Character, Panel
from ..models.narration import Emotion, Gender, NarrationResult, NarrationSegment

SKIP_NO_PANELS = "no_panels"
SKIP_NO_DIALOGUE = "no_dialogue"
SKIP_REDUNDANT = "redundant"

# 우선순위 순서, 처음 일치하는 규칙 적용
EMOTION_RULES = (
    (re.compile(r"excit|happy|joy"), Emotion.EXCITED),
    (re.compile(r"sad|cry|tear"), Emotion.SAD),
    (re.compile(r"angry|mad|furious"), Emotion.ANGRY),
    (re.compile(r"shock|surprise|amaz"), Emotion.SURPRISED),
    (re.compile(r"whisper|quiet"), Emotion.WHISPER),
    (re.compile(r"shout|yell|scream"), Emotion.SHOUTING),
)

_TERMINAL_PUNCT = re.compile(r"[.!?]+$")
_SPEECH_STRIP_CHARS = re.compile(r"[*_~`]")


def _words(text: str) -> Set[str]:
    return set((text or "").lower().split())


def compute_overlap(current: str, previous: str) -> float:
    """
    두 텍스트의 단어 겹침 비율: |A ∩ B| / max(|A|, |B|)
    둘 다 비어 있으면 0.0
    """
    current_words = _words(current)
    previous_words = _words(previous)
    largest = max(len(current_words), len(previous_words))
    if largest == 0:
        return 0.0
    return len(current_words & previous_words) / largest


def is_redundant(current: str, previous: Optional[str], threshold: float = REDUNDANCY_THRESHOLD) -> bool:
    """겹침 비율이 threshold를 초과하면 중복 (정확히 같으면 중복 아님)"""
    if not previous:
        return False
    return compute_overlap(current, previous) > threshold


def infer_emotion(emotions: Iterable[str], expressions: Iterable[str] = ()) -> Emotion:
    """패널의 감정 + 캐릭터 표정 텍스트에서 감정을 추론합니다."""
    context = " ".join(list(emotions) + list(expressions)).lower()
    for pattern, emotion in EMOTION_RULES:
        if pattern.search(context):
            return emotion
    return Emotion.NEUTRAL


def _without_terminal(text: str) -> str:
    return _TERMINAL_PUNCT.sub("", text.rstrip())


def apply_emotion(text: str, emotion: Emotion) -> str:
    """
    감정에 맞게 대사 문장부호/대소문자를 바꿉니다.

    Args:
        text: ". "로 합쳐진 대사
        emotion: 추론된 감정

    Returns:
        변환된 텍스트 (neutral이면 그대로)
    """
    if emotion == Emotion.EXCITED:
        return _without_terminal(text.replace(".", "!")) + "!"
    if emotion == Emotion.SAD:
        return re.sub(r"\.+|,", "...", text)
    if emotion == Emotion.ANGRY:
        return _without_terminal(text.upper().replace(".", "!")) + "!"
    if emotion == Emotion.SURPRISED:
        return _without_terminal(text.replace(".", "?!")) + "?!"
    if emotion == Emotion.WHISPER:
        body = re.sub(r"\.+", "...", text).strip(". ")
        return f"...{body}..."
    if emotion == Emotion.SHOUTING:
        return _without_terminal(text.upper()) + "!!"
    return text


def format_for_speech(text: str) -> str:
    """공백 정리, TTS에 방해되는 기호 제거, 문장 끝 부호 보장"""
    formatted = re.sub(r"\s+", " ", text or "").strip()
    formatted = _SPEECH_STRIP_CHARS.sub("", formatted).strip()
    if formatted and formatted[-1] not in ".!?":
        formatted += "."
    return formatted


def pick_speaker(characters: List[Character]) -> Optional[Character]:
    for character in characters:
        if character.is_speaking:
            return character
    return characters[0] if characters else None


class NarrationService:
    """
    Analysis -> NarrationResult 변환기 (순수 로직, 외부 호출 없음)
    """

    def __init__(self, redundancy_threshold: float = REDUNDANCY_THRESHOLD):
        self.redundancy_threshold = redundancy_threshold

    # 모듈 함수들을 서비스 인터페이스로도 노출
    infer_emotion = staticmethod(infer_emotion)
    apply_emotion = staticmethod(apply_emotion)
    compute_overlap = staticmethod(compute_overlap)
    format_for_speech = staticmethod(format_for_speech)

    def is_redundant(self, current: str, previous: Optional[str]) -> bool:
        return is_redundant(current, previous, self.redundancy_threshold)

    def ordered_panels(self, analysis: Analysis) -> List[Panel]:
        """
        reading_order를 따라 패널을 나열합니다.
        범위 밖, 음수, 정수가 아닌 값, 중복 인덱스는 건너뜁니다.
        """
        panels: List[Panel] = []
        seen: Set[int] = set()
        for index in analysis.reading_order:
            if isinstance(index, bool) or not isinstance(index, int):
                continue
            if index < 0 or index >= len(analysis.panels) or index in seen:
                continue
            seen.add(index)
            panels.append(analysis.panels[index])
        return panels

    def build_segment(self, panel: Panel) -> Optional[NarrationSegment]:
        # 기호만 있는 대사는 읽을 내용이 없으므로 빈 줄로 취급
        lines = [_SPEECH_STRIP_CHARS.sub("", line).strip() for line in panel.dialogue]
        lines = [line for line in lines if line]
        if not lines:
            return None

        speaker = pick_speaker(panel.characters)
        gender = speaker.gender if speaker else Gender.NEUTRAL
        expressions = [character.expression for character in panel.characters]
        emotion = infer_emotion(panel.emotions, expressions)

        text = apply_emotion(". ".join(lines), emotion)
        return NarrationSegment(text=text, gender=gender, emotion=emotion)

    def generate(self, analysis: Analysis, previous_text: Optional[str] = None) -> NarrationResult:
        """
        분석 결과로 내레이션을 생성합니다.

        Args:
            analysis: 페이지 분석 결과
            previous_text: 직전에 읽은 내레이션 (중복 판정 기준)

        Returns:
            NarrationResult (SKIP이면 skipped=True, reason 설정)
        """
        if not analysis.panels:
            return NarrationResult.skip(SKIP_NO_PANELS)

        segments = []
        for panel in self.ordered_panels(analysis):
            segment = self.build_segment(panel)
            if segment is not None:
                segments.append(segment)

        if not segments:
            return NarrationResult.skip(SKIP_NO_DIALOGUE)

        combined = " ".join(segment.text for segment in segments)
        if previous_text and self.is_redundant(combined, previous_text):
            return NarrationResult.skip(SKIP_REDUNDANT)

        return NarrationResult(segments=segments, baseline=combined)
