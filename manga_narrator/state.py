"""
State definition for the LangGraph narration cycle
"""
from typing import TypedDict, Optional

from .models.analysis import Analysis


class CycleState(TypedDict):
    """한 번의 캡처 사이클(analyze -> narrate -> speak) 동안 공유되는 상태"""

    # Input
    image_bytes: bytes  # 캡처된 페이지 이미지
    mime_type: str
    capture_index: int  # 세션 내 캡처 번호 (1부터)
    previous_narration: Optional[str]  # 직전 내레이션 (중복 판정 기준)

    # Configuration
    settings: dict  # build_settings() 결과 (speech_rate, voice 등)

    # Analyze output
    analysis: Optional[Analysis]

    # Narrate output
    segments: list  # NarrationSegment 리스트
    narration_baseline: Optional[str]  # 새 previous_narration 후보
    skipped: bool
    skip_reason: Optional[str]

    # Speak output
    spoken_count: int

    # 세션 정지로 중단됨
    cancelled: bool

    # Error tracking
    errors: list[dict]  # 에러 로그 (node_name, error_message, error_kind 포함)


def create_cycle_state(
    image_bytes: bytes,
    capture_index: int,
    previous_narration: Optional[str],
    settings: dict,
    mime_type: str = "image/png",
) -> CycleState:
    return CycleState(
        image_bytes=image_bytes,
        mime_type=mime_type,
        capture_index=capture_index,
        previous_narration=previous_narration,
        settings=settings,
        analysis=None,
        segments=[],
        narration_baseline=None,
        skipped=False,
        skip_reason=None,
        spoken_count=0,
        cancelled=False,
        errors=[],
    )
