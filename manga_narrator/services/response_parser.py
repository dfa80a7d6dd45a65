"""
Response Parser for vision model output
비전 모델 응답 텍스트를 Analysis로 변환 (절대 예외를 던지지 않음)
"""
import json
import re
from typing import Any, Optional

from pydantic import ValidationError

from ..core.constants import FALLBACK_OVERALL_SCENE, FALLBACK_PANEL_SETTING
from ..models.analysis import Analysis, Panel
from ..utils.logging import print_warning

_FENCE_START = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_END = re.compile(r"\s*```$")


def extract_json_text(response_text: Optional[str]) -> str:
    """
    응답 텍스트 앞뒤의 ```json / ``` 코드 펜스를 제거합니다.
    """
    if not response_text:
        return ""
    text = response_text.strip()
    text = _FENCE_START.sub("", text)
    text = _FENCE_END.sub("", text)
    return text.strip()


def _braces_slice(text: str) -> Optional[str]:
    first = text.find("{")
    last = text.rfind("}")
    if first != -1 and last > first:
        return text[first:last + 1]
    return None


def build_fallback_analysis() -> Analysis:
    """파싱할 수 없는 응답에 대한 고정 결과"""
    return Analysis(
        overall_scene=FALLBACK_OVERALL_SCENE,
        reading_order=[0],
        panels=[Panel(id=0, setting=FALLBACK_PANEL_SETTING)],
    )


class ResponseParser:
    """
    LLM 응답 텍스트를 검증된 Analysis로 변환합니다.
    """

    def _decode(self, text: str) -> Any:
        try:
            return json.loads(text)
        except ValueError:
            candidate = _braces_slice(text)
            if candidate is None:
                raise
            return json.loads(candidate)

    def parse(self, raw_text: Optional[str]) -> Analysis:
        """
        Args:
            raw_text: 비전 모델이 반환한 원본 텍스트 (빈 문자열 허용)

        Returns:
            Analysis (실패 시 build_fallback_analysis())
        """
        text = extract_json_text(raw_text)
        if not text:
            print_warning("Empty analysis response, using fallback", context="response_parser")
            return build_fallback_analysis()

        try:
            payload = self._decode(text)
        except ValueError as e:
            print_warning(f"Analysis response is not valid JSON: {e}", context="response_parser")
            return build_fallback_analysis()

        if not isinstance(payload, dict):
            print_warning(
                f"Analysis response is {type(payload).__name__}, expected an object",
                context="response_parser",
            )
            return build_fallback_analysis()

        try:
            return Analysis.model_validate(payload)
        except ValidationError as e:
            print_warning(f"Analysis response failed validation: {e.error_count()} error(s)", context="response_parser")
            return build_fallback_analysis()
