"""
Error Handler for standardized error handling across nodes and the session
"""
from typing import Optional, Dict, Any
from .exceptions import ErrorKind
from ..utils.logging import log_error, print_error, print_warning


# 사용자에게 보여줄 안내 메시지 (에러 종류별)
_USER_MESSAGES = {
    ErrorKind.AUTH: "Gemini API key not configured or invalid. Please add your API key in Settings.",
    ErrorKind.RATE_LIMIT: "API rate limit exceeded. Please wait a moment and try again.",
    ErrorKind.MALFORMED_RESPONSE: "The vision model returned an unreadable response. Narration will continue with the next page.",
}
_TRANSIENT_MESSAGE = "Could not reach the vision service. Check your connection and try again."


def error_kind_of(error: BaseException) -> Optional[ErrorKind]:
    """예외에 붙은 ErrorKind를 반환 (분류되지 않은 예외면 None)"""
    kind = getattr(error, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind
    return None


class ErrorHandler:
    """
    공통 에러 처리 로직을 통합한 클래스
    노드별 에러 포맷팅과 사용자 메시지를 표준화
    """

    @staticmethod
    def handle_node_error(
        node_name: str,
        error: Exception,
        segment_id: Optional[int] = None,
        context: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        노드에서 발생한 에러를 표준 형식으로 처리합니다.

        Args:
            node_name: 노드 이름 (예: "analyze", "narrate", "speak")
            error: 발생한 예외
            segment_id: 세그먼트 번호 (해당되는 경우)
            context: 추가 컨텍스트 정보

        Returns:
            표준화된 에러 정보 딕셔너리
        """
        kind = error_kind_of(error)
        error_info = {
            "node_name": node_name,
            "error_message": str(error),
            "error_type": type(error).__name__,
            "error_kind": kind.value if kind else None,
            "segment_id": segment_id,
        }

        if context:
            error_info["context"] = context

        log_error(
            f"{node_name} error" + (f" (segment {segment_id})" if segment_id is not None else ""),
            context=context or node_name,
            exception=error
        )

        print_error(
            f"{node_name} failed: {str(error)}",
            context=context or node_name,
        )

        return error_info

    @staticmethod
    def handle_warning(
        node_name: str,
        message: str,
        segment_id: Optional[int] = None,
        context: Optional[str] = None
    ) -> None:
        """
        경고 메시지를 표준 형식으로 처리합니다.
        """
        full_message = message
        if segment_id is not None:
            full_message = f"Segment {segment_id}: {message}"

        print_warning(full_message, context=context or node_name)

    @staticmethod
    def user_message(error: BaseException) -> str:
        """
        사용자에게 표시할 행동 가능한 에러 메시지를 만듭니다.

        Args:
            error: 발생한 예외 (NarratorError 계열이면 kind 기준으로 분기)

        Returns:
            상태 표시줄에 그대로 보여줄 메시지
        """
        detail = getattr(error, "message", None) or str(error)
        return ErrorHandler.user_message_for_kind(error_kind_of(error), detail)

    @staticmethod
    def user_message_for_kind(kind, detail: str = "") -> str:
        """handle_node_error()가 남긴 error_kind 문자열도 허용"""
        if kind is not None and not isinstance(kind, ErrorKind):
            try:
                kind = ErrorKind(kind)
            except ValueError:
                kind = None

        if kind in _USER_MESSAGES:
            return _USER_MESSAGES[kind]
        if kind in (ErrorKind.SERVER, ErrorKind.NETWORK, ErrorKind.TIMEOUT):
            return _TRANSIENT_MESSAGE
        if kind == ErrorKind.CAPTURE_FAILED:
            return f"Screen capture failed: {detail}"
        if kind == ErrorKind.SPEECH_FAILED:
            return f"Text-to-speech failed: {detail}"
        return f"Unexpected error: {detail}"
