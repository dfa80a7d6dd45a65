"""
Retry policy for vision analysis requests
재귀 대신 명시적인 반복문에서 사용할 수 있도록 지연 시간 계산과 재시도 판단을 순수 함수로 분리
"""
from .constants import ANALYSIS_BASE_DELAY_SEC, ANALYSIS_MAX_ATTEMPTS
from .exceptions import AnalysisError


def compute_backoff_delay(retry_number: int, base_delay: float = ANALYSIS_BASE_DELAY_SEC) -> float:
    """
    k번째 재시도 전에 대기할 시간을 계산합니다.

    retry_number=1 (두 번째 시도) -> base_delay
    retry_number=2 (세 번째 시도) -> base_delay * 2

    Args:
        retry_number: 1부터 시작하는 재시도 번호
        base_delay: 기본 대기 시간 (초)

    Returns:
        대기 시간 (초)
    """
    if retry_number < 1:
        raise ValueError(f"retry_number must be >= 1, got {retry_number}")
    return base_delay * (2 ** (retry_number - 1))


def should_retry(error: AnalysisError, attempt: int, max_attempts: int = ANALYSIS_MAX_ATTEMPTS) -> bool:
    """
    방금 실패한 시도 이후 다시 시도해야 하는지 판단합니다.

    Args:
        error: 분류된 분석 에러
        attempt: 방금 실패한 시도 번호 (1부터 시작)
        max_attempts: 총 시도 한도

    Returns:
        재시도 여부
    """
    if not error.is_retryable:
        return False
    return attempt < max_attempts
