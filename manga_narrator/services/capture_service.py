"""
Screen Capture Service
mss로 화면을 PNG로 캡처
"""
from typing import Callable, Optional

import mss
import mss.tools
from mss.exception import ScreenShotError

from ..core.constants import DEFAULT_MONITOR_INDEX
from ..core.exceptions import CaptureError
from ..utils.logging import log_error


class ScreenCaptureService:
    """
    모니터 하나를 캡처합니다.
    캡처 루프 스레드에서 호출되므로 호출마다 mss 컨텍스트를 새로 엽니다.
    """

    def __init__(self, monitor_index: int = DEFAULT_MONITOR_INDEX):
        self.monitor_index = monitor_index
        # 화면 공유가 끝났을 때 세션이 연결하는 콜백
        self.on_stream_ended: Optional[Callable[[], None]] = None

    def capture_frame(self) -> bytes:
        """
        Returns:
            PNG 이미지 바이트

        Raises:
            CaptureError: 모니터가 없거나 캡처에 실패한 경우
        """
        try:
            with mss.mss() as sct:
                monitors = sct.monitors
                if len(monitors) <= 1:
                    # 모니터가 사라지면 화면 공유 종료로 알림
                    self.end_stream()
                    raise CaptureError("No display available for screen capture")
                index = self.monitor_index if 0 <= self.monitor_index < len(monitors) else 1
                shot = sct.grab(monitors[index])
                return mss.tools.to_png(shot.rgb, shot.size)
        except ScreenShotError as e:
            log_error("Screen capture failed", context="capture", exception=e)
            raise CaptureError(str(e)) from e

    def end_stream(self) -> None:
        """캡처 소스가 사라졌음을 알립니다."""
        if self.on_stream_ended is not None:
            self.on_stream_ended()
