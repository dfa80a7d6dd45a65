"""
Speech Service for text-to-speech rendering
Cloud TTS 합성 + 오디오 싱크 출력 + 재생 시간만큼 대기 (일시정지/정지 지원)
"""
import re
import threading
import time
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Callable, List, Optional

from google.cloud import texttospeech
from pydub import AudioSegment

from .. import config
from ..core.constants import (
    DEFAULT_TTS_MODEL,
    ESTIMATED_CHARS_PER_SECOND,
    EXT_MP3,
    LANG_EN_FULL,
    PLAYBACK_POLL_INTERVAL_SEC,
)
from ..core.exceptions import SpeechError
from ..models.narration import Gender
from ..models.voice import VoiceInfo, VoiceParams
from ..utils.logging import log_error, print_warning

# (audio_bytes, segment_index) -> 저장 위치
AudioSink = Callable[[bytes, int], Optional[Path]]

_SSML_GENDERS = {
    "MALE": Gender.MALE,
    "FEMALE": Gender.FEMALE,
}


@dataclass
class RenderResult:
    text: str
    voice_name: str
    duration_seconds: float
    audio_path: Optional[Path] = None
    completed: bool = True


def estimate_duration(text: str) -> float:
    """재생 시간 추정 (초당 15자)"""
    return len(text or "") / ESTIMATED_CHARS_PER_SECOND


class SpeechService:
    """
    TTS 관련 기능을 통합한 서비스 클래스
    render()는 발화가 끝날 때까지 블록됩니다.
    """

    def __init__(
        self,
        tts_model_name: str = DEFAULT_TTS_MODEL,
        audio_sink: Optional[AudioSink] = None,
        output_dir: Optional[Path] = None,
        clock: Callable[[], float] = time.monotonic,
        poll_interval: float = PLAYBACK_POLL_INTERVAL_SEC,
    ):
        self.tts_model_name = tts_model_name
        self.output_dir = Path(output_dir) if output_dir else None
        self._audio_sink = audio_sink or self._write_segment_file
        self._clock = clock
        self.poll_interval = poll_interval
        self._client = None
        self._paused = threading.Event()
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._segment_index = 0
        self.available_voices: List[VoiceInfo] = []

    @property
    def client(self):
        if self._client is None:
            self._client = texttospeech.TextToSpeechClient()
        return self._client

    @property
    def is_paused(self) -> bool:
        return self._paused.is_set()

    def remove_ssml_tags(self, text: str) -> str:
        """
        SSML 태그를 제거하되, Gemini-TTS markup tag([sigh] 등)는 보존합니다.
        """
        if not text:
            return ""
        return re.sub(r'<[^>]+>', '', text).strip()

    def synthesize(self, text: str, params: VoiceParams) -> bytes:
        """
        Cloud TTS로 MP3 오디오를 합성합니다.

        Raises:
            SpeechError: 합성 요청 실패
        """
        voice = texttospeech.VoiceSelectionParams(
            language_code=params.language_code,
            name=params.voice_name,
            model_name=self.tts_model_name,
        )
        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding.MP3,
            speaking_rate=params.speed,
            pitch=params.pitch,
            volume_gain_db=0.0,
        )
        synthesis_input = texttospeech.SynthesisInput(text=self.remove_ssml_tags(text))

        try:
            response = self.client.synthesize_speech(
                input=synthesis_input,
                voice=voice,
                audio_config=audio_config,
            )
        except Exception as e:
            log_error(f"TTS synthesis failed for voice {params.voice_name}", context="speech", exception=e)
            raise SpeechError(str(e)) from e

        return response.audio_content

    def measure_duration(self, audio_bytes: bytes, text: str) -> float:
        """
        오디오 길이(초). 디코딩할 수 없으면 글자 수로 추정합니다.
        """
        if audio_bytes:
            try:
                segment = AudioSegment.from_file(BytesIO(audio_bytes), format="mp3")
                return len(segment) / 1000.0
            except Exception as e:
                print_warning(f"Could not decode audio, estimating duration: {e}", context="speech")
        return estimate_duration(text)

    def render(
        self,
        text: str,
        params: VoiceParams,
        cancel_event: Optional[threading.Event] = None,
    ) -> RenderResult:
        """
        텍스트 한 세그먼트를 합성하고 발화가 끝날 때까지 기다립니다.

        Args:
            text: 읽을 텍스트
            params: 음성 파라미터
            cancel_event: 세션 정지 이벤트

        Returns:
            RenderResult (정지되었으면 completed=False)
        """
        self._stopped.clear()
        audio_bytes = self.synthesize(text, params)

        with self._lock:
            self._segment_index += 1
            index = self._segment_index

        try:
            audio_path = self._audio_sink(audio_bytes, index)
        except OSError as e:
            raise SpeechError(f"Could not write audio: {e}") from e

        duration = self.measure_duration(audio_bytes, text)
        completed = self._wait_for_playback(duration, cancel_event)
        return RenderResult(
            text=text,
            voice_name=params.voice_name,
            duration_seconds=duration,
            audio_path=audio_path,
            completed=completed,
        )

    def _wait_for_playback(self, duration: float, cancel_event: Optional[threading.Event]) -> bool:
        # 일시정지 중에는 남은 시간이 줄지 않음
        remaining = duration
        last = self._clock()
        while remaining > 0:
            if self._stopped.is_set() or (cancel_event is not None and cancel_event.is_set()):
                return False
            self._stopped.wait(min(self.poll_interval, remaining))
            now = self._clock()
            if not self._paused.is_set():
                remaining -= now - last
            last = now
        return not self._stopped.is_set()

    def pause(self) -> None:
        self._paused.set()

    def resume(self) -> None:
        self._paused.clear()

    def stop(self) -> None:
        """진행 중인 발화를 즉시 끝냅니다."""
        self._stopped.set()
        self._paused.clear()

    def list_voices(self, language_code: str = LANG_EN_FULL) -> List[VoiceInfo]:
        """
        백엔드가 제공하는 음성 목록을 가져와 캐시합니다.
        """
        try:
            response = self.client.list_voices(language_code=language_code)
        except Exception as e:
            log_error("Failed to list TTS voices", context="speech", exception=e)
            raise SpeechError(f"Could not list voices: {e}") from e

        voices = []
        for voice in response.voices:
            gender_name = texttospeech.SsmlVoiceGender(voice.ssml_gender).name
            voices.append(VoiceInfo(
                name=voice.name,
                language_codes=tuple(voice.language_codes),
                gender=_SSML_GENDERS.get(gender_name, Gender.NEUTRAL),
            ))
        self.available_voices = voices
        return voices

    def load_voices(self, language_code: str = LANG_EN_FULL) -> List[VoiceInfo]:
        """캐시된 음성 목록 (비어 있으면 백엔드에서 가져오고, 실패하면 빈 목록)"""
        if self.available_voices:
            return self.available_voices
        try:
            return self.list_voices(language_code)
        except SpeechError as e:
            print_warning(f"Voice list unavailable, using voice bank defaults: {e}", context="speech")
            return []

    def _write_segment_file(self, audio_bytes: bytes, index: int) -> Path:
        output_dir = self.output_dir or config.OUTPUT_ROOT
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / f"segment_{index}{EXT_MP3}"
        path.write_bytes(audio_bytes)
        return path
