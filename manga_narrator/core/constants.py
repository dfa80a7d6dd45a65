"""
Constants for Manga Narrator
모든 매직 넘버와 문자열 상수를 중앙 집중식으로 관리
"""

# 비전 분석 재시도 설정
ANALYSIS_MAX_ATTEMPTS: int = 3  # 총 시도 횟수 (최초 1회 + 재시도 2회)
ANALYSIS_BASE_DELAY_SEC: float = 1.0  # 지수 백오프 기본 대기 시간 (초)
ANALYSIS_TIME_LIMIT_SEC: float = 5.0  # 분석 목표 시간 (초과 시 경고만)
ANALYSIS_REQUEST_TIMEOUT_SEC: float = 60.0  # 단일 요청 타임아웃
ANALYSIS_MAX_OUTPUT_TOKENS: int = 2000
ANALYSIS_TEMPERATURE: float = 0.7

# 파싱 실패 시 기본 분석 결과
FALLBACK_OVERALL_SCENE: str = "Unable to parse manga analysis"
FALLBACK_PANEL_SETTING: str = "Analysis parsing failed"

# 중복 내레이션 판정 (단어 겹침 비율이 이 값을 "초과"하면 중복)
REDUNDANCY_THRESHOLD: float = 0.70

# 캡처
DEFAULT_CAPTURE_INTERVAL_SEC: float = 10.0
MIN_CAPTURE_INTERVAL_SEC: float = 5.0
MAX_CAPTURE_INTERVAL_SEC: float = 60.0
DEFAULT_MONITOR_INDEX: int = 1  # mss 기준 첫 번째 실제 모니터

# 음성 속도
DEFAULT_SPEECH_RATE: float = 1.0
MIN_SPEECH_RATE: float = 0.5
MAX_SPEECH_RATE: float = 2.0
TTS_MIN_SPEAKING_RATE: float = 0.25  # Cloud TTS speaking_rate 허용 범위
TTS_MAX_SPEAKING_RATE: float = 4.0

# 재생 완료 신호가 없을 때의 재생 시간 추정 (초당 글자 수)
ESTIMATED_CHARS_PER_SECOND: float = 15.0
PLAYBACK_POLL_INTERVAL_SEC: float = 0.1

# Gemini 모델
GEMINI_MODEL_PRO: str = "gemini-2.5-pro"
GEMINI_MODEL_FLASH: str = "gemini-2.5-flash"
GEMINI_MODEL_FLASH_LITE: str = "gemini-2.5-flash-lite"
DEFAULT_VISION_MODEL: str = GEMINI_MODEL_FLASH

# TTS
GEMINI_TTS_MODEL_FLASH: str = "gemini-2.5-flash-tts"
DEFAULT_TTS_MODEL: str = GEMINI_TTS_MODEL_FLASH
LANG_EN_FULL: str = "en-US"

# 파일 / 디렉토리
EXT_MP3: str = ".mp3"
DIR_OUTPUTS: str = "outputs"
ERROR_LOG_FILE: str = "error_log.txt"
TIMING_LOG_DIR: str = "logs"
TIMING_LOG_PREFIX: str = "workflow_timing_"

# 상태 메시지
MSG_READY: str = "Ready"
MSG_WAITING_FIRST_CAPTURE: str = "Waiting for first capture..."
MSG_WAITING_NEXT_CAPTURE: str = "Waiting for next capture..."
MSG_ANALYZING: str = "Analyzing manga page..."
MSG_NARRATING: str = "Generating narration..."
MSG_SPEAKING: str = "Speaking narration..."
MSG_PAUSED: str = "Narration paused"
MSG_SKIPPED_REDUNDANT: str = "Page unchanged, skipping narration"
