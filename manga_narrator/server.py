"""
FastAPI Server for Manga Narrator
설정 화면/팝업과 통신하는 REST API 서버
"""
import os
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from .config import initialize_api_keys, validate_api_key
from .core.config_manager import get_default_config_manager
from .models.voice import VOICE_BANKS
from .session_manager import NarrationSession


class SettingsUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: Optional[str] = Field(default=None, alias="apiKey")
    voice: Optional[str] = None
    speech_rate: Optional[float] = Field(default=None, alias="speechRate")
    capture_interval: Optional[float] = Field(default=None, alias="captureInterval")
    auto_start: Optional[bool] = Field(default=None, alias="autoStart")
    model_name: Optional[str] = Field(default=None, alias="modelName")


# FastAPI 앱 생성
app = FastAPI(
    title="Manga Narrator API",
    description="Live narration of manga pages with Gemini vision and Cloud TTS",
    version="1.0.0"
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_session: Optional[NarrationSession] = None


def get_session() -> NarrationSession:
    """전역 세션 (첫 요청 시 생성)"""
    global _session
    if _session is None:
        from .services.tts_service import SpeechService
        _session = NarrationSession(speech_service=SpeechService())
    return _session


def set_session(session: Optional[NarrationSession]) -> None:
    global _session
    _session = session


def mask_api_key(key: str) -> str:
    if not key:
        return ""
    if len(key) > 8:
        return key[:4] + "*" * (len(key) - 8) + key[-4:]
    return "*" * len(key)


# 로깅 미들웨어
@app.middleware("http")
async def log_requests(request, call_next):
    start_time = time.time()
    print(f"\n[API Request] {request.method} {request.url.path}")

    try:
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000
        print(f"[API Response] {response.status_code} ({process_time:.2f}ms)")
        return response
    except Exception as e:
        print(f"[API Error] {str(e)}")
        raise


@app.on_event("startup")
def startup_event():
    """서버 시작 시 초기화"""
    print("=" * 70)
    print("Manga Narrator API Server Starting...")
    print("=" * 70)

    api_key = initialize_api_keys()
    if api_key:
        print("✓ API key loaded from configuration")
    else:
        print("✗ No API key configured")
        print("  ⚠ Narration requires a valid Google API key")
        print("  💡 Configure your API key via: POST /api/v1/config")

    if get_default_config_manager().get_settings()["auto_start"]:
        print("✓ autoStart enabled, starting narration")
        get_session().start()

    print("✓ Server ready to accept requests")
    print("=" * 70)


@app.get("/")
async def root():
    return {
        "message": "Manga Narrator API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """헬스 체크"""
    return {"status": "healthy"}


def _command_response(accepted: bool, command: str) -> dict:
    session = get_session()
    if not accepted:
        status = session.get_status()["status"]
        raise HTTPException(status_code=409, detail=f"Cannot {command} while {status}")
    return session.get_state()


@app.post("/api/v1/narration/start")
def start_narration():
    return _command_response(get_session().start(), "start")


@app.post("/api/v1/narration/pause")
def pause_narration():
    return _command_response(get_session().pause(), "pause")


@app.post("/api/v1/narration/resume")
def resume_narration():
    return _command_response(get_session().resume(), "resume")


@app.post("/api/v1/narration/stop")
def stop_narration():
    return _command_response(get_session().stop(), "stop")


@app.get("/api/v1/narration/status")
def get_narration_status():
    """
    세션 상태 조회

    Returns:
        status, capture_count, uptime 및 마지막 메시지
    """
    return get_session().get_state()


@app.post("/api/v1/narration/capture")
async def submit_capture(file: UploadFile = File(...)):
    """
    외부 캡처 소스(브라우저 탭 등)가 보낸 페이지 이미지를 받아 사이클을 시작
    """
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Captured image is empty")

    session = get_session()
    accepted = session.capture_completed(content, time.time(), mime_type=file.content_type or "image/png")
    return {"accepted": accepted, **session.get_status()}


@app.get("/api/v1/voices")
def get_available_voices():
    """
    사용 가능한 음성 목록 조회 (음성 뱅크 + TTS 백엔드가 나열한 음성)
    """
    speech_service = get_session().speech_service
    backend_voices = []
    if speech_service is not None:
        for info in speech_service.load_voices():
            backend_voices.append({
                "id": info.name,
                "language_codes": list(info.language_codes),
                "gender": info.gender.value,
            })

    voices = []
    for gender, bank in VOICE_BANKS.items():
        for voice in bank.get("voices", []):
            voices.append({
                "id": voice["name"],
                "name": voice["display"],
                "gender": gender,
                "default": voice["name"] == bank["default"],
                "description": bank.get("description", "")
            })

    return {"voices": voices, "backend_voices": backend_voices}


@app.get("/api/v1/config")
def get_config():
    """
    현재 설정 조회 (API 키 마스킹)
    """
    settings = get_default_config_manager().get_settings()
    settings["api_key"] = mask_api_key(settings.get("api_key", ""))
    settings["_config_path"] = str(get_default_config_manager().config_path)
    return settings


@app.post("/api/v1/config")
def update_config(request: SettingsUpdateRequest):
    """
    설정 업데이트 (camelCase 키 허용, 범위는 자동 보정)
    """
    updates = request.model_dump(exclude_none=True)

    if updates.get("api_key"):
        is_valid, message = validate_api_key(updates["api_key"])
        if not is_valid:
            raise HTTPException(status_code=400, detail=f"Invalid API key: {message}")

    try:
        saved = get_default_config_manager().save_settings(updates)
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save configuration: {str(e)}")

    saved["api_key"] = mask_api_key(saved.get("api_key", ""))
    return {
        "status": "success",
        "message": "Configuration updated",
        "config": saved,
    }


def main():
    """서버 실행"""
    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info"
    )


if __name__ == "__main__":
    main()
