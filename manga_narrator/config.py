"""
Configuration management for Manga Narrator
설정 파일(config.json)과 .env 기반 API 키 관리
"""
import os
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from dotenv import dotenv_values, load_dotenv
import google.generativeai as genai

from .core.constants import (
    DEFAULT_CAPTURE_INTERVAL_SEC,
    DEFAULT_SPEECH_RATE,
    DEFAULT_VISION_MODEL,
    DIR_OUTPUTS,
)

# Application path handling
# MANGA_NARRATOR_HOME이 지정되면 해당 폴더를 사용 (테스트/배포용)
_home_override = os.getenv("MANGA_NARRATOR_HOME")
if _home_override:
    application_path = Path(_home_override).expanduser()
else:
    application_path = Path(__file__).parent.parent

CONFIG_PATH = application_path / "config.json"
ENV_PATH = application_path / ".env"
OUTPUT_ROOT = application_path / DIR_OUTPUTS

DEFAULT_SETTINGS: Dict[str, Any] = {
    "api_key": "",
    "voice": "",
    "speech_rate": DEFAULT_SPEECH_RATE,
    "capture_interval": DEFAULT_CAPTURE_INTERVAL_SEC,
    "auto_start": False,
    "model_name": DEFAULT_VISION_MODEL,
}


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """config.json에서 설정 로드 (없거나 깨졌으면 기본값)"""
    path = Path(config_path) if config_path else CONFIG_PATH
    config: Dict[str, Any] = {}

    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                config = loaded
            else:
                print(f"⚠ Config at {path} is not a JSON object, using defaults", flush=True)
        except (OSError, json.JSONDecodeError) as e:
            print(f"✗ Failed to load config from {path}: {e}", flush=True)

    # 기본값 채우기
    for key, value in DEFAULT_SETTINGS.items():
        config.setdefault(key, value)

    return config


def save_config(config: Dict[str, Any], config_path: Optional[Path] = None) -> str:
    """설정을 config.json에 저장"""
    path = Path(config_path) if config_path else CONFIG_PATH
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2, ensure_ascii=False)
        print(f"✓ Configuration saved to: {path}", flush=True)
        return str(path)
    except OSError as e:
        error_msg = f"✗ Failed to save config to {path}: {e}"
        print(error_msg, flush=True)
        raise


def save_env_file(key: str, value: str, env_path: Optional[Path] = None) -> bool:
    """
    .env 파일에 환경 변수 저장 (기존 값 유지, 해당 키만 갱신)
    """
    path = Path(env_path) if env_path else ENV_PATH

    env_vars: Dict[str, str] = {}
    if path.exists():
        env_vars = {k: v for k, v in dotenv_values(path).items() if v is not None}
    env_vars[key] = value

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            for k, v in env_vars.items():
                f.write(f"{k}={v}\n")
        print(f"Saved {key} to .env file: {path}", flush=True)
        return True
    except OSError as e:
        print(f"Failed to save .env file: {e}", flush=True)
        return False


def resolve_api_key(
    config: Optional[Dict[str, Any]] = None,
    env_path: Optional[Path] = None,
) -> Optional[str]:
    """
    API 키를 찾습니다.

    우선순위:
    1. .env 파일 (프로젝트 루트)
    2. 시스템 환경 변수 (GOOGLE_API_KEY)
    3. config.json (api_key)

    Returns:
        API 키 (없으면 None)
    """
    path = Path(env_path) if env_path else ENV_PATH

    if path.exists():
        api_key = (dotenv_values(path).get("GOOGLE_API_KEY") or "").strip()
        if api_key:
            return api_key

    api_key = (os.getenv("GOOGLE_API_KEY") or "").strip()
    if api_key:
        return api_key

    if config is None:
        config = load_config()
    api_key = str(config.get("api_key") or "").strip()
    return api_key or None


def initialize_api_keys() -> Optional[str]:
    """
    API 키 초기화 - .env 파일 우선 (표준 방식)

    키를 찾으면 현재 프로세스 환경 변수와 Gemini SDK에 설정합니다.
    키가 없으면 None을 반환하며, 분석 요청 시 auth 에러로 처리됩니다.
    """
    print("=" * 70)
    print("🔑 API Key Initialization")
    print("=" * 70)

    if ENV_PATH.exists():
        load_dotenv(ENV_PATH)

    api_key = resolve_api_key()
    if not api_key:
        print("✗ No API key found in .env, environment, or config.json", flush=True)
        print("💡 Configure it with: manga-narrator config --set api_key=YOUR_KEY", flush=True)
        print("=" * 70 + "\n")
        return None

    os.environ["GOOGLE_API_KEY"] = api_key
    print(f"✓ GOOGLE_API_KEY set: {api_key[:6]}... (showing first 6 chars)", flush=True)

    try:
        genai.configure(api_key=api_key)
        print("✓ Gemini API configured successfully", flush=True)
    except Exception as e:
        print(f"✗ Failed to configure Gemini API: {e}", flush=True)
        raise

    print(f"\n📂 Application path: {application_path}", flush=True)
    print("=" * 70 + "\n")
    return api_key


def validate_api_key(api_key: str) -> Tuple[bool, str]:
    """
    Google Gemini API 키 검증

    Args:
        api_key: 검증할 API 키

    Returns:
        (is_valid: bool, message: str)
    """
    if not api_key or not api_key.strip():
        return False, "API key is empty"

    try:
        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(DEFAULT_VISION_MODEL)
        response = model.generate_content(
            "test",
            generation_config={"max_output_tokens": 1},
        )
        if response:
            return True, "API key is valid"
        return False, "API key validation failed: No response"

    except Exception as e:
        error_msg = str(e)
        if "API_KEY_INVALID" in error_msg or "invalid" in error_msg.lower():
            return False, "Invalid API key"
        elif "quota" in error_msg.lower():
            return False, "API quota exceeded"
        elif "permission" in error_msg.lower():
            return False, "API key lacks required permissions"
        else:
            return False, f"API key validation error: {error_msg}"
