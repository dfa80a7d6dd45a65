"""
Config Manager for unified settings management
config.py와 config_builder.py의 기능을 통합
"""
import threading
from pathlib import Path
from typing import Dict, Any, Optional

from ..config import (
    application_path,
    CONFIG_PATH,
    ENV_PATH,
    OUTPUT_ROOT,
    load_config as _load_config,
    save_config as _save_config,
    save_env_file as _save_env_file,
    resolve_api_key as _resolve_api_key,
)
from ..config_builder import build_settings as _build_settings


class ConfigManager:
    """
    설정 관리를 통합한 클래스
    세션은 매 사이클마다 get_settings()로 최신 설정을 읽음
    """

    def __init__(self, config_path: Optional[Path] = None, env_path: Optional[Path] = None):
        self._config: Optional[Dict[str, Any]] = None
        self._application_path = application_path
        self._config_path = Path(config_path) if config_path else CONFIG_PATH
        self._env_path = Path(env_path) if env_path else ENV_PATH
        self._output_root = OUTPUT_ROOT
        self._lock = threading.RLock()

    @property
    def application_path(self) -> Path:
        """애플리케이션 경로"""
        return self._application_path

    @property
    def config_path(self) -> Path:
        """설정 파일 경로"""
        return self._config_path

    @property
    def output_root(self) -> Path:
        """출력 루트 디렉토리"""
        return self._output_root

    def load(self) -> Dict[str, Any]:
        """
        설정을 로드합니다.

        Returns:
            설정 딕셔너리 (복사본)
        """
        with self._lock:
            if self._config is None:
                self._config = _load_config(self._config_path)
            return self._config.copy()

    def save(self, config: Optional[Dict[str, Any]] = None) -> None:
        """
        설정을 저장합니다.

        Args:
            config: 저장할 설정 (None이면 현재 설정 저장)
        """
        with self._lock:
            if config is not None:
                self._config = dict(config)
            if self._config is not None:
                _save_config(self._config, self._config_path)

    def get(self, key: str, default: Any = None) -> Any:
        return self.load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if self._config is None:
                self.load()
            self._config[key] = value

    def get_settings(self) -> Dict[str, Any]:
        """
        정규화된 현재 설정을 반환합니다.
        api_key가 비어 있으면 .env / 환경 변수에서 보충합니다.

        Returns:
            build_settings()를 거친 설정 딕셔너리
        """
        settings = _build_settings(self.load())
        if not settings["api_key"]:
            settings["api_key"] = _resolve_api_key(config=settings, env_path=self._env_path) or ""
        return settings

    def save_settings(self, raw_settings: Dict[str, Any]) -> Dict[str, Any]:
        """
        원시 설정(camelCase 허용)을 기존 설정과 병합해 저장합니다.
        새 API 키는 .env(GOOGLE_API_KEY)에 저장하고 config.json에는 남기지 않습니다.

        Returns:
            저장된 정규화 설정 (api_key는 해석된 값)
        """
        with self._lock:
            merged = self.load()
            merged.update(_build_settings({**merged, **(raw_settings or {})}))

            api_key = merged["api_key"]
            if api_key and _save_env_file("GOOGLE_API_KEY", api_key, self._env_path):
                merged["api_key"] = ""

            self.save(merged)
            saved = merged.copy()

        if not saved["api_key"]:
            saved["api_key"] = _resolve_api_key(config=saved, env_path=self._env_path) or ""
        return saved


# 전역 인스턴스
_default_config_manager: Optional[ConfigManager] = None


def get_default_config_manager() -> ConfigManager:
    """
    전역 ConfigManager 인스턴스를 반환합니다.
    """
    global _default_config_manager
    if _default_config_manager is None:
        _default_config_manager = ConfigManager()
    return _default_config_manager


def set_default_config_manager(manager: ConfigManager) -> None:
    """
    전역 ConfigManager 인스턴스를 설정합니다.

    Args:
        manager: ConfigManager 인스턴스
    """
    global _default_config_manager
    _default_config_manager = manager
