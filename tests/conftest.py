"""
Pytest configuration for Manga Narrator tests.

Redirects the application path to a temporary folder so tests never touch
the real config.json, .env, error_log.txt or outputs/.
"""
import os
import tempfile

os.environ.setdefault("MANGA_NARRATOR_HOME", tempfile.mkdtemp(prefix="manga_narrator_"))

import pytest
from unittest.mock import Mock

from manga_narrator import config
from manga_narrator.core.config_manager import ConfigManager, set_default_config_manager


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point every path at tmp_path and install a fresh ConfigManager."""
    monkeypatch.setattr(config, "application_path", tmp_path)
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "config.json")
    monkeypatch.setattr(config, "ENV_PATH", tmp_path / ".env")
    monkeypatch.setattr(config, "OUTPUT_ROOT", tmp_path / "outputs")
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

    manager = ConfigManager(config_path=tmp_path / "config.json", env_path=tmp_path / ".env")
    set_default_config_manager(manager)
    yield tmp_path
    set_default_config_manager(None)


@pytest.fixture
def settings_manager():
    """Settings collaborator returning a configured API key."""
    manager = Mock()
    manager.get_settings.return_value = {
        "api_key": "test-key",
        "voice": "",
        "speech_rate": 1.0,
        "capture_interval": 10.0,
        "auto_start": False,
        "model_name": "gemini-2.5-flash",
    }
    return manager


@pytest.fixture
def manga_payload():
    return {
        "overallScene": "Two friends in a park",
        "readingOrder": [0, 1],
        "panels": [
            {
                "id": 0,
                "setting": "A park in spring",
                "characters": [
                    {"description": "Girl", "position": "left", "expression": "smiling", "gender": "female", "isSpeaking": True}
                ],
                "actions": ["walking"],
                "emotions": ["joy"],
                "dialogue": ["Spring is beautiful"],
            },
            {
                "id": 1,
                "setting": "Cherry trees",
                "characters": [],
                "actions": [],
                "emotions": [],
                "dialogue": [],
            },
        ],
    }
