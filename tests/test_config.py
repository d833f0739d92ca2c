import logging

from learning_companion.config import DEFAULT_MODEL, DEFAULT_VOICE_ID, load_settings
from learning_companion.log import LOGGER_NAME, setup_logging

ENV_VARS = (
    "GROQ_API_KEY", "GROQ_MODEL", "ELEVENLABS_API_KEY", "ELEVENLABS_VOICE_ID",
    "LEARNING_COMPANION_DB", "LEARNING_COMPANION_EMAIL", "LOG_LEVEL",
)


def clear_env(monkeypatch):
    for name in ENV_VARS:
        # setenv first so values loaded from .env files are undone after the test
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults(monkeypatch, tmp_path):
    clear_env(monkeypatch)
    settings = load_settings(str(tmp_path / "missing.env"))
    assert settings.groq_api_key == ""
    assert settings.groq_model == DEFAULT_MODEL
    assert settings.elevenlabs_voice_id == DEFAULT_VOICE_ID
    assert settings.log_level == "WARNING"


def test_env_file_is_loaded(monkeypatch, tmp_path):
    clear_env(monkeypatch)
    env_file = tmp_path / ".env"
    env_file.write_text("GROQ_API_KEY=gsk_test\nLEARNING_COMPANION_DB=/tmp/lc.db\n")
    settings = load_settings(str(env_file))
    assert settings.groq_api_key == "gsk_test"
    assert settings.db_path == "/tmp/lc.db"


def test_process_environment_wins_over_env_file(monkeypatch, tmp_path):
    clear_env(monkeypatch)
    monkeypatch.setenv("GROQ_MODEL", "from-env")
    env_file = tmp_path / ".env"
    env_file.write_text("GROQ_MODEL=from-file\n")
    assert load_settings(str(env_file)).groq_model == "from-env"


def test_setup_logging_is_idempotent():
    logger = setup_logging("debug")
    setup_logging("info")
    assert logger.name == LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
