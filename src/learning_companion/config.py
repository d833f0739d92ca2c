"""Environment-driven configuration."""
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_DB_PATH = str(Path.home() / ".learning_companion" / "companion.db")
DEFAULT_MODEL = "llama3-70b-8192"
DEFAULT_VOICE_ID = "pNInz6obpgDQGcFmaJgB"


@dataclass
class Settings:
    groq_api_key: str = ""
    groq_model: str = DEFAULT_MODEL
    elevenlabs_api_key: str = ""
    elevenlabs_voice_id: str = DEFAULT_VOICE_ID
    db_path: str = DEFAULT_DB_PATH
    user_email: str = ""
    log_level: str = "WARNING"


def load_settings(env_file: str | None = None) -> Settings:
    """Build settings from the process environment, after loading a .env file if present."""
    load_dotenv(env_file)
    return Settings(
        groq_api_key=os.getenv("GROQ_API_KEY", ""),
        groq_model=os.getenv("GROQ_MODEL", DEFAULT_MODEL),
        elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY", ""),
        elevenlabs_voice_id=os.getenv("ELEVENLABS_VOICE_ID", DEFAULT_VOICE_ID),
        db_path=os.getenv("LEARNING_COMPANION_DB", DEFAULT_DB_PATH),
        user_email=os.getenv("LEARNING_COMPANION_EMAIL", ""),
        log_level=os.getenv("LOG_LEVEL", "WARNING"),
    )
