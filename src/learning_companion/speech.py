"""Read lessons aloud.

Two independent paths: the platform speech engine (pyttsx3) and the ElevenLabs
HTTP API, which needs an API key and returns audio bytes. Neither falls back to
the other; the caller picks one.
"""
import logging

import httpx
import pyttsx3

from learning_companion.config import DEFAULT_VOICE_ID

logger = logging.getLogger(__name__)

ELEVENLABS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
ELEVENLABS_MODEL = "eleven_monolingual_v1"
PREFERRED_ENGINE = "google"


class SpeechError(Exception):
    """Audio could not be produced."""


def _languages(voice) -> list[str]:
    raw = list(getattr(voice, "languages", None) or [])
    lang = getattr(voice, "lang", None)
    if lang:
        raw.insert(0, lang)
    languages = []
    for value in raw:
        if isinstance(value, bytes):
            value = value.decode(errors="ignore")
        languages.append("".join(ch for ch in value if ch.isprintable()).strip().lower())
    return languages


def is_english(voice) -> bool:
    return any(lang.startswith("en") for lang in _languages(voice))


def pick_voice(voices: list):
    """Prefer a high-quality English voice, then any English voice."""
    english = [v for v in voices if is_english(v)]
    for voice in english:
        if PREFERRED_ENGINE in (voice.name or "").lower():
            return voice
    return english[0] if english else None


class SpeechService:
    """Platform text-to-speech. Failures are logged, never raised."""

    def __init__(self, engine=None):
        self._engine = engine
        self._base_rate = None

    def _get_engine(self):
        if self._engine is None:
            self._engine = pyttsx3.init()
        return self._engine

    def is_supported(self) -> bool:
        try:
            self._get_engine()
        except Exception as e:
            logger.warning("Speech engine unavailable: %s", e)
            return False
        return True

    def speak(self, text: str, rate: float = 0.9, volume: float = 1.0) -> None:
        if not text.strip():
            return
        try:
            engine = self._get_engine()
            engine.stop()
            voice = pick_voice(engine.getProperty("voices") or [])
            if voice is not None:
                engine.setProperty("voice", voice.id)
            if self._base_rate is None:
                self._base_rate = engine.getProperty("rate")
            engine.setProperty("rate", int(self._base_rate * rate))
            engine.setProperty("volume", volume)
            engine.say(text)
            engine.runAndWait()
        except Exception as e:
            logger.error("Speech failed: %s", e)

    def stop(self) -> None:
        if self._engine is None:
            return
        try:
            self._engine.stop()
        except Exception as e:
            logger.error("Stopping speech failed: %s", e)


def synthesize_with_elevenlabs(
    text: str,
    api_key: str,
    voice_id: str = DEFAULT_VOICE_ID,
    client: httpx.Client | None = None,
) -> bytes:
    """Return MPEG audio for ``text`` from the ElevenLabs API."""
    if not api_key:
        raise SpeechError("ElevenLabs API key not configured")
    payload = {
        "text": text,
        "model_id": ELEVENLABS_MODEL,
        "voice_settings": {"stability": 0.5, "similarity_boost": 0.5},
    }
    headers = {"Accept": "audio/mpeg", "xi-api-key": api_key}
    owns_client = client is None
    client = client or httpx.Client(timeout=None)
    try:
        response = client.post(ELEVENLABS_URL.format(voice_id=voice_id), json=payload, headers=headers)
    except httpx.HTTPError as e:
        logger.error("ElevenLabs request failed: %s", e)
        raise SpeechError("Failed to generate speech") from e
    finally:
        if owns_client:
            client.close()
    if response.is_error:
        logger.error("ElevenLabs returned %s", response.status_code)
        raise SpeechError(f"Failed to generate speech (HTTP {response.status_code})")
    return response.content
