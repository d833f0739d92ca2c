"""Tests for the speech services."""
import httpx
import pytest
from types import SimpleNamespace

from learning_companion.speech import (
    ELEVENLABS_MODEL, SpeechError, SpeechService, is_english, pick_voice, synthesize_with_elevenlabs,
)


def voice(name, languages, vid=None):
    return SimpleNamespace(id=vid or name, name=name, languages=languages)


class FakeEngine:
    def __init__(self, voices=(), fail=False):
        self.properties = {"voices": list(voices), "rate": 200, "volume": 1.0}
        self.spoken = []
        self.stops = 0
        self.fail = fail

    def getProperty(self, name):
        return self.properties[name]

    def setProperty(self, name, value):
        self.properties[name] = value

    def say(self, text):
        if self.fail:
            raise RuntimeError("no audio device")
        self.spoken.append(text)

    def runAndWait(self):
        pass

    def stop(self):
        self.stops += 1


def test_is_english_handles_byte_languages():
    assert is_english(voice("espeak", [b"\x05en-us"]))
    assert is_english(voice("Samantha", ["en_US"]))
    assert not is_english(voice("Amelie", ["fr_FR"]))


def test_pick_voice_prefers_google_english():
    voices = [voice("French", ["fr_FR"]), voice("Alex", ["en_US"]), voice("Google US English", ["en-US"])]
    assert pick_voice(voices).name == "Google US English"


def test_pick_voice_falls_back_to_any_english():
    assert pick_voice([voice("Google français", ["fr"]), voice("Alex", ["en_GB"])]).name == "Alex"


def test_pick_voice_none_without_english():
    assert pick_voice([voice("Anna", ["de_DE"])]) is None
    assert pick_voice([]) is None


def test_speak_configures_engine():
    engine = FakeEngine([voice("Alex", ["en_US"], vid="alex-id")])
    SpeechService(engine).speak("Hello there")
    assert engine.spoken == ["Hello there"]
    assert engine.properties["voice"] == "alex-id"
    assert engine.properties["rate"] == 180
    assert engine.properties["volume"] == 1.0
    assert engine.stops == 1


def test_speak_rate_is_relative_to_base_rate():
    engine = FakeEngine()
    service = SpeechService(engine)
    service.speak("one", rate=0.5)
    service.speak("two", rate=1.0)
    assert engine.properties["rate"] == 200


def test_speak_blank_text_is_a_no_op():
    engine = FakeEngine()
    SpeechService(engine).speak("   ")
    assert engine.spoken == []
    assert engine.stops == 0


def test_speak_failure_is_swallowed():
    engine = FakeEngine(fail=True)
    SpeechService(engine).speak("Hello")
    assert engine.spoken == []


def test_stop_without_engine_does_nothing():
    SpeechService().stop()


def test_is_supported_with_engine():
    assert SpeechService(FakeEngine()).is_supported()


# --- ElevenLabs ---


def test_elevenlabs_request_shape():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, content=b"ID3audio")

    client = httpx.Client(transport=httpx.MockTransport(handler))
    audio = synthesize_with_elevenlabs("Read me", "secret", "voice-1", client=client)
    assert audio == b"ID3audio"
    request = seen["request"]
    assert request.url.path == "/v1/text-to-speech/voice-1"
    assert request.headers["xi-api-key"] == "secret"
    assert request.headers["accept"] == "audio/mpeg"
    body = httpx.Response(200, content=request.content).json()
    assert body["text"] == "Read me"
    assert body["model_id"] == ELEVENLABS_MODEL
    assert body["voice_settings"] == {"stability": 0.5, "similarity_boost": 0.5}


def test_elevenlabs_requires_key():
    with pytest.raises(SpeechError):
        synthesize_with_elevenlabs("Read me", "")


def test_elevenlabs_error_status():
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(401)))
    with pytest.raises(SpeechError) as exc:
        synthesize_with_elevenlabs("Read me", "bad", client=client)
    assert "401" in str(exc.value)


def test_elevenlabs_transport_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    with pytest.raises(SpeechError):
        synthesize_with_elevenlabs("Read me", "key", client=client)
