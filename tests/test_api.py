from __future__ import annotations

import threading
from types import SimpleNamespace

import httpx
import openai
import pytest

from echodrill import api
from echodrill.capture import CaptureClip
from echodrill.errors import UpstreamError


class FakeAudio:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.requests: list[dict] = []
        self.transcriptions = SimpleNamespace(create=self._transcribe)
        self.speech = SimpleNamespace(create=self._speak)

    def _transcribe(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(text="  颠覆 ")

    def _speak(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(content=b"mp3")


def _status_error(status: int, message: str) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.openai.com/v1/audio/transcriptions")
    return openai.APIStatusError(message, response=httpx.Response(status, request=request), body=None)


@pytest.fixture
def fake_audio(monkeypatch) -> FakeAudio:
    audio = FakeAudio()
    monkeypatch.setattr(api, "client", SimpleNamespace(audio=audio))
    return audio


@pytest.mark.parametrize(
    "mime,name",
    [("audio/webm;codecs=opus", "echo.webm"), ("audio/mp4", "echo.mp4"), ("audio/mpeg", "echo.mp3"), ("audio/wav", "echo.wav")],
)
def test_upload_filename(mime: str, name: str) -> None:
    assert api.upload_filename(mime) == name


def test_transcription_request(fake_audio: FakeAudio) -> None:
    assert api.request_transcription(b"abc", "audio/webm", "zh-CN") == "颠覆"
    request = fake_audio.requests[0]
    assert request["model"] == "whisper-1"
    assert request["file"] == ("echo.webm", b"abc", "audio/webm")
    assert request["language"] == "zh"


def test_transcription_without_language_hint(fake_audio: FakeAudio) -> None:
    api.request_transcription(b"abc", "audio/wav")
    assert "language" not in fake_audio.requests[0]


def test_transcription_upstream_status(fake_audio: FakeAudio) -> None:
    fake_audio.error = _status_error(429, "rate limited")
    with pytest.raises(UpstreamError) as excinfo:
        api.request_transcription(b"abc", "audio/wav")
    assert excinfo.value.status_code == 429


def test_missing_api_key(monkeypatch) -> None:
    monkeypatch.setattr(api, "client", None)
    assert api.is_api_available() is False
    with pytest.raises(UpstreamError) as excinfo:
        api.request_speech("颠覆", "zh-CN")
    assert excinfo.value.status_code == 500


def test_speech_request(fake_audio: FakeAudio) -> None:
    assert api.request_speech("颠覆", "zh-CN") == b"mp3"
    request = fake_audio.requests[0]
    assert request["input"] == "颠覆"
    assert request["model"] == "gpt-4o-mini-tts"
    assert request["voice"] == "alloy"


def test_transcribe_clip_async_reports_none_on_failure(fake_audio: FakeAudio) -> None:
    fake_audio.error = _status_error(500, "server error")
    clip = CaptureClip(data=b"RIFF", path=None, sample_rate=16000, duration_seconds=1.0)
    done = threading.Event()
    results: list = []

    def callback(text):
        results.append(text)
        done.set()

    api.transcribe_clip_async(clip, "zh-CN", callback)
    assert done.wait(timeout=5)
    assert results == [None]
    assert fake_audio.requests[0]["file"] == ("echo.wav", b"RIFF", "audio/wav")
