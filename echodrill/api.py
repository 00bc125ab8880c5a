"""
OpenAI-backed speech services for Echo Drill.

This module handles:
- Speech-to-text of a learner's take (Whisper)
- Text-to-speech of a prompt (returned as MP3 bytes)

`request_*` functions raise UpstreamError carrying the HTTP status to relay;
the proxy endpoints turn that into an `{error}` response. The desktop app
uses the callback-style `transcribe_clip_async` instead, which never raises.
"""

import threading
import time
from typing import Callable, Optional

import openai
from openai import OpenAI

from .capture import CaptureClip
from .config import (
    DEFAULT_STT_MODEL,
    DEFAULT_TTS_MODEL,
    DEFAULT_TTS_VOICE,
    OPENAI_API_KEY,
    primary_subtag,
)
from .errors import UpstreamError
from .logger import Timer, logger

client: Optional[OpenAI] = OpenAI(api_key=OPENAI_API_KEY) if OPENAI_API_KEY else None


def is_api_available() -> bool:
    """Check if the OpenAI API client is properly configured."""
    return client is not None


def _require_client() -> OpenAI:
    if client is None:
        raise UpstreamError(500, "OPENAI_API_KEY is not configured")
    return client


def upload_filename(mime_type: str) -> str:
    """The upload extension tells the decoder what container to expect."""
    if "webm" in mime_type:
        ext = "webm"
    elif "mp4" in mime_type:
        ext = "mp4"
    elif "mpeg" in mime_type:
        ext = "mp3"
    else:
        ext = "wav"
    return f"echo.{ext}"


# ---------------------------------------------------------------------------
# Speech-to-Text
# ---------------------------------------------------------------------------

def request_transcription(audio: bytes, mime_type: str, language_hint: Optional[str] = None) -> str:
    """
    Transcribe recorded audio.

    Args:
        audio: raw audio bytes
        mime_type: e.g. "audio/webm", "audio/wav"
        language_hint: locale such as "zh-CN"; Whisper only takes the
            ISO 639-1 part, so "zh-CN" is sent as "zh"

    Raises:
        UpstreamError with the upstream status on failure
    """
    api = _require_client()
    kwargs = {
        "model": DEFAULT_STT_MODEL,
        "file": (upload_filename(mime_type), audio, mime_type),
    }
    if language_hint:
        kwargs["language"] = primary_subtag(language_hint)

    logger.api_call("audio.transcriptions.create", model=DEFAULT_STT_MODEL)
    try:
        with Timer() as timer:
            transcription = api.audio.transcriptions.create(**kwargs)
    except openai.APIStatusError as e:
        logger.api_error(f"ASR error {e.status_code}: {e.message}")
        raise UpstreamError(e.status_code, f"ASR error: {e.message}") from e
    except openai.APIError as e:
        logger.api_error(f"ASR request failed: {e}")
        raise UpstreamError(502, f"ASR error: {e}") from e

    logger.api_response("audio.transcriptions.create", duration_ms=timer.duration_ms)
    text = getattr(transcription, "text", transcription)
    return (text or "").strip() if isinstance(text, str) else str(text).strip()


def transcribe_clip(clip: CaptureClip, language: Optional[str] = None) -> Optional[str]:
    """Transcribe a learner take; None on any failure."""
    try:
        return request_transcription(clip.data, clip.mime_type, language)
    except UpstreamError as e:
        logger.error(f"Transcription failed: {e.message}")
        return None


def transcribe_clip_async(
    clip: CaptureClip,
    language: Optional[str],
    callback: Callable[[Optional[str]], None],
) -> None:
    """
    Transcribe in a background thread.
    Calls callback with the text when done, or None on error.
    """
    logger.task_start("async_transcription")

    def _transcribe():
        start_time = time.perf_counter()
        result = transcribe_clip(clip, language)
        duration_ms = (time.perf_counter() - start_time) * 1000

        if result is not None:
            logger.task_complete("async_transcription", duration_ms=duration_ms)
        else:
            logger.task_error("async_transcription", "Transcription returned None")

        callback(result)

    threading.Thread(target=_transcribe, daemon=True).start()


# ---------------------------------------------------------------------------
# Text-to-Speech
# ---------------------------------------------------------------------------

def request_speech(text: str, language_hint: str, voice: str = DEFAULT_TTS_VOICE) -> bytes:
    """
    Synthesize `text` and return MP3 bytes.

    The language is carried by the input text itself; the hint is only
    logged.
    """
    api = _require_client()
    logger.api(f"request_speech() - {len(text)} chars, voice={voice}, lang={language_hint}")
    logger.api_call("audio.speech.create", model=DEFAULT_TTS_MODEL)
    try:
        with Timer() as timer:
            response = api.audio.speech.create(
                model=DEFAULT_TTS_MODEL,
                voice=voice,
                input=text,
                response_format="mp3",
            )
    except openai.APIStatusError as e:
        logger.api_error(f"TTS error {e.status_code}: {e.message}")
        raise UpstreamError(e.status_code, f"OpenAI TTS error: {e.message}") from e
    except openai.APIError as e:
        logger.api_error(f"TTS request failed: {e}")
        raise UpstreamError(502, f"OpenAI TTS error: {e}") from e

    logger.api_response("audio.speech.create", duration_ms=timer.duration_ms)
    return response.content
