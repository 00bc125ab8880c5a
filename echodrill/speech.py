"""
Text-to-speech playback of drill prompts.

At most one utterance is ever audible: every `speak()` cancels whatever is
playing before starting the new one. A broken synthesis engine never takes
the session down; failures are logged and the learner can simply retry.
"""

import threading
from typing import Optional, Protocol

import pyttsx3

from .config import NORMAL_RATE
from .logger import logger
from .models import VoiceInfo
from .voices import VoiceResolver


class SynthesisEngine(Protocol):
    def speak(self, text: str, voice_id: Optional[str], rate: float) -> None: ...

    def stop(self) -> None: ...


class Pyttsx3Engine:
    """
    Offline host synthesis through pyttsx3 (SAPI5, NSSpeechSynthesizer, eSpeak).

    `rate` is a multiplier of the driver's default words-per-minute. The
    utterance is queued on the caller's thread, so driver errors reach the
    caller; the blocking run loop then goes to a daemon thread so the UI
    never blocks.
    """

    JOIN_TIMEOUT_S = 1.0

    def __init__(self) -> None:
        self._engine = None
        self._default_voice: Optional[str] = None
        self._base_wpm = 200
        self._thread: Optional[threading.Thread] = None

    def _ensure_engine(self):
        if self._engine is None:
            self._engine = pyttsx3.init()
            self._default_voice = self._engine.getProperty("voice")
            self._base_wpm = int(self._engine.getProperty("rate") or 200)
            logger.voice(f"pyttsx3 engine ready (base rate {self._base_wpm} wpm)")
        return self._engine

    def speak(self, text: str, voice_id: Optional[str], rate: float) -> None:
        engine = self._ensure_engine()
        engine.setProperty("voice", voice_id or self._default_voice)
        engine.setProperty("rate", max(1, int(self._base_wpm * rate)))
        engine.say(text)

        def _run():
            try:
                engine.runAndWait()
            except Exception as e:
                logger.voice_error(f"Utterance failed: {e}")

        self._thread = threading.Thread(target=_run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._engine is None:
            return
        self._engine.stop()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=self.JOIN_TIMEOUT_S)
        self._thread = None


class SpeechOutputController:
    """Single-channel prompt playback."""

    def __init__(self, engine: SynthesisEngine, resolver: Optional[VoiceResolver] = None):
        self.engine = engine
        self.resolver = resolver
        self.utterances_started = 0

    def cancel(self) -> None:
        """Silence the current utterance, if any."""
        try:
            self.engine.stop()
        except Exception as e:
            logger.voice_error(f"Cancel failed: {e}")

    def speak(self, text: str, voice: Optional[VoiceInfo] = None, rate: float = NORMAL_RATE) -> bool:
        """
        Cancel any current utterance, then speak `text`.

        `voice` None means the engine's default voice. Returns False when the
        engine failed; the failure is logged, never raised.
        """
        if rate <= 0:
            raise ValueError(f"Speaking rate must be positive, got {rate}")
        if not text or not text.strip():
            logger.warning("Empty text provided for speech")
            return False

        self.cancel()
        try:
            self.engine.speak(text, voice.id if voice else None, rate)
        except Exception as e:
            logger.voice_error(f"Speech synthesis failed: {e}", exc_info=True)
            return False

        self.utterances_started += 1
        logger.voice(f"Speaking {text!r} (voice={voice.name if voice else 'default'}, rate={rate:.2f})")
        return True

    def say(self, text: str, locale: str, rate: float = NORMAL_RATE) -> bool:
        """Speak in the best voice for `locale`, resolved at call time."""
        voice = self.resolver.resolve(locale) if self.resolver else None
        return self.speak(text, voice, rate)
