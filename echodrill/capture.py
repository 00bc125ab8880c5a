"""
Microphone capture of the learner's attempt ("Echo") and replay of it.

Lifecycle: IDLE → RECORDING → STOPPED(clip), and STOPPED → RECORDING again
(the old clip is released when the new recording opens). The input stream is
owned by the controller while recording and is closed inside `stop()` on
every path, including failures. A second `start()` while recording is
rejected, so two capture streams can never be open at once.

Capture problems are recoverable: they are logged, passed to the `notify`
callback as a user-facing message and kept in `last_error`; the session
carries on without a clip.
"""

import io
import os
import tempfile
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

import numpy as np
import soundfile as sf

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
import pygame  # noqa: E402

from .config import CHANNELS, SAMPLE_RATE  # noqa: E402
from .errors import CaptureDeviceError, CaptureError, MicrophonePermissionError  # noqa: E402
from .logger import logger  # noqa: E402

# PortAudio is a system library; without it sounddevice cannot load at all
RECORDING_ERROR: Optional[str] = None
try:
    import sounddevice as sd
except OSError as e:
    sd = None
    RECORDING_ERROR = f"Audio input unavailable ({e}). On macOS, try: brew install portaudio"
    logger.warning(RECORDING_ERROR)

MIN_CLIP_SECONDS = 0.1

StreamFactory = Callable[..., Any]
Notifier = Callable[[str], None]


class CaptureState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"


@dataclass
class CaptureClip:
    """WAV bytes of one take plus a temp-file handle for playback and upload."""
    data: bytes
    path: Optional[str]
    sample_rate: int
    duration_seconds: float
    mime_type: str = "audio/wav"

    @property
    def released(self) -> bool:
        return self.path is None

    def release(self) -> None:
        """Delete the playable handle. Safe to call twice."""
        path, self.path = self.path, None
        if path and os.path.exists(path):
            try:
                os.unlink(path)
            except OSError as e:
                logger.warning(f"Could not remove clip file {path}: {e}")


def default_stream_factory(**kwargs):
    """Open a non-blocking sounddevice input stream."""
    if sd is None:
        raise CaptureDeviceError(RECORDING_ERROR or "sounddevice unavailable")
    return sd.InputStream(dtype="float32", **kwargs)


def default_device_check() -> None:
    """Raise CaptureDeviceError when the host has no input device."""
    if sd is None:
        raise CaptureDeviceError(RECORDING_ERROR or "sounddevice unavailable")
    try:
        devices = sd.query_devices()
    except Exception as e:
        raise CaptureDeviceError(f"Audio device error: {e}") from e
    if not any(d["max_input_channels"] > 0 for d in devices):
        raise CaptureDeviceError("No microphone found. Check your system's microphone privacy settings.")


class PygameClipPlayer:
    """Plays clips on a pygame mixer channel of their own."""

    def __init__(self) -> None:
        self._sound = None

    def play(self, clip: CaptureClip) -> None:
        if not pygame.mixer.get_init():
            pygame.mixer.init()
        if self._sound is not None:
            self._sound.stop()
        self._sound = pygame.mixer.Sound(file=io.BytesIO(clip.data))
        self._sound.play()

    def stop(self) -> None:
        if self._sound is not None:
            self._sound.stop()
            self._sound = None


class AudioCaptureController:
    """Owns the microphone stream and the learner's last take."""

    def __init__(
        self,
        stream_factory: StreamFactory = default_stream_factory,
        player: Optional[PygameClipPlayer] = None,
        notify: Optional[Notifier] = None,
        sample_rate: int = SAMPLE_RATE,
        channels: int = CHANNELS,
        device_check: Optional[Callable[[], None]] = default_device_check,
    ):
        self._stream_factory = stream_factory
        self._player = player if player is not None else PygameClipPlayer()
        self._notify = notify
        self.sample_rate = sample_rate
        self.channels = channels
        self._device_check = device_check

        self._state = CaptureState.IDLE
        self._stream = None
        self._chunks: List[np.ndarray] = []
        self._chunks_lock = threading.Lock()
        self._clip: Optional[CaptureClip] = None
        self.last_error: Optional[CaptureError] = None

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def clip(self) -> Optional[CaptureClip]:
        return self._clip

    @property
    def is_recording(self) -> bool:
        return self._state is CaptureState.RECORDING

    def _report(self, error: CaptureError) -> None:
        self.last_error = error
        logger.mic_error(str(error))
        if self._notify:
            self._notify(str(error))

    def _on_audio(self, indata, frames, time, status) -> None:
        """sounddevice callback, runs on the audio thread."""
        if status:
            logger.warning(f"Audio status: {status}")
        with self._chunks_lock:
            self._chunks.append(indata.copy())

    # -- transitions -----------------------------------------------------------

    def start(self) -> bool:
        """Open the microphone and begin buffering. False if refused or unavailable."""
        if self._state is CaptureState.RECORDING:
            logger.warning("Already recording; ignoring start()")
            return False

        self.last_error = None
        try:
            if self._device_check is not None:
                self._device_check()
            stream = self._stream_factory(
                samplerate=self.sample_rate, channels=self.channels, callback=self._on_audio
            )
        except CaptureDeviceError as e:
            self._report(e)
            return False
        except Exception as e:
            self._report(MicrophonePermissionError(
                f"Please allow microphone access to record your Echo. ({e})"
            ))
            return False

        with self._chunks_lock:
            self._chunks = []
        try:
            stream.start()
        except Exception as e:
            self._close_stream(stream)
            self._report(MicrophonePermissionError(
                f"Please allow microphone access to record your Echo. ({e})"
            ))
            return False

        self._release_clip()
        self._stream = stream
        self._state = CaptureState.RECORDING
        logger.mic("Recording started")
        return True

    def stop(self) -> Optional[CaptureClip]:
        """End the take, release the microphone and build the clip."""
        if self._state is not CaptureState.RECORDING:
            logger.debug("stop() without an active recording; nothing to do")
            return None

        stream, self._stream = self._stream, None
        self._close_stream(stream)

        with self._chunks_lock:
            chunks, self._chunks = self._chunks, []

        if not chunks:
            self._state = CaptureState.IDLE
            self._report(CaptureError("No audio recorded. Click Echo and speak clearly."))
            return None

        try:
            clip = self._assemble(chunks)
        except Exception as e:
            self._state = CaptureState.IDLE
            self._report(CaptureError(f"Could not save recording: {e}"))
            return None

        self._clip = clip
        self._state = CaptureState.STOPPED
        logger.mic(f"Recording saved: {clip.path} ({clip.duration_seconds:.1f}s)")
        return clip

    def playback(self) -> bool:
        """Replay the last take. No-op without one."""
        if self._clip is None or self._clip.released:
            logger.debug("No clip to play back")
            return False
        try:
            self._player.play(self._clip)
        except Exception as e:
            logger.mic_error(f"Clip playback failed: {e}")
            return False
        logger.mic("Playing back learner take")
        return True

    def discard(self) -> None:
        """Drop the current take and any open stream; back to IDLE."""
        if self._stream is not None:
            stream, self._stream = self._stream, None
            self._close_stream(stream)
            with self._chunks_lock:
                self._chunks = []
        self._release_clip()
        self._state = CaptureState.IDLE

    def close(self) -> None:
        self.discard()

    def __enter__(self) -> "AudioCaptureController":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -- helpers ---------------------------------------------------------------

    def _close_stream(self, stream) -> None:
        try:
            try:
                stream.stop()
            finally:
                stream.close()
        except Exception as e:
            logger.mic_error(f"Error while closing input stream: {e}")

    def _release_clip(self) -> None:
        if self._clip is not None:
            self._player.stop()
            self._clip.release()
            self._clip = None

    def _assemble(self, chunks: List[np.ndarray]) -> CaptureClip:
        audio = np.concatenate(chunks, axis=0)
        duration = len(audio) / self.sample_rate
        if duration < MIN_CLIP_SECONDS:
            raise CaptureError(f"take too short ({duration:.2f}s)")

        buffer = io.BytesIO()
        sf.write(buffer, audio, self.sample_rate, format="WAV", subtype="PCM_16")
        data = buffer.getvalue()

        fd, path = tempfile.mkstemp(suffix=".wav", prefix="echo_take_")
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        return CaptureClip(data=data, path=path, sample_rate=self.sample_rate, duration_seconds=duration)
