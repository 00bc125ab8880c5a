from __future__ import annotations

import io
import os
from types import SimpleNamespace

import pytest
import soundfile as sf

from echodrill import capture as capture_module
from echodrill.capture import AudioCaptureController, CaptureClip, CaptureState, PygameClipPlayer
from echodrill.errors import CaptureDeviceError, CaptureError, MicrophonePermissionError

from conftest import FakePlayer, FakeStreamFactory


def test_stop_without_start_is_noop(capture: AudioCaptureController, stream_factory: FakeStreamFactory) -> None:
    assert capture.stop() is None
    assert capture.state is CaptureState.IDLE
    assert stream_factory.streams == []


def test_record_cycle_produces_wav_clip_and_releases_stream(
    capture: AudioCaptureController, stream_factory: FakeStreamFactory
) -> None:
    assert capture.start() is True
    assert capture.state is CaptureState.RECORDING
    stream = stream_factory.streams[0]
    assert stream.started

    stream.feed(0.25)
    stream.feed(0.25)
    clip = capture.stop()

    assert capture.state is CaptureState.STOPPED
    assert stream.closed
    assert clip is capture.clip
    assert abs(clip.duration_seconds - 0.5) < 1e-6
    assert os.path.exists(clip.path)
    data, rate = sf.read(io.BytesIO(clip.data))
    assert rate == 16000
    assert len(data) == 8000


def test_second_start_is_rejected_without_opening_another_stream(
    capture: AudioCaptureController, stream_factory: FakeStreamFactory
) -> None:
    assert capture.start() is True
    assert capture.start() is False

    assert len(stream_factory.streams) == 1
    assert stream_factory.open_streams == 1
    assert capture.state is CaptureState.RECORDING


def test_new_recording_releases_previous_clip(
    capture: AudioCaptureController, stream_factory: FakeStreamFactory
) -> None:
    capture.start()
    stream_factory.streams[-1].feed(0.5)
    first = capture.stop()
    first_path = first.path

    assert capture.start() is True
    assert first.released
    assert not os.path.exists(first_path)
    assert capture.clip is None
    stream_factory.streams[-1].feed(0.3)
    second = capture.stop()
    assert second is not first
    assert stream_factory.open_streams == 0


def test_permission_denied_on_open_stays_idle(notices: list[str], player: FakePlayer) -> None:
    factory = FakeStreamFactory()
    factory.raise_on_open = RuntimeError("denied by user")
    controller = AudioCaptureController(stream_factory=factory, player=player, notify=notices.append, device_check=None)

    assert controller.start() is False
    assert controller.state is CaptureState.IDLE
    assert isinstance(controller.last_error, MicrophonePermissionError)
    assert "allow microphone access" in notices[0]


def test_failed_stream_start_closes_stream(notices: list[str], player: FakePlayer) -> None:
    factory = FakeStreamFactory(fail_on_start=True)
    controller = AudioCaptureController(stream_factory=factory, player=player, notify=notices.append, device_check=None)

    assert controller.start() is False
    assert factory.open_streams == 0
    assert controller.state is CaptureState.IDLE
    assert isinstance(controller.last_error, MicrophonePermissionError)


def test_failed_start_keeps_existing_clip(capture: AudioCaptureController, stream_factory: FakeStreamFactory) -> None:
    capture.start()
    stream_factory.streams[-1].feed(0.5)
    clip = capture.stop()

    stream_factory.raise_on_open = RuntimeError("denied")
    assert capture.start() is False
    assert capture.state is CaptureState.STOPPED
    assert capture.clip is clip
    assert not clip.released


def test_missing_device_is_reported(notices: list[str], player: FakePlayer) -> None:
    def no_device() -> None:
        raise CaptureDeviceError("No microphone found.")

    factory = FakeStreamFactory()
    controller = AudioCaptureController(
        stream_factory=factory, player=player, notify=notices.append, device_check=no_device
    )

    assert controller.start() is False
    assert isinstance(controller.last_error, CaptureDeviceError)
    assert notices == ["No microphone found."]
    assert factory.streams == []


def test_stream_error_on_stop_still_closes_stream(notices: list[str], player: FakePlayer) -> None:
    factory = FakeStreamFactory(fail_on_stop=True)
    controller = AudioCaptureController(stream_factory=factory, player=player, notify=notices.append, device_check=None)
    controller.start()
    factory.streams[0].feed(0.5)

    clip = controller.stop()

    assert factory.streams[0].closed
    assert clip is not None
    assert controller.state is CaptureState.STOPPED
    controller.close()


def test_empty_recording_returns_to_idle(
    capture: AudioCaptureController, stream_factory: FakeStreamFactory, notices: list[str]
) -> None:
    capture.start()
    assert capture.stop() is None

    assert capture.state is CaptureState.IDLE
    assert stream_factory.open_streams == 0
    assert isinstance(capture.last_error, CaptureError)
    assert "No audio recorded" in notices[-1]


def test_too_short_recording_is_discarded(
    capture: AudioCaptureController, stream_factory: FakeStreamFactory
) -> None:
    capture.start()
    stream_factory.streams[-1].feed(0.01)
    assert capture.stop() is None
    assert capture.state is CaptureState.IDLE
    assert stream_factory.open_streams == 0


def test_playback_plays_clip_or_noops(
    capture: AudioCaptureController, stream_factory: FakeStreamFactory, player: FakePlayer
) -> None:
    assert capture.playback() is False
    assert player.played == []

    capture.start()
    stream_factory.streams[-1].feed(0.5)
    clip = capture.stop()

    assert capture.playback() is True
    assert player.played == [clip]


def test_playback_error_is_not_raised(stream_factory: FakeStreamFactory) -> None:
    controller = AudioCaptureController(stream_factory=stream_factory, player=FakePlayer(fail=True), device_check=None)
    controller.start()
    stream_factory.streams[-1].feed(0.5)
    controller.stop()

    assert controller.playback() is False
    controller.close()


def test_discard_while_recording_releases_microphone(
    capture: AudioCaptureController, stream_factory: FakeStreamFactory
) -> None:
    capture.start()
    stream_factory.streams[-1].feed(0.2)
    capture.discard()

    assert stream_factory.open_streams == 0
    assert capture.state is CaptureState.IDLE
    assert capture.clip is None


def test_context_manager_releases_everything(stream_factory: FakeStreamFactory, player: FakePlayer) -> None:
    with AudioCaptureController(stream_factory=stream_factory, player=player, device_check=None) as controller:
        controller.start()
    assert stream_factory.open_streams == 0
    assert controller.state is CaptureState.IDLE


def test_release_is_idempotent(capture: AudioCaptureController, stream_factory: FakeStreamFactory) -> None:
    capture.start()
    stream_factory.streams[-1].feed(0.5)
    clip = capture.stop()
    clip.release()
    clip.release()
    assert clip.released


class FakeSound:
    def __init__(self, file) -> None:
        self.data = file.read()
        self.playing = False

    def play(self) -> None:
        self.playing = True

    def stop(self) -> None:
        self.playing = False


@pytest.fixture
def mixer(monkeypatch) -> SimpleNamespace:
    state = SimpleNamespace(initialized=False)
    fake = SimpleNamespace(
        get_init=lambda: state.initialized,
        init=lambda: setattr(state, "initialized", True),
        Sound=FakeSound,
        state=state,
    )
    monkeypatch.setattr(capture_module.pygame, "mixer", fake)
    return fake


def test_clip_player_initializes_mixer_and_replaces_sound(mixer: SimpleNamespace) -> None:
    player = PygameClipPlayer()
    first = CaptureClip(data=b"RIFF-one", path=None, sample_rate=16000, duration_seconds=1.0)
    second = CaptureClip(data=b"RIFF-two", path=None, sample_rate=16000, duration_seconds=1.0)

    player.play(first)
    assert mixer.state.initialized
    first_sound = player._sound
    assert first_sound.data == b"RIFF-one" and first_sound.playing

    player.play(second)
    assert not first_sound.playing
    assert player._sound.data == b"RIFF-two"

    second_sound = player._sound
    player.stop()
    assert not second_sound.playing
    assert player._sound is None
