from __future__ import annotations

import os
import random
from pathlib import Path
from typing import Any

import numpy as np
import pytest

os.environ.setdefault("ECHODRILL_QUIET", "1")
os.environ.pop("ECHODRILL_PACKS_DIR", None)

from echodrill.capture import AudioCaptureController  # noqa: E402
from echodrill.models import EncouragementMessage, Item, Pack, VoiceInfo  # noqa: E402
from echodrill.packs import PackRegistry  # noqa: E402
from echodrill.session import LessonSession  # noqa: E402
from echodrill.speech import SpeechOutputController  # noqa: E402
from echodrill.storage import JsonStorage, PersistentCounter  # noqa: E402
from echodrill.voices import VoiceResolver  # noqa: E402


class FakeStream:
    """Stand-in for sounddevice.InputStream."""

    def __init__(self, callback, fail_on_start: bool = False, fail_on_stop: bool = False) -> None:
        self.callback = callback
        self.fail_on_start = fail_on_start
        self.fail_on_stop = fail_on_stop
        self.started = False
        self.closed = False

    def start(self) -> None:
        if self.fail_on_start:
            raise RuntimeError("permission denied")
        self.started = True

    def stop(self) -> None:
        if self.fail_on_stop:
            raise RuntimeError("device vanished")
        self.started = False

    def close(self) -> None:
        self.closed = True

    def feed(self, seconds: float, sample_rate: int = 16000) -> None:
        frames = int(seconds * sample_rate)
        self.callback(np.full((frames, 1), 0.1, dtype=np.float32), frames, None, None)


class FakeStreamFactory:
    def __init__(self, **stream_kwargs: Any) -> None:
        self.stream_kwargs = stream_kwargs
        self.streams: list[FakeStream] = []
        self.raise_on_open: Exception | None = None

    def __call__(self, samplerate: int, channels: int, callback) -> FakeStream:
        if self.raise_on_open is not None:
            raise self.raise_on_open
        stream = FakeStream(callback, **self.stream_kwargs)
        self.streams.append(stream)
        return stream

    @property
    def open_streams(self) -> int:
        return sum(1 for s in self.streams if not s.closed)


class FakePlayer:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.played: list[Any] = []
        self.stops = 0

    def play(self, clip) -> None:
        if self.fail:
            raise RuntimeError("mixer not available")
        self.played.append(clip)

    def stop(self) -> None:
        self.stops += 1


class FakeEngine:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple] = []

    def speak(self, text: str, voice_id: str | None, rate: float) -> None:
        if self.fail:
            raise RuntimeError("no synthesis driver")
        self.calls.append(("speak", text, voice_id, rate))

    def stop(self) -> None:
        self.calls.append(("stop",))

    @property
    def spoken(self) -> list[tuple]:
        return [call for call in self.calls if call[0] == "speak"]


def make_pack(code: str = "zh-CN", n: int = 2, encouragement: list[EncouragementMessage] | None = None) -> Pack:
    items = tuple(
        Item(id=f"i{i}", text=f"词{i}", romanization=f"ci{i}", gloss=f"word {i}", slow=f"词——{i}")
        for i in range(n)
    )
    if encouragement is None:
        encouragement = [
            EncouragementMessage("zh", "太棒了，亲爱的！"),
            EncouragementMessage("en", "Nice one, 亲爱的!"),
        ]
    return Pack(
        code=code,
        name=f"Pack {code}",
        items=items,
        encouragement=tuple(encouragement),
        name_token="亲爱的",
        endearment="亲爱的",
    )


@pytest.fixture
def stream_factory() -> FakeStreamFactory:
    return FakeStreamFactory()


@pytest.fixture
def player() -> FakePlayer:
    return FakePlayer()


@pytest.fixture
def notices() -> list[str]:
    return []


@pytest.fixture
def capture(stream_factory: FakeStreamFactory, player: FakePlayer, notices: list[str]) -> AudioCaptureController:
    controller = AudioCaptureController(
        stream_factory=stream_factory, player=player, notify=notices.append, device_check=None
    )
    yield controller
    controller.close()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def resolver() -> VoiceResolver:
    return VoiceResolver(lambda: [VoiceInfo(id="zh-voice", name="Ting-Ting", languages=("zh-CN",))])


@pytest.fixture
def speech(engine: FakeEngine, resolver: VoiceResolver) -> SpeechOutputController:
    return SpeechOutputController(engine, resolver)


@pytest.fixture
def xp_file(tmp_path: Path) -> Path:
    return tmp_path / "progress.json"


@pytest.fixture
def xp(xp_file: Path) -> PersistentCounter:
    return PersistentCounter(JsonStorage(xp_file))


@pytest.fixture
def registry() -> PackRegistry:
    return PackRegistry([make_pack("zh-CN", 2), make_pack("demo-3", 3, encouragement=[])])


@pytest.fixture
def session(registry, xp, speech, capture) -> LessonSession:
    return LessonSession(
        registry, xp, speech=speech, capture=capture, host_locale="en-US", learner_name="", rng=random.Random(7)
    )
