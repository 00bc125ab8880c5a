"""
Lesson session engine.

One `LessonSession` per running app: pick a pack, walk its items in order,
self-report each attempt ("Got it" / "Not yet"), earn XP. XP lives in a
`PersistentCounter` and is flushed on every change; restarting a pack
resets the cursor and score but never the XP.

States: NOT_STARTED → IN_PROGRESS → COMPLETE, with restart() going back to
IN_PROGRESS at item 0 from either of the latter two.
"""

import random
from enum import Enum
from typing import Optional

from .capture import AudioCaptureController
from .config import (
    COMPLETION_BONUS_XP,
    NORMAL_RATE,
    REFERENCE_LANGUAGE,
    SLOW_RATE,
    XP_PER_CORRECT,
    primary_subtag,
)
from .config import host_locale as detect_host_locale
from .errors import InvalidPackError, InvalidTransitionError
from .logger import logger
from .models import Item, Pack, Score
from .packs import PackRegistry
from .speech import SpeechOutputController
from .storage import PersistentCounter


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class LessonSession:
    def __init__(
        self,
        registry: PackRegistry,
        xp: PersistentCounter,
        speech: Optional[SpeechOutputController] = None,
        capture: Optional[AudioCaptureController] = None,
        host_locale: Optional[str] = None,
        learner_name: str = "",
        rng: Optional[random.Random] = None,
    ):
        self.registry = registry
        self.xp_counter = xp
        self.speech = speech
        self.capture = capture
        self.host_locale = host_locale if host_locale is not None else detect_host_locale()
        self.learner_name = learner_name
        self.rng = rng or random.Random()

        self._state = SessionState.NOT_STARTED
        self._pack: Optional[Pack] = None
        self._cursor = 0
        self._score = Score()
        self._bonus_granted = False
        self.slow_mode = False
        self.last_encouragement: Optional[str] = None

        # XP is read once, up front; every later change is flushed by the counter
        self.xp_counter.load()

    # -- read-only view --------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def pack(self) -> Optional[Pack]:
        return self._pack

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def score(self) -> Score:
        return self._score

    @property
    def xp(self) -> int:
        return self.xp_counter.value

    @property
    def current_item(self) -> Optional[Item]:
        if self._pack is None:
            return None
        return self._pack.items[self._cursor]

    @property
    def is_last_item(self) -> bool:
        return self._pack is not None and self._cursor == len(self._pack.items) - 1

    @property
    def progress(self) -> int:
        """Percent of the pack reached, counting the current item."""
        if self._pack is None:
            return 0
        return round((self._cursor + 1) / len(self._pack.items) * 100)

    # -- transitions -----------------------------------------------------------

    def _require(self, *states: SessionState) -> None:
        if self._state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidTransitionError(f"Not allowed in state {self._state.value} (needs {allowed})")

    def _transition(self, new_state: SessionState) -> None:
        logger.ui_transition(self._state.value, new_state.value)
        self._state = new_state

    def select_pack(self, code: str) -> Pack:
        """Start drilling a pack at its first item."""
        self._require(SessionState.NOT_STARTED)
        pack = self.registry.get_pack(code)
        if not pack.items:
            raise InvalidPackError(f"Pack '{code}' has no items.")

        logger.separator(f"Starting pack {pack.code}")
        self._pack = pack
        self._cursor = 0
        self._score = Score()
        self._bonus_granted = False
        self.last_encouragement = None
        self._transition(SessionState.IN_PROGRESS)
        return pack

    def mark_correct(self) -> str:
        """Learner got it: score, XP, encouragement, then advance or finish."""
        self._require(SessionState.IN_PROGRESS)
        item = self.current_item
        finishing = self.is_last_item
        award = XP_PER_CORRECT
        reason = f"correct {item.id}"
        if finishing and not self._bonus_granted:
            award += COMPLETION_BONUS_XP
            reason += " + set complete"
        encouragement = self.pick_encouragement()

        # Nothing below runs if the XP write fails
        self.xp_counter.add(award, reason=reason)

        self._score = Score(self._score.correct + 1, self._score.total + 1)
        self.last_encouragement = encouragement
        if finishing:
            self._bonus_granted = True
            self._transition(SessionState.COMPLETE)
        else:
            self._cursor += 1
            logger.ui(f"Item {self._cursor + 1}/{len(self._pack.items)}")
        return encouragement

    def mark_incorrect(self) -> None:
        """Learner wants another try: count it and replay the prompt."""
        self._require(SessionState.IN_PROGRESS)
        self._score = Score(self._score.correct, self._score.total + 1)
        self.play_prompt()

    def restart(self) -> None:
        """Replay the pack from item 0 with a clean score; XP is kept."""
        self._require(SessionState.IN_PROGRESS, SessionState.COMPLETE)
        self._cursor = 0
        self._score = Score()
        self._bonus_granted = False
        self.last_encouragement = None
        if self.capture is not None:
            self.capture.discard()
        self._transition(SessionState.IN_PROGRESS)

    def close(self) -> None:
        """Silence speech and release the microphone and any take."""
        if self.speech is not None:
            self.speech.cancel()
        if self.capture is not None:
            self.capture.close()

    # -- audio -----------------------------------------------------------------

    def play_prompt(self) -> bool:
        """Speak the current item, using the slow rendering in slow mode."""
        item = self.current_item
        if item is None or self.speech is None:
            return False
        rate = SLOW_RATE if self.slow_mode else NORMAL_RATE
        return self.speech.say(item.spoken(self.slow_mode), self._pack.code, rate)

    def set_slow_mode(self, enabled: bool) -> None:
        self.slow_mode = bool(enabled)

    def set_learner_name(self, name: str) -> None:
        self.learner_name = name.strip()

    # -- encouragement ---------------------------------------------------------

    def pick_encouragement(self) -> str:
        """
        Random message in the preferred language, personalized.

        Preference order: the pack's language, then the host locale's, then
        the reference language; with no match at all, any message will do.
        """
        messages = list(self._pack.encouragement) if self._pack else []
        if not messages:
            return ""

        pool = []
        for lang in (self._pack.language, primary_subtag(self.host_locale), REFERENCE_LANGUAGE):
            pool = [m for m in messages if m.lang == lang]
            if pool:
                break
        message = self.rng.choice(pool or messages)
        return self.personalize(message.text)

    def personalize(self, text: str) -> str:
        name = self.learner_name.strip() or self._pack.endearment
        return text.replace(self._pack.name_token, name)
