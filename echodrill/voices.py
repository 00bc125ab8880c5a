"""
Voice inventory tracking and locale → voice resolution.

The host's synthesis voices can show up late (some drivers enumerate them
asynchronously), so the resolver never caches a binding across inventory
changes: a locale that resolved to None while the inventory was empty is
looked up again on the next request once voices arrive.
"""

import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .config import primary_subtag
from .logger import logger
from .models import VoiceInfo

InventoryLoader = Callable[[], Iterable[VoiceInfo]]
InventoryListener = Callable[[Sequence[VoiceInfo]], None]


def normalize_voice_language(tag) -> str:
    """Normalize driver language tags: b'\\x05en-us' / 'zh_CN' -> 'en-us' / 'zh-CN'."""
    if isinstance(tag, bytes):
        tag = tag.decode("utf-8", errors="ignore")
    tag = str(tag).lstrip("".join(chr(c) for c in range(32))).strip()
    return tag.replace("_", "-")


def pyttsx3_inventory() -> List[VoiceInfo]:
    """Read the installed voices through pyttsx3."""
    import pyttsx3

    engine = pyttsx3.init()
    voices = []
    for v in engine.getProperty("voices") or []:
        languages = tuple(
            normalize_voice_language(lang) for lang in (getattr(v, "languages", None) or []) if lang
        )
        voices.append(VoiceInfo(id=str(v.id), name=str(getattr(v, "name", "") or ""), languages=languages))
    return voices


def match_voice(voices: Sequence[VoiceInfo], locale: str) -> Optional[VoiceInfo]:
    """Exact tag match first, then primary-subtag match, else None."""
    wanted = locale.lower()
    for voice in voices:
        if any(lang.lower() == wanted for lang in voice.languages):
            return voice

    wanted_primary = primary_subtag(locale)
    for voice in voices:
        if any(primary_subtag(lang) == wanted_primary for lang in voice.languages):
            return voice
    return None


class VoiceResolver:
    """
    Tracks the host voice inventory and resolves voices for locales.

    The inventory is loaded on first use and whenever the host reports a
    change (`set_inventory`) or a refresh is requested. Subscribers are told
    about every change.
    """

    def __init__(self, inventory_loader: Optional[InventoryLoader] = None):
        self._loader = inventory_loader
        self._voices: List[VoiceInfo] = []
        self._loaded = False
        self._version = 0
        self._bindings: Dict[str, Optional[VoiceInfo]] = {}
        self._bindings_version = -1
        self._listeners: List[InventoryListener] = []
        self._lock = threading.RLock()

    @property
    def version(self) -> int:
        return self._version

    @property
    def voices(self) -> List[VoiceInfo]:
        with self._lock:
            if not self._loaded:
                self.refresh()
            return list(self._voices)

    def subscribe(self, listener: InventoryListener) -> Callable[[], None]:
        """Register for inventory changes; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def refresh(self) -> List[VoiceInfo]:
        """Reload the inventory from the host."""
        if self._loader is None:
            voices: List[VoiceInfo] = []
        else:
            try:
                voices = list(self._loader())
            except Exception as e:
                logger.voice_error(f"Voice inventory unavailable: {e}")
                voices = []
        self.set_inventory(voices)
        return voices

    def refresh_async(self, callback: Optional[InventoryListener] = None) -> None:
        """Reload the inventory in a background thread."""
        logger.task_start("voice_inventory_refresh")

        def _refresh():
            start_time = time.perf_counter()
            voices = self.refresh()
            logger.task_complete("voice_inventory_refresh", duration_ms=(time.perf_counter() - start_time) * 1000)
            if callback:
                callback(voices)

        threading.Thread(target=_refresh, daemon=True).start()

    def set_inventory(self, voices: Iterable[VoiceInfo]) -> None:
        """Replace the inventory (the host signalled a change)."""
        with self._lock:
            self._voices = list(voices)
            self._loaded = True
            self._version += 1
            listeners = list(self._listeners)
            snapshot = list(self._voices)
        logger.voice(f"Voice inventory updated: {len(snapshot)} voice(s) (v{self._version})")
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Voice inventory listener failed: {e}", exc_info=True)

    def resolve(self, locale: str) -> Optional[VoiceInfo]:
        """Best voice for a locale under the current inventory, or None."""
        with self._lock:
            if not self._loaded:
                self.refresh()
            if self._bindings_version != self._version:
                self._bindings = {}
                self._bindings_version = self._version
            if locale not in self._bindings:
                voice = match_voice(self._voices, locale)
                self._bindings[locale] = voice
                if voice:
                    logger.voice(f"Resolved {locale} → {voice.name or voice.id}")
                else:
                    logger.voice(f"No voice for {locale}; using host default")
            return self._bindings[locale]
