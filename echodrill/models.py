from dataclasses import dataclass, field
from typing import Optional, Tuple

from .config import primary_subtag


@dataclass(frozen=True)
class Item:
    """One drill item; order inside its pack is the drill order."""
    id: str
    text: str                        # Target-language display form (e.g. hanzi)
    romanization: str = ""           # Pinyin / phonetic aid
    gloss: str = ""                  # Meaning in the reference language
    slow: Optional[str] = None       # Deliberate-practice rendering, e.g. "颠——覆"

    def spoken(self, slow: bool = False) -> str:
        """Text handed to the synthesizer."""
        if slow and self.slow:
            return self.slow
        return self.text


@dataclass(frozen=True)
class EncouragementMessage:
    lang: str                        # "zh", "en", ...
    text: str


@dataclass(frozen=True)
class Pack:
    """A named, ordered collection of drill items plus encouragement text."""
    code: str                        # Locale tag or custom slug, e.g. "zh-CN"
    name: str
    items: Tuple[Item, ...]
    encouragement: Tuple[EncouragementMessage, ...] = field(default_factory=tuple)
    name_token: str = "{name}"       # Placeholder replaced by the learner's name
    endearment: str = "friend"       # Used when the learner's name is blank

    @property
    def language(self) -> str:
        return primary_subtag(self.code)

    def summary(self) -> "PackSummary":
        return PackSummary(code=self.code, name=self.name, item_count=len(self.items))


@dataclass(frozen=True)
class PackSummary:
    code: str
    name: str
    item_count: int


@dataclass(frozen=True)
class Score:
    correct: int = 0
    total: int = 0


@dataclass(frozen=True)
class VoiceInfo:
    """A synthesis voice offered by the host."""
    id: str
    name: str = ""
    languages: Tuple[str, ...] = ()  # Normalized tags, e.g. ("zh-CN",)
