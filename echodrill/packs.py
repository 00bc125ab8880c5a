"""
Drill pack loading and lookup.

Packs are static JSON documents:

    {
      "code": "zh-CN",
      "name": "Mandarin Chinese",
      "name_token": "亲爱的",
      "endearment": "亲爱的",
      "encouragement": [{"lang": "zh", "text": "太棒了，亲爱的！"}],
      "items": [{"id": "hsk6-1", "text": "颠覆", "romanization": "diānfù",
                 "gloss": "to subvert; overturn", "slow": "颠——覆"}]
    }

Content is validated when loaded so an empty or malformed pack can never be
reached mid-session.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .config import PACKS_DIR
from .errors import InvalidPackError, PackNotFoundError
from .logger import logger
from .models import EncouragementMessage, Item, Pack, PackSummary

BUNDLED_PACKS_DIR = Path(__file__).resolve().parent / "data" / "packs"


def _item_from_dict(pack_code: str, raw: Any) -> Item:
    if not isinstance(raw, dict):
        raise InvalidPackError(f"Pack '{pack_code}' has an item that is not an object.")
    item_id = str(raw.get("id", "")).strip()
    text = str(raw.get("text", "")).strip()
    if not item_id:
        raise InvalidPackError(f"Pack '{pack_code}' has an item without an id.")
    if not text:
        raise InvalidPackError(f"Item '{item_id}' in pack '{pack_code}' has no text.")
    slow = raw.get("slow")
    return Item(
        id=item_id,
        text=text,
        romanization=str(raw.get("romanization", "")),
        gloss=str(raw.get("gloss", "")),
        slow=str(slow) if slow else None,
    )


def _list_field(raw: Dict[str, Any], name: str, pack_code: str) -> list:
    value = raw.get(name, [])
    if not isinstance(value, list):
        raise InvalidPackError(f"Pack '{pack_code}' field '{name}' must be a list.")
    return value


def pack_from_dict(raw: Any) -> Pack:
    """Build and validate a pack from raw JSON content."""
    if not isinstance(raw, dict):
        raise InvalidPackError("Pack content must be a JSON object.")
    code = str(raw.get("code", "")).strip()
    if not code:
        raise InvalidPackError("Pack has no code.")

    items = [_item_from_dict(code, item) for item in _list_field(raw, "items", code)]
    if not items:
        raise InvalidPackError(f"Pack '{code}' has no items.")

    seen = set()
    for item in items:
        if item.id in seen:
            raise InvalidPackError(f"Duplicate item id '{item.id}' in pack '{code}'.")
        seen.add(item.id)

    encouragement = []
    for msg in _list_field(raw, "encouragement", code):
        if not isinstance(msg, dict):
            raise InvalidPackError(f"Pack '{code}' has an encouragement message that is not an object.")
        text = str(msg.get("text", ""))
        if text.strip():
            encouragement.append(EncouragementMessage(lang=str(msg.get("lang", "")).lower(), text=text))

    return Pack(
        code=code,
        name=str(raw.get("name", code)),
        items=tuple(items),
        encouragement=tuple(encouragement),
        name_token=str(raw.get("name_token", "{name}")),
        endearment=str(raw.get("endearment", "friend")),
    )


def load_packs_from_dir(path: Path) -> List[Pack]:
    """Load every *.json pack in a directory, sorted by filename."""
    packs: List[Pack] = []
    codes = set()
    for file_path in sorted(Path(path).glob("*.json")):
        try:
            raw = json.loads(file_path.read_text(encoding="utf-8-sig"))
        except ValueError as e:
            raise InvalidPackError(f"{file_path.name}: not valid JSON ({e})") from e
        try:
            pack = pack_from_dict(raw)
        except InvalidPackError as e:
            raise InvalidPackError(f"{file_path.name}: {e}") from e
        if pack.code in codes:
            raise InvalidPackError(f"{file_path.name}: Duplicate pack code: {pack.code}")
        codes.add(pack.code)
        packs.append(pack)
        logger.debug(f"Loaded pack {pack.code} ({len(pack.items)} items) from {file_path.name}")
    return packs


def load_bundled_packs(extra_dir: Optional[Path] = PACKS_DIR) -> List[Pack]:
    """Bundled packs followed by any packs from ECHODRILL_PACKS_DIR."""
    packs = load_packs_from_dir(BUNDLED_PACKS_DIR)
    if extra_dir is not None:
        if extra_dir.is_dir():
            packs.extend(load_packs_from_dir(extra_dir))
        else:
            logger.warning(f"Packs directory not found: {extra_dir}")
    return packs


class PackRegistry:
    """Read-only set of available packs, kept in load order."""

    def __init__(self, packs: Iterable[Pack]):
        self._packs: Dict[str, Pack] = {}
        for pack in packs:
            if not pack.items:
                raise InvalidPackError(f"Pack '{pack.code}' has no items.")
            if pack.code in self._packs:
                raise InvalidPackError(f"Duplicate pack code: {pack.code}")
            self._packs[pack.code] = pack

    @classmethod
    def bundled(cls) -> "PackRegistry":
        registry = cls(load_bundled_packs())
        logger.success(f"Pack registry ready: {', '.join(registry._packs)}")
        return registry

    def list_packs(self) -> List[PackSummary]:
        return [pack.summary() for pack in self._packs.values()]

    def get_pack(self, code: str) -> Pack:
        try:
            return self._packs[code]
        except KeyError:
            raise PackNotFoundError(code) from None

    def __contains__(self, code: object) -> bool:
        return code in self._packs

    def __len__(self) -> int:
        return len(self._packs)
