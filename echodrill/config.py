"""
Runtime configuration for Echo Drill.

Values come from the environment, optionally seeded from a .env file at the
project root:

    OPENAI_API_KEY=sk-...
    ECHODRILL_DATA_DIR=~/.echodrill
    ECHODRILL_PACKS_DIR=./my-packs
    ECHODRILL_LOCALE=zh-CN
    ECHODRILL_LEARNER=小爱

We use python-dotenv + os.getenv so secrets stay out of git.
"""

import locale
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .logger import logger

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

logger.env("Loading environment variables from .env file...")
if load_dotenv():
    logger.env_success("dotenv file loaded successfully")
else:
    logger.debug("No .env file found, using process environment")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

if OPENAI_API_KEY:
    masked_key = f"{OPENAI_API_KEY[:8]}...{OPENAI_API_KEY[-4:]}" if len(OPENAI_API_KEY) > 12 else "***"
    logger.env_success(f"OPENAI_API_KEY found: {masked_key}")
else:
    logger.env_error("OPENAI_API_KEY not set; speech proxies will answer with errors")

DATA_DIR = Path(os.getenv("ECHODRILL_DATA_DIR", "~/.echodrill")).expanduser()
XP_FILE = DATA_DIR / "progress.json"
PACKS_DIR: Optional[Path] = Path(os.environ["ECHODRILL_PACKS_DIR"]).expanduser() if os.getenv("ECHODRILL_PACKS_DIR") else None
LEARNER_NAME = os.getenv("ECHODRILL_LEARNER", "")

PROXY_HOST = os.getenv("ECHODRILL_PROXY_HOST", "127.0.0.1")
PROXY_PORT = int(os.getenv("ECHODRILL_PROXY_PORT", "5000"))

logger.env(f"Data directory: {DATA_DIR}")
if PACKS_DIR:
    logger.env(f"Extra packs directory: {PACKS_DIR}")

# ---------------------------------------------------------------------------
# Drill constants
# ---------------------------------------------------------------------------

XP_PER_CORRECT = 10
COMPLETION_BONUS_XP = 50
XP_STORAGE_KEY = "echo.xp"

# Speaking-rate multipliers of normal speed
NORMAL_RATE = 0.95
SLOW_RATE = 0.85

REFERENCE_LANGUAGE = "en"

# Capture format; Whisper prefers 16kHz mono
SAMPLE_RATE = 16000
CHANNELS = 1

# OpenAI models behind the proxies
DEFAULT_STT_MODEL = "whisper-1"
DEFAULT_TTS_MODEL = "gpt-4o-mini-tts"
DEFAULT_TTS_VOICE = "alloy"


def normalize_locale(tag: Optional[str]) -> str:
    """Turn 'zh_CN.UTF-8' style host locales into 'zh-CN'."""
    if not tag:
        return ""
    tag = tag.split(".", 1)[0].split("@", 1)[0]
    if tag in ("C", "POSIX"):
        return ""
    return tag.replace("_", "-")


def primary_subtag(tag: str) -> str:
    """Leading language segment of a locale tag: 'zh-CN' -> 'zh'."""
    for sep in ("-", "_"):
        if sep in tag:
            return tag.split(sep, 1)[0].lower()
    return tag.lower()


def host_locale() -> str:
    """Ambient locale of the machine, e.g. 'en-US'."""
    override = normalize_locale(os.getenv("ECHODRILL_LOCALE"))
    if override:
        return override
    detected = normalize_locale(locale.getlocale()[0])
    if detected:
        return detected
    return normalize_locale(os.getenv("LANG")) or "en-US"
