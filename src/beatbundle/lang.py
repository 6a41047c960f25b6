"""
Language codes, names and resolution.
"""

import os
from collections.abc import Iterable

SUPPORTED_LANGS = ("en", "ja", "fr", "de")
DEFAULT_LANG = "en"

LANG_NAMES = {
    "en": "English",
    "ja": "Japanese",
    "fr": "French",
    "de": "German",
    "es": "Spanish",
    "zh": "Chinese",
    "ko": "Korean",
}


def is_valid_lang(lang: str | None) -> bool:
    return lang in SUPPORTED_LANGS


def lang_from_env() -> str | None:
    env_lang = os.getenv("MULMO_LANG")
    return env_lang if is_valid_lang(env_lang) else None


def resolve_lang(cli_lang: str | None = None) -> str:
    """Pick the language: CLI option, then MULMO_LANG, then the default."""
    if is_valid_lang(cli_lang):
        return cli_lang
    return lang_from_env() or DEFAULT_LANG


def language_name(code: str) -> str:
    """Human-readable language name for prompts."""
    return LANG_NAMES.get(code.lower(), code)


def _is_japanese(ch: str) -> bool:
    cp = ord(ch)
    return (
        0x3040 <= cp <= 0x30FF  # hiragana, katakana
        or 0x4E00 <= cp <= 0x9FFF  # CJK unified ideographs
        or 0xFF66 <= cp <= 0xFF9F  # half-width katakana
    )


def detect_lang(texts: Iterable[str], fallback: str = DEFAULT_LANG) -> str:
    """Guess the transcript language: ``ja`` when Japanese script dominates."""
    letters = 0
    japanese = 0
    for text in texts:
        for ch in text:
            if ch.isalpha():
                letters += 1
                if _is_japanese(ch):
                    japanese += 1
    if letters and japanese / letters >= 0.3:
        return "ja"
    return fallback
