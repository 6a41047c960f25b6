"""
Translation of beat narration between languages.
"""

import logging
from collections.abc import Callable

from .lang import language_name

logger = logging.getLogger("beatbundle")

# Optional OpenAI SDK
try:
    from openai import OpenAI
except ImportError:
    OpenAI = None


def translate_text(
    client: OpenAI,
    text: str,
    from_lang: str,
    to_lang: str,
    model: str = "gpt-4o-mini",
) -> str:
    """
    Translate text using OpenAI GPT.

    Errors propagate to the caller, which owns retry and fallback.

    Args:
        client: OpenAI client instance
        text: Text to translate
        from_lang: Source language code
        to_lang: Target language code
        model: GPT model to use for translation

    Returns:
        Translated text; an empty string for blank input
    """
    if client is None:
        raise RuntimeError("OpenAI client is not initialized (missing OPENAI_API_KEY)")

    if not text.strip():
        return ""

    from_name = language_name(from_lang)
    to_name = language_name(to_lang)
    logger.debug(f"Translating {len(text)} characters {from_lang} -> {to_lang} using {model}")

    response = client.chat.completions.create(
        model=model,
        messages=[
            {
                "role": "system",
                "content": f"Translate the given {from_name} text to natural {to_name}. "
                "Only return the translated text, nothing else.",
            },
            {"role": "user", "content": text},
        ],
    )

    content = response.choices[0].message.content if response.choices else None
    translated = (content or "").strip()
    if not translated:
        raise RuntimeError("Empty translation returned")
    return translated


def make_translator(client: OpenAI, model: str = "gpt-4o-mini") -> Callable[[str, str, str], str]:
    """Create a ``(text, from_lang, to_lang) -> text`` translation function."""

    def _translate(text: str, from_lang: str, to_lang: str) -> str:
        return translate_text(client, text, from_lang, to_lang, model=model)

    return _translate
