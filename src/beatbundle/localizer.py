"""
Per-beat localization: translated text and narration audio per language.
"""

import logging
from collections.abc import Callable, Iterable, Mapping

from .cache import AssetCache, CacheKey
from .models import LocalizedAsset
from .retry import RetryPolicy
from .tts import silent_mp3

logger = logging.getLogger("beatbundle")

Translator = Callable[[str, str, str], str]
Synthesizer = Callable[[str], bytes]


class Localizer:
    """Produces ``lang -> audio file`` and ``lang -> text`` maps for one beat at a time.

    Narration for beat ``i`` in ``lang`` is cached as ``{i+1}_{lang}.mp3``. When
    that file exists and the manifest already holds the text, nothing is called.
    When the file exists but the text is missing, the text is translated again
    and synthesis is skipped.

    Translation that keeps failing falls back to the source text. Synthesis that
    keeps failing raises.
    """

    def __init__(
        self,
        translate: Translator,
        synthesize: Synthesizer,
        cache: AssetCache,
        retry: RetryPolicy | None = None,
        silence: Callable[[], bytes] = silent_mp3,
    ) -> None:
        self.translate = translate
        self.synthesize = synthesize
        self.cache = cache
        self.retry = retry or RetryPolicy()
        self.silence = silence

    def translate_or_fallback(self, text: str, from_lang: str, to_lang: str) -> str:
        if not text.strip():
            return ""
        try:
            return self.retry.call(self.translate, text, from_lang, to_lang)
        except Exception as e:
            logger.warning(f"Translation to {to_lang} failed, keeping {from_lang} text: {e}")
            return text

    def narrate(self, key: CacheKey, text: str) -> None:
        if text.strip():
            audio = self.retry.call(self.synthesize, text)
        else:
            audio = self.silence()
        self.cache.put(key, audio)

    def localize_beat(
        self,
        index: int,
        text: str,
        source_audio: str,
        source_lang: str,
        target_langs: Iterable[str],
        cached_texts: Mapping[str, str] | None = None,
    ) -> LocalizedAsset:
        """Localize beat ``index`` (0-based) into every target language."""
        cached_texts = cached_texts or {}
        asset = LocalizedAsset(
            audio_sources={source_lang: source_audio},
            multi_linguals={source_lang: text},
        )

        for lang in target_langs:
            if lang == source_lang:
                continue
            key = CacheKey.narration(index + 1, lang)
            file_name = self.cache.name(key)

            if self.cache.exists(key):
                asset.audio_sources[lang] = file_name
                cached = cached_texts.get(lang)
                if cached:
                    logger.debug(f"  Using cached {lang} audio and text")
                    asset.multi_linguals[lang] = cached
                    continue
                logger.warning(f"  {file_name} exists without cached text; translating only")

            logger.debug(f"  Translating to {lang}...")
            translated = self.translate_or_fallback(text, source_lang, lang)
            asset.multi_linguals[lang] = translated

            if not self.cache.exists(key):
                logger.debug(f"  Generating {lang} audio...")
                self.narrate(key, translated)
            asset.audio_sources[lang] = file_name

        return asset
