"""
Text-to-speech synthesis with OpenAI.
"""

import io
import logging
from collections.abc import Callable

from pydub import AudioSegment

logger = logging.getLogger("beatbundle")

# Optional OpenAI SDK
try:
    from openai import OpenAI
except ImportError:
    OpenAI = None


def speak(
    client: OpenAI,
    text: str,
    model: str = "tts-1",
    voice: str = "alloy",
    instructions: str | None = None,
) -> bytes:
    """Synthesize speech and return MP3 bytes."""
    if client is None:
        raise RuntimeError("OpenAI client is not initialized (missing OPENAI_API_KEY)")

    kwargs = {}
    if instructions:
        kwargs["instructions"] = instructions
    resp = client.audio.speech.create(
        model=model,
        voice=voice,
        input=text,
        response_format="mp3",
        **kwargs,
    )
    data = resp.content
    if not data:
        raise RuntimeError("TTS returned no audio")
    return data


def silent_mp3(duration_ms: int = 500) -> bytes:
    """A short silent MP3, used as narration for beats without text."""
    buf = io.BytesIO()
    AudioSegment.silent(duration=duration_ms).export(buf, format="mp3")
    return buf.getvalue()


def make_speaker(
    client: OpenAI, tts_model: str = "tts-1", voice: str = "alloy", instructions: str | None = None
) -> Callable[[str], bytes]:
    """Create a ``text -> mp3 bytes`` synthesis function."""

    def _speak(text: str) -> bytes:
        return speak(client, text, tts_model, voice, instructions=instructions)

    return _speak
