"""
Speech-to-text transcription for segment audio.
"""

import logging
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger("beatbundle")

# Optional OpenAI SDK
try:
    from openai import OpenAI
except ImportError:
    OpenAI = None


def transcribe_whisper_api(
    client: OpenAI, audio_path: str | Path, language: str | None = None, model: str = "whisper-1"
) -> str:
    """Transcribe an audio file with the OpenAI transcription API."""
    if client is None:
        raise RuntimeError("OpenAI client is not initialized (missing OPENAI_API_KEY)")

    kwargs = {"model": model}
    if language:
        kwargs["language"] = language
    with open(audio_path, "rb") as f:
        logger.debug("Transcribing %s with %s (language: %s)", audio_path, model, language or "auto")
        resp = client.audio.transcriptions.create(file=f, **kwargs)

    text = getattr(resp, "text", None)
    if text is None and isinstance(resp, dict):
        text = resp.get("text")
    return str(text or "").strip()


def transcribe_local_faster_whisper(
    audio_path: str | Path, local_model: str = "base", language: str | None = None
) -> str:
    """Transcribe an audio file locally with faster-whisper."""
    try:
        from faster_whisper import WhisperModel
    except ImportError as e:
        raise RuntimeError(
            "faster-whisper is not installed. Install with: pip install 'beat-bundle-pipeline[local]'"
        ) from e

    logger.debug("Transcribing %s locally (%s, language: %s)", audio_path, local_model, language or "auto")
    model = WhisperModel(local_model, device="cpu", compute_type="int8")
    segments_iter, _info = model.transcribe(str(audio_path), language=language, vad_filter=True)
    return " ".join(str(s.text).strip() for s in segments_iter).strip()


def make_transcriber(
    mode: str, client: OpenAI | None = None, model: str = "whisper-1", local_model: str = "base"
) -> Callable[[Path, str | None], str]:
    """Create a ``(audio_path, language) -> text`` transcription function."""
    if mode == "openai":

        def _transcribe(audio_path: Path, language: str | None) -> str:
            return transcribe_whisper_api(client, audio_path, language, model=model)

    elif mode == "local":

        def _transcribe(audio_path: Path, language: str | None) -> str:
            return transcribe_local_faster_whisper(audio_path, local_model, language)

    else:
        raise ValueError(f"Unknown transcription backend: {mode}")
    return _transcribe
