"""
Per-segment asset derivation: clip, audio, thumbnail and transcript.

Every output is looked up in the cache first; an existing file is reused as-is
and no tool call is made. Tool failures abort the whole run; rerunning resumes
from whatever is already cached.
"""

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from tqdm import tqdm

from .cache import AssetCache, CacheKey
from .io_ffmpeg import MediaToolError
from .models import Beat, Segment, SilenceInterval
from .retry import RetryPolicy
from .segments import plan_segments

logger = logging.getLogger("beatbundle")

Transcriber = Callable[[Path, str | None], str]


class MediaTools(Protocol):
    def probe_duration(self, input_path: Path) -> float: ...

    def detect_silence(self, input_path: Path) -> list[SilenceInterval]: ...

    def split_video(self, input_path: Path, out_path: Path, start: float, duration: float) -> None: ...

    def extract_audio(self, video_path: Path, out_path: Path) -> None: ...

    def thumbnail(self, video_path: Path, out_path: Path) -> None: ...


class AssetPipeline:
    """Derives the staged files for each planned segment of one source video."""

    def __init__(
        self,
        tools: MediaTools,
        cache: AssetCache,
        transcribe: Transcriber,
        retry: RetryPolicy | None = None,
    ) -> None:
        self.tools = tools
        self.cache = cache
        self.transcribe = transcribe
        self.retry = retry or RetryPolicy()

    def plan(
        self, source: Path, min_duration: float = 20.0, max_duration: float = 120.0
    ) -> tuple[float, list[Segment]]:
        """Probe the source and plan its segments. Returns (total duration, segments)."""
        total = self.tools.probe_duration(source)
        logger.info(f"Total duration: {int(total // 60)}m {int(total % 60)}s")
        silences = self.tools.detect_silence(source)
        logger.info(f"Found {len(silences)} silence intervals")
        segments = plan_segments(total, silences, min_duration, max_duration)
        logger.info(f"Created {len(segments)} segments")
        return total, segments

    def _ensure(self, key: CacheKey, label: str, produce: Callable[[Path], None]) -> str:
        if self.cache.exists(key):
            logger.debug(f"  Using cached {label} ({self.cache.name(key)})")
            return self.cache.name(key)
        out = self.cache.path(key)
        # tools write to a sibling .part file; only complete output takes the cached name
        tmp = out.with_name(f"{out.stem}.part{out.suffix}")
        logger.debug(f"  Generating {label} -> {out}")
        try:
            produce(tmp)
            if not tmp.is_file():
                raise MediaToolError(f"{label} was not produced: {out}")
            os.replace(tmp, out)
        finally:
            tmp.unlink(missing_ok=True)
        return self.cache.name(key)

    def _transcript(self, segment: Segment, audio_key: CacheKey, lang: str | None) -> str:
        key = CacheKey("transcript", segment.index)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"  Using cached transcript ({self.cache.name(key)})")
            return cached.decode("utf-8")
        text = self.retry.call(self.transcribe, self.cache.path(audio_key), lang)
        self.cache.put(key, text.encode("utf-8"))
        return text

    def process_segment(self, source: Path, segment: Segment, lang: str | None = None) -> Beat:
        n = segment.index
        video_key = CacheKey("video", n)
        audio_key = CacheKey("audio", n)
        thumb_key = CacheKey("thumbnail", n)

        video = self._ensure(
            video_key,
            "video",
            lambda out: self.tools.split_video(source, out, segment.start_time, segment.duration),
        )
        video_path = self.cache.path(video_key)
        audio = self._ensure(audio_key, "audio", lambda out: self.tools.extract_audio(video_path, out))
        thumbnail = self._ensure(thumb_key, "thumbnail", lambda out: self.tools.thumbnail(video_path, out))
        text = self._transcript(segment, audio_key, lang)
        logger.debug(f"  Transcription: {text[:100]}")

        return Beat(
            text=text,
            video_source=video,
            image_source=thumbnail,
            audio_source=audio,
            start_time=segment.start_time,
            end_time=segment.end_time,
            duration=segment.duration,
        )

    def run(self, source: Path, segments: list[Segment], lang: str | None = None) -> list[Beat]:
        """Process segments strictly in index order."""
        beats: list[Beat] = []
        for segment in tqdm(segments, desc="Segments"):
            beats.append(self.process_segment(source, segment, lang))
        return beats
