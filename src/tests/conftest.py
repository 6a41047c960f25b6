"""Shared test fixtures."""

from pathlib import Path

import pytest

from beatbundle.io_ffmpeg import MediaToolError
from beatbundle.models import Beat
from beatbundle.retry import RetryPolicy


class FakeTools:
    """Media tools that write placeholder files and count invocations."""

    def __init__(
        self,
        duration: float = 150.0,
        silences=None,
        fail_on: str | None = None,
        crash_on: str | None = None,
    ):
        self.duration = duration
        self.silences = silences or []
        self.fail_on = fail_on
        self.crash_on = crash_on
        self.calls: list[tuple[str, str]] = []

    def _write(self, kind: str, out: Path) -> None:
        name = Path(out).name.replace(".part", "")
        self.calls.append((kind, name))
        if kind == self.fail_on:
            return
        Path(out).parent.mkdir(parents=True, exist_ok=True)
        if kind == self.crash_on:
            Path(out).write_bytes(b"TRUNCATED")
            raise MediaToolError(f"ffmpeg failed while writing {name}")
        Path(out).write_bytes(f"{kind}:{name}".encode())

    def probe_duration(self, input_path):
        self.calls.append(("probe", Path(input_path).name))
        return self.duration

    def detect_silence(self, input_path):
        self.calls.append(("silence", Path(input_path).name))
        return list(self.silences)

    def split_video(self, input_path, out_path, start, duration):
        self._write("split", out_path)

    def extract_audio(self, video_path, out_path):
        self._write("audio", out_path)

    def thumbnail(self, video_path, out_path):
        self._write("thumbnail", out_path)


@pytest.fixture
def sleep_log() -> list[float]:
    return []


@pytest.fixture
def no_wait_retry(sleep_log: list[float]) -> RetryPolicy:
    """Default retry policy that records delays instead of sleeping."""

    async def _async_sleep(seconds: float) -> None:
        sleep_log.append(seconds)

    return RetryPolicy(sleep=sleep_log.append, async_sleep=_async_sleep)


@pytest.fixture
def fake_tools() -> FakeTools:
    return FakeTools()


@pytest.fixture
def tools_factory():
    return FakeTools


@pytest.fixture
def make_beats():
    return _make_beats


def _make_beats(count: int = 2, duration: float = 30.0) -> list[Beat]:
    beats = []
    for i in range(count):
        n = i + 1
        beats.append(
            Beat(
                text=f"Hello number {n}.",
                video_source=f"{n}.mp4",
                image_source=f"{n}.jpg",
                audio_source=f"{n}.mp3",
                start_time=i * duration,
                end_time=(i + 1) * duration,
                duration=duration,
            )
        )
    return beats
