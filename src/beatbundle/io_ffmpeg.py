"""
Video and audio processing utilities using ffmpeg/ffprobe.
"""

import logging
import platform
import re
import shutil
import subprocess
from pathlib import Path

from .models import SilenceInterval

logger = logging.getLogger("beatbundle")

_SILENCE_START_RE = re.compile(r"silence_start:\s*([\d.]+)")
_SILENCE_END_RE = re.compile(r"silence_end:\s*([\d.]+)")

# name -> (commands, brew install, apt install)
DEPENDENCIES: dict[str, tuple[tuple[str, ...], str, str]] = {
    "ffmpeg": (("ffmpeg",), "brew install ffmpeg", "sudo apt-get install -y ffmpeg"),
    "ffprobe": (("ffprobe",), "brew install ffmpeg", "sudo apt-get install -y ffmpeg"),
}


class MediaToolError(RuntimeError):
    """An external media tool failed or produced no output."""


def run(cmd: list[str], *, check: bool = True) -> str:
    """Run a command and return its combined stdout/stderr."""
    logger.debug("Running: %s", " ".join(map(str, cmd)))
    try:
        proc = subprocess.run(
            [str(c) for c in cmd],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise MediaToolError(f"Command not found: {cmd[0]}") from e
    if proc.returncode != 0 and check:
        logger.error("Command failed with code %d: %s", proc.returncode, proc.stdout[-2000:])
        msg = f"{cmd[0]} failed with code {proc.returncode}"
        raise MediaToolError(msg)
    return proc.stdout


def ensure_dir(path: str | Path) -> None:
    """Ensure directory exists."""
    if path:
        Path(path).mkdir(parents=True, exist_ok=True)


def check_dependencies(names: list[str]) -> None:
    """Fail fast when required command-line tools are missing."""
    missing = [
        name
        for name in names
        if name in DEPENDENCIES and not any(shutil.which(c) for c in DEPENDENCIES[name][0])
    ]
    if not missing:
        return
    is_mac = platform.system() == "Darwin"
    hints = sorted({DEPENDENCIES[n][1] if is_mac else DEPENDENCIES[n][2] for n in missing})
    msg = "Missing required dependencies: {}. Install with: {}".format(
        ", ".join(missing), "; ".join(hints)
    )
    raise RuntimeError(msg)


def probe_duration(input_path: str | Path) -> float:
    """Get media duration in seconds."""
    out = run(
        [
            "ffprobe",
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(input_path),
        ]
    )
    try:
        return float(out.strip())
    except ValueError as e:
        raise MediaToolError(f"Could not read duration of {input_path}: {out.strip()!r}") from e


def parse_silencedetect(output: str) -> list[SilenceInterval]:
    """Parse silence_start/silence_end pairs from ffmpeg silencedetect output."""
    silences: list[SilenceInterval] = []
    current_start: float | None = None
    for line in output.splitlines():
        m_start = _SILENCE_START_RE.search(line)
        if m_start:
            current_start = float(m_start.group(1))
        m_end = _SILENCE_END_RE.search(line)
        if m_end and current_start is not None:
            silences.append(SilenceInterval(start=current_start, end=float(m_end.group(1))))
            current_start = None
    return silences


def detect_silence(
    input_path: str | Path, noise_db: float = -30.0, min_silence: float = 0.5
) -> list[SilenceInterval]:
    """Detect silence intervals via the silencedetect audio filter."""
    out = run(
        [
            "ffmpeg",
            "-i",
            str(input_path),
            "-af",
            f"silencedetect=noise={noise_db:g}dB:d={min_silence:g}",
            "-f",
            "null",
            "-",
        ],
        check=False,
    )
    return parse_silencedetect(out)


def split_video(input_path: str | Path, out_path: str | Path, start: float, duration: float) -> None:
    """Cut ``duration`` seconds starting at ``start`` without re-encoding."""
    ensure_dir(Path(out_path).parent)
    run(
        [
            "ffmpeg",
            "-y",
            "-ss",
            f"{start:.3f}",
            "-i",
            str(input_path),
            "-t",
            f"{duration:.3f}",
            "-c",
            "copy",
            str(out_path),
        ]
    )


def extract_audio_mp3(input_video: str | Path, out_mp3: str | Path) -> None:
    """Extract the audio track of a clip as MP3."""
    ensure_dir(Path(out_mp3).parent)
    run(
        [
            "ffmpeg",
            "-y",
            "-i",
            str(input_video),
            "-vn",
            "-acodec",
            "libmp3lame",
            "-q:a",
            "2",
            str(out_mp3),
        ]
    )


def generate_thumbnail(input_video: str | Path, out_jpg: str | Path, width: int = 640) -> None:
    """Grab the first frame of a clip, scaled to ``width``."""
    ensure_dir(Path(out_jpg).parent)
    run(
        [
            "ffmpeg",
            "-y",
            "-i",
            str(input_video),
            "-ss",
            "0",
            "-vframes",
            "1",
            "-vf",
            f"scale={width}:-1",
            str(out_jpg),
        ]
    )


class FfmpegTools:
    """Media-tool collaborator backed by the local ffmpeg install."""

    def probe_duration(self, input_path: Path) -> float:
        return probe_duration(input_path)

    def detect_silence(self, input_path: Path) -> list[SilenceInterval]:
        return detect_silence(input_path)

    def split_video(self, input_path: Path, out_path: Path, start: float, duration: float) -> None:
        split_video(input_path, out_path, start, duration)

    def extract_audio(self, video_path: Path, out_path: Path) -> None:
        extract_audio_mp3(video_path, out_path)

    def thumbnail(self, video_path: Path, out_path: Path) -> None:
        generate_thumbnail(video_path, out_path)
