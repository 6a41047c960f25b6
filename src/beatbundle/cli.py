"""
Command-line interface for the bundle pipeline.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from .assets import AssetPipeline
from .bundle import generate_bundle
from .cache import DirectoryCache
from .io_ffmpeg import FfmpegTools, check_dependencies
from .lang import SUPPORTED_LANGS, detect_lang, lang_from_env, resolve_lang
from .localizer import Localizer
from .manifest import MANIFEST_NAME, attach_audio
from .script import SCRIPT_NAME, write_mulmo_script
from .stt import make_transcriber
from .translation import make_translator
from .tts import make_speaker
from .upload import DEFAULT_API_BASE_URL, MAX_CONCURRENT_UPLOADS, UploadManager, find_bundle_dir

logger = logging.getLogger("beatbundle")

# Optional OpenAI SDK
try:
    from openai import OpenAI
except ImportError:
    OpenAI = None

VIDEO_EXTENSIONS = {".mp4", ".mov", ".mkv", ".webm", ".avi"}


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def load_env() -> None:
    """Load .env from the project root, falling back to the current directory."""
    project_root = Path(__file__).resolve().parent.parent.parent
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    ap = argparse.ArgumentParser(
        prog="beatbundle", description="Localized multimedia bundles from narrated video"
    )
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    sub = ap.add_subparsers(dest="command", required=True)

    # movie: segment -> assets -> localize -> bundle
    mv = sub.add_parser("movie", help="Split a video into beats and build a localized bundle")
    mv.add_argument("file", help="Video file to convert (mp4, mov, mkv, webm, avi)")
    mv.add_argument(
        "-l",
        "--lang",
        choices=SUPPORTED_LANGS,
        default=None,
        help="Source language (default: $MULMO_LANG, else detected from transcripts)",
    )
    mv.add_argument("--min-segment", type=float, default=20.0, help="Minimum segment duration (s)")
    mv.add_argument("--max-segment", type=float, default=120.0, help="Maximum segment duration (s)")
    mv.add_argument(
        "--target-langs", default="ja", help="Target languages for translation (comma-separated)"
    )
    mv.add_argument("--no-bundle", action="store_true", help="Stop after writing the beat script")
    mv.add_argument(
        "--stt", choices=["openai", "local"], default="openai", help="Speech-to-text backend"
    )
    mv.add_argument("--whisper-model", default="whisper-1")
    mv.add_argument("--local-model", default="base", help="faster-whisper model (when --stt=local)")
    mv.add_argument("--gpt-model", default="gpt-4o-mini", help="Model used for translation")
    mv.add_argument("--tts-model", default="tts-1")
    mv.add_argument("--voice", default="alloy")
    mv.add_argument(
        "--voice-instructions",
        default=os.getenv("OPENAI_TTS_INSTRUCTIONS"),
        help="Optional TTS style instructions (not read aloud)",
    )
    mv.add_argument("--scripts-dir", default=None, help="Staging directory (default: scripts/<name>)")
    mv.add_argument("--output-root", default="output", help="Bundles go to <root>/<name>/mulmo_script")

    # upload
    up = sub.add_parser("upload", help="Upload a finished bundle")
    up.add_argument("basename", help="Bundle name (looked up as <output-root>/<basename>/*/)")
    up.add_argument("--output-root", default="output")
    up.add_argument("--concurrency", type=int, default=MAX_CONCURRENT_UPLOADS)
    up.add_argument(
        "--api-base-url", default=os.getenv("MULMO_API_BASE_URL") or DEFAULT_API_BASE_URL
    )

    # attach-audio
    at = sub.add_parser("attach-audio", help="Attach recorded narration to a beat")
    at.add_argument("bundle_dir")
    at.add_argument("beat_index", type=int, help="0-based beat index")
    at.add_argument("lang_key", help="Audio key, e.g. 'recorded' or 'ja-custom'")
    at.add_argument("audio_file")
    text_group = at.add_mutually_exclusive_group()
    text_group.add_argument("--text", default=None, help="Text spoken in the recording")
    text_group.add_argument(
        "--transcribe", action="store_true", help="Transcribe the recording for its text"
    )
    at.add_argument("--lang", default=None, help="Language hint for --transcribe")

    return ap.parse_args(argv)


def make_openai_client() -> "OpenAI":
    if not OpenAI:
        raise RuntimeError("openai package not installed. Install with: pip install openai")
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not set. Put it in .env or environment.")
    return OpenAI(api_key=api_key)


def run_movie(args: argparse.Namespace) -> None:
    video_path = Path(args.file).resolve()
    if not video_path.is_file():
        raise RuntimeError(f"File not found: {video_path}")
    if video_path.suffix.lower() not in VIDEO_EXTENSIONS:
        raise RuntimeError(f"Unsupported file type: {video_path.suffix}")
    target_langs = [lang.strip() for lang in args.target_langs.split(",") if lang.strip()]

    check_dependencies(["ffmpeg", "ffprobe"])
    need_openai = args.stt == "openai" or not args.no_bundle
    client = make_openai_client() if need_openai else None

    basename = video_path.stem
    scripts_dir = Path(args.scripts_dir or os.path.join("scripts", basename))
    bundle_dir = Path(args.output_root) / basename / "mulmo_script"
    scripts_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Processing video: {video_path}")
    logger.info(f"Scripts directory: {scripts_dir}")

    hint = args.lang or lang_from_env()
    pipeline = AssetPipeline(
        FfmpegTools(),
        DirectoryCache(scripts_dir),
        make_transcriber(args.stt, client, model=args.whisper_model, local_model=args.local_model),
    )
    _total, segments = pipeline.plan(video_path, args.min_segment, args.max_segment)
    beats = pipeline.run(video_path, segments, hint)

    source_lang = resolve_lang(hint) if hint else detect_lang(b.text for b in beats)
    script_path = write_mulmo_script(scripts_dir / SCRIPT_NAME, beats, source_lang)
    logger.info(f"MulmoScript saved to: {script_path}")

    if args.no_bundle:
        return

    logger.info(f"Bundle directory: {bundle_dir}")
    localizer = Localizer(
        make_translator(client, args.gpt_model),
        make_speaker(client, args.tts_model, args.voice, args.voice_instructions),
        DirectoryCache(bundle_dir),
    )
    generate_bundle(beats, source_lang, target_langs, scripts_dir, bundle_dir, localizer)


def run_upload(args: argparse.Namespace) -> bool:
    api_key = os.getenv("MULMO_MEDIA_API_KEY")
    if not api_key:
        raise RuntimeError("MULMO_MEDIA_API_KEY environment variable is not set")
    bundle_dir = find_bundle_dir(args.output_root, args.basename)
    logger.info(f"Uploading bundle from {bundle_dir}")

    manager = UploadManager(api_key, base_url=args.api_base_url, concurrency=args.concurrency)
    result = asyncio.run(manager.upload_bundle_dir(bundle_dir))
    if not result.success:
        logger.error(f"✗ Upload incomplete: {result.fail_count} file(s) failed; rerun to retry")
        return False
    logger.info("✓ Upload complete!")
    logger.info(f"  Upload path: {result.upload_path}")
    return True


def run_attach_audio(args: argparse.Namespace) -> None:
    audio_path = Path(args.audio_file)
    if not audio_path.is_file():
        raise RuntimeError(f"File not found: {audio_path}")
    if not (Path(args.bundle_dir) / MANIFEST_NAME).is_file():
        raise RuntimeError(f"{MANIFEST_NAME} not found in {args.bundle_dir}")

    text = args.text
    if args.transcribe:
        transcribe = make_transcriber("openai", make_openai_client())
        text = transcribe(audio_path, args.lang)
        logger.info(f"Transcription: {text[:100]}")
    attach_audio(args.bundle_dir, args.beat_index, args.lang_key, audio_path.read_bytes(), text)


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    load_env()
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        if args.command == "movie":
            run_movie(args)
            logger.info("✓ Bundle generation complete!")
        elif args.command == "upload":
            if not run_upload(args):
                sys.exit(1)
        elif args.command == "attach-audio":
            run_attach_audio(args)
    except Exception as e:
        logger.error(f"✗ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
