"""
Reading and writing the mulmo_view.json bundle manifest.
"""

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .models import ViewerBundle

logger = logging.getLogger("beatbundle")

MANIFEST_NAME = "mulmo_view.json"
LOCK_NAME = ".mulmo_view.lock"


class BundleLockedError(RuntimeError):
    """Another invocation is working on the same bundle directory."""


class ManifestStore:
    """The manifest of one bundle directory.

    The manifest is read-modify-written without merging, so only one
    invocation may work on a bundle directory at a time; ``lock()`` enforces it.
    """

    def __init__(self, bundle_dir: str | Path) -> None:
        self.bundle_dir = Path(bundle_dir)

    @property
    def path(self) -> Path:
        return self.bundle_dir / MANIFEST_NAME

    @property
    def lock_path(self) -> Path:
        return self.bundle_dir / LOCK_NAME

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> ViewerBundle | None:
        if not self.path.is_file():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable {self.path}: {e}")
            return None
        return ViewerBundle.from_dict(data)

    def write(self, bundle: ViewerBundle) -> Path:
        self.bundle_dir.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(bundle.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)
        return self.path

    def cached_texts(self, index: int) -> dict[str, str]:
        """Translations already recorded for beat ``index`` (0-based)."""
        bundle = self.read()
        if bundle is None or index >= len(bundle.beats):
            return {}
        return dict(bundle.beats[index].multi_linguals)

    @contextmanager
    def lock(self) -> Iterator[None]:
        self.bundle_dir.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            raise BundleLockedError(
                f"{self.bundle_dir} is in use by another run (remove {self.lock_path} if stale)"
            ) from None
        try:
            os.write(fd, str(os.getpid()).encode())
            os.close(fd)
            yield
        finally:
            self.lock_path.unlink(missing_ok=True)


def attach_audio(
    bundle_dir: str | Path,
    beat_index: int,
    lang_key: str,
    audio: bytes,
    text: str | None = None,
) -> str:
    """Store recorded narration for one beat under ``lang_key`` and update the manifest.

    Returns the bundle-relative audio file name.
    """
    store = ManifestStore(bundle_dir)
    with store.lock():
        bundle = store.read()
        if bundle is None:
            raise FileNotFoundError(f"{MANIFEST_NAME} not found in {bundle_dir}")
        if not 0 <= beat_index < len(bundle.beats):
            raise ValueError(
                f"Invalid beat index: {beat_index}. Valid range: 0-{len(bundle.beats) - 1}"
            )

        audio_file = f"{beat_index + 1}_{lang_key}.mp3"
        (store.bundle_dir / audio_file).write_bytes(audio)

        beat = bundle.beats[beat_index]
        beat.audio_sources[lang_key] = audio_file
        if text is not None:
            beat.multi_linguals[lang_key] = text
        elif not beat.multi_linguals.get(lang_key):
            beat.multi_linguals[lang_key] = beat.multi_linguals.get(bundle.lang) or beat.text
        store.write(bundle)
    logger.info(f"Attached {audio_file} to beat {beat_index + 1}")
    return audio_file
