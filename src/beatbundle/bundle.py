"""
Bundle assembly: staged media, localized beats and the viewer manifest.
"""

import logging
import shutil
from collections.abc import Sequence
from pathlib import Path

from tqdm import tqdm

from .localizer import Localizer
from .manifest import ManifestStore
from .models import Beat, BeatData, LocalizedAsset, ViewerBundle

logger = logging.getLogger("beatbundle")


def stage_assets(beats: Sequence[Beat], staging_dir: str | Path, bundle_dir: str | Path) -> list[str]:
    """Copy each beat's video, thumbnail and audio into the bundle.

    Files already present in the bundle are never overwritten. Returns the
    names that were copied.
    """
    staging_dir = Path(staging_dir)
    bundle_dir = Path(bundle_dir)
    bundle_dir.mkdir(parents=True, exist_ok=True)
    if staging_dir.resolve() == bundle_dir.resolve():
        return []

    copied: list[str] = []
    for beat in beats:
        for name in (beat.video_source, beat.image_source, beat.audio_source):
            dest = bundle_dir / name
            if dest.exists():
                continue
            src = staging_dir / name
            if not src.is_file():
                raise FileNotFoundError(f"Staged asset missing: {src}")
            shutil.copy2(src, dest)
            copied.append(name)
    if copied:
        logger.info(f"Copied {len(copied)} staged files into {bundle_dir}")
    return copied


def assemble_bundle(
    beats: Sequence[Beat], localized: Sequence[LocalizedAsset], source_lang: str
) -> ViewerBundle:
    """Merge beats with their localized data, in segment order."""
    if len(beats) != len(localized):
        raise ValueError(f"{len(beats)} beats but {len(localized)} localized entries")
    return ViewerBundle(
        lang=source_lang,
        beats=[
            BeatData(
                text=beat.text,
                audio_sources=dict(loc.audio_sources),
                multi_linguals=dict(loc.multi_linguals),
                video_source=beat.video_source,
                thumbnail=beat.image_source,
                start_time=beat.start_time,
                end_time=beat.end_time,
                duration=beat.duration,
            )
            for beat, loc in zip(beats, localized, strict=True)
        ],
    )


def generate_bundle(
    beats: Sequence[Beat],
    source_lang: str,
    target_langs: Sequence[str],
    staging_dir: str | Path,
    bundle_dir: str | Path,
    localizer: Localizer,
) -> ViewerBundle:
    """Stage media, localize every beat and write mulmo_view.json.

    The manifest is rewritten after each beat so translations survive a run
    that stops part way.
    """
    store = ManifestStore(bundle_dir)
    logger.info(f"Generating bundle with {len(beats)} segments...")
    logger.info(f"  Source language: {source_lang}")
    logger.info(f"  Target languages: {', '.join(target_langs)}")

    with store.lock():
        stage_assets(beats, staging_dir, bundle_dir)
        previous = store.read()
        earlier = previous.beats[: len(beats)] if previous else []

        localized: list[LocalizedAsset] = []
        for i, beat in enumerate(tqdm(beats, desc="Localizing")):
            localized.append(
                localizer.localize_beat(
                    i,
                    beat.text,
                    beat.audio_source,
                    source_lang,
                    target_langs,
                    cached_texts=store.cached_texts(i),
                )
            )
            # persist after every beat; beats not yet redone keep their earlier entries
            done = assemble_bundle(beats[: i + 1], localized, source_lang)
            done.beats.extend(earlier[i + 1 :])
            store.write(done)

        bundle = assemble_bundle(beats, localized, source_lang)
        path = store.write(bundle)
    logger.info(f"Bundle saved to: {path}")
    return bundle
