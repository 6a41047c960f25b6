"""
Key-addressed cache for generated assets.

A key maps to a stable file name so reruns over the same directory find
earlier work: ``{n}.mp4``, ``{n}.mp3``, ``{n}.jpg``, ``{n}.txt`` and
``{n}_{lang}.mp3`` for narration.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger("beatbundle")

_EXTENSIONS = {
    "video": "mp4",
    "audio": "mp3",
    "thumbnail": "jpg",
    "transcript": "txt",
    "narration": "mp3",
}


@dataclass(frozen=True)
class CacheKey:
    """(stage, 1-based segment number, language) address of one asset."""

    stage: str
    number: int
    lang: str | None = None

    def __post_init__(self) -> None:
        if self.stage not in _EXTENSIONS:
            raise ValueError(f"Unknown cache stage: {self.stage}")
        if self.stage == "narration" and not self.lang:
            raise ValueError("Narration keys need a language")

    @classmethod
    def narration(cls, number: int, lang: str) -> "CacheKey":
        return cls("narration", number, lang)

    @property
    def file_name(self) -> str:
        ext = _EXTENSIONS[self.stage]
        if self.stage == "narration":
            return f"{self.number}_{self.lang}.{ext}"
        return f"{self.number}.{ext}"


class AssetCache(Protocol):
    def name(self, key: CacheKey) -> str: ...

    def path(self, key: CacheKey) -> Path: ...

    def exists(self, key: CacheKey) -> bool: ...

    def get(self, key: CacheKey) -> bytes | None: ...

    def put(self, key: CacheKey, data: bytes) -> Path: ...


class DirectoryCache:
    """Assets stored as files directly under ``root``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def name(self, key: CacheKey) -> str:
        return key.file_name

    def path(self, key: CacheKey) -> Path:
        return self.root / key.file_name

    def exists(self, key: CacheKey) -> bool:
        return self.path(key).is_file()

    def get(self, key: CacheKey) -> bytes | None:
        p = self.path(key)
        return p.read_bytes() if p.is_file() else None

    def put(self, key: CacheKey, data: bytes) -> Path:
        p = self.path(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_name(p.name + ".part")
        tmp.write_bytes(data)
        os.replace(tmp, p)
        logger.debug("Cached %s (%d bytes)", p, len(data))
        return p


class MemoryCache:
    """In-memory stand-in for DirectoryCache."""

    def __init__(self, root: str | Path = "memory") -> None:
        self.root = Path(root)
        self.items: dict[str, bytes] = {}

    def name(self, key: CacheKey) -> str:
        return key.file_name

    def path(self, key: CacheKey) -> Path:
        return self.root / key.file_name

    def exists(self, key: CacheKey) -> bool:
        return key.file_name in self.items

    def get(self, key: CacheKey) -> bytes | None:
        return self.items.get(key.file_name)

    def put(self, key: CacheKey, data: bytes) -> Path:
        self.items[key.file_name] = data
        return self.path(key)
