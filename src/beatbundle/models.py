"""
Data models for the bundle pipeline.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SilenceInterval:
    """A detected stretch of silence in seconds."""

    start: float
    end: float

    @property
    def midpoint(self) -> float:
        return (self.start + self.end) / 2


@dataclass(frozen=True)
class Segment:
    """A contiguous slice of the source video."""

    index: int  # 1-based
    start_time: float  # seconds
    end_time: float  # seconds
    duration: float  # seconds


@dataclass(frozen=True)
class Beat:
    """One narrated content unit. File names are relative to the bundle directory."""

    text: str
    video_source: str
    image_source: str
    audio_source: str
    start_time: float
    end_time: float
    duration: float


@dataclass
class LocalizedAsset:
    """Per-beat narration audio and text keyed by language."""

    audio_sources: dict[str, str] = field(default_factory=dict)
    multi_linguals: dict[str, str] = field(default_factory=dict)


@dataclass
class BeatData:
    """A beat as stored in mulmo_view.json."""

    text: str
    audio_sources: dict[str, str]
    multi_linguals: dict[str, str]
    video_source: str
    thumbnail: str
    start_time: float
    end_time: float
    duration: float

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "audioSources": dict(self.audio_sources),
            "multiLinguals": dict(self.multi_linguals),
            "videoSource": self.video_source,
            "thumbnail": self.thumbnail,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BeatData":
        return cls(
            text=data.get("text", ""),
            audio_sources=dict(data.get("audioSources") or {}),
            multi_linguals=dict(data.get("multiLinguals") or {}),
            video_source=data.get("videoSource", ""),
            thumbnail=data.get("thumbnail", ""),
            start_time=float(data.get("startTime", 0.0)),
            end_time=float(data.get("endTime", 0.0)),
            duration=float(data.get("duration", 0.0)),
        )


@dataclass
class ViewerBundle:
    """The mulmo_view.json manifest. Totals are always derived from the beats."""

    lang: str
    beats: list[BeatData] = field(default_factory=list)

    @property
    def total_duration(self) -> float:
        return sum(b.duration for b in self.beats)

    @property
    def total_segments(self) -> int:
        return len(self.beats)

    def to_dict(self) -> dict:
        return {
            "lang": self.lang,
            "totalDuration": self.total_duration,
            "totalSegments": self.total_segments,
            "beats": [b.to_dict() for b in self.beats],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ViewerBundle":
        return cls(
            lang=data.get("lang", ""),
            beats=[BeatData.from_dict(b) for b in data.get("beats") or []],
        )


@dataclass(frozen=True)
class SignedFile:
    """A presigned upload target for one bundle file."""

    file_name: str
    url: str
    content_type: str
    key: str = ""


@dataclass
class UploadManifest:
    """Upload targets for a single upload transaction. Never persisted."""

    upload_path: str
    content_id: str
    signs: list[SignedFile] = field(default_factory=list)

    @classmethod
    def from_response(cls, data: dict) -> "UploadManifest":
        upload_path = data.get("uploadPath") or ""
        content_id = data.get("contentId") or upload_path.rstrip("/").split("/")[-1]
        signs = [
            SignedFile(
                file_name=s["fileName"],
                url=s["url"],
                content_type=s.get("contentType", "application/octet-stream"),
                key=s.get("key", ""),
            )
            for s in data.get("signs") or []
        ]
        return cls(upload_path=upload_path, content_id=content_id, signs=signs)


@dataclass
class FileUploadResult:
    """Outcome of uploading one file."""

    file_name: str
    success: bool
    attempts: int = 0
    status: int | None = None
    error: str | None = None


@dataclass
class UploadResult:
    """Aggregate outcome of one upload transaction."""

    success: bool
    upload_path: str
    content_id: str
    fail_count: int
    files: list[FileUploadResult] = field(default_factory=list)
