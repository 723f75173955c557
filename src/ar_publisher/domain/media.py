"""Domain models for transcoding and publishing."""

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path


class TranscodeProfile(StrEnum):
    """Encoder presets for the published video."""

    MP4 = "mp4"
    WEBM_ALPHA = "webm_alpha"
    PHOTO_OVERLAY = "photo_overlay"

    @property
    def extension(self) -> str:
        if self is TranscodeProfile.WEBM_ALPHA:
            return ".webm"
        return ".mp4"


@dataclass(frozen=True)
class EncodeRequest:
    """Parameters for one encoder invocation."""

    source: Path
    destination: Path
    bitrate_kbps: int
    profile: TranscodeProfile = TranscodeProfile.MP4
    overlay_image: Path | None = None


@dataclass(frozen=True)
class TranscodeAttempt:
    """Result of encoding at one bitrate."""

    bitrate_kbps: int
    size_bytes: int
    accepted: bool


@dataclass(frozen=True)
class TranscodeResult:
    """Accepted output of the bitrate search."""

    video: Path
    bitrate_kbps: int
    size_bytes: int
    within_budget: bool
    attempts: list[TranscodeAttempt] = field(default_factory=list)


@dataclass(frozen=True)
class PublishRecord:
    """One file written to the remote store."""

    remote_path: str
    payload_bytes: int
    message: str


@dataclass(frozen=True)
class PublishResult:
    """All files written for a session, in write order."""

    session_id: str
    records: list[PublishRecord]

    @property
    def remote_paths(self) -> list[str]:
        return [record.remote_path for record in self.records]
