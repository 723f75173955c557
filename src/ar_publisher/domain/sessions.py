"""Domain models for upload sessions."""

from dataclasses import dataclass
from pathlib import Path

SCENE_DOCUMENT_NAME = "index.html"
CODE_IMAGE_NAME = "qr.png"
COMPOSITE_PHOTO_NAME = "final_with_qr.png"
SOURCE_DIRNAME = "source"
RESERVED_NAMES = frozenset({SCENE_DOCUMENT_NAME, CODE_IMAGE_NAME, COMPOSITE_PHOTO_NAME})


@dataclass(frozen=True)
class IncomingAsset:
    """A single uploaded file as received from the client."""

    filename: str | None
    content: bytes

    @property
    def is_present(self) -> bool:
        return bool(self.content) or bool(self.filename)


@dataclass(frozen=True)
class RawAssets:
    """Sanitized on-disk locations of the uploaded assets."""

    photo: Path
    video: Path
    marker: Path | None


@dataclass(frozen=True)
class SessionArtifacts:
    """Files derived from the raw assets, all inside the staging directory."""

    scene_document: Path
    code_image: Path
    composite_photo: Path
    video: Path


@dataclass(frozen=True)
class Session:
    """One ingestion-to-publish unit of work."""

    id: str
    staging_directory: Path
    raw_assets: RawAssets
    artifacts: SessionArtifacts | None = None
