"""End-to-end upload pipeline."""

import asyncio
import dataclasses
import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from ar_publisher.domain.errors import TranscodeError
from ar_publisher.domain.media import TranscodeProfile
from ar_publisher.domain.sessions import (
    CODE_IMAGE_NAME,
    COMPOSITE_PHOTO_NAME,
    RESERVED_NAMES,
    SCENE_DOCUMENT_NAME,
    IncomingAsset,
    Session,
)
from ar_publisher.services.filenames import unique_filename
from ar_publisher.services.publisher import Publisher
from ar_publisher.services.sessions import SessionIngestor
from ar_publisher.services.synthesizer import ArtifactSynthesizer
from ar_publisher.services.transcoder import AdaptiveTranscoder

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Готово ✅"


@dataclass(frozen=True)
class UploadRequest:
    """A submitted code and asset set, plus where the request arrived."""

    code: str | None
    assets: dict[str, IncomingAsset | None]
    url_scheme: str
    host: str


@dataclass(frozen=True)
class UploadOutcome:
    """Result returned to the caller of a successful upload."""

    message: str
    session_id: str
    public_url: str
    code_image_path: str
    composite_photo_path: str
    published_files: list[str]


@dataclass
class UploadPipeline:
    """Runs ingest, transcode, synthesize and publish for one request."""

    ingestor: SessionIngestor
    transcoder: AdaptiveTranscoder
    synthesizer: ArtifactSynthesizer
    publisher: Publisher
    public_base_url: str | None = None
    fallback_marker_url: str | None = None
    transcode_enabled: bool = True
    transcode_timeout_seconds: float = 900
    publish_timeout_seconds: float = 300

    async def run(
        self, request: UploadRequest, now: datetime | None = None
    ) -> UploadOutcome:
        """Process an upload and return the public scene URL."""
        session = self.ingestor.begin(request.code, request.assets, now)
        try:
            return await self._process(session, request)
        except Exception:
            logger.exception(
                "Upload pipeline failed", extra={"session_id": session.id}
            )
            raise

    async def _process(self, session: Session, request: UploadRequest) -> UploadOutcome:
        video = await self._prepare_video(session)

        scene_url = self.scene_url(request.url_scheme, request.host, session.id)
        marker = session.raw_assets.marker
        marker_src = marker.name if marker else self.fallback_marker_url or ""
        artifacts = await asyncio.to_thread(
            self.synthesizer.synthesize,
            session,
            video,
            scene_url,
            request.url_scheme,
            request.host,
            marker_src,
        )
        session = dataclasses.replace(session, artifacts=artifacts)

        result = await self.publisher.publish(
            session.id,
            session.staging_directory,
            timeout_seconds=self.publish_timeout_seconds,
        )

        return UploadOutcome(
            message=SUCCESS_MESSAGE,
            session_id=session.id,
            public_url=scene_url,
            code_image_path=f"/{session.id}/{CODE_IMAGE_NAME}",
            composite_photo_path=f"/{session.id}/{COMPOSITE_PHOTO_NAME}",
            published_files=result.remote_paths,
        )

    async def _prepare_video(self, session: Session) -> Path:
        raw_video = session.raw_assets.video
        taken = set(RESERVED_NAMES)
        taken.update(
            path.name for path in session.staging_directory.iterdir() if path.is_file()
        )
        if not self.transcode_enabled:
            target = session.staging_directory / unique_filename(
                raw_video.name, "video", taken
            )
            shutil.copyfile(raw_video, target)
            return target

        profile = self.transcoder.profile
        name = unique_filename(f"{raw_video.stem}{profile.extension}", "video", taken)
        target = session.staging_directory / name
        overlay = (
            session.raw_assets.photo
            if profile is TranscodeProfile.PHOTO_OVERLAY
            else None
        )
        try:
            async with asyncio.timeout(self.transcode_timeout_seconds):
                result = await self.transcoder.transcode(raw_video, target, overlay)
        except TimeoutError as exc:
            raise TranscodeError(
                f"Transcoding timed out after {self.transcode_timeout_seconds}s"
            ) from exc
        logger.info(
            "Video transcoded",
            extra={
                "session_id": session.id,
                "bitrate_kbps": result.bitrate_kbps,
                "size_bytes": result.size_bytes,
                "within_budget": result.within_budget,
            },
        )
        return result.video

    def scene_url(self, url_scheme: str, host: str, session_id: str) -> str:
        """Return the public URL of a session's scene document."""
        if self.public_base_url:
            base = self.public_base_url.rstrip("/")
            return f"{base}/{session_id}/{SCENE_DOCUMENT_NAME}"
        return f"{url_scheme}://{host}/{session_id}/{SCENE_DOCUMENT_NAME}"
